"""HTML page for GET /."""
import html
import io
import os
import time
import urllib.parse
from typing import Iterable

from pyhfs.storage import FileEntry

STYLE = """
		#progress-bar {
			display: none;
			width: 300px;
			height: 20px;
			background-color: #f0f0f0;
			border-radius: 10px;
			margin-top: 10px;
		}
		#progress {
			width: 0%;
			height: 100%;
			background-color: #4CAF50;
			border-radius: 10px;
			text-align: center;
			line-height: 20px;
			color: white;
		}
		td { padding: 2px 12px 2px 0; }
"""

# asks /check-filename first so a collision is reported before the upload
# starts, then posts the file with a progress bar
SCRIPT = """
		document.getElementById("upload-form").onsubmit = function() {
			var file = document.getElementById("file-input").files[0];
			if (!file) {
				return false;
			}

			fetch("/check-filename?filename=" + encodeURIComponent(file.name))
				.then(function(response) { return response.json(); })
				.then(function(data) {
					if (data.exists) {
						alert("File already exists. Please choose a different file.");
						return;
					}

					var formData = new FormData();
					formData.append("file", file);

					var xhr = new XMLHttpRequest();
					xhr.open("POST", "/upload", true);

					xhr.upload.onprogress = function(e) {
						if (e.lengthComputable) {
							var percent = (e.loaded / e.total) * 100;
							var bar = document.getElementById("progress");
							document.getElementById("progress-bar").style.display = "block";
							bar.style.width = percent + "%";
							bar.textContent = percent.toFixed(2) + "%";
						}
					};

					xhr.onload = function() {
						if (xhr.status === 200) {
							window.location.reload();
						} else {
							alert("Upload failed. " + xhr.responseText);
						}
					};

					xhr.send(formData);
				})
				.catch(function(error) {
					console.error("Error:", error);
					alert("An error occurred while checking the filename.");
				});

			return false;
		};
"""


def format_size(size_bytes):
	if size_bytes < 1024:
		return f"{size_bytes} B"
	for unit in ["KB", "MB", "GB", "TB"]:
		size_bytes /= 1024.0
		if size_bytes < 1024.0:
			return f"{size_bytes:.2f} {unit}"
	return f"{size_bytes:.1f} PB"


def display_name(name):
	"""`name` made safe to print, bytes that are not utf-8 show up as U+FFFD."""
	return name.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def render_listing(files: Iterable[FileEntry], title="pyhfs") -> bytes:
	f = io.BytesIO()
	f.write(f"""<!DOCTYPE html>
<html>
	<head>
		<meta charset="utf-8">
		<meta name="viewport" content="width=device-width, initial-scale=1.0">
		<title>{html.escape(title)}</title>
		<style>{STYLE}</style>
	</head>
	<body>
		<h1>Uploaded files</h1>
		<table id="file-table">
			<tbody>""".encode("utf-8"))

	count = 0
	for entry in files:
		count += 1
		name = html.escape(display_name(entry.name))
		href = "/download/" + urllib.parse.quote(os.fsencode(entry.name))
		mod_date = time.strftime("%Y-%m-%d %H:%M", time.localtime(entry.mtime))
		f.write(f"""
				<tr>
					<td><a href="{href}">{name}</a></td>
					<td title="{entry.size:,} bytes">{format_size(entry.size)}</td>
					<td>{mod_date}</td>
				</tr>""".encode("utf-8"))

	if count == 0:
		f.write(b"""
				<tr><td id="empty-directory">nothing to see here</td></tr>""")

	f.write(f"""
			</tbody>
		</table>
		<h2>Upload</h2>
		<form id="upload-form" action="/upload" method="post" enctype="multipart/form-data">
			<input type="file" id="file-input" name="file" required>
			<input type="submit" value="Upload">
		</form>
		<div id="progress-bar"><div id="progress"></div></div>
		<script>{SCRIPT}</script>
	</body>
</html>
""".encode("utf-8"))
	return f.getvalue()
