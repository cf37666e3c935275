"""
Request handling and the threaded server.

Routes:
	GET  /                          file listing with an upload form
	GET  /download/<name>           file body, honours a single Range
	GET  /check-filename?filename=  {"exists": bool}
	POST /upload                    multipart upload, field "file"
	HEAD is answered like GET, minus the body
"""
import cgi
import contextlib
import json
import logging
import os
import socket
import socketserver
import ssl
import urllib.parse
from http.server import BaseHTTPRequestHandler

from pyhfs import __version__
from pyhfs.config import Config
from pyhfs.errors import (BadRequest, HFSError, InternalFailure,
	LengthRequired, MethodNotAllowed, NotFound, RangeNotSatisfiable)
from pyhfs.listing import render_listing
from pyhfs.ranges import content_range, parse_range
from pyhfs.storage import Storage, clean_name, read_chunks

logger = logging.getLogger(__name__)

DOWNLOAD_PREFIX = "/download/"

# unread request bodies up to this size get drained before an early error
# reply, anything bigger just gets the connection closed on it
DISCARD_LIMIT = 1 << 20


def content_disposition(filename: str) -> str:
	if filename.isascii() and filename.isprintable() and '"' not in filename \
			and ";" not in filename:
		return f"attachment; filename={filename}"
	# fsencode keeps names that are not valid utf-8 on disk intact
	quoted = urllib.parse.quote(os.fsencode(filename))
	return f"attachment; filename*=UTF-8''{quoted}"


class FileShareHandler(BaseHTTPRequestHandler):
	server_version = f"pyhfs/{__version__}"
	timeout = 300

	def setup(self):
		super().setup()
		# nagle thing
		with contextlib.suppress(OSError):
			self.connection.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

	@property
	def storage(self) -> Storage:
		return self.server.storage

	def log_message(self, format, *args):
		logger.info("%s - %s", self.address_string(), format % args)

	def do_GET(self):
		parsed = urllib.parse.urlsplit(self.path)
		path = urllib.parse.unquote(parsed.path, errors="surrogateescape")
		try:
			if path.startswith(DOWNLOAD_PREFIX):
				self.serve_download(path[len(DOWNLOAD_PREFIX):])
			elif path == "/":
				self.serve_listing()
			elif path == "/check-filename":
				self.serve_check_filename(urllib.parse.parse_qs(parsed.query))
			elif path == "/upload":
				raise MethodNotAllowed()
			else:
				raise NotFound("Not found")
		except HFSError as e:
			self.send_failure(e)

	# same headers as GET, the body writers skip themselves for HEAD
	do_HEAD = do_GET

	def do_POST(self):
		path = urllib.parse.unquote(urllib.parse.urlsplit(self.path).path)
		try:
			if path != "/upload":
				self.discard_body()
				raise NotFound("Not found")
			self.handle_upload()
		except HFSError as e:
			self.send_failure(e)

	def serve_download(self, name):
		filename = clean_name(name)
		with self.storage.open(filename) as (f, size):
			range_header = self.headers.get("Range", "").strip()
			if range_header:
				start, end = parse_range(range_header).resolve(size)
				f.seek(start)
				length = end - start + 1
				self.send_response(206)
				self.send_header("Content-Range", content_range(start, end, size))
			else:
				length = size
				self.send_response(200)

			self.send_header("Content-Length", str(length))
			self.send_header("Content-Type", "application/octet-stream")
			self.send_header("Content-Disposition", content_disposition(filename))
			self.send_header("Accept-Ranges", "bytes")
			self.end_headers()
			self.copy_body(f, length)

	def copy_body(self, f, length):
		"""Send exactly `length` bytes of `f` from where it is positioned."""
		if self.command == "HEAD":
			return
		sent = 0
		try:
			for chunk in read_chunks(f, length):
				self.wfile.write(chunk)
				sent += len(chunk)
			self.wfile.flush()
		except (BrokenPipeError, ConnectionResetError, TimeoutError) as e:
			logger.debug("Client gone after %d of %d bytes: %s", sent, length, e)
			self.close_connection = True
			return

		if sent < length:
			# can only happen if the file shrank under us
			logger.warning("Short read, sent %d of %d bytes", sent, length)
			self.close_connection = True

	def serve_listing(self):
		try:
			files = self.storage.list_files()
		except OSError as e:
			logger.error("Failed to list %s: %s", self.storage.root, e)
			raise InternalFailure("Failed to list files") from e

		body = render_listing(files)
		self.send_response(200)
		self.send_header("Content-Type", "text/html; charset=utf-8")
		self.send_header("Content-Length", str(len(body)))
		self.end_headers()
		self.write_body(body)

	def serve_check_filename(self, query):
		filename = query.get("filename", [""])[0]
		if not filename:
			raise BadRequest("Filename is required")
		self.send_json(200, {"exists": self.storage.exists(filename)})

	def check_upload_request(self):
		"""Header checks done before any of the body is read."""
		ctype = self.headers.get("Content-Type", "")
		if not ctype.lower().startswith("multipart/form-data"):
			raise BadRequest("Expected multipart/form-data")

		length = self.headers.get("Content-Length")
		if length is None:
			raise LengthRequired()
		try:
			length = int(length)
		except ValueError:
			raise BadRequest("Invalid Content-Length") from None
		if length < 0:
			raise BadRequest("Invalid Content-Length")
		if length > self.server.config.max_upload_size:
			raise BadRequest("File too large")

	def handle_upload(self):
		try:
			self.check_upload_request()
		except HFSError:
			self.discard_body()
			raise

		try:
			form = cgi.FieldStorage(
				fp=self.rfile,
				headers=self.headers,
				environ={"REQUEST_METHOD": "POST"}
			)
		except ValueError as e:
			raise BadRequest(f"Malformed upload: {e}") from e

		if "file" not in form:
			raise BadRequest("Missing file field")
		item = form["file"]
		if isinstance(item, list):
			raise BadRequest("Only one file per upload")
		if not item.filename or item.file is None:
			raise BadRequest("No file selected")

		try:
			size = self.storage.save(item.filename, item.file)
		finally:
			item.file.close()

		logger.info("Stored %s (%d bytes)", clean_name(item.filename), size)
		self.send_response(200)
		self.send_header("Content-Length", "0")
		self.end_headers()

	def discard_body(self):
		"""Drop a small unread request body so the client sees the reply."""
		try:
			length = int(self.headers.get("Content-Length", 0))
		except ValueError:
			length = -1
		if 0 <= length <= DISCARD_LIMIT:
			self.rfile.read(length)
		else:
			self.close_connection = True

	def send_failure(self, err: HFSError):
		if isinstance(err, RangeNotSatisfiable):
			# no body, no extra headers
			self.send_response(err.status)
			self.end_headers()
			return
		self.send_text(err.status, err.message)

	def send_text(self, status, message):
		body = f"{message}\n".encode("utf-8")
		self.send_response(status)
		self.send_header("Content-Type", "text/plain; charset=utf-8")
		self.send_header("X-Content-Type-Options", "nosniff")
		self.send_header("Content-Length", str(len(body)))
		self.end_headers()
		self.write_body(body)

	def send_json(self, status, payload):
		body = json.dumps(payload).encode("utf-8")
		self.send_response(status)
		self.send_header("Content-Type", "application/json")
		self.send_header("Content-Length", str(len(body)))
		self.end_headers()
		self.write_body(body)

	def write_body(self, body):
		if self.command != "HEAD":
			self.wfile.write(body)


class FileShareServer(socketserver.ThreadingTCPServer):
	allow_reuse_address = True
	daemon_threads = True

	def __init__(self, config: Config, handler_class=FileShareHandler):
		self.config = config
		self.storage = Storage(config.storage_root)
		self.storage.ensure_root()
		super().__init__((config.host, config.port), handler_class)
		self.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		if config.use_tls:
			context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
			context.load_cert_chain(certfile=config.ssl_cert, keyfile=config.ssl_key)
			self.socket = context.wrap_socket(self.socket, server_side=True)

	@property
	def url(self) -> str:
		host, port = self.server_address[:2]
		if host in ("", "0.0.0.0"):
			host = local_ip()
		scheme = "https" if self.config.use_tls else "http"
		return f"{scheme}://{host}:{port}/"


def local_ip() -> str:
	"""Address other machines on the LAN can reach us on, best guess."""
	try:
		# no packet is sent, connect() on udp just picks a route
		with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
			s.connect(("8.8.8.8", 80))
			return s.getsockname()[0]
	except OSError:
		return "127.0.0.1"
