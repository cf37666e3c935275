import os

import requests

from pyhfs.storage import STAGING_DIR

# keep in line with MAX_UPLOAD_SIZE in conftest.py
MAX_UPLOAD_SIZE = 4096


def upload(base_url, files, **kwargs):
	return requests.post(f"{base_url}/upload", files=files, timeout=5, **kwargs)


def test_upload_then_download(base_url, storage_root):
	data = bytes(range(256)) * 8
	r = upload(base_url, {"file": ("blob.bin", data)})
	assert r.status_code == 200
	assert r.content == b""
	assert (storage_root / "blob.bin").read_bytes() == data
	assert os.listdir(storage_root / STAGING_DIR) == []

	r = requests.get(f"{base_url}/download/blob.bin", timeout=5)
	assert r.content == data
	r = requests.get(f"{base_url}/download/blob.bin",
		headers={"Range": "bytes=100-199"}, timeout=5)
	assert r.content == data[100:200]


def test_uploaded_file_is_listed_and_known(base_url):
	upload(base_url, {"file": ("notes.txt", b"some notes")})
	assert "notes.txt" in requests.get(base_url + "/", timeout=5).text
	r = requests.get(f"{base_url}/check-filename",
		params={"filename": "notes.txt"}, timeout=5)
	assert r.json() == {"exists": True}


def test_upload_existing_name(base_url, storage_root, hello):
	r = upload(base_url, {"file": ("hello.txt", b"overwrite attempt")})
	assert r.status_code == 400
	assert r.text.strip() == "File already exists"
	assert (storage_root / "hello.txt").read_bytes() == b"Hello, World!"


def test_upload_too_large(base_url, storage_root):
	r = upload(base_url, {"file": ("huge.bin", b"x" * (MAX_UPLOAD_SIZE * 2))})
	assert r.status_code == 400
	assert r.text.strip() == "File too large"
	assert not (storage_root / "huge.bin").exists()


def test_upload_strips_path(base_url, storage_root):
	r = upload(base_url, {"file": ("../../escape.txt", b"nope")})
	assert r.status_code == 200
	assert (storage_root / "escape.txt").read_bytes() == b"nope"
	assert not (storage_root.parent / "escape.txt").exists()


def test_upload_hidden_name(base_url, storage_root):
	r = upload(base_url, {"file": (".env", b"SECRET=1")})
	assert r.status_code == 400
	assert r.text.strip() == "Invalid filename"
	assert not (storage_root / ".env").exists()


def test_upload_missing_field(base_url):
	r = upload(base_url, {"other": ("a.txt", b"x")})
	assert r.status_code == 400


def test_upload_plain_field_is_not_a_file(base_url):
	r = requests.post(f"{base_url}/upload", files={"x": ("a.txt", b"1")},
		data={"file": "just text"}, timeout=5)
	assert r.status_code == 400


def test_upload_several_files(base_url, storage_root):
	r = upload(base_url, [
		("file", ("one.txt", b"1")),
		("file", ("two.txt", b"2")),
	])
	assert r.status_code == 400
	assert not (storage_root / "one.txt").exists()


def test_upload_not_multipart(base_url):
	r = requests.post(f"{base_url}/upload", data=b"raw bytes",
		headers={"Content-Type": "application/octet-stream"}, timeout=5)
	assert r.status_code == 400
	assert r.text.strip() == "Expected multipart/form-data"


def test_upload_wrong_method(base_url):
	r = requests.get(f"{base_url}/upload", timeout=5)
	assert r.status_code == 405
	assert r.text.strip() == "Method not allowed"


def test_post_elsewhere(base_url):
	r = requests.post(f"{base_url}/somewhere", data=b"x", timeout=5)
	assert r.status_code == 404


def test_upload_null_byte_name(base_url, storage_root):
	r = upload(base_url, {"file": ("a\x00b.txt", b"x")})
	assert r.status_code == 400
	assert r.text.strip() == "Invalid filename"
	assert os.listdir(storage_root) == []
