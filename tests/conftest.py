import threading

import pytest

from pyhfs.config import Config
from pyhfs.server import FileShareServer

MAX_UPLOAD_SIZE = 4096


@pytest.fixture
def storage_root(tmp_path):
	root = tmp_path / "files"
	root.mkdir()
	return root


@pytest.fixture
def server(storage_root):
	config = Config(
		storage_root=str(storage_root),
		host="127.0.0.1",
		port=0,
		max_upload_size=MAX_UPLOAD_SIZE,
	)
	httpd = FileShareServer(config)
	thread = threading.Thread(target=httpd.serve_forever, daemon=True)
	thread.start()
	yield httpd
	httpd.shutdown()
	httpd.server_close()
	thread.join(timeout=5)


@pytest.fixture
def base_url(server):
	host, port = server.server_address[:2]
	return f"http://{host}:{port}"


@pytest.fixture
def hello(storage_root):
	(storage_root / "hello.txt").write_bytes(b"Hello, World!")
	return "hello.txt"
