"""Command line entry point."""
import argparse
import logging
import sys

from pyhfs import __version__
from pyhfs.config import from_env
from pyhfs.server import FileShareServer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser():
	parser = argparse.ArgumentParser(
		prog="pyhfs",
		description="Share a folder over HTTP: list, upload, download "
			"(with byte range support).",
	)
	parser.add_argument("-d", "--folder", dest="storage_root",
		help="folder to serve and store uploads in (env FOLDER)")
	parser.add_argument("--host", help="address to bind (env HOST)")
	parser.add_argument("-p", "--port", type=int, help="port (env PORT)")
	parser.add_argument("--max-upload-size", type=int,
		help="largest accepted upload body in bytes (env MAX_UPLOAD_SIZE)")
	parser.add_argument("--cert", dest="ssl_cert",
		help="TLS certificate, enables https together with --key (env SSL_CERT)")
	parser.add_argument("--key", dest="ssl_key",
		help="TLS private key (env SSL_KEY)")
	parser.add_argument("--log-level", type=str.upper,
		choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="env LOG_LEVEL")
	parser.add_argument("--version", action="version",
		version=f"%(prog)s {__version__}")
	return parser


def main(argv=None):
	parser = build_parser()
	args = parser.parse_args(argv)

	try:
		config = from_env()
		for key, value in vars(args).items():
			if value is not None:
				setattr(config, key, value)
		config.validate()
	except ValueError as e:
		parser.error(str(e))

	logging.basicConfig(level=config.log_level, format=LOG_FORMAT,
		stream=sys.stderr)

	server = FileShareServer(config)
	logger.info("Serving files from: %s", server.storage.root)
	logger.info("Server is running on %s", server.url)
	try:
		server.serve_forever()
	except KeyboardInterrupt:
		logger.info("Server stopped")
	finally:
		server.server_close()
