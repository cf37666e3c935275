"""
Startup settings.

Read from the environment (a .env file next to where the server is started
works too), then optionally overridden by command line flags.
"""
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_FOLDER = "./files"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_MAX_UPLOAD_SIZE = 10 << 30  # 10 GB


@dataclass
class Config:
	storage_root: str = DEFAULT_FOLDER
	host: str = DEFAULT_HOST
	port: int = DEFAULT_PORT
	max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE
	ssl_cert: Optional[str] = None
	ssl_key: Optional[str] = None
	log_level: str = "INFO"

	@property
	def use_tls(self) -> bool:
		return bool(self.ssl_cert and self.ssl_key)

	def validate(self):
		if bool(self.ssl_cert) != bool(self.ssl_key):
			raise ValueError("SSL_CERT and SSL_KEY have to be set together")
		if not 0 <= self.port <= 65535:
			raise ValueError(f"PORT out of range: {self.port}")
		if self.max_upload_size <= 0:
			raise ValueError("MAX_UPLOAD_SIZE must be positive")
		if not isinstance(logging.getLevelName(self.log_level), int):
			raise ValueError(f"Unknown LOG_LEVEL: {self.log_level}")
		return self


def _int(env: Mapping[str, str], key: str, default: int) -> int:
	value = env.get(key)
	if value is None or value.strip() == "":
		return default
	try:
		return int(value)
	except ValueError:
		raise ValueError(f"{key} is not an integer: {value!r}") from None


def from_env(env: Optional[Mapping[str, str]] = None) -> Config:
	"""Build a Config from `env`, or from os.environ after loading .env."""
	if env is None:
		load_dotenv()
		env = os.environ

	return Config(
		storage_root=env.get("FOLDER") or DEFAULT_FOLDER,
		host=env.get("HOST") or DEFAULT_HOST,
		port=_int(env, "PORT", DEFAULT_PORT),
		max_upload_size=_int(env, "MAX_UPLOAD_SIZE", DEFAULT_MAX_UPLOAD_SIZE),
		ssl_cert=env.get("SSL_CERT") or None,
		ssl_key=env.get("SSL_KEY") or None,
		log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
	)
