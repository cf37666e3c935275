"""
The storage folder.

Flat, no subfolders. Names coming from clients are always cut down to their
last path segment before they touch the filesystem, so "../../etc/passwd"
ends up as "passwd" inside the root.
"""
import contextlib
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Iterator, List, Tuple

from pyhfs.errors import BadRequest, InternalFailure, NotFound

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536  # 64KB chunks

# uploads land here first and only get their real name once complete
STAGING_DIR = ".incoming"


@dataclass(frozen=True)
class FileEntry:
	name: str
	size: int
	mtime: float


def clean_name(name: str) -> str:
	"""Last path segment of `name`, or "" if nothing usable is left."""
	# some browsers still send the full windows path for uploads
	name = os.path.basename(name.replace("\\", "/").strip())
	if name in (".", "..") or "\x00" in name:
		return ""
	return name


def read_chunks(f: BinaryIO, length: int,
		chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
	"""Yield at most `length` bytes from `f`, whatever is past that stays
	unread."""
	remaining = length
	while remaining > 0:
		chunk = f.read(min(chunk_size, remaining))
		if not chunk:
			break
		remaining -= len(chunk)
		yield chunk


class Storage:
	def __init__(self, root):
		self.root = os.path.abspath(root)

	def ensure_root(self):
		os.makedirs(self.root, exist_ok=True)

	def path_for(self, name: str) -> str:
		name = clean_name(name)
		if not name:
			raise NotFound()
		return os.path.join(self.root, name)

	def exists(self, name: str) -> bool:
		name = clean_name(name)
		return bool(name) and os.path.exists(os.path.join(self.root, name))

	def list_files(self) -> List[FileEntry]:
		"""Regular, non hidden files in the root, sorted by name."""
		entries = []
		with os.scandir(self.root) as it:
			for entry in it:
				if entry.name.startswith(".") or not entry.is_file():
					continue
				st = entry.stat()
				entries.append(FileEntry(entry.name, st.st_size, st.st_mtime))
		entries.sort(key=lambda e: e.name.lower())
		return entries

	@contextlib.contextmanager
	def open(self, name: str) -> Iterator[Tuple[BinaryIO, int]]:
		"""
		Open a stored file for reading, yields (file, size).

		Anything that stops the open is reported as NotFound, the client
		does not get to learn which OS error it was.
		"""
		path = self.path_for(name)
		try:
			f = open(path, "rb")
		except OSError as e:
			logger.debug("Cannot open %s: %s", path, e)
			raise NotFound() from None

		with f:
			try:
				size = os.fstat(f.fileno()).st_size
			except OSError as e:
				logger.error("Failed to stat %s: %s", path, e)
				raise InternalFailure("Failed to get file info") from e
			yield f, size

	def save(self, name: str, src: BinaryIO) -> int:
		"""
		Copy `src` into the root as `name` and return the byte count.

		The data is written to the staging folder and moved into place
		afterwards, so a half written upload is never visible under its
		final name.
		"""
		name = clean_name(name)
		if not name or name.startswith("."):
			raise BadRequest("Invalid filename")

		path = os.path.join(self.root, name)
		if os.path.exists(path):
			raise BadRequest("File already exists")

		try:
			staging = os.path.join(self.root, STAGING_DIR)
			os.makedirs(staging, exist_ok=True)
			fd, tmp_path = tempfile.mkstemp(dir=staging, suffix=".part")
		except OSError as e:
			logger.error("Cannot create staging file for %s: %s", name, e)
			raise InternalFailure("Failed to save file") from e

		published = False
		try:
			with os.fdopen(fd, "wb") as dst:
				shutil.copyfileobj(src, dst, CHUNK_SIZE)
				size = dst.tell()
			# someone may have uploaded the same name meanwhile
			if os.path.exists(path):
				raise BadRequest("File already exists")
			os.replace(tmp_path, path)
			published = True
		except OSError as e:
			logger.error("Failed to save %s: %s", name, e)
			raise InternalFailure("Failed to save file") from e
		finally:
			if not published:
				with contextlib.suppress(FileNotFoundError):
					os.remove(tmp_path)

		return size
