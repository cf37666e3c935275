"""
Range header parsing.

Only one plain range is understood: "bytes=<start>-<end>" with the end
optional. Anything else (several ranges, suffix ranges like "bytes=-500",
other units, garbage) is refused instead of guessed at. Malformed headers
get a 416 rather than being ignored, which RFC 9110 would also allow.
"""
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from pyhfs.errors import RangeNotSatisfiable

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d+)\s*-\s*(\d*)\s*$", re.IGNORECASE | re.ASCII)


@dataclass(frozen=True)
class ByteRange:
	start: int
	# None means the client left the end out, i.e. "up to the last byte"
	end: Optional[int] = None

	def resolve(self, size: int) -> Tuple[int, int]:
		"""Turn this range into inclusive (start, end) offsets for a file
		of `size` bytes, or raise RangeNotSatisfiable."""
		end = size - 1 if self.end is None else self.end
		if self.start > end or self.start < 0 or end >= size:
			raise RangeNotSatisfiable()
		return self.start, end


def parse_range(header: str) -> ByteRange:
	"""Parse a non-empty Range header value."""
	if "," in header:
		raise RangeNotSatisfiable("Multiple ranges are not supported")
	match = _RANGE_RE.match(header)
	if not match:
		raise RangeNotSatisfiable("Malformed range")
	start, end = match.groups()
	return ByteRange(int(start), int(end) if end else None)


def content_range(start: int, end: int, size: int) -> str:
	return f"bytes {start}-{end}/{size}"
