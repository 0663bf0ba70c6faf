import re
from ..utils.io import EOL

# SEE: https://httpwg.org/specs/rfc9112.html#chunked.encoding
#
#   chunk       = size-hex [";" extension] CRLF chunk-data CRLF
#   last-chunk  = "0" CRLF [trailer-headers] CRLF
#   size-hex    = 1*HEXDIG

RE_SIZE_HEX: re.Pattern[bytes] = re.compile(rb"[0-9A-Fa-f]+")

TERMINAL: bytes = b"0" + EOL + EOL


def formatChunkHead(size: int) -> bytes:
	"""Returns the size line of a chunk of the given size, lowercase hex and
	no leading zeros."""
	return b"%x\r\n" % (size)


def formatChunk(payload: bytes) -> bytes:
	"""Returns the complete frame for a non-empty payload."""
	return formatChunkHead(len(payload)) + payload + EOL


def parseChunkSize(line: bytes) -> int:
	"""Parses the size line of a chunk (without its CRLF). Chunk extensions
	after `;` are ignored. Raises `ValueError` when the size is not made of
	hexadecimal digits only, which `int(…, 16)` alone would not catch for
	`0x`, signs or underscores."""
	i = line.find(b";")
	size = (line if i == -1 else line[:i]).strip(b" \t")
	if not RE_SIZE_HEX.fullmatch(size):
		raise ValueError(f"Invalid chunk size: {line[:32]!r}")
	return int(size, 16)


# EOF
