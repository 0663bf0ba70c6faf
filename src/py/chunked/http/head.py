from typing import NamedTuple

from ..config import LINE_LIMIT
from ..utils.io import LineParser
from .model import MalformedHead

# --
# The request/response heads are not the concern of the chunked body
# codec, but a client needs to write a request head and to tell where
# the response body starts. This only does what's needed for that.


# Normalized header names, shared by every call to `headername`
HEADER_NAMES: dict[str, str] = {}


def headername(name: str, *, headers: dict[str, str] = HEADER_NAMES) -> str:
	"""Normalizes the header name as `Kebab-Case`, caching the result in
	`headers`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


class HTTPResponseLine(NamedTuple):
	"""Represents a response status line"""

	protocol: str
	status: int
	message: str


class HTTPResponseHead(NamedTuple):
	line: HTTPResponseLine
	headers: dict[str, str]

	@property
	def status(self) -> int:
		return self.line.status

	@property
	def isChunked(self) -> bool:
		return "chunked" in self.headers.get("Transfer-Encoding", "").lower()

	@property
	def contentLength(self) -> int | None:
		value = self.headers.get("Content-Length")
		try:
			return int(value) if value is not None else None
		except ValueError:
			return None


def formatRequestHead(
	method: str,
	path: str,
	host: str,
	headers: dict[str, str] | None = None,
	*,
	chunked: bool = False,
) -> bytes:
	head: dict[str, str] = {headername(k): v for k, v in (headers or {}).items()}
	if "Host" not in head:
		head["Host"] = host
	if chunked:
		head["Transfer-Encoding"] = "chunked"
		head.pop("Content-Length", None)
	if "Connection" not in head:
		head["Connection"] = "close"
	lines = [f"{method} {path or '/'} HTTP/1.1"] + [f"{k}: {v}" for k, v in head.items()]
	return ("\r\n".join(lines) + "\r\n\r\n").encode("ascii")


class ResponseHeadParser:
	"""Parses a response status line and its headers, stopping at the empty
	line so that what follows can be handed to a body decoder."""

	__slots__ = ["line", "status", "headers", "limit", "read"]

	def __init__(self, limit: int = LINE_LIMIT) -> None:
		self.line: LineParser = LineParser()
		self.status: HTTPResponseLine | None = None
		self.headers: dict[str, str] = {}
		self.limit: int = limit
		self.read: int = 0

	def reset(self) -> "ResponseHeadParser":
		self.line.reset()
		self.status = None
		self.headers = {}
		self.read = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[HTTPResponseHead | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns the head
		once complete along with the offset right after it, or `None` and
		the end of the chunk."""
		offset: int = start
		size: int = len(chunk)
		while offset < size:
			line, read = self.line.feed(chunk, offset)
			offset += read
			self.read += read
			if line is None:
				if self.line.pending > self.limit:
					raise MalformedHead("Response head line is too long", consumed=self.read)
				break
			# Heads are expected to be in ASCII format
			ln: str = line.decode("ascii", errors="replace")
			if self.status is None:
				self.status = self.parseStatus(ln)
			elif ln:
				i = ln.find(":")
				if i != -1:
					self.headers[headername(ln[:i].strip())] = ln[i + 1 :].strip()
			else:
				# An empty line denotes the end of headers
				head = HTTPResponseHead(self.status, self.headers)
				self.reset()
				return head, offset
		return None, offset

	def parseStatus(self, line: str) -> HTTPResponseLine:
		if not line.startswith("HTTP/"):
			raise MalformedHead(f"Expected a status line, got: {line[:32]!r}", consumed=self.read)
		parts = line.split(" ", 2)
		try:
			return HTTPResponseLine(
				parts[0], int(parts[1]), parts[2] if len(parts) > 2 else ""
			)
		except (IndexError, ValueError) as e:
			raise MalformedHead(f"Invalid status line: {line[:32]!r}", consumed=self.read) from e


# EOF
