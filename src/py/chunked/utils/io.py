DEFAULT_ENCODING: str = "utf8"
EOL: bytes = b"\r\n"


def asBytes(value: str | bytes | bytearray | memoryview | None) -> bytes:
	if isinstance(value, bytes):
		return value
	elif isinstance(value, (bytearray, memoryview)):
		return bytes(value)
	elif isinstance(value, str):
		return bytes(value, DEFAULT_ENCODING)
	elif value is None:
		return b""
	else:
		raise ValueError(f"Expected bytes or str, got: {value}")


class LineParser:
	"""Extracts `eol`-terminated lines from a stream of byte slices. The
	parser only retains the bytes of the line being assembled, so the
	`buffer` never holds more than one partial line."""

	__slots__ = ["buffer", "line", "eol", "eolsize"]

	def __init__(self, buffer: bytearray | None = None, eol: bytes = EOL) -> None:
		self.buffer: bytearray = bytearray() if buffer is None else buffer
		self.line: bytes | None = None
		self.eol: bytes = eol
		self.eolsize: int = len(eol)

	@property
	def pending(self) -> int:
		"""The number of bytes of the partial line held so far."""
		return len(self.buffer)

	def reset(self, eol: bytes = EOL) -> "LineParser":
		self.buffer.clear()
		self.line = None
		self.eol = eol
		self.eolsize = len(eol)
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Returns the matching line (without its EOL) and how many bytes were
		read in chunk from start. When line is None, then the whole chunk
		has been processed and is held in the buffer."""
		if self.buffer:
			# The EOL may straddle the previous slice and this one
			pos = len(self.buffer)
			self.buffer += chunk[start:]
			end = self.buffer.find(self.eol, max(0, pos - self.eolsize + 1))
			if end == -1:
				self.line = None
				return None, len(chunk) - start
			self.line = bytes(self.buffer[:end])
			self.buffer.clear()
			return self.line, (end - pos) + self.eolsize
		else:
			end = chunk.find(self.eol, start)
			if end == -1:
				self.buffer += chunk[start:]
				self.line = None
				return None, len(chunk) - start
			self.line = bytes(chunk[start:end])
			return self.line, (end - start) + self.eolsize


# EOF
