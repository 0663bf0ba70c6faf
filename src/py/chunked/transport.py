import asyncio
import socket
from abc import ABC, abstractmethod
from typing import Iterable

from mypy_extensions import mypyc_attr

from .config import READ_SIZE
from .utils.io import asBytes
from .utils.logging import debug, logged

# --
# Thin transport adapters. The chunk encoder and decoder only need
# `write(bytes)` and `read(sizeHint) -> bytes`, where an empty read means
# that the peer closed. Failures are `OSError` and propagate as-is.

# -----------------------------------------------------------------------------
#
# BLOCKING TRANSPORTS
#
# -----------------------------------------------------------------------------


@mypyc_attr(allow_interpreted_subclasses=True)
class Transport(ABC):
	"""A blocking, bidirectional byte stream."""

	@abstractmethod
	def write(self, data: bytes) -> None:
		"""Writes all of `data`, raising `OSError` on failure."""

	@abstractmethod
	def read(self, size: int = READ_SIZE) -> bytes:
		"""Reads up to `size` bytes, an empty result means the peer closed."""

	def close(self) -> None:
		pass

	def __enter__(self) -> "Transport":
		return self

	def __exit__(self, type: object, value: object, traceback: object) -> None:
		self.close()


class SocketTransport(Transport):
	"""Wraps a connected socket."""

	__slots__ = ["socket"]

	def __init__(self, socket: socket.socket) -> None:
		self.socket: socket.socket = socket

	@staticmethod
	def Connect(
		host: str, port: int, *, timeout: float | None = None
	) -> "SocketTransport":
		logged(debug) and debug("Connecting", Host=host, Port=port)
		return SocketTransport(socket.create_connection((host, port), timeout=timeout))

	def write(self, data: bytes) -> None:
		self.socket.sendall(data)

	def read(self, size: int = READ_SIZE) -> bytes:
		return self.socket.recv(size)

	def shutdown(self) -> None:
		"""Closes the writing direction, the reading one stays open."""
		self.socket.shutdown(socket.SHUT_WR)

	def close(self) -> None:
		self.socket.close()


class BufferTransport(Transport):
	"""An in-memory transport: writes accumulate in `written` and reads
	return the given `slices` one at a time, then an empty read."""

	__slots__ = ["written", "slices", "isClosed"]

	def __init__(self, slices: Iterable[bytes | str] = ()) -> None:
		self.written: bytearray = bytearray()
		self.slices: list[bytes] = [asBytes(_) for _ in slices]
		self.isClosed: bool = False

	def write(self, data: bytes) -> None:
		if self.isClosed:
			raise BrokenPipeError("Transport is closed")
		self.written += data

	def read(self, size: int = READ_SIZE) -> bytes:
		if self.isClosed or not self.slices:
			return b""
		data = self.slices.pop(0)
		if len(data) > size:
			# We honor the size hint by putting back what doesn't fit
			self.slices.insert(0, data[size:])
			data = data[:size]
		return data

	def close(self) -> None:
		self.isClosed = True


# -----------------------------------------------------------------------------
#
# ASYNC TRANSPORTS
#
# -----------------------------------------------------------------------------


@mypyc_attr(allow_interpreted_subclasses=True)
class AsyncTransport(ABC):
	"""An asynchronous, bidirectional byte stream."""

	@abstractmethod
	async def write(self, data: bytes) -> None:
		"""Writes `data`, returning once the transport accepted it."""

	@abstractmethod
	async def read(self, size: int = READ_SIZE) -> bytes:
		"""Reads up to `size` bytes, an empty result means the peer closed."""

	async def close(self) -> None:
		pass


class StreamTransport(AsyncTransport):
	"""Wraps an asyncio stream reader/writer pair. Writes are followed by
	a `drain()` so that the transport backpressure bounds `write`."""

	__slots__ = ["reader", "writer"]

	def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
		self.reader: asyncio.StreamReader = reader
		self.writer: asyncio.StreamWriter = writer

	@staticmethod
	async def Connect(
		host: str, port: int, *, timeout: float | None = None
	) -> "StreamTransport":
		logged(debug) and debug("Connecting", Host=host, Port=port)
		reader, writer = await asyncio.wait_for(
			asyncio.open_connection(host=host, port=port), timeout=timeout
		)
		return StreamTransport(reader, writer)

	async def write(self, data: bytes) -> None:
		self.writer.write(data)
		await self.writer.drain()

	async def read(self, size: int = READ_SIZE) -> bytes:
		return await self.reader.read(size)

	async def close(self) -> None:
		self.writer.close()
		try:
			await self.writer.wait_closed()
		except ConnectionError as e:
			logged(debug) and debug("Connection already closed", Reason=str(e))


# EOF
