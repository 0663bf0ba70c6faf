from typing import Any

from ..transport import AsyncTransport, Transport
from ..utils.logging import debug, logged
from .grammar import TERMINAL, formatChunk
from .model import (
	ConcurrentAccess,
	EncodePhase,
	InvalidArgument,
	ProtocolError,
	WriteError,
)

# -----------------------------------------------------------------------------
#
# ENCODE STATE
#
# -----------------------------------------------------------------------------


class EncodeState:
	"""Tracks the lifecycle of an encode session and produces the frames,
	the sessions are only responsible for writing them."""

	__slots__ = ["phase", "written", "chunks"]

	def __init__(self) -> None:
		self.phase: EncodePhase = EncodePhase.Open
		self.written: int = 0
		self.chunks: int = 0

	@property
	def isClosed(self) -> bool:
		return self.phase is EncodePhase.Closed

	def frame(self, payload: bytes) -> bytes:
		if not payload:
			# An empty chunk is the terminal chunk, which is what `close` is for
			raise InvalidArgument(
				"Cannot emit an empty payload, use close() to end the body",
				phase=self.phase,
				consumed=self.written,
			)
		if self.phase is EncodePhase.Closed:
			raise WriteError(
				"Cannot emit a chunk after the terminal chunk",
				phase=self.phase,
				consumed=self.written,
			)
		return formatChunk(bytes(payload))

	def terminal(self) -> bytes:
		if self.phase is EncodePhase.Closed:
			raise ProtocolError(
				"Terminal chunk was already sent",
				phase=self.phase,
				consumed=self.written,
			)
		return TERMINAL

	def wrote(self, frame: bytes, *, closing: bool = False) -> None:
		self.written += len(frame)
		if closing:
			self.phase = EncodePhase.Closed
		else:
			self.chunks += 1


# -----------------------------------------------------------------------------
#
# SESSIONS
#
# -----------------------------------------------------------------------------


class EncodeSession:
	"""Writes a chunked body to a blocking destination, one write per
	chunk."""

	__slots__ = ["destination", "state"]

	def __init__(self, destination: Transport) -> None:
		self.destination: Transport = destination
		self.state: EncodeState = EncodeState()

	@property
	def isClosed(self) -> bool:
		return self.state.isClosed

	def emit(self, payload: bytes) -> int:
		"""Writes `payload` as one chunk, returning the size of the frame."""
		frame = self.state.frame(payload)
		self.destination.write(frame)
		self.state.wrote(frame)
		logged(debug) and debug("Chunk sent", Size=len(payload), Index=self.state.chunks)
		return len(frame)

	def close(self) -> int:
		"""Writes the terminal chunk. A session can only be closed once."""
		frame = self.state.terminal()
		# The session is closed even when the write fails, as we can't tell
		# how much of the terminal chunk went through.
		try:
			self.destination.write(frame)
		finally:
			self.state.wrote(frame, closing=True)
		logged(debug) and debug(
			"Body sent", Chunks=self.state.chunks, Written=self.state.written
		)
		return len(frame)

	def __enter__(self) -> "EncodeSession":
		return self

	def __exit__(self, type: Any, value: Any, traceback: Any) -> None:
		# On error, we don't send the terminal chunk so that the peer
		# sees a truncated body instead of a complete one.
		if value is None and not self.state.isClosed:
			self.close()


class AsyncEncodeSession:
	"""Writes a chunked body to an asynchronous destination. Overlapping
	calls from different tasks are rejected with `ConcurrentAccess`."""

	__slots__ = ["destination", "state", "isWriting"]

	def __init__(self, destination: AsyncTransport) -> None:
		self.destination: AsyncTransport = destination
		self.state: EncodeState = EncodeState()
		self.isWriting: bool = False

	@property
	def isClosed(self) -> bool:
		return self.state.isClosed

	def _acquire(self) -> None:
		if self.isWriting:
			raise ConcurrentAccess(
				"Encode session is already writing",
				phase=self.state.phase,
				consumed=self.state.written,
			)
		self.isWriting = True

	async def emit(self, payload: bytes) -> int:
		self._acquire()
		try:
			frame = self.state.frame(payload)
			await self.destination.write(frame)
			self.state.wrote(frame)
		finally:
			self.isWriting = False
		logged(debug) and debug("Chunk sent", Size=len(payload), Index=self.state.chunks)
		return len(frame)

	async def close(self) -> int:
		self._acquire()
		try:
			frame = self.state.terminal()
			try:
				await self.destination.write(frame)
			finally:
				self.state.wrote(frame, closing=True)
		finally:
			self.isWriting = False
		logged(debug) and debug(
			"Body sent", Chunks=self.state.chunks, Written=self.state.written
		)
		return len(frame)

	async def __aenter__(self) -> "AsyncEncodeSession":
		return self

	async def __aexit__(self, type: Any, value: Any, traceback: Any) -> None:
		if value is None and not self.state.isClosed:
			await self.close()


# -----------------------------------------------------------------------------
#
# ENCODER
#
# -----------------------------------------------------------------------------


class ChunkEncoder:
	"""Opens encode sessions, one per outgoing body."""

	@staticmethod
	def open(destination: Transport) -> EncodeSession:
		"""Begins a session, no bytes are written until the first `emit`."""
		return EncodeSession(destination)

	@staticmethod
	def openAsync(destination: AsyncTransport) -> AsyncEncodeSession:
		return AsyncEncodeSession(destination)


# EOF
