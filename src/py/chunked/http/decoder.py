from collections import deque
from typing import Iterator

from ..config import LINE_LIMIT
from ..utils.io import EOL, LineParser
from ..utils.logging import debug, logged
from .grammar import parseChunkSize
from .model import (
	AlreadyComplete,
	ChunkError,
	DecodedChunk,
	DecodePhase,
	EndOfBody,
	MalformedChunk,
	MalformedChunkDelimiter,
	MalformedChunkSize,
	TDecoded,
	TruncatedStream,
)


class DecodeState:
	"""The state of one incoming chunked body. The `residue` holds either
	the partial size/trailer line or the partial chunk data, never both,
	and is emptied as soon as the token it holds is complete."""

	__slots__ = [
		"phase",
		"remaining",
		"residue",
		"payload",
		"delimiter",
		"consumed",
		"chunks",
		"trailers",
		"error",
	]

	def __init__(self) -> None:
		self.phase: DecodePhase = DecodePhase.AwaitingSizeLine
		# Bytes of chunk data still expected
		self.remaining: int = 0
		self.residue: bytearray = bytearray()
		# The chunk data, set once complete and until its CRLF is consumed
		self.payload: bytes | None = None
		# How many bytes of the CRLF following the chunk data were consumed
		self.delimiter: int = 0
		self.consumed: int = 0
		self.chunks: int = 0
		self.trailers: int = 0
		self.error: ChunkError | None = None

	def __str__(self) -> str:
		return f"DecodeState({self.phase.name}, remaining={self.remaining}, residue={len(self.residue)}, consumed={self.consumed})"


class ChunkDecoder:
	"""An incremental decoder for chunked bodies. Raw bytes are given
	to `feed` as they arrive from the transport, in slices of any size, and
	the decoder yields the complete chunks followed by `EndOfBody`.

	Fed bytes are queued right away while the returned iterator is lazy:
	bytes that an iterator did not get to parse are parsed by the next
	one, so order is kept even when an iterator is not exhausted."""

	__slots__ = ["state", "line", "limit", "strict", "inbox", "cursor"]

	def __init__(self, *, limit: int = LINE_LIMIT, strict: bool = False) -> None:
		self.state: DecodeState = DecodeState()
		self.line: LineParser = LineParser(self.state.residue)
		self.limit: int = limit
		# When strict, feeding data after the end of the body is an error
		self.strict: bool = strict
		self.inbox: deque[bytes] = deque()
		self.cursor: int = 0

	@property
	def phase(self) -> DecodePhase:
		return self.state.phase

	@property
	def isDone(self) -> bool:
		return self.state.phase is DecodePhase.Done

	@property
	def residue(self) -> bytes:
		return bytes(self.state.residue)

	@property
	def remainder(self) -> bytes:
		"""The bytes that were fed after the terminal chunk, in the same
		`feed` call."""
		if not self.inbox:
			return b""
		head = self.inbox[0][self.cursor :]
		return head + b"".join(list(self.inbox)[1:])

	def reset(self) -> "ChunkDecoder":
		self.state = DecodeState()
		self.line = LineParser(self.state.residue)
		self.inbox.clear()
		self.cursor = 0
		return self

	def feed(self, data: bytes) -> Iterator[TDecoded]:
		"""Feeds the given bytes and returns an iterator on the chunks (and
		`EndOfBody`) that they complete, which may be empty."""
		state = self.state
		if state.phase is DecodePhase.Failed and state.error:
			raise state.error
		elif state.phase is DecodePhase.Done:
			if data and self.strict:
				raise AlreadyComplete(
					"Chunked body is already complete",
					phase=state.phase,
					consumed=state.consumed,
				)
			return iter(())
		if data:
			self.inbox.append(bytes(data))
		return self._drain()

	def close(self) -> list[TDecoded]:
		"""Tells the decoder that the transport closed. Returns what the
		pending input still decodes to, raising `TruncatedStream` if the
		body was not complete."""
		state = self.state
		if state.phase is DecodePhase.Failed and state.error:
			raise state.error
		res = list(self._drain())
		if state.phase is not DecodePhase.Done:
			raise self.fail(
				self.error(
					TruncatedStream,
					"Transport closed before the end of the chunked body",
				)
			)
		return res

	def error(self, kind: type[ChunkError], message: str) -> ChunkError:
		return kind(message, phase=self.state.phase, consumed=self.state.consumed)

	def fail(self, error: ChunkError) -> ChunkError:
		"""Moves the decoder to the failed state, so that any further
		`feed` raises `error` again."""
		state = self.state
		state.phase = DecodePhase.Failed
		state.error = error
		state.payload = None
		state.residue.clear()
		self.inbox.clear()
		self.cursor = 0
		logged(debug) and debug(
			"Chunked body failed",
			Error=error.__class__.__name__,
			Phase=error.phase.name if error.phase else None,
			Consumed=error.consumed,
		)
		return error

	def _drain(self) -> Iterator[TDecoded]:
		state = self.state
		inbox = self.inbox
		while inbox:
			if state.phase is DecodePhase.Done or state.phase is DecodePhase.Failed:
				break
			data = inbox[0]
			if self.cursor >= len(data):
				inbox.popleft()
				self.cursor = 0
				continue
			atom, read = self._step(data, self.cursor)
			self.cursor += read
			state.consumed += read
			if atom is not None:
				yield atom

	def _step(self, data: bytes, start: int) -> tuple[TDecoded | None, int]:
		"""Advances the state machine with the bytes of `data` starting at
		`start`, returning what was decoded (if any) and how many bytes were
		read."""
		state = self.state
		phase = state.phase
		if phase is DecodePhase.AwaitingSizeLine:
			line, read = self.line.feed(data, start)
			if line is None:
				if self.line.pending > self.limit:
					raise self.fail(
						self.error(MalformedChunkSize, "Chunk size line is too long")
					)
				return None, read
			elif len(line) > self.limit:
				raise self.fail(
					self.error(MalformedChunkSize, "Chunk size line is too long")
				)
			try:
				size = parseChunkSize(line)
			except ValueError as e:
				raise self.fail(self.error(MalformedChunkSize, str(e))) from e
			if size == 0:
				state.phase = DecodePhase.AwaitingTrailingCRLF
			else:
				state.phase = DecodePhase.AwaitingChunkData
				state.remaining = size
			return None, read
		elif phase is DecodePhase.AwaitingChunkData:
			n = min(state.remaining, len(data) - start)
			if not state.residue and n == state.remaining:
				# The whole chunk is there, we skip the residue
				state.payload = data[start : start + n]
			else:
				state.residue += data[start : start + n]
				if n == state.remaining:
					state.payload = bytes(state.residue)
					state.residue.clear()
			state.remaining -= n
			if state.remaining == 0:
				state.phase = DecodePhase.AwaitingDataCRLF
				state.delimiter = 0
			return None, n
		elif phase is DecodePhase.AwaitingDataCRLF:
			read = 0
			end = len(data)
			while state.delimiter < len(EOL) and start + read < end:
				if data[start + read] != EOL[state.delimiter]:
					raise self.fail(
						self.error(
							MalformedChunkDelimiter,
							f"Expected CRLF after chunk data, got: {data[start + read : start + read + 2]!r}",
						)
					)
				state.delimiter += 1
				read += 1
			if state.delimiter < len(EOL):
				return None, read
			payload: bytes = state.payload or b""
			state.payload = None
			state.delimiter = 0
			state.chunks += 1
			state.phase = DecodePhase.AwaitingSizeLine
			return DecodedChunk(len(payload), payload), read
		elif phase is DecodePhase.AwaitingTrailingCRLF:
			line, read = self.line.feed(data, start)
			if line is None:
				if self.line.pending > self.limit:
					raise self.fail(self.error(MalformedChunk, "Trailer line is too long"))
				return None, read
			elif line:
				# Trailer headers are drained, but not interpreted
				if len(line) > self.limit:
					raise self.fail(self.error(MalformedChunk, "Trailer line is too long"))
				state.trailers += 1
				return None, read
			else:
				state.phase = DecodePhase.Done
				logged(debug) and debug(
					"Chunked body received",
					Chunks=state.chunks,
					Trailers=state.trailers,
					Consumed=state.consumed + read,
				)
				return EndOfBody, read
		else:
			raise RuntimeError(f"Unsupported decoder phase: {phase}")

	def __str__(self) -> str:
		return f"ChunkDecoder({self.state})"


# EOF
