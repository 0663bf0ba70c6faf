from enum import Enum
from typing import NamedTuple, TypeAlias, Union

# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class Chunk(NamedTuple):
	"""A logically complete unit of a chunked body. The terminal chunk has
	a size of 0 and no data."""

	size: int
	data: bytes


class DecodedChunk(Chunk):
	"""A chunk that was reassembled by the decoder."""


class BodyControl(NamedTuple):
	id: str


# Signals that the terminal chunk and its trailer section were consumed.
EndOfBody = BodyControl("EndOfBody")

TDecoded: TypeAlias = Union[DecodedChunk, BodyControl]


class DecodePhase(Enum):
	"""The phases of the incremental chunked body parser."""

	AwaitingSizeLine = 0
	AwaitingChunkData = 1
	AwaitingDataCRLF = 2
	AwaitingTrailingCRLF = 3
	Done = 10
	Failed = 11


class EncodePhase(Enum):
	"""The lifecycle of an encode session."""

	Open = 0
	Closed = 1


TPhase: TypeAlias = Union[DecodePhase, EncodePhase, None]

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class ChunkError(Exception):
	"""Base class for chunked transfer errors, carrying the phase at which
	the failure happened and how many bytes had been consumed (decoding) or
	written (encoding) so far."""

	def __init__(self, message: str, *, phase: TPhase = None, consumed: int = 0):
		super().__init__(message)
		self.message: str = message
		self.phase: TPhase = phase
		self.consumed: int = consumed

	def __str__(self) -> str:
		return (
			f"{self.message} (phase={self.phase.name}, consumed={self.consumed})"
			if self.phase
			else self.message
		)


class MalformedChunk(ChunkError):
	"""The incoming byte stream does not follow the chunk grammar."""


class MalformedChunkSize(MalformedChunk):
	pass


class MalformedChunkDelimiter(MalformedChunk):
	pass


class TruncatedStream(ChunkError):
	"""The transport closed before the terminal chunk was fully received."""


class ProtocolError(ChunkError):
	"""The encoder was misused, as in emitting after close or closing twice."""


class WriteError(ProtocolError):
	pass


class InvalidArgument(ChunkError, ValueError):
	pass


class MalformedHead(ChunkError):
	"""The response head that precedes the body could not be parsed."""


class AlreadyComplete(ChunkError):
	pass


class ConcurrentAccess(ChunkError):
	pass


# EOF
