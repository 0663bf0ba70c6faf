from .http.model import (  # NOQA: F401
	Chunk,
	DecodedChunk,
	EndOfBody,
	DecodePhase,
	ChunkError,
	MalformedChunk,
	MalformedChunkSize,
	MalformedChunkDelimiter,
	TruncatedStream,
	ProtocolError,
	WriteError,
	InvalidArgument,
	AlreadyComplete,
	ConcurrentAccess,
)
from .http.encoder import ChunkEncoder, EncodeSession, AsyncEncodeSession  # NOQA: F401
from .http.decoder import ChunkDecoder, DecodeState  # NOQA: F401
from .transport import (  # NOQA: F401
	Transport,
	AsyncTransport,
	SocketTransport,
	StreamTransport,
	BufferTransport,
)
from .stream import writeChunks, readChunks, awriteChunks, areadChunks  # NOQA: F401

# EOF
