from .model import (  # NOQA: F401
	Chunk,
	DecodedChunk,
	EndOfBody,
	DecodePhase,
)
from .encoder import ChunkEncoder, EncodeSession, AsyncEncodeSession  # NOQA: F401
from .decoder import ChunkDecoder, DecodeState  # NOQA: F401

# EOF
