from os import getenv
from .utils.io import DEFAULT_ENCODING  # NOQA: F401

# Default target for the command line client
HOST: str = getenv("HOST", "localhost")
PORT: int = int(getenv("PORT", 3000))

# Size hint passed to each transport read
READ_SIZE: int = int(getenv("CHUNKED_READ_SIZE", 64_000))

# Upper bound for a chunk size line or a trailer line, beyond which the
# stream is considered malformed.
LINE_LIMIT: int = int(getenv("CHUNKED_LINE_LIMIT", 4_096))

# Transport timeout used by the client, the core itself has no timers.
TIMEOUT: float = float(getenv("CHUNKED_TIMEOUT", 10.0))

LOG_LEVEL: str = getenv("CHUNKED_LOG_LEVEL", "Info")

# EOF
