"""
Global settings for the multicall client
"""
import os
from typing import Final

from dotenv import load_dotenv

load_dotenv()


def _parse_chunk_sizes(value: str) -> tuple[int, ...]:
    """Parse a comma separated ladder such as "300,100,25" """
    return tuple(int(size) for size in value.split(",") if size.strip())


# Chunk sizes tried in order when an aggregate request fails
DEFAULT_CHUNK_SIZES: Final[tuple[int, ...]] = _parse_chunk_sizes(
    os.getenv("MULTICALL_CHUNK_SIZES", "300,100,25")
)

# Request timeout in seconds
REQUEST_TIMEOUT: Final[float] = float(os.getenv("REQUEST_TIMEOUT", "15.0"))

# Throttle for aggregate requests against a single node
RPC_REQUESTS_PER_SECOND: Final[float] = float(os.getenv("RPC_REQUESTS_PER_SECOND", "25.0"))
RPC_BURST: Final[int] = int(os.getenv("RPC_BURST", "5"))

# Logging level
LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO").upper()
