"""
Exceptions raised by the multicall client
"""


class MultiCallError(Exception):
    """Base exception for multicall errors"""


class ConfigurationError(MultiCallError):
    """Raised when the client is constructed with invalid settings"""


class ShapeError(MultiCallError):
    """Raised when a shape contains a field that is neither a call nor a literal"""


class ShapeOriginMismatch(ShapeError):
    """Raised when the calls of one shape target more than one address"""

    def __init__(self, addresses: list[str]):
        self.addresses = addresses
        super().__init__(
            f"Shape group must have the same origin address, got {sorted(set(addresses))}"
        )


class CallEncodingError(MultiCallError):
    """Raised when a contract call cannot be ABI encoded"""


class ChunkDispatchFailure(MultiCallError):
    """A single aggregate request failed as a whole"""

    def __init__(self, size: int, reason: str):
        self.size = size
        self.reason = reason
        super().__init__(f"Aggregate call of {size} requests failed: {reason}")


class ExhaustedFallback(MultiCallError):
    """Every chunk size was tried for a failing chunk"""

    def __init__(self, size: int, reason: str):
        self.size = size
        self.reason = reason
        super().__init__(f"All requests failed on last chunk size ({size} calls): {reason}")
