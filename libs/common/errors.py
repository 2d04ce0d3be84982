"""Error taxonomy for query-time retrieval.

Every adapter translates its backend-specific failures into one of these
types so the hybrid search manager can decide, without knowing which engine
sits behind a reader, whether a failure degrades a single branch or fails
the whole request.

Recoverable per branch
- ``ProviderUnavailable`` / ``ProviderRateLimited`` (embedding provider)
- ``IndexUnavailable`` (vector or lexical reader)

Surfaced to callers
- ``RetrievalTimeout``: every queried branch exceeded its timeout
- ``RetrievalUnavailable``: every queried branch failed
- ``InvalidRequest``: malformed request, rejected before any branch runs
- ``ConfigurationError``: deployment problems such as dimension mismatches
"""

from typing import Optional


class RetrievalError(Exception):
    """Base exception for retrieval operations."""
    pass


class ProviderError(RetrievalError):
    """Embedding provider failure."""
    pass


class ProviderUnavailable(ProviderError):
    """Embedding provider unreachable, rejected credentials, or misbehaved."""
    pass


class ProviderRateLimited(ProviderError):
    """Embedding provider throttled the request."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class IndexUnavailable(RetrievalError):
    """A vector or lexical index could not be queried."""

    def __init__(self, message: str, backend: str = "unknown"):
        super().__init__(message)
        self.backend = backend


class RetrievalTimeout(RetrievalError):
    """All queried branches exceeded their timeout."""
    pass


class RetrievalUnavailable(RetrievalError):
    """All queried branches failed outright."""
    pass


class InvalidRequest(RetrievalError):
    """Malformed retrieval request."""
    pass


class ConfigurationError(RetrievalError):
    """Deployment or wiring error; never absorbed as a branch failure."""
    pass


class EmbeddingDimensionMismatch(ConfigurationError):
    """Provider returned a vector of unexpected dimensionality."""
    pass


class VectorDimensionMismatch(ConfigurationError):
    """Query vector does not match the index dimensionality."""
    pass
