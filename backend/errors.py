"""
Error types raised by the extraction and retrieval services.

Remote entity analysis never raises: its failures are reported through
`EntityAnalysis.degraded` and the extraction method instead.
"""


class ContextError(Exception):
    """Base class for context pipeline errors."""


class ValidationError(ContextError, ValueError):
    """Required input missing or out of range; no work was performed."""


class DimensionMismatch(ContextError, ValueError):
    """Two vectors of different length were compared."""


class EmbeddingError(ContextError):
    """The remote embedding service failed or returned an unusable payload."""
