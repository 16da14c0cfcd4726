"""Error taxonomy for the retrieval pipeline."""

from __future__ import annotations

from typing import Optional


class ReviewRecallError(Exception):
    """Base class for all retrieval errors."""


class EmbeddingUnavailable(ReviewRecallError):
    """The embedding service returned no vector for a text."""


class DimensionMismatch(ReviewRecallError):
    """A vector does not have the deployment's fixed dimensionality."""

    def __init__(self, expected: int, actual: int, source: Optional[str] = None) -> None:
        self.expected = expected
        self.actual = actual
        self.source = source
        where = f" ({source})" if source else ""
        super().__init__(
            f"Embedding dimension mismatch{where}: expected {expected}, got {actual}"
        )


class StrategyQueryFailed(ReviewRecallError):
    """One search strategy's call to the storage table failed."""


class StorageUnavailable(ReviewRecallError):
    """The storage table cannot be reached."""
