"""Bounded embedding memoization shared across retrieval calls."""

from __future__ import annotations

from collections import OrderedDict
from threading import Lock
from typing import List, Optional, Protocol, Sequence, Tuple

from reviewrecall.config.settings import get_settings
from reviewrecall.errors import DimensionMismatch, EmbeddingUnavailable
from reviewrecall.utils.logging import get_logger

_log = get_logger("embeddings")


class Embedder(Protocol):
    """Anything that turns one text into one fixed-length vector."""

    def embed_text(self, text: str) -> List[float]:
        ...


# ============================================================
# Cache
# ============================================================


class EmbeddingCache:
    """
    Insertion-ordered key -> vector map with a hard capacity.

    When full, the oldest inserted entry is evicted (FIFO, reads do not
    refresh position). Keys are the first `key_chars` characters of the
    text; each entry also keeps the full text, and a lookup whose text
    differs from the stored one is a miss. The first text stored under a
    key keeps it until eviction. All access goes through a single lock.
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        key_chars: Optional[int] = None,
    ) -> None:
        settings = get_settings()

        self.max_size = max_size if max_size is not None else settings.embedding_cache_size
        self.key_chars = key_chars if key_chars is not None else settings.embedding_cache_key_chars

        if self.max_size <= 0:
            raise ValueError("max_size must be positive")

        self._entries: "OrderedDict[str, Tuple[str, List[float]]]" = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def key_for(self, text: str) -> str:
        return text[: self.key_chars]

    def get(self, text: str) -> Optional[List[float]]:
        key = self.key_for(text)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry[0] != text:
                self._misses += 1
                return None
            self._hits += 1
            return entry[1]

    def put(self, text: str, vector: Sequence[float]) -> None:
        key = self.key_for(text)
        with self._lock:
            if key in self._entries:
                return
            while len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (text, list(vector))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, text: object) -> bool:
        if not isinstance(text, str):
            return False
        with self._lock:
            entry = self._entries.get(self.key_for(text))
            return entry is not None and entry[0] == text

    @property
    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
            }


# ============================================================
# Cached embedding lookups
# ============================================================


class CachedEmbeddings:
    """
    Embedder front-end that memoizes through an EmbeddingCache and
    validates the dimensionality of every vector it hands out.
    """

    def __init__(
        self,
        embedder: Embedder,
        cache: Optional[EmbeddingCache] = None,
        dimensions: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.embedder = embedder
        self.cache = cache if cache is not None else EmbeddingCache()
        self.dimensions = dimensions if dimensions is not None else settings.embedding_dimensions

    def embed_uncached(self, text: str) -> List[float]:
        """
        Embed without touching the cache.

        Raises:
            EmbeddingUnavailable, DimensionMismatch
        """
        if not text:
            raise EmbeddingUnavailable("Cannot embed empty text.")

        vector = self.embedder.embed_text(text)
        if not vector:
            raise EmbeddingUnavailable("Embedding service returned no vector.")
        if len(vector) != self.dimensions:
            raise DimensionMismatch(self.dimensions, len(vector), "embedding service")
        return list(vector)

    def embed(self, text: str) -> List[float]:
        """
        Cached embed.

        Raises:
            EmbeddingUnavailable, DimensionMismatch
        """
        if not text:
            raise EmbeddingUnavailable("Cannot embed empty text.")

        cached = self.cache.get(text)
        if cached is not None:
            return cached

        vector = self.embed_uncached(text)
        self.cache.put(text, vector)
        return vector

    def try_embed(self, text: Optional[str]) -> Optional[List[float]]:
        """Cached embed that logs failures and returns None instead of raising."""
        if not text:
            return None
        try:
            return self.embed(text)
        except (EmbeddingUnavailable, DimensionMismatch) as e:
            _log.debug("Embedding unavailable for %r: %s", text[:40], e)
            return None
