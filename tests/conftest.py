# tests/conftest.py

from __future__ import annotations

import math
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pytest

from reviewrecall.config.settings import get_settings
from reviewrecall.embeddings.cache import CachedEmbeddings, EmbeddingCache
from reviewrecall.errors import EmbeddingUnavailable
from reviewrecall.retrieval import constants as C
from reviewrecall.storage.comment_repository import CommentFilters, CommentRecord, SearchHit
from reviewrecall.utils.hashing import hash_text
from reviewrecall.utils.similarity import cosine_similarity


# ============================================================
# Vectors
# ------------------------------------------------------------
# Axes 0-7 are reserved for the reference phrases; any text the
# fake embedder has not been told about lands on axes 8+ only.
# ============================================================

DIM = 32
PROJECT = "/work/project"
NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

REFERENCE_AXES = {
    C.GENERIC_PHRASE: 0,
    C.GENERIC_TECHNICAL_PHRASE: 1,
    C.TECHNICAL_CONTENT_PHRASE: 2,
    C.CODE_SUGGESTION_PHRASE: 3,
    C.BOT_PHRASE: 4,
    C.HUMAN_PHRASE: 5,
    C.TEST_INDICATOR_PHRASE: 6,
}


def axis(index: int) -> List[float]:
    v = [0.0] * DIM
    v[index] = 1.0
    return v


def blend(similarity: float, other_axis: int, base_axis: int = 8) -> List[float]:
    """Unit vector whose cosine with axis(base_axis) equals `similarity`."""
    v = [0.0] * DIM
    v[base_axis] = similarity
    v[other_axis] = math.sqrt(max(0.0, 1.0 - similarity ** 2))
    return v


def mix(weights: Dict[int, float]) -> List[float]:
    v = np.zeros(DIM)
    for index, weight in weights.items():
        v[index] = weight
    v = v / np.linalg.norm(v)
    return v.tolist()


def pseudo_random_vector(text: str) -> List[float]:
    seed = int(hash_text(text)[:8], 16)
    rng = np.random.RandomState(seed)
    v = np.zeros(DIM)
    v[8:] = rng.normal(size=DIM - 8)
    return (v / np.linalg.norm(v)).tolist()


# ============================================================
# Fakes
# ============================================================


class FakeEmbedder:
    """
    Deterministic text -> vector mapping.

    Reference phrases map to their own axes, explicitly registered texts
    to their registered vector, everything else to a stable pseudo-random
    vector orthogonal to the reference axes.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        fail: Iterable[str] = (),
        dimensions: int = DIM,
    ) -> None:
        self.vectors: Dict[str, List[float]] = {
            phrase: axis(index) for phrase, index in REFERENCE_AXES.items()
        }
        self.vectors.update({k: list(v) for k, v in (vectors or {}).items()})
        self.fail = set(fail)
        self.dimensions = dimensions
        self.calls: List[str] = []
        self._lock = Lock()

    def embed_text(self, text: str) -> List[float]:
        with self._lock:
            self.calls.append(text)
        if text in self.fail:
            raise EmbeddingUnavailable(f"no vector for {text[:20]!r}")
        if text in self.vectors:
            return list(self.vectors[text])
        vector = pseudo_random_vector(text)
        if self.dimensions != DIM:
            return vector[: self.dimensions]
        return vector


class InMemoryCommentStore:
    """CommentStore over a list, using 1 - cosine as the distance."""

    def __init__(
        self,
        records: Iterable[CommentRecord] = (),
        failures: Optional[Dict[str, Exception]] = None,
        fail_when: Optional[Callable[[str, Sequence[float]], Optional[Exception]]] = None,
    ) -> None:
        self.records: List[CommentRecord] = list(records)
        self.failures = dict(failures or {})
        self.fail_when = fail_when
        self.search_calls: List[tuple] = []
        self._lock = Lock()

    def search(
        self,
        column: str,
        query_embedding: Sequence[float],
        limit: int,
        filters: CommentFilters,
    ) -> List[SearchHit]:
        with self._lock:
            self.search_calls.append((column, tuple(query_embedding), limit))

        if column in self.failures:
            raise self.failures[column]
        if self.fail_when is not None:
            error = self.fail_when(column, query_embedding)
            if error is not None:
                raise error

        hits = []
        for record in self.records:
            if not filters.matches(record):
                continue
            vector = getattr(record, column)
            if vector is None:
                continue
            hits.append(SearchHit(record, 1.0 - cosine_similarity(query_embedding, vector)))

        hits.sort(key=lambda h: h.distance)
        return hits[:limit]

    def scan(self, filters: CommentFilters, limit: int = 100, offset: int = 0) -> List[CommentRecord]:
        matching = [r for r in self.records if filters.matches(r)]
        return matching[offset:offset + limit]

    def count(self, filters: CommentFilters) -> int:
        return sum(1 for r in self.records if filters.matches(r))

    def delete(self, filters: CommentFilters) -> int:
        before = len(self.records)
        self.records = [r for r in self.records if not filters.matches(r)]
        return before - len(self.records)


def make_record(
    record_id: str,
    text: str = "Consider extracting this validation into a helper function.",
    vector: Optional[Sequence[float]] = None,
    **kwargs,
) -> CommentRecord:
    """
    Comment record in PROJECT. `vector` fills the comment and combined
    embeddings unless they are passed explicitly.
    """
    if vector is not None:
        kwargs.setdefault("comment_embedding", tuple(vector))
        kwargs.setdefault("combined_embedding", tuple(vector))
    for name in ("comment_embedding", "code_embedding", "combined_embedding"):
        if kwargs.get(name) is not None:
            kwargs[name] = tuple(kwargs[name])
    kwargs.setdefault("project_path", PROJECT)
    kwargs.setdefault("author", f"author-{record_id}")
    kwargs.setdefault("file_path", f"src/{record_id}.py")
    return CommentRecord(id=record_id, comment_text=text, **kwargs)


# ============================================================
# Fixtures
# ============================================================


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def embeddings(embedder: FakeEmbedder) -> CachedEmbeddings:
    return CachedEmbeddings(
        embedder,
        cache=EmbeddingCache(max_size=1000, key_chars=200),
        dimensions=DIM,
    )


@pytest.fixture
def filters() -> CommentFilters:
    return CommentFilters(project_path=PROJECT)
