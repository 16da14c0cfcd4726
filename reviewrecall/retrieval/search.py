"""Fan-out candidate search over the stored comment embeddings."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from reviewrecall.chunking.chunker import CodeChunk
from reviewrecall.config.settings import get_settings
from reviewrecall.embeddings.cache import CachedEmbeddings
from reviewrecall.errors import (
    DimensionMismatch,
    EmbeddingUnavailable,
    ReviewRecallError,
    StorageUnavailable,
)
from reviewrecall.retrieval.constants import (
    MAX_PRIORITY_CHUNKS,
    MAX_REGULAR_CHUNKS,
    PRIORITY_CHUNK_WEIGHT,
    QUERY_CHUNK_COUNT,
    QUERY_TEXT_CHARS,
    REGULAR_CHUNK_WEIGHT,
)
from reviewrecall.retrieval.models import (
    SEARCH_CHUNK_CODE,
    SEARCH_CHUNK_COMMENT,
    SEARCH_COMBINED,
    SEARCH_COMMENT,
    Candidate,
)
from reviewrecall.storage.comment_repository import (
    CODE_EMBEDDING,
    COMBINED_EMBEDDING,
    COMMENT_EMBEDDING,
    CommentFilters,
    CommentStore,
    SearchHit,
)
from reviewrecall.utils.logging import get_logger

_log = get_logger("search")

PAGE_MULTIPLIER = 2


# ============================================================
# Units of work
# ============================================================


@dataclass(frozen=True)
class SearchUnit:
    """One query against one embedding column."""
    search_type: str
    column: str
    page_size: int
    chunk: Optional[CodeChunk] = None
    chunk_priority: Optional[float] = None


@dataclass(frozen=True)
class StrategyResult:
    unit: SearchUnit
    hits: Tuple[SearchHit, ...] = ()
    error: Optional[ReviewRecallError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ============================================================
# Orchestrator
# ============================================================


class SearchOrchestrator:
    """
    Runs the comment, combined and per-chunk searches concurrently and
    merges their hits into one deduplicated candidate list.
    """

    def __init__(
        self,
        store: CommentStore,
        embeddings: CachedEmbeddings,
        max_workers: Optional[int] = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.max_workers = max_workers if max_workers is not None else get_settings().search_workers

    # ---------------------------------------------------------
    # Query vector
    # ---------------------------------------------------------

    def resolve_query_vector(
        self,
        query: Union[str, Sequence[float]],
        chunks: Sequence[CodeChunk] = (),
    ) -> List[float]:
        """
        Turn the query into the vector used by the comment and combined searches.

        Text queries are prefixed with the first function-context chunks
        when any exist. The query vector never goes through the cache.

        Raises:
            EmbeddingUnavailable, DimensionMismatch
        """
        if not isinstance(query, str):
            vector = [float(v) for v in query]
            if len(vector) != self.embeddings.dimensions:
                raise DimensionMismatch(self.embeddings.dimensions, len(vector), "query vector")
            return vector

        if not query.strip():
            raise EmbeddingUnavailable("Query text is empty.")

        focus = [c.content for c in chunks if c.is_priority][:QUERY_CHUNK_COUNT]
        if focus:
            text = "\n\n".join(focus) + "\n\n" + query[:QUERY_TEXT_CHARS]
        else:
            text = query

        return self.embeddings.embed_uncached(text)

    # ---------------------------------------------------------
    # Plan
    # ---------------------------------------------------------

    @staticmethod
    def plan(chunks: Sequence[CodeChunk], limit: int) -> List[SearchUnit]:
        """
        Deterministic order of all search units for one call.

        Comment search, combined search, then for each selected chunk
        (function-context chunks first) a comment-column and a code-column search.
        """
        page = limit * PAGE_MULTIPLIER
        units = [
            SearchUnit(SEARCH_COMMENT, COMMENT_EMBEDDING, page),
            SearchUnit(SEARCH_COMBINED, COMBINED_EMBEDDING, page),
        ]

        priority = [c for c in chunks if c.is_priority][:MAX_PRIORITY_CHUNKS]
        regular = [c for c in chunks if not c.is_priority][:MAX_REGULAR_CHUNKS]

        selected = [(c, PRIORITY_CHUNK_WEIGHT, page) for c in priority]
        selected += [(c, REGULAR_CHUNK_WEIGHT, limit) for c in regular]

        for chunk, weight, size in selected:
            units.append(SearchUnit(SEARCH_CHUNK_COMMENT, COMMENT_EMBEDDING, size, chunk, weight))
            units.append(SearchUnit(SEARCH_CHUNK_CODE, CODE_EMBEDDING, size, chunk, weight))

        return units

    # ---------------------------------------------------------
    # Search
    # ---------------------------------------------------------

    def search(
        self,
        query: Union[str, Sequence[float]],
        chunks: Sequence[CodeChunk],
        filters: CommentFilters,
        limit: int,
    ) -> List[Candidate]:
        """
        Run every search unit and merge the hits.

        Raises:
            EmbeddingUnavailable, DimensionMismatch: no query vector
            StorageUnavailable: the table could not be reached by any unit
        """
        query_vector = self.resolve_query_vector(query, chunks)
        units = self.plan(chunks, limit)

        workers = max(1, min(self.max_workers, len(units)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(
                executor.map(lambda u: self._run_unit(u, query_vector, filters), units)
            )

        return self._merge(results)

    def _run_unit(
        self,
        unit: SearchUnit,
        query_vector: List[float],
        filters: CommentFilters,
    ) -> StrategyResult:
        try:
            if unit.chunk is None:
                vector = query_vector
            else:
                vector = self.embeddings.embed(unit.chunk.content)
            hits = self.store.search(unit.column, vector, unit.page_size, filters)
        except ReviewRecallError as e:
            return StrategyResult(unit=unit, error=e)
        return StrategyResult(unit=unit, hits=tuple(hits))

    def _merge(self, results: List[StrategyResult]) -> List[Candidate]:
        unavailable: Optional[StorageUnavailable] = None
        failed = 0

        for result in results:
            if result.ok:
                continue
            failed += 1
            unit = result.unit
            where = f" (lines {unit.chunk.start_line}-{unit.chunk.end_line})" if unit.chunk else ""
            _log.warning("%s search failed%s: %s", unit.search_type, where, result.error)
            if isinstance(result.error, StorageUnavailable) and unavailable is None:
                unavailable = result.error

        if unavailable is not None:
            raise unavailable

        seen: Dict[str, Candidate] = {}
        for result in results:
            for hit in result.hits:
                if hit.record.id in seen:
                    continue
                seen[hit.record.id] = Candidate(
                    record=hit.record,
                    search_type=result.unit.search_type,
                    distance=hit.distance,
                    matched_chunk=result.unit.chunk,
                    chunk_priority=result.unit.chunk_priority,
                )

        _log.info(
            "Search ran %d strategies (%d failed), %d unique candidates",
            len(results),
            failed,
            len(seen),
        )
        return list(seen.values())
