# reviewrecall/retrieval/search_service.py

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Union

from reviewrecall.chunking.chunker import CodeChunker
from reviewrecall.config.settings import get_settings
from reviewrecall.embeddings.cache import CachedEmbeddings, Embedder
from reviewrecall.errors import ReviewRecallError
from reviewrecall.retrieval.constants import MIN_CONTEXT_SCORE
from reviewrecall.retrieval.context import CodeContext, detect_language, infer_code_context, is_test_file
from reviewrecall.retrieval.diversity import select_diverse
from reviewrecall.retrieval.models import STRATEGY_CONTEXT, Candidate, RetrievalQuery
from reviewrecall.retrieval.reranker import rerank_chunk_match, rerank_context_aware
from reviewrecall.retrieval.scoring import CandidateScorer, ScoringTarget, passes_quality_filter
from reviewrecall.retrieval.search import SearchOrchestrator
from reviewrecall.storage.comment_repository import CommentFilters, CommentRepository, CommentStore
from reviewrecall.utils.logging import get_logger

_log = get_logger("retrieval")


def effective_threshold(threshold: float, strategy: str) -> float:
    """The context pipeline searches broadly and relies on context filtering."""
    if strategy == STRATEGY_CONTEXT:
        return max(threshold - 0.1, 0.05)
    return threshold


# ============================================================
# Retriever
# ============================================================


class CommentRetriever:
    """
    End-to-end retrieval over one comment store.

    Owns the embedding cache; reuse one retriever across calls to share it.
    """

    def __init__(
        self,
        store: CommentStore,
        embeddings: CachedEmbeddings,
        chunker: Optional[CodeChunker] = None,
        max_workers: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.chunker = chunker or CodeChunker()
        self.orchestrator = SearchOrchestrator(store, embeddings, max_workers=max_workers)
        self.scorer = CandidateScorer(embeddings, max_workers=max_workers, now=now)

    def retrieve(self, request: RetrievalQuery) -> List[Candidate]:
        """
        Run the full pipeline.

        Raises:
            ReviewRecallError: when no query vector can be produced or the
            storage table is unreachable.
        """
        is_test = request.is_test_file
        if is_test is None:
            is_test = is_test_file(request.target_file_path)

        chunks = self.chunker.chunk(request.target_code)
        candidates = self.orchestrator.search(request.query, chunks, request.filters, request.limit)

        threshold = effective_threshold(request.threshold, request.strategy)
        candidates = [c for c in candidates if c.similarity >= threshold]
        _log.info("%d candidates at or above threshold %.2f", len(candidates), threshold)

        target = ScoringTarget(
            context=self._target_context(request),
            chunks=chunks,
            is_test_file=is_test,
        )
        scored = self.scorer.score(candidates, target)
        kept = [c for c in scored if passes_quality_filter(c, is_test)]
        _log.info("Quality filter kept %d of %d candidates", len(kept), len(scored))

        if request.strategy == STRATEGY_CONTEXT:
            kept = [
                c for c in kept
                if c.scores.context is None or c.scores.context >= MIN_CONTEXT_SCORE
            ]
            ranked = rerank_context_aware(kept)
        else:
            ranked = rerank_chunk_match(kept, request.target_file_path)

        results = select_diverse(ranked, request.limit)
        _log.info("Selected %d comments (%s strategy)", len(results), request.strategy)
        return results

    def find_similar_comments(self, request: RetrievalQuery) -> List[Candidate]:
        """Like retrieve(), but any retrieval error yields an empty list."""
        try:
            return self.retrieve(request)
        except ReviewRecallError as e:
            _log.error("PR comment retrieval failed: %s", e)
            return []

    @staticmethod
    def _target_context(request: RetrievalQuery) -> CodeContext:
        if not request.target_code:
            return CodeContext()
        return infer_code_context(request.target_code, detect_language(request.target_file_path))


# ============================================================
# Module-level entrypoint
# ============================================================


@lru_cache(maxsize=1)
def _shared_embeddings() -> CachedEmbeddings:
    from reviewrecall.embeddings.openai_embedder import OpenAIEmbedder

    return CachedEmbeddings(OpenAIEmbedder())


def find_similar_comments(
    query: Union[str, Sequence[float]],
    project_path: str,
    target_code: Optional[str] = None,
    target_file_path: Optional[str] = None,
    limit: Optional[int] = None,
    threshold: Optional[float] = None,
    strategy: Optional[str] = None,
    is_test_file: Optional[bool] = None,
    repository: Optional[str] = None,
    author: Optional[str] = None,
    comment_type: Optional[str] = None,
    issue_category: Optional[str] = None,
    severity: Optional[str] = None,
    file_path: Optional[str] = None,
    store: Optional[CommentStore] = None,
    embedder: Optional[Embedder] = None,
) -> List[Dict]:
    """
    Retrieve the historical review comments most relevant to the code under review.

    `repository`, `author`, `comment_type`, `issue_category` and `severity`
    match exactly; `file_path` matches as a substring of the stored path.

    Returns a list of dicts (see Candidate.to_dict). Never raises on
    retrieval failures, including a missing DATABASE_URL / OPENAI_API_KEY
    or an unreachable database; an empty list is returned instead.
    Invalid arguments (empty project_path, unknown strategy) still raise
    ValueError.
    """
    settings = get_settings()

    filters = CommentFilters(
        project_path=project_path,
        repository=repository,
        author=author,
        comment_type=comment_type,
        issue_category=issue_category,
        severity=severity,
        file_path=file_path,
    )
    request = RetrievalQuery(
        query=query,
        filters=filters,
        target_code=target_code,
        target_file_path=target_file_path,
        limit=limit if limit is not None else settings.retrieval_limit,
        threshold=threshold if threshold is not None else settings.similarity_threshold,
        strategy=strategy or settings.retrieval_strategy,
        is_test_file=is_test_file,
    )

    try:
        embeddings = CachedEmbeddings(embedder) if embedder is not None else _shared_embeddings()
    except (ReviewRecallError, ValueError) as e:
        _log.error("PR comment retrieval failed: embeddings unavailable: %s", e)
        return []

    if store is not None:
        results = CommentRetriever(store, embeddings).find_similar_comments(request)
        return [c.to_dict() for c in results]

    try:
        repo = CommentRepository()
    except (ReviewRecallError, ValueError) as e:
        _log.error("PR comment retrieval failed: comment store unavailable: %s", e)
        return []

    with repo:
        results = CommentRetriever(repo, embeddings).find_similar_comments(request)
    return [c.to_dict() for c in results]
