"""Candidate, score and query records passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Union

from reviewrecall.chunking.chunker import CodeChunk
from reviewrecall.storage.comment_repository import CommentFilters, CommentRecord


# Search strategies (provenance of a candidate)
SEARCH_COMMENT = "comment"
SEARCH_COMBINED = "combined"
SEARCH_CHUNK_COMMENT = "chunk_comment"
SEARCH_CHUNK_CODE = "chunk_code"

CHUNK_SEARCH_TYPES = frozenset({SEARCH_CHUNK_COMMENT, SEARCH_CHUNK_CODE})

# Pipelines
STRATEGY_CHUNK = "chunk"
STRATEGY_CONTEXT = "context"


# ============================================================
# Scores
# ============================================================


@dataclass(frozen=True)
class Scores:
    """
    Fixed set of per-stage scores. None means the stage has not run.
    """
    semantic: Optional[float] = None
    context: Optional[float] = None
    quality: Optional[float] = None
    recency: Optional[float] = None
    generic: Optional[float] = None
    bot_likelihood: Optional[float] = None
    test_relatedness: Optional[float] = None
    technical: Optional[float] = None
    code_suggestion: Optional[float] = None
    pattern: Optional[float] = None
    base: Optional[float] = None
    code_match: Optional[float] = None
    path_similarity: Optional[float] = None
    content_relevance: Optional[float] = None
    search_type_bonus: Optional[float] = None
    final: Optional[float] = None


# ============================================================
# Candidate
# ============================================================


@dataclass(frozen=True)
class Candidate:
    record: CommentRecord
    search_type: str
    distance: float
    matched_chunk: Optional[CodeChunk] = None
    chunk_priority: Optional[float] = None
    scores: Scores = field(default_factory=Scores)

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance

    @property
    def is_chunk_match(self) -> bool:
        return self.search_type in CHUNK_SEARCH_TYPES

    @property
    def final_score(self) -> float:
        return self.scores.final if self.scores.final is not None else self.similarity

    def with_scores(self, **updates: float) -> "Candidate":
        return replace(self, scores=replace(self.scores, **updates))

    def to_dict(self) -> dict:
        """Flat, JSON-friendly view (embeddings omitted)."""
        r = self.record
        return {
            "id": r.id,
            "pr_number": r.pr_number,
            "repository": r.repository,
            "comment_type": r.comment_type,
            "comment_text": r.comment_text,
            "file_path": r.file_path,
            "line_number": r.line_number,
            "original_code": r.original_code,
            "suggested_code": r.suggested_code,
            "author": r.author,
            "created_at": r.created_at.isoformat() if r.created_at else None,
            "issue_category": r.issue_category,
            "severity": r.severity,
            "pattern_tags": list(r.pattern_tags),
            "search_type": self.search_type,
            "similarity_score": self.similarity,
            "matched_chunk": (
                {
                    "start_line": self.matched_chunk.start_line,
                    "end_line": self.matched_chunk.end_line,
                    "chunk_type": self.matched_chunk.chunk_type,
                }
                if self.matched_chunk
                else None
            ),
            "scores": {k: v for k, v in vars(self.scores).items() if v is not None},
            "final_score": self.final_score,
        }


# ============================================================
# Query
# ============================================================


@dataclass(frozen=True)
class RetrievalQuery:
    """
    Parameters of one retrieval call.

    `query` is either text or a precomputed query vector.
    `is_test_file` defaults to a path-based guess on target_file_path.
    """
    query: Union[str, Sequence[float]]
    filters: CommentFilters
    target_code: Optional[str] = None
    target_file_path: Optional[str] = None
    limit: int = 10
    threshold: float = 0.15
    strategy: str = STRATEGY_CHUNK
    is_test_file: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError("limit must be positive")
        if self.strategy not in (STRATEGY_CHUNK, STRATEGY_CONTEXT):
            raise ValueError(f"Unknown retrieval strategy: {self.strategy}")
