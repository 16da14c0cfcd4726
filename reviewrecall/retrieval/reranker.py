"""Final-score formulas for the two retrieval pipelines."""

from __future__ import annotations

from typing import Iterable, List, Optional

from reviewrecall.chunking.chunker import FUNCTION_CONTEXT
from reviewrecall.retrieval import constants as C
from reviewrecall.retrieval.models import Candidate
from reviewrecall.utils.similarity import path_similarity


# ============================================================
# Sorting
# ============================================================


def sort_by_final_score(candidates: Iterable[Candidate]) -> List[Candidate]:
    """Descending by final score; ties keep their input order."""
    return sorted(candidates, key=lambda c: c.final_score, reverse=True)


# ============================================================
# Context-aware pipeline
# ============================================================


def context_final_score(candidate: Candidate) -> float:
    """
    Weighted semantic / context / quality / recency blend.

    A candidate whose scoring failed falls back to its raw similarity.
    """
    s = candidate.scores
    parts = (s.semantic, s.context, s.quality, s.recency)
    if any(p is None for p in parts):
        return candidate.similarity

    w = C.CONTEXT_WEIGHTS
    return (
        s.semantic * w["semantic"]
        + s.context * w["context"]
        + s.quality * w["quality"]
        + s.recency * w["recency"]
    )


def rerank_context_aware(candidates: Iterable[Candidate]) -> List[Candidate]:
    return sort_by_final_score(
        c.with_scores(final=context_final_score(c)) for c in candidates
    )


# ============================================================
# Chunk / code-match pipeline
# ============================================================


def code_match_score(candidate: Candidate) -> float:
    if candidate.is_chunk_match:
        score = C.CHUNK_MATCH_BONUS
        if candidate.chunk_priority:
            score += candidate.chunk_priority * C.CHUNK_PRIORITY_WEIGHT
        if candidate.matched_chunk is not None and candidate.matched_chunk.chunk_type == FUNCTION_CONTEXT:
            score += C.FUNCTION_CONTEXT_BONUS
        return score
    return candidate.scores.pattern or 0.0


def content_relevance_score(candidate: Candidate) -> float:
    score = 0.0
    if candidate.record.has_code:
        score += C.CODE_SNIPPET_BONUS
    if len(candidate.record.comment_text or "") > C.SUBSTANTIAL_TEXT_CHARS:
        score += C.SUBSTANTIAL_TEXT_BONUS
    return score


def search_type_bonus(candidate: Candidate) -> float:
    bonus = C.SEARCH_TYPE_BONUS.get(candidate.search_type, 0.0)
    text = (candidate.record.comment_text or "").lower()
    if any(word in text for word in C.BONUS_KEYWORDS):
        bonus += C.KEYWORD_BONUS
    return bonus


def score_chunk_match(candidate: Candidate, target_file_path: Optional[str]) -> Candidate:
    base = 1.0 - candidate.distance
    code_match = code_match_score(candidate)
    path = path_similarity(target_file_path, candidate.record.file_path) * C.PATH_SIMILARITY_WEIGHT
    content = content_relevance_score(candidate)
    type_bonus = search_type_bonus(candidate)

    return candidate.with_scores(
        base=base,
        code_match=code_match,
        path_similarity=path,
        content_relevance=content,
        search_type_bonus=type_bonus,
        final=base * C.BASE_SCORE_WEIGHT + code_match + path + content + type_bonus,
    )


def rerank_chunk_match(
    candidates: Iterable[Candidate],
    target_file_path: Optional[str] = None,
) -> List[Candidate]:
    return sort_by_final_score(score_chunk_match(c, target_file_path) for c in candidates)
