"""
Per-candidate scoring: context relevance, comment quality, recency,
and the noise classifiers (generic, bot, test) used by the quality filter.

All classifiers compare embeddings against fixed reference phrases, so
every embedding lookup here goes through the shared cache.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from reviewrecall.chunking.chunker import CodeChunk
from reviewrecall.config.settings import get_settings
from reviewrecall.embeddings.cache import CachedEmbeddings
from reviewrecall.errors import ReviewRecallError
from reviewrecall.retrieval import constants as C
from reviewrecall.retrieval.context import CodeContext, infer_comment_context
from reviewrecall.retrieval.models import Candidate
from reviewrecall.storage.comment_repository import CommentRecord
from reviewrecall.utils.logging import get_logger
from reviewrecall.utils.similarity import cosine_similarity, word_overlap

_log = get_logger("scoring")

Vector = Optional[Sequence[float]]


@dataclass(frozen=True)
class ScoringTarget:
    """What the candidates are being scored against."""
    context: CodeContext = CodeContext()
    chunks: Sequence[CodeChunk] = ()
    is_test_file: bool = False


# ============================================================
# Pure helpers
# ============================================================


def recency_score(created_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    """Step function over comment age in days; 0.5 when the age is unknown."""
    if created_at is None:
        return 0.5

    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    days = (now - created_at).total_seconds() / 86400
    if days < 30:
        return 1.0
    if days < 90:
        return 0.8
    if days < 180:
        return 0.6
    if days < 365:
        return 0.4
    return 0.2


def passes_quality_filter(candidate: Candidate, is_test_file: bool) -> bool:
    """
    Hard exclusions for generic, bot-authored and (outside test files)
    test-focused comments. Candidates without noise scores are kept.
    """
    s = candidate.scores
    if s.generic is not None and s.generic > C.MAX_GENERIC_SCORE:
        return False
    if s.bot_likelihood is not None and s.bot_likelihood > C.MAX_BOT_LIKELIHOOD:
        return False
    if (
        not is_test_file
        and s.test_relatedness is not None
        and s.test_relatedness > C.MAX_TEST_RELATEDNESS
    ):
        return False
    return True


# ============================================================
# Scorer
# ============================================================


class CandidateScorer:
    def __init__(
        self,
        embeddings: CachedEmbeddings,
        max_workers: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        self.embeddings = embeddings
        self.max_workers = max_workers if max_workers is not None else get_settings().search_workers
        self.now = now

    # ---------------------------------------------------------
    # Public API
    # ---------------------------------------------------------

    def score(self, candidates: Sequence[Candidate], target: ScoringTarget) -> List[Candidate]:
        """Score every candidate concurrently; output order matches input order."""
        if not candidates:
            return []

        workers = max(1, min(self.max_workers, len(candidates)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(lambda c: self._score_safely(c, target), candidates))

    def _score_safely(self, candidate: Candidate, target: ScoringTarget) -> Candidate:
        try:
            return self.score_one(candidate, target)
        except ReviewRecallError as e:
            _log.warning("Scoring failed for comment %s: %s", candidate.id, e)
            return candidate.with_scores(semantic=candidate.similarity)

    def score_one(self, candidate: Candidate, target: ScoringTarget) -> Candidate:
        record = candidate.record
        text = record.comment_text or ""
        text_vec = self._comment_vector(record)

        generic = self.generic_score(text, text_vec)
        technical = self.technical_score(text, text_vec)
        suggestion = self.code_suggestion_score(text, text_vec)

        return candidate.with_scores(
            semantic=candidate.similarity,
            context=self.context_score(record, target.context),
            quality=self.quality_score(record, generic, technical, suggestion),
            recency=recency_score(record.created_at, self.now),
            generic=generic,
            bot_likelihood=self.bot_likelihood(record, text_vec),
            test_relatedness=self.test_relatedness(record),
            technical=technical,
            code_suggestion=suggestion,
            pattern=self.pattern_score(record, target.chunks),
        )

    # ---------------------------------------------------------
    # Context
    # ---------------------------------------------------------

    def context_score(self, record: CommentRecord, target: CodeContext) -> float:
        score = 1.0
        if not target.is_known:
            return score

        comment_ctx = infer_comment_context(
            record.comment_text,
            record.file_path,
            record.original_code,
            record.suggested_code,
        )

        area_sim = self.area_similarity(comment_ctx.area, target.area)
        if area_sim > C.AREA_MATCH_SIMILARITY:
            score *= C.AREA_MATCH_BOOST
        elif area_sim > C.AREA_RELATED_SIMILARITY:
            score *= C.AREA_RELATED_BOOST
        elif comment_ctx.is_known and area_sim < C.AREA_DIFFERENT_SIMILARITY:
            score *= C.AREA_DIFFERENT_PENALTY

        overlap = self.tech_overlap(comment_ctx.dominant_tech, target.dominant_tech)
        if overlap > 0:
            score *= 1.0 + overlap * C.TECH_OVERLAP_WEIGHT

        return score

    def area_similarity(self, area_a: str, area_b: str) -> float:
        if not area_a or not area_b:
            return 0.0
        if area_a == area_b:
            return 1.0
        return cosine_similarity(self._embed(area_a), self._embed(area_b))

    def tech_overlap(self, tech_a: Sequence[str], tech_b: Sequence[str]) -> float:
        if not tech_a or not tech_b:
            return 0.0
        return cosine_similarity(self._embed(" ".join(tech_a)), self._embed(" ".join(tech_b)))

    # ---------------------------------------------------------
    # Quality
    # ---------------------------------------------------------

    def quality_score(
        self,
        record: CommentRecord,
        generic: float,
        technical: float,
        suggestion: float,
    ) -> float:
        text = record.comment_text or ""
        score = 0.5

        if len(text) > 50:
            score += 0.1
        if len(text) > 200:
            score += 0.1
        if len(text) < 20:
            score -= 0.2

        if technical > C.TECHNICAL_CONTENT_THRESHOLD:
            score += 0.2
        if suggestion > C.CODE_SUGGESTION_THRESHOLD:
            score += 0.2

        if record.has_code:
            score += 0.1
        if record.file_path:
            score += 0.05

        score -= generic * 0.3
        return max(0.0, min(1.0, score))

    def generic_score(self, text: str, text_vec: Vector) -> float:
        if len(text) < 5:
            return 1.0

        generic_ref = self._embed(C.GENERIC_PHRASE)
        technical_ref = self._embed(C.GENERIC_TECHNICAL_PHRASE)
        if text_vec is None or generic_ref is None or technical_ref is None:
            return 0.8 if len(text) < 20 else 0.5

        return max(
            0.0,
            cosine_similarity(text_vec, generic_ref)
            - cosine_similarity(text_vec, technical_ref)
            + 0.5,
        )

    def technical_score(self, text: str, text_vec: Vector) -> float:
        if len(text) < 20:
            return 0.0
        return cosine_similarity(text_vec, self._embed(C.TECHNICAL_CONTENT_PHRASE))

    def code_suggestion_score(self, text: str, text_vec: Vector) -> float:
        if not text:
            return 0.0
        reference = self._embed(C.CODE_SUGGESTION_PHRASE)
        if text_vec is None or reference is None:
            return 0.0
        bonus = C.CODE_MARKER_BONUS if "`" in text else 0.0
        return min(1.0, cosine_similarity(text_vec, reference) + bonus)

    # ---------------------------------------------------------
    # Noise classifiers
    # ---------------------------------------------------------

    def bot_likelihood(self, record: CommentRecord, text_vec: Vector) -> float:
        author_vec = self._embed(record.author or "")
        bot_ref = self._embed(C.BOT_PHRASE)
        if author_vec is None or bot_ref is None:
            return 0.0

        author_score = cosine_similarity(author_vec, bot_ref)

        text_score = 0.0
        human_ref = self._embed(C.HUMAN_PHRASE)
        if text_vec is not None and human_ref is not None:
            text_score = max(
                0.0,
                cosine_similarity(text_vec, bot_ref) - cosine_similarity(text_vec, human_ref),
            )

        return max(author_score, text_score)

    def test_relatedness(self, record: CommentRecord) -> float:
        combined = f"{record.file_path or ''} {record.comment_text or ''}"
        return cosine_similarity(self._embed(combined), self._embed(C.TEST_INDICATOR_PHRASE))

    # ---------------------------------------------------------
    # Code pattern
    # ---------------------------------------------------------

    def pattern_score(self, record: CommentRecord, chunks: Sequence[CodeChunk]) -> float:
        """
        Best match between the comment's attached code and the leading
        chunks of the target; word overlap stands in when an embedding is missing.
        """
        best = 0.0
        codes = [code for code in (record.original_code, record.suggested_code) if code]

        for code in codes:
            code_vec = self._embed(code)
            for chunk in chunks[: C.PATTERN_CHUNK_COUNT]:
                chunk_vec = self._embed(chunk.content)
                if code_vec is not None and chunk_vec is not None:
                    sim = cosine_similarity(code_vec, chunk_vec)
                    if sim > C.PATTERN_SIMILARITY_THRESHOLD:
                        best = max(best, sim * C.PATTERN_SIMILARITY_WEIGHT)
                else:
                    overlap = word_overlap(code, chunk.content)
                    if overlap > C.PATTERN_OVERLAP_THRESHOLD:
                        best = max(best, overlap * C.PATTERN_OVERLAP_WEIGHT)

        return best

    # ---------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------

    def _comment_vector(self, record: CommentRecord) -> Vector:
        if record.comment_embedding is not None:
            return record.comment_embedding
        return self._embed(record.comment_text)

    def _embed(self, text: Optional[str]) -> Vector:
        return self.embeddings.try_embed(text)
