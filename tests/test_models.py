# tests/test_models.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import PROJECT, make_record
from reviewrecall.chunking.chunker import WINDOW, CodeChunk
from reviewrecall.errors import DimensionMismatch
from reviewrecall.retrieval.models import (
    SEARCH_CHUNK_CODE,
    SEARCH_COMMENT,
    STRATEGY_CONTEXT,
    Candidate,
    RetrievalQuery,
    Scores,
)
from reviewrecall.storage.comment_repository import CommentFilters, decode_vector, record_from_row


# ============================================================
# Filters
# ============================================================


def test_filters_require_project_path():
    with pytest.raises(ValueError):
        CommentFilters(project_path="")


def test_filters_isolate_projects():
    record = make_record("r1")
    other = make_record("r2", project_path="/work/other")
    filters = CommentFilters(project_path=PROJECT)

    assert filters.matches(record)
    assert not filters.matches(other)


def test_filters_equality_and_file_substring():
    record = make_record("r1", repository="acme/api", file_path="src/api/handlers.py")

    assert CommentFilters(project_path=PROJECT, repository="acme/api", file_path="api/").matches(record)
    assert not CommentFilters(project_path=PROJECT, repository="acme/web").matches(record)
    assert not CommentFilters(project_path=PROJECT, file_path="web/").matches(record)


# ============================================================
# Query
# ============================================================


def test_query_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        RetrievalQuery(query="x", filters=CommentFilters(project_path=PROJECT), limit=0)


def test_query_defaults():
    q = RetrievalQuery(query="x", filters=CommentFilters(project_path=PROJECT))

    assert (q.limit, q.threshold, q.strategy) == (10, 0.15, "chunk")


def test_query_accepts_context_strategy():
    q = RetrievalQuery(query=[0.1, 0.2], filters=CommentFilters(project_path=PROJECT), strategy=STRATEGY_CONTEXT)
    assert q.strategy == STRATEGY_CONTEXT


# ============================================================
# Candidate
# ============================================================


def test_final_score_defaults_to_similarity():
    candidate = Candidate(record=make_record("r1"), search_type=SEARCH_COMMENT, distance=0.25)

    assert candidate.similarity == pytest.approx(0.75)
    assert candidate.final_score == pytest.approx(0.75)
    assert not candidate.is_chunk_match


def test_with_scores_does_not_mutate():
    candidate = Candidate(record=make_record("r1"), search_type=SEARCH_COMMENT, distance=0.25)

    updated = candidate.with_scores(final=1.4, quality=0.5)

    assert candidate.scores == Scores()
    assert updated.final_score == 1.4
    assert updated.scores.quality == 0.5


def test_to_dict_is_flat_and_omits_embeddings():
    chunk = CodeChunk(content="a = 1", start_line=3, end_line=9, chunk_type=WINDOW, content_hash="h")
    record = make_record(
        "r1",
        vector=[1.0, 0.0],
        pr_number=42,
        created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        pattern_tags=("naming",),
    )
    candidate = Candidate(
        record=record,
        search_type=SEARCH_CHUNK_CODE,
        distance=0.1,
        matched_chunk=chunk,
        chunk_priority=0.5,
    ).with_scores(final=2.0)

    d = candidate.to_dict()

    assert d["id"] == "r1"
    assert d["pr_number"] == 42
    assert d["created_at"] == "2024-01-02T00:00:00+00:00"
    assert d["pattern_tags"] == ["naming"]
    assert d["matched_chunk"] == {"start_line": 3, "end_line": 9, "chunk_type": WINDOW}
    assert d["scores"] == {"final": 2.0}
    assert d["final_score"] == 2.0
    assert not any("embedding" in key for key in d)


# ============================================================
# Row decoding
# ============================================================


def test_decode_vector_text_form():
    assert decode_vector("[0.5,0.25,1]", 3) == (0.5, 0.25, 1.0)


def test_decode_vector_none_and_empty():
    assert decode_vector(None, 3) is None
    assert decode_vector([], 3) is None


def test_decode_vector_wrong_length():
    with pytest.raises(DimensionMismatch) as info:
        decode_vector([0.1, 0.2], 3, "r1.comment_embedding")

    assert info.value.expected == 3
    assert info.value.actual == 2


def test_record_from_row_defaults():
    row = {
        "id": 7,
        "comment_text": "Use a context manager here.",
        "project_path": PROJECT,
        "comment_embedding": "[1,0,0]",
        "created_at": "2024-03-01T10:00:00Z",
        "pattern_tags": '["resources"]',
    }

    record = record_from_row(row, 3)

    assert record.id == "7"
    assert record.comment_embedding == (1.0, 0.0, 0.0)
    assert record.code_embedding is None
    assert record.author == "unknown"
    assert record.issue_category == "general"
    assert record.severity == "minor"
    assert record.created_at == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
    assert record.pattern_tags == ("resources",)


def test_record_from_row_rejects_bad_embedding():
    row = {"id": "x", "comment_text": "t", "project_path": PROJECT, "combined_embedding": [1.0]}

    with pytest.raises(DimensionMismatch):
        record_from_row(row, 3)
