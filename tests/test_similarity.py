# tests/test_similarity.py

from __future__ import annotations

import pytest

from reviewrecall.utils.similarity import cosine_similarity, path_similarity, word_overlap


# ============================================================
# Cosine
# ============================================================


def test_cosine_identical_and_orthogonal():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_degenerate_inputs_score_zero():
    assert cosine_similarity(None, [1.0]) == 0.0
    assert cosine_similarity([], []) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_cosine_never_compares_mismatched_lengths():
    assert cosine_similarity([1.0, 0.0, 0.0], [1.0, 0.0]) == 0.0


# ============================================================
# Paths
# ============================================================


def test_path_similarity_common_prefix_over_average_depth():
    assert path_similarity("src/api/users/views.py", "src/api/orders/views.py") == pytest.approx(2 / 3)
    assert path_similarity("src/api/views.py", "src/api/models.py") == pytest.approx(1.0)
    assert path_similarity("src/a.py", "lib/b.py") == pytest.approx(0.0)


def test_path_similarity_root_files_are_identical():
    assert path_similarity("setup.py", "README.md") == pytest.approx(1.0)


def test_path_similarity_missing_path():
    assert path_similarity(None, "src/a.py") == 0.0
    assert path_similarity("src/a.py", "") == 0.0


# ============================================================
# Word overlap
# ============================================================


def test_word_overlap_is_jaccard():
    assert word_overlap("a b c", "b c d") == pytest.approx(0.5)
    assert word_overlap("Return  None", "return none") == pytest.approx(1.0)
    assert word_overlap("", "x") == 0.0
