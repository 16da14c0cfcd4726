"""Pure vector, path and text similarity helpers."""

from __future__ import annotations

import posixpath
import re
from typing import Optional, Sequence

import numpy as np


# ============================================================
# Vector Similarity
# ============================================================


def cosine_similarity(
    vec_a: Optional[Sequence[float]],
    vec_b: Optional[Sequence[float]],
) -> float:
    """
    Cosine similarity between two equal-length vectors.

    Returns 0.0 for missing, empty, zero-norm or mismatched-length inputs
    so that vectors of the wrong dimensionality are never compared.
    The result is clamped to [-1, 1].
    """
    if vec_a is None or vec_b is None:
        return 0.0

    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)

    if a.ndim != 1 or a.shape != b.shape or a.size == 0:
        return 0.0

    norm_a = float(np.dot(a, a))
    norm_b = float(np.dot(b, b))

    if norm_a <= 1e-9 or norm_b <= 1e-9:
        return 0.0

    score = float(np.dot(a, b)) / (np.sqrt(norm_a) * np.sqrt(norm_b))
    return max(-1.0, min(1.0, score))


# ============================================================
# Path Similarity
# ============================================================


def _directory_parts(path: str) -> list[str]:
    normalized = posixpath.normpath(path.replace("\\", "/"))
    return [p for p in posixpath.dirname(normalized).split("/") if p and p != "."]


def path_similarity(path_a: Optional[str], path_b: Optional[str]) -> float:
    """
    Common directory-prefix length divided by the average directory depth.

    Two files at the repository root are considered identical (1.0).
    """
    if not path_a or not path_b:
        return 0.0

    parts_a = _directory_parts(path_a)
    parts_b = _directory_parts(path_b)

    common = 0
    for left, right in zip(parts_a, parts_b):
        if left != right:
            break
        common += 1

    avg_depth = (len(parts_a) + len(parts_b)) / 2
    if avg_depth == 0:
        return 1.0

    return max(0.0, min(1.0, common / avg_depth))


# ============================================================
# Text Similarity
# ============================================================


def word_overlap(text_a: Optional[str], text_b: Optional[str]) -> float:
    """Jaccard similarity over whitespace-separated, lowercased words."""
    if not text_a or not text_b:
        return 0.0

    norm_a = re.sub(r"\s+", " ", text_a.lower()).strip()
    norm_b = re.sub(r"\s+", " ", text_b.lower()).strip()

    if norm_a == norm_b:
        return 1.0

    words_a = set(norm_a.split(" "))
    words_b = set(norm_b.split(" "))
    union = words_a | words_b
    if not union:
        return 0.0

    return len(words_a & words_b) / len(union)
