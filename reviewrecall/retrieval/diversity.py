"""Greedy diversity-constrained selection of the final result set."""

from __future__ import annotations

from collections import Counter
from typing import List, Optional, Sequence

from reviewrecall.retrieval.constants import (
    FORCED_PROGRESS_RATIO,
    MAX_PER_AUTHOR,
    MAX_PER_FILE,
    NEAR_DUPLICATE_SIMILARITY,
)
from reviewrecall.retrieval.models import Candidate
from reviewrecall.utils.similarity import cosine_similarity


def _diversity_vector(candidate: Candidate) -> Optional[Sequence[float]]:
    record = candidate.record
    if record.comment_embedding is not None:
        return record.comment_embedding
    return record.combined_embedding


def select_diverse(ranked: Sequence[Candidate], limit: int) -> List[Candidate]:
    """
    Pick up to `limit` candidates from a ranked list.

    Greedy pass in rank order:
    - skip near-duplicates (cosine > 0.85 to an accepted candidate);
    - skip authors with 2 and files with 3 accepted candidates, unless
      fewer than 70% of `limit` have been accepted so far.

    Remaining slots are filled from the skipped candidates in rank order.
    """
    if limit <= 0:
        return []
    if len(ranked) <= limit:
        return list(ranked)

    accepted: List[Candidate] = []
    accepted_ids = set()
    vectors: List[Sequence[float]] = []
    authors: Counter = Counter()
    files: Counter = Counter()

    for candidate in ranked:
        if len(accepted) >= limit:
            break

        vector = _diversity_vector(candidate)
        if vector is not None and any(
            cosine_similarity(vector, v) > NEAR_DUPLICATE_SIMILARITY for v in vectors
        ):
            continue

        author = candidate.record.author or "unknown"
        file_path = candidate.record.file_path or "unknown"
        quotas_apply = len(accepted) >= limit * FORCED_PROGRESS_RATIO
        if quotas_apply and (authors[author] >= MAX_PER_AUTHOR or files[file_path] >= MAX_PER_FILE):
            continue

        accepted.append(candidate)
        accepted_ids.add(candidate.id)
        if vector is not None:
            vectors.append(vector)
        authors[author] += 1
        files[file_path] += 1

    if len(accepted) < limit:
        remaining = [c for c in ranked if c.id not in accepted_ids]
        accepted.extend(remaining[: limit - len(accepted)])

    return accepted
