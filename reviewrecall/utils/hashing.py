"""SHA-256 content hashing for chunk deduplication."""

from __future__ import annotations

import hashlib


def hash_text(text: str) -> str:
    """
    Compute a stable SHA-256 hash of a text string.

    Used for:
    - Chunk-level deduplication within one retrieval call
    - Deterministic seeds in test embedders

    Returns:
        Hex digest string.
    """
    if not isinstance(text, str):
        raise TypeError("hash_text expects a string")

    hasher = hashlib.sha256()
    hasher.update(text.encode("utf-8"))
    return hasher.hexdigest()
