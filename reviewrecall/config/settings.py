# reviewrecall/config/settings.py

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


# ============================================================
# Settings
# ------------------------------------------------------------
# Centralized configuration loader for ReviewRecall.
#
# - Reads environment variables
# - Applies sane defaults
# - Performs light validation
# - Exposes a cached Settings object
#
# All other modules should import `get_settings()` rather than
# reading os.environ directly.
# ============================================================


RETRIEVAL_STRATEGIES = ("chunk", "context")


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "y", "on"}


def _parse_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        warnings.warn(
            f"Invalid integer value '{value}' for environment variable. "
            f"Falling back to default={default}.",
            RuntimeWarning,
        )
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        warnings.warn(
            f"Invalid float value '{value}' for environment variable. "
            f"Falling back to default={default}.",
            RuntimeWarning,
        )
        return default


@dataclass(frozen=True)
class Settings:
    # =============================
    # Core Environment
    # =============================
    database_url: Optional[str]
    openai_api_key: Optional[str]
    comments_table: str

    # =============================
    # Embeddings
    # =============================
    embedding_model: str
    embedding_dimensions: int
    embedding_max_tokens: int
    embedding_cache_size: int
    embedding_cache_key_chars: int

    # =============================
    # Retrieval
    # =============================
    similarity_threshold: float
    retrieval_limit: int
    retrieval_strategy: str
    search_workers: int

    # =============================
    # Debug / Logging
    # =============================
    debug: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings from environment variables.

    This function should be called once at application start
    or lazily within modules that need configuration.
    """

    # -----------------------------
    # Required-ish (validated elsewhere)
    # -----------------------------
    database_url = os.getenv("DATABASE_URL")
    openai_api_key = os.getenv("OPENAI_API_KEY")
    comments_table = os.getenv("PR_COMMENTS_TABLE", "pr_comments")

    # -----------------------------
    # Embeddings
    # -----------------------------
    embedding_model = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

    # 384 matches the dimensionality of the stored comment vectors.
    embedding_dimensions = _parse_int(os.getenv("EMBEDDING_DIMENSIONS"), 384)
    embedding_max_tokens = _parse_int(os.getenv("EMBEDDING_MAX_TOKENS"), 8191)

    embedding_cache_size = _parse_int(os.getenv("EMBEDDING_CACHE_SIZE"), 1000)
    embedding_cache_key_chars = _parse_int(
        os.getenv("EMBEDDING_CACHE_KEY_CHARS"), 200
    )

    # -----------------------------
    # Retrieval
    # -----------------------------
    similarity_threshold = _parse_float(os.getenv("SIMILARITY_THRESHOLD"), 0.15)
    retrieval_limit = _parse_int(os.getenv("RETRIEVAL_LIMIT"), 10)
    retrieval_strategy = os.getenv("RETRIEVAL_STRATEGY", "chunk").strip().lower()
    search_workers = _parse_int(os.getenv("SEARCH_WORKERS"), 4)

    # -----------------------------
    # Debug
    # -----------------------------
    # NOTE:
    # CLI --debug flag should take precedence over REVIEWRECALL_DEBUG env var.
    debug = _parse_bool(os.getenv("REVIEWRECALL_DEBUG"), False)

    # -----------------------------
    # Validation
    # -----------------------------
    if embedding_dimensions <= 0:
        raise ValueError("EMBEDDING_DIMENSIONS must be positive.")

    if embedding_cache_size <= 0 or embedding_cache_key_chars <= 0:
        raise ValueError(
            "EMBEDDING_CACHE_SIZE and EMBEDDING_CACHE_KEY_CHARS must be positive."
        )

    if not 0.0 <= similarity_threshold <= 1.0:
        raise ValueError("SIMILARITY_THRESHOLD must be within [0, 1].")

    if retrieval_limit <= 0:
        raise ValueError("RETRIEVAL_LIMIT must be positive.")

    if retrieval_strategy not in RETRIEVAL_STRATEGIES:
        raise ValueError(
            f"RETRIEVAL_STRATEGY must be one of {', '.join(RETRIEVAL_STRATEGIES)}."
        )

    if search_workers <= 0:
        raise ValueError("SEARCH_WORKERS must be positive.")

    return Settings(
        database_url=database_url,
        openai_api_key=openai_api_key,
        comments_table=comments_table,
        embedding_model=embedding_model,
        embedding_dimensions=embedding_dimensions,
        embedding_max_tokens=embedding_max_tokens,
        embedding_cache_size=embedding_cache_size,
        embedding_cache_key_chars=embedding_cache_key_chars,
        similarity_threshold=similarity_threshold,
        retrieval_limit=retrieval_limit,
        retrieval_strategy=retrieval_strategy,
        search_workers=search_workers,
        debug=debug,
    )
