"""OpenAI embedding client with truncation, batching and exponential backoff retry."""

from __future__ import annotations

import math
import time
from typing import Any, Iterable, List, Optional
import warnings

import tiktoken
from openai import OpenAI
from openai import (
    APIConnectionError,
    APITimeoutError,
    OpenAIError,
    RateLimitError,
)

from reviewrecall.config.settings import get_settings
from reviewrecall.errors import DimensionMismatch, EmbeddingUnavailable


class OpenAIEmbedder:
    """
    OpenAI embedding client wrapper.

    Responsibilities:
    - Truncate inputs to the model's token limit
    - Batch embedding requests
    - Fixed output dimensionality (validated on every response)
    - Basic exponential backoff retry
    - Deterministic ordering of outputs

    This class does NOT cache results.
    Caching happens in reviewrecall.embeddings.cache.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        max_input_tokens: Optional[int] = None,
        batch_size: int = 50,
        max_retries: int = 5,
        backoff_base: float = 0.5,
        client: Optional[Any] = None,
        encoding_name: str = "cl100k_base",
    ) -> None:
        settings = get_settings()

        if client is None:
            if not settings.openai_api_key:
                raise ValueError("OPENAI_API_KEY must be set.")
            client = OpenAI(api_key=settings.openai_api_key)

        self.client = client
        self.model = model or settings.embedding_model
        self.dimensions = dimensions if dimensions is not None else settings.embedding_dimensions
        self.max_input_tokens = (
            max_input_tokens
            if max_input_tokens is not None
            else settings.embedding_max_tokens
        )

        self.batch_size = batch_size
        self.max_retries = max_retries
        self.backoff_base = backoff_base

        self._encoding_name = encoding_name
        self._encoding: Optional[tiktoken.Encoding] = None

    # ---------------------------------------------------------
    # Public API
    # ---------------------------------------------------------

    def embed_text(self, text: str) -> List[float]:
        """
        Embed a single string.

        Raises:
            EmbeddingUnavailable: if the service returns nothing usable.
            DimensionMismatch: if the returned vector has the wrong length.
        """
        if not text or not text.strip():
            raise EmbeddingUnavailable("Cannot embed empty text.")

        embeddings = self.embed_texts([text])
        if not embeddings:
            raise EmbeddingUnavailable("Embedding service returned no vector.")
        return embeddings[0]

    def embed_texts(self, texts: Iterable[str]) -> List[List[float]]:
        """
        Embed multiple strings.

        Returns embeddings in the same order as input.
        """
        text_list = [self._truncate(t) for t in texts]
        if not text_list:
            return []

        all_embeddings: List[List[float]] = []

        total = len(text_list)
        num_batches = math.ceil(total / self.batch_size)

        for i in range(num_batches):
            start = i * self.batch_size
            end = min(start + self.batch_size, total)
            batch = text_list[start:end]

            batch_embeddings = self._embed_batch_with_retry(batch)
            for embedding in batch_embeddings:
                if len(embedding) != self.dimensions:
                    raise DimensionMismatch(self.dimensions, len(embedding), self.model)
            all_embeddings.extend(batch_embeddings)

        return all_embeddings

    # ---------------------------------------------------------
    # Internal
    # ---------------------------------------------------------

    def _truncate(self, text: str) -> str:
        """
        Cut text down to max_input_tokens tokens.
        """
        if self.max_input_tokens <= 0:
            return text

        # Fewer characters than the token limit can never exceed it.
        if len(text) <= self.max_input_tokens:
            return text

        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self._encoding_name)

        tokens = self._encoding.encode(text, disallowed_special=())
        if len(tokens) <= self.max_input_tokens:
            return text

        return self._encoding.decode(tokens[: self.max_input_tokens])

    def _embed_batch_with_retry(self, batch: List[str]) -> List[List[float]]:
        """
        Embed a batch with exponential backoff.
        """
        attempt = 0

        while True:
            try:
                response = self.client.embeddings.create(
                    model=self.model,
                    input=batch,
                    dimensions=self.dimensions,
                )

                # Preserve order: API returns in same order as input
                return [list(item.embedding) for item in response.data]

            except (RateLimitError, APIConnectionError, APITimeoutError) as e:
                attempt += 1
                if attempt > self.max_retries:
                    raise EmbeddingUnavailable(
                        f"Embedding failed after {self.max_retries} retries."
                    ) from e

                sleep_time = self.backoff_base * (2 ** (attempt - 1))
                warnings.warn(
                    f"Embedding batch failed with transient error "
                    f"(attempt {attempt}/{self.max_retries}). "
                    f"Retrying in {sleep_time:.2f}s...",
                    RuntimeWarning,
                )
                time.sleep(sleep_time)

            # Non-transient errors (e.g., auth, invalid request) should not retry
            except OpenAIError as e:
                raise EmbeddingUnavailable(f"Embedding request failed: {e}") from e
