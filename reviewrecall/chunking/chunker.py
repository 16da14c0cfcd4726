"""
Split the file under review into overlapping line-based segments
used as alternate query units against stored code embeddings.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from reviewrecall.utils.hashing import hash_text
from reviewrecall.utils.logging import get_logger

_log = get_logger("chunking")


FIXED_CHUNK = "fixed_chunk"
WINDOW = "window"
FUNCTION_CONTEXT = "function_context"


# ============================================================
# Data Model
# ============================================================


@dataclass(frozen=True)
class CodeChunk:
    content: str
    start_line: int
    end_line: int
    chunk_type: str
    content_hash: str
    focus_line: Optional[int] = None

    @property
    def is_priority(self) -> bool:
        return self.chunk_type == FUNCTION_CONTEXT


# ============================================================
# Chunker
# ============================================================


class CodeChunker:
    """
    Three independent line-based strategies, concatenated in order:

    1. Fixed, non-overlapping windows of `fixed_size` lines.
    2. Overlapping windows of `window_size` lines advancing by `window_step`.
    3. Function-context windows of +/- `context_radius` lines around every
       line that looks like a call or definition (contains both parentheses).

    Chunks of `min_chunk_chars` characters or fewer are dropped and exact
    duplicates are removed (first occurrence wins).
    """

    def __init__(
        self,
        fixed_size: int = 10,
        fixed_min_chars: int = 20,
        window_size: int = 8,
        window_step: int = 4,
        window_min_chars: int = 30,
        context_radius: int = 3,
        call_line_min_chars: int = 10,
        min_chunk_chars: int = 25,
    ) -> None:
        if fixed_size <= 0 or window_size <= 0 or window_step <= 0:
            raise ValueError("chunk sizes and window step must be positive")

        self.fixed_size = fixed_size
        self.fixed_min_chars = fixed_min_chars
        self.window_size = window_size
        self.window_step = window_step
        self.window_min_chars = window_min_chars
        self.context_radius = context_radius
        self.call_line_min_chars = call_line_min_chars
        self.min_chunk_chars = min_chunk_chars

    # ---------------------------------------------------------
    # Public API
    # ---------------------------------------------------------

    def chunk(self, text: Optional[str]) -> List[CodeChunk]:
        """
        Chunk the target file text.

        Order: fixed chunks, then windows, then function-context chunks,
        each by position. Empty input yields [].
        """
        if not text:
            return []

        lines = text.split("\n")

        chunks = (
            self._fixed_chunks(lines)
            + self._window_chunks(lines)
            + self._function_context_chunks(lines)
        )

        unique: List[CodeChunk] = []
        seen: set[str] = set()
        for chunk in chunks:
            if len(chunk.content) <= self.min_chunk_chars:
                continue
            if chunk.content_hash in seen:
                continue
            seen.add(chunk.content_hash)
            unique.append(chunk)

        _log.debug(
            "Chunked %d lines into %d chunks (%d before filtering)",
            len(lines),
            len(unique),
            len(chunks),
        )
        return unique

    # ---------------------------------------------------------
    # Strategies
    # ---------------------------------------------------------

    def _fixed_chunks(self, lines: List[str]) -> List[CodeChunk]:
        chunks: List[CodeChunk] = []
        for i in range(0, len(lines), self.fixed_size):
            content = "\n".join(lines[i:i + self.fixed_size]).strip()
            if len(content) > self.fixed_min_chars:
                chunks.append(
                    self._make(
                        content,
                        start_line=i + 1,
                        end_line=min(i + self.fixed_size, len(lines)),
                        chunk_type=FIXED_CHUNK,
                    )
                )
        return chunks

    def _window_chunks(self, lines: List[str]) -> List[CodeChunk]:
        chunks: List[CodeChunk] = []
        for i in range(0, len(lines) - self.window_size + 1, self.window_step):
            content = "\n".join(lines[i:i + self.window_size]).strip()
            if len(content) > self.window_min_chars:
                chunks.append(
                    self._make(
                        content,
                        start_line=i + 1,
                        end_line=i + self.window_size,
                        chunk_type=WINDOW,
                    )
                )
        return chunks

    def _function_context_chunks(self, lines: List[str]) -> List[CodeChunk]:
        chunks: List[CodeChunk] = []
        last = len(lines) - 1
        for i, line in enumerate(lines):
            if "(" not in line or ")" not in line:
                continue
            if len(line.strip()) <= self.call_line_min_chars:
                continue

            start = max(0, i - self.context_radius)
            end = min(last, i + self.context_radius)
            content = "\n".join(lines[start:end + 1]).strip()
            chunks.append(
                self._make(
                    content,
                    start_line=start + 1,
                    end_line=end + 1,
                    chunk_type=FUNCTION_CONTEXT,
                    focus_line=i + 1,
                )
            )
        return chunks

    # ---------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------

    @staticmethod
    def _make(
        content: str,
        start_line: int,
        end_line: int,
        chunk_type: str,
        focus_line: Optional[int] = None,
    ) -> CodeChunk:
        return CodeChunk(
            content=content,
            start_line=start_line,
            end_line=end_line,
            chunk_type=chunk_type,
            content_hash=hash_text(content),
            focus_line=focus_line,
        )
