"""
Lightweight heuristics describing what kind of code a file or comment is about.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from reviewrecall.retrieval.constants import UNKNOWN_AREA


_EXTENSION_TO_LANGUAGE = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".py": "python",
    ".pyi": "python",
    ".java": "java",
    ".kt": "kotlin",
    ".go": "go",
    ".rb": "ruby",
    ".rs": "rust",
    ".php": "php",
    ".cs": "csharp",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".swift": "swift",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
}

_TEST_PATH = re.compile(r"(/__tests__/|/tests?/|/specs?/|_test\.|_spec\.|\.test\.|\.spec\.)")

_FRONTEND_MARKERS = (
    "react",
    "usestate",
    "useeffect",
    "angular",
    "vue",
    "document.getelementbyid",
    "jsx",
    ".tsx",
)
_BACKEND_MARKERS = (
    "require('express')",
    "http.createserver",
    "fs.readfilesync",
    "process.env",
)


@dataclass(frozen=True)
class CodeContext:
    area: str = UNKNOWN_AREA
    dominant_tech: Tuple[str, ...] = ()

    @property
    def is_known(self) -> bool:
        return self.area != UNKNOWN_AREA


def detect_language(file_path: Optional[str]) -> str:
    """Language name for a path's extension, or "unknown"."""
    if not file_path:
        return "unknown"
    suffix = PurePosixPath(file_path.replace("\\", "/")).suffix.lower()
    return _EXTENSION_TO_LANGUAGE.get(suffix, "unknown")


def is_test_file(file_path: Optional[str]) -> bool:
    if not file_path:
        return False
    normalized = "/" + file_path.replace("\\", "/").lstrip("/")
    return bool(_TEST_PATH.search(normalized))


def infer_code_context(text: Optional[str], language: str) -> CodeContext:
    """
    Classify code (or comment text) into a coarse area plus the
    technologies it appears to use.

    Only JavaScript/TypeScript and Python carry heuristics; everything
    else stays "Unknown".
    """
    lower = (text or "").lower()
    area = UNKNOWN_AREA
    tech: List[str] = []

    if language in ("javascript", "typescript"):
        if any(marker in lower for marker in _FRONTEND_MARKERS):
            area = "Frontend"
            for name in ("react", "angular", "vue"):
                if name in lower:
                    tech.append(name.capitalize())
        elif any(marker in lower for marker in _BACKEND_MARKERS):
            area = "Backend"
            tech.append("Node.js/Express" if "express" in lower else "Node.js")
        else:
            area = "GeneralJS_TS"
    elif language == "python":
        if "django" in lower or "flask" in lower:
            area = "Backend"
            if "django" in lower:
                tech.append("Django")
            if "flask" in lower:
                tech.append("Flask")
        else:
            area = "GeneralPython"

    return CodeContext(area=area, dominant_tech=tuple(dict.fromkeys(tech)))


def infer_comment_context(
    comment_text: Optional[str],
    file_path: Optional[str],
    original_code: Optional[str] = None,
    suggested_code: Optional[str] = None,
) -> CodeContext:
    """Context of a stored comment: its text plus any attached code."""
    combined = " ".join([comment_text or "", original_code or "", suggested_code or ""])
    return infer_code_context(combined, detect_language(file_path))
