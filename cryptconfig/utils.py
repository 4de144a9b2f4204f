"""
Shared utility helpers.

This module contains small, reusable helpers that do not belong
to parsing, matching, or encryption orchestration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List


_WHITESPACE_TABLE = str.maketrans("", "", " \t\r\n")


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def strip_whitespace(text: str) -> str:
    """Remove every space, tab, CR and LF from text."""
    return text.translate(_WHITESPACE_TABLE)


def split_words(values: Iterable[str]) -> List[str]:
    """Flatten comma separated values (``["a,b", "c"]`` -> ``["a", "b", "c"]``)."""
    words: List[str] = []
    for value in values:
        words.extend(word.strip() for word in value.split(",") if word.strip())
    return words


def wrap_text(text: str, width: int = 64) -> List[str]:
    """Split text into lines of at most ``width`` characters."""
    return [text[i : i + width] for i in range(0, len(text), width)]


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def ensure_parent_dir(path: Path) -> None:
    """Ensure the parent directory of a file exists."""
    path.parent.mkdir(parents=True, exist_ok=True)
