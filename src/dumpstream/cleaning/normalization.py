"""Whitespace helpers shared by cleaning and export."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_NEWLINE_RUN_RE = re.compile(r"\n+")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def flatten_newlines(text: str) -> str:
    """Replace every run of newlines with a single space."""

    return _NEWLINE_RUN_RE.sub(" ", text)
