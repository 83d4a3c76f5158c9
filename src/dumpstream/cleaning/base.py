"""Collaborator contracts consumed by the export sinks."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class MarkupCleaner(Protocol):
    """Turns a raw page span into plain text and metadata."""

    def clean(self, raw: str) -> str:
        """Return plain text, possibly starting with a redirect keyword."""

    def get_title(self, raw: str) -> str:
        """Return the page title."""

    def get_id(self, raw: str) -> str:
        """Return the page identifier as text."""


@runtime_checkable
class SentenceSegmenter(Protocol):
    """Splits plain text into sentences in source order."""

    def segment(self, text: str) -> Sequence[str]:
        """Return the sentences found in *text*."""
