"""Record type emitted by the archive extractor."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Record:
    """One delimited page span, verbatim from the archive."""

    raw: str
    ordinal: int = 0
