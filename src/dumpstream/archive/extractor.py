"""Lazy page extraction from a line-oriented dump stream."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
from typing import Generator, Protocol

from dumpstream.archive.models import Record
from dumpstream.archive.source import DecompressingSource, SourceReadError

LOGGER = logging.getLogger(__name__)

DEFAULT_OPEN_MARKER = "<page>"
DEFAULT_CLOSE_MARKER = "</page>"


class LineSource(Protocol):
    """Minimal reader contract consumed by the extractor."""

    def read_line(self) -> str | None:
        """Return the next line, or None at end of input."""

    def close(self) -> None:
        """Release the underlying resources."""


class TruncationPolicy(str, Enum):
    """What to do when input ends while a record is still open."""

    DROP = "drop"
    RAISE = "raise"


@dataclass(slots=True)
class TruncatedInputError(Exception):
    """Input ended after an opening marker without a closing one."""

    buffered_lines: int
    message: str

    def __str__(self) -> str:
        return f"{self.message} (buffered_lines={self.buffered_lines})"


class _ScanState(Enum):
    SEEKING = "seeking"
    ACCUMULATING = "accumulating"


class RecordStream:
    """Single-pass record iterator that owns its source.

    ``close`` releases the source even when iteration never started.
    """

    def __init__(self, source: LineSource, records: Generator[Record, None, None]) -> None:
        self._source = source
        self._records = records

    def __iter__(self) -> "RecordStream":
        return self

    def __next__(self) -> Record:
        return next(self._records)

    def close(self) -> None:
        try:
            self._records.close()
        finally:
            self._source.close()

    def __enter__(self) -> "RecordStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RecordExtractor:
    """Turn a line source into a single-pass sequence of page records.

    Boundaries are detected on right-trimmed line suffixes, not by parsing
    XML: a marker followed by other text on the same line is plain content.
    The extractor keeps no state between calls; every ``extract`` call owns
    its own buffer and closes its source on every exit path.
    """

    def __init__(
        self,
        *,
        open_marker: str = DEFAULT_OPEN_MARKER,
        close_marker: str = DEFAULT_CLOSE_MARKER,
        truncation: TruncationPolicy = TruncationPolicy.DROP,
    ) -> None:
        if not open_marker or not close_marker:
            raise ValueError("Record markers cannot be empty")
        self._open_marker = open_marker
        self._close_marker = close_marker
        self._truncation = TruncationPolicy(truncation)

    @property
    def truncation(self) -> TruncationPolicy:
        return self._truncation

    def open(self, path: str | Path) -> RecordStream:
        """Open an archive now and return its lazy record sequence."""

        return self.extract(DecompressingSource.open(path))

    def extract(self, source: LineSource) -> RecordStream:
        return RecordStream(source, self._scan(source))

    def _opens(self, line: str) -> bool:
        return line.rstrip().endswith(self._open_marker)

    def _closes(self, line: str) -> bool:
        return line.rstrip().endswith(self._close_marker)

    def _scan(self, source: LineSource) -> Generator[Record, None, None]:
        state = _ScanState.SEEKING
        buffer: list[str] = []
        ordinal = 0

        try:
            while True:
                failure: SourceReadError | None = None
                try:
                    line = source.read_line()
                except SourceReadError as exc:
                    failure = exc
                    line = None

                if line is None:
                    if state is _ScanState.ACCUMULATING:
                        self._handle_truncation(len(buffer), failure)
                    elif failure is not None:
                        LOGGER.warning("Archive read failed, ending extraction: %s", failure)
                    return

                if state is _ScanState.SEEKING:
                    if self._opens(line):
                        buffer = [line]
                        state = _ScanState.ACCUMULATING
                    continue

                buffer.append(line)
                if self._closes(line):
                    ordinal += 1
                    raw = "\n".join(buffer) + "\n"
                    buffer = []
                    state = _ScanState.SEEKING
                    yield Record(raw=raw, ordinal=ordinal)
        finally:
            source.close()

    def _handle_truncation(self, buffered_lines: int, failure: SourceReadError | None) -> None:
        reason = f"read failure: {failure}" if failure is not None else "end of input"
        if self._truncation is TruncationPolicy.RAISE:
            error = TruncatedInputError(buffered_lines, f"Archive ended inside an open record ({reason})")
            if failure is not None:
                raise error from failure
            raise error
        LOGGER.warning(
            "Dropping unterminated record of %d lines at %s",
            buffered_lines,
            reason,
        )
