"""Sequential driver: archive -> extractor -> namespace filter -> sink."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import threading
import time
from typing import Callable

from dumpstream.archive.extractor import RecordExtractor
from dumpstream.archive.filters import admit as admit_primary_namespace
from dumpstream.archive.models import Record
from dumpstream.export.sinks import ExportSink, RecordExportError

LOGGER = logging.getLogger(__name__)

_MAX_ERROR_DETAILS = 100


class CancellationToken:
    """Thread-safe flag checked by the driver between records."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(slots=True)
class PipelineStats:
    read: int = 0
    admitted: int = 0
    exported: int = 0
    skipped: int = 0
    filtered: int = 0
    failed: int = 0
    cancelled: bool = False
    duration_ms: int = 0
    error_details: list[dict[str, object]] = field(default_factory=list)

    def record_failure(self, error: RecordExportError) -> None:
        self.failed += 1
        if len(self.error_details) < _MAX_ERROR_DETAILS:
            self.error_details.append({"record": error.ordinal, "stage": error.stage, "error": error.message})

    def merge(self, other: "PipelineStats") -> "PipelineStats":
        """Add another run's counters into this one, e.g. for per-shard runs."""

        self.read += other.read
        self.admitted += other.admitted
        self.exported += other.exported
        self.skipped += other.skipped
        self.filtered += other.filtered
        self.failed += other.failed
        self.cancelled = self.cancelled or other.cancelled
        self.duration_ms += other.duration_ms
        room = _MAX_ERROR_DETAILS - len(self.error_details)
        if room > 0:
            self.error_details.extend(other.error_details[:room])
        return self

    def to_dict(self) -> dict[str, object]:
        return {
            "read": self.read,
            "admitted": self.admitted,
            "exported": self.exported,
            "skipped": self.skipped,
            "filtered": self.filtered,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "duration_ms": self.duration_ms,
            "error_details": self.error_details,
        }


class ExportPipeline:
    """Pull records one at a time and hand admitted ones to a single sink.

    A failing record is counted and logged, and the run moves on. Fatal
    errors (unreadable archive, truncated input under the strict policy,
    output failures) propagate once the sink and the archive are closed.
    """

    def __init__(
        self,
        extractor: RecordExtractor,
        sink: ExportSink,
        *,
        admit: Callable[[Record], bool] = admit_primary_namespace,
        cancel_token: CancellationToken | None = None,
        limit: int | None = None,
        progress_every: int = 10_000,
    ) -> None:
        if limit is not None and limit < 0:
            raise ValueError("limit cannot be negative")
        if progress_every < 1:
            raise ValueError("progress_every must be >= 1")

        self._extractor = extractor
        self._sink = sink
        self._admit = admit
        self._cancel_token = cancel_token or CancellationToken()
        self._limit = limit
        self._progress_every = progress_every

    @property
    def cancel_token(self) -> CancellationToken:
        return self._cancel_token

    def run(self, archive_path: str | Path) -> PipelineStats:
        started = time.perf_counter()
        stats = PipelineStats()

        try:
            with self._extractor.open(archive_path) as records:
                while True:
                    if self._limit is not None and stats.read >= self._limit:
                        LOGGER.info("Record limit %d reached", self._limit)
                        break
                    if self._cancel_token.cancelled:
                        stats.cancelled = True
                        LOGGER.info("Cancellation requested after %d records", stats.read)
                        break

                    record = next(records, None)
                    if record is None:
                        break
                    stats.read += 1
                    self._process(record, stats)

                    if stats.read % self._progress_every == 0:
                        LOGGER.info("Processed %d records (%d exported)", stats.read, stats.exported)
        finally:
            self._sink.close()
            stats.duration_ms = int((time.perf_counter() - started) * 1000)

        LOGGER.info(
            "Total of %d records read, %d exported, %d skipped, %d failed in %d ms",
            stats.read,
            stats.exported,
            stats.skipped,
            stats.failed,
            stats.duration_ms,
        )
        return stats

    def _process(self, record: Record, stats: PipelineStats) -> None:
        if not self._admit(record):
            stats.filtered += 1
            return

        stats.admitted += 1
        try:
            written = self._sink.write(record)
        except RecordExportError as exc:
            stats.record_failure(exc)
            LOGGER.warning("Skipping record %d: %s", record.ordinal, exc)
            return

        if written:
            stats.exported += 1
        else:
            stats.skipped += 1
