"""Batched bulk-index sink that hands NDJSON payloads to a remote client."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Callable, Protocol, Sequence

from dumpstream.archive.models import Record
from dumpstream.cleaning.base import MarkupCleaner
from dumpstream.export.sinks import DEFAULT_REDIRECT_MARKERS, build_bulk_unit

LOGGER = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class BulkIndexClient(Protocol):
    """Anything that accepts a newline-delimited bulk payload."""

    def bulk(self, payload: str) -> None:
        """Submit action/document line pairs."""


@dataclass(slots=True)
class BulkTransportError(RuntimeError):
    """A bulk payload could not be delivered."""

    units: int
    message: str

    def __str__(self) -> str:
        return f"{self.message} (units={self.units})"


def _is_retryable(exc: Exception) -> bool:
    status_code = getattr(exc, "status_code", None)
    if status_code in _RETRYABLE_STATUS_CODES:
        return True
    return isinstance(exc, (TimeoutError, ConnectionError))


class RemoteBulkSink:
    """Collect bulk units and submit them in batches of ``batch_size``."""

    def __init__(
        self,
        client: BulkIndexClient,
        cleaner: MarkupCleaner,
        *,
        url_base: str,
        index_name: str | None = None,
        redirect_markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS,
        batch_size: int = 500,
        max_retries: int = 2,
        retry_base_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")

        self._client = client
        self._cleaner = cleaner
        self._url_base = url_base
        self._index_name = index_name
        self._redirect_markers = tuple(redirect_markers)
        self._batch_size = batch_size
        self._max_retries = max_retries
        self._retry_base_seconds = retry_base_seconds
        self._sleep = sleep
        self._pending: list[str] = []
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def write(self, record: Record) -> bool:
        if self._closed:
            raise ValueError("Cannot write to a closed sink")
        unit = build_bulk_unit(
            record,
            self._cleaner,
            url_base=self._url_base,
            index_name=self._index_name,
            redirect_markers=self._redirect_markers,
        )
        if unit is None:
            return False

        self._pending.append(unit)
        if len(self._pending) >= self._batch_size:
            self.flush()
        return True

    def flush(self) -> None:
        if not self._pending:
            return
        units = len(self._pending)
        payload = "".join(self._pending)
        self._pending.clear()
        self._submit(payload, units)
        LOGGER.debug("Submitted bulk batch of %d units", units)

    def _submit(self, payload: str, units: int) -> None:
        attempts = self._max_retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                self._client.bulk(payload)
                return
            except Exception as exc:
                last_error = exc
                if attempt >= self._max_retries or not _is_retryable(exc):
                    break
                delay = self._retry_base_seconds * (2**attempt)
                LOGGER.warning("Bulk submit failed (%s), retrying in %.2fs", exc, delay)
                self._sleep(delay)

        raise BulkTransportError(
            units,
            f"Bulk submit failed after {attempt + 1} attempt(s): {last_error}",
        ) from last_error

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.flush()

    def __enter__(self) -> "RemoteBulkSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
