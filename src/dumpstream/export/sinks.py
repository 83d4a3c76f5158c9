"""Per-record export sinks writing line-atomic output units."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Callable, Protocol, Sequence, TextIO, TypeVar

from dumpstream.archive.models import Record
from dumpstream.cleaning.base import MarkupCleaner, SentenceSegmenter
from dumpstream.cleaning.normalization import flatten_newlines

DEFAULT_REDIRECT_MARKERS: tuple[str, ...] = ("#redirect",)

_T = TypeVar("_T")


@dataclass(slots=True)
class RecordExportError(Exception):
    """One record could not be cleaned, segmented or serialized."""

    ordinal: int
    stage: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (record={self.ordinal}, stage={self.stage})"


class ExportSink(Protocol):
    """Consumer of admitted records."""

    def write(self, record: Record) -> bool:
        """Export one record; return False when it was skipped."""

    def close(self) -> None:
        """Flush and release the output."""


def is_redirect(text: str, markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS) -> bool:
    """Case-insensitive check for a redirect keyword at the start of *text*."""

    folded = text.casefold()
    return any(folded.startswith(marker.casefold()) for marker in markers)


def build_article_url(url_base: str, title: str) -> str:
    return f"{url_base.rstrip('/')}/{title.replace(' ', '_')}"


def call_collaborator(record: Record, stage: str, func: Callable[[str], _T], text: str | None = None) -> _T:
    """Run a cleaner or segmenter call on the record (or *text*), wrapping failures."""

    try:
        return func(record.raw if text is None else text)
    except Exception as exc:
        raise RecordExportError(record.ordinal, stage, f"{stage} failed: {exc}") from exc


def build_bulk_unit(
    record: Record,
    cleaner: MarkupCleaner,
    *,
    url_base: str,
    index_name: str | None = None,
    redirect_markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS,
) -> str | None:
    """Return the action line plus document line, or None for skipped pages."""

    title = call_collaborator(record, "title", cleaner.get_title)
    article = call_collaborator(record, "clean", cleaner.clean)
    if not article or is_redirect(article, redirect_markers):
        return None

    raw_id = call_collaborator(record, "identifier", cleaner.get_id)
    try:
        identifier = int(raw_id.strip())
    except ValueError as exc:
        raise RecordExportError(record.ordinal, "identifier", f"Page id is not an integer: {raw_id!r}") from exc

    action: dict[str, object] = {"_id": identifier}
    if index_name:
        action = {"_index": index_name, "_id": identifier}
    document = {
        "Title": title,
        "Article": article,
        "URL": build_article_url(url_base, title),
    }
    return (
        json.dumps({"index": action}, ensure_ascii=False)
        + "\n"
        + json.dumps(document, ensure_ascii=False)
        + "\n"
    )


class _StreamSink:
    """Base for sinks that own a text stream and write whole units at once."""

    def __init__(
        self,
        output: TextIO,
        cleaner: MarkupCleaner,
        *,
        redirect_markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS,
    ) -> None:
        self._output = output
        self._cleaner = cleaner
        self._redirect_markers = tuple(redirect_markers)
        self._closed = False

    def write(self, record: Record) -> bool:
        if self._closed:
            raise ValueError("Cannot write to a closed sink")
        unit = self._build_unit(record)
        if unit is None:
            return False
        self._output.write(unit)
        self._output.flush()
        return True

    def _build_unit(self, record: Record) -> str | None:
        raise NotImplementedError

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._output.flush()
        finally:
            self._output.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class PlainTextSink(_StreamSink):
    """One ``title<TAB>body`` line per article."""

    def _build_unit(self, record: Record) -> str | None:
        body = flatten_newlines(call_collaborator(record, "clean", self._cleaner.clean))
        if is_redirect(body, self._redirect_markers):
            return None
        title = flatten_newlines(call_collaborator(record, "title", self._cleaner.get_title))
        return f"{title}\t{body}\n"


class SentenceSink(_StreamSink):
    """One ``title.NNNN<TAB>sentence`` line per sentence, numbered per article."""

    def __init__(
        self,
        output: TextIO,
        cleaner: MarkupCleaner,
        segmenter: SentenceSegmenter,
        *,
        redirect_markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS,
    ) -> None:
        super().__init__(output, cleaner, redirect_markers=redirect_markers)
        self._segmenter = segmenter

    def _build_unit(self, record: Record) -> str | None:
        body = call_collaborator(record, "clean", self._cleaner.clean)
        if is_redirect(body, self._redirect_markers):
            return None
        title = flatten_newlines(call_collaborator(record, "title", self._cleaner.get_title))
        sentences = call_collaborator(record, "segment", self._segmenter.segment, body)
        lines = [f"{title}.{index:04d}\t{flatten_newlines(sentence)}\n" for index, sentence in enumerate(sentences)]
        if not lines:
            return None
        return "".join(lines)


class BulkIndexSink(_StreamSink):
    """Action line plus document line per article, for bulk indexing APIs."""

    def __init__(
        self,
        output: TextIO,
        cleaner: MarkupCleaner,
        *,
        url_base: str,
        index_name: str | None = None,
        redirect_markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS,
    ) -> None:
        super().__init__(output, cleaner, redirect_markers=redirect_markers)
        self._url_base = url_base
        self._index_name = index_name

    def _build_unit(self, record: Record) -> str | None:
        return build_bulk_unit(
            record,
            self._cleaner,
            url_base=self._url_base,
            index_name=self._index_name,
            redirect_markers=self._redirect_markers,
        )
