from __future__ import annotations

import bz2
import io
import json
from pathlib import Path

import pytest

from dumpstream.archive.extractor import RecordExtractor, TruncatedInputError, TruncationPolicy
from dumpstream.archive.models import Record
from dumpstream.archive.source import OpenError
from dumpstream.cleaning.wikitext import WikiTextCleaner
from dumpstream.export.sinks import BulkIndexSink, PlainTextSink, RecordExportError
from dumpstream.pipeline.driver import CancellationToken, ExportPipeline, PipelineStats


def _page(title: str, page_id: int, *, ns: int = 0, text: str = "Body text.") -> str:
    return (
        "  <page>\n"
        f"    <title>{title}</title>\n"
        f"    <ns>{ns}</ns>\n"
        f"    <id>{page_id}</id>\n"
        "    <revision>\n"
        f"      <id>{page_id + 1000}</id>\n"
        f'      <text xml:space="preserve">{text}</text>\n'
        "    </revision>\n"
        "  </page>\n"
    )


def _write_dump(path: Path, *pages: str, tail: str = "</mediawiki>\n") -> Path:
    text = "<mediawiki>\n  <siteinfo>\n  </siteinfo>\n" + "".join(pages) + tail
    path.write_bytes(bz2.compress(text.encode("utf-8")))
    return path


class _RecordingSink:
    def __init__(self, *, fail_on: set[int] | None = None, skip_on: set[int] | None = None) -> None:
        self.records: list[Record] = []
        self.closed = False
        self._fail_on = fail_on or set()
        self._skip_on = skip_on or set()

    def write(self, record: Record) -> bool:
        if record.ordinal in self._fail_on:
            raise RecordExportError(record.ordinal, "clean", "broken markup")
        if record.ordinal in self._skip_on:
            return False
        self.records.append(record)
        return True

    def close(self) -> None:
        self.closed = True


class _KeepOpenStringIO(io.StringIO):
    def close(self) -> None:
        self.flush()


def test_end_to_end_plain_text_export(tmp_path: Path) -> None:
    archive = _write_dump(
        tmp_path / "dump.xml.bz2",
        _page("Example", 42, text="'''Example''' is a page."),
        _page("Talk:Example", 43, ns=1, text="Discussion."),
    )
    output = _KeepOpenStringIO()
    pipeline = ExportPipeline(RecordExtractor(), PlainTextSink(output, WikiTextCleaner()))

    stats = pipeline.run(archive)

    assert output.getvalue() == "Example\tExample is a page.\n"
    assert stats.read == 2
    assert stats.admitted == 1
    assert stats.filtered == 1
    assert stats.exported == 1


def test_end_to_end_bulk_export(tmp_path: Path) -> None:
    archive = _write_dump(
        tmp_path / "dump.xml.bz2",
        _page("Example", 42, text="Example is a page."),
        _page("Talk:Example", 43, ns=1, text="Discussion."),
    )
    output = _KeepOpenStringIO()
    sink = BulkIndexSink(output, WikiTextCleaner(), url_base="https://en.wikipedia.org/wiki")

    stats = ExportPipeline(RecordExtractor(), sink).run(archive)

    lines = output.getvalue().splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0]) == {"index": {"_id": 42}}
    assert json.loads(lines[1])["Title"] == "Example"
    assert stats.exported == 1


def test_redirects_are_counted_as_skipped(tmp_path: Path) -> None:
    archive = _write_dump(
        tmp_path / "dump.xml.bz2",
        _page("Old name", 1, text="#REDIRECT [[New name]]"),
        _page("New name", 2, text="Real article."),
    )
    output = _KeepOpenStringIO()

    stats = ExportPipeline(RecordExtractor(), PlainTextSink(output, WikiTextCleaner())).run(archive)

    assert output.getvalue() == "New name\tReal article.\n"
    assert stats.admitted == 2
    assert stats.skipped == 1
    assert stats.exported == 1


def test_per_record_failure_does_not_abort_run(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), _page("B", 2), _page("C", 3))
    sink = _RecordingSink(fail_on={2})

    stats = ExportPipeline(RecordExtractor(), sink).run(archive)

    assert [record.ordinal for record in sink.records] == [1, 3]
    assert stats.failed == 1
    assert stats.exported == 2
    assert stats.error_details == [{"record": 2, "stage": "clean", "error": "broken markup"}]
    assert sink.closed is True
    assert "Skipping record 2" in caplog.text


def test_bad_identifier_with_real_bulk_sink_is_isolated(tmp_path: Path) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), _page("B", 2))
    archive_text = bz2.decompress(archive.read_bytes()).decode("utf-8").replace("<id>2</id>", "<id>x2</id>")
    archive.write_bytes(bz2.compress(archive_text.encode("utf-8")))
    output = _KeepOpenStringIO()
    sink = BulkIndexSink(output, WikiTextCleaner(), url_base="https://en.wikipedia.org/wiki")

    stats = ExportPipeline(RecordExtractor(), sink).run(archive)

    assert stats.failed == 1
    assert stats.exported == 1
    assert len(output.getvalue().splitlines()) == 2


def test_cancellation_stops_between_records(tmp_path: Path) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), _page("B", 2), _page("C", 3))
    token = CancellationToken()

    class _CancellingSink(_RecordingSink):
        def write(self, record: Record) -> bool:
            token.cancel()
            return super().write(record)

    sink = _CancellingSink()
    stats = ExportPipeline(RecordExtractor(), sink, cancel_token=token).run(archive)

    assert [record.ordinal for record in sink.records] == [1]
    assert stats.cancelled is True
    assert stats.read == 1
    assert sink.closed is True


def test_limit_caps_records_read(tmp_path: Path) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), _page("B", 2), _page("C", 3))
    sink = _RecordingSink()

    stats = ExportPipeline(RecordExtractor(), sink, limit=2).run(archive)

    assert stats.read == 2
    assert len(sink.records) == 2


def test_zero_limit_reads_nothing(tmp_path: Path) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), _page("B", 2))
    sink = _RecordingSink()

    stats = ExportPipeline(RecordExtractor(), sink, limit=0).run(archive)

    assert stats.read == 0
    assert stats.admitted == 0
    assert sink.records == []
    assert sink.closed is True


def test_token_cancelled_before_run_reads_nothing(tmp_path: Path) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), _page("B", 2))
    sink = _RecordingSink()
    token = CancellationToken()
    token.cancel()

    stats = ExportPipeline(RecordExtractor(), sink, cancel_token=token).run(archive)

    assert stats.read == 0
    assert stats.cancelled is True
    assert sink.records == []
    assert sink.closed is True


def test_open_error_is_fatal_and_closes_sink(tmp_path: Path) -> None:
    sink = _RecordingSink()

    with pytest.raises(OpenError):
        ExportPipeline(RecordExtractor(), sink).run(tmp_path / "missing.xml.bz2")

    assert sink.closed is True
    assert sink.records == []


def test_truncated_dump_under_strict_policy(tmp_path: Path) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), "  <page>\n    <title>Cut</title>\n", tail="")
    sink = _RecordingSink()
    pipeline = ExportPipeline(RecordExtractor(truncation=TruncationPolicy.RAISE), sink)

    with pytest.raises(TruncatedInputError):
        pipeline.run(archive)

    assert [record.ordinal for record in sink.records] == [1]
    assert sink.closed is True


def test_truncated_dump_is_dropped_by_default(tmp_path: Path) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), "  <page>\n    <title>Cut</title>\n", tail="")
    sink = _RecordingSink()

    stats = ExportPipeline(RecordExtractor(), sink).run(archive)

    assert stats.read == 1
    assert sink.closed is True


def test_progress_is_logged(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    archive = _write_dump(tmp_path / "dump.xml.bz2", _page("A", 1), _page("B", 2))
    caplog.set_level("INFO")

    ExportPipeline(RecordExtractor(), _RecordingSink(), progress_every=1).run(archive)

    assert "Processed 2 records" in caplog.text
    assert "Total of 2 records read" in caplog.text


def test_stats_merge_accumulates_shard_runs() -> None:
    first = PipelineStats(read=3, admitted=2, exported=1, skipped=1, duration_ms=5)
    second = PipelineStats(read=4, admitted=4, exported=3, failed=1, cancelled=True, duration_ms=7)
    second.error_details.append({"record": 9, "stage": "clean", "error": "x"})

    merged = first.merge(second)

    assert merged.to_dict() == {
        "read": 7,
        "admitted": 6,
        "exported": 4,
        "skipped": 1,
        "filtered": 0,
        "failed": 1,
        "cancelled": True,
        "duration_ms": 12,
        "error_details": [{"record": 9, "stage": "clean", "error": "x"}],
    }


def test_invalid_arguments_are_rejected() -> None:
    with pytest.raises(ValueError):
        ExportPipeline(RecordExtractor(), _RecordingSink(), limit=-1)
    with pytest.raises(ValueError):
        ExportPipeline(RecordExtractor(), _RecordingSink(), progress_every=0)
