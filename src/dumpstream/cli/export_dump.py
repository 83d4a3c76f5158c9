"""CLI entrypoint for exporting a compressed wiki dump."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
import signal

from dotenv import load_dotenv

from dumpstream.archive.extractor import RecordExtractor, TruncatedInputError, TruncationPolicy
from dumpstream.archive.filters import NamespaceFilter
from dumpstream.archive.source import OpenError
from dumpstream.cleaning.locales import resolve_locale, supported_languages
from dumpstream.cleaning.segmentation import RazdelSegmenter
from dumpstream.cleaning.wikitext import WikiTextCleaner
from dumpstream.export.config import ExportSettings
from dumpstream.export.sinks import BulkIndexSink, ExportSink, PlainTextSink, SentenceSink
from dumpstream.pipeline.driver import CancellationToken, ExportPipeline

load_dotenv()

LOGGER = logging.getLogger(__name__)

_MODES = ("text", "sentences", "bulk")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export articles from a bz2 wiki dump")
    parser.add_argument("--input", required=True, help="Path to the .bz2 dump")
    parser.add_argument("--output", required=True, help="Output file path")
    parser.add_argument(
        "--lang",
        default=None,
        help=f"Two-letter language code ({', '.join(supported_languages())}); others fall back to en",
    )
    parser.add_argument("--mode", choices=_MODES, default="text", help="Output format")
    parser.add_argument("--strict", action="store_true", help="Fail when the dump ends inside a page")
    parser.add_argument("--limit", type=int, default=None, help="Stop after reading this many pages")
    parser.add_argument("--index-name", default=None, help="Index name for bulk action lines")
    parser.add_argument("--url-base", default=None, help="Base address for article URLs")
    return parser


def _build_settings(args: argparse.Namespace) -> ExportSettings:
    environ = dict(os.environ)
    if args.lang:
        environ["DUMPSTREAM_LANG"] = args.lang
    if args.url_base:
        environ["DUMPSTREAM_URL_BASE"] = args.url_base
    if args.index_name:
        environ["DUMPSTREAM_INDEX_NAME"] = args.index_name
    if args.strict:
        environ["DUMPSTREAM_TRUNCATION"] = TruncationPolicy.RAISE.value
    return ExportSettings.from_env(environ)


def _build_sink(mode: str, output_path: Path, settings: ExportSettings) -> ExportSink:
    locale = resolve_locale(settings.language)
    cleaner = WikiTextCleaner(locale)
    output = output_path.open("w", encoding="utf-8", newline="\n")

    if mode == "sentences":
        return SentenceSink(output, cleaner, RazdelSegmenter(), redirect_markers=locale.redirect_markers)
    if mode == "bulk":
        return BulkIndexSink(
            output,
            cleaner,
            url_base=settings.url_base,
            index_name=settings.index_name,
            redirect_markers=locale.redirect_markers,
        )
    return PlainTextSink(output, cleaner, redirect_markers=locale.redirect_markers)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.limit is not None and args.limit < 0:
        parser.error("--limit cannot be negative")
    try:
        settings = _build_settings(args)
    except ValueError as exc:
        parser.error(str(exc))

    input_path = Path(args.input)
    try:
        sink = _build_sink(args.mode, Path(args.output), settings)
    except OSError as exc:
        LOGGER.error("Cannot open output %s: %s", args.output, exc)
        return 1

    token = CancellationToken()
    pipeline = ExportPipeline(
        RecordExtractor(truncation=settings.truncation),
        sink,
        admit=NamespaceFilter(settings.primary_namespace),
        cancel_token=token,
        limit=args.limit,
        progress_every=settings.progress_every,
    )

    previous_handler = signal.signal(signal.SIGINT, lambda _signum, _frame: token.cancel())
    try:
        stats = pipeline.run(input_path)
    except OpenError as exc:
        LOGGER.error("Cannot read dump: %s", exc)
        return 1
    except TruncatedInputError as exc:
        LOGGER.error("Dump is truncated: %s", exc)
        return 1
    except OSError as exc:
        LOGGER.error("Export failed: %s", exc)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    print(json.dumps(stats.to_dict(), ensure_ascii=True, indent=2))
    return 0 if stats.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
