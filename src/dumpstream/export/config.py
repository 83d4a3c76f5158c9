"""Runtime configuration for dump export runs."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping

from dumpstream.archive.extractor import TruncationPolicy
from dumpstream.cleaning.locales import resolve_locale

DEFAULT_LANGUAGE = "en"
DEFAULT_URL_BASE_TEMPLATE = "https://{language}.wikipedia.org/wiki"
DEFAULT_PRIMARY_NAMESPACE = "0"
DEFAULT_PROGRESS_EVERY = 10_000


@dataclass(frozen=True, slots=True)
class ExportSettings:
    """Validated export settings shared by the CLI and the pipeline."""

    language: str = DEFAULT_LANGUAGE
    url_base: str = DEFAULT_URL_BASE_TEMPLATE.format(language=DEFAULT_LANGUAGE)
    primary_namespace: str = DEFAULT_PRIMARY_NAMESPACE
    truncation: TruncationPolicy = TruncationPolicy.DROP
    progress_every: int = DEFAULT_PROGRESS_EVERY
    index_name: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ExportSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        language = resolve_locale(source.get("DUMPSTREAM_LANG", DEFAULT_LANGUAGE)).code

        url_base = source.get("DUMPSTREAM_URL_BASE", "").strip()
        if not url_base:
            url_base = DEFAULT_URL_BASE_TEMPLATE.format(language=language)
        if not (url_base.startswith("http://") or url_base.startswith("https://")):
            raise ValueError("DUMPSTREAM_URL_BASE must start with http:// or https://")

        primary_namespace = source.get("DUMPSTREAM_PRIMARY_NAMESPACE", DEFAULT_PRIMARY_NAMESPACE).strip()
        if not primary_namespace.lstrip("-").isdigit():
            raise ValueError("DUMPSTREAM_PRIMARY_NAMESPACE must be an integer")

        raw_truncation = source.get("DUMPSTREAM_TRUNCATION", TruncationPolicy.DROP.value).strip().lower()
        try:
            truncation = TruncationPolicy(raw_truncation)
        except ValueError as exc:
            raise ValueError("DUMPSTREAM_TRUNCATION must be 'drop' or 'raise'") from exc

        raw_progress = source.get("DUMPSTREAM_PROGRESS_EVERY", str(DEFAULT_PROGRESS_EVERY)).strip()
        try:
            progress_every = int(raw_progress)
        except ValueError as exc:
            raise ValueError("DUMPSTREAM_PROGRESS_EVERY must be an integer") from exc
        if progress_every < 1:
            raise ValueError("DUMPSTREAM_PROGRESS_EVERY must be >= 1")

        index_name = source.get("DUMPSTREAM_INDEX_NAME", "").strip() or None

        return cls(
            language=language,
            url_base=url_base.rstrip("/"),
            primary_namespace=str(int(primary_namespace)),
            truncation=truncation,
            progress_every=progress_every,
            index_name=index_name,
        )
