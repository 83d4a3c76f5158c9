"""Per-language cleaning rules for the supported wikis."""

from __future__ import annotations

from dataclasses import dataclass
import logging

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CleanerLocale:
    """Language-specific keywords used while stripping wikitext."""

    code: str
    redirect_markers: tuple[str, ...]
    footer_headings: tuple[str, ...]
    dropped_link_prefixes: tuple[str, ...]


_SHARED_PREFIXES = ("file", "image", "media", "category")

EN = CleanerLocale(
    code="en",
    redirect_markers=("#redirect",),
    footer_headings=("references", "external links", "see also", "further reading", "notes"),
    dropped_link_prefixes=_SHARED_PREFIXES,
)

DE = CleanerLocale(
    code="de",
    redirect_markers=("#redirect", "#weiterleitung"),
    footer_headings=("einzelnachweise", "weblinks", "siehe auch", "literatur", "anmerkungen"),
    dropped_link_prefixes=_SHARED_PREFIXES + ("datei", "bild", "kategorie"),
)

ZH = CleanerLocale(
    code="zh",
    redirect_markers=("#redirect", "#重定向"),
    footer_headings=("参考文献", "外部链接", "参见", "参考资料", "注释"),
    dropped_link_prefixes=_SHARED_PREFIXES + ("文件", "图像", "分类"),
)

DEFAULT_LOCALE = EN

_LOCALES: dict[str, CleanerLocale] = {locale.code: locale for locale in (EN, DE, ZH)}


def resolve_locale(code: str | None) -> CleanerLocale:
    """Map a two-letter code to a locale, falling back to English."""

    if not code:
        return DEFAULT_LOCALE
    locale = _LOCALES.get(code.strip().lower())
    if locale is None:
        LOGGER.warning("Unsupported language %r, falling back to %s", code, DEFAULT_LOCALE.code)
        return DEFAULT_LOCALE
    return locale


def supported_languages() -> list[str]:
    return sorted(_LOCALES)
