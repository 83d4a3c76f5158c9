"""Default page cleaner: lxml for the page envelope, regexes for wikitext."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import html
import re

from lxml import etree

from dumpstream.cleaning.locales import DEFAULT_LOCALE, CleanerLocale

_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_REF_SELF_CLOSING_RE = re.compile(r"<ref\b[^>]*/>", re.IGNORECASE)
_REF_RE = re.compile(r"<ref\b[^>]*>.*?</ref\s*>", re.IGNORECASE | re.DOTALL)
_TEMPLATE_RE = re.compile(r"\{\{[^{}]*\}\}")
_TABLE_RE = re.compile(r"\{\|(?:(?!\{\|).)*?\|\}", re.DOTALL)
_LINK_RE = re.compile(r"\[\[([^\[\]]*)\]\]")
_EXTERNAL_LINK_RE = re.compile(r"\[(?:https?:)?//[^\s\]]+(?:\s+([^\]]*))?\]")
_EMPHASIS_RE = re.compile(r"'{2,}")
_HEADING_RE = re.compile(r"^(={2,6})[ \t]*(.+?)[ \t]*\1[ \t]*$", re.MULTILINE)
_TAG_RE = re.compile(r"<[^<>]+>")
_MAGIC_WORD_RE = re.compile(r"__[A-Z]+__")
_LIST_MARKER_RE = re.compile(r"^[*#:;]+[ \t]+", re.MULTILINE)
_TRAILING_SPACE_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_LINES_RE = re.compile(r"\n{3,}")


@dataclass(frozen=True, slots=True)
class PageFields:
    title: str
    page_id: str
    text: str


@lru_cache(maxsize=1)
def parse_page(raw: str) -> PageFields:
    """Read title, id and wikitext from one ``<page>`` span."""

    parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=True, recover=True)
    try:
        root = etree.fromstring(raw.strip().encode("utf-8"), parser=parser)
    except etree.XMLSyntaxError as exc:
        raise ValueError(f"Record is not parseable page XML: {exc}") from exc
    if root is None:
        raise ValueError("Record is not parseable page XML")

    return PageFields(
        title=(root.findtext("title") or "").strip(),
        page_id=(root.findtext("id") or "").strip(),
        text=root.findtext("revision/text") or "",
    )


def _sub_until_stable(pattern: re.Pattern[str], replacement, text: str) -> str:
    while True:
        updated = pattern.sub(replacement, text)
        if updated == text:
            return updated
        text = updated


class WikiTextCleaner:
    """Strip wikitext markup into plain, newline-bearing text.

    Templates, tables, references, comments and media/category links are
    dropped; internal links keep their label. The article footer (references,
    external links and similar sections) is cut unless ``include_footer`` is set.
    """

    def __init__(
        self,
        locale: CleanerLocale = DEFAULT_LOCALE,
        *,
        include_title: bool = False,
        include_footer: bool = False,
    ) -> None:
        self._locale = locale
        self._include_title = include_title
        self._include_footer = include_footer
        self._footer_headings = frozenset(heading.casefold() for heading in locale.footer_headings)

    @property
    def locale(self) -> CleanerLocale:
        return self._locale

    def get_title(self, raw: str) -> str:
        return parse_page(raw).title

    def get_id(self, raw: str) -> str:
        return parse_page(raw).page_id

    def clean(self, raw: str) -> str:
        page = parse_page(raw)
        text = self.clean_wikitext(page.text)
        if self._include_title and page.title:
            return f"{page.title}\n\n{text}" if text else page.title
        return text

    def clean_wikitext(self, text: str) -> str:
        text = _COMMENT_RE.sub("", text)
        text = _REF_SELF_CLOSING_RE.sub("", text)
        text = _REF_RE.sub("", text)
        text = _sub_until_stable(_TEMPLATE_RE, "", text)
        text = _sub_until_stable(_TABLE_RE, "", text)
        text = _sub_until_stable(_LINK_RE, self._replace_link, text)
        text = _EXTERNAL_LINK_RE.sub(lambda match: match.group(1) or "", text)
        if not self._include_footer:
            text = self._strip_footer(text)
        text = _HEADING_RE.sub(lambda match: match.group(2), text)
        text = _EMPHASIS_RE.sub("", text)
        text = _TAG_RE.sub("", text)
        text = _MAGIC_WORD_RE.sub("", text)
        text = html.unescape(text)
        text = _LIST_MARKER_RE.sub("", text)
        text = _TRAILING_SPACE_RE.sub("", text)
        text = _BLANK_LINES_RE.sub("\n\n", text)
        return text.strip()

    def _replace_link(self, match: re.Match[str]) -> str:
        parts = match.group(1).split("|")
        target = parts[0].strip()
        if target.startswith(":"):
            target = target[1:]
        elif ":" in target:
            namespace = target.split(":", 1)[0].strip().casefold()
            if namespace in self._locale.dropped_link_prefixes:
                return ""

        label = parts[-1].strip() if len(parts) > 1 else ""
        return label or target

    def _strip_footer(self, text: str) -> str:
        for match in _HEADING_RE.finditer(text):
            if match.group(2).strip().casefold() in self._footer_headings:
                return text[: match.start()]
        return text
