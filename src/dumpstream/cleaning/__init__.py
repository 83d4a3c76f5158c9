"""Markup cleaning and sentence segmentation collaborators."""

from .base import MarkupCleaner, SentenceSegmenter
from .locales import CleanerLocale, resolve_locale
from .segmentation import RazdelSegmenter
from .wikitext import WikiTextCleaner

__all__ = [
    "CleanerLocale",
    "MarkupCleaner",
    "RazdelSegmenter",
    "SentenceSegmenter",
    "WikiTextCleaner",
    "resolve_locale",
]
