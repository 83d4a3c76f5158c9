"""Archive reading: decompression, record extraction, namespace filtering."""

from .extractor import RecordExtractor, TruncatedInputError, TruncationPolicy
from .filters import NamespaceFilter, admit
from .models import Record
from .source import DecompressingSource, OpenError, SourceReadError

__all__ = [
    "DecompressingSource",
    "NamespaceFilter",
    "OpenError",
    "Record",
    "RecordExtractor",
    "SourceReadError",
    "TruncatedInputError",
    "TruncationPolicy",
    "admit",
]
