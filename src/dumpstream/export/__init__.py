"""Export sinks and settings for admitted records."""

from .config import ExportSettings
from .remote import BulkIndexClient, BulkTransportError, RemoteBulkSink
from .sinks import (
    BulkIndexSink,
    ExportSink,
    PlainTextSink,
    RecordExportError,
    SentenceSink,
    build_article_url,
    is_redirect,
)

__all__ = [
    "BulkIndexClient",
    "BulkIndexSink",
    "BulkTransportError",
    "ExportSettings",
    "ExportSink",
    "PlainTextSink",
    "RecordExportError",
    "RemoteBulkSink",
    "SentenceSink",
    "build_article_url",
    "is_redirect",
]
