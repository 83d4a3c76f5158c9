"""Cheap namespace admission check applied before any cleaning."""

from __future__ import annotations

from dumpstream.archive.models import Record

PRIMARY_NAMESPACE = "0"
_NS_OPEN = "<ns>"


class NamespaceFilter:
    """Admit records in the primary namespace, or with no namespace tag."""

    def __init__(self, primary: str = PRIMARY_NAMESPACE) -> None:
        self._primary_tag = f"{_NS_OPEN}{primary}</ns>"

    def __call__(self, record: Record) -> bool:
        raw = record.raw
        return _NS_OPEN not in raw or self._primary_tag in raw


admit = NamespaceFilter()
