"""Line reader over a bz2-compressed dump file."""

from __future__ import annotations

import bz2
from dataclasses import dataclass
import io
from pathlib import Path
from typing import BinaryIO

_PREFIX = b"BZ"
_ENCODING = "utf-8"


@dataclass(slots=True)
class OpenError(Exception):
    """The archive could not be opened or is not a valid compressed stream."""

    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.message} (path={self.path})"


@dataclass(slots=True)
class SourceReadError(Exception):
    """A read failed after the archive was opened successfully."""

    message: str

    def __str__(self) -> str:
        return self.message


class DecompressingSource:
    """Sequential UTF-8 line reader over a bz2 archive.

    ``read_line`` returns ``None`` for end of input and raises
    :class:`SourceReadError` for a failed read, so callers can tell the two
    apart.
    """

    def __init__(self, handle: BinaryIO, decoder: bz2.BZ2File, reader: io.TextIOWrapper) -> None:
        self._handle = handle
        self._decoder = decoder
        self._reader = reader
        self._closed = False

    @classmethod
    def open(cls, path: str | Path) -> "DecompressingSource":
        archive = Path(path)
        try:
            handle = archive.open("rb")
        except OSError as exc:
            raise OpenError(archive, f"Failed to open archive: {exc}") from exc

        try:
            prefix = handle.read(len(_PREFIX))
            if prefix != _PREFIX:
                raise OpenError(archive, "Missing bz2 stream prefix")
            # The decoder expects the stream magic, so rewind past the check.
            handle.seek(0)
            decoder = bz2.BZ2File(handle, "rb")
            decoder.peek(1)
        except OpenError:
            handle.close()
            raise
        except (OSError, EOFError, ValueError) as exc:
            handle.close()
            raise OpenError(archive, f"Archive is not a valid bz2 stream: {exc}") from exc

        reader = io.TextIOWrapper(decoder, encoding=_ENCODING, errors="replace")
        return cls(handle, decoder, reader)

    @property
    def closed(self) -> bool:
        return self._closed

    def read_line(self) -> str | None:
        if self._closed:
            return None
        try:
            line = self._reader.readline()
        except (OSError, EOFError, ValueError) as exc:
            raise SourceReadError(f"Failed to read archive: {exc}") from exc
        if not line:
            return None
        return line.rstrip("\n")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._reader.close()
        finally:
            self._handle.close()

    def __enter__(self) -> "DecompressingSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
