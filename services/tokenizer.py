"""Adapters between byte/text sources and ``csv.reader``."""

from __future__ import annotations

import codecs
import csv
import io
from functools import partial
from typing import BinaryIO, Iterable, Iterator, List

from services.errors import ParseError

DEFAULT_ENCODING = "utf-8-sig"


def iter_stream_chunks(handle: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """Read ``handle`` in pieces of at most ``chunk_size`` bytes."""
    return iter(partial(handle.read, chunk_size), b"")


def iter_chunk_lines(chunks: Iterable[bytes], encoding: str = DEFAULT_ENCODING) -> Iterator[str]:
    """Decode arbitrary byte chunks into complete text lines, endings kept.

    A chunk may end in the middle of a multi-byte character or a line; the tail is
    held back until the rest arrives.
    """
    decoder = codecs.getincrementaldecoder(encoding)()
    pending = ""
    try:
        for chunk in chunks:
            pending += decoder.decode(chunk)
            cut = pending.rfind("\n")
            if cut == -1:
                continue
            complete, pending = pending[: cut + 1], pending[cut + 1 :]
            yield from io.StringIO(complete, newline="")
        pending += decoder.decode(b"", final=True)
        if pending:
            yield from io.StringIO(pending, newline="")
    finally:
        close = getattr(chunks, "close", None)
        if callable(close):
            close()


class CsvTokenizer:
    """Iterate a source of text lines as trimmed CSV rows.

    Blank lines are skipped. Any tokenizer or decoding failure surfaces as
    ``ParseError``.
    """

    def __init__(self, lines: Iterable[str]) -> None:
        self._lines = lines
        self._reader = csv.reader(lines, strict=True)
        self._closed = False

    @property
    def line_num(self) -> int:
        return self._reader.line_num

    def __iter__(self) -> "CsvTokenizer":
        return self

    def __next__(self) -> List[str]:
        while True:
            try:
                values = next(self._reader)
            except csv.Error as exc:
                raise ParseError(f"Malformed CSV on line {self.line_num}: {exc}") from exc
            except UnicodeDecodeError as exc:
                raise ParseError(f"CSV input is not valid text: {exc.reason}") from exc
            fields = [value.strip() for value in values]
            if fields and fields != [""]:
                return fields

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._lines, "close", None)
        if callable(close):
            close()
