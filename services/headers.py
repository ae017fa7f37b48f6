"""Validation and canonicalisation of the CSV header row."""

from __future__ import annotations

from typing import Iterable, List

from models.records import REQUIRED_COLUMNS
from services.errors import MissingColumnError

_CANONICAL_BY_LOWER = {column.lower(): column for column in REQUIRED_COLUMNS}


def _key(header: str) -> str:
    return header.strip().lower()


def validate_headers(headers: Iterable[str]) -> None:
    """Raise ``MissingColumnError`` for the first required column not present."""
    present = {_key(header) for header in headers}
    for lowered, canonical in _CANONICAL_BY_LOWER.items():
        if lowered not in present:
            raise MissingColumnError(canonical)


def normalize_headers(headers: Iterable[str]) -> List[str]:
    """Return the header row with required columns in their canonical spelling.

    Unrecognised columns pass through untouched and keep their position.
    """
    headers = list(headers)
    validate_headers(headers)
    return [_CANONICAL_BY_LOWER.get(_key(header), header) for header in headers]
