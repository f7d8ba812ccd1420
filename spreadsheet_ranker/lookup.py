"""Pure helpers that resolve columns, rows and cell values inside a grid."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .errors import NonNumericValueError
from .models import Number, RowMatch


def normalize_name(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _normalize_header(header: Optional[str]) -> str:
    return (header or "").strip().lower()


def _is_column_letter(spec: str) -> bool:
    return len(spec) == 1 and spec.isascii() and spec.isalpha()


def letter_to_index(letter: str) -> int:
    """A->0, B->1 ... AA->26 ..."""

    letter = (letter or "").strip().upper()
    if not letter:
        raise ValueError("Column letter must not be empty")
    index = 0
    for ch in letter:
        if not ("A" <= ch <= "Z"):
            raise ValueError(f"Invalid column letter: {letter}")
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def column_letter(index: int) -> str:
    if index < 0:
        raise ValueError(f"Column index must be zero or greater; received {index}")
    n = index + 1
    letters = ""
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def resolve_column(header_row: Sequence[str], spec: str) -> Optional[int]:
    """Map a column letter or header text to a zero-based column index.

    A single ASCII letter is an address and does not look at the header.
    Anything else is matched case-insensitively against the header row;
    the leftmost match wins. Returns None when no header matches.
    """

    spec = (spec or "").strip()
    if not spec:
        return None
    if _is_column_letter(spec):
        return letter_to_index(spec)

    key = _normalize_header(spec)
    for index, header in enumerate(header_row):
        if _normalize_header(header) == key:
            return index
    return None


def find_row(grid: Sequence[Sequence[str]], name_key: str, name_column_index: int) -> RowMatch:
    """Return the first data row whose name cell normalizes to ``name_key``."""

    for grid_index in range(1, len(grid)):
        row = grid[grid_index]
        if not row or len(row) <= name_column_index:
            continue
        if normalize_name(row[name_column_index]) == name_key:
            return RowMatch(matched=True, row_number=grid_index + 1, row_data=list(row))
    return RowMatch(matched=False)


def coerce_value(cell_value: Optional[str]) -> Number:
    if cell_value is None:
        return 0
    text = str(cell_value).strip()
    if not text:
        return 0
    # int()/float() accept digit separators, the sheet does not
    if "_" in text:
        raise NonNumericValueError(text)
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        raise NonNumericValueError(text) from None
    if not math.isfinite(number):
        raise NonNumericValueError(text)
    return _collapse_integral(number)


def _collapse_integral(number: Number) -> Number:
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def add_values(previous: Number, amount: Number) -> Number:
    return _collapse_integral(previous + amount)


def format_value(number: Number) -> str:
    """Textual form written back to the sheet."""

    return str(_collapse_integral(number))
