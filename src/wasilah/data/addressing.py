"""A1-style cell addressing.

Pure arithmetic, 1-based rows and columns. Column letters use bijective
base-26 (``Z`` is followed by ``AA``), so addresses stay correct for any
column count.
"""

from __future__ import annotations


def column_letter(index: int) -> str:
    """Return the letters of 1-based column ``index`` (1 -> A, 27 -> AA)."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    letters = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(ord("A") + remainder))
    return "".join(reversed(letters))


def column_index(letters: str) -> int:
    """Inverse of :func:`column_letter`."""
    if not letters or not letters.isalpha():
        raise ValueError(f"Invalid column letters: {letters!r}")
    index = 0
    for char in letters.upper():
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index


def cell_ref(row: int, column: int) -> str:
    if row < 1:
        raise ValueError(f"Row must be >= 1, got {row}")
    return f"{column_letter(column)}{row}"


def range_ref(start_row: int, start_column: int, end_row: int, end_column: int) -> str:
    return f"{cell_ref(start_row, start_column)}:{cell_ref(end_row, end_column)}"


def sum_formula(column: int, first_row: int, last_row: int) -> str:
    """``SUM`` over one column, e.g. ``SUM(B2:B4)``."""
    return f"SUM({range_ref(first_row, column, last_row, column)})"
