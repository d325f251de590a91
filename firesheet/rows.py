"""Locating the data region of a sheet snapshot.

A load writes the header, one row per document and then a two-cell audit
footer. Anything at the bottom of the grid with two or fewer filled cells is
treated as such an annotation and never as a document row.
"""

from __future__ import annotations

from typing import Any, Sequence

ANNOTATION_MAX_CELLS = 2


def is_empty(cell: Any) -> bool:
    if cell is None:
        return True
    if isinstance(cell, str):
        return not cell.strip()
    return False


def count_filled(row: Sequence[Any]) -> int:
    return sum(1 for cell in row if not is_empty(cell))


def last_data_row_index(rows: Sequence[Sequence[Any]], header_index: int = 0) -> int:
    """Index of the last real data row, or ``header_index`` when there is none."""

    index = len(rows) - 1
    while index > header_index:
        if count_filled(rows[index]) > ANNOTATION_MAX_CELLS:
            return index
        index -= 1
    return header_index


def is_writable_row(
    row: Sequence[Any],
    identifier_index: int,
    row_index: int,
    header_index: int = 0,
) -> bool:
    if row_index == header_index:
        return False
    if identifier_index < 0 or identifier_index >= len(row):
        return False
    return not is_empty(row[identifier_index])
