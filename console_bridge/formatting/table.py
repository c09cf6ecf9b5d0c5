"""Bordered ASCII tables for console.table() output."""

from typing import Dict, List, Optional

from ..models.serialized import ArrayValue, ObjectValue, SerializedValue
from .render import render_cell


def _row_cells(row: SerializedValue) -> Dict[str, SerializedValue]:
    if isinstance(row, ObjectValue):
        return dict(row.fields)
    if isinstance(row, ArrayValue):
        return {str(i): item for i, item in enumerate(row.items)}
    return {}


def is_tabular(value: Optional[SerializedValue]) -> bool:
    """Check whether a value renders as a table.

    Tabular data is a non-empty array whose first item is an object or array.
    """
    return (
        isinstance(value, ArrayValue)
        and len(value.items) > 0
        and isinstance(value.items[0], (ObjectValue, ArrayValue))
    )


def render_table(data: ArrayValue, columns: Optional[List[str]] = None) -> str:
    """Render rows as a bordered table.

    Columns are the union of keys across rows in first-seen order. Each
    column is as wide as its widest header or cell; missing cells are empty.

    Args:
        data: Array of object (or array) rows
        columns: Optional subset of columns to show, in the given order

    Returns:
        Table text, or an empty string when no columns remain
    """
    rows = [_row_cells(item) for item in data.items]

    keys: List[str] = []
    for cells in rows:
        for key in cells:
            if key not in keys:
                keys.append(key)
    if columns:
        keys = [key for key in columns if key in keys]
    if not keys:
        return ""

    text_rows = [
        {key: render_cell(cells[key]) if key in cells else "" for key in keys}
        for cells in rows
    ]

    widths = {
        key: max([len(key)] + [len(row[key]) for row in text_rows])
        for key in keys
    }

    def border(left: str, middle: str, right: str) -> str:
        return left + middle.join("─" * (widths[key] + 2) for key in keys) + right

    def line(cells: Dict[str, str]) -> str:
        return "│ " + " │ ".join(cells[key].ljust(widths[key]) for key in keys) + " │"

    lines = [
        border("┌", "┬", "┐"),
        line({key: key for key in keys}),
        border("├", "┼", "┤"),
    ]
    lines.extend(line(row) for row in text_rows)
    lines.append(border("└", "┴", "┘"))
    return "\n".join(lines)
