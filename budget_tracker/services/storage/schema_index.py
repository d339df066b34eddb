"""
Schema Index

Builds the Table -> Subcategory -> Line Item lookup that drives the
cascading selects of the form.

The Schema worksheet has one row per line item:
    Table | Subcategory | Line Item | Active

Only rows whose Active cell is TRUE (any case) count. The index is rebuilt
from the full sheet on every fetch; categories change rarely but edits
must show up on the next request.
"""

from typing import Any, Iterable, Sequence

from budget_tracker.models.transaction import Schema


def _is_active(value: Any) -> bool:
    if value is True:
        return True
    return isinstance(value, str) and value.upper() == "TRUE"


def build_schema(rows: Iterable[Sequence[Any]]) -> Schema:
    """
    Build the category lookup from raw Schema rows.

    Order is first-seen; duplicates collapse. A table or subcategory whose
    rows are all inactive does not appear at all.
    """
    # dicts as insertion-ordered sets
    tables: dict[str, None] = {}
    subcategories: dict[str, dict[str, None]] = {}
    line_items: dict[str, dict[str, None]] = {}

    for row in rows:
        if len(row) < 4 or not _is_active(row[3]):
            continue

        table, subcategory, line_item = (str(cell) for cell in row[:3])

        tables.setdefault(table, None)
        subcategories.setdefault(table, {}).setdefault(subcategory, None)
        key = Schema.line_item_key(table, subcategory)
        line_items.setdefault(key, {}).setdefault(line_item, None)

    return Schema(
        tables=list(tables),
        subcategories={k: list(v) for k, v in subcategories.items()},
        line_items={k: list(v) for k, v in line_items.items()},
    )
