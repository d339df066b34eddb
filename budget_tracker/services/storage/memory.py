"""
In-Memory Storage Implementation

Keeps each ledger as a list of encoded rows with exactly the row-index
semantics of the spreadsheet: list position 0 is sheet row 2, appends
insert at the front, deletes shift later rows up.

Used by the tests and by local development when no spreadsheet is
configured. Data is lost when the process exits.
"""

from typing import Any, Iterable, Optional, Sequence

from budget_tracker.models.responses import TransactionsPage
from budget_tracker.models.transaction import BudgetType, Schema, TransactionInput
from budget_tracker.services.storage.codec import decode, encode, layout_for
from budget_tracker.services.storage.interface import (
    DEFAULT_LIST_LIMIT,
    FIRST_DATA_ROW,
    NotFoundError,
    StaleRowError,
    TransactionStorageInterface,
    check_budget,
    check_row_id,
    distinct_sorted,
    filter_and_sort,
)
from budget_tracker.services.storage.schema_index import build_schema


def _as_cells(row: Iterable[Any]) -> list[str]:
    """Store what a sheet read would return: every cell as text."""
    return ["" if value is None else str(value) for value in row]


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Row-list backed ledger storage."""

    def __init__(
        self,
        rows: Optional[dict[BudgetType, list[Sequence[Any]]]] = None,
        schema_rows: Optional[dict[BudgetType, list[Sequence[Any]]]] = None,
    ):
        self._rows: dict[BudgetType, list[list[str]]] = {
            budget: [_as_cells(r) for r in (rows or {}).get(budget, [])]
            for budget in BudgetType
        }
        self._schema_rows: dict[BudgetType, list[Sequence[Any]]] = {
            budget: list((schema_rows or {}).get(budget, []))
            for budget in BudgetType
        }

    def raw_rows(self, budget: BudgetType) -> list[list[str]]:
        """Data rows as stored, top to bottom."""
        return [list(r) for r in self._rows[BudgetType(budget)]]

    def _position(
        self,
        budget: BudgetType,
        row_id: int,
        expected_submitted_at: Optional[str],
    ) -> int:
        check_row_id(row_id)
        rows = self._rows[BudgetType(budget)]
        position = row_id - FIRST_DATA_ROW
        if position >= len(rows):
            raise NotFoundError(f"Transaction {row_id} not found")

        if expected_submitted_at is not None:
            index = layout_for(budget).index("Submitted At")
            current = rows[position]
            actual = current[index] if index < len(current) else ""
            if actual != expected_submitted_at:
                raise StaleRowError(
                    f"Transaction {row_id} has changed since it was loaded; "
                    "reload the list and try again"
                )
        return position

    async def list_transactions(
        self,
        budget: BudgetType,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = DEFAULT_LIST_LIMIT,
    ) -> TransactionsPage:
        transactions = [
            decode(row, index, budget)
            for index, row in enumerate(self._rows[BudgetType(budget)])
        ]
        return filter_and_sort(transactions, start_date, end_date, limit)

    async def append_transaction(
        self,
        budget: BudgetType,
        transaction: TransactionInput,
    ) -> None:
        budget = check_budget(budget, transaction)
        self._rows[budget].insert(0, _as_cells(encode(transaction)))

    async def update_transaction(
        self,
        budget: BudgetType,
        row_id: int,
        transaction: TransactionInput,
        expected_submitted_at: Optional[str] = None,
    ) -> None:
        budget = check_budget(budget, transaction)
        position = self._position(budget, row_id, expected_submitted_at)
        self._rows[budget][position] = _as_cells(encode(transaction))

    async def delete_transaction(
        self,
        budget: BudgetType,
        row_id: int,
        expected_submitted_at: Optional[str] = None,
    ) -> None:
        position = self._position(budget, row_id, expected_submitted_at)
        del self._rows[BudgetType(budget)][position]

    async def unique_values(
        self,
        budget: BudgetType,
        column: str,
        seed: Sequence[str] = (),
    ) -> list[str]:
        index = layout_for(budget).index(column)
        return distinct_sorted(
            (row[index] for row in self._rows[BudgetType(budget)] if index < len(row)),
            seed,
        )

    async def fetch_schema(self, budget: BudgetType) -> Schema:
        return build_schema(self._schema_rows[BudgetType(budget)])
