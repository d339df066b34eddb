"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for ledger storage.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing and local development
3. Keep the service layer decoupled from the storage implementation

Identity is the sheet row. A transaction read from row 7 has id 7 until a
row above it is inserted or deleted. Appends insert at row 2, so every
append shifts every existing id down by one, and a delete shifts the rows
below it up by one. Callers holding ids across writes must re-list, or pass
`expected_submitted_at` so a shifted row is detected instead of overwritten.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional, Sequence, Union

from budget_tracker.models.responses import TransactionsPage
from budget_tracker.models.transaction import (
    DEFAULT_ACCOUNTS,
    BudgetType,
    BusinessTransaction,
    PersonalTransaction,
    Schema,
    TransactionInput,
)


DEFAULT_LIST_LIMIT = 20

# First data row; row 1 holds the header
FIRST_DATA_ROW = 2


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """No transaction at the requested row."""
    pass


class InvalidRowError(StorageError):
    """Row id is not a data row (must be an integer >= 2)."""
    pass


class StaleRowError(StorageError):
    """The row changed since the caller read it; its id is no longer valid."""
    pass


class SheetNotFoundError(StorageError):
    """An expected worksheet is missing from the spreadsheet."""
    pass


class StoreUnavailableError(StorageError):
    """Could not reach the storage backend."""
    pass


class BudgetMismatchError(StorageError):
    """A transaction was sent to the other budget mode's ledger."""
    pass


def check_row_id(row_id: int) -> int:
    """
    Validate a row id.

    Raises:
        InvalidRowError: If row_id is not an integer >= 2
    """
    if isinstance(row_id, bool) or not isinstance(row_id, int) or row_id < FIRST_DATA_ROW:
        raise InvalidRowError("Invalid transaction ID")
    return row_id


def check_budget(budget: BudgetType, transaction: TransactionInput) -> BudgetType:
    """
    The row layout follows the target ledger, so the transaction must match it.

    Raises:
        BudgetMismatchError: If the transaction belongs to the other budget mode
    """
    budget = BudgetType(budget)
    if transaction.budget != budget:
        raise BudgetMismatchError(
            f"Cannot write a {BudgetType(transaction.budget).value} transaction "
            f"to the {budget.value} ledger"
        )
    return budget


def filter_and_sort(
    transactions: Iterable[Union[PersonalTransaction, BusinessTransaction]],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: Optional[int] = DEFAULT_LIST_LIMIT,
) -> TransactionsPage:
    """
    Apply the list view's filter, sort and limit.

    Dates compare as strings, which is correct for zero-padded ISO dates.
    The sort is stable, so equal dates keep sheet order (newest insert first).
    `total` is counted before the limit is applied.
    """
    selected = [
        t for t in transactions
        if (not start_date or t.transaction_date >= start_date)
        and (not end_date or t.transaction_date <= end_date)
    ]
    total = len(selected)

    selected.sort(key=lambda t: t.transaction_date, reverse=True)

    if limit:
        selected = selected[:limit]

    return TransactionsPage(transactions=selected, total=total)


def distinct_sorted(values: Iterable[str], seed: Sequence[str] = ()) -> list[str]:
    """Distinct non-empty values, ascending."""
    found = set(seed)
    found.update(v for v in values if v)
    return sorted(found)


class TransactionStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_transactions(
        self,
        budget: BudgetType,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = DEFAULT_LIST_LIMIT,
    ) -> TransactionsPage:
        """
        List transactions, newest transaction date first.

        Args:
            budget: Ledger to read
            start_date: Keep transactions on or after this YYYY-MM-DD
            end_date: Keep transactions on or before this YYYY-MM-DD
            limit: Maximum number returned; None returns all

        Returns:
            The page plus the filtered (pre-limit) total

        Raises:
            StoreUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def append_transaction(
        self,
        budget: BudgetType,
        transaction: TransactionInput,
    ) -> None:
        """
        Insert a transaction directly below the header (row 2).

        Raises:
            SheetNotFoundError: If the Transactions sheet is missing
            StoreUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        budget: BudgetType,
        row_id: int,
        transaction: TransactionInput,
        expected_submitted_at: Optional[str] = None,
    ) -> None:
        """
        Overwrite the whole row at row_id.

        Args:
            expected_submitted_at: If given, the row's current Submitted At
                must match, otherwise StaleRowError

        Raises:
            InvalidRowError: If row_id < 2
            NotFoundError: If row_id is past the last data row
            StaleRowError: If the row no longer holds the expected transaction
        """
        pass

    @abstractmethod
    async def delete_transaction(
        self,
        budget: BudgetType,
        row_id: int,
        expected_submitted_at: Optional[str] = None,
    ) -> None:
        """
        Remove the row at row_id; rows below shift up by one.

        Raises:
            InvalidRowError: If row_id < 2
            NotFoundError: If row_id is past the last data row
            StaleRowError: If the row no longer holds the expected transaction
        """
        pass

    @abstractmethod
    async def unique_values(
        self,
        budget: BudgetType,
        column: str,
        seed: Sequence[str] = (),
    ) -> list[str]:
        """
        Distinct non-empty values of one column, sorted ascending.

        Args:
            column: Column name from the budget's layout (e.g. "Vendor")
            seed: Values always included in the result
        """
        pass

    @abstractmethod
    async def fetch_schema(self, budget: BudgetType) -> Schema:
        """Build the category schema from the active Schema rows."""
        pass

    async def unique_vendors(self, budget: BudgetType) -> list[str]:
        return await self.unique_values(budget, "Vendor")

    async def unique_accounts(self, budget: BudgetType) -> list[str]:
        """Known accounts, always including the ledger's default accounts."""
        return await self.unique_values(
            budget, "Account", seed=DEFAULT_ACCOUNTS[BudgetType(budget)]
        )

    async def unique_tags(self, budget: BudgetType) -> list[str]:
        return await self.unique_values(budget, "Tag")
