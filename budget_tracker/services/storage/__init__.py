"""
Storage Services Package

Provides the abstract ledger interface, the row codec, the schema index,
and the Google Sheets and in-memory implementations.
"""

from budget_tracker.services.storage.interface import (
    DEFAULT_LIST_LIMIT,
    BudgetMismatchError,
    InvalidRowError,
    NotFoundError,
    SheetNotFoundError,
    StaleRowError,
    StorageError,
    StoreUnavailableError,
    TransactionStorageInterface,
)
from budget_tracker.services.storage.codec import (
    InvalidDateError,
    date_to_serial,
    decode,
    encode,
    migrate_distribute,
    serial_to_date,
)
from budget_tracker.services.storage.schema_index import build_schema
from budget_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
)
from budget_tracker.services.storage.memory import InMemoryTransactionStorage

__all__ = [
    # Interface
    "DEFAULT_LIST_LIMIT",
    "TransactionStorageInterface",
    # Exceptions
    "BudgetMismatchError",
    "InvalidRowError",
    "NotFoundError",
    "SheetNotFoundError",
    "StaleRowError",
    "StorageError",
    "StoreUnavailableError",
    # Codec
    "InvalidDateError",
    "date_to_serial",
    "decode",
    "encode",
    "migrate_distribute",
    "serial_to_date",
    # Schema index
    "build_schema",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryTransactionStorage",
]
