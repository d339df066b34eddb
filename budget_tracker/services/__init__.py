"""Services package."""

from budget_tracker.services.image import (
    InvalidReceiptError,
    ReceiptError,
    ReceiptUploadError,
    ReceiptUploadService,
)
from budget_tracker.services.rates import (
    ExchangeRateError,
    ExchangeRateService,
    RateCache,
    clear_rate_cache,
    convert_amount,
)
from budget_tracker.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    InvalidRowError,
    NotFoundError,
    SheetNotFoundError,
    StaleRowError,
    StorageError,
    StoreUnavailableError,
    TransactionStorageInterface,
)

__all__ = [
    # Receipt services
    "InvalidReceiptError",
    "ReceiptError",
    "ReceiptUploadError",
    "ReceiptUploadService",
    # Rate services
    "ExchangeRateError",
    "ExchangeRateService",
    "RateCache",
    "clear_rate_cache",
    "convert_amount",
    # Storage services
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryTransactionStorage",
    "InvalidRowError",
    "NotFoundError",
    "SheetNotFoundError",
    "StaleRowError",
    "StorageError",
    "StoreUnavailableError",
    "TransactionStorageInterface",
]
