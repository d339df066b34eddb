"""
Data Models Package

This package contains all Pydantic models used in Budget Tracker.
All data flowing through the system must conform to these schemas.
"""

from budget_tracker.models.transaction import (
    CURRENCY_SYMBOLS,
    DEFAULT_ACCOUNTS,
    BudgetType,
    BusinessTransaction,
    BusinessTransactionInput,
    Currency,
    Distribute,
    ExchangeRates,
    PersonalTransaction,
    PersonalTransactionInput,
    ReferenceCurrency,
    Schema,
    Transaction,
    TransactionInput,
)
from budget_tracker.models.responses import (
    ApiResponse,
    ConvertedAmounts,
    ExchangeRateQuote,
    TransactionsPage,
    UploadedReceipt,
    UserPreferences,
)
from budget_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "CURRENCY_SYMBOLS",
    "DEFAULT_ACCOUNTS",
    "BudgetType",
    "BusinessTransaction",
    "BusinessTransactionInput",
    "Currency",
    "Distribute",
    "ExchangeRates",
    "PersonalTransaction",
    "PersonalTransactionInput",
    "ReferenceCurrency",
    "Schema",
    "Transaction",
    "TransactionInput",
    # Responses
    "ApiResponse",
    "ConvertedAmounts",
    "ExchangeRateQuote",
    "TransactionsPage",
    "UploadedReceipt",
    "UserPreferences",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
