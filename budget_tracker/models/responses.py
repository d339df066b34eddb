"""
Response Models

Every operation of the service layer answers with the same envelope:
success flag, payload or error message, and an HTTP-like status code.
"""

from decimal import Decimal
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from budget_tracker.models.transaction import (
    BudgetType,
    Currency,
    ExchangeRates,
    ReferenceCurrency,
    Transaction,
)


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform success/error envelope."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    status_code: int = 200

    @classmethod
    def ok(cls, data: T, status_code: int = 200) -> "ApiResponse[T]":
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(cls, error: str, status_code: int = 500) -> "ApiResponse[T]":
        return cls(success=False, error=error, status_code=status_code)


class TransactionsPage(BaseModel):
    """
    One page of the list view.

    `total` counts every transaction that passed the date filter,
    not just the ones on this page.
    """

    transactions: list[Transaction] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)


class ExchangeRateQuote(BaseModel):
    """Rates for a currency on the date the user asked about."""

    from_currency: Currency
    date: str
    rates: ExchangeRates


class ConvertedAmounts(BaseModel):
    cad_amount: Decimal
    usd_amount: Decimal


class UploadedReceipt(BaseModel):
    """Where a receipt photo ended up."""

    url: str
    key: str
    content_type: str
    size_bytes: int = Field(ge=0)


class UserPreferences(BaseModel):
    """Per-browser form defaults. Lives in session state, never in the sheet."""

    reference_currency: ReferenceCurrency = ReferenceCurrency.CAD
    last_used_currency: Currency = Currency.CAD
    last_used_account: dict[BudgetType, str] = Field(
        default_factory=lambda: {
            BudgetType.PERSONAL: "",
            BudgetType.BUSINESS: "",
        }
    )
    budget_mode: BudgetType = BudgetType.PERSONAL
