"""
Core Data Models for Budget Tracker

These models define the schemas for all data flowing through the system.
There are two families:

1. Read models (PersonalTransaction, BusinessTransaction) - what we decode
   from a spreadsheet row. Lenient: a hand-edited or damaged cell must not
   make the whole list unreadable.
2. Input models (PersonalTransactionInput, BusinessTransactionInput) - what
   the write path accepts. Strict: positive amounts, real calendar dates,
   non-empty category triple.

DESIGN DECISION: The personal/business split is a tagged union on the
`budget` field. The tag lives in memory only; the spreadsheet layout is
selected by the budget mode of the request, so existing sheets keep working.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BudgetType(str, Enum):
    """Which of the two independent ledgers a request targets."""
    PERSONAL = "personal"
    BUSINESS = "business"


class Currency(str, Enum):
    """Currencies a transaction can be entered in."""
    CAD = "CAD"
    USD = "USD"
    CNY = "CNY"
    JPY = "JPY"
    GBP = "GBP"


class ReferenceCurrency(str, Enum):
    """Currencies every transaction is converted into."""
    CAD = "CAD"
    USD = "USD"


class Distribute(str, Enum):
    """
    Amortization period of a personal transaction.

    Older rows may still hold "per month" / "semi-annual"; the codec
    maps those on read.
    """
    ONE_TIME = "one-time"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.CAD: "C$",
    Currency.USD: "$",
    Currency.CNY: "¥",
    Currency.JPY: "¥",
    Currency.GBP: "£",
}

# Offered in the account picker even when the ledger is empty
DEFAULT_ACCOUNTS: dict[BudgetType, tuple[str, ...]] = {
    BudgetType.PERSONAL: ("RBC Visa", "RBC Chequing", "Chase Chequing"),
    BudgetType.BUSINESS: ("RBC Business Visa", "RBC Business Chequing"),
}

ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class _CamelModel(BaseModel):
    """Accepts both snake_case and the camelCase keys the web client sends."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# READ MODELS - decoded from spreadsheet rows
# =============================================================================

class TransactionBase(_CamelModel):
    """
    Fields shared by both ledgers.

    `id` is the 1-based sheet row the transaction was read from. It is not
    stored in the sheet and shifts when rows above it are inserted or deleted.
    """

    id: Optional[int] = Field(
        default=None,
        description="Sheet row index; None until persisted and re-read"
    )
    transaction_date: str = Field(
        default="",
        description="YYYY-MM-DD"
    )
    table: str = ""
    subcategory: str = ""
    line_item: str = ""
    amount: Decimal = Decimal("0")
    currency: str = Currency.CAD.value
    cad_amount: Decimal = Decimal("0")
    cad_rate: Decimal = Decimal("1")
    usd_amount: Decimal = Decimal("0")
    usd_rate: Decimal = Decimal("1")
    vendor: Optional[str] = None
    note: Optional[str] = None
    receipt_url: Optional[str] = None
    account: str = ""
    tag: Optional[str] = None
    submitted_at: str = Field(
        default="",
        description="Client ISO timestamp of form submission"
    )


class PersonalTransaction(TransactionBase):
    """A row of the personal ledger."""

    budget: Literal[BudgetType.PERSONAL] = BudgetType.PERSONAL
    distribute: str = Distribute.ONE_TIME.value


class BusinessTransaction(TransactionBase):
    """A row of the business ledger."""

    budget: Literal[BudgetType.BUSINESS] = BudgetType.BUSINESS
    gst_hst_paid: Optional[Decimal] = None
    capital_expense: bool = False


Transaction = Annotated[
    Union[PersonalTransaction, BusinessTransaction],
    Field(discriminator="budget"),
]


# =============================================================================
# INPUT MODELS - accepted by the write path
# =============================================================================

class TransactionInputBase(_CamelModel):
    """
    A transaction as submitted by the form.

    Amounts and rates must be strictly positive. The category triple must be
    non-empty; whether it exists in the current schema is the form's job.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    transaction_date: str = Field(
        ...,
        pattern=ISO_DATE_PATTERN,
        description="YYYY-MM-DD"
    )
    table: str = Field(..., min_length=1)
    subcategory: str = Field(..., min_length=1)
    line_item: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: Currency
    cad_amount: Decimal = Field(..., gt=0)
    cad_rate: Decimal = Field(..., gt=0)
    usd_amount: Decimal = Field(..., gt=0)
    usd_rate: Decimal = Field(..., gt=0)
    vendor: Optional[str] = None
    note: Optional[str] = None
    receipt_url: Optional[str] = None
    account: str = Field(..., min_length=1)
    tag: Optional[str] = None
    submitted_at: str = Field(..., min_length=1)

    @field_validator('transaction_date')
    @classmethod
    def validate_calendar_date(cls, v: str) -> str:
        """2025-02-30 matches the pattern but is not a date."""
        date.fromisoformat(v)
        return v

    @field_validator('vendor', 'note', 'receipt_url', 'tag')
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class PersonalTransactionInput(TransactionInputBase):
    budget: Literal[BudgetType.PERSONAL] = BudgetType.PERSONAL
    distribute: Distribute = Distribute.ONE_TIME


class BusinessTransactionInput(TransactionInputBase):
    budget: Literal[BudgetType.BUSINESS] = BudgetType.BUSINESS
    gst_hst_paid: Optional[Decimal] = Field(default=None, ge=0)
    capital_expense: bool = False


TransactionInput = Annotated[
    Union[PersonalTransactionInput, BusinessTransactionInput],
    Field(discriminator="budget"),
]


# =============================================================================
# SCHEMA AND RATES
# =============================================================================

class Schema(_CamelModel):
    """
    Three-level category lookup.

    line_items is keyed by "table|subcategory".
    """

    tables: list[str] = Field(default_factory=list)
    subcategories: dict[str, list[str]] = Field(default_factory=dict)
    line_items: dict[str, list[str]] = Field(default_factory=dict)

    @staticmethod
    def line_item_key(table: str, subcategory: str) -> str:
        return f"{table}|{subcategory}"

    def subcategories_for(self, table: str) -> list[str]:
        return self.subcategories.get(table, [])

    def line_items_for(self, table: str, subcategory: str) -> list[str]:
        return self.line_items.get(self.line_item_key(table, subcategory), [])

    def has_path(self, table: str, subcategory: str, line_item: str) -> bool:
        return line_item in self.line_items_for(table, subcategory)


class ExchangeRates(BaseModel):
    """Rates from one currency into both reference currencies."""

    CAD: Decimal = Field(..., gt=0)
    USD: Decimal = Field(..., gt=0)

    def rate_for(self, currency: ReferenceCurrency) -> Decimal:
        return self.CAD if currency == ReferenceCurrency.CAD else self.USD
