"""
Record Codec

Maps a transaction to and from one positional row of the Transactions
worksheet. Each budget mode has its own fixed column layout:

Personal (17 cols, A:Q):
    Date, Table, Subcategory, Line Item, Amount, Currency,
    CAD Amount, CAD Rate, USD Amount, USD Rate, Vendor, Note,
    Receipt URL, Account, Distribute, Tag, Submitted At

Business (18 cols, A:R):
    Date, Table, Subcategory, Line Item, Amount, Currency,
    CAD Amount, CAD Rate, USD Amount, USD Rate, Vendor, Note,
    Receipt URL, Account, Tag, GST/HST Paid, Capital Expense, Submitted At

Reading is forgiving: a missing or unparsable cell falls back to a default
so that one hand-edited row cannot break the list view. Writing is strict:
a malformed date is rejected rather than turned into a wrong serial number.
"""

import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence, Union

from gspread.utils import rowcol_to_a1

from budget_tracker.models.transaction import (
    BudgetType,
    BusinessTransaction,
    BusinessTransactionInput,
    Currency,
    Distribute,
    PersonalTransaction,
    PersonalTransactionInput,
)


# Serial date 0 in the spreadsheet's native date system
SERIAL_EPOCH = date(1899, 12, 30)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SERIAL = re.compile(r"^\d+(\.\d+)?$")

# Values written by an earlier version of the form
LEGACY_DISTRIBUTE = {
    "per month": Distribute.MONTHLY.value,
    "semi-annual": Distribute.YEARLY.value,
}

PERSONAL_COLUMNS = (
    "Date",
    "Table",
    "Subcategory",
    "Line Item",
    "Amount",
    "Currency",
    "CAD Amount",
    "CAD Rate",
    "USD Amount",
    "USD Rate",
    "Vendor",
    "Note",
    "Receipt URL",
    "Account",
    "Distribute",
    "Tag",
    "Submitted At",
)

BUSINESS_COLUMNS = (
    "Date",
    "Table",
    "Subcategory",
    "Line Item",
    "Amount",
    "Currency",
    "CAD Amount",
    "CAD Rate",
    "USD Amount",
    "USD Rate",
    "Vendor",
    "Note",
    "Receipt URL",
    "Account",
    "Tag",
    "GST/HST Paid",
    "Capital Expense",
    "Submitted At",
)

AnyTransaction = Union[
    PersonalTransaction,
    BusinessTransaction,
    PersonalTransactionInput,
    BusinessTransactionInput,
]
Cell = Union[str, int, float]


class InvalidDateError(ValueError):
    """A date string is not a real YYYY-MM-DD calendar date."""
    pass


@dataclass(frozen=True)
class SheetLayout:
    """Column order of the Transactions worksheet for one budget mode."""

    budget: BudgetType
    columns: tuple[str, ...]

    @property
    def width(self) -> int:
        return len(self.columns)

    @property
    def last_column(self) -> str:
        return self.column_letter(self.columns[-1])

    def index(self, column: str) -> int:
        """0-based position of a column."""
        try:
            return self.columns.index(column)
        except ValueError:
            raise KeyError(
                f"{self.budget.value} layout has no column {column!r}"
            ) from None

    def column_letter(self, column: str) -> str:
        return rowcol_to_a1(1, self.index(column) + 1).rstrip("0123456789")

    def row_range(self, row: int) -> str:
        """A1 range covering one full row, e.g. A5:Q5."""
        return f"A{row}:{self.last_column}{row}"

    def data_range(self) -> str:
        """A1 range covering every data row below the header."""
        return f"A2:{self.last_column}"

    def column_range(self, column: str) -> str:
        letter = self.column_letter(column)
        return f"{letter}2:{letter}"


LAYOUTS: dict[BudgetType, SheetLayout] = {
    BudgetType.PERSONAL: SheetLayout(BudgetType.PERSONAL, PERSONAL_COLUMNS),
    BudgetType.BUSINESS: SheetLayout(BudgetType.BUSINESS, BUSINESS_COLUMNS),
}


def layout_for(budget: BudgetType) -> SheetLayout:
    return LAYOUTS[BudgetType(budget)]


# =============================================================================
# DATES
# =============================================================================

def date_to_serial(value: str) -> int:
    """
    Convert YYYY-MM-DD to the spreadsheet serial day count.

    serial("1899-12-30") == 0, serial("1900-01-01") == 2.

    Raises:
        InvalidDateError: If the string is not a real calendar date
    """
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise InvalidDateError(f"Invalid date format: {value!r} (expected YYYY-MM-DD)")
    try:
        parsed = date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateError(f"Invalid date: {value!r}") from e
    return (parsed - SERIAL_EPOCH).days


def serial_to_date(serial: Union[int, float, str]) -> str:
    """Inverse of date_to_serial; a fractional part (time of day) is dropped."""
    days = int(float(serial))
    return (SERIAL_EPOCH + timedelta(days=days)).isoformat()


# =============================================================================
# CELL PARSING
# =============================================================================

def migrate_distribute(value: Optional[str]) -> str:
    """Map legacy distribute values; empty means one-time."""
    if not value:
        return Distribute.ONE_TIME.value
    return LEGACY_DISTRIBUTE.get(value, value)


def _cell(row: Sequence, index: int) -> str:
    try:
        value = row[index]
    except IndexError:
        return ""
    if value is None:
        return ""
    return str(value)


def _number(text: str, default: Decimal) -> Decimal:
    """
    Parse a numeric cell.

    Formatted reads carry thousands separators ("1,234.50"). Zero and
    garbage both fall back to the default, so a zero rate reads as 1.
    """
    cleaned = text.replace(",", "").strip()
    if not cleaned:
        return default
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return default
    if not value.is_finite() or value == 0:
        return default
    return value


def _optional_number(text: str) -> Optional[Decimal]:
    cleaned = text.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _date(text: str) -> str:
    """Formatted reads give YYYY-MM-DD, unformatted ones the serial number."""
    text = text.strip()
    if _SERIAL.match(text):
        return serial_to_date(text)
    return text


def _currency(text: str) -> str:
    try:
        return Currency(text.strip().upper()).value
    except ValueError:
        return Currency.CAD.value


# =============================================================================
# DECODE / ENCODE
# =============================================================================

def decode(
    row: Sequence,
    index: int,
    budget: BudgetType,
) -> Union[PersonalTransaction, BusinessTransaction]:
    """
    Decode one data row.

    Args:
        row: Cells of the row, possibly shorter than the layout
        index: 0-based position in a scan that starts at sheet row 2
        budget: Which layout the row uses

    Returns:
        The transaction, with id set to its sheet row (index + 2)
    """
    layout = layout_for(budget)

    def text(column: str) -> str:
        return _cell(row, layout.index(column))

    base = dict(
        id=index + 2,
        transaction_date=_date(text("Date")),
        table=text("Table"),
        subcategory=text("Subcategory"),
        line_item=text("Line Item"),
        amount=_number(text("Amount"), Decimal("0")),
        currency=_currency(text("Currency")),
        cad_amount=_number(text("CAD Amount"), Decimal("0")),
        cad_rate=_number(text("CAD Rate"), Decimal("1")),
        usd_amount=_number(text("USD Amount"), Decimal("0")),
        usd_rate=_number(text("USD Rate"), Decimal("1")),
        vendor=text("Vendor") or None,
        note=text("Note") or None,
        receipt_url=text("Receipt URL") or None,
        account=text("Account"),
        tag=text("Tag") or None,
        submitted_at=text("Submitted At"),
    )

    if layout.budget == BudgetType.PERSONAL:
        return PersonalTransaction(
            **base,
            distribute=migrate_distribute(text("Distribute")),
        )

    return BusinessTransaction(
        **base,
        gst_hst_paid=_optional_number(text("GST/HST Paid")),
        capital_expense=text("Capital Expense").strip().upper() == "TRUE",
    )


def _plain(value) -> str:
    """Enum members are written as their value."""
    return getattr(value, "value", value)


def encode(transaction: AnyTransaction) -> list[Cell]:
    """
    Encode a transaction into the row layout of its budget mode.

    Numbers are written as numbers so the sheet can format and sum them.
    The sheet stores them as doubles, so amounts and rates keep at most 15
    significant digits; anything finer is rounded on the way in.

    Raises:
        InvalidDateError: If transaction_date is malformed
    """
    row: list[Cell] = [
        date_to_serial(transaction.transaction_date),
        transaction.table,
        transaction.subcategory,
        transaction.line_item,
        float(transaction.amount),
        _plain(transaction.currency),
        float(transaction.cad_amount),
        float(transaction.cad_rate),
        float(transaction.usd_amount),
        float(transaction.usd_rate),
        transaction.vendor or "",
        transaction.note or "",
        transaction.receipt_url or "",
        transaction.account,
    ]

    if transaction.budget == BudgetType.PERSONAL:
        row += [
            _plain(transaction.distribute),
            transaction.tag or "",
            transaction.submitted_at,
        ]
    else:
        row += [
            transaction.tag or "",
            str(transaction.gst_hst_paid) if transaction.gst_hst_paid is not None else "",
            "TRUE" if transaction.capital_expense else "FALSE",
            transaction.submitted_at,
        ]

    return row
