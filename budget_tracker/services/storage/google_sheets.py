"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. The ledger owner can read, sort and fix rows directly in Sheets
2. No database setup required
3. Built-in backup and sharing
4. Easy to export/migrate later

TRADEOFFS:
- Row position is the transaction id, so ids shift on insert/delete
- No transactions (a concurrent writer can shift rows under us)
- Limited query capabilities (we filter in Python)
- No retries: a failed call surfaces immediately to the caller

Each budget mode has its own spreadsheet with two worksheets:
"Transactions" (header in row 1, newest row at row 2) and "Schema".
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

import gspread
import requests
import structlog
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from budget_tracker.config import ConfigurationError, GoogleSheetsSettings, get_settings
from budget_tracker.models.responses import TransactionsPage
from budget_tracker.models.transaction import BudgetType, Schema, TransactionInput
from budget_tracker.services.storage.codec import (
    Cell,
    SheetLayout,
    decode,
    encode,
    layout_for,
)
from budget_tracker.services.storage.interface import (
    DEFAULT_LIST_LIMIT,
    NotFoundError,
    SheetNotFoundError,
    StaleRowError,
    StoreUnavailableError,
    TransactionStorageInterface,
    check_budget,
    check_row_id,
    distinct_sorted,
    filter_and_sort,
)
from budget_tracker.services.storage.schema_index import build_schema


logger = structlog.get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

SCHEMA_RANGE = "A2:D"

# Number formats applied to a freshly inserted row
DATE_FORMAT = {"type": "DATE", "pattern": "yyyy-mm-dd"}
AMOUNT_FORMAT = {"type": "NUMBER", "pattern": "#,##0.00"}
RATE_FORMAT = {"type": "NUMBER", "pattern": "0.00000"}

COLUMN_FORMATS = (
    ("Date", DATE_FORMAT),
    ("Amount", AMOUNT_FORMAT),
    ("CAD Amount", AMOUNT_FORMAT),
    ("USD Amount", AMOUNT_FORMAT),
    ("CAD Rate", RATE_FORMAT),
    ("USD Rate", RATE_FORMAT),
)

# Transport-level failures; anything here means "store unavailable"
TRANSPORT_ERRORS = (
    gspread.exceptions.APIError,
    requests.exceptions.RequestException,
    GoogleAuthError,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and resolves budget modes to spreadsheets
    and worksheet titles to worksheets.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheets: dict[BudgetType, gspread.Spreadsheet] = {}
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def _credentials(self) -> Credentials:
        if self._settings.credentials_path:
            try:
                return Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
            except FileNotFoundError:
                raise ConfigurationError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )

        if self._settings.service_account_email and self._settings.private_key:
            if "BEGIN" not in self._settings.private_key:
                logger.warning("private_key_missing_pem_header")
            try:
                return Credentials.from_service_account_info(
                    {
                        "type": "service_account",
                        "client_email": self._settings.service_account_email,
                        "private_key": self._settings.private_key,
                        "token_uri": "https://oauth2.googleapis.com/token",
                    },
                    scopes=SCOPES,
                )
            except ValueError as e:
                raise ConfigurationError(f"Google credentials are not usable: {e}")

        raise ConfigurationError("Google credentials are not available")

    def connect(self) -> gspread.Client:
        """
        Build the authorized gspread client.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            self._client = gspread.authorize(self._credentials())
        return self._client

    def get_spreadsheet(self, budget: BudgetType) -> gspread.Spreadsheet:
        """Get the spreadsheet backing a budget mode."""
        budget = BudgetType(budget)
        if budget not in self._spreadsheets:
            spreadsheet_id = self._settings.spreadsheet_id_for(budget)
            client = self.connect()
            try:
                self._spreadsheets[budget] = client.open_by_key(spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise SheetNotFoundError(f"Spreadsheet not found: {spreadsheet_id}")
        return self._spreadsheets[budget]

    def get_worksheet(self, budget: BudgetType, title: str) -> gspread.Worksheet:
        """Get a worksheet by title; never creates one."""
        spreadsheet = self.get_spreadsheet(budget)
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            raise SheetNotFoundError(f"{title} sheet not found")


@contextmanager
def store_call(operation: str, budget: BudgetType) -> Iterator[None]:
    """Turn transport failures into StoreUnavailableError, logging the cause."""
    try:
        yield
    except TRANSPORT_ERRORS as e:
        logger.error(
            "store_call_failed",
            operation=operation,
            budget=BudgetType(budget).value,
            error_type=type(e).__name__,
            error=str(e),
        )
        raise StoreUnavailableError(
            f"Transaction store is unavailable ({operation})"
        ) from e


def _format_request(sheet_id: int, column_index: int, number_format: dict) -> dict:
    return {
        "repeatCell": {
            "range": {
                "sheetId": sheet_id,
                "startRowIndex": 1,
                "endRowIndex": 2,
                "startColumnIndex": column_index,
                "endColumnIndex": column_index + 1,
            },
            "cell": {
                "userEnteredFormat": {"numberFormat": number_format},
            },
            "fields": "userEnteredFormat.numberFormat",
        }
    }


def _cell_value(value: Cell) -> dict:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return {"userEnteredValue": {"numberValue": value}}
    return {"userEnteredValue": {"stringValue": str(value)}}


def insert_row_requests(
    sheet_id: int,
    row: Sequence[Cell],
    layout: SheetLayout,
) -> list[dict]:
    """
    batchUpdate requests that insert `row` at sheet row 2.

    One structural insert, one cell write, then the number formats of the
    date, amount and rate columns.
    """
    requests_ = [
        {
            "insertDimension": {
                "range": {
                    "sheetId": sheet_id,
                    "dimension": "ROWS",
                    "startIndex": 1,
                    "endIndex": 2,
                },
                "inheritFromBefore": False,
            }
        },
        {
            "updateCells": {
                "range": {
                    "sheetId": sheet_id,
                    "startRowIndex": 1,
                    "endRowIndex": 2,
                    "startColumnIndex": 0,
                    "endColumnIndex": len(row),
                },
                "rows": [{"values": [_cell_value(v) for v in row]}],
                "fields": "userEnteredValue",
            }
        },
    ]
    for column, number_format in COLUMN_FORMATS:
        requests_.append(
            _format_request(sheet_id, layout.index(column), number_format)
        )
    return requests_


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Transactions are stored one per row using the codec's fixed layouts.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @property
    def _transactions_title(self) -> str:
        return self._client.settings.transactions_sheet_name

    @property
    def _schema_title(self) -> str:
        return self._client.settings.schema_sheet_name

    def _current_row(
        self,
        worksheet: gspread.Worksheet,
        layout: SheetLayout,
        row_id: int,
        expected_submitted_at: Optional[str],
    ) -> list[str]:
        """Read the target row, failing if it is empty or has shifted."""
        values = worksheet.get_values(layout.row_range(row_id))
        if not values or not any(values[0]):
            raise NotFoundError(f"Transaction {row_id} not found")

        current = values[0]
        if expected_submitted_at is not None:
            index = layout.index("Submitted At")
            actual = current[index] if index < len(current) else ""
            if actual != expected_submitted_at:
                raise StaleRowError(
                    f"Transaction {row_id} has changed since it was loaded; "
                    "reload the list and try again"
                )
        return current

    async def list_transactions(
        self,
        budget: BudgetType,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = DEFAULT_LIST_LIMIT,
    ) -> TransactionsPage:
        """Read every data row, then filter, sort and limit in Python."""
        layout = layout_for(budget)
        with store_call("list_transactions", budget):
            worksheet = self._client.get_worksheet(budget, self._transactions_title)
            rows = worksheet.get_values(layout.data_range())

        transactions = [
            decode(row, index, budget)
            for index, row in enumerate(rows)
        ]
        return filter_and_sort(transactions, start_date, end_date, limit)

    async def append_transaction(
        self,
        budget: BudgetType,
        transaction: TransactionInput,
    ) -> None:
        """Insert the transaction at row 2 in a single batch update."""
        layout = layout_for(check_budget(budget, transaction))
        row = encode(transaction)

        with store_call("append_transaction", budget):
            spreadsheet = self._client.get_spreadsheet(budget)
            worksheet = self._client.get_worksheet(budget, self._transactions_title)
            spreadsheet.batch_update(
                {"requests": insert_row_requests(worksheet.id, row, layout)}
            )

        logger.info(
            "transaction_appended",
            budget=layout.budget.value,
            transaction_date=transaction.transaction_date,
        )

    async def update_transaction(
        self,
        budget: BudgetType,
        row_id: int,
        transaction: TransactionInput,
        expected_submitted_at: Optional[str] = None,
    ) -> None:
        """Full-row overwrite; the sheet parses values as if typed by a user."""
        check_row_id(row_id)
        layout = layout_for(check_budget(budget, transaction))
        row = encode(transaction)

        with store_call("update_transaction", budget):
            worksheet = self._client.get_worksheet(budget, self._transactions_title)
            self._current_row(worksheet, layout, row_id, expected_submitted_at)
            worksheet.update(
                range_name=layout.row_range(row_id),
                values=[row],
                value_input_option="USER_ENTERED",
            )

        logger.info("transaction_updated", budget=layout.budget.value, row_id=row_id)

    async def delete_transaction(
        self,
        budget: BudgetType,
        row_id: int,
        expected_submitted_at: Optional[str] = None,
    ) -> None:
        """Remove the row; everything below moves up one row."""
        check_row_id(row_id)
        layout = layout_for(budget)

        with store_call("delete_transaction", budget):
            worksheet = self._client.get_worksheet(budget, self._transactions_title)
            self._current_row(worksheet, layout, row_id, expected_submitted_at)
            worksheet.delete_rows(row_id)

        logger.info("transaction_deleted", budget=layout.budget.value, row_id=row_id)

    async def unique_values(
        self,
        budget: BudgetType,
        column: str,
        seed: Sequence[str] = (),
    ) -> list[str]:
        """Scan a single column of the Transactions sheet."""
        layout = layout_for(budget)
        cell_range = layout.column_range(column)

        with store_call("unique_values", budget):
            worksheet = self._client.get_worksheet(budget, self._transactions_title)
            rows = worksheet.get_values(cell_range)

        return distinct_sorted((row[0] for row in rows if row), seed)

    async def fetch_schema(self, budget: BudgetType) -> Schema:
        """Read the Schema sheet and rebuild the category index."""
        with store_call("fetch_schema", budget):
            worksheet = self._client.get_worksheet(budget, self._schema_title)
            rows = worksheet.get_values(SCHEMA_RANGE)

        return build_schema(rows)
