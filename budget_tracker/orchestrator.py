"""
Main Orchestrator for Budget Tracker

This module ties together all the components and defines the
request flows the UI calls:
1. Reads (schema, transaction list, autocomplete values, exchange rates)
2. Writes (append, update, delete, receipt upload)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No write reaches the spreadsheet without a password check
- No write reaches the spreadsheet without validation
- Every outcome is returned as an ApiResponse envelope, never raised
- Every write is audited

Known failures are mapped to status codes here; anything else is a bug
and propagates.
"""

import re
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from budget_tracker.audit import AuditLogger, create_correlation_id
from budget_tracker.auth import AuthenticationError, PasswordGate
from budget_tracker.config import ConfigurationError, Settings, get_settings
from budget_tracker.models.responses import (
    ApiResponse,
    ExchangeRateQuote,
    TransactionsPage,
    UploadedReceipt,
)
from budget_tracker.models.transaction import ISO_DATE_PATTERN, BudgetType, Schema
from budget_tracker.services.image import (
    InvalidReceiptError,
    ReceiptUploadError,
    ReceiptUploadService,
)
from budget_tracker.services.rates import (
    ExchangeRateError,
    ExchangeRateService,
    InvalidQuoteRequestError,
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
from budget_tracker.validation import TransactionValidationError, TransactionValidator


logger = structlog.get_logger(__name__)

INVALID_BUDGET_MESSAGE = 'Invalid budget type. Must be "personal" or "business".'


class InvalidBudgetError(ValueError):
    """Budget segment is neither personal nor business."""
    pass


class InvalidRequestError(ValueError):
    """A query parameter failed validation."""
    pass


# Most specific classes first
ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (TransactionValidationError, 400),
    (InvalidBudgetError, 400),
    (InvalidRequestError, 400),
    (InvalidRowError, 400),
    (InvalidQuoteRequestError, 400),
    (InvalidReceiptError, 400),
    (AuthenticationError, 401),
    (NotFoundError, 404),
    (StaleRowError, 409),
    (SheetNotFoundError, 500),
    (ConfigurationError, 500),
    (ExchangeRateError, 502),
    (ReceiptUploadError, 502),
    (StoreUnavailableError, 503),
    (StorageError, 500),
)

KNOWN_ERRORS = tuple(error_class for error_class, _ in ERROR_STATUS)


def status_for(error: Exception) -> int:
    for error_class, status in ERROR_STATUS:
        if isinstance(error, error_class):
            return status
    return 500


def parse_budget(value: Union[str, BudgetType, None]) -> BudgetType:
    """
    Map a path segment to a budget mode.

    Raises:
        InvalidBudgetError: Anything other than "personal" or "business"
    """
    try:
        return BudgetType(value)
    except ValueError:
        raise InvalidBudgetError(INVALID_BUDGET_MESSAGE)


def parse_row_id(value: Union[str, int, None]) -> int:
    """
    Parse a row id that may arrive as text.

    Raises:
        InvalidRowError: Missing, non-integer, or below the first data row
    """
    if value is None or value == "":
        raise InvalidRowError("Transaction ID is required")
    if isinstance(value, bool):
        raise InvalidRowError("Invalid transaction ID")
    if isinstance(value, str):
        text = value.strip()
        # isdigit() also accepts characters like "²" that int() rejects
        if not (text.isascii() and text.isdecimal()):
            raise InvalidRowError("Invalid transaction ID")
        value = int(text)
    if not isinstance(value, int) or value < 2:
        raise InvalidRowError("Invalid transaction ID")
    return value


def _check_filter_date(value: Optional[str]) -> Optional[str]:
    if value and not re.match(ISO_DATE_PATTERN, value):
        raise InvalidRequestError("Invalid date format (expected YYYY-MM-DD)")
    return value or None


class BudgetService:
    """
    Entry point for every UI action.

    Each method returns an ApiResponse. Reads need no password; writes
    check the password first, then validate, then touch the store.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        rate_service: Optional[ExchangeRateService] = None,
        receipt_service: Optional[ReceiptUploadService] = None,
        password_gate: Optional[PasswordGate] = None,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._storage = storage
        self._rate_service = rate_service or ExchangeRateService(self._settings.exchange_rate)
        # Built on first upload; Cloudinary may be unconfigured in development
        self._receipt_service = receipt_service
        self._password_gate = password_gate or PasswordGate(self._settings.app)
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def storage(self) -> TransactionStorageInterface:
        return self._storage

    async def _failure(
        self,
        operation: str,
        error: Exception,
        budget: Optional[BudgetType] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ApiResponse:
        """Turn a known failure into an error envelope and audit it."""
        status = status_for(error)
        message = str(error)

        if status >= 500:
            logger.error(
                "request_failed",
                operation=operation,
                status=status,
                error_type=type(error).__name__,
                error=message,
            )

        if isinstance(error, (ExchangeRateError, ReceiptUploadError)):
            await self._audit_logger.log_external_service_error(
                service=operation,
                error_message=message,
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_request_rejected(
                operation=operation,
                status_code=status,
                error_message=message,
                budget=budget.value if budget else None,
                correlation_id=correlation_id,
            )

        return ApiResponse.fail(message, status_code=status)

    async def _require_password(
        self,
        operation: str,
        password: Optional[str],
        correlation_id: UUID,
    ) -> None:
        try:
            self._password_gate.require(password)
        except AuthenticationError:
            await self._audit_logger.log_auth_result(operation, False, correlation_id)
            raise

    # =========================================================================
    # AUTH
    # =========================================================================

    async def authenticate(self, password: Optional[str]) -> ApiResponse[bool]:
        """Check the shared password (the UI's unlock screen)."""
        correlation_id = create_correlation_id()
        try:
            verified = self._password_gate.verify(password)
        except ConfigurationError as e:
            return await self._failure("authenticate", e, correlation_id=correlation_id)

        await self._audit_logger.log_auth_result("authenticate", verified, correlation_id)
        if not verified:
            return ApiResponse.fail("Incorrect password", status_code=401)
        return ApiResponse.ok(True)

    # =========================================================================
    # READS
    # =========================================================================

    async def get_schema(self, budget: Union[str, BudgetType]) -> ApiResponse[Schema]:
        parsed = None
        try:
            parsed = parse_budget(budget)
            schema = await self._storage.fetch_schema(parsed)
        except KNOWN_ERRORS as e:
            return await self._failure("get_schema", e, parsed)
        return ApiResponse.ok(schema)

    async def list_transactions(
        self,
        budget: Union[str, BudgetType],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> ApiResponse[TransactionsPage]:
        """
        Filtered, newest-first page of transactions.

        `limit=None` uses the configured default; `limit=0` returns every row.
        """
        parsed = None
        try:
            parsed = parse_budget(budget)
            start_date = _check_filter_date(start_date)
            end_date = _check_filter_date(end_date)
            if limit is None:
                limit = self._settings.app.default_list_limit
            elif limit < 0:
                raise InvalidRequestError("Limit must be zero or a positive integer")

            page = await self._storage.list_transactions(
                parsed,
                start_date=start_date,
                end_date=end_date,
                limit=limit or None,
            )
        except KNOWN_ERRORS as e:
            return await self._failure("list_transactions", e, parsed)
        return ApiResponse.ok(page)

    async def get_vendors(self, budget: Union[str, BudgetType]) -> ApiResponse[list[str]]:
        parsed = None
        try:
            parsed = parse_budget(budget)
            vendors = await self._storage.unique_vendors(parsed)
        except KNOWN_ERRORS as e:
            return await self._failure("get_vendors", e, parsed)
        return ApiResponse.ok(vendors)

    async def get_accounts(self, budget: Union[str, BudgetType]) -> ApiResponse[list[str]]:
        """Accounts used so far plus the defaults for the budget mode."""
        parsed = None
        try:
            parsed = parse_budget(budget)
            accounts = await self._storage.unique_accounts(parsed)
        except KNOWN_ERRORS as e:
            return await self._failure("get_accounts", e, parsed)
        return ApiResponse.ok(accounts)

    async def get_tags(self, budget: Union[str, BudgetType]) -> ApiResponse[list[str]]:
        parsed = None
        try:
            parsed = parse_budget(budget)
            tags = await self._storage.unique_tags(parsed)
        except KNOWN_ERRORS as e:
            return await self._failure("get_tags", e, parsed)
        return ApiResponse.ok(tags)

    async def get_exchange_rate(
        self,
        currency: Optional[str],
        rate_date: Optional[str],
    ) -> ApiResponse[ExchangeRateQuote]:
        """CAD and USD rates for a currency on a date."""
        try:
            quote = await self._rate_service.quote(currency, rate_date)
        except KNOWN_ERRORS as e:
            return await self._failure("exchange_rate", e)
        return ApiResponse.ok(quote)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def create_transaction(
        self,
        budget: Union[str, BudgetType],
        payload: Any,
        password: Optional[str],
    ) -> ApiResponse[str]:
        """
        Validate and insert a transaction at the top of the ledger.

        Flow:
        1. Parse budget mode
        2. Check password
        3. Validate payload
        4. Append (row 2)
        5. Audit
        """
        correlation_id = create_correlation_id()
        parsed = None
        try:
            parsed = parse_budget(budget)
            await self._require_password("create_transaction", password, correlation_id)
            transaction = self._validator.validate(parsed, payload)
            await self._storage.append_transaction(parsed, transaction)
        except KNOWN_ERRORS as e:
            return await self._failure("create_transaction", e, parsed, correlation_id)

        await self._audit_logger.log_transaction_created(
            budget=parsed.value,
            line_item=transaction.line_item,
            amount=str(transaction.amount),
            currency=transaction.currency.value,
            correlation_id=correlation_id,
        )
        return ApiResponse.ok("Transaction saved successfully")

    async def update_transaction(
        self,
        budget: Union[str, BudgetType],
        row_id: Union[str, int, None],
        payload: Any,
        password: Optional[str],
        expected_submitted_at: Optional[str] = None,
    ) -> ApiResponse[str]:
        """
        Overwrite the row at `row_id`.

        Pass the Submitted At value the row had when it was listed as
        `expected_submitted_at` to refuse the write if rows have shifted.
        """
        correlation_id = create_correlation_id()
        parsed = None
        try:
            parsed = parse_budget(budget)
            await self._require_password("update_transaction", password, correlation_id)
            parsed_row = parse_row_id(row_id)
            transaction = self._validator.validate(parsed, payload)
            await self._storage.update_transaction(
                parsed,
                parsed_row,
                transaction,
                expected_submitted_at=expected_submitted_at,
            )
        except KNOWN_ERRORS as e:
            return await self._failure("update_transaction", e, parsed, correlation_id)

        await self._audit_logger.log_transaction_updated(
            budget=parsed.value,
            row_id=parsed_row,
            correlation_id=correlation_id,
        )
        return ApiResponse.ok("Transaction updated successfully")

    async def delete_transaction(
        self,
        budget: Union[str, BudgetType],
        row_id: Union[str, int, None],
        password: Optional[str],
        expected_submitted_at: Optional[str] = None,
    ) -> ApiResponse[str]:
        """Delete the row at `row_id`; later rows shift up."""
        correlation_id = create_correlation_id()
        parsed = None
        try:
            parsed = parse_budget(budget)
            await self._require_password("delete_transaction", password, correlation_id)
            parsed_row = parse_row_id(row_id)
            await self._storage.delete_transaction(
                parsed,
                parsed_row,
                expected_submitted_at=expected_submitted_at,
            )
        except KNOWN_ERRORS as e:
            return await self._failure("delete_transaction", e, parsed, correlation_id)

        await self._audit_logger.log_transaction_deleted(
            budget=parsed.value,
            row_id=parsed_row,
            correlation_id=correlation_id,
        )
        return ApiResponse.ok("Transaction deleted successfully")

    async def upload_receipt(
        self,
        image_bytes: bytes,
        filename: str,
        content_type: str,
        password: Optional[str],
    ) -> ApiResponse[UploadedReceipt]:
        """Store a receipt photo and return its public URL."""
        correlation_id = create_correlation_id()
        try:
            await self._require_password("upload_receipt", password, correlation_id)
            if self._receipt_service is None:
                self._receipt_service = ReceiptUploadService(
                    app_settings=self._settings.app,
                )
            receipt = await self._receipt_service.upload(image_bytes, filename, content_type)
        except KNOWN_ERRORS as e:
            return await self._failure("upload_receipt", e, correlation_id=correlation_id)

        await self._audit_logger.log_receipt_uploaded(
            url=receipt.url,
            size_bytes=receipt.size_bytes,
            correlation_id=correlation_id,
        )
        return ApiResponse.ok(receipt)


def create_app_components(use_storage: bool = True) -> BudgetService:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Set to False for testing without storage.

    Storage is Google Sheets when configured. Outside production an
    unconfigured store falls back to an in-memory ledger that is lost on
    restart.

    Raises:
        ConfigurationError: Google Sheets not configured in production
    """
    settings = get_settings()
    sheets_settings = settings.google_sheets

    storage: TransactionStorageInterface
    if use_storage and sheets_settings.is_configured:
        storage = GoogleSheetsTransactionStorage(GoogleSheetsClient(sheets_settings))
    elif use_storage and settings.app.is_production:
        raise ConfigurationError(
            "Google Sheets is not configured. Please set the GOOGLE_SHEETS_* "
            "environment variables."
        )
    else:
        logger.warning("storage_not_configured", fallback="in_memory")
        storage = InMemoryTransactionStorage()

    return BudgetService(storage=storage, settings=settings)
