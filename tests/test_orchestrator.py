"""Tests for the service layer: envelopes, status codes, write flow."""

import asyncio

import pytest
import requests

from budget_tracker.auth import PasswordGate
from budget_tracker.config import AppSettings, ConfigurationError, ExchangeRateSettings, Settings
from budget_tracker.models.responses import UploadedReceipt
from budget_tracker.models.transaction import BudgetType
from budget_tracker.orchestrator import (
    INVALID_BUDGET_MESSAGE,
    BudgetService,
    InvalidBudgetError,
    create_app_components,
    parse_budget,
    parse_row_id,
    status_for,
)
from budget_tracker.services.image import InvalidReceiptError
from budget_tracker.services.rates import ExchangeRateService, RateCache
from budget_tracker.services.storage import (
    InMemoryTransactionStorage,
    InvalidRowError,
    SheetNotFoundError,
    StoreUnavailableError,
)


PASSWORD = "secret"


class FakeRateResponse:
    ok = True
    status_code = 200
    text = ""

    def json(self):
        return {"result": "success", "conversion_rates": {"USD": 1, "CAD": 1.36}}


class FakeRateSession:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def get(self, url, timeout=None):
        self.calls += 1
        if self.error:
            raise self.error
        return FakeRateResponse()


class FakeReceipts:
    async def upload(self, image_bytes, filename, content_type):
        if not image_bytes:
            raise InvalidReceiptError("No file provided")
        return UploadedReceipt(
            url="https://res.cloudinary.com/demo/receipts/1.png",
            key="receipts/1",
            content_type=content_type,
            size_bytes=len(image_bytes),
        )


class UnavailableStorage(InMemoryTransactionStorage):
    async def list_transactions(self, budget, start_date=None, end_date=None, limit=20):
        raise StoreUnavailableError("Transaction store is unavailable (list_transactions)")

    async def fetch_schema(self, budget):
        raise SheetNotFoundError("Schema sheet not found")


def _service(storage=None, rate_error=None) -> BudgetService:
    return BudgetService(
        storage=storage if storage is not None else InMemoryTransactionStorage(
            schema_rows={BudgetType.PERSONAL: [["Living", "Food", "Groceries", "TRUE"]]},
        ),
        rate_service=ExchangeRateService(
            ExchangeRateSettings(api_key="test-key"),
            cache=RateCache(),
            session=FakeRateSession(rate_error),
        ),
        receipt_service=FakeReceipts(),
        password_gate=PasswordGate(AppSettings(app_password=PASSWORD)),
        settings=Settings(),
    )


class TestParsing:
    """Tests for path and id parsing."""

    def test_parse_budget(self):
        assert parse_budget("personal") == BudgetType.PERSONAL
        assert parse_budget(BudgetType.BUSINESS) == BudgetType.BUSINESS

    @pytest.mark.parametrize("value", ["Personal", "family", "", None])
    def test_parse_budget_rejects(self, value):
        with pytest.raises(InvalidBudgetError, match="Invalid budget type"):
            parse_budget(value)

    def test_parse_row_id(self):
        assert parse_row_id("7") == 7
        assert parse_row_id(" 12 ") == 12
        assert parse_row_id(3) == 3

    @pytest.mark.parametrize("value", ["abc", "1", "0", "-3", "2.5", "²", "٣", 1, True])
    def test_parse_row_id_rejects(self, value):
        with pytest.raises(InvalidRowError, match="Invalid transaction ID"):
            parse_row_id(value)

    @pytest.mark.parametrize("value", [None, ""])
    def test_parse_row_id_required(self, value):
        with pytest.raises(InvalidRowError, match="Transaction ID is required"):
            parse_row_id(value)

    def test_unknown_errors_map_to_500(self):
        assert status_for(RuntimeError("boom")) == 500


class TestAuthenticate:
    """Tests for BudgetService.authenticate."""

    def test_correct_password(self):
        result = asyncio.run(_service().authenticate(PASSWORD))
        assert result.success is True
        assert result.data is True

    def test_wrong_password(self):
        result = asyncio.run(_service().authenticate("guess"))
        assert result.success is False
        assert result.status_code == 401
        assert result.error == "Incorrect password"


class TestReads:
    """Tests for the read operations."""

    def test_invalid_budget(self):
        result = asyncio.run(_service().get_schema("household"))
        assert result.status_code == 400
        assert result.error == INVALID_BUDGET_MESSAGE

    def test_get_schema(self):
        result = asyncio.run(_service().get_schema("personal"))
        assert result.success is True
        assert result.data.tables == ["Living"]

    def test_get_accounts_has_defaults(self):
        result = asyncio.run(_service().get_accounts("business"))
        assert result.data == ["RBC Business Chequing", "RBC Business Visa"]

    def test_list_rejects_bad_filter_date(self):
        result = asyncio.run(_service().list_transactions("personal", start_date="01/02/2025"))
        assert result.status_code == 400
        assert result.error == "Invalid date format (expected YYYY-MM-DD)"

    def test_list_rejects_negative_limit(self):
        result = asyncio.run(_service().list_transactions("personal", limit=-1))
        assert result.status_code == 400

    def test_store_unavailable_is_503(self):
        result = asyncio.run(_service(UnavailableStorage()).list_transactions("personal"))
        assert result.status_code == 503
        assert result.success is False

    def test_missing_sheet_is_500(self):
        result = asyncio.run(_service(UnavailableStorage()).get_schema("personal"))
        assert result.status_code == 500
        assert result.error == "Schema sheet not found"

    def test_exchange_rate(self):
        result = asyncio.run(_service().get_exchange_rate("USD", "2025-01-15"))
        assert result.success is True
        assert result.data.date == "2025-01-15"
        assert str(result.data.rates.CAD) == "1.36"

    def test_exchange_rate_bad_currency(self):
        result = asyncio.run(_service().get_exchange_rate("EUR", "2025-01-15"))
        assert result.status_code == 400
        assert result.error.startswith("Invalid currency")

    def test_exchange_rate_upstream_failure_is_502(self):
        service = _service(rate_error=requests.ConnectionError("down"))
        result = asyncio.run(service.get_exchange_rate("USD", "2025-01-15"))
        assert result.status_code == 502
        assert result.error == "Failed to fetch exchange rates"


class TestWrites:
    """Tests for the password-gated write operations."""

    def test_create_requires_password(self, personal_payload):
        service = _service()
        result = asyncio.run(service.create_transaction("personal", personal_payload(), "wrong"))

        assert result.status_code == 401
        assert result.error == "Unauthorized"
        assert service.storage.raw_rows(BudgetType.PERSONAL) == []

    def test_create_validation_error(self, personal_payload):
        service = _service()
        result = asyncio.run(service.create_transaction(
            "personal", personal_payload(amount="-3"), PASSWORD,
        ))

        assert result.status_code == 400
        assert result.error == "Amount must be a positive number"
        assert service.storage.raw_rows(BudgetType.PERSONAL) == []

    def test_create_then_list(self, personal_payload):
        service = _service()
        result = asyncio.run(service.create_transaction("personal", personal_payload(), PASSWORD))
        assert result.success is True
        assert result.data == "Transaction saved successfully"

        page = asyncio.run(service.list_transactions("personal")).data
        assert page.total == 1
        assert page.transactions[0].id == 2
        assert page.transactions[0].vendor == "Costco"

    def test_create_business(self, business_payload):
        service = _service()
        result = asyncio.run(service.create_transaction("business", business_payload(), PASSWORD))
        assert result.success is True

        [t] = asyncio.run(service.list_transactions("business")).data.transactions
        assert t.capital_expense is True
        assert str(t.gst_hst_paid) == "5.53"

    def test_update_and_delete_flow(self, personal_payload):
        service = _service()
        for item in ("Groceries", "Restaurants"):
            asyncio.run(service.create_transaction(
                "personal",
                personal_payload(lineItem=item, submittedAt=f"2025-03-14T00:00:00Z-{item}"),
                PASSWORD,
            ))
        # Restaurants is at row 2, Groceries at row 3
        updated = asyncio.run(service.update_transaction(
            "personal", "3", personal_payload(note="edited"), PASSWORD,
            expected_submitted_at="2025-03-14T00:00:00Z-Groceries",
        ))
        assert updated.data == "Transaction updated successfully"

        deleted = asyncio.run(service.delete_transaction("personal", "2", PASSWORD))
        assert deleted.data == "Transaction deleted successfully"

        [remaining] = asyncio.run(service.list_transactions("personal")).data.transactions
        assert remaining.note == "edited"
        assert remaining.id == 2

    def test_update_invalid_row_id(self, personal_payload):
        result = asyncio.run(_service().update_transaction(
            "personal", "abc", personal_payload(), PASSWORD,
        ))
        assert result.status_code == 400
        assert result.error == "Invalid transaction ID"

    def test_delete_non_ascii_digit_row_id(self):
        result = asyncio.run(_service().delete_transaction("personal", "²", PASSWORD))
        assert result.status_code == 400
        assert result.error == "Invalid transaction ID"

    def test_update_missing_row(self, personal_payload):
        result = asyncio.run(_service().update_transaction(
            "personal", "5", personal_payload(), PASSWORD,
        ))
        assert result.status_code == 404

    def test_delete_stale_row(self, personal_payload):
        service = _service()
        asyncio.run(service.create_transaction("personal", personal_payload(), PASSWORD))
        result = asyncio.run(service.delete_transaction(
            "personal", 2, PASSWORD, expected_submitted_at="not the same row",
        ))
        assert result.status_code == 409
        assert len(service.storage.raw_rows(BudgetType.PERSONAL)) == 1

    def test_delete_requires_id(self):
        result = asyncio.run(_service().delete_transaction("personal", None, PASSWORD))
        assert result.status_code == 400
        assert result.error == "Transaction ID is required"

    def test_upload_receipt(self):
        result = asyncio.run(_service().upload_receipt(b"png", "r.png", "image/png", PASSWORD))
        assert result.success is True
        assert result.data.url.endswith("/receipts/1.png")

    def test_upload_receipt_rejected(self):
        result = asyncio.run(_service().upload_receipt(b"", "r.png", "image/png", PASSWORD))
        assert result.status_code == 400
        assert result.error == "No file provided"

    def test_upload_receipt_requires_password(self):
        result = asyncio.run(_service().upload_receipt(b"png", "r.png", "image/png", None))
        assert result.status_code == 401


class TestCreateAppComponents:
    """Tests for the component factory."""

    @pytest.fixture(autouse=True)
    def _no_sheets_env(self, monkeypatch):
        for name in (
            "GOOGLE_SHEETS_CREDENTIALS_PATH",
            "GOOGLE_SHEETS_SERVICE_ACCOUNT_EMAIL",
            "GOOGLE_SHEETS_PRIVATE_KEY",
            "GOOGLE_SHEETS_PERSONAL_SPREADSHEET_ID",
            "GOOGLE_SHEETS_BUSINESS_SPREADSHEET_ID",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_development_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setenv("APP_ENVIRONMENT", "development")
        service = create_app_components()
        assert isinstance(service.storage, InMemoryTransactionStorage)

    def test_production_requires_sheets(self, monkeypatch):
        monkeypatch.setenv("APP_ENVIRONMENT", "production")
        with pytest.raises(ConfigurationError, match="Google Sheets is not configured"):
            create_app_components()

    def test_without_storage(self, monkeypatch):
        monkeypatch.setenv("APP_ENVIRONMENT", "production")
        service = create_app_components(use_storage=False)
        assert isinstance(service.storage, InMemoryTransactionStorage)
