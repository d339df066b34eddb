"""
Tests for Budget Tracker

Test strategy:
1. Unit tests for individual components (models, codec, validators)
2. Integration tests for flows (with fake spreadsheets and mocked services)
3. No real API calls in tests (use fakes and mocks)
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from budget_tracker.models.transaction import (
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
)
from budget_tracker.models.responses import ApiResponse, TransactionsPage, UserPreferences
from budget_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def _input_fields(**overrides) -> dict:
    data = dict(
        transaction_date="2025-03-14",
        table="Living",
        subcategory="Food",
        line_item="Groceries",
        amount="42.50",
        currency="CAD",
        cad_amount="42.50",
        cad_rate="1",
        usd_amount="31.25",
        usd_rate="0.73529",
        account="RBC Visa",
        submitted_at="2025-03-14T18:22:05.123Z",
    )
    data.update(overrides)
    return data


class TestTransactionModels:
    """Tests for transaction read models."""

    def test_personal_defaults(self):
        t = PersonalTransaction()
        assert t.budget == BudgetType.PERSONAL
        assert t.distribute == "one-time"
        assert t.cad_rate == Decimal("1")
        assert t.id is None

    def test_business_defaults(self):
        t = BusinessTransaction()
        assert t.budget == BudgetType.BUSINESS
        assert t.gst_hst_paid is None
        assert t.capital_expense is False

    def test_discriminated_union(self):
        adapter = TypeAdapter(Transaction)
        business = adapter.validate_python({"budget": BudgetType.BUSINESS, "capitalExpense": True})
        personal = adapter.validate_python({"budget": BudgetType.PERSONAL})
        assert isinstance(business, BusinessTransaction)
        assert business.capital_expense is True
        assert isinstance(personal, PersonalTransaction)

    def test_camel_case_aliases(self):
        t = PersonalTransaction(lineItem="Groceries", cadAmount="10.00")
        assert t.line_item == "Groceries"
        dumped = t.model_dump(by_alias=True)
        assert "lineItem" in dumped
        assert "submittedAt" in dumped

    def test_page_holds_mixed_ledgers(self):
        page = TransactionsPage(
            transactions=[PersonalTransaction(id=2), BusinessTransaction(id=3)],
            total=10,
        )
        assert page.total == 10
        assert isinstance(page.transactions[1], BusinessTransaction)


class TestInputModels:
    """Tests for the strict write-path models."""

    def test_valid_personal_input(self):
        t = PersonalTransactionInput(**_input_fields())
        assert t.currency == Currency.CAD
        assert t.distribute == Distribute.ONE_TIME
        assert t.amount == Decimal("42.50")

    def test_strips_whitespace(self):
        t = PersonalTransactionInput(**_input_fields(table="  Living  "))
        assert t.table == "Living"

    def test_empty_optional_text_becomes_none(self):
        t = PersonalTransactionInput(**_input_fields(vendor="", note="  ", tag=""))
        assert t.vendor is None
        assert t.note is None
        assert t.tag is None

    def test_rejects_non_positive_amount(self):
        with pytest.raises(ValidationError):
            PersonalTransactionInput(**_input_fields(amount="0"))
        with pytest.raises(ValidationError):
            PersonalTransactionInput(**_input_fields(amount="-5"))

    def test_rejects_impossible_date(self):
        with pytest.raises(ValidationError):
            PersonalTransactionInput(**_input_fields(transaction_date="2025-02-30"))

    def test_rejects_unknown_currency(self):
        with pytest.raises(ValidationError):
            PersonalTransactionInput(**_input_fields(currency="EUR"))

    def test_business_gst_must_not_be_negative(self):
        with pytest.raises(ValidationError):
            BusinessTransactionInput(**_input_fields(gst_hst_paid="-1"))
        t = BusinessTransactionInput(**_input_fields(gst_hst_paid="0"))
        assert t.gst_hst_paid == Decimal("0")


class TestSchemaAndRates:
    """Tests for Schema and ExchangeRates."""

    def test_schema_lookups(self):
        schema = Schema(
            tables=["Living"],
            subcategories={"Living": ["Food"]},
            line_items={"Living|Food": ["Groceries"]},
        )
        assert schema.subcategories_for("Missing") == []
        assert schema.line_items_for("Living", "Food") == ["Groceries"]
        assert schema.has_path("Living", "Food", "Groceries")
        assert not schema.has_path("Living", "Food", "Rent")

    def test_rates_must_be_positive(self):
        with pytest.raises(ValidationError):
            ExchangeRates(CAD=Decimal("0"), USD=Decimal("1"))

    def test_rate_for_reference_currency(self):
        rates = ExchangeRates(CAD=Decimal("1.36"), USD=Decimal("1"))
        assert rates.rate_for(ReferenceCurrency.CAD) == Decimal("1.36")
        assert rates.rate_for(ReferenceCurrency.USD) == Decimal("1")


class TestResponseModels:
    """Tests for envelopes and preferences."""

    def test_ok_envelope(self):
        response = ApiResponse.ok(["a"])
        assert response.success is True
        assert response.data == ["a"]
        assert response.status_code == 200
        assert response.error is None

    def test_fail_envelope(self):
        response = ApiResponse.fail("Unauthorized", status_code=401)
        assert response.success is False
        assert response.error == "Unauthorized"
        assert response.status_code == 401

    def test_preferences_defaults(self):
        prefs = UserPreferences()
        assert prefs.reference_currency == ReferenceCurrency.CAD
        assert prefs.last_used_currency == Currency.CAD
        assert prefs.last_used_account[BudgetType.BUSINESS] == ""
        assert prefs.budget_mode == BudgetType.PERSONAL


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.TRANSACTION_DELETED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            budget="personal",
            row_id=7,
            description="Test event",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transaction_updated"
        assert log_dict["row_id"] == 7
        assert "timestamp" in log_dict

    def test_builder_transaction_created(self):
        cid = uuid4()
        event = AuditEventBuilder.transaction_created(
            budget="personal",
            line_item="Groceries",
            amount="42.50",
            currency="CAD",
            correlation_id=cid,
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.row_id == 2
        assert event.correlation_id == cid
        assert event.is_user_action is True

    def test_builder_request_rejected_severity(self):
        client_error = AuditEventBuilder.request_rejected("delete", 404, "not found")
        server_error = AuditEventBuilder.request_rejected("delete", 503, "unavailable")
        assert client_error.severity == AuditSeverity.WARNING
        assert client_error.event_type == AuditEventType.REQUEST_REJECTED
        assert server_error.severity == AuditSeverity.ERROR
        assert server_error.event_type == AuditEventType.STORE_ERROR

    def test_builder_auth_failed(self):
        event = AuditEventBuilder.auth_result("create_transaction", succeeded=False)
        assert event.event_type == AuditEventType.AUTH_FAILED
        assert event.severity == AuditSeverity.WARNING
