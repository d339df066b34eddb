"""
Transaction Input Validation

DESIGN DECISION: Every write is validated before the store is touched.
The pydantic input models carry the rules; this module turns the first
failure into a single human-readable message for the form.

IMPORTANT: Validation NEVER silently fixes issues beyond trimming
whitespace. It also does not check the category triple against the
Schema sheet; the form only offers valid choices.
"""

from collections.abc import Mapping
from typing import Any, Union

from pydantic import ValidationError

from budget_tracker.models.transaction import (
    BudgetType,
    BusinessTransactionInput,
    Currency,
    Distribute,
    PersonalTransactionInput,
)


CURRENCY_LIST = ", ".join(c.value for c in Currency)
DISTRIBUTE_LIST = ", ".join(d.value for d in Distribute)

FIELD_MESSAGES = {
    "transaction_date": "Invalid date format (expected YYYY-MM-DD)",
    "table": "Table is required",
    "subcategory": "Subcategory is required",
    "line_item": "Line Item is required",
    "amount": "Amount must be a positive number",
    "currency": f"Currency must be one of: {CURRENCY_LIST}",
    "cad_amount": "CAD Amount is required",
    "cad_rate": "CAD Rate is required",
    "usd_amount": "USD Amount is required",
    "usd_rate": "USD Rate is required",
    "account": "Account is required",
    "distribute": f"Distribute must be one of: {DISTRIBUTE_LIST}",
    "gst_hst_paid": "GST/HST Paid must be a non-negative number",
    "capital_expense": "Capital Expense must be true or false",
    "submitted_at": "Submitted timestamp is required",
}

INPUT_MODELS = {
    BudgetType.PERSONAL: PersonalTransactionInput,
    BudgetType.BUSINESS: BusinessTransactionInput,
}


class TransactionValidationError(ValueError):
    """A submitted transaction failed validation."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def _field_names(model) -> dict[str, str]:
    """Map both alias and attribute name to the attribute name."""
    names = {}
    for name, info in model.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names


class TransactionValidator:
    """Validates form payloads into typed transaction inputs."""

    def validate(
        self,
        budget: BudgetType,
        payload: Any,
    ) -> Union[PersonalTransactionInput, BusinessTransactionInput]:
        """
        Validate a payload for the given ledger.

        Keys may be camelCase (as the form sends them) or snake_case.
        Any `budget` key in the payload is ignored; the ledger is chosen
        by the caller.

        Raises:
            TransactionValidationError: On the first failing field
        """
        if not isinstance(payload, Mapping):
            raise TransactionValidationError("body", "Invalid request body")

        budget = BudgetType(budget)
        model = INPUT_MODELS[budget]

        data = dict(payload)
        data["budget"] = budget

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise self._to_error(model, e) from e

    @staticmethod
    def _to_error(model, error: ValidationError) -> TransactionValidationError:
        first = error.errors()[0]
        loc = first.get("loc") or ("body",)
        field = _field_names(model).get(str(loc[0]), str(loc[0]))
        message = FIELD_MESSAGES.get(field, f"{field}: {first.get('msg', 'invalid value')}")
        return TransactionValidationError(field, message)
