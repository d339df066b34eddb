"""
Streamlit Frontend for Budget Tracker

Two ledgers (personal and business), each backed by its own Google
spreadsheet. The form converts every amount into CAD and USD at entry time.

DESIGN PRINCIPLES:
1. Fast entry: cascading category pickers and remembered defaults
2. Amounts always shown in the chosen reference currency
3. Clear error messages straight from the service envelopes
4. Writes need the shared password, entered once per session
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import streamlit as st

from budget_tracker.config import ConfigurationError, validate_all_settings
from budget_tracker.models import (
    CURRENCY_SYMBOLS,
    BudgetType,
    Currency,
    Distribute,
    ExchangeRates,
    ReferenceCurrency,
    Schema,
    UserPreferences,
)
from budget_tracker.orchestrator import BudgetService, create_app_components
from budget_tracker.services.image import ALLOWED_CONTENT_TYPES
from budget_tracker.services.rates import convert_amount


# Page configuration
st.set_page_config(
    page_title="Budget Tracker",
    page_icon="💵",
    layout="wide",
    initial_sidebar_state="expanded",
)

NEW_VALUE = "➕ New..."


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_service() -> BudgetService:
    """Get or create the budget service (cached)."""
    return create_app_components(use_storage=True)


def get_preferences() -> UserPreferences:
    if "preferences" not in st.session_state:
        st.session_state.preferences = UserPreferences()
    return st.session_state.preferences


def as_currency(value, default: Currency = Currency.CAD) -> Currency:
    try:
        return Currency(value)
    except ValueError:
        return default


def as_date(value: Optional[str]) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return date.today()


def format_money(amount: Decimal, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(as_currency(currency), "")
    return f"{symbol}{amount:,.2f}"


def render_password_gate(service: BudgetService) -> bool:
    """Unlock screen. Returns True once the session is unlocked."""
    if st.session_state.get("unlocked"):
        return True

    st.title("🔒 Budget Tracker")
    password = st.text_input("Password", type="password")

    if st.button("Unlock", type="primary"):
        result = run_async(service.authenticate(password))
        if result.success:
            st.session_state.unlocked = True
            st.session_state.password = password
            st.rerun()
        else:
            st.error(result.error)

    return False


def main():
    """Main application entry point."""
    try:
        service = get_service()
    except ConfigurationError as e:
        st.error(f"Failed to initialize: {e}")
        st.stop()

    if not render_password_gate(service):
        st.stop()

    preferences = get_preferences()

    # Sidebar navigation
    st.sidebar.title("💵 Budget Tracker")
    st.sidebar.markdown("---")

    budget = st.sidebar.radio(
        "Budget",
        list(BudgetType),
        index=list(BudgetType).index(preferences.budget_mode),
        format_func=lambda b: b.value.title(),
        horizontal=True,
    )
    preferences.budget_mode = budget

    reference = st.sidebar.radio(
        "Show amounts in",
        list(ReferenceCurrency),
        index=list(ReferenceCurrency).index(preferences.reference_currency),
        format_func=lambda c: c.value,
        horizontal=True,
    )
    preferences.reference_currency = reference

    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["➕ Add Transaction", "📊 Transactions", "⚙️ Settings"],
        index=0,
    )

    # Route to appropriate page
    if page == "➕ Add Transaction":
        render_add_page(service, budget, preferences)
    elif page == "📊 Transactions":
        render_transactions_page(service, budget, preferences)
    elif page == "⚙️ Settings":
        render_settings_page()


# =============================================================================
# FORM HELPERS
# =============================================================================

def load_schema(service: BudgetService, budget: BudgetType) -> Optional[Schema]:
    result = run_async(service.get_schema(budget))
    if not result.success:
        st.error(f"Could not load categories: {result.error}")
        return None
    return result.data


def load_suggestions(service: BudgetService, budget: BudgetType) -> dict[str, list[str]]:
    suggestions = {}
    for name, call in (
        ("vendors", service.get_vendors),
        ("accounts", service.get_accounts),
        ("tags", service.get_tags),
    ):
        result = run_async(call(budget))
        suggestions[name] = result.data if result.success else []
    return suggestions


def suggest_input(label: str, options: list[str], default: str, key: str) -> str:
    """Pick an existing value or type a new one."""
    choices = [""] + options + [NEW_VALUE]
    index = choices.index(default) if default in choices else 0
    picked = st.selectbox(label, choices, index=index, key=f"{key}_pick")
    if picked == NEW_VALUE:
        return st.text_input(f"New {label.lower()}", key=f"{key}_new").strip()
    return picked


def pick_index(options: list, value) -> int:
    return options.index(value) if value in options else 0


def lookup_rates(
    service: BudgetService,
    currency: Currency,
    transaction_date: date,
) -> Optional[ExchangeRates]:
    result = run_async(service.get_exchange_rate(currency.value, transaction_date.isoformat()))
    if not result.success:
        st.warning(f"Exchange rate unavailable: {result.error}")
        return None
    return result.data.rates


def render_transaction_fields(
    service: BudgetService,
    budget: BudgetType,
    schema: Schema,
    suggestions: dict[str, list[str]],
    preferences: UserPreferences,
    initial: Optional[dict] = None,
    key: str = "add",
) -> Optional[dict]:
    """
    Render the transaction form widgets.

    Returns the camelCase payload, or None while rates are missing.
    """
    initial = initial or {}

    col1, col2 = st.columns(2)

    with col1:
        transaction_date = st.date_input(
            "Date *",
            value=as_date(initial.get("transactionDate")),
            key=f"{key}_date",
        )

        table = st.selectbox(
            "Table *",
            schema.tables,
            index=pick_index(schema.tables, initial.get("table")),
            key=f"{key}_table",
        )
        subcategories = schema.subcategories_for(table) if table else []
        subcategory = st.selectbox(
            "Subcategory *",
            subcategories,
            index=pick_index(subcategories, initial.get("subcategory")),
            key=f"{key}_subcategory",
        )
        line_items = schema.line_items_for(table, subcategory) if subcategory else []
        line_item = st.selectbox(
            "Line Item *",
            line_items,
            index=pick_index(line_items, initial.get("lineItem")),
            key=f"{key}_line_item",
        )

        amount = st.number_input(
            "Amount *",
            min_value=0.0,
            value=float(initial.get("amount", 0.0)),
            step=0.01,
            format="%.2f",
            key=f"{key}_amount",
        )
        currencies = list(Currency)
        currency = st.selectbox(
            "Currency *",
            currencies,
            index=pick_index(
                currencies,
                as_currency(initial.get("currency"), preferences.last_used_currency),
            ),
            format_func=lambda c: c.value,
            key=f"{key}_currency",
        )

    with col2:
        vendor = suggest_input(
            "Vendor", suggestions["vendors"], initial.get("vendor") or "", f"{key}_vendor"
        )
        account = suggest_input(
            "Account *",
            suggestions["accounts"],
            initial.get("account") or preferences.last_used_account.get(budget, ""),
            f"{key}_account",
        )
        tag = suggest_input("Tag", suggestions["tags"], initial.get("tag") or "", f"{key}_tag")
        note = st.text_area("Note", value=initial.get("note") or "", key=f"{key}_note")

        extra: dict = {}
        if budget == BudgetType.PERSONAL:
            periods = list(Distribute)
            extra["distribute"] = st.selectbox(
                "Distribute",
                periods,
                index=pick_index(
                    [p.value for p in periods], initial.get("distribute", Distribute.ONE_TIME.value)
                ),
                format_func=lambda d: d.value.replace("-", " ").title(),
                key=f"{key}_distribute",
            ).value
        else:
            gst = st.number_input(
                "GST/HST Paid",
                min_value=0.0,
                value=float(initial.get("gstHstPaid") or 0.0),
                step=0.01,
                format="%.2f",
                key=f"{key}_gst",
            )
            extra["gstHstPaid"] = gst or None
            extra["capitalExpense"] = st.checkbox(
                "Capital Expense",
                value=bool(initial.get("capitalExpense", False)),
                key=f"{key}_capital",
            )

    rates = lookup_rates(service, currency, transaction_date)
    if rates is None:
        return None

    converted = convert_amount(Decimal(str(amount)), rates)
    reference = preferences.reference_currency
    shown = converted.cad_amount if reference == ReferenceCurrency.CAD else converted.usd_amount
    if currency.value != reference.value:
        st.caption(
            f"≈ {format_money(shown, reference.value)} "
            f"(1 {currency.value} = {rates.rate_for(reference)} {reference.value})"
        )

    return {
        "transactionDate": transaction_date.isoformat(),
        "table": table or "",
        "subcategory": subcategory or "",
        "lineItem": line_item or "",
        "amount": str(amount),
        "currency": currency.value,
        "cadAmount": str(converted.cad_amount),
        "cadRate": str(rates.CAD),
        "usdAmount": str(converted.usd_amount),
        "usdRate": str(rates.USD),
        "vendor": vendor,
        "note": note,
        "receiptUrl": initial.get("receiptUrl") or "",
        "account": account,
        "tag": tag,
        **extra,
    }


# =============================================================================
# PAGES
# =============================================================================

def render_add_page(service: BudgetService, budget: BudgetType, preferences: UserPreferences):
    """Render the add transaction page."""
    st.title(f"➕ Add {budget.value.title()} Transaction")

    schema = load_schema(service, budget)
    if schema is None:
        return
    if not schema.tables:
        st.info("The Schema sheet has no active categories yet.")
        return

    suggestions = load_suggestions(service, budget)
    payload = render_transaction_fields(service, budget, schema, suggestions, preferences)

    receipt = st.file_uploader(
        "Receipt photo",
        type=["jpg", "jpeg", "png", "webp", "heic"],
        help="Optional. Up to 10MB.",
    )

    if payload is None:
        return

    if st.button("💾 Save Transaction", type="primary"):
        password = st.session_state.get("password")

        if receipt is not None:
            content_type = receipt.type or ""
            if content_type not in ALLOWED_CONTENT_TYPES and receipt.name.lower().endswith(".heic"):
                content_type = "image/heic"
            with st.spinner("Uploading receipt..."):
                uploaded = run_async(
                    service.upload_receipt(receipt.getvalue(), receipt.name, content_type, password)
                )
            if not uploaded.success:
                st.error(uploaded.error)
                return
            payload["receiptUrl"] = uploaded.data.url

        payload["submittedAt"] = datetime.now(timezone.utc).isoformat()

        with st.spinner("Saving..."):
            result = run_async(service.create_transaction(budget, payload, password))

        if result.success:
            preferences.last_used_currency = Currency(payload["currency"])
            preferences.last_used_account[budget] = payload["account"]
            st.success(f"✅ {result.data}")
        else:
            st.error(f"❌ {result.error}")


def render_transactions_page(
    service: BudgetService,
    budget: BudgetType,
    preferences: UserPreferences,
):
    """Render the transactions list page."""
    st.title(f"📊 {budget.value.title()} Transactions")

    col1, col2, col3 = st.columns(3)
    with col1:
        start = st.date_input("From", value=None)
    with col2:
        end = st.date_input("To", value=None)
    with col3:
        limit = st.number_input("Show", min_value=0, value=20, step=10, help="0 shows all")

    result = run_async(
        service.list_transactions(
            budget,
            start_date=start.isoformat() if start else None,
            end_date=end.isoformat() if end else None,
            limit=int(limit),
        )
    )
    if not result.success:
        st.error(result.error)
        return

    page = result.data
    reference = preferences.reference_currency
    shown_total = sum(
        (t.cad_amount if reference == ReferenceCurrency.CAD else t.usd_amount)
        for t in page.transactions
    )
    st.markdown(
        f"**{page.total}** matching transactions, showing {len(page.transactions)} "
        f"totalling **{format_money(shown_total, reference.value)}**"
    )
    st.markdown("---")

    schema = None
    suggestions: dict[str, list[str]] = {}
    for transaction in page.transactions:
        converted = transaction.cad_amount if reference == ReferenceCurrency.CAD else transaction.usd_amount
        header = (
            f"{transaction.transaction_date} · {transaction.line_item} · "
            f"{format_money(converted, reference.value)}"
        )
        with st.expander(header):
            st.write(
                f"{transaction.table} › {transaction.subcategory} · "
                f"{format_money(transaction.amount, transaction.currency)} {transaction.currency} · "
                f"{transaction.account}"
            )
            if transaction.vendor:
                st.write(f"Vendor: {transaction.vendor}")
            if transaction.note:
                st.write(transaction.note)
            if transaction.receipt_url:
                st.markdown(f"[Receipt]({transaction.receipt_url})")

            edit_key = f"edit_{transaction.id}"
            if st.toggle("Edit", key=edit_key):
                if schema is None:
                    schema = load_schema(service, budget)
                    suggestions = load_suggestions(service, budget)
                if schema is None:
                    continue
                initial = transaction.model_dump(by_alias=True, mode="json")
                payload = render_transaction_fields(
                    service, budget, schema, suggestions, preferences,
                    initial=initial, key=edit_key,
                )
                if payload is not None and st.button("💾 Save changes", key=f"save_{transaction.id}"):
                    payload["submittedAt"] = transaction.submitted_at
                    updated = run_async(
                        service.update_transaction(
                            budget,
                            transaction.id,
                            payload,
                            st.session_state.get("password"),
                            expected_submitted_at=transaction.submitted_at,
                        )
                    )
                    if updated.success:
                        st.success(updated.data)
                        st.rerun()
                    else:
                        st.error(updated.error)

            if st.button("🗑️ Delete", key=f"delete_{transaction.id}"):
                deleted = run_async(
                    service.delete_transaction(
                        budget,
                        transaction.id,
                        st.session_state.get("password"),
                        expected_submitted_at=transaction.submitted_at,
                    )
                )
                if deleted.success:
                    st.success(deleted.data)
                    st.rerun()
                else:
                    st.error(deleted.error)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("ExchangeRate-API (Rates)", "exchange_rate"),
        ("Cloudinary (Receipts)", "cloudinary"),
        ("App (Password)", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
