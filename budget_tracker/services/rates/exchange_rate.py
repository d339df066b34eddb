"""
Exchange Rate Service using exchangerate-api.com

Every transaction is stored with its amount converted into both reference
currencies (CAD and USD) together with the rate used.

DESIGN DECISION: Rates are memoized per (currency, date) for the lifetime
of the process. There is no TTL and no size bound; the form makes a handful
of lookups per session and instances are short-lived.

KNOWN APPROXIMATION: The free API plan only serves the latest rates. A
request for a past date is answered with today's rates and cached under the
requested date.
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

import requests
import structlog

from budget_tracker.config import ConfigurationError, ExchangeRateSettings, get_settings
from budget_tracker.models.responses import ConvertedAmounts, ExchangeRateQuote
from budget_tracker.models.transaction import ISO_DATE_PATTERN, Currency, ExchangeRates


logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


class ExchangeRateError(Exception):
    """The rate source failed or returned an unusable answer."""
    pass


class InvalidQuoteRequestError(ValueError):
    """Unsupported currency or malformed date in a quote request."""
    pass


class RateCache:
    """Process-lifetime map of (currency, date) -> rates."""

    def __init__(self):
        self._entries: dict[tuple[str, str], ExchangeRates] = {}

    @staticmethod
    def _key(currency: Union[Currency, str], rate_date: str) -> tuple[str, str]:
        return (Currency(currency).value, rate_date)

    def get(self, currency: Union[Currency, str], rate_date: str) -> Optional[ExchangeRates]:
        return self._entries.get(self._key(currency, rate_date))

    def put(self, currency: Union[Currency, str], rate_date: str, rates: ExchangeRates) -> None:
        self._entries[self._key(currency, rate_date)] = rates

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_rate_cache = RateCache()


def get_rate_cache() -> RateCache:
    """The cache shared by every service instance in this process."""
    return _rate_cache


def clear_rate_cache() -> None:
    """Forget every cached rate (test isolation)."""
    _rate_cache.clear()


def convert_amount(amount: Decimal, rates: ExchangeRates) -> ConvertedAmounts:
    """Convert into both reference currencies, rounded half-up to the cent."""
    amount = Decimal(amount)
    return ConvertedAmounts(
        cad_amount=(amount * rates.CAD).quantize(CENT, rounding=ROUND_HALF_UP),
        usd_amount=(amount * rates.USD).quantize(CENT, rounding=ROUND_HALF_UP),
    )


class ExchangeRateService:
    """
    Looks up CAD and USD rates for a currency.

    Flow:
    1. Check the rate cache
    2. On a miss, fetch the latest table for the base currency
    3. Read the CAD and USD entries (a currency's own rate is 1)
    4. Cache and return
    """

    def __init__(
        self,
        settings: Optional[ExchangeRateSettings] = None,
        cache: Optional[RateCache] = None,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings or get_settings().exchange_rate
        self._cache = cache if cache is not None else get_rate_cache()
        self._session = session or requests.Session()

    def _fetch_conversion_rates(self, base: Currency) -> dict[str, Any]:
        """One HTTP call to the latest-rates endpoint."""
        api_key = self._settings.api_key
        if not api_key:
            raise ConfigurationError("EXCHANGE_RATE_API_KEY is not configured")

        url = f"{self._settings.base_url.rstrip('/')}/{api_key}/latest/{base.value}"
        logger.info(
            "exchange_rate_fetch",
            base=base.value,
            url=url.replace(api_key, "***"),
        )

        try:
            response = self._session.get(url, timeout=self._settings.timeout_seconds)
        except requests.RequestException as e:
            logger.error("exchange_rate_request_failed", base=base.value, error=str(e))
            raise ExchangeRateError("Failed to fetch exchange rates") from e

        if not response.ok:
            logger.error(
                "exchange_rate_http_error",
                status=response.status_code,
                body=response.text[:200],
            )
            raise ExchangeRateError(
                f"Exchange rate API error: {response.status_code} - {response.text[:100]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExchangeRateError("Exchange rate API returned invalid JSON") from e

        if data.get("result") != "success":
            error_type = data.get("error-type", "Unknown error")
            logger.error("exchange_rate_api_error", error_type=error_type)
            raise ExchangeRateError(f"Exchange rate API error: {error_type}")

        return data.get("conversion_rates") or {}

    @staticmethod
    def _rate(conversion_rates: dict[str, Any], base: Currency, target: Currency) -> Decimal:
        if base == target:
            return Decimal("1")
        value = conversion_rates.get(target.value)
        if not value:
            raise ExchangeRateError(f"Rate not found for {base.value} to {target.value}")
        return Decimal(str(value))

    async def get_rates(
        self,
        currency: Union[Currency, str],
        rate_date: str,
    ) -> ExchangeRates:
        """
        Rates from `currency` into CAD and USD.

        Args:
            currency: Currency the amount was entered in
            rate_date: YYYY-MM-DD the rate is wanted for

        Raises:
            ConfigurationError: If no API key is configured
            ExchangeRateError: If the API fails or lacks a rate
        """
        currency = Currency(currency)

        cached = self._cache.get(currency, rate_date)
        if cached is not None:
            return cached

        today = date.today().isoformat()
        if rate_date != today:
            logger.info(
                "exchange_rate_latest_used",
                requested_date=rate_date,
                today=today,
            )

        conversion_rates = self._fetch_conversion_rates(currency)
        rates = ExchangeRates(
            CAD=self._rate(conversion_rates, currency, Currency.CAD),
            USD=self._rate(conversion_rates, currency, Currency.USD),
        )

        self._cache.put(currency, rate_date, rates)
        return rates

    async def quote(
        self,
        currency: Optional[str],
        rate_date: Optional[str],
        today: Optional[date] = None,
    ) -> ExchangeRateQuote:
        """
        Validate a lookup request and answer it.

        Future dates are looked up as today; the quote still echoes the
        requested date.

        Raises:
            InvalidQuoteRequestError: Unknown currency or bad date
        """
        try:
            base = Currency(currency)
        except ValueError:
            supported = ", ".join(c.value for c in Currency)
            raise InvalidQuoteRequestError(f"Invalid currency. Must be one of: {supported}")

        if not rate_date or not re.match(ISO_DATE_PATTERN, rate_date):
            raise InvalidQuoteRequestError("Invalid date. Must be in YYYY-MM-DD format")

        today_iso = (today or date.today()).isoformat()
        effective_date = min(rate_date, today_iso)

        rates = await self.get_rates(base, effective_date)
        return ExchangeRateQuote(from_currency=base, date=rate_date, rates=rates)
