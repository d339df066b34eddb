"""Currency conversion services package."""

from budget_tracker.services.rates.exchange_rate import (
    ExchangeRateError,
    ExchangeRateService,
    InvalidQuoteRequestError,
    RateCache,
    clear_rate_cache,
    convert_amount,
    get_rate_cache,
)

__all__ = [
    "ExchangeRateError",
    "ExchangeRateService",
    "InvalidQuoteRequestError",
    "RateCache",
    "clear_rate_cache",
    "convert_amount",
    "get_rate_cache",
]
