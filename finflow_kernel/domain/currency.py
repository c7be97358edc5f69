"""ISO 4217 registry used to vet configured currency codes."""

from typing import ClassVar

from finflow_kernel.exceptions import InvalidCurrencyError

# Middle East and North Africa
_MENA = ("EGP", "SAR", "AED", "QAR", "KWD", "BHD", "OMR", "JOD", "IQD", "LYD",
         "TND", "LBP", "SYP", "MAD", "DZD", "SDG", "YER", "ILS", "TRY")

# Settlement and marketplace currencies
_SETTLEMENT = ("USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD", "CNY", "HKD",
               "SGD", "INR", "PKR", "KRW", "SEK", "NOK", "DKK", "PLN", "CZK", "HUF",
               "RUB", "BRL", "MXN", "CLP", "ZAR", "NGN", "KES", "XOF", "XAF")


def _normalize(code: object) -> str | None:
    if not isinstance(code, str) or not code.strip():
        return None
    return code.strip().upper()


class CurrencyRegistry:
    """Known ISO 4217 codes. Lookups are case- and whitespace-insensitive."""

    _CODES: ClassVar[frozenset[str]] = frozenset(_MENA + _SETTLEMENT)

    @classmethod
    def is_valid(cls, code: object) -> bool:
        return _normalize(code) in cls._CODES

    @classmethod
    def validate(cls, code: object) -> str:
        """Return the upper-case code, or raise InvalidCurrencyError."""
        normalized = _normalize(code)
        if normalized is None:
            raise InvalidCurrencyError(code)
        if len(normalized) != 3:
            raise InvalidCurrencyError(code, "Currency code must be 3 characters")
        if normalized not in cls._CODES:
            raise InvalidCurrencyError(code, "Invalid ISO 4217 currency code")
        return normalized
