"""
Record validation: typed extraction + constraint checking over an untyped payload.

Each field is read through a list of common aliases, coerced, and checked.
Problems are collected as ``PipelineError`` values, never raised:

* ERROR severity blocks the record (all ERRORs are reported together);
* WARN severity travels with the validated record for observability.

Architecture: finflow_ingestion/domain. ZERO I/O. Imports only from
finflow_ingestion.domain and the kernel's pure domain.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Sequence

from finflow_ingestion.domain.fingerprint import synthesize_record_id
from finflow_ingestion.domain.types import (
    BatchValidation,
    InvalidPayload,
    PipelineError,
    Severity,
    ValidatedRecord,
    ValidationOutcome,
)

if TYPE_CHECKING:
    from finflow_config.schema import PipelineConfig

# Field aliases, in lookup order
AMOUNT_FIELDS = ("amount", "total", "value", "price", "sum")
CURRENCY_FIELDS = ("currency", "currency_code")
TIMESTAMP_FIELDS = ("timestamp", "created_at", "date", "createdAt", "time")
SOURCE_FIELDS = ("source", "platform", "origin", "source_id")
TYPE_FIELDS = ("type", "transaction_type", "kind")
CATEGORY_FIELDS = ("category", "tag", "label")
EXTERNAL_ID_FIELDS = ("external_id", "id", "_id", "order_id", "orderId", "transaction_id")
DESCRIPTION_FIELDS = ("description", "memo", "note")

UNKNOWN_SOURCE = "unknown"

# Numeric(38, 9) storage: 9 places leave 29 digits before the point
_MAX_DECIMAL_PLACES = 9
_MAX_INTEGER_DIGITS = 38 - _MAX_DECIMAL_PLACES

# Epoch heuristics: seconds within (1e9, 2e9), milliseconds above 1e12
_UNIX_SECONDS_MIN = Decimal(1_000_000_000)
_UNIX_SECONDS_MAX = Decimal(2_000_000_000)
_UNIX_MILLIS_MIN = Decimal(1_000_000_000_000)

_NUMERIC_RE = re.compile(r"[+-]?\d+(\.\d+)?")
_GROUPED_NUMBER_RE = re.compile(r"[+-]?\d{1,3}(,\d{3})+(\.\d+)?")


def _error(code: str, message: str, field: str, **details: Any) -> PipelineError:
    return PipelineError(code=code, message=message, severity=Severity.ERROR, field=field, details=details or None)


def _warning(code: str, message: str, field: str, **details: Any) -> PipelineError:
    return PipelineError(code=code, message=message, severity=Severity.WARN, field=field, details=details or None)


def extract_field(payload: Mapping[str, Any], aliases: Sequence[str]) -> tuple[str | None, Any]:
    """Return (alias, value) for the first alias holding a non-empty value."""
    for alias in aliases:
        value = payload.get(alias)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return alias, value
    return None, None


def _optional_text(payload: Mapping[str, Any], aliases: Sequence[str]) -> str | None:
    _, value = extract_field(payload, aliases)
    if value is None or isinstance(value, (dict, list, tuple, bool)):
        return None
    return str(value).strip()


# -----------------------------------------------------------------------------
# Amount
# -----------------------------------------------------------------------------


def coerce_amount(value: Any) -> Decimal | None:
    """Coerce an amount to Decimal. Returns None when not a number (NaN/inf are returned as-is)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, str):
        text = value.strip()
        if _GROUPED_NUMBER_RE.fullmatch(text):
            text = text.replace(",", "")
        try:
            return Decimal(text)
        except InvalidOperation:
            return None
    return None


def validate_amount(
    value: Any,
    record_type: str | None = None,
    sale_types: Iterable[str] = ("sale",),
    field: str = "amount",
) -> tuple[Decimal | None, list[PipelineError], list[PipelineError]]:
    """
    Validate an amount. Returns (amount, errors, warnings).

    Zero and negative amounts are WARN anomalies, except that a negative
    amount on a sale-typed record is an ERROR.
    """
    errors: list[PipelineError] = []
    warnings: list[PipelineError] = []

    if value is None:
        errors.append(_error("MISSING_AMOUNT", "Amount is missing", field))
        return None, errors, warnings

    amount = coerce_amount(value)
    if amount is None:
        errors.append(_error("INVALID_AMOUNT", "Amount must be a valid number", field, value=str(value)))
        return None, errors, warnings
    if not amount.is_finite():
        errors.append(_error("NON_FINITE_AMOUNT", "Amount must be a finite number", field, value=str(value)))
        return None, errors, warnings

    _, digits, exp = amount.as_tuple()
    places = -exp if exp < 0 else 0
    integer_digits = max(len(digits) - places, 0) if exp < 0 else len(digits) + exp
    if places > _MAX_DECIMAL_PLACES or integer_digits > _MAX_INTEGER_DIGITS:
        errors.append(
            _error(
                "AMOUNT_PRECISION_EXCEEDED",
                f"Amount exceeds {_MAX_INTEGER_DIGITS} integer digits or {_MAX_DECIMAL_PLACES} decimal places",
                field,
                value=str(amount),
            )
        )
        return None, errors, warnings

    sale_type_set = {s.lower() for s in sale_types}
    is_sale = record_type is not None and record_type.strip().lower() in sale_type_set

    if amount == 0:
        warnings.append(_warning("ZERO_AMOUNT", "Zero-value record detected", field))
    elif amount < 0:
        if is_sale:
            errors.append(_error("NEGATIVE_SALE_AMOUNT", "Sale amount cannot be negative", field, value=str(amount)))
        else:
            warnings.append(
                _warning("NEGATIVE_AMOUNT", "Negative amount detected - may be a refund or adjustment", field)
            )
    return amount, errors, warnings


# -----------------------------------------------------------------------------
# Currency
# -----------------------------------------------------------------------------


def validate_currency(
    value: Any,
    known_currencies: Iterable[str],
    field: str = "currency",
) -> tuple[str | None, list[PipelineError]]:
    """Resolve a currency case-insensitively against the accepted ISO 4217 subset."""
    if value is None:
        return None, [_error("MISSING_CURRENCY", "Currency is missing", field)]
    if not isinstance(value, str):
        return None, [_error("INVALID_CURRENCY", "Currency must be a 3-letter ISO code", field, value=repr(value))]
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        return None, [
            _error("INVALID_CURRENCY_LENGTH", "Currency must be 3-letter ISO code", field, value=value)
        ]
    if code not in known_currencies:
        return None, [_error("UNKNOWN_CURRENCY", f"Invalid currency code: {code}", field, value=code)]
    return code, []


# -----------------------------------------------------------------------------
# Timestamp
# -----------------------------------------------------------------------------


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_epoch(number: Decimal) -> datetime | None:
    if not number.is_finite():
        return None
    if _UNIX_SECONDS_MIN < number < _UNIX_SECONDS_MAX:
        seconds = number
    elif number > _UNIX_MILLIS_MIN:
        seconds = number / 1000
    else:
        return None
    try:
        return datetime.fromtimestamp(float(seconds), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a timestamp to an absolute UTC instant, or None.

    Order: datetime/date instances, ISO-8601 strings, Unix seconds
    (1e9..2e9), Unix milliseconds (>1e12). Strings made only of digits are
    epoch values, never compact ISO dates. Naive values are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, Decimal)):
        return _from_epoch(Decimal(value))
    if isinstance(value, float):
        return _from_epoch(Decimal(repr(value)))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if _NUMERIC_RE.fullmatch(text):
            return _from_epoch(Decimal(text))
        try:
            return _as_utc(datetime.fromisoformat(text))
        except (ValueError, OverflowError):
            return None
    return None


def validate_timestamp(value: Any, field: str = "timestamp") -> tuple[datetime | None, list[PipelineError]]:
    if value is None:
        return None, [_error("MISSING_TIMESTAMP", "Timestamp is missing", field)]
    parsed = parse_timestamp(value)
    if parsed is None:
        return None, [
            _error("INVALID_TIMESTAMP", "Timestamp must be a valid date format", field, value=str(value))
        ]
    return parsed, []


# -----------------------------------------------------------------------------
# Source
# -----------------------------------------------------------------------------


def validate_source(
    value: Any,
    known_sources: Iterable[str],
    field: str = "source",
) -> tuple[str, list[PipelineError]]:
    """Lower-case the source. Unknown or missing sources WARN; they never block."""
    if value is None or isinstance(value, (dict, list, tuple, bool)):
        return UNKNOWN_SOURCE, [_warning("MISSING_SOURCE", "Source is missing", field)]
    source = str(value).strip().lower()
    if source not in known_sources:
        return source, [_warning("UNKNOWN_SOURCE", f"Unknown source: {source}", field, source=source)]
    return source, []


# -----------------------------------------------------------------------------
# Record validator
# -----------------------------------------------------------------------------


class RecordValidator:
    """Validates raw payloads into ``ValidatedRecord`` values."""

    def __init__(
        self,
        known_currencies: Iterable[str],
        known_sources: Iterable[str] = (),
        sale_types: Iterable[str] = ("sale",),
    ):
        self._known_currencies = frozenset(c.upper() for c in known_currencies)
        self._known_sources = frozenset(s.lower() for s in known_sources)
        self._sale_types = frozenset(s.lower() for s in sale_types)

    @classmethod
    def from_config(cls, config: PipelineConfig) -> RecordValidator:
        return cls(
            known_currencies=config.known_currencies,
            known_sources=config.known_sources,
            sale_types=config.sale_types,
        )

    def validate(self, payload: Mapping[str, Any], default_source: str | None = None) -> ValidationOutcome:
        """
        Validate one payload.

        Args:
            payload: The untyped payload.
            default_source: Used when the payload names no source (e.g. the
                ingress source id).
        """
        if not isinstance(payload, Mapping):
            err = _error("INVALID_PAYLOAD", "Payload must be an object", "payload", type=type(payload).__name__)
            return ValidationOutcome(record=None, errors=(err,))

        errors: list[PipelineError] = []
        warnings: list[PipelineError] = []

        record_type = _optional_text(payload, TYPE_FIELDS)

        amount_field, amount_raw = extract_field(payload, AMOUNT_FIELDS)
        amount, amount_errors, amount_warnings = validate_amount(
            amount_raw, record_type, self._sale_types, field=amount_field or "amount"
        )
        errors.extend(amount_errors)
        warnings.extend(amount_warnings)

        currency_field, currency_raw = extract_field(payload, CURRENCY_FIELDS)
        currency, currency_errors = validate_currency(
            currency_raw, self._known_currencies, field=currency_field or "currency"
        )
        errors.extend(currency_errors)

        ts_field, ts_raw = extract_field(payload, TIMESTAMP_FIELDS)
        timestamp, ts_errors = validate_timestamp(ts_raw, field=ts_field or "timestamp")
        errors.extend(ts_errors)

        source_field, source_raw = extract_field(payload, SOURCE_FIELDS)
        if source_raw is None:
            source_raw = default_source
        source, source_warnings = validate_source(source_raw, self._known_sources, field=source_field or "source")
        warnings.extend(source_warnings)

        if errors:
            return ValidationOutcome(record=None, errors=tuple(errors), warnings=tuple(warnings))

        assert amount is not None and currency is not None and timestamp is not None
        external_id = _optional_text(payload, EXTERNAL_ID_FIELDS)
        record_id = external_id or synthesize_record_id(amount, timestamp, source)

        record = ValidatedRecord(
            record_id=record_id,
            amount=amount,
            currency=currency,
            timestamp=timestamp,
            source=source,
            record_type=record_type,
            category=_optional_text(payload, CATEGORY_FIELDS),
            external_id=external_id,
            description=_optional_text(payload, DESCRIPTION_FIELDS),
        )
        return ValidationOutcome(record=record, errors=(), warnings=tuple(warnings))

    def validate_batch(self, payloads: Sequence[Mapping[str, Any]]) -> BatchValidation:
        """Validate many payloads; invalid ones are returned with all their errors."""
        valid: list[ValidatedRecord] = []
        invalid: list[InvalidPayload] = []
        for payload in payloads:
            outcome = self.validate(payload)
            if outcome.record is not None:
                valid.append(outcome.record)
            else:
                invalid.append(InvalidPayload(payload=payload, errors=outcome.errors))
        return BatchValidation(valid=tuple(valid), invalid=tuple(invalid), total=len(payloads))


def validate_record(payload: Mapping[str, Any], config: PipelineConfig) -> ValidationOutcome:
    """Validate one payload against a pipeline config."""
    return RecordValidator.from_config(config).validate(payload)


def validate_batch(payloads: Sequence[Mapping[str, Any]], config: PipelineConfig) -> BatchValidation:
    """Validate many payloads against a pipeline config."""
    return RecordValidator.from_config(config).validate_batch(payloads)
