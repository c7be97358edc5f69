"""
Typed exception hierarchy for the financial event pipeline.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
instead of data buried in the message string.

    FinflowError (base)
    |
    +-- ConfigurationError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- InvalidExchangeRateError
    |
    +-- IngestionError
        +-- IngestionFailedError
        +-- RawEventNotFoundError
        +-- InvalidStatusTransitionError

Code quick reference:

    CONFIGURATION_ERROR       Config file failed schema or value checks
    INVALID_CURRENCY          Not a valid ISO 4217 code
    INVALID_EXCHANGE_RATE     Rate table holds a zero/negative/non-finite rate
    INGESTION_FAILED          Raw event could not be handed to the store
    RAW_EVENT_NOT_FOUND       Status update for an unknown raw event id
    INVALID_STATUS_TRANSITION Raw event already in a terminal status

Validation problems are NOT exceptions: the validator returns them as
structured ``PipelineError`` values so a payload's full error list is
reported at once.
"""

from decimal import Decimal


class FinflowError(Exception):
    """
    Base exception for all pipeline errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "FINFLOW_ERROR"


# Configuration


class ConfigurationError(FinflowError):
    """Pipeline configuration failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, problems: list[str], source: str | None = None):
        self.problems = list(problems)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"Invalid pipeline configuration{where}: " + "; ".join(self.problems)
        )


# Currency-related exceptions


class CurrencyError(FinflowError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError, ValueError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: object, reason: str = "Invalid currency code"):
        self.currency = currency
        self.reason = reason
        super().__init__(f"{reason}: {currency!r}")


class InvalidExchangeRateError(CurrencyError):
    """Exchange-rate table holds an unusable multiplier."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, currency: str, rate: object, reason: str):
        self.currency = currency
        self.rate = str(rate) if isinstance(rate, Decimal) else repr(rate)
        self.reason = reason
        super().__init__(
            f"Invalid exchange rate for {currency}: {self.rate} ({reason})"
        )


# Ingestion-related exceptions


class IngestionError(FinflowError):
    """Base exception for ingestion errors."""

    code: str = "INGESTION_ERROR"


class IngestionFailedError(IngestionError):
    """
    The raw event could not be recorded by the persistence collaborator.

    This is the only failure ``ingest`` surfaces to its caller: without a
    stored raw event there is nothing to attach a terminal status to.
    """

    code: str = "INGESTION_FAILED"

    def __init__(self, event_id: str, reason: str):
        self.event_id = event_id
        self.reason = reason
        super().__init__(f"Ingestion failed for event {event_id}: {reason}")


class RawEventNotFoundError(IngestionError):
    """Raw event with given ID was not found."""

    code: str = "RAW_EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Raw event not found: {event_id}")


class InvalidStatusTransitionError(IngestionError):
    """Raw event is already in a terminal status."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, event_id: str, current_status: str, requested_status: str):
        self.event_id = event_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot move raw event {event_id} from {current_status} "
            f"to {requested_status}"
        )
