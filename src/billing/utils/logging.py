"""Logging helpers for the billing pipeline.

Every line carries the request's correlation ID so a webhook delivery or a
refund call can be followed across the Stripe round trips it causes.

Usage:
    from billing.utils.logging import get_logger, log_webhook_event

    logger = get_logger(__name__)
    log_webhook_event(logger, "charge.succeeded", "evt_123", result="success")
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
NO_CORRELATION_ID = "no-correlation-id"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current context, minting one if absent."""
    value = correlation_id or uuid.uuid4().hex
    _correlation_id.set(value)
    return value


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Stamp ``correlation_id`` onto each record passing through."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """``[<correlation id>] <base format>``"""

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id is None:
            correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return f"[{correlation_id}] {super().format(record)}"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Attach one structured stream handler to the root logger.

    Repeat calls only adjust the level.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(DEFAULT_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with the correlation filter attached."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def _emit(
    logger: logging.Logger,
    level: int,
    headline: str,
    labelled: list[tuple[str, Any]],
    context: dict[str, Any],
) -> None:
    parts = [headline]
    parts.extend(f"{label}={value}" for label, value in labelled if value is not None)
    logger.log(level, " | ".join(parts), extra=context)


def _present(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None and value != ""}


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    session_id: str | None = None,
    payment_intent_id: str | None = None,
    charge_id: str | None = None,
    amount: int | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log an outbound checkout or refund call.

    Logged at ERROR when ``error`` is given, INFO otherwise. ``amount`` is in
    minor currency units.
    """
    fields = _present(
        session_id=session_id,
        payment_intent_id=payment_intent_id,
        charge_id=charge_id,
        amount=amount,
        status=status,
        error=error,
    )
    fields.update(extra)
    _emit(
        logger,
        logging.ERROR if error else logging.INFO,
        f"Payment operation: {operation}",
        list(fields.items()),
        {"operation": operation, **fields},
    )


_WEBHOOK_LEVELS = {"error": logging.ERROR, "skipped": logging.WARNING}


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    object_id: str | None = None,
    user_id: str | None = None,
    credit_granted: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one stage of webhook processing.

    Args:
        logger: Logger instance
        event_type: Stripe event type (e.g., "charge.succeeded")
        event_id: Stripe event ID
        object_id: ID of the event's subject (session, intent, charge...)
        user_id: UserId from the resolved metadata, if any
        credit_granted: CreditGranted from the resolved metadata, if any
        result: Stage reached (received, success, skipped, error); ``skipped``
            logs at WARNING and ``error`` at ERROR
        error: Error message if processing failed
        **extra: Additional context fields
    """
    context = {
        "event_type": event_type,
        "event_id": event_id,
        **_present(
            object_id=object_id,
            user_id=user_id,
            credit_granted=credit_granted,
            result=result,
            error=error,
        ),
        **extra,
    }
    _emit(
        logger,
        _WEBHOOK_LEVELS.get(result or "", logging.INFO),
        f"Webhook event: {event_type} ({event_id})",
        [
            ("result", result or None),
            ("object", object_id or None),
            ("UserId", user_id or None),
            ("CreditGranted", credit_granted or None),
            ("error", error or None),
        ],
        context,
    )
