"""Logging for the checkout service.

Every record is stamped with the current request's correlation ID. Pipeline
helpers attach their structured fields as ``record.context``, which the
formatter appends as ``key=value`` pairs:

    [3f2c...] 2026-07-14 10:00:00,123 WARNING ticketing.services.webhook_handler Webhook checkout.session.completed (evt_1) | session_id=cs_1 | result=partial_failure

Usage:
    logger = get_logger(__name__)
    log_forwarding(logger, session_id, delivered=False, status_code=503)
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
NO_CORRELATION_ID = "no-correlation-id"

_request_id: ContextVar[str | None] = ContextVar("ticketing_correlation_id", default=None)

# Webhook results that are not plain successes
_WEBHOOK_RESULT_LEVELS = {
    "rejected": logging.ERROR,
    "degraded": logging.WARNING,
    "partial_failure": logging.WARNING,
}


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind ``correlation_id`` (or a fresh UUID4) to the running context and return it."""
    bound = correlation_id or str(uuid.uuid4())
    _request_id.set(bound)
    return bound


def get_correlation_id() -> str | None:
    return _request_id.get()


def clear_correlation_id() -> None:
    _request_id.set(None)


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _request_id.get() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """``[<correlation id>] <base format>`` followed by ``| key=value`` context."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = getattr(record, "correlation_id", None) or _request_id.get() or NO_CORRELATION_ID
        line = f"[{stamp}] {super().format(record)}"
        context = getattr(record, "context", None) or {}
        return line + "".join(f" | {key}={value}" for key, value in context.items())


def configure_logging(level: str = "INFO") -> None:
    """Attach one structured stderr handler to the root logger.

    Repeated calls only adjust the level.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return

    stream = logging.StreamHandler()
    stream.setFormatter(StructuredFormatter(LOG_FORMAT))
    stream.addFilter(CorrelationIdFilter())
    root.addHandler(stream)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def _emit(logger: logging.Logger, level: int, headline: str, **fields: Any) -> None:
    context = {key: value for key, value in fields.items() if value is not None}
    logger.log(level, headline, extra={"context": context})


def log_checkout_operation(
    logger: logging.Logger,
    operation: str,
    *,
    session_id: str | None = None,
    line_items: int | None = None,
    side_channel_records: int | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one checkout step (``normalize_cart``, ``create_checkout_session``).

    A step that carries ``error`` is logged at ERROR, everything else at INFO.
    """
    _emit(
        logger,
        logging.ERROR if error else logging.INFO,
        f"Checkout {operation}",
        session_id=session_id,
        line_items=line_items,
        side_channel_records=side_channel_records,
        error=error,
        **extra,
    )


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    session_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log the outcome of one webhook delivery.

    Args:
        logger: Logger instance
        event_type: Event type, or "unknown" when the body never authenticated
        event_id: Event ID, or "unknown"
        session_id: Checkout session the event refers to
        result: Reconciliation state name; rejected logs at ERROR,
            degraded and partial_failure at WARNING
        error: Reason attached to a rejection or degradation
        **extra: Further context fields
    """
    _emit(
        logger,
        _WEBHOOK_RESULT_LEVELS.get(result or "", logging.INFO),
        f"Webhook {event_type} ({event_id})",
        session_id=session_id,
        result=result,
        error=error,
        **extra,
    )


def log_forwarding(
    logger: logging.Logger,
    session_id: str,
    *,
    delivered: bool,
    status_code: int | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one POST to the automation endpoint.

    Failed deliveries read ``ForwardingFailure <session id>`` at ERROR so
    sessions that need re-driving can be grepped out of the logs.
    """
    if delivered:
        _emit(logger, logging.INFO, f"Forwarded {session_id}", status_code=status_code, **extra)
        return
    _emit(
        logger,
        logging.ERROR,
        f"ForwardingFailure {session_id}",
        status_code=status_code,
        error=error,
        **extra,
    )
