"""Logging with request correlation IDs.

Every record carries ``correlation_id`` (set by the API middleware) and is
rendered as ``[<correlation_id>] <asctime> <level> <logger>: <message>``.
Checkout and webhook helpers log one ``key=value | ...`` line per event and
pass the same fields as ``extra`` for structured sinks such as CloudWatch.

Usage:
    logger = get_logger(__name__)
    log_payment_operation(logger, "checkout_program", order_id=order_id, amount=150000)
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

NO_CORRELATION_ID = "no-correlation-id"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Webhook outcomes that are expected but worth a second look
_WARNING_OUTCOMES = frozenset({"duplicate", "audit_only", "ignored"})


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current context, generating one if missing."""
    cid = correlation_id or str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Stamps ``correlation_id`` onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Prefixes each line with the record's correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = getattr(record, "correlation_id", None) or (
            get_correlation_id() or NO_CORRELATION_ID
        )
        return f"[{correlation_id}] {super().format(record)}"


def get_logger(name: str) -> logging.Logger:
    """Get a logger carrying the correlation ID filter."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Install the structured formatter on the root handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.addFilter(CorrelationIdFilter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


def _emit(logger: logging.Logger, level: int, headline: str, fields: dict[str, Any]) -> None:
    context = {key: value for key, value in fields.items() if value is not None and value != ""}
    message = " | ".join([headline, *(f"{key}={value}" for key, value in context.items())])
    logger.log(level, message, extra=context)


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    order_id: str | None = None,
    gateway: str | None = None,
    amount: int | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a checkout or gateway call.

    Logged at ERROR when ``error`` is given, INFO otherwise.

    Args:
        logger: Logger instance
        operation: e.g. "checkout_program", "create_checkout", "gateway_request"
        order_id: Order ID if one has been generated
        gateway: MIDTRANS / IPAYMU
        amount: Amount in IDR
        status: Payment status
        error: Failure message
        **extra: Additional context fields
    """
    _emit(
        logger,
        logging.ERROR if error else logging.INFO,
        f"Payment operation: {operation}",
        {
            "order_id": order_id,
            "gateway": gateway,
            "amount": amount,
            "status": status,
            "error": error,
            **extra,
        },
    )


def log_webhook_event(
    logger: logging.Logger,
    gateway: str,
    order_id: str,
    *,
    status: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one gateway notification and how it was reconciled.

    ``result`` picks the level: "error" logs at ERROR; duplicate, audit_only
    and ignored log at WARNING; everything else at INFO.
    """
    if result == "error":
        level = logging.ERROR
    elif result in _WARNING_OUTCOMES:
        level = logging.WARNING
    else:
        level = logging.INFO
    _emit(
        logger,
        level,
        f"Webhook event: {gateway} ({order_id})",
        {"status": status, "result": result, "error": error, **extra},
    )
