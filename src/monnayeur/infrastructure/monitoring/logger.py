"""
Structured JSON logging configuration.

Every record carries the request id and the wallet being processed,
taken from context variables. Claim tasks spawned while a wallet is
bound inherit it, so gateway and store logs for a detached mint are
attributed to the right claim.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional
from uuid import uuid4

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
wallet_ctx: ContextVar[Optional[str]] = ContextVar("wallet", default=None)

# Pipeline fields callers pass through ``extra=``
CONTEXT_FIELDS = ("tx_hash", "job")


class ClaimContextFilter(logging.Filter):
    """Stamp request id and wallet onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_ctx.get()
        if getattr(record, "wallet", None) is None:
            record.wallet = wallet_ctx.get()
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in JSON format with consistent schema.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string
        """
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in ("request_id", "wallet", *CONTEXT_FIELDS):
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["function"] = record.funcName
        log_data["line"] = record.lineno

        return json.dumps(log_data, default=str)


class PlainFormatter(logging.Formatter):
    """Human-readable format with the bound wallet, for development."""

    def __init__(self):
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        wallet = getattr(record, "wallet", None)
        return f"{line} [{wallet}]" if wallet else line


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure application logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Use JSON format (True) or plain text (False)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))
    handler.addFilter(ClaimContextFilter())
    handler.setFormatter(
        JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S") if json_logs else PlainFormatter()
    )
    root_logger.addHandler(handler)

    # Chain and database clients log every request at INFO
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    if not json_logs:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger with given name."""
    return logging.getLogger(name)


@contextmanager
def bind_wallet(address: Optional[str]) -> Iterator[None]:
    """
    Attribute logs in this context to a wallet.

    Tasks created inside the block keep the binding after it exits.
    """
    token = wallet_ctx.set(address)
    try:
        yield
    finally:
        wallet_ctx.reset(token)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set request ID for current context.

    Args:
        request_id: Request ID (generates UUID if None)

    Returns:
        Request ID that was set
    """
    if request_id is None:
        request_id = str(uuid4())
    request_id_ctx.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()
