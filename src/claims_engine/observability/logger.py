"""Structured logging with claim context for observability.

This module provides:
- ClaimLogger: a logger adapter with log_event for named lifecycle events
- claim_context: a context manager setting claim context for the current thread
"""

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

# Thread-local storage for claim context; each worker thread owns its own claim
_context = threading.local()


def _get_claim_context() -> dict[str, Any]:
    """Get the current claim context from thread-local storage."""
    return getattr(_context, "claim_data", {})


def _set_claim_context(data: dict[str, Any]) -> None:
    """Set the claim context in thread-local storage."""
    _context.claim_data = data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with claim context."""
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        claim_ctx = _get_claim_context()
        if claim_ctx:
            log_data["claim_id"] = claim_ctx.get("claim_id")
            log_data["claim_number"] = claim_ctx.get("claim_number")

        if getattr(record, "claim_id", None):
            log_data["claim_id"] = record.claim_id
        if getattr(record, "claim_number", None):
            log_data["claim_number"] = record.claim_number
        if getattr(record, "extra_data", None):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter with claim context prefix."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with claim context prefix."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        ctx_parts = []
        claim_ctx = _get_claim_context()

        claim_id = getattr(record, "claim_id", None) or claim_ctx.get("claim_id")
        if claim_id:
            ctx_parts.append(f"claim={claim_id}")

        claim_number = getattr(record, "claim_number", None) or claim_ctx.get("claim_number")
        if claim_number:
            ctx_parts.append(f"number={claim_number}")

        ctx_str = f" [{', '.join(ctx_parts)}]" if ctx_parts else ""

        message = record.getMessage()
        if getattr(record, "extra_data", None):
            message += f" | {record.extra_data}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return f"{timestamp} {record.levelname:8}{ctx_str} {record.name}: {message}"


class ClaimLogger(logging.LoggerAdapter):
    """Logger adapter that logs named claim events with structured data."""

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Pass each call's extra through instead of replacing it."""
        return msg, kwargs

    def log_event(
        self,
        event: str,
        level: int = logging.INFO,
        **data: Any,
    ) -> None:
        """Log a claim event with structured data.

        Args:
            event: Event name (e.g., "evidence_complete", "claim_transitioned")
            level: Log level
            **data: Event data; claim_id is attached to the record, the rest is
                rendered into the message and kept as extra_data
        """
        claim_id = data.pop("claim_id", None)
        message = f"[{event}]"
        if data:
            details = ", ".join(f"{k}={v}" for k, v in data.items())
            message = f"{message} {details}"

        extra = {"claim_id": claim_id, "extra_data": {"event": event, **data}}
        self.log(level, message, extra=extra)


def get_logger(name: str) -> ClaimLogger:
    """Get a ClaimLogger instance.

    The package root logger gets one handler on first use: JSON when
    CLAIMS_ENGINE_LOG_FORMAT=json, human-readable otherwise.
    """
    logger = logging.getLogger(name)

    # Only the package root gets a handler; module loggers propagate to it
    root_name = name.split(".")[0]
    root = logging.getLogger(root_name)
    if not root.handlers:
        structured = os.environ.get("CLAIMS_ENGINE_LOG_FORMAT", "human").lower() == "json"
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(StructuredFormatter() if structured else HumanReadableFormatter())
        root.addHandler(handler)

        log_level = os.environ.get("CLAIMS_ENGINE_LOG_LEVEL", "INFO").upper()
        root.setLevel(getattr(logging, log_level, logging.INFO))

    return ClaimLogger(logger)


@contextmanager
def claim_context(claim_id: str, claim_number: str | None = None):
    """Context manager for setting claim context on all logs within the block.

    Usage:
        with claim_context(claim_id="...", claim_number="CLM-1A2B3C4D"):
            logger.info("Deciding claim")  # Will include claim_id in output
    """
    old_context = _get_claim_context()
    _set_claim_context({"claim_id": claim_id, "claim_number": claim_number})
    try:
        yield
    finally:
        _set_claim_context(old_context)
