"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    FETCH_TRANSIENT = "FETCH_TRANSIENT"
    FETCH_PERMANENT = "FETCH_PERMANENT"
    SAMPLE_DELETED = "SAMPLE_DELETED"
    FIELD_NOT_FOUND = "FIELD_NOT_FOUND"
    INVALID_SELECTOR = "INVALID_SELECTOR"
    CONFIGURATION_INCOMPLETE = "CONFIGURATION_INCOMPLETE"
    RECONCILIATION_TIMEOUT = "RECONCILIATION_TIMEOUT"
    SIGNAL_SUBSCRIBER_FAILURE = "SIGNAL_SUBSCRIBER_FAILURE"
    CONTROLLER_UNHANDLED = "CONTROLLER_UNHANDLED"
    BROWSER_CLEANUP_FAILED = "BROWSER_CLEANUP_FAILED"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    request_id: str | None = None,
    document_type: str | None = None,
    phase: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging.

    Suppressed errors were absorbed by the caller and only reach the log,
    so they go out at WARNING; anything else is an ERROR.
    """
    logger.log(
        logging.WARNING if suppressed else logging.ERROR,
        "scraper_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "request_id": request_id,
            "document_type": document_type,
            "phase": phase,
            "details": details or {},
        },
    )
