"""Signal and event payload definitions for the scraper."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """All signal types emitted by the scraper."""

    PHASE_TRANSITION = "PHASE_TRANSITION"
    EXTRACTED = "EXTRACTED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    RECONCILIATION_NEEDED = "RECONCILIATION_NEEDED"
    SAMPLE_CONFIGURED = "SAMPLE_CONFIGURED"
    SAMPLE_DELETED = "SAMPLE_DELETED"
    CONFIGURATION_REPAIRED = "CONFIGURATION_REPAIRED"
    RECONCILIATION_FAILED = "RECONCILIATION_FAILED"


# Signals that leave the service through the outbound queue.
OUTBOUND_SIGNALS = frozenset(
    {
        SignalType.EXTRACTED,
        SignalType.EXTRACTION_FAILED,
        SignalType.CONFIGURATION_REPAIRED,
        SignalType.RECONCILIATION_FAILED,
    }
)


class Signal(BaseModel):
    """An immutable signal emitted while handling one extraction request.

    Signals are append-only and cannot be modified after emission.
    """

    sequence: int = Field(description="Monotonic sequence number within the request")
    signal_type: SignalType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ExtractionRequested(BaseModel):
    """Inbound request to extract one page of a document type."""

    url: str
    document_type: str
    deadline_s: float | None = Field(default=None, gt=0)

    model_config = {"frozen": True}
