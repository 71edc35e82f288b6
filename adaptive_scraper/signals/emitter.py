"""Signal emitter — the event boundary of an extraction request.

Handles emission, persistence, and delivery of Signals. Outbound events
(Extracted, ExtractionFailed, ...) reach the rest of the system only
through subscribers registered here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from adaptive_scraper.signals.types import Signal, SignalType
from adaptive_scraper.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class SignalEmitter:
    """Emits, persists, and broadcasts signals for a single request.

    Signals are:
    - Immutable once emitted
    - Assigned monotonic sequence numbers
    - Persisted to a JSONL ledger in append-only mode
    - Delivered to subscribers in emission order
    """

    def __init__(self, request_id: str, ledger_path: Path | None = None) -> None:
        self._request_id = request_id
        self._sequence = 0
        self._ledger_path = ledger_path
        self._subscribers: list[Callable[[Signal], Any]] = []
        self._signals: list[Signal] = []
        self._lock = asyncio.Lock()

        if self._ledger_path:
            self._ledger_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def signals(self) -> list[Signal]:
        """Return all emitted signals (read-only copy)."""
        return list(self._signals)

    def subscribe(self, callback: Callable[[Signal], Any]) -> None:
        """Register a subscriber. Coroutine callbacks are awaited."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers = [s for s in self._subscribers if s is not callback]

    async def emit(self, signal_type: SignalType, payload: dict[str, Any] | None = None) -> Signal:
        """Emit a signal. This is the ONLY way to create signals."""
        async with self._lock:
            self._sequence += 1
            signal = Signal(
                sequence=self._sequence,
                signal_type=signal_type,
                timestamp=datetime.now(timezone.utc),
                request_id=self._request_id,
                payload=payload or {},
            )
            self._signals.append(signal)

        if self._ledger_path:
            self._persist(signal)

        await self._broadcast(signal)

        return signal

    def _persist(self, signal: Signal) -> None:
        """Append signal to the JSONL ledger file."""
        with open(self._ledger_path, "a") as f:
            f.write(signal.model_dump_json() + "\n")

    async def _broadcast(self, signal: Signal) -> None:
        for subscriber in self._subscribers:
            try:
                result = subscriber(signal)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                # Subscribers must not break the emission pipeline
                emit_structured_error(
                    logger,
                    code=ErrorCode.SIGNAL_SUBSCRIBER_FAILURE,
                    message=str(exc),
                    suppressed=True,
                    request_id=self._request_id,
                    details={"signal_type": signal.signal_type.value},
                )

    async def emit_phase_transition(
        self, from_phase: str, to_phase: str, context: dict[str, Any] | None = None
    ) -> Signal:
        return await self.emit(
            SignalType.PHASE_TRANSITION,
            {"from_phase": from_phase, "to_phase": to_phase, **(context or {})},
        )

    async def emit_extracted(
        self,
        url: str,
        document_type: str,
        fields: dict[str, list[str]],
        variant_id: str,
        unresolved: list[str] | None = None,
    ) -> Signal:
        return await self.emit(
            SignalType.EXTRACTED,
            {
                "url": url,
                "document_type": document_type,
                "fields": fields,
                "variant_id": variant_id,
                "unresolved": sorted(unresolved or []),
            },
        )

    async def emit_extraction_failed(self, url: str, document_type: str, reason: str) -> Signal:
        return await self.emit(
            SignalType.EXTRACTION_FAILED,
            {"url": url, "document_type": document_type, "reason": reason},
        )

    async def emit_configuration_repaired(
        self, document_type: str, fields: dict[str, list[str]]
    ) -> Signal:
        return await self.emit(
            SignalType.CONFIGURATION_REPAIRED,
            {"document_type": document_type, "fields": fields},
        )

    async def emit_reconciliation_failed(
        self, document_type: str, reason: str, missing_fields: list[str] | None = None
    ) -> Signal:
        return await self.emit(
            SignalType.RECONCILIATION_FAILED,
            {
                "document_type": document_type,
                "reason": reason,
                "missing_fields": sorted(missing_fields or []),
            },
        )

    @staticmethod
    def load_ledger(ledger_path: Path) -> list[Signal]:
        """Load all signals from a JSONL ledger file."""
        signals = []
        if ledger_path.exists():
            with open(ledger_path) as f:
                for line in f:
                    line = line.strip()
                    if line:
                        signals.append(Signal.model_validate_json(line))
        return signals
