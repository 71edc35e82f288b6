"""Tests for the Signal emitter system."""

import logging

import pytest

from adaptive_scraper.signals.emitter import SignalEmitter
from adaptive_scraper.signals.types import ExtractionRequested, SignalType


@pytest.fixture
def tmp_ledger(tmp_path):
    return tmp_path / "req_test" / "signals.jsonl"


@pytest.fixture
def emitter(tmp_ledger):
    return SignalEmitter(request_id="req_test_001", ledger_path=tmp_ledger)


class TestSignalEmitter:
    """Test signal emission, persistence, and broadcasting."""

    @pytest.mark.asyncio
    async def test_emit_creates_signal(self, emitter):
        signal = await emitter.emit(
            SignalType.PHASE_TRANSITION, {"from_phase": "PENDING", "to_phase": "EXTRACTING"}
        )
        assert signal.sequence == 1
        assert signal.signal_type == SignalType.PHASE_TRANSITION
        assert signal.request_id == "req_test_001"
        assert signal.payload["to_phase"] == "EXTRACTING"

    @pytest.mark.asyncio
    async def test_monotonic_sequence(self, emitter):
        s1 = await emitter.emit(SignalType.PHASE_TRANSITION)
        s2 = await emitter.emit(SignalType.RECONCILIATION_NEEDED)
        s3 = await emitter.emit(SignalType.EXTRACTED)
        assert [s1.sequence, s2.sequence, s3.sequence] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_signals_are_immutable(self, emitter):
        signal = await emitter.emit(SignalType.PHASE_TRANSITION, {"key": "value"})
        with pytest.raises(Exception):
            signal.payload = {"modified": True}

    @pytest.mark.asyncio
    async def test_ledger_round_trip(self, emitter, tmp_ledger):
        await emitter.emit(SignalType.PHASE_TRANSITION)
        await emitter.emit_extraction_failed("https://e.com/1", "product", "timeout")

        assert len(tmp_ledger.read_text().strip().split("\n")) == 2
        loaded = SignalEmitter.load_ledger(tmp_ledger)
        assert [s.signal_type for s in loaded] == [
            SignalType.PHASE_TRANSITION,
            SignalType.EXTRACTION_FAILED,
        ]

    def test_load_missing_ledger(self, tmp_path):
        assert SignalEmitter.load_ledger(tmp_path / "none.jsonl") == []

    @pytest.mark.asyncio
    async def test_async_subscriber_receives_signals(self, emitter):
        received = []

        async def on_signal(signal):
            received.append(signal.signal_type)

        emitter.subscribe(on_signal)
        await emitter.emit(SignalType.PHASE_TRANSITION)
        await emitter.emit(SignalType.EXTRACTED)

        assert received == [SignalType.PHASE_TRANSITION, SignalType.EXTRACTED]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, emitter):
        received = []

        def on_signal(signal):
            received.append(signal)

        emitter.subscribe(on_signal)
        await emitter.emit(SignalType.PHASE_TRANSITION)

        emitter.unsubscribe(on_signal)
        await emitter.emit(SignalType.EXTRACTED)

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_subscriber_error_does_not_break_emission(self, emitter, caplog):
        received = []

        def bad_subscriber(signal):
            raise RuntimeError("Subscriber failure")

        emitter.subscribe(bad_subscriber)
        emitter.subscribe(received.append)

        with caplog.at_level(logging.WARNING):
            signal = await emitter.emit(SignalType.PHASE_TRANSITION)

        assert signal.sequence == 1
        assert received == [signal]
        assert any(
            getattr(r, "error_code", None) == "SIGNAL_SUBSCRIBER_FAILURE" for r in caplog.records
        )

    @pytest.mark.asyncio
    async def test_signals_property_returns_copy(self, emitter):
        await emitter.emit(SignalType.PHASE_TRANSITION)
        signals = emitter.signals
        signals.clear()
        assert len(emitter.signals) == 1


class TestConvenienceEmitters:
    @pytest.mark.asyncio
    async def test_phase_transition(self, emitter):
        signal = await emitter.emit_phase_transition("PENDING", "EXTRACTING", {"url": "u"})
        assert signal.payload == {"from_phase": "PENDING", "to_phase": "EXTRACTING", "url": "u"}

    @pytest.mark.asyncio
    async def test_extracted(self, emitter):
        signal = await emitter.emit_extracted(
            "https://e.com/1", "product", {"price": ["9.99"]}, "abc", unresolved=["title"]
        )
        assert signal.signal_type == SignalType.EXTRACTED
        assert signal.payload["fields"] == {"price": ["9.99"]}
        assert signal.payload["unresolved"] == ["title"]

    @pytest.mark.asyncio
    async def test_reconciliation_failed(self, emitter):
        signal = await emitter.emit_reconciliation_failed(
            "product", "incomplete configuration", ["title", "price"]
        )
        assert signal.payload["missing_fields"] == ["price", "title"]

    @pytest.mark.asyncio
    async def test_configuration_repaired(self, emitter):
        signal = await emitter.emit_configuration_repaired("product", {"title": ["//h1"]})
        assert signal.signal_type == SignalType.CONFIGURATION_REPAIRED
        assert signal.payload["fields"] == {"title": ["//h1"]}


class TestExtractionRequested:
    def test_rejects_non_positive_deadline(self):
        with pytest.raises(ValueError):
            ExtractionRequested(url="https://e.com", document_type="product", deadline_s=0)
