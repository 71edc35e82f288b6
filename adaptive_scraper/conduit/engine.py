"""The reconciliation controller — extraction and self-repair lifecycle.

The controller is a finite state machine handling one extraction request.
It extracts with the stored configuration and, when fields no longer
resolve, rebuilds the configuration from historical samples.

Responsibilities:
- Drive the request from PENDING to SUCCEEDED/FAILED with guarded transitions
- Treat a missing configuration like one whose fields all fail
- Re-fetch samples concurrently, bounded by the worker budget
- Delete samples whose pages are permanently gone, skip transient failures
- Reuse known-good selectors before synthesizing new ones
- Persist a merged configuration only after it passed validation
- Serialize reconciliations per document type
- Enforce the reconciliation deadline
- Emit Signals at every phase boundary

MUST NOT:
- Merge with the previous configuration (a repair replaces it)
- Persist anything derived from a timed-out or incomplete sample pass
- Retry a failed reconciliation on its own
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Any

from adaptive_scraper.conduit.phases import TERMINAL_PHASES, VALID_TRANSITIONS, Phase
from adaptive_scraper.config.settings import ScraperConfig
from adaptive_scraper.fetch.types import FetchedPage, FetchError, Fetcher
from adaptive_scraper.pipeline.document import (
    DocumentNode,
    InvalidSelectorError,
    node_text,
    normalize_text,
    select,
)
from adaptive_scraper.pipeline.extraction import Configuration, ExtractionResult, Sample
from adaptive_scraper.pipeline.extractor import extract
from adaptive_scraper.pipeline.merger import (
    IncompleteConfigurationError,
    merge,
    schema_from_data,
    validate,
)
from adaptive_scraper.pipeline.synthesizer import FieldNotFoundError, PathSynthesizer
from adaptive_scraper.pipeline.variant import VariantFingerprinter
from adaptive_scraper.signals.emitter import SignalEmitter
from adaptive_scraper.signals.types import ExtractionRequested, SignalType
from adaptive_scraper.storage.repository import Repository
from adaptive_scraper.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class ControllerError(Exception):
    """Raised on an illegal phase transition."""


class ReconciliationLocks:
    """One lock per document type; held for the whole RECONCILING phase."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def for_type(self, document_type: str) -> asyncio.Lock:
        if document_type not in self._locks:
            self._locks[document_type] = asyncio.Lock()
        return self._locks[document_type]

    def locked(self, document_type: str) -> bool:
        lock = self._locks.get(document_type)
        return lock is not None and lock.locked()


class ReconciliationController:
    """Runtime controller for one extraction request."""

    def __init__(
        self,
        request: ExtractionRequested,
        *,
        fetcher: Fetcher,
        repository: Repository,
        config: ScraperConfig | None = None,
        locks: ReconciliationLocks | None = None,
        synthesizer: PathSynthesizer | None = None,
        ledger_path: Path | None = None,
        request_id: str | None = None,
    ) -> None:
        self._request = request
        self._config = config or ScraperConfig()
        self._request_id = request_id or f"req_{uuid.uuid4().hex[:12]}"
        self._phase = Phase.PENDING
        self._start_time: float | None = None

        self._fetcher = fetcher
        self._repository = repository
        self._locks = locks or ReconciliationLocks()
        self._synthesizer = synthesizer or PathSynthesizer(
            ignored_identifiers=self._config.synthesis.ignored_identifiers,
            max_depth=self._config.synthesis.max_depth,
        )
        self._signals = SignalEmitter(request_id=self._request_id, ledger_path=ledger_path)
        self._log_level = logging.INFO if self._config.verbose_logging else logging.DEBUG

        self._page: FetchedPage | None = None
        self._result: ExtractionResult | None = None
        self._repaired = False
        self._failure_reason: str | None = None

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def request(self) -> ExtractionRequested:
        return self._request

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def signals(self) -> SignalEmitter:
        return self._signals

    @property
    def result(self) -> ExtractionResult | None:
        return self._result

    def _log(self, message: str, *args: Any) -> None:
        logger.log(self._log_level, message, *args)

    # --- Phase Transition ---

    async def _transition(self, to_phase: Phase, context: dict[str, Any] | None = None) -> None:
        """Every phase transition MUST go through this method."""
        if to_phase not in VALID_TRANSITIONS.get(self._phase, set()):
            raise ControllerError(
                f"Invalid transition: {self._phase.value} -> {to_phase.value}"
            )

        from_phase = self._phase
        self._phase = to_phase

        await self._signals.emit_phase_transition(
            from_phase=from_phase.value,
            to_phase=to_phase.value,
            context=context or {},
        )

    # --- Main Loop ---

    async def run(self) -> dict[str, Any]:
        """Handle the request until it reaches a terminal phase.

        Returns a summary dict of the outcome.
        """
        self._start_time = time.monotonic()

        try:
            await self._transition(
                Phase.EXTRACTING,
                {"url": self._request.url, "document_type": self._request.document_type},
            )

            while self._phase not in TERMINAL_PHASES:
                if self._phase == Phase.EXTRACTING:
                    await self._phase_extracting()
                elif self._phase == Phase.NEEDS_RECONCILIATION:
                    await self._transition(Phase.RECONCILING)
                elif self._phase == Phase.RECONCILING:
                    await self._phase_reconciling()
                elif self._phase == Phase.REPAIRED:
                    await self._transition(Phase.EXTRACTING, {"after_repair": True})

        except Exception as e:
            emit_structured_error(
                logger,
                code=ErrorCode.CONTROLLER_UNHANDLED,
                message=str(e),
                suppressed=False,
                request_id=self._request_id,
                document_type=self._request.document_type,
                phase=self._phase.value,
            )
            if self._phase not in TERMINAL_PHASES:
                await self._fail(f"Unhandled exception: {e}")

        return self.summary()

    def summary(self) -> dict[str, Any]:
        elapsed = time.monotonic() - self._start_time if self._start_time else 0
        result = self._result
        return {
            "request_id": self._request_id,
            "status": "succeeded" if self._phase == Phase.SUCCEEDED else "failed",
            "phase": self._phase.value,
            "url": self._request.url,
            "document_type": self._request.document_type,
            "variant_id": result.variant_id if result else None,
            "fields": result.fields if result else {},
            "unresolved": sorted(result.unresolved) if result else [],
            "repaired": self._repaired,
            "failure_reason": self._failure_reason,
            "duration_s": round(elapsed, 2),
            "signals_count": len(self._signals.signals),
        }

    # --- Phase Implementations ---

    async def _phase_extracting(self) -> None:
        """EXTRACTING: resolve the stored configuration against the live page."""
        url = self._request.url
        document_type = self._request.document_type

        # After a repair the page fetched the first time is extracted again
        if self._page is None:
            self._log("Requesting %s", url)
            try:
                self._page = await self._fetcher.fetch(url)
            except FetchError as e:
                await self._fail(str(e))
                return

        self._log("Loading configuration for type '%s'", document_type)
        configuration = self._repository.load_configuration(document_type)

        result = extract(
            self._page.root,
            configuration,
            document_type=document_type,
            url=url,
            fingerprinter=VariantFingerprinter(),
        )
        self._result = result

        broken = configuration is None or not configuration.fields or bool(result.unresolved)
        if self._repaired or not broken:
            await self._signals.emit_extracted(
                url=url,
                document_type=document_type,
                fields=result.fields,
                variant_id=result.variant_id,
                unresolved=sorted(result.unresolved),
            )
            await self._transition(
                Phase.SUCCEEDED, {"variant_id": result.variant_id, "status": result.status}
            )
            return

        self._log(
            "Invalid configuration for '%s' and type '%s', unresolved: %s",
            url,
            document_type,
            sorted(result.unresolved) or "no configuration",
        )
        await self._signals.emit(
            SignalType.RECONCILIATION_NEEDED,
            {
                "document_type": document_type,
                "unresolved": sorted(result.unresolved),
                "configured": configuration is not None,
            },
        )
        await self._transition(Phase.NEEDS_RECONCILIATION)

    async def _phase_reconciling(self) -> None:
        """RECONCILING: rebuild the configuration from the type's samples."""
        document_type = self._request.document_type
        settings = self._config.reconciliation
        deadline = self._request.deadline_s or settings.deadline_s

        lock = self._locks.for_type(document_type)
        if lock.locked():
            self._log("Waiting for running reconciliation of '%s'", document_type)

        async with lock:
            current = self._repository.load_configuration(document_type)
            samples = self._repository.load_samples(document_type)
            if not samples:
                await self._fail_reconciliation("no samples")
                return

            # The schema is whatever the first sample was labeled with
            schema = schema_from_data(samples[0].data)

            try:
                results = await asyncio.wait_for(
                    self._configure_samples(samples, current), timeout=deadline
                )
            except asyncio.TimeoutError:
                emit_structured_error(
                    logger,
                    code=ErrorCode.RECONCILIATION_TIMEOUT,
                    message=f"Reconciliation exceeded {deadline}s",
                    suppressed=True,
                    request_id=self._request_id,
                    document_type=document_type,
                    phase=self._phase.value,
                )
                await self._fail_reconciliation("timeout")
                return

            usable = [r for r in results if r is not None]
            if not usable:
                await self._fail_reconciliation("no samples")
                return

            merged = merge(usable, schema, document_type, order=settings.selector_order)
            try:
                validate(merged, schema)
            except IncompleteConfigurationError as e:
                emit_structured_error(
                    logger,
                    code=ErrorCode.CONFIGURATION_INCOMPLETE,
                    message=str(e),
                    suppressed=True,
                    request_id=self._request_id,
                    document_type=document_type,
                    phase=self._phase.value,
                    details={"missing_fields": e.missing},
                )
                await self._fail_reconciliation("incomplete configuration", e.missing)
                return

            self._repository.save_configuration(document_type, merged)
            self._log("Configuration for '%s' repaired from %d samples", document_type, len(usable))
            await self._signals.emit_configuration_repaired(document_type, merged.fields)

        self._repaired = True
        await self._transition(Phase.REPAIRED, {"samples_used": len(usable)})

    # --- Sample Pass ---

    async def _configure_samples(
        self, samples: list[Sample], current: Configuration | None
    ) -> list[dict[str, str] | None]:
        semaphore = asyncio.Semaphore(self._config.reconciliation.max_workers)

        async def worker(sample: Sample) -> dict[str, str] | None:
            async with semaphore:
                return await self._configure_sample(sample, current)

        return list(await asyncio.gather(*(worker(sample) for sample in samples)))

    async def _configure_sample(
        self, sample: Sample, current: Configuration | None
    ) -> dict[str, str] | None:
        """Find a selector for every labeled field of one sample.

        Returns None when the sample contributes nothing to this round.
        """
        document_type = sample.document_type
        self._log("Request %s", sample.url)
        try:
            page = await self._fetcher.fetch(sample.url)
        except FetchError as e:
            if e.is_permanent:
                await self._delete_sample(sample, ErrorCode.FETCH_PERMANENT, str(e))
            else:
                emit_structured_error(
                    logger,
                    code=ErrorCode.FETCH_TRANSIENT,
                    message=str(e),
                    suppressed=True,
                    request_id=self._request_id,
                    document_type=document_type,
                    phase=self._phase.value,
                    details={"sample_id": sample.id, "status_code": e.status_code},
                )
            return None

        fingerprinter = VariantFingerprinter()
        found: dict[str, str] = {}
        for field, value in sample.data.items():
            self._log("Searching selector for field %s", field)
            selector = self._reuse_selector(current, field, page.root, value)
            if selector is None:
                try:
                    selector = self._synthesizer.find(page.root, value)
                except FieldNotFoundError:
                    fingerprinter.record_unresolved(field)
                    emit_structured_error(
                        logger,
                        code=ErrorCode.FIELD_NOT_FOUND,
                        message=f"Field '{field}' with value {value!r} not found for '{sample.url}'",
                        suppressed=True,
                        request_id=self._request_id,
                        document_type=document_type,
                        phase=self._phase.value,
                    )
                    continue
            found[field] = selector
            fingerprinter.record_resolved(field, selector)

        await self._signals.emit(
            SignalType.SAMPLE_CONFIGURED,
            {
                "url": sample.url,
                "document_type": document_type,
                "data": sample.data,
                "variant_id": fingerprinter.fingerprint(document_type),
                "unresolved": sorted(fingerprinter.unresolved),
            },
        )

        if not found:
            if self._config.reconciliation.delete_stale_samples:
                await self._delete_sample(
                    sample, ErrorCode.SAMPLE_DELETED, "Labeled values no longer present"
                )
            return None
        return found

    def _reuse_selector(
        self, current: Configuration | None, field: str, root: DocumentNode, value: Any
    ) -> str | None:
        """First known selector of `field` that still yields the labeled `value`."""
        if current is None:
            return None
        if isinstance(value, (list, tuple)):
            expected = [normalize_text(str(v)) for v in value]
        else:
            expected = normalize_text(str(value))
        for expression in current.candidates(field):
            try:
                nodes = select(root, expression)
            except InvalidSelectorError:
                continue
            if not nodes:
                continue
            texts = [node_text(n) for n in nodes]
            if isinstance(expected, list):
                if texts == expected:
                    return expression
            elif all(text == expected for text in texts):
                return expression
        return None

    async def _delete_sample(self, sample: Sample, code: ErrorCode, reason: str) -> None:
        self._repository.delete_sample(sample)
        emit_structured_error(
            logger,
            code=code,
            message=reason,
            suppressed=True,
            request_id=self._request_id,
            document_type=sample.document_type,
            phase=self._phase.value,
            details={"sample_id": sample.id, "url": sample.url},
        )
        await self._signals.emit(
            SignalType.SAMPLE_DELETED,
            {
                "sample_id": sample.id,
                "url": sample.url,
                "document_type": sample.document_type,
                "reason": reason,
            },
        )

    # --- Failure Handling ---

    async def _fail_reconciliation(
        self, reason: str, missing_fields: list[str] | None = None
    ) -> None:
        await self._signals.emit_reconciliation_failed(
            self._request.document_type, reason, missing_fields
        )
        detail = f": {', '.join(missing_fields)}" if missing_fields else ""
        await self._fail(f"Reconciliation failed ({reason}){detail}")

    async def _fail(self, reason: str) -> None:
        """Enter FAILED and report the request as not extracted."""
        current_phase = self._phase

        if current_phase in TERMINAL_PHASES:
            return

        self._phase = Phase.FAILED
        self._failure_reason = reason
        self._log("Extraction of '%s' failed in %s: %s", self._request.url, current_phase.value, reason)

        await self._signals.emit_extraction_failed(
            url=self._request.url,
            document_type=self._request.document_type,
            reason=reason,
        )
