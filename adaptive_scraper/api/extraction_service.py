"""Service layer for extraction requests.

Owns everything requests share: the repository, the fetcher, the per-type
reconciliation locks and the outbound signal queue. Each request gets its
own ReconciliationController.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import HTTPException

from adaptive_scraper.conduit.engine import ReconciliationController, ReconciliationLocks
from adaptive_scraper.config.settings import ScraperConfig
from adaptive_scraper.fetch.types import Fetcher
from adaptive_scraper.pipeline.dataset import DatasetUpdater
from adaptive_scraper.signals.emitter import SignalEmitter
from adaptive_scraper.signals.types import OUTBOUND_SIGNALS, ExtractionRequested, Signal
from adaptive_scraper.storage.repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class RequestEntry:
    controller: ReconciliationController
    task: asyncio.Task[Any] | None = None
    result: dict[str, Any] | None = None


class ExtractionService:
    def __init__(
        self,
        repository: Repository,
        fetcher: Fetcher,
        config: ScraperConfig | None = None,
        ledger_dir: Path | None = None,
    ) -> None:
        self._config = config or ScraperConfig()
        self._repository = repository
        self._fetcher = fetcher
        self._ledger_dir = ledger_dir
        self._locks = ReconciliationLocks()
        self._slots = asyncio.Semaphore(self._config.api.max_concurrent_requests)
        self._dataset = DatasetUpdater(
            repository, amount_limit=self._config.reconciliation.dataset_amount_limit
        )
        self._entries: OrderedDict[str, RequestEntry] = OrderedDict()
        self._workers: list[asyncio.Task[None]] = []

        self.inbound: asyncio.Queue[ExtractionRequested] = asyncio.Queue()
        self.outbound: asyncio.Queue[Signal] = asyncio.Queue()

    @property
    def config(self) -> ScraperConfig:
        return self._config

    @property
    def repository(self) -> Repository:
        return self._repository

    @property
    def locks(self) -> ReconciliationLocks:
        return self._locks

    # --- Lifecycle ---

    async def start(self, workers: int | None = None) -> None:
        """Start the fetcher and the workers consuming `inbound`."""
        await self._fetcher.start()
        count = workers or self._config.api.max_concurrent_requests
        for _ in range(count - len(self._workers)):
            self._workers.append(asyncio.create_task(self._consume()))

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        await self._fetcher.stop()

    async def _consume(self) -> None:
        while True:
            request = await self.inbound.get()
            try:
                await self.handle(request)
            finally:
                self.inbound.task_done()

    # --- Requests ---

    def _create(self, request: ExtractionRequested) -> ReconciliationController:
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        ledger_path = (
            self._ledger_dir / request_id / "signals.jsonl" if self._ledger_dir is not None else None
        )
        controller = ReconciliationController(
            request,
            fetcher=self._fetcher,
            repository=self._repository,
            config=self._config,
            locks=self._locks,
            ledger_path=ledger_path,
            request_id=request_id,
        )

        async def forward(signal: Signal) -> None:
            if signal.signal_type in OUTBOUND_SIGNALS:
                await self.outbound.put(signal)

        controller.signals.subscribe(forward)
        controller.signals.subscribe(self._dataset.handle)
        self._entries[controller.request_id] = RequestEntry(controller=controller)
        return controller

    async def _execute(self, controller: ReconciliationController) -> dict[str, Any]:
        async with self._slots:
            result = await controller.run()
        self._complete(controller.request_id, result)
        return result

    async def handle(self, request: ExtractionRequested) -> dict[str, Any]:
        """Run one request to completion and return its summary."""
        controller = self._create(request)
        return await self._execute(controller)

    def submit(self, request: ExtractionRequested) -> str:
        """Start a request in the background and return its id."""
        controller = self._create(request)
        entry = self._entries[controller.request_id]
        entry.task = asyncio.create_task(self._execute(controller))
        return controller.request_id

    def _complete(self, request_id: str, result: dict[str, Any]) -> None:
        entry = self._entries.get(request_id)
        if entry is None:
            return
        entry.task = None
        entry.result = result
        self._evict_completed()

    def _evict_completed(self) -> None:
        completed = [rid for rid, entry in self._entries.items() if entry.result is not None]
        overflow = len(completed) - self._config.api.run_retention_limit
        for request_id in completed[: max(overflow, 0)]:
            del self._entries[request_id]
            logger.debug("Evicted completed request %s", request_id)

    # --- Queries ---

    def get_status(self, request_id: str) -> dict[str, Any]:
        entry = self._entries.get(request_id)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Request {request_id} not found")
        if entry.result is None:
            controller = entry.controller
            return {
                "request_id": request_id,
                "status": "running",
                "phase": controller.phase.value,
                "url": controller.request.url,
                "document_type": controller.request.document_type,
                "signals_count": len(controller.signals.signals),
            }
        return entry.result

    def get_signals(self, request_id: str) -> list[Signal]:
        entry = self._entries.get(request_id)
        if entry is not None:
            return entry.controller.signals.signals

        if self._ledger_dir is not None:
            ledger_path = self._ledger_dir / request_id / "signals.jsonl"
            if ledger_path.exists():
                return SignalEmitter.load_ledger(ledger_path)

        raise HTTPException(status_code=404, detail=f"Signals for request {request_id} not found")
