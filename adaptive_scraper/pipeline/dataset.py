"""Dataset updater — grow the sample set from successful extractions.

Every complete extraction is ground truth for its page. Known URLs are
refreshed in place; new URLs are added while their variant has fewer than
`amount_limit` samples, so each page template stays represented without the
dataset growing without bound.
"""

from __future__ import annotations

import logging

from adaptive_scraper.pipeline.extraction import Sample
from adaptive_scraper.signals.types import Signal, SignalType
from adaptive_scraper.storage.repository import Repository

logger = logging.getLogger(__name__)


class DatasetUpdater:
    def __init__(self, repository: Repository, amount_limit: int = 100) -> None:
        self._repository = repository
        self._amount_limit = amount_limit

    def handle(self, signal: Signal) -> Sample | None:
        """Signal subscriber. Returns the stored sample, if any."""
        if signal.signal_type != SignalType.EXTRACTED:
            return None

        payload = signal.payload
        fields: dict[str, list[str]] = payload.get("fields") or {}
        if not fields or payload.get("unresolved"):
            return None

        document_type = payload["document_type"]
        url = payload["url"]
        variant = payload.get("variant_id") or None

        existing = self._repository.find_sample(document_type, url)
        if existing is not None:
            sample = Sample(
                id=existing.id,
                document_type=document_type,
                url=url,
                data=self._shape_like(fields, existing.data),
                variant=variant,
                created_at=existing.created_at,
            )
            self._repository.add_sample(sample)
            logger.debug("Updated sample %s for %s", sample.id, url)
            return sample

        if self._repository.count_samples(document_type, variant) >= self._amount_limit:
            logger.debug("Variant %s of %s already has enough samples", variant, document_type)
            return None

        sample = Sample(
            document_type=document_type,
            url=url,
            data=self._shape_like(fields, {}),
            variant=variant,
        )
        self._repository.add_sample(sample)
        logger.debug("Added sample %s for %s", sample.id, url)
        return sample

    @staticmethod
    def _shape_like(
        fields: dict[str, list[str]], reference: dict[str, str | list[str]]
    ) -> dict[str, str | list[str]]:
        """Keep the shape of known fields; single values of new fields become scalars."""
        data: dict[str, str | list[str]] = {}
        for name, values in fields.items():
            if name in reference:
                is_list = isinstance(reference[name], list)
            else:
                is_list = len(values) != 1
            data[name] = list(values) if is_list else (values[0] if values else "")
        return data
