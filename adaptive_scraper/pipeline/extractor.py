"""Selector based extraction — resolve configured fields against a page.

Deterministic and cheap. A field that fails to resolve never stops the
others; the unresolved set is the signal that triggers reconciliation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from adaptive_scraper.pipeline.document import (
    DocumentNode,
    InvalidSelectorError,
    node_text,
    select,
)
from adaptive_scraper.pipeline.extraction import Configuration, ExtractionResult, FieldSpec
from adaptive_scraper.pipeline.variant import VariantFingerprinter
from adaptive_scraper.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


def extract(
    root: DocumentNode,
    configuration: Configuration | None,
    document_type: str,
    url: str = "",
    fingerprinter: VariantFingerprinter | None = None,
) -> ExtractionResult:
    """Extract every configured field from a parsed page.

    Args:
        root: Parsed document to extract from.
        configuration: Candidate selectors per field; None when the type has
            no stored configuration yet.
        document_type: Type the page belongs to.
        url: URL of the page, kept for provenance.
        fingerprinter: Accumulator for this pass. A fresh one is used when
            omitted.

    Returns:
        ExtractionResult with values of resolved fields, the variant id and
        the set of fields no candidate could resolve.
    """
    fingerprinter = fingerprinter or VariantFingerprinter()
    fields: dict[str, list[str]] = {}
    selectors: dict[str, str] = {}

    candidates = configuration.fields if configuration else {}
    for field_name, expressions in candidates.items():
        for expression in expressions:
            try:
                nodes = select(root, expression)
            except InvalidSelectorError as e:
                emit_structured_error(
                    logger,
                    code=ErrorCode.INVALID_SELECTOR,
                    message=str(e),
                    suppressed=True,
                    document_type=document_type,
                    details={"field": field_name, "selector": expression},
                )
                continue

            if nodes:
                logger.debug("Field %s resolved by %s", field_name, expression)
                fields[field_name] = [node_text(node) for node in nodes]
                selectors[field_name] = expression
                fingerprinter.record_resolved(field_name, expression)
                break
        else:
            logger.debug("No selector for field %s matched %s", field_name, url)
            fingerprinter.record_unresolved(field_name)

    return ExtractionResult(
        document_type=document_type,
        url=url,
        fields=fields,
        selectors=selectors,
        variant_id=fingerprinter.fingerprint(document_type),
        unresolved=fingerprinter.unresolved,
        extracted_at=datetime.now(timezone.utc),
    )


def flatten(
    result: ExtractionResult, schema: Sequence[FieldSpec]
) -> dict[str, str | list[str]]:
    """Collapse scalar fields to their first value according to the schema."""
    shapes = {spec.name: spec.shape for spec in schema}
    flat: dict[str, str | list[str]] = {}
    for name, values in result.fields.items():
        if shapes.get(name, "list") == "scalar":
            flat[name] = values[0] if values else ""
        else:
            flat[name] = list(values)
    return flat
