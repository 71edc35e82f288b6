"""Variant fingerprinting: which page template a pass resolved against."""

from __future__ import annotations

import hashlib
import json


class VariantFingerprinter:
    """Accumulates the (field, selector) pairs resolved during one pass.

    Create one per extraction or synthesis pass and hand it down the call
    chain; it is never shared between passes.
    """

    def __init__(self) -> None:
        self._resolved: dict[str, str] = {}
        self._unresolved: set[str] = set()

    @property
    def resolved(self) -> dict[str, str]:
        return dict(self._resolved)

    @property
    def unresolved(self) -> set[str]:
        return set(self._unresolved)

    @property
    def is_partial(self) -> bool:
        return bool(self._unresolved)

    def record_resolved(self, field: str, selector: str) -> None:
        self._resolved[field] = selector
        self._unresolved.discard(field)

    def record_unresolved(self, field: str) -> None:
        """Mark a field as failed. Accumulation continues for other fields."""
        self._unresolved.add(field)
        self._resolved.pop(field, None)

    def fingerprint(self, document_type: str) -> str:
        """Deterministic id over the sorted resolved pairs.

        Recording order does not matter. Unresolved fields are not part of
        the hash; callers read `unresolved` to tell partial passes apart.
        """
        material = json.dumps([document_type, sorted(self._resolved.items())])
        return hashlib.sha256(material.encode()).hexdigest()[:32]
