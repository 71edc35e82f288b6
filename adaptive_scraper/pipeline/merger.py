"""Merge per-sample selectors into one configuration."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Literal, Mapping, Sequence

from adaptive_scraper.pipeline.extraction import Configuration, FieldSpec


class IncompleteConfigurationError(Exception):
    """Raised when a merged configuration lacks fields of the schema."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(f"Field(s) \"{','.join(self.missing)}\" not found.")


def schema_from_data(data: Mapping[str, Any]) -> list[FieldSpec]:
    """Derive the schema of a document type from one sample's labeled data."""
    return [
        FieldSpec(name=name, shape="list" if isinstance(value, (list, tuple)) else "scalar")
        for name, value in data.items()
    ]


def merge(
    per_sample_results: Sequence[Mapping[str, str]],
    schema: Sequence[FieldSpec],
    document_type: str,
    order: Literal["discovery", "frequency"] = "discovery",
) -> Configuration:
    """Group every discovered selector by field across samples.

    Fields resolved in no sample are left out. Never raises, so partial
    results can be inspected; run `validate` before persisting.
    """
    discovered: dict[str, list[str]] = {}
    usage: Counter[tuple[str, str]] = Counter()
    for result in per_sample_results:
        for field, selector in result.items():
            selectors = discovered.setdefault(field, [])
            if selector not in selectors:
                selectors.append(selector)
            usage[(field, selector)] += 1

    if order == "frequency":
        for field, selectors in discovered.items():
            selectors.sort(key=lambda s, f=field: -usage[(f, s)])

    ordered_names = [spec.name for spec in schema if spec.name in discovered]
    ordered_names += [name for name in discovered if name not in ordered_names]

    return Configuration(
        document_type=document_type,
        fields={name: discovered[name] for name in ordered_names},
    )


def validate(config: Configuration, schema: Sequence[FieldSpec]) -> None:
    """Raise IncompleteConfigurationError if any schema field has no selector."""
    missing = {spec.name for spec in schema} - {
        name for name, selectors in config.fields.items() if selectors
    }
    if missing:
        raise IncompleteConfigurationError(missing)
