"""Extraction data models."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


class FieldSpec(BaseModel):
    """A field name plus the shape of the value it holds."""

    name: str
    shape: Literal["scalar", "list"] = "scalar"

    model_config = {"frozen": True}


class Configuration(BaseModel):
    """Candidate selectors per field for one document type.

    Read and written as a whole unit; candidate lists are kept ordered and
    free of duplicates.
    """

    document_type: str
    fields: dict[str, list[str]] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @field_validator("fields")
    @classmethod
    def _dedupe_candidates(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        return {name: list(dict.fromkeys(selectors)) for name, selectors in value.items()}

    def candidates(self, field: str) -> list[str]:
        return list(self.fields.get(field, []))


class Sample(BaseModel):
    """Historical ground truth: the values a page is known to carry."""

    id: str = ""
    document_type: str
    url: str
    data: dict[str, str | list[str]]
    variant: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _default_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id") and "url" in data:
            data = {**data, "id": cls.make_id(data.get("document_type", ""), data["url"])}
        return data

    @staticmethod
    def make_id(document_type: str, url: str) -> str:
        return hashlib.sha256(f"{document_type}\n{url}".encode()).hexdigest()[:16]


class ExtractionResult(BaseModel):
    """Values extracted from one page, with the variant it resolved against.

    `fields` only holds resolved fields; `unresolved` names the rest.
    """

    document_type: str
    url: str = ""
    fields: dict[str, list[str]] = Field(default_factory=dict)
    selectors: dict[str, str] = Field(default_factory=dict)
    variant_id: str = ""
    unresolved: set[str] = Field(default_factory=set)
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> Literal["complete", "partial", "failed"]:
        if not self.fields:
            return "failed"
        if self.unresolved:
            return "partial"
        return "complete"
