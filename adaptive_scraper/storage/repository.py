"""Configuration and sample repositories.

The engine only depends on the `Repository` protocol. Configurations are
replaced as a whole unit per document type, and readers never observe a
half-written configuration.
"""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path
from typing import Protocol

from adaptive_scraper.pipeline.extraction import Configuration, Sample

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


class Repository(Protocol):
    def load_configuration(self, document_type: str) -> Configuration | None: ...

    def save_configuration(self, document_type: str, configuration: Configuration) -> None: ...

    def load_samples(self, document_type: str) -> list[Sample]: ...

    def add_sample(self, sample: Sample) -> None: ...

    def delete_sample(self, sample: Sample) -> None: ...

    def find_sample(self, document_type: str, url: str) -> Sample | None: ...

    def count_samples(self, document_type: str, variant: str | None = None) -> int: ...

    def list_document_types(self) -> list[str]: ...


def _sorted_samples(samples: list[Sample]) -> list[Sample]:
    return sorted(samples, key=lambda s: (s.created_at, s.id))


class InMemoryRepository:
    """Process-local repository, used by tests and single-process setups."""

    def __init__(self) -> None:
        self._configurations: dict[str, Configuration] = {}
        self._samples: dict[str, dict[str, Sample]] = {}

    def load_configuration(self, document_type: str) -> Configuration | None:
        return self._configurations.get(document_type)

    def save_configuration(self, document_type: str, configuration: Configuration) -> None:
        # Configurations are frozen; a single assignment swaps them atomically
        self._configurations[document_type] = configuration

    def load_samples(self, document_type: str) -> list[Sample]:
        return _sorted_samples(list(self._samples.get(document_type, {}).values()))

    def add_sample(self, sample: Sample) -> None:
        self._samples.setdefault(sample.document_type, {})[sample.id] = sample

    def delete_sample(self, sample: Sample) -> None:
        self._samples.get(sample.document_type, {}).pop(sample.id, None)

    def find_sample(self, document_type: str, url: str) -> Sample | None:
        return self._samples.get(document_type, {}).get(Sample.make_id(document_type, url))

    def count_samples(self, document_type: str, variant: str | None = None) -> int:
        samples = self._samples.get(document_type, {}).values()
        return sum(1 for s in samples if variant is None or s.variant == variant)

    def list_document_types(self) -> list[str]:
        return sorted(set(self._configurations) | set(self._samples))


class FileRepository:
    """JSON files under a data directory.

    Layout:
        <data_dir>/configurations/<type>.json
        <data_dir>/samples/<type>/<sample_id>.json
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._config_dir = data_dir / "configurations"
        self._samples_dir = data_dir / "samples"

    @staticmethod
    def _safe_name(document_type: str) -> str:
        safe = _UNSAFE_NAME.sub("_", document_type)
        if safe != document_type or not safe:
            safe += "-" + hashlib.sha256(document_type.encode()).hexdigest()[:8]
        return safe

    def _config_path(self, document_type: str) -> Path:
        return self._config_dir / f"{self._safe_name(document_type)}.json"

    def _sample_dir(self, document_type: str) -> Path:
        return self._samples_dir / self._safe_name(document_type)

    @staticmethod
    def _write_atomic(path: Path, content: str) -> None:
        """Write to a temp file then swap it in with a single rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(".tmp")
        try:
            temp_path.write_text(content)
            os.replace(temp_path, path)
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def load_configuration(self, document_type: str) -> Configuration | None:
        path = self._config_path(document_type)
        if not path.exists():
            return None
        return Configuration.model_validate_json(path.read_text())

    def save_configuration(self, document_type: str, configuration: Configuration) -> None:
        self._write_atomic(
            self._config_path(document_type), configuration.model_dump_json(indent=2)
        )

    def load_samples(self, document_type: str) -> list[Sample]:
        sample_dir = self._sample_dir(document_type)
        if not sample_dir.exists():
            return []
        return _sorted_samples(
            [Sample.model_validate_json(p.read_text()) for p in sample_dir.glob("*.json")]
        )

    def add_sample(self, sample: Sample) -> None:
        path = self._sample_dir(sample.document_type) / f"{sample.id}.json"
        self._write_atomic(path, sample.model_dump_json(indent=2))

    def delete_sample(self, sample: Sample) -> None:
        path = self._sample_dir(sample.document_type) / f"{sample.id}.json"
        if path.exists():
            path.unlink()

    def find_sample(self, document_type: str, url: str) -> Sample | None:
        path = self._sample_dir(document_type) / f"{Sample.make_id(document_type, url)}.json"
        if not path.exists():
            return None
        return Sample.model_validate_json(path.read_text())

    def count_samples(self, document_type: str, variant: str | None = None) -> int:
        return sum(
            1
            for s in self.load_samples(document_type)
            if variant is None or s.variant == variant
        )

    def list_document_types(self) -> list[str]:
        types = {
            Configuration.model_validate_json(p.read_text()).document_type
            for p in self._config_dir.glob("*.json")
        }
        sample_dirs = self._samples_dir.iterdir() if self._samples_dir.exists() else []
        for sample_dir in sample_dirs:
            first = next(sample_dir.glob("*.json"), None) if sample_dir.is_dir() else None
            if first is not None:
                types.add(Sample.model_validate_json(first.read_text()).document_type)
        return sorted(types)
