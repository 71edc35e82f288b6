"""Adaptive scraper configuration settings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


def _csv_env(var_name: str) -> list[str]:
    raw = os.getenv(var_name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def _flag_env(var_name: str) -> bool:
    return os.getenv(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


class BrowserConfig(BaseModel):
    """Playwright fetcher configuration."""

    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str | None = None
    locale: str = "en-US"


class FetchConfig(BaseModel):
    """Page fetch transport configuration."""

    model_config = {"validate_default": True}

    backend: Literal["http", "browser"] = Field(
        default_factory=lambda: os.getenv("SCRAPER_FETCH_BACKEND", "http")
    )
    timeout_s: float = 30.0
    user_agent: str = "adaptive-scraper/1.0"
    headers: dict[str, str] = Field(default_factory=dict)
    follow_redirects: bool = True


class SynthesisConfig(BaseModel):
    """Selector synthesis tuning."""

    ignored_identifiers: list[str] = Field(
        default_factory=lambda: _csv_env("SCRAPER_IGNORED_IDENTIFIERS")
    )
    max_depth: int = 4

    @field_validator("max_depth")
    @classmethod
    def _validate_max_depth(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_depth must be >= 1")
        return value


class ReconciliationConfig(BaseModel):
    """Reconciliation budgets and policies."""

    max_workers: int = 8
    deadline_s: float = 300.0
    selector_order: Literal["discovery", "frequency"] = "discovery"
    delete_stale_samples: bool = True
    dataset_amount_limit: int = 100

    @field_validator("max_workers")
    @classmethod
    def _validate_max_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_workers must be >= 1")
        return value

    @field_validator("deadline_s")
    @classmethod
    def _validate_deadline(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("deadline_s must be > 0")
        return value


class StorageConfig(BaseModel):
    """Configuration and sample store location."""

    data_dir: Path = Field(default_factory=lambda: Path(os.getenv("SCRAPER_DATA_DIR", "./data")))


class APIConfig(BaseModel):
    """API security and runtime controls from environment."""

    model_config = {"validate_default": True}

    api_token: str = Field(default_factory=lambda: os.getenv("SCRAPER_API_TOKEN", ""))
    run_retention_limit: int = Field(
        default_factory=lambda: int(os.getenv("SCRAPER_RUN_RETENTION_LIMIT", "200"))
    )
    max_concurrent_requests: int = Field(
        default_factory=lambda: int(os.getenv("SCRAPER_MAX_CONCURRENT_REQUESTS", "4"))
    )

    @field_validator("run_retention_limit")
    @classmethod
    def _validate_retention_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("SCRAPER_RUN_RETENTION_LIMIT must be >= 1")
        return value

    @field_validator("max_concurrent_requests")
    @classmethod
    def _validate_max_concurrent(cls, value: int) -> int:
        if value < 1:
            raise ValueError("SCRAPER_MAX_CONCURRENT_REQUESTS must be >= 1")
        return value


class TargetURLPolicyConfig(BaseModel):
    """Policy applied to URLs submitted through the API."""

    allowed_domains: list[str] = Field(
        default_factory=lambda: [d.lower().rstrip(".") for d in _csv_env("SCRAPER_ALLOWED_DOMAINS")]
    )
    denied_domains: list[str] = Field(
        default_factory=lambda: [d.lower().rstrip(".") for d in _csv_env("SCRAPER_DENIED_DOMAINS")]
    )
    block_private_network_targets: bool = True


class ScraperConfig(BaseModel):
    """Root configuration, read once and handed to every component."""

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    target_url_policy: TargetURLPolicyConfig = Field(default_factory=TargetURLPolicyConfig)
    verbose_logging: bool = Field(default_factory=lambda: _flag_env("SCRAPER_VERBOSE_LOGGING"))
    log_level: str = Field(default_factory=lambda: os.getenv("SCRAPER_LOG_LEVEL", "INFO"))
