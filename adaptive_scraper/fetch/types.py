"""Fetch boundary types shared by every page fetcher."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from adaptive_scraper.pipeline.document import DocumentNode, parse_html


class FetchErrorKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


class FetchError(Exception):
    """Raised when a page cannot be retrieved.

    Permanent failures (gone, unauthorized, not found) invalidate a sample;
    transient ones (server errors, timeouts, connection drops) only skip it.
    """

    def __init__(
        self,
        url: str,
        kind: FetchErrorKind,
        status_code: int | None = None,
        detail: str = "",
    ) -> None:
        self.url = url
        self.kind = kind
        self.status_code = status_code
        self.detail = detail
        status = f" ({status_code})" if status_code is not None else ""
        super().__init__(f"{kind.value} fetch error for '{url}'{status}: {detail}")

    @property
    def is_permanent(self) -> bool:
        return self.kind == FetchErrorKind.PERMANENT


def classify_status(status_code: int) -> FetchErrorKind:
    """4xx responses are permanent except timeouts and rate limiting."""
    if 400 <= status_code < 500 and status_code not in (408, 429):
        return FetchErrorKind.PERMANENT
    return FetchErrorKind.TRANSIENT


@dataclass
class FetchedPage:
    """A retrieved HTML document."""

    html: str
    url: str
    status_code: int = 200
    dom_hash: str = ""
    _root: DocumentNode | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.dom_hash:
            self.dom_hash = self.compute_hash(self.html)

    @property
    def root(self) -> DocumentNode:
        """Parsed document, built on first access."""
        if self._root is None:
            self._root = parse_html(self.html)
        return self._root

    @staticmethod
    def compute_hash(html: str) -> str:
        return hashlib.sha256(html.encode()).hexdigest()[:16]


class Fetcher(Protocol):
    """Anything that can turn a URL into a FetchedPage."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def fetch(self, url: str) -> FetchedPage: ...
