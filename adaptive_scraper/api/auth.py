"""Authentication dependency for the scraper API.

When SCRAPER_API_TOKEN is set every route requires it as a Bearer token.
When it is not set, authentication is disabled (development mode).
"""

from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException

from adaptive_scraper.config.settings import APIConfig


def _get_bearer_token(authorization: str = Header(default="")) -> str:
    """Extract bearer token from Authorization header."""
    if authorization.startswith("Bearer "):
        return authorization[7:]
    return ""


async def require_api_auth(token: str = Depends(_get_bearer_token)) -> str:
    """Dependency that enforces API token authentication."""
    # Read at call time so tests can change the environment
    api_token = APIConfig().api_token
    if not api_token:
        return ""
    if not secrets.compare_digest(token, api_token):
        raise HTTPException(status_code=401, detail="Invalid or missing API token")
    return token
