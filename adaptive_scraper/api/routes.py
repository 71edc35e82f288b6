"""REST API routes for the adaptive scraper.

Provides endpoints for:
- Submitting extraction requests
- Monitoring request status and signals
- Inspecting stored configurations and samples
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from adaptive_scraper.api.auth import require_api_auth
from adaptive_scraper.api.extraction_service import ExtractionService
from adaptive_scraper.api.validators import validate_target_url
from adaptive_scraper.signals.types import ExtractionRequested

router = APIRouter(dependencies=[Depends(require_api_auth)])


def get_service(request: Request) -> ExtractionService:
    return request.app.state.extraction_service


# --- Request/Response Models ---


class ExtractionRequest(BaseModel):
    """Request to extract one page."""

    url: str
    document_type: str = Field(min_length=1)
    deadline_s: float | None = Field(default=None, gt=0)
    wait: bool = False


class ExtractionAccepted(BaseModel):
    request_id: str
    status: str
    message: str


# --- Endpoints ---


@router.post("/extractions")
async def create_extraction(
    body: ExtractionRequest, service: ExtractionService = Depends(get_service)
) -> dict[str, Any]:
    """Submit an extraction request.

    With `wait` the response is the final summary; otherwise the request runs
    in the background and is polled via GET /extractions/{request_id}.
    """
    validate_target_url(body.url, service.config.target_url_policy)

    request = ExtractionRequested(
        url=body.url, document_type=body.document_type, deadline_s=body.deadline_s
    )
    if body.wait:
        return await service.handle(request)

    request_id = service.submit(request)
    return ExtractionAccepted(
        request_id=request_id,
        status="accepted",
        message=f"Extraction started for {body.url}",
    ).model_dump()


@router.get("/extractions/{request_id}")
async def get_extraction(
    request_id: str, service: ExtractionService = Depends(get_service)
) -> dict[str, Any]:
    return service.get_status(request_id)


@router.get("/extractions/{request_id}/signals")
async def get_extraction_signals(
    request_id: str, service: ExtractionService = Depends(get_service)
) -> list[dict[str, Any]]:
    """Get all signals emitted for a request, in emission order."""
    return [s.model_dump(mode="json") for s in service.get_signals(request_id)]


@router.get("/configurations/{document_type}")
async def get_configuration(
    document_type: str, service: ExtractionService = Depends(get_service)
) -> dict[str, Any]:
    configuration = service.repository.load_configuration(document_type)
    if configuration is None:
        raise HTTPException(
            status_code=404, detail=f"No configuration for document type {document_type}"
        )
    return configuration.model_dump(mode="json")


@router.get("/samples/{document_type}")
async def list_samples(
    document_type: str, service: ExtractionService = Depends(get_service)
) -> list[dict[str, Any]]:
    return [s.model_dump(mode="json") for s in service.repository.load_samples(document_type)]


@router.get("/document-types")
async def list_document_types(
    service: ExtractionService = Depends(get_service),
) -> list[str]:
    return service.repository.list_document_types()
