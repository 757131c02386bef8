"""FastAPI application exposing DOI validation, network generation and paper lookup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictInt, StrictStr

from citegraph.api import CitationNetworkClient
from citegraph.exceptions import (
    CitegraphError,
    RecordNotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from citegraph.models import CitationNetwork, DoiValidation, PaperRecord, TraversalMode

logger = logging.getLogger(__name__)

router = APIRouter()


class ValidateDoiRequest(BaseModel):
    doi: StrictStr = Field(..., min_length=1)


class GenerateNetworkRequest(BaseModel):
    doi: StrictStr = Field(..., min_length=1)
    depth: Optional[StrictInt] = None
    mode: Optional[TraversalMode] = None


def get_client(request: Request) -> CitationNetworkClient:
    return request.app.state.client


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ============================================================================
# Routes
# ============================================================================


@router.post("/validate-doi", response_model=DoiValidation, response_model_exclude_none=True)
async def validate_doi(
    payload: ValidateDoiRequest, client: CitationNetworkClient = Depends(get_client)
):
    """Check DOI format and whether PubMed has a matching record."""
    try:
        return await client.validate_doi(payload.doi)
    except CitegraphError:
        raise
    except Exception:
        logger.exception("Error validating DOI %s", payload.doi)
        return _error(500, "Failed to validate DOI")


@router.post("/generate-network", response_model=CitationNetwork)
async def generate_network(
    payload: GenerateNetworkRequest, client: CitationNetworkClient = Depends(get_client)
):
    """Generate (or return the stored) citation network for a DOI."""
    try:
        return await client.generate_network(payload.doi, payload.depth, mode=payload.mode)
    except CitegraphError:
        raise
    except Exception:
        logger.exception("Error generating network for %s", payload.doi)
        return _error(500, "Failed to generate citation network")


@router.get("/paper/{paper_id}", response_model=PaperRecord)
async def get_paper(paper_id: str, client: CitationNetworkClient = Depends(get_client)):
    try:
        return await client.get_paper(paper_id)
    except CitegraphError:
        raise
    except Exception:
        logger.exception("Error fetching paper %s", paper_id)
        return _error(500, "Failed to fetch paper details")


@router.get("/networks", response_model=List[CitationNetwork])
async def list_networks(
    limit: int = Query(50, ge=1, le=500, description="Maximum networks to return"),
    client: CitationNetworkClient = Depends(get_client),
):
    try:
        return await client.list_networks(limit)
    except CitegraphError:
        raise
    except Exception:
        logger.exception("Error listing networks")
        return _error(500, "Failed to fetch networks")


# ============================================================================
# Application factory
# ============================================================================


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return _error(400, details or "Invalid request")


async def _handle_validation(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(400, str(exc))


async def _handle_not_found(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    return _error(404, str(exc))


async def _handle_unavailable(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    return _error(503, str(exc))


async def _handle_other(request: Request, exc: CitegraphError) -> JSONResponse:
    logger.error("Unhandled citegraph error: %s", exc)
    return _error(500, "Internal error")


def create_app(client: Optional[CitationNetworkClient] = None, *, prefix: str = "") -> FastAPI:
    """Build the FastAPI application.

    When ``client`` is omitted, one is created from the environment on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "client", None) is None:
            app.state.client = CitationNetworkClient()
        yield

    app = FastAPI(title="citegraph", lifespan=lifespan)
    app.state.client = client
    app.include_router(router, prefix=prefix)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(ValidationError, _handle_validation)
    app.add_exception_handler(RecordNotFoundError, _handle_not_found)
    app.add_exception_handler(UpstreamUnavailableError, _handle_unavailable)
    app.add_exception_handler(CitegraphError, _handle_other)
    return app
