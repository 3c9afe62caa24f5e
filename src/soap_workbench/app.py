"""FastAPI application exposing the SOAP workbench.

This module provides REST access to the descriptor parser (operation catalog
with example envelopes), the search history, raw SOAP invocation, and
performance monitoring endpoints.

Quick start (run the server)::

    uvicorn soap_workbench.app:app --reload

Core endpoints (REST):

    GET  /health               Basic health check
    POST /describe             Parse descriptors into an operation catalog
    GET  /history              Saved searches, most recent first
    GET  /history/{id}         One saved search
    POST /invoke               POST a SOAP envelope to an endpoint
    GET  /metrics/performance  Parser + endpoint metrics
    POST /metrics/reset        Reset metrics

Example: describe a service::

    curl -X POST http://localhost:8000/describe \
         -H "Content-Type: application/json" \
         -d '{"primary_source": "https://example.com/CountryInfo.wso?WSDL"}' | jq .

Example: describe with auxiliary descriptors and no import following::

    curl -X POST http://localhost:8000/describe \
         -H "Content-Type: application/json" \
         -d '{"primary_source": "https://example.com/a?wsdl",
              "additional_sources": ["https://example.com/types.xsd"],
              "follow_imports": false}'

Example: invoke an operation with its (edited) sample envelope::

    curl -X POST http://localhost:8000/invoke \
         -H "Content-Type: application/json" \
         -d '{"endpoint_url": "https://example.com/CountryInfo.wso",
              "soap_action": "urn:CountryName",
              "payload": "<?xml version=\"1.0\"?><soap:Envelope ...>"}'

Configuration (environment):
    * ``SOAP_WORKBENCH_PARSER_CONFIG`` - parser options, e.g.
      ``max_depth=8,fetch_timeout=10``. ``file://`` sources are refused with
      400 unless it sets ``allow_file_sources=true``.
    * ``SOAP_WORKBENCH_HISTORY_PATH`` - search history JSON file.

Error handling:
    * 404 and 500 are wrapped with JSON payloads for more consistent client UX.
    * Descriptor fetch / parse failures answer 502 with the failing source.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .errors import DescriptorError
from .history import SearchHistoryEntry, SearchHistoryStore
from .invoker import MISSING_INPUT_MESSAGE, InvokeRequest, SoapInvoker
from .loader import is_local_uri
from .models import ParseRequest
from .monitoring import get_monitor
from .presentation import present_operations
from .wsdl_parser import ParserConfig, WsdlParser

EMPTY_RESULT_MESSAGE = "No operations were discovered in the provided sources."
MISSING_SOURCE_MESSAGE = "Provide at least one WSDL or descriptor URL."
LOCAL_SOURCE_MESSAGE = "Local file sources are not accepted; provide an http(s) URL."

# Locations come from API clients, so file:// reads are off unless the
# environment turns them on.
PARSER_CONFIG = ParserConfig.from_env(allow_file_sources=False)

app = FastAPI(
    title="SOAP Workbench API",
    version=__version__,
    description="Explore WSDL services: operation catalogs with example envelopes, search history and raw invocation",
    docs_url="/docs",
    redoc_url="/redoc",
)


# Performance monitoring middleware
@app.middleware("http")
async def monitor_requests(request: Request, call_next):
    """Middleware to monitor API request performance."""
    start_time = time.time()

    response = await call_next(request)

    response_time = time.time() - start_time

    monitor = get_monitor()
    endpoint = f"{request.method} {request.url.path}"
    monitor.record_endpoint_request(endpoint, response_time, response.status_code)

    response.headers["X-Response-Time"] = f"{response_time:.3f}s"
    response.headers["X-API-Version"] = __version__

    return response


class DescribeRequest(BaseModel):
    """Request model for the describe endpoint."""

    primary_source: Optional[str] = Field(None, description="Main WSDL / descriptor URL")
    additional_sources: List[str] = Field(
        default_factory=list, description="Further descriptor URLs"
    )
    follow_imports: bool = Field(True, description="Fetch imported documents as well")

    def to_parse_request(self) -> ParseRequest:
        primary = self.primary_source.strip() if self.primary_source else None
        additional = tuple(s.strip() for s in self.additional_sources if s and s.strip())
        return ParseRequest(
            primary_source=primary or None,
            additional_sources=additional,
            follow_imports=self.follow_imports,
        )


class DescribeResponse(BaseModel):
    """Response model for the describe endpoint."""

    operations: List[Dict[str, Any]] = Field(
        default_factory=list, description="De-duplicated operations sorted by name"
    )
    sources: List[str] = Field(default_factory=list, description="Every resolved source")
    parsed_at: Optional[str] = Field(None, description="UTC time of a non-empty parse")
    empty: bool = Field(..., description="True when no operations were discovered")
    message: Optional[str] = Field(None, description="Human readable outcome")


class InvokeRequestModel(BaseModel):
    """Request model for the invoke endpoint."""

    endpoint_url: Optional[str] = Field(None, description="SOAP endpoint URL")
    soap_action: Optional[str] = Field(None, description="SOAPAction header value")
    payload: Optional[str] = Field(None, description="Raw XML request document")


@lru_cache(maxsize=1)
def get_parser() -> WsdlParser:
    return WsdlParser(config=PARSER_CONFIG)


@lru_cache(maxsize=1)
def get_history_store() -> SearchHistoryStore:
    return SearchHistoryStore.from_env()


@lru_cache(maxsize=1)
def get_invoker() -> SoapInvoker:
    return SoapInvoker()


@app.get("/health")
def health() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.post("/describe")
async def describe(
    request: DescribeRequest,
    parser: WsdlParser = Depends(get_parser),
    store: SearchHistoryStore = Depends(get_history_store),
) -> DescribeResponse:
    """Parse the given descriptors into a catalog of operations.

    Successful non-empty lookups are added to the search history.

    Example::

        curl -X POST http://localhost:8000/describe \
             -H "Content-Type: application/json" \
             -d '{"primary_source": "https://example.com/service?wsdl"}'
    """
    parse_request = request.to_parse_request()
    if not any(parse_request.locations()):
        raise HTTPException(status_code=400, detail=MISSING_SOURCE_MESSAGE)
    if not PARSER_CONFIG.allow_file_sources and any(
        is_local_uri(location) for location in parse_request.locations()
    ):
        raise HTTPException(status_code=400, detail=LOCAL_SOURCE_MESSAGE)

    result = await parser.parse(parse_request)
    operations = present_operations(result.operations)

    if not operations:
        return DescribeResponse(
            sources=result.sources, empty=True, message=EMPTY_RESULT_MESSAGE
        )

    await store.save(
        SearchHistoryEntry(
            primary_source=parse_request.primary_source,
            additional_sources=list(parse_request.additional_sources),
            follow_imports=parse_request.follow_imports,
        )
    )
    return DescribeResponse(
        operations=[operation.to_dict() for operation in operations],
        sources=result.sources,
        parsed_at=datetime.now(timezone.utc).isoformat(),
        empty=False,
        message=f"Discovered {len(operations)} operation(s).",
    )


@app.get("/history")
async def list_history(
    store: SearchHistoryStore = Depends(get_history_store),
) -> List[Dict[str, Any]]:
    """Saved searches, most recently saved first."""
    return [entry.to_dict() for entry in await store.get_all()]


@app.get("/history/{entry_id}")
async def get_history_entry(
    entry_id: str,
    store: SearchHistoryStore = Depends(get_history_store),
) -> Dict[str, Any]:
    entry = await store.get(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"History entry not found: {entry_id}")
    return entry.to_dict()


@app.post("/invoke")
async def invoke(
    request: InvokeRequestModel,
    invoker: SoapInvoker = Depends(get_invoker),
):
    """POST a raw SOAP envelope and return the endpoint's answer.

    Transport failures are reported in the payload (``status_code`` 0) rather
    than as HTTP errors; only a missing endpoint or payload answers 400.
    """
    response = await invoker.invoke(
        InvokeRequest(
            endpoint_url=request.endpoint_url,
            soap_action=request.soap_action,
            payload=request.payload,
        )
    )
    if response.error == MISSING_INPUT_MESSAGE:
        return JSONResponse(status_code=400, content=response.to_dict())
    return response.to_dict()


# Performance monitoring endpoints


@app.get("/metrics/performance")
def get_performance_metrics():
    """Get parser and endpoint performance metrics."""
    monitor = get_monitor()
    return monitor.get_performance_summary()


@app.post("/metrics/reset")
def reset_metrics():
    """Reset all performance metrics (useful for testing)."""
    monitor = get_monitor()
    monitor.reset_metrics()
    return {
        "message": "All metrics have been reset",
        "timestamp": datetime.now().isoformat(),
    }


@app.exception_handler(DescriptorError)
async def descriptor_error_handler(request, exc: DescriptorError):
    """Fetch / parse failures of upstream descriptors."""
    return JSONResponse(
        status_code=502,
        content={
            "error": "Failed to parse descriptors",
            "detail": f"Failed to parse descriptors: {exc}",
            "source": exc.uri,
        },
    )


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Custom 404 handler with more helpful error messages."""
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "detail": (
                str(exc.detail)
                if hasattr(exc, "detail")
                else "The requested resource was not found"
            ),
            "path": str(request.url.path),
        },
    )


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Custom 500 handler for internal errors."""
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred processing your request",
        },
    )
