"""Send raw SOAP requests to an endpoint.

The invoker posts a user-edited envelope as-is and reports back whatever the
endpoint answered. Failures never raise: a missing endpoint or payload and
transport errors come back as a response with ``status_code`` 0 and an
``error`` message, so that the caller can show them next to the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
MISSING_INPUT_MESSAGE = "Endpoint URL and payload are required."


@dataclass
class InvokeRequest:
    endpoint_url: Optional[str] = None
    soap_action: Optional[str] = None
    payload: Optional[str] = None


@dataclass
class InvokeResponse:
    """Outcome of an invocation.

    Attributes:
        status_code: HTTP status, or 0 when no response was received.
        body: Response body text.
        headers: Response headers; repeated headers keep every value.
        error: Failure description when the request could not be made.
    """

    status_code: int
    body: str = ""
    headers: Dict[str, List[str]] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300

    def to_dict(self) -> dict:
        return {
            "status_code": self.status_code,
            "body": self.body,
            "headers": {name: list(values) for name, values in self.headers.items()},
            "error": self.error,
        }


def build_headers(soap_action: Optional[str]) -> Dict[str, str]:
    headers = {
        "Content-Type": "text/xml; charset=utf-8",
        "Accept": "text/xml",
    }
    if soap_action and soap_action.strip():
        headers["SOAPAction"] = soap_action
    return headers


def collect_headers(headers: httpx.Headers) -> Dict[str, List[str]]:
    collected: Dict[str, List[str]] = {}
    for name, value in headers.multi_items():
        collected.setdefault(name, []).append(value)
    return collected


class SoapInvoker:
    """POST SOAP envelopes through an :class:`httpx.AsyncClient`.

    Args:
        client: Optional client to reuse (for connection pooling or tests).
            When omitted a short-lived client is created per call.
        timeout: Timeout for self-created clients (seconds).
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.client = client
        self.timeout = timeout

    async def invoke(self, request: InvokeRequest) -> InvokeResponse:
        if not (request.endpoint_url and request.endpoint_url.strip()) or not (
            request.payload and request.payload.strip()
        ):
            return InvokeResponse(status_code=0, error=MISSING_INPUT_MESSAGE)

        endpoint = request.endpoint_url.strip()
        content = request.payload.encode("utf-8")
        headers = build_headers(request.soap_action)
        logger.info(f"Invoking {endpoint} (SOAPAction={request.soap_action or '-'})")

        try:
            if self.client is not None:
                response = await self.client.post(endpoint, content=content, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(endpoint, content=content, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Invocation of {endpoint} failed: {e}")
            return InvokeResponse(status_code=0, error=str(e) or e.__class__.__name__)

        return InvokeResponse(
            status_code=response.status_code,
            body=response.text,
            headers=collect_headers(response.headers),
        )
