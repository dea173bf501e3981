"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Host request primitive: the single-shot, fully buffered HTTP call the
bridge runs on.

Any async callable taking HostRequestParams and returning HostResponse
qualifies. HttpxRequestPrimitive is the default, built on httpx.AsyncClient;
it reads the whole body before returning and applies no timeout of its own
because the bridge races every call against its own budget.
"""

from typing import Optional, Protocol, runtime_checkable

import httpx

from s3publish.logging_config import get_logger
from s3publish.transport.models import HostRequestParams, HostResponse

logger = get_logger(__name__)


@runtime_checkable
class HostRequestPrimitive(Protocol):
    """Single-shot request callable: params in, fully buffered response out."""

    async def __call__(self, params: HostRequestParams) -> HostResponse: ...


class HttpxRequestPrimitive:
    """
    Host primitive backed by httpx.

    httpx computes Host and Content-Length itself, which is why the bridge
    never forwards them.

    Args:
        client: Optional AsyncClient to use; one is created (and owned) if omitted
        follow_redirects: Whether redirects are followed by the primitive
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        follow_redirects: bool = False,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(None),
            follow_redirects=follow_redirects,
        )

    async def __call__(self, params: HostRequestParams) -> HostResponse:
        headers = dict(params.headers)
        if params.content_type is not None:
            headers["content-type"] = params.content_type

        response = await self.client.request(
            method=params.method,
            url=params.url,
            headers=headers,
            content=params.body,
        )
        body = await response.aread()

        logger.debug(
            "host_primitive_response",
            status=response.status_code,
            size_bytes=len(body),
        )

        return HostResponse(
            status=response.status_code,
            headers={key: value for key, value in response.headers.items()},
            body=body,
        )

    async def aclose(self) -> None:
        """Close the underlying client if this primitive created it."""
        if self._owns_client:
            await self.client.aclose()
