"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

HTTP bridge handler.

Implements the HttpHandler capability expected by the upload orchestrator on
top of a single-shot host primitive:
- Request translation (URL composition, reverse-proxy host, header and body rules)
- One primitive call per handle()
- Response reconstruction with a single-chunk body stream
- Timeout and cancellation racing

Faults reach the caller only as RequestAbortedError or TransportError
(RequestTimeoutError included). The bridge retries nothing.
"""

import time
from typing import Dict, Optional, Protocol, runtime_checkable
from urllib.parse import urlsplit

from s3publish.exceptions import (
    RequestAbortedError,
    S3PublishError,
    TranslationError,
    TransportError,
)
from s3publish.logging_config import get_logger, log_http_attempt, log_http_fault
from s3publish.transport.cancellation import CancellationToken
from s3publish.transport.models import (
    BODYLESS_METHODS,
    HostRequestParams,
    HostResponse,
    HttpHandlerOutput,
    InboundResponse,
    OutboundRequest,
    SingleChunkStream,
)
from s3publish.transport.primitive import HostRequestPrimitive, HttpxRequestPrimitive
from s3publish.transport.race import race_request

logger = get_logger(__name__)

# Headers the host primitive computes itself
TRANSPORT_MANAGED_HEADERS = frozenset({"host", "content-length"})


@runtime_checkable
class HttpHandler(Protocol):
    """Capability the upload orchestrator requires from any transport."""

    async def handle(
        self,
        request: OutboundRequest,
        cancellation: Optional[CancellationToken] = None,
    ) -> HttpHandlerOutput: ...


def translate_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """
    Lower-case header keys and drop transport-managed headers.

    Args:
        headers: Caller header mapping (any casing)

    Returns:
        New mapping safe to hand to the host primitive
    """
    translated: Dict[str, str] = {}
    for key, value in headers.items():
        key_lower = key.lower()
        if key_lower in TRANSPORT_MANAGED_HEADERS:
            continue
        translated[key_lower] = value
    return translated


def to_contiguous_bytes(body):
    """
    Convert a binary view into plain bytes with a byte-exact copy.

    bytes and str bodies are returned unchanged.
    """
    if isinstance(body, (bytearray, memoryview)):
        return memoryview(body).tobytes()
    return body


def normalize_proxy_host(value: Optional[str]) -> Optional[str]:
    """
    Reduce a reverse-proxy setting to host[:port].

    Only the host and port of a request URL are ever replaced, so a value
    that could reach the path or query is rejected.

    Args:
        value: Configured proxy host; None or empty means no proxy

    Returns:
        Normalized host[:port] (IPv6 hosts bracketed), or None

    Raises:
        TranslationError: If the value is not a bare host[:port]
    """
    if not value:
        return None
    if any(ch in value for ch in "/?#@") or any(ch.isspace() for ch in value):
        raise TranslationError(
            f"Reverse-proxy host must be a bare host[:port], got {value!r}"
        )

    parts = urlsplit("//" + value)
    try:
        port = parts.port
    except ValueError as e:
        raise TranslationError(f"Invalid reverse-proxy host {value!r}: {e}") from e
    hostname = parts.hostname
    if not hostname:
        raise TranslationError(f"Reverse-proxy host has no hostname: {value!r}")

    if ":" in hostname:
        hostname = f"[{hostname}]"
    if port is not None:
        return f"{hostname}:{port}"
    return hostname


def _has_port(netloc: str) -> bool:
    if netloc.startswith("["):
        return "]:" in netloc
    return ":" in netloc


def lower_case_keys(headers: Dict[str, str]) -> Dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


class BridgeHttpHandler:
    """
    HttpHandler running each request through a single-shot host primitive.

    The handler is stateless between calls; concurrent handle() calls share
    only the read-only configuration below.

    Args:
        primitive: Host request primitive (defaults to HttpxRequestPrimitive)
        request_timeout_ms: Timeout budget per call; None or 0 disables it
        reverse_proxy_host: Host (optionally host:port) substituted into every URL

    Raises:
        TranslationError: If reverse_proxy_host is not a bare host[:port]
    """

    def __init__(
        self,
        primitive: Optional[HostRequestPrimitive] = None,
        request_timeout_ms: Optional[int] = None,
        reverse_proxy_host: Optional[str] = None,
    ):
        self.primitive = primitive if primitive is not None else HttpxRequestPrimitive()
        self.request_timeout_ms = request_timeout_ms
        self.reverse_proxy_host = normalize_proxy_host(reverse_proxy_host)

    def build_url(self, request: OutboundRequest) -> str:
        """
        Compose the target URL, applying the reverse-proxy host if configured.

        The path and query are appended verbatim so they stay byte-identical
        to what the request was signed against.
        """
        netloc = request.netloc
        if self.reverse_proxy_host:
            netloc = self.reverse_proxy_host
            if not _has_port(netloc) and request.port:
                netloc = f"{netloc}:{request.port}"

        return f"{request.scheme}://{netloc}{request.path_and_query}"

    def translate(self, request: OutboundRequest) -> HostRequestParams:
        """
        Translate an outbound request into host primitive parameters.

        Pure: performs no I/O.
        """
        body = None if request.method in BODYLESS_METHODS else request.body
        headers = translate_headers(request.headers)

        return HostRequestParams(
            method=request.method.value,
            url=self.build_url(request),
            headers=headers,
            body=to_contiguous_bytes(body),
            content_type=headers.get("content-type"),
        )

    async def handle(
        self,
        request: OutboundRequest,
        cancellation: Optional[CancellationToken] = None,
    ) -> HttpHandlerOutput:
        """
        Execute one request through the host primitive.

        Args:
            request: Outbound request description
            cancellation: Optional token; aborting it settles the call immediately

        Returns:
            HttpHandlerOutput wrapping the reconstructed response

        Raises:
            RequestAbortedError: If the token is or becomes aborted
            RequestTimeoutError: If the timeout budget elapses first
            TransportError: If the host primitive fails
        """
        if cancellation is not None and cancellation.aborted:
            raise RequestAbortedError(reason=cancellation.reason)

        params = self.translate(request)
        started = time.monotonic()

        log_http_attempt(
            logger,
            method=params.method,
            url=params.url,
            timeout_ms=self.request_timeout_ms,
            proxied=bool(self.reverse_proxy_host),
        )

        try:
            response = await race_request(
                self._execute(params),
                timeout_ms=self.request_timeout_ms,
                cancellation=cancellation,
            )
        except S3PublishError as e:
            log_http_fault(
                logger,
                method=params.method,
                url=params.url,
                fault=e,
                duration_ms=(time.monotonic() - started) * 1000,
            )
            raise

        return HttpHandlerOutput(response=response)

    async def _execute(self, params: HostRequestParams) -> InboundResponse:
        try:
            result = await self.primitive(params)
            # A malformed result is reported like any other primitive failure
            return self._build_response(result)
        except Exception as e:
            raise TransportError(f"{type(e).__name__}: {e}", cause=e) from e

    @staticmethod
    def _build_response(result: HostResponse) -> InboundResponse:
        return InboundResponse(
            status_code=result.status,
            headers=lower_case_keys(result.headers),
            body=SingleChunkStream(bytes(result.body)),
        )

    async def aclose(self) -> None:
        """Release resources held by the primitive, if it holds any."""
        close = getattr(self.primitive, "aclose", None)
        if close is not None:
            await close()


def create_http_handler(
    request_timeout_ms: Optional[int],
    reverse_proxy_host: Optional[str] = None,
    primitive: Optional[HostRequestPrimitive] = None,
) -> BridgeHttpHandler:
    """
    Build a ready-to-use bridge handler.

    Args:
        request_timeout_ms: Timeout budget per call; None or 0 disables it
        reverse_proxy_host: Optional proxy host; empty string means none
        primitive: Optional host primitive (defaults to httpx)

    Returns:
        Configured BridgeHttpHandler
    """
    return BridgeHttpHandler(
        primitive=primitive,
        request_timeout_ms=request_timeout_ms,
        reverse_proxy_host=reverse_proxy_host,
    )
