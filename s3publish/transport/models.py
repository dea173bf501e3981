"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Request and response types exchanged across the transport bridge.

OutboundRequest is what the upload orchestrator hands to an HTTP handler;
HostRequestParams/HostResponse are what the single-shot host primitive
accepts and returns; InboundResponse is what the handler gives back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Dict, Optional, Union

from s3publish.exceptions import StreamConsumedError, TranslationError
from s3publish.transport.querystring import QueryValue, build_query_string


class HttpMethod(str, Enum):
    """HTTP verbs the bridge can carry."""

    GET = "GET"
    HEAD = "HEAD"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"
    PATCH = "PATCH"
    OPTIONS = "OPTIONS"


# Verbs whose body is always dropped before reaching the host primitive
BODYLESS_METHODS = frozenset({HttpMethod.GET, HttpMethod.HEAD})

RequestBody = Union[bytes, bytearray, memoryview, str]


def parse_method(method: Union[str, HttpMethod]) -> HttpMethod:
    """
    Normalize a verb into an HttpMethod.

    Raises:
        TranslationError: If the verb is not in the supported set
    """
    if isinstance(method, HttpMethod):
        return method
    try:
        return HttpMethod(str(method).upper())
    except ValueError:
        raise TranslationError(f"Unsupported HTTP method: {method!r}") from None


@dataclass
class OutboundRequest:
    """
    Structured description of one outbound HTTP attempt.

    Attributes:
        method: HTTP verb (validated on construction)
        hostname: Target host, without port
        path: Request path, already escaped by the caller
        protocol: URL scheme, "https" or "https:" (the trailing colon is optional)
        port: Optional explicit port
        query: Query parameters; list values repeat the key, None renders a bare key
        headers: Header mapping; keys are case-insensitive
        body: Optional payload
    """
    method: HttpMethod
    hostname: str
    path: str = "/"
    protocol: str = "https"
    port: Optional[int] = None
    query: Dict[str, QueryValue] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[RequestBody] = None

    def __post_init__(self):
        self.method = parse_method(self.method)
        if not self.hostname:
            raise TranslationError("Outbound request requires a hostname")
        if not self.path.startswith("/"):
            self.path = "/" + self.path
        self.protocol = self.protocol.rstrip(":")

    @property
    def scheme(self) -> str:
        return self.protocol

    @property
    def netloc(self) -> str:
        host = self.hostname
        if ":" in host and not host.startswith("["):
            # IPv6 literal
            host = f"[{host}]"
        if self.port:
            return f"{host}:{self.port}"
        return host

    @property
    def path_and_query(self) -> str:
        """Path plus serialized query; '?' is omitted when the query is empty."""
        query_string = build_query_string(self.query) if self.query else ""
        if query_string:
            return f"{self.path}?{query_string}"
        return self.path

    @property
    def url(self) -> str:
        """URL addressed by the request, before any proxy-host substitution."""
        return f"{self.scheme}://{self.netloc}{self.path_and_query}"

    def get_header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass
class HostRequestParams:
    """Parameters accepted by the host's single-shot request primitive."""
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[Union[bytes, str]] = None
    content_type: Optional[str] = None


@dataclass
class HostResponse:
    """Fully buffered result returned by the host's request primitive."""
    status: int
    headers: Dict[str, str]
    body: bytes = b""


class SingleChunkStream:
    """
    One-shot byte stream over an already buffered body.

    The host primitive only ever returns a complete buffer, so the stream
    yields that buffer as a single chunk and then ends. It can be consumed
    once; iterating it again raises StreamConsumedError.
    """

    def __init__(self, data: bytes):
        self._data = data
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise StreamConsumedError("Response body stream has already been consumed")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        data, self._data = self._data, b""
        yield data

    async def read(self) -> bytes:
        """Drain the stream and return its bytes."""
        chunks = [chunk async for chunk in self]
        return b"".join(chunks)


@dataclass
class InboundResponse:
    """
    Response reconstructed by the bridge.

    Attributes:
        status_code: HTTP status code
        headers: Header mapping with lower-cased keys
        body: Single-consumption byte stream
    """
    status_code: int
    headers: Dict[str, str]
    body: SingleChunkStream


@dataclass
class HttpHandlerOutput:
    """Envelope returned by HttpHandler.handle."""
    response: InboundResponse
