"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Transport layer: bridges a generic HTTP handler onto a single-shot,
fully buffered host primitive.
"""

from s3publish.transport.bridge import (
    BridgeHttpHandler,
    HttpHandler,
    create_http_handler,
    translate_headers,
)
from s3publish.transport.cancellation import CancellationToken
from s3publish.transport.models import (
    HostRequestParams,
    HostResponse,
    HttpHandlerOutput,
    HttpMethod,
    InboundResponse,
    OutboundRequest,
    SingleChunkStream,
)
from s3publish.transport.primitive import HostRequestPrimitive, HttpxRequestPrimitive
from s3publish.transport.querystring import build_query_string
from s3publish.transport.race import race_request

__all__ = [
    "BridgeHttpHandler",
    "CancellationToken",
    "HostRequestParams",
    "HostRequestPrimitive",
    "HostResponse",
    "HttpHandler",
    "HttpHandlerOutput",
    "HttpMethod",
    "HttpxRequestPrimitive",
    "InboundResponse",
    "OutboundRequest",
    "SingleChunkStream",
    "build_query_string",
    "create_http_handler",
    "race_request",
    "translate_headers",
]
