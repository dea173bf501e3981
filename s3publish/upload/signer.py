"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

AWS Signature Version 4 signing for outbound S3 requests.

Signing is delegated to botocore. The signature covers the canonical host,
path and query, so it is computed against the request's own hostname; any
reverse-proxy host is substituted later by the transport bridge.
"""

import dataclasses
from typing import Optional

from botocore.auth import S3SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from s3publish.transport.models import BODYLESS_METHODS, OutboundRequest


class SigV4RequestSigner:
    """
    Signs OutboundRequest objects for the S3 service.

    Args:
        access_key_id: AWS access key ID
        secret_access_key: AWS secret access key
        region: AWS region the bucket lives in
        session_token: Optional STS session token
    """

    service_name = "s3"

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        region: str,
        session_token: Optional[str] = None,
    ):
        self.region = region
        self._credentials = Credentials(access_key_id, secret_access_key, session_token)

    def sign(self, request: OutboundRequest) -> OutboundRequest:
        """
        Return a copy of the request carrying SigV4 authentication headers.

        A fresh timestamp is taken on every call, so each retry attempt must
        be signed again.
        """
        body = None if request.method in BODYLESS_METHODS else request.body
        if isinstance(body, str):
            body = body.encode("utf-8")
        elif isinstance(body, (bytearray, memoryview)):
            body = memoryview(body).tobytes()

        aws_request = AWSRequest(
            method=request.method.value,
            url=request.url,
            headers=dict(request.headers),
            data=body if body is not None else b"",
        )
        S3SigV4Auth(self._credentials, self.service_name, self.region).add_auth(aws_request)

        signed_headers = {
            key: value for key, value in aws_request.headers.items()
            if key.lower() != "host"
        }
        return dataclasses.replace(request, headers=signed_headers)
