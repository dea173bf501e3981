"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Upload orchestrator for S3 objects.

Decides between a single PutObject and a multipart upload, retries transient
failures and issues exactly one HttpHandler.handle() call per attempt. Every
attempt builds and signs a fresh OutboundRequest.
"""

import asyncio
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union
from urllib.parse import quote

from s3publish.config.settings import MIN_PART_SIZE_BYTES
from s3publish.exceptions import UploadError
from s3publish.logging_config import get_logger, log_upload_complete
from s3publish.transport.bridge import HttpHandler
from s3publish.transport.cancellation import CancellationToken
from s3publish.transport.models import HttpMethod, OutboundRequest
from s3publish.upload.retry import retry_async_operation
from s3publish.upload.signer import SigV4RequestSigner

logger = get_logger(__name__)

S3_XML_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"


def s3_host(bucket: str, region: str) -> str:
    """Virtual-hosted-style endpoint for a bucket."""
    return f"{bucket}.s3.{region}.amazonaws.com"


def object_path(key: str) -> str:
    """Escaped request path for an object key; '/' separators are kept."""
    return "/" + quote(key, safe="/~")


def public_object_url(bucket: str, region: str, key: str) -> str:
    """
    Public URL of an uploaded object.

    Example:
        >>> public_object_url("notes", "eu-west-1", "hello-abc123.html")
        'https://notes.s3.eu-west-1.amazonaws.com/hello-abc123.html'
    """
    return f"https://{s3_host(bucket, region)}{object_path(key)}"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find_text(root: ET.Element, name: str) -> Optional[str]:
    """First descendant text for a tag, ignoring XML namespaces."""
    for element in root.iter():
        if _local_name(element.tag) == name:
            return element.text
    return None


def _parse_xml(body: bytes) -> Optional[ET.Element]:
    if not body:
        return None
    try:
        return ET.fromstring(body)
    except ET.ParseError:
        return None


def error_from_response(status_code: int, body: bytes, operation: str) -> UploadError:
    """
    Build an UploadError from an S3 error response.

    S3 reports failures as ``<Error><Code/><Message/><RequestId/></Error>``;
    bodies that are empty or not XML still produce an error carrying the status.
    """
    root = _parse_xml(body)
    code = message = request_id = None
    if root is not None:
        code = _find_text(root, "Code")
        message = _find_text(root, "Message")
        request_id = _find_text(root, "RequestId")

    text = f"{operation} failed with HTTP {status_code}"
    if code:
        text += f" ({code})"
    if message:
        text += f": {message}"

    return UploadError(text, status_code=status_code, error_code=code, request_id=request_id)


def build_complete_multipart_xml(etags: List[str]) -> bytes:
    """Serialize the CompleteMultipartUpload request body."""
    root = ET.Element("CompleteMultipartUpload", xmlns=S3_XML_NAMESPACE)
    for number, etag in enumerate(etags, start=1):
        part = ET.SubElement(root, "Part")
        ET.SubElement(part, "PartNumber").text = str(number)
        ET.SubElement(part, "ETag").text = etag
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


@dataclass
class S3Reply:
    """Successful S3 response with its body drained."""
    status_code: int
    headers: Dict[str, str]
    body: bytes


@dataclass
class UploadResult:
    """
    Outcome of an upload.

    Attributes:
        bucket: Target bucket
        key: Object key
        etag: ETag reported by S3 (quotes preserved)
        location: Public URL of the object
        parts: Number of parts sent (1 for a single PutObject)
    """
    bucket: str
    key: str
    etag: Optional[str]
    location: str
    parts: int


class ObjectUploader:
    """
    Uploads objects to S3 through an HttpHandler.

    Args:
        handler: Transport used for every attempt
        signer: SigV4 signer applied to each fresh request
        region: Bucket region
        part_size_bytes: Part size; bodies larger than this go multipart
        queue_size: Maximum number of parts in flight
        max_retries: Retries per S3 operation for transient failures
        retry_base_delay: Initial backoff delay in seconds
        leave_parts_on_error: Skip AbortMultipartUpload when an upload fails
    """

    def __init__(
        self,
        handler: HttpHandler,
        signer: SigV4RequestSigner,
        region: str,
        part_size_bytes: int = MIN_PART_SIZE_BYTES,
        queue_size: int = 4,
        max_retries: int = 3,
        retry_base_delay: float = 0.1,
        leave_parts_on_error: bool = False,
    ):
        if part_size_bytes <= 0:
            raise ValueError("part_size_bytes must be positive")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self.handler = handler
        self.signer = signer
        self.region = region
        self.part_size_bytes = part_size_bytes
        self.queue_size = queue_size
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.leave_parts_on_error = leave_parts_on_error

    async def upload(
        self,
        bucket: str,
        key: str,
        body: Union[bytes, bytearray, memoryview, str],
        content_type: str = "application/octet-stream",
        acl: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> UploadResult:
        """
        Upload one object.

        Raises:
            RequestAbortedError: If the token is aborted
            TransportError: If the transport still fails after all retries
            UploadError: If S3 rejects the request
        """
        data = body.encode("utf-8") if isinstance(body, str) else memoryview(body).tobytes()
        started = time.monotonic()

        headers = {"Content-Type": content_type}
        if acl:
            headers["x-amz-acl"] = acl

        if len(data) <= self.part_size_bytes:
            etag = await self._put_object(bucket, key, data, headers, cancellation)
            parts = 1
        else:
            etag, parts = await self._multipart_upload(bucket, key, data, headers, cancellation)

        location = public_object_url(bucket, self.region, key)
        log_upload_complete(
            logger,
            bucket=bucket,
            key=key,
            size_bytes=len(data),
            parts=parts,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        return UploadResult(bucket=bucket, key=key, etag=etag, location=location, parts=parts)

    def _request_factory(
        self,
        method: HttpMethod,
        bucket: str,
        key: str,
        query: Optional[Dict] = None,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Union[bytes, memoryview]] = None,
    ) -> Callable[[], OutboundRequest]:
        def build() -> OutboundRequest:
            return OutboundRequest(
                method=method,
                hostname=s3_host(bucket, self.region),
                path=object_path(key),
                query=dict(query or {}),
                headers=dict(headers or {}),
                body=body,
            )
        return build

    async def _send(
        self,
        operation: str,
        build: Callable[[], OutboundRequest],
        cancellation: Optional[CancellationToken],
    ) -> S3Reply:
        async def attempt() -> S3Reply:
            request = self.signer.sign(build())
            output = await self.handler.handle(request, cancellation)
            response = output.response
            body = await response.body.read()
            if not 200 <= response.status_code < 300:
                raise error_from_response(response.status_code, body, operation)
            return S3Reply(response.status_code, response.headers, body)

        return await retry_async_operation(
            attempt,
            operation,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            cancellation=cancellation,
        )

    async def _put_object(self, bucket, key, data, headers, cancellation) -> Optional[str]:
        reply = await self._send(
            "PutObject",
            self._request_factory(HttpMethod.PUT, bucket, key, headers=headers, body=data),
            cancellation,
        )
        return reply.headers.get("etag")

    async def _multipart_upload(self, bucket, key, data, headers, cancellation):
        upload_id = await self._create_multipart_upload(bucket, key, headers, cancellation)
        logger.debug(
            "multipart_upload_started",
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            size_bytes=len(data),
        )

        try:
            etags = await self._upload_parts(bucket, key, upload_id, data, cancellation)
            etag = await self._complete_multipart_upload(bucket, key, upload_id, etags, cancellation)
        except BaseException as e:
            if not self.leave_parts_on_error:
                await self._abort_multipart_upload(bucket, key, upload_id, e)
            raise

        return etag, len(etags)

    async def _create_multipart_upload(self, bucket, key, headers, cancellation) -> str:
        reply = await self._send(
            "CreateMultipartUpload",
            self._request_factory(HttpMethod.POST, bucket, key, query={"uploads": None}, headers=headers),
            cancellation,
        )
        root = _parse_xml(reply.body)
        upload_id = _find_text(root, "UploadId") if root is not None else None
        if not upload_id:
            raise UploadError(
                "CreateMultipartUpload response did not contain an UploadId",
                status_code=reply.status_code,
            )
        return upload_id

    async def _upload_parts(self, bucket, key, upload_id, data, cancellation) -> List[str]:
        view = memoryview(data)
        offsets = range(0, len(data), self.part_size_bytes)
        semaphore = asyncio.Semaphore(self.queue_size)

        async def upload_part(number: int, chunk: memoryview) -> str:
            async with semaphore:
                reply = await self._send(
                    f"UploadPart {number}",
                    self._request_factory(
                        HttpMethod.PUT,
                        bucket,
                        key,
                        query={"partNumber": str(number), "uploadId": upload_id},
                        body=chunk,
                    ),
                    cancellation,
                )
            etag = reply.headers.get("etag")
            if not etag:
                raise UploadError(f"UploadPart {number} response did not contain an ETag")
            return etag

        tasks = [
            asyncio.ensure_future(upload_part(number, view[offset:offset + self.part_size_bytes]))
            for number, offset in enumerate(offsets, start=1)
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _complete_multipart_upload(self, bucket, key, upload_id, etags, cancellation) -> Optional[str]:
        reply = await self._send(
            "CompleteMultipartUpload",
            self._request_factory(
                HttpMethod.POST,
                bucket,
                key,
                query={"uploadId": upload_id},
                headers={"Content-Type": "application/xml"},
                body=build_complete_multipart_xml(etags),
            ),
            cancellation,
        )

        # CompleteMultipartUpload can fail after S3 has already sent 200 OK
        root = _parse_xml(reply.body)
        if root is not None and _local_name(root.tag) == "Error":
            raise error_from_response(reply.status_code, reply.body, "CompleteMultipartUpload")

        return _find_text(root, "ETag") if root is not None else None

    async def _abort_multipart_upload(self, bucket, key, upload_id, cause: BaseException) -> None:
        # Runs without the caller's token so cleanup still happens after an abort
        try:
            await self._send(
                "AbortMultipartUpload",
                self._request_factory(HttpMethod.DELETE, bucket, key, query={"uploadId": upload_id}),
                None,
            )
        except Exception as e:
            logger.error(
                "multipart_abort_failed",
                bucket=bucket,
                key=key,
                upload_id=upload_id,
                original_error=str(cause),
                error=str(e),
            )
        else:
            logger.warning(
                "multipart_upload_aborted",
                bucket=bucket,
                key=key,
                upload_id=upload_id,
                reason=type(cause).__name__,
            )
