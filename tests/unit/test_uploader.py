"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Unit tests for the S3 upload orchestrator.
"""

import asyncio
import xml.etree.ElementTree as ET

import pytest

from s3publish.exceptions import RequestAbortedError, TransportError, UploadError
from s3publish.transport.cancellation import CancellationToken
from s3publish.transport.models import HttpMethod
from s3publish.upload.signer import SigV4RequestSigner
from s3publish.upload.uploader import (
    ObjectUploader,
    build_complete_multipart_xml,
    error_from_response,
    public_object_url,
)

BUCKET = "notes-bucket"
REGION = "eu-west-1"

INITIATE_XML = (
    b'<?xml version="1.0" encoding="UTF-8"?>'
    b'<InitiateMultipartUploadResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
    b"<Bucket>notes-bucket</Bucket><Key>big.html</Key><UploadId>UPLOAD-1</UploadId>"
    b"</InitiateMultipartUploadResult>"
)

COMPLETE_XML = (
    b'<?xml version="1.0" encoding="UTF-8"?>'
    b'<CompleteMultipartUploadResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
    b"<Location>https://notes-bucket.s3.eu-west-1.amazonaws.com/big.html</Location>"
    b'<ETag>"final-3"</ETag></CompleteMultipartUploadResult>'
)


def error_xml(code, message):
    return (
        f"<Error><Code>{code}</Code><Message>{message}</Message>"
        f"<RequestId>REQ123</RequestId></Error>"
    ).encode()


def make_uploader(handler, **kwargs):
    signer = SigV4RequestSigner("AKIDEXAMPLE", "secret", REGION)
    kwargs.setdefault("retry_base_delay", 0.0)
    return ObjectUploader(handler, signer, REGION, **kwargs)


def s3_responder(fail_part=None, part_status=500):
    """Responder emulating the multipart endpoints of S3."""
    def respond(request):
        if request.method is HttpMethod.POST and "uploads" in request.query:
            return 200, {}, INITIATE_XML
        if request.method is HttpMethod.PUT and "partNumber" in request.query:
            number = int(request.query["partNumber"])
            if number == fail_part:
                return part_status, {}, error_xml("InternalError", "We encountered an internal error")
            return 200, {"etag": f'"etag-{number}"'}, b""
        if request.method is HttpMethod.POST and "uploadId" in request.query:
            return 200, {}, COMPLETE_XML
        if request.method is HttpMethod.DELETE:
            return 204, {}, b""
        return 200, {"etag": '"single"'}, b""
    return respond


class TestHelpers:
    """Tests for module-level helpers."""

    def test_public_object_url(self):
        assert public_object_url(BUCKET, REGION, "2024-01-02 10:30 Hello-abc123.html") == (
            "https://notes-bucket.s3.eu-west-1.amazonaws.com/2024-01-02%2010%3A30%20Hello-abc123.html"
        )

    def test_error_from_xml_body(self):
        error = error_from_response(403, error_xml("AccessDenied", "Access Denied"), "PutObject")

        assert error.status_code == 403
        assert error.error_code == "AccessDenied"
        assert error.request_id == "REQ123"
        assert "PutObject failed with HTTP 403 (AccessDenied): Access Denied" == str(error)

    def test_error_from_non_xml_body(self):
        error = error_from_response(502, b"Bad Gateway", "PutObject")

        assert error.status_code == 502
        assert error.error_code is None

    def test_complete_multipart_xml(self):
        root = ET.fromstring(build_complete_multipart_xml(['"a"', '"b"']))
        ns = {"s3": "http://s3.amazonaws.com/doc/2006-03-01/"}

        numbers = [p.text for p in root.findall("s3:Part/s3:PartNumber", ns)]
        etags = [p.text for p in root.findall("s3:Part/s3:ETag", ns)]

        assert numbers == ["1", "2"]
        assert etags == ['"a"', '"b"']


class TestSinglePut:
    """Tests for bodies that fit in one part."""

    @pytest.mark.asyncio
    async def test_put_object(self, scripted_handler_factory):
        handler = scripted_handler_factory(lambda request: (200, {"etag": '"abc"'}, b""))
        uploader = make_uploader(handler)

        result = await uploader.upload(
            BUCKET, "page.html", "<html></html>", content_type="text/html", acl="public-read"
        )

        assert len(handler.requests) == 1
        request = handler.requests[0]
        assert request.method is HttpMethod.PUT
        assert request.hostname == "notes-bucket.s3.eu-west-1.amazonaws.com"
        assert request.path == "/page.html"
        assert request.body == b"<html></html>"
        assert request.get_header("content-type") == "text/html"
        assert request.get_header("x-amz-acl") == "public-read"
        assert request.get_header("authorization").startswith("AWS4-HMAC-SHA256")
        assert result.etag == '"abc"'
        assert result.parts == 1
        assert result.location == "https://notes-bucket.s3.eu-west-1.amazonaws.com/page.html"

    @pytest.mark.asyncio
    async def test_transient_status_retried_with_fresh_request(self, scripted_handler_factory):
        statuses = [503, 200]

        def respond(request):
            status = statuses.pop(0)
            body = error_xml("SlowDown", "Reduce your request rate") if status == 503 else b""
            return status, {"etag": '"ok"'}, body

        handler = scripted_handler_factory(respond)
        uploader = make_uploader(handler)

        result = await uploader.upload(BUCKET, "page.html", b"data")

        assert result.etag == '"ok"'
        assert len(handler.requests) == 2
        assert handler.requests[0] is not handler.requests[1]

    @pytest.mark.asyncio
    async def test_transport_error_retried(self, scripted_handler_factory):
        attempts = []

        def respond(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise TransportError("connection reset")
            return 200, {"etag": '"ok"'}, b""

        uploader = make_uploader(scripted_handler_factory(respond))

        result = await uploader.upload(BUCKET, "page.html", b"data")

        assert result.etag == '"ok"'
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, scripted_handler_factory):
        handler = scripted_handler_factory(
            lambda request: (403, {}, error_xml("AccessDenied", "Access Denied"))
        )
        uploader = make_uploader(handler)

        with pytest.raises(UploadError) as exc_info:
            await uploader.upload(BUCKET, "page.html", b"data")

        assert exc_info.value.error_code == "AccessDenied"
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_abort_not_retried(self, scripted_handler_factory):
        def respond(request):
            raise RequestAbortedError()

        handler = scripted_handler_factory(respond)
        uploader = make_uploader(handler)

        with pytest.raises(RequestAbortedError):
            await uploader.upload(BUCKET, "page.html", b"data")

        assert len(handler.requests) == 1


class TestMultipart:
    """Tests for multipart uploads."""

    @pytest.mark.asyncio
    async def test_multipart_flow(self, scripted_handler_factory):
        handler = scripted_handler_factory(s3_responder())
        uploader = make_uploader(handler, part_size_bytes=4, queue_size=2)

        result = await uploader.upload(BUCKET, "big.html", b"0123456789", content_type="text/html")

        methods = [(r.method, tuple(sorted(r.query))) for r in handler.requests]
        assert methods[0] == (HttpMethod.POST, ("uploads",))
        assert methods[-1] == (HttpMethod.POST, ("uploadId",))

        parts = {
            int(r.query["partNumber"]): r.body
            for r in handler.requests
            if "partNumber" in r.query
        }
        assert {n: bytes(b) for n, b in parts.items()} == {1: b"0123", 2: b"4567", 3: b"89"}
        assert all(r.query.get("uploadId") == "UPLOAD-1" for r in handler.requests[1:])

        complete = ET.fromstring(handler.requests[-1].body)
        etags = [e.text for e in complete.iter() if e.tag.endswith("ETag")]
        assert etags == ['"etag-1"', '"etag-2"', '"etag-3"']

        assert result.parts == 3
        assert result.etag == '"final-3"'

    @pytest.mark.asyncio
    async def test_concurrency_bounded_by_queue_size(self, scripted_handler_factory):
        in_flight = 0
        peak = 0

        async def respond(request):
            nonlocal in_flight, peak
            if "partNumber" in request.query:
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
            return s3_responder()(request)

        handler = scripted_handler_factory(respond)
        uploader = make_uploader(handler, part_size_bytes=2, queue_size=2)

        result = await uploader.upload(BUCKET, "big.html", b"0123456789")

        assert result.parts == 5
        assert peak == 2

    @pytest.mark.asyncio
    async def test_failed_part_aborts_upload(self, scripted_handler_factory):
        handler = scripted_handler_factory(s3_responder(fail_part=2, part_status=400))
        uploader = make_uploader(handler, part_size_bytes=4)

        with pytest.raises(UploadError) as exc_info:
            await uploader.upload(BUCKET, "big.html", b"0123456789")

        assert exc_info.value.status_code == 400
        deletes = [r for r in handler.requests if r.method is HttpMethod.DELETE]
        assert len(deletes) == 1
        assert deletes[0].query == {"uploadId": "UPLOAD-1"}
        assert not any("uploadId" in r.query and r.method is HttpMethod.POST for r in handler.requests)

    @pytest.mark.asyncio
    async def test_leave_parts_on_error(self, scripted_handler_factory):
        handler = scripted_handler_factory(s3_responder(fail_part=1, part_status=400))
        uploader = make_uploader(handler, part_size_bytes=4, leave_parts_on_error=True)

        with pytest.raises(UploadError):
            await uploader.upload(BUCKET, "big.html", b"0123456789")

        assert not any(r.method is HttpMethod.DELETE for r in handler.requests)

    @pytest.mark.asyncio
    async def test_error_inside_complete_200(self, scripted_handler_factory):
        responder = s3_responder()

        def respond(request):
            if request.method is HttpMethod.POST and "uploadId" in request.query:
                return 200, {}, error_xml("InvalidPart", "One or more parts could not be found")
            return responder(request)

        handler = scripted_handler_factory(respond)
        uploader = make_uploader(handler, part_size_bytes=4, max_retries=0)

        with pytest.raises(UploadError) as exc_info:
            await uploader.upload(BUCKET, "big.html", b"0123456789")

        assert exc_info.value.error_code == "InvalidPart"
        assert any(r.method is HttpMethod.DELETE for r in handler.requests)

    @pytest.mark.asyncio
    async def test_missing_upload_id(self, scripted_handler_factory):
        handler = scripted_handler_factory(lambda request: (200, {}, b"<InitiateMultipartUploadResult/>"))
        uploader = make_uploader(handler, part_size_bytes=4)

        with pytest.raises(UploadError, match="UploadId"):
            await uploader.upload(BUCKET, "big.html", b"0123456789")

    @pytest.mark.asyncio
    async def test_cancellation_aborts_multipart(self, scripted_handler_factory):
        token = CancellationToken()
        responder = s3_responder()

        def respond(request):
            if "partNumber" in request.query:
                token.abort("user")
                raise RequestAbortedError(reason="user")
            return responder(request)

        handler = scripted_handler_factory(respond)
        uploader = make_uploader(handler, part_size_bytes=4)

        with pytest.raises(RequestAbortedError):
            await uploader.upload(BUCKET, "big.html", b"0123456789", cancellation=token)

        assert any(r.method is HttpMethod.DELETE for r in handler.requests)

    def test_invalid_queue_size(self, scripted_handler_factory):
        with pytest.raises(ValueError):
            make_uploader(scripted_handler_factory(s3_responder()), queue_size=0)
