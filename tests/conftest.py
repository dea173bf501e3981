"""
Pytest configuration and shared fixtures for s3publish tests.
"""

import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from s3publish.config.settings import AwsConfig, PublishConfig
from s3publish.transport.models import (
    HostResponse,
    HttpHandlerOutput,
    InboundResponse,
    SingleChunkStream,
)


class FakePrimitive:
    """
    Host primitive double.

    Records every HostRequestParams it receives and answers with a fixed
    response, an error, or after a delay.
    """

    def __init__(self, response=None, error=None, delay=0.0):
        self.response = response or HostResponse(status=200, headers={}, body=b"")
        self.error = error
        self.delay = delay
        self.calls = []
        self.cancelled = False
        self.closed = False

    async def __call__(self, params):
        self.calls.append(params)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self):
        self.closed = True


class ScriptedHandler:
    """
    HttpHandler double for upload tests.

    ``responder`` receives each OutboundRequest and returns
    ``(status, headers, body)`` (or raises); it may be a coroutine function.
    """

    def __init__(self, responder):
        self.responder = responder
        self.requests = []
        self.closed = False

    async def handle(self, request, cancellation=None):
        self.requests.append(request)
        result = self.responder(request)
        if asyncio.iscoroutine(result):
            result = await result
        status, headers, body = result
        return HttpHandlerOutput(
            response=InboundResponse(
                status_code=status,
                headers=headers,
                body=SingleChunkStream(body),
            )
        )

    async def aclose(self):
        self.closed = True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory
    """
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fake_primitive_factory():
    """Factory building FakePrimitive instances."""
    return FakePrimitive


@pytest.fixture
def scripted_handler_factory():
    """Factory building ScriptedHandler instances."""
    return ScriptedHandler


@pytest.fixture
def publish_config(temp_dir: Path) -> PublishConfig:
    """Configuration with complete test credentials and fast retries."""
    config = PublishConfig(
        aws=AwsConfig(
            access_key_id="AKIDEXAMPLE",
            secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
            bucket_name="notes-bucket",
            region="eu-west-1",
        ),
    )
    config.upload.retry_base_delay_seconds = 0.0
    config.render.vault_dir = str(temp_dir)
    return config
