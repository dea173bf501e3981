"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Publishes a markdown note as a public HTML page on S3.

Flow: validate credentials, read the note, render HTML, upload it through
the upload orchestrator and the HTTP bridge, return the public URL.
"""

import hashlib
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from s3publish.config.settings import PublishConfig, validate_credentials
from s3publish.exceptions import (
    MissingCredentialsError,
    PublishError,
    RequestAbortedError,
)
from s3publish.logging_config import clear_correlation_id, get_logger, set_correlation_id
from s3publish.render.html_generator import generate_html
from s3publish.transport.bridge import HttpHandler, create_http_handler
from s3publish.transport.cancellation import CancellationToken
from s3publish.upload.signer import SigV4RequestSigner
from s3publish.upload.uploader import ObjectUploader

logger = get_logger(__name__)

HTML_CONTENT_TYPE = "text/html"


def object_key_for(note_name: str, secret_access_key: str) -> str:
    """
    Object key for a published note.

    The suffix is derived from the secret key so URLs cannot be guessed from
    the note name alone.

    Example:
        >>> object_key_for("2024-01-02 10:30 Hello.md", "secret")  # doctest: +SKIP
        '2024-01-02 10:30 Hello-3f1c2a.html'
    """
    stem = note_name.replace(".md", "", 1)
    digest = hashlib.sha1((secret_access_key + stem).encode("utf-8")).hexdigest()
    return f"{stem}-{digest[:6]}.html"


@dataclass
class PublishResult:
    """Outcome of a successful publish."""
    url: str
    key: str
    bucket: str
    size_bytes: int
    parts: int
    duration_ms: float


class NotePublisher:
    """
    Publishes notes using a PublishConfig.

    Args:
        config: Effective configuration
        handler: Optional HttpHandler; by default a bridge handler is built
            from the transport configuration and owned by the publisher
    """

    def __init__(self, config: PublishConfig, handler: Optional[HttpHandler] = None):
        self.config = config
        self._owns_handler = handler is None
        if handler is None:
            handler = create_http_handler(
                request_timeout_ms=config.transport.request_timeout_ms,
                reverse_proxy_host=config.transport.reverse_proxy_host,
            )
        self.handler = handler

    def _build_uploader(self) -> ObjectUploader:
        aws = self.config.aws
        upload = self.config.upload
        signer = SigV4RequestSigner(aws.access_key_id, aws.secret_access_key, aws.region)
        return ObjectUploader(
            self.handler,
            signer,
            aws.region,
            part_size_bytes=upload.part_size_bytes,
            queue_size=upload.queue_size,
            max_retries=upload.max_retries,
            retry_base_delay=upload.retry_base_delay_seconds,
            leave_parts_on_error=upload.leave_parts_on_error,
        )

    async def publish(
        self,
        note_path: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> PublishResult:
        """
        Render and upload a note.

        Args:
            note_path: Path to the markdown note
            cancellation: Optional token; aborting it cancels the in-flight upload

        Returns:
            PublishResult with the public URL

        Raises:
            MissingCredentialsError: If AWS settings are incomplete
            PublishError: If reading, rendering or uploading fails
        """
        if not validate_credentials(self.config):
            raise MissingCredentialsError(
                "Fill in aws.access_key_id, aws.secret_access_key, aws.region "
                "and aws.bucket_name in the configuration"
            )

        set_correlation_id()
        started = time.monotonic()
        path = Path(note_path)
        key = object_key_for(path.name, self.config.aws.secret_access_key)

        logger.info("publish_started", note=str(path), key=key)

        try:
            content = path.read_text(encoding="utf-8")
            vault_dir = self.config.render.vault_dir or str(path.parent)
            page = generate_html(
                content,
                path.name,
                vault_dir=os.path.expanduser(vault_dir),
                images_dir=self.config.render.images_dir,
            )

            result = await self._build_uploader().upload(
                self.config.aws.bucket_name,
                key,
                page,
                content_type=HTML_CONTENT_TYPE,
                acl=self.config.upload.acl or None,
                cancellation=cancellation,
            )
        except RequestAbortedError as e:
            logger.warning("publish_aborted", note=str(path), reason=str(e.reason))
            raise PublishError("Publishing was cancelled", cause=e) from e
        except Exception as e:
            logger.error(
                "publish_failed",
                note=str(path),
                error_type=type(e).__name__,
                error=str(e),
            )
            raise PublishError(f"Failed to publish {path.name}: {e}", cause=e) from e
        finally:
            clear_correlation_id()

        duration_ms = (time.monotonic() - started) * 1000
        logger.info("publish_completed", note=str(path), url=result.location, duration_ms=duration_ms)

        return PublishResult(
            url=result.location,
            key=key,
            bucket=result.bucket,
            size_bytes=len(page.encode("utf-8")),
            parts=result.parts,
            duration_ms=duration_ms,
        )

    async def aclose(self) -> None:
        """Close the handler if the publisher created it."""
        if self._owns_handler:
            close = getattr(self.handler, "aclose", None)
            if close is not None:
                await close()
