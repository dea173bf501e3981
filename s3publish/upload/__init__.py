"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Upload orchestration: signing, retries and S3 single/multipart uploads.
"""

from s3publish.upload.retry import is_transient_failure, retry_async_operation
from s3publish.upload.signer import SigV4RequestSigner
from s3publish.upload.uploader import (
    ObjectUploader,
    UploadResult,
    error_from_response,
    public_object_url,
)

__all__ = [
    "ObjectUploader",
    "SigV4RequestSigner",
    "UploadResult",
    "error_from_response",
    "is_transient_failure",
    "public_object_url",
    "retry_async_operation",
]
