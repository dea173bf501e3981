"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Retry logic for upload attempts.

The transport bridge never retries; the upload orchestrator wraps each
logical S3 operation with retry_async_operation so every attempt builds,
signs and sends a fresh request.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from s3publish.exceptions import RequestAbortedError, TransportError, UploadError
from s3publish.logging_config import get_logger
from s3publish.transport.cancellation import CancellationToken
from s3publish.transport.race import race_request

logger = get_logger(__name__)

T = TypeVar('T')

# Status codes S3 documents as safe to retry
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_transient_failure(error: BaseException) -> bool:
    """
    Decide whether a failed attempt may be retried.

    Transport faults (timeouts included) and throttling/server errors are
    transient. Cancellation never is.
    """
    if isinstance(error, RequestAbortedError):
        return False
    if isinstance(error, TransportError):
        return True
    if isinstance(error, UploadError):
        return error.status_code in RETRYABLE_STATUS_CODES
    return False


async def retry_async_operation(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    max_retries: int = 3,
    base_delay: float = 0.1,
    backoff_factor: float = 2.0,
    is_transient: Callable[[BaseException], bool] = is_transient_failure,
    cancellation: Optional[CancellationToken] = None,
) -> T:
    """
    Execute an async operation with retry logic and exponential backoff.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        operation_name: Name of the operation for logging
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds before first retry (default: 0.1)
        backoff_factor: Multiplier for delay between retries (default: 2.0)
        is_transient: Predicate selecting which exceptions are retried
        cancellation: Optional token; aborting it also interrupts the backoff sleep

    Returns:
        Result of the operation

    Raises:
        Exception: The last exception if all retries fail, or the first non-transient one

    Example:
        result = await retry_async_operation(
            lambda: uploader.send_put(bucket, key, body),
            "put_object",
            max_retries=3,
        )
    """
    last_exception = None

    for attempt in range(max_retries + 1):  # +1 for initial attempt
        try:
            return await operation()
        except Exception as e:
            if not is_transient(e):
                raise
            last_exception = e

            if attempt < max_retries:
                delay = base_delay * (backoff_factor ** attempt)

                logger.warning(
                    "transient_failure_retrying",
                    operation=operation_name,
                    attempt=attempt + 1,
                    max_attempts=max_retries + 1,
                    delay_seconds=delay,
                    exception_type=type(e).__name__,
                    exception_message=str(e),
                )

                await race_request(asyncio.sleep(delay), cancellation=cancellation)
            else:
                logger.error(
                    "operation_failed_after_retries",
                    operation=operation_name,
                    total_attempts=attempt + 1,
                    exception_type=type(e).__name__,
                    exception_message=str(e),
                )

    # Re-raise the last exception after all retries exhausted
    raise last_exception
