"""Publisher — gzip, cache headers, and retried upload of artifact bytes.

Retry policy follows exponential backoff with jitter (tenacity).  Both
transport errors and non-200 responses are retried; once attempts are
exhausted the failure is logged and ``publish`` returns ``False``.  The run
carries on with its other artifacts: a failed upload is never fatal.
"""

from __future__ import annotations

import gzip
import logging
import time
from collections.abc import Mapping
from email.utils import formatdate

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from cdnforge.core.errors import StorageTransportError
from cdnforge.core.storage import VENDOR_HEADER_PREFIX, RemoteStorage

logger = logging.getLogger(__name__)

# One (tropical) year, as used for both Cache-Control and Expires.
ONE_YEAR_SECONDS = 31556926


class UploadRejectedError(RuntimeError):
    """A PUT completed but the remote answered with a non-200 status."""

    def __init__(self, artifact_name: str, status: int) -> None:
        self.artifact_name = artifact_name
        self.status = status
        super().__init__(f"upload of '{artifact_name}' answered {status}")


def build_headers(mime_type: str, *, now: float | None = None) -> dict[str, str]:
    """Fixed upload header set for an artifact of *mime_type*.

    Cache, content-type and content-encoding headers are duplicated under the
    vendor prefix for intermediaries that only honor one form.
    """
    now = time.time() if now is None else now
    cache_control = f"public, max-age={ONE_YEAR_SECONDS}"
    headers = {
        "Content-Type": mime_type,
        "Cache-Control": cache_control,
        "Expires": formatdate(now + ONE_YEAR_SECONDS, usegmt=True),
        "Content-Encoding": "gzip",
        "x-amz-acl": "public-read",
    }
    headers[f"{VENDOR_HEADER_PREFIX}content-type"] = mime_type
    headers[f"{VENDOR_HEADER_PREFIX}cache-control"] = cache_control
    headers[f"{VENDOR_HEADER_PREFIX}content-encoding"] = "gzip"
    return headers


def backoff_wait(initial: float, maximum: float) -> wait_base:
    """Exponential backoff from *initial* seconds capped at *maximum*, plus jitter."""
    return wait_exponential(multiplier=initial, max=maximum) + wait_random(0, initial)


def gzip_bytes(data: bytes) -> bytes:
    """Gzip *data* with a zeroed header timestamp (stable output)."""
    return gzip.compress(data, mtime=0)


class Publisher:
    """Uploads artifacts with bounded retry and records successes.

    Parameters
    ----------
    storage:
        Remote storage backend.
    max_attempts:
        Total upload attempts per artifact, first try included.
    initial_wait, max_wait:
        Backoff bounds in seconds.
    """

    def __init__(
        self,
        storage: RemoteStorage,
        *,
        max_attempts: int = 5,
        initial_wait: float = 0.5,
        max_wait: float = 10.0,
        log: logging.Logger | None = None,
    ) -> None:
        self._storage = storage
        self.max_attempts = max(1, max_attempts)
        self.initial_wait = initial_wait
        self.max_wait = max_wait
        self._log = log or logger
        self.published: list[str] = []

    async def publish(
        self, artifact_name: str, body: bytes, headers: Mapping[str, str]
    ) -> bool:
        """Compress and upload *body*.  Returns ``True`` on a 200 response."""
        payload = gzip_bytes(body)
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((StorageTransportError, UploadRejectedError)),
                stop=stop_after_attempt(self.max_attempts),
                wait=backoff_wait(self.initial_wait, self.max_wait),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    status = await self._storage.put(artifact_name, payload, headers)
                    if status != 200:
                        raise UploadRejectedError(artifact_name, status)
        except (StorageTransportError, UploadRejectedError) as exc:
            self._log.error(
                "Unsuccessful upload of '%s' after %d attempts: %s",
                artifact_name,
                self.max_attempts,
                exc,
            )
            return False

        self.published.append(artifact_name)
        self._log.info(
            "Uploaded '%s' (%d bytes, %d gzipped)", artifact_name, len(body), len(payload)
        )
        return True

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._log.warning(
            "Upload attempt %d/%d failed (%s); retrying in %.2fs",
            retry_state.attempt_number,
            self.max_attempts,
            exc,
            wait,
        )
