"""Staleness Oracle — is the remote copy of an artifact already current?"""

from __future__ import annotations

import logging

from cdnforge.core.errors import FreshnessCheckError, StorageTransportError
from cdnforge.core.storage import RemoteStorage

logger = logging.getLogger(__name__)


class StalenessOracle:
    """Answers ``is_fresh(artifact_name, fingerprint)`` with one HEAD request.

    Fresh iff the object is found *and* its remote last-modified time is at
    least ``fingerprint``.  Not found (or any lookup error the backend
    surfaces as not found) means stale.  A transport failure is fatal and is
    not retried here.
    """

    def __init__(self, storage: RemoteStorage) -> None:
        self._storage = storage

    async def is_fresh(self, artifact_name: str, fingerprint: int) -> bool:
        try:
            result = await self._storage.head(artifact_name)
        except StorageTransportError as exc:
            raise FreshnessCheckError(
                f"freshness check for '{artifact_name}' failed: {exc}"
            ) from exc

        if not result.found or result.last_modified is None:
            logger.debug("'%s' not found remotely (status %s)", artifact_name, result.status)
            return False
        if result.last_modified < fingerprint:
            logger.debug(
                "'%s' is older remotely (%d) than locally (%d)",
                artifact_name,
                result.last_modified,
                fingerprint,
            )
            return False
        return True
