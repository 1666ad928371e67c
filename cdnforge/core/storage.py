"""Remote storage backends.

The pipeline only needs two primitives from object storage:

- ``head(name)``  -> ``HeadResult`` (found?, last-modified in epoch millis)
- ``put(name, body, headers)`` -> HTTP-style status code

Backends raise ``StorageTransportError`` when the remote cannot be reached at
all; a semantic "not found" or a rejected upload is reported through the
return value instead.  Object names are passed unescaped: the S3 backend
relies on botocore to URL-escape keys on the wire.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import aiofiles
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from cdnforge.core.errors import StorageTransportError

logger = logging.getLogger(__name__)

VENDOR_HEADER_PREFIX = "x-amz-meta-"


class HeadResult(BaseModel):
    """Outcome of a metadata-only lookup."""

    model_config = ConfigDict(frozen=True)

    found: bool
    status: int = 200
    last_modified: int | None = None  # epoch millis


@runtime_checkable
class RemoteStorage(Protocol):
    """Interface every storage backend implements."""

    async def head(self, name: str) -> HeadResult: ...

    async def put(self, name: str, body: bytes, headers: Mapping[str, str]) -> int: ...


# ---------------------------------------------------------------------------
# S3 / S3-compatible
# ---------------------------------------------------------------------------


class S3Storage:
    """Backend for Amazon S3 or any S3 compatible service (MinIO, R2, ...).

    boto3 is synchronous, so each call runs via ``asyncio.to_thread`` and the
    event loop stays free while the request is in flight.

    Parameters
    ----------
    bucket:
        Target bucket name.
    client:
        Pre-built boto3 S3 client.  Built from the credentials below when
        omitted.
    """

    # Standard headers mapped onto boto3 ``put_object`` arguments.
    _HEADER_ARGS: dict[str, str] = {
        "content-type": "ContentType",
        "cache-control": "CacheControl",
        "content-encoding": "ContentEncoding",
        "x-amz-acl": "ACL",
    }

    def __init__(
        self,
        bucket: str,
        *,
        client: Any | None = None,
        endpoint: str | None = None,
        region: str | None = None,
        key: str | None = None,
        secret: str | None = None,
    ) -> None:
        self.bucket = bucket
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint,
                region_name=region,
                aws_access_key_id=key or None,
                aws_secret_access_key=secret or None,
                config=Config(signature_version="s3v4"),
            )
        self.client = client

    async def head(self, name: str) -> HeadResult:
        try:
            response = await asyncio.to_thread(
                self.client.head_object, Bucket=self.bucket, Key=name
            )
        except ClientError as exc:
            status = int(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 404))
            code = exc.response.get("Error", {}).get("Code")
            logger.debug("HEAD %s -> %s (%s)", name, status, code)
            return HeadResult(found=False, status=status)
        except BotoCoreError as exc:
            raise StorageTransportError(f"HEAD '{name}' failed: {exc}") from exc

        last_modified = response.get("LastModified")
        millis = int(last_modified.timestamp() * 1000) if last_modified is not None else None
        status = int(response.get("ResponseMetadata", {}).get("HTTPStatusCode", 200))
        return HeadResult(found=True, status=status, last_modified=millis)

    async def put(self, name: str, body: bytes, headers: Mapping[str, str]) -> int:
        kwargs = self._put_arguments(headers)
        try:
            response = await asyncio.to_thread(
                self.client.put_object, Bucket=self.bucket, Key=name, Body=body, **kwargs
            )
        except ClientError as exc:
            status = int(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 500))
            logger.debug("PUT %s rejected with %s: %s", name, status, exc)
            return status
        except BotoCoreError as exc:
            raise StorageTransportError(f"PUT '{name}' failed: {exc}") from exc
        return int(response.get("ResponseMetadata", {}).get("HTTPStatusCode", 200))

    def _put_arguments(self, headers: Mapping[str, str]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        metadata: dict[str, str] = {}
        for header, value in headers.items():
            lowered = header.lower()
            if lowered in self._HEADER_ARGS:
                kwargs[self._HEADER_ARGS[lowered]] = value
            elif lowered == "expires":
                kwargs["Expires"] = parsedate_to_datetime(value)
            elif lowered.startswith(VENDOR_HEADER_PREFIX):
                metadata[lowered[len(VENDOR_HEADER_PREFIX):]] = value
        if metadata:
            kwargs["Metadata"] = metadata
        return kwargs


# ---------------------------------------------------------------------------
# Local filesystem
# ---------------------------------------------------------------------------


class LocalStorage:
    """Filesystem backend for dry runs and development.

    Objects are written under ``base_path``; the headers and the upload time
    live in a ``<object>.meta.json`` sidecar so ``head`` can answer with a
    last-modified time just like S3 would.
    """

    META_SUFFIX = ".meta.json"

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _object_path(self, name: str) -> Path:
        return self.base_path / name

    def _meta_path(self, name: str) -> Path:
        return self.base_path / f"{name}{self.META_SUFFIX}"

    async def head(self, name: str) -> HeadResult:
        meta_path = self._meta_path(name)
        if not meta_path.exists():
            return HeadResult(found=False, status=404)
        async with aiofiles.open(meta_path, encoding="utf-8") as f:
            meta = json.loads(await f.read())
        return HeadResult(found=True, last_modified=int(meta["last_modified"]))

    async def put(self, name: str, body: bytes, headers: Mapping[str, str]) -> int:
        path = self._object_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(body)
        meta = {"last_modified": int(time.time() * 1000), "headers": dict(headers)}
        async with aiofiles.open(self._meta_path(name), "w", encoding="utf-8") as f:
            await f.write(json.dumps(meta, indent=2, sort_keys=True))
        return 200

    def read(self, name: str) -> bytes:
        """Return the stored (still compressed) bytes of *name*."""
        return self._object_path(name).read_bytes()

    def headers(self, name: str) -> dict[str, str]:
        return json.loads(self._meta_path(name).read_text(encoding="utf-8"))["headers"]
