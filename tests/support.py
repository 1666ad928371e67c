"""Test doubles and sample sources shared by the cdnforge test suite."""

from __future__ import annotations

import gzip
import os
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from cdnforge.core.errors import StorageTransportError
from cdnforge.core.storage import HeadResult

# Fixed mtime used for fingerprint assertions: 2023-11-14T22:13:20.123Z
FIXED_MTIME_NS = 1_700_000_000_123_000_000
FIXED_MTIME_MS = FIXED_MTIME_NS // 1_000_000

SCRIPT_A = (
    'var greeting = "hello";\n'
    'function greet(name) { var message = greeting + ", " + name; return message; }\n'
)
SCRIPT_B = 'greet("world");\n'
SITE_CSS = "body {\n  background: url(../images/a.png) no-repeat;\n  color: #ffffff;\n}\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-data"


def set_mtime(path: Path, mtime_ns: int = FIXED_MTIME_NS) -> None:
    os.utime(path, ns=(mtime_ns, mtime_ns))


@dataclass
class StoredObject:
    body: bytes
    headers: dict[str, str]
    last_modified: int

    @property
    def text(self) -> str:
        return gzip.decompress(self.body).decode("utf-8")


@dataclass
class FakeStorage:
    """``RemoteStorage`` double recording every call.

    ``put_statuses`` maps a name to statuses returned by successive PUTs
    (200 once exhausted); ``put_transport_failures`` maps a name to the
    number of PUTs that raise before succeeding; names in ``head_errors``
    raise on HEAD.
    """

    objects: dict[str, StoredObject] = field(default_factory=dict)
    head_calls: list[str] = field(default_factory=list)
    put_calls: list[str] = field(default_factory=list)
    put_statuses: dict[str, list[int]] = field(default_factory=dict)
    put_transport_failures: dict[str, int] = field(default_factory=dict)
    head_errors: set[str] = field(default_factory=set)

    async def head(self, name: str) -> HeadResult:
        self.head_calls.append(name)
        if name in self.head_errors:
            raise StorageTransportError(f"connection reset during HEAD {name}")
        stored = self.objects.get(name)
        if stored is None:
            return HeadResult(found=False, status=404)
        return HeadResult(found=True, last_modified=stored.last_modified)

    async def put(self, name: str, body: bytes, headers: Mapping[str, str]) -> int:
        self.put_calls.append(name)
        if self.put_transport_failures.get(name, 0) > 0:
            self.put_transport_failures[name] -= 1
            raise StorageTransportError(f"connection reset during PUT {name}")
        statuses = self.put_statuses.get(name)
        if statuses:
            status = statuses.pop(0)
            if status != 200:
                return status
        self.objects[name] = StoredObject(body, dict(headers), int(time.time() * 1000))
        return 200

    def seed(self, name: str, last_modified: int) -> None:
        self.objects[name] = StoredObject(gzip.compress(b""), {}, last_modified)
