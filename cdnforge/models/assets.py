"""Asset reference models — what templates point at and what it resolves to."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Attribute values come straight out of template markers: strings for
# ordinary HTML attributes, booleans for flags such as ``raw``.
RenderAttributes = dict[str, Union[str, bool, int, float]]


class SingleAsset(BaseModel):
    """One asset file, referenced by its public path (e.g. ``/css/site.css``)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    path: str

    @field_validator("path")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("asset path must not be empty")
        return value

    @property
    def paths(self) -> tuple[str, ...]:
        return (self.path,)

    def to_literal(self) -> str:
        return self.path

    def __str__(self) -> str:
        return self.path


class BundleAsset(BaseModel):
    """An ordered group of assets published and referenced as one artifact."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["bundle"] = "bundle"
    paths: tuple[str, ...] = Field(min_length=1)

    @field_validator("paths")
    @classmethod
    def _no_empty_members(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if any(not member.strip() for member in value):
            raise ValueError("bundle members must not be empty")
        return value

    def to_literal(self) -> list[str]:
        return list(self.paths)

    def __str__(self) -> str:
        return "[" + ", ".join(self.paths) + "]"


AssetReference = Union[SingleAsset, BundleAsset]


def reference_from_literal(value: Any) -> AssetReference:
    """Build an ``AssetReference`` from its literal form.

    A string becomes a ``SingleAsset``; a list (or tuple) of strings becomes a
    ``BundleAsset``.  Anything else raises ``TypeError``.
    """
    if isinstance(value, str):
        return SingleAsset(path=value)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return BundleAsset(paths=tuple(value))
    raise TypeError(f"asset was not a string or a list of strings: {value!r}")


class TransformKind(str, enum.Enum):
    """Terminal transform applied to an asset before upload."""

    SCRIPT = "script"
    STYLESHEET = "stylesheet"
    RASTER_PNG = "raster-png"
    RASTER_JPEG = "raster-jpeg"
    PASSTHROUGH = "passthrough"


class ResolvedAsset(BaseModel):
    """An ``AssetReference`` joined against the public root.

    ``artifact_name`` is the stable remote object name; ``fingerprint`` is the
    max modification time (epoch millis) across ``files`` and travels
    separately as the cache-busting query parameter.
    """

    model_config = ConfigDict(frozen=True)

    reference: SingleAsset | BundleAsset = Field(discriminator="kind")
    artifact_name: str
    files: tuple[Path, ...]
    mime_type: str
    fingerprint: int = 0

    @property
    def is_bundle(self) -> bool:
        return isinstance(self.reference, BundleAsset)


class ScannedMarker(BaseModel):
    """One parsed template marker: the reference plus its render attributes."""

    model_config = ConfigDict(frozen=True)

    reference: SingleAsset | BundleAsset = Field(discriminator="kind")
    attributes: RenderAttributes = Field(default_factory=dict)
