"""cdnforge data models — Pydantic v2, frozen."""

from cdnforge.models.assets import (
    AssetReference,
    BundleAsset,
    RenderAttributes,
    ResolvedAsset,
    ScannedMarker,
    SingleAsset,
    TransformKind,
    reference_from_literal,
)
from cdnforge.models.publishing import PipelineReport, PublishOutcome, PublishStatus

__all__ = [
    # assets
    "AssetReference",
    "SingleAsset",
    "BundleAsset",
    "RenderAttributes",
    "ResolvedAsset",
    "ScannedMarker",
    "TransformKind",
    "reference_from_literal",
    # publishing
    "PublishStatus",
    "PublishOutcome",
    "PipelineReport",
]
