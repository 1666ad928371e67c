"""Publish outcome and run report models."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from cdnforge.models.assets import BundleAsset, SingleAsset


class PublishStatus(str, enum.Enum):
    """What happened to one artifact during a run."""

    PUBLISHED = "published"
    FRESH = "fresh"
    FAILED = "failed"


class PublishOutcome(BaseModel):
    """Result of running one reference through the pipeline."""

    model_config = ConfigDict(frozen=True)

    reference: SingleAsset | BundleAsset = Field(discriminator="kind")
    artifact_name: str
    status: PublishStatus
    fingerprint: int = 0
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        """Whether the artifact is confirmed present and current on the CDN."""
        return self.status in (PublishStatus.PUBLISHED, PublishStatus.FRESH)


class PipelineReport(BaseModel):
    """Summary of a pipeline run, returned by ``Orchestrator.run``."""

    model_config = ConfigDict(frozen=True)

    outcomes: list[PublishOutcome] = Field(default_factory=list)
    skipped: bool = False
    manifest_written: bool = False
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def _count(self, status: PublishStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def published(self) -> int:
        return self._count(PublishStatus.PUBLISHED)

    @property
    def fresh(self) -> int:
        return self._count(PublishStatus.FRESH)

    @property
    def failed(self) -> int:
        return self._count(PublishStatus.FAILED)
