"""Pipeline orchestrator — drives scan, resolve, stale-check, transform, publish.

Control flow for one run::

    manifest populated? ── yes ──> skip
          │ no
    TemplateScanner.scan
          │
    AssetResolver.resolve (every reference, before any network call)
          │
    per reference, bounded fan-out:
        StalenessOracle.is_fresh ── fresh ──> done
              │ stale
        TransformDispatcher.dispatch ──> Publisher.publish
          │
    PublishManifest.write

Each artifact is processed at most once per run: stylesheet sub-resources and
top-level references share one task per artifact name, so an image used by
several stylesheets is uploaded once and every requester awaits that upload.
"""

from __future__ import annotations

import asyncio
import logging

from cdnforge.config import CdnConfig
from cdnforge.core.errors import ConfigurationError
from cdnforge.core.freshness import StalenessOracle
from cdnforge.core.manifest import PublishManifest
from cdnforge.core.publisher import Publisher
from cdnforge.core.resolver import AssetResolver
from cdnforge.core.scanner import TemplateScanner
from cdnforge.core.storage import RemoteStorage
from cdnforge.core.stylesheets import OriginStylesheetLoader
from cdnforge.core.transforms import TransformDispatcher
from cdnforge.models.assets import AssetReference, ResolvedAsset, SingleAsset
from cdnforge.models.publishing import PipelineReport, PublishOutcome, PublishStatus

logger = logging.getLogger(__name__)


def check_artifact_names(resolved: list[ResolvedAsset]) -> None:
    """Raise ``ConfigurationError`` if two assets share a name but not their files.

    Distinct bundles can map to one remote object, e.g. ``/js/a.js`` +
    ``/js/b.js`` and ``/vendor/a.js`` + ``/vendor/b.js`` are both ``a.js+b.js``.
    """
    seen: dict[str, ResolvedAsset] = {}
    for asset in resolved:
        first = seen.setdefault(asset.artifact_name, asset)
        if first.files != asset.files:
            raise ConfigurationError(
                f"artifact name collision: {first.reference} and {asset.reference} "
                f"both publish as '{asset.artifact_name}'"
            )


class Orchestrator:
    """Central publishing pipeline.

    Parameters
    ----------
    config:
        Options; required ones are validated at construction.
    storage:
        Remote storage backend receiving HEAD and PUT calls.
    log:
        Logger used for run-level messages and by the Publisher.  Defaults
        to this module's logger.
    """

    def __init__(
        self,
        config: CdnConfig,
        storage: RemoteStorage,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        config.validate_required()
        if config.views_dir is None:
            raise ConfigurationError('missing option "views_dir"')
        self.config = config
        self._log = log or logger

        self.resolver = AssetResolver(config.require_public_dir())
        self.scanner = TemplateScanner(
            config.views_dir,
            extensions=config.template_extensions,
            marker_name=config.marker_name,
        )
        self.oracle = StalenessOracle(storage)
        self.publisher = Publisher(
            storage,
            max_attempts=config.upload_max_attempts,
            initial_wait=config.upload_initial_wait_seconds,
            max_wait=config.upload_max_wait_seconds,
            log=self._log,
        )
        load_stylesheet = (
            OriginStylesheetLoader(config.origin_url)
            if config.stylesheet_source == "server"
            else None
        )
        self.dispatcher = TransformDispatcher(
            self.resolver,
            self.publisher,
            publish_subresource=self.publish_subresource,
            load_stylesheet=load_stylesheet,
            optipng_binary=config.optipng_binary,
            jpegtran_binary=config.jpegtran_binary,
        )
        self.manifest = PublishManifest(config.manifest_path) if config.manifest_path else None

        self._tasks: dict[str, asyncio.Task[PublishOutcome]] = {}
        self._scheduled: dict[str, ResolvedAsset] = {}

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def run(self, *, force: bool = False) -> PipelineReport:
        """Publish every asset referenced from the templates.

        Skips everything when a populated manifest exists, unless *force*.
        Fatal errors propagate and abort the run; upload failures are
        reported in the returned ``PipelineReport``.
        """
        if not force and self.manifest is not None and self.manifest.is_populated():
            self._log.warning(
                "Manifest %s already lists published assets; skipping run", self.manifest.path
            )
            return PipelineReport(skipped=True)

        markers = await self.scanner.scan()
        if not markers:
            raise ConfigurationError(
                f"no {self.config.marker_name}(...) markers found under '{self.scanner.views_dir}'"
            )
        return await self.publish([marker.reference for marker in markers])

    async def publish(self, references: list[AssetReference]) -> PipelineReport:
        """Run the publish path for *references* and write the manifest."""
        # Resolve everything first: configuration errors abort before any network call.
        resolved = [self.resolver.resolve(reference) for reference in references]
        check_artifact_names(resolved)
        self._tasks = {}
        self._scheduled = {}

        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrency))

        async def _bounded(asset: ResolvedAsset) -> PublishOutcome:
            async with semaphore:
                return await self._schedule(asset)

        outcomes = list(await asyncio.gather(*(_bounded(asset) for asset in resolved)))

        manifest_written = False
        if self.manifest is not None:
            self.manifest.write(o.reference for o in outcomes if o.succeeded)
            manifest_written = True

        report = PipelineReport(outcomes=outcomes, manifest_written=manifest_written)
        self._log.info(
            "Run complete: %d published, %d fresh, %d failed",
            report.published,
            report.fresh,
            report.failed,
        )
        return report

    # ------------------------------------------------------------------
    # Per-artifact pipeline
    # ------------------------------------------------------------------

    async def publish_subresource(self, reference: SingleAsset) -> PublishOutcome:
        """Full pipeline for an image or font referenced from a stylesheet."""
        return await self._schedule(self.resolver.resolve(reference))

    async def _schedule(self, asset: ResolvedAsset) -> PublishOutcome:
        task = self._tasks.get(asset.artifact_name)
        if task is None:
            task = asyncio.ensure_future(self.process(asset))
            self._tasks[asset.artifact_name] = task
            self._scheduled[asset.artifact_name] = asset
        else:
            check_artifact_names([self._scheduled[asset.artifact_name], asset])
        outcome = await task
        if outcome.reference != asset.reference:
            outcome = outcome.model_copy(update={"reference": asset.reference})
        return outcome

    async def process(self, asset: ResolvedAsset) -> PublishOutcome:
        """Stale-check one resolved asset and publish it if needed."""
        if await self.oracle.is_fresh(asset.artifact_name, asset.fingerprint):
            self._log.info(
                "'%s' not modified and is already stored remotely", asset.artifact_name
            )
            return PublishOutcome(
                reference=asset.reference,
                artifact_name=asset.artifact_name,
                status=PublishStatus.FRESH,
                fingerprint=asset.fingerprint,
            )
        self._log.info(
            "'%s' was not found remotely or was modified recently", asset.artifact_name
        )
        return await self.dispatcher.dispatch(asset)
