"""Sync engine that orchestrates one run across all targets.

The ``SyncEngine``:

1. Fetches source metadata once (the desired state is shared).
2. For each target, one after another:
   a. fetches the target's current metadata,
   b. builds a plan with the planner,
   c. executes it with a fresh ``Reconciler`` scoped to that target.

A failure against one target does not stop the others: every target is
attempted and the first error is re-raised at the end.  Targets are
never processed in parallel and each gets its own staging lifetime.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from dok_sync.logger import NullLogger, SyncLogger

from .errors import AggregateReconciliationError, SyncError
from .fetcher import MetadataFetcher, connector_name
from .models import DocumentMetadata, ReconcileResult, SyncPlan
from .planner import Planner
from .reconciler import DEFAULT_BATCH_DELAY, DEFAULT_BATCH_SIZE, Reconciler


class SyncEngine:
    """Run the fetch -> plan -> reconcile cycle for one job.

    Args:
        sources: Source connectors; ``provider_id`` values must be unique.
        targets: Target connectors, processed in order.
        dry_run: Plan and log only; no connector mutations.
        batch_size: Concurrent operations per batch.
        batch_delay: Pause between batches, in seconds.
        logger: Structured logger; defaults to ``NullLogger``.
        job_name: Optional job label used in logs.
    """

    def __init__(
        self,
        sources: Sequence[object],
        targets: Sequence[object],
        *,
        dry_run: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        logger: SyncLogger | None = None,
        job_name: str | None = None,
    ) -> None:
        self.sources = list(sources)
        self.targets = list(targets)
        self.dry_run = dry_run
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.logger = logger or NullLogger()
        self.job_name = job_name

        self.sources_by_provider: dict[str, object] = {}
        for source in self.sources:
            provider_id = source.provider_id  # type: ignore[attr-defined]
            if provider_id in self.sources_by_provider:
                raise ValueError(
                    f"Duplicate source provider_id '{provider_id}'"
                )
            self.sources_by_provider[provider_id] = source

        self.fetcher = MetadataFetcher(self.logger)
        self.planner = Planner()
        self.plans: list[tuple[str, SyncPlan]] = []
        self.results: list[ReconcileResult] = []

    async def run(self) -> list[ReconcileResult]:
        """Execute the job against every target.

        Every target is attempted even when an earlier one fails; the
        first failure is re-raised once all targets have been processed.
        Results of the targets that did run stay available in
        ``self.results``.

        Returns:
            One ``ReconcileResult`` per target, in target order.

        Raises:
            MetadataFetchError: If a listing could not be fetched.
            AggregateReconciliationError: If operations against a target
                failed.
        """
        self.logger.info(
            "Starting sync job",
            {
                "jobName": self.job_name,
                "sources": len(self.sources),
                "targets": len(self.targets),
                "dryRun": self.dry_run,
            },
        )

        source_metadata = await self.fetcher.fetch_source_metadata(
            self.sources
        )

        self.results = []
        first_error: SyncError | None = None
        for target in self.targets:
            name = connector_name(target)
            try:
                result = await self._sync_target(target, name, source_metadata)
            except SyncError as exc:
                self.logger.error(
                    "Target sync failed", {"target": name, "error": str(exc)}
                )
                if (
                    isinstance(exc, AggregateReconciliationError)
                    and exc.result is not None
                ):
                    self.results.append(exc.result)
                if first_error is None:
                    first_error = exc
                continue
            self.results.append(result)

        if first_error is not None:
            raise first_error

        self.logger.info("Sync job completed", {"jobName": self.job_name})
        return list(self.results)

    async def _sync_target(
        self,
        target: object,
        name: str,
        source_metadata: list[DocumentMetadata],
    ) -> ReconcileResult:
        target_metadata = await self.fetcher.fetch_target_metadata(target)
        self.logger.info(
            "Metadata fetched",
            {
                "target": name,
                "sourceCount": len(source_metadata),
                "targetCount": len(target_metadata),
            },
        )

        plan = self.planner.plan(source_metadata, target_metadata)
        self.plans.append((name, plan))
        self.logger.info(
            "Sync plan generated",
            {"target": name, **plan.summary.model_dump()},
        )

        reconciler = Reconciler(
            self.sources_by_provider,
            target,
            dry_run=self.dry_run,
            batch_size=self.batch_size,
            batch_delay=self.batch_delay,
            logger=self.logger,
            target_name=name,
        )
        return await reconciler.execute(plan)


def run_sync_job(
    sources: Sequence[object],
    targets: Sequence[object],
    **options,
) -> list[ReconcileResult]:
    """Blocking convenience wrapper: build a ``SyncEngine`` and run it."""
    engine = SyncEngine(sources, targets, **options)
    return asyncio.run(engine.run())
