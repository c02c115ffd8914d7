"""Batched, partial-failure-tolerant executor for a ``SyncPlan``.

The ``Reconciler`` applies one plan to one target connector:

1. Acquires a fresh staging directory (skipped in dry-run mode).
2. Partitions the plan by operation type.
3. Logs ``skip`` operations; runs the ``create``, ``update`` and
   ``delete`` groups as fixed-size batches with a pause in between.
4. Records each failed operation without stopping its siblings.
5. Releases the staging directory on every exit path.
6. Raises ``AggregateReconciliationError`` if anything failed, otherwise
   returns a ``ReconcileResult``.

Error handling is per-operation: a single document failure does not abort
the run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime, timezone

from dok_sync.core.async_utils import call_connector, run_in_batches
from dok_sync.logger import NullLogger, SyncLogger

from .errors import (
    AggregateReconciliationError,
    ConnectorNotFoundError,
    OperationError,
)
from .fetcher import connector_name
from .models import (
    OperationFailure,
    OperationType,
    ReconcileResult,
    SyncOperation,
    SyncPlan,
)
from .staging import TempStagingManager

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 0.1

# Order in which the mutating groups are processed
_GROUP_ORDER = (
    OperationType.CREATE,
    OperationType.UPDATE,
    OperationType.DELETE,
)

_DRY_RUN_EFFECT = {
    OperationType.CREATE: "Would create document",
    OperationType.UPDATE: "Would update document",
    OperationType.DELETE: "Would delete document",
}


class Reconciler:
    """Execute a sync plan against a single target connector.

    Args:
        sources: Source connectors keyed by ``provider_id``.
        target: Target connector to mutate.
        dry_run: If ``True``, log intended effects without calling any
            connector or staging content.
        batch_size: Maximum number of concurrent operations.
        batch_delay: Pause between batches, in seconds.
        logger: Structured logger; defaults to ``NullLogger``.
        staging_factory: Callable returning a fresh ``TempStagingManager``.
        target_name: Label of the target in logs and results.
    """

    def __init__(
        self,
        sources: Mapping[str, object],
        target: object,
        *,
        dry_run: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        logger: SyncLogger | None = None,
        staging_factory: Callable[[], TempStagingManager] = TempStagingManager,
        target_name: str | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if batch_delay < 0:
            raise ValueError(f"batch_delay must be >= 0, got {batch_delay}")

        self.sources = dict(sources)
        self.target = target
        self.dry_run = dry_run
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.logger = logger or NullLogger()
        self.staging_factory = staging_factory
        self.target_name = target_name or connector_name(target)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def execute(self, plan: SyncPlan) -> ReconcileResult:
        """Apply *plan* to the target.

        Returns:
            A ``ReconcileResult`` when every operation succeeded.

        Raises:
            AggregateReconciliationError: If one or more operations failed.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        self.logger.info(
            "Starting reconciliation",
            {
                "target": self.target_name,
                "dryRun": self.dry_run,
                **plan.summary.model_dump(),
            },
        )

        for operation in plan.by_type(OperationType.SKIP):
            self.logger.debug(
                "Skipping document",
                {
                    "documentId": operation.document_id,
                    "title": operation.document_metadata.title,
                    "reason": operation.reason,
                },
            )

        if self.dry_run:
            return self._dry_run(plan, started_at)

        errors: list[OperationError] = []
        attempted = 0
        staging = self.staging_factory()
        async with staging:
            for op_type in _GROUP_ORDER:
                group = plan.by_type(op_type)
                if not group:
                    continue
                attempted += len(group)
                self.logger.info(
                    f"Processing {op_type.value} operations",
                    {"count": len(group), "batchSize": self.batch_size},
                )
                outcomes = await run_in_batches(
                    group,
                    self._run_operation,
                    self.batch_size,
                    self.batch_delay,
                )
                for outcome in outcomes:
                    if isinstance(outcome, OperationError):
                        errors.append(outcome)
                    elif isinstance(outcome, BaseException):
                        raise outcome

        failures = tuple(
            OperationFailure(
                operation_type=err.operation.type,
                document_id=err.document_id,
                title=err.operation.document_metadata.title,
                message=err.message,
            )
            for err in errors
        )
        result = ReconcileResult(
            target_name=self.target_name,
            dry_run=False,
            summary=plan.summary,
            attempted=attempted,
            succeeded=attempted - len(failures),
            failures=failures,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

        if failures:
            self.logger.error(
                "Reconciliation finished with errors",
                {
                    "target": self.target_name,
                    "failed": len(failures),
                    "total": attempted,
                },
            )
            raise AggregateReconciliationError(failures, result)

        self.logger.info(
            "Reconciliation completed successfully",
            {
                "target": self.target_name,
                "total": attempted,
                "succeeded": result.succeeded,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Dry run
    # ------------------------------------------------------------------

    def _dry_run(self, plan: SyncPlan, started_at: str) -> ReconcileResult:
        attempted = 0
        for op_type in _GROUP_ORDER:
            for operation in plan.by_type(op_type):
                attempted += 1
                self.logger.info(
                    f"[DRY RUN] {_DRY_RUN_EFFECT[op_type]}",
                    {
                        "documentId": operation.document_id,
                        "title": operation.document_metadata.title,
                        "reason": operation.reason,
                    },
                )
        self.logger.info(
            "Dry run completed",
            {"target": self.target_name, "total": attempted},
        )
        return ReconcileResult(
            target_name=self.target_name,
            dry_run=True,
            summary=plan.summary,
            attempted=attempted,
            succeeded=attempted,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

    # ------------------------------------------------------------------
    # Per-operation execution
    # ------------------------------------------------------------------

    async def _run_operation(
        self, operation: SyncOperation
    ) -> OperationError | None:
        """Execute one operation, converting failures into ``OperationError``."""
        try:
            match operation.type:
                case OperationType.CREATE | OperationType.UPDATE:
                    await self._upsert(operation)
                case OperationType.DELETE:
                    await call_connector(
                        self.target.delete_document,  # type: ignore[attr-defined]
                        operation.document_id,
                    )
                case _:
                    return None
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = OperationError(operation, exc)
            self.logger.error(
                f"Failed to {operation.type.value} document",
                {
                    "documentId": operation.document_id,
                    "title": operation.document_metadata.title,
                    "error": error.message,
                },
            )
            return error

        self.logger.info(
            f"Document {operation.type.value}d",
            {
                "documentId": operation.document_id,
                "title": operation.document_metadata.title,
            },
        )
        return None

    async def _upsert(self, operation: SyncOperation) -> None:
        metadata = operation.document_metadata
        source = self.sources.get(metadata.provider_id)
        if source is None:
            raise ConnectorNotFoundError(metadata.provider_id)

        staged_path = await call_connector(
            source.download_document_content,  # type: ignore[attr-defined]
            operation.document_id,
        )

        if operation.type == OperationType.CREATE:
            await call_connector(
                self.target.create_document_from_file,  # type: ignore[attr-defined]
                metadata,
                staged_path,
            )
        else:
            await call_connector(
                self.target.update_document_from_file,  # type: ignore[attr-defined]
                metadata,
                staged_path,
            )
