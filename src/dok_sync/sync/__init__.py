"""Document reconciliation engine.

Public API for converging target knowledge stores toward the documents
listed by one or more sources.

Architecture
------------
Every run recomputes state from scratch: metadata is listed on both
sides, diffed into a plan, and the plan is applied in batches.  No sync
state is persisted between runs.

Modules:

- ``models``     -- ``DocumentMetadata``, ``SyncOperation``, ``SyncPlan``,
  ``ReconcileResult``: core data contracts.
- ``planner``    -- ``plan()``: pure metadata diff.
- ``fetcher``    -- ``MetadataFetcher``: drains connector listings.
- ``staging``    -- ``TempStagingManager``: per-run scratch files.
- ``reconciler`` -- ``Reconciler``: batched, best-effort plan executor.
- ``engine``     -- ``SyncEngine``: fetch, plan and reconcile per target.
- ``reporter``   -- Human-readable and JSON report formatting.
- ``errors``     -- Exception hierarchy.

Usage example
-------------
::

    import asyncio
    from dok_sync.connectors.directory import DirectoryTarget
    from dok_sync.connectors.filesystem import FilesystemSource
    from dok_sync.sync import SyncEngine, format_sync_report

    engine = SyncEngine(
        sources=[FilesystemSource(root="notes", provider_id="notes")],
        targets=[DirectoryTarget(root="kb")],
        dry_run=True,
    )
    for result in asyncio.run(engine.run()):
        print(format_sync_report(result))
"""

from .engine import SyncEngine, run_sync_job
from .errors import (
    AggregateReconciliationError,
    ConnectorNotFoundError,
    MetadataFetchError,
    OperationError,
    StagingUnavailableError,
    SyncError,
)
from .fetcher import MetadataFetcher
from .models import (
    DocumentMetadata,
    OperationFailure,
    OperationType,
    PlanSummary,
    ReconcileResult,
    SyncOperation,
    SyncPlan,
    compose_document_id,
    parse_document_id,
)
from .planner import Planner, plan
from .reconciler import Reconciler
from .reporter import (
    format_plan_preview,
    format_sync_report,
    plan_to_json,
    report_to_json,
)
from .staging import TempStagingManager, current_staging

__all__ = [
    "AggregateReconciliationError",
    "ConnectorNotFoundError",
    "DocumentMetadata",
    "MetadataFetchError",
    "MetadataFetcher",
    "OperationError",
    "OperationFailure",
    "OperationType",
    "PlanSummary",
    "Planner",
    "ReconcileResult",
    "Reconciler",
    "StagingUnavailableError",
    "SyncEngine",
    "SyncError",
    "SyncOperation",
    "SyncPlan",
    "TempStagingManager",
    "compose_document_id",
    "current_staging",
    "format_plan_preview",
    "format_sync_report",
    "parse_document_id",
    "plan",
    "plan_to_json",
    "report_to_json",
    "run_sync_job",
]
