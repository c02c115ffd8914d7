"""Pydantic models for the reconciliation engine.

Defines the core data contracts used across all sync modules:

- ``DocumentMetadata``: Identity, title and modification time of one document.
- ``OperationType``: Enum of possible sync operations.
- ``SyncOperation``: One planned operation with its justification.
- ``PlanSummary`` / ``SyncPlan``: The ordered, typed plan for one target.
- ``OperationFailure``: A failed operation as recorded by the reconciler.
- ``ReconcileResult``: Aggregate results for one reconciliation run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

DOCUMENT_ID_DELIMITER = ":"

_EXTENSION_PATTERN = re.compile(r"\.([^./]+)$")


def compose_document_id(provider_id: str, source_id: str) -> str:
    """Build the ``provider_id:source_id`` identifier of a document."""
    return f"{provider_id}{DOCUMENT_ID_DELIMITER}{source_id}"


def parse_document_id(document_id: str) -> tuple[str, str]:
    """Split a document id into ``(provider_id, source_id)``.

    Only the first delimiter separates the parts, so a ``source_id``
    containing ``:`` survives a round trip unchanged.

    Raises:
        ValueError: If *document_id* contains no delimiter.
    """
    provider_id, sep, source_id = document_id.partition(
        DOCUMENT_ID_DELIMITER
    )
    if not sep:
        raise ValueError(
            f"Invalid document id '{document_id}': expected 'provider:source'"
        )
    return provider_id, source_id


def extract_extension_from_source_id(source_id: str) -> str | None:
    """Return the trailing file extension of *source_id*, if any."""
    match = _EXTENSION_PATTERN.search(source_id)
    return match.group(1) if match else None


class DocumentMetadata(BaseModel):
    """Metadata of a single document as listed by a connector.

    Attributes:
        provider_id: Name of the owning source connector.
        source_id: Connector-defined opaque identifier.
        title: Human-readable title.
        last_modified: Last modification time.
        file_extension: Optional extension of the staged content
            (e.g. ``md``).
    """

    provider_id: str
    source_id: str
    title: str
    last_modified: datetime
    file_extension: str | None = None

    model_config = {"frozen": True}

    @property
    def document_id(self) -> str:
        """The composite ``provider_id:source_id`` identifier."""
        return compose_document_id(self.provider_id, self.source_id)


class OperationType(str, Enum):
    """Possible sync operations for a document."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SKIP = "skip"


class SyncOperation(BaseModel):
    """One operation of a sync plan.

    Attributes:
        type: Operation to perform.
        document_metadata: Metadata of the affected document.
        reason: Human-readable justification (informational only).
    """

    type: OperationType
    document_metadata: DocumentMetadata
    reason: str

    model_config = {"frozen": True}

    @property
    def document_id(self) -> str:
        return self.document_metadata.document_id


class PlanSummary(BaseModel):
    """Operation counts per type."""

    total: int = 0
    create: int = 0
    update: int = 0
    delete: int = 0
    skip: int = 0

    model_config = {"frozen": True}


class SyncPlan(BaseModel):
    """Ordered operations needed to converge one target.

    Build with ``SyncPlan.from_operations()`` so the summary always
    matches the operations.
    """

    operations: tuple[SyncOperation, ...] = ()
    summary: PlanSummary = PlanSummary()

    model_config = {"frozen": True}

    @classmethod
    def from_operations(cls, operations: list[SyncOperation]) -> SyncPlan:
        counts = Counter(op.type for op in operations)
        summary = PlanSummary(
            total=len(operations),
            create=counts[OperationType.CREATE],
            update=counts[OperationType.UPDATE],
            delete=counts[OperationType.DELETE],
            skip=counts[OperationType.SKIP],
        )
        return cls(operations=tuple(operations), summary=summary)

    def by_type(self, op_type: OperationType) -> list[SyncOperation]:
        """Operations of *op_type*, in plan order."""
        return [op for op in self.operations if op.type == op_type]

    @property
    def has_changes(self) -> bool:
        return self.summary.total != self.summary.skip


class OperationFailure(BaseModel):
    """A failed operation recorded during reconciliation.

    Attributes:
        operation_type: Type of the failed operation.
        document_id: Composite id of the affected document.
        title: Title of the affected document.
        message: Message of the underlying exception.
    """

    operation_type: OperationType
    document_id: str
    title: str
    message: str

    model_config = {"frozen": True}


class ReconcileResult(BaseModel):
    """Aggregate report for one reconciliation run against one target.

    Attributes:
        target_name: Label of the target connector.
        dry_run: Whether this was a dry-run (no changes applied).
        summary: Summary of the executed plan.
        attempted: Number of non-skip operations attempted.
        succeeded: Number of operations that completed successfully.
        failures: Failed operations.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    target_name: str
    dry_run: bool = False
    summary: PlanSummary = PlanSummary()
    attempted: int = 0
    succeeded: int = 0
    failures: tuple[OperationFailure, ...] = ()
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        return not self.failures
