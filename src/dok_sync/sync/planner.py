"""Metadata-diffing planner.

Compares the desired state (source listing) with the current state
(target listing) and produces a deterministic ``SyncPlan``.  No I/O.

Rules per document id:

* source only            -> ``create``
* both, source newer     -> ``update`` (strictly newer; ties skip)
* both, not newer        -> ``skip``
* target only            -> ``delete``

Creates, updates and skips come first in source order, followed by the
deletes in target order.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import (
    DocumentMetadata,
    OperationType,
    SyncOperation,
    SyncPlan,
)


def plan(
    source_metadata: Iterable[DocumentMetadata],
    target_metadata: Iterable[DocumentMetadata],
) -> SyncPlan:
    """Build the plan converging *target_metadata* toward *source_metadata*.

    Args:
        source_metadata: Desired state, in the order operations should run.
        target_metadata: Current state of the target.

    Returns:
        An immutable ``SyncPlan``.
    """
    operations: list[SyncOperation] = []
    remaining: dict[str, DocumentMetadata] = {
        target.document_id: target for target in target_metadata
    }

    for source in source_metadata:
        target = remaining.pop(source.document_id, None)

        if target is None:
            operations.append(
                SyncOperation(
                    type=OperationType.CREATE,
                    document_metadata=source,
                    reason="Document does not exist in target",
                )
            )
        elif source.last_modified > target.last_modified:
            operations.append(
                SyncOperation(
                    type=OperationType.UPDATE,
                    document_metadata=source,
                    reason=(
                        f"Source modified at {source.last_modified.isoformat()} "
                        f"is newer than target modified at "
                        f"{target.last_modified.isoformat()}"
                    ),
                )
            )
        else:
            operations.append(
                SyncOperation(
                    type=OperationType.SKIP,
                    document_metadata=source,
                    reason="Document is up to date",
                )
            )

    for target in remaining.values():
        operations.append(
            SyncOperation(
                type=OperationType.DELETE,
                document_metadata=target,
                reason="Document no longer exists in source",
            )
        )

    return SyncPlan.from_operations(operations)


class Planner:
    """Object wrapper around :func:`plan` for injection into the engine."""

    def plan(
        self,
        source_metadata: Iterable[DocumentMetadata],
        target_metadata: Iterable[DocumentMetadata],
    ) -> SyncPlan:
        return plan(source_metadata, target_metadata)
