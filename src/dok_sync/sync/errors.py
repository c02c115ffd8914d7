"""Exception hierarchy for the reconciliation engine.

Per-operation errors (``ConnectorNotFoundError``, ``OperationError``) are
recovered and collected by the reconciler; only
``AggregateReconciliationError`` surfaces at the end of a run.
``MetadataFetchError`` is fatal to the target run that raised it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import OperationFailure, ReconcileResult, SyncOperation


class SyncError(Exception):
    """Base class for all sync engine errors."""


class MetadataFetchError(SyncError):
    """A connector failed while listing document metadata."""

    def __init__(self, connector: str, cause: BaseException | str):
        self.connector = connector
        self.cause = cause
        super().__init__(
            f"Failed to fetch metadata from {connector}: {cause}"
        )


class ConnectorNotFoundError(SyncError):
    """A plan references a provider id with no registered source."""

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Source connector not found: {provider_id}")


class OperationError(SyncError):
    """A single create/update/delete operation failed."""

    def __init__(self, operation: SyncOperation, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(str(cause) or type(cause).__name__)

    @property
    def document_id(self) -> str:
        return self.operation.document_id

    @property
    def operation_type(self) -> str:
        return self.operation.type.value

    @property
    def message(self) -> str:
        return self.args[0]


class StagingUnavailableError(SyncError):
    """Content staging was requested outside of a reconciliation run."""


class AggregateReconciliationError(SyncError):
    """Raised once at the end of a run in which any operation failed."""

    def __init__(
        self,
        failures: list[OperationFailure] | tuple[OperationFailure, ...],
        result: ReconcileResult | None = None,
    ):
        self.failures = tuple(failures)
        self.result = result
        total = result.attempted if result is not None else len(failures)
        lines = [f"{len(self.failures)} of {total} operations failed"]
        for failure in self.failures:
            lines.append(
                f"  - {failure.operation_type.value} "
                f"{failure.document_id}: {failure.message}"
            )
        super().__init__("\n".join(lines))
