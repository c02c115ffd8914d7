"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_plan_preview`` -- plan preview grouped by operation type.
- ``format_sync_report`` -- post-run summary for one target.
- ``plan_to_json`` / ``report_to_json`` -- structured dicts for ``--json``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import OperationType

if TYPE_CHECKING:
    from .models import ReconcileResult, SyncPlan

# ------------------------------------------------------------------
# Plan preview
# ------------------------------------------------------------------


def format_plan_preview(plan: SyncPlan, target_name: str = "") -> str:
    """Format a plan grouped by operation type.

    Each proposed operation is shown as ``  <document id>  <title>``.
    Skipped documents are summarised by count only.

    Args:
        plan: The plan to preview.
        target_name: Optional target label for the header.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    header = "Sync plan"
    if target_name:
        header += f" for '{target_name}'"
    lines.append(header)
    lines.append("")

    for op_type in (
        OperationType.CREATE,
        OperationType.UPDATE,
        OperationType.DELETE,
    ):
        operations = plan.by_type(op_type)
        if not operations:
            continue
        lines.append(f"[{op_type.value.upper()}]")
        for op in operations:
            lines.append(
                f"  {op.document_id}  {op.document_metadata.title}"
            )
        lines.append("")

    if plan.summary.skip > 0:
        lines.append(f"Skipped: {plan.summary.skip} documents (up to date)")
        lines.append("")

    if not plan.has_changes:
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(result: ReconcileResult) -> str:
    """Format the result of one reconciliation run as text.

    Args:
        result: The completed (or failed) run result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report for '{result.target_name}'"
    if result.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {result.started_at}")
    if result.completed_at:
        lines.append(f"Completed: {result.completed_at}")
    lines.append("")

    s = result.summary
    lines.append(
        f"Planned {s.total} documents: "
        f"{s.create} create, {s.update} update, "
        f"{s.delete} delete, {s.skip} skip"
    )
    lines.append(
        f"Attempted {result.attempted}, succeeded {result.succeeded}, "
        f"failed {len(result.failures)}"
    )
    lines.append("")

    if result.failures:
        lines.append("Errors:")
        for f in result.failures:
            lines.append(
                f"  [{f.operation_type.value}] {f.document_id}: {f.message}"
            )
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def plan_to_json(plan: SyncPlan) -> dict:
    """Convert a plan to a JSON-serialisable dict."""
    return {
        "summary": plan.summary.model_dump(),
        "operations": [
            {
                "type": op.type.value,
                "document_id": op.document_id,
                "title": op.document_metadata.title,
                "last_modified": op.document_metadata.last_modified.isoformat(),
                "reason": op.reason,
            }
            for op in plan.operations
        ],
    }


def report_to_json(result: ReconcileResult) -> dict:
    """Convert a run result to a structured dict for JSON serialisation.

    Args:
        result: The run result.

    Returns:
        Dict with target info, counts, and per-failure details.
    """
    return {
        "target": result.target_name,
        "dry_run": result.dry_run,
        "success": result.success,
        "started_at": result.started_at,
        "completed_at": result.completed_at,
        "summary": result.summary.model_dump(),
        "counts": {
            "attempted": result.attempted,
            "succeeded": result.succeeded,
            "failed": len(result.failures),
        },
        "failures": [
            {
                "type": f.operation_type.value,
                "document_id": f.document_id,
                "title": f.title,
                "message": f.message,
            }
            for f in result.failures
        ],
    }
