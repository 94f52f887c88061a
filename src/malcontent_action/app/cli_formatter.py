"""CLI output formatting utilities for human-readable and JSON display."""

from __future__ import annotations

from typing import Any

from ..core.domain.models import CreateComment, RunOutcome, UpdateComment
from ..core.services.presenter import format_delta
from ..shared.to_jsonable import to_jsonable


def comment_action_name(outcome: RunOutcome) -> str:
    action = outcome.comment_action
    if isinstance(action, CreateComment):
        return "created"
    if isinstance(action, UpdateComment):
        return "updated"
    return "none"


def outcome_to_dict(outcome: RunOutcome) -> dict[str, Any]:
    """Machine-readable form of a run, printed by ``--json``."""
    diff = outcome.diff
    return {
        "total_risk_delta": diff.total_risk_delta,
        "risk_increased": diff.risk_increased,
        "threshold_breached": outcome.threshold_breached,
        "counts": {
            "added": len(diff.added),
            "removed": len(diff.removed),
            "modified": len(diff.modified),
        },
        "files": {
            "report": str(outcome.report_file) if outcome.report_file else None,
            "sarif": str(outcome.sarif_file) if outcome.sarif_file else None,
            "markdown": str(outcome.markdown_file) if outcome.markdown_file else None,
        },
        "comment": comment_action_name(outcome),
        "diff": to_jsonable(diff),
    }


def format_run_outcome(outcome: RunOutcome) -> str:
    """Format a run for the terminal.

    Args:
        outcome: Result of a diff or render run

    Returns:
        Formatted string for display
    """
    lines = [outcome.summary]

    lines.append("")
    lines.append("-" * 80)
    lines.append(
        f"Risk delta: {format_delta(outcome.total_risk_delta)} | "
        f"Risk increased: {'yes' if outcome.risk_increased else 'no'}"
    )
    if outcome.threshold_breached:
        lines.append("Severity gate: breached")
    lines.append(f"PR comment: {comment_action_name(outcome)}")

    files = [
        ("Report", outcome.report_file),
        ("SARIF", outcome.sarif_file),
        ("Markdown", outcome.markdown_file),
    ]
    for label, path in files:
        if path is not None:
            lines.append(f"{label}: {path}")
    lines.append("-" * 80)

    return "\n".join(lines)
