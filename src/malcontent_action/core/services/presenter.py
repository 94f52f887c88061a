"""Markdown rendering of a DiffResult for CI logs, job summaries and comments."""

from __future__ import annotations

import re
from typing import Iterable

from ..domain.models import Behavior, DiffResult, FileEntry
from ..domain.risk import risk_emoji


SUMMARY_TITLE = "## Malcontent Analysis Summary"
SHORT_LIMIT = 5
EXTENDED_LIMIT = 10
MATCH_PREVIEW_CHARS = 200

_PREFIX_SEGMENT = re.compile(r"^/?[^/]+/")


def display_path(path: str) -> str:
    """Strip the leading temp-directory segment (``/anydir/``) from a scanner path."""
    return _PREFIX_SEGMENT.sub("", path, count=1)


def sort_entries(entries: Iterable[FileEntry], *, signed: bool) -> list[FileEntry]:
    """Worst offenders first; ties keep encounter order.

    Modified entries sort by signed net delta, added/removed by magnitude.
    """
    if signed:
        return sorted(entries, key=lambda e: -e.risk_score)
    return sorted(entries, key=lambda e: -abs(e.risk_score))


def sort_behaviors(behaviors: Iterable[Behavior]) -> list[Behavior]:
    return sorted(behaviors, key=lambda b: -b.risk_score)


def truncate_items(items: list, limit: int) -> tuple[list, int]:
    """Return (shown, hidden_count)."""
    return items[:limit], max(len(items) - limit, 0)


def format_delta(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def verdict_line(diff: DiffResult) -> str:
    """One-line verdict; notes new risky behaviors hidden by a non-positive total."""
    if not diff.has_findings and diff.total_risk_delta == 0:
        return "✅ No security-relevant changes detected"

    delta = diff.total_risk_delta
    if delta > 0:
        return f"⚠️ **Risk Score Increased by {delta}**"
    line = f"✅ Risk Score Decreased by {abs(delta)}" if delta < 0 else "➖ Risk Score Unchanged"
    if diff.risk_increased:
        line += " (⚠️ new risky behaviors introduced)"
    return line


def _inline_code(text: str) -> str:
    text = text.replace("`", "'").replace("\n", " ")
    if len(text) > MATCH_PREVIEW_CHARS:
        text = text[:MATCH_PREVIEW_CHARS] + "…"
    return f"`{text}`"


def _behavior_line(b: Behavior, marker: str = "") -> str:
    line = f"  - {marker}{risk_emoji(b.risk_level)} **{b.risk_level.value}** {b.description or 'unnamed behavior'}"
    if b.rule is not None:
        line += f" ([{b.rule.name}]({b.rule.url}))" if b.rule.url else f" (`{b.rule.name}`)"
    if b.first_match is not None:
        line += f": {_inline_code(b.first_match)}"
    return line


def _render_behaviors(lines: list[str], entry: FileEntry, *, modified: bool, behavior_limit: int | None) -> None:
    if modified:
        ordered = [("➕ ", b) for b in sort_behaviors(entry.added_behaviors)]
        ordered += [("➖ ", b) for b in sort_behaviors(entry.removed_behaviors)]
    else:
        ordered = [("", b) for b in sort_behaviors(entry.behaviors)]

    shown, hidden = truncate_items(ordered, behavior_limit) if behavior_limit is not None else (ordered, 0)
    for marker, b in shown:
        lines.append(_behavior_line(b, marker))
    if hidden:
        lines.append(f"  - ...and {hidden} more behaviors")


def _render_bucket(
    lines: list[str],
    title: str,
    entries: tuple[FileEntry, ...],
    *,
    modified: bool,
    limit: int,
    extended: bool,
    behavior_limit: int | None,
) -> None:
    if not entries:
        return
    lines.append("")
    lines.append(f"### {title} ({len(entries)})")

    shown, hidden = truncate_items(sort_entries(entries, signed=modified), limit)
    for entry in shown:
        if modified:
            lines.append(f"- `{display_path(entry.path)}` (risk delta: {format_delta(entry.risk_score)})")
        else:
            lines.append(f"- `{display_path(entry.path)}` (risk score: {entry.risk_score})")
        if extended:
            _render_behaviors(lines, entry, modified=modified, behavior_limit=behavior_limit)
    if hidden:
        lines.append(f"- ...and {hidden} more")


def _render_sections(
    lines: list[str],
    diff: DiffResult,
    *,
    limit: int,
    extended: bool,
    behavior_limit: int | None,
) -> None:
    _render_bucket(lines, "🆕 New Files with Findings", diff.added,
                   modified=False, limit=limit, extended=extended, behavior_limit=behavior_limit)
    _render_bucket(lines, "🔄 Files with Changed Findings", diff.modified,
                   modified=True, limit=limit, extended=extended, behavior_limit=behavior_limit)
    _render_bucket(lines, "🗑️ Removed Files with Findings", diff.removed,
                   modified=False, limit=limit, extended=extended, behavior_limit=behavior_limit)


def render_summary(diff: DiffResult, *, extended: bool = False, behavior_limit: int | None = None) -> str:
    """Render the verdict plus a ranked, truncated breakdown per bucket.

    Args:
        diff: Canonical diff result
        extended: Show up to 10 files per bucket with per-behavior detail
            instead of 5 files per bucket
        behavior_limit: Optional cap on behaviors listed per file (extended only)

    Returns:
        Markdown text
    """
    lines = [SUMMARY_TITLE]
    lines.append(verdict_line(diff))
    if diff.has_findings:
        _render_sections(
            lines,
            diff,
            limit=EXTENDED_LIMIT if extended else SHORT_LIMIT,
            extended=extended,
            behavior_limit=behavior_limit,
        )
    return "\n".join(lines)


def render_details(diff: DiffResult, *, behavior_limit: int | None = None) -> str:
    """Extended per-file sections without the title and verdict."""
    lines: list[str] = []
    _render_sections(lines, diff, limit=EXTENDED_LIMIT, extended=True, behavior_limit=behavior_limit)
    return "\n".join(lines).strip("\n")


def render_counts_table(diff: DiffResult) -> str:
    added = sum(e.risk_score for e in diff.added)
    removed = sum(e.risk_score for e in diff.removed)
    modified = sum(e.risk_score for e in diff.modified)
    lines = [
        "| Bucket | Files | Risk contribution |",
        "|--------|-------|-------------------|",
        f"| Added | {len(diff.added)} | {format_delta(added)} |",
        f"| Modified | {len(diff.modified)} | {format_delta(modified)} |",
        f"| Removed | {len(diff.removed)} | {format_delta(-removed)} |",
        f"| **Total** | **{len(diff.added) + len(diff.modified) + len(diff.removed)}** "
        f"| **{format_delta(diff.total_risk_delta)}** |",
    ]
    return "\n".join(lines)


def render_markdown_report(diff: DiffResult) -> str:
    """Full report for the job summary and the Markdown artifact."""
    lines = [SUMMARY_TITLE]
    lines.append(verdict_line(diff))
    if diff.has_findings:
        lines.append("")
        lines.append(render_counts_table(diff))
        _render_sections(lines, diff, limit=EXTENDED_LIMIT, extended=True, behavior_limit=None)
    lines.append("")
    lines.append(f"_Risk increased: {'yes' if diff.risk_increased else 'no'} | "
                 f"total risk delta: {format_delta(diff.total_risk_delta)}_")
    return "\n".join(lines)
