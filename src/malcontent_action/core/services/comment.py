"""Pull-request comment decision and body rendering.

A single managed comment per pull request is identified by a hidden HTML
marker on its first line. It is created when findings first appear, updated
on every later run, and rewritten to a "resolved" notice once findings go
away. It is never deleted, so its edit history keeps earlier reports.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..domain.exceptions import RenderingOverflow
from ..domain.models import (
    CommentAction,
    CreateComment,
    DiffResult,
    ExistingComment,
    MarkedComment,
    NoAction,
    UpdateComment,
)
from ..ports import LoggerPort
from .presenter import SUMMARY_TITLE, render_details, render_summary


COMMENT_MARKER = "<!-- malcontent-action-comment -->"
DEFAULT_BODY_BUDGET = 60000
TRUNCATION_NOTICE = "... (truncated)"
OMISSION_NOTICE = (
    "_Some sections were omitted to fit the comment size limit. "
    "The full report is attached to the workflow run._"
)

# Per-file behavior caps tried, in order, once the JSON appendix is gone.
_BEHAVIOR_CAPS = (5, 3, 1)
# Truncating the appendix below this is pointless; drop it instead.
_MIN_APPENDIX_CHARS = 200

RESOLVED_BODY = (
    COMMENT_MARKER
    + "\n"
    + SUMMARY_TITLE
    + "\n\n✅ Previously detected security issues have been resolved.\n\n"
    + "_Check the comment edit history for details about the previous findings._"
)


def find_marked_comment(comments: Iterable[ExistingComment]) -> Optional[MarkedComment]:
    """First comment, in listing order, whose body carries the marker."""
    for c in comments:
        if c.body and COMMENT_MARKER in c.body:
            return MarkedComment(id=c.id, body=c.body, html_url=c.html_url)
    return None


def _details_block(summary: str, content: str) -> str:
    return f"<details><summary>{summary}</summary>\n\n{content}\n</details>"


def _json_block(text: str) -> str:
    return _details_block("View detailed report", f"```json\n{text}\n```")


def _compose(summary: str, details: Optional[str], appendix: Optional[str], omitted: bool = False) -> str:
    parts = [COMMENT_MARKER, summary]
    if details:
        parts.append("")
        parts.append(_details_block("View per-file behaviors", details))
    if appendix is not None:
        parts.append("")
        parts.append(_json_block(appendix))
    if omitted:
        parts.append("")
        parts.append(OMISSION_NOTICE)
    return "\n".join(parts)


def render_comment_body(
    diff: DiffResult,
    *,
    budget: int,
    include_details: bool = True,
    behavior_limit: Optional[int] = None,
    appendix: Optional[str] = None,
    omitted: bool = False,
) -> str:
    """Render one body variant, strictly.

    ``omitted`` appends a notice telling readers that sections were left out.

    Raises:
        RenderingOverflow: if the body exceeds ``budget`` characters
    """
    summary = render_summary(diff)
    details = render_details(diff, behavior_limit=behavior_limit) if include_details else None
    body = _compose(summary, details, appendix, omitted)
    if len(body) > budget:
        raise RenderingOverflow(len(body), budget)
    return body


def build_comment_body(diff: DiffResult, budget: int = DEFAULT_BODY_BUDGET) -> str:
    """Render the findings body, degrading until it fits ``budget``.

    Order of degradation: truncate the raw JSON appendix, drop it, shrink
    per-file behavior lists, drop the per-file details. A truncated appendix
    ends with TRUNCATION_NOTICE; every variant that leaves a section out
    carries OMISSION_NOTICE. The summary itself is never cut; if even the
    bare summary is over budget it is returned anyway.
    """
    raw = diff.raw.strip()
    appendix = raw or None

    try:
        return render_comment_body(diff, budget=budget, appendix=appendix)
    except RenderingOverflow:
        pass

    if appendix is not None:
        without = _compose(render_summary(diff), render_details(diff), "")
        room = budget - len(without) - len(TRUNCATION_NOTICE) - 1
        if room >= _MIN_APPENDIX_CHARS:
            truncated = appendix[:room] + "\n" + TRUNCATION_NOTICE
            try:
                return render_comment_body(diff, budget=budget, appendix=truncated)
            except RenderingOverflow:
                pass

    try:
        return render_comment_body(diff, budget=budget, omitted=appendix is not None)
    except RenderingOverflow:
        pass

    for cap in _BEHAVIOR_CAPS:
        try:
            return render_comment_body(diff, budget=budget, behavior_limit=cap, omitted=True)
        except RenderingOverflow:
            continue

    try:
        return render_comment_body(diff, budget=budget, include_details=False, omitted=True)
    except RenderingOverflow:
        return _compose(render_summary(diff), None, None, omitted=True)


class CommentReconciler:
    """Decides what to do with the managed comment for one run."""

    def __init__(self, *, body_budget: int = DEFAULT_BODY_BUDGET, logger: Optional[LoggerPort] = None) -> None:
        self._budget = body_budget
        self._logger = logger

    @property
    def body_budget(self) -> int:
        return self._budget

    def reconcile(self, prior: Optional[MarkedComment], diff: DiffResult) -> CommentAction:
        """Decide between no-op, create and update.

        Args:
            prior: Existing managed comment, if any
            diff: Result of this run

        Returns:
            NoAction, CreateComment or UpdateComment
        """
        if not diff.has_findings:
            if prior is None:
                return NoAction()
            return UpdateComment(comment_id=prior.id, body=RESOLVED_BODY)

        body = build_comment_body(diff, self._budget)
        if self._logger is not None and len(body) > self._budget:
            self._logger.warning(
                "comment_over_budget",
                type="comment_over_budget",
                size=len(body),
                budget=self._budget,
            )

        if prior is None:
            return CreateComment(body=body)
        return UpdateComment(comment_id=prior.id, body=body)
