from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable, Optional

from ..domain.exceptions import ConfigurationError, RiskIncreasedError, SeverityThresholdError
from ..domain.models import (
    CommentAction,
    CreateComment,
    DiffResult,
    NoAction,
    PullRequestContext,
    RunOutcome,
    ScannerInvocation,
    TreePair,
    UpdateComment,
)
from ..domain.risk import parse_threshold
from ..ports import CheckoutPort, CommentTransportPort, LoggerPort, OutputsPort, ScannerPort
from .aggregator import RiskAggregator
from .comment import CommentReconciler, find_marked_comment
from .interchange import build_interchange_report
from .normalizer import ResultNormalizer
from .presenter import render_markdown_report, render_summary


class DiffOrchestrator:
    """Drives one malcontent diff run end to end.

    Steps run sequentially: extract trees, run the scanner, normalize and
    render, write artifacts, reconcile the pull-request comment. Failure
    policies are evaluated separately by ``enforce_policy`` so that every
    artifact exists before a run is failed.
    """

    def __init__(
        self,
        *,
        checkout: CheckoutPort,
        scanner: ScannerPort,
        outputs: OutputsPort,
        normalizer: ResultNormalizer,
        aggregator: RiskAggregator,
        reconciler: CommentReconciler,
        logger: LoggerPort,
        comments: Optional[CommentTransportPort] = None,
        work_dir: Path,
        min_risk: str = "low",
        comment_on_pr: bool = True,
        fail_on_increase: bool = True,
        fail_on_severity: Optional[str] = None,
        severity_exit_code: int = 1,
        keep_workdirs: bool = False,
        base_path: str = ".",
        remove_tree: Optional[Callable[[Path], None]] = None,
    ) -> None:
        self._checkout = checkout
        self._scanner = scanner
        self._outputs = outputs
        self._normalizer = normalizer
        self._aggregator = aggregator
        self._reconciler = reconciler
        self._logger = logger
        self._comments = comments
        self._work_dir = Path(work_dir)
        self._min_risk = parse_threshold(min_risk)
        self._comment_on_pr = comment_on_pr
        self._fail_on_increase = fail_on_increase
        self._severity_threshold = parse_threshold(fail_on_severity)
        self._severity_exit_code = severity_exit_code
        self._keep_workdirs = keep_workdirs
        self._base_path = base_path
        self._remove_tree = remove_tree

    def run(
        self,
        *,
        invocation: ScannerInvocation,
        base_ref: Optional[str] = None,
        head_ref: Optional[str] = None,
        before_dir: Optional[Path] = None,
        after_dir: Optional[Path] = None,
        pr: Optional[PullRequestContext] = None,
    ) -> RunOutcome:
        """Run the scanner on two trees and publish the results.

        Either both ``before_dir`` and ``after_dir`` are given, or the trees
        are extracted from git at ``base_ref`` / ``head_ref``.

        Raises:
            ConfigurationError: If neither trees nor a head revision are given
            CheckoutError: If a revision cannot be extracted
            ScannerError: If the scanner fails
            CommentTransportError: If the comment cannot be listed or written
        """
        if (before_dir is None) != (after_dir is None):
            raise ConfigurationError("--before-dir and --after-dir must be given together")
        if before_dir is None and not head_ref:
            raise ConfigurationError(
                "Unable to determine base and head refs. Run in a pull request context or pass explicit refs."
            )

        self._work_dir.mkdir(parents=True, exist_ok=True)
        run_dir = Path(tempfile.mkdtemp(prefix="run-", dir=self._work_dir))
        self._logger.info(
            "run_started",
            type="run_started",
            base_ref=base_ref,
            head_ref=head_ref,
            scanner_mode=invocation.mode,
            run_dir=str(run_dir),
        )

        try:
            if before_dir is not None and after_dir is not None:
                trees = TreePair(before=Path(before_dir), after=Path(after_dir))
            else:
                trees = self._checkout.extract(
                    base_ref=base_ref,
                    head_ref=head_ref or "HEAD",
                    dest=run_dir,
                    base_path=self._base_path,
                )
            self._logger.info(
                "trees_ready",
                type="trees_ready",
                before=str(trees.before),
                after=str(trees.after),
                base_ref=trees.base_ref,
                head_ref=trees.head_ref,
            )

            output_file = run_dir / "output" / "malcontent-diff.json"
            raw = self._scanner.run_diff(
                invocation=invocation,
                before=trees.before,
                after=trees.after,
                output_file=output_file,
            )
            self._logger.info("scanner_finished", type="scanner_finished", output_len=len(raw))

            if pr is not None and pr.head_sha is None:
                pr.head_sha = trees.head_ref
            return self.process(raw, pr=pr)
        finally:
            if not self._keep_workdirs and self._remove_tree is not None:
                self._remove_tree(run_dir)

    def process(self, raw: bytes | str, *, pr: Optional[PullRequestContext] = None) -> RunOutcome:
        """Normalize a scanner payload, write artifacts and reconcile the comment."""
        diff = self._aggregator.apply_min_risk(self._normalizer.normalize(raw), self._min_risk)

        summary = render_summary(diff)
        markdown = render_markdown_report(diff)
        sarif = build_interchange_report(
            diff,
            revision_id=pr.head_sha if pr is not None else None,
            repository_uri=pr.repository_url if pr is not None else None,
        )

        paths = self._outputs.write_reports(raw=raw, diff=diff, markdown=markdown, sarif=sarif)
        self._outputs.set_outputs(
            {
                "diff-summary": summary,
                "risk-increased": "true" if diff.risk_increased else "false",
                "risk-delta": str(diff.total_risk_delta),
                "report-file": str(paths["report"]),
                "sarif-file": str(paths["sarif"]),
                "diff-markdown": str(paths["markdown"]),
            }
        )
        self._outputs.append_step_summary(markdown)
        self._logger.info(
            "reports_written",
            type="reports_written",
            files={k: str(v) for k, v in paths.items()},
            total_risk_delta=diff.total_risk_delta,
            risk_increased=diff.risk_increased,
        )

        action = self._publish_comment(diff, pr)

        return RunOutcome(
            diff=diff,
            summary=summary,
            markdown_report=markdown,
            sarif=sarif,
            report_file=paths["report"],
            sarif_file=paths["sarif"],
            markdown_file=paths["markdown"],
            comment_action=action,
            threshold_breached=self._aggregator.breaches_threshold(diff, self._severity_threshold),
        )

    def enforce_policy(self, outcome: RunOutcome) -> None:
        """Fail the run according to the configured policies.

        Raises:
            SeverityThresholdError: If newly added behaviors reach the gate
            RiskIncreasedError: If risk increased and ``fail_on_increase`` is set
        """
        if outcome.threshold_breached and self._severity_threshold is not None:
            highest = self._aggregator.highest_added_level(outcome.diff)
            raise SeverityThresholdError(
                level=highest.value if highest is not None else "UNKNOWN",
                threshold=self._severity_threshold.value,
                exit_code=self._severity_exit_code,
            )
        if self._fail_on_increase and outcome.risk_increased:
            raise RiskIncreasedError(outcome.total_risk_delta)

    def _publish_comment(self, diff: DiffResult, pr: Optional[PullRequestContext]) -> CommentAction:
        if not self._comment_on_pr:
            return NoAction()
        if self._comments is None:
            self._logger.info("comment_skipped", type="comment_skipped", reason="no comment transport configured")
            return NoAction()
        if pr is None or not pr.repository or pr.number is None:
            self._logger.info("comment_skipped", type="comment_skipped", reason="no pull request context")
            return NoAction()

        existing = self._comments.list_comments(repository=pr.repository, number=pr.number)
        prior = find_marked_comment(existing)
        action = self._reconciler.reconcile(prior, diff)

        if isinstance(action, CreateComment):
            created = self._comments.create_comment(repository=pr.repository, number=pr.number, body=action.body)
            self._logger.info("comment_created", type="comment_created", url=created.html_url)
        elif isinstance(action, UpdateComment):
            updated = self._comments.update_comment(
                repository=pr.repository,
                comment_id=action.comment_id,
                body=action.body,
            )
            self._logger.info(
                "comment_updated",
                type="comment_updated",
                url=updated.html_url,
                resolved=not diff.has_findings,
            )
        else:
            self._logger.info("comment_unchanged", type="comment_unchanged")
        return action
