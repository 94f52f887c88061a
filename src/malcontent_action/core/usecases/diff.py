from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..domain.models import PullRequestContext, RunOutcome, ScannerInvocation
from ..services import DiffOrchestrator


class DiffUseCase:
    """Use case for scanning the difference between two revisions.

    Thin orchestration layer that delegates to DiffOrchestrator.
    """

    def __init__(
        self,
        *,
        orchestrator: DiffOrchestrator,
        invocation: ScannerInvocation,
    ) -> None:
        self._orchestrator = orchestrator
        self._invocation = invocation

    def execute(
        self,
        *,
        base_ref: Optional[str] = None,
        head_ref: Optional[str] = None,
        before_dir: Optional[Path] = None,
        after_dir: Optional[Path] = None,
        pr: Optional[PullRequestContext] = None,
    ) -> RunOutcome:
        """Run the scanner and publish results. Policies are not enforced here."""
        return self._orchestrator.run(
            invocation=self._invocation,
            base_ref=base_ref,
            head_ref=head_ref,
            before_dir=before_dir,
            after_dir=after_dir,
            pr=pr,
        )

    def enforce(self, outcome: RunOutcome) -> None:
        self._orchestrator.enforce_policy(outcome)
