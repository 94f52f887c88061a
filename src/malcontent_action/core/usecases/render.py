from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from ..domain.models import PullRequestContext, RiskLevel, RunOutcome
from ..services import DiffOrchestrator, ResultNormalizer, RiskAggregator
from ..services.interchange import build_interchange_report


class RenderUseCase:
    """Use case for publishing an existing scanner payload.

    Runs everything after the scanner: normalization, artifacts, comment.
    """

    def __init__(self, *, orchestrator: DiffOrchestrator) -> None:
        self._orchestrator = orchestrator

    def execute(self, *, payload_file: Path, pr: Optional[PullRequestContext] = None) -> RunOutcome:
        raw = Path(payload_file).read_bytes()
        return self._orchestrator.process(raw, pr=pr)

    def enforce(self, outcome: RunOutcome) -> None:
        self._orchestrator.enforce_policy(outcome)


class SarifUseCase:
    """Use case for converting a scanner payload to SARIF only."""

    def __init__(self, *, normalizer: ResultNormalizer, aggregator: RiskAggregator) -> None:
        self._normalizer = normalizer
        self._aggregator = aggregator

    def execute(
        self,
        *,
        payload_file: Path,
        min_risk: Optional[RiskLevel] = None,
        revision_id: Optional[str] = None,
        repository_uri: Optional[str] = None,
    ) -> dict[str, Any]:
        """Build a SARIF document from a payload file.

        Args:
            payload_file: Scanner JSON output
            min_risk: Optional level floor applied before conversion
            revision_id: Commit to record as provenance
            repository_uri: Repository to record as provenance

        Returns:
            SARIF document
        """
        diff = self._normalizer.normalize(Path(payload_file).read_bytes())
        diff = self._aggregator.apply_min_risk(diff, min_risk)
        return build_interchange_report(diff, revision_id=revision_id, repository_uri=repository_uri)
