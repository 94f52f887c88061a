from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..domain.models import Behavior, DiffResult, FileEntry, RiskLevel
from ..domain.risk import level_rank
from .fields import behavior_risk_score


def sum_scores(behaviors: Iterable[Behavior]) -> int:
    return sum(b.risk_score for b in behaviors)


def net_score(behaviors: Iterable[Behavior]) -> int:
    """Added-behavior scores minus removed-behavior scores."""
    total = 0
    for b in behaviors:
        total += -b.risk_score if b.removed_in_diff else b.risk_score
    return total


class RiskAggregator:
    """Folds diff buckets into a signed total and the ``risk_increased`` flag.

    Sign convention: an added file's score is added, a removed file's score is
    subtracted, a modified file's net score is added.

    ``risk_increased`` is keyed off per-item directional deltas, not the sign
    of the total: it is true when any added file scores above zero or any
    modified file has a positive net score. Removed files never set it, so
    the flag and the total can disagree.
    """

    def aggregate(
        self,
        added: Iterable[FileEntry],
        removed: Iterable[FileEntry],
        modified: Iterable[FileEntry],
    ) -> tuple[int, bool]:
        total = 0
        increased = False

        for entry in added:
            total += entry.risk_score
            if entry.risk_score > 0:
                increased = True

        for entry in removed:
            total -= entry.risk_score

        for entry in modified:
            total += entry.risk_score
            if entry.risk_score > 0:
                increased = True

        return total, increased

    def build(
        self,
        *,
        added: Iterable[FileEntry],
        removed: Iterable[FileEntry],
        modified: Iterable[FileEntry],
        raw: str = "",
    ) -> DiffResult:
        added_t, removed_t, modified_t = tuple(added), tuple(removed), tuple(modified)
        total, increased = self.aggregate(added_t, removed_t, modified_t)
        return DiffResult(
            added=added_t,
            removed=removed_t,
            modified=modified_t,
            total_risk_delta=total,
            risk_increased=increased,
            raw=raw,
        )

    def score_findings(self, findings: Iterable[Mapping[str, Any]]) -> int:
        """Total score of a bare list of findings (``risk``/``severity`` records)."""
        return sum(behavior_risk_score(f) for f in findings if isinstance(f, Mapping))

    def apply_min_risk(self, diff: DiffResult, threshold: RiskLevel | None) -> DiffResult:
        """Return a new DiffResult without behaviors below ``threshold``.

        Behaviors with an UNKNOWN level are kept. Entries that had a behavior
        breakdown and lose all of it are dropped; entries that never had one
        are kept as they are.
        """
        if threshold is None:
            return diff
        floor = level_rank(threshold)

        def keep(b: Behavior) -> bool:
            return b.risk_level is RiskLevel.UNKNOWN or level_rank(b.risk_level) >= floor

        def refilter(entries: tuple[FileEntry, ...], *, modified: bool) -> list[FileEntry]:
            kept: list[FileEntry] = []
            for entry in entries:
                if not entry.has_breakdown:
                    kept.append(entry)
                    continue
                behaviors = tuple(b for b in entry.behaviors if keep(b))
                if not behaviors:
                    continue
                score = net_score(behaviors) if modified else sum_scores(behaviors)
                kept.append(FileEntry(path=entry.path, behaviors=behaviors, risk_score=score))
            return kept

        return self.build(
            added=refilter(diff.added, modified=False),
            removed=refilter(diff.removed, modified=False),
            modified=refilter(diff.modified, modified=True),
            raw=diff.raw,
        )

    def highest_added_level(self, diff: DiffResult) -> RiskLevel | None:
        """Highest level among newly introduced behaviors, if any has a known level."""
        best: RiskLevel | None = None
        for entry in diff.added:
            for b in entry.behaviors:
                if level_rank(b.risk_level) > level_rank(best):
                    best = b.risk_level
        for entry in diff.modified:
            for b in entry.added_behaviors:
                if level_rank(b.risk_level) > level_rank(best):
                    best = b.risk_level
        return best

    def breaches_threshold(self, diff: DiffResult, threshold: RiskLevel | None) -> bool:
        if threshold is None:
            return False
        highest = self.highest_added_level(diff)
        return highest is not None and level_rank(highest) >= level_rank(threshold)
