from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class RiskLevel(str, Enum):
    """Qualitative severity label reported by the scanner."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: object) -> "RiskLevel":
        """Case-insensitive lookup; anything unrecognized is UNKNOWN."""
        if isinstance(value, RiskLevel):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class RuleReference:
    name: str
    url: str | None = None


@dataclass(frozen=True)
class Behavior:
    """One detected finding attached to a file."""
    description: str
    risk_level: RiskLevel
    risk_score: int
    match_strings: tuple[str, ...] = ()
    rule: RuleReference | None = None
    removed_in_diff: bool = False

    @property
    def first_match(self) -> str | None:
        return self.match_strings[0] if self.match_strings else None


@dataclass(frozen=True)
class FileEntry:
    """A file in one of the three diff buckets.

    For modified entries, ``behaviors`` holds both halves and ``risk_score``
    is already the net of added minus removed behavior scores.
    """
    path: str
    behaviors: tuple[Behavior, ...]
    risk_score: int
    has_breakdown: bool = True

    @property
    def added_behaviors(self) -> tuple[Behavior, ...]:
        return tuple(b for b in self.behaviors if not b.removed_in_diff)

    @property
    def removed_behaviors(self) -> tuple[Behavior, ...]:
        return tuple(b for b in self.behaviors if b.removed_in_diff)


@dataclass(frozen=True)
class DiffResult:
    """Canonical aggregate threaded through the pipeline.

    Built once per run by the normalizer and never mutated afterwards.
    ``raw`` is the original payload text, kept only for passthrough rendering.
    """
    added: tuple[FileEntry, ...]
    removed: tuple[FileEntry, ...]
    modified: tuple[FileEntry, ...]
    total_risk_delta: int
    risk_increased: bool
    raw: str = field(default="", repr=False)

    @property
    def has_findings(self) -> bool:
        return bool(self.added or self.removed or self.modified)

    @classmethod
    def empty(cls, raw: str = "") -> "DiffResult":
        return cls(
            added=(),
            removed=(),
            modified=(),
            total_risk_delta=0,
            risk_increased=False,
            raw=raw,
        )


@dataclass(frozen=True)
class ExistingComment:
    """A comment as listed by the hosting platform."""
    id: int
    body: str
    html_url: str | None = None


@dataclass(frozen=True)
class MarkedComment:
    """The managed comment: first listed comment carrying the marker."""
    id: int
    body: str
    html_url: str | None = None


@dataclass(frozen=True)
class NoAction:
    pass


@dataclass(frozen=True)
class CreateComment:
    body: str


@dataclass(frozen=True)
class UpdateComment:
    comment_id: int
    body: str


CommentAction = NoAction | CreateComment | UpdateComment


@dataclass(frozen=True)
class ScannerInvocation:
    """How to run the scanner for one pipeline run.

    Passed explicitly to the scanner runner instead of being remembered in
    module state between steps.
    """
    mode: str = "docker"  # "docker" or "binary"
    image: str = "cgr.dev/chainguard/malcontent:latest"
    binary: str = "malcontent"
    min_risk: str = "low"
    pull: bool = True
    timeout_seconds: int | None = None


@dataclass
class TreePair:
    """Extracted before/after trees for one run."""
    before: Path
    after: Path
    base_ref: str | None = None
    head_ref: str | None = None


@dataclass
class PullRequestContext:
    repository: str | None
    number: int | None
    base_sha: str | None
    head_sha: str | None
    repository_url: str | None = None


@dataclass
class RunOutcome:
    """Everything a pipeline run produced."""
    diff: DiffResult
    summary: str
    markdown_report: str
    sarif: dict[str, Any]
    report_file: Path | None = None
    sarif_file: Path | None = None
    markdown_file: Path | None = None
    comment_action: CommentAction = field(default_factory=NoAction)
    threshold_breached: bool = False

    @property
    def total_risk_delta(self) -> int:
        return self.diff.total_risk_delta

    @property
    def risk_increased(self) -> bool:
        return self.diff.risk_increased
