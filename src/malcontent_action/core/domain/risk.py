"""Fixed mappings from risk level to score, presentation and SARIF severity.

Two distinct tables live here on purpose: ``risk_score_for_level`` feeds the
arithmetic of the diff (unknown counts as 0) while ``interchange_severity``
feeds code-scanning dashboards (unknown defaults to medium).
"""

from __future__ import annotations

from .models import RiskLevel


RISK_SCORES: dict[RiskLevel, int] = {
    RiskLevel.CRITICAL: 10,
    RiskLevel.HIGH: 5,
    RiskLevel.MEDIUM: 3,
    RiskLevel.LOW: 1,
}

RISK_EMOJI: dict[RiskLevel, str] = {
    RiskLevel.CRITICAL: "🔴",
    RiskLevel.HIGH: "🟠",
    RiskLevel.MEDIUM: "🟡",
    RiskLevel.LOW: "🔵",
}

INTERCHANGE_SEVERITY: dict[RiskLevel, float] = {
    RiskLevel.CRITICAL: 9.0,
    RiskLevel.HIGH: 7.0,
    RiskLevel.MEDIUM: 5.0,
    RiskLevel.LOW: 3.0,
}

INTERCHANGE_LEVEL: dict[RiskLevel, str] = {
    RiskLevel.CRITICAL: "error",
    RiskLevel.HIGH: "error",
    RiskLevel.MEDIUM: "warning",
    RiskLevel.LOW: "note",
}

# Threshold ordering; UNKNOWN is deliberately absent (see level_rank).
_RANK: dict[RiskLevel, int] = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


def risk_score_for_level(level: RiskLevel | str | None) -> int:
    return RISK_SCORES.get(RiskLevel.parse(level), 0)


def risk_emoji(level: RiskLevel | str | None) -> str:
    return RISK_EMOJI.get(RiskLevel.parse(level), "⚪")


def interchange_severity(level: RiskLevel | str | None) -> float:
    return INTERCHANGE_SEVERITY.get(RiskLevel.parse(level), 5.0)


def interchange_level(level: RiskLevel | str | None) -> str:
    return INTERCHANGE_LEVEL.get(RiskLevel.parse(level), "note")


def level_rank(level: RiskLevel | str | None) -> int:
    """Ordering used for min-risk filters and the severity gate. UNKNOWN is 0."""
    return _RANK.get(RiskLevel.parse(level), 0)


def parse_threshold(value: str | None) -> RiskLevel | None:
    """Parse a user-supplied threshold such as ``"high"``.

    Returns None for empty values, ``"any"`` / ``"none"`` and unrecognized
    labels, meaning "no threshold".
    """
    if value is None:
        return None
    level = RiskLevel.parse(value)
    return None if level is RiskLevel.UNKNOWN else level
