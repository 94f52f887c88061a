"""Field-presence cascade shared by the normalizer and the aggregator.

Scanner payloads have changed field names over time (``RiskScore`` vs
``risk_score`` vs ``riskScore``). Lookups take candidate names in priority
order, richest first, and return the first one present.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..domain.exceptions import MissingField
from ..domain.models import RiskLevel
from ..domain.risk import risk_score_for_level


SCORE_FIELDS = ("RiskScore", "risk_score", "riskScore", "score")
LEVEL_FIELDS = ("RiskLevel", "risk_level", "riskLevel", "risk", "severity", "level")


def require(record: Mapping[str, Any], *names: str) -> Any:
    """Return the first present field, or raise MissingField."""
    for name in names:
        if name in record and record[name] is not None:
            return record[name]
    raise MissingField(names[0] if names else "")


def lookup(record: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    try:
        return require(record, *names)
    except MissingField:
        return default


def explicit_score(record: Mapping[str, Any]) -> int | None:
    """Numeric score field if present and usable; bools and negatives are ignored."""
    value = lookup(record, *SCORE_FIELDS)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value < 0:
        return None
    return int(value)


def record_level(record: Mapping[str, Any]) -> RiskLevel:
    return RiskLevel.parse(lookup(record, *LEVEL_FIELDS))


def behavior_risk_score(record: Mapping[str, Any]) -> int:
    """Score a behavior or bare finding.

    Priority: explicit numeric score, then the level table, then zero.
    """
    score = explicit_score(record)
    if score is not None:
        return score
    return risk_score_for_level(record_level(record))
