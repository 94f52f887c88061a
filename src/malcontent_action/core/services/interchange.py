"""SARIF 2.1.0 projection of a DiffResult.

Only newly introduced behaviors are reported: every behavior of an added
file and the added behaviors of modified files. Removed behaviors are
improvements and never become results.
"""

from __future__ import annotations

import re
from typing import Any, Iterator, Optional

from ..domain.models import Behavior, DiffResult
from ..domain.risk import interchange_level, interchange_severity
from .presenter import display_path


SARIF_VERSION = "2.1.0"
SCHEMA_URI = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"
TOOL_NAME = "malcontent"
TOOL_INFORMATION_URI = "https://github.com/chainguard-dev/malcontent"
BEHAVIOR_RULE_PREFIX = "malcontent/behavior/"

_WHITESPACE = re.compile(r"\s+")


def rule_id_for(behavior: Behavior) -> str:
    """Rule name when the scanner reported one, else a slug of the description."""
    if behavior.rule is not None and behavior.rule.name:
        return behavior.rule.name
    slug = _WHITESPACE.sub("-", behavior.description.strip().lower())
    return BEHAVIOR_RULE_PREFIX + (slug or "unnamed")


def result_message(behavior: Behavior) -> str:
    text = behavior.description or rule_id_for(behavior)
    if behavior.first_match is not None:
        text += f": {behavior.first_match}"
    return text


def iter_added_behaviors(diff: DiffResult) -> Iterator[tuple[str, Behavior]]:
    """Yield (path, behavior) for every newly introduced behavior, in order."""
    for entry in diff.added:
        for b in entry.behaviors:
            yield entry.path, b
    for entry in diff.modified:
        for b in entry.added_behaviors:
            yield entry.path, b


def _rule(rule_id: str, behavior: Behavior) -> dict[str, Any]:
    rule: dict[str, Any] = {
        "id": rule_id,
        "name": rule_id,
        "shortDescription": {"text": behavior.description or rule_id},
        "defaultConfiguration": {"level": interchange_level(behavior.risk_level)},
        "properties": {
            "security-severity": str(interchange_severity(behavior.risk_level)),
            "tags": ["security", f"risk:{behavior.risk_level.value.lower()}"],
        },
    }
    if behavior.rule is not None and behavior.rule.url:
        rule["helpUri"] = behavior.rule.url
    return rule


def build_interchange_report(
    diff: DiffResult,
    *,
    revision_id: Optional[str] = None,
    repository_uri: Optional[str] = None,
    tool_version: Optional[str] = None,
) -> dict[str, Any]:
    """Build a SARIF document for code-scanning dashboards.

    Args:
        diff: Canonical diff result
        revision_id: Commit the findings belong to (passed through)
        repository_uri: Repository URL (passed through)
        tool_version: Scanner version string, when known

    Returns:
        SARIF document as a JSON-ready dict
    """
    rules: dict[str, dict[str, Any]] = {}
    results: list[dict[str, Any]] = []

    for path, behavior in iter_added_behaviors(diff):
        rule_id = rule_id_for(behavior)
        if rule_id not in rules:
            # first-seen description wins for a shared rule id
            rules[rule_id] = _rule(rule_id, behavior)

        results.append(
            {
                "ruleId": rule_id,
                "ruleIndex": list(rules).index(rule_id),
                "level": interchange_level(behavior.risk_level),
                "message": {"text": result_message(behavior)},
                "locations": [
                    {
                        "physicalLocation": {
                            "artifactLocation": {"uri": display_path(path)},
                        }
                    }
                ],
                "properties": {
                    "riskLevel": behavior.risk_level.value,
                    "riskScore": behavior.risk_score,
                },
            }
        )

    driver: dict[str, Any] = {
        "name": TOOL_NAME,
        "informationUri": TOOL_INFORMATION_URI,
        "rules": list(rules.values()),
    }
    if tool_version:
        driver["version"] = tool_version

    run: dict[str, Any] = {
        "tool": {"driver": driver},
        "results": results,
    }
    if revision_id or repository_uri:
        provenance: dict[str, Any] = {}
        if repository_uri:
            provenance["repositoryUri"] = repository_uri
        if revision_id:
            provenance["revisionId"] = revision_id
        run["versionControlProvenance"] = [provenance]

    return {
        "$schema": SCHEMA_URI,
        "version": SARIF_VERSION,
        "runs": [run],
    }
