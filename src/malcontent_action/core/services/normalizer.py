from __future__ import annotations

import json
from typing import Any, Iterator, Mapping, Optional

from ..domain.exceptions import MalformedPayload
from ..domain.models import Behavior, DiffResult, FileEntry, RuleReference
from ..ports import LoggerPort
from .aggregator import RiskAggregator, net_score, sum_scores
from .fields import SCORE_FIELDS, behavior_risk_score, lookup, record_level


_CONTAINER_KEYS = ("Diff", "diff")
_ADDED_KEYS = ("Added", "added")
_REMOVED_KEYS = ("Removed", "removed")
_MODIFIED_KEYS = ("Modified", "modified", "changed")

_BEHAVIOR_LIST_KEYS = ("Behaviors", "behaviors")
_PATH_KEYS = ("Path", "path", "file", "filename")
_DESCRIPTION_KEYS = ("Description", "description", "message", "name", "ID", "id")
_MATCH_KEYS = ("MatchStrings", "match_strings", "matchStrings", "matches")
_RULE_NAME_KEYS = ("RuleName", "rule_name", "ruleName")
_RULE_URL_KEYS = ("RuleURL", "RuleUrl", "rule_url", "ruleUrl", "ReferenceURL")
_REMOVED_MARKER_KEYS = ("DiffRemoved", "RemovedInDiff", "removedInDiff", "removed_in_diff", "removed")
_DELTA_KEYS = ("RiskDelta", "riskDelta", "risk_delta")
_PREVIOUS_SCORE_KEYS = ("PreviousRiskScore", "previousRiskScore", "previous_risk_score")


def parse_payload(raw: bytes | str) -> tuple[str, dict[str, Any]]:
    """Strictly parse scanner output into (text, object).

    Bytes are decoded as UTF-8 with invalid sequences replaced, so ``text``
    can differ from undecodable input; callers that must keep the payload
    verbatim hold on to the original bytes.

    Raises:
        MalformedPayload: if the text is not JSON or not a JSON object
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else raw
    if not text.strip():
        raise MalformedPayload(text, "empty payload")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedPayload(text, str(e)) from e
    if not isinstance(parsed, dict):
        raise MalformedPayload(text, f"expected a JSON object, got {type(parsed).__name__}")
    return text, parsed


class ResultNormalizer:
    """Converts scanner diff payloads into a canonical DiffResult.

    Two payload generations are understood:

    - current: ``{"Diff": {"Added": ..., "Removed": ..., "Modified": ...}}``
      where buckets are objects keyed by path (or arrays) of reports with
      ``Behaviors``, ``RiskScore``, ``RiskLevel``, ``MatchStrings``,
      ``RuleName`` and ``RuleURL``;
    - legacy: top-level ``added`` / ``removed`` / ``modified`` (or
      ``changed``) arrays with ``behaviors`` or ``findings`` lists.

    The generation is chosen by probing for the ``Diff`` container. Inside
    either, every field goes through the same name cascade, so a field renamed
    upstream degrades to a default instead of failing.
    """

    def __init__(self, *, aggregator: RiskAggregator, logger: Optional[LoggerPort] = None) -> None:
        self._aggregator = aggregator
        self._logger = logger

    def normalize(self, raw: bytes | str) -> DiffResult:
        """Normalize a payload; unparseable input yields an empty DiffResult.

        Args:
            raw: Scanner output as bytes or text

        Returns:
            DiffResult with ``raw`` set to the payload text
        """
        try:
            text, payload = parse_payload(raw)
        except MalformedPayload as e:
            if self._logger is not None:
                self._logger.warning(
                    "payload_malformed",
                    type="payload_malformed",
                    reason=e.reason,
                    raw_len=len(e.raw),
                )
            return DiffResult.empty(raw=e.raw)

        container = lookup(payload, *_CONTAINER_KEYS)
        source = container if isinstance(container, Mapping) else payload
        shape = "current" if isinstance(container, Mapping) else "legacy"

        added = [self._decode_entry(p, r, modified=False, shape=shape) for p, r in _iter_bucket(lookup(source, *_ADDED_KEYS))]
        removed = [self._decode_entry(p, r, modified=False, shape=shape) for p, r in _iter_bucket(lookup(source, *_REMOVED_KEYS))]
        modified = [self._decode_entry(p, r, modified=True, shape=shape) for p, r in _iter_bucket(lookup(source, *_MODIFIED_KEYS))]

        diff = self._aggregator.build(added=added, removed=removed, modified=modified, raw=text)

        if self._logger is not None:
            self._logger.info(
                "payload_normalized",
                type="payload_normalized",
                shape=shape,
                added=len(diff.added),
                removed=len(diff.removed),
                modified=len(diff.modified),
                total_risk_delta=diff.total_risk_delta,
                risk_increased=diff.risk_increased,
            )
        return diff

    def _decode_entry(
        self,
        path_hint: str | None,
        record: Mapping[str, Any],
        *,
        modified: bool,
        shape: str,
    ) -> FileEntry:
        path = str(lookup(record, *_PATH_KEYS, default=path_hint or ""))
        behaviors = list(self._decode_behaviors(record, modified=modified))

        if behaviors:
            score = net_score(behaviors) if modified else sum_scores(behaviors)
            return FileEntry(path=path, behaviors=tuple(behaviors), risk_score=score)

        # No per-behavior breakdown: fall back to entry-level numbers.
        if modified:
            delta = _modified_delta(record, shape)
            if delta is not None:
                return FileEntry(path=path, behaviors=(), risk_score=delta, has_breakdown=False)
        return FileEntry(path=path, behaviors=(), risk_score=behavior_risk_score(record), has_breakdown=False)

    def _decode_behaviors(self, record: Mapping[str, Any], *, modified: bool) -> Iterator[Behavior]:
        items = lookup(record, *_BEHAVIOR_LIST_KEYS)
        if isinstance(items, list):
            for item in items:
                if isinstance(item, Mapping):
                    yield _decode_behavior(item, modified=modified)
            return

        findings = _findings_of(lookup(record, "findings"))
        if findings:
            for item in findings:
                yield _decode_behavior(item, modified=False)
            return

        # Oldest per-file comparison shape: whole base/head finding sets.
        if modified:
            for item in _findings_of(lookup(record, "headFindings", "head_findings")):
                yield _decode_behavior(item, modified=False)
            for item in _findings_of(lookup(record, "baseFindings", "base_findings")):
                yield _decode_behavior(item, modified=False, removed=True)


def _iter_bucket(bucket: Any) -> Iterator[tuple[str | None, Mapping[str, Any]]]:
    if isinstance(bucket, Mapping):
        for path, record in bucket.items():
            if isinstance(record, Mapping):
                yield str(path), record
    elif isinstance(bucket, list):
        for record in bucket:
            if isinstance(record, Mapping):
                yield None, record


def _signed_number(record: Mapping[str, Any], *names: str) -> int | None:
    value = lookup(record, *names)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _modified_delta(record: Mapping[str, Any], shape: str) -> int | None:
    """Signed change of a modified file that carries no behavior list.

    An explicit delta always wins. In the current shape ``RiskScore`` is the
    file's absolute score, so it only counts against ``PreviousRiskScore``;
    a modified report with neither (empty ``Behaviors`` omitted) is unchanged.
    Legacy reports carry the delta itself under the score name.
    """
    delta = _signed_number(record, *_DELTA_KEYS)
    if delta is not None:
        return delta
    if shape == "current":
        score = _signed_number(record, *SCORE_FIELDS)
        previous = _signed_number(record, *_PREVIOUS_SCORE_KEYS)
        if score is None or previous is None:
            return 0
        return score - previous
    return _signed_number(record, *SCORE_FIELDS)


def _findings_of(value: Any) -> list[Mapping[str, Any]]:
    # findings may be a list, or a whole scan report wrapping a list
    if isinstance(value, Mapping):
        value = lookup(value, "findings", "Findings", *_BEHAVIOR_LIST_KEYS)
    if isinstance(value, list):
        return [v for v in value if isinstance(v, Mapping)]
    return []


def _decode_behavior(record: Mapping[str, Any], *, modified: bool, removed: bool | None = None) -> Behavior:
    matches = lookup(record, *_MATCH_KEYS, default=())
    if isinstance(matches, str):
        matches = (matches,)
    match_strings = tuple(str(m) for m in matches if m is not None) if isinstance(matches, (list, tuple)) else ()

    if removed is None:
        removed = bool(lookup(record, *_REMOVED_MARKER_KEYS, default=False)) if modified else False

    return Behavior(
        description=str(lookup(record, *_DESCRIPTION_KEYS, default="")),
        risk_level=record_level(record),
        risk_score=behavior_risk_score(record),
        match_strings=match_strings,
        rule=_decode_rule(record),
        removed_in_diff=removed,
    )


def _decode_rule(record: Mapping[str, Any]) -> RuleReference | None:
    rule = lookup(record, "rule")
    if isinstance(rule, Mapping):
        name = lookup(rule, "name", "Name")
        url = lookup(rule, "url", "URL")
    else:
        name = lookup(record, *_RULE_NAME_KEYS, default=rule if isinstance(rule, str) else None)
        url = lookup(record, *_RULE_URL_KEYS)
    if not name:
        return None
    return RuleReference(name=str(name), url=str(url) if url else None)
