"""Domain exceptions for malcontent_action."""

from __future__ import annotations


class MalcontentActionError(Exception):
    """Base class for errors raised by the pipeline."""


class ConfigurationError(MalcontentActionError):
    """Raised when required run inputs (refs, token, repository) are missing."""


class MalformedPayload(MalcontentActionError):
    """Raised when scanner output cannot be parsed as a JSON object.

    The normalizer recovers from this locally; callers of ``normalize`` never
    see it.
    """

    def __init__(self, raw: str, reason: str) -> None:
        self.raw = raw
        self.reason = reason
        super().__init__(f"Malformed scanner payload: {reason}")


class MissingField(MalcontentActionError, KeyError):
    """Raised by strict field lookups; absorbed by the fallback cascade."""


class RenderingOverflow(MalcontentActionError):
    """Raised when a rendered body exceeds its size budget."""

    def __init__(self, size: int, budget: int) -> None:
        self.size = size
        self.budget = budget
        super().__init__(f"Rendered body is {size} characters, budget is {budget}")


class CheckoutError(MalcontentActionError):
    """Raised when a source tree cannot be extracted at a revision."""


class ScannerError(MalcontentActionError):
    """Raised when the scanner cannot be launched or produced no output."""


class CommentTransportError(MalcontentActionError):
    """Raised when listing, creating or updating a comment fails."""


class RiskIncreasedError(MalcontentActionError):
    """Raised by the failure policy once all artifacts have been written."""

    def __init__(self, total_risk_delta: int) -> None:
        self.total_risk_delta = total_risk_delta
        super().__init__(
            f"Malcontent analysis detected increased risk in this PR (risk delta: {total_risk_delta:+d})"
        )


class SeverityThresholdError(MalcontentActionError):
    """Raised when newly added behaviors reach the configured severity gate."""

    def __init__(self, level: str, threshold: str, exit_code: int = 1) -> None:
        self.level = level
        self.threshold = threshold
        self.exit_code = exit_code
        super().__init__(f"{level} finding(s) detected at or above threshold {threshold}")
