from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Protocol

from .domain.models import DiffResult, ExistingComment, ScannerInvocation, TreePair


class CheckoutPort(Protocol):
    """Port for extracting source trees at two revisions."""

    def extract(
        self,
        *,
        base_ref: Optional[str],
        head_ref: str,
        dest: Path,
        base_path: str = ".",
    ) -> TreePair:
        """Extract base and head trees into ``dest/before`` and ``dest/after``.

        Args:
            base_ref: Base revision; when None the merge base with the
                default remote branch is used
            head_ref: Head revision
            dest: Work directory for this run
            base_path: Subdirectory to restrict the extraction to

        Raises:
            CheckoutError: If a revision cannot be resolved or extracted
        """
        ...


class ScannerPort(Protocol):
    """Port for running the behavioral diff scanner."""

    def run_diff(
        self,
        *,
        invocation: ScannerInvocation,
        before: Path,
        after: Path,
        output_file: Path,
    ) -> bytes:
        """Run the scanner and return its raw JSON output.

        Raises:
            ScannerError: If the scanner cannot be launched or wrote nothing
        """
        ...


class CommentTransportPort(Protocol):
    """Port for pull-request comment storage on the hosting platform."""

    def list_comments(self, *, repository: str, number: int) -> list[ExistingComment]:
        ...

    def create_comment(self, *, repository: str, number: int, body: str) -> ExistingComment:
        ...

    def update_comment(self, *, repository: str, comment_id: int, body: str) -> ExistingComment:
        ...


class OutputsPort(Protocol):
    """Port for publishing run artifacts to the CI environment."""

    def write_reports(
        self,
        *,
        raw: bytes | str,
        diff: DiffResult,
        markdown: str,
        sarif: dict[str, Any],
    ) -> dict[str, Path]:
        """Write report files and return their paths keyed by kind
        (``raw``, ``report``, ``markdown``, ``sarif``).

        ``raw`` is the scanner output exactly as received."""
        ...

    def set_outputs(self, outputs: dict[str, str]) -> None:
        ...

    def append_step_summary(self, markdown: str) -> None:
        ...


class LoggerPort(Protocol):
    """Port for structured logging.

    Extra keyword arguments become structured fields of the log record.
    """

    def debug(self, message: str, **kwargs: Any) -> None:
        ...

    def info(self, message: str, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, **kwargs: Any) -> None:
        ...

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        ...

    def exception(self, message: str, **kwargs: Any) -> None:
        ...
