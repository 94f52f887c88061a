from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Any, Optional

from ..core.domain.models import DiffResult
from ..core.ports import LoggerPort
from ..shared.to_jsonable import to_jsonable


RAW_REPORT_NAME = "malcontent-diff.json"
CANONICAL_REPORT_NAME = "malcontent-diff-report.json"
MARKDOWN_REPORT_NAME = "malcontent-diff.md"
SARIF_REPORT_NAME = "malcontent.sarif"


def format_output(name: str, value: str) -> str:
    """One GITHUB_OUTPUT entry; multi-line values use a random heredoc delimiter."""
    if "\n" not in value and "\r" not in value:
        return f"{name}={value}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def diff_report(diff: DiffResult) -> dict[str, Any]:
    """Canonical JSON form of a DiffResult (without the raw payload)."""
    return to_jsonable(diff)


class ActionOutputs:
    """Writes report files, step outputs and the job summary.

    Outside GitHub Actions (no ``GITHUB_OUTPUT`` / ``GITHUB_STEP_SUMMARY``)
    outputs are only logged.
    """

    def __init__(
        self,
        *,
        output_dir: Path,
        github_output: Optional[str] = None,
        step_summary: Optional[str] = None,
        logger: Optional[LoggerPort] = None,
    ) -> None:
        self._output_dir = Path(output_dir)
        self._github_output = Path(github_output) if github_output else None
        self._step_summary = Path(step_summary) if step_summary else None
        self._logger = logger

    def write_reports(
        self,
        *,
        raw: bytes | str,
        diff: DiffResult,
        markdown: str,
        sarif: dict[str, Any],
    ) -> dict[str, Path]:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        paths = {
            "raw": self._output_dir / RAW_REPORT_NAME,
            "report": self._output_dir / CANONICAL_REPORT_NAME,
            "markdown": self._output_dir / MARKDOWN_REPORT_NAME,
            "sarif": self._output_dir / SARIF_REPORT_NAME,
        }
        if isinstance(raw, (bytes, bytearray)):
            paths["raw"].write_bytes(raw)
        else:
            paths["raw"].write_text(raw, encoding="utf-8")
        paths["report"].write_text(
            json.dumps(diff_report(diff), ensure_ascii=False, indent=2), encoding="utf-8"
        )
        paths["markdown"].write_text(markdown, encoding="utf-8")
        paths["sarif"].write_text(json.dumps(sarif, ensure_ascii=False, indent=2), encoding="utf-8")
        return paths

    def set_outputs(self, outputs: dict[str, str]) -> None:
        if self._github_output is None:
            if self._logger is not None:
                self._logger.info("step_outputs", type="step_outputs", outputs=outputs)
            return
        with self._github_output.open("a", encoding="utf-8") as f:
            for name, value in outputs.items():
                f.write(format_output(name, value))

    def append_step_summary(self, markdown: str) -> None:
        if self._step_summary is None:
            return
        with self._step_summary.open("a", encoding="utf-8") as f:
            f.write(markdown)
            if not markdown.endswith("\n"):
                f.write("\n")
