from __future__ import annotations

import subprocess
import uuid
from pathlib import Path
from typing import Optional

from ..core.domain.exceptions import ScannerError
from ..core.domain.models import ScannerInvocation
from ..core.ports import LoggerPort


CONTAINER_HOME = "/home/nonroot"


def diff_arguments(invocation: ScannerInvocation, *, before: str, after: str, output: str) -> list[str]:
    """malcontent arguments shared by both modes."""
    return [
        f"--min-risk={invocation.min_risk}",
        "--format=json",
        f"--output={output}",
        "diff",
        before,
        after,
    ]


def docker_run_command(invocation: ScannerInvocation, *, before: Path, after: Path, name: str) -> list[str]:
    return [
        "docker",
        "run",
        "--name",
        name,
        "-v",
        f"{before}:{CONTAINER_HOME}/before:ro",
        "-v",
        f"{after}:{CONTAINER_HOME}/after:ro",
        invocation.image,
        *diff_arguments(
            invocation,
            before=f"{CONTAINER_HOME}/before",
            after=f"{CONTAINER_HOME}/after",
            output=f"{CONTAINER_HOME}/malcontent-diff.json",
        ),
    ]


def binary_run_command(invocation: ScannerInvocation, *, before: Path, after: Path, output_file: Path) -> list[str]:
    return [
        invocation.binary,
        *diff_arguments(invocation, before=str(before), after=str(after), output=str(output_file)),
    ]


class MalcontentScanner:
    """Runs ``malcontent diff`` in a container or as a local binary.

    The scanner's exit status is not trusted: it may be non-zero when risky
    behaviors are found. A run only fails when no output was written.
    """

    def __init__(self, *, logger: Optional[LoggerPort] = None) -> None:
        self._logger = logger

    def run_diff(
        self,
        *,
        invocation: ScannerInvocation,
        before: Path,
        after: Path,
        output_file: Path,
    ) -> bytes:
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        if invocation.mode == "docker":
            self._run_docker(invocation, before=Path(before).resolve(), after=Path(after).resolve(), output_file=output_file)
        elif invocation.mode == "binary":
            cmd = binary_run_command(invocation, before=Path(before), after=Path(after), output_file=output_file)
            self._execute(cmd, invocation)
        else:
            raise ScannerError(f"Unknown scanner mode: {invocation.mode!r}")

        if not output_file.exists():
            raise ScannerError(f"Scanner wrote no output to {output_file}")
        data = output_file.read_bytes()
        if not data.strip():
            raise ScannerError(f"Scanner output {output_file} is empty")
        return data

    def _run_docker(self, invocation: ScannerInvocation, *, before: Path, after: Path, output_file: Path) -> None:
        if invocation.pull:
            self._execute(["docker", "pull", invocation.image], invocation, check=True)

        name = f"malcontent-diff-{uuid.uuid4().hex[:12]}"
        try:
            self._execute(docker_run_command(invocation, before=before, after=after, name=name), invocation)
            self._execute(
                ["docker", "cp", f"{name}:{CONTAINER_HOME}/malcontent-diff.json", str(output_file)],
                invocation,
                check=True,
            )
        finally:
            # best effort: a container that never started has nothing to remove
            subprocess.run(["docker", "rm", "-f", name], capture_output=True, text=True)

    def _execute(self, cmd: list[str], invocation: ScannerInvocation, *, check: bool = False) -> subprocess.CompletedProcess:
        if self._logger is not None:
            self._logger.info("scanner_command", type="scanner_command", argv=cmd)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=invocation.timeout_seconds,
            )
        except FileNotFoundError as e:
            raise ScannerError(f"Cannot launch {cmd[0]!r}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise ScannerError(f"{cmd[0]} timed out after {invocation.timeout_seconds}s") from e

        if self._logger is not None:
            self._logger.debug(
                "scanner_command_finished",
                type="scanner_command_finished",
                returncode=result.returncode,
                stderr=(result.stderr or "")[-2000:],
            )
        if check and result.returncode != 0:
            raise ScannerError(f"{' '.join(cmd[:2])} failed with exit code {result.returncode}: {result.stderr.strip()}")
        return result
