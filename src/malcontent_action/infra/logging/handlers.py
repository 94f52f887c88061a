from __future__ import annotations

import logging
import sys
from pathlib import Path
from logging import Handler

from .formatters import JSONFormatter, HumanReadableFormatter, WorkflowCommandFormatter


def build_json_file_handler(path: Path, level: int = logging.INFO) -> Handler:
    """Create a file handler with JSON formatting.

    Args:
        path: Path to log file (.jsonl)
        level: Logging level

    Returns:
        Configured FileHandler with JSON formatter
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    h = logging.FileHandler(path, encoding="utf-8", mode="a")
    h.setLevel(level)
    h.setFormatter(JSONFormatter())
    return h


def build_human_console_handler(level: int = logging.INFO, workflow_commands: bool = False) -> Handler:
    """Console handler on stderr so stdout stays clean for --json output.

    With ``workflow_commands`` warnings and errors become runner annotations.
    """
    h = logging.StreamHandler(sys.stderr)
    h.setLevel(level)
    h.setFormatter(WorkflowCommandFormatter() if workflow_commands else HumanReadableFormatter())
    return h
