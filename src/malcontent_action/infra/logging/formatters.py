from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter


class JSONFormatter(JsonFormatter):
    """One JSON object per line; structured ``extra`` fields become top-level keys."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['message'] = record.getMessage()
        log_record.setdefault('timestamp', self.formatTime(record, '%Y-%m-%dT%H:%M:%S'))


class HumanReadableFormatter(logging.Formatter):
    """Console formatter: event name plus a short ``key=value`` tail."""

    _STANDARD = set(logging.LogRecord('', 0, '', 0, '', (), None).__dict__) | {'message', 'asctime'}

    def __init__(self) -> None:
        super().__init__(fmt='%(levelname)s: %(message)s')

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = [
            f"{k}={v}"
            for k, v in record.__dict__.items()
            if k not in self._STANDARD and k != 'type' and not isinstance(v, (dict, list))
        ]
        return f"{base} {' '.join(extras)}" if extras else base


def _escape_command_data(text: str) -> str:
    return text.replace('%', '%25').replace('\r', '%0D').replace('\n', '%0A')


class WorkflowCommandFormatter(HumanReadableFormatter):
    """Console formatter for GitHub Actions runners.

    Warnings and errors are written as ``::warning::`` / ``::error::``
    workflow commands so the runner shows them as annotations. Lower levels
    keep the plain human format.
    """

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if record.levelno >= logging.ERROR:
            command = 'error'
        elif record.levelno >= logging.WARNING:
            command = 'warning'
        else:
            return text
        prefix = f"{record.levelname}: "
        if text.startswith(prefix):
            text = text[len(prefix):]
        return f"::{command}::{_escape_command_data(text)}"
