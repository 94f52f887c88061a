from __future__ import annotations

import logging
from pathlib import Path

from dependency_injector.resources import Resource

from .handlers import build_json_file_handler, build_human_console_handler


class RunLogger(Resource):
    """Structured logger for one diff run.

    Writes a JSONL file per run (``<run_id>.jsonl``) and optionally a
    human-readable console stream.
    """

    def init(
        self,
        *,
        run_id: str | None = None,
        logs_dir: Path,
        logger_name: str = "malcontent_action",
        console_output: bool = False,
        level: str = "INFO",
        workflow_commands: bool = False,
    ) -> "RunLogger":
        """Configure handlers.

        Args:
            run_id: Run identifier; when set, a JSONL file handler is added
            logs_dir: Directory to store log files
            logger_name: Logger name
            console_output: Whether to enable console output
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            workflow_commands: Render console warnings and errors as GitHub
                workflow commands

        Returns:
            Self for dependency_injector Resource pattern
        """
        numeric = getattr(logging, level.upper(), None)
        if not isinstance(numeric, int):
            numeric = logging.INFO
        self._logger = logging.getLogger(logger_name)
        self._logger.setLevel(numeric)
        self._logger.propagate = False

        self._logger.handlers.clear()
        self._handlers: list[logging.Handler] = []
        self.log_file: Path | None = None

        if run_id:
            self.log_file = Path(logs_dir) / f"{run_id}.jsonl"
            file_handler = build_json_file_handler(self.log_file, level=numeric)
            self._logger.addHandler(file_handler)
            self._handlers.append(file_handler)

        if console_output:
            console_handler = build_human_console_handler(level=numeric, workflow_commands=workflow_commands)
            self._logger.addHandler(console_handler)
            self._handlers.append(console_handler)

        return self

    def shutdown(self, resource: "RunLogger") -> None:
        """Flush and close handlers so log files are complete."""
        for handler in self._handlers:
            handler.flush()
            handler.close()
        self._logger.handlers.clear()

    def debug(self, message: str, **kwargs) -> None:
        self._logger.debug(message, extra=kwargs or None)

    def info(self, message: str, **kwargs) -> None:
        self._logger.info(message, extra=kwargs or None)

    def warning(self, message: str, **kwargs) -> None:
        self._logger.warning(message, extra=kwargs or None)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        self._logger.error(message, extra=kwargs or None, exc_info=exc_info)

    def exception(self, message: str, **kwargs) -> None:
        self._logger.exception(message, extra=kwargs or None)
