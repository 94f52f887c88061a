from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from platformdirs import PlatformDirs
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_NAME = "malcontent_action"


def _default_home() -> Path:
    """Get default home directory using platformdirs."""
    return Path(PlatformDirs(appname=APP_NAME, appauthor=False).user_cache_dir)


class DirectoryConfig(BaseSettings):
    """Directory configuration with computed paths."""

    model_config = SettingsConfigDict(env_prefix="MALCONTENT_ACTION_DIRECTORIES__")

    home: Path = Field(
        default_factory=_default_home,
        description="Base directory for work trees, reports and logs",
    )

    @computed_field
    @property
    def work_dir(self) -> Path:
        """Scratch space for extracted before/after trees."""
        path = self.home / "work"
        path.mkdir(parents=True, exist_ok=True)
        return path

    @computed_field
    @property
    def output_dir(self) -> Path:
        """Report files written for each run."""
        path = self.home / "reports"
        path.mkdir(parents=True, exist_ok=True)
        return path

    @computed_field
    @property
    def logs_dir(self) -> Path:
        """JSONL run logs."""
        path = self.home / "logs"
        path.mkdir(parents=True, exist_ok=True)
        return path


class ScannerConfig(BaseSettings):
    """How malcontent is launched."""

    model_config = SettingsConfigDict(env_prefix="MALCONTENT_ACTION_SCANNER__")

    mode: Literal["docker", "binary"] = Field(
        default="docker",
        description="Run malcontent as a container image (docker) or a local binary",
    )

    image: str = Field(
        default="cgr.dev/chainguard/malcontent:latest",
        description="Container image for docker mode",
    )

    binary: str = Field(
        default="malcontent",
        description="Binary name or path for binary mode",
    )

    min_risk: str = Field(
        default="low",
        description="Minimum risk level reported (low, medium, high, critical)",
    )

    pull: bool = Field(
        default=True,
        description="Pull the image before running in docker mode",
    )

    timeout_seconds: int | None = Field(
        default=None,
        description="Kill the scanner after this many seconds",
    )


class GitHubConfig(BaseSettings):
    """GitHub Actions environment.

    Reads the standard ``GITHUB_*`` variables set by the runner.
    """

    model_config = SettingsConfigDict(env_prefix="GITHUB_")

    token: str | None = Field(default=None, description="Token used for PR comments")
    repository: str | None = Field(default=None, description="owner/name")
    event_path: str | None = Field(default=None, description="Path to the webhook event payload")
    api_url: str = Field(default="https://api.github.com", description="REST API base URL")
    server_url: str = Field(default="https://github.com", description="Web base URL")
    sha: str | None = Field(default=None, description="Commit that triggered the workflow")
    output: str | None = Field(default=None, description="Step output file")
    step_summary: str | None = Field(default=None, description="Job summary file")


class ReportConfig(BaseSettings):
    """Reporting and failure policy."""

    model_config = SettingsConfigDict(env_prefix="MALCONTENT_ACTION_REPORT__")

    comment_body_budget: int = Field(
        default=60_000,
        description="Maximum characters in the pull-request comment body",
    )

    fail_on_increase: bool = Field(
        default=True,
        description="Fail the run when new risky behaviors are introduced",
    )

    comment_on_pr: bool = Field(
        default=True,
        description="Create or update the analysis comment on the pull request",
    )

    fail_on_severity: str | None = Field(
        default=None,
        description="Fail when an added behavior is at or above this level",
    )

    severity_exit_code: int = Field(
        default=1,
        description="Exit code used when the severity gate fails",
    )

    keep_workdirs: bool = Field(
        default=False,
        description="Keep extracted trees after the run",
    )

    base_path: str = Field(
        default=".",
        description="Subdirectory of the repository to analyze",
    )

    default_branch: str = Field(
        default="origin/main",
        description="Branch used to compute the merge base when no base ref is given",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="MALCONTENT_ACTION_LOGGING__")

    level: str = Field(default="INFO", description="Logging level")
    console_output: bool = Field(default=False, description="Also log to stderr")
    logger_name: str = Field(default="malcontent_action", description="Logger name")
    workflow_commands: bool = Field(
        default_factory=lambda: os.environ.get("GITHUB_ACTIONS") == "true",
        description="Write console warnings and errors as ::warning::/::error:: workflow commands",
    )


class RuntimeConfig(BaseSettings):
    """Per-run values set by the CLI, not read from the environment."""

    model_config = SettingsConfigDict(env_prefix="MALCONTENT_ACTION_RUNTIME__")

    run_id: str | None = Field(default=None, description="Run identifier used for the log file name")
    repo_path: Path = Field(default_factory=Path.cwd, description="Repository to extract trees from")


class AppConfig(BaseSettings):
    """Root application configuration.

    All configuration is loaded from environment variables with the
    MALCONTENT_ACTION_ prefix. Use double underscore for nested config:
    MALCONTENT_ACTION_SCANNER__MODE. GitHub settings come from the standard
    GITHUB_* runner variables.

    Example env vars:
        export MALCONTENT_ACTION_SCANNER__MODE=binary
        export MALCONTENT_ACTION_SCANNER__MIN_RISK=medium
        export MALCONTENT_ACTION_REPORT__FAIL_ON_SEVERITY=high
        export MALCONTENT_ACTION_REPORT__COMMENT_BODY_BUDGET=60000
        export MALCONTENT_ACTION_DIRECTORIES__HOME=/custom/path
        export GITHUB_TOKEN=ghp_xxxxxxxxxxxxx
    """

    model_config = SettingsConfigDict(
        env_prefix="MALCONTENT_ACTION_",
        env_nested_delimiter="__",
        frozen=True,
        extra="forbid",
    )

    directories: DirectoryConfig = Field(default_factory=DirectoryConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
