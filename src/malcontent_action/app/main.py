from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .config import AppConfig
from .container import Container
from ..core.domain.models import PullRequestContext, RunOutcome
from ..core.domain.risk import parse_threshold
from ..infra.github import load_pull_request_context


def new_run_id() -> str:
    """Timestamped identifier used for the run's log file."""
    return f"{datetime.now():%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:8]}"


def with_overrides(config: AppConfig, **sections: dict[str, Any]) -> AppConfig:
    """Return a copy of ``config`` with per-section field overrides.

    ``None`` values are ignored so optional CLI flags fall back to config.

    Example:
        with_overrides(config, scanner={"mode": "binary"}, report={"comment_on_pr": False})
    """
    update: dict[str, Any] = {}
    for name, values in sections.items():
        values = {k: v for k, v in values.items() if v is not None}
        if values:
            update[name] = getattr(config, name).model_copy(update=values)
    return config.model_copy(update=update) if update else config


def create_container(config: AppConfig | None = None) -> Container:
    """Create and initialize a container.

    Args:
        config: Optional config. If None, loads from environment variables.

    Returns:
        Initialized container instance
    """
    container = Container()

    if config is None:
        config = AppConfig()

    container.config.from_pydantic(config)
    container.init_resources()

    return container


def pull_request_context(
    config: AppConfig,
    *,
    repository: Optional[str] = None,
    number: Optional[int] = None,
) -> PullRequestContext:
    """Pull-request context from the Actions event, with explicit overrides."""
    pr = load_pull_request_context(
        event_path=config.github.event_path,
        repository=repository or config.github.repository,
        server_url=config.github.server_url,
    )
    if number is not None:
        pr.number = number
    return pr


def run_diff(
    *,
    base_ref: Optional[str] = None,
    head_ref: Optional[str] = None,
    before_dir: Optional[Path] = None,
    after_dir: Optional[Path] = None,
    pr_number: Optional[int] = None,
    enforce: bool = True,
    config: AppConfig | None = None,
) -> RunOutcome:
    """Scan the difference between two revisions (or two directories).

    Refs default to the pull request's base and head commits from the
    GitHub event payload.

    Args:
        base_ref: Base revision (merge base with the default branch if omitted)
        head_ref: Head revision
        before_dir: Pre-extracted "before" tree (instead of refs)
        after_dir: Pre-extracted "after" tree (instead of refs)
        pr_number: Pull request to comment on
        enforce: Raise the configured policy failures after publishing
        config: Optional config for testing. If None, loads from env vars.

    Returns:
        RunOutcome of the run

    Raises:
        RiskIncreasedError, SeverityThresholdError: when ``enforce`` is set
            and a policy fails
    """
    config = config or AppConfig()
    if config.runtime.run_id is None:
        config = with_overrides(config, runtime={"run_id": new_run_id()})

    pr = pull_request_context(config, number=pr_number)
    container = create_container(config)
    try:
        uc = container.diff_uc()
        outcome = uc.execute(
            base_ref=base_ref or pr.base_sha,
            head_ref=head_ref or pr.head_sha or config.github.sha,
            before_dir=before_dir,
            after_dir=after_dir,
            pr=pr,
        )
        if enforce:
            uc.enforce(outcome)
        return outcome
    finally:
        container.shutdown_resources()


def render_payload(
    payload_file: Path,
    *,
    pr_number: Optional[int] = None,
    enforce: bool = False,
    config: AppConfig | None = None,
) -> RunOutcome:
    """Publish an existing scanner payload without running the scanner.

    Args:
        payload_file: malcontent ``--format=json`` diff output
        pr_number: Pull request to comment on
        enforce: Raise the configured policy failures after publishing
        config: Optional config for testing. If None, loads from env vars.
    """
    config = config or AppConfig()
    pr = pull_request_context(config, number=pr_number)
    container = create_container(config)
    try:
        uc = container.render_uc()
        outcome = uc.execute(payload_file=Path(payload_file), pr=pr)
        if enforce:
            uc.enforce(outcome)
        return outcome
    finally:
        container.shutdown_resources()


def convert_to_sarif(
    payload_file: Path,
    *,
    min_risk: Optional[str] = None,
    revision_id: Optional[str] = None,
    repository_uri: Optional[str] = None,
    config: AppConfig | None = None,
) -> dict[str, Any]:
    """Convert a scanner payload to a SARIF document."""
    config = config or AppConfig()
    container = create_container(config)
    try:
        return container.sarif_uc().execute(
            payload_file=Path(payload_file),
            min_risk=parse_threshold(min_risk),
            revision_id=revision_id,
            repository_uri=repository_uri,
        )
    finally:
        container.shutdown_resources()
