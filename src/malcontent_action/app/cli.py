from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from .config import AppConfig
from .container import Container
from .cli_formatter import format_run_outcome, outcome_to_dict
from .main import new_run_id, pull_request_context, with_overrides
from ..core.domain.exceptions import (
    ConfigurationError,
    MalcontentActionError,
    RiskIncreasedError,
    SeverityThresholdError,
)
from ..core.domain.models import RunOutcome
from ..core.domain.risk import parse_threshold

load_dotenv()

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _exit_code_for(error: MalcontentActionError) -> int:
    if isinstance(error, ConfigurationError):
        return 2
    if isinstance(error, SeverityThresholdError):
        return error.exit_code
    return 1


def _build_container(config: AppConfig) -> Container:
    container = Container()
    container.config.from_pydantic(config)
    container.init_resources()
    return container


def _emit(outcome: RunOutcome, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps(outcome_to_dict(outcome), ensure_ascii=False, indent=2))
    else:
        typer.echo(format_run_outcome(outcome))


@app.command()
def diff(
    base_ref: Optional[str] = typer.Option(None, "--base-ref", help="Base revision (default: PR base or merge base with the default branch)"),
    head_ref: Optional[str] = typer.Option(None, "--head-ref", help="Head revision (default: PR head or GITHUB_SHA)"),
    before_dir: Optional[Path] = typer.Option(None, "--before-dir", help="Scan this directory as the 'before' tree instead of a git revision"),
    after_dir: Optional[Path] = typer.Option(None, "--after-dir", help="Scan this directory as the 'after' tree instead of a git revision"),
    repo_path: Optional[Path] = typer.Option(None, "--repo-path", help="Repository to extract revisions from (default: cwd)"),
    base_path: Optional[str] = typer.Option(None, "--base-path", help="Only analyze this subdirectory"),
    pr_number: Optional[int] = typer.Option(None, "--pr-number", help="Pull request to comment on"),
    repository: Optional[str] = typer.Option(None, "--repository", help="owner/name of the repository"),
    scanner_mode: Optional[str] = typer.Option(None, "--scanner-mode", help="docker or binary"),
    min_risk: Optional[str] = typer.Option(None, "--min-risk", help="Minimum risk level reported"),
    fail_on_severity: Optional[str] = typer.Option(None, "--fail-on-severity", help="Fail when an added behavior reaches this level"),
    fail_on_increase: Optional[bool] = typer.Option(None, "--fail-on-increase/--no-fail-on-increase", help="Fail when risk increased"),
    comment: Optional[bool] = typer.Option(None, "--comment/--no-comment", help="Create or update the PR comment"),
    keep_workdirs: bool = typer.Option(False, "--keep-workdirs", help="Keep extracted trees"),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level", case_sensitive=False),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log to stderr"),
    json_output: bool = typer.Option(False, "--json", help="Output result as JSON"),
):
    """Run malcontent on two revisions and report the risk difference."""
    config = with_overrides(
        AppConfig(),
        scanner={"mode": scanner_mode, "min_risk": min_risk},
        report={
            "fail_on_severity": fail_on_severity,
            "fail_on_increase": fail_on_increase,
            "comment_on_pr": comment,
            "keep_workdirs": keep_workdirs or None,
            "base_path": base_path,
        },
        logging={"level": log_level.upper(), "console_output": verbose or None},
        runtime={"run_id": new_run_id(), "repo_path": repo_path},
    )
    pr = pull_request_context(config, repository=repository, number=pr_number)

    container = _build_container(config)
    try:
        uc = container.diff_uc()
        outcome = uc.execute(
            base_ref=base_ref or pr.base_sha,
            head_ref=head_ref or pr.head_sha or config.github.sha,
            before_dir=before_dir,
            after_dir=after_dir,
            pr=pr,
        )
        _emit(outcome, json_output)
        uc.enforce(outcome)
    except (RiskIncreasedError, SeverityThresholdError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=_exit_code_for(e))
    except MalcontentActionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=_exit_code_for(e))
    finally:
        container.shutdown_resources()


@app.command()
def render(
    payload: Path = typer.Argument(..., exists=True, dir_okay=False, help="malcontent --format=json diff output"),
    pr_number: Optional[int] = typer.Option(None, "--pr-number", help="Pull request to comment on"),
    repository: Optional[str] = typer.Option(None, "--repository", help="owner/name of the repository"),
    min_risk: Optional[str] = typer.Option(None, "--min-risk", help="Drop behaviors below this level"),
    fail_on_severity: Optional[str] = typer.Option(None, "--fail-on-severity", help="Fail when an added behavior reaches this level"),
    fail_on_increase: Optional[bool] = typer.Option(None, "--fail-on-increase/--no-fail-on-increase", help="Fail when risk increased"),
    comment: Optional[bool] = typer.Option(None, "--comment/--no-comment", help="Create or update the PR comment"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log to stderr"),
    json_output: bool = typer.Option(False, "--json", help="Output result as JSON"),
):
    """Publish an existing malcontent diff payload (no scanner run)."""
    config = with_overrides(
        AppConfig(),
        scanner={"min_risk": min_risk},
        report={
            "fail_on_severity": fail_on_severity,
            "fail_on_increase": fail_on_increase,
            "comment_on_pr": comment,
        },
        logging={"console_output": verbose or None},
        runtime={"run_id": new_run_id()},
    )
    pr = pull_request_context(config, repository=repository, number=pr_number)

    container = _build_container(config)
    try:
        uc = container.render_uc()
        outcome = uc.execute(payload_file=payload, pr=pr)
        _emit(outcome, json_output)
        uc.enforce(outcome)
    except (RiskIncreasedError, SeverityThresholdError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=_exit_code_for(e))
    except MalcontentActionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=_exit_code_for(e))
    finally:
        container.shutdown_resources()


@app.command()
def sarif(
    payload: Path = typer.Argument(..., exists=True, dir_okay=False, help="malcontent --format=json diff output"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write SARIF here instead of stdout"),
    min_risk: Optional[str] = typer.Option(None, "--min-risk", help="Drop behaviors below this level"),
    revision: Optional[str] = typer.Option(None, "--revision", help="Commit recorded as provenance (default: GITHUB_SHA)"),
    repository_uri: Optional[str] = typer.Option(None, "--repository-uri", help="Repository URL recorded as provenance"),
):
    """Convert a malcontent diff payload to SARIF 2.1.0."""
    config = AppConfig()
    if repository_uri is None and config.github.repository:
        repository_uri = f"{config.github.server_url.rstrip('/')}/{config.github.repository}"

    container = _build_container(config)
    try:
        document = container.sarif_uc().execute(
            payload_file=payload,
            min_risk=parse_threshold(min_risk),
            revision_id=revision or config.github.sha,
            repository_uri=repository_uri,
        )
    finally:
        container.shutdown_resources()

    text = json.dumps(document, ensure_ascii=False, indent=2)
    if output is None:
        typer.echo(text)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        typer.echo(f"SARIF written to {output}")


if __name__ == "__main__":
    app()
