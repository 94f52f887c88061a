from __future__ import annotations

from dependency_injector import containers, providers

from ..core.domain.models import ScannerInvocation
from ..core.services import CommentReconciler, DiffOrchestrator, ResultNormalizer, RiskAggregator
from ..core.usecases.diff import DiffUseCase
from ..core.usecases.render import RenderUseCase, SarifUseCase
from ..infra.action_outputs import ActionOutputs
from ..infra.checkout import GitCheckout
from ..infra.github import build_comment_transport
from ..infra.logging import RunLogger
from ..infra.scanner import MalcontentScanner
from ..shared.rmtree_force import rmtree_force


class Container(containers.DeclarativeContainer):
    """DI container fed from AppConfig via ``config.from_pydantic``."""

    config = providers.Configuration()

    # Logger (Resource: manages lifecycle with init/shutdown)
    logger = providers.Resource(
        RunLogger,
        run_id=config.runtime.run_id,
        logs_dir=config.directories.logs_dir,
        logger_name=config.logging.logger_name,
        console_output=config.logging.console_output,
        level=config.logging.level,
        workflow_commands=config.logging.workflow_commands,
    )

    # Adapters
    checkout = providers.Singleton(
        GitCheckout,
        repo_path=config.runtime.repo_path,
        default_branch=config.report.default_branch,
        logger=logger,
    )

    scanner = providers.Singleton(
        MalcontentScanner,
        logger=logger,
    )

    comments = providers.Singleton(
        build_comment_transport,
        token=config.github.token,
        api_url=config.github.api_url,
        logger=logger,
    )

    outputs = providers.Singleton(
        ActionOutputs,
        output_dir=config.directories.output_dir,
        github_output=config.github.output,
        step_summary=config.github.step_summary,
        logger=logger,
    )

    invocation = providers.Factory(
        ScannerInvocation,
        mode=config.scanner.mode,
        image=config.scanner.image,
        binary=config.scanner.binary,
        min_risk=config.scanner.min_risk,
        pull=config.scanner.pull,
        timeout_seconds=config.scanner.timeout_seconds,
    )

    # Domain services
    aggregator = providers.Singleton(RiskAggregator)

    normalizer = providers.Factory(
        ResultNormalizer,
        aggregator=aggregator,
        logger=logger,
    )

    reconciler = providers.Factory(
        CommentReconciler,
        body_budget=config.report.comment_body_budget,
        logger=logger,
    )

    diff_orchestrator = providers.Factory(
        DiffOrchestrator,
        checkout=checkout,
        scanner=scanner,
        outputs=outputs,
        normalizer=normalizer,
        aggregator=aggregator,
        reconciler=reconciler,
        logger=logger,
        comments=comments,
        work_dir=config.directories.work_dir,
        min_risk=config.scanner.min_risk,
        comment_on_pr=config.report.comment_on_pr,
        fail_on_increase=config.report.fail_on_increase,
        fail_on_severity=config.report.fail_on_severity,
        severity_exit_code=config.report.severity_exit_code,
        keep_workdirs=config.report.keep_workdirs,
        base_path=config.report.base_path,
        remove_tree=providers.Object(rmtree_force),
    )

    # Use cases
    diff_uc = providers.Factory(
        DiffUseCase,
        orchestrator=diff_orchestrator,
        invocation=invocation,
    )

    render_uc = providers.Factory(
        RenderUseCase,
        orchestrator=diff_orchestrator,
    )

    sarif_uc = providers.Factory(
        SarifUseCase,
        normalizer=normalizer,
        aggregator=aggregator,
    )
