from pathlib import Path

import pytest

from malcontent_action.core.domain.exceptions import (
    CommentTransportError,
    ConfigurationError,
    RiskIncreasedError,
    SeverityThresholdError,
)
from malcontent_action.core.domain.models import (
    CreateComment,
    ExistingComment,
    NoAction,
    PullRequestContext,
    ScannerInvocation,
    UpdateComment,
)
from malcontent_action.core.services import CommentReconciler, DiffOrchestrator, ResultNormalizer, RiskAggregator
from malcontent_action.core.services.comment import COMMENT_MARKER, RESOLVED_BODY

from fakes import FakeCheckout, FakeComments, FakeLogger, FakeOutputs, FakeScanner
from payloads import behavior, current_payload, report


INCREASE = current_payload(
    added=[report("/tmp/after/evil.sh", behavior("downloads and runs", "CRITICAL", 10))],
    removed=[report("/tmp/before/old.sh", behavior("reads env", "LOW", 1))],
)
DECREASE = current_payload(removed=[report("/tmp/before/old.sh", behavior("reads env", "HIGH", 5))])
EMPTY = '{"Diff": {"Added": {}, "Removed": {}, "Modified": {}}}'


def _pr(**overrides):
    values = dict(repository="acme/widgets", number=12, base_sha="b" * 40, head_sha="h" * 40,
                  repository_url="https://github.com/acme/widgets")
    values.update(overrides)
    return PullRequestContext(**values)


@pytest.fixture
def logger():
    return FakeLogger()


@pytest.fixture
def make_orchestrator(tmp_path, logger):
    removed_trees = []

    def factory(*, payload=INCREASE, comments=None, **options):
        aggregator = RiskAggregator()
        orch = DiffOrchestrator(
            checkout=options.pop("checkout", FakeCheckout()),
            scanner=options.pop("scanner", FakeScanner(payload)),
            outputs=options.pop("outputs", FakeOutputs()),
            normalizer=ResultNormalizer(aggregator=aggregator, logger=logger),
            aggregator=aggregator,
            reconciler=CommentReconciler(logger=logger),
            logger=logger,
            comments=comments,
            work_dir=tmp_path / "work",
            remove_tree=removed_trees.append,
            **options,
        )
        orch.removed_trees = removed_trees
        return orch

    return factory


class TestRun:
    def test_extracts_scans_and_cleans_up(self, make_orchestrator, tmp_path):
        checkout, scanner = FakeCheckout(), FakeScanner(INCREASE)
        orch = make_orchestrator(checkout=checkout, scanner=scanner, base_path="pkg")

        outcome = orch.run(invocation=ScannerInvocation(), base_ref="base1", head_ref="head1")

        assert checkout.calls[0]["base_ref"] == "base1"
        assert checkout.calls[0]["head_ref"] == "head1"
        assert checkout.calls[0]["base_path"] == "pkg"
        run_dir = checkout.calls[0]["dest"]
        assert run_dir.parent == tmp_path / "work"
        assert scanner.calls[0]["before"] == run_dir / "before"
        assert scanner.calls[0]["output_file"] == run_dir / "output" / "malcontent-diff.json"
        assert orch.removed_trees == [run_dir]
        assert outcome.total_risk_delta == 9
        assert outcome.risk_increased is True

    def test_explicit_directories_skip_checkout(self, make_orchestrator, tmp_path):
        checkout, scanner = FakeCheckout(), FakeScanner(EMPTY)
        orch = make_orchestrator(checkout=checkout, scanner=scanner)

        orch.run(invocation=ScannerInvocation(), before_dir=tmp_path / "b", after_dir=tmp_path / "a")

        assert checkout.calls == []
        assert scanner.calls[0]["before"] == tmp_path / "b"
        assert scanner.calls[0]["after"] == tmp_path / "a"

    def test_keep_workdirs(self, make_orchestrator):
        orch = make_orchestrator(keep_workdirs=True)

        orch.run(invocation=ScannerInvocation(), head_ref="HEAD")

        assert orch.removed_trees == []

    def test_cleans_up_when_scanner_fails(self, make_orchestrator):
        class Boom(FakeScanner):
            def run_diff(self, **kwargs):
                raise RuntimeError("scanner crashed")

        orch = make_orchestrator(scanner=Boom())

        with pytest.raises(RuntimeError):
            orch.run(invocation=ScannerInvocation(), head_ref="HEAD")
        assert len(orch.removed_trees) == 1

    def test_requires_refs_or_directories(self, make_orchestrator, tmp_path):
        orch = make_orchestrator()

        with pytest.raises(ConfigurationError):
            orch.run(invocation=ScannerInvocation())
        with pytest.raises(ConfigurationError):
            orch.run(invocation=ScannerInvocation(), before_dir=tmp_path)

    def test_fills_head_sha_from_checkout(self, make_orchestrator):
        pr = _pr(head_sha=None)
        orch = make_orchestrator(checkout=FakeCheckout(head_sha="c0ffee"))

        outcome = orch.run(invocation=ScannerInvocation(), head_ref="HEAD", pr=pr)

        assert pr.head_sha == "c0ffee"
        assert outcome.sarif["runs"][0]["versionControlProvenance"][0]["revisionId"] == "c0ffee"


class TestProcess:
    def test_outputs_and_artifacts(self, make_orchestrator, logger):
        outputs = FakeOutputs(root=Path("/r"))
        orch = make_orchestrator(outputs=outputs)

        outcome = orch.process(INCREASE, pr=_pr())

        assert outputs.outputs["risk-increased"] == "true"
        assert outputs.outputs["risk-delta"] == "9"
        assert outputs.outputs["report-file"] == str(Path("/r/malcontent-diff-report.json"))
        assert outputs.outputs["sarif-file"] == str(Path("/r/malcontent.sarif"))
        assert outputs.outputs["diff-markdown"] == str(Path("/r/malcontent-diff.md"))
        assert outputs.outputs["diff-summary"] == outcome.summary
        assert outputs.summaries == [outcome.markdown_report]
        assert outputs.reports["raw"] == INCREASE
        assert outcome.sarif["runs"][0]["versionControlProvenance"] == [
            {"repositoryUri": "https://github.com/acme/widgets", "revisionId": "h" * 40}
        ]
        assert "reports_written" in logger.messages("info")

    def test_min_risk_filters_before_rendering(self, make_orchestrator):
        orch = make_orchestrator(min_risk="medium")

        outcome = orch.process(INCREASE)

        assert outcome.diff.removed == ()
        assert outcome.total_risk_delta == 10
        assert "old.sh" not in outcome.summary

    def test_malformed_payload_still_writes_reports(self, make_orchestrator):
        outputs = FakeOutputs()
        orch = make_orchestrator(outputs=outputs)

        outcome = orch.process("not json")

        assert outcome.diff.has_findings is False
        assert outputs.outputs["risk-increased"] == "false"
        assert outputs.reports["raw"] == "not json"

    def test_undecodable_payload_kept_verbatim_for_raw_report(self, make_orchestrator):
        outputs = FakeOutputs()
        orch = make_orchestrator(outputs=outputs)

        outcome = orch.process(b"\xff\xfe not json")

        assert outputs.reports["raw"] == b"\xff\xfe not json"
        assert outcome.diff.raw == "\ufffd\ufffd not json"


class TestComments:
    def test_creates_comment_on_first_findings(self, make_orchestrator, logger):
        comments = FakeComments()
        orch = make_orchestrator(comments=comments)

        outcome = orch.process(INCREASE, pr=_pr())

        assert isinstance(outcome.comment_action, CreateComment)
        assert comments.created[0][:2] == ("acme/widgets", 12)
        assert comments.created[0][2].startswith(COMMENT_MARKER)
        assert "comment_created" in logger.messages("info")

    def test_updates_existing_marked_comment(self, make_orchestrator):
        comments = FakeComments(existing=[ExistingComment(id=5, body="lgtm"), ExistingComment(id=9, body=COMMENT_MARKER)])
        orch = make_orchestrator(comments=comments)

        outcome = orch.process(INCREASE, pr=_pr())

        assert isinstance(outcome.comment_action, UpdateComment)
        assert comments.updated[0][1] == 9
        assert comments.created == []

    def test_resolves_when_findings_disappear(self, make_orchestrator):
        comments = FakeComments(existing=[ExistingComment(id=9, body=f"{COMMENT_MARKER}\nold")])
        orch = make_orchestrator(comments=comments)

        orch.process(EMPTY, pr=_pr())

        assert comments.updated == [("acme/widgets", 9, RESOLVED_BODY)]

    def test_nothing_to_say(self, make_orchestrator, logger):
        comments = FakeComments()
        orch = make_orchestrator(comments=comments)

        outcome = orch.process(EMPTY, pr=_pr())

        assert outcome.comment_action == NoAction()
        assert comments.created == comments.updated == []
        assert "comment_unchanged" in logger.messages("info")

    def test_skipped_without_transport_or_pr(self, make_orchestrator, logger):
        make_orchestrator(comments=None).process(INCREASE, pr=_pr())
        make_orchestrator(comments=FakeComments()).process(INCREASE, pr=_pr(number=None))

        skipped = [kw["reason"] for lvl, m, kw in logger.records if m == "comment_skipped"]
        assert skipped == ["no comment transport configured", "no pull request context"]

    def test_disabled(self, make_orchestrator):
        comments = FakeComments()
        orch = make_orchestrator(comments=comments, comment_on_pr=False)

        orch.process(INCREASE, pr=_pr())

        assert comments.listed == []

    def test_transport_error_propagates(self, make_orchestrator):
        orch = make_orchestrator(comments=FakeComments(fail=True))

        with pytest.raises(CommentTransportError):
            orch.process(INCREASE, pr=_pr())


class TestPolicy:
    def test_risk_increase_fails(self, make_orchestrator):
        orch = make_orchestrator()
        outcome = orch.process(INCREASE)

        with pytest.raises(RiskIncreasedError) as e:
            orch.enforce_policy(outcome)
        assert e.value.total_risk_delta == 9

    def test_risk_increase_allowed(self, make_orchestrator):
        orch = make_orchestrator(fail_on_increase=False)
        orch.enforce_policy(orch.process(INCREASE))

    def test_decrease_passes(self, make_orchestrator):
        orch = make_orchestrator()
        orch.enforce_policy(orch.process(DECREASE))

    def test_severity_gate_takes_precedence(self, make_orchestrator):
        orch = make_orchestrator(fail_on_severity="high", severity_exit_code=4)
        outcome = orch.process(INCREASE)

        assert outcome.threshold_breached is True
        with pytest.raises(SeverityThresholdError) as e:
            orch.enforce_policy(outcome)
        assert e.value.level == "CRITICAL"
        assert e.value.threshold == "HIGH"
        assert e.value.exit_code == 4

    def test_severity_gate_below_threshold(self, make_orchestrator):
        orch = make_orchestrator(fail_on_severity="critical", fail_on_increase=False)
        payload = current_payload(added=[report("t/a", behavior("x", "HIGH", 5))])

        outcome = orch.process(payload)

        assert outcome.threshold_breached is False
        orch.enforce_policy(outcome)
