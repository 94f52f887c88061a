import pytest

from malcontent_action.core.domain.exceptions import RenderingOverflow
from malcontent_action.core.domain.models import (
    CreateComment,
    DiffResult,
    ExistingComment,
    MarkedComment,
    NoAction,
    UpdateComment,
)
from malcontent_action.core.services import CommentReconciler, RiskAggregator
from malcontent_action.core.services.comment import (
    COMMENT_MARKER,
    OMISSION_NOTICE,
    RESOLVED_BODY,
    TRUNCATION_NOTICE,
    build_comment_body,
    find_marked_comment,
    render_comment_body,
)
from malcontent_action.core.services.presenter import SUMMARY_TITLE, render_summary

from fakes import FakeLogger
from payloads import make_behavior, make_entry


def _diff(added=(), removed=(), modified=(), raw=""):
    return RiskAggregator().build(added=added, removed=removed, modified=modified, raw=raw)


@pytest.fixture
def findings():
    return _diff(added=[make_entry("t/a.sh", make_behavior("runs a shell", score=5))], raw='{"Diff": {}}')


class TestFindMarkedComment:
    def test_first_marked_comment_wins(self):
        comments = [
            ExistingComment(id=1, body="hello"),
            ExistingComment(id=2, body=f"{COMMENT_MARKER}\nold"),
            ExistingComment(id=3, body=f"{COMMENT_MARKER}\nnewer"),
        ]

        found = find_marked_comment(comments)

        assert found == MarkedComment(id=2, body=f"{COMMENT_MARKER}\nold")

    def test_none_when_unmarked(self):
        assert find_marked_comment([ExistingComment(id=1, body="")]) is None
        assert find_marked_comment([]) is None


class TestReconcile:
    def test_no_findings_no_prior_is_noop(self):
        assert CommentReconciler().reconcile(None, DiffResult.empty()) == NoAction()

    def test_no_findings_with_prior_resolves(self):
        prior = MarkedComment(id=42, body=f"{COMMENT_MARKER}\nold findings")

        action = CommentReconciler().reconcile(prior, DiffResult.empty())

        assert action == UpdateComment(comment_id=42, body=RESOLVED_BODY)
        assert action.body.startswith(COMMENT_MARKER + "\n" + SUMMARY_TITLE)
        assert "Previously detected security issues have been resolved" in action.body

    def test_findings_without_prior_creates(self, findings):
        action = CommentReconciler().reconcile(None, findings)

        assert isinstance(action, CreateComment)
        assert action.body.startswith(COMMENT_MARKER + "\n" + SUMMARY_TITLE)
        assert "View per-file behaviors" in action.body
        assert '```json\n{"Diff": {}}\n```' in action.body

    def test_findings_with_prior_updates_in_place(self, findings):
        prior = MarkedComment(id=7, body=f"{COMMENT_MARKER}\nx")

        action = CommentReconciler().reconcile(prior, findings)

        assert isinstance(action, UpdateComment)
        assert action.comment_id == 7

    def test_body_budget_property(self):
        assert CommentReconciler(body_budget=1234).body_budget == 1234

    def test_logs_when_summary_alone_overflows(self, findings):
        logger = FakeLogger()

        action = CommentReconciler(body_budget=10, logger=logger).reconcile(None, findings)

        assert isinstance(action, CreateComment)
        assert "comment_over_budget" in logger.messages("warning")


class TestBodyDegradation:
    def _big(self, files=8, behaviors=30, raw_size=0):
        entries = [
            make_entry(
                f"t/file{f}.js",
                *[make_behavior(f"behavior {f}-{b} " + "d" * 60, score=1, matches=["m" * 80]) for b in range(behaviors)],
            )
            for f in range(files)
        ]
        return _diff(added=entries, raw="{" + "x" * raw_size + "}")

    def test_strict_render_raises(self, findings):
        with pytest.raises(RenderingOverflow) as e:
            render_comment_body(findings, budget=10)
        assert e.value.budget == 10

    def test_fits_with_full_appendix(self, findings):
        body = build_comment_body(findings, 60000)
        assert body.endswith('```json\n{"Diff": {}}\n```\n</details>')

    def test_appendix_truncated_before_details_shrink(self):
        diff = self._big(files=1, behaviors=3, raw_size=5000)
        base = len(render_comment_body(diff, budget=10**9, appendix=""))
        budget = base + 1000

        body = build_comment_body(diff, budget)

        assert len(body) <= budget
        assert TRUNCATION_NOTICE in body
        assert "View per-file behaviors" in body
        assert OMISSION_NOTICE not in body

    def test_appendix_dropped_when_room_is_tiny(self):
        diff = self._big(files=1, behaviors=3, raw_size=5000)
        without_appendix = len(render_comment_body(diff, budget=10**9, omitted=True))

        body = build_comment_body(diff, without_appendix + 50)

        assert "View detailed report" not in body
        assert "View per-file behaviors" in body
        assert body.endswith(OMISSION_NOTICE)

    def test_behavior_lists_shrink_then_details_drop(self):
        diff = self._big(files=8, behaviors=30)
        capped = len(render_comment_body(diff, budget=10**9, behavior_limit=3, omitted=True))
        summary_only = len(render_comment_body(diff, budget=10**9, include_details=False, omitted=True))

        body = build_comment_body(diff, capped)
        assert len(body) <= capped
        assert "...and 27 more behaviors" in body
        assert body.endswith(OMISSION_NOTICE)

        body = build_comment_body(diff, summary_only)
        assert "View per-file behaviors" not in body
        assert body.startswith(COMMENT_MARKER)
        assert body.endswith(OMISSION_NOTICE)

    def test_summary_never_cut(self):
        diff = self._big(files=8, behaviors=2)

        body = build_comment_body(diff, 5)

        assert body == COMMENT_MARKER + "\n" + render_summary(diff) + "\n\n" + OMISSION_NOTICE
        assert "### 🆕 New Files with Findings (8)" in body
