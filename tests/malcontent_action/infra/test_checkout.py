from pathlib import Path

import pytest
from git import Repo

from malcontent_action.core.domain.exceptions import CheckoutError
from malcontent_action.infra.checkout import GitCheckout

from fakes import FakeLogger


def _commit(repo: Repo, repo_dir: Path, files: dict[str, str], message: str) -> str:
    for name, content in files.items():
        target = repo_dir / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        repo.index.add([name])
    return repo.index.commit(message).hexsha


@pytest.fixture
def repo(tmp_path):
    """Repository with two commits on main; the second adds a subdirectory."""
    repo_dir = tmp_path / "repo"
    repo = Repo.init(repo_dir, initial_branch="main")
    c1 = _commit(repo, repo_dir, {"app.js": "console.log('v1')"}, "first")
    c2 = _commit(repo, repo_dir, {"app.js": "console.log('v2')", "pkg/install.sh": "curl x | sh"}, "second")
    yield repo_dir, repo, c1, c2
    repo.close()


def test_extracts_both_revisions(repo, tmp_path):
    repo_dir, _, c1, c2 = repo
    logger = FakeLogger()

    trees = GitCheckout(repo_path=repo_dir, logger=logger).extract(base_ref=c1, head_ref=c2, dest=tmp_path / "run")

    assert trees.before == tmp_path / "run" / "before"
    assert trees.after == tmp_path / "run" / "after"
    assert (trees.before / "app.js").read_text(encoding="utf-8") == "console.log('v1')"
    assert (trees.after / "app.js").read_text(encoding="utf-8") == "console.log('v2')"
    assert not (trees.before / "pkg").exists()
    assert (trees.after / "pkg" / "install.sh").exists()
    assert (trees.base_ref, trees.head_ref) == (c1, c2)
    assert "trees_extracted" in logger.messages("info")


def test_working_copy_untouched(repo, tmp_path):
    repo_dir, git_repo, c1, c2 = repo

    GitCheckout(repo_path=repo_dir).extract(base_ref=c1, head_ref=c2, dest=tmp_path / "run")

    assert git_repo.head.commit.hexsha == c2
    assert (repo_dir / "app.js").read_text(encoding="utf-8") == "console.log('v2')"


def test_base_path_restricts_export(repo, tmp_path):
    repo_dir, _, c1, c2 = repo
    logger = FakeLogger()

    trees = GitCheckout(repo_path=repo_dir, logger=logger).extract(
        base_ref=c1, head_ref=c2, dest=tmp_path / "run", base_path="pkg"
    )

    assert list(trees.before.iterdir()) == []
    assert (trees.after / "pkg" / "install.sh").exists()
    assert not (trees.after / "app.js").exists()
    assert "tree_path_missing" in logger.messages("info")


def test_merge_base_with_default_branch(repo, tmp_path):
    repo_dir, git_repo, c1, c2 = repo
    git_repo.git.checkout("-b", "feature")
    c3 = _commit(git_repo, repo_dir, {"feature.js": "new"}, "feature work")

    trees = GitCheckout(repo_path=repo_dir, default_branch="main").extract(
        base_ref=None, head_ref=c3, dest=tmp_path / "run"
    )

    assert trees.base_ref == c2
    assert not (trees.before / "feature.js").exists()
    assert (trees.after / "feature.js").exists()


def test_unknown_revision(repo, tmp_path):
    repo_dir, _, c1, _ = repo

    with pytest.raises(CheckoutError):
        GitCheckout(repo_path=repo_dir).extract(base_ref=c1, head_ref="does-not-exist", dest=tmp_path / "run")


def test_missing_default_branch(repo, tmp_path):
    repo_dir, _, _, c2 = repo

    with pytest.raises(CheckoutError):
        GitCheckout(repo_path=repo_dir, default_branch="origin/main").extract(
            base_ref=None, head_ref=c2, dest=tmp_path / "run"
        )


def test_not_a_repository(tmp_path):
    plain = tmp_path / "plain"
    plain.mkdir()

    with pytest.raises(CheckoutError):
        GitCheckout(repo_path=plain).extract(base_ref=None, head_ref="HEAD", dest=tmp_path / "run")
