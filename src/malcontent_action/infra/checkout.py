from __future__ import annotations

import io
import tarfile
from pathlib import Path
from typing import Optional

from git import Repo
from git.exc import BadName, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..core.domain.exceptions import CheckoutError
from ..core.domain.models import TreePair
from ..core.ports import LoggerPort


class GitCheckout:
    """Extracts two revisions of a repository side by side.

    Trees are exported with ``git archive`` so the working copy and its
    checked-out branch are never touched.
    """

    def __init__(
        self,
        *,
        repo_path: Path,
        default_branch: str = "origin/main",
        logger: Optional[LoggerPort] = None,
    ) -> None:
        self._repo_path = Path(repo_path)
        self._default_branch = default_branch
        self._logger = logger

    def extract(
        self,
        *,
        base_ref: Optional[str],
        head_ref: str,
        dest: Path,
        base_path: str = ".",
    ) -> TreePair:
        repo = self._open()
        head = self._resolve(repo, head_ref)
        base = self._resolve(repo, base_ref) if base_ref else self._merge_base(repo, head)

        before = Path(dest) / "before"
        after = Path(dest) / "after"
        self._export(repo, base, before, base_path)
        self._export(repo, head, after, base_path)

        if self._logger is not None:
            self._logger.info(
                "trees_extracted",
                type="trees_extracted",
                base=base,
                head=head,
                base_path=base_path,
            )
        return TreePair(before=before, after=after, base_ref=base, head_ref=head)

    def _open(self) -> Repo:
        try:
            return Repo(self._repo_path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise CheckoutError(f"Not a git repository: {self._repo_path}") from e

    def _resolve(self, repo: Repo, ref: str) -> str:
        try:
            return repo.commit(ref).hexsha
        except (BadName, ValueError, GitCommandError) as e:
            raise CheckoutError(f"Cannot resolve revision {ref!r}") from e

    def _merge_base(self, repo: Repo, head: str) -> str:
        target = self._resolve(repo, self._default_branch)
        try:
            bases = repo.merge_base(head, target)
        except GitCommandError as e:
            raise CheckoutError(f"Cannot compute merge base of {head} and {self._default_branch}") from e
        if not bases:
            raise CheckoutError(f"No merge base between {head} and {self._default_branch}")
        return bases[0].hexsha

    def _export(self, repo: Repo, sha: str, target: Path, base_path: str) -> None:
        target.mkdir(parents=True, exist_ok=True)

        path = base_path.strip("/") if base_path not in ("", ".", "./") else None
        if path is not None:
            try:
                repo.commit(sha).tree[path]
            except KeyError:
                # Directory does not exist at this revision: scan an empty tree.
                if self._logger is not None:
                    self._logger.info("tree_path_missing", type="tree_path_missing", sha=sha, path=path)
                return

        buffer = io.BytesIO()
        try:
            if path is None:
                repo.archive(buffer, treeish=sha, format="tar")
            else:
                repo.archive(buffer, treeish=sha, format="tar", path=path)
        except GitCommandError as e:
            raise CheckoutError(f"git archive failed for {sha}") from e

        buffer.seek(0)
        with tarfile.open(fileobj=buffer, mode="r:") as tar:
            tar.extractall(target, filter="data")
