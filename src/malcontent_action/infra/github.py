from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import requests

from ..core.domain.exceptions import CommentTransportError
from ..core.domain.models import ExistingComment, PullRequestContext
from ..core.ports import LoggerPort


API_VERSION = "2022-11-28"
DEFAULT_API_URL = "https://api.github.com"
PAGE_SIZE = 100


class GitHubComments:
    """Issue-comment transport over the GitHub REST API."""

    def __init__(
        self,
        *,
        token: Optional[str],
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        logger: Optional[LoggerPort] = None,
    ) -> None:
        self._api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self._timeout = timeout
        self._logger = logger
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github.v3+json",
                "X-GitHub-Api-Version": API_VERSION,
            }
        )
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def list_comments(self, *, repository: str, number: int) -> list[ExistingComment]:
        url: Optional[str] = f"{self._api_url}/repos/{repository}/issues/{number}/comments"
        params: Optional[dict[str, Any]] = {"per_page": PAGE_SIZE}
        comments: list[ExistingComment] = []
        while url:
            response = self._request("GET", url, params=params)
            for item in response.json():
                comments.append(_to_comment(item))
            url = response.links.get("next", {}).get("url")
            params = None  # the next link already carries the query
        return comments

    def create_comment(self, *, repository: str, number: int, body: str) -> ExistingComment:
        url = f"{self._api_url}/repos/{repository}/issues/{number}/comments"
        return _to_comment(self._request("POST", url, json={"body": body}).json())

    def update_comment(self, *, repository: str, comment_id: int, body: str) -> ExistingComment:
        url = f"{self._api_url}/repos/{repository}/issues/comments/{comment_id}"
        return _to_comment(self._request("PATCH", url, json={"body": body}).json())

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            if self._logger is not None:
                self._logger.error("github_request_failed", type="github_request_failed", method=method, url=url)
            raise CommentTransportError(f"{method} {url} failed: {e}") from e
        return response


def _to_comment(item: dict[str, Any]) -> ExistingComment:
    return ExistingComment(
        id=int(item["id"]),
        body=item.get("body") or "",
        html_url=item.get("html_url"),
    )


def load_pull_request_context(
    *,
    event_path: Optional[str],
    repository: Optional[str],
    server_url: Optional[str] = None,
) -> PullRequestContext:
    """Build the pull-request context from an Actions event payload.

    Missing or unreadable event files yield a context with only the
    repository filled in.
    """
    event: dict[str, Any] = {}
    if event_path and Path(event_path).is_file():
        try:
            event = json.loads(Path(event_path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            event = {}

    pr = event.get("pull_request") or {}
    repo = repository or (event.get("repository") or {}).get("full_name")
    number = pr.get("number") or event.get("number")

    repository_url = None
    if repo:
        repository_url = f"{(server_url or 'https://github.com').rstrip('/')}/{repo}"

    return PullRequestContext(
        repository=repo,
        number=int(number) if number is not None else None,
        base_sha=(pr.get("base") or {}).get("sha"),
        head_sha=(pr.get("head") or {}).get("sha"),
        repository_url=repository_url,
    )


def build_comment_transport(
    *,
    token: Optional[str],
    api_url: str = DEFAULT_API_URL,
    logger: Optional[LoggerPort] = None,
) -> Optional[GitHubComments]:
    """Comment transport, or None when no token is configured."""
    if not token:
        return None
    return GitHubComments(token=token, api_url=api_url, logger=logger)
