"""Shared fixtures for app-level tests."""
from types import SimpleNamespace

import pytest
from dependency_injector import providers

from malcontent_action.app.config import AppConfig, DirectoryConfig, GitHubConfig, LoggingConfig, RuntimeConfig
from malcontent_action.app.container import Container

from fakes import FakeCheckout, FakeComments, FakeScanner
from payloads import behavior, current_payload, report


INCREASE_PAYLOAD = current_payload(
    added=[report("/tmp/after/install.sh", behavior("downloads and runs a script", "CRITICAL", 10, matches=["curl | sh"]))],
    removed=[report("/tmp/before/old.sh", behavior("reads environment", "LOW", 1))],
)
CLEAN_PAYLOAD = '{"Diff": {"Added": {}, "Removed": {}, "Modified": {}}}'


@pytest.fixture
def test_config(tmp_path):
    """Explicit configuration rooted in tmp_path."""
    return AppConfig(
        directories=DirectoryConfig(home=tmp_path / "home"),
        github=GitHubConfig(repository="acme/widgets", token="test-token"),
        logging=LoggingConfig(level="DEBUG"),
        runtime=RuntimeConfig(run_id="test-run", repo_path=tmp_path),
    )


@pytest.fixture
def payload_file(tmp_path):
    path = tmp_path / "malcontent-diff.json"
    path.write_text(INCREASE_PAYLOAD, encoding="utf-8")
    return path


@pytest.fixture
def clean_payload_file(tmp_path):
    path = tmp_path / "clean.json"
    path.write_text(CLEAN_PAYLOAD, encoding="utf-8")
    return path


@pytest.fixture
def mocked_container(monkeypatch):
    """Patch Container in the CLI and facade with a version using in-memory adapters.

    Yields a namespace whose ``scanner``/``checkout``/``comments`` are the
    fakes wired into every container built during the test.
    """
    fakes = SimpleNamespace(
        scanner=FakeScanner(INCREASE_PAYLOAD),
        checkout=FakeCheckout(head_sha="f" * 40),
        comments=FakeComments(),
        containers=[],
    )

    def create_mock_container():
        c = Container()
        c.scanner.override(providers.Object(fakes.scanner))
        c.checkout.override(providers.Object(fakes.checkout))
        c.comments.override(providers.Object(fakes.comments))
        fakes.containers.append(c)
        return c

    monkeypatch.setattr("malcontent_action.app.cli.Container", create_mock_container)
    monkeypatch.setattr("malcontent_action.app.main.Container", create_mock_container)
    return fakes
