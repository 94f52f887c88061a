import sys
from pathlib import Path
import pytest
from helpers import mark_by_dir


@pytest.fixture(autouse=True)
def _ensure_src_on_syspath():
    # Add project src/ to sys.path for src-layout imports
    root = Path(__file__).resolve().parents[1]
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))
    yield


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    # Runner variables must not leak into tests from a CI job
    for name in (
        "GITHUB_ACTIONS",
        "GITHUB_TOKEN",
        "GITHUB_REPOSITORY",
        "GITHUB_EVENT_PATH",
        "GITHUB_SHA",
        "GITHUB_OUTPUT",
        "GITHUB_STEP_SUMMARY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MALCONTENT_ACTION_DIRECTORIES__HOME", str(tmp_path / "home"))
    yield


TESTS = Path(__file__).parent

def pytest_collection_modifyitems(config, items):
    # Mark tests by directory structure
    mark_by_dir(items, TESTS / "malcontent_action" / "core", pytest.mark.unit)
    mark_by_dir(items, TESTS / "malcontent_action" / "infra", pytest.mark.integration)
    mark_by_dir(items, TESTS / "malcontent_action" / "app", pytest.mark.e2e)
    mark_by_dir(items, TESTS / "malcontent_action" / "shared", pytest.mark.unit)
