"""Pytest fixtures for prompt-mcp tests."""

import os
from pathlib import Path

import pytest
from fastmcp import FastMCP

from service import ContentService
from settings import Settings


class RecordingSink:
    """Collects (name, description, renderable) instead of talking to an MCP host."""

    def __init__(self):
        self.calls = []
        self.fail_names = set()

    def register_prompt(self, name, description, renderable):
        if name in self.fail_names:
            raise ValueError(f"rejected {name}")
        self.calls.append((name, description, renderable))

    @property
    def names(self):
        return [name for name, _, _ in self.calls]


class FakeFetcher:
    """Maps repository -> local directory; unknown repositories fail."""

    def __init__(self, dirs=None):
        self.dirs = dict(dirs or {})
        self.fetched = []

    def fetch(self, source):
        self.fetched.append(source.repository)
        return self.dirs.get(source.repository)


def _write_file(path: Path, content: str, mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of the tests."""
    for var in (
        "PROMPTS_DIR",
        "RESOURCES_DIR",
        "PROMPTS_LOCAL_PREFIX",
        "EXPORT_RESOURCES_AS_PROMPTS",
        "AUTH_TYPE",
        "AUTH_TOKEN",
        "JWT_SECRET",
        "AUTH_LEEWAY",
        "API_KEY",
        "SSE_PORT",
        "MCP_PORT",
        "MCP_TRANSPORT",
        "PROMPTS_CONFIG_DIR",
        "PROMPTS_REMOTE_CACHE",
        "PROMPTS_GIT_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing every directory into tmp_path."""
    prompts = tmp_path / "prompts"
    resources = tmp_path / "resources"
    prompts.mkdir()
    resources.mkdir()
    return Settings(
        prompts_dir=prompts,
        resources_dir=resources,
        remote_cache_dir=tmp_path / "remote_cache",
        config_dir=tmp_path / "config",
    )


@pytest.fixture
def write_file():
    """Write content to a file and optionally pin its modification time."""
    return _write_file


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def service(settings, sink, fetcher):
    return ContentService(settings, FastMCP("test"), sink=sink, fetcher=fetcher)
