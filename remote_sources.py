"""
Remote prompt sources: git repositories mirrored into a local cache directory.

Each source is fetched on its own; a failing source is logged and skipped so the
others (and the local prompts) still load.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from content_util import sanitize_name
from settings import read_json_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteSource:
    """One entry of prompts_sources.json."""

    repository: str
    branch: str = "main"
    subdirectory: str = ""
    name: str | None = None
    prefix: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteSource":
        """Accept both long keys (repository, subdirectory) and short ones (repo, subdir)."""
        repository = data.get("repository") or data.get("repo")
        if not repository:
            raise ValueError("remote source needs a 'repository'")
        return cls(
            repository=str(repository),
            branch=str(data.get("branch") or "main"),
            subdirectory=str(data.get("subdirectory") or data.get("subdir") or ""),
            name=data.get("name") or None,
            prefix=data.get("prefix") or None,
        )

    @property
    def cache_name(self) -> str:
        base = self.name or self.repository
        if self.subdirectory:
            base = f"{base}_{self.subdirectory}"
        return sanitize_name(base)


def read_remote_sources(path: Path) -> list[RemoteSource]:
    """Parse the sources config; bad entries are logged and dropped."""
    raw = read_json_config(path, [])
    if not isinstance(raw, list):
        logger.warning("Ignoring %s: expected a JSON list", path)
        return []
    sources: list[RemoteSource] = []
    for item in raw:
        if not isinstance(item, dict):
            logger.warning("Skipping remote source entry %r: not an object", item)
            continue
        try:
            sources.append(RemoteSource.from_dict(item))
        except ValueError as e:
            logger.warning("Skipping remote source entry %r: %s", item, e)
    return sources


class Fetcher(Protocol):
    def fetch(self, source: RemoteSource) -> Path | None:
        ...


class GitFetcher:
    """Keeps a shallow clone per source under cache_dir."""

    def __init__(self, cache_dir: Path, timeout: float = 120.0):
        self.cache_dir = cache_dir
        self.timeout = timeout

    def _git(self, args: list[str]) -> bool:
        cmd = ["git", *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("git timed out after %ss: %s", self.timeout, " ".join(cmd))
            return False
        except FileNotFoundError:
            logger.warning("git executable not found")
            return False
        if result.returncode != 0:
            logger.warning(
                "%s failed (exit %s): %s",
                " ".join(cmd),
                result.returncode,
                (result.stderr or result.stdout).strip(),
            )
            return False
        return True

    def _clone(self, source: RemoteSource, target: Path) -> bool:
        return self._git(
            ["clone", "--depth", "1", "--branch", source.branch, source.repository, str(target)]
        )

    def fetch(self, source: RemoteSource) -> Path | None:
        """Clone or fast-forward the source; return its prompt directory or None."""
        target = self.cache_dir / source.cache_name
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create remote cache %s: %s", self.cache_dir, e)
            return None

        if (target / ".git").exists():
            if not self._git(["-C", str(target), "pull", "--ff-only"]):
                # keep the existing checkout; retried on the next reload
                return None
        else:
            if target.exists() and any(target.iterdir()):
                logger.info("Replacing non-git directory %s", target)
                shutil.rmtree(target, ignore_errors=True)
            if not self._clone(source, target):
                return None

        prompt_dir = target / source.subdirectory if source.subdirectory else target
        if not prompt_dir.is_dir():
            logger.warning(
                "Subdirectory '%s' not found in %s", source.subdirectory, source.repository
            )
            return None
        return prompt_dir
