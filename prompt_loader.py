"""
Markdown prompt discovery and registration.

Every `*.md` file in the prompts directory (and in each configured remote
source) becomes a prompt named after the file. A prompt is handed to the sink
only the first time its name is seen: the host cannot replace a registration,
so a file edited later refreshes the registry record but keeps serving the
originally registered content until the process restarts.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from content_util import extract_meta, is_markdown, sanitize_name, scan_directory
from registry import Registry
from remote_sources import Fetcher, read_remote_sources
from settings import Settings
from sink import PromptSink, Renderable, Transcript

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    count: int
    total: int
    dir: Path

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "total": self.total, "dir": str(self.dir)}


@dataclass
class LoadAllResult:
    local: LoadResult
    remote_count: int

    def to_dict(self) -> dict[str, Any]:
        return {"local": self.local.to_dict(), "remoteCount": self.remote_count}


def prompt_renderable(name: str, title: str, content: str) -> Renderable:
    """Two-message transcript: who is speaking, then the file with optional context."""

    def render(context: str | None = None) -> Transcript:
        text = content + (f"\n\nUser context:\n{context}" if context else "")
        return [
            {"role": "assistant", "content": f"You are using the dynamic prompt: {title}"},
            {"role": "user", "content": text},
        ]

    return Renderable(kind="prompt", name=name, render=render)


class PromptLoader:
    """Populates the prompt registry from local and remote directories."""

    def __init__(
        self,
        registry: Registry,
        sink: PromptSink,
        settings: Settings,
        fetcher: Fetcher,
    ):
        self.registry = registry
        self.sink = sink
        self.settings = settings
        self.fetcher = fetcher

    def load_dir(self, directory: Path, prefix: str | None = None) -> LoadResult:
        """Register new prompts found in directory; refresh changed ones."""
        logger.info("Loading prompts from %s", directory)
        registered = 0
        for path in scan_directory(directory, is_markdown):
            try:
                mtime = path.stat().st_mtime
            except OSError as e:
                logger.warning("Cannot stat %s: %s", path, e)
                continue
            stem = path.stem
            name = sanitize_name(f"{prefix}_{stem}" if prefix else stem)
            if not name:
                logger.warning("Skipping %s: file name has no usable characters", path.name)
                continue
            if not self.registry.is_stale(name, mtime):
                continue

            existing = self.registry.get(name) if name in self.registry else None
            if existing is not None:
                logger.info(
                    "Updated content detected for '%s'; the existing registration "
                    "stays in effect until restart.",
                    name,
                )
                self.registry.upsert_if_changed(
                    name, path.resolve(), mtime, handler=existing.handler, **existing.extra
                )
                continue

            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Cannot read prompt %s: %s", path, e)
                continue
            title, description = extract_meta(content, stem)
            description = description or title or name
            renderable = prompt_renderable(name, title, content)
            try:
                self.sink.register_prompt(name, description, renderable)
            except Exception as e:  # pylint: disable=broad-exception-caught
                # not recorded, so the next reload retries it as new
                logger.warning("Failed to register prompt '%s': %s", name, e)
                continue
            self.registry.upsert_if_changed(
                name,
                path.resolve(),
                mtime,
                handler=renderable,
                title=title,
                description=description,
            )
            registered += 1
        return LoadResult(count=registered, total=len(self.registry), dir=directory)

    def load_local(self, base_dir: Path | None = None, prefix: str | None = None) -> LoadResult:
        """Load the local prompts directory, applying the configured local prefix."""
        directory = base_dir or self.settings.prompts_dir
        if prefix is None:
            prefix = self.settings.local_prompt_prefix()
        if not directory.is_dir():
            logger.warning(
                "Prompts directory not found: %s (create it and add .md files, "
                "or set PROMPTS_DIR)",
                directory,
            )
            return LoadResult(count=0, total=len(self.registry), dir=directory)
        return self.load_dir(directory, prefix=prefix)

    def load_all(self) -> LoadAllResult:
        """Local prompts first, then every configured remote source."""
        local = self.load_local()
        remote_count = 0
        for source in read_remote_sources(self.settings.sources_config_path):
            try:
                directory = self.fetcher.fetch(source)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.warning("Failed to fetch %s: %s", source.repository, e)
                continue
            if directory is None:
                logger.warning("Skipping remote source %s", source.repository)
                continue
            remote_count += self.load_dir(directory, prefix=source.prefix).count
        logger.info(
            "Prompts loaded: %d new local, %d new remote, %d total",
            local.count,
            remote_count,
            len(self.registry),
        )
        return LoadAllResult(local=local, remote_count=remote_count)

    def list(self) -> list[dict[str, Any]]:
        return [{"name": e.name, "file": str(e.source_path)} for e in self.registry.list()]
