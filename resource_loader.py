"""
Resource files (.md, .txt, .json) loaded into a registry and, optionally,
exported as prompts.

Resources are inert: loading only records where each file lives and what kind
it is. Content is read from disk on every request.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from content_util import guess_resource_type, is_resource_file, sanitize_name, scan_directory
from prompt_loader import LoadResult
from registry import Entry, Registry
from settings import Settings
from sink import PromptSink, Renderable, Transcript

logger = logging.getLogger(__name__)

RESOURCE_PROMPT_PREFIX = "resource_"
MAX_RESOURCE_PROMPT_NAME = 70
PREVIEW_LENGTH = 120

_WHITESPACE = re.compile(r"\s+")


class ResourceLoader:
    """Scans the resources directory into a registry and serves file content."""

    def __init__(self, registry: Registry, settings: Settings):
        self.registry = registry
        self.settings = settings

    def load(self, base_dir: Path | None = None) -> LoadResult:
        directory = base_dir or self.settings.resources_dir
        logger.info("Loading resources from %s", directory)
        if not directory.is_dir():
            logger.warning(
                "Resources directory not found: %s (create it and add .md/.txt/.json "
                "files, or set RESOURCES_DIR)",
                directory,
            )
            return LoadResult(count=0, total=len(self.registry), dir=directory)

        added = 0
        for path in scan_directory(directory, is_resource_file):
            try:
                mtime = path.stat().st_mtime
            except OSError as e:
                logger.warning("Cannot stat %s: %s", path, e)
                continue
            name = sanitize_name(path.stem)
            if not name:
                logger.warning("Skipping %s: file name has no usable characters", path.name)
                continue
            result = self.registry.upsert_if_changed(
                name, path.resolve(), mtime, type=guess_resource_type(path)
            )
            if result.is_new:
                added += 1
        return LoadResult(count=added, total=len(self.registry), dir=directory)

    def get_content(self, name: str) -> tuple[Entry, str]:
        """
        Read a resource fresh from disk.

        JSON resources are re-serialized with 2-space indentation; if the file
        does not parse, the raw text is returned. Raises NotFoundError for
        unknown names.
        """
        entry = self.registry.get(name)
        raw = entry.source_path.read_text(encoding="utf-8", errors="replace")
        if entry.get("type") == "json":
            try:
                return entry, json.dumps(json.loads(raw), indent=2, ensure_ascii=False)
            except ValueError:
                pass
        return entry, raw

    def list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.registry.list()]


@dataclass
class ExportResult:
    exported: int


def resource_prompt_name(name: str) -> str:
    return f"{RESOURCE_PROMPT_PREFIX}{name}"[:MAX_RESOURCE_PROMPT_NAME]


def resource_renderable(name: str, raw: str) -> Renderable:
    preview = _WHITESPACE.sub(" ", raw[:PREVIEW_LENGTH]).strip()

    def render(context: str | None = None) -> Transcript:
        text = raw + (f"\n\nExtra context:\n{context}" if context else "")
        return [
            {
                "role": "assistant",
                "content": f"You are using the exported resource '{name}'. Preview: {preview}",
            },
            {"role": "user", "content": text},
        ]

    return Renderable(kind="resource", name=name, render=render)


class ResourceExporter:
    """Re-exposes every loaded resource as a `resource_<name>` prompt."""

    def __init__(
        self,
        resources: Registry,
        prompts: Registry,
        sink: PromptSink,
        enabled: bool = True,
    ):
        self.resources = resources
        self.prompts = prompts
        self.sink = sink
        self.enabled = enabled

    def export(self) -> ExportResult:
        if not self.enabled:
            logger.info("Resource export disabled via EXPORT_RESOURCES_AS_PROMPTS")
            return ExportResult(exported=0)

        exported = 0
        for entry in self.resources.list():
            prompt_name = resource_prompt_name(entry.name)
            if prompt_name in self.prompts:
                continue
            try:
                raw = entry.source_path.read_text(encoding="utf-8", errors="replace")
                renderable = resource_renderable(entry.name, raw)
                description = (
                    f"Auto-exported resource ({entry.get('type')}) from {entry.source_path.name}"
                )
                self.sink.register_prompt(prompt_name, description, renderable)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.warning("Failed to export resource '%s': %s", entry.name, e)
                continue
            # the resource registry already did the staleness check
            self.prompts.put(
                Entry(
                    prompt_name,
                    entry.source_path,
                    entry.modified_at,
                    {"title": entry.name, "description": description, "resource": entry.name},
                    renderable,
                )
            )
            exported += 1
        logger.info("Exported %d resource(s) as prompts", exported)
        return ExportResult(exported=exported)

    def exported_names(self) -> list[str]:
        return [n for n in self.prompts.names() if n.startswith(RESOURCE_PROMPT_PREFIX)]
