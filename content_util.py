"""
Naming, classification and metadata helpers shared by the prompt and resource loaders.

Everything here is pure except scan_directory, which only lists a directory.
"""

import logging
import re
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 64

# Resource kinds by extension (anything else is "unknown")
_KINDS = {
    ".md": "markdown",
    ".json": "json",
    ".txt": "text",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_HEADING = re.compile(r"^#\s+(.+)", re.MULTILINE)
_PARAGRAPH_BREAK = re.compile(r"\n\n+")


def sanitize_name(raw: str) -> str:
    """Turn an arbitrary string into a lowercase identifier of at most 64 chars."""
    name = _NON_ALNUM.sub("_", raw.lower()).strip("_")
    # Truncation can leave a trailing separator behind
    return name[:MAX_NAME_LENGTH].rstrip("_")


def guess_resource_type(path: Path | str) -> str:
    """Infer the resource kind from the file extension."""
    return _KINDS.get(Path(path).suffix.lower(), "unknown")


def extract_meta(markdown: str, fallback_name: str) -> tuple[str, str]:
    """
    Pull (title, description) out of markdown text.

    The title is the first level-1 heading, else fallback_name. The description
    is the first paragraph that is not a heading, limited to its first 3 lines
    joined with spaces; it falls back to the title.
    """
    match = _HEADING.search(markdown)
    title = match.group(1).strip() if match else fallback_name
    description = title
    for paragraph in _PARAGRAPH_BREAK.split(markdown.replace("\r", "")):
        if not paragraph.strip() or paragraph.startswith("#"):
            continue
        description = " ".join(paragraph.split("\n")[:3]).strip()
        break
    return title, description


def is_markdown(path: Path) -> bool:
    return path.suffix.lower() == ".md"


def is_resource_file(path: Path) -> bool:
    return path.suffix.lower() in _KINDS


def scan_directory(directory: Path, predicate: Callable[[Path], bool]) -> list[Path]:
    """
    List files in directory accepted by predicate, in directory listing order.

    A missing directory is not an error: it is logged and yields no files.
    """
    if not directory.is_dir():
        logger.warning("Directory not found: %s", directory)
        return []
    return [p for p in directory.iterdir() if p.is_file() and predicate(p)]
