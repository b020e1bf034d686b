"""
Configuration for the prompt-mcp server.

Directories come from environment variables with fallbacks relative to the
application directory or the working directory. The two JSON config files
(remote prompt sources and local naming overrides) are optional; a missing or
malformed file is treated as empty configuration.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

APP_DIR = Path(__file__).resolve().parent

_FALSE_VALUES = ("0", "false", "no")


def _first_existing(candidates: list[Path]) -> Path:
    """Return the first candidate directory that exists, else the first candidate."""
    for candidate in candidates:
        if candidate.is_dir():
            return candidate.resolve()
    return candidates[0].resolve()


def resolve_prompts_dir() -> Path:
    """PROMPTS_DIR, else data/prompts next to the app, else under cwd."""
    override = os.environ.get("PROMPTS_DIR")
    if override:
        return Path(override).resolve()
    return _first_existing([APP_DIR / "data" / "prompts", Path.cwd() / "data" / "prompts"])


def resolve_resources_dir() -> Path:
    """RESOURCES_DIR, else data/ressources or data/resources next to the app or under cwd."""
    override = os.environ.get("RESOURCES_DIR")
    if override:
        return Path(override).resolve()
    candidates = []
    for base in (APP_DIR, Path.cwd()):
        candidates.append(base / "data" / "ressources")
        candidates.append(base / "data" / "resources")
    return _first_existing(candidates)


def env_flag(name: str, default: bool = True) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() not in _FALSE_VALUES


def env_number(name: str, default: Any, cast: Callable[[str], Any] = int) -> Any:
    """Numeric env var; unset, blank or malformed values yield `default`."""
    value = (os.environ.get(name) or "").strip()
    if not value:
        return default
    try:
        return cast(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, value, default)
        return default


def read_json_config(path: Path, default: Any) -> Any:
    """Load a JSON config file; absent or malformed files yield `default`."""
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read config %s: %s", path, e)
        return default


@dataclass
class Settings:
    """Runtime settings, usually built once from the environment."""

    prompts_dir: Path
    resources_dir: Path
    remote_cache_dir: Path
    config_dir: Path
    local_prefix: str | None = None
    export_resources_as_prompts: bool = True
    git_timeout: float = 120.0
    port: int = 4000
    transport: str = "http"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        cwd = Path.cwd()
        config_dir = Path(os.environ.get("PROMPTS_CONFIG_DIR", cwd / "config")).resolve()
        cache_dir = Path(
            os.environ.get("PROMPTS_REMOTE_CACHE", cwd / "data" / "remote_prompts")
        ).resolve()
        return cls(
            prompts_dir=resolve_prompts_dir(),
            resources_dir=resolve_resources_dir(),
            remote_cache_dir=cache_dir,
            config_dir=config_dir,
            local_prefix=os.environ.get("PROMPTS_LOCAL_PREFIX") or None,
            export_resources_as_prompts=env_flag("EXPORT_RESOURCES_AS_PROMPTS", True),
            git_timeout=env_number("PROMPTS_GIT_TIMEOUT", 120.0, float),
            port=env_number("SSE_PORT", None) or env_number("MCP_PORT", 4000),
            transport=os.environ.get("MCP_TRANSPORT", "http"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def sources_config_path(self) -> Path:
        return self.config_dir / "prompts_sources.json"

    @property
    def prompts_config_path(self) -> Path:
        return self.config_dir / "prompts_config.json"

    def read_prompts_config(self) -> dict[str, Any]:
        data = read_json_config(self.prompts_config_path, {})
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: expected a JSON object", self.prompts_config_path)
            return {}
        return data

    def local_prompt_prefix(self) -> str | None:
        """Environment override first, then prefixLocal from prompts_config.json."""
        return self.local_prefix or self.read_prompts_config().get("prefixLocal") or None
