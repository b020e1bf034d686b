"""
Process-wide content service.

One ContentService owns the prompt and resource registries, the loaders that
fill them and the table of MCP tools. The MCP server and the HTTP front end
both go through it; nothing here is module-level state.
"""

import inspect
import json
import logging
import os
import threading
from typing import Any, Awaitable, Callable

from fastmcp import FastMCP
from starlette.concurrency import run_in_threadpool

from prompt_loader import LoadAllResult, LoadResult, PromptLoader
from registry import NotFoundError, Registry
from remote_sources import Fetcher, GitFetcher
from resource_loader import ExportResult, ResourceExporter, ResourceLoader
from settings import Settings
from sink import FastMCPSink, PromptSink

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., str | Awaitable[str]]


class InvalidParamsError(ValueError):
    """Tool parameters do not match the tool's signature."""


class ContentService:
    """Registries, loaders and tools for one server process."""

    def __init__(
        self,
        settings: Settings,
        mcp: FastMCP,
        sink: PromptSink | None = None,
        fetcher: Fetcher | None = None,
    ):
        self.settings = settings
        self.mcp = mcp
        self.sink = sink or FastMCPSink(mcp)
        self.fetcher = fetcher or GitFetcher(settings.remote_cache_dir, settings.git_timeout)
        self.prompts = Registry("prompt")
        self.resources = Registry("resource")
        self.prompt_loader = PromptLoader(self.prompts, self.sink, settings, self.fetcher)
        self.resource_loader = ResourceLoader(self.resources, settings)
        self.exporter = ResourceExporter(
            self.resources,
            self.prompts,
            self.sink,
            enabled=settings.export_resources_as_prompts,
        )
        self.tools: dict[str, ToolHandler] = {}
        # reloads mutate the registries and run in worker threads; reads never take this lock
        self._reload_lock = threading.Lock()
        self._register_core_tools()

    # ---- reload / query ----

    def reload_prompts(self) -> LoadAllResult:
        with self._reload_lock:
            return self.prompt_loader.load_all()

    def reload_resources(self) -> tuple[LoadResult, ExportResult]:
        with self._reload_lock:
            result = self.resource_loader.load()
            exported = self.exporter.export()
        return result, exported

    def load_initial(self) -> None:
        """Startup load: prompts (local + remote), then resources and their export."""
        self.reload_prompts()
        result, _ = self.reload_resources()
        logger.info(
            "Server ready with %d prompt(s) and %d resource(s)",
            len(self.prompts),
            result.total,
        )

    def list_dynamic_prompts(self) -> list[dict[str, Any]]:
        return self.prompt_loader.list()

    def list_resources(self) -> list[dict[str, Any]]:
        return self.resource_loader.list()

    def hello(self) -> dict[str, Any]:
        return {"prompts": self.prompts.names(), "resources": len(self.resources)}

    # ---- tools ----

    def register_tool(self, name: str, description: str, handler: ToolHandler) -> None:
        """Expose handler as an MCP tool and keep it for direct invocation."""
        self.mcp.tool(name=name, description=description)(handler)
        self.tools[name] = handler

    async def invoke_tool(self, name: str, params: dict[str, Any] | None = None) -> str:
        """
        Call a registered tool by name.

        Raises NotFoundError for unknown tools and InvalidParamsError when params
        do not fit the tool's signature. Synchronous tools run in a worker thread.
        """
        handler = self.tools.get(name)
        if handler is None:
            raise NotFoundError(f"Tool not found: {name}")
        try:
            bound = inspect.signature(handler).bind(**(params or {}))
        except TypeError as e:
            raise InvalidParamsError(str(e)) from None
        if inspect.iscoroutinefunction(handler):
            return await handler(*bound.args, **bound.kwargs)
        return await run_in_threadpool(handler, *bound.args, **bound.kwargs)

    def _register_core_tools(self) -> None:
        def get_api_key() -> str:
            return os.environ.get("API_KEY") or "API_KEY environment variable not set"

        def list_dynamic_prompts() -> str:
            return json.dumps(self.list_dynamic_prompts(), indent=2)

        async def reload_prompts() -> str:
            result = await run_in_threadpool(self.reload_prompts)
            return (
                f"Reloaded. Local newly registered: {result.local.count}. "
                f"Remote newly registered: {result.remote_count}"
            )

        def list_resources() -> str:
            return json.dumps(self.list_resources(), indent=2)

        async def reload_resources() -> str:
            result, exported = await run_in_threadpool(self.reload_resources)
            return (
                f"Resources reloaded. Newly registered: {result.count}. "
                f"Total: {result.total}. Exported as prompts: {exported.exported}. "
                f"Dir: {result.dir}"
            )

        def get_resource(name: str) -> str:
            try:
                entry, content = self.resource_loader.get_content(name)
            except (NotFoundError, OSError) as e:
                logger.warning("get_resource failed for '%s': %s", name, e)
                return f"Error: {e}"
            return f"# {name} (type: {entry.get('type')})\n\n{content}"

        def list_resource_prompts() -> str:
            return json.dumps(self.exporter.exported_names(), indent=2)

        self.register_tool("getApiKey", "Get the API key", get_api_key)
        self.register_tool(
            "list_dynamic_prompts",
            "List the names and source files of dynamically loaded markdown prompts",
            list_dynamic_prompts,
        )
        self.register_tool(
            "reload_prompts",
            "Reload markdown prompt files from the prompts directory and remote sources",
            reload_prompts,
        )
        self.register_tool(
            "list_resources", "List dynamically loaded resource files", list_resources
        )
        self.register_tool(
            "reload_resources",
            "Reload resource files from the resources directory",
            reload_resources,
        )
        self.register_tool(
            "get_resource", "Get content of a resource by name (filename slug)", get_resource
        )
        self.register_tool(
            "list_resource_prompts",
            "List prompt names generated automatically from resources",
            list_resource_prompts,
        )
