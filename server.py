"""
Prompt MCP Server.

Loads markdown prompts (local and from remote git sources) and resource files
from disk, exposes them as MCP prompts and tools, and serves a small HTTP/SSE
front end for reloading, listing and invoking tools remotely.
"""

import argparse
import asyncio
import json
import logging
import os
from typing import Any

from fastmcp import FastMCP
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from auth import CLI_DISABLE_FLAGS, AuthConfig, unauthorized, validate_request
from registry import NotFoundError
from remote_sources import Fetcher
from service import ContentService, InvalidParamsError
from settings import Settings
from sink import PromptSink

# Logging: level from env (default INFO)
_log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, _log_level, logging.INFO))
logger = logging.getLogger(__name__)

SSE_RETRY_MS = 10000
SSE_KEEPALIVE_SECONDS = 15.0


def sse_message(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


class EventBroadcaster:
    """Fan-out of SSE messages to every connected /events client."""

    def __init__(self):
        self._clients: set[asyncio.Queue[str]] = set()

    def subscribe(self) -> "asyncio.Queue[str]":
        queue: asyncio.Queue[str] = asyncio.Queue()
        self._clients.add(queue)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[str]") -> None:
        self._clients.discard(queue)

    def publish(self, event: str, data: dict[str, Any]) -> None:
        message = sse_message(event, {"type": event, **data})
        for queue in list(self._clients):
            queue.put_nowait(message)

    def __len__(self) -> int:
        return len(self._clients)


def http_routes(
    service: ContentService, auth_config: AuthConfig, events: EventBroadcaster
) -> list[Route]:
    """HTTP front end over the content service. All routes require auth."""

    def denied(request: Request) -> Response | None:
        result = validate_request(request, auth_config)
        if result.ok:
            return None
        logger.info("Rejected %s %s: %s", request.method, request.url.path, result.message)
        return unauthorized(result)

    async def event_stream(request: Request) -> Response:
        """SSE stream: hello with the current state, then reload/tool events."""
        rejection = denied(request)
        if rejection is not None:
            return rejection
        queue = events.subscribe()

        async def stream():
            try:
                yield f"retry: {SSE_RETRY_MS}\n\n"
                yield sse_message("hello", service.hello())
                while not await request.is_disconnected():
                    try:
                        message = await asyncio.wait_for(queue.get(), SSE_KEEPALIVE_SECONDS)
                    except asyncio.TimeoutError:
                        yield ": keepalive\n\n"
                        continue
                    yield message
            finally:
                events.unsubscribe(queue)

        return StreamingResponse(
            stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    async def reload_prompts(request: Request) -> Response:
        rejection = denied(request)
        if rejection is not None:
            return rejection
        result = (await run_in_threadpool(service.reload_prompts)).to_dict()
        events.publish("reload_prompts", {"result": result})
        return JSONResponse(result)

    async def reload_resources(request: Request) -> Response:
        rejection = denied(request)
        if rejection is not None:
            return rejection
        result, exported = await run_in_threadpool(service.reload_resources)
        body = {"result": result.to_dict(), "exported": exported.exported}
        events.publish("reload_resources", body)
        return JSONResponse(body)

    async def list_dynamic_prompts(request: Request) -> Response:
        rejection = denied(request)
        if rejection is not None:
            return rejection
        return JSONResponse(service.list_dynamic_prompts())

    async def list_resources(request: Request) -> Response:
        rejection = denied(request)
        if rejection is not None:
            return rejection
        return JSONResponse(service.list_resources())

    async def invoke_tool(request: Request) -> Response:
        """Invoke a tool by name with the JSON body as its parameters."""
        rejection = denied(request)
        if rejection is not None:
            return rejection
        name = request.path_params["name"]
        body = await request.body()
        try:
            params = json.loads(body) if body else {}
        except ValueError:
            return JSONResponse({"error": "invalid json body"}, status_code=400)
        if not isinstance(params, dict):
            return JSONResponse({"error": "json body must be an object"}, status_code=400)
        try:
            text = await service.invoke_tool(name, params)
        except NotFoundError as e:
            return JSONResponse({"error": str(e)}, status_code=404)
        except InvalidParamsError as e:
            return JSONResponse({"error": f"invalid parameters: {e}"}, status_code=400)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.exception("Tool '%s' failed", name)
            return JSONResponse({"error": str(e)}, status_code=500)
        result = {"content": [{"type": "text", "text": text}]}
        events.publish("tool_result", {"tool": name, "result": result})
        return JSONResponse(result)

    return [
        Route("/events", event_stream, methods=["GET"]),
        Route("/reload_prompts", reload_prompts, methods=["POST"]),
        Route("/reload_resources", reload_resources, methods=["POST"]),
        Route("/list_dynamic_prompts", list_dynamic_prompts, methods=["GET"]),
        Route("/list_resources", list_resources, methods=["GET"]),
        Route("/tool/{name}", invoke_tool, methods=["POST"]),
    ]


def create_server(
    settings: Settings,
    auth_config: AuthConfig,
    sink: PromptSink | None = None,
    fetcher: Fetcher | None = None,
) -> tuple[FastMCP, ContentService]:
    """Build the FastMCP app, its content service and the HTTP routes."""
    mcp = FastMCP(
        "PromptMCP",
        instructions=(
            "Dynamic prompts loaded from markdown files, plus resource files "
            "(markdown, text, json). Use list_dynamic_prompts and list_resources to "
            "discover them, get_resource to read one, and reload_prompts / "
            "reload_resources after the files change."
        ),
    )
    service = ContentService(settings, mcp, sink=sink, fetcher=fetcher)
    events = EventBroadcaster()

    @mcp.custom_route("/health", methods=["GET"])
    async def health(_request: Request) -> Response:
        """Health check for load balancers and k8s probes."""
        return JSONResponse({"status": "ok", "auth": auth_config.status()})

    for route in http_routes(service, auth_config, events):
        mcp.custom_route(route.path, methods=sorted(route.methods - {"HEAD"}))(route.endpoint)
    return mcp, service


def main(argv: list[str] | None = None) -> None:
    """Entry point for the prompt-mcp CLI."""
    parser = argparse.ArgumentParser(description="Serve markdown prompts and resources over MCP.")
    parser.add_argument(
        *CLI_DISABLE_FLAGS, dest="no_auth", action="store_true", help="disable HTTP auth"
    )
    parser.add_argument("--transport", choices=["http", "stdio"], default=None)
    parser.add_argument("--host", default=os.environ.get("MCP_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    auth_config = AuthConfig.from_env(disabled=args.no_auth)
    mcp, service = create_server(settings, auth_config)
    service.load_initial()

    transport = args.transport or settings.transport
    if transport == "http":
        port = args.port or settings.port
        logger.info(
            "HTTP/SSE listening on http://%s:%s (auth %s)",
            args.host,
            port,
            "enabled" if auth_config.enabled else "disabled",
        )
        mcp.run(transport="http", host=args.host, port=port)
    else:
        mcp.run()


if __name__ == "__main__":
    main()
