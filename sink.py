"""
Bridge between the content registries and the MCP host.

Loaders never talk to FastMCP directly. They build a Renderable (what the entry
is and how to render it) and hand it to a PromptSink, which owns the host's
calling convention.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Literal, Protocol

from fastmcp import FastMCP
from fastmcp.prompts.prompt import Message, PromptMessage

logger = logging.getLogger(__name__)

# A rendered prompt is a list of {"role": ..., "content": ...} messages
Transcript = list[dict[str, str]]


@dataclass(frozen=True)
class Renderable:
    """An invokable entry: a prompt file, or a resource exported as a prompt."""

    kind: Literal["prompt", "resource"]
    name: str
    render: Callable[[str | None], Transcript]

    def __call__(self, context: str | None = None) -> Transcript:
        return self.render(context)


class PromptSink(Protocol):
    def register_prompt(self, name: str, description: str, renderable: Renderable) -> None:
        ...


class FastMCPSink:
    """Registers renderables as FastMCP prompts taking an optional `context` argument."""

    def __init__(self, mcp: FastMCP):
        self.mcp = mcp

    def register_prompt(self, name: str, description: str, renderable: Renderable) -> None:
        def prompt(context: str | None = None) -> list[PromptMessage]:
            return [Message(m["content"], role=m["role"]) for m in renderable(context)]

        self.mcp.prompt(name=name, description=description)(prompt)
        logger.debug("Registered %s prompt '%s'", renderable.kind, name)
