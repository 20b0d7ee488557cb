"""MCP tool loading and tool-result inspection."""

import json
import logging
from collections.abc import Sequence
from typing import Any

from langchain_core.messages import ToolMessage
from langchain_core.tools import BaseTool

from zapchat.configs.system import ToolsConfig

logger = logging.getLogger(__name__)

MCP_TRANSPORT_SSE = "sse"


async def load_mcp_tools(config: ToolsConfig) -> list[BaseTool]:
    """Fetch tools from the configured MCP server.

    Returns ``[]`` when no server is configured or the server cannot be
    reached, so the bot keeps working as a plain chat model.
    """
    if not config.mcp_server_url:
        return []

    from langchain_mcp_adapters.client import MultiServerMCPClient

    client = MultiServerMCPClient(
        {
            config.mcp_server_name: {
                "transport": MCP_TRANSPORT_SSE,
                "url": config.mcp_server_url,
            }
        }
    )
    try:
        tools = await client.get_tools()
    except Exception:
        logger.warning(
            "Failed to load tools from MCP server %s", config.mcp_server_url,
            exc_info=True,
        )
        return []

    for tool in tools:
        logger.info("Loaded MCP tool %s: %s", tool.name, tool.description or "-")
    return list(tools)


def _payloads(content: Any) -> list[Any]:
    """Structured payloads found in a tool result's content."""
    if isinstance(content, dict):
        return [content]
    if isinstance(content, str):
        try:
            return [json.loads(content)]
        except json.JSONDecodeError:
            return []
    if isinstance(content, list):
        found: list[Any] = []
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                found.extend(_payloads(block.get("text", "")))
            else:
                found.extend(_payloads(block))
        return found
    return []


def _find_id(payload: Any, keys: Sequence[str]) -> str | None:
    if isinstance(payload, list):
        for entry in payload:
            if (found := _find_id(entry, keys)) is not None:
                return found
        return None
    if not isinstance(payload, dict):
        return None
    for key in keys:
        value = payload.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return str(value)
    for value in payload.values():
        if isinstance(value, (dict, list)):
            if (found := _find_id(value, keys)) is not None:
                return found
    return None


def extract_item_id(message: ToolMessage, keys: Sequence[str]) -> str | None:
    """Return the first item id found in *message*'s structured content.

    Keys are tried in order at each level before descending into nested
    objects; non-JSON content yields ``None``.
    """
    for payload in _payloads(message.content):
        if (found := _find_id(payload, keys)) is not None:
            return found
    return None
