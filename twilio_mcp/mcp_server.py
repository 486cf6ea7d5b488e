"""
MCP server exposing the SMS tools to AI clients over stdio.

Tool handlers are synchronous (SQLite + Twilio SDK), so each call runs in a
worker thread to keep the protocol loop responsive.
"""

import asyncio
import logging

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from twilio_mcp import __version__
from twilio_mcp.tools import TOOLS, dispatch_tool

logger = logging.getLogger(__name__)

SERVER_NAME = "twilio-mcp"


class ToolCallError(Exception):
    """Raised from the call handler so the MCP layer reports an isError result."""


def build_server() -> Server:
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=spec.name, description=spec.description, inputSchema=spec.input_schema)
            for spec in TOOLS.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[types.TextContent]:
        result = await asyncio.to_thread(dispatch_tool, name, arguments)
        if result.is_error:
            # the low-level server wraps exceptions into CallToolResult(isError=True)
            raise ToolCallError(result.text)
        return [types.TextContent(type="text", text=result.text)]

    return server


async def run_stdio_server() -> None:
    server = build_server()
    async with stdio_server() as (read_stream, write_stream):
        logger.info("Twilio MCP server running on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
