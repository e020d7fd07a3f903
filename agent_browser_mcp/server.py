"""MCP server — lists the tool table and dispatches calls over stdio."""

from __future__ import annotations

from typing import Any

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from agent_browser_mcp import tools
from agent_browser_mcp.config import Config
from agent_browser_mcp.logs import make_logger
from agent_browser_mcp.runner import ProcessRunner

log = make_logger("agent_browser_mcp.server")


def create_server(cfg: Config, runner: ProcessRunner | None = None) -> Server:
    """Build the MCP server.  Pass ``runner`` to swap the process runner."""
    runner = runner or ProcessRunner(cfg.runner)
    server: Server = Server(cfg.server.name, version=cfg.server.version)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return tools.list_tools()

    # Arguments are checked against each tool's inputSchema before we get them;
    # anything raised here comes back to the client as an error result.
    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        return await tools.call_tool(runner, name, arguments)

    log.info(
        "server %s %s ready: %d tools, bin=%s",
        cfg.server.name, cfg.server.version, len(tools.TOOLS), runner.bin,
    )
    return server


async def serve(cfg: Config) -> None:
    """Run the server on stdin/stdout until the client disconnects."""
    server = create_server(cfg)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
