"""pydantic-ai integration — mount this server on an agent as a toolset."""

from __future__ import annotations

from pydantic_ai.mcp import MCPServerStdio

from agent_browser_mcp.config import Config


def create_agent_browser_server(cfg: Config) -> MCPServerStdio:
    """Build an MCPServerStdio that launches agent-browser-mcp.

    The child server gets the same agent-browser binary and working root
    as this process is configured with.
    """
    env = {
        "AGENT_BROWSER_BIN": cfg.runner.bin,
        "AGENT_BROWSER_WORKDIR": cfg.runner.working_root,
    }
    return MCPServerStdio(cfg.server.launch_command, args=[], env=env)
