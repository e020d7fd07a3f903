"""agent-browser-mcp — entry point.  Loads config and serves MCP over stdio."""

import asyncio
import sys

import logfire

from agent_browser_mcp.config import load_config
from agent_browser_mcp.logs import make_logger, set_level
from agent_browser_mcp.server import serve

# Logfire — sets up the OTEL TracerProvider; exports only if a token is present.
# console=False keeps it off stdout, which belongs to the MCP stream.
logfire.configure(send_to_logfire="if-token-present", console=False)

log = make_logger("agent_browser_mcp.main")


async def main() -> None:
    cfg = load_config()
    set_level(cfg.logging.level)
    log.info("starting %s %s", cfg.server.name, cfg.server.version)
    await serve(cfg)


def cli() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except Exception:
        log.exception("fatal error in MCP server")
        sys.exit(1)


if __name__ == "__main__":
    cli()
