"""Fixed names, limits and the passthrough allow-list."""

from __future__ import annotations

SERVER_NAME = "agent-browser-mcp-server"
SERVER_VERSION = "1.0.0"

DEFAULT_BIN = "agent-browser"
CHARACTER_LIMIT = 25_000
DEFAULT_TIMEOUT_MS = 60_000
KILL_GRACE_MS = 5_000

TRUNCATION_MARKER = "...[truncated]"

# Sub-commands the raw passthrough tool may invoke.
ALLOWED_ROOT_COMMANDS = frozenset({
    "open",
    "snapshot",
    "click",
    "fill",
    "type",
    "press",
    "connect",
    "session",
    "evaluate",
    "goto",
    "back",
    "forward",
    "refresh",
    "wait",
    "close",
    "reload",
    "headers",
    "set-headers",
})

ERR_NOT_ALLOWED = "Command not allowed"
ERR_TIMEOUT = "Command timed out"
ERR_INVALID_INPUT = "Invalid input"
