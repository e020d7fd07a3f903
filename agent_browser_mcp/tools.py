"""Tool table — maps each MCP tool onto an agent-browser argv.

Every tool takes its own positional payload plus the shared global
options bundle.  Handlers turn a validated ``arguments`` dict into a
:class:`RunRequest`, hand it to the runner, and wrap the result as a
single text content item.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from mcp import types

from agent_browser_mcp.constants import ALLOWED_ROOT_COMMANDS, ERR_NOT_ALLOWED
from agent_browser_mcp.logs import make_logger
from agent_browser_mcp.models import RunRequest, RunResult, ToolGlobals
from agent_browser_mcp.runner import ProcessRunner
from agent_browser_mcp.tracing import get_tracer

log = make_logger("agent_browser_mcp.tools")
tracer = get_tracer("agent_browser_mcp.tools")

ArgvBuilder = Callable[[dict[str, Any]], list[str]]


GLOBAL_OPTION_PROPERTIES: dict[str, dict[str, Any]] = {
    "session": {"type": "string", "description": "Named browser session to use"},
    "cdp_port": {"type": "integer", "description": "Remote debugging (CDP) port"},
    "headed": {"type": "boolean", "description": "Show the browser window"},
    "debug": {"type": "boolean", "description": "Enable agent-browser debug output"},
    "executable_path": {"type": "string", "description": "Custom browser executable"},
    "json": {
        "type": "boolean",
        "description": "Request JSON output from the CLI",
        "default": True,
    },
    "timeout_ms": {"type": "integer", "description": "Kill the command after this many ms"},
    "save_output_path": {
        "type": "string",
        "description": "Relative path to write the full stdout to",
    },
}

_HEADERS_SCHEMA = {"type": "object", "additionalProperties": {"type": "string"}}


@dataclass(frozen=True)
class ToolSpec:
    """One row of the tool table."""
    name: str
    description: str
    build_argv: ArgvBuilder
    properties: dict[str, dict[str, Any]] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    restricted: bool = False            # first argv element must be allow-listed

    @property
    def input_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {**self.properties, **GLOBAL_OPTION_PROPERTIES},
        }
        if self.required:
            schema["required"] = list(self.required)
        return schema

    def to_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )


# ---------------------------------------------------------------------------
# argv builders
# ---------------------------------------------------------------------------

def _open_argv(args: dict[str, Any]) -> list[str]:
    argv = ["open", args["url"]]
    if args.get("headers"):
        argv.extend(["--headers", json.dumps(args["headers"])])
    return argv


def _snapshot_argv(args: dict[str, Any]) -> list[str]:
    argv = ["snapshot"]
    if args.get("selector"):
        argv.append(args["selector"])
    if args.get("interactive", True):
        argv.append("--interactive")
    if args.get("compact", True):
        argv.append("--compact")
    argv.extend(["--depth", _number(args.get("depth", 5))])
    return argv


def _fixed(*argv: str) -> ArgvBuilder:
    return lambda args: list(argv)


def _number(value: float | int) -> str:
    """Render a JSON number the way it was meant: 5.0 → "5"."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="agent_browser_open",
        description="Open a URL in the browser",
        properties={
            "url": {"type": "string"},
            "headers": _HEADERS_SCHEMA,
        },
        required=("url",),
        build_argv=_open_argv,
    ),
    ToolSpec(
        name="agent_browser_snapshot",
        description="Take a snapshot of the current page state",
        properties={
            "selector": {"type": "string"},
            "interactive": {"type": "boolean", "default": True},
            "compact": {"type": "boolean", "default": True},
            "depth": {"type": "integer", "default": 5},
        },
        build_argv=_snapshot_argv,
    ),
    ToolSpec(
        name="agent_browser_click",
        description="Click an element identified by a ref or selector",
        properties={"ref": {"type": "string"}},
        required=("ref",),
        build_argv=lambda args: ["click", args["ref"]],
    ),
    ToolSpec(
        name="agent_browser_fill",
        description="Fill an input element with a value",
        properties={"ref": {"type": "string"}, "value": {"type": "string"}},
        required=("ref", "value"),
        build_argv=lambda args: ["fill", args["ref"], args["value"]],
    ),
    ToolSpec(
        name="agent_browser_type",
        description="Type text into an element",
        properties={"ref": {"type": "string"}, "value": {"type": "string"}},
        required=("ref", "value"),
        build_argv=lambda args: ["type", args["ref"], args["value"]],
    ),
    ToolSpec(
        name="agent_browser_press",
        description="Press a key or combination of keys",
        properties={"key": {"type": "string"}},
        required=("key",),
        build_argv=lambda args: ["press", args["key"]],
    ),
    ToolSpec(
        name="agent_browser_back",
        description="Navigate back in history",
        build_argv=_fixed("back"),
    ),
    ToolSpec(
        name="agent_browser_forward",
        description="Navigate forward in history",
        build_argv=_fixed("forward"),
    ),
    ToolSpec(
        name="agent_browser_reload",
        description="Reload the current page",
        build_argv=_fixed("reload"),
    ),
    ToolSpec(
        name="agent_browser_close",
        description="Close the browser or page",
        build_argv=_fixed("close"),
    ),
    ToolSpec(
        name="agent_browser_session",
        description="Get the current session ID",
        build_argv=_fixed("session"),
    ),
    ToolSpec(
        name="agent_browser_session_list",
        description="List active sessions",
        build_argv=_fixed("session-list"),
    ),
    ToolSpec(
        name="agent_browser_connect",
        description="Connect to an existing CDP port",
        properties={"port": {"type": "integer"}},
        required=("port",),
        build_argv=lambda args: ["connect", _number(args["port"])],
    ),
    ToolSpec(
        name="agent_browser_set_headers",
        description="Set custom HTTP headers",
        properties={"headers": _HEADERS_SCHEMA},
        required=("headers",),
        build_argv=lambda args: ["set-headers", json.dumps(args["headers"])],
    ),
    ToolSpec(
        name="agent_browser_command",
        description="Run a raw agent-browser command (restricted)",
        properties={
            "argv": {"type": "array", "items": {"type": "string"}, "minItems": 1},
        },
        required=("argv",),
        build_argv=lambda args: list(args["argv"]),
        restricted=True,
    ),
)

TOOLS_BY_NAME: dict[str, ToolSpec] = {spec.name: spec for spec in TOOLS}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def list_tools() -> list[types.Tool]:
    return [spec.to_tool() for spec in TOOLS]


def not_allowed_result(command: str) -> types.CallToolResult:
    """Error payload for a passthrough command outside the allow-list."""
    payload = {
        "ok": False,
        "exitCode": -1,
        "stderr": f"{ERR_NOT_ALLOWED}: {command}",
        "isError": True,
    }
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=json.dumps(payload, indent=2))],
        isError=True,
    )


def to_call_result(result: RunResult) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=result.to_text())],
        isError=bool(result.is_error),
    )


def build_request(spec: ToolSpec, arguments: dict[str, Any]) -> RunRequest:
    """Map snake_case tool arguments onto a RunRequest."""
    globals_ = ToolGlobals.model_validate(arguments)
    return RunRequest(
        argv=spec.build_argv(arguments),
        options=globals_.to_options(),
        save_output_path=globals_.save_output_path,
    )


async def call_tool(
    runner: ProcessRunner, name: str, arguments: dict[str, Any]
) -> types.CallToolResult:
    """Run the named tool.

    Raises ValueError for unknown tools and InvalidInputError (from the
    runner) for requests that fail validation.
    """
    spec = TOOLS_BY_NAME.get(name)
    if spec is None:
        raise ValueError(f"Unknown tool: {name}")

    with tracer.start_as_current_span("tools.call", attributes={"tool": name}) as span:
        request = build_request(spec, arguments)
        if spec.restricted and request.argv and request.argv[0] not in ALLOWED_ROOT_COMMANDS:
            log.warning("rejected passthrough command %r", request.argv[0])
            span.set_attribute("rejected", True)
            return not_allowed_result(request.argv[0])

        result = await runner.run(request)
        span.set_attribute("ok", result.ok)
        return to_call_result(result)
