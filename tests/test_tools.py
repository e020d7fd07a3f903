"""Unit tests for agent_browser_mcp.tools (mocked runner)."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_browser_mcp.config import RunnerConfig
from agent_browser_mcp.constants import ALLOWED_ROOT_COMMANDS
from agent_browser_mcp.models import GlobalOptions, Invocation, RunRequest, RunResult
from agent_browser_mcp.runner import InvalidInputError, ProcessRunner
from agent_browser_mcp.tools import (
    GLOBAL_OPTION_PROPERTIES,
    TOOLS,
    TOOLS_BY_NAME,
    build_request,
    call_tool,
    list_tools,
)


pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _ok_result(request: RunRequest) -> RunResult:
    return RunResult(
        ok=True,
        exit_code=0,
        signal=None,
        invoked=Invocation(bin="agent-browser", args=tuple(request.argv) + ("--json",)),
        stdout='{"ok":true}',
        stderr="",
        parsed_json={"ok": True},
        truncated=False,
    )


@pytest.fixture
def mock_runner() -> MagicMock:
    runner = MagicMock(spec=ProcessRunner)
    runner.run = AsyncMock(side_effect=_ok_result)
    return runner


def _argv(tool: str, **arguments) -> list[str]:
    return build_request(TOOLS_BY_NAME[tool], arguments).argv


def _payload(result) -> dict:
    assert len(result.content) == 1
    assert result.content[0].type == "text"
    return json.loads(result.content[0].text)


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

class TestToolTable:
    def test_names_unique(self):
        assert len(TOOLS_BY_NAME) == len(TOOLS)

    def test_every_tool_has_global_options(self):
        for tool in list_tools():
            props = tool.inputSchema["properties"]
            for key in GLOBAL_OPTION_PROPERTIES:
                assert key in props, f"{tool.name} missing {key}"

    def test_required_fields(self):
        schemas = {t.name: t.inputSchema for t in list_tools()}
        assert schemas["agent_browser_open"]["required"] == ["url"]
        assert schemas["agent_browser_fill"]["required"] == ["ref", "value"]
        assert "required" not in schemas["agent_browser_back"]
        assert schemas["agent_browser_command"]["properties"]["argv"]["minItems"] == 1

    def test_integer_fields_advertised_as_integer(self):
        schemas = {t.name: t.inputSchema for t in list_tools()}
        for tool in schemas.values():
            assert tool["properties"]["cdp_port"]["type"] == "integer"
            assert tool["properties"]["timeout_ms"]["type"] == "integer"
        assert schemas["agent_browser_connect"]["properties"]["port"]["type"] == "integer"
        assert schemas["agent_browser_snapshot"]["properties"]["depth"]["type"] == "integer"

    def test_expected_tools(self):
        assert set(TOOLS_BY_NAME) == {
            "agent_browser_open",
            "agent_browser_snapshot",
            "agent_browser_click",
            "agent_browser_fill",
            "agent_browser_type",
            "agent_browser_press",
            "agent_browser_back",
            "agent_browser_forward",
            "agent_browser_reload",
            "agent_browser_close",
            "agent_browser_session",
            "agent_browser_session_list",
            "agent_browser_connect",
            "agent_browser_set_headers",
            "agent_browser_command",
        }


class TestArgvBuilders:
    def test_open(self):
        assert _argv("agent_browser_open", url="https://example.com") == ["open", "https://example.com"]

    def test_open_with_headers(self):
        argv = _argv("agent_browser_open", url="https://x.test", headers={"X-A": "1"})
        assert argv[:3] == ["open", "https://x.test", "--headers"]
        assert json.loads(argv[3]) == {"X-A": "1"}

    def test_snapshot_defaults(self):
        assert _argv("agent_browser_snapshot") == [
            "snapshot", "--interactive", "--compact", "--depth", "5",
        ]

    def test_snapshot_custom(self):
        argv = _argv(
            "agent_browser_snapshot",
            selector="#main", interactive=False, compact=False, depth=2.0,
        )
        assert argv == ["snapshot", "#main", "--depth", "2"]

    def test_click_fill_type_press(self):
        assert _argv("agent_browser_click", ref="e3") == ["click", "e3"]
        assert _argv("agent_browser_fill", ref="e1", value="hi") == ["fill", "e1", "hi"]
        assert _argv("agent_browser_type", ref="e1", value="a b") == ["type", "e1", "a b"]
        assert _argv("agent_browser_press", key="Control+a") == ["press", "Control+a"]

    @pytest.mark.parametrize("tool,argv", [
        ("agent_browser_back", ["back"]),
        ("agent_browser_forward", ["forward"]),
        ("agent_browser_reload", ["reload"]),
        ("agent_browser_close", ["close"]),
        ("agent_browser_session", ["session"]),
        ("agent_browser_session_list", ["session-list"]),
    ])
    def test_no_argument_tools(self, tool, argv):
        assert _argv(tool) == argv

    def test_connect(self):
        assert _argv("agent_browser_connect", port=9222) == ["connect", "9222"]
        assert _argv("agent_browser_connect", port=9222.0) == ["connect", "9222"]

    def test_set_headers(self):
        argv = _argv("agent_browser_set_headers", headers={"Authorization": "Bearer t"})
        assert argv[0] == "set-headers"
        assert json.loads(argv[1]) == {"Authorization": "Bearer t"}

    def test_shell_metacharacters_passed_literally(self):
        assert _argv("agent_browser_fill", ref="e1", value="; rm -rf / $(id)") == [
            "fill", "e1", "; rm -rf / $(id)",
        ]


class TestBuildRequest:
    def test_globals_mapped(self):
        request = build_request(TOOLS_BY_NAME["agent_browser_click"], {
            "ref": "e3",
            "session": "s1",
            "cdp_port": 9222,
            "json": False,
            "timeout_ms": 500,
            "save_output_path": "out.json",
        })
        assert request.argv == ["click", "e3"]
        assert request.options == GlobalOptions(
            session="s1", cdp_port=9222, json_output=False, timeout_ms=500,
        )
        assert request.save_output_path == "out.json"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestCallTool:
    async def test_click_scenario(self, mock_runner):
        result = await call_tool(mock_runner, "agent_browser_click", {"ref": "e3"})

        mock_runner.run.assert_awaited_once()
        request = mock_runner.run.call_args.args[0]
        assert request.argv == ["click", "e3"]
        payload = _payload(result)
        assert payload["ok"] is True
        assert payload["exitCode"] == 0
        assert payload["parsedJson"] == {"ok": True}
        assert payload["truncated"] is False
        assert result.isError is False

    async def test_unknown_tool(self, mock_runner):
        with pytest.raises(ValueError, match="Unknown tool"):
            await call_tool(mock_runner, "agent_browser_reboot", {})
        mock_runner.run.assert_not_called()

    async def test_error_flag_propagates(self, mock_runner):
        inv = Invocation(bin="agent-browser", args=("back", "--json"))
        mock_runner.run = AsyncMock(return_value=RunResult.spawn_failure(inv, "ENOENT"))

        result = await call_tool(mock_runner, "agent_browser_back", {})
        assert result.isError is True
        assert _payload(result)["isError"] is True

    async def test_invalid_input_propagates(self, mock_runner):
        mock_runner.run = AsyncMock(side_effect=InvalidInputError("NUL byte detected in argument"))
        with pytest.raises(InvalidInputError):
            await call_tool(mock_runner, "agent_browser_click", {"ref": "e\0"})


class TestPassthrough:
    async def test_allowed_command_runs(self, mock_runner):
        result = await call_tool(
            mock_runner, "agent_browser_command",
            {"argv": ["evaluate", "document.title"], "save_output_path": "t.json"},
        )
        request = mock_runner.run.call_args.args[0]
        assert request.argv == ["evaluate", "document.title"]
        assert request.save_output_path == "t.json"
        assert _payload(result)["ok"] is True

    @pytest.mark.parametrize("command", ["reboot", "rm", "session-list", "OPEN", ""])
    async def test_disallowed_command_never_runs(self, mock_runner, command):
        result = await call_tool(mock_runner, "agent_browser_command", {"argv": [command, "x"]})

        mock_runner.run.assert_not_called()
        assert result.isError is True
        payload = _payload(result)
        assert payload["ok"] is False
        assert payload["exitCode"] == -1
        assert payload["isError"] is True
        assert "not allowed" in payload["stderr"]
        assert command in payload["stderr"]

    def test_allow_list(self):
        assert ALLOWED_ROOT_COMMANDS == {
            "open", "snapshot", "click", "fill", "type", "press", "connect",
            "session", "evaluate", "goto", "back", "forward", "refresh", "wait",
            "close", "reload", "headers", "set-headers",
        }

    async def test_disallowed_with_real_runner_spawns_nothing(self, tmp_path: Path, monkeypatch):
        runner = ProcessRunner(RunnerConfig(bin=sys.executable, working_root=str(tmp_path)))
        spawn = AsyncMock()
        monkeypatch.setattr("agent_browser_mcp.runner.asyncio.create_subprocess_exec", spawn)

        result = await call_tool(runner, "agent_browser_command", {"argv": ["reboot"]})

        spawn.assert_not_called()
        assert result.isError is True
