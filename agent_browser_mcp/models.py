"""Request/result records exchanged between the tool layer and the runner."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GlobalOptions(BaseModel):
    """Flags shared by every agent-browser sub-command."""
    model_config = ConfigDict(frozen=True)

    session: str | None = None
    cdp_port: int | None = None
    headed: bool | None = None
    debug: bool | None = None
    executable_path: str | None = None
    json_output: bool | None = None     # None and True both request --json
    timeout_ms: int | None = None


class RunRequest(BaseModel):
    """One CLI invocation, built per tool call and consumed immediately."""
    model_config = ConfigDict(frozen=True)

    argv: list[str]
    options: GlobalOptions | None = None
    save_output_path: str | None = None


class Invocation(BaseModel):
    """The binary and final argument list actually handed to the OS."""
    model_config = ConfigDict(frozen=True)

    bin: str
    args: tuple[str, ...]


class RunResult(BaseModel):
    """Outcome of a single run.

    Serialized with camel-case keys (``exitCode``, ``parsedJson`` …) since
    that is the shape tool callers receive.  ``saved_output_path`` and
    ``is_error`` are left out of the payload when unset.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    ok: bool
    exit_code: int | None
    signal: str | None
    invoked: Invocation
    stdout: str
    stderr: str
    parsed_json: Any = None
    truncated: bool = False
    saved_output_path: str | None = None
    is_error: bool | None = None

    @classmethod
    def spawn_failure(cls, invoked: Invocation, message: str) -> RunResult:
        """Result for a process that could not be started at all."""
        return cls(
            ok=False,
            exit_code=None,
            signal=None,
            invoked=invoked,
            stdout="",
            stderr=message,
            parsed_json=None,
            truncated=False,
            is_error=True,
        )

    def to_payload(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, mode="json")
        for optional in ("savedOutputPath", "isError"):
            if data.get(optional) is None:
                data.pop(optional, None)
        return data

    def to_text(self) -> str:
        return json.dumps(self.to_payload(), indent=2)


class ToolGlobals(BaseModel):
    """Snake-case global options as they arrive in a tool call."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session: str | None = None
    cdp_port: int | None = None
    headed: bool | None = None
    debug: bool | None = None
    executable_path: str | None = None
    json_output: bool | None = Field(default=None, alias="json")
    timeout_ms: int | None = None
    save_output_path: str | None = None

    def to_options(self) -> GlobalOptions:
        return GlobalOptions(
            session=self.session,
            cdp_port=self.cdp_port,
            headed=self.headed,
            debug=self.debug,
            executable_path=self.executable_path,
            json_output=self.json_output,
            timeout_ms=self.timeout_ms,
        )
