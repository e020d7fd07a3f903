"""Process runner — spawns the agent-browser CLI and reports on it.

One call to :meth:`ProcessRunner.run` spawns exactly one child process.
Each run walks through::

    SPAWNED → RUNNING → (TIMEOUT_SIGNALED) → EXITED → FINALIZED

On timeout the child gets SIGTERM, then SIGKILL if it is still around
after the grace period.  Whatever happens after spawn (non-zero exit,
signals, timeouts, unparseable output, a failed output save) ends up in
the returned :class:`RunResult`.  Only malformed requests raise, and they
raise before anything is spawned.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import os
import signal
import time
from enum import Enum
from pathlib import Path
from typing import Any

from agent_browser_mcp.config import RunnerConfig
from agent_browser_mcp.constants import (
    ERR_INVALID_INPUT,
    ERR_TIMEOUT,
    TRUNCATION_MARKER,
)
from agent_browser_mcp.logs import make_logger
from agent_browser_mcp.models import GlobalOptions, Invocation, RunRequest, RunResult
from agent_browser_mcp.tracing import get_tracer

log = make_logger("agent_browser_mcp.runner")
tracer = get_tracer("agent_browser_mcp.runner")

_READ_CHUNK = 64 * 1024


class InvalidInputError(ValueError):
    """A request was rejected before any process was spawned."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"{ERR_INVALID_INPUT}: {reason}")
        self.reason = reason


# ---------------------------------------------------------------------------
# Validation + argument assembly
# ---------------------------------------------------------------------------

def validate_request(request: RunRequest) -> None:
    """Raise InvalidInputError for argv or save paths we refuse to run."""
    if not request.argv:
        raise InvalidInputError("empty argument vector")
    for arg in request.argv:
        if "\0" in arg:
            raise InvalidInputError("NUL byte detected in argument")
    # String options end up in the child's argv too.
    opts = request.options
    if opts:
        for name in ("session", "executable_path"):
            value = getattr(opts, name)
            if value and "\0" in value:
                raise InvalidInputError(f"NUL byte detected in {name} option")

    path = request.save_output_path
    if path:
        if "\0" in path:
            raise InvalidInputError("NUL byte in output path")
        if os.path.isabs(path):
            raise InvalidInputError("absolute paths not allowed for output")
        # Any ".." left after normalization is rejected, even inside a name.
        if ".." in os.path.normpath(path):
            raise InvalidInputError("path traversal not allowed")


def build_args(argv: list[str], options: GlobalOptions | None = None) -> list[str]:
    """Append global flags to argv in a fixed order."""
    opts = options or GlobalOptions()
    args = list(argv)
    if opts.session:
        args.extend(["--session", opts.session])
    if opts.cdp_port is not None:
        args.extend(["--cdp-port", str(opts.cdp_port)])
    if opts.headed:
        args.append("--headed")
    if opts.debug:
        args.append("--debug")
    if opts.executable_path:
        args.extend(["--executable-path", opts.executable_path])
    if opts.json_output is not False and "--json" not in args:
        args.append("--json")
    return args


# ---------------------------------------------------------------------------
# Per-run state
# ---------------------------------------------------------------------------

class RunState(str, Enum):
    SPAWNED = "spawned"
    RUNNING = "running"
    TIMEOUT_SIGNALED = "timeout_signaled"
    EXITED = "exited"
    FINALIZED = "finalized"


class _StreamCapture:
    """Accumulates one pipe as text, decoding UTF-8 across chunk borders."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._parts: list[str] = []

    async def pump(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            self._parts.append(self._decoder.decode(chunk))
        self._parts.append(self._decoder.decode(b"", final=True))

    def text(self) -> str:
        return "".join(self._parts)


class _Execution:
    """Owns one child process, its timer and its output buffers."""

    def __init__(self, proc: asyncio.subprocess.Process) -> None:
        self.proc = proc
        self.state = RunState.SPAWNED
        self.timed_out = False
        self.stdout = _StreamCapture()
        self.stderr = _StreamCapture()

    def advance(self, state: RunState) -> None:
        if self.state is RunState.FINALIZED:
            raise RuntimeError(f"run for pid {self.proc.pid} already finalized")
        log.debug("pid %s: %s → %s", self.proc.pid, self.state.value, state.value)
        self.state = state

    async def wait(self, timeout_s: float, grace_s: float) -> None:
        """Wait for exit and closed pipes, escalating signals on timeout."""
        self.advance(RunState.RUNNING)
        closed = asyncio.ensure_future(self._closed())
        try:
            try:
                await asyncio.wait_for(asyncio.shield(closed), timeout=timeout_s)
            except asyncio.TimeoutError:
                self.timed_out = True
                self.advance(RunState.TIMEOUT_SIGNALED)
                await self._escalate(closed, grace_s)
            await closed
        except asyncio.CancelledError:
            self._signal(signal.SIGKILL)
            raise
        self.advance(RunState.EXITED)

    async def _closed(self) -> int:
        await asyncio.gather(
            self.stdout.pump(self.proc.stdout),
            self.stderr.pump(self.proc.stderr),
        )
        return await self.proc.wait()

    async def _escalate(self, closed: asyncio.Future, grace_s: float) -> None:
        log.warning("pid %s timed out, sending SIGTERM", self.proc.pid)
        self._signal(signal.SIGTERM)
        try:
            await asyncio.wait_for(asyncio.shield(closed), timeout=grace_s)
        except asyncio.TimeoutError:
            log.warning("pid %s survived SIGTERM, sending SIGKILL", self.proc.pid)
            self._signal(signal.SIGKILL)

    def _signal(self, sig: signal.Signals) -> None:
        if self.proc.returncode is not None:
            return
        try:
            if sig == signal.SIGKILL:
                self.proc.kill()
            else:
                self.proc.terminate()
        except ProcessLookupError:
            pass  # exited between the check and the signal


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class ProcessRunner:
    """Runs agent-browser sub-commands as child processes."""

    def __init__(self, cfg: RunnerConfig) -> None:
        self.bin = cfg.bin
        self.default_timeout_ms = cfg.default_timeout_ms
        self.kill_grace_ms = cfg.kill_grace_ms
        self.character_limit = cfg.character_limit
        self.working_root = Path(cfg.working_root).resolve()

    def build_invocation(self, request: RunRequest) -> Invocation:
        return Invocation(bin=self.bin, args=tuple(build_args(request.argv, request.options)))

    def timeout_ms_for(self, options: GlobalOptions | None) -> int:
        if options and options.timeout_ms and options.timeout_ms > 0:
            return options.timeout_ms
        return self.default_timeout_ms

    async def run(self, request: RunRequest) -> RunResult:
        """Validate, spawn, observe and report on one CLI invocation.

        Raises:
            InvalidInputError: argv or save path failed validation.  No
                process is spawned in that case.
        """
        validate_request(request)
        invocation = self.build_invocation(request)
        timeout_ms = self.timeout_ms_for(request.options)

        with tracer.start_as_current_span(
            "runner.run",
            attributes={"command": request.argv[0], "timeout_ms": timeout_ms},
        ) as span:
            log.info("→ %s %s", invocation.bin, " ".join(invocation.args))
            started = time.monotonic()
            try:
                proc = await asyncio.create_subprocess_exec(
                    invocation.bin,
                    *invocation.args,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env={**os.environ, "NO_COLOR": "1"},
                )
            except OSError as e:
                log.error("failed to spawn %s: %s", invocation.bin, e)
                span.set_attribute("error", str(e))
                return RunResult.spawn_failure(invocation, str(e))

            execution = _Execution(proc)
            await execution.wait(timeout_ms / 1000, self.kill_grace_ms / 1000)
            result = await self._finalize(execution, invocation, request.save_output_path)

            span.set_attribute("ok", result.ok)
            span.set_attribute("timed_out", execution.timed_out)
            span.set_attribute("truncated", result.truncated)
            if result.exit_code is not None:
                span.set_attribute("exit_code", result.exit_code)
            if result.signal:
                span.set_attribute("signal", result.signal)
            log.info(
                "← %s exit=%s signal=%s ok=%s (%.0f ms)",
                request.argv[0], result.exit_code, result.signal, result.ok,
                (time.monotonic() - started) * 1000,
            )
            return result

    async def _finalize(
        self,
        execution: _Execution,
        invocation: Invocation,
        save_output_path: str | None,
    ) -> RunResult:
        execution.advance(RunState.FINALIZED)
        stdout = execution.stdout.text()
        stderr = execution.stderr.text()

        saved_path = None
        if save_output_path:
            target = self.working_root / save_output_path
            try:
                await asyncio.to_thread(target.write_text, stdout, encoding="utf-8")
                saved_path = save_output_path
            except OSError as e:
                log.warning("could not save output to %s: %s", target, e)
                stderr += f"\nFailed to save output: {e}"

        parsed, is_json = parse_json(stdout)

        limit = self.character_limit
        truncated = False
        if not is_json and len(stdout) > limit:
            stdout = stdout[:limit] + TRUNCATION_MARKER
            truncated = True
        if len(stderr) > limit:
            stderr = stderr[:limit] + TRUNCATION_MARKER
        if execution.timed_out:
            stderr = f"{stderr}\n{ERR_TIMEOUT}"

        exit_code, sig = exit_status(execution.proc.returncode)
        return RunResult(
            ok=exit_code == 0 and not execution.timed_out,
            exit_code=exit_code,
            signal=sig,
            invoked=invocation,
            stdout=stdout,
            stderr=stderr,
            parsed_json=parsed,
            truncated=truncated,
            saved_output_path=saved_path,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def parse_json(stdout: str) -> tuple[Any, bool]:
    """Parse the whole trimmed stdout as one JSON value.

    Returns ``(value, True)`` on success and ``(None, False)`` otherwise.
    NaN and Infinity are not JSON and count as a parse failure.
    """
    text = stdout.strip()
    if not text:
        return None, False
    try:
        return json.loads(text, parse_constant=_reject_constant), True
    except (ValueError, RecursionError):
        return None, False


def exit_status(returncode: int | None) -> tuple[int | None, str | None]:
    """Split asyncio's returncode into (exit code, signal name)."""
    if returncode is None:
        return None, None
    if returncode < 0:
        try:
            return None, signal.Signals(-returncode).name
        except ValueError:
            return None, f"SIG{-returncode}"
    return returncode, None
