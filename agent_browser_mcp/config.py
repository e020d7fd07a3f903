"""Configuration — loads settings from config.toml + overrides from .env."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel

import tomllib
from dotenv import load_dotenv

from agent_browser_mcp.constants import (
    CHARACTER_LIMIT,
    DEFAULT_BIN,
    DEFAULT_TIMEOUT_MS,
    KILL_GRACE_MS,
    SERVER_NAME,
    SERVER_VERSION,
)

CONFIG_PATH = Path("config.toml")


class RunnerConfig(BaseModel):
    bin: str = DEFAULT_BIN                       # external CLI to spawn
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    kill_grace_ms: int = KILL_GRACE_MS           # SIGTERM → SIGKILL delay
    character_limit: int = CHARACTER_LIMIT       # per-stream output cap
    working_root: str = "."                      # base dir for save_output_path


class ServerConfig(BaseModel):
    name: str = SERVER_NAME
    version: str = SERVER_VERSION
    launch_command: str = "agent-browser-mcp"    # used by the pydantic-ai client helper


class LoggingConfig(BaseModel):
    level: str = "INFO"


class Config(BaseModel):
    runner: RunnerConfig = RunnerConfig()
    server: ServerConfig = ServerConfig()
    logging: LoggingConfig = LoggingConfig()


# Map of ENV_VAR -> (config section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "AGENT_BROWSER_BIN": ("runner", "bin"),
    "AGENT_BROWSER_WORKDIR": ("runner", "working_root"),
    "AGENT_BROWSER_MCP_LOG_LEVEL": ("logging", "level"),
}


def load_config(path: Path = CONFIG_PATH) -> Config:
    """Load .env into the environment, then config.toml, then env overrides.

    Env vars always win so a deployment can repoint the binary without
    touching the TOML file.
    """
    load_dotenv()

    if path.exists():
        data = tomllib.loads(path.read_text())
    else:
        data = {}

    for env_var, (section, field) in _ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            data.setdefault(section, {})[field] = value

    return Config(**data)
