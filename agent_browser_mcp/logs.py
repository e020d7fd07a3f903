"""Colored stderr logging.

stdout carries the MCP JSON-RPC stream, so every handler here writes to
stderr.
"""

from __future__ import annotations

import logging

_COLORS = {
    "DEBUG":    "\033[36m",    # cyan
    "INFO":     "\033[34m",    # blue
    "WARNING":  "\033[33m",    # yellow
    "ERROR":    "\033[31m",    # red
    "CRITICAL": "\033[1;31m",  # bold red
}
_RESET = "\033[0m"


class ColorFormatter(logging.Formatter):
    """Compact colored formatter for terminal output."""

    def format(self, record: logging.LogRecord) -> str:
        color = _COLORS.get(record.levelname, "")
        ts = self.formatTime(record, "%H:%M:%S")
        return f"{color}{ts} [{record.name}] {record.getMessage()}{_RESET}"


def make_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()  # defaults to sys.stderr
        handler.setFormatter(ColorFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
    return logger


def set_level(level: str) -> None:
    """Apply a configured level name to every logger made by make_logger."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level {level!r}")
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith("agent_browser_mcp") and isinstance(logger, logging.Logger):
            logger.setLevel(numeric)
