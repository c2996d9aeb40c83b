"""
Logger Utility
==============

Leveled, color-coded logging for the agent runtime.

Every component creates its own context logger so a trace through one
turn reads like this:

    [2026-10-19T10:30:00] [INFO] [Agent] Turn started (42 chars)
    [2026-10-19T10:30:01] [INFO] [ToolExecutor] Executing tool: file_read
    [2026-10-19T10:30:02] [INFO] [Agent] Turn finished after 2 round-trips

All records go to stderr. Stdout belongs to the conversation itself: the
entry point prints streamed assistant tokens there, and log lines mixed
into that stream would corrupt it.

Usage:
    from dinoe.utils.logger import Logger

    logger = Logger("Provider")
    logger.debug("Sending request", {"model": "gpt-4o", "messages": 7})
"""

import json
import os
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any, TextIO


class LogLevel(IntEnum):
    """Numeric levels; a record is shown when its level >= the threshold."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes for colored terminal output."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    DIM = "\033[2m"


_LEVEL_NAMES = {
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,
    "ERROR": LogLevel.ERROR,
}


def parse_log_level(value: str | None) -> LogLevel:
    """
    Parse a level name such as "debug" or "WARN".

    Unknown or empty values fall back to INFO.
    """
    if not value:
        return LogLevel.INFO
    return _LEVEL_NAMES.get(value.strip().upper(), LogLevel.INFO)


_default_level: LogLevel | None = None


def set_default_level(level: LogLevel | str | None) -> None:
    """
    Set the threshold of every logger without its own override.

    None goes back to reading LOG_LEVEL from the environment.
    """
    global _default_level
    _default_level = parse_log_level(level) if isinstance(level, str) else level


def default_level() -> LogLevel:
    if _default_level is not None:
        return _default_level
    return parse_log_level(os.getenv("LOG_LEVEL"))


class Logger:
    """
    A context-aware logger with colored output.

    Example:
        logger = Logger("Agent")
        logger.info("Turn started")

        guard_logger = logger.child("LoopGuard")
        guard_logger.warning("Repeated call", {"tool": "shell", "count": 4})
        # -> [WARN] [Agent:LoopGuard] Repeated call
    """

    def __init__(self, context: str = "", stream: TextIO | None = None):
        """
        Initialize a logger.

        Args:
            context: Prefix shown on every record (e.g. "Agent", "Provider")
            stream: Output stream, defaults to sys.stderr at write time
        """
        self.context = context
        self._stream = stream
        # None follows default_level()
        self._min_level: LogLevel | None = None

    def child(self, child_context: str) -> "Logger":
        """Create a logger whose context is nested under this one."""
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        child = Logger(new_context, self._stream)
        child._min_level = self._min_level
        return child

    @property
    def level(self) -> LogLevel:
        return self._min_level if self._min_level is not None else default_level()

    def set_level(self, level: LogLevel | str) -> None:
        """Override the process-wide threshold for this logger only."""
        self._min_level = parse_log_level(level) if isinstance(level, str) else level

    def _format_message(self, level: str, message: str, color: str) -> str:
        """Output format: [TIMESTAMP] [LEVEL] [context] message"""
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""

        return (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{color}[{level}]{Colors.RESET} "
            f"{context_str}{message}"
        )

    def _log(
        self,
        level: LogLevel,
        level_name: str,
        color: str,
        message: str,
        data: dict[str, Any] | None = None
    ) -> None:
        if level < self.level:
            return

        stream = self._stream or sys.stderr
        print(self._format_message(level_name, message, color), file=stream)

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            print(f"{Colors.DIM}{data_str}{Colors.RESET}", file=stream)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Detailed tracing: request sizes, fragments, fingerprints."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Normal operation: turns, rounds, tool executions."""
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Recovered problems: tool failures, loops, iteration limit."""
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(self, message: str, error: Exception | None = None) -> None:
        """
        Log an error, optionally with the exception that caused it.

        Args:
            message: The error message
            error: Exception whose type and text are attached as data
        """
        data = None
        if error:
            data = {
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
            kind = getattr(error, "kind", None)
            if kind is not None:
                data["error_kind"] = getattr(kind, "value", str(kind))
        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, data)
