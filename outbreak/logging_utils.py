"""Logging utilities for Outbreak simulations.

Provides color-coded output to distinguish deterministic vs oracle-driven operations,
plus the structured log records that action handlers emit.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field


class Color(Enum):
    """ANSI color codes for terminal output."""

    # Colors for operation types
    BLUE = "\033[94m"      # Deterministic operations (rules, movement, decay)
    YELLOW = "\033[93m"    # Oracle calls (decisions, summaries)
    RED = "\033[91m"       # Errors and retries
    GREEN = "\033[92m"     # Success/completion
    CYAN = "\033[96m"      # Info/metadata
    MAGENTA = "\033[95m"   # Actions applied to the world

    # Formatting
    BOLD = "\033[1m"
    RESET = "\033[0m"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes if colors are enabled.

    Args:
        text: Text to colorize
        color: Color to apply
        bold: Whether to make text bold

    Returns:
        Colorized text if OUTBREAK_NO_COLOR is not set, otherwise plain text
    """
    if os.getenv("OUTBREAK_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def log_oracle(message: str) -> None:
    """Log an oracle operation (yellow)."""
    print(colored(message, Color.YELLOW))


def log_error(message: str) -> None:
    """Log an error or retry (red)."""
    print(colored(message, Color.RED))


def log_info(message: str) -> None:
    """Log metadata/info (cyan)."""
    print(colored(message, Color.CYAN))


# Markers for operation types (color-blind accessible)
LOG_TAG_DETERMINISTIC = "[•]"  # Deterministic operation
LOG_TAG_ORACLE = "[AI]"        # Oracle call
LOG_TAG_ERROR = "[!]"          # Error/retry
LOG_TAG_SUCCESS = "[✓]"        # Success
LOG_TAG_INFO = "[i]"           # Information


LOG_TYPES = ("system", "action", "error", "info", "debug")

_TYPE_STYLE = {
    "system": (Color.GREEN, LOG_TAG_SUCCESS),
    "action": (Color.MAGENTA, LOG_TAG_DETERMINISTIC),
    "error": (Color.RED, LOG_TAG_ERROR),
    "info": (Color.CYAN, LOG_TAG_INFO),
    "debug": (Color.BLUE, LOG_TAG_DETERMINISTIC),
}


class SimulationLog(BaseModel):
    """A single log entry emitted while a tick is processed."""

    type: str = Field(..., description="system, action, error, info or debug")
    message: str = Field(..., description="Human-readable description")
    tick: int = Field(0, ge=0, description="Tick during which the entry was written")
    agent_id: Optional[int] = Field(None, description="Agent the entry is about, if any")


class EventLog:
    """Collects SimulationLog entries and echoes them to the console.

    The clock hands one EventLog to every component, so a tick's full story can
    be read back with ``for_tick()`` and tests can assert on ``entries``.
    """

    def __init__(self, *, echo: bool | None = None, tick: int = 0) -> None:
        if echo is None:
            echo = not os.getenv("OUTBREAK_QUIET")
        self.echo = echo
        self.tick = tick
        self.entries: List[SimulationLog] = []

    def add(self, type: str, message: str, agent_id: Optional[int] = None) -> SimulationLog:
        if type not in LOG_TYPES:
            raise ValueError(f"Unknown log type '{type}'")
        entry = SimulationLog(type=type, message=message, tick=self.tick, agent_id=agent_id)
        self.entries.append(entry)
        if self.echo:
            color, tag = _TYPE_STYLE[type]
            print(colored(f"  {tag} {message}", color))
        return entry

    def system(self, message: str, agent_id: Optional[int] = None) -> SimulationLog:
        return self.add("system", message, agent_id)

    def action(self, message: str, agent_id: Optional[int] = None) -> SimulationLog:
        return self.add("action", message, agent_id)

    def error(self, message: str, agent_id: Optional[int] = None) -> SimulationLog:
        return self.add("error", message, agent_id)

    def info(self, message: str, agent_id: Optional[int] = None) -> SimulationLog:
        return self.add("info", message, agent_id)

    def debug(self, message: str, agent_id: Optional[int] = None) -> SimulationLog:
        return self.add("debug", message, agent_id)

    def for_tick(self, tick: int) -> List[SimulationLog]:
        return [entry for entry in self.entries if entry.tick == tick]

    def for_agent(self, agent_id: int) -> List[SimulationLog]:
        return [entry for entry in self.entries if entry.agent_id == agent_id]

    def messages(self, types: Iterable[str] | None = None) -> List[str]:
        wanted = set(types) if types is not None else None
        return [e.message for e in self.entries if wanted is None or e.type in wanted]

    def clear(self) -> None:
        self.entries.clear()
