"""
Agent memory: an append-only action history with periodic summarization.

Each agent keeps a raw log of what it did. Every few ticks the clock asks the
oracle to condense that log into a short summary; the summary is appended to the
list of summaries and the raw log is cleared. The oracle is a black box here,
so this module only depends on an object exposing ``async generate(prompt)``.

Ordering semantics: summaries are kept oldest first and the raw log is always
newer than the last summary, so ``context()`` reads chronologically and ends with
the most recent known state.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Protocol

from pydantic import BaseModel, Field


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class MemoryEntry(BaseModel):
    """One remembered action."""

    tick: int = Field(..., ge=0)
    action: str
    context: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def render(self) -> str:
        line = f"[tick {self.tick}] {self.action}"
        if self.context:
            line += f" ({self.context})"
        return line


class MemoryLog(BaseModel):
    entries: List[MemoryEntry] = Field(default_factory=list)
    summaries: List[str] = Field(default_factory=list)

    def add(self, tick: int, action: str, context: str = "") -> MemoryEntry:
        entry = MemoryEntry(tick=tick, action=action, context=context)
        self.entries.append(entry)
        return entry

    def recent(self, limit: int = 5) -> List[MemoryEntry]:
        if limit <= 0:
            return []
        return self.entries[-limit:]

    @property
    def summary_text(self) -> str:
        return "\n\n".join(self.summaries)

    def context(self, recent_limit: int = 5) -> str:
        """Render summaries followed by the most recent raw entries."""
        sections: List[str] = []
        if self.summaries:
            sections.append("[Summarized memories]\n" + self.summary_text)
        recent = self.recent(recent_limit)
        if recent:
            sections.append("[Recent actions]\n" + "\n".join(entry.render() for entry in recent))
        return "\n\n".join(sections) or "No actions remembered yet."

    def replace_with_summary(self, summary: str) -> None:
        summary = summary.strip()
        if not summary:
            return
        self.summaries.append(summary)
        self.entries.clear()

    def collapse(self) -> str:
        """Return text suitable for a snapshot: summaries plus any unsummarized entries."""
        parts = list(self.summaries)
        if self.entries:
            parts.append("\n".join(entry.render() for entry in self.entries))
        return "\n\n".join(parts)

    @classmethod
    def from_summary(cls, text: str) -> "MemoryLog":
        text = (text or "").strip()
        return cls(summaries=[text] if text else [])


SUMMARY_PROMPT = (
    "Summarize the following action history of {name} in two or three sentences. "
    "Keep the most recent facts (where they are, what they hold, who they trust).\n\n"
    "{history}\n\nSummary:"
)


async def summarize_memory(memory: MemoryLog, oracle: TextGenerator, *, name: str = "the agent") -> bool:
    """Ask the oracle to condense ``memory``'s raw log.

    Returns True when a summary replaced the raw entries. Errors from the oracle
    propagate to the caller, which keeps the raw log intact.
    """

    if not memory.entries:
        return False
    history = "\n".join(entry.render() for entry in memory.entries)
    summary = await oracle.generate(SUMMARY_PROMPT.format(name=name, history=history))
    if not summary or not summary.strip():
        return False
    memory.replace_with_summary(summary)
    return True


__all__ = ["MemoryEntry", "MemoryLog", "TextGenerator", "summarize_memory", "SUMMARY_PROMPT"]
