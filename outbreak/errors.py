"""Exception types raised by the decision pipeline.

Only oracle and decision failures are exceptions. Failed actions (moving to an
unknown place, attacking without a weapon, giving an item the agent does not
hold) are steady-state events and are reported through log records instead.
"""

from __future__ import annotations

from typing import Sequence


class OracleError(RuntimeError):
    """Raised when the decision oracle cannot produce a completion.

    Covers network failures, timeouts, non-success HTTP statuses and empty
    completions. The clock treats it as a per-agent failure for the tick.
    """


class DecisionError(ValueError):
    """Raised when an oracle response cannot be turned into a valid action.

    The raw oracle text is retained so the failure can be diagnosed after the
    fact; ``issues`` lists every validation problem that was found.
    """

    def __init__(
        self,
        message: str,
        *,
        raw_text: str = "",
        issues: Sequence[str] = (),
    ) -> None:
        self.raw_text = raw_text
        self.issues = list(issues)
        details = [message]
        details.extend(f"  - {issue}" for issue in self.issues)
        super().__init__("\n".join(details))


__all__ = ["OracleError", "DecisionError"]
