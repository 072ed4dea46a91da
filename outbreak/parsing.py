"""Turn raw oracle text into a validated ActionResponse.

Oracle replies are free text that is supposed to contain one JSON object. We
look for it in two places, in order:

1. a fenced code block (```json ... ``` or bare ``` ... ```)
2. the first balanced ``{ ... }`` span anywhere in the text

The first candidate that decodes to a JSON object wins. It is then validated
strictly against ``ActionResponse``; anything missing or malformed becomes a
``DecisionError`` carrying the raw text and a list of human-readable issues.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Sequence

from pydantic import ValidationError

from outbreak.errors import DecisionError
from outbreak.schemas import ActionResponse, ActionType

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


@dataclass(slots=True)
class ValidationFeedback:
    """Structured feedback for retrying a rejected oracle response."""

    llm_text: str
    issues: Sequence[str]


def _truncate_preview(value: Any, *, limit: int = 80) -> str:
    if value is None:
        return "null"
    text = repr(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def _balanced_spans(text: str) -> Iterator[str]:
    """Yield every top-level balanced brace span, ignoring braces inside strings."""

    depth = 0
    start = -1
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:index + 1]


def _candidates(raw_text: str) -> Iterator[str]:
    for match in _FENCE_RE.finditer(raw_text):
        body = match.group(1).strip()
        if body:
            yield body
    yield from _balanced_spans(raw_text)


def extract_payload(raw_text: str) -> dict[str, Any]:
    """Return the first JSON object found in ``raw_text``.

    Raises:
        DecisionError: when no candidate decodes to a JSON object.
    """

    if not raw_text or not raw_text.strip():
        raise DecisionError("Oracle returned an empty response", raw_text=raw_text or "")

    for candidate in _candidates(raw_text):
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            # A fenced block may hold prose; fall through to the brace scan
            for span in _balanced_spans(candidate):
                try:
                    payload = json.loads(span)
                except json.JSONDecodeError:
                    continue
                if isinstance(payload, dict):
                    return payload
            continue
        if isinstance(payload, dict):
            return payload

    raise DecisionError(
        "No JSON object found in oracle response",
        raw_text=raw_text,
        issues=["root: expected a JSON object with plan, action, mood and energy"],
    )


def _validation_issues(error: ValidationError) -> list[str]:
    issues: list[str] = []
    for err in error.errors(include_url=False):
        loc = ".".join(str(part) for part in err.get("loc", [])) or "root"
        details = f"{loc}: {err.get('msg', 'validation error')}"
        if err.get("type"):
            details += f" [type={err['type']}]"
        if "input" in err and loc != "root":
            details += f" | received={_truncate_preview(err.get('input'))}"
        issues.append(details)
    return issues or ["root: response did not match the expected schema"]


def validate_payload(
    payload: dict[str, Any],
    *,
    raw_text: str = "",
    location_names: Optional[Iterable[str]] = None,
) -> ActionResponse:
    """Validate a decoded payload into an ActionResponse.

    When ``location_names`` is given, a ``move`` must target one of them.
    """

    data = dict(payload)
    # The oracle may not pick its own provenance
    data["source"] = "oracle"
    data.pop("halt_movement", None)
    try:
        response = ActionResponse.model_validate(data)
    except ValidationError as exc:
        raise DecisionError(
            "Oracle response failed validation",
            raw_text=raw_text,
            issues=_validation_issues(exc),
        ) from exc

    if response.action == ActionType.MOVE and location_names is not None:
        known = {name.casefold(): name for name in location_names}
        canonical = known.get(response.target_location.casefold())
        if canonical is None:
            raise DecisionError(
                "Oracle chose an unknown move target",
                raw_text=raw_text,
                issues=[
                    f"target_location: '{response.target_location}' is not a known location "
                    f"(choose one of: {', '.join(known.values())})"
                ],
            )
        response = response.model_copy(update={"target_location": canonical})

    return response


def parse_action_response(
    raw_text: str,
    *,
    location_names: Optional[Iterable[str]] = None,
) -> ActionResponse:
    """Extract and validate the action in ``raw_text``."""

    payload = extract_payload(raw_text)
    return validate_payload(payload, raw_text=raw_text, location_names=location_names)


def build_feedback(error: DecisionError) -> ValidationFeedback:
    """Produce retry guidance for the oracle from a rejected response."""

    issues = error.issues or [str(error)]
    instructions = [
        "Your previous response could not be used.",
        "Reply with one corrected JSON object that follows the examples above.",
        "Do not include explanations; return only the JSON object.",
        "Issues detected:",
    ]
    instructions.extend(f"- {issue}" for issue in issues)
    return ValidationFeedback(llm_text="\n".join(instructions), issues=issues)


__all__ = [
    "ValidationFeedback",
    "extract_payload",
    "validate_payload",
    "parse_action_response",
    "build_feedback",
]
