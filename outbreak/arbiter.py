"""
DecisionArbiter: choose each agent's action from exactly one source.

The rule engine is consulted first. When a rule fires its response is used
verbatim and the oracle is never called for that agent this tick. Otherwise the
arbiter renders the decision prompt, asks the oracle, and validates the reply.

Validation failures are retried with feedback appended to the original prompt,
so the model keeps its full context while seeing exactly what was wrong. Only
``DecisionError`` triggers a retry; ``OracleError`` (timeouts, transport
failures) propagates immediately because retrying within the same tick rarely
helps and would hold up every other agent at the gather barrier.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from outbreak.config import Config, DEFAULT_SETTINGS, SimulationSettings
from outbreak.errors import DecisionError
from outbreak.logging_utils import LOG_TAG_ERROR, LOG_TAG_ORACLE, log_error, log_oracle
from outbreak.parsing import ValidationFeedback, build_feedback, parse_action_response
from outbreak.prompts import PromptTemplate, render_decision_prompt
from outbreak.rule_engine import RuleEngine
from outbreak.schemas import ActionResponse, Agent, HostileEntity, Location


class Oracle(Protocol):
    async def generate(self, prompt: str) -> str: ...


class DecisionArbiter:
    """Hybrid rule/oracle decision maker."""

    def __init__(
        self,
        oracle: Oracle,
        *,
        rule_engine: Optional[RuleEngine] = None,
        settings: SimulationSettings = DEFAULT_SETTINGS,
        max_attempts: Optional[int] = None,
        template: Optional[PromptTemplate] = None,
    ) -> None:
        self.oracle = oracle
        self.settings = settings
        self.rule_engine = rule_engine or RuleEngine(settings)
        self.max_attempts = max(1, max_attempts if max_attempts is not None else Config.DECISION_MAX_ATTEMPTS)
        self.template = template

    async def decide_action(
        self,
        agent: Agent,
        tick: int,
        locations: Sequence[Location],
        all_agents: Sequence[Agent],
        hostiles: Sequence[HostileEntity],
    ) -> ActionResponse:
        """Return the action ``agent`` takes this tick.

        Raises:
            OracleError: the oracle could not be reached or timed out.
            DecisionError: every attempt produced an unusable response.
        """

        forced = self.rule_engine.decide(agent, all_agents, locations, tick)
        if forced is not None:
            return forced

        base_prompt = render_decision_prompt(
            agent,
            tick=tick,
            locations=locations,
            agents=all_agents,
            hostiles=hostiles,
            settings=self.settings,
            template=self.template,
        ).text
        location_names = [location.name for location in locations]

        feedback: ValidationFeedback | None = None
        attempt_number = 0
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(DecisionError),
            stop=stop_after_attempt(self.max_attempts),
            reraise=True,
        ):
            with attempt:
                attempt_number += 1
                if attempt_number > 1:
                    log_oracle(
                        f"{LOG_TAG_ORACLE} Retry {attempt_number}/{self.max_attempts} "
                        f"for {agent.name}; asking for a corrected action."
                    )
                prompt = base_prompt if feedback is None else f"{base_prompt}\n\n{feedback.llm_text}"
                raw_text = await self.oracle.generate(prompt)
                try:
                    return parse_action_response(raw_text, location_names=location_names)
                except DecisionError as exc:
                    feedback = build_feedback(exc)
                    log_error(
                        f"{LOG_TAG_ERROR} Invalid action from oracle for {agent.name} "
                        f"(attempt {attempt_number}/{self.max_attempts})"
                    )
                    for issue in feedback.issues:
                        log_error(f"    - {issue}")
                    raise

        # AsyncRetrying with reraise=True always exits via return or raise
        raise RuntimeError("Decision retry loop exited unexpectedly")


__all__ = ["DecisionArbiter", "Oracle"]
