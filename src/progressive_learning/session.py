"""
session.py – Per-exercise state machine used by the UIs
=======================================================

    AWAITING_SCENARIO ──start / next_scenario──▶ SCENARIO_SHOWN
          ▲                                         │ submit
          │                                         ▼
    FEEDBACK_SHOWN ◀──────evaluated─────────── AWAITING_EVALUATION

There is no terminal state; the learner can keep going indefinitely or
call start() again to switch track.  Only one generator request is in
flight at a time: a call made while another is running raises
InvalidTransition (the Streamlit page disables its buttons instead).
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional, Union

from progressive_learning.guardrails import GuardrailResult, ResponseGuardrails
from progressive_learning.models import Domain, Level, ProgressiveScenario, ScenarioFeedback
from progressive_learning.progressive_agent import ProgressiveLearningAgent


class ExerciseState(str, Enum):
    AWAITING_SCENARIO   = "awaiting_scenario"
    SCENARIO_SHOWN      = "scenario_shown"
    AWAITING_EVALUATION = "awaiting_evaluation"
    FEEDBACK_SHOWN      = "feedback_shown"


class InvalidTransition(RuntimeError):
    """The requested action is not allowed in the current state."""


class ResponseRejected(ValueError):
    """The answer failed a blocking response guardrail and was not evaluated."""

    def __init__(self, result: GuardrailResult) -> None:
        super().__init__(result.summary())
        self.result = result


class LearningSession:
    """One learner working through scenarios, one exercise at a time."""

    def __init__(
        self,
        agent: ProgressiveLearningAgent,
        user_id: str,
        response_guard: Optional[ResponseGuardrails] = None,
    ) -> None:
        self.agent = agent
        self.user_id = user_id
        self.state = ExerciseState.AWAITING_SCENARIO
        self.busy = False
        self.scenario: Optional[ProgressiveScenario] = None
        self.last_response: Optional[str] = None
        self.last_feedback: Optional[ScenarioFeedback] = None
        self.last_check: Optional[GuardrailResult] = None
        self._guard = response_guard or ResponseGuardrails()

    # ── Internals ────────────────────────────────────────────────────────────

    def _expect(self, *states: ExerciseState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransition(f"Cannot do that while {self.state.value} (needs {allowed}).")

    @contextmanager
    def _in_flight(self, pending: ExerciseState) -> Iterator[None]:
        """Mark a generator request as running; restore the state if it fails."""
        if self.busy:
            raise InvalidTransition("A request is already in progress.")
        before = self.state
        self.busy = True
        self.state = pending
        try:
            yield
        except Exception:
            self.state = before
            raise
        finally:
            self.busy = False

    # ── Actions ──────────────────────────────────────────────────────────────

    def start(self, domain: Union[Domain, str], level: Union[Level, str]) -> ProgressiveScenario:
        """Begin (or switch to) a track and show its first scenario."""
        with self._in_flight(ExerciseState.AWAITING_SCENARIO):
            scenario = self.agent.generate_initial_scenario(self.user_id, domain, level)
        self.scenario = scenario
        self.last_response = None
        self.last_feedback = None
        self.state = ExerciseState.SCENARIO_SHOWN
        return scenario

    def check_response(self, user_response: str) -> GuardrailResult:
        return self._guard.check(user_response)

    def submit(self, user_response: str) -> ScenarioFeedback:
        """
        Evaluate an answer to the current scenario.

        Raises:
            ResponseRejected   – a BLOCK-level response guardrail fired.
            InvalidTransition  – no scenario is showing, or a request is running.
        """
        self._expect(ExerciseState.SCENARIO_SHOWN)
        check = self.check_response(user_response)
        self.last_check = check
        if check.blocked:
            raise ResponseRejected(check)

        with self._in_flight(ExerciseState.AWAITING_EVALUATION):
            feedback = self.agent.evaluate_response_with_memory(
                self.user_id, self.scenario, user_response,
            )
        self.last_response = user_response
        self.last_feedback = feedback
        self.state = ExerciseState.FEEDBACK_SHOWN
        return feedback

    def next_scenario(self) -> ProgressiveScenario:
        """Ask for the adaptive follow-up to the exercise just evaluated."""
        self._expect(ExerciseState.FEEDBACK_SHOWN)
        with self._in_flight(ExerciseState.AWAITING_SCENARIO):
            scenario = self.agent.generate_adaptive_scenario(
                self.user_id, self.last_response, self.last_feedback,
            )
        self.scenario = scenario
        self.state = ExerciseState.SCENARIO_SHOWN
        return scenario
