"""
Factory helpers for building test objects.
Imported by conftest.py fixtures AND directly by test modules.
"""
import sys
import os

# Ensure both src/ and tests/ are importable in all test files
_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

# Force mock mode (safe to call multiple times)
os.environ["FORCE_MOCK_MODE"] = "true"
os.environ.setdefault("AZURE_OPENAI_ENDPOINT", "<placeholder>")
os.environ.setdefault("AZURE_OPENAI_API_KEY",  "<placeholder>")

import json
from datetime import datetime, timedelta, timezone

from progressive_learning.llm_client import GenerationError
from progressive_learning.models import (
    Domain,
    LearningMemory,
    Level,
    ProgressiveScenario,
    ScenarioFeedback,
    SessionRecord,
    new_memory,
)


def make_feedback(
    score: float = 80,
    strengths: list | None = None,
    improvements: list | None = None,
    next_focus: str = "Quantify the business impact",
    readiness_for_next: bool = True,
    confidence_level: float = 7,
) -> ScenarioFeedback:
    return ScenarioFeedback(
        score              = score,
        strengths          = strengths if strengths is not None else ["Clear structure"],
        improvements       = improvements if improvements is not None else ["Add concrete metrics"],
        next_focus         = next_focus,
        skill_gaps         = ["stakeholder_management"],
        confidence_level   = confidence_level,
        readiness_for_next = readiness_for_next,
    )


def make_scenario(
    scenario_id: str = "scenario_1",
    skills: list | None = None,
    difficulty: float = 3,
    based_on: list | None = None,
    is_adaptive: bool = False,
    title: str = "Churn analysis for the retail team",
) -> ProgressiveScenario:
    return ProgressiveScenario(
        id                = scenario_id,
        title             = title,
        scenario          = "The retail team wants to know why customers are leaving.",
        context           = "You have twelve months of order data.",
        expected_outcome  = "A clear, systematic analysis plan.",
        difficulty        = difficulty,
        skills_required   = skills if skills is not None else ["data_analysis", "communication"],
        is_adaptive       = is_adaptive,
        based_on_previous = based_on or [],
    )


def make_memory(
    user_id: str = "learner-1",
    domain: Domain = Domain.AI,
    level: Level = Level.BEGINNER,
    scores: tuple = (),
) -> LearningMemory:
    """A memory whose history holds one record per score, oldest first."""
    memory = new_memory(user_id, domain, level)
    history = [
        SessionRecord(
            scenario_id   = f"scenario_{i}",
            title         = f"Scenario {i}",
            user_response = "I would start by profiling the data.",
            feedback      = make_feedback(score=score),
            timestamp     = f"2026-01-{i + 1:02d}T09:00:00+00:00",
        )
        for i, score in enumerate(scores)
    ]
    return memory.model_copy(update={"session_history": history})


def scenario_json(**overrides) -> str:
    payload = {
        "id": "ignored-by-agent",
        "title": "Forecasting demand for the support desk",
        "scenario": "Your manager asks for a staffing forecast for next quarter.",
        "context": "Ticket history is in the warehouse.",
        "expectedOutcome": "A forecasting approach with stated assumptions.",
        "difficulty": 4,
        "skillsRequired": ["data_analysis", "machine_learning"],
        "isAdaptive": False,
        "basedOnPrevious": [],
    }
    payload.update(overrides)
    return json.dumps(payload)


def feedback_json(**overrides) -> str:
    payload = {
        "score": 82,
        "strengths": ["Systematic decomposition"],
        "improvements": ["Name the stakeholders"],
        "nextFocus": "Stakeholder communication",
        "skillGaps": ["communication"],
        "confidenceLevel": 8,
        "readinessForNext": True,
    }
    payload.update(overrides)
    return json.dumps(payload)


class ScriptedGenerator:
    """
    Stand-in for the LLM: returns (or raises) the scripted replies in order
    and records every prompt it was sent.
    """

    mode = "scripted"

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, str]] = []

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if not self.replies:
            raise GenerationError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class StepClock:
    """Deterministic clock: each call advances by *step* (default 1 ms)."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(milliseconds=1)):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class FrozenClock:
    """Clock that never moves; used to exercise scenario-id collisions."""

    def __init__(self, at: datetime | None = None):
        self.at = at or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.at
