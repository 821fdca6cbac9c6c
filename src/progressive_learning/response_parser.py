"""
response_parser.py – Response Parser + fallback selection
==========================================================
The generator is treated as untrusted: its reply *should* be a JSON object,
possibly wrapped in a Markdown code fence, but anything can come back.

  strip_code_fences(text)   "```json\\n{...}\\n```" → "{...}"
  decode_json(text)         fence-strip + json.loads, then a second attempt on
                            the first balanced {...} / [...] block in the text
  parse_scenario(text)      → ParseOutcome[ProgressiveScenario]
  parse_feedback(text)      → ParseOutcome[ScenarioFeedback]

Parsing never raises.  A ParseOutcome carries either a value or a ParseError;
the caller picks a fallback with resolve(), which logs the failure.  The
fallback_* builders are the hand-authored records a learner sees when the
generator is down or talks nonsense.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from progressive_learning.models import (
    INITIAL_DIFFICULTY,
    Domain,
    LearningMemory,
    Level,
    ProgressiveScenario,
    ScenarioFeedback,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


# ─── Result types ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParseError:
    kind:    str   # "generator" | "empty" | "decode" | "schema"
    message: str
    excerpt: str = ""


@dataclass(frozen=True)
class ParseOutcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[ParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


def _excerpt(text: str, limit: int = 120) -> str:
    text = text.strip().replace("\n", " ")
    return text if len(text) <= limit else text[:limit] + "…"


# ─── Text → JSON ─────────────────────────────────────────────────────────────

def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` marker and a trailing ``` if present."""
    cleaned = text.strip()
    for opener in ("```json", "```"):
        if cleaned.startswith(opener):
            cleaned = cleaned[len(opener):]
            if cleaned.startswith("\n"):
                cleaned = cleaned[1:]
            if cleaned.endswith("```"):
                cleaned = cleaned[:-3]
            if cleaned.endswith("\n"):
                cleaned = cleaned[:-1]
            break
    return cleaned.strip()


def _extract_balanced_json(text: str) -> Optional[str]:
    """First balanced {...} or [...] block, ignoring brackets inside strings."""
    start = next((i for i, ch in enumerate(text) if ch in "{["), None)
    if start is None:
        return None
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def decode_json(text: Optional[str]) -> ParseOutcome[Any]:
    if not isinstance(text, str) or not text.strip():
        return ParseOutcome(error=ParseError("empty", "generator returned no text"))
    cleaned = strip_code_fences(text)
    try:
        return ParseOutcome(value=json.loads(cleaned))
    except (json.JSONDecodeError, RecursionError) as first_exc:   # RecursionError: deeply nested input
        candidate = _extract_balanced_json(cleaned)
        if candidate is not None:
            try:
                return ParseOutcome(value=json.loads(candidate))
            except (json.JSONDecodeError, RecursionError):
                pass
        return ParseOutcome(error=ParseError("decode", str(first_exc), _excerpt(text)))


# ─── JSON → typed records ────────────────────────────────────────────────────

def _parse_model(text: Optional[str], model: type[M]) -> ParseOutcome[M]:
    decoded = decode_json(text)
    if not decoded.ok:
        return ParseOutcome(error=decoded.error)
    data = decoded.value
    # Some models wrap a single object in a list
    if isinstance(data, list) and len(data) == 1:
        data = data[0]
    if not isinstance(data, dict):
        return ParseOutcome(error=ParseError(
            "schema", f"expected a JSON object, got {type(data).__name__}", _excerpt(text or ""),
        ))
    try:
        return ParseOutcome(value=model.model_validate(data))
    except ValidationError as exc:
        return ParseOutcome(error=ParseError("schema", str(exc), _excerpt(text or "")))


def parse_scenario(text: Optional[str]) -> ParseOutcome[ProgressiveScenario]:
    return _parse_model(text, ProgressiveScenario)


def parse_feedback(text: Optional[str]) -> ParseOutcome[ScenarioFeedback]:
    return _parse_model(text, ScenarioFeedback)


def resolve(outcome: ParseOutcome[T], fallback: Callable[[], T], label: str) -> T:
    """Return the parsed value, or log the failure and build the fallback."""
    if outcome.ok:
        return outcome.value
    err = outcome.error
    logger.warning(
        "Unusable %s from generator (%s: %s); using fallback. Reply: %r",
        label, err.kind, err.message.splitlines()[0] if err.message else "", err.excerpt,
    )
    return fallback()


# ─── Fallback records ────────────────────────────────────────────────────────

_INITIAL_FALLBACKS: dict[Domain, dict] = {
    Domain.AI: {
        "title": "Your First Week at DataTech",
        "scenario": (
            "Welcome to your new role at DataTech Inc! Your manager walks over to your desk on "
            "your third day: 'Hey, I have a perfect starter project for you. Our customer "
            "support team has been tracking ticket volumes, but they can't tell if complaint "
            "patterns are actually changing or if it just feels that way. We have 6 months of "
            "data - types of issues, resolution times, customer ratings, and timestamps. Could "
            "you take a look and help us understand what's really happening? No pressure, but "
            "it would be great to have insights for next week's team meeting.'"
        ),
        "context": (
            "You have access to clean customer support data and basic analysis tools. This is "
            "your chance to make a good first impression."
        ),
        "expected_outcome": (
            "Demonstrate systematic approach to data analysis and clear communication of findings."
        ),
        "skills_required": ["data_analysis", "problem_solving", "communication"],
    },
    Domain.CLOUD: {
        "title": "Your First Cloud Deployment",
        "scenario": (
            "Welcome to CloudStart Corp! Your team lead stops by your desk in your second week: "
            "'Perfect timing - I have a great learning opportunity for you. The marketing team "
            "needs their new company blog deployed to the cloud by next Tuesday for a campaign "
            "launch. It's a standard WordPress site, nothing too complex, but it needs to handle "
            "decent traffic and stay within our budget. Think you're up for it? I'll be around "
            "if you need guidance, but I'd love to see your approach.'"
        ),
        "context": (
            "You have access to the cloud console, WordPress files, and a reasonable budget for "
            "cloud resources."
        ),
        "expected_outcome": "Show understanding of basic cloud services and deployment planning.",
        "skills_required": ["cloud_architecture", "deployment", "cost_optimization"],
    },
}


def fallback_initial_scenario(domain: Domain, level: Level, scenario_id: str) -> ProgressiveScenario:
    return ProgressiveScenario(
        id=scenario_id,
        difficulty=INITIAL_DIFFICULTY[level],
        is_adaptive=False,
        based_on_previous=[],
        **_INITIAL_FALLBACKS[domain],
    )


def _pair(items: list[str], default: str) -> str:
    return " and ".join(items[:2]) if items else default


def fallback_adaptive_scenario(
    memory: LearningMemory,
    previous_feedback: ScenarioFeedback,
    scenario_id: str,
    difficulty: float,
    target_skills: list[str],
) -> ProgressiveScenario:
    last = memory.last_record()
    return ProgressiveScenario(
        id=scenario_id,
        title="Building on Your Previous Success",
        scenario=(
            "Based on your work in the previous scenario, your manager has a follow-up challenge "
            "that builds on what you've learned. This new project will test your growing skills "
            "while addressing the areas we identified for improvement: "
            f"{_pair(previous_feedback.improvements, 'your next focus areas')}."
        ),
        context=(
            "This scenario continues your professional development journey, focusing on: "
            f"{previous_feedback.next_focus or 'consolidating what you practised last time'}"
        ),
        expected_outcome=(
            "Demonstrate growth in identified areas while maintaining your strengths in: "
            f"{_pair(previous_feedback.strengths, 'your current approach')}"
        ),
        difficulty=difficulty,
        skills_required=list(target_skills),
        is_adaptive=True,
        based_on_previous=[last.scenario_id] if last else [],
    )


def fallback_feedback(memory: LearningMemory, user_response: str) -> ScenarioFeedback:
    word_count = len(user_response.split())
    base_score = 70 if memory.level == Level.BEGINNER else 75
    return ScenarioFeedback(
        score=base_score + (5 if word_count > 100 else 0),
        strengths=["Shows thoughtful consideration", "Demonstrates systematic thinking"],
        improvements=[
            "Could provide more specific examples",
            "Consider additional implementation details",
        ],
        next_focus="Continue building on your systematic approach while adding more practical specifics",
        skill_gaps=["advanced_planning", "stakeholder_management"],
        confidence_level=7,
        readiness_for_next=True,
    )
