"""
guardrails.py – Checks around one exercise
==========================================
Validates what the learner sends to the generator and repairs what the
generator sends back before it reaches memory.

Guardrail levels
----------------
BLOCK   – Hard-stop: the answer is not evaluated / the scenario is replaced
          by a fallback.
WARN    – Soft-stop: processing continues with a visible warning.
INFO    – Advisory: logged only.

Guards implemented
------------------
Response guards (before evaluate_response_with_memory):
  G-01  Answer must not be empty
  G-02  Very short answer (< 10 words)                         [WARN]
  G-03  Answer longer than MAX_RESPONSE_CHARS                   [BLOCK]
  G-04  Abusive / harmful keywords                              [heuristic]
  G-05  Personal data (e-mail, phone, long digit runs) – the
        answer is forwarded to an external service              [heuristic]

Scenario guards (after every generated scenario):
  G-06  Title and narrative must be non-empty                   [BLOCK]
  G-07  basedOnPrevious may only reference scenarios in history [repaired]
  G-08  Empty skillsRequired is filled from the learner's skills [repaired]
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from progressive_learning.models import LearningMemory, ProgressiveScenario

logger = logging.getLogger(__name__)

MIN_RESPONSE_WORDS = 10
MAX_RESPONSE_CHARS = 20_000


# ─── Enums & data models ─────────────────────────────────────────────────────

class GuardrailLevel(str, Enum):
    BLOCK = "BLOCK"
    WARN  = "WARN"
    INFO  = "INFO"


@dataclass
class GuardrailViolation:
    code:    str
    level:   GuardrailLevel
    message: str
    field:   str = ""   # which field triggered the violation


@dataclass
class GuardrailResult:
    passed:     bool
    violations: list[GuardrailViolation] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return any(v.level == GuardrailLevel.BLOCK for v in self.violations)

    @property
    def warnings(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.level == GuardrailLevel.WARN]

    @property
    def infos(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.level == GuardrailLevel.INFO]

    def summary(self) -> str:
        if not self.violations:
            return "✅ All guardrails passed."
        icon = {GuardrailLevel.BLOCK: "🚫", GuardrailLevel.WARN: "⚠️", GuardrailLevel.INFO: "ℹ️"}
        return "\n".join(f"{icon[v.level]} [{v.code}] {v.message}" for v in self.violations)


def _result(violations: list[GuardrailViolation]) -> GuardrailResult:
    return GuardrailResult(
        passed=not any(v.level == GuardrailLevel.BLOCK for v in violations),
        violations=violations,
    )


# ─── Pattern sets ─────────────────────────────────────────────────────────────

_HARMFUL_PATTERN = re.compile(
    r"\b(fuck|shit|bitch|cunt|asshole|bastard"
    r"|kill\s+myself|suicide|self.harm"
    r"|bomb|terrorist|explosive)\b",
    re.IGNORECASE,
)

_PII_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "Email address detected – consider removing personal contact details",
        re.compile(r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b"),
    ),
    (
        "Phone number detected",
        re.compile(r"\b(?:\+?[\d]{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]\d{3}[-.\s]\d{4}\b"),
    ),
    (
        "Long numeric sequence detected – may be an account or document number",
        re.compile(r"\b\d{8,20}\b"),
    ),
]


# ─── Guardrail checks ─────────────────────────────────────────────────────────

class ResponseGuardrails:
    """G-01 – G-05: the learner's free-text answer."""

    def check(self, user_response: str) -> GuardrailResult:
        violations: list[GuardrailViolation] = []
        text = user_response or ""

        # G-01 Non-empty
        if not text.strip():
            violations.append(GuardrailViolation(
                code="G-01", level=GuardrailLevel.BLOCK, field="user_response",
                message="Your answer is empty. Write a response to the scenario first.",
            ))
            return _result(violations)

        # G-02 Very short
        words = len(text.split())
        if words < MIN_RESPONSE_WORDS:
            violations.append(GuardrailViolation(
                code="G-02", level=GuardrailLevel.WARN, field="user_response",
                message=f"Your answer has only {words} word(s); feedback will be limited.",
            ))

        # G-03 Too long
        if len(text) > MAX_RESPONSE_CHARS:
            violations.append(GuardrailViolation(
                code="G-03", level=GuardrailLevel.BLOCK, field="user_response",
                message=f"Your answer exceeds {MAX_RESPONSE_CHARS:,} characters. Please shorten it.",
            ))

        # G-04 Harmful content
        match = _HARMFUL_PATTERN.search(text)
        if match:
            violations.append(GuardrailViolation(
                code="G-04", level=GuardrailLevel.WARN, field="user_response",
                message=f"Potentially harmful language detected ('{match.group(0)}').",
            ))

        # G-05 Personal data
        for message, pattern in _PII_PATTERNS:
            if pattern.search(text):
                violations.append(GuardrailViolation(
                    code="G-05", level=GuardrailLevel.WARN, field="user_response",
                    message=message,
                ))

        return _result(violations)


class ScenarioGuardrails:
    """G-06 – G-08: a generated scenario, checked against the learner's memory."""

    def check(
        self,
        scenario: ProgressiveScenario,
        memory: LearningMemory,
        default_skills: Sequence[str] = (),
    ) -> tuple[ProgressiveScenario, GuardrailResult]:
        """Return the (possibly repaired) scenario and what was found."""
        violations: list[GuardrailViolation] = []
        repairs: dict = {}

        # G-06 Narrative present
        if not scenario.title.strip() or not scenario.scenario.strip():
            violations.append(GuardrailViolation(
                code="G-06", level=GuardrailLevel.BLOCK, field="scenario",
                message="Generated scenario has an empty title or narrative.",
            ))

        # G-07 Lineage references known scenarios only
        known = set(memory.scenario_ids())
        kept = [sid for sid in scenario.based_on_previous if sid in known]
        if len(kept) != len(scenario.based_on_previous):
            dropped = [sid for sid in scenario.based_on_previous if sid not in known]
            violations.append(GuardrailViolation(
                code="G-07", level=GuardrailLevel.WARN, field="based_on_previous",
                message=f"Dropped unknown scenario reference(s): {', '.join(dropped)}",
            ))
            repairs["based_on_previous"] = kept

        # G-08 Skills present
        if not scenario.skills_required and default_skills:
            violations.append(GuardrailViolation(
                code="G-08", level=GuardrailLevel.INFO, field="skills_required",
                message="Scenario listed no skills; using the learner's target skills.",
            ))
            repairs["skills_required"] = list(default_skills)

        for v in violations:
            logger.info("Scenario guardrail %s (%s): %s", v.code, v.level.value, v.message)

        repaired = scenario.model_copy(update=repairs) if repairs else scenario
        return repaired, _result(violations)

