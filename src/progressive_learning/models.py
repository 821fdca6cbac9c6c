"""
Data models for the Progressive Learning coach.

Records that cross the generator boundary or the persistence boundary are
pydantic models with camelCase aliases, so the JSON the LLM is asked to
return and the JSON written to the memory store keep the same field names
(``skillsRequired``, ``readinessForNext``, ``sessionHistory`` …).  Python
code uses the snake_case attribute names.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ─── Enumerations ────────────────────────────────────────────────────────────

class Domain(str, Enum):
    """Career track chosen on the domain-selection step."""
    AI    = "ai"      # Artificial Intelligence / Machine Learning
    CLOUD = "cloud"   # Cloud Computing


class Level(str, Enum):
    """Self-declared experience level."""
    BEGINNER     = "beginner"
    INTERMEDIATE = "intermediate"


class ResponseLength(str, Enum):
    """How much the learner tends to write per answer."""
    BRIEF         = "brief"          # < 50 words
    DETAILED      = "detailed"       # 50–149 words
    COMPREHENSIVE = "comprehensive"  # ≥ 150 words


class FeedbackSource(str, Enum):
    GENERATOR = "generator"
    FALLBACK  = "fallback"


# ─── Domain registry ─────────────────────────────────────────────────────────

DOMAIN_REGISTRY: dict[Domain, dict] = {
    Domain.AI: {
        "name": "Artificial Intelligence/Machine Learning",
        # skill → offset from the level's base proficiency
        "skills": {
            "data_analysis":          0.0,
            "machine_learning":       0.0,
            "problem_solving":        0.5,
            "communication":          0.0,
            "business_understanding": -0.5,
        },
        "focus_areas": [
            "Data analysis and problem-solving approach",
            "Understanding of ML fundamentals and practical application",
            "Business context awareness and stakeholder communication",
            "Basic knowledge of tools, frameworks, and best practices",
            "Ability to break down complex problems systematically",
        ],
    },
    Domain.CLOUD: {
        "name": "Cloud Computing",
        "skills": {
            "cloud_architecture": 0.0,
            "deployment":         0.0,
            "security":           -0.5,
            "cost_optimization":  0.0,
            "troubleshooting":    0.5,
        },
        "focus_areas": [
            "Cloud service selection and basic architecture thinking",
            "Understanding of deployment, scaling, and reliability concepts",
            "Cost awareness and resource optimization thinking",
            "Security and compliance basic understanding",
            "Problem-solving methodology and communication skills",
        ],
    },
}

LEVEL_CALIBRATION: dict[Level, list[str]] = {
    Level.BEGINNER: [
        "Focus on fundamental concepts and learning approach",
        "Test willingness to ask questions and seek help",
        "Assess understanding of basic terminology and concepts",
        "Evaluate systematic thinking and problem-solving methodology",
        "Look for potential and growth mindset indicators",
    ],
    Level.INTERMEDIATE: [
        "Test practical application of intermediate concepts",
        "Assess experience with real-world constraints and trade-offs",
        "Evaluate ability to work independently and make decisions",
        "Look for mentoring potential and leadership readiness",
        "Test understanding of business impact and stakeholder management",
    ],
}

# Difficulty of the first scenario for each level
INITIAL_DIFFICULTY: dict[Level, int] = {
    Level.BEGINNER:     3,
    Level.INTERMEDIATE: 5,
}


def domain_name(domain: Domain) -> str:
    return DOMAIN_REGISTRY[domain]["name"]


def initial_skill_levels(domain: Domain, level: Level) -> dict[str, float]:
    """Starting proficiency map: base 2 for beginners, 4 otherwise."""
    base = 2.0 if level == Level.BEGINNER else 4.0
    return {skill: base + offset for skill, offset in DOMAIN_REGISTRY[domain]["skills"].items()}


# ─── Generator-facing records ────────────────────────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class ProgressiveScenario(_CamelModel):
    """One narrative exercise shown to the learner."""
    id:               str = ""
    title:            str
    scenario:         str
    context:          str = ""
    expected_outcome: str = ""
    difficulty:       float = Field(default=3.0, allow_inf_nan=False, description="1 (easy) … 10 (hard)")
    skills_required:  list[str] = Field(default_factory=list)
    is_adaptive:      bool = False
    based_on_previous: list[str] = Field(default_factory=list)

    @field_validator("difficulty")
    @classmethod
    def _clamp_difficulty(cls, v: float) -> float:
        return _clamp(v, 1.0, 10.0)

    @field_validator("based_on_previous", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v


class ScenarioFeedback(_CamelModel):
    """Scored evaluation of one free-text answer.  Only ``score`` is required."""
    score:              float = Field(allow_inf_nan=False, description="0–100")
    strengths:          list[str] = Field(default_factory=list)
    improvements:       list[str] = Field(default_factory=list)
    next_focus:         str = ""
    skill_gaps:         list[str] = Field(default_factory=list)
    confidence_level:   float = Field(default=5.0, allow_inf_nan=False, description="1–10")
    readiness_for_next: bool = False

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, v: float) -> float:
        return _clamp(v, 0.0, 100.0)

    @field_validator("confidence_level")
    @classmethod
    def _clamp_confidence(cls, v: float) -> float:
        return _clamp(v, 1.0, 10.0)


# ─── Memory records ──────────────────────────────────────────────────────────

class SessionRecord(_CamelModel):
    """One completed exercise in a learner's history."""
    scenario_id:   str
    title:         str
    user_response: str
    feedback:      ScenarioFeedback
    timestamp:     str                 # ISO-8601
    source:        FeedbackSource = FeedbackSource.GENERATOR


class LearningPatterns(_CamelModel):
    preferred_approach: str = "systematic"
    response_length:    ResponseLength = ResponseLength.DETAILED
    strength_areas:     list[str] = Field(default_factory=list)
    challenge_areas:    list[str] = Field(default_factory=list)
    improvement_rate:   float = 0.0    # score points per scenario, last three


class LearningMemory(_CamelModel):
    """
    Everything the coach remembers about one learner.
    Created on the first scenario request; overwritten wholesale on every save.
    """
    user_id:              str = Field(frozen=True)
    domain:               Domain = Field(frozen=True)
    level:                Level = Field(frozen=True)
    session_history:      list[SessionRecord] = Field(default_factory=list)
    skill_progression:    dict[str, float] = Field(default_factory=dict)
    learning_patterns:    LearningPatterns = Field(default_factory=LearningPatterns)
    next_recommendations: list[str] = Field(default_factory=list)

    # ── Derived helpers ──────────────────────────────────────────────────────

    def scores(self) -> list[float]:
        return [rec.feedback.score for rec in self.session_history]

    def scenario_ids(self) -> list[str]:
        return [rec.scenario_id for rec in self.session_history]

    def last_record(self) -> Optional[SessionRecord]:
        return self.session_history[-1] if self.session_history else None


def new_memory(user_id: str, domain: Domain, level: Level) -> LearningMemory:
    return LearningMemory(
        user_id=user_id,
        domain=domain,
        level=level,
        skill_progression=initial_skill_levels(domain, level),
    )


# ─── Learning document log ───────────────────────────────────────────────────

class ScenarioSummary(_CamelModel):
    title:      str
    content:    str
    difficulty: float


class FeedbackSummary(_CamelModel):
    score:        float
    strengths:    list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    next_focus:   str = ""


class SessionContext(_CamelModel):
    previous_scenarios: int
    overall_progress:   float
    skill_progression:  dict[str, float] = Field(default_factory=dict)


class LearningDocument(_CamelModel):
    """Immutable log entry written after every evaluated exercise."""
    id:              str
    user_id:         str
    domain:          Domain
    level:           Level
    scenario_id:     str
    timestamp:       str
    scenario:        ScenarioSummary
    user_response:   str
    ai_feedback:     FeedbackSummary
    session_context: SessionContext
