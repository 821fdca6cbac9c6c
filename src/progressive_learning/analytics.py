"""
analytics.py – Learning analytics
=================================
Read-only summaries for the progress panel and for cohort reporting.

  build_learning_analytics(memory)  one learner: progress, skill growth,
                                    recurring strengths / challenges and an
                                    advancement-readiness verdict
  summarize_documents(documents)    many learners: totals and distributions
                                    over the learning-document log

Advancement readiness
---------------------
  overall_readiness  = average > 80 AND trend ≥ 0 AND completed ≥ 5

  average > 85, trend > 0, completed ≥ 5  → "Ready for advancement to next level"
  average > 75, completed ≥ 5             → "Nearly ready …"
  average < 60                            → "Focus on fundamentals …"
  otherwise                               → "Continue current level …"
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from progressive_learning.difficulty import average_score, improvement_trend, rounded_pct
from progressive_learning.models import (
    LearningDocument,
    LearningMemory,
    LearningPatterns,
    initial_skill_levels,
)
from progressive_learning.skill_tracker import UNSEEN_SKILL_PROFICIENCY

SCENARIOS_FOR_ADVANCEMENT = 5
TOP_N = 5


@dataclass
class OverallProgress:
    scenarios_completed: int
    average_score:       int                # rounded percentage
    improvement_trend:   float              # points per scenario, 1 dp
    skill_growth:        dict[str, float]   # skill → gain since start, 1 dp


@dataclass
class AdvancementReadiness:
    overall_readiness: bool
    score:             int
    trend:             float
    scenarios_needed:  int
    recommendation:    str


@dataclass
class LearningAnalytics:
    user_id:           str
    overall_progress:  OverallProgress
    skill_progression: dict[str, float]
    learning_patterns: LearningPatterns
    strengths:         list[str]
    challenge_areas:   list[str]
    recommendations:   list[str]
    readiness:         AdvancementReadiness


@dataclass
class DocumentAnalytics:
    total_sessions:     int = 0
    average_score:      int = 0
    common_strengths:   dict[str, int] = field(default_factory=dict)
    common_weaknesses:  dict[str, int] = field(default_factory=dict)
    domain_distribution: dict[str, int] = field(default_factory=dict)
    level_distribution:  dict[str, int] = field(default_factory=dict)


def _top(counter: Counter, n: int = TOP_N) -> list[str]:
    # Counter.most_common keeps first-seen order for ties
    return [item for item, _ in counter.most_common(n)]


def skill_growth(memory: LearningMemory) -> dict[str, float]:
    start = initial_skill_levels(memory.domain, memory.level)
    return {
        skill: round(value - start.get(skill, UNSEEN_SKILL_PROFICIENCY), 1)
        for skill, value in memory.skill_progression.items()
    }


def advancement_recommendation(avg: float, trend: float, completed: int) -> str:
    if avg > 85 and trend > 0 and completed >= SCENARIOS_FOR_ADVANCEMENT:
        return "Ready for advancement to next level"
    if avg > 75 and completed >= SCENARIOS_FOR_ADVANCEMENT:
        return "Nearly ready - complete a few more scenarios to confirm consistency"
    if avg < 60:
        return "Focus on fundamentals before advancing"
    return "Continue current level to build confidence and skills"


def assess_advancement(memory: LearningMemory) -> AdvancementReadiness:
    scores = memory.scores()
    avg = rounded_pct(average_score(scores))
    trend = round(improvement_trend(scores), 1)
    completed = len(scores)
    return AdvancementReadiness(
        overall_readiness = avg > 80 and trend >= 0 and completed >= SCENARIOS_FOR_ADVANCEMENT,
        score             = avg,
        trend             = trend,
        scenarios_needed  = max(0, SCENARIOS_FOR_ADVANCEMENT - completed),
        recommendation    = advancement_recommendation(avg, trend, completed),
    )


def build_learning_analytics(memory: LearningMemory) -> LearningAnalytics:
    scores = memory.scores()
    strengths = Counter(s for rec in memory.session_history for s in rec.feedback.strengths)
    challenges = Counter(c for rec in memory.session_history for c in rec.feedback.improvements)
    return LearningAnalytics(
        user_id = memory.user_id,
        overall_progress = OverallProgress(
            scenarios_completed = len(scores),
            average_score       = rounded_pct(average_score(scores)),
            improvement_trend   = round(improvement_trend(scores), 1),
            skill_growth        = skill_growth(memory),
        ),
        skill_progression = dict(memory.skill_progression),
        learning_patterns = memory.learning_patterns.model_copy(deep=True),
        strengths         = _top(strengths),
        challenge_areas   = _top(challenges),
        recommendations   = list(memory.next_recommendations),
        readiness         = assess_advancement(memory),
    )


def summarize_documents(documents: Iterable[LearningDocument]) -> DocumentAnalytics:
    docs = list(documents)
    if not docs:
        return DocumentAnalytics()
    return DocumentAnalytics(
        total_sessions      = len(docs),
        average_score       = rounded_pct(average_score([d.ai_feedback.score for d in docs])),
        common_strengths    = dict(Counter(s for d in docs for s in d.ai_feedback.strengths)),
        common_weaknesses   = dict(Counter(w for d in docs for w in d.ai_feedback.improvements)),
        domain_distribution = dict(Counter(d.domain.value for d in docs)),
        level_distribution  = dict(Counter(d.level.value for d in docs)),
    )
