"""
skill_tracker.py – Skill Progression Tracker
=============================================
Turns one evaluated exercise into updated proficiency scores and learning
patterns.  Both functions return new objects and leave their inputs alone.

Skill update (a one-way ratchet, there is no decay):

  score > 75  →  +0.3
  score > 60  →  +0.2
  otherwise   →  +0.1

applied to every skill the scenario targeted, capped at 10.  Skills the
learner has not been scored on yet start from 1.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from progressive_learning.difficulty import improvement_trend
from progressive_learning.models import LearningPatterns, ResponseLength, ScenarioFeedback

MAX_PROFICIENCY: float = 10.0
UNSEEN_SKILL_PROFICIENCY: float = 1.0

BRIEF_WORD_LIMIT:    int = 50
DETAILED_WORD_LIMIT: int = 150


def skill_delta(score: float) -> float:
    if score > 75:
        return 0.3
    if score > 60:
        return 0.2
    return 0.1


def apply_exercise_outcome(
    progression: Mapping[str, float],
    skills: Iterable[str],
    score: float,
) -> dict[str, float]:
    """Return a copy of *progression* with every skill in *skills* nudged up."""
    updated = dict(progression)
    delta = skill_delta(score)
    for skill in skills:
        current = updated.get(skill, UNSEEN_SKILL_PROFICIENCY)
        updated[skill] = min(MAX_PROFICIENCY, current + delta)
    return updated


def classify_response_length(user_response: str) -> ResponseLength:
    words = len(user_response.split())
    if words < BRIEF_WORD_LIMIT:
        return ResponseLength.BRIEF
    if words < DETAILED_WORD_LIMIT:
        return ResponseLength.DETAILED
    return ResponseLength.COMPREHENSIVE


def _merge_unique(existing: Sequence[str], new: Iterable[str]) -> list[str]:
    merged = list(existing)
    for item in new:
        if item not in merged:
            merged.append(item)
    return merged


def update_learning_patterns(
    patterns: LearningPatterns,
    user_response: str,
    feedback: ScenarioFeedback,
    scores: Sequence[float],
) -> LearningPatterns:
    """
    Fold one answer into the learner's patterns.

    *scores* is the full score history with this exercise already included;
    the improvement rate is only recomputed once there are two or more.
    """
    rate = improvement_trend(scores) if len(scores) > 1 else patterns.improvement_rate
    return patterns.model_copy(update={
        "response_length":  classify_response_length(user_response),
        "strength_areas":   _merge_unique(patterns.strength_areas, feedback.strengths),
        "challenge_areas":  _merge_unique(patterns.challenge_areas, feedback.improvements),
        "improvement_rate": rate,
    })
