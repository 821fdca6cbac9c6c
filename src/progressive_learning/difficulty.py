"""
difficulty.py – Difficulty Calculator and score statistics
===========================================================
Pure functions over a learner's score history.  Nothing here reads the
clock, the store or the generator, so the same history always yields the
same answer.

Next-difficulty policy
----------------------
  average   = mean of every score so far (latest included)
  previous  = score before the latest ÷ 10   (3 when there is none)

  ready for next AND average > 80  →  min(10, previous + 1)
  average < 60                     →  max(1,  previous − 0.5)
  otherwise                        →  previous

The result is always clamped to the 1–10 difficulty scale.
"""

from __future__ import annotations

import math
from typing import Sequence

DEFAULT_DIFFICULTY: float = 3.0
MIN_DIFFICULTY:     float = 1.0
MAX_DIFFICULTY:     float = 10.0

STEP_UP:   float = 1.0
STEP_DOWN: float = 0.5


def average_score(scores: Sequence[float]) -> float:
    """Unrounded mean; 0 for an empty history."""
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def rounded_pct(value: float) -> int:
    """Round half up, the way percentages are shown to learners."""
    return int(math.floor(value + 0.5))


def previous_difficulty(scores: Sequence[float]) -> float:
    """Difficulty in force before the latest exercise, proxied by its score."""
    if len(scores) < 2:
        return DEFAULT_DIFFICULTY
    return scores[-2] / 10


def difficulty_delta(scores: Sequence[float], readiness_for_next: bool) -> float:
    avg = average_score(scores)
    if readiness_for_next and avg > 80:
        return STEP_UP
    if avg < 60:
        return -STEP_DOWN
    return 0.0


def calculate_next_difficulty(scores: Sequence[float], readiness_for_next: bool) -> float:
    """Next exercise difficulty on the 1–10 scale."""
    nxt = previous_difficulty(scores) + difficulty_delta(scores, readiness_for_next)
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, nxt))


def improvement_trend(scores: Sequence[float], window: int = 3) -> float:
    """Average score change per scenario over the last *window* scores."""
    recent = list(scores)[-window:]
    if len(recent) < 2:
        return 0.0
    return (recent[-1] - recent[0]) / (len(recent) - 1)


def progression_strategy(avg: float) -> str:
    if avg > 85:
        return "Accelerate learning with complex, multi-faceted challenges"
    if avg > 70:
        return "Maintain steady progression with gradual difficulty increase"
    if avg > 55:
        return "Focus on reinforcing fundamentals with supportive challenges"
    return "Provide additional support and foundational skill building"


def skill_description(proficiency: float) -> str:
    if proficiency >= 8:
        return "Expert"
    if proficiency >= 6:
        return "Proficient"
    if proficiency >= 4:
        return "Developing"
    if proficiency >= 2:
        return "Beginner"
    return "Novice"
