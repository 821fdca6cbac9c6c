"""
prompt_builder.py – Adaptation policy + Prompt Assembler
=========================================================
Two layers, kept apart on purpose:

  derive_policy(memory, previous_feedback) → AdaptationPolicy
      The decision logic: which skills to target, which strengths to build
      on, how far to move the difficulty, what tone to take.  Plain data,
      unit-tested directly.

  build_*_prompt(...) → PromptPair
      Formatting only.  Renders the policy and the learner's memory into
      the natural-language instructions sent to the generator.  Identical
      inputs give byte-identical text; the scenario id is always supplied
      by the caller so no clock is read here.
"""

from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass
from typing import Optional

from progressive_learning.difficulty import (
    average_score,
    calculate_next_difficulty,
    difficulty_delta,
    progression_strategy,
    rounded_pct,
    skill_description,
)
from progressive_learning.models import (
    DOMAIN_REGISTRY,
    INITIAL_DIFFICULTY,
    LEVEL_CALIBRATION,
    Domain,
    LearningMemory,
    Level,
    ProgressiveScenario,
    ScenarioFeedback,
    domain_name,
)

TARGET_SKILL_COUNT = 3


@dataclass(frozen=True)
class PromptPair:
    system: str
    user:   str


@dataclass(frozen=True)
class AdaptationPolicy:
    """What the next adaptive scenario should do, before it becomes prose."""
    target_skills:    tuple[str, ...]   # weakest skills first
    build_on:         tuple[str, ...]   # strengths to lean on
    address:          tuple[str, ...]   # challenge areas to work on
    difficulty_delta: float
    next_difficulty:  float
    tone_guidance:    str
    ready_for_next:   bool
    based_on:         Optional[str]     # id of the scenario being continued


def derive_policy(memory: LearningMemory, previous_feedback: ScenarioFeedback) -> AdaptationPolicy:
    scores = memory.scores()
    weakest = sorted(memory.skill_progression.items(), key=lambda kv: (kv[1], kv[0]))
    last = memory.last_record()
    return AdaptationPolicy(
        target_skills    = tuple(skill for skill, _ in weakest[:TARGET_SKILL_COUNT]),
        build_on         = tuple(memory.learning_patterns.strength_areas[:2]),
        address          = tuple(memory.learning_patterns.challenge_areas[:2]),
        difficulty_delta = difficulty_delta(scores, previous_feedback.readiness_for_next),
        next_difficulty  = calculate_next_difficulty(scores, previous_feedback.readiness_for_next),
        tone_guidance    = progression_strategy(average_score(scores)),
        ready_for_next   = previous_feedback.readiness_for_next,
        based_on         = last.scenario_id if last else None,
    )


# ─── Formatting helpers ──────────────────────────────────────────────────────

def _num(value: float) -> str:
    """4.0 → "4", 8.5 → "8.5"."""
    return f"{value:g}"


def _bullets(items) -> str:
    return "\n".join(f"- {item}" for item in items)


def _joined(items, empty: str = "None yet") -> str:
    return ", ".join(items) if items else empty


def _json_block(template: dict) -> str:
    return json.dumps(template, indent=2)


_FEEDBACK_JSON_TEMPLATE = {
    "score": "number 0-100",
    "strengths": ["specific strength with evidence", "another specific strength"],
    "improvements": ["specific improvement with action step", "another improvement area"],
    "nextFocus": "What they should concentrate on for next scenario",
    "skillGaps": ["specific skill needing development", "another skill gap"],
    "confidenceLevel": "number 1-10",
    "readinessForNext": "boolean",
}


def _scenario_template(
    scenario_id: str,
    difficulty: float,
    skills: list[str],
    is_adaptive: bool,
    based_on: list[str],
    title_hint: str,
    scenario_hint: str,
    context_hint: str,
    outcome_hint: str,
) -> dict:
    return {
        "id": scenario_id,
        "title": title_hint,
        "scenario": scenario_hint,
        "context": context_hint,
        "expectedOutcome": outcome_hint,
        "difficulty": difficulty,
        "skillsRequired": skills,
        "isAdaptive": is_adaptive,
        "basedOnPrevious": based_on,
    }


# ─── (a) First scenario ──────────────────────────────────────────────────────

def build_initial_prompt(domain: Domain, level: Level, scenario_id: str) -> PromptPair:
    template = _scenario_template(
        scenario_id   = scenario_id,
        difficulty    = INITIAL_DIFFICULTY[level],
        skills        = ["primary_skill", "secondary_skill", "tertiary_skill"],
        is_adaptive   = False,
        based_on      = [],
        title_hint    = "Engaging first scenario title",
        scenario_hint = ("Detailed workplace story with specific context, characters, timeline, "
                         "and business constraints. Make it feel like a real first assignment."),
        context_hint  = ("Background information needed to understand the business situation "
                         "and technical environment"),
        outcome_hint  = "What a good response should demonstrate for baseline assessment",
    )
    system = (
        f"You are a senior {domain.value.upper()} mentor creating the first learning scenario "
        "for a new student.\n\n"
        "STUDENT PROFILE:\n"
        f"- Domain: {domain_name(domain)}\n"
        f"- Declared Level: {level.value}\n"
        "- Experience: First scenario - baseline assessment needed\n\n"
        "SCENARIO REQUIREMENTS:\n"
        "1. Create an engaging workplace introduction scenario\n"
        f"2. Test fundamental {level.value}-level concepts naturally\n"
        "3. Establish baseline for skill assessment\n"
        "4. Set appropriate difficulty for progression planning\n"
        "5. Include realistic business context and stakeholder dynamics\n\n"
        f"FOCUS AREAS FOR {domain.value.upper()}:\n"
        f"{_bullets(DOMAIN_REGISTRY[domain]['focus_areas'])}\n\n"
        f"DIFFICULTY CALIBRATION FOR {level.value.upper()}:\n"
        f"{_bullets(LEVEL_CALIBRATION[level])}\n\n"
        "Return ONLY valid JSON:\n"
        f"{_json_block(template)}"
    )
    user = textwrap.dedent(f"""
        Create the perfect first scenario for a {level.value} level {domain.value} learner.

        This should feel like:
        - Their first real assignment at a new job
        - A welcoming but appropriately challenging introduction
        - An opportunity to demonstrate their current capabilities
        - A foundation for personalized learning progression

        Make it engaging, realistic, and perfectly calibrated for initial assessment.
    """).strip()
    return PromptPair(system=system, user=user)


# ─── (b) Adaptive scenario ───────────────────────────────────────────────────

def _skill_lines(memory: LearningMemory) -> str:
    return "\n".join(
        f"- {skill}: {value:.1f}/10 ({skill_description(value)})"
        for skill, value in memory.skill_progression.items()
    )


def build_adaptive_prompt(
    memory: LearningMemory,
    previous_feedback: ScenarioFeedback,
    policy: AdaptationPolicy,
    scenario_id: str,
) -> PromptPair:
    patterns = memory.learning_patterns
    last = memory.last_record()
    based_on = [policy.based_on] if policy.based_on else []
    template = _scenario_template(
        scenario_id   = scenario_id,
        difficulty    = policy.next_difficulty,
        skills        = list(policy.target_skills),
        is_adaptive   = True,
        based_on      = based_on,
        title_hint    = "Scenario title that builds on previous context",
        scenario_hint = ("Detailed adaptive scenario that references previous work and targets "
                         "specific growth areas"),
        context_hint  = "Context including connection to previous scenarios and current skill focus",
        outcome_hint  = "What this scenario should help them develop based on their specific needs",
    )
    system = (
        "You are an adaptive AI learning mentor with deep knowledge of this student's "
        "learning journey.\n\n"
        "STUDENT LEARNING PROFILE:\n"
        f"- Domain: {memory.domain.value}\n"
        f"- Level: {memory.level.value}\n"
        f"- Scenarios Completed: {len(memory.session_history)}\n"
        f"- Current Average Score: {rounded_pct(average_score(memory.scores()))}%\n\n"
        "SKILL PROGRESSION ANALYSIS:\n"
        f"{_skill_lines(memory)}\n\n"
        "LEARNING PATTERNS IDENTIFIED:\n"
        f"- Preferred Approach: {patterns.preferred_approach}\n"
        f"- Response Style: {patterns.response_length.value}\n"
        f"- Strong Areas: {_joined(patterns.strength_areas)}\n"
        f"- Challenge Areas: {_joined(patterns.challenge_areas)}\n"
        f"- Improvement Rate: {patterns.improvement_rate:.1f}% per scenario\n\n"
        "RECENT PERFORMANCE CONTEXT:\n"
        f"Last Scenario: \"{last.title if last else 'None'}\"\n"
        f"Last Score: {_num(previous_feedback.score)}%\n"
        f"Last Strengths: {_joined(previous_feedback.strengths)}\n"
        f"Areas to Address: {_joined(previous_feedback.improvements)}\n"
        f"Confidence Level: {_num(previous_feedback.confidence_level)}/10\n\n"
        "ADAPTIVE SCENARIO REQUIREMENTS:\n"
        f"1. Build directly on their demonstrated strengths: {_joined(policy.build_on)}\n"
        f"2. Address their specific challenge areas: {_joined(policy.address)}\n"
        f"3. Target their least developed skills: {_joined(policy.target_skills)}\n"
        f"4. Match their preferred learning style: {patterns.preferred_approach}\n"
        "5. Calibrate difficulty based on readiness: "
        f"{'increase slightly' if policy.ready_for_next else 'maintain/reduce'} "
        f"(target {_num(policy.next_difficulty)}/10)\n"
        "6. Connect to previous scenarios for continuity\n\n"
        "PROGRESSION STRATEGY:\n"
        f"{policy.tone_guidance}\n\n"
        "The next scenario should:\n"
        "- Feel like a natural progression from their previous work\n"
        "- Target their specific skill gaps while building on strengths\n"
        "- Match their demonstrated capability level\n"
        "- Include references to their previous scenario context for continuity\n"
        "- Present challenges that stretch them appropriately without overwhelming\n\n"
        "Return ONLY valid JSON:\n"
        f"{_json_block(template)}"
    )
    user = (
        "Generate the perfect next scenario for this student based on their learning history "
        "and current needs.\n\n"
        "SPECIFIC ADAPTATION REQUIREMENTS:\n"
        f"- Previous scenario showed: {_joined(previous_feedback.strengths)}\n"
        f"- Still needs work on: {_joined(previous_feedback.improvements)}\n"
        f"- Next focus should be: {previous_feedback.next_focus or 'Not specified'}\n"
        f"- Ready for difficulty increase: {'Yes' if previous_feedback.readiness_for_next else 'No'}\n\n"
        "Create a scenario that feels like the natural next step in their professional "
        "development journey."
    )
    return PromptPair(system=system, user=user)


# ─── (c) Evaluation of a free-text answer ────────────────────────────────────

def _learning_profile(memory: LearningMemory) -> str:
    top = sorted(memory.skill_progression.items(), key=lambda kv: (-kv[1], kv[0]))[:3]
    top_skills = ", ".join(f"{skill} ({value:.1f}/10)" for skill, value in top)
    trend = "Improving" if memory.learning_patterns.improvement_rate > 0 else "Stable"
    return (
        f"Scenarios Completed: {len(memory.session_history)}\n"
        f"Average Performance: {rounded_pct(average_score(memory.scores()))}%\n"
        f"Top Skills: {top_skills or 'Not yet assessed'}\n"
        f"Learning Style: {memory.learning_patterns.preferred_approach}\n"
        f"Response Style: {memory.learning_patterns.response_length.value}\n"
        f"Recent Trend: {trend}"
    )


_EVALUATION_CRITERIA = textwrap.dedent("""
    PERSONALIZED EVALUATION CRITERIA:
    1. Growth from Previous Performance (30%)
       - How does this compare to their established patterns?
       - Are they applying lessons from previous feedback?
       - Show evidence of skill development?

    2. Technical/Practical Competency (40%)
       - Accuracy of approach and knowledge
       - Understanding of domain-specific concepts
       - Practical feasibility of proposed solutions

    3. Communication and Professional Development (20%)
       - Clarity of explanation and reasoning
       - Professional tone and stakeholder awareness
       - Ability to articulate decision-making process

    4. Adaptive Learning Indicators (10%)
       - Evidence of reflection and learning integration
       - Appropriate confidence and uncertainty acknowledgment
       - Growth mindset and improvement orientation

    SCORING FRAMEWORK (calibrated to their journey):
    - 90-100: Exceptional growth - exceeding expectations for their level
    - 80-89: Strong performance - solid progress and skill development
    - 70-79: Good progress - meeting expectations with room for growth
    - 60-69: Developing - showing effort but needs focused improvement
    - 50-59: Struggling - significant gaps need immediate attention
    - Below 50: Major intervention needed

    FEEDBACK REQUIREMENTS:
    1. Acknowledge specific growth since previous scenarios
    2. Identify precise strengths demonstrated in this response
    3. Provide actionable, specific improvement recommendations
    4. Suggest concrete next learning steps
    5. Assess readiness for increased difficulty
""").strip()


def build_evaluation_prompt(
    memory: LearningMemory,
    scenario: ProgressiveScenario,
    user_response: str,
) -> PromptPair:
    lineage = (
        f"Based on: {', '.join(scenario.based_on_previous)}"
        if scenario.based_on_previous else "Initial scenario"
    )
    system = (
        f"You are an expert {memory.domain.value.upper()} mentor conducting personalized "
        "assessment.\n\n"
        "STUDENT LEARNING CONTEXT:\n"
        f"- Name: Student ({memory.user_id[:8]})\n"
        f"- Domain: {memory.domain.value}\n"
        f"- Declared Level: {memory.level.value}\n"
        f"- Learning Journey: Scenario {len(memory.session_history) + 1}\n"
        f"- Average Performance: {rounded_pct(average_score(memory.scores()))}%\n\n"
        "STUDENT'S LEARNING PROFILE:\n"
        f"{_learning_profile(memory)}\n\n"
        "CURRENT SCENARIO BEING EVALUATED:\n"
        f"Title: {scenario.title}\n"
        f"Difficulty: {_num(scenario.difficulty)}/10\n"
        f"Skills Tested: {_joined(scenario.skills_required, empty='General')}\n"
        f"Is Adaptive: {'true' if scenario.is_adaptive else 'false'}\n"
        f"{lineage}\n\n"
        f"Scenario: {scenario.scenario}\n\n"
        "STUDENT'S RESPONSE:\n"
        f"{user_response}\n\n"
        f"{_EVALUATION_CRITERIA}\n\n"
        "Return ONLY valid JSON:\n"
        f"{_json_block(_FEEDBACK_JSON_TEMPLATE)}"
    )
    user = textwrap.dedent("""
        Provide comprehensive, personalized feedback for this student's response.

        Focus on:
        1. How they've grown since their previous scenarios
        2. Specific evidence of learning and skill development
        3. Concrete next steps for continued growth
        4. Appropriate challenge level for next scenario

        Be encouraging but honest, specific but supportive.
    """).strip()
    return PromptPair(system=system, user=user)
