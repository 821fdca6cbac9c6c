"""
progressive_agent.py – The adaptive coach
==========================================
ProgressiveLearningAgent drives one learner through the exercise loop:

  generate_initial_scenario(user_id, domain, level)          → ProgressiveScenario
      Creates (or replaces) the learner's memory and returns the first
      exercise for the chosen track.

  evaluate_response_with_memory(user_id, scenario, response) → ScenarioFeedback
      Scores the answer, then folds it into memory: history, skill
      progression, learning patterns, recommendations.  Persists the memory
      and writes one LearningDocument to the log.

  generate_adaptive_scenario(user_id, previous_response, previous_feedback)
                                                             → ProgressiveScenario
      Builds the next exercise from the AdaptationPolicy derived from memory.

Every operation returns a usable record.  A generator that is offline,
times out or replies with something unparseable is logged and replaced by
the matching fallback from response_parser.  The only errors a caller sees
are setup errors: an unknown domain / level (ValueError) or an operation on
a learner with no memory yet (MemoryNotInitialisedError).

The agent holds no module-level state; the store and the generator are
injected, and so is the clock used for scenario ids and timestamps.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from progressive_learning.analytics import (
    DocumentAnalytics,
    LearningAnalytics,
    build_learning_analytics,
    summarize_documents,
)
from progressive_learning.difficulty import average_score, rounded_pct
from progressive_learning.guardrails import ScenarioGuardrails
from progressive_learning.llm_client import GenerationError, TextGenerator, get_generator
from progressive_learning.memory_store import MemoryRepository, SqliteMemoryStore
from progressive_learning.models import (
    Domain,
    FeedbackSource,
    FeedbackSummary,
    LearningDocument,
    LearningMemory,
    Level,
    ProgressiveScenario,
    ScenarioFeedback,
    ScenarioSummary,
    SessionContext,
    SessionRecord,
    new_memory,
)
from progressive_learning.prompt_builder import (
    PromptPair,
    build_adaptive_prompt,
    build_evaluation_prompt,
    build_initial_prompt,
    derive_policy,
)
from progressive_learning.response_parser import (
    ParseError,
    ParseOutcome,
    fallback_adaptive_scenario,
    fallback_feedback,
    fallback_initial_scenario,
    parse_feedback,
    parse_scenario,
    resolve,
)
from progressive_learning.skill_tracker import apply_exercise_outcome, update_learning_patterns

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 5

Clock = Callable[[], datetime]


class MemoryNotInitialisedError(LookupError):
    """An operation needs a learner memory that has not been created yet."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            f"No learning memory for user '{user_id}'. "
            "Call generate_initial_scenario first."
        )
        self.user_id = user_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressiveLearningAgent:
    """
    Adaptive scenario coach.

    Usage:
        agent = ProgressiveLearningAgent(store=InMemoryMemoryStore(), generator=OfflineGenerator())
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        feedback = agent.evaluate_response_with_memory("u-1", scenario, answer)
        nxt      = agent.generate_adaptive_scenario("u-1", answer, feedback)
    """

    def __init__(
        self,
        store: Optional[MemoryRepository] = None,
        generator: Optional[TextGenerator] = None,
        clock: Optional[Clock] = None,
        scenario_guard: Optional[ScenarioGuardrails] = None,
    ) -> None:
        self._store = store if store is not None else SqliteMemoryStore()
        self._generator = generator if generator is not None else get_generator()
        self._clock = clock or _utcnow
        self._scenario_guard = scenario_guard or ScenarioGuardrails()
        self._issued_ids: set[str] = set()

    @property
    def generator_mode(self) -> str:
        return getattr(self._generator, "mode", "custom")

    # ── Memory access ────────────────────────────────────────────────────────

    def get_memory(self, user_id: str) -> Optional[LearningMemory]:
        return self._store.get(user_id)

    def _require_memory(self, user_id: str) -> LearningMemory:
        memory = self._store.get(user_id)
        if memory is None:
            raise MemoryNotInitialisedError(user_id)
        return memory

    # ── Generator plumbing ───────────────────────────────────────────────────

    def _next_scenario_id(self, memory: LearningMemory, kind: str) -> str:
        millis = int(self._clock().timestamp() * 1000)
        base = f"scenario_{millis}_{kind}"
        taken = self._issued_ids | set(memory.scenario_ids())
        candidate, n = base, 1
        while candidate in taken:
            n += 1
            candidate = f"{base}_{n}"
        self._issued_ids.add(candidate)
        return candidate

    def _ask(self, prompt: PromptPair, parser: Callable[[str], ParseOutcome]) -> ParseOutcome:
        try:
            reply = self._generator.generate(prompt.system, prompt.user)
        except GenerationError as exc:
            return ParseOutcome(error=ParseError("generator", str(exc)))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Generator %s raised unexpectedly.", self.generator_mode)
            return ParseOutcome(error=ParseError("generator", f"{type(exc).__name__}: {exc}"))
        return parser(reply)

    def _scenario_from_generator(
        self,
        prompt: PromptPair,
        memory: LearningMemory,
        scenario_id: str,
        fallback: Callable[[], ProgressiveScenario],
        default_skills: list[str],
        overrides: dict,
    ) -> ProgressiveScenario:
        scenario = resolve(self._ask(prompt, parse_scenario), fallback, "scenario")
        scenario = scenario.model_copy(update={"id": scenario_id, **overrides})
        scenario, check = self._scenario_guard.check(scenario, memory, default_skills)
        if check.blocked:
            logger.warning("Generated scenario rejected by guardrails; using fallback.")
            return fallback()
        return scenario

    # ── Public interface ─────────────────────────────────────────────────────

    def generate_initial_scenario(
        self,
        user_id: str,
        domain: Union[Domain, str],
        level: Union[Level, str],
    ) -> ProgressiveScenario:
        """
        Start (or restart) a learner on a track.

        An existing memory for the same domain and level is resumed; a memory
        for a different track is replaced by a fresh one.

        Raises:
            ValueError – unknown domain or level.
        """
        domain = Domain(domain)
        level = Level(level)

        memory = self._store.get(user_id)
        if memory is None or memory.domain != domain or memory.level != level:
            if memory is not None:
                logger.info(
                    "Replacing %s/%s memory for %s with %s/%s.",
                    memory.domain.value, memory.level.value, user_id, domain.value, level.value,
                )
            memory = new_memory(user_id, domain, level)
            self._store.put(user_id, memory)

        scenario_id = self._next_scenario_id(memory, "initial")
        prompt = build_initial_prompt(domain, level, scenario_id)
        return self._scenario_from_generator(
            prompt,
            memory,
            scenario_id,
            fallback=lambda: fallback_initial_scenario(domain, level, scenario_id),
            default_skills=list(memory.skill_progression)[:3],
            overrides={"is_adaptive": False, "based_on_previous": []},
        )

    def generate_adaptive_scenario(
        self,
        user_id: str,
        previous_response: str,
        previous_feedback: ScenarioFeedback,
    ) -> ProgressiveScenario:
        """
        Next exercise, shaped by everything the learner has done so far.

        Re-folding *previous_response* into the learning patterns is
        idempotent when evaluate_response_with_memory already recorded it.

        Raises:
            MemoryNotInitialisedError – no memory for *user_id*.
        """
        memory = self._require_memory(user_id)
        patterns = update_learning_patterns(
            memory.learning_patterns, previous_response, previous_feedback, memory.scores(),
        )
        if patterns != memory.learning_patterns:
            memory = memory.model_copy(update={"learning_patterns": patterns})
            self._store.put(user_id, memory)

        policy = derive_policy(memory, previous_feedback)
        scenario_id = self._next_scenario_id(memory, "adaptive")
        prompt = build_adaptive_prompt(memory, previous_feedback, policy, scenario_id)
        logger.debug(
            "Adaptive policy for %s: targets=%s next_difficulty=%s",
            user_id, policy.target_skills, policy.next_difficulty,
        )
        return self._scenario_from_generator(
            prompt,
            memory,
            scenario_id,
            fallback=lambda: fallback_adaptive_scenario(
                memory, previous_feedback, scenario_id,
                policy.next_difficulty, list(policy.target_skills),
            ),
            default_skills=list(policy.target_skills),
            overrides={"difficulty": policy.next_difficulty, "is_adaptive": True},
        )

    def evaluate_response_with_memory(
        self,
        user_id: str,
        scenario: ProgressiveScenario,
        user_response: str,
    ) -> ScenarioFeedback:
        """
        Score *user_response* and record the exercise in memory.

        Raises:
            MemoryNotInitialisedError – no memory for *user_id*.
        """
        memory = self._require_memory(user_id)
        prompt = build_evaluation_prompt(memory, scenario, user_response)
        outcome = self._ask(prompt, parse_feedback)
        feedback = resolve(outcome, lambda: fallback_feedback(memory, user_response), "feedback")
        source = FeedbackSource.GENERATOR if outcome.ok else FeedbackSource.FALLBACK

        self._record_exercise(memory, scenario, user_response, feedback, source)
        return feedback

    def _record_exercise(
        self,
        memory: LearningMemory,
        scenario: ProgressiveScenario,
        user_response: str,
        feedback: ScenarioFeedback,
        source: FeedbackSource,
    ) -> LearningMemory:
        now = self._clock()
        timestamp = now.isoformat()

        history = memory.session_history + [SessionRecord(
            scenario_id=scenario.id,
            title=scenario.title,
            user_response=user_response,
            feedback=feedback,
            timestamp=timestamp,
            source=source,
        )]
        scores = [rec.feedback.score for rec in history]

        recommendations = list(memory.next_recommendations)
        if feedback.next_focus and feedback.next_focus not in recommendations:
            recommendations.append(feedback.next_focus)

        updated = memory.model_copy(update={
            "session_history":      history,
            "skill_progression":    apply_exercise_outcome(
                memory.skill_progression, scenario.skills_required, feedback.score,
            ),
            "learning_patterns":    update_learning_patterns(
                memory.learning_patterns, user_response, feedback, scores,
            ),
            "next_recommendations": recommendations[-MAX_RECOMMENDATIONS:],
        })
        self._store.put(memory.user_id, updated)

        self._store.add_document(LearningDocument(
            id=f"{memory.user_id}_{scenario.id}_{int(now.timestamp() * 1000)}",
            user_id=memory.user_id,
            domain=memory.domain,
            level=memory.level,
            scenario_id=scenario.id,
            timestamp=timestamp,
            scenario=ScenarioSummary(
                title=scenario.title,
                content=scenario.scenario,
                difficulty=scenario.difficulty,
            ),
            user_response=user_response,
            ai_feedback=FeedbackSummary(
                score=feedback.score,
                strengths=feedback.strengths,
                improvements=feedback.improvements,
                next_focus=feedback.next_focus,
            ),
            session_context=SessionContext(
                previous_scenarios=len(history),
                overall_progress=rounded_pct(average_score(scores)),
                skill_progression=updated.skill_progression,
            ),
        ))
        logger.info(
            "Recorded %s for %s: score %g (%s), %d exercise(s) so far.",
            scenario.id, memory.user_id, feedback.score, source.value, len(history),
        )
        return updated

    # ── Analytics ────────────────────────────────────────────────────────────

    def get_learning_analytics(self, user_id: str) -> Optional[LearningAnalytics]:
        """Progress summary for one learner, or None when they have no memory."""
        memory = self._store.get(user_id)
        if memory is None:
            return None
        return build_learning_analytics(memory)

    def get_document_analytics(
        self,
        domain: Optional[Union[Domain, str]] = None,
        level: Optional[Union[Level, str]] = None,
    ) -> DocumentAnalytics:
        """Totals and distributions over the learning-document log."""
        documents = self._store.list_documents(
            domain=Domain(domain) if domain is not None else None,
            level=Level(level) if level is not None else None,
        )
        return summarize_documents(documents)
