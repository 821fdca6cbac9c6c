"""
Tests for ProgressiveLearningAgent: the three UI operations wired to a
scripted generator and an in-memory store.
"""
import logging

import pytest

from factories import (
    FrozenClock,
    ScriptedGenerator,
    StepClock,
    feedback_json,
    make_feedback,
    make_scenario,
    scenario_json,
)

from progressive_learning.llm_client import GenerationError, GeneratorUnavailable
from progressive_learning.memory_store import InMemoryMemoryStore
from progressive_learning.models import Domain, FeedbackSource, Level, initial_skill_levels
from progressive_learning.progressive_agent import MemoryNotInitialisedError, ProgressiveLearningAgent

ANSWER = (
    "First I would clarify the goal with the support lead, then profile the six months of "
    "tickets by category and week, and finally share two charts with the team."
)


def _agent(*replies, store=None, clock=None):
    generator = ScriptedGenerator(*replies)
    agent = ProgressiveLearningAgent(
        store=store or InMemoryMemoryStore(),
        generator=generator,
        clock=clock or StepClock(),
    )
    return agent, generator


# ─── generate_initial_scenario ───────────────────────────────────────────────

class TestInitialScenario:
    def test_creates_memory_and_returns_generated_scenario(self):
        agent, gen = _agent(scenario_json())
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")

        assert scenario.title == "Forecasting demand for the support desk"
        assert scenario.id.startswith("scenario_") and scenario.id.endswith("_initial")
        assert not scenario.is_adaptive
        memory = agent.get_memory("u-1")
        assert memory.domain == Domain.AI and memory.level == Level.BEGINNER
        assert memory.skill_progression == initial_skill_levels(Domain.AI, Level.BEGINNER)
        assert memory.session_history == []
        assert len(gen.calls) == 1

    def test_generated_id_replaced_by_agent_id(self):
        agent, _ = _agent(scenario_json(id="model-made-this-up"))
        assert agent.generate_initial_scenario("u-1", Domain.AI, Level.BEGINNER).id != "model-made-this-up"

    def test_offline_generator_uses_fallback(self, offline_agent):
        scenario = offline_agent.generate_initial_scenario("u-1", "cloud", "intermediate")
        assert scenario.title == "Your First Cloud Deployment"
        assert scenario.difficulty == 5
        assert offline_agent.get_memory("u-1") is not None

    @pytest.mark.parametrize("reply", ["", "no json here", '{"title": "x"}', '```json\n{"title": ""}\n```'])
    def test_unusable_reply_uses_fallback(self, reply):
        agent, _ = _agent(reply)
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        assert scenario.title == "Your First Week at DataTech"

    def test_blank_narrative_blocked_by_guardrail(self):
        agent, _ = _agent(scenario_json(scenario="   "))
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        assert scenario.title == "Your First Week at DataTech"

    def test_connection_error_from_custom_generator_uses_fallback(self):
        agent, _ = _agent(ConnectionError("reset by peer"))
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        assert scenario.title == "Your First Week at DataTech"
        assert agent.get_memory("u-1") is not None

    def test_deeply_nested_reply_uses_fallback(self):
        agent, _ = _agent("[" * 100_000 + "]" * 100_000)
        assert agent.generate_initial_scenario("u-1", "ai", "beginner").title == "Your First Week at DataTech"

    def test_generator_failure_logged_at_warning(self, caplog):
        agent, _ = _agent(GenerationError("timeout"))
        with caplog.at_level(logging.WARNING, logger="progressive_learning"):
            agent.generate_initial_scenario("u-1", "ai", "beginner")
        assert "timeout" in caplog.text

    def test_unknown_domain_or_level_raises_value_error(self, offline_agent):
        with pytest.raises(ValueError):
            offline_agent.generate_initial_scenario("u-1", "biology", "beginner")
        with pytest.raises(ValueError):
            offline_agent.generate_initial_scenario("u-1", "ai", "expert")
        assert offline_agent.get_memory("u-1") is None

    def test_empty_skills_filled_from_domain(self):
        agent, _ = _agent(scenario_json(skillsRequired=[]))
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        assert scenario.skills_required == ["data_analysis", "machine_learning", "problem_solving"]

    def test_same_track_resumes_memory(self, offline_agent):
        first = offline_agent.generate_initial_scenario("u-1", "ai", "beginner")
        offline_agent.evaluate_response_with_memory("u-1", first, ANSWER)
        offline_agent.generate_initial_scenario("u-1", "ai", "beginner")
        assert len(offline_agent.get_memory("u-1").session_history) == 1

    def test_different_track_replaces_memory(self, offline_agent):
        first = offline_agent.generate_initial_scenario("u-1", "ai", "beginner")
        offline_agent.evaluate_response_with_memory("u-1", first, ANSWER)
        offline_agent.generate_initial_scenario("u-1", "cloud", "beginner")
        memory = offline_agent.get_memory("u-1")
        assert memory.domain == Domain.CLOUD
        assert memory.session_history == []

    def test_ids_unique_with_frozen_clock(self):
        agent = ProgressiveLearningAgent(
            store=InMemoryMemoryStore(), generator=ScriptedGenerator(), clock=FrozenClock(),
        )
        ids = {agent.generate_initial_scenario("u-1", "ai", "beginner").id for _ in range(5)}
        assert len(ids) == 5


# ─── evaluate_response_with_memory ───────────────────────────────────────────

class TestEvaluate:
    def test_requires_memory(self, offline_agent):
        with pytest.raises(MemoryNotInitialisedError) as exc:
            offline_agent.evaluate_response_with_memory("ghost", make_scenario(), ANSWER)
        assert isinstance(exc.value, LookupError)
        assert exc.value.user_id == "ghost"

    def test_records_generated_feedback(self):
        agent, gen = _agent(scenario_json(), feedback_json(score=82))
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        feedback = agent.evaluate_response_with_memory("u-1", scenario, ANSWER)

        assert feedback.score == 82
        memory = agent.get_memory("u-1")
        assert len(memory.session_history) == 1
        record = memory.last_record()
        assert record.scenario_id == scenario.id
        assert record.user_response == ANSWER
        assert record.source == FeedbackSource.GENERATOR
        assert ANSWER in gen.calls[1][0]

    def test_fenced_score_only_reply(self):
        agent, _ = _agent(scenario_json(), '```json\n{"score": 81}\n```')
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        assert agent.evaluate_response_with_memory("u-1", scenario, ANSWER).score == 81

    def test_skills_ratchet_for_scenario_skills_only(self):
        agent, _ = _agent(scenario_json(skillsRequired=["data_analysis", "kubernetes"]), feedback_json(score=90))
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        skills = agent.get_memory("u-1").skill_progression
        assert skills["data_analysis"] == pytest.approx(2.3)
        assert skills["kubernetes"] == pytest.approx(1.3)
        assert skills["communication"] == 2.0

    def test_fallback_feedback_recorded_with_source(self, offline_agent):
        scenario = offline_agent.generate_initial_scenario("u-1", "ai", "beginner")
        feedback = offline_agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        assert feedback.score == 70
        record = offline_agent.get_memory("u-1").last_record()
        assert record.source == FeedbackSource.FALLBACK

    @pytest.mark.parametrize("reply", [
        '{"score": NaN}',
        '{"score": Infinity, "strengths": ["x"]}',
        pytest.param("[" * 100_000 + "]" * 100_000, id="deeply-nested"),
    ])
    def test_unusable_feedback_reply_uses_fallback(self, reply):
        agent, _ = _agent(scenario_json(), reply)
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        feedback = agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        assert feedback.score == 70
        memory = agent.get_memory("u-1")
        assert memory.last_record().source == FeedbackSource.FALLBACK
        assert memory.skill_progression["data_analysis"] == pytest.approx(2.2)

    def test_unexpected_generator_exception_uses_fallback(self, caplog):
        agent, _ = _agent(scenario_json(), TimeoutError("read timed out"))
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        with caplog.at_level(logging.WARNING, logger="progressive_learning"):
            feedback = agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        assert feedback.score == 70
        assert "TimeoutError" in caplog.text
        assert len(agent.get_memory("u-1").session_history) == 1

    def test_patterns_and_recommendations_updated(self):
        agent, _ = _agent(scenario_json(), feedback_json(nextFocus="Stakeholder communication"))
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        memory = agent.get_memory("u-1")
        assert memory.learning_patterns.strength_areas == ["Systematic decomposition"]
        assert memory.learning_patterns.challenge_areas == ["Name the stakeholders"]
        assert memory.next_recommendations == ["Stakeholder communication"]

    def test_recommendations_deduplicated_and_capped(self, store, clock):
        focuses = [f"focus {i}" for i in range(7)] + ["focus 6"]
        replies = [scenario_json()] + [feedback_json(nextFocus=f) for f in focuses]
        agent, _ = _agent(*replies, store=store, clock=clock)
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        for _ in focuses:
            agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        assert agent.get_memory("u-1").next_recommendations == [
            "focus 2", "focus 3", "focus 4", "focus 5", "focus 6",
        ]

    def test_learning_document_written(self, store):
        agent, _ = _agent(scenario_json(), feedback_json(score=82), store=store)
        scenario = agent.generate_initial_scenario("u-1", "ai", "beginner")
        agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        [doc] = store.list_documents(user_id="u-1")
        assert doc.scenario_id == scenario.id
        assert doc.ai_feedback.score == 82
        assert doc.session_context.previous_scenarios == 1
        assert doc.session_context.overall_progress == 82
        assert doc.session_context.skill_progression == store.get("u-1").skill_progression

    def test_history_is_append_only(self, offline_agent):
        scenario = offline_agent.generate_initial_scenario("u-1", "ai", "beginner")
        offline_agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        first = offline_agent.get_memory("u-1").session_history[0]
        offline_agent.evaluate_response_with_memory("u-1", scenario, "A second, shorter answer.")
        history = offline_agent.get_memory("u-1").session_history
        assert len(history) == 2
        assert history[0] == first


# ─── generate_adaptive_scenario ──────────────────────────────────────────────

class TestAdaptiveScenario:
    def test_requires_memory(self, offline_agent):
        with pytest.raises(MemoryNotInitialisedError):
            offline_agent.generate_adaptive_scenario("ghost", ANSWER, make_feedback())

    def test_full_loop_with_generator(self):
        agent, gen = _agent(
            scenario_json(),
            feedback_json(score=85, readinessForNext=True),
            scenario_json(title="Scaling the forecast", basedOnPrevious=["unknown_id"], difficulty=9),
        )
        first = agent.generate_initial_scenario("u-1", "ai", "beginner")
        feedback = agent.evaluate_response_with_memory("u-1", first, ANSWER)
        nxt = agent.generate_adaptive_scenario("u-1", ANSWER, feedback)

        assert nxt.title == "Scaling the forecast"
        assert nxt.is_adaptive
        assert nxt.id.endswith("_adaptive") and nxt.id != first.id
        assert nxt.difficulty == 4
        assert nxt.based_on_previous == []
        assert "Scenarios Completed: 1" in gen.calls[2][0]

    def test_offline_fallback_builds_on_previous(self, offline_agent):
        first = offline_agent.generate_initial_scenario("u-1", "ai", "beginner")
        feedback = offline_agent.evaluate_response_with_memory("u-1", first, ANSWER)
        nxt = offline_agent.generate_adaptive_scenario("u-1", ANSWER, feedback)

        assert nxt.title == "Building on Your Previous Success"
        assert nxt.is_adaptive
        assert nxt.based_on_previous == [first.id]
        assert nxt.difficulty == 3
        assert nxt.skills_required == ["business_understanding", "machine_learning", "communication"]

    def test_generator_error_falls_back(self):
        agent, _ = _agent(scenario_json(), feedback_json(), GeneratorUnavailable("down"))
        first = agent.generate_initial_scenario("u-1", "ai", "beginner")
        feedback = agent.evaluate_response_with_memory("u-1", first, ANSWER)
        assert agent.generate_adaptive_scenario("u-1", ANSWER, feedback).title == "Building on Your Previous Success"

    def test_does_not_add_history(self, offline_agent):
        first = offline_agent.generate_initial_scenario("u-1", "ai", "beginner")
        feedback = offline_agent.evaluate_response_with_memory("u-1", first, ANSWER)
        offline_agent.generate_adaptive_scenario("u-1", ANSWER, feedback)
        assert len(offline_agent.get_memory("u-1").session_history) == 1


# ─── Analytics ───────────────────────────────────────────────────────────────

class TestAgentAnalytics:
    def test_none_without_memory(self, offline_agent):
        assert offline_agent.get_learning_analytics("ghost") is None

    def test_after_one_exercise(self, offline_agent):
        scenario = offline_agent.generate_initial_scenario("u-1", "ai", "beginner")
        offline_agent.evaluate_response_with_memory("u-1", scenario, ANSWER)
        analytics = offline_agent.get_learning_analytics("u-1")
        assert analytics.overall_progress.scenarios_completed == 1
        assert analytics.overall_progress.average_score == 70
        assert analytics.readiness.scenarios_needed == 4

    def test_document_analytics_filtered(self, offline_agent):
        for user, domain in (("a", "ai"), ("b", "cloud")):
            scenario = offline_agent.generate_initial_scenario(user, domain, "beginner")
            offline_agent.evaluate_response_with_memory(user, scenario, ANSWER)
        assert offline_agent.get_document_analytics().total_sessions == 2
        cloud = offline_agent.get_document_analytics(domain="cloud")
        assert cloud.total_sessions == 1
        assert cloud.domain_distribution == {"cloud": 1}
