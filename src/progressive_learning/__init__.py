"""
progressive_learning – Adaptive scenario-based career coach
============================================================
Package containing the coach, its memory model, configuration and
persistence utilities.  A learner picks a track (AI/ML or Cloud) and a
level, answers workplace scenarios in free text, and receives scored
feedback; each new scenario adapts to what the coach remembers.

Module map
----------
  models.py             Pydantic records (scenario, feedback, memory,
                        learning document), enums and the domain registry.
  config.py             Settings loaded from .env; generator tier detection.
  memory_store.py       Session Memory Store: in-memory and SQLite backends.
  skill_tracker.py      Skill ratchet and learning-pattern updates.
  difficulty.py         Next-difficulty policy and score statistics.
  prompt_builder.py     AdaptationPolicy + system/user prompt renderers.
  response_parser.py    Fence stripping, JSON recovery, fallback records.
  llm_client.py         OpenAI / Azure OpenAI generator, offline generator.
  guardrails.py         Response and scenario checks (G-01..G-08).
  analytics.py          Per-learner progress and document-log summaries.
  progressive_agent.py  ProgressiveLearningAgent: the three UI operations.
  session.py            Per-exercise state machine used by the UIs.

Exercise loop
-------------
  generate_initial_scenario → [learner answers] → ResponseGuardrails
  → evaluate_response_with_memory → memory + learning document persisted
  → generate_adaptive_scenario → [learner answers] → …
"""
__version__ = "0.1.0"
