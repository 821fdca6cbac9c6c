"""
Shared pytest fixtures for the Progressive Learning test suite.
All fixtures use mock mode – no generator credentials required.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import sys
import os

_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

# Force mock mode – never call a real generator during tests
os.environ["FORCE_MOCK_MODE"] = "true"
os.environ.setdefault("AZURE_OPENAI_ENDPOINT", "<placeholder>")
os.environ.setdefault("AZURE_OPENAI_API_KEY",  "<placeholder>")


import pytest

from factories import StepClock, make_feedback, make_memory, make_scenario

from progressive_learning.llm_client import OfflineGenerator
from progressive_learning.memory_store import InMemoryMemoryStore, SqliteMemoryStore
from progressive_learning.progressive_agent import ProgressiveLearningAgent


# ─── pytest fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def store():
    return InMemoryMemoryStore()


@pytest.fixture
def sqlite_store(tmp_path):
    return SqliteMemoryStore(tmp_path / "memory.db")


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def offline_agent(store, clock):
    return ProgressiveLearningAgent(store=store, generator=OfflineGenerator(), clock=clock)


@pytest.fixture
def memory():
    return make_memory()


@pytest.fixture
def scenario():
    return make_scenario()


@pytest.fixture
def feedback():
    return make_feedback()
