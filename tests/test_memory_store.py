"""
Tests for the Session Memory Store backends.
"""
import logging
import sqlite3

import pytest

from factories import make_memory

from progressive_learning.memory_store import InMemoryMemoryStore, SqliteMemoryStore
from progressive_learning.models import (
    Domain,
    FeedbackSummary,
    LearningDocument,
    Level,
    ScenarioSummary,
    SessionContext,
)


def make_document(doc_id="d1", user_id="learner-1", domain=Domain.AI, level=Level.BEGINNER,
                  timestamp="2026-03-01T12:00:00+00:00", score=80):
    return LearningDocument(
        id=doc_id,
        user_id=user_id,
        domain=domain,
        level=level,
        scenario_id=f"scenario_{doc_id}",
        timestamp=timestamp,
        scenario=ScenarioSummary(title="T", content="C", difficulty=3),
        user_response="answer",
        ai_feedback=FeedbackSummary(score=score, strengths=["s"], improvements=["i"]),
        session_context=SessionContext(previous_scenarios=1, overall_progress=score),
    )


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryMemoryStore()
    return SqliteMemoryStore(tmp_path / "store.db")


class TestRepositoryContract:
    def test_get_missing_returns_none(self, any_store):
        assert any_store.get("nobody") is None

    def test_put_then_get(self, any_store):
        memory = make_memory(scores=(70, 85))
        any_store.put(memory.user_id, memory)
        assert any_store.get(memory.user_id) == memory

    def test_get_returns_a_copy(self, any_store):
        memory = make_memory()
        any_store.put(memory.user_id, memory)
        fetched = any_store.get(memory.user_id)
        fetched.skill_progression["data_analysis"] = 9.9
        assert any_store.get(memory.user_id).skill_progression["data_analysis"] == 2.0

    def test_put_overwrites_wholesale(self, any_store):
        any_store.put("learner-1", make_memory(scores=(70,)))
        any_store.put("learner-1", make_memory(scores=(90, 91)))
        assert any_store.get("learner-1").scores() == [90, 91]

    def test_list_and_load(self, any_store):
        any_store.put("a", make_memory(user_id="a"))
        any_store.put("b", make_memory(user_id="b", domain=Domain.CLOUD))
        assert {m.user_id for m in any_store.list()} == {"a", "b"}
        assert set(any_store.load()) == {"a", "b"}

    def test_documents_filtered_and_ordered(self, any_store):
        any_store.add_document(make_document("d2", timestamp="2026-03-02T00:00:00+00:00"))
        any_store.add_document(make_document("d1", timestamp="2026-03-01T00:00:00+00:00"))
        any_store.add_document(make_document("d3", user_id="other", domain=Domain.CLOUD,
                                             level=Level.INTERMEDIATE))
        assert [d.id for d in any_store.list_documents(user_id="learner-1")] == ["d1", "d2"]
        assert [d.id for d in any_store.list_documents(domain=Domain.CLOUD)] == ["d3"]
        assert [d.id for d in any_store.list_documents(level=Level.BEGINNER)] == ["d1", "d2"]
        assert len(any_store.list_documents()) == 3


class TestSqlitePersistence:
    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "store.db"
        memory = make_memory(scores=(60, 75, 88))
        SqliteMemoryStore(path).put(memory.user_id, memory)
        reopened = SqliteMemoryStore(path)
        assert reopened.get(memory.user_id) == memory

    def test_documents_survive_reopen(self, tmp_path):
        path = tmp_path / "store.db"
        SqliteMemoryStore(path).add_document(make_document())
        assert [d.id for d in SqliteMemoryStore(path).list_documents()] == ["d1"]

    def test_duplicate_document_ignored(self, sqlite_store):
        sqlite_store.add_document(make_document())
        sqlite_store.add_document(make_document())
        assert len(sqlite_store.list_documents()) == 1

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "store.db"
        SqliteMemoryStore(path)
        assert path.exists()

    def test_absent_file_loads_empty(self, tmp_path):
        assert SqliteMemoryStore(tmp_path / "fresh.db").load() == {}

    def test_corrupt_file_moved_aside(self, tmp_path, caplog):
        path = tmp_path / "store.db"
        path.write_bytes(b"this is not a sqlite database at all" * 100)
        with caplog.at_level(logging.ERROR, logger="progressive_learning.memory_store"):
            store = SqliteMemoryStore(path)
        assert store.load() == {}
        assert list(tmp_path.glob("store.db.corrupt-*"))
        assert "unreadable" in caplog.text
        store.put("learner-1", make_memory())
        assert store.get("learner-1") is not None

    def test_undecodable_row_skipped(self, tmp_path, caplog):
        path = tmp_path / "store.db"
        store = SqliteMemoryStore(path)
        store.put("good", make_memory(user_id="good"))
        conn = sqlite3.connect(path)
        conn.execute(
            "INSERT INTO learning_memory (user_id, domain, level, memory_json) VALUES (?, ?, ?, ?)",
            ("bad", "ai", "beginner", '{"userId": "bad"}'),
        )
        conn.commit()
        conn.close()
        with caplog.at_level(logging.ERROR, logger="progressive_learning.memory_store"):
            table = SqliteMemoryStore(path).load()
        assert set(table) == {"good"}
        assert "Skipping unreadable memory for bad" in caplog.text

    def test_default_path_from_settings(self, tmp_path, monkeypatch):
        target = tmp_path / "from_env.db"
        monkeypatch.setenv("PROGRESSIVE_DB_PATH", str(target))
        SqliteMemoryStore()
        assert target.exists()
