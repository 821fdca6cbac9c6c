"""
progressive_learning/memory_store.py – Session Memory Store
============================================================
Keeps one LearningMemory per learner plus an append-only log of
LearningDocuments (one per evaluated exercise).

Backends
--------
  InMemoryMemoryStore   dict-backed; used by the test-suite and mock runs.
  SqliteMemoryStore     file-backed; the default for the apps.

Both satisfy MemoryRepository and are handed to ProgressiveLearningAgent,
which never holds module-level state of its own.

Contract
--------
  load()          whole table → {user_id: LearningMemory}.  Never raises:
                  a corrupt database file is moved aside and recreated, an
                  undecodable row is skipped.  Both are logged.
  get(user_id)    LearningMemory or None.  Returns a copy; mutate it and put().
  put(user_id, m) overwrite the record wholesale and persist immediately.
  list()          all records.

SQLite schema (see _init_db)
----------------------------
  learning_memory     user_id TEXT PK, domain, level, memory_json, updated_at
  learning_documents  id TEXT PK, user_id, domain, level, scenario_id,
                      timestamp, document_json

Records are stored as camelCase JSON (model_dump(by_alias=True)) so the
persisted shape matches what the generator sees.  There is no migration
scheme: unknown keys are ignored and missing keys take model defaults.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from progressive_learning.config import get_settings
from progressive_learning.models import Domain, LearningDocument, LearningMemory, Level

logger = logging.getLogger(__name__)


def dump_memory(memory: LearningMemory) -> str:
    return memory.model_dump_json(by_alias=True)


def load_memory(payload: str) -> LearningMemory:
    return LearningMemory.model_validate_json(payload)


class MemoryRepository(Protocol):
    def load(self) -> dict[str, LearningMemory]: ...
    def get(self, user_id: str) -> Optional[LearningMemory]: ...
    def put(self, user_id: str, memory: LearningMemory) -> None: ...
    def list(self) -> list[LearningMemory]: ...
    def add_document(self, document: LearningDocument) -> None: ...
    def list_documents(
        self,
        user_id: Optional[str] = None,
        domain: Optional[Domain] = None,
        level: Optional[Level] = None,
    ) -> list[LearningDocument]: ...


def _matches(doc: LearningDocument, user_id, domain, level) -> bool:
    return (
        (user_id is None or doc.user_id == user_id)
        and (domain is None or doc.domain == domain)
        and (level is None or doc.level == level)
    )


# ─── In-memory backend ───────────────────────────────────────────────────────

class InMemoryMemoryStore:
    """Dict-backed repository.  Copies on the way in and out."""

    def __init__(self) -> None:
        self._records: dict[str, LearningMemory] = {}
        self._documents: list[LearningDocument] = []

    def load(self) -> dict[str, LearningMemory]:
        return {uid: m.model_copy(deep=True) for uid, m in self._records.items()}

    def get(self, user_id: str) -> Optional[LearningMemory]:
        memory = self._records.get(user_id)
        return memory.model_copy(deep=True) if memory is not None else None

    def put(self, user_id: str, memory: LearningMemory) -> None:
        self._records[user_id] = memory.model_copy(deep=True)

    def list(self) -> list[LearningMemory]:
        return list(self.load().values())

    def add_document(self, document: LearningDocument) -> None:
        self._documents.append(document.model_copy(deep=True))

    def list_documents(self, user_id=None, domain=None, level=None) -> list[LearningDocument]:
        docs = [d for d in self._documents if _matches(d, user_id, domain, level)]
        return sorted(docs, key=lambda d: d.timestamp)


# ─── SQLite backend ──────────────────────────────────────────────────────────

class SqliteMemoryStore:
    """
    File-backed repository.  The whole table is read once by load() (called
    from __init__) and mirrored in a dict; every put() writes through.
    """

    def __init__(self, db_path: Optional[str | Path] = None) -> None:
        self._path = Path(db_path or get_settings().storage.db_path)
        self._cache: dict[str, LearningMemory] = {}
        self._ensure_db()
        self._cache = self.load()

    # ── Connection helpers ───────────────────────────────────────────────────

    def _get_conn(self) -> sqlite3.Connection:
        """Return a connection with row_factory set."""
        conn = sqlite3.connect(str(self._path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.DatabaseError:
            conn.close()
            raise
        return conn

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_conn()
        try:
            conn.executescript("""
            CREATE TABLE IF NOT EXISTS learning_memory (
                user_id      TEXT PRIMARY KEY,
                domain       TEXT NOT NULL,
                level        TEXT NOT NULL,
                memory_json  TEXT NOT NULL,
                updated_at   TEXT DEFAULT (datetime('now'))
            );
            CREATE TABLE IF NOT EXISTS learning_documents (
                id            TEXT PRIMARY KEY,
                user_id       TEXT NOT NULL,
                domain        TEXT NOT NULL,
                level         TEXT NOT NULL,
                scenario_id   TEXT NOT NULL,
                timestamp     TEXT NOT NULL,
                document_json TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_documents_user ON learning_documents (user_id);
            """)
            conn.commit()
        finally:
            conn.close()

    def _ensure_db(self) -> None:
        """Create the schema; a file that is not a usable database is moved aside."""
        if self._path.parent and not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._init_db()
        except sqlite3.DatabaseError as exc:
            self._quarantine(exc)
            self._init_db()

    def _quarantine(self, exc: Exception) -> None:
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        target = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        logger.error(
            "Memory store %s is unreadable (%s); moved to %s and starting empty.",
            self._path, exc, target.name,
        )
        for suffix in ("-wal", "-shm"):
            Path(f"{self._path}{suffix}").unlink(missing_ok=True)
        self._path.replace(target)

    # ── Repository interface ─────────────────────────────────────────────────

    def load(self) -> dict[str, LearningMemory]:
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute("SELECT user_id, memory_json FROM learning_memory").fetchall()
            finally:
                conn.close()
        except sqlite3.DatabaseError as exc:
            self._quarantine(exc)
            self._init_db()
            return {}

        table: dict[str, LearningMemory] = {}
        for row in rows:
            try:
                table[row["user_id"]] = load_memory(row["memory_json"])
            except ValidationError as exc:
                logger.error("Skipping unreadable memory for %s: %s", row["user_id"], exc)
        return table

    def get(self, user_id: str) -> Optional[LearningMemory]:
        memory = self._cache.get(user_id)
        return memory.model_copy(deep=True) if memory is not None else None

    def put(self, user_id: str, memory: LearningMemory) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO learning_memory (user_id, domain, level, memory_json, updated_at)
                VALUES (?, ?, ?, ?, datetime('now'))
                ON CONFLICT(user_id) DO UPDATE SET
                    domain      = excluded.domain,
                    level       = excluded.level,
                    memory_json = excluded.memory_json,
                    updated_at  = excluded.updated_at
                """,
                (user_id, memory.domain.value, memory.level.value, dump_memory(memory)),
            )
            conn.commit()
        finally:
            conn.close()
        self._cache[user_id] = memory.model_copy(deep=True)

    def list(self) -> list[LearningMemory]:
        return [m.model_copy(deep=True) for m in self._cache.values()]

    # ── Learning document log ────────────────────────────────────────────────

    def add_document(self, document: LearningDocument) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT OR IGNORE INTO learning_documents
                    (id, user_id, domain, level, scenario_id, timestamp, document_json)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    document.id,
                    document.user_id,
                    document.domain.value,
                    document.level.value,
                    document.scenario_id,
                    document.timestamp,
                    document.model_dump_json(by_alias=True),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def list_documents(self, user_id=None, domain=None, level=None) -> list[LearningDocument]:
        clauses, params = [], []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if domain is not None:
            clauses.append("domain = ?")
            params.append(Domain(domain).value)
        if level is not None:
            clauses.append("level = ?")
            params.append(Level(level).value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT id, document_json FROM learning_documents {where} ORDER BY timestamp",
                params,
            ).fetchall()
        finally:
            conn.close()

        documents = []
        for row in rows:
            try:
                documents.append(LearningDocument.model_validate_json(row["document_json"]))
            except ValidationError as exc:
                logger.error("Skipping unreadable learning document %s: %s", row["id"], exc)
        return documents
