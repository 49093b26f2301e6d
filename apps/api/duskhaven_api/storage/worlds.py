"""Persistent world saves and the per-world news feed."""

from __future__ import annotations

from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import json
import logging
import os
import sqlite3
import threading


WORKSPACE_ROOT = Path(__file__).resolve().parents[4]
MIGRATIONS_DIR = WORKSPACE_ROOT / "packages" / "duskhaven_core" / "db" / "migrations"

logger = logging.getLogger("duskhaven_api.storage")


def _now_utc_sqlite() -> str:
    return "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


def _json_payload(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, (str, bytes)):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


def _save_row(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "world_id": str(row["world_id"]),
        "seed": str(row["seed"]),
        "hour": int(row["hour"]),
        "actor_count": int(row["actor_count"]),
        "saved_at": str(row["saved_at"]),
    }


def _news_row(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "world_id": str(row["world_id"]),
        "seq": int(row["seq"]),
        "hour": int(row["hour"]),
        "day": int(row["hour"]) // 24,
        "kind": str(row["kind"]),
        "summary": str(row["summary"]),
        "details": _json_payload(row.get("payload_json")),
        "created_at": str(row["created_at"]),
    }


class WorldStore(ABC):
    @abstractmethod
    def init_db(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def save_world(self, *, world_id: str, seed: str, hour: int, actor_count: int, state: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def load_world(self, *, world_id: str) -> Optional[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def list_saves(self) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def append_news(self, *, world_id: str, event: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_news(self, *, world_id: str, limit: int = 50) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def delete_world(self, *, world_id: str) -> bool:
        raise NotImplementedError


class SQLiteWorldStore(WorldStore):
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._initialized = False
        self._local = threading.local()

    def _connect(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA busy_timeout = 5000")
        self._local.conn = conn
        return conn

    def init_db(self) -> None:
        if self._initialized:
            return
        with self._connect() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS world_saves (
                  world_id TEXT PRIMARY KEY,
                  seed TEXT NOT NULL,
                  hour INTEGER NOT NULL DEFAULT 0,
                  actor_count INTEGER NOT NULL DEFAULT 0,
                  state_json TEXT NOT NULL,
                  saved_at TEXT NOT NULL DEFAULT ({_now_utc_sqlite()})
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS world_news (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  world_id TEXT NOT NULL,
                  seq INTEGER NOT NULL,
                  hour INTEGER NOT NULL,
                  kind TEXT NOT NULL,
                  summary TEXT NOT NULL,
                  payload_json TEXT NOT NULL DEFAULT '{{}}',
                  created_at TEXT NOT NULL DEFAULT ({_now_utc_sqlite()}),
                  UNIQUE (world_id, seq)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_world_news_world_seq ON world_news(world_id, seq DESC)"
            )
        self._initialized = True

    def ping(self) -> None:
        self._connect().execute("SELECT 1")

    def save_world(self, *, world_id: str, seed: str, hour: int, actor_count: int, state: dict[str, Any]) -> dict[str, Any]:
        self.init_db()
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO world_saves (world_id, seed, hour, actor_count, state_json, saved_at)
                VALUES (?, ?, ?, ?, ?, {_now_utc_sqlite()})
                ON CONFLICT(world_id) DO UPDATE SET
                  seed = excluded.seed,
                  hour = excluded.hour,
                  actor_count = excluded.actor_count,
                  state_json = excluded.state_json,
                  saved_at = excluded.saved_at
                """,
                (
                    world_id,
                    str(seed),
                    int(hour),
                    int(actor_count),
                    json.dumps(state, separators=(",", ":"), ensure_ascii=True),
                ),
            )
            row = conn.execute(
                "SELECT world_id, seed, hour, actor_count, saved_at FROM world_saves WHERE world_id = ?",
                (world_id,),
            ).fetchone()
        return _save_row(dict(row))

    def load_world(self, *, world_id: str) -> Optional[dict[str, Any]]:
        self.init_db()
        row = self._connect().execute(
            "SELECT state_json FROM world_saves WHERE world_id = ?",
            (world_id,),
        ).fetchone()
        if row is None:
            return None
        return _json_payload(row["state_json"])

    def list_saves(self) -> list[dict[str, Any]]:
        self.init_db()
        rows = self._connect().execute(
            "SELECT world_id, seed, hour, actor_count, saved_at FROM world_saves ORDER BY world_id"
        ).fetchall()
        return [_save_row(dict(row)) for row in rows]

    def append_news(self, *, world_id: str, event: dict[str, Any]) -> None:
        self.init_db()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO world_news (world_id, seq, hour, kind, summary, payload_json)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    world_id,
                    int(event.get("seq") or 0),
                    int(event.get("hour") or 0),
                    str(event.get("kind") or "unknown")[:64],
                    str(event.get("summary") or "")[:800],
                    json.dumps(event.get("details") or {}, separators=(",", ":"), ensure_ascii=True),
                ),
            )

    def list_news(self, *, world_id: str, limit: int = 50) -> list[dict[str, Any]]:
        self.init_db()
        rows = self._connect().execute(
            """
            SELECT world_id, seq, hour, kind, summary, payload_json, created_at
            FROM world_news
            WHERE world_id = ?
            ORDER BY seq DESC
            LIMIT ?
            """,
            (world_id, max(1, min(500, int(limit)))),
        ).fetchall()
        return [_news_row(dict(row)) for row in rows]

    def delete_world(self, *, world_id: str) -> bool:
        self.init_db()
        with self._connect() as conn:
            removed = conn.execute("DELETE FROM world_saves WHERE world_id = ?", (world_id,)).rowcount
            conn.execute("DELETE FROM world_news WHERE world_id = ?", (world_id,))
        return removed > 0


class PostgresWorldStore(WorldStore):
    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._ensure_driver()

    @staticmethod
    def _ensure_driver() -> None:
        try:
            import psycopg  # noqa: F401
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RuntimeError(
                "Postgres backend requires `psycopg`. Install it with: pip install psycopg[binary]"
            ) from exc

    def _connect(self):
        import psycopg
        from psycopg.rows import dict_row

        return psycopg.connect(self.database_url, row_factory=dict_row)

    def _run_migrations(self) -> None:
        migration_files = sorted(MIGRATIONS_DIR.glob("*.sql"))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS schema_migrations (
                      id TEXT PRIMARY KEY,
                      applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute("SELECT id FROM schema_migrations")
                applied = {row["id"] for row in cur.fetchall()}
                for file in migration_files:
                    if file.name in applied:
                        continue
                    cur.execute(file.read_text(encoding="utf-8"))
                    cur.execute("INSERT INTO schema_migrations (id) VALUES (%s)", (file.name,))
                    logger.info("[STORAGE] Applied migration: %s", file.name)

    def init_db(self) -> None:
        self._run_migrations()

    def ping(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")

    def save_world(self, *, world_id: str, seed: str, hour: int, actor_count: int, state: dict[str, Any]) -> dict[str, Any]:
        self.init_db()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO world_saves (world_id, seed, hour, actor_count, state_json, saved_at)
                    VALUES (%s, %s, %s, %s, %s::jsonb, NOW())
                    ON CONFLICT (world_id) DO UPDATE SET
                      seed = EXCLUDED.seed,
                      hour = EXCLUDED.hour,
                      actor_count = EXCLUDED.actor_count,
                      state_json = EXCLUDED.state_json,
                      saved_at = EXCLUDED.saved_at
                    RETURNING world_id, seed, hour, actor_count, saved_at
                    """,
                    (
                        world_id,
                        str(seed),
                        int(hour),
                        int(actor_count),
                        json.dumps(state, separators=(",", ":"), ensure_ascii=True),
                    ),
                )
                row = cur.fetchone()
        return _save_row(row)

    def load_world(self, *, world_id: str) -> Optional[dict[str, Any]]:
        self.init_db()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT state_json FROM world_saves WHERE world_id = %s", (world_id,))
                row = cur.fetchone()
        if row is None:
            return None
        return _json_payload(row["state_json"])

    def list_saves(self) -> list[dict[str, Any]]:
        self.init_db()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT world_id, seed, hour, actor_count, saved_at FROM world_saves ORDER BY world_id")
                rows = cur.fetchall()
        return [_save_row(row) for row in rows]

    def append_news(self, *, world_id: str, event: dict[str, Any]) -> None:
        self.init_db()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO world_news (world_id, seq, hour, kind, summary, payload_json)
                    VALUES (%s, %s, %s, %s, %s, %s::jsonb)
                    ON CONFLICT (world_id, seq) DO UPDATE SET
                      hour = EXCLUDED.hour,
                      kind = EXCLUDED.kind,
                      summary = EXCLUDED.summary,
                      payload_json = EXCLUDED.payload_json
                    """,
                    (
                        world_id,
                        int(event.get("seq") or 0),
                        int(event.get("hour") or 0),
                        str(event.get("kind") or "unknown")[:64],
                        str(event.get("summary") or "")[:800],
                        json.dumps(event.get("details") or {}, separators=(",", ":"), ensure_ascii=True),
                    ),
                )

    def list_news(self, *, world_id: str, limit: int = 50) -> list[dict[str, Any]]:
        self.init_db()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT world_id, seq, hour, kind, summary, payload_json, created_at
                    FROM world_news
                    WHERE world_id = %s
                    ORDER BY seq DESC
                    LIMIT %s
                    """,
                    (world_id, max(1, min(500, int(limit)))),
                )
                rows = cur.fetchall()
        return [_news_row(row) for row in rows]

    def delete_world(self, *, world_id: str) -> bool:
        self.init_db()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM world_saves WHERE world_id = %s", (world_id,))
                removed = cur.rowcount
                cur.execute("DELETE FROM world_news WHERE world_id = %s", (world_id,))
        return removed > 0


def _resolve_sqlite_path(database_url: Optional[str]) -> Path:
    if database_url and database_url.startswith("sqlite:///"):
        raw = database_url[len("sqlite:///") :]
        p = Path(raw)
        if not p.is_absolute():
            p = (WORKSPACE_ROOT / p).resolve()
        return p
    raw = os.environ.get("DUSKHAVEN_DB_PATH", str(WORKSPACE_ROOT / "data" / "duskhaven.db"))
    p = Path(raw)
    if not p.is_absolute():
        p = (WORKSPACE_ROOT / p).resolve()
    return p


def _database_url() -> Optional[str]:
    return os.environ.get("DATABASE_URL")


@lru_cache(maxsize=1)
def _backend() -> WorldStore:
    database_url = _database_url()
    if database_url and database_url.startswith(("postgres://", "postgresql://")):
        return PostgresWorldStore(database_url)
    return SQLiteWorldStore(_resolve_sqlite_path(database_url))


def reset_backend_cache_for_tests() -> None:
    _backend.cache_clear()


def init_db() -> None:
    _backend().init_db()


def ping() -> None:
    _backend().ping()


def save_world(*, world_id: str, seed: str, hour: int, actor_count: int, state: dict[str, Any]) -> dict[str, Any]:
    return _backend().save_world(world_id=world_id, seed=seed, hour=hour, actor_count=actor_count, state=state)


def load_world(*, world_id: str) -> Optional[dict[str, Any]]:
    return _backend().load_world(world_id=world_id)


def list_saves() -> list[dict[str, Any]]:
    return _backend().list_saves()


def append_news(*, world_id: str, event: dict[str, Any]) -> None:
    _backend().append_news(world_id=world_id, event=event)


def list_news(*, world_id: str, limit: int = 50) -> list[dict[str, Any]]:
    return _backend().list_news(world_id=world_id, limit=limit)


def delete_world(*, world_id: str) -> bool:
    return _backend().delete_world(world_id=world_id)
