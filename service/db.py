# =========================================
# Citizen Clips – central SQLite store
# =========================================
# - One SQLite file for the whole bot (bot + dashboard share the connection).
# - Configuration (only these ENV keys):
#     CONTEST_DB_PATH  -> full file path (highest priority)
#     CONTEST_DB_DIR   -> directory; file is then contest.sqlite3
# - WAL, FOREIGN_KEYS, busy timeout enabled.
# - Every access goes through one asyncio lock; workflows use transaction().
# =========================================

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, List, Optional

import aiosqlite

log = logging.getLogger(__name__)

DB_BUSY_TIMEOUT_MS = int(os.environ.get("CONTEST_DB_BUSY_TIMEOUT_MS", "15000"))

ENV_DB_PATH = "CONTEST_DB_PATH"
ENV_DB_DIR = "CONTEST_DB_DIR"

DEFAULT_DIR = str(Path.home() / ".citizen-clips")
DB_NAME = "contest.sqlite3"
MEMORY = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version(
  version INTEGER NOT NULL
);
INSERT INTO schema_version(version)
  SELECT 1 WHERE NOT EXISTS(SELECT 1 FROM schema_version);

CREATE TABLE IF NOT EXISTS submissions(
  id              INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id         INTEGER NOT NULL,
  guild_id        INTEGER NOT NULL,
  url             TEXT NOT NULL,
  cycle_id        TEXT NOT NULL,
  state           TEXT NOT NULL DEFAULT 'pending'
                  CHECK(state IN ('pending', 'approved', 'rejected')),
  attempt_no      INTEGER NOT NULL CHECK(attempt_no BETWEEN 1 AND 2),
  ack_message_id  INTEGER,
  ack_channel_id  INTEGER,
  vote_message_id INTEGER,
  created_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
  UNIQUE(user_id, guild_id, cycle_id, attempt_no)
);

-- one active (pending/approved) submission per user, guild and cycle
CREATE UNIQUE INDEX IF NOT EXISTS uq_submissions_active
  ON submissions(user_id, guild_id, cycle_id)
  WHERE state IN ('pending', 'approved');

CREATE TABLE IF NOT EXISTS users(
  user_id      INTEGER NOT NULL,
  guild_id     INTEGER NOT NULL,
  display_name TEXT,
  points       INTEGER NOT NULL DEFAULT 0 CHECK(points >= 0),
  PRIMARY KEY(user_id, guild_id)
);

CREATE TABLE IF NOT EXISTS votes(
  id            INTEGER PRIMARY KEY AUTOINCREMENT,
  voter_id      INTEGER NOT NULL,
  submission_id INTEGER NOT NULL REFERENCES submissions(id) ON DELETE CASCADE,
  cycle_id      TEXT NOT NULL,
  guild_id      INTEGER NOT NULL,
  created_at    DATETIME DEFAULT CURRENT_TIMESTAMP,
  UNIQUE(voter_id, guild_id, cycle_id)
);

CREATE TABLE IF NOT EXISTS closures(
  cycle_id             TEXT NOT NULL,
  guild_id             INTEGER NOT NULL,
  winner_submission_id INTEGER,
  winner_votes         INTEGER,
  closed_at            DATETIME DEFAULT CURRENT_TIMESTAMP,
  PRIMARY KEY(cycle_id, guild_id)
);

CREATE TABLE IF NOT EXISTS channel_config(
  guild_id   INTEGER PRIMARY KEY,
  channel_id INTEGER NOT NULL,
  updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_submissions_cycle ON submissions(guild_id, cycle_id, state);
CREATE INDEX IF NOT EXISTS idx_submissions_ack ON submissions(ack_message_id);
CREATE INDEX IF NOT EXISTS idx_submissions_vote ON submissions(vote_message_id);
CREATE INDEX IF NOT EXISTS idx_votes_tally ON votes(guild_id, cycle_id, submission_id);
CREATE INDEX IF NOT EXISTS idx_users_leaderboard ON users(guild_id, points DESC);
"""


# ---------- Path resolution ----------

def resolve_db_path() -> str:
    """
    Final DB path (one source of truth).
    Prio:
      1) CONTEST_DB_PATH (full path)
      2) CONTEST_DB_DIR + DB_NAME
      3) DEFAULT_DIR + DB_NAME
    """
    p = os.environ.get(ENV_DB_PATH)
    if p:
        return str(Path(p))

    d = os.environ.get(ENV_DB_DIR) or DEFAULT_DIR
    return str(Path(d) / DB_NAME)


def _ensure_parent(path: str) -> None:
    if path != MEMORY:
        Path(path).parent.mkdir(parents=True, exist_ok=True)


# ---------- Low-level helpers (bind parameters only) ----------

async def fetch_one(conn: aiosqlite.Connection, sql: str, params: Iterable[Any] = ()) -> Optional[aiosqlite.Row]:
    async with conn.execute(sql, tuple(params)) as cur:
        return await cur.fetchone()


async def fetch_all(conn: aiosqlite.Connection, sql: str, params: Iterable[Any] = ()) -> List[aiosqlite.Row]:
    async with conn.execute(sql, tuple(params)) as cur:
        return list(await cur.fetchall())


async def run(conn: aiosqlite.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    """Execute a write statement and return the affected row count."""
    async with conn.execute(sql, tuple(params)) as cur:
        return cur.rowcount


async def insert(conn: aiosqlite.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    """Execute an INSERT and return the new rowid."""
    async with conn.execute(sql, tuple(params)) as cur:
        return int(cur.lastrowid)


class ContestDB:
    """Process-scoped store handle: one aiosqlite connection, opened at startup."""

    def __init__(self, path: Optional[str] = None, *, busy_timeout_ms: int = DB_BUSY_TIMEOUT_MS) -> None:
        self.path = path or resolve_db_path()
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def connect(self) -> aiosqlite.Connection:
        """
        Opens the shared connection.
        - Autocommit (isolation_level=None); transactions are explicit
        - Row-Factory = aiosqlite.Row
        - PRAGMAs set, schema initialized (idempotent)
        """
        if self._conn is not None:
            return self._conn

        _ensure_parent(self.path)
        conn = await aiosqlite.connect(
            self.path,
            isolation_level=None,
            timeout=self.busy_timeout_ms / 1000,
        )
        conn.row_factory = aiosqlite.Row

        await conn.execute("PRAGMA foreign_keys=ON;")
        await conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)};")
        if self.path != MEMORY:
            await conn.execute("PRAGMA journal_mode=WAL;")
            await conn.execute("PRAGMA synchronous=NORMAL;")
        await conn.executescript(SCHEMA)

        self._conn = conn
        log.info("Contest DB ready at %s", self.path)
        return conn

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            await conn.close()
            log.info("Contest DB closed")
        except Exception as exc:
            log.warning("Contest DB close failed: %s", exc)

    def _require(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("ContestDB is not connected")
        return self._conn

    @asynccontextmanager
    async def session(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive access for reads / single statements (autocommit)."""
        conn = self._require()
        async with self._lock:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive access inside BEGIN IMMEDIATE ... COMMIT; rolls back on any error."""
        conn = self._require()
        async with self._lock:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            else:
                await conn.execute("COMMIT")


__all__ = [
    "ContestDB",
    "DB_NAME",
    "MEMORY",
    "fetch_all",
    "fetch_one",
    "insert",
    "resolve_db_path",
    "run",
]
