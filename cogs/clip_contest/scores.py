from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import aiosqlite

from service.db import ContestDB, fetch_all, fetch_one, run

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreEntry:
    user_id: int
    display_name: Optional[str]
    points: int


class ScoreLedger:
    """Per-guild point balances. Only moderation and cycle resolution grant points."""

    def __init__(self, db: ContestDB) -> None:
        self.db = db

    # ---- writes (transaction-scoped) ----

    @staticmethod
    async def ensure_member(
        conn: aiosqlite.Connection,
        user_id: int,
        guild_id: int,
        display_name: Optional[str] = None,
    ) -> None:
        await run(
            conn,
            """
            INSERT INTO users(user_id, guild_id, display_name, points) VALUES(?, ?, ?, 0)
            ON CONFLICT(user_id, guild_id) DO UPDATE
               SET display_name = COALESCE(excluded.display_name, users.display_name)
            """,
            (user_id, guild_id, display_name),
        )

    @staticmethod
    async def grant(conn: aiosqlite.Connection, user_id: int, guild_id: int, points: int) -> None:
        await run(
            conn,
            """
            INSERT INTO users(user_id, guild_id, points) VALUES(?, ?, ?)
            ON CONFLICT(user_id, guild_id) DO UPDATE SET points = users.points + excluded.points
            """,
            (user_id, guild_id, points),
        )

    async def remember_name(self, user_id: int, guild_id: int, display_name: str) -> None:
        """Cache a username; failures are logged and never raised."""
        try:
            async with self.db.session() as conn:
                await self.ensure_member(conn, user_id, guild_id, display_name)
        except (sqlite3.Error, RuntimeError) as exc:
            log.warning("Display name cache update for %s failed: %s", user_id, exc)

    # ---- reads ----

    async def balance(self, user_id: int, guild_id: int) -> int:
        async with self.db.session() as conn:
            row = await fetch_one(
                conn,
                "SELECT points FROM users WHERE user_id = ? AND guild_id = ?",
                (user_id, guild_id),
            )
        return int(row["points"]) if row else 0

    async def leaderboard(self, guild_id: int, limit: Optional[int] = None) -> List[ScoreEntry]:
        sql = "SELECT user_id, display_name, points FROM users WHERE guild_id = ? ORDER BY points DESC, user_id ASC"
        params: tuple = (guild_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (guild_id, int(limit))
        async with self.db.session() as conn:
            rows = await fetch_all(conn, sql, params)
        return [ScoreEntry(int(r["user_id"]), r["display_name"], int(r["points"])) for r in rows]

    async def display_names(self, guild_id: int, user_ids: Iterable[int]) -> Dict[int, str]:
        ids = sorted({int(u) for u in user_ids})
        if not ids:
            return {}
        marks = ",".join("?" for _ in ids)
        async with self.db.session() as conn:
            rows = await fetch_all(
                conn,
                f"SELECT user_id, display_name FROM users WHERE guild_id = ? AND user_id IN ({marks})",
                (guild_id, *ids),
            )
        return {int(r["user_id"]): str(r["display_name"]) for r in rows if r["display_name"]}


__all__ = ["ScoreEntry", "ScoreLedger"]
