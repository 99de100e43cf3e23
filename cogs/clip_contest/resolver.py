from __future__ import annotations

import logging

import aiosqlite

from service.db import ContestDB, fetch_one, run

from .constants import WINNER_POINTS
from .gateway import ChatGateway
from .outcomes import FinalizeResult, Finalized, Reason, Rejected, Winner
from .scores import ScoreLedger
from . import texts

log = logging.getLogger(__name__)


async def closure_exists(conn: aiosqlite.Connection, guild_id: int, cycle_id: str) -> bool:
    row = await fetch_one(
        conn,
        "SELECT 1 FROM closures WHERE cycle_id = ? AND guild_id = ? LIMIT 1",
        (cycle_id, guild_id),
    )
    return row is not None


async def tally_leader(conn: aiosqlite.Connection, guild_id: int, cycle_id: str):
    """Top submission by votes; ties go to the lowest submission id."""
    return await fetch_one(
        conn,
        """
        SELECT v.submission_id AS submission_id, COUNT(*) AS votes, s.user_id AS user_id, s.url AS url
          FROM votes v
          JOIN submissions s ON s.id = v.submission_id
         WHERE v.guild_id = ? AND v.cycle_id = ?
         GROUP BY v.submission_id
         ORDER BY votes DESC, v.submission_id ASC
         LIMIT 1
        """,
        (guild_id, cycle_id),
    )


class CycleResolver:
    """Closes a cycle once: plurality winner, +WINNER_POINTS, closure row."""

    def __init__(self, db: ContestDB, chat: ChatGateway) -> None:
        self.db = db
        self.chat = chat

    async def is_closed(self, guild_id: int, cycle_id: str) -> bool:
        async with self.db.session() as conn:
            return await closure_exists(conn, guild_id, cycle_id)

    async def finalize(self, guild_id: int, cycle_id: str, channel_id: int, actor_id: int) -> FinalizeResult:
        if not await self.chat.is_elevated(guild_id, actor_id):
            return Rejected(Reason.UNAUTHORIZED)

        async with self.db.transaction() as conn:
            leader = await tally_leader(conn, guild_id, cycle_id)
            if leader is None:
                return Rejected(Reason.NO_VOTES)
            winner = Winner(
                submission_id=int(leader["submission_id"]),
                user_id=int(leader["user_id"]),
                url=str(leader["url"]),
                votes=int(leader["votes"]),
            )
            # The closure row is the only guard against a second bonus
            inserted = await run(
                conn,
                """
                INSERT INTO closures(cycle_id, guild_id, winner_submission_id, winner_votes)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(cycle_id, guild_id) DO NOTHING
                """,
                (cycle_id, guild_id, winner.submission_id, winner.votes),
            )
            if inserted == 0:
                log.info("Finalize %s/%s found the cycle already closed", guild_id, cycle_id)
                return Rejected(Reason.ALREADY_FINALIZED)
            await ScoreLedger.grant(conn, winner.user_id, guild_id, WINNER_POINTS)

        log.info(
            "Cycle %s closed in guild %s: submission %s by %s with %s votes",
            cycle_id, guild_id, winner.submission_id, winner.user_id, winner.votes,
        )
        await self.chat.send(channel_id, texts.WINNER.format(user_id=winner.user_id, votes=winner.votes))
        return Finalized(winner)


__all__ = ["CycleResolver", "closure_exists", "tally_leader"]
