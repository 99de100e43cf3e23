"""
Submission ledger: one row per attempt, pending -> approved | rejected.

Rules per (user, guild, cycle):
  - a closed cycle accepts nothing
  - at most one active (pending/approved) submission
  - at most MAX_ATTEMPTS rows in total; a rejected clip frees the active slot
    but keeps counting as an attempt
"""

from __future__ import annotations

import logging
import re
import sqlite3
from typing import List, Optional

import aiosqlite

from service.db import ContestDB, fetch_all, fetch_one, insert, run

from .constants import MAX_ATTEMPTS, RECENT_SUBMISSIONS_LIMIT
from .outcomes import ACTIVE_STATES, APPROVED, PENDING, Reason, Rejected, Submission, Submitted, SubmitResult
from .resolver import closure_exists
from .scores import ScoreLedger

log = logging.getLogger(__name__)

URL_RE = re.compile(r"^https?://[^\s]+$", re.IGNORECASE)

_COLUMNS = "id, user_id, guild_id, url, cycle_id, state, attempt_no, ack_message_id, ack_channel_id, vote_message_id"


async def _history(conn: aiosqlite.Connection, user_id: int, guild_id: int, cycle_id: str) -> List[Submission]:
    rows = await fetch_all(
        conn,
        f"SELECT {_COLUMNS} FROM submissions WHERE user_id = ? AND guild_id = ? AND cycle_id = ? ORDER BY id",
        (user_id, guild_id, cycle_id),
    )
    return [Submission.from_row(r) for r in rows]


async def _policy_check(conn: aiosqlite.Connection, user_id: int, guild_id: int, cycle_id: str):
    """Returns (rejection or None, attempts used so far)."""
    if await closure_exists(conn, guild_id, cycle_id):
        return Rejected(Reason.SECTOR_CLOSED), 0
    history = await _history(conn, user_id, guild_id, cycle_id)
    if any(s.is_active for s in history):
        return Rejected(Reason.ACTIVE_SUBMISSION_EXISTS), len(history)
    if len(history) >= MAX_ATTEMPTS:
        return Rejected(Reason.ATTEMPTS_EXHAUSTED), len(history)
    return None, len(history)


class SubmissionLedger:
    def __init__(self, db: ContestDB) -> None:
        self.db = db

    @staticmethod
    def validate_url(url: Optional[str]) -> Optional[Rejected]:
        if not url or not url.strip():
            return Rejected(Reason.MISSING_URL)
        if not URL_RE.match(url.strip()):
            return Rejected(Reason.INVALID_URL)
        return None

    async def submit(
        self,
        user_id: int,
        guild_id: int,
        cycle_id: str,
        url: Optional[str],
        display_name: Optional[str] = None,
    ) -> SubmitResult:
        invalid = self.validate_url(url)
        if invalid is not None:
            return invalid
        url = url.strip()  # type: ignore[union-attr]

        try:
            async with self.db.transaction() as conn:
                rejection, used = await _policy_check(conn, user_id, guild_id, cycle_id)
                if rejection is not None:
                    return rejection
                new_id = await insert(
                    conn,
                    """
                    INSERT INTO submissions(user_id, guild_id, url, cycle_id, state, attempt_no)
                    VALUES(?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, guild_id, url, cycle_id, PENDING, used + 1),
                )
                await ScoreLedger.ensure_member(conn, user_id, guild_id, display_name)
        except sqlite3.IntegrityError as exc:
            # Lost a race against a concurrent submit: re-evaluate the rules on committed state
            log.info("Submit by %s in %s/%s hit a constraint: %s", user_id, guild_id, cycle_id, exc)
            async with self.db.session() as conn:
                rejection, _ = await _policy_check(conn, user_id, guild_id, cycle_id)
            return rejection or Rejected(Reason.ACTIVE_SUBMISSION_EXISTS)

        submission = Submission(
            id=new_id,
            user_id=user_id,
            guild_id=guild_id,
            url=url,
            cycle_id=cycle_id,
            state=PENDING,
            attempt_no=used + 1,
        )
        log.info(
            "Submission %s by %s in guild %s (%s, attempt %s/%s)",
            new_id, user_id, guild_id, cycle_id, used + 1, MAX_ATTEMPTS,
        )
        return Submitted(submission)

    async def link_acknowledgement(self, submission_id: int, message_id: int, channel_id: Optional[int] = None) -> None:
        async with self.db.session() as conn:
            await run(
                conn,
                "UPDATE submissions SET ack_message_id = ?, ack_channel_id = COALESCE(?, ack_channel_id) WHERE id = ?",
                (message_id, channel_id, submission_id),
            )

    async def withdraw(self, submission_id: int) -> bool:
        """Drop a pending submission that never got its acknowledgement posted."""
        async with self.db.session() as conn:
            removed = await run(
                conn,
                "DELETE FROM submissions WHERE id = ? AND state = ? AND ack_message_id IS NULL",
                (submission_id, PENDING),
            )
        return removed > 0

    async def link_voting_message(self, submission_id: int, message_id: int) -> None:
        async with self.db.session() as conn:
            await run(conn, "UPDATE submissions SET vote_message_id = ? WHERE id = ?", (message_id, submission_id))

    # ---- reads ----

    async def get(self, submission_id: int) -> Optional[Submission]:
        async with self.db.session() as conn:
            row = await fetch_one(conn, f"SELECT {_COLUMNS} FROM submissions WHERE id = ?", (submission_id,))
        return Submission.from_row(row) if row else None

    async def find_by_ack_message(self, guild_id: int, message_id: int) -> Optional[Submission]:
        async with self.db.session() as conn:
            row = await fetch_one(
                conn,
                f"SELECT {_COLUMNS} FROM submissions WHERE ack_message_id = ? AND guild_id = ?",
                (message_id, guild_id),
            )
        return Submission.from_row(row) if row else None

    async def find_by_vote_message(self, guild_id: int, message_id: int) -> Optional[Submission]:
        async with self.db.session() as conn:
            row = await fetch_one(
                conn,
                f"SELECT {_COLUMNS} FROM submissions WHERE vote_message_id = ? AND guild_id = ?",
                (message_id, guild_id),
            )
        return Submission.from_row(row) if row else None

    async def approved_for(self, guild_id: int, cycle_id: str) -> List[Submission]:
        async with self.db.session() as conn:
            rows = await fetch_all(
                conn,
                f"SELECT {_COLUMNS} FROM submissions WHERE guild_id = ? AND cycle_id = ? AND state = ? ORDER BY id",
                (guild_id, cycle_id, APPROVED),
            )
        return [Submission.from_row(r) for r in rows]

    async def attempts_used(self, user_id: int, guild_id: int, cycle_id: str) -> int:
        async with self.db.session() as conn:
            return len(await _history(conn, user_id, guild_id, cycle_id))

    async def active_count(self, user_id: int, guild_id: int, cycle_id: str) -> int:
        async with self.db.session() as conn:
            history = await _history(conn, user_id, guild_id, cycle_id)
        return sum(1 for s in history if s.state in ACTIVE_STATES)

    async def recent(self, guild_id: int, limit: int = RECENT_SUBMISSIONS_LIMIT) -> List[Submission]:
        async with self.db.session() as conn:
            rows = await fetch_all(
                conn,
                f"SELECT {_COLUMNS} FROM submissions WHERE guild_id = ? ORDER BY id DESC LIMIT ?",
                (guild_id, int(limit)),
            )
        return [Submission.from_row(r) for r in rows]


__all__ = ["SubmissionLedger", "URL_RE"]
