from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from service.db import ContestDB, fetch_one, insert

from .constants import EMOJI_BALLOT, same_emoji
from .gateway import ChatGateway
from .ledger import SubmissionLedger
from .outcomes import (
    OpenVotingResult,
    ReactionRef,
    Reason,
    Rejected,
    VoteAccepted,
    VoteResult,
    VotingEntry,
    VotingOpened,
)
from .resolver import closure_exists
from .scores import ScoreLedger
from . import texts

log = logging.getLogger(__name__)


class VotingSession:
    """
    Publishes the approved clips of a cycle as ballot messages and records
    votes. One vote per member, guild and cycle; the first one counts.
    """

    def __init__(self, db: ContestDB, chat: ChatGateway, ledger: SubmissionLedger) -> None:
        self.db = db
        self.chat = chat
        self.ledger = ledger

    async def open_voting(self, guild_id: int, cycle_id: str, channel_id: int, actor_id: int) -> OpenVotingResult:
        if not await self.chat.is_elevated(guild_id, actor_id):
            return Rejected(Reason.UNAUTHORIZED)

        approved = await self.ledger.approved_for(guild_id, cycle_id)
        if not approved:
            return Rejected(Reason.NO_APPROVED_SUBMISSIONS)

        await self.chat.send(channel_id, texts.VOTING_HEADER)
        entries: List[VotingEntry] = []
        for submission in approved:
            message_id = await self.chat.send(
                channel_id,
                texts.VOTING_ENTRY.format(user_id=submission.user_id, url=submission.url),
            )
            if message_id is None:
                log.warning("Ballot for submission %s could not be posted", submission.id)
                continue
            await self.ledger.link_voting_message(submission.id, message_id)
            await self.chat.react(channel_id, message_id, EMOJI_BALLOT)
            entries.append(VotingEntry(submission.id, submission.user_id, submission.url, message_id))

        log.info("Voting opened for %s in guild %s with %d ballots", cycle_id, guild_id, len(entries))
        return VotingOpened(entries)

    async def cast_vote(
        self,
        guild_id: int,
        cycle_id: str,
        reaction: ReactionRef,
        voter_name: Optional[str] = None,
    ) -> VoteResult:
        submission = await self.ledger.find_by_vote_message(guild_id, reaction.message_id)
        if submission is None:
            return Rejected(Reason.NOT_TRACKED)
        if not same_emoji(reaction.emoji, EMOJI_BALLOT):
            return Rejected(Reason.IGNORED)

        voter_id = reaction.user_id
        try:
            async with self.db.transaction() as conn:
                if submission.cycle_id != cycle_id or await closure_exists(conn, guild_id, submission.cycle_id):
                    rejection = Rejected(Reason.CYCLE_CLOSED)
                else:
                    prior = await fetch_one(
                        conn,
                        "SELECT submission_id FROM votes WHERE voter_id = ? AND guild_id = ? AND cycle_id = ?",
                        (voter_id, guild_id, cycle_id),
                    )
                    if prior is not None:
                        rejection = Rejected(Reason.ALREADY_VOTED)
                    else:
                        rejection = None
                        await insert(
                            conn,
                            "INSERT INTO votes(voter_id, submission_id, cycle_id, guild_id) VALUES(?, ?, ?, ?)",
                            (voter_id, submission.id, cycle_id, guild_id),
                        )
                        await ScoreLedger.ensure_member(conn, voter_id, guild_id, voter_name)
        except sqlite3.IntegrityError as exc:
            log.info("Vote by %s in %s/%s hit a constraint: %s", voter_id, guild_id, cycle_id, exc)
            rejection = Rejected(Reason.ALREADY_VOTED)

        if rejection is not None:
            log.debug("Vote by %s on submission %s rejected: %s", voter_id, submission.id, rejection.reason.value)
            await self.chat.remove_reaction(reaction.channel_id, reaction.message_id, reaction.emoji, voter_id)
            return rejection

        log.info("Vote by %s for submission %s (%s)", voter_id, submission.id, cycle_id)
        return VoteAccepted(submission_id=submission.id, voter_id=voter_id)


__all__ = ["VotingSession"]
