from __future__ import annotations

import logging
from typing import Optional

from service.db import ContestDB, run

from .constants import APPROVAL_POINTS, EMOJI_APPROVE, EMOJI_REJECT
from .gateway import ChatGateway
from .ledger import SubmissionLedger
from .outcomes import PENDING, Decision, Moderated, ModerationResult, ReactionRef, Reason, Rejected
from .scores import ScoreLedger
from . import texts

log = logging.getLogger(__name__)

DECISION_EMOJIS = {
    EMOJI_APPROVE: Decision.APPROVE,
    EMOJI_REJECT: Decision.REJECT,
}


class ModerationHandler:
    """Officer approve/reject on pending submissions."""

    def __init__(self, db: ContestDB, chat: ChatGateway, ledger: SubmissionLedger) -> None:
        self.db = db
        self.chat = chat
        self.ledger = ledger

    async def handle_reaction(self, guild_id: int, reaction: ReactionRef) -> ModerationResult:
        """Entry point for reactions on acknowledgement messages."""
        submission = await self.ledger.find_by_ack_message(guild_id, reaction.message_id)
        if submission is None:
            return Rejected(Reason.NOT_TRACKED)

        decision = DECISION_EMOJIS.get(reaction.emoji)
        if decision is None:
            # Non-officers may not leave any reaction on the moderation message
            if not await self.chat.is_elevated(guild_id, reaction.user_id):
                await self._retract(reaction)
                return Rejected(Reason.UNAUTHORIZED)
            return Rejected(Reason.IGNORED)

        return await self.moderate(guild_id, submission.id, decision, reaction.user_id, reaction=reaction)

    async def moderate(
        self,
        guild_id: int,
        submission_id: int,
        decision: Decision,
        actor_id: int,
        *,
        reaction: Optional[ReactionRef] = None,
    ) -> ModerationResult:
        submission = await self.ledger.get(submission_id)
        if submission is None or submission.guild_id != guild_id:
            return Rejected(Reason.NOT_TRACKED)

        if not await self.chat.is_elevated(guild_id, actor_id):
            log.info("Moderation attempt on %s by non-officer %s reverted", submission_id, actor_id)
            await self._retract(reaction)
            return Rejected(Reason.UNAUTHORIZED)

        async with self.db.transaction() as conn:
            changed = await run(
                conn,
                "UPDATE submissions SET state = ? WHERE id = ? AND state = ?",
                (decision.state, submission_id, PENDING),
            )
            if changed and decision is Decision.APPROVE:
                await ScoreLedger.grant(conn, submission.user_id, guild_id, APPROVAL_POINTS)

        if not changed:
            log.debug("Submission %s already %s; duplicate moderation ignored", submission_id, submission.state)
            return Rejected(Reason.ALREADY_MODERATED)

        log.info("Submission %s %s by %s", submission_id, decision.state, actor_id)
        await self._close_acknowledgement(submission.ack_channel_id, submission.ack_message_id, decision, actor_id, reaction)
        return Moderated(
            submission=await self.ledger.get(submission_id) or submission,
            decision=decision,
            actor_id=actor_id,
        )

    async def _retract(self, reaction: Optional[ReactionRef]) -> None:
        if reaction is None:
            return
        await self.chat.remove_reaction(reaction.channel_id, reaction.message_id, reaction.emoji, reaction.user_id)

    async def _close_acknowledgement(
        self,
        channel_id: Optional[int],
        message_id: Optional[int],
        decision: Decision,
        actor_id: int,
        reaction: Optional[ReactionRef],
    ) -> None:
        if reaction is not None:
            channel_id = channel_id or reaction.channel_id
            message_id = message_id or reaction.message_id
        if not channel_id or not message_id:
            return
        emoji = EMOJI_APPROVE if decision is Decision.APPROVE else EMOJI_REJECT
        text = texts.MODERATION_DONE.format(
            emoji=emoji,
            label=texts.MODERATION_LABELS[decision.state],
            actor_id=actor_id,
        )
        await self.chat.edit(channel_id, message_id, text)
        await self.chat.clear_reactions(channel_id, message_id)


__all__ = ["DECISION_EMOJIS", "ModerationHandler"]
