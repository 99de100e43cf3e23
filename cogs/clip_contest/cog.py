from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Optional

import discord
from discord.ext import commands

from .constants import EMOJI_APPROVE, EMOJI_REJECT, MAX_ATTEMPTS
from .cycle import current_cycle_key
from .outcomes import ReactionRef, Reason, Rejected, Submitted
from .services import ContestServices
from . import texts

if TYPE_CHECKING:
    from bot_core.master_bot import ContestBot

log = logging.getLogger(__name__)

# Commands that work in any channel, so the restriction can be moved
UNGATED_COMMANDS = {"setcanal"}


def video_attachment(message: discord.Message) -> Optional[discord.Attachment]:
    for attachment in message.attachments:
        if (attachment.content_type or "").startswith("video/"):
            return attachment
    return None


class ClipContestCog(commands.Cog):
    """Weekly clip contest: submit, moderate, vote, crown."""

    def __init__(self, bot: ContestBot, services: ContestServices) -> None:
        self.bot = bot
        self.services = services

    async def cog_check(self, ctx: commands.Context) -> bool:
        if ctx.guild is None:
            return False
        if ctx.command is not None and ctx.command.name in UNGATED_COMMANDS:
            return True
        return await self.services.gate.is_allowed(ctx.guild.id, ctx.channel.id)

    # ---------- Submissions ----------

    async def _submit(self, message: discord.Message, url: Optional[str]) -> None:
        guild = message.guild
        if guild is None:
            return
        author = message.author

        result = await self.services.ledger.submit(
            author.id, guild.id, current_cycle_key(), url, display_name=author.name
        )
        if not isinstance(result, Submitted):
            await self._reply_rejection(message, result)
            return

        try:
            ack = await message.reply(
                texts.SUBMISSION_RECEIVED.format(attempt=result.attempt, max_attempts=MAX_ATTEMPTS)
            )
        except discord.HTTPException as exc:
            # An unacknowledged submission can never be moderated
            await self.services.ledger.withdraw(result.submission.id)
            log.warning(
                "Acknowledgement for submission %s could not be sent, submission withdrawn: %s",
                result.submission.id, exc,
            )
            return

        await self.services.ledger.link_acknowledgement(result.submission.id, ack.id, ack.channel.id)
        for emoji in (EMOJI_APPROVE, EMOJI_REJECT):
            await self.services.chat.react(ack.channel.id, ack.id, emoji)

    async def _reply_rejection(self, message: discord.Message, rejected: Rejected, text: Optional[str] = None) -> None:
        if rejected.silent:
            return
        text = text or texts.reply_for(rejected.reason)
        if not text:
            return
        try:
            await message.reply(text)
        except discord.HTTPException as exc:
            log.warning("Reply for %s failed: %s", rejected.reason.value, exc)

    @commands.command(name="subir")
    async def subir(self, ctx: commands.Context, url: Optional[str] = None) -> None:
        """Submit a clip link or an attached video."""
        attachment = video_attachment(ctx.message)
        await self._submit(ctx.message, attachment.url if attachment else url)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        # Bare video uploads count as a submission
        if message.author.bot or message.guild is None:
            return
        attachment = video_attachment(message)
        if attachment is None:
            return
        ctx = await self.bot.get_context(message)
        if ctx.valid:
            return
        if not await self.services.gate.is_allowed(message.guild.id, message.channel.id):
            return
        await self._submit(message, attachment.url)

    # ---------- Pilot commands ----------

    @commands.command(name="puntos")
    async def puntos(self, ctx: commands.Context) -> None:
        points = await self.services.scores.balance(ctx.author.id, ctx.guild.id)
        await ctx.reply(texts.POINTS.format(points=points))

    @commands.command(name="comandos", aliases=["comando", "help"])
    async def comandos(self, ctx: commands.Context) -> None:
        prefix = ctx.clean_prefix
        text = texts.HELP_PILOTS.format(p=prefix)
        if await self.services.chat.is_elevated(ctx.guild.id, ctx.author.id):
            text += texts.HELP_OFFICERS.format(p=prefix)
        await ctx.reply(text)

    # ---------- Officer commands ----------

    @commands.command(name="videos")
    async def videos(self, ctx: commands.Context) -> None:
        """Open the voting round for the current cycle."""
        result = await self.services.voting.open_voting(
            ctx.guild.id, current_cycle_key(), ctx.channel.id, ctx.author.id
        )
        if isinstance(result, Rejected):
            await self._reply_rejection(ctx.message, result)

    @commands.command(name="finalizarvotacion")
    async def finalizarvotacion(self, ctx: commands.Context) -> None:
        result = await self.services.resolver.finalize(
            ctx.guild.id, current_cycle_key(), ctx.channel.id, ctx.author.id
        )
        if isinstance(result, Rejected):
            await self._reply_rejection(ctx.message, result)

    @commands.command(name="setcanal")
    async def setcanal(self, ctx: commands.Context) -> None:
        result = await self.services.gate.set_channel(ctx.guild.id, ctx.channel.id, ctx.author.id)
        if isinstance(result, Rejected):
            await self._reply_rejection(ctx.message, result, texts.ACCESS_DENIED_CHANNEL)
            return
        await ctx.reply(texts.CHANNEL_SET.format(channel_id=result.channel_id))

    # ---------- Reactions ----------

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.guild_id is None:
            return
        if payload.member is not None and payload.member.bot:
            return
        if self.bot.user is not None and payload.user_id == self.bot.user.id:
            return

        reaction = ReactionRef(
            channel_id=payload.channel_id,
            message_id=payload.message_id,
            emoji=str(payload.emoji),
            user_id=payload.user_id,
        )
        try:
            result = await self.services.moderation.handle_reaction(payload.guild_id, reaction)
            if isinstance(result, Rejected) and result.reason is Reason.NOT_TRACKED:
                voter_name = payload.member.name if payload.member is not None else None
                result = await self.services.voting.cast_vote(
                    payload.guild_id, current_cycle_key(), reaction, voter_name=voter_name
                )
        except sqlite3.Error:
            log.exception("Store error while handling reaction on %s", payload.message_id)
            return
        log.debug("Reaction %s on %s -> %s", reaction.emoji, payload.message_id, result)


__all__ = ["ClipContestCog", "UNGATED_COMMANDS", "video_attachment"]
