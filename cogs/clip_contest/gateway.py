"""
Chat-platform port used by the contest core.

The core only needs a handful of capabilities (permission check, send, edit,
react, retract a reaction, clear reactions, resolve a username). Everything
else about Discord stays in the cog.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import discord
from discord.ext import commands

log = logging.getLogger(__name__)


class ChatGateway(Protocol):
    async def is_elevated(self, guild_id: int, user_id: int) -> bool: ...

    async def send(self, channel_id: int, text: str) -> Optional[int]: ...

    async def edit(self, channel_id: int, message_id: int, text: str) -> None: ...

    async def react(self, channel_id: int, message_id: int, emoji: str) -> None: ...

    async def remove_reaction(self, channel_id: int, message_id: int, emoji: str, user_id: int) -> None: ...

    async def clear_reactions(self, channel_id: int, message_id: int) -> None: ...

    async def display_name(self, user_id: int) -> Optional[str]: ...


class DiscordGateway:
    """discord.py implementation; side-effect calls are best effort and only log failures."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    async def _channel(self, channel_id: int) -> Optional[discord.abc.Messageable]:
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel  # type: ignore[return-value]
        try:
            return await self.bot.fetch_channel(channel_id)  # type: ignore[return-value]
        except (discord.NotFound, discord.Forbidden):
            log.debug("Channel %s not reachable", channel_id)
        except discord.HTTPException as exc:
            log.warning("Channel %s fetch failed: %s", channel_id, exc)
        return None

    async def _message(self, channel_id: int, message_id: int) -> Optional[discord.PartialMessage]:
        channel = await self._channel(channel_id)
        if channel is None or not hasattr(channel, "get_partial_message"):
            return None
        return channel.get_partial_message(message_id)  # type: ignore[union-attr]

    async def is_elevated(self, guild_id: int, user_id: int) -> bool:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return False
        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.NotFound:
                return False
            except discord.HTTPException as exc:
                log.warning("Member lookup %s in guild %s failed: %s", user_id, guild_id, exc)
                return False
        return bool(member.guild_permissions.administrator)

    async def send(self, channel_id: int, text: str) -> Optional[int]:
        channel = await self._channel(channel_id)
        if channel is None:
            return None
        try:
            message = await channel.send(text)
        except discord.HTTPException as exc:
            log.warning("Send to channel %s failed: %s", channel_id, exc)
            return None
        return message.id

    async def edit(self, channel_id: int, message_id: int, text: str) -> None:
        message = await self._message(channel_id, message_id)
        if message is None:
            return
        try:
            await message.edit(content=text)
        except discord.HTTPException as exc:
            log.warning("Edit of message %s failed: %s", message_id, exc)

    async def react(self, channel_id: int, message_id: int, emoji: str) -> None:
        message = await self._message(channel_id, message_id)
        if message is None:
            return
        try:
            await message.add_reaction(emoji)
        except discord.HTTPException as exc:
            log.warning("Reaction %s on message %s failed: %s", emoji, message_id, exc)

    async def remove_reaction(self, channel_id: int, message_id: int, emoji: str, user_id: int) -> None:
        message = await self._message(channel_id, message_id)
        if message is None:
            return
        try:
            await message.remove_reaction(emoji, discord.Object(id=user_id))
        except discord.HTTPException as exc:
            log.warning("Could not retract reaction of %s on %s: %s", user_id, message_id, exc)

    async def clear_reactions(self, channel_id: int, message_id: int) -> None:
        message = await self._message(channel_id, message_id)
        if message is None:
            return
        try:
            await message.clear_reactions()
        except discord.HTTPException as exc:
            log.warning("Clearing reactions on %s failed: %s", message_id, exc)

    async def display_name(self, user_id: int) -> Optional[str]:
        user = self.bot.get_user(user_id)
        if user is not None:
            return user.name
        try:
            user = await self.bot.fetch_user(user_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as exc:
            log.warning("User lookup %s failed: %s", user_id, exc)
            return None
        return user.name


__all__ = ["ChatGateway", "DiscordGateway"]
