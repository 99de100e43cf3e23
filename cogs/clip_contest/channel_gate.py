from __future__ import annotations

import logging
from typing import Optional

from service.db import ContestDB, fetch_one, run

from .gateway import ChatGateway
from .outcomes import ChannelResult, ChannelSet, Reason, Rejected

log = logging.getLogger(__name__)


class ChannelGate:
    """Optional per-guild input channel. No row means every channel is accepted."""

    def __init__(self, db: ContestDB, chat: ChatGateway) -> None:
        self.db = db
        self.chat = chat

    async def configured_channel(self, guild_id: int) -> Optional[int]:
        async with self.db.session() as conn:
            row = await fetch_one(conn, "SELECT channel_id FROM channel_config WHERE guild_id = ?", (guild_id,))
        return int(row["channel_id"]) if row else None

    async def is_allowed(self, guild_id: int, channel_id: int) -> bool:
        configured = await self.configured_channel(guild_id)
        return configured is None or configured == channel_id

    async def set_channel(self, guild_id: int, channel_id: int, actor_id: int) -> ChannelResult:
        if not await self.chat.is_elevated(guild_id, actor_id):
            return Rejected(Reason.UNAUTHORIZED)
        async with self.db.session() as conn:
            await run(
                conn,
                """
                INSERT INTO channel_config(guild_id, channel_id) VALUES(?, ?)
                ON CONFLICT(guild_id) DO UPDATE
                   SET channel_id = excluded.channel_id, updated_at = CURRENT_TIMESTAMP
                """,
                (guild_id, channel_id),
            )
        log.info("Guild %s restricted to channel %s by %s", guild_id, channel_id, actor_id)
        return ChannelSet(guild_id, channel_id)


__all__ = ["ChannelGate"]
