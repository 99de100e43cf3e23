# cogs/clip_contest/__init__.py
from __future__ import annotations

import logging

from discord.ext import commands

log = logging.getLogger(__name__)


async def setup(bot: commands.Bot) -> None:
    # One extension: store-backed services + the cog that drives them
    from .cog import ClipContestCog
    from .gateway import DiscordGateway
    from .services import build_services

    db = getattr(bot, "db", None)
    if db is None or not db.is_open:
        raise RuntimeError("clip_contest needs bot.db to be connected before loading")

    services = build_services(db, DiscordGateway(bot))
    bot.contest = services  # type: ignore[attr-defined]
    await bot.add_cog(ClipContestCog(bot, services))  # type: ignore[arg-type]
    log.info("ClipContestCog added")


async def teardown(bot: commands.Bot) -> None:
    bot.contest = None  # type: ignore[attr-defined]
