from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import discord
from discord.ext import commands

from bot_core.bootstrap import _log_secret_present
from bot_core.cog_loader import CogLoaderMixin
from bot_core.logging_setup import LoggingMixin
from service.config import Settings, settings
from service.db import DB_NAME, ContestDB, resolve_db_path

if TYPE_CHECKING:
    from cogs.clip_contest.services import ContestServices
    from service.dashboard import DashboardServer

__all__ = ["ContestBot", "db_path_from"]


def db_path_from(config: Settings) -> str:
    """CONTEST_DB_PATH, then CONTEST_DB_DIR, then the default location."""
    if config.contest_db_path:
        return str(config.contest_db_path)
    if config.contest_db_dir:
        return str(Path(config.contest_db_dir) / DB_NAME)
    return resolve_db_path()


class ContestBot(LoggingMixin, CogLoaderMixin, commands.Bot):
    """
    Citizen Clips bot process:
     - owns the contest store (opened in setup_hook, closed in close())
     - loads the contest extension, then the dashboard cog
     - prefix commands only, no slash tree
    """

    def __init__(self, *, config: Optional[Settings] = None, db: Optional[ContestDB] = None):
        self.config = config or settings

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.guilds = True
        intents.guild_reactions = True

        super().__init__(
            command_prefix=self.config.command_prefix,
            intents=intents,
            description="Citizen Clips - weekly clip contest",
            case_insensitive=True,
            help_command=None,
        )

        self.root_dir = Path(__file__).resolve().parent.parent
        self.setup_logging(self.config.log_level)
        self._init_cog_state()

        self.db = db or ContestDB(
            db_path_from(self.config),
            busy_timeout_ms=self.config.contest_db_busy_timeout_ms,
        )
        self.contest: Optional[ContestServices] = None  # set by cogs.clip_contest
        self.dashboard: Optional[DashboardServer] = None  # set by DashboardCog

        try:
            self.per_cog_unload_timeout = float(os.getenv("PER_COG_UNLOAD_TIMEOUT", "3.0"))
        except ValueError:
            self.per_cog_unload_timeout = 3.0

    async def setup_hook(self):
        logging.info("Contest bot setup starting...")

        secret_mode = (os.getenv("SECRET_LOG_MODE") or "off").lower()
        _log_secret_present("Discord OAuth client secret", ["DISCORD_CLIENT_SECRET"], mode=secret_mode)

        await self.db.connect()
        await self.load_all_cogs()

        logging.info("Contest bot setup completed")

    async def on_ready(self):
        logging.info("Bot online as %s in %d guilds", self.user, len(self.guilds))

    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, (commands.CommandNotFound, commands.CheckFailure)):
            return
        if isinstance(error, commands.UserInputError):
            logging.debug("Bad input for %s: %s", ctx.command, error)
            return
        original = getattr(error, "original", error)
        logging.error(
            "Command %s failed: %s", ctx.command, original,
            exc_info=(type(original), original, original.__traceback__),
        )

    async def close(self):
        logging.info("Contest bot shutting down...")

        if self.dashboard:
            try:
                await self.dashboard.stop()
            except (OSError, RuntimeError) as e:
                logging.error("Error stopping dashboard: %s", e)

        to_unload = [ext for ext in list(self.extensions.keys()) if ext.startswith("cogs.")]
        if to_unload:
            logging.info("Unloading %d cogs with timeout %.1fs each ...", len(to_unload), self.per_cog_unload_timeout)
            await self.unload_many(to_unload, timeout=self.per_cog_unload_timeout)

        try:
            timeout = float(os.getenv("DISCORD_CLOSE_TIMEOUT", "5"))
        except ValueError:
            timeout = 5.0
        try:
            await asyncio.wait_for(super().close(), timeout=timeout)
            logging.info("discord.Client.close() returned")
        except asyncio.TimeoutError:
            logging.error("discord.Client.close() timed out after %.1fs; continuing shutdown", timeout)

        await self.db.close()
        logging.info("Contest bot shutdown complete")
