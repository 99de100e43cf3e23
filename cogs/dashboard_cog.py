"""Dashboard Cog - runs the web dashboard inside the bot process and stops it on unload."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from discord.ext import commands

from service.config import settings

if TYPE_CHECKING:
    from bot_core.master_bot import ContestBot
    from service.dashboard import DashboardServer

log = logging.getLogger(__name__)


class DashboardCog(commands.Cog):
    """Wraps the DashboardServer as a reloadable cog."""

    def __init__(self, bot: ContestBot) -> None:
        self.bot = bot
        self.dashboard: Optional[DashboardServer] = None
        self._start_task: Optional[asyncio.Task] = None

        config = getattr(bot, "config", None) or settings
        if not config.dashboard_enabled:
            log.info("Dashboard disabled via DASHBOARD_ENABLED")
            return

        from service.dashboard import DashboardServer

        self.dashboard = DashboardServer(self.bot, config=config)
        log.info("Dashboard initialized in cog (Host %s, Port %s)", self.dashboard.host, self.dashboard.port)

    async def cog_load(self) -> None:
        if self.dashboard is None:
            return
        self.bot.dashboard = self.dashboard
        self._start_task = asyncio.create_task(self._start_dashboard())

    async def cog_unload(self) -> None:
        if self._start_task and not self._start_task.done():
            self._start_task.cancel()
            try:
                await self._start_task
            except asyncio.CancelledError:
                pass

        if self.dashboard:
            log.info("Stopping dashboard HTTP server...")
            try:
                await self.dashboard.stop()
            except Exception as e:
                log.error("Error stopping dashboard: %s", e)

        if getattr(self.bot, "dashboard", None) is self.dashboard:
            self.bot.dashboard = None

    async def _start_dashboard(self) -> None:
        """Background task: the dashboard needs the guild cache, so wait for READY."""
        await self.bot.wait_until_ready()
        if self.dashboard is None:
            return
        try:
            await self.dashboard.start()
        except (OSError, RuntimeError) as e:
            log.error("Failed to start dashboard: %s", e)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(DashboardCog(bot))  # type: ignore[arg-type]
