from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Sequence

from discord.ext import commands

# Load order matters: the dashboard reads bot.contest set up by the contest extension
DEFAULT_EXTENSIONS: Sequence[str] = ("cogs.clip_contest", "cogs.dashboard_cog")
REQUIRED_EXTENSIONS = frozenset({"cogs.clip_contest"})


class CogLoaderMixin:
    """Loading/unloading helpers for the bot's extensions."""

    extensions_to_load: Sequence[str] = DEFAULT_EXTENSIONS
    per_cog_unload_timeout: float = 3.0

    def _init_cog_state(self) -> None:
        self.cog_status: Dict[str, str] = {}

    async def load_all_cogs(self) -> None:
        logging.info("Loading %d extensions...", len(self.extensions_to_load))
        ok = 0
        for cog_name in self.extensions_to_load:
            try:
                await self.load_extension(cog_name)  # type: ignore[attr-defined]
            except (commands.ExtensionError, RuntimeError) as e:
                self.cog_status[cog_name] = f"error: {str(e)[:100]}"
                logging.error("❌ Failed to load cog %s: %s", cog_name, e)
                if cog_name in REQUIRED_EXTENSIONS:
                    raise
                continue
            self.cog_status[cog_name] = "loaded"
            ok += 1
            logging.info("✅ Loaded cog: %s", cog_name)
        logging.info("Cog loading completed: %d/%d successful", ok, len(self.extensions_to_load))

    async def unload_many(self, targets: List[str], timeout: float | None = None) -> Dict[str, str]:
        timeout = float(timeout) if timeout is not None else self.per_cog_unload_timeout
        results: Dict[str, str] = {}
        for ext_name in targets:
            try:
                await asyncio.wait_for(self.unload_extension(ext_name), timeout=timeout)  # type: ignore[attr-defined]
                results[ext_name] = "unloaded"
                self.cog_status[ext_name] = "unloaded"
                logging.info("Unloaded extension: %s", ext_name)
            except asyncio.TimeoutError:
                results[ext_name] = "timeout"
                logging.error("Timeout unloading extension %s (>%.1fs)", ext_name, timeout)
            except commands.ExtensionError as e:
                results[ext_name] = f"error: {str(e)[:200]}"
                logging.error("Error unloading extension %s: %s", ext_name, e)
        return results
