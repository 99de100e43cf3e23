from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bot_core.master_bot import ContestBot

__all__ = ["graceful_shutdown"]

_shutdown_started = False


async def graceful_shutdown(
    bot: ContestBot,
    reason: str = "signal",
    timeout_close: float = 8.0,
    timeout_total: float = 10.0,
) -> None:
    """Close the bot (dashboard, extensions, store), cancel leftovers, then stop the loop."""
    global _shutdown_started
    if _shutdown_started:
        return
    _shutdown_started = True

    logging.info("Graceful shutdown initiated (%s) ...", reason)

    # 1) close the bot, bounded
    try:
        await asyncio.wait_for(bot.close(), timeout=timeout_close)
        logging.info("bot.close() returned")
    except asyncio.TimeoutError:
        logging.error("bot.close() timed out after %.1fs", timeout_close)

    # 2) cancel whatever is still running (except this task)
    pending = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
    for t in pending:
        t.cancel()
    if pending:
        await asyncio.wait(pending, timeout=max(0.0, timeout_total - timeout_close))

    # 3) stop the loop, hard exit as last resort
    loop = asyncio.get_running_loop()
    loop.stop()
    loop.call_later(0.2, lambda: os._exit(0))
