# main_bot.py
# Citizen Clips – weekly clip contest bot + officer dashboard

from __future__ import annotations

import asyncio
import logging
import signal

import discord

from bot_core.bootstrap import bootstrap_runtime
from bot_core.shutdown import graceful_shutdown

bootstrap_runtime()

from bot_core.master_bot import ContestBot  # noqa: E402  (needs .env loaded first)
from service.config import get_settings  # noqa: E402


async def main():
    config = get_settings()
    token = config.discord_token.get_secret_value().strip()
    if not token:
        raise SystemExit("DISCORD_TOKEN missing in ENV/.env")

    bot = ContestBot(config=config)
    loop = asyncio.get_running_loop()

    def _sig_handler(signum: int) -> None:
        logging.info("Received signal %s, shutting down gracefully...", signum)
        asyncio.create_task(graceful_shutdown(bot, reason=f"signal {signum}"))

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _sig_handler, sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support add_signal_handler
            pass

    try:
        await bot.start(token)
    except discord.LoginFailure as e:
        logging.critical("Discord login failed: %s", e)
        raise SystemExit(1) from e
    finally:
        if not bot.is_closed():
            await bot.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Keyboard interrupt received, shutting down...")
