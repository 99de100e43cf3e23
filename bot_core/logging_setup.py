from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List

from bot_core.bootstrap import SECRET_ENV_KEYS, _RedactSecretsFilter


class LoggingMixin:
    """Logging setup for the bot process, including the secret filter."""

    root_dir: Path

    def setup_logging(self, level: str = "INFO") -> None:
        log_dir = self.root_dir / "logs"
        log_dir.mkdir(exist_ok=True)

        console_level = getattr(logging, str(level).upper(), logging.INFO)
        root_handlers: List[logging.Handler] = []

        info_file = logging.handlers.RotatingFileHandler(
            log_dir / "contest_bot.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        info_file.setLevel(logging.INFO)
        root_handlers.append(info_file)

        # DEBUG always goes to its own file, whatever the console level
        debug_file = logging.handlers.RotatingFileHandler(
            log_dir / "contest_bot.debug.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        debug_file.setLevel(logging.DEBUG)
        root_handlers.append(debug_file)

        stream = logging.StreamHandler(sys.stdout)
        stream.setLevel(console_level)
        root_handlers.append(stream)

        logging.getLogger().handlers.clear()
        logging.basicConfig(
            level=logging.DEBUG,
            handlers=root_handlers,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        logging.getLogger("discord").setLevel(logging.WARNING)
        logging.getLogger("discord.http").setLevel(logging.WARNING)
        logging.getLogger("aiohttp").setLevel(logging.INFO)
        logging.getLogger("aiosqlite").setLevel(logging.INFO)

        flt = _RedactSecretsFilter(SECRET_ENV_KEYS)
        for h in logging.getLogger().handlers:
            h.addFilter(flt)

        logging.info("Contest bot logging initialized")
