from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Keys whose values must never appear in log output
SECRET_ENV_KEYS = ["DISCORD_TOKEN", "DISCORD_CLIENT_SECRET"]


def _load_env_robust() -> Optional[str]:
    """Load the first .env found (DOTENV_PATH, then the project root). Existing env wins."""
    candidates: List[Path] = []
    custom = os.getenv("DOTENV_PATH")
    if custom:
        candidates.append(Path(custom))

    here = Path(__file__).resolve()
    candidates.append(here.parent.parent / ".env")

    for path in candidates:
        try:
            if path.exists():
                load_dotenv(dotenv_path=str(path), override=False)
                logging.getLogger().info(".env loaded: %s", path)
                return str(path)
        except OSError as exc:
            logging.getLogger().debug("Could not load .env (%s): %r", path, exc)
    return None


def _mask_tail(secret: str, keep: int = 4) -> str:
    if not secret:
        return ""
    text = str(secret)
    if len(text) <= keep:
        return "*" * len(text)
    return "*" * (len(text) - keep) + text[-keep:]


def _log_secret_present(name: str, env_keys: List[str], mode: str = "off") -> None:
    value = next((os.getenv(k) for k in env_keys if os.getenv(k)), None)
    if not value or mode == "off":
        return
    if mode == "masked":
        logging.info("%s: present (%s)", name, _mask_tail(value))
    elif mode == "present":
        logging.info("%s: present (value not logged)", name)


class _RedactSecretsFilter(logging.Filter):
    def __init__(self, keys: List[str]):
        super().__init__()
        self.secrets = [os.getenv(k) for k in keys if os.getenv(k)]

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = str(record.getMessage())
            redacted = msg
            for secret in self.secrets:
                if secret and secret in redacted:
                    redacted = redacted.replace(secret, "***REDACTED***")
            # Message is fully formatted now; clear args so the formatter does not apply them twice
            record.msg = redacted
            record.args = ()
        except Exception:
            # never log from inside a filter
            pass
        return True


def _configure_root_logging() -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler(sys.stdout)])


def _log_runtime_info() -> None:
    logging.getLogger().info("PYTHON exe=%s", sys.executable)
    logging.getLogger().info("CWD=%s", os.getcwd())


def bootstrap_runtime() -> None:
    """
    Early process bootstrap: console logging and .env, before settings are read.
    """
    _configure_root_logging()
    _load_env_robust()
    _log_runtime_info()


__all__ = [
    "SECRET_ENV_KEYS",
    "_RedactSecretsFilter",
    "_load_env_robust",
    "_log_secret_present",
    "_mask_tail",
    "bootstrap_runtime",
]
