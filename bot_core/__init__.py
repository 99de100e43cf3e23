from __future__ import annotations

# ContestBot is imported from bot_core.master_bot directly so .env is loaded
# before settings are built.
from .bootstrap import bootstrap_runtime
from .shutdown import graceful_shutdown

__all__ = [
    "bootstrap_runtime",
    "graceful_shutdown",
]
