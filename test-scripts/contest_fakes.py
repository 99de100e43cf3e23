"""Shared helpers for the contest tests: in-memory store + recording chat gateway."""
import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

# Add root to sys.path
root = Path(__file__).parent.parent
sys.path.insert(0, str(root))

os.environ.setdefault("DISCORD_TOKEN", "test-token")

from cogs.clip_contest.outcomes import ReactionRef
from cogs.clip_contest.services import ContestServices, build_services
from service.db import MEMORY, ContestDB

GUILD = 100
OTHER_GUILD = 200
CHANNEL = 10
ADMIN = 1
CYCLE = "2026-W42"


class FakeGateway:
    """Records every chat side effect; admins are a plain set of user ids."""

    def __init__(self, admins: Iterable[int] = (ADMIN,), names: Optional[Dict[int, str]] = None):
        self.admins = set(admins)
        self.names = dict(names or {})
        self.sent: List[Tuple[int, int, str]] = []
        self.edits: List[Tuple[int, int, str]] = []
        self.reactions: List[Tuple[int, int, str]] = []
        self.removed: List[Tuple[int, int, str, int]] = []
        self.cleared: List[Tuple[int, int]] = []
        self.fail_sends = False
        self._next_id = 5000

    async def is_elevated(self, guild_id: int, user_id: int) -> bool:
        return user_id in self.admins

    async def send(self, channel_id: int, text: str) -> Optional[int]:
        if self.fail_sends:
            return None
        self._next_id += 1
        self.sent.append((channel_id, self._next_id, text))
        return self._next_id

    async def edit(self, channel_id: int, message_id: int, text: str) -> None:
        self.edits.append((channel_id, message_id, text))

    async def react(self, channel_id: int, message_id: int, emoji: str) -> None:
        self.reactions.append((channel_id, message_id, emoji))

    async def remove_reaction(self, channel_id: int, message_id: int, emoji: str, user_id: int) -> None:
        self.removed.append((channel_id, message_id, emoji, user_id))

    async def clear_reactions(self, channel_id: int, message_id: int) -> None:
        self.cleared.append((channel_id, message_id))

    async def display_name(self, user_id: int) -> Optional[str]:
        return self.names.get(user_id)


def run_contest(scenario, *, admins: Iterable[int] = (ADMIN,), names: Optional[Dict[int, str]] = None):
    """Run ``scenario(services)`` against a fresh in-memory store."""

    async def _runner():
        db = ContestDB(MEMORY)
        await db.connect()
        try:
            return await scenario(build_services(db, FakeGateway(admins, names)))
        finally:
            await db.close()

    return asyncio.run(_runner())


async def submit_ok(services: ContestServices, user_id: int, url: str = "https://clips.example/a", cycle: str = CYCLE):
    result = await services.ledger.submit(user_id, GUILD, cycle, url)
    submission = result.submission
    # mimic the cog: acknowledgement message id is stored right after the reply
    await services.ledger.link_acknowledgement(submission.id, 9000 + submission.id, CHANNEL)
    return submission


def reaction(message_id: int, emoji: str, user_id: int) -> ReactionRef:
    return ReactionRef(channel_id=CHANNEL, message_id=message_id, emoji=emoji, user_id=user_id)
