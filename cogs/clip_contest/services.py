from __future__ import annotations

from dataclasses import dataclass

from service.db import ContestDB

from .channel_gate import ChannelGate
from .gateway import ChatGateway
from .ledger import SubmissionLedger
from .moderation import ModerationHandler
from .resolver import CycleResolver
from .scores import ScoreLedger
from .voting import VotingSession


@dataclass
class ContestServices:
    """All contest components wired around one store and one chat gateway."""

    db: ContestDB
    chat: ChatGateway
    gate: ChannelGate
    ledger: SubmissionLedger
    scores: ScoreLedger
    moderation: ModerationHandler
    voting: VotingSession
    resolver: CycleResolver


def build_services(db: ContestDB, chat: ChatGateway) -> ContestServices:
    ledger = SubmissionLedger(db)
    return ContestServices(
        db=db,
        chat=chat,
        gate=ChannelGate(db, chat),
        ledger=ledger,
        scores=ScoreLedger(db),
        moderation=ModerationHandler(db, chat, ledger),
        voting=VotingSession(db, chat, ledger),
        resolver=CycleResolver(db, chat),
    )


__all__ = ["ContestServices", "build_services"]
