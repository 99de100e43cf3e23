"""Tagged results returned by every contest operation (nothing here raises)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
ACTIVE_STATES = (PENDING, APPROVED)


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def state(self) -> str:
        return APPROVED if self is Decision.APPROVE else REJECTED


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    POLICY = "policy"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"


class Reason(str, Enum):
    MISSING_URL = "missing_url"
    INVALID_URL = "invalid_url"

    SECTOR_CLOSED = "sector_closed"
    ACTIVE_SUBMISSION_EXISTS = "active_submission_exists"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    ALREADY_MODERATED = "already_moderated"
    NO_APPROVED_SUBMISSIONS = "no_approved_submissions"
    CYCLE_CLOSED = "cycle_closed"
    ALREADY_VOTED = "already_voted"
    NO_VOTES = "no_votes"
    ALREADY_FINALIZED = "already_finalized"

    UNAUTHORIZED = "unauthorized"

    NOT_TRACKED = "not_tracked"
    IGNORED = "ignored"

    @property
    def kind(self) -> ErrorKind:
        return _KINDS.get(self, ErrorKind.POLICY)


_KINDS = {
    Reason.MISSING_URL: ErrorKind.VALIDATION,
    Reason.INVALID_URL: ErrorKind.VALIDATION,
    Reason.UNAUTHORIZED: ErrorKind.AUTHORIZATION,
    Reason.NOT_TRACKED: ErrorKind.NOT_FOUND,
    Reason.IGNORED: ErrorKind.NOT_FOUND,
}


@dataclass(frozen=True)
class Rejected:
    reason: Reason

    @property
    def kind(self) -> ErrorKind:
        return self.reason.kind

    @property
    def silent(self) -> bool:
        return self.kind is ErrorKind.NOT_FOUND


@dataclass(frozen=True)
class Submission:
    id: int
    user_id: int
    guild_id: int
    url: str
    cycle_id: str
    state: str
    attempt_no: int
    ack_message_id: Optional[int] = None
    ack_channel_id: Optional[int] = None
    vote_message_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @classmethod
    def from_row(cls, row) -> "Submission":
        return cls(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            guild_id=int(row["guild_id"]),
            url=str(row["url"]),
            cycle_id=str(row["cycle_id"]),
            state=str(row["state"]),
            attempt_no=int(row["attempt_no"]),
            ack_message_id=row["ack_message_id"],
            ack_channel_id=row["ack_channel_id"],
            vote_message_id=row["vote_message_id"],
        )


@dataclass(frozen=True)
class ReactionRef:
    """The reaction event that triggered an operation; retracted on rejection."""

    channel_id: int
    message_id: int
    emoji: str
    user_id: int


@dataclass(frozen=True)
class Submitted:
    submission: Submission

    @property
    def attempt(self) -> int:
        return self.submission.attempt_no


@dataclass(frozen=True)
class Moderated:
    submission: Submission
    decision: Decision
    actor_id: int


@dataclass(frozen=True)
class VotingEntry:
    submission_id: int
    user_id: int
    url: str
    message_id: int


@dataclass(frozen=True)
class VotingOpened:
    entries: List[VotingEntry] = field(default_factory=list)


@dataclass(frozen=True)
class VoteAccepted:
    submission_id: int
    voter_id: int


@dataclass(frozen=True)
class Winner:
    submission_id: int
    user_id: int
    url: str
    votes: int


@dataclass(frozen=True)
class Finalized:
    winner: Winner


@dataclass(frozen=True)
class ChannelSet:
    guild_id: int
    channel_id: int


SubmitResult = Union[Submitted, Rejected]
ModerationResult = Union[Moderated, Rejected]
OpenVotingResult = Union[VotingOpened, Rejected]
VoteResult = Union[VoteAccepted, Rejected]
FinalizeResult = Union[Finalized, Rejected]
ChannelResult = Union[ChannelSet, Rejected]
