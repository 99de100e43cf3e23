import contest_fakes  # noqa: F401
from contest_fakes import ADMIN, CHANNEL, CYCLE, GUILD, reaction, run_contest, submit_ok

import cogs.clip_contest.voting as voting_module
from cogs.clip_contest.outcomes import Decision, Reason, Rejected, VoteAccepted, VotingOpened
from service.db import fetch_one

BALLOT = "🗳️"


async def approved_ballots(services, *user_ids):
    for user_id in user_ids:
        s = await submit_ok(services, user_id, url=f"https://clips.example/{user_id}")
        await services.moderation.moderate(GUILD, s.id, Decision.APPROVE, ADMIN)
    opened = await services.voting.open_voting(GUILD, CYCLE, CHANNEL, ADMIN)
    return opened.entries


async def vote_count(services, voter_id):
    async with services.db.session() as conn:
        row = await fetch_one(
            conn,
            "SELECT COUNT(*) AS n FROM votes WHERE voter_id = ? AND guild_id = ? AND cycle_id = ?",
            (voter_id, GUILD, CYCLE),
        )
    return row["n"]


def test_open_voting_posts_header_and_one_ballot_per_approved_clip():
    async def scenario(services):
        pending = await submit_ok(services, 3)
        entries = await approved_ballots(services, 1, 2)
        stored = [await services.ledger.get(e.submission_id) for e in entries]
        return pending, entries, stored, services.chat

    pending, entries, stored, chat = run_contest(scenario)
    assert [e.user_id for e in entries] == [1, 2]
    assert all(s.vote_message_id == e.message_id for s, e in zip(stored, entries))
    assert pending.id not in {e.submission_id for e in entries}
    texts_sent = [text for _, _, text in chat.sent]
    assert "VOTACIÓN" in texts_sent[0]
    assert texts_sent[1] == "🎬 CLIP DE <@1>\nhttps://clips.example/1"
    assert [(m, e) for _, m, e in chat.reactions if e == BALLOT] == [(e.message_id, BALLOT) for e in entries]


def test_open_voting_requires_officer_and_approved_clips():
    async def scenario(services):
        empty = await services.voting.open_voting(GUILD, CYCLE, CHANNEL, ADMIN)
        denied = await services.voting.open_voting(GUILD, CYCLE, CHANNEL, 42)
        return empty, denied, services.chat.sent

    empty, denied, sent = run_contest(scenario)
    assert empty == Rejected(Reason.NO_APPROVED_SUBMISSIONS)
    assert denied == Rejected(Reason.UNAUTHORIZED)
    assert sent == []


def test_failed_ballot_post_is_skipped():
    async def scenario(services):
        s = await submit_ok(services, 1)
        await services.moderation.moderate(GUILD, s.id, Decision.APPROVE, ADMIN)
        services.chat.fail_sends = True
        return await services.voting.open_voting(GUILD, CYCLE, CHANNEL, ADMIN)

    result = run_contest(scenario)
    assert isinstance(result, VotingOpened)
    assert result.entries == []


def test_second_vote_in_cycle_is_rejected_and_retracted():
    async def scenario(services):
        first, second = await approved_ballots(services, 1, 2)
        ok = await services.voting.cast_vote(GUILD, CYCLE, reaction(first.message_id, BALLOT, 50), voter_name="voter")
        dup = await services.voting.cast_vote(GUILD, CYCLE, reaction(second.message_id, BALLOT, 50))
        same = await services.voting.cast_vote(GUILD, CYCLE, reaction(first.message_id, BALLOT, 50))
        return first, second, ok, dup, same, await vote_count(services, 50), services.chat.removed

    first, second, ok, dup, same, count, removed = run_contest(scenario)
    assert ok == VoteAccepted(submission_id=first.submission_id, voter_id=50)
    assert dup == Rejected(Reason.ALREADY_VOTED)
    assert same == Rejected(Reason.ALREADY_VOTED)
    assert count == 1
    assert removed == [
        (CHANNEL, second.message_id, BALLOT, 50),
        (CHANNEL, first.message_id, BALLOT, 50),
    ]


def test_self_vote_is_allowed():
    async def scenario(services):
        (entry,) = await approved_ballots(services, 1)
        return await services.voting.cast_vote(GUILD, CYCLE, reaction(entry.message_id, BALLOT, 1))

    assert isinstance(run_contest(scenario), VoteAccepted)


def test_ballot_without_variation_selector_counts():
    async def scenario(services):
        (entry,) = await approved_ballots(services, 1)
        return await services.voting.cast_vote(GUILD, CYCLE, reaction(entry.message_id, "\U0001F5F3", 60))

    assert isinstance(run_contest(scenario), VoteAccepted)


def test_vote_after_closure_or_on_old_cycle_is_rejected():
    async def scenario(services):
        (entry,) = await approved_ballots(services, 1)
        await services.voting.cast_vote(GUILD, CYCLE, reaction(entry.message_id, BALLOT, 50))
        await services.resolver.finalize(GUILD, CYCLE, CHANNEL, ADMIN)
        late = await services.voting.cast_vote(GUILD, CYCLE, reaction(entry.message_id, BALLOT, 51))
        next_week = await services.voting.cast_vote(GUILD, "2026-W43", reaction(entry.message_id, BALLOT, 52))
        return entry, late, next_week, await vote_count(services, 51), services.chat.removed

    entry, late, next_week, count, removed = run_contest(scenario)
    assert late == Rejected(Reason.CYCLE_CLOSED)
    assert next_week == Rejected(Reason.CYCLE_CLOSED)
    assert count == 0
    assert (CHANNEL, entry.message_id, BALLOT, 51) in removed
    assert (CHANNEL, entry.message_id, BALLOT, 52) in removed


def test_unknown_message_and_other_emoji_are_silent():
    async def scenario(services):
        (entry,) = await approved_ballots(services, 1)
        unknown = await services.voting.cast_vote(GUILD, CYCLE, reaction(777, BALLOT, 50))
        other = await services.voting.cast_vote(GUILD, CYCLE, reaction(entry.message_id, "❤️", 50))
        return unknown, other, services.chat.removed

    unknown, other, removed = run_contest(scenario)
    assert unknown == Rejected(Reason.NOT_TRACKED)
    assert other == Rejected(Reason.IGNORED)
    assert unknown.silent and other.silent
    assert removed == []


def test_constraint_race_on_vote_is_reported_as_already_voted(monkeypatch):
    async def nothing_recorded(conn, sql, params=()):
        return None

    async def scenario(services):
        first, second = await approved_ballots(services, 1, 2)
        await services.voting.cast_vote(GUILD, CYCLE, reaction(first.message_id, BALLOT, 60))
        # prior-vote lookup misses, so only the unique constraint can stop the second vote
        monkeypatch.setattr(voting_module, "fetch_one", nothing_recorded)
        racer = await services.voting.cast_vote(GUILD, CYCLE, reaction(second.message_id, BALLOT, 60))
        return second, racer, await vote_count(services, 60), services.chat.removed

    second, racer, count, removed = run_contest(scenario)
    assert racer == Rejected(Reason.ALREADY_VOTED)
    assert count == 1
    assert removed == [(CHANNEL, second.message_id, BALLOT, 60)]
