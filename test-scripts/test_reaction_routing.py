import sqlite3
from types import SimpleNamespace

import contest_fakes  # noqa: F401
from contest_fakes import ADMIN, CHANNEL, GUILD, run_contest, submit_ok

from cogs.clip_contest.cog import ClipContestCog
from cogs.clip_contest.cycle import current_cycle_key
from cogs.clip_contest.outcomes import Decision
from service.db import fetch_one

BOT_USER = 999
BALLOT = "🗳️"


def make_cog(services):
    return ClipContestCog(SimpleNamespace(user=SimpleNamespace(id=BOT_USER)), services)


def payload(message_id, emoji, user_id, *, bot=False, with_member=True, guild_id=GUILD):
    member = SimpleNamespace(name=f"pilot{user_id}", bot=bot) if with_member else None
    return SimpleNamespace(
        guild_id=guild_id,
        channel_id=CHANNEL,
        message_id=message_id,
        emoji=emoji,
        user_id=user_id,
        member=member,
    )


async def votes_by(services, voter_id):
    async with services.db.session() as conn:
        row = await fetch_one(conn, "SELECT COUNT(*) AS n FROM votes WHERE voter_id = ?", (voter_id,))
    return row["n"]


def test_reaction_on_acknowledgement_goes_to_moderation():
    async def scenario(services):
        cog = make_cog(services)
        s = await submit_ok(services, 7, cycle=current_cycle_key())
        ack = 9000 + s.id
        await cog.on_raw_reaction_add(payload(ack, "✅", 42))
        after_pilot = (await services.ledger.get(s.id)).state
        await cog.on_raw_reaction_add(payload(ack, "✅", ADMIN))
        return ack, after_pilot, await services.ledger.get(s.id), await services.scores.balance(7, GUILD), services.chat

    ack, after_pilot, stored, points, chat = run_contest(scenario)
    assert after_pilot == "pending"
    assert chat.removed == [(CHANNEL, ack, "✅", 42)]
    assert stored.state == "approved"
    assert points == 1
    assert chat.cleared == [(CHANNEL, ack)]


def test_reaction_on_ballot_falls_through_to_voting():
    async def scenario(services):
        cog = make_cog(services)
        cycle = current_cycle_key()
        s = await submit_ok(services, 7, cycle=cycle)
        await services.moderation.moderate(GUILD, s.id, Decision.APPROVE, ADMIN)
        (entry,) = (await services.voting.open_voting(GUILD, cycle, CHANNEL, ADMIN)).entries
        await cog.on_raw_reaction_add(payload(entry.message_id, BALLOT, 50))
        return await votes_by(services, 50), await services.scores.display_names(GUILD, [50])

    count, names = run_contest(scenario)
    assert count == 1
    assert names == {50: "pilot50"}


def test_reaction_on_unknown_message_has_no_effect():
    async def scenario(services):
        cog = make_cog(services)
        await cog.on_raw_reaction_add(payload(12345, "✅", ADMIN))
        await cog.on_raw_reaction_add(payload(12345, BALLOT, 50))
        return await votes_by(services, 50), services.chat

    count, chat = run_contest(scenario)
    assert count == 0
    assert chat.removed == []
    assert chat.edits == []


def test_bot_and_direct_message_reactions_are_ignored():
    async def scenario(services):
        cog = make_cog(services)
        s = await submit_ok(services, 7, cycle=current_cycle_key())
        ack = 9000 + s.id
        await cog.on_raw_reaction_add(payload(ack, "✅", ADMIN, bot=True))
        await cog.on_raw_reaction_add(payload(ack, "✅", BOT_USER, with_member=False))
        await cog.on_raw_reaction_add(payload(ack, "✅", ADMIN, guild_id=None))
        return await services.ledger.get(s.id), services.chat

    # the bot's own user is an officer here, so only the filter keeps it out
    stored, chat = run_contest(scenario, admins=(ADMIN, BOT_USER))
    assert stored.state == "pending"
    assert chat.removed == []
    assert chat.edits == []


def test_store_error_while_routing_fails_soft():
    async def broken(guild_id, reaction):
        raise sqlite3.OperationalError("database is locked")

    async def scenario(services):
        cog = make_cog(services)
        services.moderation.handle_reaction = broken
        result = await cog.on_raw_reaction_add(payload(12345, BALLOT, 50))
        return result, await votes_by(services, 50), services.chat.removed

    assert run_contest(scenario) == (None, 0, [])
