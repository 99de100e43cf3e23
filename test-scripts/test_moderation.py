import contest_fakes  # noqa: F401
from contest_fakes import ADMIN, CHANNEL, GUILD, reaction, run_contest, submit_ok

from cogs.clip_contest.outcomes import Decision, Moderated, Reason, Rejected


def test_officer_approval_grants_point_and_closes_ack_message():
    async def scenario(services):
        s = await submit_ok(services, 7)
        result = await services.moderation.handle_reaction(GUILD, reaction(9000 + s.id, "✅", ADMIN))
        return s, result, await services.scores.balance(7, GUILD), services.chat

    s, result, points, chat = run_contest(scenario)
    assert isinstance(result, Moderated)
    assert result.submission.state == "approved"
    assert points == 1
    ack_id = 9000 + s.id
    assert chat.edits == [(CHANNEL, ack_id, f"✅ **APROBADO** por CMD <@{ADMIN}>")]
    assert chat.cleared == [(CHANNEL, ack_id)]


def test_rejection_grants_nothing():
    async def scenario(services):
        s = await submit_ok(services, 7)
        result = await services.moderation.handle_reaction(GUILD, reaction(9000 + s.id, "❌", ADMIN))
        return result, await services.scores.balance(7, GUILD), services.chat

    result, points, chat = run_contest(scenario)
    assert isinstance(result, Moderated)
    assert result.decision is Decision.REJECT
    assert points == 0
    assert "RECHAZADO" in chat.edits[0][2]


def test_non_officer_reaction_is_retracted_without_state_change():
    async def scenario(services):
        s = await submit_ok(services, 7)
        approve = await services.moderation.handle_reaction(GUILD, reaction(9000 + s.id, "✅", 8))
        other = await services.moderation.handle_reaction(GUILD, reaction(9000 + s.id, "🔥", 8))
        return s, approve, other, await services.ledger.get(s.id), services.chat

    s, approve, other, stored, chat = run_contest(scenario)
    assert approve == Rejected(Reason.UNAUTHORIZED)
    assert other == Rejected(Reason.UNAUTHORIZED)
    assert stored.state == "pending"
    assert chat.removed == [
        (CHANNEL, 9000 + s.id, "✅", 8),
        (CHANNEL, 9000 + s.id, "🔥", 8),
    ]
    assert chat.edits == []


def test_officer_with_unrelated_emoji_is_ignored():
    async def scenario(services):
        s = await submit_ok(services, 7)
        return await services.moderation.handle_reaction(GUILD, reaction(9000 + s.id, "👍", ADMIN)), services.chat

    result, chat = run_contest(scenario)
    assert result == Rejected(Reason.IGNORED)
    assert chat.removed == []


def test_terminal_submission_does_not_change_again():
    async def scenario(services):
        s = await submit_ok(services, 7)
        await services.moderation.moderate(GUILD, s.id, Decision.APPROVE, ADMIN)
        again = await services.moderation.moderate(GUILD, s.id, Decision.APPROVE, ADMIN)
        flip = await services.moderation.moderate(GUILD, s.id, Decision.REJECT, ADMIN)
        return again, flip, await services.ledger.get(s.id), await services.scores.balance(7, GUILD)

    again, flip, stored, points = run_contest(scenario)
    assert again == Rejected(Reason.ALREADY_MODERATED)
    assert flip == Rejected(Reason.ALREADY_MODERATED)
    assert stored.state == "approved"
    assert points == 1


def test_unknown_message_is_not_tracked():
    async def scenario(services):
        by_message = await services.moderation.handle_reaction(GUILD, reaction(123456, "✅", ADMIN))
        by_id = await services.moderation.moderate(GUILD, 999, Decision.APPROVE, ADMIN)
        return by_message, by_id

    by_message, by_id = run_contest(scenario)
    assert by_message == Rejected(Reason.NOT_TRACKED)
    assert by_id == Rejected(Reason.NOT_TRACKED)
    assert by_message.silent


def test_ack_message_of_other_guild_is_not_tracked():
    async def scenario(services):
        s = await submit_ok(services, 7)
        return await services.moderation.handle_reaction(GUILD + 1, reaction(9000 + s.id, "✅", ADMIN))

    assert run_contest(scenario) == Rejected(Reason.NOT_TRACKED)
