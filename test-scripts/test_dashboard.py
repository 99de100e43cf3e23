from types import SimpleNamespace

import contest_fakes  # noqa: F401
from contest_fakes import ADMIN, CYCLE, GUILD, OTHER_GUILD, run_contest

from aiohttp.test_utils import TestClient, TestServer

from cogs.dashboard_cog import DashboardCog
from cogs.clip_contest.outcomes import Decision
from service.config import Settings
from service.dashboard import SESSION_COOKIE, UNKNOWN_PILOT, DashboardServer, admin_guilds, guild_snapshot


def make_config(**overrides):
    values = {
        "DISCORD_TOKEN": "test-token",
        "DISCORD_CLIENT_ID": "123456",
        "DISCORD_CLIENT_SECRET": "shh",
        "DASHBOARD_PORT": 3000,
    }
    values.update(overrides)
    return Settings(**values)


def test_admin_guilds_needs_administrator_bit_and_bot_presence():
    user_guilds = [
        {"id": str(GUILD), "name": "Fleet", "permissions": "8"},
        {"id": str(OTHER_GUILD), "name": "Elsewhere", "permissions": "2147483647"},
        {"id": "300", "name": "Member only", "permissions": "1024"},
        {"id": "not-a-number", "permissions": "8"},
    ]
    result = admin_guilds(user_guilds, [GUILD, 300])
    assert [g["name"] for g in result] == ["Fleet"]


def test_callback_url_defaults_to_local_port():
    assert make_config().callback_url() == "http://localhost:3000/auth/discord/callback"
    public = make_config(DASHBOARD_PUBLIC_URL="https://clips.example/")
    assert public.callback_url() == "https://clips.example/auth/discord/callback"


def test_snapshot_resolves_names_and_caches_lookups():
    async def scenario(services):
        first = await services.ledger.submit(7, GUILD, CYCLE, "https://clips.example/7")
        await services.ledger.submit(8, GUILD, CYCLE, "https://clips.example/8")
        await services.ledger.submit(9, GUILD, CYCLE, "https://clips.example/9", display_name="cached9")
        await services.moderation.moderate(GUILD, first.submission.id, Decision.APPROVE, ADMIN)
        snapshot = await guild_snapshot(services, GUILD, CYCLE)
        return snapshot, await services.scores.display_names(GUILD, [7, 8, 9])

    snapshot, cached = run_contest(scenario, names={7: "pilot7"})
    names = {row["user_id"]: row["name"] for row in snapshot["submissions"]}
    assert names == {7: "pilot7", 8: UNKNOWN_PILOT, 9: "cached9"}
    assert cached == {7: "pilot7", 9: "cached9"}
    assert snapshot["closed"] is False
    assert snapshot["leaderboard"][0]["user_id"] == 7
    assert snapshot["leaderboard"][0]["points"] == 1
    assert [row["state"] for row in snapshot["submissions"]] == ["pending", "pending", "approved"]


def test_dashboard_routes():
    async def scenario(services):
        await services.ledger.submit(7, GUILD, CYCLE, "https://clips.example/<script>", display_name="<img src=x>")
        bot = SimpleNamespace(contest=services, guilds=[SimpleNamespace(id=GUILD)])
        server = DashboardServer(bot, config=make_config())
        out = {}
        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/")
            out["index"] = (resp.status, await resp.text())

            resp = await client.get("/admin", allow_redirects=False)
            out["admin_anon"] = (resp.status, resp.headers.get("Location"))

            resp = await client.get("/login", allow_redirects=False)
            out["login"] = (resp.status, resp.headers.get("Location"), dict(server._oauth_states))

            resp = await client.get("/auth/discord/callback?state=bogus&code=abc", allow_redirects=False)
            out["bad_state"] = resp.status

            sid = server.create_session(
                {"id": "1", "username": "officer"},
                [
                    {"id": str(GUILD), "name": "<b>Fleet</b>", "permissions": "8"},
                    {"id": str(OTHER_GUILD), "name": "Elsewhere", "permissions": "8"},
                ],
            )
            cookie = {"Cookie": f"{SESSION_COOKIE}={sid}"}
            resp = await client.get("/admin", headers=cookie, allow_redirects=False)
            out["admin"] = (resp.status, await resp.text())

            resp = await client.get("/health")
            out["health"] = await resp.json()

            resp = await client.get("/logout", headers=cookie, allow_redirects=False)
            out["logout"] = (resp.status, resp.headers.get("Location"), sid in server._auth_sessions)
        return out

    out = run_contest(scenario)

    status, body = out["index"]
    assert status == 200
    assert "CITIZEN CLIPS" in body
    assert "client_id=123456" in body

    assert out["admin_anon"] == (302, "/login")

    status, location, states = out["login"]
    assert status == 302
    assert location.startswith("https://discord.com/oauth2/authorize?")
    assert "scope=identify+guilds" in location
    assert len(states) == 1 and next(iter(states)) in location

    assert out["bad_state"] == 400

    status, body = out["admin"]
    assert status == 200
    assert "&lt;b&gt;Fleet&lt;/b&gt;" in body
    assert "Elsewhere" not in body
    assert "&lt;img src=x&gt;" in body
    assert "<script>" not in body
    assert "ACTIVE" in body

    assert out["health"]["ok"] is True
    assert out["logout"] == (302, "/", False)


def test_login_without_oauth_config_is_unavailable():
    async def scenario(services):
        bot = SimpleNamespace(contest=services, guilds=[])
        server = DashboardServer(bot, config=make_config(DISCORD_CLIENT_ID="", DISCORD_CLIENT_SECRET=""))
        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/login", allow_redirects=False)
            return resp.status

    assert run_contest(scenario) == 503


def test_officer_without_guilds_sees_no_access_page():
    async def scenario(services):
        bot = SimpleNamespace(contest=services, guilds=[SimpleNamespace(id=GUILD)])
        server = DashboardServer(bot, config=make_config())
        sid = server.create_session({"id": "2", "username": "pilot"}, [{"id": str(GUILD), "permissions": "0"}])
        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/admin", headers={"Cookie": f"{SESSION_COOKIE}={sid}"})
            return resp.status, await resp.text()

    status, body = run_contest(scenario)
    assert status == 200
    assert "SIN ACCESO" in body


def test_dashboard_cog_takes_config_from_the_bot():
    enabled = DashboardCog(SimpleNamespace(config=make_config(DASHBOARD_PORT=4123)))
    disabled = DashboardCog(SimpleNamespace(config=make_config(DASHBOARD_ENABLED=False)))
    assert enabled.dashboard is not None
    assert enabled.dashboard.port == 4123
    assert enabled.dashboard.config.dashboard_port == 4123
    assert disabled.dashboard is None
