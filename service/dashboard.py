from __future__ import annotations

import asyncio
import errno
import html
import logging
import secrets
import time
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional
from urllib.parse import urlencode

import aiohttp
from aiohttp import web

from cogs.clip_contest.cycle import current_cycle_key
from service.config import Settings, settings as default_settings

if TYPE_CHECKING:
    from bot_core.master_bot import ContestBot
    from cogs.clip_contest.services import ContestServices

log = logging.getLogger(__name__)

DISCORD_API = "https://discord.com/api"
DISCORD_OAUTH_AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
DISCORD_OAUTH_TOKEN_URL = f"{DISCORD_API}/oauth2/token"
DISCORD_OAUTH_SCOPES = "identify guilds"

ADMINISTRATOR = 0x8
UNKNOWN_PILOT = "Unknown Pilot"
SESSION_COOKIE = "citizen_clips_session"

STATE_COLORS = {"approved": "#00dcff", "rejected": "#ff3333", "pending": "#ffb400"}

STYLE = """
<style>
  @import url('https://fonts.googleapis.com/css2?family=Orbitron:wght@400;700;900&family=Rajdhani:wght@300;500;700&display=swap');
  :root{--sc-blue:#00dcff;--sc-dark-blue:#0b1a26;--sc-gold:#ffb400;--sc-alert:#ff3333;--glass-panel:rgba(11,26,38,.9);}
  body{margin:0;padding:0;background:#000;color:#fff;font-family:'Rajdhani',sans-serif;min-height:100vh;
       background-image:radial-gradient(circle at 50% 50%,rgba(0,220,255,.05) 0%,transparent 60%);}
  h1,h2,h3{font-family:'Orbitron',sans-serif;text-transform:uppercase;letter-spacing:3px;}
  .hero-title{font-size:4rem;margin:0;color:var(--sc-blue);text-shadow:0 0 20px var(--sc-blue);}
  .rewards-text{font-size:1.5rem;color:var(--sc-gold);font-weight:bold;margin-top:10px;border:1px solid var(--sc-gold);
                padding:10px 30px;border-radius:4px;background:rgba(255,180,0,.1);display:inline-block;}
  .btn-quantum{display:inline-block;text-decoration:none;margin-top:40px;padding:15px 60px;font-size:1.5rem;font-weight:bold;
               color:var(--sc-dark-blue);background:var(--sc-blue);font-family:'Orbitron',sans-serif;
               box-shadow:0 0 30px rgba(0,220,255,.4);}
  .btn-officer{color:#556677;font-size:.9rem;text-decoration:none;margin-top:30px;border:1px solid #334455;padding:10px 20px;
               border-radius:4px;font-family:'Orbitron',sans-serif;letter-spacing:2px;background:rgba(0,0,0,.5);display:inline-block;}
  .features-grid{display:flex;gap:30px;margin-top:60px;flex-wrap:wrap;justify-content:center;width:100%;max-width:1200px;}
  .feature-card{background:var(--glass-panel);border:1px solid #334455;padding:30px;width:280px;text-align:center;
                border-top:3px solid var(--sc-blue);}
  .feature-card p{color:#8899aa;line-height:1.6;}
  .container{max-width:1100px;margin:0 auto;padding:40px 20px;}
  .server-panel{background:var(--glass-panel);border:1px solid #334455;padding:25px;margin-bottom:30px;}
  table{width:100%;border-collapse:collapse;margin-top:20px;}
  th{text-align:left;color:var(--sc-blue);border-bottom:1px solid #334455;padding:10px;font-family:'Orbitron';font-size:.8em;}
  td{padding:15px 10px;border-bottom:1px solid rgba(255,255,255,.05);color:#ccddee;}
  .status-badge{padding:4px 10px;font-size:.8em;border:1px solid;text-transform:uppercase;}
  .open{color:var(--sc-blue);border-color:var(--sc-blue);}
  .closed{color:var(--sc-alert);border-color:var(--sc-alert);}
</style>
"""


def _esc(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def admin_guilds(user_guilds: Iterable[Dict[str, Any]], bot_guild_ids: Iterable[int]) -> List[Dict[str, Any]]:
    """Guilds where the user holds ADMINISTRATOR and the bot is a member."""
    present = {int(g) for g in bot_guild_ids}
    result: List[Dict[str, Any]] = []
    for guild in user_guilds or []:
        try:
            guild_id = int(guild.get("id"))
            permissions = int(guild.get("permissions") or 0)
        except (TypeError, ValueError):
            continue
        if permissions & ADMINISTRATOR == ADMINISTRATOR and guild_id in present:
            result.append(guild)
    return result


async def resolve_names(services: "ContestServices", guild_id: int, user_ids: Iterable[int]) -> Dict[int, str]:
    """Cached name, else a chat lookup (cached best effort), else UNKNOWN_PILOT."""
    ids = {int(u) for u in user_ids}
    names = await services.scores.display_names(guild_id, ids)
    for user_id in ids - set(names):
        name = await services.chat.display_name(user_id)
        if name:
            await services.scores.remember_name(user_id, guild_id, name)
            names[user_id] = name
        else:
            names[user_id] = UNKNOWN_PILOT
    return names


async def guild_snapshot(services: "ContestServices", guild_id: int, cycle_id: str) -> Dict[str, Any]:
    closed = await services.resolver.is_closed(guild_id, cycle_id)
    leaderboard = await services.scores.leaderboard(guild_id)
    recent = await services.ledger.recent(guild_id)
    names = await resolve_names(services, guild_id, (s.user_id for s in recent))
    return {
        "guild_id": guild_id,
        "cycle_id": cycle_id,
        "closed": closed,
        "leaderboard": [
            {"user_id": e.user_id, "name": e.display_name or UNKNOWN_PILOT, "points": e.points}
            for e in leaderboard
        ],
        "submissions": [
            {"id": s.id, "user_id": s.user_id, "name": names.get(s.user_id, UNKNOWN_PILOT), "state": s.state, "url": s.url}
            for s in recent
        ],
    }


class DashboardServer:
    """aiohttp dashboard: public landing page plus the Discord-login officer view."""

    def __init__(
        self,
        bot: "ContestBot",
        *,
        host: Optional[str] = None,
        port: Optional[int] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self.bot = bot
        self.config = config or default_settings
        self.host = host or self.config.dashboard_host
        self.port = int(port or self.config.dashboard_port)
        self._client_id = (self.config.discord_client_id or "").strip() or None
        secret = self.config.discord_client_secret
        self._client_secret = secret.get_secret_value().strip() if secret else None
        self._redirect_uri = self.config.callback_url()
        self._session_ttl_seconds = max(300, int(self.config.dashboard_session_ttl_seconds or 12 * 3600))
        self._oauth_state_ttl_seconds = 600
        self._oauth_states: Dict[str, Dict[str, Any]] = {}
        self._auth_sessions: Dict[str, Dict[str, Any]] = {}
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._lock = asyncio.Lock()
        self._started = False

    # ---------- App / lifecycle ----------

    def build_app(self) -> web.Application:
        app = web.Application()
        app["dashboard"] = self
        app.add_routes(
            [
                web.get("/", self._handle_index),
                web.get("/login", self._handle_login),
                web.get("/auth/discord/callback", self._handle_callback),
                web.get("/logout", self._handle_logout),
                web.get("/admin", self._handle_admin),
                web.get("/health", self._handle_health),
            ]
        )
        return app

    async def start(self) -> None:
        async with self._lock:
            if self._started:
                return
            runner = web.AppRunner(self.build_app())
            await runner.setup()
            try:
                site = web.TCPSite(runner, self.host, self.port, reuse_address=True)
                await site.start()
            except OSError as e:
                await runner.cleanup()
                if e.errno == errno.EADDRINUSE:
                    raise RuntimeError(f"Dashboard port {self.host}:{self.port} is already in use") from e
                raise
            self._runner = runner
            self._site = site
            self._started = True
            log.info("Dashboard listening on http://%s:%s", self.host, self.port)

    async def stop(self) -> None:
        async with self._lock:
            if not self._started:
                return
            try:
                if self._site:
                    await self._site.stop()
                if self._runner:
                    await self._runner.cleanup()
            finally:
                self._site = None
                self._runner = None
                self._started = False
                log.info("Dashboard stopped")

    # ---------- Sessions ----------

    def _is_oauth_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def _cleanup_auth_state(self) -> None:
        now = time.time()
        for key in [k for k, row in self._oauth_states.items() if now - row["created_at"] > self._oauth_state_ttl_seconds]:
            self._oauth_states.pop(key, None)
        for sid in [s for s, row in self._auth_sessions.items() if row["expires_at"] <= now]:
            self._auth_sessions.pop(sid, None)

    def create_session(self, user: Dict[str, Any], guilds: List[Dict[str, Any]]) -> str:
        self._cleanup_auth_state()
        session_id = secrets.token_urlsafe(32)
        now = time.time()
        self._auth_sessions[session_id] = {
            "user_id": str(user.get("id") or ""),
            "username": str(user.get("username") or ""),
            "guilds": guilds,
            "created_at": now,
            "expires_at": now + self._session_ttl_seconds,
        }
        return session_id

    def _get_session(self, request: web.Request) -> Optional[Dict[str, Any]]:
        self._cleanup_auth_state()
        session_id = (request.cookies.get(SESSION_COOKIE) or "").strip()
        if not session_id:
            return None
        return self._auth_sessions.get(session_id)

    @staticmethod
    def _is_secure_request(request: web.Request) -> bool:
        forwarded_proto = (request.headers.get("X-Forwarded-Proto") or "").split(",")[0].strip().lower()
        if forwarded_proto:
            return forwarded_proto == "https"
        return bool(request.secure)

    def _set_session_cookie(self, response: web.StreamResponse, request: web.Request, session_id: str) -> None:
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            max_age=self._session_ttl_seconds,
            httponly=True,
            secure=self._is_secure_request(request),
            samesite="Lax",
            path="/",
        )

    # ---------- OAuth ----------

    async def _exchange_code(self, code: str) -> Optional[Dict[str, Any]]:
        """Code -> access token -> (user, guilds). None on any upstream failure."""
        timeout = aiohttp.ClientTimeout(total=20)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    DISCORD_OAUTH_TOKEN_URL,
                    data={
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": self._redirect_uri,
                    },
                ) as token_resp:
                    if token_resp.status != 200:
                        log.warning("Discord OAuth exchange failed with status %s", token_resp.status)
                        return None
                    token_data = await token_resp.json()

                access_token = str(token_data.get("access_token") or "").strip()
                if not access_token:
                    return None
                headers = {"Authorization": f"Bearer {access_token}"}

                async with session.get(f"{DISCORD_API}/users/@me", headers=headers) as user_resp:
                    if user_resp.status != 200:
                        log.warning("Discord OAuth user lookup failed with status %s", user_resp.status)
                        return None
                    user = await user_resp.json()

                async with session.get(f"{DISCORD_API}/users/@me/guilds", headers=headers) as guilds_resp:
                    if guilds_resp.status != 200:
                        log.warning("Discord OAuth guild lookup failed with status %s", guilds_resp.status)
                        return None
                    guilds = await guilds_resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            log.warning("Discord OAuth request failed: %s", exc)
            return None

        if not isinstance(user, dict) or not isinstance(guilds, list):
            return None
        return {"user": user, "guilds": guilds}

    async def _handle_login(self, request: web.Request) -> web.StreamResponse:
        if not self._is_oauth_configured():
            return web.Response(
                text="Discord OAuth not configured. Set DISCORD_CLIENT_ID and DISCORD_CLIENT_SECRET.",
                status=503,
            )
        self._cleanup_auth_state()
        state = secrets.token_urlsafe(24)
        self._oauth_states[state] = {"created_at": time.time()}
        query = urlencode(
            {
                "client_id": self._client_id,
                "redirect_uri": self._redirect_uri,
                "response_type": "code",
                "scope": DISCORD_OAUTH_SCOPES,
                "state": state,
            }
        )
        raise web.HTTPFound(f"{DISCORD_OAUTH_AUTHORIZE_URL}?{query}")

    async def _handle_callback(self, request: web.Request) -> web.StreamResponse:
        if not self._is_oauth_configured():
            return web.Response(text="OAuth not configured.", status=503)
        self._cleanup_auth_state()

        if (request.query.get("error") or "").strip():
            raise web.HTTPFound("/")

        state = (request.query.get("state") or "").strip()
        code = (request.query.get("code") or "").strip()
        if not state or not code:
            return web.Response(text="Missing OAuth state/code.", status=400)
        if self._oauth_states.pop(state, None) is None:
            return web.Response(text="OAuth state invalid or expired.", status=400)

        result = await self._exchange_code(code)
        if result is None:
            return web.Response(text="OAuth exchange failed. Please try again.", status=401)

        session_id = self.create_session(result["user"], result["guilds"])
        log.info("Dashboard login: %s", result["user"].get("username"))
        response = web.HTTPFound("/admin")
        self._set_session_cookie(response, request, session_id)
        raise response

    async def _handle_logout(self, request: web.Request) -> web.StreamResponse:
        session_id = (request.cookies.get(SESSION_COOKIE) or "").strip()
        if session_id:
            self._auth_sessions.pop(session_id, None)
        response = web.HTTPFound("/")
        response.del_cookie(SESSION_COOKIE, path="/")
        raise response

    # ---------- Pages ----------

    @staticmethod
    def _page(title: str, body: str, *, body_style: str = "") -> web.Response:
        style_attr = f" style='{body_style}'" if body_style else ""
        text = (
            "<!DOCTYPE html><html lang='es'><head><meta charset='utf-8'>"
            "<meta name='viewport' content='width=device-width,initial-scale=1'>"
            f"<title>{_esc(title)}</title>{STYLE}</head><body{style_attr}>{body}</body></html>"
        )
        return web.Response(text=text, content_type="text/html")

    def _invite_link(self) -> Optional[str]:
        if not self._client_id:
            return None
        return f"{DISCORD_OAUTH_AUTHORIZE_URL}?{urlencode({'client_id': self._client_id, 'permissions': 8, 'scope': 'bot'})}"

    async def _handle_index(self, request: web.Request) -> web.Response:
        log.debug("Landing page visit")
        invite = self._invite_link()
        invite_html = (
            f"<a href='{_esc(invite)}' class='btn-quantum'>INICIAR SISTEMAS (INVITAR)</a>" if invite else ""
        )
        prefix = _esc(self.config.command_prefix)
        body = (
            "<h1 class='hero-title'>CITIZEN CLIPS</h1>"
            "<div class='rewards-text'>🏆 SÉ EL TOP 1 Y GANA NAVES + REGALOS SORPRESA 🎁</div>"
            "<p style='color:#8899aa;max-width:600px;text-align:center;margin-top:20px;font-size:1.1rem;'>"
            "Demuestra tus habilidades en el Verso. Sube tus mejores momentos. La comunidad vota.</p>"
            f"{invite_html}"
            "<a href='/admin' class='btn-officer'>🔒 ACCESO DE MANDO: SOLO OFICIALES</a>"
            "<div class='features-grid'>"
            f"<div class='feature-card'><h3>🚀 SUBE TUS CLIPS</h3><p>Usa <code>{prefix}subir</code> en el canal designado. "
            "Tienes 2 intentos para impresionar.</p></div>"
            "<div class='feature-card'><h3>🥇 RANKING SEMANAL</h3><p>Los votos de la comunidad deciden quién merece las naves.</p></div>"
            f"<div class='feature-card'><h3>📡 CANAL DEDICADO</h3><p>Usa <code>{prefix}setcanal</code> para configurar "
            "dónde escucha el bot.</p></div>"
            "</div>"
        )
        return self._page(
            "Star Citizen Clips",
            body,
            body_style="display:flex;flex-direction:column;align-items:center;justify-content:center;padding:60px 20px;",
        )

    def _services(self) -> Optional["ContestServices"]:
        return getattr(self.bot, "contest", None)

    def _bot_guild_ids(self) -> List[int]:
        return [g.id for g in getattr(self.bot, "guilds", []) or []]

    async def _handle_admin(self, request: web.Request) -> web.Response:
        session = self._get_session(request)
        if session is None:
            raise web.HTTPFound("/login")
        log.info("Dashboard admin access: %s", session["username"])

        cycle_id = current_cycle_key()
        guilds = admin_guilds(session["guilds"], self._bot_guild_ids())
        services = self._services()
        if not guilds or services is None:
            return self._page(
                "Sin acceso",
                "<h1>🚫 SIN ACCESO</h1><p>No se detectan servidores activos.</p>"
                "<a href='/' class='btn-quantum'>REGRESAR</a>",
                body_style="padding:50px;text-align:center;",
            )

        parts = [
            "<div class='container'>"
            "<div style='display:flex;justify-content:space-between;align-items:center;margin-bottom:30px;'>"
            "<h1 style='margin:0;font-size:2rem;color:white;'>COMMAND CENTER // "
            f"<span style='color:var(--sc-blue)'>{_esc(session['username'].upper())}</span></h1>"
            "<a href='/logout' style='color:var(--sc-alert);text-decoration:none;border:1px solid var(--sc-alert);"
            "padding:5px 15px;'>LOGOUT</a></div>"
            "<p style='color:#556677;border-bottom:1px solid #334455;padding-bottom:10px;'>"
            f"CYCLE: <strong style='color:var(--sc-gold)'>{_esc(cycle_id)}</strong></p>"
        ]
        for guild in guilds:
            snapshot = await guild_snapshot(services, int(guild["id"]), cycle_id)
            parts.append(self._render_guild(guild.get("name") or guild["id"], snapshot))
        parts.append("</div>")
        return self._page("Command Center", "".join(parts))

    @staticmethod
    def _render_guild(name: str, snapshot: Dict[str, Any]) -> str:
        closed = snapshot["closed"]
        badge = "<span class='status-badge closed'>🔒 LOCKED</span>" if closed else "<span class='status-badge open'>🟢 ACTIVE</span>"
        if snapshot["leaderboard"]:
            score_rows = "".join(
                f"<tr><td>{_esc(row['name'])}</td><td style='color:var(--sc-gold);font-size:1.2em;'>{int(row['points'])}</td></tr>"
                for row in snapshot["leaderboard"]
            )
        else:
            score_rows = "<tr><td colspan='2'>NO DATA</td></tr>"
        if snapshot["submissions"]:
            clip_rows = "".join(
                f"<tr><td style='color:#8899aa;'>{_esc(row['name'])}</td>"
                f"<td style='font-weight:bold;color:{STATE_COLORS.get(row['state'], '#ccddee')}'>{_esc(row['state'].upper())}</td>"
                f"<td><a href='{_esc(row['url'])}' target='_blank' rel='noopener' style='color:white;'>VIEW ↗</a></td></tr>"
                for row in snapshot["submissions"]
            )
        else:
            clip_rows = "<tr><td colspan='3'>NO SIGNALS</td></tr>"
        return (
            "<div class='server-panel'>"
            "<div style='display:flex;justify-content:space-between;align-items:center;'>"
            f"<h2 style='margin:0;font-size:1.5rem;color:white;'>{_esc(name)}</h2>{badge}</div>"
            "<h3 style='color:var(--sc-gold);margin-top:20px;'>🏆 ACE PILOTS</h3>"
            f"<table><thead><tr><th>PILOT</th><th>SCORE</th></tr></thead><tbody>{score_rows}</tbody></table>"
            "<h3 style='color:var(--sc-blue);margin-top:30px;'>📹 TRANSMISSIONS</h3>"
            f"<table><thead><tr><th>PILOT</th><th>STATUS</th><th>LINK</th></tr></thead><tbody>{clip_rows}</tbody></table>"
            "</div>"
        )

    async def _handle_health(self, request: web.Request) -> web.Response:
        services = self._services()
        payload = {
            "ok": services is not None and services.db.is_open,
            "contest_loaded": services is not None,
            "guilds": len(self._bot_guild_ids()),
        }
        return web.json_response(payload)


__all__ = ["DashboardServer", "admin_guilds", "guild_snapshot", "resolve_names"]
