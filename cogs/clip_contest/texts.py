# Chat copy (Spanish, Star Citizen flavour). Keep markdown intact.
from __future__ import annotations

from .outcomes import Reason

ACCESS_DENIED_CHANNEL = "⛔ **ACCESO DENEGADO:** Solo oficiales (Admins) pueden configurar el canal."
ACCESS_DENIED = "⛔ **ACCESO DENEGADO:** Solo oficiales (Admins) pueden usar este comando."
CHANNEL_SET = "✅ **CANAL CONFIGURADO.** A partir de ahora, solo procesaré clips y comandos en este canal: <#{channel_id}>."

HELP_PILOTS = (
    "**🚀 PROTOCOLO DE COMANDOS**\n\n"
    "👤 **Pilotos:**\n"
    "`{p}subir` : Sube tu clip.\n"
    "`{p}puntos` : Ver tu reputación.\n"
)
HELP_OFFICERS = (
    "\n👮‍♂️ **Admins:**\n"
    "`{p}videos` : Iniciar votación.\n"
    "`{p}finalizarvotacion` : Cerrar semana.\n"
    "`{p}setcanal` : Fijar este chat como canal del bot."
)

SUBMISSION_RECEIVED = "📹 **TRANSMISIÓN RECIBIDA** (Intento {attempt}/{max_attempts}). Procesando..."
POINTS = "💳 Créditos: **{points}** Puntos."

MODERATION_DONE = "{emoji} **{label}** por CMD <@{actor_id}>"
MODERATION_LABELS = {"approved": "APROBADO", "rejected": "RECHAZADO"}

VOTING_HEADER = "**🗳️ INICIANDO PROTOCOLO DE VOTACIÓN**"
VOTING_ENTRY = "🎬 CLIP DE <@{user_id}>\n{url}"
WINNER = "🏆 **TOP 1 DEL VERSO:** <@{user_id}> con {votes} votos."

REPLIES = {
    Reason.MISSING_URL: "❌ **ERROR:** Falta video o enlace.",
    Reason.INVALID_URL: "❌ **ERROR:** El enlace no es válido. Usa un enlace http(s) o adjunta el video.",
    Reason.SECTOR_CLOSED: "🔒 **SECTOR CERRADO:** Intenta en el próximo ciclo.",
    Reason.ACTIVE_SUBMISSION_EXISTS: "⛔ **ALERTA:** Ya tienes una transmisión activa.",
    Reason.ATTEMPTS_EXHAUSTED: "⛔ **ALERTA:** Intentos agotados.",
    Reason.NO_APPROVED_SUBMISSIONS: "Sin transmisiones aprobadas.",
    Reason.NO_VOTES: "Nadie votó.",
    Reason.ALREADY_FINALIZED: "🔒 **CICLO YA CERRADO:** El ganador de esta semana ya fue anunciado.",
    Reason.UNAUTHORIZED: ACCESS_DENIED,
}


def reply_for(reason: Reason) -> str | None:
    return REPLIES.get(reason)
