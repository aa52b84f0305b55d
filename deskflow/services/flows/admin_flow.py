"""Administrative actions: message, redirect, pause or resume a contact."""

import re
from collections import Counter
from typing import Optional

from deskflow.logging_config import get_logger
from deskflow.services.errors import ProviderError, ValidationError
from deskflow.services.interfaces import FlowServices
from deskflow.services.slot_validators import choice, min_length, normalize_text, render_menu
from deskflow.services.state_machine import StepContext, StepSpec, WorkflowSpec

logger = get_logger("admin_flow")

ADMIN_ROLES = frozenset({"super_admin", "levi"})

ACTIONS = {"1": "send", "2": "redirect", "3": "pause", "4": "resume"}
ACTION_ALIASES = {
    "send": "send",
    "enviar": "send",
    "mensaje": "send",
    "redirect": "redirect",
    "redirigir": "redirect",
    "pause": "pause",
    "pausar": "pause",
    "resume": "resume",
    "reanudar": "resume",
    "activar": "resume",
}
ACTION_LABELS = {"send": "Enviar mensaje", "redirect": "Redirigir mensaje", "pause": "Pausar bot", "resume": "Reactivar bot"}
MESSAGE_ACTIONS = {"send", "redirect"}


def _validate_target_phone(text: str, ctx=None) -> str:
    digits = re.sub(r"\D", "", text or "")
    if len(digits) < 10:
        raise ValidationError("Número inválido. Envía el teléfono con al menos 10 dígitos.")
    return digits


def _prefill(text: str, ctx: StepContext) -> dict:
    normalized = normalize_text(text)
    for alias, action in ACTION_ALIASES.items():
        if re.search(rf"\b{alias}\b", normalized):
            return {"action": action}
    return {}


def _commit(ctx: StepContext) -> str:
    services: FlowServices = ctx.services
    action = ctx.slots["action"]
    target = ctx.slots["target_phone"]

    if action in MESSAGE_ACTIONS:
        body = ctx.slots["message"]
        if action == "redirect":
            body = f"📨 Mensaje de {ctx.sender}:\n\n{body}"
        if not services.transport.send(target, body):
            raise ProviderError(f"Could not deliver message to {target}")
        logger.info("Admin message sent", extra={"context": {"target": target, "action": action}})
        return f"✅ Mensaje enviado a {target}."

    paused = action == "pause"
    services.directory.set_paused(target, paused)
    notice = (
        "⏸️ El asistente ha sido pausado para tu número por un administrador."
        if paused
        else "▶️ El asistente ha sido reactivado para tu número."
    )
    services.transport.send(target, notice)
    logger.info("Contact pause toggled", extra={"context": {"target": target, "paused": paused}})
    return f"✅ Bot {'pausado' if paused else 'reactivado'} para {target}."


WORKFLOW = WorkflowSpec(
    name="admin",
    domain="admin",
    command="admin",
    allowed_roles=ADMIN_ROLES,
    intro="🛠️ *Panel de administración*",
    prefill=_prefill,
    commit=_commit,
    steps=[
        StepSpec(
            slot="action",
            label="Acción",
            prompt="¿Qué deseas hacer?\n" + render_menu({k: ACTION_LABELS[v] for k, v in ACTIONS.items()}),
            validator=choice(ACTIONS, ACTION_ALIASES, "Acción inválida. Responde con un número del 1 al 4."),
        ),
        StepSpec(
            slot="target_phone",
            label="Destino",
            prompt="📱 ¿A qué número? (mínimo 10 dígitos)",
            validator=_validate_target_phone,
        ),
        StepSpec(
            slot="message",
            label="Mensaje",
            prompt="✉️ Escribe el mensaje a enviar.",
            validator=min_length(1, "El mensaje"),
            skip_if=lambda ctx: ctx.slots.get("action") not in MESSAGE_ACTIONS,
        ),
    ],
)


def parse_subcommand(text: str) -> Optional[str]:
    normalized = normalize_text(text)
    if not normalized.startswith("!admin"):
        return None
    if re.search(r"\busuarios\b", normalized):
        return "users"
    if re.search(r"\b(?:stats|estadisticas)\b", normalized):
        return "stats"
    return None


def run_subcommand(action: str, services: FlowServices) -> str:
    entries = services.directory.list_entries()
    if action == "users":
        if not entries:
            return "📋 No hay usuarios registrados en el sistema."
        lines = [
            f"{index}. {entry.known_name or 'Sin nombre'} ({entry.phone}) {entry.role or 'user'}"
            + (" ⏸️" if entry.bot_paused else "")
            for index, entry in enumerate(entries[:50], start=1)
        ]
        return "📋 *Usuarios:*\n" + "\n".join(lines)

    paused = sum(1 for entry in entries if entry.bot_paused)
    by_role = Counter(entry.role or "user" for entry in entries)
    text = (
        "📊 *Estadísticas del Sistema*\n\n"
        f"• Total: {len(entries)}\n"
        f"• Activos: {len(entries) - paused}\n"
        f"• Pausados: {paused}"
    )
    if by_role:
        text += "\n\n" + "\n".join(f"• {role}: {count}" for role, count in sorted(by_role.items()))
    return text
