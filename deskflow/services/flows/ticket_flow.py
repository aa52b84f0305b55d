"""Support-ticket intake: branch -> category -> title -> description."""

import re
from datetime import datetime, timezone
from typing import Optional

from deskflow.logging_config import get_logger
from deskflow.services.field_extractor import extract_fields
from deskflow.services.interfaces import FlowServices
from deskflow.services.slot_validators import (
    BRANCHES,
    CATEGORIES,
    min_length,
    normalize_text,
    render_menu,
    validate_branch,
    validate_category,
)
from deskflow.services.state_machine import StepContext, StepSpec, WorkflowSpec

logger = get_logger("ticket_flow")

PRIORITY_KEYWORDS = (
    ("urgent", ("urgente", "caido", "critico", "emergencia", "no funciona", "caida")),
    ("high", ("importante", "rapido", "necesita", "problema", "necesito")),
    ("low", ("consultar", "duda", "pregunta", "mejorar", "sugerencia")),
)
DEFAULT_PRIORITY = "medium"

TICKET_NUMBER_RE = re.compile(r"\bTKT-\d{6}\b", re.IGNORECASE)
SUBCOMMANDS = {
    "list": "list", "lista": "list", "mis": "list",
    "view": "view", "ver": "view", "detalle": "view",
    "comment": "comment", "comentario": "comment", "comentar": "comment",
    "status": "status", "estado": "status",
}


def derive_priority(*texts: str) -> str:
    """First keyword set that matches wins: urgent, then high, then low."""
    haystack = normalize_text(" ".join(t for t in texts if t))
    for priority, keywords in PRIORITY_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return priority
    return DEFAULT_PRIORITY


def _prefill(text: str, ctx: StepContext) -> dict:
    fields = extract_fields(text, ctx.today)
    return {key: fields[key] for key in ("branch", "title") if key in fields}


def _commit(ctx: StepContext) -> str:
    services: FlowServices = ctx.services
    slots = ctx.slots
    priority = derive_priority(slots["title"], slots["description"])
    record = services.store.create(
        "ticket",
        {
            "sender": ctx.sender,
            "branch": slots["branch"],
            "category": slots["category"],
            "title": slots["title"],
            "description": slots["description"],
            "priority": priority,
            "status": "open",
        },
    )
    logger.info(
        "Ticket created",
        extra={"context": {"ticket_number": record.get("ticket_number"), "priority": priority}},
    )

    reply = (
        "✅ *Ticket creado*\n\n"
        f"🎫 {record.get('ticket_number', '')}\n"
        f"📍 Sucursal: {slots['branch']}\n"
        f"🏷️ Categoría: {slots['category']}\n"
        f"⚡ Prioridad: {priority}\n"
        f"📝 {slots['title']}"
    )
    hours = services.hours
    if hours is not None and not hours.is_open_now():
        reply += (
            "\n\n🕐 Estamos fuera de horario de atención. "
            f"Tu ticket será atendido a partir del {_describe_next_open(hours)}."
        )
    return reply


def _describe_next_open(hours) -> str:
    describe = getattr(hours, "describe_next_open", None)
    if describe is not None:
        return describe()
    return hours.next_open_time().strftime("%d/%m %H:%M")


WORKFLOW = WorkflowSpec(
    name="ticket",
    domain="ticket",
    command="ticket",
    triggers=(re.compile(r"^!?ticket\b"),),
    intro="🔧 *Creación de Ticket*",
    prefill=_prefill,
    commit=_commit,
    steps=[
        StepSpec(
            slot="branch",
            label="Sucursal",
            prompt="📍 Selecciona la sucursal donde ocurre el problema:\n" + render_menu(BRANCHES),
            validator=validate_branch,
        ),
        StepSpec(
            slot="category",
            label="Categoría",
            prompt="🏷️ Selecciona la categoría:\n" + render_menu(CATEGORIES),
            validator=validate_category,
        ),
        StepSpec(
            slot="title",
            label="Título",
            prompt="📝 Escribe un título breve del problema (mínimo 5 caracteres).",
            validator=min_length(5, "El título"),
        ),
        StepSpec(
            slot="description",
            label="Descripción",
            prompt="🗒️ Describe el problema con detalle.",
            validator=min_length(1, "La descripción"),
        ),
    ],
)


def parse_subcommand(text: str) -> Optional[tuple[str, list[str]]]:
    """``!ticket list`` style one-shot commands; None means start intake."""
    parts = text.strip().split()
    if len(parts) < 2 or normalize_text(parts[0]).lstrip("!") != "ticket":
        return None
    action = SUBCOMMANDS.get(normalize_text(parts[1]))
    if action is None:
        return None
    return action, parts[2:]


def run_subcommand(action: str, args: list[str], sender: str, services: FlowServices) -> str:
    store = services.store
    if action == "list":
        tickets = store.find("ticket", {"sender": sender})
        if not tickets:
            return "📭 No tienes tickets registrados."
        lines = [f"• {t['ticket_number']} [{t['status']}] {t['title']}" for t in tickets[-10:]]
        return "🎫 *Tus tickets:*\n" + "\n".join(lines)

    number = args[0].upper() if args and TICKET_NUMBER_RE.match(args[0]) else None
    if number is None:
        return "❌ Indica el número de ticket, por ejemplo TKT-000001."
    found = store.find("ticket", {"ticket_number": number})
    if not found:
        return f"❌ No encontré el ticket {number}."
    ticket = found[0]

    if action == "status":
        return f"🎫 {number}: *{ticket['status']}* (prioridad {ticket['priority']})"
    if action == "view":
        comments = ticket.get("comments") or []
        text = (
            f"🎫 *{number}*\n"
            f"📍 {ticket['branch']} · 🏷️ {ticket['category']} · ⚡ {ticket['priority']}\n"
            f"Estado: {ticket['status']}\n\n"
            f"*{ticket['title']}*\n{ticket['description']}"
        )
        if comments:
            text += "\n\n💬 " + "\n💬 ".join(c["text"] for c in comments)
        return text

    body = " ".join(args[1:]).strip()
    if not body:
        return "❌ Escribe el comentario después del número de ticket."
    comments = list(ticket.get("comments") or [])
    comments.append({"author": sender, "text": body, "at": datetime.now(timezone.utc).isoformat()})
    store.update("ticket", ticket["id"], {"comments": comments})
    return f"💬 Comentario agregado a {number}."
