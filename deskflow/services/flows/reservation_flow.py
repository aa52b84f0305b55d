"""Meeting-room reservation intake with strike gate and conflict suggestions."""

import re

from deskflow.logging_config import get_logger
from deskflow.services.errors import ConflictError, ValidationError
from deskflow.services.field_extractor import extract_fields
from deskflow.services.interfaces import FlowServices
from deskflow.services.slot_validators import (
    format_date,
    min_length,
    parse_iso_date,
    shift_time,
    time_to_minutes,
    validate_date,
    validate_end_time,
    validate_phone,
    validate_time,
)
from deskflow.services.state_machine import HookResult, StepContext, StepSpec, WorkflowSpec

logger = get_logger("reservation_flow")

SUGGESTION_OFFSETS_MINUTES = (30, 60)
MINUTES_PER_DAY = 24 * 60


def suggest_alternatives(start: str, end: str) -> list[tuple[str, str]]:
    """Same-duration windows shifted by +30 and +60 minutes.

    Windows that would run past midnight are left out.
    """
    suggestions = []
    for offset in SUGGESTION_OFFSETS_MINUTES:
        if time_to_minutes(end) + offset >= MINUTES_PER_DAY:
            continue
        suggestions.append((shift_time(start, offset), shift_time(end, offset)))
    return suggestions


def _validate_start(text: str, ctx: StepContext) -> str:
    start = validate_time(text, ctx)
    end = ctx.slots.get("end")
    if end and time_to_minutes(start) >= time_to_minutes(end):
        raise ValidationError(f"La hora de inicio debe ser anterior a la de fin ({end}).")
    return start


def _after_phone(ctx: StepContext, phone: str):
    services: FlowServices = ctx.services
    entry = services.directory.lookup_by_sender(phone)
    if entry is None:
        return HookResult(patch={"user_known": False})

    if entry.strike_count >= services.strike_threshold:
        logger.info(
            "Reservation blocked by strikes",
            extra={"context": {"sender": ctx.sender, "strikes": entry.strike_count}},
        )
        reasons = "\n".join(f"• {reason}" for reason in entry.strike_reasons) or "• Sin detalle"
        return HookResult(
            terminate=True,
            reply=(
                "🚫 *No puedes hacer reservaciones*\n\n"
                f"Tienes {entry.strike_count} strikes registrados:\n{reasons}\n\n"
                "Contacta a administración para revisar tu caso."
            ),
        )

    note = f"👋 Hola {entry.known_name or ''}".rstrip()
    if entry.strike_count:
        note += f" (strikes: {entry.strike_count}/{services.strike_threshold})"
    patch = {"user_known": True, "strikes": entry.strike_count}
    if entry.known_name:
        patch["name"] = entry.known_name
    return HookResult(patch=patch, note=note)


def _prefill(text: str, ctx: StepContext) -> dict:
    fields = extract_fields(text, ctx.today)
    return {key: fields[key] for key in ("date", "start", "end", "title") if key in fields}


def _commit(ctx: StepContext) -> str:
    services: FlowServices = ctx.services
    slots = ctx.slots
    user_created = not slots.get("user_known", False)
    record = services.store.create(
        "reservation",
        {
            "date": slots["date"],
            "start_time": slots["start"],
            "end_time": slots["end"],
            "title": slots["title"],
            "user_phone": slots["phone"],
            "user_name": slots.get("name"),
            "user_created": user_created,
            "status": "activo",
        },
    )
    logger.info("Reservation created", extra={"context": {"reservation_id": record.get("id")}})

    reply = (
        "✅ *Reservación confirmada*\n\n"
        f"📅 {format_date(parse_iso_date(slots['date']))} | "
        f"🕐 {slots['start']}–{slots['end']} | "
        f"📝 {slots['title']}"
    )
    if user_created:
        reply += f"\n\n👤 Registramos a {slots.get('name')} como nuevo usuario."
    strikes = slots.get("strikes") or 0
    if strikes:
        reply += f"\n\n⚠️ Tienes {strikes}/{services.strike_threshold} strikes."
    return reply


def _on_conflict(ctx: StepContext, error: ConflictError) -> str:
    if error.reason == "blocked":
        return f"🚫 {error.message}"

    slots = ctx.slots
    clash = error.record or {}
    lines = [
        "⚠️ *Ese horario ya está ocupado*",
        "",
        f"📅 {clash.get('date', slots['date'])} | "
        f"🕐 {clash.get('start_time', '?')}–{clash.get('end_time', '?')} | "
        f"📝 {clash.get('title', '')}",
        "",
        "Horarios alternativos:",
    ]
    alternatives = suggest_alternatives(slots["start"], slots["end"])
    for start, end in alternatives:
        lines.append(f"• {start}–{end}")
    if not alternatives:
        lines.append("• No quedan horarios más tarde ese día.")
    lines.append("")
    lines.append("Escribe *reservar sala* para intentarlo de nuevo.")
    return "\n".join(lines)


WORKFLOW = WorkflowSpec(
    name="reservation",
    domain="reservation",
    command="reservar",
    triggers=(
        re.compile(r"\breservar\b"),
        re.compile(r"\breserva(?:cion)?\b"),
        re.compile(r"\bsala\b"),
        re.compile(r"\bhorarios?\b"),
    ),
    intro="📅 *Reservación de sala*",
    prefill=_prefill,
    commit=_commit,
    on_conflict=_on_conflict,
    steps=[
        StepSpec(
            slot="phone",
            label="Teléfono",
            prompt="📱 ¿Cuál es tu número de teléfono?",
            validator=validate_phone,
            after=_after_phone,
        ),
        StepSpec(
            slot="name",
            label="Nombre",
            prompt="👤 No te encontré registrado. ¿Cuál es tu nombre?",
            validator=min_length(2, "El nombre"),
        ),
        StepSpec(
            slot="date",
            label="Fecha",
            prompt="📅 ¿Para qué fecha? (DD/MM/AAAA, 'hoy' o 'mañana')",
            validator=validate_date,
        ),
        StepSpec(
            slot="start",
            label="Inicio",
            prompt="🕐 ¿A qué hora inicia? (HH:MM)",
            validator=_validate_start,
        ),
        StepSpec(
            slot="end",
            label="Fin",
            prompt=lambda ctx: f"🕐 ¿A qué hora termina? (después de {ctx.slots.get('start', 'la hora de inicio')})",
            validator=validate_end_time,
        ),
        StepSpec(
            slot="title",
            label="Título",
            prompt="📝 ¿Cuál es el título de la reunión?",
            validator=min_length(3, "El título"),
        ),
    ],
)
