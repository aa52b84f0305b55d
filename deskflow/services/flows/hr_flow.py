"""HR requests to add (alta) or remove (baja) an employee from external platforms."""

import re

from deskflow.logging_config import get_logger
from deskflow.services.errors import ValidationError
from deskflow.services.slot_validators import choice, min_length, normalize_text, render_menu
from deskflow.services.state_machine import StepContext, StepSpec, WorkflowSpec

logger = get_logger("hr_flow")

HR_ROLES = frozenset({"rh", "admin", "super_admin"})

REQUEST_TYPES = {"1": "alta", "2": "baja"}
REQUEST_TYPE_ALIASES = {"alta": "alta", "baja": "baja", "add": "alta", "remove": "baja"}

EMPLOYEE_ROLES = {
    "1": "cajero",
    "2": "lider_piso",
    "3": "sublider_piso",
    "4": "cocina",
    "5": "gerente",
    "6": "supervisor",
    "7": "otro",
}
EMPLOYEE_ROLE_ALIASES = {
    "cajero": "cajero",
    "lider": "lider_piso",
    "lider de piso": "lider_piso",
    "sublider": "sublider_piso",
    "sub-lider": "sublider_piso",
    "sub-lider de piso": "sublider_piso",
    "cocina": "cocina",
    "gerente": "gerente",
    "supervisor": "supervisor",
    "otro": "otro",
}
ROLE_NAMES = {
    "cajero": "Cajero",
    "lider_piso": "Líder de Piso",
    "sublider_piso": "Sub-líder de Piso",
    "cocina": "Cocina",
    "gerente": "Gerente",
    "supervisor": "Supervisor",
    "otro": "Otro",
}
NO_NOTES = {"sin notas", "ninguna", "no", "n/a", "-"}


def _validate_employee_role(text: str, ctx=None) -> str:
    normalized = normalize_text(text)
    if normalized.rstrip(".)") in EMPLOYEE_ROLES:
        return EMPLOYEE_ROLES[normalized.rstrip(".)")]
    # Exact alias lookup so "sublider" does not resolve to "lider".
    if normalized in EMPLOYEE_ROLE_ALIASES:
        return EMPLOYEE_ROLE_ALIASES[normalized]
    raise ValidationError("Tipo de usuario no válido. Responde con un número (1-7) o el nombre del tipo.")


def _validate_notes(text: str, ctx=None):
    value = (text or "").strip()
    if not value or normalize_text(value) in NO_NOTES:
        return None
    return value


def _prefill(text: str, ctx: StepContext) -> dict:
    normalized = normalize_text(text)
    for word in ("alta", "baja"):
        if re.search(rf"\b{word}\b", normalized):
            return {"request_type": word}
    return {}


def _action_label(ctx: StepContext) -> str:
    return "dar de alta" if ctx.slots.get("request_type") == "alta" else "dar de baja"


def _commit(ctx: StepContext) -> str:
    slots = ctx.slots
    record = ctx.services.store.create(
        "hr",
        {
            "request_type": slots["request_type"],
            "entity_type": "usuario",
            "entity_name": slots["employee_name"],
            "user_role": slots["employee_role"],
            "platform": slots["platform"],
            "notes": slots.get("notes"),
            "status": "pending",
            "requested_by": ctx.sender,
        },
    )
    logger.info(
        "HR request created",
        extra={"context": {"request_id": record.get("id"), "type": slots["request_type"]}},
    )
    emoji = "➕" if slots["request_type"] == "alta" else "➖"
    reply = (
        f"{emoji} *Solicitud creada*\n\n"
        f"• Tipo: {slots['request_type'].upper()}\n"
        f"• Empleado: {slots['employee_name']}\n"
        f"• Rol: {ROLE_NAMES[slots['employee_role']]}\n"
        f"• Plataforma: {slots['platform']}"
    )
    if slots.get("notes"):
        reply += f"\n• Notas: {slots['notes']}"
    return reply + "\n\nEl equipo de IT dará seguimiento."


WORKFLOW = WorkflowSpec(
    name="hr",
    domain="hr",
    command="rh",
    triggers=(re.compile(r"\balta\b"), re.compile(r"\bbaja\b")),
    allowed_roles=HR_ROLES,
    intro="👥 *Solicitud de Recursos Humanos*",
    prefill=_prefill,
    commit=_commit,
    steps=[
        StepSpec(
            slot="request_type",
            label="Tipo",
            prompt="¿Qué tipo de solicitud es?\n" + render_menu(REQUEST_TYPES),
            validator=choice(REQUEST_TYPES, REQUEST_TYPE_ALIASES, "Responde 1 (alta) o 2 (baja)."),
        ),
        StepSpec(
            slot="employee_name",
            label="Empleado",
            prompt=lambda ctx: f"👤 ¿Nombre completo del empleado a {_action_label(ctx)}?",
            validator=min_length(3, "El nombre"),
        ),
        StepSpec(
            slot="employee_role",
            label="Rol",
            prompt="🏷️ Tipo de usuario:\n" + render_menu({k: ROLE_NAMES[v] for k, v in EMPLOYEE_ROLES.items()}),
            validator=_validate_employee_role,
        ),
        StepSpec(
            slot="platform",
            label="Plataforma",
            prompt=lambda ctx: f"💻 ¿En qué plataforma se debe {_action_label(ctx)} al usuario?",
            validator=min_length(2, "La plataforma"),
        ),
        StepSpec(
            slot="notes",
            label="Notas",
            prompt="📝 ¿Notas adicionales? Escribe las notas o 'sin notas'.",
            validator=_validate_notes,
        ),
    ],
)
