"""Project / task progress and status updates."""

import re

from deskflow.logging_config import get_logger
from deskflow.services.errors import ValidationError
from deskflow.services.field_extractor import extract_fields
from deskflow.services.interfaces import FlowServices
from deskflow.services.slot_validators import choice, normalize_text
from deskflow.services.state_machine import HookResult, StepContext, StepSpec, WorkflowSpec

logger = get_logger("project_flow")

KINDS = {"1": "project", "2": "task"}
KIND_ALIASES = {"proyecto": "project", "project": "project", "tarea": "task", "task": "task"}

PROJECT_STATUSES = {
    "planned": "planned",
    "planificado": "planned",
    "in_progress": "in_progress",
    "en progreso": "in_progress",
    "progreso": "in_progress",
    "paused": "paused",
    "pausado": "paused",
    "done": "done",
    "completado": "done",
    "finalizado": "done",
}
TASK_STATUSES = {
    "todo": "todo",
    "pendiente": "todo",
    "doing": "doing",
    "en progreso": "doing",
    "progreso": "doing",
    "blocked": "blocked",
    "bloqueada": "blocked",
    "done": "done",
    "completada": "done",
    "finalizada": "done",
}

_NAME_AFTER_KIND_RE = re.compile(r"\b(?:proyecto|project|tarea|task)\s+(.+?)(?:\s+\d{1,3}\s*%.*)?$", re.IGNORECASE)


def _statuses(kind: str) -> dict:
    return PROJECT_STATUSES if kind == "project" else TASK_STATUSES


def _validate_target(text: str, ctx: StepContext) -> str:
    services: FlowServices = ctx.services
    name = (text or "").strip()
    if len(name) < 2:
        raise ValidationError("Escribe el nombre (o parte del nombre).")
    kind = ctx.slots["kind"]
    matches = services.store.find(kind, {"name_contains": name})
    if not matches:
        raise ValidationError(f"No encontré ningún {'proyecto' if kind == 'project' else 'tarea'} con '{name}'.")
    exact = [m for m in matches if m["name"].lower() == name.lower()]
    if len(exact) == 1:
        matches = exact
    if len(matches) > 1:
        options = "\n".join(f"• {m['name']} ({m['status']})" for m in matches[:10])
        raise ValidationError(f"Encontré varios resultados, sé más específico:\n{options}")
    return matches[0]["name"]


def _after_target(ctx: StepContext, name: str):
    kind = ctx.slots["kind"]
    record = ctx.services.store.find(kind, {"name": name})[0]
    return HookResult(patch={"target_id": record["id"], "current_progress": record.get("progress", 0)})


def _validate_update(text: str, ctx: StepContext) -> str:
    normalized = normalize_text(text)
    match = re.fullmatch(r"(\d{1,3})\s*%?", normalized)
    if match:
        progress = int(match.group(1))
        if progress > 100:
            raise ValidationError("El progreso debe estar entre 0 y 100.")
        return f"{progress}%"
    status = _statuses(ctx.slots["kind"]).get(normalized)
    if status is None:
        valid = ", ".join(sorted(set(_statuses(ctx.slots["kind"]).values())))
        raise ValidationError(f"Escribe un número del 0 al 100 o un status válido ({valid}).")
    return status


def _prefill(text: str, ctx: StepContext) -> dict:
    candidates = {}
    normalized = normalize_text(text)
    for alias, kind in KIND_ALIASES.items():
        if re.search(rf"\b{alias}\b", normalized):
            candidates["kind"] = alias
            break
    name = _NAME_AFTER_KIND_RE.search(text.strip())
    if name:
        candidates["target"] = name.group(1).strip()
    fields = extract_fields(text, ctx.today)
    if "progress" in fields:
        candidates["update"] = str(fields["progress"])
    return candidates


def progress_bar(progress: int) -> str:
    filled = round(progress / 10)
    return "█" * filled + "░" * (10 - filled)


def _commit(ctx: StepContext) -> str:
    services: FlowServices = ctx.services
    slots = ctx.slots
    kind = slots["kind"]
    update = slots["update"]

    patch: dict = {}
    if update.endswith("%"):
        patch["progress"] = int(update[:-1])
    else:
        patch["status"] = update
        if kind == "task" and update == "done":
            patch["progress"] = 100

    record = services.store.update(kind, slots["target_id"], patch)
    logger.info("Progress updated", extra={"context": {"kind": kind, "id": slots["target_id"], **patch}})

    label = "Proyecto" if kind == "project" else "Tarea"
    reply = f"✅ *{label} actualizado:* {slots['target']}\n"
    if "progress" in patch:
        reply += f"📊 Progreso: {progress_bar(patch['progress'])} {patch['progress']}%\n"
    if "status" in patch:
        reply += f"📈 Status: {patch['status']}\n"
    if record and record.get("project_progress") is not None:
        reply += f"📁 Progreso del proyecto: {record['project_progress']}%\n"
    return reply.rstrip()


WORKFLOW = WorkflowSpec(
    name="project",
    domain="project",
    command="proyectos",
    triggers=(
        re.compile(r"^proyectos$"),
        re.compile(r"\b(?:actualizar|update|progreso|avance|estado)\b.*\b(?:proyecto|tarea)\b"),
        re.compile(r"\b(?:proyecto|tarea)\b.*\d{1,3}\s*%"),
    ),
    intro="📁 *Actualización de proyectos*",
    prefill=_prefill,
    commit=_commit,
    steps=[
        StepSpec(
            slot="kind",
            label="Tipo",
            prompt="¿Qué deseas actualizar?\n1. Proyecto\n2. Tarea",
            validator=choice(KINDS, KIND_ALIASES, "Responde 1 (proyecto) o 2 (tarea)."),
        ),
        StepSpec(
            slot="target",
            label="Nombre",
            prompt=lambda ctx: f"🔎 ¿Nombre del {'proyecto' if ctx.slots.get('kind') == 'project' else 'tarea'}?",
            validator=_validate_target,
            after=_after_target,
        ),
        StepSpec(
            slot="update",
            label="Actualización",
            prompt=lambda ctx: (
                f"📊 Progreso actual: {ctx.slots.get('current_progress', 0)}%.\n"
                "Escribe el nuevo porcentaje (0-100) o un status."
            ),
            validator=_validate_update,
        ),
    ],
)
