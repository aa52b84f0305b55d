"""Spreadsheet write and read workflows."""

import re

from deskflow.logging_config import get_logger
from deskflow.services.errors import ProviderError, ValidationError
from deskflow.services.interfaces import FlowServices, SpreadsheetProvider
from deskflow.services.state_machine import StepContext, StepSpec, WorkflowSpec

logger = get_logger("sheets_flow")

SHEETS_ROLES = frozenset({"super_admin", "admin", "levi"})
MAX_ROWS_SHOWN = 20

_RANGE_RE = re.compile(r"^(?:(?:'[^']+'|[^!\s]+)!)?[A-Za-z]{1,3}\d+(?::[A-Za-z]{1,3}\d+)?$")
_COLUMNS_RE = re.compile(r"^(?:(?:'[^']+'|[^!\s]+)!)?[A-Za-z]{1,3}:[A-Za-z]{1,3}$")


def validate_range(text: str, ctx=None) -> str:
    value = (text or "").strip()
    if not (_RANGE_RE.match(value) or _COLUMNS_RE.match(value)):
        raise ValidationError("Rango inválido. Usa el formato Hoja1!A1, A1:C5 o A:C para agregar una fila.")
    sheet, _, cells = value.rpartition("!")
    return f"{sheet}!{cells.upper()}" if sheet else cells.upper()


def parse_values(text: str, ctx=None) -> list[str]:
    raw = (text or "").strip()
    if not raw:
        raise ValidationError("Escribe el valor a guardar.")
    if "," in raw:
        return [part.strip() for part in raw.split(",")]
    return [raw]


def _provider(ctx: StepContext) -> SpreadsheetProvider:
    services: FlowServices = ctx.services
    if services.sheets is None:
        raise ProviderError("Spreadsheet provider is not configured")
    return services.sheets


def _commit_write(ctx: StepContext) -> str:
    cell_range = ctx.slots["range"]
    values = ctx.slots["values"]
    provider = _provider(ctx)
    if _COLUMNS_RE.match(cell_range):
        updated = provider.append_row(cell_range, values)
        logger.info("Sheet row appended", extra={"context": {"range": cell_range, "cells": updated}})
        return f"✅ Fila agregada al final de {cell_range} ({updated} celdas)."

    updated = provider.write_range(cell_range, [values])
    logger.info("Sheet range written", extra={"context": {"range": cell_range, "cells": updated}})
    if len(values) > 1:
        return f"✅ Fila escrita en {cell_range} ({updated} celdas)."
    return f"✅ Celda {cell_range} actualizada con: {values[0]}"


def _commit_read(ctx: StepContext) -> str:
    cell_range = ctx.slots["range"]
    rows = _provider(ctx).read_range(cell_range)
    if not rows:
        return f"📄 El rango {cell_range} está vacío."
    lines = [" | ".join(str(cell) for cell in row) for row in rows[:MAX_ROWS_SHOWN]]
    text = f"📄 *{cell_range}*\n\n" + "\n".join(lines)
    if len(rows) > MAX_ROWS_SHOWN:
        text += f"\n\n… y {len(rows) - MAX_ROWS_SHOWN} filas más."
    return text


RANGE_STEP = StepSpec(
    slot="range",
    label="Rango",
    prompt="📍 ¿Qué rango? (por ejemplo Hoja1!A1 o A1:C5)",
    validator=validate_range,
)

WRITE_WORKFLOW = WorkflowSpec(
    name="sheets_write",
    domain="sheets",
    command="hoja",
    triggers=(
        re.compile(r"\b(?:llenar|actualizar|escribir en) hoja\b"),
        re.compile(r"\b(?:llenar|actualizar)\b.*\bexcel\b"),
    ),
    allowed_roles=SHEETS_ROLES,
    intro="📊 *Escribir en hoja de cálculo*",
    commit=_commit_write,
    steps=[
        RANGE_STEP,
        StepSpec(
            slot="values",
            label="Valores",
            prompt="✏️ Escribe el valor. Para una fila completa separa los valores con comas.",
            validator=parse_values,
        ),
    ],
)

READ_WORKFLOW = WorkflowSpec(
    name="sheets_read",
    domain="sheets",
    triggers=(
        re.compile(r"\b(?:leer|ver|consultar) hoja\b"),
        re.compile(r"\b(?:leer|ver)\b.*\bexcel\b"),
    ),
    allowed_roles=SHEETS_ROLES,
    intro="📊 *Leer hoja de cálculo*",
    commit=_commit_read,
    steps=[RANGE_STEP],
)
