"""Typed slot parsers shared by step answers and opening-utterance prefill.

Every validator has the signature ``validator(text, ctx) -> value`` and
raises ``ValidationError`` with a user-facing message when the text cannot
be turned into a valid slot value. ``ctx`` is the ``StepContext`` of the
running workflow (slots collected so far, ``today``, collaborators).
"""

import re
import unicodedata
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from deskflow.services.errors import ValidationError

BRANCHES = {
    "1": "lomas",
    "2": "decathlon",
    "3": "centro-sur",
    "4": "ninguna",
}
BRANCH_ALIASES = {
    "lomas": "lomas",
    "decathlon": "decathlon",
    "centro-sur": "centro-sur",
    "centro sur": "centro-sur",
    "centrosur": "centro-sur",
    "ninguna": "ninguna",
    "general": "ninguna",
}

CATEGORIES = {
    "1": "hardware",
    "2": "software",
    "3": "network",
    "4": "security",
    "5": "m365",
    "6": "pos",
    "7": "backup",
    "8": "other",
}
CATEGORY_ALIASES = {
    "hardware": "hardware",
    "software": "software",
    "network": "network",
    "red": "network",
    "security": "security",
    "seguridad": "security",
    "m365": "m365",
    "office": "m365",
    "pos": "pos",
    "backup": "backup",
    "respaldo": "backup",
    "other": "other",
    "otro": "other",
}

RELATIVE_DAYS = {
    "hoy": 0,
    "today": 0,
    "manana": 1,
    "tomorrow": 1,
    "pasado manana": 2,
}

_DATE_PARTS_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})(?:[/\-](\d{2,4}))?$")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_HHMM_RE = re.compile(r"^(\d{1,2})[:.](\d{2})$")
_COMPACT_TIME_RE = re.compile(r"^(\d{3,4})$")
_AMPM_RE = re.compile(r"^(\d{1,2})(?:[:.](\d{2}))?\s*([ap])\.?\s*m\.?$")
_BARE_HOUR_RE = re.compile(r"^(\d{1,2})(?:\s*(?:h|hrs|horas))?$")
_STRICT_TIME_RE = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")
_PHONE_STRIP_RE = re.compile(r"[^\d+]")


def normalize_text(text: str) -> str:
    """Lowercase, trim, fold accents and collapse whitespace."""
    if not text:
        return ""
    folded = unicodedata.normalize("NFKD", text.lower())
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", folded).strip()


def expand_year(year: int) -> int:
    if year < 100:
        return 2000 + year if year < 50 else 1900 + year
    return year


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(total: int) -> str:
    total = total % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def shift_time(value: str, minutes: int) -> str:
    return minutes_to_time(time_to_minutes(value) + minutes)


# --- raw parsers (return None instead of raising) ---


def parse_phone(text: str) -> Optional[str]:
    phone = _PHONE_STRIP_RE.sub("", text or "")
    digits = phone.replace("+", "")
    if len(digits) < 8:
        return None
    return phone


def parse_date(text: str, today: Optional[date] = None) -> Optional[date]:
    """Parse today/tomorrow keywords, D/M[/Y], D-M[-Y] or ISO dates."""
    today = today or date.today()
    normalized = normalize_text(text)
    if not normalized:
        return None

    if normalized in RELATIVE_DAYS:
        return today + timedelta(days=RELATIVE_DAYS[normalized])

    match = _ISO_DATE_RE.match(normalized)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = _DATE_PARTS_RE.match(normalized)
    if match:
        day, month = int(match.group(1)), int(match.group(2))
        year = expand_year(int(match.group(3))) if match.group(3) else today.year
        return _safe_date(year, month, day)

    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_time(text: str, *, allow_bare_hour: bool = True) -> Optional[str]:
    """Parse HH:MM, H:MM, HH.MM, HHMM, H am/pm and H:MM am/pm into 24h HH:MM."""
    normalized = normalize_text(text).replace(" hrs", "").replace(" horas", "")
    if not normalized:
        return None

    match = _AMPM_RE.match(normalized)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if hour < 1 or hour > 12 or minute > 59:
            return None
        if match.group(3) == "p" and hour != 12:
            hour += 12
        elif match.group(3) == "a" and hour == 12:
            hour = 0
        return f"{hour:02d}:{minute:02d}"

    match = _HHMM_RE.match(normalized)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
    else:
        match = _COMPACT_TIME_RE.match(normalized)
        if match:
            digits = match.group(1).zfill(4)
            hour, minute = int(digits[:2]), int(digits[2:])
        elif allow_bare_hour and _BARE_HOUR_RE.match(normalized):
            hour, minute = int(_BARE_HOUR_RE.match(normalized).group(1)), 0
        else:
            return None

    candidate = f"{hour:02d}:{minute:02d}"
    if not _STRICT_TIME_RE.match(candidate):
        return None
    return candidate


def match_choice(text: str, numbered: dict[str, str], aliases: dict[str, str]) -> Optional[str]:
    """Resolve a numbered menu answer or a known alias."""
    normalized = normalize_text(text)
    if not normalized:
        return None
    token = normalized.rstrip(".)")
    if token in numbered:
        return numbered[token]
    if normalized in aliases:
        return aliases[normalized]
    for alias, value in aliases.items():
        if re.search(rf"\b{re.escape(alias)}\b", normalized):
            return value
    return None


# --- step validators (raise ValidationError) ---


def validate_phone(text: str, ctx=None) -> str:
    phone = parse_phone(text)
    if not phone:
        raise ValidationError("Número inválido. Envía un teléfono de al menos 8 dígitos.")
    return phone


def validate_date(text: str, ctx=None) -> str:
    today = ctx.today if ctx is not None else None
    parsed = parse_date(text, today)
    if parsed is None:
        raise ValidationError("Fecha inválida. Usa DD/MM/AAAA, 'hoy' o 'mañana'.")
    return parsed.isoformat()


def validate_time(text: str, ctx=None) -> str:
    parsed = parse_time(text)
    if parsed is None:
        raise ValidationError("Hora inválida. Usa HH:MM (24h) o formato como 10am, 3pm.")
    return parsed


def validate_end_time(text: str, ctx=None) -> str:
    """Parse the end time and require it to be strictly after the start slot."""
    parsed = validate_time(text, ctx)
    start = ctx.slots.get("start") if ctx is not None else None
    if start and time_to_minutes(parsed) <= time_to_minutes(start):
        raise ValidationError(f"La hora de fin debe ser posterior a la de inicio ({start}).")
    return parsed


def min_length(length: int, label: str) -> Callable[[str, object], str]:
    def _validate(text: str, ctx=None) -> str:
        value = (text or "").strip()
        if len(value) < length:
            raise ValidationError(f"{label} debe tener al menos {length} caracteres.")
        return value

    return _validate


def choice(
    numbered: dict[str, str],
    aliases: dict[str, str],
    error: str,
) -> Callable[[str, object], str]:
    def _validate(text: str, ctx=None) -> str:
        value = match_choice(text, numbered, aliases)
        if value is None:
            raise ValidationError(error)
        return value

    return _validate


def validate_percent(text: str, ctx=None) -> int:
    match = re.search(r"(\d{1,3})\s*%?", text or "")
    if not match or int(match.group(1)) > 100:
        raise ValidationError("El progreso debe ser un número entre 0 y 100.")
    return int(match.group(1))


validate_branch = choice(BRANCHES, BRANCH_ALIASES, "Sucursal inválida. Responde con un número del 1 al 4.")
validate_category = choice(CATEGORIES, CATEGORY_ALIASES, "Categoría inválida. Responde con un número del 1 al 8.")


def render_menu(options: dict[str, str]) -> str:
    return "\n".join(f"{key}. {value}" for key, value in options.items())


def any_keyword(text: str, keywords: Iterable[str]) -> bool:
    normalized = normalize_text(text)
    return any(re.search(rf"\b{re.escape(normalize_text(word))}\b", normalized) for word in keywords)


def parse_iso_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()
