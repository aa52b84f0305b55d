"""Pull slot hints out of a free-form opening message.

``extract_fields`` is pure and never raises: unmatched fields are simply
absent from the returned dict. Values are raw hints (ISO date string,
time token, title text, branch alias); workflows run them through the
regular slot validators before anything is stored.
"""

import re
from datetime import date, timedelta
from typing import Optional

from deskflow.logging_config import get_logger
from deskflow.services.slot_validators import BRANCH_ALIASES, expand_year, normalize_text

logger = get_logger("field_extractor")

_TIME_TOKEN = r"(\d{1,2}:\d{2}(?:\s*[ap]\.?\s*m\b\.?)?|\d{1,2}\s*[ap]\.?\s*m\b\.?)"

_RANGE_RE = re.compile(rf"{_TIME_TOKEN}\s*(?:-|–|\ba\b|\bto\b|\bhasta\b)\s*{_TIME_TOKEN}")
_START_RE = re.compile(rf"(?:\ba\s+las?\b|\bdesde\b|\bfrom\b|\bat\b)\s*{_TIME_TOKEN}")
_END_RE = re.compile(rf"(?:\bhasta\b|\bto\b|\buntil\b|\ba\b|-|–)\s*{_TIME_TOKEN}")
_DATE_RE = re.compile(r"(?<![\d:])(\d{1,2})[/\-](\d{1,2})(?:[/\-](\d{2,4}))?(?![\d:])")
_TODAY_RE = re.compile(r"\b(?:hoy|today)\b")
_TOMORROW_RE = re.compile(r"\b(?:manana|tomorrow)\b")
_TITLE_RE = re.compile(
    r"\b(?:titulad[ao]|titled|named|llamad[ao]|called|t[ií]tulo:?|title:?)\s+(.+)$",
    re.IGNORECASE,
)
_QUOTED_FOR_RE = re.compile(r"\b(?:for|para)\s+[\"“']([^\"”']{2,})[\"”']", re.IGNORECASE)
_PERCENT_RE = re.compile(r"(?<!\d)(\d{1,3})\s*%")
_QUOTES = "\"'“”"


def extract_fields(text, today: Optional[date] = None) -> dict:
    """Return a partial slot dict with any of: date, start, end, title, branch, progress."""
    if not isinstance(text, str) or not text.strip():
        return {}

    today = today or date.today()
    compact = re.sub(r"\s+", " ", text).strip()
    normalized = normalize_text(compact)
    fields: dict = {}
    spans: list[int] = []

    found_date = _extract_date(normalized, today, spans)
    if found_date:
        fields["date"] = found_date

    start, end = _extract_times(normalized, spans)
    if start:
        fields["start"] = start
    if end:
        fields["end"] = end

    title = _extract_title(compact, normalized, spans)
    if title:
        fields["title"] = title

    branch = _extract_branch(normalized)
    if branch:
        fields["branch"] = branch

    percent = _PERCENT_RE.search(normalized)
    if percent and int(percent.group(1)) <= 100:
        fields["progress"] = int(percent.group(1))

    if fields:
        logger.debug("Extracted opening fields", extra={"context": {"fields": sorted(fields)}})
    return fields


def _extract_date(normalized: str, today: date, spans: list[int]) -> Optional[str]:
    for match in _DATE_RE.finditer(normalized):
        day, month = int(match.group(1)), int(match.group(2))
        year = expand_year(int(match.group(3))) if match.group(3) else today.year
        try:
            candidate = date(year, month, day)
        except ValueError:
            continue
        spans.append(match.start())
        return candidate.isoformat()

    match = _TOMORROW_RE.search(normalized)
    if match:
        spans.append(match.start())
        return (today + timedelta(days=1)).isoformat()

    match = _TODAY_RE.search(normalized)
    if match:
        spans.append(match.start())
        return today.isoformat()

    return None


def _extract_times(normalized: str, spans: list[int]) -> tuple[Optional[str], Optional[str]]:
    match = _RANGE_RE.search(normalized)
    if match:
        spans.append(match.start())
        return _clean_time(match.group(1)), _clean_time(match.group(2))

    start = _START_RE.search(normalized)
    if not start:
        return None, None
    spans.append(start.start())

    end = _END_RE.search(normalized, start.end())
    if end:
        spans.append(end.start())
        return _clean_time(start.group(1)), _clean_time(end.group(1))
    return _clean_time(start.group(1)), None


def _clean_time(token: str) -> str:
    return re.sub(r"\s+", " ", token).strip()


def _extract_title(compact: str, normalized: str, spans: list[int]) -> Optional[str]:
    # Titles keep the sender's casing, so match against the original text.
    quoted = _QUOTED_FOR_RE.search(compact)
    if quoted:
        return quoted.group(1).strip()

    match = _TITLE_RE.search(compact)
    if not match:
        return None

    raw = match.group(1)
    # Cut the title where a date or time phrase that follows it begins.
    # Span offsets only line up when accent folding kept the length.
    if len(compact) == len(normalized):
        later = [pos for pos in spans if pos > match.start(1)]
        if later:
            raw = compact[match.start(1) : min(later)]

    title = raw.strip().strip(_QUOTES).strip(" ,.;:")
    return title or None


def _extract_branch(normalized: str) -> Optional[str]:
    for alias in sorted(BRANCH_ALIASES, key=len, reverse=True):
        if alias in {"general", "ninguna"}:
            continue
        if re.search(rf"\b{re.escape(alias)}\b", normalized):
            return alias
    return None
