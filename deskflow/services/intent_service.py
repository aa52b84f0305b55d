import json
import os
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from deskflow.logging_config import get_logger
from deskflow.services.errors import ProviderError
from deskflow.services.llm.base import LLMProvider
from deskflow.services.slot_validators import normalize_text

logger = get_logger("intent_service")

INTENT_TIMEOUT_SECONDS = float(os.environ.get("INTENT_TIMEOUT_SECONDS", "4"))
SHORT_CIRCUIT_CONFIDENCE = 0.85
ESCALATION_THRESHOLD = 0.7
ESCALATION_MIN_LENGTH = 10

HR_ROLES = {"rh", "admin", "super_admin"}


class Intent(str, Enum):
    GREETING = "greeting"
    IT_SUPPORT = "it_support"
    RESERVATION = "reservation"
    PROJECT = "project"
    HR = "hr"
    HELP = "help"
    CONVERSATION = "conversation"


INTENT_DOMAINS = {
    Intent.IT_SUPPORT: "ticket",
    Intent.RESERVATION: "reservation",
    Intent.PROJECT: "project",
    Intent.HR: "hr",
}

GREETINGS = ("hola", "hi", "hello", "hey", "buenos dias", "buen dia", "buenas tardes", "buenas noches")
IT_KEYWORDS = (
    "computadora", "laptop", "impresora", "printer", "internet", "wifi", "red", "correo", "email",
    "outlook", "teams", "office", "sistema", "servidor", "contrasena", "password", "pos", "terminal",
    "pantalla", "teclado", "mouse", "camara", "software", "hardware", "virus",
)
PROBLEM_PHRASES = (
    "no funciona", "no sirve", "no prende", "no enciende", "no imprime", "no abre", "no carga",
    "falla", "error", "problema", "se trabo", "lento", "caido", "no puedo", "ayuda con",
)
PROJECT_KEYWORDS = ("proyecto", "proyectos", "tarea", "tareas", "avance", "progreso", "deadline", "entrega")
HELP_KEYWORDS = ("ayuda", "help", "comandos", "menu", "opciones", "que puedes hacer")
RESERVATION_KEYWORDS = ("reservar", "sala", "horario")

CLASSIFY_PROMPT = """Classify the chat message into exactly one intent.
Allowed intents: greeting, it_support, reservation, project, hr, help, conversation.
Answer ONLY with JSON: {{"intent": "<intent>", "confidence": <0..1>}}

Message: {message}"""


@dataclass
class IntentClassification:
    intent: Intent
    confidence: float
    escalate: bool = False
    source: str = "rules"

    @property
    def domain(self) -> Optional[str]:
        return INTENT_DOMAINS.get(self.intent)


def _contains(normalized: str, words) -> bool:
    return any(re.search(rf"\b{re.escape(word)}\b", normalized) for word in words)


def classify_by_rules(text: str, role: Optional[str] = None) -> IntentClassification:
    """Tier 1: deterministic keyword and prefix rules."""
    normalized = normalize_text(text)
    role = (role or "").lower()

    if normalized in {"!ticket", "ticket", "1"} or normalized.startswith("!ticket"):
        return IntentClassification(Intent.IT_SUPPORT, 0.95)
    if normalized.startswith("!proyectos") or normalized == "proyectos":
        return IntentClassification(Intent.PROJECT, 0.9)
    if normalized.startswith("!rh") or (role in HR_ROLES and _contains(normalized, ("alta", "baja"))):
        return IntentClassification(Intent.HR, 0.95)
    if len(normalized) <= 3:
        return IntentClassification(Intent.GREETING, 0.9)
    if _contains(normalized, RESERVATION_KEYWORDS):
        return IntentClassification(Intent.RESERVATION, 0.85)
    if len(normalized) <= 30 and any(re.match(rf"{greeting}\b", normalized) for greeting in GREETINGS):
        return IntentClassification(Intent.GREETING, 0.9)

    has_it = _contains(normalized, IT_KEYWORDS)
    if has_it and any(phrase in normalized for phrase in PROBLEM_PHRASES):
        return IntentClassification(Intent.IT_SUPPORT, 0.92)
    if has_it:
        return IntentClassification(Intent.IT_SUPPORT, 0.75)
    if _contains(normalized, PROJECT_KEYWORDS):
        return IntentClassification(Intent.PROJECT, 0.85)
    if _contains(normalized, HELP_KEYWORDS):
        return IntentClassification(Intent.HELP, 0.85)

    if len(normalized) < 15:
        return IntentClassification(Intent.CONVERSATION, 0.6)
    return IntentClassification(Intent.CONVERSATION, 0.5)


def parse_llm_classification(raw: str) -> Optional[IntentClassification]:
    """Parse the provider's JSON answer; None when it is unusable."""
    match = re.search(r"\{.*\}", raw or "", re.DOTALL)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
        intent = Intent(str(data.get("intent", "")).strip().lower())
        confidence = float(data.get("confidence", 0))
    except (ValueError, TypeError, AttributeError):
        return None
    confidence = max(0.0, min(1.0, confidence))
    return IntentClassification(intent, confidence, escalate=True, source="llm")


def classify_intent(
    text: str,
    role: Optional[str] = None,
    provider: Optional[LLMProvider] = None,
) -> IntentClassification:
    """Two-tier classification: rules first, provider only for weak long messages."""
    rules = classify_by_rules(text, role)
    if rules.confidence > SHORT_CIRCUIT_CONFIDENCE:
        return rules
    if provider is None or rules.confidence >= ESCALATION_THRESHOLD or len(text.strip()) <= ESCALATION_MIN_LENGTH:
        return rules

    rules.escalate = True
    llm_start = time.monotonic()
    try:
        raw = provider.complete(
            CLASSIFY_PROMPT.format(message=text),
            max_tokens=60,
            timeout_seconds=INTENT_TIMEOUT_SECONDS,
        )
    except ProviderError as exc:
        logger.warning(f"Intent provider failed, keeping rules result: {exc}")
        return rules

    logger.info(
        "Timing",
        extra={
            "context": {
                "stage": "intent_llm_ms",
                "elapsed_ms": round((time.monotonic() - llm_start) * 1000, 2),
            }
        },
    )

    llm = parse_llm_classification(raw)
    if llm is None:
        logger.warning(f"Intent provider returned unparseable answer: {raw[:80] if raw else 'EMPTY'}")
        return rules
    if llm.confidence > rules.confidence:
        return llm
    return rules
