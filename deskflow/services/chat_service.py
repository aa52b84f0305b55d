from typing import Optional

from deskflow.logging_config import get_logger
from deskflow.services.errors import ProviderError
from deskflow.services.llm.base import LLMProvider
from deskflow.services.result import Result

logger = get_logger("chat_service")

SYSTEM_PROMPT = (
    "You are the internal assistant of a retail company. Answer briefly in the "
    "user's language. For IT problems suggest writing !ticket; for meeting rooms "
    "suggest 'reservar sala'."
)

HELP_TEXT = (
    "🤖 *¿En qué te ayudo?*\n\n"
    "• *!ticket*: reportar un problema de IT\n"
    "• *!ticket list*: ver tus tickets\n"
    "• *reservar sala*: reservar la sala de juntas\n"
    "• *actualizar proyecto*: registrar avance\n"
    "• *cancelar*: salir de cualquier flujo"
)


def generate_reply(text: str, provider: Optional[LLMProvider]) -> Result[str]:
    """Open-ended chat answer for messages no workflow owns."""
    if provider is None:
        return Result.failure("No AI provider configured", code="ai_disabled")
    try:
        response = provider.generate(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            temperature=0.7,
            max_tokens=500,
        )
    except ProviderError as exc:
        logger.warning(f"Chat provider failed: {exc}")
        return Result.failure(str(exc), code="ai_error")

    if not (response.content or "").strip():
        return Result.failure("Empty AI response", code="ai_empty")
    return Result.success(response.content).map(str.strip)
