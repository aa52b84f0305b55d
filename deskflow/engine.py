from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from deskflow.config import Settings, settings
from deskflow.database import SessionLocal
from deskflow.logging_config import get_logger, turn_logger
from deskflow.services.business_hours import BusinessHours
from deskflow.services.commit_handler import TurnResult
from deskflow.services.directory import SqlDirectory
from deskflow.services.errors import ProviderError
from deskflow.services.intake import IntakeGuard, MessageDedup
from deskflow.services.interfaces import (
    BusinessHoursOracle,
    Directory,
    FlowServices,
    InboundMessage,
    RecordStore,
    SpreadsheetProvider,
    Transport,
)
from deskflow.services.llm import build_default_provider
from deskflow.services.llm.base import LLMProvider
from deskflow.services.record_store import SqlRecordStore
from deskflow.services.router import WorkflowRouter
from deskflow.services.session_store import SessionStore
from deskflow.services.sheets_service import build_sheets_provider
from deskflow.services.transport import RecordingTransport

logger = get_logger("engine")

MSG_APOLOGY = "😔 Tuvimos un problema técnico. Intenta de nuevo en unos minutos; tu avance se conservó."
MSG_PAUSED = "⏸️ Listo, ya no responderé tus mensajes. Escribe *!start* para reactivarme."
MSG_RESUMED = "▶️ ¡Estoy de vuelta! ¿En qué te ayudo?"


class ConversationEngine:
    """Per-message pipeline: intake guard, per-sender lock, router."""

    def __init__(
        self,
        transport: Transport,
        store: RecordStore,
        directory: Directory,
        provider: Optional[LLMProvider] = None,
        hours: Optional[BusinessHoursOracle] = None,
        sheets: Optional[SpreadsheetProvider] = None,
        sessions: Optional[SessionStore] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or settings
        self.transport = transport
        self.directory = directory
        self.sessions = sessions or SessionStore()
        self.services = FlowServices(
            transport=transport,
            store=store,
            directory=directory,
            hours=hours,
            sheets=sheets,
            strike_threshold=self.config.strike_threshold,
        )
        self.guard = IntakeGuard(
            directory,
            bot_identity=self.config.bot_identity,
            supported_types=self.config.message_types(),
            command_prefix=self.config.command_prefix,
            pause_keyword=self.config.pause_keyword,
            resume_keyword=self.config.resume_keyword,
            dedup=MessageDedup(self.config.dedup_cache_size),
        )
        self.router = WorkflowRouter(
            self.sessions,
            self.services,
            provider=provider,
            command_prefix=self.config.command_prefix,
            cancel_words=self.config.cancel_words(),
            today=self._today,
        )

    def _today(self) -> date:
        return datetime.now(ZoneInfo(self.config.business_timezone)).date()

    def pause_all(self) -> None:
        self.guard.global_pause = True
        logger.warning("Global pause enabled")

    def resume_all(self) -> None:
        self.guard.global_pause = False
        logger.info("Global pause disabled")

    def handle_message(self, message: InboundMessage) -> TurnResult:
        """Process one inbound message end to end and reply through the transport."""
        if not self.guard.check(message):
            return TurnResult(False, None, "dropped")

        log = turn_logger("engine", message.sender, message.message_id)
        with self.sessions.lock(message.sender):
            try:
                result = self._process(message)
            except ProviderError as exc:
                log.warning(f"Provider failure, session kept: {exc}")
                session = self.sessions.get(message.sender)
                result = TurnResult(
                    True,
                    MSG_APOLOGY,
                    "error",
                    session.domain if session else None,
                    session.step if session else None,
                )
            except Exception:
                log.exception("Unexpected error while handling message")
                result = TurnResult(True, MSG_APOLOGY, "error")

        if result.reply:
            self.transport.reply(message, result.reply)
        log.info(
            "Turn handled",
            context={"action": result.action, "domain": result.domain, "step": result.step},
        )
        return result

    def _process(self, message: InboundMessage) -> TurnResult:
        sender = message.sender
        if self.guard.is_resume(message.text):
            self.directory.set_paused(sender, False)
            return TurnResult(True, MSG_RESUMED, "resumed")
        if self.guard.is_pause(message.text):
            self.sessions.clear(sender)
            self.directory.set_paused(sender, True)
            return TurnResult(True, MSG_PAUSED, "paused")

        role = self.transport.get_sender_role(sender)
        return self.router.route(message, role)


_default_engine: Optional[ConversationEngine] = None


def build_default_engine() -> ConversationEngine:
    """Wire the shipped SQL, LLM, hours and sheets adapters from settings."""
    directory = SqlDirectory(SessionLocal)
    return ConversationEngine(
        transport=RecordingTransport(directory),
        store=SqlRecordStore(SessionLocal, strike_threshold=settings.strike_threshold),
        directory=directory,
        provider=build_default_provider(),
        hours=BusinessHours(),
        sheets=build_sheets_provider(),
    )


def get_engine() -> ConversationEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = build_default_engine()
        logger.info("Conversation engine initialized")
    return _default_engine
