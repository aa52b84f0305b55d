"""Decide which workflow owns a message and drive it one step.

Evaluation order: cancel keyword, active session, one-shot subcommands,
triggers in priority order, intent classifier, open-ended chat.
"""

from datetime import date
from typing import Callable, Optional, Sequence

from deskflow.logging_config import get_logger
from deskflow.services import chat_service
from deskflow.services.commit_handler import TurnResult, commit_workflow
from deskflow.services.errors import PermissionDenied
from deskflow.services.flows import WORKFLOWS, admin_flow, ticket_flow
from deskflow.services.intent_service import Intent, classify_intent
from deskflow.services.interfaces import FlowServices, InboundMessage
from deskflow.services.llm.base import LLMProvider
from deskflow.services.session_store import ConversationSession, SessionStore
from deskflow.services.slot_validators import normalize_text
from deskflow.services.state_machine import StepAction, StepContext, WorkflowSpec, advance, begin

logger = get_logger("router")

MSG_CANCELLED = "✅ Operación cancelada. Puedes empezar de nuevo cuando quieras."
MSG_NOTHING_TO_CANCEL = "👌 No tenías ninguna operación en curso."
MSG_PERMISSION_DENIED = "⛔ No tienes permiso para usar este comando."
MSG_CHAT_FALLBACK = "🤖 No entendí tu mensaje. Escribe *ayuda* para ver lo que puedo hacer."

COMMAND = "command"
KEYWORD = "keyword"


class WorkflowRouter:
    def __init__(
        self,
        sessions: SessionStore,
        services: FlowServices,
        provider: Optional[LLMProvider] = None,
        workflows: Sequence[WorkflowSpec] = WORKFLOWS,
        command_prefix: str = "!",
        cancel_words: Optional[set[str]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.sessions = sessions
        self.services = services
        self.provider = provider
        self.workflows = list(workflows)
        self.by_name = {workflow.name: workflow for workflow in self.workflows}
        self.command_prefix = command_prefix
        self.cancel_words = cancel_words or {"cancel", "cancelar", "salir"}
        self.today = today or date.today

    # --- entry point ---

    def route(self, message: InboundMessage, role: Optional[str]) -> TurnResult:
        sender = message.sender
        text = (message.text or "").strip()

        if self.is_cancel(text):
            return self.cancel(sender)

        session = self.sessions.get(sender)
        if session is not None and session.is_active:
            return self._continue(session, text, role)

        one_shot = self._run_subcommand(text, sender, role)
        if one_shot is not None:
            return one_shot

        try:
            workflow = self.match_trigger(text, role)
        except PermissionDenied as exc:
            logger.info("Permission denied", extra={"context": {"sender": sender, "domain": exc.domain}})
            return TurnResult(True, MSG_PERMISSION_DENIED, "rejected", exc.domain)
        if workflow is not None:
            return self._start(workflow, text, sender, role)

        return self._classify(text, sender, role)

    # --- steps of the evaluation order ---

    def is_cancel(self, text: str) -> bool:
        return normalize_text(text).lstrip(self.command_prefix) in self.cancel_words

    def cancel(self, sender: str) -> TurnResult:
        if self.sessions.clear(sender):
            return TurnResult(True, MSG_CANCELLED, "cancelled")
        return TurnResult(True, MSG_NOTHING_TO_CANCEL, "cancelled")

    def _is_command(self, normalized: str, workflow: WorkflowSpec) -> bool:
        if not workflow.command:
            return False
        command = f"{self.command_prefix}{workflow.command}"
        return normalized == command or normalized.startswith(command + " ")

    def match_trigger(self, text: str, role: Optional[str]) -> Optional[WorkflowSpec]:
        """First workflow whose command or keyword matches and whose roles allow the sender.

        An explicit command from a role outside the workflow's roles raises
        PermissionDenied; a loose keyword match is skipped instead.
        """
        normalized = normalize_text(text)
        for workflow in self.workflows:
            if self._is_command(normalized, workflow):
                kind = COMMAND
            elif any(pattern.search(normalized) for pattern in workflow.triggers):
                kind = KEYWORD
            else:
                continue
            if workflow.allows(role):
                return workflow
            if kind == COMMAND:
                raise PermissionDenied(workflow.domain, role)
        return None

    def _run_subcommand(self, text: str, sender: str, role: Optional[str]) -> Optional[TurnResult]:
        ticket_command = ticket_flow.parse_subcommand(text)
        if ticket_command is not None:
            action, args = ticket_command
            reply = ticket_flow.run_subcommand(action, args, sender, self.services)
            return TurnResult(True, reply, "command", "ticket")

        admin_command = admin_flow.parse_subcommand(text)
        if admin_command is not None:
            if not admin_flow.WORKFLOW.allows(role):
                return TurnResult(True, MSG_PERMISSION_DENIED, "rejected", "admin")
            return TurnResult(True, admin_flow.run_subcommand(admin_command, self.services), "command", "admin")
        return None

    def _classify(self, text: str, sender: str, role: Optional[str]) -> TurnResult:
        classification = classify_intent(text, role, self.provider)
        logger.info(
            "Intent classified",
            extra={
                "context": {
                    "sender": sender,
                    "intent": classification.intent.value,
                    "confidence": classification.confidence,
                    "source": classification.source,
                }
            },
        )
        domain = classification.domain
        if domain is not None:
            for workflow in self.workflows:
                if workflow.domain == domain and workflow.allows(role):
                    return self._start(workflow, text, sender, role)

        if classification.intent == Intent.HELP:
            return TurnResult(True, chat_service.HELP_TEXT, "chat")
        result = chat_service.generate_reply(text, self.provider)
        if not result.ok:
            logger.info("Chat fallback used", extra={"context": {"code": result.code}})
        return TurnResult(True, result.or_else(MSG_CHAT_FALLBACK), "chat")

    # --- workflow driving ---

    def _context(self, sender: str, role: Optional[str], slots: dict, text: str) -> StepContext:
        return StepContext(
            sender=sender,
            role=role,
            slots=dict(slots),
            today=self.today(),
            services=self.services,
            text=text,
        )

    def _start(self, workflow: WorkflowSpec, text: str, sender: str, role: Optional[str]) -> TurnResult:
        ctx = self._context(sender, role, {}, text)
        outcome = begin(workflow, text, ctx)

        if outcome.action == StepAction.TERMINATED:
            return TurnResult(True, outcome.reply, "terminated", workflow.domain)
        if outcome.action == StepAction.READY:
            return commit_workflow(workflow, ctx, self.sessions, lead=outcome.reply)

        self.sessions.start(sender, workflow.domain, workflow.name, outcome.step, outcome.slots)
        return TurnResult(True, outcome.reply, "prompted", workflow.domain, outcome.step)

    def _continue(self, session: ConversationSession, text: str, role: Optional[str]) -> TurnResult:
        workflow = self.by_name[session.flow]
        ctx = self._context(session.sender, role, session.slots, text)
        outcome = advance(workflow, session.step, text, ctx)

        if outcome.action == StepAction.REPROMPTED:
            return TurnResult(True, outcome.reply, "reprompted", workflow.domain, session.step)
        if outcome.action == StepAction.TERMINATED:
            self.sessions.clear(session.sender)
            return TurnResult(True, outcome.reply, "terminated", workflow.domain)
        if outcome.action == StepAction.READY:
            return commit_workflow(workflow, ctx, self.sessions, lead=outcome.reply)

        self.sessions.advance(session.sender, outcome.step, outcome.slots)
        return TurnResult(True, outcome.reply, "prompted", workflow.domain, outcome.step)
