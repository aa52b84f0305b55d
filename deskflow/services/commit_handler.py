from dataclasses import dataclass
from typing import Optional

from deskflow.logging_config import get_logger
from deskflow.services.errors import ConflictError
from deskflow.services.session_store import SessionStore
from deskflow.services.state_machine import StepContext, WorkflowSpec

logger = get_logger("commit_handler")


@dataclass
class TurnResult:
    handled: bool
    reply: Optional[str]
    action: str
    domain: Optional[str] = None
    step: Optional[str] = None


def _join(*parts: Optional[str]) -> str:
    return "\n\n".join(part for part in parts if part)


def commit_workflow(
    workflow: WorkflowSpec,
    ctx: StepContext,
    sessions: SessionStore,
    lead: Optional[str] = None,
) -> TurnResult:
    """Persist a completed slot set and clear the sender's session.

    ConflictError goes through the workflow's conflict reporter and still
    clears the session. ProviderError propagates untouched so the caller
    keeps the session for a retry.
    """
    try:
        confirmation = workflow.commit(ctx)
    except ConflictError as exc:
        logger.info(
            "Commit conflict",
            extra={"context": {"sender": ctx.sender, "flow": workflow.name, "reason": exc.reason}},
        )
        if workflow.on_conflict is not None:
            report = workflow.on_conflict(ctx, exc)
        else:
            report = f"⚠️ {exc.message}"
        sessions.clear(ctx.sender)
        return TurnResult(True, _join(lead, report), "conflict", workflow.domain, None)

    sessions.clear(ctx.sender)
    logger.info("Workflow committed", extra={"context": {"sender": ctx.sender, "flow": workflow.name}})
    return TurnResult(True, _join(lead, confirmation), "committed", workflow.domain, None)
