"""Generic step/slot interpreter shared by every guided workflow.

A workflow is data: an ordered list of ``StepSpec`` plus a commit callable.
The interpreter never touches the session store; it receives the slots
collected so far and returns a ``StepOutcome`` describing the new slots and
the reply. The router persists the outcome.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional, Pattern, Union

from deskflow.logging_config import get_logger
from deskflow.services.errors import ValidationError

logger = get_logger("state_machine")

TERMINAL_STEP = "done"


class StepAction(str, Enum):
    PROMPTED = "prompted"
    REPROMPTED = "reprompted"
    READY = "ready"
    TERMINATED = "terminated"


VALID_TRANSITIONS = {
    None: [StepAction.PROMPTED, StepAction.READY, StepAction.TERMINATED],
    StepAction.PROMPTED: [StepAction.PROMPTED, StepAction.REPROMPTED, StepAction.READY, StepAction.TERMINATED],
    StepAction.REPROMPTED: [StepAction.PROMPTED, StepAction.REPROMPTED, StepAction.READY, StepAction.TERMINATED],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_action: Optional[StepAction], to_action: StepAction):
        self.from_action = from_action
        self.to_action = to_action
        label = from_action.value if from_action else "start"
        super().__init__(f"Invalid transition: {label} -> {to_action.value}")


def can_transition(from_action: Optional[StepAction], to_action: StepAction) -> bool:
    """Check if a workflow may move from one outcome to the next."""
    return to_action in VALID_TRANSITIONS.get(from_action, [])


@dataclass
class StepContext:
    """What validators and hooks may look at during one turn."""

    sender: str
    role: Optional[str]
    slots: dict
    today: date
    services: Any = None
    text: str = ""


@dataclass
class HookResult:
    patch: dict = field(default_factory=dict)
    note: Optional[str] = None
    terminate: bool = False
    reply: Optional[str] = None


Prompt = Union[str, Callable[[StepContext], str]]


@dataclass
class StepSpec:
    slot: str
    prompt: Prompt
    validator: Callable[[str, StepContext], Any]
    label: Optional[str] = None
    after: Optional[Callable[[StepContext, Any], Optional[HookResult]]] = None
    skip_if: Optional[Callable[[StepContext], bool]] = None

    def render_prompt(self, ctx: StepContext) -> str:
        return self.prompt(ctx) if callable(self.prompt) else self.prompt


@dataclass
class WorkflowSpec:
    name: str
    domain: str
    steps: list[StepSpec]
    commit: Callable[[StepContext], str]
    intro: Optional[str] = None
    command: Optional[str] = None
    triggers: tuple[Pattern, ...] = ()
    allowed_roles: Optional[frozenset] = None
    prefill: Optional[Callable[[str, StepContext], dict]] = None
    on_conflict: Optional[Callable[[StepContext, Exception], str]] = None

    def step(self, slot: str) -> StepSpec:
        for spec in self.steps:
            if spec.slot == slot:
                return spec
        raise KeyError(f"{self.name} has no step {slot}")

    def allows(self, role: Optional[str]) -> bool:
        return self.allowed_roles is None or (role or "").lower() in self.allowed_roles


@dataclass
class StepOutcome:
    action: StepAction
    reply: str
    step: str
    slots: dict


def next_step(spec: WorkflowSpec, ctx: StepContext) -> Optional[StepSpec]:
    """First step whose slot is still empty, honouring skip conditions."""
    for step in spec.steps:
        if step.slot in ctx.slots:
            continue
        if step.skip_if and step.skip_if(ctx):
            continue
        return step
    return None


def _apply_value(step: StepSpec, value: Any, ctx: StepContext) -> Optional[HookResult]:
    ctx.slots[step.slot] = value
    if step.after is None:
        return None
    hook = step.after(ctx, value)
    if hook and hook.patch:
        ctx.slots.update(hook.patch)
    return hook


def _echo(spec: WorkflowSpec, captured: list[str], ctx: StepContext) -> str:
    lines = []
    for slot in captured:
        step = spec.step(slot)
        lines.append(f"• {step.label or slot}: {ctx.slots[slot]}")
    return "Ya tengo:\n" + "\n".join(lines)


def _after_write(
    spec: WorkflowSpec,
    ctx: StepContext,
    notes: list[str],
    previous: Optional[StepAction],
) -> StepOutcome:
    upcoming = next_step(spec, ctx)
    if upcoming is None:
        action = StepAction.READY
        reply = "\n\n".join(notes)
        step_name = TERMINAL_STEP
    else:
        action = StepAction.PROMPTED
        reply = "\n\n".join([*notes, upcoming.render_prompt(ctx)])
        step_name = upcoming.slot
    if not can_transition(previous, action):
        raise InvalidTransitionError(previous, action)
    return StepOutcome(action=action, reply=reply, step=step_name, slots=ctx.slots)


def begin(spec: WorkflowSpec, text: str, ctx: StepContext) -> StepOutcome:
    """Open a workflow, pre-filling whatever the opening message already answers.

    Candidates from ``spec.prefill`` go through the same validators as typed
    answers, in step order; invalid ones are dropped.
    """
    notes = [spec.intro] if spec.intro else []
    captured: list[str] = []

    candidates = spec.prefill(text, ctx) if spec.prefill else {}
    for step in spec.steps:
        if step.slot not in candidates or step.slot in ctx.slots:
            continue
        try:
            value = step.validator(str(candidates[step.slot]), ctx)
        except ValidationError as exc:
            logger.debug(
                "Dropped prefill",
                extra={"context": {"flow": spec.name, "slot": step.slot, "reason": exc.message}},
            )
            continue
        hook = _apply_value(step, value, ctx)
        captured.append(step.slot)
        if hook and hook.terminate:
            return StepOutcome(StepAction.TERMINATED, hook.reply or "", TERMINAL_STEP, ctx.slots)
        if hook and hook.note:
            notes.append(hook.note)

    if captured:
        notes.insert(1 if spec.intro else 0, _echo(spec, captured, ctx))
    return _after_write(spec, ctx, notes, None)


def advance(spec: WorkflowSpec, current: str, text: str, ctx: StepContext) -> StepOutcome:
    """Feed one answer to the current step."""
    step = spec.step(current)
    try:
        value = step.validator(text, ctx)
    except ValidationError as exc:
        # Slots and step stay exactly as they were.
        return StepOutcome(
            action=StepAction.REPROMPTED,
            reply=f"❌ {exc.message}\n\n{step.render_prompt(ctx)}",
            step=current,
            slots=ctx.slots,
        )

    hook = _apply_value(step, value, ctx)
    if hook and hook.terminate:
        return StepOutcome(StepAction.TERMINATED, hook.reply or "", TERMINAL_STEP, ctx.slots)
    notes = [hook.note] if hook and hook.note else []
    return _after_write(spec, ctx, notes, StepAction.PROMPTED)
