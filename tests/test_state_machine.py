from datetime import date

import pytest

from deskflow.services.errors import ValidationError
from deskflow.services.slot_validators import min_length, validate_time
from deskflow.services.state_machine import (
    TERMINAL_STEP,
    HookResult,
    InvalidTransitionError,
    StepAction,
    StepContext,
    StepSpec,
    WorkflowSpec,
    advance,
    begin,
    can_transition,
    next_step,
)

TODAY = date(2026, 10, 19)


def make_ctx(**slots):
    return StepContext(sender="s1", role=None, slots=dict(slots), today=TODAY)


def _block_vip(ctx, value):
    if value == "vip":
        return HookResult(terminate=True, reply="no vips")
    return HookResult(patch={"greeted": True}, note=f"hola {value}")


def build_spec(prefill=None):
    return WorkflowSpec(
        name="demo",
        domain="demo",
        intro="Demo",
        prefill=prefill,
        commit=lambda ctx: "ok",
        steps=[
            StepSpec(slot="who", label="Quién", prompt="who?", validator=min_length(2, "who"), after=_block_vip),
            StepSpec(slot="start", label="Inicio", prompt="start?", validator=validate_time),
            StepSpec(
                slot="extra",
                prompt=lambda ctx: f"extra for {ctx.slots['who']}?",
                validator=min_length(1, "extra"),
                skip_if=lambda ctx: ctx.slots.get("who") == "skip",
            ),
        ],
    )


class TestTransitions:
    def test_opening_may_prompt_or_finish(self):
        assert can_transition(None, StepAction.PROMPTED)
        assert can_transition(None, StepAction.READY)

    def test_opening_cannot_reprompt(self):
        assert not can_transition(None, StepAction.REPROMPTED)

    def test_error_message(self):
        error = InvalidTransitionError(None, StepAction.REPROMPTED)
        assert "start -> reprompted" in str(error)


class TestBegin:
    def test_prompts_first_step(self):
        outcome = begin(build_spec(), "hi", make_ctx())
        assert outcome.action == StepAction.PROMPTED
        assert outcome.step == "who"
        assert outcome.reply == "Demo\n\nwho?"

    def test_prefill_skips_steps_and_echoes(self):
        spec = build_spec(prefill=lambda text, ctx: {"start": "10am"})
        outcome = begin(spec, "x", make_ctx())
        assert outcome.step == "who"
        assert outcome.slots == {"start": "10:00"}
        assert outcome.reply == "Demo\n\nYa tengo:\n• Inicio: 10:00\n\nwho?"

    def test_invalid_prefill_is_dropped(self):
        spec = build_spec(prefill=lambda text, ctx: {"start": "99:99"})
        outcome = begin(spec, "x", make_ctx())
        assert "start" not in outcome.slots
        assert "Ya tengo" not in outcome.reply

    def test_prefill_hook_can_terminate(self):
        spec = build_spec(prefill=lambda text, ctx: {"who": "vip"})
        outcome = begin(spec, "x", make_ctx())
        assert outcome.action == StepAction.TERMINATED
        assert outcome.reply == "no vips"
        assert outcome.step == TERMINAL_STEP

    def test_everything_prefilled_is_ready(self):
        spec = build_spec(prefill=lambda text, ctx: {"who": "skip", "start": "9:00"})
        outcome = begin(spec, "x", make_ctx())
        assert outcome.action == StepAction.READY
        assert outcome.step == TERMINAL_STEP
        assert "hola skip" in outcome.reply


class TestAdvance:
    def test_valid_answer_moves_on_with_hook_note(self):
        ctx = make_ctx()
        outcome = advance(build_spec(), "who", "Ana", ctx)
        assert outcome.action == StepAction.PROMPTED
        assert outcome.step == "start"
        assert outcome.slots == {"who": "Ana", "greeted": True}
        assert outcome.reply == "hola Ana\n\nstart?"

    def test_invalid_answer_leaves_slots_untouched(self):
        ctx = make_ctx(who="Ana")
        outcome = advance(build_spec(), "start", "luego", ctx)
        assert outcome.action == StepAction.REPROMPTED
        assert outcome.step == "start"
        assert outcome.slots == {"who": "Ana"}
        assert outcome.reply.startswith("❌ Hora inválida")
        assert outcome.reply.endswith("start?")

    def test_callable_prompt(self):
        outcome = advance(build_spec(), "start", "10:00", make_ctx(who="Ana"))
        assert outcome.reply == "extra for Ana?"

    def test_skip_if_reaches_ready(self):
        outcome = advance(build_spec(), "start", "10:00", make_ctx(who="skip"))
        assert outcome.action == StepAction.READY

    def test_terminating_hook(self):
        outcome = advance(build_spec(), "who", "vip", make_ctx())
        assert outcome.action == StepAction.TERMINATED

    def test_unknown_step(self):
        with pytest.raises(KeyError):
            advance(build_spec(), "nope", "x", make_ctx())


class TestNextStep:
    def test_first_empty_slot(self):
        assert next_step(build_spec(), make_ctx(who="Ana")).slot == "start"

    def test_none_when_complete(self):
        assert next_step(build_spec(), make_ctx(who="Ana", start="10:00", extra="x")) is None


class TestWorkflowSpec:
    def test_allows_without_roles(self):
        assert build_spec().allows(None)

    def test_allows_is_case_insensitive(self):
        spec = build_spec()
        spec.allowed_roles = frozenset({"admin"})
        assert spec.allows("ADMIN")
        assert not spec.allows("user")
        assert not spec.allows(None)


def test_validation_error_carries_message():
    error = ValidationError("bad", slot="who")
    assert error.message == "bad"
    assert error.slot == "who"
