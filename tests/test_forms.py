"""
Tests for the form-action mediator and the three form actions.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from healthdash.core.errors import MalformedResponse
from healthdash.core.schemas import ClassificationResult, FormState
from healthdash.flows.human_detection_flow import HumanPresenceFlow
from healthdash.flows.report_flow import MedicalMediaSummaryFlow
from healthdash.flows.service import FlowService
from healthdash.flows.symptom_flow import SymptomSummaryFlow
from healthdash.forms.actions import (
    DETECT_REQUIRED,
    REPORT_REQUIRED,
    SYMPTOM_FIELDS,
    SYMPTOMS_REQUIRED,
    handle_detect_human,
    handle_generate_report,
    handle_symptom_check,
)
from healthdash.forms.mediator import FormActionMediator

PIXEL_URI = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def _service(text_reply="Rest and hydrate.", image_reply="Normal chest X-ray.",
             presence_reply='{"present": true, "confidence": 0.95, "message": "One adult."}'):
    return FlowService(
        symptoms=SymptomSummaryFlow(backend=lambda *a, **k: text_reply),
        media=MedicalMediaSummaryFlow(backend=lambda *a, **k: image_reply),
        presence=HumanPresenceFlow(backend=lambda *a, **k: presence_reply),
    )


# ---------------------------------------------------------------------------
# Mediator
# ---------------------------------------------------------------------------

class TestFormActionMediator:
    def test_missing_required_field_fails_fast(self):
        calls = []

        async def action(fields):
            calls.append(fields)
            return FormState(result="ok")

        async def scenario():
            mediator = FormActionMediator(action, required=SYMPTOM_FIELDS)
            state = await mediator.submit({"symptoms": "   "})
            assert state.error == SYMPTOMS_REQUIRED
            assert state.result is None
            assert calls == []
            assert not mediator.pending

        asyncio.run(scenario())

    def test_sequential_submissions_each_settle(self):
        replies = iter([FormState(result="first"), FormState(error="second failed")])

        async def action(fields):
            return next(replies)

        async def scenario():
            seen = []
            mediator = FormActionMediator(action, on_change=lambda m: seen.append((m.pending, m.state)))
            assert (await mediator.submit({"x": 1})).result == "first"
            state = await mediator.submit({"x": 2})
            assert state.error == "second failed"
            assert state.result is None
            # pending flag raised before each settlement
            assert [p for p, _ in seen] == [True, False, True, False]

        asyncio.run(scenario())

    def test_result_and_error_never_both_set(self):
        async def action(fields):
            return FormState(result="partial", error="but failed")

        async def scenario():
            mediator = FormActionMediator(action)
            state = await mediator.submit({})
            assert state.result is None
            assert state.error == "but failed"

        asyncio.run(scenario())

    def test_raising_action_becomes_error(self):
        async def action(fields):
            raise MalformedResponse("Bad reply")

        async def crashing(fields):
            raise KeyError("boom")

        async def scenario():
            assert (await FormActionMediator(action).submit({})).error == "Bad reply"
            state = await FormActionMediator(crashing).submit({})
            assert state.error == "An unexpected error occurred. Please try again later."

        asyncio.run(scenario())

    def test_submit_while_pending_is_ignored(self):
        gate = asyncio.Event()
        calls = []

        async def action(fields):
            calls.append(fields)
            await gate.wait()
            return FormState(result=fields["n"])

        async def scenario():
            mediator = FormActionMediator(action)
            first = asyncio.ensure_future(mediator.submit({"n": 1}))
            await asyncio.sleep(0)
            assert mediator.pending
            await mediator.submit({"n": 2})
            gate.set()
            assert (await first).result == 1
            assert len(calls) == 1

        asyncio.run(scenario())

    def test_close_resets_and_drops_in_flight_result(self):
        gate = asyncio.Event()

        async def action(fields):
            await gate.wait()
            return FormState(result="late")

        async def scenario():
            mediator = FormActionMediator(action)
            inflight = asyncio.ensure_future(mediator.submit({}))
            await asyncio.sleep(0)
            mediator.close()
            assert mediator.state == FormState()
            assert not mediator.pending
            gate.set()
            await inflight
            assert mediator.result is None
            assert mediator.error is None

        asyncio.run(scenario())

    def test_cancelled_submit_clears_pending(self):
        async def slow(fields):
            await asyncio.sleep(10)
            return FormState(result="never")

        async def quick(fields):
            return FormState(result="second")

        async def scenario():
            actions = iter([slow, quick])
            seen = []
            mediator = FormActionMediator(
                lambda fields: next(actions)(fields), on_change=lambda m: seen.append(m.pending)
            )
            task = asyncio.ensure_future(mediator.submit({}))
            await asyncio.sleep(0)
            assert mediator.pending
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            assert not mediator.pending
            assert seen[-1] is False
            # the form is usable again
            assert (await mediator.submit({})).result == "second"

        asyncio.run(scenario())

    def test_concurrent_submits_last_settled_wins(self):
        async def scenario():
            gates = {1: asyncio.Event(), 2: asyncio.Event()}

            async def action(fields):
                await gates[fields["n"]].wait()
                return FormState(result=fields["n"])

            mediator = FormActionMediator(action, allow_concurrent=True)
            first = asyncio.ensure_future(mediator.submit({"n": 1}))
            await asyncio.sleep(0)
            second = asyncio.ensure_future(mediator.submit({"n": 2}))
            await asyncio.sleep(0)
            assert mediator.pending

            # second request settles first, first request settles last
            gates[2].set()
            await second
            assert mediator.result == 2
            assert mediator.pending
            gates[1].set()
            await first
            assert mediator.result == 1
            assert not mediator.pending

        asyncio.run(scenario())


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class TestFormActions:
    def test_symptom_check_success(self):
        state = asyncio.run(handle_symptom_check({"symptoms": "headache"}, _service()))
        assert state.result == "Rest and hydrate."
        assert state.error is None

    def test_symptom_check_requires_text(self):
        state = asyncio.run(handle_symptom_check({"symptoms": ""}, _service()))
        assert state.error == SYMPTOMS_REQUIRED

    def test_symptom_check_empty_reply_is_error(self):
        state = asyncio.run(handle_symptom_check({"symptoms": "cough"}, _service(text_reply="  ")))
        assert state.result is None
        assert state.error == "Failed to get insights. The AI could not process the request."

    def test_generate_report(self):
        service = _service()
        assert asyncio.run(handle_generate_report({"mediaDataUri": PIXEL_URI}, service)).result == "Normal chest X-ray."
        assert asyncio.run(handle_generate_report({}, service)).error == REPORT_REQUIRED

    def test_generate_report_rejects_non_data_uri(self):
        state = asyncio.run(handle_generate_report({"mediaDataUri": "http://example.com/x.png"}, _service()))
        assert state.result is None
        assert "data URI" in state.error

    def test_detect_human(self):
        state = asyncio.run(handle_detect_human({"mediaDataUri": PIXEL_URI}, _service()))
        assert isinstance(state.result, ClassificationResult)
        assert state.result.detected is True
        assert state.result.confidence == 0.95
        assert asyncio.run(handle_detect_human({}, _service())).error == DETECT_REQUIRED
