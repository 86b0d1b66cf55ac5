"""
Tests for the generative flows (injected backends, no network).
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from healthdash.core.errors import InputMissing, MalformedResponse
from healthdash.core.inference_client import decode_data_uri, encode_data_uri
from healthdash.flows.human_detection_flow import (
    FALLBACK_MESSAGE,
    HumanPresenceFlow,
    parse_presence_reply,
)
from healthdash.flows.report_flow import MedicalMediaSummaryFlow
from healthdash.flows.service import FlowService
from healthdash.flows.symptom_flow import SymptomSummaryFlow

PIXEL_URI = encode_data_uri(b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")


class _Recorder:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


# ---------------------------------------------------------------------------
# Data URIs
# ---------------------------------------------------------------------------

class TestDataUri:
    def test_round_trip(self):
        mime, payload = decode_data_uri(PIXEL_URI)
        assert mime == "image/jpeg"
        assert payload.startswith(b"\xff\xd8")

    def test_rejects_plain_url(self):
        with pytest.raises(InputMissing):
            decode_data_uri("https://example.com/scan.png")

    def test_rejects_bad_base64(self):
        with pytest.raises(InputMissing):
            decode_data_uri("data:image/png;base64,@@@")


# ---------------------------------------------------------------------------
# Human presence parsing
# ---------------------------------------------------------------------------

class TestPresenceParsing:
    def test_structured_reply(self):
        p = parse_presence_reply('{"present": false, "confidence": 0.88, "message": "Empty hallway."}')
        assert p.present is False
        assert p.confidence == 0.88
        assert p.message == "Empty hallway."

    def test_fenced_reply_with_alternate_key(self):
        raw = '```json\n{"humanDetected": true, "confidence": 0.9, "message": "Person at desk."}\n```'
        p = parse_presence_reply(raw)
        assert p.present is True
        assert p.message == "Person at desk."

    def test_heuristic_hit(self):
        p = parse_presence_reply("I see a human figure")
        assert p.present is True
        assert p.confidence == 0.7
        assert p.message == "I see a human figure"

    def test_heuristic_miss(self):
        p = parse_presence_reply("Only a chair and a lamp.")
        assert p.present is False
        assert p.confidence == 0.3

    def test_json_without_presence_field_falls_back(self):
        p = parse_presence_reply('{"answer": "a person"}')
        assert p.present is True
        assert p.confidence == 0.7

    def test_out_of_range_confidence_falls_back(self):
        p = parse_presence_reply('{"present": true, "confidence": 7, "message": "person"}')
        assert p.confidence == 0.7

    def test_empty_reply(self):
        p = parse_presence_reply("")
        assert p.present is False
        assert p.message == FALLBACK_MESSAGE


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------

class TestSymptomSummaryFlow:
    def test_prompt_includes_symptoms(self):
        backend = _Recorder("  Likely a tension headache.  ")
        flow = SymptomSummaryFlow(backend=backend)
        summary = asyncio.run(flow.summarize_symptoms("throbbing headache"))
        assert summary.summary_text == "Likely a tension headache."
        (prompt,), kwargs = backend.calls[0]
        assert "throbbing headache" in prompt
        assert kwargs["model_id"] == flow.model_id

    def test_blank_input_rejected_before_backend(self):
        backend = _Recorder("unused")
        flow = SymptomSummaryFlow(backend=backend)
        with pytest.raises(InputMissing):
            asyncio.run(flow.summarize_symptoms("   "))
        assert backend.calls == []

    def test_empty_reply_is_malformed(self):
        flow = SymptomSummaryFlow(backend=_Recorder(""))
        with pytest.raises(MalformedResponse):
            asyncio.run(flow.summarize_symptoms("fever"))

    def test_execute_never_raises(self):
        flow = SymptomSummaryFlow(backend=_Recorder(RuntimeError("backend down")))
        result = asyncio.run(flow.execute("fever"))
        assert not result.success
        assert result.error == "backend down"
        assert result.error_type == "RuntimeError"
        assert flow.telemetry["failure_count"] == 1


class TestMedicalMediaSummaryFlow:
    def test_backend_receives_data_uri(self):
        backend = _Recorder("No acute findings.")
        flow = MedicalMediaSummaryFlow(backend=backend)
        summary = asyncio.run(flow.summarize_medical_media(PIXEL_URI))
        assert summary.summary_text == "No acute findings."
        args, _ = backend.calls[0]
        assert args[0] == PIXEL_URI

    def test_missing_image(self):
        with pytest.raises(InputMissing):
            asyncio.run(MedicalMediaSummaryFlow(backend=_Recorder("x")).summarize_medical_media(""))


class TestHumanPresenceFlow:
    def test_garbled_reply_still_answers(self):
        flow = HumanPresenceFlow(backend=_Recorder("I see a human figure"))
        presence = asyncio.run(flow.detect_human_presence(PIXEL_URI))
        assert presence.present is True
        assert presence.confidence == 0.7

    def test_missing_frame(self):
        with pytest.raises(InputMissing):
            asyncio.run(HumanPresenceFlow(backend=_Recorder("x")).detect_human_presence(""))


class TestFlowService:
    def test_status_and_telemetry(self):
        service = FlowService(
            symptoms=SymptomSummaryFlow(backend=_Recorder("ok")),
            media=MedicalMediaSummaryFlow(backend=_Recorder("ok")),
            presence=HumanPresenceFlow(backend=_Recorder("person")),
        )
        asyncio.run(service.summarize_symptoms("cough"))
        asyncio.run(service.detect_human_presence(PIXEL_URI))

        assert all(service.get_status().values())
        telemetry = service.get_telemetry()
        assert telemetry["total_executions"] == 2
        assert telemetry["total_failures"] == 0
        assert {f["flow_name"] for f in telemetry["flows"]} == {
            "symptom_summary", "medical_media_summary", "human_presence",
        }

    def test_demo_mode_without_keys(self, monkeypatch):
        for key in ("HF_TOKEN", "GOOGLE_API_KEY", "GEMINI_API_KEY"):
            monkeypatch.delenv(key, raising=False)
        flow = HumanPresenceFlow()
        assert flow.demo_mode
        presence = asyncio.run(flow.detect_human_presence(PIXEL_URI))
        assert presence.present is True
