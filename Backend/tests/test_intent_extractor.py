"""Tests for chat.intent_extractor with a mocked OpenAI client."""
import asyncio
import json
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from chat import intent_extractor
from tools.models import RawIntent

VALID = {
    "hypothesis": "meeting",
    "title": "פגישה עם דני",
    "start": None,
    "end": None,
    "due": None,
    "relativeTime": "מחר בשש בערב",
    "confidence": 0.8,
    "signals": {"hasDate": True, "hasTime": True, "hasTimeRange": False},
}


def _response(arguments: str):
    call = SimpleNamespace(function=SimpleNamespace(arguments=arguments))
    message = SimpleNamespace(tool_calls=[call])
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(*responses):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    return client


class TestExtractRawIntent:
    def test_valid_first_pass(self, monkeypatch):
        client = _client(_response(json.dumps(VALID, ensure_ascii=False)))
        monkeypatch.setattr(intent_extractor, "get_openai_client", lambda: client)

        raw = asyncio.run(intent_extractor.extract_raw_intent("פגישה עם דני מחר בשש בערב", model="test-model"))

        assert isinstance(raw, RawIntent)
        assert raw.hypothesis == "meeting"
        assert raw.relative_time == "מחר בשש בערב"
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["tool_choice"]["function"]["name"] == intent_extractor.TOOL_NAME
        assert "פגישה עם דני" in kwargs["messages"][1]["content"]

    def test_missing_signals_are_filled_in(self, monkeypatch):
        partial = {"hypothesis": "Idea", "title": "podcast"}
        client = _client(_response(json.dumps(partial)))
        monkeypatch.setattr(intent_extractor, "get_openai_client", lambda: client)

        raw = asyncio.run(intent_extractor.extract_raw_intent("podcast idea"))

        assert raw.hypothesis == "idea"
        assert raw.signals.has_date is False

    def test_repair_pass(self, monkeypatch):
        client = _client(
            _response('{"hypothesis": "reminder", "title": "x"}'),
            _response(json.dumps(VALID)),
        )
        monkeypatch.setattr(intent_extractor, "get_openai_client", lambda: client)

        raw = asyncio.run(intent_extractor.extract_raw_intent("text"))

        assert raw.hypothesis == "meeting"
        assert client.chat.completions.create.await_count == 2

    def test_second_failure_raises(self, monkeypatch):
        client = _client(_response("not json"), _response("{still not json"))
        monkeypatch.setattr(intent_extractor, "get_openai_client", lambda: client)

        with pytest.raises(ValueError, match="after repair pass"):
            asyncio.run(intent_extractor.extract_raw_intent("text"))


class TestNormaliseDue:
    REF = datetime(2026, 1, 21, 12, 0)

    def test_iso_is_kept(self):
        assert intent_extractor.normalise_due("2026-01-25T09:00:00", self.REF) == "2026-01-25T09:00:00"

    def test_empty(self):
        assert intent_extractor.normalise_due(None, self.REF) is None
        assert intent_extractor.normalise_due("", self.REF) is None

    def test_free_text_goes_through_dateparser(self):
        assert intent_extractor.normalise_due("in 2 days", self.REF).startswith("2026-01-23")


class TestToolDefinition:
    def test_schema_is_exposed_as_tool_parameters(self):
        tools = intent_extractor._build_tools(intent_extractor._load_schema())
        params = tools[0]["function"]["parameters"]
        assert "$schema" not in params
        assert params["properties"]["hypothesis"]["enum"] == ["task", "meeting", "idea"]
