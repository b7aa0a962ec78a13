import json

import pytest

from llm.client import (
    LLMClientError,
    NarratorClient,
    _extract_json,
    _gm_start_messages,
    _gm_turn_messages,
    _narration_messages,
)
from llm.schemas import GmStartInput, GmTurnInput, NarrationRequest


class FakeResponse:
    def __init__(self, content):
        self.content = content

    def raise_for_status(self):
        return None

    def json(self):
        return {"message": {"content": self.content}}


def _patch_post(monkeypatch, contents):
    calls = []
    queue = list(contents)

    def fake_post(url, json=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        return FakeResponse(queue.pop(0))

    monkeypatch.setattr("llm.client.requests.post", fake_post)
    return calls


def _turn_input(actions: int = 5) -> GmTurnInput:
    return GmTurnInput.model_validate(
        {
            "mission": {
                "title": "Powder for Verdun",
                "brief": "Recover the cache.",
                "mission_type": "Recover",
            },
            "session": {"actionsRemaining": actions, "pressures": ["powder"]},
            "player": {"name": "Coureur", "inventory": [{"name": "rope", "qty": 1}]},
            "last": {"actionText": "search the cellar"},
        }
    )


def test_gm_turn_messages_carry_context() -> None:
    messages = _gm_turn_messages(_turn_input(), 4, 1, None)
    assert [message["role"] for message in messages] == ["system", "system", "user"]
    assert "return exactly 4" in messages[1]["content"]
    assert "Previous output invalid" not in messages[1]["content"]
    user = messages[2]["content"]
    assert "title: Powder for Verdun" in user
    assert "pressures: powder" in user
    assert "search the cellar" in user
    assert "WORLD CAPSULE" in user


def test_gm_turn_messages_mention_previous_error_on_retry() -> None:
    messages = _gm_turn_messages(_turn_input(), 4, 2, "summary too long")
    assert "Previous output invalid: summary too long" in messages[1]["content"]


def test_extract_json_from_wrapped_text() -> None:
    assert _extract_json('Sure: {"narration": "x"} done') == {"narration": "x"}
    with pytest.raises(LLMClientError):
        _extract_json("no json here")


def test_generate_narrative_posts_chat_request(monkeypatch) -> None:
    calls = _patch_post(monkeypatch, ["  Mud sucks at your boots.  "])
    client = NarratorClient(base_url="http://ollama:11434/", model="test-model", timeout=5)
    request = NarrationRequest(
        player_input="run for the gate",
        outcome_summary="You run and achieve your goal.",
        actions_remaining=7,
    )

    assert client.generate_narrative(request) == "Mud sucks at your boots."
    assert calls[0]["url"] == "http://ollama:11434/api/chat"
    assert calls[0]["timeout"] == 5
    payload = calls[0]["json"]
    assert payload["model"] == "test-model"
    assert payload["stream"] is False
    assert 'Player input: "run for the gate"' in payload["messages"][1]["content"]
    assert "Actions remaining after this reply: 7" in payload["messages"][1]["content"]


def test_generate_narrative_rejects_empty_content(monkeypatch) -> None:
    _patch_post(monkeypatch, ["   "])
    request = NarrationRequest(player_input="wait", outcome_summary="x", actions_remaining=1)
    with pytest.raises(LLMClientError):
        NarratorClient().generate_narrative(request)


def test_client_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("OLLAMA_URL", "http://gm:9000")
    monkeypatch.setenv("OLLAMA_MODEL", "marsh")
    monkeypatch.setenv("OLLAMA_TIMEOUT", "12")
    client = NarratorClient()
    assert client.base_url == "http://gm:9000"
    assert client.model == "marsh"
    assert client.timeout == 12


def test_gm_turn_overrides_actions_remaining(monkeypatch) -> None:
    reply = json.dumps(
        {"narration": "The cellar floods.", "summary": ["The cellar floods."], "actionsRemaining": 9}
    )
    calls = _patch_post(monkeypatch, [reply])
    output = NarratorClient().generate_gm_turn(_turn_input(actions=5))
    assert output.actions_remaining == 4
    assert output.summary == ["The cellar floods."]
    assert calls[0]["json"]["format"] == "json"


def test_gm_turn_retries_invalid_output(monkeypatch) -> None:
    valid = json.dumps({"narration": "Ok.", "summary": ["Ok."], "actionsRemaining": 0})
    calls = _patch_post(monkeypatch, ["not json", json.dumps({"narration": "x"}), valid])
    output = NarratorClient().generate_gm_turn(_turn_input(actions=0))
    assert output.actions_remaining == 0
    assert len(calls) == 3
    assert "Previous output invalid" in calls[2]["json"]["messages"][1]["content"]


def test_gm_turn_gives_up_after_three_attempts(monkeypatch) -> None:
    calls = _patch_post(monkeypatch, ["nope", "nope", "nope"])
    with pytest.raises(LLMClientError):
        NarratorClient().generate_gm_turn(_turn_input())
    assert len(calls) == 3


def _start_input(actions: int = 10) -> GmStartInput:
    return GmStartInput.model_validate(
        {
            "mission": {
                "title": "The Bell in the Marsh",
                "brief": "Carry the reliquary.",
                "opening": "Fog lies on the reeds.",
            },
            "session": {"actionsRemaining": actions},
            "player": {"name": "Coureur"},
        }
    )


def test_narration_prompt_includes_check_and_consequences() -> None:
    request = NarrationRequest(
        player_input="climb the wall",
        outcome_summary="You climb; progress with a cost.",
        actions_remaining=8,
        checks_brief=["Climb MIXED (d20+STR+item vs DC12)"],
        world_delta={
            "injury": "minor",
            "itemNotes": ["Rope used; +2"],
            "flags": [],
            "inventoryChanges": [{"name": "Rope", "delta": -1, "status": "frayed"}],
        },
    )
    user = _narration_messages(request)[1]["content"]
    assert "Climb MIXED (d20+STR+item vs DC12)" in user
    assert "Rope used; +2" in user
    assert "Injury: minor" in user
    assert "Inventory: Rope -1 (frayed)" in user


def test_narration_prompt_skips_empty_consequences() -> None:
    request = NarrationRequest(player_input="wait", outcome_summary="x", actions_remaining=4)
    user = _narration_messages(request)[1]["content"]
    assert "Engine check" not in user
    assert "Consequences" not in user


def test_gm_start_messages_stage_opening() -> None:
    messages = _gm_start_messages(_start_input(actions=7), 1, None)
    assert "OPENING" in messages[1]["content"]
    assert "return exactly 7" in messages[1]["content"]
    user = messages[2]["content"]
    assert "opening: Fog lies on the reeds." in user
    assert "Start the scene." in user
    assert "PLAYER ACTION" not in user


def test_gm_start_echoes_actions_remaining(monkeypatch) -> None:
    reply = json.dumps(
        {"narration": "Fog lies on the reeds.", "summary": ["Fog lies on the reeds."], "actionsRemaining": 3}
    )
    _patch_post(monkeypatch, [reply])
    output = NarratorClient().generate_gm_start(_start_input(actions=10))
    assert output.actions_remaining == 10
    assert output.narration == "Fog lies on the reeds."


def test_generate_item_returns_draft(monkeypatch) -> None:
    reply = json.dumps(
        {
            "name": "Tallow Candle",
            "emoji": "🕯️",
            "desc": "A stub of tallow that gutters in the wind.",
            "item_slug": "tallow-candle",
            "qty": 3,
        }
    )
    calls = _patch_post(monkeypatch, [reply])
    draft = NarratorClient().generate_item("a candle for the cellar")
    assert draft.name == "Tallow Candle"
    assert draft.qty == 3
    payload = calls[0]["json"]
    assert payload["options"]["temperature"] == 0.4
    assert payload["messages"][0]["content"] == "Return JSON only. No prose."
    assert "User: a candle for the cellar" in payload["messages"][1]["content"]


def test_generate_item_retries_invalid_draft(monkeypatch) -> None:
    bad = json.dumps({"name": "", "emoji": "x", "desc": "y", "qty": 0})
    good = json.dumps({"name": "Salt", "emoji": "🧂", "desc": "A pouch of salt.", "qty": 1})
    calls = _patch_post(monkeypatch, [bad, good])
    draft = NarratorClient().generate_item("salt")
    assert draft.name == "Salt"
    assert "Previous output invalid" in calls[1]["json"]["messages"][0]["content"]
