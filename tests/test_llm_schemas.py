import pytest
from pydantic import ValidationError

from llm.schemas import (
    GmSession,
    GmStartInput,
    GmTurnInput,
    GmTurnOutput,
    ItemDraft,
    NarrationRequest,
)


def test_gm_turn_output_reads_wire_aliases() -> None:
    output = GmTurnOutput.model_validate(
        {"narration": "Bells toll.", "summary": ["Bells toll."], "actionsRemaining": 3}
    )
    assert output.actions_remaining == 3
    assert output.model_dump(by_alias=True)["actionsRemaining"] == 3


@pytest.mark.parametrize(
    "payload",
    [
        {"narration": "x", "summary": [], "actionsRemaining": 1},
        {"narration": "x", "summary": ["a", "b", "c", "d"], "actionsRemaining": 1},
        {"narration": "x" * 901, "summary": ["a"], "actionsRemaining": 1},
        {"narration": "x", "summary": ["a"], "actionsRemaining": 11},
        {"narration": "x", "summary": ["a"], "actionsRemaining": "1"},
        {"narration": "x", "summary": ["a"], "actionsRemaining": 1, "options": []},
    ],
)
def test_gm_turn_output_rejects_bad_shapes(payload) -> None:
    with pytest.raises(ValidationError):
        GmTurnOutput.model_validate(payload)


def test_gm_session_rejects_unknown_pressure() -> None:
    with pytest.raises(ValidationError):
        GmSession.model_validate({"actionsRemaining": 4, "pressures": ["gold"]})


def test_gm_turn_input_requires_player_and_mission() -> None:
    with pytest.raises(ValidationError):
        GmTurnInput.model_validate({"session": {"actionsRemaining": 4}, "last": {}})


def test_narration_request_requires_jsonable_delta() -> None:
    request = NarrationRequest(
        player_input="climb",
        outcome_summary="You climb and achieve your goal.",
        actions_remaining=9,
        world_delta={"injury": None, "flags": ["death_gate_candidate"]},
    )
    assert request.world_delta["flags"] == ["death_gate_candidate"]
    with pytest.raises(ValidationError):
        NarrationRequest(player_input="climb", outcome_summary="x", actions_remaining="9")


def test_gm_start_input_has_no_player_action() -> None:
    payload = {
        "mission": {"title": "t", "brief": "b"},
        "session": {"actionsRemaining": 10},
        "player": {"name": "Coureur"},
    }
    assert GmStartInput.model_validate(payload).session.actions_remaining == 10
    with pytest.raises(ValidationError):
        GmStartInput.model_validate({**payload, "last": {"actionText": "run"}})


def test_item_draft_bounds() -> None:
    draft = ItemDraft.model_validate(
        {"name": "Rope", "emoji": "🪢", "desc": "Hemp rope.", "item_slug": "rope", "qty": 1}
    )
    assert draft.item_slug == "rope"
    for bad in (
        {"name": "Rope", "emoji": "🪢", "desc": "Hemp rope.", "qty": 0},
        {"name": "R" * 41, "emoji": "🪢", "desc": "Hemp rope.", "qty": 1},
        {"name": "Rope", "emoji": "", "desc": "Hemp rope.", "qty": 1},
        {"name": "Rope", "emoji": "🪢", "desc": "Hemp rope.", "qty": 1, "value": 3},
    ):
        with pytest.raises(ValidationError):
            ItemDraft.model_validate(bad)
