import os
from typing import Any

import requests
from fastapi import Body, FastAPI, HTTPException
from pydantic import BaseModel, Field

from db import SessionLocal, check_db_connection
from llm.client import LLMClientError, NarratorClient
from llm.schemas import GmStartInput, GmTurnInput, ItemDraft
from models import Mission, Session as SessionModel, Turn
from rules.engine import MAX_ACTIONS, Stats
from rules.missions import mission_snapshot, parse_mission_header
from rules.state import (
    GameState,
    normalize_game_state,
    receive_item,
    session_phase,
    use_item,
)
from rules.turn import (
    SessionNotFoundError,
    TurnConflictError,
    TurnError,
    execute_turn,
    session_actions,
)
from rules.validation import ValidationError

app = FastAPI(
    title="coureurs API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


def _default_actions() -> int:
    try:
        value = int(os.getenv("DEFAULT_ACTIONS", str(MAX_ACTIONS)))
    except ValueError:
        value = MAX_ACTIONS
    return max(0, min(MAX_ACTIONS, value))


def _dev_mode_enabled() -> bool:
    return os.getenv("DEV_MODE", "").lower() == "true"


@app.get("/health")
def health() -> dict:
    try:
        check_db_connection()
    except Exception as exc:
        raise HTTPException(status_code=503, detail="Database unavailable") from exc
    return {"status": "ok"}


class InventoryEntry(BaseModel):
    name: str = Field(min_length=1, max_length=40)
    id: str | None = None
    emoji: str | None = None
    status: str | None = None
    qty: int = Field(default=1, ge=0)


class SessionCreate(BaseModel):
    mission_id: int | None = None
    stats: dict[str, int] | None = None
    inventory: list[InventoryEntry] | None = None


class TurnRequest(BaseModel):
    session_id: str
    player_input: Any = None


class ItemUseRequest(BaseModel):
    name: str
    consume: bool = False
    damage: bool = False


class ItemGenerateRequest(BaseModel):
    text: str = Field(min_length=1, max_length=200)
    session_id: str | None = None
    save: bool = False


class MissionPreview(BaseModel):
    id: int
    title: str
    mission_type: str | None = None
    factions: list[str] = Field(default_factory=list)
    brief: str
    objective: str | None = None


@app.get("/missions", response_model=list[MissionPreview])
def list_missions() -> list[MissionPreview]:
    with SessionLocal() as db:
        missions = db.query(Mission).order_by(Mission.id.asc()).all()
        previews = []
        for mission in missions:
            header = parse_mission_header(mission.brief)
            previews.append(
                MissionPreview(
                    id=mission.id,
                    title=mission.title,
                    mission_type=header.mission_type or mission.mission_type,
                    factions=header.factions,
                    brief=header.stripped,
                    objective=mission.objective,
                )
            )
        return previews


@app.post("/sessions")
def create_session(payload: SessionCreate | None = Body(default=None)) -> dict:
    data = payload or SessionCreate()
    with SessionLocal() as db:
        state = normalize_game_state(
            {"inventory": [entry.model_dump() for entry in data.inventory or []]}
        )
        if data.mission_id is not None:
            mission = db.get(Mission, data.mission_id)
            if mission is None:
                raise HTTPException(status_code=404, detail="Mission not found.")
            state.mission = mission_snapshot(mission)
        session = SessionModel(
            mission_id=data.mission_id,
            actions_remaining=_default_actions(),
            stats_json=Stats.from_dict(data.stats).to_dict(),
            state_json=state.to_dict(),
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        return _session_payload(session, state, turn_count=0)


@app.get("/sessions/{session_id}")
def get_session_state(session_id: str) -> dict:
    with SessionLocal() as db:
        session = db.get(SessionModel, session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found.")
        turn_count = db.query(Turn).filter(Turn.session_id == session_id).count()
        state = normalize_game_state(session.state_json)
        return _session_payload(session, state, turn_count=turn_count)


@app.post("/turn")
def resolve_turn_endpoint(payload: TurnRequest) -> dict:
    try:
        result = execute_turn(payload.session_id, payload.player_input)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TurnConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (ValidationError, TurnError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "ok": True,
        "turnIndex": result.turn_index,
        "narrative": result.narrative,
        "summary": result.summary,
        "engine": result.engine.to_dict(include_debug=_dev_mode_enabled()),
        "state": result.state.to_dict(),
        "phase": result.phase,
    }


@app.post("/sessions/{session_id}/inventory/use")
def use_inventory_item(session_id: str, payload: ItemUseRequest) -> dict:
    with SessionLocal() as db:
        session = db.get(SessionModel, session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found.")
        state = normalize_game_state(session.state_json)
        updated = use_item(
            state, payload.name, consume=payload.consume, damage=payload.damage
        )
        if updated is None:
            raise HTTPException(status_code=404, detail="Item not found.")
        session.state_json = updated.to_dict()
        db.commit()
        return {"ok": True, "inventory": updated.to_dict().get("inventory", [])}


@app.post("/inventory/generate")
def generate_inventory_item(payload: ItemGenerateRequest) -> dict:
    if not payload.save:
        draft = _craft_item(payload.text)
        return {"ok": True, "draft": _draft_payload(draft), "saved": False}
    if not payload.session_id:
        raise HTTPException(status_code=400, detail="session_id required when save=true.")
    with SessionLocal() as db:
        session = db.get(SessionModel, payload.session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found.")
        draft = _craft_item(payload.text)
        state = normalize_game_state(session.state_json)
        updated, mode = receive_item(state, draft.name, draft.qty, emoji=draft.emoji)
        session.state_json = updated.to_dict()
        db.commit()
        return {
            "ok": True,
            "draft": _draft_payload(draft),
            "saved": True,
            "mode": mode,
            "inventory": updated.to_dict().get("inventory", []),
        }


@app.post("/gm/start")
def gm_start(payload: dict = Body(...)) -> dict:
    try:
        start_input = GmStartInput.model_validate(payload)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    try:
        output = NarratorClient().generate_gm_start(start_input)
    except (LLMClientError, requests.RequestException) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return output.model_dump(by_alias=True)


@app.post("/gm/turn")
def gm_turn(payload: dict = Body(...)) -> dict:
    try:
        turn_input = GmTurnInput.model_validate(payload)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    try:
        output = NarratorClient().generate_gm_turn(turn_input)
    except (LLMClientError, requests.RequestException) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return output.model_dump(by_alias=True)


def _session_payload(session: Any, state: GameState, *, turn_count: int) -> dict:
    actions_remaining = session_actions(session)
    return {
        "id": session.id,
        "mission_id": session.mission_id,
        "actions_remaining": actions_remaining,
        "stats": session.stats_json,
        "state": state.to_dict(),
        "turn_count": turn_count,
        "phase": session_phase(actions_remaining, state),
    }


def _craft_item(text: str) -> ItemDraft:
    try:
        return NarratorClient().generate_item(text)
    except (LLMClientError, requests.RequestException) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def _draft_payload(draft: ItemDraft) -> dict:
    return draft.model_dump(exclude={"item_slug"})
