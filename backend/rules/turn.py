from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

import requests
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from db import SessionLocal
from llm.client import LLMClientError, NarratorClient
from llm.prompts import fallback_text
from llm.schemas import NarrationRequest
from models import Session as SessionModel, Turn
from rules.engine import MAX_ACTIONS, EngineInput, EngineOutput, Stats, resolve_turn
from rules.state import (
    GameState,
    SessionPhase,
    apply_world_delta,
    normalize_game_state,
    session_phase,
)
from rules.validation import validate_player_input

logger = logging.getLogger(__name__)

HISTORY_TURNS = 2
HISTORY_LINES = 6


class TurnError(ValueError):
    pass


class SessionNotFoundError(TurnError):
    pass


class TurnConflictError(TurnError):
    pass


@dataclass
class TurnResult:
    turn_index: int
    narrative: str
    summary: list[str]
    engine: EngineOutput
    state: GameState
    phase: SessionPhase
    used_fallback: bool = False


def execute_turn(
    session_id: str,
    player_input: str,
    *,
    llm_client: NarratorClient | None = None,
) -> TurnResult:
    player_input = validate_player_input(player_input)
    with SessionLocal() as db:
        # Row lock serialises concurrent turns on one session.
        session = db.get(SessionModel, session_id, with_for_update=True)
        if session is None:
            raise SessionNotFoundError("Session not found.")
        state = normalize_game_state(session.state_json)
        actions_remaining = session_actions(session)
        if session_phase(actions_remaining, state) == "terminal":
            raise TurnError("Session is over; no actions remaining.")

        turn_index = db.query(Turn).filter(Turn.session_id == session_id).count()
        history = _recent_history(db, session_id)

        result = execute_turn_for_state(
            session_id=session_id,
            turn_index=turn_index,
            player_input=player_input,
            stats=Stats.from_dict(session.stats_json),
            state=state,
            actions_remaining=actions_remaining,
            recent_history=history,
            llm_client=llm_client,
        )

        db.add(
            Turn(
                session_id=session_id,
                idx=result.turn_index,
                player_input=player_input,
                narrative=result.narrative,
                summary_json=result.summary,
                debug_json=result.engine.debug.to_dict(),
            )
        )
        session.actions_remaining = result.engine.actions_remaining
        session.state_json = result.state.to_dict()
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning(
                "Turn %s for %s already recorded: %s", result.turn_index, session_id, exc
            )
            raise TurnConflictError("Turn already recorded for this session; retry.") from exc
        return result


def execute_turn_for_state(
    *,
    session_id: str,
    turn_index: int,
    player_input: str,
    stats: Stats,
    state: GameState,
    actions_remaining: int,
    recent_history: Iterable[str] = (),
    llm_client: NarratorClient | None = None,
) -> TurnResult:
    engine = resolve_turn(
        EngineInput(
            session_id=session_id,
            turn_index=turn_index,
            player_input=player_input,
            stats=stats,
            state=state,
            actions_remaining=actions_remaining,
        )
    )
    narrative, used_fallback = _narrate(
        llm_client or NarratorClient(),
        player_input,
        engine,
        state,
        list(recent_history),
    )
    next_state = apply_world_delta(state, engine.world_delta)
    return TurnResult(
        turn_index=turn_index,
        narrative=narrative,
        summary=turn_summary(player_input, engine),
        engine=engine,
        state=next_state,
        phase=session_phase(engine.actions_remaining, next_state),
        used_fallback=used_fallback,
    )


def turn_summary(player_input: str, engine: EngineOutput) -> list[str]:
    injury = engine.world_delta.injury
    return [
        engine.outcome_summary,
        f"Action: {player_input}",
        f"Injury: {injury}" if injury else "No injury",
    ]


def session_actions(session: Any) -> int:
    value = getattr(session, "actions_remaining", None)
    if isinstance(value, bool) or not isinstance(value, int):
        return MAX_ACTIONS
    return max(0, min(MAX_ACTIONS, value))


def _narrate(
    llm_client: NarratorClient,
    player_input: str,
    engine: EngineOutput,
    state: GameState,
    recent_history: list[str],
) -> tuple[str, bool]:
    request = NarrationRequest(
        player_input=player_input,
        outcome_summary=engine.outcome_summary,
        actions_remaining=engine.actions_remaining,
        checks_brief=list(engine.checks_brief),
        world_delta=engine.world_delta.to_dict(),
        recent_history=recent_history,
        mission=state.mission.to_dict() if state.mission else None,
    )
    try:
        return llm_client.generate_narrative(request), False
    except (LLMClientError, requests.RequestException) as exc:
        logger.warning("Narrative generation failed, using fallback: %s", exc)
    fallback = fallback_text(
        player_input,
        engine.outcome_summary,
        engine.actions_remaining,
        engine.world_delta.injury,
    )
    return fallback, True


def _recent_history(db: Any, session_id: str) -> list[str]:
    try:
        turns = (
            db.query(Turn)
            .filter(Turn.session_id == session_id)
            .order_by(Turn.idx.desc())
            .limit(HISTORY_TURNS)
            .all()
        )
    except SQLAlchemyError as exc:
        logger.warning("Recent history load failed for %s: %s", session_id, exc)
        db.rollback()
        return []
    lines: list[str] = []
    for turn in turns:
        summary = turn.summary_json
        if isinstance(summary, list):
            lines.extend(str(line) for line in summary)
    return lines[:HISTORY_LINES]
