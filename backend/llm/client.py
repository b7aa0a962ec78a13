from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, TypeVar

import requests
from pydantic import BaseModel

from llm.prompts import (
    GM_TURN_SYSTEM,
    ITEM_CRAFTER_SYSTEM,
    SYSTEM_GM,
    WORLD_CAPSULE,
    build_gm_start_rails,
    build_gm_turn_rails,
    build_item_prompt,
    build_user_prompt,
)
from llm.schemas import (
    GmStartInput,
    GmTurnInput,
    GmTurnOutput,
    ItemDraft,
    NarrationRequest,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMClientError(RuntimeError):
    pass


class NarratorClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        timeout: int | None = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("OLLAMA_URL") or "http://localhost:11434").rstrip(
            "/"
        )
        self.model = model or os.getenv("OLLAMA_MODEL") or "gpt-oss:20b"
        if timeout is None:
            timeout = int(os.getenv("OLLAMA_TIMEOUT", "30"))
        self.timeout = timeout

    def generate_narrative(self, narration_request: NarrationRequest) -> str:
        content = self._chat(
            messages=_narration_messages(narration_request),
            temperature=0.7,
        )
        narrative = content.strip()
        if not narrative:
            raise LLMClientError("Empty narrative from text generation service.")
        return narrative

    def generate_gm_start(self, start_input: GmStartInput) -> GmTurnOutput:
        # The opening beat costs no action, so the count is echoed as given.
        actions = start_input.session.actions_remaining
        output = self._validated_json(
            lambda attempt, last_error: _gm_start_messages(start_input, attempt, last_error),
            GmTurnOutput,
            temperature=0.6,
            label="GM opening",
        )
        return output.model_copy(update={"actions_remaining": actions})

    def generate_gm_turn(self, turn_input: GmTurnInput) -> GmTurnOutput:
        # The server owns the action count; the model is told the value and
        # whatever it returns is overwritten.
        displayed_actions = max(0, turn_input.session.actions_remaining - 1)
        output = self._validated_json(
            lambda attempt, last_error: _gm_turn_messages(
                turn_input, displayed_actions, attempt, last_error
            ),
            GmTurnOutput,
            temperature=0.6,
            label="GM turn",
        )
        return output.model_copy(update={"actions_remaining": displayed_actions})

    def generate_item(self, user_text: str) -> ItemDraft:
        return self._validated_json(
            lambda attempt, last_error: _item_messages(user_text, attempt, last_error),
            ItemDraft,
            temperature=0.4,
            label="item",
        )

    def _validated_json(
        self,
        build_messages: Callable[[int, str | None], list[dict[str, str]]],
        schema: type[SchemaT],
        *,
        temperature: float,
        label: str,
    ) -> SchemaT:
        attempts = 0
        last_error: str | None = None
        while attempts < MAX_ATTEMPTS:
            attempts += 1
            try:
                content = self._chat(
                    messages=build_messages(attempts, last_error),
                    temperature=temperature,
                    format="json",
                )
                return schema.model_validate(_extract_json(content))
            except (LLMClientError, ValueError) as exc:
                last_error = str(exc)
                logger.warning("%s attempt %s rejected: %s", label, attempts, last_error)
        raise LLMClientError(f"Failed to build {label} JSON.")

    def _chat(
        self,
        *,
        messages: list[dict[str, str]],
        temperature: float,
        format: str | None = None,
    ) -> str:
        url = f"{self.base_url}/api/chat"
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature},
        }
        if format:
            payload["format"] = format
        response = requests.post(url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        message = data.get("message", {})
        content = message.get("content")
        if not isinstance(content, str):
            raise LLMClientError("Invalid response from text generation service.")
        return content


def _narration_messages(narration_request: NarrationRequest) -> list[dict[str, str]]:
    user = build_user_prompt(
        player_input=narration_request.player_input,
        outcome_summary=narration_request.outcome_summary,
        actions_remaining=narration_request.actions_remaining,
        recent_history=narration_request.recent_history,
        lore_hints=narration_request.lore_hints,
        mission=narration_request.mission,
        checks_brief=narration_request.checks_brief,
        world_delta=narration_request.world_delta,
    )
    return [
        {"role": "system", "content": SYSTEM_GM},
        {"role": "user", "content": user},
    ]


def _gm_start_messages(
    start_input: GmStartInput,
    attempt: int,
    last_error: str | None,
) -> list[dict[str, str]]:
    rails = _with_retry_note(
        build_gm_start_rails(start_input.session.actions_remaining), attempt, last_error
    )
    user = "\n".join(
        [
            *_gm_context_lines(start_input),
            "",
            "TASK",
            "Start the scene. Establish objective, danger, and a sense of adventure. "
            "Do not suggest options.",
            "Return JSON only:",
            '{ "narration": string, "summary": string[], "actionsRemaining": number }',
        ]
    )
    return [
        {"role": "system", "content": GM_TURN_SYSTEM},
        {"role": "system", "content": rails},
        {"role": "user", "content": user},
    ]


def _gm_turn_messages(
    turn_input: GmTurnInput,
    displayed_actions: int,
    attempt: int,
    last_error: str | None,
) -> list[dict[str, str]]:
    rails = _with_retry_note(build_gm_turn_rails(displayed_actions), attempt, last_error)
    user = "\n".join(
        [
            *_gm_context_lines(turn_input),
            "",
            "PLAYER ACTION",
            turn_input.last.action_text
            or "(missing) - treat as no action taken and escalate consequence minimally.",
            "",
            "Return JSON only:",
            '{ "narration": string, "summary": string[], "actionsRemaining": number }',
        ]
    )
    return [
        {"role": "system", "content": GM_TURN_SYSTEM},
        {"role": "system", "content": rails},
        {"role": "user", "content": user},
    ]


def _item_messages(user_text: str, attempt: int, last_error: str | None) -> list[dict[str, str]]:
    return [
        {
            "role": "system",
            "content": _with_retry_note(ITEM_CRAFTER_SYSTEM, attempt, last_error),
        },
        {"role": "user", "content": build_item_prompt(user_text)},
    ]


def _gm_context_lines(gm_input: GmStartInput) -> list[str]:
    mission = gm_input.mission
    session = gm_input.session
    player = gm_input.player
    return [
        "WORLD CAPSULE",
        (gm_input.world_capsule or WORLD_CAPSULE).strip(),
        "",
        "MISSION",
        f"title: {mission.title}",
        f"brief: {mission.brief}",
        f"objective: {mission.objective or '-'}",
        f"opening: {mission.opening or '-'}",
        f"mission_type: {mission.mission_type}",
        "GM guidance:",
        mission.mission_prompt or "-",
        "",
        "SESSION",
        f"actionsRemaining: {session.actions_remaining}",
        f"pressures: {', '.join(session.pressures or []) or '-'}",
        f"flags: {json.dumps(session.flags or {})}",
        f"clocks: {json.dumps([clock.model_dump() for clock in session.clocks or []])}",
        "",
        "PLAYER",
        f"name: {player.name}",
        f"inventory: {json.dumps([entry.model_dump() for entry in player.inventory])}",
        f"conditions: {json.dumps(player.conditions or [])}",
    ]


def _with_retry_note(content: str, attempt: int, last_error: str | None) -> str:
    if attempt > 1 and last_error:
        return f"{content}\nPrevious output invalid: {last_error}. Return JSON only."
    return content


def _extract_json(content: str) -> dict[str, Any]:
    try:
        data = json.loads(content)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    start = content.find("{")
    end = content.rfind("}")
    if start >= 0 and end > start:
        data = json.loads(content[start : end + 1])
        if isinstance(data, dict):
            return data
    raise LLMClientError("Failed to parse JSON output.")
