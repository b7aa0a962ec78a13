from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue

Pressure = Literal["powder", "salt", "oil", "water", "medicine"]


class GmMission(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    title: str
    brief: str
    objective: str | None = None
    opening: str | None = None
    mission_prompt: str | None = None
    mission_type: str = "Unknown"


class GmClock(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    key: str
    label: str
    ticks: int = Field(ge=0)
    max: int = Field(ge=1)


class GmSession(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, populate_by_name=True)

    actions_remaining: int = Field(alias="actionsRemaining", ge=0, le=10)
    clocks: list[GmClock] | None = None
    pressures: list[Pressure] | None = None
    flags: dict[str, bool] | None = None


class GmInventoryEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    name: str
    qty: int = Field(ge=0)


class GmPlayer(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    name: str
    stats: dict[str, int] | None = None
    conditions: list[str] | None = None
    inventory: list[GmInventoryEntry] = Field(default_factory=list)


class GmLastAction(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, populate_by_name=True)

    action_text: str | None = Field(default=None, alias="actionText")


class GmStartInput(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, populate_by_name=True)

    world_capsule: str = Field(default="", alias="worldCapsule")
    mission: GmMission
    session: GmSession
    player: GmPlayer


class GmTurnInput(GmStartInput):
    last: GmLastAction


class GmTurnOutput(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, populate_by_name=True)

    narration: str = Field(max_length=900)
    summary: list[str] = Field(min_length=1, max_length=3)
    actions_remaining: int = Field(alias="actionsRemaining", ge=0, le=10)


class NarrationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    player_input: str
    outcome_summary: str
    actions_remaining: int
    checks_brief: list[str] = Field(default_factory=list)
    world_delta: dict[str, JsonValue] = Field(default_factory=dict)
    recent_history: list[str] = Field(default_factory=list)
    lore_hints: list[str] | None = None
    mission: dict[str, JsonValue] | None = None



class ItemDraft(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    name: str = Field(min_length=1, max_length=40)
    emoji: str = Field(min_length=1, max_length=4)
    desc: str = Field(min_length=1, max_length=240)
    item_slug: str | None = None
    qty: int = Field(ge=1, le=9999)
