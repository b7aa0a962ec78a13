from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal

LIGHT_LEVELS = {"dark", "dim", "normal"}
WEATHER_KINDS = {"rain", "clear"}
TERRAIN_KINDS = {"mud", "rock", "road"}
RANGE_BANDS = {"close", "long"}
INJURY_SEVERITIES = {"minor", "major"}

TERMINAL_FLAGS = {"dead", "victory"}
INJURY_FLAG_PREFIX = "injury:"

SessionPhase = Literal["active", "terminal"]


@dataclass
class Environment:
    light: str | None = None
    weather: str | None = None
    terrain: str | None = None

    def to_dict(self) -> dict:
        return _compact(
            {"light": self.light, "weather": self.weather, "terrain": self.terrain}
        )


@dataclass
class InventoryItem:
    name: str
    id: str | None = None
    emoji: str | None = None
    status: str | None = None
    qty: int | None = None

    def to_dict(self) -> dict:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "emoji": self.emoji,
                "status": self.status,
                "qty": self.qty,
            }
        )


@dataclass
class Mission:
    title: str = "Unknown"
    brief: str | None = None
    objective: str | None = None
    mission_prompt: str | None = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "brief": self.brief,
            "objective": self.objective,
            "mission_prompt": self.mission_prompt,
        }


@dataclass
class GameState:
    env: Environment = field(default_factory=Environment)
    range: str | None = None
    inventory: list[InventoryItem] = field(default_factory=list)
    mission: Mission | None = None
    flags: list[str] = field(default_factory=list)

    def has_item(self, name: str) -> bool:
        key = name.lower()
        return any(
            item.name.lower() == key or item.emoji == name for item in self.inventory
        )

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {}
        env = self.env.to_dict()
        if env:
            payload["env"] = env
        if self.range:
            payload["range"] = self.range
        if self.inventory:
            payload["inventory"] = [item.to_dict() for item in self.inventory]
        if self.mission is not None:
            payload["mission"] = self.mission.to_dict()
        if self.flags:
            payload["flags"] = list(self.flags)
        return payload


@dataclass
class InventoryChange:
    name: str | None
    delta: int
    id: str | None = None
    status: str | None = None

    def to_dict(self) -> dict:
        return _compact(
            {"id": self.id, "name": self.name, "delta": self.delta, "status": self.status}
        )


@dataclass
class WorldDelta:
    injury: str | None = None
    item_notes: list[str] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)
    inventory_changes: list[InventoryChange] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "injury": self.injury,
            "itemNotes": list(self.item_notes),
            "flags": list(self.flags),
            "inventoryChanges": [change.to_dict() for change in self.inventory_changes],
        }

    @classmethod
    def from_dict(cls, data: Any) -> WorldDelta | None:
        if not isinstance(data, dict):
            return None
        injury = data.get("injury")
        notes = data.get("itemNotes", data.get("item_notes"))
        changes = data.get("inventoryChanges", data.get("inventory_changes"))
        return cls(
            injury=injury if injury in INJURY_SEVERITIES else None,
            item_notes=[note for note in notes or [] if isinstance(note, str)],
            flags=_clean_flags(data.get("flags") or []),
            inventory_changes=[
                change
                for change in (_parse_change(entry) for entry in changes or [])
                if change is not None
            ],
        )


def normalize_game_state(value: Any) -> GameState:
    """Build a GameState from a loosely shaped mapping.

    Unknown keys are dropped, enum fields outside their allowed values are
    treated as absent, inventory entries without a usable name or with a
    quantity below one are skipped and flags are de-duplicated. Anything
    that is not a mapping becomes an empty state.
    """
    if isinstance(value, GameState):
        return copy.deepcopy(value)
    raw = value if isinstance(value, dict) else {}
    range_band = raw.get("range")
    return GameState(
        env=_sanitize_env(raw.get("env")),
        range=range_band if range_band in RANGE_BANDS else None,
        inventory=_sanitize_inventory(raw.get("inventory")),
        mission=_sanitize_mission(raw.get("mission")),
        flags=_sanitize_flags(raw.get("flags")),
    )


def apply_world_delta(
    base: GameState,
    delta: WorldDelta | dict | None,
) -> GameState:
    if isinstance(delta, dict):
        delta = WorldDelta.from_dict(delta)
    updated = copy.deepcopy(base)
    if delta is None:
        return updated

    incoming = list(delta.flags)
    if delta.injury:
        incoming.append(f"{INJURY_FLAG_PREFIX}{delta.injury}")
    updated.flags = _clean_flags([*updated.flags, *incoming])

    for change in delta.inventory_changes:
        _apply_inventory_change(updated.inventory, change)
    return updated


def session_phase(actions_remaining: int, state: GameState | None = None) -> SessionPhase:
    if actions_remaining <= 0:
        return "terminal"
    if state is not None and TERMINAL_FLAGS.intersection(state.flags):
        return "terminal"
    return "active"


def _apply_inventory_change(
    inventory: list[InventoryItem],
    change: InventoryChange,
) -> None:
    if isinstance(change.delta, bool) or not isinstance(change.delta, int):
        return
    item_id = _clean_text(change.id)
    name = _clean_text(change.name)
    if not item_id and not name:
        return

    index = _find_item(inventory, item_id=item_id, name=name)
    status = _clean_text(change.status)
    if index is None:
        if change.delta <= 0 or not name:
            return
        inventory.append(
            InventoryItem(name=name, id=item_id, status=status, qty=change.delta)
        )
        return

    item = inventory[index]
    quantity = (item.qty or 0) + change.delta
    if quantity <= 0:
        del inventory[index]
        return
    item.qty = quantity
    if status:
        item.status = status


def _find_item(
    inventory: list[InventoryItem],
    *,
    item_id: str | None,
    name: str | None,
) -> int | None:
    for index, item in enumerate(inventory):
        if item_id:
            if item.id == item_id:
                return index
        elif name and item.name.lower() == name.lower():
            return index
    return None


def _parse_change(entry: Any) -> InventoryChange | None:
    if not isinstance(entry, dict):
        return None
    delta = clean_number(entry.get("delta"))
    if delta is None:
        return None
    return InventoryChange(
        name=_clean_text(entry.get("name")),
        delta=delta,
        id=_clean_text(entry.get("id")),
        status=_clean_text(entry.get("status")),
    )


def _sanitize_env(raw: Any) -> Environment:
    if not isinstance(raw, dict):
        return Environment()
    light = raw.get("light")
    weather = raw.get("weather")
    terrain = raw.get("terrain")
    return Environment(
        light=light if light in LIGHT_LEVELS else None,
        weather=weather if weather in WEATHER_KINDS else None,
        terrain=terrain if terrain in TERRAIN_KINDS else None,
    )


def _sanitize_mission(raw: Any) -> Mission | None:
    if not isinstance(raw, dict):
        return None
    return Mission(
        title=_clean_text(raw.get("title"), keep=True) or "Unknown",
        brief=_clean_text(raw.get("brief"), keep=True),
        objective=_clean_text(raw.get("objective"), keep=True),
        mission_prompt=_clean_text(raw.get("mission_prompt"), keep=True)
        or _clean_text(raw.get("prompt"), keep=True),
    )


def _sanitize_inventory(raw: Any) -> list[InventoryItem]:
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        name = _clean_text(entry.get("name"), keep=True)
        if not name:
            continue
        qty = clean_number(entry.get("qty"))
        if qty is not None and qty <= 0:
            continue
        items.append(
            InventoryItem(
                name=name,
                id=_clean_text(entry.get("id"), keep=True),
                emoji=_clean_text(entry.get("emoji"), keep=True),
                status=_clean_text(entry.get("status"), keep=True),
                qty=qty,
            )
        )
    return items


def _sanitize_flags(raw: Any) -> list[str]:
    if isinstance(raw, list):
        return _clean_flags(raw)
    if isinstance(raw, dict):
        return _clean_flags([key for key, value in raw.items() if value])
    return []


def _clean_flags(values: Iterable[Any]) -> list[str]:
    flags: list[str] = []
    for value in values:
        flag = _clean_text(value)
        if flag and flag not in flags:
            flags.append(flag)
    return flags


def _clean_text(value: Any, *, keep: bool = False) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return value if keep else value.strip()


def clean_number(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def _compact(payload: dict) -> dict:
    return {key: value for key, value in payload.items() if value is not None}


def use_item(
    state: GameState,
    name: str,
    *,
    consume: bool = False,
    damage: bool = False,
) -> GameState | None:
    """Spend or damage one held item through the delta merge path.

    Returns None when no item with that name is held. A held item without a
    quantity counts as a single unit.
    """
    index = _find_item(state.inventory, item_id=None, name=_clean_text(name))
    if index is None:
        return None
    held = copy.deepcopy(state)
    item = held.inventory[index]
    if item.qty is None:
        item.qty = 1
    change = InventoryChange(
        name=item.name,
        id=item.id,
        delta=-1 if consume else 0,
        status="damaged" if damage else None,
    )
    return apply_world_delta(held, WorldDelta(inventory_changes=[change]))


def receive_item(
    state: GameState,
    name: str,
    qty: int,
    *,
    emoji: str | None = None,
) -> tuple[GameState, str]:
    """Add ``qty`` of an item through the delta merge path.

    Returns the updated state and ``"increment"`` when an item of that name
    was already held, ``"insert"`` otherwise.
    """
    key = _clean_text(name)
    held = _find_item(state.inventory, item_id=None, name=key) is not None
    updated = apply_world_delta(
        state, WorldDelta(inventory_changes=[InventoryChange(name=key, delta=qty)])
    )
    if not held and emoji:
        index = _find_item(updated.inventory, item_id=None, name=key)
        if index is not None:
            updated.inventory[index].emoji = emoji
    return updated, "increment" if held else "insert"
