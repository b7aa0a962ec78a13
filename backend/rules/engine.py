from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Literal

from rules.core import TurnRng, roll_d20
from rules.intents import RANGED_INTENTS, RISKY_INTENTS, classify, governing_stat
from rules.state import GameState, WorldDelta, clean_number, normalize_game_state

logger = logging.getLogger(__name__)

Tier = Literal["critical", "success", "mixed", "fail"]

BASE_STAT_VALUE = 5
MAX_ACTIONS = 10
DEATH_GATE_FLAG = "death_gate_candidate"
CRITICAL_MARGIN = 5
MIXED_MARGIN = 2
LUCKY_TIE_THRESHOLD = 6

DEFAULT_DC = 12
BASE_DCS = {
    "climb": 12,
    "sneak": 12,
    "shoot": 12,
    "melee": 12,
    "search": 10,
    "talk": 12,
    "intimidate": 12,
    "run": 10,
}

LIGHT_MODIFIERS = {"dark": -2, "dim": -1}
WEATHER_MODIFIERS = {"rain": -1}
TERRAIN_MODIFIERS = {"mud": -1}
RANGE_MODIFIERS = {"long": -2, "close": 1}

# (intent, item name, bonus, note)
ITEM_BONUSES = (
    ("climb", "rope", 2, "Rope used; +2"),
    ("sneak", "cloak", 1, "Cloak muffles sound; +1"),
    ("shoot", "pistol", 1, "Familiar pistol; +1"),
)

OUTCOME_TEMPLATES = {
    "critical": "You {intent}; it exceeds expectation.",
    "success": "You {intent} and achieve your goal.",
    "mixed": "You {intent}; progress with a cost.",
    "fail": "You {intent} and fail; danger rises.",
}


@dataclass(frozen=True)
class Stats:
    STR: int = BASE_STAT_VALUE
    PER: int = BASE_STAT_VALUE
    PRC: int = BASE_STAT_VALUE
    VIT: int = BASE_STAT_VALUE
    INT: int = BASE_STAT_VALUE
    CHA: int = BASE_STAT_VALUE
    MEN: int = BASE_STAT_VALUE
    RFX: int = BASE_STAT_VALUE
    LCK: int = BASE_STAT_VALUE

    @classmethod
    def from_dict(cls, data: Any) -> Stats:
        if not isinstance(data, dict):
            return cls()
        values = {}
        for stat in fields(cls):
            value = clean_number(data.get(stat.name))
            if value is not None:
                values[stat.name] = value
        return cls(**values)

    def value(self, name: str) -> int:
        value = clean_number(getattr(self, name, None))
        return BASE_STAT_VALUE if value is None else value

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EngineInput:
    session_id: str
    turn_index: int
    player_input: str
    stats: Stats
    state: GameState = field(default_factory=GameState)
    actions_remaining: int = MAX_ACTIONS


@dataclass
class CheckParts:
    d20: int
    stat: int
    item: int
    situational: int


@dataclass
class CheckResult:
    name: str
    dc: int
    parts: CheckParts
    total: int
    result: Tier


@dataclass
class TurnDebug:
    seed: str
    rolls: list[int]
    checks: list[CheckResult]
    items_used: list[dict]
    state_delta: dict

    def to_dict(self) -> dict:
        return {
            "seed": self.seed,
            "rolls": list(self.rolls),
            "checks": [asdict(check) for check in self.checks],
            "itemsUsed": [dict(item) for item in self.items_used],
            "stateDelta": dict(self.state_delta),
        }


@dataclass
class EngineOutput:
    outcome_summary: str
    checks_brief: list[str]
    world_delta: WorldDelta
    actions_remaining: int
    debug: TurnDebug

    @property
    def check(self) -> CheckResult:
        return self.debug.checks[0]

    def to_dict(self, *, include_debug: bool = True) -> dict:
        payload = {
            "outcomeSummary": self.outcome_summary,
            "checksBrief": list(self.checks_brief),
            "worldDelta": self.world_delta.to_dict(),
            "actionsRemaining": self.actions_remaining,
        }
        if include_debug:
            payload["debug"] = self.debug.to_dict()
        return payload


def resolve_turn(engine_input: EngineInput) -> EngineOutput:
    """Resolve one player action into a mechanical outcome.

    The roll is drawn from a stream seeded by ``session_id:turn_index`` so a
    retried turn replays the same fate. No I/O and no exceptions for
    malformed state: unknown shapes fall back to neutral modifiers.
    """
    state = engine_input.state
    if not isinstance(state, GameState):
        state = normalize_game_state(state)
    stats = engine_input.stats
    if not isinstance(stats, Stats):
        stats = Stats.from_dict(stats)

    rng = TurnRng.for_turn(engine_input.session_id, engine_input.turn_index)
    intent = classify(engine_input.player_input)
    primary = governing_stat(intent)
    situational = situational_modifier(state, intent)
    dc = difficulty_class(intent, situational)
    item_bonus, item_notes, items_used = infer_item_bonus(
        state, engine_input.player_input, intent
    )

    natural = roll_d20(rng, label=intent)
    stat_value = stats.value(primary)
    total = natural + stat_value + item_bonus + situational
    result = categorize(total, dc, natural, stats.value("LCK"))

    world_delta = WorldDelta(item_notes=item_notes)
    if result == "mixed":
        world_delta.injury = "minor"
    if result == "fail" and intent in RISKY_INTENTS:
        world_delta.flags.append(DEATH_GATE_FLAG)

    check = CheckResult(
        name=intent.capitalize(),
        dc=dc,
        parts=CheckParts(
            d20=natural, stat=stat_value, item=item_bonus, situational=situational
        ),
        total=total,
        result=result,
    )
    logger.debug(
        "Resolved %s for %s: d20=%s total=%s dc=%s -> %s",
        intent,
        rng.seed_text,
        natural,
        total,
        dc,
        result,
    )

    return EngineOutput(
        outcome_summary=OUTCOME_TEMPLATES[result].format(intent=intent),
        checks_brief=[_checks_brief(check, primary)],
        world_delta=world_delta,
        actions_remaining=_decrement_actions(engine_input.actions_remaining),
        debug=TurnDebug(
            seed=rng.seed_text,
            rolls=rng.rolls,
            checks=[check],
            items_used=items_used,
            state_delta=world_delta.to_dict(),
        ),
    )


def situational_modifier(state: GameState, intent: str) -> int:
    modifier = 0
    modifier += LIGHT_MODIFIERS.get(state.env.light, 0)
    modifier += WEATHER_MODIFIERS.get(state.env.weather, 0)
    modifier += TERRAIN_MODIFIERS.get(state.env.terrain, 0)
    if intent in RANGED_INTENTS:
        modifier += RANGE_MODIFIERS.get(state.range, 0)
    return modifier


def difficulty_class(intent: str, situational: int) -> int:
    return BASE_DCS.get(intent, DEFAULT_DC) + max(0, -situational)


def infer_item_bonus(
    state: GameState,
    player_input: str,
    intent: str,
) -> tuple[int, list[str], list[dict]]:
    text = player_input.lower() if isinstance(player_input, str) else ""
    bonus = 0
    notes: list[str] = []
    used: list[dict] = []
    for item_intent, item_name, item_bonus, note in ITEM_BONUSES:
        if item_intent != intent:
            continue
        if state.has_item(item_name) or item_name in text:
            bonus += item_bonus
            notes.append(note)
            used.append({"name": item_name, "effect": note})
    return bonus, notes, used


def categorize(total: int, dc: int, natural: int, luck: int) -> Tier:
    # Cinematic luck: a lucky character wins exact ties by one point.
    effective = total + 1 if total == dc and luck >= LUCKY_TIE_THRESHOLD else total
    if natural == 20 or effective >= dc + CRITICAL_MARGIN:
        return "critical"
    if effective >= dc:
        return "success"
    if effective >= dc - MIXED_MARGIN:
        return "mixed"
    return "fail"


def _decrement_actions(actions_remaining: Any) -> int:
    value = clean_number(actions_remaining)
    if value is None:
        return 0
    return max(0, value - 1)


def _checks_brief(check: CheckResult, primary: str) -> str:
    formula = f"d20+{primary}"
    if check.parts.item:
        formula += "+item"
    if check.parts.situational:
        formula += "+situ"
    return f"{check.name} {check.result.upper()} ({formula} vs DC{check.dc})"
