from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
UINT32_MASK = 0xFFFFFFFF


def seed_string(session_id: str, turn_index: int) -> str:
    return f"{session_id}:{turn_index}"


def hash_to_int(value: str) -> int:
    """FNV-1a over the string's UTF-16 code units, folded to 32 bits.

    Characters outside the Basic Multilingual Plane contribute both halves of
    their surrogate pair, so seeds match hashes computed over UTF-16 strings.
    """
    data = value.encode("utf-16-le", "surrogatepass")
    h = FNV_OFFSET_BASIS
    for index in range(0, len(data), 2):
        unit = data[index] | (data[index + 1] << 8)
        h = ((h ^ unit) * FNV_PRIME) & UINT32_MASK
    return h


class LcgStream:
    def __init__(self, seed: int) -> None:
        self.state = seed & UINT32_MASK

    def next_float(self) -> float:
        self.state = (LCG_MULTIPLIER * self.state + LCG_INCREMENT) & UINT32_MASK
        return self.state / 2**32

    def randint(self, low: int, high: int) -> int:
        return low + int(self.next_float() * (high - low + 1))


@dataclass
class TurnRng:
    seed_text: str
    turn_log: list[dict] = field(default_factory=list)
    stream: LcgStream = field(init=False)

    def __post_init__(self) -> None:
        self.stream = LcgStream(hash_to_int(self.seed_text))

    @classmethod
    def for_turn(cls, session_id: str, turn_index: int) -> "TurnRng":
        return cls(seed_text=seed_string(session_id, turn_index))

    @property
    def rolls(self) -> list[int]:
        return [entry["result"] for entry in self.turn_log]


def _log_roll(
    rng: TurnRng,
    *,
    formula: str,
    result: int,
    rolls: Iterable[int],
    label: str | None,
) -> None:
    rng.turn_log.append(
        {
            "formula": formula,
            "result": result,
            "rolls": list(rolls),
            "label": label,
        }
    )


def roll_d20(rng: TurnRng, *, label: str | None = None) -> int:
    result = rng.stream.randint(1, 20)
    _log_roll(rng, formula="1d20", result=result, rolls=[result], label=label)
    return result
