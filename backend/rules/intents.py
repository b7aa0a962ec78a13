from __future__ import annotations

import re
from typing import Literal

IntentTag = Literal[
    "climb",
    "sneak",
    "shoot",
    "melee",
    "search",
    "talk",
    "intimidate",
    "run",
    "use",
    "other",
]

# Order matters: the first pattern that matches wins. Only the first keyword
# of each alternation is anchored at a word start and only the last one at a
# word end; the keywords in between match anywhere.
INTENT_PATTERNS: tuple[tuple[re.Pattern[str], IntentTag], ...] = (
    (re.compile(r"\bclimb|scale|ascend\b", re.IGNORECASE), "climb"),
    (re.compile(r"\bsneak|creep|quiet\b", re.IGNORECASE), "sneak"),
    (re.compile(r"\bshoot|aim|fire\b", re.IGNORECASE), "shoot"),
    (re.compile(r"\bstab|slash|strike|swing|melee\b", re.IGNORECASE), "melee"),
    (re.compile(r"\bsearch|look|scan|inspect|track\b", re.IGNORECASE), "search"),
    (re.compile(r"\btalk|persuade|ask|plead\b", re.IGNORECASE), "talk"),
    (re.compile(r"\bthreat|intimidate|menace\b", re.IGNORECASE), "intimidate"),
    (re.compile(r"\brun|dash|dodge|roll\b", re.IGNORECASE), "run"),
    (re.compile(r"\buse\b", re.IGNORECASE), "use"),
)

GOVERNING_STATS: dict[str, str] = {
    "climb": "STR",
    "sneak": "PER",
    "shoot": "PRC",
    "melee": "STR",
    "search": "PER",
    "talk": "CHA",
    "intimidate": "MEN",
    "run": "RFX",
}
DEFAULT_STAT = "PER"

RANGED_INTENTS = {"shoot"}
RISKY_INTENTS = {"melee", "climb"}


def classify(player_input: str | None) -> IntentTag:
    if not isinstance(player_input, str) or not player_input.strip():
        return "other"
    for pattern, tag in INTENT_PATTERNS:
        if pattern.search(player_input):
            return tag
    return "other"


def governing_stat(intent: str) -> str:
    return GOVERNING_STATS.get(intent, DEFAULT_STAT)
