from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from rules.state import Mission

DEFAULT_MISSION_TYPE = "Deliver"
MISSION_TYPES = ("Deliver", "Rescue", "Recover", "Hunt", "Escort")
TEASER_LIMIT = 120

DASH_PATTERN = re.compile(r"\s+[-–—]\s+")
STRICT_HEADER = re.compile(
    r"^Type:\s*([^|—]+?)\s*\|\s*Factions:\s*([^—]+?)\s*—\s*(.*)$",
    re.IGNORECASE | re.DOTALL,
)
LOOSE_HEADER = re.compile(r"^Type:\s*([^—]+?)\s*—\s*(.*)$", re.IGNORECASE | re.DOTALL)
SENTENCE_END = re.compile(r"(?<=\.)\s")


@dataclass(frozen=True)
class ParsedHeader:
    mission_type: str | None
    factions: list[str] = field(default_factory=list)
    stripped: str = ""


def parse_mission_header(brief: str | None) -> ParsedHeader:
    text = (brief or "").strip()
    if not text:
        return ParsedHeader(mission_type=None)

    normalized = DASH_PATTERN.sub(" — ", text)
    strict = STRICT_HEADER.match(normalized)
    if strict:
        factions = [name.strip() for name in strict.group(2).split(",") if name.strip()]
        return ParsedHeader(
            mission_type=strict.group(1).strip() or None,
            factions=factions,
            stripped=strict.group(3).strip(),
        )

    loose = LOOSE_HEADER.match(normalized)
    if loose:
        return ParsedHeader(
            mission_type=loose.group(1).strip() or None,
            stripped=loose.group(2).strip(),
        )

    return ParsedHeader(mission_type=None, stripped=text)


def ensure_header_on_brief(
    brief: str,
    *,
    mission_type: str | None = None,
    factions: Iterable[str] = (),
    teaser_fallback: str | None = None,
) -> str:
    if parse_mission_header(brief).mission_type:
        return brief

    kind = mission_type or DEFAULT_MISSION_TYPE
    faction_list = [name for name in factions if name]
    faction_text = f" | Factions: {', '.join(faction_list)}" if faction_list else ""
    teaser = teaser_fallback or SENTENCE_END.split(brief)[0] or brief[:TEASER_LIMIT]
    return f"Type: {kind}{faction_text} — {teaser}\n{brief}"


def mission_snapshot(mission: Any) -> Mission:
    """Copy the read-only mission context a session carries in its state."""
    return Mission(
        title=getattr(mission, "title", None) or "Unknown",
        brief=getattr(mission, "brief", None),
        objective=getattr(mission, "objective", None),
        mission_prompt=getattr(mission, "mission_prompt", None),
    )
