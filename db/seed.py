import json
import sys
from pathlib import Path
from typing import Any

SCRIPT_DIR = Path(__file__).resolve().parent
sys.path = [path for path in sys.path if Path(path).resolve() != SCRIPT_DIR]

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(REPO_ROOT))
sys.path.insert(0, str(BACKEND_DIR))

from db import get_session  # noqa: E402
from models import Mission  # noqa: E402
from rules.missions import ensure_header_on_brief, parse_mission_header  # noqa: E402

MISSIONS_FILE = REPO_ROOT / "docs" / "jsons" / "missions.json"

STARTER_MISSIONS: list[dict[str, Any]] = [
    {
        "title": "The Bell in the Marsh",
        "brief": (
            "A Blessed courier went silent near the flooded causeway. "
            "Carry the sealed reliquary to the chapel at Saint-Aubin before dusk."
        ),
        "objective": "Deliver the reliquary to Saint-Aubin.",
        "opening": "Fog lies on the reeds. Somewhere ahead, a bell tolls once.",
        "mission_prompt": (
            "Terrain: flooded causeway, rotten planking. Pressure: lamp oil is low. "
            "Complication: a belled revenant pack drifts toward the sound of splashing."
        ),
        "mission_type": "Deliver",
        "factions": ["The Blessed"],
    },
    {
        "title": "Powder for Verdun",
        "brief": (
            "The Verdun enclave is down to its last kegs of powder. "
            "Recover the cache buried under the old toll house on the Heartland road."
        ),
        "objective": "Recover the powder cache.",
        "opening": "Rain beads on the toll house shutters. The door hangs open.",
        "mission_prompt": (
            "Terrain: mud road, collapsed cellar. Pressure: powder, water. "
            "Complication: Prussian League scouts are mapping the same road."
        ),
        "mission_type": "Recover",
        "factions": ["Prussian League"],
    },
    {
        "title": "The Surgeon's Daughter",
        "brief": (
            "A surgeon's daughter was taken by raiders past the Western Marches. "
            "Bring her home alive; the enclave needs her hands."
        ),
        "objective": "Rescue the surgeon's daughter.",
        "opening": "Wheel ruts cut west through the frost. Three riders, one cart.",
        "mission_prompt": (
            "Terrain: frozen ruts, birch woods. Pressure: medicine, salt. "
            "Complication: the raiders are bargaining with the English Crown."
        ),
        "mission_type": "Rescue",
        "factions": ["English Crown"],
    },
]


def load_missions() -> list[dict[str, Any]]:
    if not MISSIONS_FILE.exists():
        print(f"Missing {MISSIONS_FILE}, using starter missions.")
        return STARTER_MISSIONS
    with MISSIONS_FILE.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    return data if isinstance(data, list) else STARTER_MISSIONS


def seed_missions(session, missions: list[dict[str, Any]]) -> int:
    created = 0
    for item in missions:
        if not isinstance(item, dict) or not item.get("title") or not item.get("brief"):
            continue
        exists = session.query(Mission).filter_by(title=item["title"]).first()
        if exists:
            continue
        brief = ensure_header_on_brief(
            item["brief"],
            mission_type=item.get("mission_type"),
            factions=item.get("factions") or [],
        )
        session.add(
            Mission(
                title=item["title"],
                brief=brief,
                objective=item.get("objective"),
                opening=item.get("opening"),
                mission_prompt=item.get("mission_prompt"),
                mission_type=parse_mission_header(brief).mission_type,
            )
        )
        created += 1
    return created


def main() -> None:
    with get_session() as session:
        created = seed_missions(session, load_missions())
    print(f"Seeded {created} missions.")


if __name__ == "__main__":
    main()
