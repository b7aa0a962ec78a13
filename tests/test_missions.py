from types import SimpleNamespace

from rules.missions import ensure_header_on_brief, mission_snapshot, parse_mission_header


def test_parse_strict_header() -> None:
    brief = "Type: Rescue | Factions: English Crown, The Blessed — Bring her home.\nMore detail."
    header = parse_mission_header(brief)
    assert header.mission_type == "Rescue"
    assert header.factions == ["English Crown", "The Blessed"]
    assert header.stripped == "Bring her home.\nMore detail."


def test_parse_normalizes_plain_dashes() -> None:
    header = parse_mission_header("Type: Recover | Factions: Prussian League - Dig up the powder.")
    assert header.mission_type == "Recover"
    assert header.factions == ["Prussian League"]
    assert header.stripped == "Dig up the powder."


def test_parse_loose_header() -> None:
    header = parse_mission_header("Type: Hunt – Track the belled pack.")
    assert header.mission_type == "Hunt"
    assert header.factions == []
    assert header.stripped == "Track the belled pack."


def test_parse_without_header() -> None:
    header = parse_mission_header("Carry the reliquary to Saint-Aubin.")
    assert header.mission_type is None
    assert header.stripped == "Carry the reliquary to Saint-Aubin."
    assert parse_mission_header(None).stripped == ""


def test_ensure_header_adds_teaser() -> None:
    brief = "A courier went silent. Carry the reliquary before dusk."
    result = ensure_header_on_brief(brief, factions=["The Blessed"])
    assert result == (
        "Type: Deliver | Factions: The Blessed — A courier went silent.\n" + brief
    )
    header = parse_mission_header(result)
    assert header.mission_type == "Deliver"
    assert header.factions == ["The Blessed"]


def test_ensure_header_keeps_existing_header() -> None:
    brief = "Type: Escort — Walk the surgeon to the gate."
    assert ensure_header_on_brief(brief, mission_type="Rescue") == brief


def test_ensure_header_uses_given_type_and_fallback() -> None:
    result = ensure_header_on_brief(
        "No full stop here", mission_type="Hunt", teaser_fallback="Short teaser"
    )
    assert result == "Type: Hunt — Short teaser\nNo full stop here"


def test_mission_snapshot_copies_context() -> None:
    row = SimpleNamespace(
        title="Powder for Verdun",
        brief="Recover the cache.",
        objective="Recover the powder cache.",
        mission_prompt="Terrain: mud road.",
    )
    snapshot = mission_snapshot(row)
    assert snapshot.to_dict() == {
        "title": "Powder for Verdun",
        "brief": "Recover the cache.",
        "objective": "Recover the powder cache.",
        "mission_prompt": "Terrain: mud road.",
    }
    assert mission_snapshot(SimpleNamespace(title=None)).title == "Unknown"
