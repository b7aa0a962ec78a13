from __future__ import annotations

from typing import Iterable

WORD_BUDGET = 150

CANON_CORE = """
Core canon:
- Alternate 19th-century France; "La Brume" miasma reanimates dead: "Revenants."
- Fractured enclaves; travel is lethal and slow.
- Tech: steam/clockwork/early electrics; flintlocks/revolvers/rifles; horse/foot; rare steam carriages.
- Revenants react to light/vibration; stillness and silence help.
- Tone: present tense, spare, grounded; one beat; <=150 words; no options/advice.
- Summary: 3 bullets; facts must appear in narrative; include "Actions remaining".
- Factions: Prussian League (cold blue, brass); The Blessed (bells on revenants); English Crown (theocratic).
- Revenants and bandits are deadly in equal measure.
- Regions: Crater Lands; Heartland; Western Marches; Frontier toward Prussia.
""".strip()

SYSTEM_GM = f"""
Role: Game Master for LES COUREURS, alternate 19th-century Europe ravaged by undeath.
Voice: Present tense, spare, {WORD_BUDGET} words max.
Purpose: Describe the immediate consequence of the player's action. One meaningful beat. No options or advice.
{CANON_CORE}
Format: Narrative + exactly three summary bullets + actions remaining.
Rules: No invented player intent. No new facts in summary. Summary facts must appear in the narrative.
""".strip()

WORLD_CAPSULE = """
WORLD CAPSULE: Les Coureurs (authoritative, concise)

Tone & Style
- Restrained, bleak, practical. No modern slang or quips. Concrete, sensory prose.

Era & Technology
- Alternate early-19th-century Europe (France + neighbors).
- Flintlocks/black powder; sabers/polearms; rope & pulleys; horse carts and river barges.
- Oil lanterns/candles for light. No radios, no electricity grid, no cars, no modern medicine.

Revenants & La Brume
- Ten years ago, the dead came back to life ("Revenants").
- Revenants were first caused by "La Brume," a toxic miasma released by a meteor a decade ago.
- Cold slows them; warmth emboldens them. Sound, light, and the scent of blood draw them.

World Texture
- Walled, under-supplied settlements; dangerous roads, flooded causeways, ruined bridges.
- Scarcity matters: salt, powder/shot, lamp oil, clean water, medicines, spare parts.

Factions & Powers
- The Prussian League: disciplined technocrats claiming to "discipline" the Brume.
- The English Crown: theocratic monarchy; crusading zeal against "impurity."
- The Blessed: ascetics who bell-mark revenants rather than slay them.
- The Lost Nobles: faded aristocracy funding crater expeditions to find the "Core."

Geography & Seasonality
- Regions spoken of by memory: Crater Lands; Heartland; Western Marches; the Frontier near Prussia.
- La Brume is strongest in summer and thins in winter; roads and risks shift with weather.
""".strip()

GM_TURN_SYSTEM = """
You are the Game Master for LES COUREURS, a grounded, lethal world.
Honor the World Capsule and the mission seed. Reply in JSON only.
""".strip()

ITEM_CRAFTER_SYSTEM = "Return JSON only. No prose."


def build_user_prompt(
    *,
    player_input: str,
    outcome_summary: str,
    actions_remaining: int,
    recent_history: Iterable[str] = (),
    lore_hints: Iterable[str] | None = None,
    mission: dict | None = None,
    checks_brief: Iterable[str] = (),
    world_delta: dict | None = None,
) -> str:
    history_lines = [line for line in recent_history if line]
    hint_lines = [line for line in lore_hints or [] if line]
    check_lines = [line for line in checks_brief if line]
    consequence_lines = world_delta_lines(world_delta)

    sections = [f"You are writing the next beat of a mission in <={WORD_BUDGET} words."]
    if mission:
        sections.append(
            "Mission:\n"
            f"title: {mission.get('title') or 'Unknown'}\n"
            f"objective: {mission.get('objective') or '-'}\n"
            f"guidance: {mission.get('mission_prompt') or '-'}"
        )
    if hint_lines:
        sections.append(
            "Canon notes (for consistency; do not invent beyond these):\n- "
            + "\n- ".join(hint_lines)
        )
    if history_lines:
        sections.append("Recent history:\n- " + "\n- ".join(history_lines))
    sections.append(
        f'Player input: "{player_input}"\n'
        f"Engine outcome summary: {outcome_summary}\n"
        f"Actions remaining after this reply: {actions_remaining}"
    )
    if check_lines:
        sections.append("Engine check:\n- " + "\n- ".join(check_lines))
    if consequence_lines:
        sections.append(
            "Consequences to show in the narrative:\n- " + "\n- ".join(consequence_lines)
        )
    sections.append(
        "Write:\n"
        f"1) A single narrative paragraph (<={WORD_BUDGET} words). Present tense. "
        "No options or advice. No invented intent beyond the literal action.\n"
        "2) Then exactly this block:\n\n"
        "---\n"
        "**Summary**\n"
        "- Fact 1 (must be explicitly stated in narrative)\n"
        "- Fact 2 (must be explicitly stated in narrative)\n"
        "- Fact 3 (must be explicitly stated in narrative)\n"
        f"- **Actions remaining:** {actions_remaining}"
    )
    sections.append(
        "Hard rules:\n"
        f"- {WORD_BUDGET} words max in the narrative (do not exceed).\n"
        "- Summary facts must appear verbatim in the narrative (no new info).\n"
        "- Do not add extra bullets or headings."
    )
    return "\n\n".join(sections)


def build_gm_turn_rails(actions_remaining: int) -> str:
    return f"""
FORMAT
- Return strictly JSON: {{ "narration": string, "summary": string[], "actionsRemaining": number }}.
- Narration <= {WORD_BUDGET} words, present tense, concrete and restrained.
- Summary: 1-3 bullet strings; each must be a fact explicitly stated in the narration (no new info).
- actionsRemaining: return exactly {actions_remaining}.

AGENCY & CHALLENGE
- Challenge the player by introducing obstacles and dilemmas every turn. Every mission courts death.
- Punish mistakes (costs, wounds, delays); reward cleverness and resourcefulness.
- NEVER take actions or make decisions on behalf of the player.
- As turns elapse or the player nears the objective, escalate danger and pressure credibly.

TURN RESOLUTION
- Resolve ONLY the player's stated action. Apply immediate, realistic consequences.
- Use mission.mission_prompt to keep terrain, faction motives and resource pressures coherent.
- Advance clocks/pressures when warranted. No suggested options in this response.
""".strip()


def build_gm_start_rails(actions_remaining: int) -> str:
    return f"""
FORMAT
- Return strictly JSON: {{ "narration": string, "summary": string[], "actionsRemaining": number }}.
- Narration <= {WORD_BUDGET} words, present tense, concrete and restrained.
- Summary: 1-3 bullet strings; each must be a fact explicitly stated in the narration (no new info).
- actionsRemaining: return exactly {actions_remaining}.

OPENING
- Use mission.opening if provided to stage the first scene (tighten/clarify but do not contradict).
- Integrate mission.mission_prompt for terrain, motive, resource pressure, and a complication trigger.
- Set the scene, establish the danger and stakes, and create excitement for the journey ahead.
- Do NOT present choices in this response.
""".strip()


def build_item_prompt(user_text: str) -> str:
    return "\n".join(
        [
            "You are an item-crafter for a grim survival-horror RPG set in early 19th-century Europe.",
            "Generate a single inventory item from the user's request.",
            "",
            "Rules:",
            "- Name is short and diegetic (<= 3 words).",
            "- Emoji is a recognizable single emoji for quick scanning.",
            "- Desc is 1-2 sentences, grounded and practical.",
            "- item_slug is lowercased, kebab-case, unique-ish.",
            "- qty is a sensible default integer >= 1.",
            "",
            "Output JSON ONLY with keys exactly: name, emoji, desc, item_slug, qty.",
            "",
            f"User: {user_text}",
        ]
    )


def fallback_text(
    player_input: str,
    outcome_summary: str,
    actions_remaining: int,
    injury: str | None,
) -> str:
    injury_line = f"Injury: {injury}" if injury else "No injury"
    return (
        f"You {player_input}. {outcome_summary}\n"
        "Rain taps the road. The air tastes of iron. You move on.\n"
        "\n"
        "---\n"
        "**Summary**\n"
        f"- {outcome_summary}\n"
        f"- Action: {player_input}\n"
        f"- {injury_line}\n"
        f"- **Actions remaining:** {actions_remaining}"
    )


def world_delta_lines(world_delta: dict | None) -> list[str]:
    if not world_delta:
        return []
    lines = []
    injury = world_delta.get("injury")
    if injury:
        lines.append(f"Injury: {injury}")
    lines.extend(note for note in world_delta.get("itemNotes") or [] if note)
    for change in world_delta.get("inventoryChanges") or []:
        name = change.get("name") or change.get("id")
        delta = change.get("delta")
        if not name or not isinstance(delta, int):
            continue
        line = f"Inventory: {name} {delta:+d}"
        if change.get("status"):
            line += f" ({change['status']})"
        lines.append(line)
    return lines
