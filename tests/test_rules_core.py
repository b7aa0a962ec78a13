from rules.core import LcgStream, TurnRng, hash_to_int, roll_d20, seed_string


def test_fnv1a_known_vectors() -> None:
    assert hash_to_int("") == 2166136261
    assert hash_to_int("a") == 0xE40C292C


def test_seed_string_joins_session_and_turn() -> None:
    assert seed_string("sess-A", 3) == "sess-A:3"


def test_adjacent_turns_hash_differently() -> None:
    ...


def test_lcg_first_draw() -> None:
    stream = LcgStream(0)
    assert stream.next_float() == 1013904223 / 2**32


def test_lcg_stays_in_unit_interval() -> None:
    stream = LcgStream(hash_to_int("sess-B:7"))
    for _ in range(500):
        value = stream.next_float()
        assert 0 <= value < 1


def test_deterministic_rolls_with_seed() -> None:
    first = TurnRng.for_turn("sess-A", 0)
    second = TurnRng.for_turn("sess-A", 0)

    assert roll_d20(first) == roll_d20(second)
    assert roll_d20(first) == roll_d20(second)


def test_d20_range() -> None:
    for turn_index in range(200):
        rng = TurnRng.for_turn("range-check", turn_index)
        assert 1 <= roll_d20(rng) <= 20


def test_roll_logging() -> None:
    rng = TurnRng.for_turn("sess-log", 2)

    result = roll_d20(rng, label="climb")

    assert rng.seed_text == "sess-log:2"
    assert len(rng.turn_log) == 1
    entry = rng.turn_log[0]
    assert entry["formula"] == "1d20"
    assert entry["result"] == result
    assert entry["rolls"] == [result]
    assert entry["label"] == "climb"
    assert rng.rolls == [result]


def test_hash_folds_utf16_surrogate_pairs() -> None:
    expected = 2166136261
    for unit in (0xD83E, 0xDEA2):
        expected = ((expected ^ unit) * 16777619) & 0xFFFFFFFF

    assert hash_to_int("\U0001FAA2") == expected
