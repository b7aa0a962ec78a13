from __future__ import annotations

MAX_PLAYER_INPUT_LENGTH = 50


class ValidationError(ValueError):
    pass


def validate_player_input(player_input: object) -> str:
    if not isinstance(player_input, str):
        raise ValidationError("playerInput must be a string.")
    if not player_input.strip():
        raise ValidationError("playerInput is required.")
    if len(player_input) > MAX_PLAYER_INPUT_LENGTH:
        raise ValidationError(
            f"playerInput must be ≤ {MAX_PLAYER_INPUT_LENGTH} chars."
        )
    return player_input


def validate_actions_remaining(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("actionsRemaining must be an integer.")
    if value < 0 or value > 10:
        raise ValidationError("actionsRemaining must be between 0 and 10.")
    return value
