"""Room code and nickname helpers."""

import random
from typing import Callable, Optional

from .constants import (
    NICKNAME_ADJECTIVES, NICKNAME_MAX_LENGTH, NICKNAME_NOUNS, ROOM_CODE_CHARS,
    ROOM_CODE_LENGTH,
)
from .errors import VALIDATION_ERROR, raise_error


def generate_room_code(
    rng: Optional[random.Random] = None,
    length: int = ROOM_CODE_LENGTH,
    is_taken: Callable[[str], bool] = lambda code: False,
) -> str:
    rng = rng or random.Random()
    while True:
        code = ''.join(rng.choice(ROOM_CODE_CHARS) for _ in range(length))
        if not is_taken(code):
            return code


def random_nickname(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"{rng.choice(NICKNAME_ADJECTIVES)}{rng.choice(NICKNAME_NOUNS)}{rng.randint(0, 99)}"


def validate_nickname(nickname: Optional[str], max_length: int = NICKNAME_MAX_LENGTH) -> str:
    """Return the trimmed nickname or raise VALIDATION_ERROR."""
    cleaned = (nickname or '').strip()
    if not cleaned:
        raise_error(VALIDATION_ERROR, "Nickname must not be empty")
    if len(cleaned) > max_length:
        raise_error(VALIDATION_ERROR, f"Nickname must be at most {max_length} characters")
    return cleaned
