# engine_py/src/cardparty_engine/errors.py

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class GameError(Exception):
    """Base exception for game-related errors."""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")

# Specific error codes
ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
ROOM_EXISTS = "ROOM_EXISTS"
ROOM_FULL = "ROOM_FULL"
NOT_IN_ROOM = "NOT_IN_ROOM"
NOT_HOST = "NOT_HOST"
NOT_YOUR_TURN = "NOT_YOUR_TURN"
INVALID_TARGET = "INVALID_TARGET"
INVALID_BET = "INVALID_BET"
INVALID_STATE = "INVALID_STATE"
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_EVENT = "INVALID_EVENT"
INTERNAL_ERROR = "INTERNAL"

# Helper function to raise common errors
def raise_error(code: str, message: str):
    raise GameError(code, message)


@dataclass
class ActionResult:
    """Outcome of a mutating operation; failures go back to the requester only."""
    success: bool
    data: Any = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str) -> "ActionResult":
        return cls(success=False, error_code=code, error_message=message)


def game_action(func: Callable[..., Any]) -> Callable[..., ActionResult]:
    """
    Wrap an operation that raises GameError so that it returns an ActionResult.

    The wrapped function's return value becomes ``ActionResult.data``.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> ActionResult:
        try:
            return ActionResult.ok(func(*args, **kwargs))
        except GameError as e:
            logger.info(f"{func.__name__} rejected: {e}")
            return ActionResult.fail(e.code, e.message)
    return wrapper
