"""
Game rule configuration and validation.
"""

import os

from pydantic import BaseModel, Field, field_validator

from .constants import (
    ANTE, FOLD_PENALTY, FOLD_PENALTY_RANK, GAME_INDIAN_POKER,
    INDIAN_POKER_MAX_PLAYERS, MIN_PLAYERS, NICKNAME_MAX_LENGTH,
    ROOM_CODE_LENGTH, STARTING_CHIPS, THIEF_CATCHER_MAX_PLAYERS, WINNING_CHIPS,
)

ENV_PREFIX = "CARDPARTY_"


class RuleConfig(BaseModel):
    """Configuration for game rules and settings."""

    thief_catcher_max_players: int = Field(
        default=THIEF_CATCHER_MAX_PLAYERS,
        ge=2,
        le=8,
        description="Seats at a Thief Catcher table; further joiners are refused"
    )
    indian_poker_max_players: int = Field(
        default=INDIAN_POKER_MAX_PLAYERS,
        ge=2,
        le=2,
        description="Seats at an Indian Poker table; further joiners spectate"
    )
    min_players: int = Field(
        default=MIN_PLAYERS,
        ge=2,
        description="Minimum number of players required to start"
    )
    starting_chips: int = Field(default=STARTING_CHIPS, ge=2)
    winning_chips: int = Field(default=WINNING_CHIPS, ge=3)
    ante: int = Field(default=ANTE, ge=1)
    fold_penalty_rank: int = Field(default=FOLD_PENALTY_RANK, ge=1, le=10)
    fold_penalty: int = Field(default=FOLD_PENALTY, ge=0)
    nickname_max_length: int = Field(default=NICKNAME_MAX_LENGTH, ge=1, le=32)
    room_code_length: int = Field(default=ROOM_CODE_LENGTH, ge=4, le=12)
    reveal_timeout: float = Field(
        default=8.0,
        ge=0,
        description="Seconds after a reveal before the server deals the next round itself (0 = never)"
    )

    @field_validator('winning_chips')
    @classmethod
    def validate_winning_chips(cls, v, info):
        """Winning threshold must be above the starting stack."""
        starting = info.data.get('starting_chips', STARTING_CHIPS)
        if v <= starting:
            raise ValueError(f'winning_chips ({v}) must be > starting_chips ({starting})')
        return v

    def max_players(self, game_type: str) -> int:
        if game_type == GAME_INDIAN_POKER:
            return self.indian_poker_max_players
        return self.thief_catcher_max_players

    @classmethod
    def from_env(cls, environ=None) -> "RuleConfig":
        """Build a config from ``CARDPARTY_<FIELD>`` environment overrides."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for name in cls.model_fields:
            value = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls(**overrides)


# Default configuration instance
default_rules = RuleConfig()


def create_rules(**overrides) -> RuleConfig:
    """Create a RuleConfig with optional overrides."""
    config_dict = default_rules.model_dump()
    config_dict.update(overrides)
    return RuleConfig(**config_dict)
