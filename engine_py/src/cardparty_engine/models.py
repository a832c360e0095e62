"""Game models and data structures"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from .constants import (
    ANTE, GAME_INDIAN_POKER, GAME_THIEF_CATCHER, STARTING_CHIPS, STATUS_WAITING,
)

GameType = Literal['thief-catcher', 'indian-poker']
RoomStatus = Literal['waiting', 'playing', 'betting', 'reveal', 'finished']
CardValue = Union[int, str]


@dataclass(frozen=True)
class Card:
    id: str
    suit: str
    value: CardValue
    is_joker: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'suit': self.suit,
            'value': self.value,
            'is_joker': self.is_joker,
        }


@dataclass
class Player:
    id: str  # connection id
    nickname: str
    is_host: bool = False
    is_ready: bool = False


@dataclass
class ThiefCatcherPlayer(Player):
    cards: List[Card] = field(default_factory=list)
    is_eliminated: bool = False
    finish_order: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return not self.is_eliminated and len(self.cards) > 0


@dataclass
class IndianPokerPlayer(Player):
    chips: int = STARTING_CHIPS
    current_card: Optional[Card] = None
    total_bet: int = 0  # cumulative bet this round, ante included
    is_spectator: bool = False


@dataclass
class ThiefCatcherRoom:
    room_code: str
    game_type: GameType = GAME_THIEF_CATCHER
    status: RoomStatus = STATUS_WAITING
    version: int = 0
    players: List[ThiefCatcherPlayer] = field(default_factory=list)
    turn_order: List[str] = field(default_factory=list)
    current_turn_id: Optional[str] = None
    next_target_id: Optional[str] = None
    winners: List[Dict[str, Any]] = field(default_factory=list)  # {id, nickname, order}
    loser: Optional[Dict[str, Any]] = None

    def get_player(self, player_id: str) -> Optional[ThiefCatcherPlayer]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def active_players(self) -> List[ThiefCatcherPlayer]:
        return [p for p in self.players if p.is_active]

    def members(self) -> List[Player]:
        return list(self.players)

    def increment_version(self):
        self.version += 1


@dataclass
class IndianPokerRoom:
    room_code: str
    game_type: GameType = GAME_INDIAN_POKER
    status: RoomStatus = STATUS_WAITING
    version: int = 0
    players: List[IndianPokerPlayer] = field(default_factory=list)
    spectators: List[IndianPokerPlayer] = field(default_factory=list)
    deck: List[Card] = field(default_factory=list)
    pot: int = 0
    current_bet_amount: int = ANTE
    current_better_id: Optional[str] = None
    first_better_id: Optional[str] = None
    round_winner_id: Optional[str] = None
    last_action: Optional[str] = None
    round_number: int = 0
    match_winner: Optional[Dict[str, Any]] = None

    def get_player(self, player_id: str) -> Optional[IndianPokerPlayer]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def get_spectator(self, player_id: str) -> Optional[IndianPokerPlayer]:
        for spectator in self.spectators:
            if spectator.id == player_id:
                return spectator
        return None

    def opponent_of(self, player_id: str) -> Optional[IndianPokerPlayer]:
        for player in self.players:
            if player.id != player_id:
                return player
        return None

    def members(self) -> List[Player]:
        return list(self.players) + list(self.spectators)

    def increment_version(self):
        self.version += 1


Room = Union[ThiefCatcherRoom, IndianPokerRoom]


def player_summary(player: Player) -> Dict[str, Any]:
    """Identity fields shared by every game-over / winner payload."""
    return {'id': player.id, 'nickname': player.nickname}
