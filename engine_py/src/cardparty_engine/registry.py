"""
In-memory room registry.

One table per game type maps room codes to room records. The registry is
an ordinary object handed to the dispatch layer, so tests and multiple
servers in one process each get their own.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, Optional, Union

from .constants import (
    ACTIVE_STATUSES, GAME_INDIAN_POKER, GAME_THIEF_CATCHER, GAME_TYPES,
    STATUS_WAITING,
)
from .errors import (
    INVALID_STATE, NOT_IN_ROOM, ROOM_EXISTS, ROOM_FULL, ROOM_NOT_FOUND,
    VALIDATION_ERROR, game_action, raise_error,
)
from .indian_poker import IndianPokerEngine
from .models import (
    IndianPokerPlayer, IndianPokerRoom, Player, Room, ThiefCatcherPlayer,
    ThiefCatcherRoom,
)
from .names import validate_nickname
from .rules import RuleConfig, default_rules
from .thief_catcher import ThiefCatcherEngine

logger = logging.getLogger(__name__)

Engine = Union[ThiefCatcherEngine, IndianPokerEngine]


@dataclass
class JoinOutcome:
    room: Room
    player: Player
    is_spectator: bool = False


@dataclass
class RemovalResult:
    room_deleted: bool
    room: Optional[Room] = None
    new_host: Optional[Player] = None
    was_spectator: bool = False
    game_over: Optional[dict] = None


class RoomRegistry:
    def __init__(self, rules: RuleConfig = default_rules, rng: Optional[random.Random] = None):
        self.rules = rules
        self.rng = rng or random.Random()
        self.thief_catcher = ThiefCatcherEngine(rules, self.rng)
        self.indian_poker = IndianPokerEngine(rules, self.rng)
        self.tables: Dict[str, Dict[str, Room]] = {game_type: {} for game_type in GAME_TYPES}

    # Lookup

    def find(self, room_code: str) -> Optional[Room]:
        for table in self.tables.values():
            room = table.get(room_code)
            if room is not None:
                return room
        return None

    def get(self, room_code: str) -> Room:
        room = self.find(room_code)
        if room is None:
            raise_error(ROOM_NOT_FOUND, f"Room {room_code} not found")
        return room

    def exists(self, room_code: str) -> bool:
        return self.find(room_code) is not None

    def rooms_count(self) -> int:
        return sum(len(table) for table in self.tables.values())

    def engine_for(self, room: Room) -> Engine:
        if isinstance(room, ThiefCatcherRoom):
            return self.thief_catcher
        if isinstance(room, IndianPokerRoom):
            return self.indian_poker
        raise TypeError(f"Unknown room type: {type(room).__name__}")

    # Membership

    def check_create(self, game_type: str, nickname: Optional[str]) -> str:
        """Raise GameError if create_room would refuse; returns the cleaned nickname."""
        if game_type not in GAME_TYPES:
            raise_error(VALIDATION_ERROR, f"Unknown game type: {game_type}")
        return validate_nickname(nickname, self.rules.nickname_max_length)

    def check_join(self, room_code: str, player_id: str, nickname: Optional[str]) -> str:
        """
        Raise GameError if add_player would refuse; returns the cleaned nickname.

        Lets the dispatcher validate a join before it takes the connection
        out of the room it is currently in.
        """
        room = self.get(room_code)
        if any(member.id == player_id for member in room.members()):
            raise_error(INVALID_STATE, "Already in this room")
        nickname = validate_nickname(nickname, self.rules.nickname_max_length)
        if isinstance(room, ThiefCatcherRoom):
            if room.status != STATUS_WAITING:
                raise_error(INVALID_STATE, "Game already started")
            if len(room.players) >= self.rules.thief_catcher_max_players:
                raise_error(ROOM_FULL, "Room is full")
        return nickname

    @game_action
    def create_room(self, room_code: str, host_id: str, nickname: str, game_type: str = GAME_THIEF_CATCHER) -> JoinOutcome:
        nickname = self.check_create(game_type, nickname)
        if self.exists(room_code):
            raise_error(ROOM_EXISTS, f"Room {room_code} already exists")

        if game_type == GAME_INDIAN_POKER:
            host = IndianPokerPlayer(id=host_id, nickname=nickname, is_host=True, is_ready=True,
                                     chips=self.rules.starting_chips)
            room: Room = IndianPokerRoom(room_code=room_code, players=[host])
        else:
            host = ThiefCatcherPlayer(id=host_id, nickname=nickname, is_host=True, is_ready=True)
            room = ThiefCatcherRoom(room_code=room_code, players=[host])

        self.tables[game_type][room_code] = room
        logger.info(f"Room {room_code} ({game_type}) created by {nickname}")
        return JoinOutcome(room=room, player=host)

    @game_action
    def add_player(self, room_code: str, player_id: str, nickname: str) -> JoinOutcome:
        nickname = self.check_join(room_code, player_id, nickname)
        room = self.get(room_code)

        if isinstance(room, IndianPokerRoom):
            seat_free = len(room.players) < self.rules.indian_poker_max_players
            if seat_free and room.status == STATUS_WAITING:
                player = IndianPokerPlayer(id=player_id, nickname=nickname, chips=self.rules.starting_chips)
                room.players.append(player)
            else:
                player = IndianPokerPlayer(id=player_id, nickname=nickname, is_spectator=True,
                                           chips=self.rules.starting_chips)
                room.spectators.append(player)
        else:
            player = ThiefCatcherPlayer(id=player_id, nickname=nickname)
            room.players.append(player)

        room.increment_version()
        is_spectator = isinstance(player, IndianPokerPlayer) and player.is_spectator
        logger.info(f"{nickname} joined {room_code}{' as spectator' if is_spectator else ''}")
        return JoinOutcome(room=room, player=player, is_spectator=is_spectator)

    @game_action
    def remove_player(self, room_code: str, player_id: str) -> RemovalResult:
        room = self.get(room_code)

        if isinstance(room, IndianPokerRoom):
            spectator = room.get_spectator(player_id)
            if spectator is not None:
                room.spectators.remove(spectator)
                room.increment_version()
                if not room.members():
                    return self._delete(room)
                return RemovalResult(room_deleted=False, room=room, was_spectator=True)

        player = room.get_player(player_id)
        if player is None:
            return RemovalResult(room_deleted=False, room=room)

        game_over = self.engine_for(room).handle_departure(room, player_id)
        room.players.remove(player)

        if isinstance(room, IndianPokerRoom) and room.spectators:
            if not room.players and room.status != STATUS_WAITING:
                self.indian_poker.reset(room)
            if room.status == STATUS_WAITING:
                self._seat_spectators(room)

        if not room.members():
            return self._delete(room)

        new_host = None
        if player.is_host and room.players:
            new_host = room.players[0]
            new_host.is_host = True
            new_host.is_ready = True
            logger.info(f"{new_host.nickname} is now host of {room_code}")

        room.increment_version()
        return RemovalResult(room_deleted=False, room=room, new_host=new_host, game_over=game_over)

    @game_action
    def toggle_ready(self, room_code: str, player_id: str) -> Player:
        room = self.get(room_code)
        player = self._member(room, player_id)
        if not player.is_host:
            player.is_ready = not player.is_ready
            room.increment_version()
        return player

    @game_action
    def change_game_type(self, room_code: str, new_type: str) -> Room:
        """Move a waiting room to the other game's table."""
        if new_type not in GAME_TYPES:
            raise_error(VALIDATION_ERROR, f"Unknown game type: {new_type}")
        room = self.get(room_code)
        if room.status != STATUS_WAITING:
            raise_error(INVALID_STATE, "Game type can only change in the lobby")
        if room.game_type == new_type:
            return room

        members = room.members()
        if new_type == GAME_INDIAN_POKER:
            seats = self.rules.indian_poker_max_players
            converted: Room = IndianPokerRoom(
                room_code=room_code,
                version=room.version + 1,
                players=[self._as_poker_player(m, spectator=False) for m in members[:seats]],
                spectators=[self._as_poker_player(m, spectator=True) for m in members[seats:]],
            )
        else:
            if len(members) > self.rules.thief_catcher_max_players:
                raise_error(ROOM_FULL, "Too many people in the room for Thief Catcher")
            converted = ThiefCatcherRoom(
                room_code=room_code,
                version=room.version + 1,
                players=[
                    ThiefCatcherPlayer(id=m.id, nickname=m.nickname, is_host=m.is_host, is_ready=m.is_ready)
                    for m in members
                ],
            )

        del self.tables[room.game_type][room_code]
        self.tables[new_type][room_code] = converted
        logger.info(f"Room {room_code} switched to {new_type}")
        return converted

    @game_action
    def reset_game(self, room_code: str) -> Room:
        room = self.get(room_code)
        room = self.engine_for(room).reset(room)
        if isinstance(room, IndianPokerRoom):
            self._seat_spectators(room)
        return room

    @game_action
    def change_nickname(self, room_code: str, player_id: str, nickname: str) -> Player:
        room = self.get(room_code)
        if room.status in ACTIVE_STATUSES:
            raise_error(INVALID_STATE, "Nicknames cannot change during a game")
        player = self._member(room, player_id)
        player.nickname = validate_nickname(nickname, self.rules.nickname_max_length)
        room.increment_version()
        return player

    def _member(self, room: Room, player_id: str) -> Player:
        for member in room.members():
            if member.id == player_id:
                return member
        raise_error(NOT_IN_ROOM, "Player not in this room")

    def _as_poker_player(self, member: Player, spectator: bool) -> IndianPokerPlayer:
        return IndianPokerPlayer(
            id=member.id,
            nickname=member.nickname,
            is_host=member.is_host,
            is_ready=member.is_ready,
            chips=self.rules.starting_chips,
            is_spectator=spectator,
        )

    def _seat_spectators(self, room: IndianPokerRoom):
        while room.spectators and len(room.players) < self.rules.indian_poker_max_players:
            seated = room.spectators.pop(0)
            seated.is_spectator = False
            seated.is_ready = False
            room.players.append(seated)

    def _delete(self, room: Room) -> RemovalResult:
        del self.tables[room.game_type][room.room_code]
        logger.info(f"Room {room.room_code} deleted")
        return RemovalResult(room_deleted=True, room=None)
