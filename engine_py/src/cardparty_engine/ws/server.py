"""
WebSocket dispatch for the card party server.

Each connection gets a random id that doubles as its player id. Inbound
requests are validated, routed to the room's engine by game type, and
answered with an ack to the sender; successful changes are fanned out to
the room with one filtered view per recipient.
"""

import functools
import logging
import random
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import orjson
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ..constants import GAME_INDIAN_POKER, GAME_THIEF_CATCHER, STATUS_FINISHED, STATUS_WAITING
from ..errors import (
    INTERNAL_ERROR, INVALID_EVENT, INVALID_STATE, NOT_HOST, NOT_IN_ROOM,
    VALIDATION_ERROR, ActionResult, GameError, raise_error,
)
from ..models import IndianPokerRoom, Player, Room, ThiefCatcherRoom
from ..names import generate_room_code, random_nickname
from ..registry import RoomRegistry
from ..rules import RuleConfig
from ..scheduler import RoomTimers
from ..serialization import player_view, public_room, serialize_player_for_list
from .events import (
    BetData, CardHoverData, ChangeGameTypeData, ChangeNicknameData, ChatData,
    CreateRoomData, DrawCardData, EventType, JoinRoomData, NextRoundData,
    OutboundEventType, ShuffleCardsData, SignalData, create_ack,
    create_error_ack, create_event, parse_inbound_event,
)

logger = logging.getLogger(__name__)

REVEAL_TIMER = "next-round"

Message = Dict[str, Any]


class ConnectionManager:
    """Tracks open sockets and which room each one sits in."""

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}
        self.connection_rooms: Dict[str, str] = {}

    def connect(self, connection_id: str, websocket: WebSocket):
        self.connections[connection_id] = websocket
        logger.info(f"Connection {connection_id} opened")

    def disconnect(self, connection_id: str) -> Optional[str]:
        """Forget a connection; returns the room it was in."""
        self.connections.pop(connection_id, None)
        room_code = self.connection_rooms.pop(connection_id, None)
        logger.info(f"Connection {connection_id} closed (room {room_code})")
        return room_code

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.connections

    def room_of(self, connection_id: str) -> Optional[str]:
        return self.connection_rooms.get(connection_id)

    def join(self, connection_id: str, room_code: str):
        self.connection_rooms[connection_id] = room_code

    def leave(self, connection_id: str):
        self.connection_rooms.pop(connection_id, None)

    async def send(self, connection_id: str, message: Message):
        websocket = self.connections.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_text(orjson.dumps(message).decode())
        except Exception as e:
            logger.error(f"Error sending to {connection_id}: {e}")
            # Drop the dead socket; its receive loop performs the room cleanup
            self.connections.pop(connection_id, None)

    async def send_many(self, messages: List[Tuple[str, Message]]):
        for connection_id, message in messages:
            await self.send(connection_id, message)

    @property
    def count(self) -> int:
        return len(self.connections)


class Dispatcher:
    """Routes inbound events to the registry and engines, then fans out results."""

    def __init__(self, registry: Optional[RoomRegistry] = None,
                 manager: Optional[ConnectionManager] = None,
                 timers: Optional[RoomTimers] = None,
                 rules: Optional[RuleConfig] = None,
                 rng: Optional[random.Random] = None):
        self.rules = rules or (registry.rules if registry else RuleConfig())
        self.rng = rng or random.Random()
        self.registry = registry or RoomRegistry(self.rules, self.rng)
        self.manager = manager or ConnectionManager()
        self.timers = timers or RoomTimers()
        self.handlers: Dict[EventType, Callable[[str, BaseModel], Awaitable[Any]]] = {
            EventType.CREATE_ROOM: self.handle_create_room,
            EventType.JOIN_ROOM: self.handle_join_room,
            EventType.LEAVE_ROOM: self.handle_leave_room,
            EventType.TOGGLE_READY: self.handle_toggle_ready,
            EventType.CHANGE_GAME_TYPE: self.handle_change_game_type,
            EventType.START_GAME: self.handle_start_game,
            EventType.DRAW_CARD: self.handle_draw_card,
            EventType.SHUFFLE_CARDS: self.handle_shuffle_cards,
            EventType.CARD_HOVER: self.handle_card_hover,
            EventType.CARD_HOVER_END: self.handle_card_hover_end,
            EventType.INDIAN_POKER_BET: self.handle_bet,
            EventType.INDIAN_POKER_CALL: self.handle_call,
            EventType.INDIAN_POKER_DIE: self.handle_die,
            EventType.INDIAN_POKER_NEXT_ROUND: self.handle_next_round,
            EventType.REQUEST_PLAY_AGAIN: self.handle_play_again,
            EventType.CHANGE_NICKNAME: self.handle_change_nickname,
            EventType.CHAT_MESSAGE: self.handle_chat,
            EventType.WEBRTC_OFFER: functools.partial(self.relay_signal, OutboundEventType.WEBRTC_OFFER),
            EventType.WEBRTC_ANSWER: functools.partial(self.relay_signal, OutboundEventType.WEBRTC_ANSWER),
            EventType.WEBRTC_ICE_CANDIDATE: functools.partial(
                self.relay_signal, OutboundEventType.WEBRTC_ICE_CANDIDATE
            ),
        }

    # Connection lifecycle

    def connect(self, websocket: WebSocket) -> str:
        connection_id = uuid.uuid4().hex
        self.manager.connect(connection_id, websocket)
        return connection_id

    async def disconnect(self, connection_id: str):
        await self._leave(connection_id)
        self.manager.disconnect(connection_id)

    async def handle_raw(self, connection_id: str, raw: str):
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError:
            await self.manager.send(connection_id, create_error_ack(None, INVALID_EVENT, "Malformed JSON"))
            return
        await self.handle(connection_id, data)

    async def handle(self, connection_id: str, data: Dict[str, Any]):
        """Handle one inbound event to completion and ack the sender."""
        request_id = data.get("request_id") if isinstance(data, dict) else None
        try:
            envelope, payload = parse_inbound_event(data)
        except ValueError as e:
            await self.manager.send(connection_id, create_error_ack(request_id, INVALID_EVENT, str(e)))
            return

        try:
            ack_data = await self.handlers[envelope.type](connection_id, payload)
        except GameError as e:
            logger.info(f"{envelope.type.value} from {connection_id} rejected: {e}")
            await self.manager.send(connection_id, create_error_ack(envelope.request_id, e.code, e.message))
            return
        except Exception:
            logger.exception(f"Error handling {envelope.type.value} from {connection_id}")
            await self.manager.send(
                connection_id, create_error_ack(envelope.request_id, INTERNAL_ERROR, "Internal server error")
            )
            return

        await self.manager.send(connection_id, create_ack(envelope.request_id, True, ack_data))

    # Lobby

    async def handle_create_room(self, connection_id: str, payload: CreateRoomData):
        nickname = self.registry.check_create(payload.game_type, payload.nickname or random_nickname(self.rng))
        # Only a request that will succeed may take the sender out of its current room
        await self._leave(connection_id)

        room_code = generate_room_code(self.rng, self.rules.room_code_length, self.registry.exists)
        joined = self._unwrap(
            self.registry.create_room(room_code, connection_id, nickname, payload.game_type)
        )
        self.manager.join(connection_id, room_code)

        return {
            "room_code": room_code,
            "room": public_room(joined.room),
            "player": serialize_player_for_list(joined.player),
        }

    async def handle_join_room(self, connection_id: str, payload: JoinRoomData):
        room_code = payload.room_code.strip().upper()
        if self.manager.room_of(connection_id) == room_code:
            raise_error(INVALID_STATE, "Already in this room")
        nickname = self.registry.check_join(room_code, connection_id, payload.nickname or random_nickname(self.rng))
        await self._leave(connection_id)

        joined = self._unwrap(self.registry.add_player(room_code, connection_id, nickname))
        self.manager.join(connection_id, room_code)

        room_data = public_room(joined.room)
        player_data = serialize_player_for_list(joined.player)
        await self._broadcast(
            joined.room,
            create_event(OutboundEventType.PLAYER_JOINED, {"player": player_data, "room": room_data}),
            exclude=connection_id,
        )
        return {"room": room_data, "player": player_data, "is_spectator": joined.is_spectator}

    async def handle_leave_room(self, connection_id: str, payload: BaseModel):
        await self._leave(connection_id)
        return None

    async def handle_toggle_ready(self, connection_id: str, payload: BaseModel):
        room_code, _ = self._require_room(connection_id)
        player = self._unwrap(self.registry.toggle_ready(room_code, connection_id))
        room = self.registry.get(room_code)
        await self._broadcast(room, create_event(OutboundEventType.ROOM_UPDATED, {"room": public_room(room)}))
        return {"player": serialize_player_for_list(player)}

    async def handle_change_game_type(self, connection_id: str, payload: ChangeGameTypeData):
        room_code, room = self._require_room(connection_id)
        self._require_host(room, connection_id)
        room = self._unwrap(self.registry.change_game_type(room_code, payload.game_type))
        await self._broadcast(room, create_event(OutboundEventType.ROOM_UPDATED, {"room": public_room(room)}))
        return {"room": public_room(room)}

    async def handle_change_nickname(self, connection_id: str, payload: ChangeNicknameData):
        room_code, _ = self._require_room(connection_id)
        player = self._unwrap(self.registry.change_nickname(room_code, connection_id, payload.new_nickname))
        room = self.registry.get(room_code)
        await self._broadcast(room, create_event(OutboundEventType.NICKNAME_CHANGED, {
            "player_id": connection_id,
            "new_nickname": player.nickname,
            "room": public_room(room),
        }))
        return {"player": serialize_player_for_list(player)}

    async def handle_chat(self, connection_id: str, payload: ChatData):
        _, room = self._require_room(connection_id)
        sender = self._member(room, connection_id)
        message = payload.message.strip()
        if not message:
            raise_error(VALIDATION_ERROR, "Message must not be empty")
        await self._broadcast(room, create_event(OutboundEventType.CHAT_MESSAGE, {
            "sender_id": sender.id,
            "sender_nickname": sender.nickname,
            "message": message,
            "timestamp": int(time.time() * 1000),
        }))
        return None

    async def relay_signal(self, event_type: OutboundEventType, connection_id: str, payload: SignalData):
        """Relay WebRTC signaling to one peer in the same room."""
        room_code, _ = self._require_room(connection_id)
        if self.manager.room_of(payload.target_id) != room_code:
            raise_error(NOT_IN_ROOM, "Target is not in your room")
        await self.manager.send(payload.target_id, create_event(event_type, {
            "sender_id": connection_id,
            "payload": payload.payload,
        }))
        return None

    async def handle_start_game(self, connection_id: str, payload: BaseModel):
        room_code, room = self._require_room(connection_id)
        self._require_host(room, connection_id)

        if isinstance(room, ThiefCatcherRoom):
            self._unwrap(self.registry.thief_catcher.start(room))
        elif isinstance(room, IndianPokerRoom):
            self._unwrap(self.registry.indian_poker.start(room))
        else:
            raise TypeError(f"Unknown room type: {type(room).__name__}")

        logger.info(f"Game {room.game_type} started in {room_code}")
        await self._fan_out(room, OutboundEventType.GAME_STARTED)
        if room.status == STATUS_FINISHED:
            await self._broadcast_game_over(room)
        return None

    async def handle_play_again(self, connection_id: str, payload: BaseModel):
        room_code, room = self._require_room(connection_id)
        self._member(room, connection_id)
        if room.status not in (STATUS_FINISHED, STATUS_WAITING):
            raise_error(INVALID_STATE, "Game is still in progress")

        self.timers.cancel_room(room_code)
        room = self._unwrap(self.registry.reset_game(room_code))
        room_data = public_room(room)
        await self._broadcast(room, create_event(OutboundEventType.RETURN_TO_LOBBY, {"room": room_data}))
        return {"room": room_data}

    # Thief Catcher

    async def handle_draw_card(self, connection_id: str, payload: DrawCardData):
        _, room = self._require_room(connection_id, GAME_THIEF_CATCHER)
        outcome = self._unwrap(self.registry.thief_catcher.draw_card(
            room, connection_id, payload.target_player_id, payload.card_index
        ))

        matched = {
            "drawer": [c.to_dict() for c in outcome.matched_drawer],
            "target": [c.to_dict() for c in outcome.matched_target],
        }

        def card_drawn(viewer_id: str) -> Message:
            return create_event(OutboundEventType.CARD_DRAWN, {
                "drawer_id": outcome.drawer_id,
                "target_id": outcome.target_id,
                "card_index": outcome.card_index,
                "drawn_card": outcome.drawn_card.to_dict() if viewer_id == outcome.drawer_id else None,
                "matched_cards": matched,
                "game_state": player_view(room, viewer_id),
            })

        await self._send_per_member(room, card_drawn)
        if outcome.game_over:
            await self._broadcast_game_over(room)

        return {
            "drawn_card": outcome.drawn_card.to_dict(),
            "matched_cards": matched,
            "game_over": outcome.game_over,
        }

    async def handle_shuffle_cards(self, connection_id: str, payload: ShuffleCardsData):
        _, room = self._require_room(connection_id, GAME_THIEF_CATCHER)
        self._unwrap(self.registry.thief_catcher.shuffle_target_cards(
            room, connection_id, payload.target_player_id
        ))
        await self._fan_out(room, OutboundEventType.CARDS_SHUFFLED, {
            "shuffler_id": connection_id,
            "target_id": payload.target_player_id,
        })
        return None

    async def handle_card_hover(self, connection_id: str, payload: CardHoverData):
        _, room = self._require_room(connection_id, GAME_THIEF_CATCHER)
        await self._broadcast(room, create_event(OutboundEventType.CARD_HOVER, {
            "hover_player_id": connection_id,
            "target_player_id": payload.target_player_id,
            "card_index": payload.card_index,
        }), exclude=connection_id)
        return None

    async def handle_card_hover_end(self, connection_id: str, payload: BaseModel):
        _, room = self._require_room(connection_id, GAME_THIEF_CATCHER)
        await self._broadcast(room, create_event(OutboundEventType.CARD_HOVER_END, {
            "hover_player_id": connection_id,
        }), exclude=connection_id)
        return None

    # Indian Poker

    async def handle_bet(self, connection_id: str, payload: BetData):
        _, room = self._require_room(connection_id, GAME_INDIAN_POKER)
        outcome = self._unwrap(self.registry.indian_poker.place_bet(room, connection_id, payload.amount))
        await self._broadcast(room, create_event(OutboundEventType.INDIAN_POKER_ACTION, {
            "player_id": connection_id,
            "action": "bet",
            "amount": outcome.amount,
            "total_bet": outcome.total_bet,
            "pot": outcome.pot,
            "next_better_id": outcome.next_better_id,
        }))
        await self._fan_out(room, OutboundEventType.INDIAN_POKER_STATE_UPDATE)
        return None

    async def handle_call(self, connection_id: str, payload: BaseModel):
        _, room = self._require_room(connection_id, GAME_INDIAN_POKER)
        outcome = self._unwrap(self.registry.indian_poker.call(room, connection_id))
        await self._announce_reveal(room, outcome)
        return None

    async def handle_die(self, connection_id: str, payload: BaseModel):
        _, room = self._require_room(connection_id, GAME_INDIAN_POKER)
        outcome = self._unwrap(self.registry.indian_poker.die(room, connection_id))
        await self._announce_reveal(room, outcome)
        return None

    async def handle_next_round(self, connection_id: str, payload: NextRoundData):
        room_code, _ = self._require_room(connection_id, GAME_INDIAN_POKER)
        outcome = await self.deal_next_round(room_code, payload.round)
        return {"dealt": outcome.dealt, "round_number": outcome.round_number}

    async def deal_next_round(self, room_code: str, expected_round: Optional[int]):
        """Shared by client requests and the reveal timer; deals at most once per round."""
        room = self.registry.get(room_code)
        if not isinstance(room, IndianPokerRoom):
            raise_error(INVALID_STATE, "Not an Indian Poker room")
        outcome = self._unwrap(self.registry.indian_poker.start_round(room, expected_round))
        if outcome.dealt or outcome.game_over:
            self.timers.cancel(room_code, REVEAL_TIMER)
            await self._fan_out(room, OutboundEventType.INDIAN_POKER_STATE_UPDATE)
        if outcome.game_over:
            await self._broadcast_game_over(room)
        return outcome

    async def _announce_reveal(self, room: IndianPokerRoom, outcome):
        await self._broadcast(room, create_event(OutboundEventType.INDIAN_POKER_ACTION, {
            "player_id": outcome.player_id,
            "action": outcome.action,
            "pot": room.pot,
        }))
        await self._broadcast(room, create_event(OutboundEventType.INDIAN_POKER_REVEAL, {
            "action": outcome.action,
            "player_id": outcome.player_id,
            "round_number": outcome.round_number,
            "winner": outcome.winner,
            "is_draw": outcome.is_draw,
            "penalty": outcome.penalty,
            "cards": outcome.cards,
            "game_over": outcome.game_over,
        }))
        await self._fan_out(room, OutboundEventType.INDIAN_POKER_STATE_UPDATE)

        if outcome.game_over:
            await self._broadcast_game_over(room)
        elif self.rules.reveal_timeout > 0:
            self._schedule_next_round(room.room_code, outcome.round_number)

    def _schedule_next_round(self, room_code: str, round_number: int):
        async def deal_if_still_waiting():
            if self.registry.find(room_code) is None:
                return
            try:
                await self.deal_next_round(room_code, round_number)
            except GameError as e:
                logger.info(f"Reveal timer for {room_code} skipped: {e}")

        self.timers.schedule(room_code, REVEAL_TIMER, self.rules.reveal_timeout, deal_if_still_waiting)

    # Departure

    async def _leave(self, connection_id: str):
        room_code = self.manager.room_of(connection_id)
        if room_code is None:
            return
        self.manager.leave(connection_id)

        result = self.registry.remove_player(room_code, connection_id)
        if not result.success:
            logger.warning(f"Leave from {room_code} by {connection_id} failed: {result.error_message}")
            return
        removal = result.data
        if removal.room_deleted:
            self.timers.cancel_room(room_code)
            return

        room = removal.room
        if room.status == STATUS_WAITING:
            self.timers.cancel_room(room_code)

        room_data = public_room(room)
        new_host = serialize_player_for_list(removal.new_host) if removal.new_host else None
        await self._send_per_member(room, lambda viewer_id: create_event(OutboundEventType.PLAYER_LEFT, {
            "player_id": connection_id,
            "room": room_data,
            "new_host": new_host,
            "game_state": player_view(room, viewer_id) if room.status != STATUS_WAITING else None,
        }))
        if removal.game_over:
            await self._broadcast_game_over(room)

    # Helpers

    def _unwrap(self, result: ActionResult):
        if not result.success:
            raise GameError(result.error_code, result.error_message)
        return result.data

    def _require_room(self, connection_id: str, game_type: Optional[str] = None) -> Tuple[str, Room]:
        room_code = self.manager.room_of(connection_id)
        if room_code is None:
            raise_error(NOT_IN_ROOM, "You are not in a room")
        room = self.registry.get(room_code)
        if game_type is not None and room.game_type != game_type:
            raise_error(INVALID_STATE, f"This room is playing {room.game_type}")
        return room_code, room

    def _member(self, room: Room, connection_id: str) -> Player:
        for member in room.members():
            if member.id == connection_id:
                return member
        raise_error(NOT_IN_ROOM, "You are not in this room")

    def _require_host(self, room: Room, connection_id: str):
        player = room.get_player(connection_id)
        if player is None or not player.is_host:
            raise_error(NOT_HOST, "Only the host can do that")

    async def _send_per_member(self, room: Room, build: Callable[[str], Message]):
        # Build every view before the first await so all recipients see the same state
        messages = [(member.id, build(member.id)) for member in room.members()]
        await self.manager.send_many(messages)

    async def _fan_out(self, room: Room, event_type: OutboundEventType, extra: Optional[Dict[str, Any]] = None):
        await self._send_per_member(room, lambda viewer_id: create_event(event_type, {
            **(extra or {}),
            "game_state": player_view(room, viewer_id),
        }))

    async def _broadcast(self, room: Room, message: Message, exclude: Optional[str] = None):
        await self.manager.send_many([
            (member.id, message) for member in room.members() if member.id != exclude
        ])

    async def _broadcast_game_over(self, room: Room):
        if isinstance(room, ThiefCatcherRoom):
            data = {"game_type": room.game_type, "loser": room.loser, "winners": room.winners}
        elif isinstance(room, IndianPokerRoom):
            data = {"game_type": room.game_type, "winner": room.match_winner}
        else:
            raise TypeError(f"Unknown room type: {type(room).__name__}")
        await self._broadcast(room, create_event(OutboundEventType.GAME_OVER, data))


async def serve_connection(websocket: WebSocket, dispatcher: Dispatcher):
    """Receive loop for one client socket."""
    await websocket.accept()
    connection_id = dispatcher.connect(websocket)
    await dispatcher.manager.send(
        connection_id, create_event(OutboundEventType.CONNECTED, {"connection_id": connection_id})
    )

    try:
        while True:
            raw_data = await websocket.receive_text()
            await dispatcher.handle_raw(connection_id, raw_data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket {connection_id} disconnected")
    except Exception as e:
        logger.error(f"WebSocket {connection_id} error: {e}")
    finally:
        await dispatcher.disconnect(connection_id)
