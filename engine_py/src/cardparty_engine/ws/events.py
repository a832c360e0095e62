"""
WebSocket event models and validation.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, Field, ValidationError

from ..constants import GAME_THIEF_CATCHER


class EventType(str, Enum):
    """Inbound event types."""
    CREATE_ROOM = "create-room"
    JOIN_ROOM = "join-room"
    LEAVE_ROOM = "leave-room"
    TOGGLE_READY = "toggle-ready"
    CHANGE_GAME_TYPE = "change-game-type"
    START_GAME = "start-game"
    DRAW_CARD = "draw-card"
    SHUFFLE_CARDS = "shuffle-cards"
    CARD_HOVER = "card-hover"
    CARD_HOVER_END = "card-hover-end"
    INDIAN_POKER_BET = "indian-poker-bet"
    INDIAN_POKER_CALL = "indian-poker-call"
    INDIAN_POKER_DIE = "indian-poker-die"
    INDIAN_POKER_NEXT_ROUND = "indian-poker-next-round"
    REQUEST_PLAY_AGAIN = "request-play-again"
    CHANGE_NICKNAME = "change-nickname"
    CHAT_MESSAGE = "chat-message"
    WEBRTC_OFFER = "webrtc-offer"
    WEBRTC_ANSWER = "webrtc-answer"
    WEBRTC_ICE_CANDIDATE = "webrtc-ice-candidate"


class OutboundEventType(str, Enum):
    """Outbound event types."""
    CONNECTED = "connected"
    ACK = "ack"
    PLAYER_JOINED = "player-joined"
    PLAYER_LEFT = "player-left"
    ROOM_UPDATED = "room-updated"
    GAME_STARTED = "game-started"
    CARD_DRAWN = "card-drawn"
    CARDS_SHUFFLED = "cards-shuffled"
    CARD_HOVER = "card-hover"
    CARD_HOVER_END = "card-hover-end"
    GAME_OVER = "game-over"
    INDIAN_POKER_ACTION = "indian-poker-action"
    INDIAN_POKER_REVEAL = "indian-poker-reveal"
    INDIAN_POKER_STATE_UPDATE = "indian-poker-state-update"
    RETURN_TO_LOBBY = "return-to-lobby"
    NICKNAME_CHANGED = "nickname-changed"
    CHAT_MESSAGE = "chat-message"
    WEBRTC_OFFER = "webrtc-offer"
    WEBRTC_ANSWER = "webrtc-answer"
    WEBRTC_ICE_CANDIDATE = "webrtc-ice-candidate"


# Inbound envelope and payloads
class InboundMessage(BaseModel):
    """Request envelope; ``request_id`` is echoed back on the ack."""
    type: EventType
    request_id: Optional[str] = Field(default=None, max_length=64)
    data: Dict[str, Any] = Field(default_factory=dict)


class EmptyData(BaseModel):
    pass


class CreateRoomData(BaseModel):
    nickname: Optional[str] = None
    game_type: str = GAME_THIEF_CATCHER


class JoinRoomData(BaseModel):
    room_code: str = Field(..., min_length=1, max_length=12)
    nickname: Optional[str] = None


class ChangeGameTypeData(BaseModel):
    game_type: str


class DrawCardData(BaseModel):
    target_player_id: str = Field(..., min_length=1)
    card_index: int


class ShuffleCardsData(BaseModel):
    target_player_id: str = Field(..., min_length=1)


class CardHoverData(BaseModel):
    target_player_id: Optional[str] = None
    card_index: Optional[int] = None


class BetData(BaseModel):
    amount: int


class NextRoundData(BaseModel):
    round: Optional[int] = None


class ChangeNicknameData(BaseModel):
    new_nickname: str


class ChatData(BaseModel):
    message: str = Field(..., min_length=1, max_length=500)


class SignalData(BaseModel):
    """WebRTC signaling; ``payload`` is relayed untouched."""
    target_id: str = Field(..., min_length=1)
    payload: Any = None


PAYLOAD_MODELS: Dict[EventType, Type[BaseModel]] = {
    EventType.CREATE_ROOM: CreateRoomData,
    EventType.JOIN_ROOM: JoinRoomData,
    EventType.LEAVE_ROOM: EmptyData,
    EventType.TOGGLE_READY: EmptyData,
    EventType.CHANGE_GAME_TYPE: ChangeGameTypeData,
    EventType.START_GAME: EmptyData,
    EventType.DRAW_CARD: DrawCardData,
    EventType.SHUFFLE_CARDS: ShuffleCardsData,
    EventType.CARD_HOVER: CardHoverData,
    EventType.CARD_HOVER_END: EmptyData,
    EventType.INDIAN_POKER_BET: BetData,
    EventType.INDIAN_POKER_CALL: EmptyData,
    EventType.INDIAN_POKER_DIE: EmptyData,
    EventType.INDIAN_POKER_NEXT_ROUND: NextRoundData,
    EventType.REQUEST_PLAY_AGAIN: EmptyData,
    EventType.CHANGE_NICKNAME: ChangeNicknameData,
    EventType.CHAT_MESSAGE: ChatData,
    EventType.WEBRTC_OFFER: SignalData,
    EventType.WEBRTC_ANSWER: SignalData,
    EventType.WEBRTC_ICE_CANDIDATE: SignalData,
}


def parse_inbound_event(data: Dict[str, Any]) -> Tuple[InboundMessage, BaseModel]:
    """
    Parse raw event data into the envelope and its typed payload.

    Args:
        data: Raw event data from WebSocket

    Returns:
        (envelope, payload model)

    Raises:
        ValueError: If event type is invalid or data is malformed
    """
    if not isinstance(data, dict):
        raise ValueError("Event must be a JSON object")

    event_type = data.get("type")
    if not event_type:
        raise ValueError("Missing event type")

    try:
        EventType(event_type)
    except ValueError:
        raise ValueError(f"Invalid event type: {event_type}")

    try:
        envelope = InboundMessage(**data)
        payload = PAYLOAD_MODELS[envelope.type](**envelope.data)
    except ValidationError as e:
        raise ValueError(f"Invalid event data: {e.errors(include_url=False)}")

    return envelope, payload


# Outbound events are plain dicts; the server encodes them with orjson
def create_event(event_type: OutboundEventType, data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": event_type.value,
        "data": data,
        "timestamp": time.time(),
    }


def create_ack(request_id: Optional[str], success: bool, data: Any = None,
               error: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Acknowledgement sent to the requesting connection only."""
    ack = {
        "type": OutboundEventType.ACK.value,
        "request_id": request_id,
        "success": success,
        "timestamp": time.time(),
    }
    if data is not None:
        ack["data"] = data
    if error is not None:
        ack["error"] = error
    return ack


def create_error_ack(request_id: Optional[str], code: str, message: str) -> Dict[str, Any]:
    return create_ack(request_id, False, error={"code": code, "message": message})
