"""
State serialization and per-player filtering.

Views are computed per recipient and only read the room. A player's own
Thief Catcher hand, and an Indian Poker player's opponent card, are the
only cards that ever leave the server before a reveal.
"""

from typing import Any, Dict, Optional

from .constants import STATUS_FINISHED, STATUS_REVEAL
from .models import (
    IndianPokerPlayer, IndianPokerRoom, Player, Room, ThiefCatcherPlayer,
    ThiefCatcherRoom,
)


def serialize_player_for_list(player: Player) -> Dict[str, Any]:
    """Serialize a player for the lobby player list."""
    data = {
        "id": player.id,
        "nickname": player.nickname,
        "is_host": player.is_host,
        "is_ready": player.is_ready,
    }
    if isinstance(player, IndianPokerPlayer):
        data["is_spectator"] = player.is_spectator
        data["chips"] = player.chips
    elif isinstance(player, ThiefCatcherPlayer):
        data["card_count"] = len(player.cards)
        data["is_eliminated"] = player.is_eliminated
    return data


def public_room(room: Room) -> Dict[str, Any]:
    """Room summary safe to broadcast: membership and status, no cards."""
    data = {
        "room_code": room.room_code,
        "game_type": room.game_type,
        "status": room.status,
        "version": room.version,
        "players": [serialize_player_for_list(p) for p in room.players],
    }
    if isinstance(room, IndianPokerRoom):
        data["spectators"] = [serialize_player_for_list(s) for s in room.spectators]
    return data


def get_public_room_info(room: Room, max_players: int) -> Dict[str, Any]:
    """Answer for the join-page room lookup."""
    return {
        "exists": True,
        "room_code": room.room_code,
        "player_count": len(room.players),
        "max_players": max_players,
        "game_type": room.game_type,
        "status": room.status,
    }


def thief_catcher_view(room: ThiefCatcherRoom, viewer_id: Optional[str]) -> Dict[str, Any]:
    viewer = room.get_player(viewer_id) if viewer_id else None
    return {
        "game_type": room.game_type,
        "status": room.status,
        "version": room.version,
        "players": [
            {
                "id": p.id,
                "nickname": p.nickname,
                "card_count": len(p.cards),
                "is_eliminated": p.is_eliminated,
                "finish_order": p.finish_order,
            }
            for p in room.players
        ],
        "current_turn_id": room.current_turn_id,
        "next_target_id": room.next_target_id,
        "winners": [dict(w) for w in room.winners],
        "loser": dict(room.loser) if room.loser else None,
        "my_cards": [c.to_dict() for c in viewer.cards] if viewer else [],
    }


def indian_poker_view(room: IndianPokerRoom, viewer_id: Optional[str]) -> Dict[str, Any]:
    """
    Per-player Indian Poker view.

    Players see their opponent's card but never their own until the reveal.
    Spectators see no cards until the reveal.
    """
    showdown = room.status in (STATUS_REVEAL, STATUS_FINISHED)
    viewer = room.get_player(viewer_id) if viewer_id else None
    opponent = room.opponent_of(viewer_id) if viewer else None

    def card_for(player: Optional[IndianPokerPlayer]):
        if player is None or player.current_card is None:
            return None
        return player.current_card.to_dict()

    players = []
    for p in room.players:
        visible = showdown or (viewer is not None and p.id != viewer.id)
        players.append({
            "id": p.id,
            "nickname": p.nickname,
            "chips": p.chips,
            "total_bet": p.total_bet,
            "has_card": p.current_card is not None,
            "card": card_for(p) if visible else None,
        })

    return {
        "game_type": room.game_type,
        "status": room.status,
        "version": room.version,
        "round_number": room.round_number,
        "players": players,
        "spectators": [
            {"id": s.id, "nickname": s.nickname, "is_spectator": True}
            for s in room.spectators
        ],
        "pot": room.pot,
        "current_bet_amount": room.current_bet_amount,
        "current_better_id": room.current_better_id,
        "first_better_id": room.first_better_id,
        "last_action": room.last_action,
        "match_winner": dict(room.match_winner) if room.match_winner else None,
        "is_spectator": viewer is None,
        "my_card": card_for(viewer) if showdown else None,
        "opponent_card": card_for(opponent),
        "my_chips": viewer.chips if viewer else 0,
        "opponent_chips": opponent.chips if opponent else 0,
    }


def player_view(room: Room, viewer_id: Optional[str]) -> Dict[str, Any]:
    """Filtered game state for one recipient, chosen by the room's game type."""
    if isinstance(room, ThiefCatcherRoom):
        return thief_catcher_view(room, viewer_id)
    if isinstance(room, IndianPokerRoom):
        return indian_poker_view(room, viewer_id)
    raise TypeError(f"Unknown room type: {type(room).__name__}")
