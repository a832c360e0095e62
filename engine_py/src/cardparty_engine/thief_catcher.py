"""
Thief Catcher engine.

Every player draws one card per turn from the next active player in seat
order and discards matched pairs. Players who run out of cards finish in
order; the last player left holding the joker loses.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import STATUS_FINISHED, STATUS_PLAYING, STATUS_WAITING
from .deck import (
    build_thief_catcher_deck, deal_round_robin, purge_until_stable,
    remove_matched_pairs, shuffle,
)
from .errors import (
    INVALID_STATE, INVALID_TARGET, NOT_YOUR_TURN, game_action, raise_error,
)
from .models import Card, ThiefCatcherPlayer, ThiefCatcherRoom, player_summary
from .rules import RuleConfig, default_rules

logger = logging.getLogger(__name__)


@dataclass
class DrawOutcome:
    drawer_id: str
    target_id: str
    card_index: int
    drawn_card: Card
    matched_drawer: List[Card] = field(default_factory=list)
    matched_target: List[Card] = field(default_factory=list)
    game_over: bool = False
    loser: Optional[Dict[str, Any]] = None
    winners: List[Dict[str, Any]] = field(default_factory=list)


class ThiefCatcherEngine:
    def __init__(self, rules: RuleConfig = default_rules, rng: Optional[random.Random] = None):
        self.rules = rules
        self.rng = rng or random.Random()

    @game_action
    def start(self, room: ThiefCatcherRoom) -> ThiefCatcherRoom:
        """Deal a fresh deck, discard initial pairs and pick a random first player."""
        if room.status != STATUS_WAITING:
            raise_error(INVALID_STATE, "Game already in progress")
        if len(room.players) < self.rules.min_players:
            raise_error(INVALID_STATE, f"Need at least {self.rules.min_players} players")
        if not all(p.is_host or p.is_ready for p in room.players):
            raise_error(INVALID_STATE, "All players must be ready")

        self._clear_hands(room)

        deck = shuffle(build_thief_catcher_deck(), self.rng)
        hands = deal_round_robin(deck, len(room.players))
        for player, hand in zip(room.players, hands):
            player.cards, _ = purge_until_stable(hand)

        room.status = STATUS_PLAYING
        room.turn_order = [p.id for p in room.players]
        self._record_finishers(room)

        active = room.active_players()
        if len(active) <= 1:
            self._finish(room)
        else:
            room.current_turn_id = self.rng.choice(active).id
            room.next_target_id = self._next_active_after(room, room.current_turn_id)

        room.increment_version()
        logger.info(
            f"Thief Catcher started in {room.room_code}: "
            f"{len(room.players)} players, first turn {room.current_turn_id}"
        )
        return room

    @game_action
    def draw_card(self, room: ThiefCatcherRoom, drawer_id: str, target_id: str, card_index: int) -> DrawOutcome:
        """Move one card from the target's hand into the drawer's hand."""
        drawer, target = self._check_turn(room, drawer_id, target_id)

        if not target.cards:
            raise_error(INVALID_TARGET, "Target has no cards")
        if not isinstance(card_index, int) or isinstance(card_index, bool) \
                or not 0 <= card_index < len(target.cards):
            raise_error(INVALID_TARGET, "Invalid card index")

        drawn_card = target.cards.pop(card_index)
        insert_at = self.rng.randint(0, len(drawer.cards))
        drawer.cards.insert(insert_at, drawn_card)
        # The drawer must not learn where the new card landed
        shuffle(drawer.cards, self.rng)

        drawer.cards, matched_drawer = remove_matched_pairs(drawer.cards)
        target.cards, matched_target = remove_matched_pairs(target.cards)

        self._record_finishers(room)

        outcome = DrawOutcome(
            drawer_id=drawer_id,
            target_id=target_id,
            card_index=card_index,
            drawn_card=drawn_card,
            matched_drawer=matched_drawer,
            matched_target=matched_target,
        )

        if len(room.active_players()) <= 1:
            self._finish(room)
            outcome.game_over = True
            outcome.loser = room.loser
            outcome.winners = list(room.winners)
        else:
            self._advance_turn(room, drawer_id)

        room.increment_version()
        return outcome

    @game_action
    def shuffle_target_cards(self, room: ThiefCatcherRoom, player_id: str, target_id: str) -> ThiefCatcherRoom:
        """Reorder the target's hand; no rule effect."""
        _, target = self._check_turn(room, player_id, target_id)
        shuffle(target.cards, self.rng)
        room.increment_version()
        return room

    def handle_departure(self, room: ThiefCatcherRoom, player_id: str) -> Optional[Dict[str, Any]]:
        """
        Take a departing player out of a running game.

        Their cards are dealt round-robin to the remaining active players,
        who then discard any new pairs. Called before the player is removed
        from the room. Returns the game-over payload if the departure ended
        the game.
        """
        if room.status != STATUS_PLAYING:
            return None

        departing = room.get_player(player_id)
        if departing is None:
            return None

        leftover = departing.cards
        departing.cards = []
        departing.is_eliminated = True

        recipients = room.active_players()
        for i, card in enumerate(leftover):
            if recipients:
                recipients[i % len(recipients)].cards.append(card)
        for recipient in recipients:
            recipient.cards, _ = purge_until_stable(recipient.cards)

        self._record_finishers(room)

        game_over = None
        if len(room.active_players()) <= 1:
            self._finish(room)
            game_over = {'loser': room.loser, 'winners': list(room.winners)}
        elif room.current_turn_id == player_id or not self._is_active(room, room.current_turn_id):
            self._advance_turn(room, room.current_turn_id)
        else:
            room.next_target_id = self._next_active_after(room, room.current_turn_id)

        if player_id in room.turn_order:
            room.turn_order.remove(player_id)

        room.increment_version()
        logger.info(f"Player {player_id} left running game in {room.room_code}; {len(leftover)} cards redistributed")
        return game_over

    def reset(self, room: ThiefCatcherRoom) -> ThiefCatcherRoom:
        self._clear_hands(room)
        room.status = STATUS_WAITING
        for player in room.players:
            player.is_ready = player.is_host
        room.increment_version()
        return room

    def _clear_hands(self, room: ThiefCatcherRoom):
        for player in room.players:
            player.cards = []
            player.is_eliminated = False
            player.finish_order = None
        room.turn_order = []
        room.current_turn_id = None
        room.next_target_id = None
        room.winners = []
        room.loser = None

    def _check_turn(self, room: ThiefCatcherRoom, player_id: str, target_id: str):
        if room.status != STATUS_PLAYING:
            raise_error(INVALID_STATE, "Game is not in progress")
        if room.current_turn_id != player_id:
            raise_error(NOT_YOUR_TURN, "Not your turn")
        if room.next_target_id != target_id:
            raise_error(INVALID_TARGET, "Wrong target player")

        player = room.get_player(player_id)
        target = room.get_player(target_id)
        if player is None or target is None:
            raise_error(INVALID_TARGET, "Player not found")
        return player, target

    def _is_active(self, room: ThiefCatcherRoom, player_id: Optional[str]) -> bool:
        player = room.get_player(player_id) if player_id else None
        return player is not None and player.is_active

    def _next_active_after(self, room: ThiefCatcherRoom, player_id: Optional[str]) -> Optional[str]:
        """Next active player after ``player_id`` in seat order, wrapping around."""
        order = room.turn_order
        if not order:
            return None
        start = order.index(player_id) if player_id in order else -1
        for step in range(1, len(order) + 1):
            candidate = order[(start + step) % len(order)]
            if candidate != player_id and self._is_active(room, candidate):
                return candidate
        return None

    def _advance_turn(self, room: ThiefCatcherRoom, from_id: Optional[str]):
        room.current_turn_id = self._next_active_after(room, from_id)
        room.next_target_id = self._next_active_after(room, room.current_turn_id)

    def _record_finishers(self, room: ThiefCatcherRoom):
        """Eliminate players whose hands are empty, in seat order."""
        for player in room.players:
            if not player.is_eliminated and not player.cards:
                player.is_eliminated = True
                player.finish_order = len(room.winners) + 1
                room.winners.append({**player_summary(player), 'order': player.finish_order})
                logger.info(f"{player.nickname} finished #{player.finish_order} in {room.room_code}")

    def _finish(self, room: ThiefCatcherRoom):
        active = room.active_players()
        loser: Optional[ThiefCatcherPlayer] = active[0] if active else None
        room.loser = player_summary(loser) if loser else None
        room.status = STATUS_FINISHED
        room.current_turn_id = None
        room.next_target_id = None
        logger.info(f"Thief Catcher over in {room.room_code}; loser {room.loser}")
