"""
Indian Poker engine.

Two players each hold one card they cannot see while their opponent can.
Each round both ante, then take turns raising until one calls (showdown)
or dies (folds). The match ends when a player reaches the winning chip
count or can no longer ante.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import (
    ACTION_BET, ACTION_CALL, ACTION_DIE, STATUS_BETTING, STATUS_FINISHED,
    STATUS_PLAYING, STATUS_REVEAL, STATUS_WAITING,
)
from .deck import build_indian_poker_deck, card_rank, shuffle
from .errors import (
    INVALID_BET, INVALID_STATE, NOT_YOUR_TURN, game_action, raise_error,
)
from .models import IndianPokerPlayer, IndianPokerRoom, player_summary
from .rules import RuleConfig, default_rules

logger = logging.getLogger(__name__)


@dataclass
class RoundOutcome:
    dealt: bool
    round_number: int
    game_over: bool = False
    winner: Optional[Dict[str, Any]] = None


@dataclass
class BetOutcome:
    player_id: str
    amount: int
    total_bet: int
    pot: int
    next_better_id: Optional[str]


@dataclass
class RevealOutcome:
    action: str
    player_id: str
    round_number: int
    winner: Optional[Dict[str, Any]] = None
    is_draw: bool = False
    penalty: int = 0
    cards: List[Dict[str, Any]] = field(default_factory=list)
    game_over: bool = False
    match_winner: Optional[Dict[str, Any]] = None


class IndianPokerEngine:
    def __init__(self, rules: RuleConfig = default_rules, rng: Optional[random.Random] = None):
        self.rules = rules
        self.rng = rng or random.Random()

    @game_action
    def start(self, room: IndianPokerRoom) -> RoundOutcome:
        if room.status != STATUS_WAITING:
            raise_error(INVALID_STATE, "Game already in progress")
        if len(room.players) != self.rules.indian_poker_max_players:
            raise_error(INVALID_STATE, "Indian Poker needs exactly 2 players")
        if not all(p.is_host or p.is_ready for p in room.players):
            raise_error(INVALID_STATE, "All players must be ready")

        self._clear_table(room)
        for player in room.players:
            player.chips = self.rules.starting_chips
        room.deck = shuffle(build_indian_poker_deck(), self.rng)
        room.status = STATUS_PLAYING

        logger.info(f"Indian Poker started in {room.room_code}")
        return self._deal_round(room)

    @game_action
    def start_round(self, room: IndianPokerRoom, expected_round: Optional[int] = None) -> RoundOutcome:
        """
        Deal the next round exactly once.

        Both clients (and the server's reveal timer) ask for the next round
        after a reveal. ``expected_round`` is the round number the requester
        saw revealed; once the room has moved past it, or betting is already
        open, the request is a successful no-op.
        """
        if room.status == STATUS_BETTING:
            return RoundOutcome(dealt=False, round_number=room.round_number)
        if expected_round is not None and expected_round != room.round_number:
            return RoundOutcome(dealt=False, round_number=room.round_number)
        if room.status not in (STATUS_PLAYING, STATUS_REVEAL):
            raise_error(INVALID_STATE, "No round can start now")
        return self._deal_round(room)

    @game_action
    def place_bet(self, room: IndianPokerRoom, player_id: str, amount: int) -> BetOutcome:
        player, opponent = self._check_better(room, player_id)

        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise_error(INVALID_BET, "Bet must be a positive number of chips")

        # All-in caps the amount at the player's remaining chips
        actual = min(amount, player.chips)
        if player.total_bet + actual <= opponent.total_bet:
            raise_error(INVALID_BET, "Bet must exceed your opponent's total")

        player.chips -= actual
        player.total_bet += actual
        room.pot += actual
        room.current_bet_amount = player.total_bet
        room.last_action = ACTION_BET
        room.current_better_id = opponent.id
        room.increment_version()

        return BetOutcome(
            player_id=player_id,
            amount=actual,
            total_bet=player.total_bet,
            pot=room.pot,
            next_better_id=opponent.id,
        )

    @game_action
    def call(self, room: IndianPokerRoom, player_id: str) -> RevealOutcome:
        player, opponent = self._check_better(room, player_id)

        diff = max(0, opponent.total_bet - player.total_bet)
        actual = min(diff, player.chips)
        player.chips -= actual
        player.total_bet += actual
        room.pot += actual
        room.last_action = ACTION_CALL

        first, second = room.players
        outcome = RevealOutcome(
            action=ACTION_CALL,
            player_id=player_id,
            round_number=room.round_number,
            cards=self._revealed_cards(room),
        )

        first_rank, second_rank = card_rank(first.current_card), card_rank(second.current_card)
        if first_rank == second_rank:
            # Pot carries over to the next round
            outcome.is_draw = True
            room.round_winner_id = None
        else:
            winner = first if first_rank > second_rank else second
            winner.chips += room.pot
            room.pot = 0
            room.round_winner_id = winner.id
            outcome.winner = player_summary(winner)

        self._settle(room, outcome)
        return outcome

    @game_action
    def die(self, room: IndianPokerRoom, player_id: str) -> RevealOutcome:
        player, opponent = self._check_better(room, player_id)

        penalty = 0
        if card_rank(player.current_card) == self.rules.fold_penalty_rank:
            penalty = min(self.rules.fold_penalty, player.chips)
            player.chips -= penalty
            opponent.chips += penalty

        opponent.chips += room.pot
        room.pot = 0
        room.round_winner_id = opponent.id
        room.last_action = ACTION_DIE

        outcome = RevealOutcome(
            action=ACTION_DIE,
            player_id=player_id,
            round_number=room.round_number,
            winner=player_summary(opponent),
            penalty=penalty,
            cards=self._revealed_cards(room),
        )
        self._settle(room, outcome)
        return outcome

    def check_game_end(self, room: IndianPokerRoom) -> Optional[IndianPokerPlayer]:
        """Return the match winner, if any."""
        for player in room.players:
            if player.chips >= self.rules.winning_chips:
                return player
        for player in room.players:
            if player.chips < 1:
                return room.opponent_of(player.id)
        return None

    def handle_departure(self, room: IndianPokerRoom, player_id: str) -> Optional[Dict[str, Any]]:
        """Abandon a running match when one of the two players leaves."""
        if room.get_player(player_id) is None:
            return None
        if room.status not in (STATUS_PLAYING, STATUS_BETTING, STATUS_REVEAL):
            return None
        self._clear_table(room)
        room.status = STATUS_WAITING
        room.increment_version()
        logger.info(f"Indian Poker in {room.room_code} abandoned: {player_id} left")
        return None

    def reset(self, room: IndianPokerRoom) -> IndianPokerRoom:
        self._clear_table(room)
        room.status = STATUS_WAITING
        for player in room.players:
            player.chips = self.rules.starting_chips
            player.is_ready = player.is_host
        room.increment_version()
        return room

    def _clear_table(self, room: IndianPokerRoom):
        room.deck = []
        room.pot = 0
        room.current_bet_amount = self.rules.ante
        room.current_better_id = None
        room.first_better_id = None
        room.round_winner_id = None
        room.last_action = None
        room.round_number = 0
        room.match_winner = None
        for player in room.players:
            player.current_card = None
            player.total_bet = 0

    def _deal_round(self, room: IndianPokerRoom) -> RoundOutcome:
        if len(room.deck) < 2:
            room.deck = shuffle(build_indian_poker_deck(), self.rng)

        ante = self.rules.ante
        # A player must be able to ante and still have a chip to play with
        broke = [p for p in room.players if p.chips <= ante]
        if broke:
            for player in room.players:
                player.current_card = None
            survivors = [p for p in room.players if p not in broke]
            winner = survivors[0] if len(survivors) == 1 else None
            room.match_winner = player_summary(winner) if winner else None
            room.status = STATUS_FINISHED
            room.current_better_id = None
            room.increment_version()
            logger.info(f"Indian Poker over in {room.room_code}: cannot ante, winner {room.match_winner}")
            return RoundOutcome(
                dealt=False,
                round_number=room.round_number,
                game_over=True,
                winner=room.match_winner,
            )

        for player in room.players:
            player.chips -= ante
            player.total_bet = ante
            room.pot += ante

        for player in room.players:
            player.current_card = room.deck.pop()

        if room.round_winner_id and room.get_player(room.round_winner_id):
            room.current_better_id = room.round_winner_id
        else:
            room.current_better_id = self.rng.choice(room.players).id

        room.first_better_id = room.current_better_id
        room.current_bet_amount = ante
        room.status = STATUS_BETTING
        room.last_action = None
        room.round_number += 1
        room.increment_version()

        return RoundOutcome(dealt=True, round_number=room.round_number)

    def _check_better(self, room: IndianPokerRoom, player_id: str):
        if room.status != STATUS_BETTING:
            raise_error(INVALID_STATE, "Not in the betting phase")
        if room.current_better_id != player_id:
            raise_error(NOT_YOUR_TURN, "Not your turn")
        player = room.get_player(player_id)
        opponent = room.opponent_of(player_id)
        if player is None or opponent is None:
            raise_error(INVALID_STATE, "Player not found")
        return player, opponent

    def _revealed_cards(self, room: IndianPokerRoom) -> List[Dict[str, Any]]:
        return [
            {
                'player_id': p.id,
                'card': p.current_card.to_dict() if p.current_card else None,
            }
            for p in room.players
        ]

    def _settle(self, room: IndianPokerRoom, outcome: RevealOutcome):
        for player in room.players:
            player.total_bet = 0
        room.current_better_id = None

        match_winner = self.check_game_end(room)
        if match_winner is not None:
            room.status = STATUS_FINISHED
            room.match_winner = player_summary(match_winner)
            outcome.game_over = True
            outcome.match_winner = room.match_winner
            logger.info(f"Indian Poker over in {room.room_code}: winner {room.match_winner}")
        else:
            room.status = STATUS_REVEAL

        room.increment_version()
