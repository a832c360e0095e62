"""
Card deck, shuffling and pair-matching utilities shared by both games.
"""

import random
from collections import OrderedDict
from typing import List, MutableSequence, Optional, Tuple, TypeVar

from .constants import (
    INDIAN_POKER_RANKS, INDIAN_POKER_SUITS, JOKER_ID, JOKER_SUIT, JOKER_VALUE,
    SUITS, VALUES,
)
from .models import Card

T = TypeVar('T')


def build_thief_catcher_deck() -> List[Card]:
    """Create the 53-card Thief Catcher deck (52 suited cards plus one joker)."""
    deck = []

    for suit in SUITS:
        for value in VALUES:
            deck.append(Card(id=f"{suit}-{value}", suit=suit, value=value))

    deck.append(Card(id=JOKER_ID, suit=JOKER_SUIT, value=JOKER_VALUE, is_joker=True))

    return deck


def build_indian_poker_deck() -> List[Card]:
    """Create the 20-card Indian Poker deck: ranks 1-10 in two suits."""
    return [
        Card(id=f"{suit}-{rank}", suit=suit, value=rank)
        for suit in INDIAN_POKER_SUITS
        for rank in INDIAN_POKER_RANKS
    ]


def shuffle(items: MutableSequence[T], rng: Optional[random.Random] = None) -> MutableSequence[T]:
    """
    Shuffle a sequence in place with Fisher-Yates, last index first.

    Args:
        items: Sequence to permute
        rng: Random source; pass a seeded ``random.Random`` for replayable shuffles

    Returns:
        The same sequence, for chaining
    """
    rng = rng or random.Random()
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def remove_matched_pairs(hand: List[Card]) -> Tuple[List[Card], List[Card]]:
    """
    Discard matched sets from a Thief Catcher hand.

    Non-joker cards are grouped by value; each group of n >= 2 loses its
    first ``n // 2 * 2`` cards in hand order (3 of a kind keeps one, 4 of a
    kind goes entirely). The joker never matches.

    Args:
        hand: Cards in hand order

    Returns:
        (kept, removed) with both lists preserving hand order
    """
    groups: "OrderedDict[str, List[int]]" = OrderedDict()
    for index, card in enumerate(hand):
        if card.is_joker:
            continue
        groups.setdefault(str(card.value), []).append(index)

    to_remove = set()
    for indices in groups.values():
        pairs_to_remove = len(indices) // 2 * 2
        to_remove.update(indices[:pairs_to_remove])

    kept = [card for i, card in enumerate(hand) if i not in to_remove]
    removed = [card for i, card in enumerate(hand) if i in to_remove]
    return kept, removed


def purge_until_stable(hand: List[Card]) -> Tuple[List[Card], List[Card]]:
    """Repeat ``remove_matched_pairs`` until a pass removes nothing."""
    removed_total: List[Card] = []
    while True:
        hand, removed = remove_matched_pairs(hand)
        if not removed:
            return hand, removed_total
        removed_total.extend(removed)


def deal_round_robin(deck: List[Card], player_count: int) -> List[List[Card]]:
    """
    Deal the whole deck one card at a time, seat 0 first.

    Cards are popped from the end of the deck, which is left empty.
    """
    if player_count <= 0:
        return []

    hands: List[List[Card]] = [[] for _ in range(player_count)]
    seat = 0
    while deck:
        hands[seat].append(deck.pop())
        seat = (seat + 1) % player_count
    return hands


def card_rank(card: Card) -> int:
    """Numeric rank of an Indian Poker card."""
    return int(card.value)
