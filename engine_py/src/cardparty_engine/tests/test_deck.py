"""
Tests for deck construction, shuffling and pair removal.
"""

import random
from collections import Counter

from cardparty_engine.deck import (
    build_indian_poker_deck, build_thief_catcher_deck, deal_round_robin,
    purge_until_stable, remove_matched_pairs, shuffle,
)
from cardparty_engine.models import Card


def card(value, suit="hearts"):
    return Card(id=f"{suit}-{value}", suit=suit, value=value)


JOKER = Card(id="joker", suit="joker", value="JOKER", is_joker=True)


def test_thief_catcher_deck():
    deck = build_thief_catcher_deck()
    assert len(deck) == 53
    assert len({c.id for c in deck}) == 53
    assert sum(1 for c in deck if c.is_joker) == 1
    assert all(count == 4 for value, count in Counter(c.value for c in deck if not c.is_joker).items())
    # Deterministic before shuffling
    assert [c.id for c in deck] == [c.id for c in build_thief_catcher_deck()]


def test_indian_poker_deck():
    deck = build_indian_poker_deck()
    assert len(deck) == 20
    assert sorted(c.value for c in deck) == sorted(list(range(1, 11)) * 2)
    assert not any(c.is_joker for c in deck)


def test_seeded_shuffle_is_replayable():
    first = shuffle(build_thief_catcher_deck(), random.Random(42))
    second = shuffle(build_thief_catcher_deck(), random.Random(42))
    assert [c.id for c in first] == [c.id for c in second]
    assert sorted(c.id for c in first) == sorted(c.id for c in build_thief_catcher_deck())


def test_shuffle_is_in_place():
    items = list(range(10))
    result = shuffle(items, random.Random(1))
    assert result is items
    assert sorted(items) == list(range(10))


def test_pair_is_removed():
    hand = [card("7", "hearts"), card("K"), card("7", "spades")]
    kept, removed = remove_matched_pairs(hand)
    assert [c.id for c in kept] == ["hearts-K"]
    assert {c.id for c in removed} == {"hearts-7", "spades-7"}


def test_three_of_a_kind_keeps_one():
    hand = [card("9", "hearts"), card("9", "spades"), card("9", "clubs")]
    kept, removed = remove_matched_pairs(hand)
    assert len(kept) == 1
    assert len(removed) == 2
    assert kept[0].id == "clubs-9"


def test_four_of_a_kind_removed_entirely():
    hand = [card("Q", suit) for suit in ["hearts", "spades", "clubs", "diamonds"]] + [card("2")]
    kept, removed = remove_matched_pairs(hand)
    assert [c.id for c in kept] == ["hearts-2"]
    assert len(removed) == 4


def test_joker_never_removed():
    hand = [JOKER, card("5", "spades"), card("5", "clubs")]
    kept, removed = remove_matched_pairs(hand)
    assert kept == [JOKER]
    assert JOKER not in removed


def test_purge_leaves_at_most_one_card_per_value():
    """Test pair removal on real deals."""
    rng = random.Random(3)
    for _ in range(50):
        deck = shuffle(build_thief_catcher_deck(), rng)
        for hand in deal_round_robin(deck, rng.randint(2, 6)):
            kept, removed = purge_until_stable(hand)
            counts = Counter(c.value for c in kept if not c.is_joker)
            assert all(n == 1 for n in counts.values())
            removed_counts = Counter(c.value for c in removed)
            assert all(n % 2 == 0 for n in removed_counts.values())
            assert JOKER not in removed
            assert len(kept) + len(removed) == len(hand)


def test_deal_round_robin_uses_whole_deck():
    deck = build_thief_catcher_deck()
    hands = deal_round_robin(deck, 4)
    assert deck == []
    assert [len(h) for h in hands] == [14, 13, 13, 13]
    # Cards come off the end of the deck, seat 0 first
    assert hands[0][0].is_joker
