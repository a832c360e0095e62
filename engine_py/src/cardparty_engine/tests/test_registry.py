"""
Tests for room membership, naming and rule configuration.
"""

import random

import pytest
from pydantic import ValidationError

from cardparty_engine.constants import (
    GAME_INDIAN_POKER, GAME_THIEF_CATCHER, ROOM_CODE_CHARS, STATUS_BETTING,
    STATUS_FINISHED, STATUS_PLAYING, STATUS_WAITING,
)
from cardparty_engine.errors import (
    INVALID_STATE, NOT_IN_ROOM, ROOM_EXISTS, ROOM_FULL, ROOM_NOT_FOUND,
    VALIDATION_ERROR, GameError,
)
from cardparty_engine.models import IndianPokerRoom, ThiefCatcherRoom
from cardparty_engine.names import generate_room_code, random_nickname, validate_nickname
from cardparty_engine.registry import RoomRegistry
from cardparty_engine.rules import RuleConfig, create_rules


@pytest.fixture
def registry():
    return RoomRegistry(rng=random.Random(0))


def test_create_room(registry):
    """Test room creation."""
    result = registry.create_room("ABC123", "host", "  Ann ")
    assert result.success
    room = result.data.room
    assert isinstance(room, ThiefCatcherRoom)
    assert room.status == STATUS_WAITING
    assert room.players[0].nickname == "Ann"
    assert room.players[0].is_host
    assert room.players[0].is_ready
    assert registry.rooms_count() == 1

    again = registry.create_room("ABC123", "other", "Ben")
    assert again.error_code == ROOM_EXISTS


def test_create_room_rejects_unknown_game(registry):
    result = registry.create_room("ABC123", "host", "Ann", "go-fish")
    assert result.error_code == VALIDATION_ERROR
    assert not registry.exists("ABC123")


def test_get_unknown_room(registry):
    assert registry.find("NOPE00") is None
    with pytest.raises(GameError) as exc:
        registry.get("NOPE00")
    assert exc.value.code == ROOM_NOT_FOUND
    assert registry.add_player("NOPE00", "p", "Pat").error_code == ROOM_NOT_FOUND


def test_thief_catcher_room_caps_at_six(registry):
    """Test room capacity limit."""
    registry.create_room("ROOM01", "p0", "P0")
    for i in range(1, 6):
        assert registry.add_player("ROOM01", f"p{i}", f"P{i}").success

    result = registry.add_player("ROOM01", "p6", "P6")
    assert result.error_code == ROOM_FULL
    assert len(registry.get("ROOM01").players) == 6


def test_thief_catcher_room_closed_once_started(registry):
    registry.create_room("ROOM01", "a", "Ann")
    registry.get("ROOM01").status = STATUS_PLAYING
    assert registry.add_player("ROOM01", "b", "Ben").error_code == INVALID_STATE


def test_same_connection_cannot_join_twice(registry):
    registry.create_room("ROOM01", "a", "Ann")
    assert registry.add_player("ROOM01", "a", "Ann").error_code == INVALID_STATE


def test_join_checks_do_not_change_rooms(registry):
    """Precheck failures match add_player and leave every room as it was."""
    registry.create_room("ROOM01", "p0", "P0")
    for i in range(1, 6):
        registry.add_player("ROOM01", f"p{i}", f"P{i}")
    registry.create_room("ROOM02", "a", "Ann", GAME_INDIAN_POKER)

    assert registry.check_join("ROOM02", "b", "  Ben ") == "Ben"
    assert registry.check_create(GAME_THIEF_CATCHER, " Cy ") == "Cy"

    refused = [
        (lambda: registry.check_join("ROOM01", "x", "Xi"), ROOM_FULL),
        (lambda: registry.check_join("ROOM02", "a", "Ann"), INVALID_STATE),
        (lambda: registry.check_join("ROOM02", "b", "x" * 13), VALIDATION_ERROR),
        (lambda: registry.check_join("NOPE00", "b", "Ben"), ROOM_NOT_FOUND),
        (lambda: registry.check_create("go-fish", "Ben"), VALIDATION_ERROR),
        (lambda: registry.check_create(GAME_THIEF_CATCHER, "   "), VALIDATION_ERROR),
    ]
    for check, code in refused:
        with pytest.raises(GameError) as exc:
            check()
        assert exc.value.code == code

    assert len(registry.get("ROOM01").players) == 6
    assert [p.id for p in registry.get("ROOM02").players] == ["a"]
    assert registry.rooms_count() == 2


def test_indian_poker_extra_joiners_spectate(registry):
    """Third and later joiners watch instead of playing."""
    registry.create_room("POKER1", "a", "Ann", GAME_INDIAN_POKER)
    registry.add_player("POKER1", "b", "Ben")

    result = registry.add_player("POKER1", "c", "Cat")

    assert result.success
    assert result.data.is_spectator
    room = registry.get("POKER1")
    assert isinstance(room, IndianPokerRoom)
    assert [p.id for p in room.players] == ["a", "b"]
    assert [s.id for s in room.spectators] == ["c"]


def test_indian_poker_joiner_spectates_running_match(registry):
    registry.create_room("POKER1", "a", "Ann", GAME_INDIAN_POKER)
    registry.get("POKER1").status = STATUS_BETTING
    result = registry.add_player("POKER1", "b", "Ben")
    assert result.data.is_spectator


def test_host_leaving_promotes_next_player(registry):
    """Test host transfer when the host leaves."""
    registry.create_room("ROOM01", "a", "Ann")
    registry.add_player("ROOM01", "b", "Ben")
    registry.add_player("ROOM01", "c", "Cat")

    result = registry.remove_player("ROOM01", "a")

    assert result.success
    assert not result.data.room_deleted
    assert result.data.new_host.id == "b"
    room = registry.get("ROOM01")
    assert room.players[0].is_host
    assert room.players[0].is_ready
    assert [p.id for p in room.players] == ["b", "c"]


def test_last_member_leaving_deletes_room(registry):
    registry.create_room("ROOM01", "a", "Ann")
    result = registry.remove_player("ROOM01", "a")
    assert result.data.room_deleted
    assert not registry.exists("ROOM01")
    assert registry.rooms_count() == 0


def test_removing_stranger_is_noop(registry):
    registry.create_room("ROOM01", "a", "Ann")
    result = registry.remove_player("ROOM01", "zz")
    assert result.success
    assert not result.data.room_deleted
    assert len(registry.get("ROOM01").players) == 1


def test_spectator_takes_free_seat(registry):
    """A waiting spectator is seated when a player leaves the lobby."""
    registry.create_room("POKER1", "a", "Ann", GAME_INDIAN_POKER)
    registry.add_player("POKER1", "b", "Ben")
    registry.add_player("POKER1", "c", "Cat")

    registry.remove_player("POKER1", "b")

    room = registry.get("POKER1")
    assert [p.id for p in room.players] == ["a", "c"]
    assert room.spectators == []
    assert not room.players[1].is_spectator


def test_spectator_leaving(registry):
    registry.create_room("POKER1", "a", "Ann", GAME_INDIAN_POKER)
    registry.add_player("POKER1", "b", "Ben")
    registry.add_player("POKER1", "c", "Cat")

    result = registry.remove_player("POKER1", "c")

    assert result.data.was_spectator
    assert registry.get("POKER1").spectators == []


def test_player_leaving_running_poker_match(registry):
    registry.create_room("POKER1", "a", "Ann", GAME_INDIAN_POKER)
    registry.add_player("POKER1", "b", "Ben")
    registry.toggle_ready("POKER1", "b")
    room = registry.get("POKER1")
    assert registry.indian_poker.start(room).success

    registry.remove_player("POKER1", "b")

    assert room.status == STATUS_WAITING
    assert [p.id for p in room.players] == ["a"]
    assert room.pot == 0


def test_toggle_ready(registry):
    registry.create_room("ROOM01", "a", "Ann")
    registry.add_player("ROOM01", "b", "Ben")

    assert registry.toggle_ready("ROOM01", "b").data.is_ready
    assert not registry.toggle_ready("ROOM01", "b").data.is_ready
    # The host is always ready
    assert registry.toggle_ready("ROOM01", "a").data.is_ready
    assert registry.toggle_ready("ROOM01", "zz").error_code == NOT_IN_ROOM


def test_change_game_type(registry):
    """Test switching a lobby between games."""
    registry.create_room("ROOM01", "a", "Ann")
    registry.add_player("ROOM01", "b", "Ben")
    registry.add_player("ROOM01", "c", "Cat")

    result = registry.change_game_type("ROOM01", GAME_INDIAN_POKER)

    assert result.success
    room = registry.get("ROOM01")
    assert isinstance(room, IndianPokerRoom)
    assert room.game_type == GAME_INDIAN_POKER
    assert [p.id for p in room.players] == ["a", "b"]
    assert [s.id for s in room.spectators] == ["c"]
    assert room.players[0].is_host
    assert registry.rooms_count() == 1

    back = registry.change_game_type("ROOM01", GAME_THIEF_CATCHER)
    assert back.success
    assert [p.id for p in registry.get("ROOM01").players] == ["a", "b", "c"]


def test_change_game_type_rejections(registry):
    registry.create_room("ROOM01", "a", "Ann")
    assert registry.change_game_type("ROOM01", "go-fish").error_code == VALIDATION_ERROR

    registry.get("ROOM01").status = STATUS_PLAYING
    assert registry.change_game_type("ROOM01", GAME_INDIAN_POKER).error_code == INVALID_STATE

    registry.create_room("POKER1", "p0", "P0", GAME_INDIAN_POKER)
    for i in range(1, 7):
        registry.add_player("POKER1", f"p{i}", f"P{i}")
    assert registry.change_game_type("POKER1", GAME_THIEF_CATCHER).error_code == ROOM_FULL


def test_reset_game_seats_spectators(registry):
    registry.create_room("POKER1", "a", "Ann", GAME_INDIAN_POKER)
    registry.add_player("POKER1", "b", "Ben")
    registry.add_player("POKER1", "c", "Cat")
    room = registry.get("POKER1")
    room.status = STATUS_FINISHED
    room.players.pop()

    result = registry.reset_game("POKER1")

    assert result.success
    assert room.status == STATUS_WAITING
    assert [p.id for p in room.players] == ["a", "c"]
    assert all(p.chips == 30 for p in room.players)


def test_change_nickname(registry):
    """Test nickname changes in the lobby."""
    registry.create_room("ROOM01", "a", "Ann")

    result = registry.change_nickname("ROOM01", "a", " Annie ")
    assert result.data.nickname == "Annie"

    assert registry.change_nickname("ROOM01", "a", "   ").error_code == VALIDATION_ERROR
    assert registry.change_nickname("ROOM01", "a", "x" * 13).error_code == VALIDATION_ERROR

    registry.get("ROOM01").status = STATUS_PLAYING
    assert registry.change_nickname("ROOM01", "a", "Anna").error_code == INVALID_STATE


def test_validate_nickname():
    assert validate_nickname("  Bo ") == "Bo"
    assert validate_nickname("x" * 12) == "x" * 12
    with pytest.raises(GameError):
        validate_nickname(None)
    with pytest.raises(GameError):
        validate_nickname("x" * 13)


def test_generate_room_code():
    rng = random.Random(1)
    code = generate_room_code(rng)
    assert len(code) == 6
    assert all(ch in ROOM_CODE_CHARS for ch in code)

    taken = {code}
    replay = generate_room_code(random.Random(1), is_taken=taken.__contains__)
    assert replay != code


def test_random_nickname_fits():
    rng = random.Random(2)
    for _ in range(100):
        validate_nickname(random_nickname(rng))


def test_rules_validation():
    with pytest.raises(ValidationError):
        RuleConfig(starting_chips=30, winning_chips=30)
    rules = create_rules(reveal_timeout=0)
    assert rules.reveal_timeout == 0
    assert rules.max_players(GAME_INDIAN_POKER) == 2
    assert rules.max_players(GAME_THIEF_CATCHER) == 6


def test_rules_from_env():
    rules = RuleConfig.from_env({"CARDPARTY_STARTING_CHIPS": "20", "CARDPARTY_WINNING_CHIPS": "40", "OTHER": "1"})
    assert rules.starting_chips == 20
    assert rules.winning_chips == 40
    assert rules.ante == 1
