"""Game constants and utilities"""

from typing import List

# Game types
GAME_THIEF_CATCHER = 'thief-catcher'
GAME_INDIAN_POKER = 'indian-poker'
GAME_TYPES = [GAME_THIEF_CATCHER, GAME_INDIAN_POKER]

# Room lifecycle
STATUS_WAITING = 'waiting'
STATUS_PLAYING = 'playing'
STATUS_BETTING = 'betting'
STATUS_REVEAL = 'reveal'
STATUS_FINISHED = 'finished'
ACTIVE_STATUSES = [STATUS_PLAYING, STATUS_BETTING, STATUS_REVEAL]

# Thief Catcher deck
SUITS = ['spades', 'hearts', 'diamonds', 'clubs']
VALUES = ['A', '2', '3', '4', '5', '6', '7', '8', '9', '10', 'J', 'Q', 'K']
JOKER_SUIT = 'joker'
JOKER_VALUE = 'JOKER'
JOKER_ID = 'joker'

# Indian Poker deck: ranks 1..10 in two suits
INDIAN_POKER_SUITS = ['hearts', 'spades']
INDIAN_POKER_RANKS: List[int] = list(range(1, 11))

# Player caps
THIEF_CATCHER_MAX_PLAYERS = 6
INDIAN_POKER_MAX_PLAYERS = 2
MIN_PLAYERS = 2

# Indian Poker chips
STARTING_CHIPS = 30
WINNING_CHIPS = 60
ANTE = 1
FOLD_PENALTY_RANK = 10
FOLD_PENALTY = 10

# Betting actions
ACTION_BET = 'bet'
ACTION_CALL = 'call'
ACTION_DIE = 'die'

# Room code alphabet skips look-alike characters (0/O, 1/I)
ROOM_CODE_CHARS = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
ROOM_CODE_LENGTH = 6
NICKNAME_MAX_LENGTH = 12

NICKNAME_ADJECTIVES = ['Happy', 'Brave', 'Swift', 'Lazy', 'Witty', 'Lucky', 'Cozy', 'Shy']
NICKNAME_NOUNS = ['Tiger', 'Bunny', 'Eagle', 'Cat', 'Puppy', 'Bear', 'Fox', 'Wolf']
