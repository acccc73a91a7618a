# rpsls_escrow/rules.py
# Rock-Paper-Scissors-Lizard-Spock, numbered so that parity decides the winner.
from enum import Enum, IntEnum

from .errors import InvalidMoveError


class Move(IntEnum):
    NULL = 0      # not chosen / not played
    ROCK = 1
    PAPER = 2
    SCISSORS = 3
    SPOCK = 4
    LIZARD = 5


class Outcome(Enum):
    PLAYER1_WINS = "player1_wins"
    PLAYER2_WINS = "player2_wins"
    TIE = "tie"


def parse_move(value) -> Move:
    """Accept a move code (0..5) or a name such as "rock" or "Spock"."""
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            return Move[value.strip().upper()]
        except KeyError:
            raise InvalidMoveError(f"unknown move {value!r}") from None
    try:
        return Move(int(value))
    except (TypeError, ValueError):
        raise InvalidMoveError(f"move must be 0..5, got {value!r}") from None


def evaluate(c1: int, c2: int) -> Outcome:
    """Winner of Player 1's move `c1` against Player 2's move `c2`.

    Each move beats the two moves two and four places ahead of it
    cyclically; for the numbering above that reduces to: with equal
    parity the lower move wins, otherwise the higher move wins.
    An unplayed move (0) loses to anything but another 0.
    """
    c1, c2 = parse_move(c1), parse_move(c2)
    if c1 == c2:
        return Outcome.TIE
    if c1 == Move.NULL:
        return Outcome.PLAYER2_WINS
    if c2 == Move.NULL:
        return Outcome.PLAYER1_WINS
    if c1 % 2 == c2 % 2:
        return Outcome.PLAYER1_WINS if c1 < c2 else Outcome.PLAYER2_WINS
    return Outcome.PLAYER1_WINS if c1 > c2 else Outcome.PLAYER2_WINS
