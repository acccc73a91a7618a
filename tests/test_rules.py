import itertools

import pytest

from rpsls_escrow.errors import InvalidMoveError
from rpsls_escrow.rules import Move, Outcome, evaluate, parse_move


def _beats(a: int, b: int) -> bool:
    # each move beats the moves two and four places ahead of it, cyclically over 1..5
    return (b - a) % 5 in (2, 4)


@pytest.mark.parametrize("c1,c2", list(itertools.product(range(6), repeat=2)))
def test_evaluate_matches_cyclic_relation(c1, c2):
    result = evaluate(c1, c2)
    if c1 == c2:
        expected = Outcome.TIE
    elif c1 == 0:
        expected = Outcome.PLAYER2_WINS
    elif c2 == 0:
        expected = Outcome.PLAYER1_WINS
    else:
        expected = Outcome.PLAYER1_WINS if _beats(c1, c2) else Outcome.PLAYER2_WINS
    assert result is expected
    # deterministic and antisymmetric
    assert evaluate(c1, c2) is result
    flipped = {Outcome.PLAYER1_WINS: Outcome.PLAYER2_WINS,
               Outcome.PLAYER2_WINS: Outcome.PLAYER1_WINS,
               Outcome.TIE: Outcome.TIE}
    assert evaluate(c2, c1) is flipped[result]


def test_parity_examples():
    assert evaluate(1, 3) is Outcome.PLAYER1_WINS   # both odd, lower wins
    assert evaluate(2, 4) is Outcome.PLAYER1_WINS   # both even, lower wins
    assert evaluate(1, 2) is Outcome.PLAYER2_WINS   # mixed parity, higher wins
    assert evaluate(3, 4) is Outcome.PLAYER2_WINS


def test_classic_names():
    assert evaluate(Move.ROCK, Move.SCISSORS) is Outcome.PLAYER1_WINS
    assert evaluate(Move.PAPER, Move.SPOCK) is Outcome.PLAYER1_WINS
    assert evaluate(Move.LIZARD, Move.PAPER) is Outcome.PLAYER1_WINS
    assert evaluate(Move.SPOCK, Move.LIZARD) is Outcome.PLAYER2_WINS


def test_unplayed_moves():
    assert evaluate(0, 0) is Outcome.TIE
    assert evaluate(0, 5) is Outcome.PLAYER2_WINS
    assert evaluate(4, 0) is Outcome.PLAYER1_WINS


@pytest.mark.parametrize("value,expected", [
    (3, Move.SCISSORS),
    ("5", Move.LIZARD),
    ("rock", Move.ROCK),
    (" Spock ", Move.SPOCK),
    (Move.PAPER, Move.PAPER),
])
def test_parse_move(value, expected):
    assert parse_move(value) is expected


@pytest.mark.parametrize("value", [6, -1, "banana", "", None])
def test_parse_move_rejects(value):
    with pytest.raises(InvalidMoveError):
        parse_move(value)


def test_evaluate_rejects_out_of_range():
    with pytest.raises(InvalidMoveError):
        evaluate(6, 1)
