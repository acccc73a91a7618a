"""Client engine for a wagered Rock-Paper-Scissors-Lizard-Spock escrow on Algorand."""

from .commitment import Commitment, commit, commitment_hash, verify_commitment
from .engine import GameEngine, connect
from .models import GameSession, Notice, Role, TimerState, ViewState
from .rules import Move, Outcome, evaluate, parse_move

__all__ = [
    "Commitment",
    "commit",
    "commitment_hash",
    "verify_commitment",
    "GameEngine",
    "connect",
    "GameSession",
    "Notice",
    "Role",
    "TimerState",
    "ViewState",
    "Move",
    "Outcome",
    "evaluate",
    "parse_move",
]
