# rpsls_escrow/models.py
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from .rules import Move


class Role(Enum):
    PLAYER1 = "player1"
    PLAYER2 = "player2"
    NONE = "none"


class ViewState(Enum):
    LANDING = "landing"
    CREATING_GAME = "create-game"
    JOINING_GAME = "join-game"
    PLAYER1_WAITING = "player1-wait"
    PLAYER1_REVEALING = "player1-reveal"
    PLAYER2_PLAYING = "player2-play"
    PLAYER2_WAITING = "player2-wait"
    PLAYER1_WON = "player1-win"
    PLAYER1_LOST = "player1-lose"
    PLAYER2_WON = "player2-win"
    PLAYER2_LOST = "player2-lose"
    TIE = "tie"


# Views that poll the ledger and run the countdown.
ACTIVE_VIEWS = frozenset({
    ViewState.PLAYER1_WAITING,
    ViewState.PLAYER1_REVEALING,
    ViewState.PLAYER2_PLAYING,
    ViewState.PLAYER2_WAITING,
})

TERMINAL_VIEWS = frozenset({
    ViewState.PLAYER1_WON,
    ViewState.PLAYER1_LOST,
    ViewState.PLAYER2_WON,
    ViewState.PLAYER2_LOST,
    ViewState.TIE,
})


class ActionKind(Enum):
    REVEAL = "reveal"
    PLAYER1_TIMEOUT_CLAIM = "j1_timeout"   # Player 1 never revealed
    PLAYER2_TIMEOUT_CLAIM = "j2_timeout"   # Player 2 never played


@dataclass(frozen=True)
class Notice:
    message: str
    level: str = "info"   # error | warning | info


@dataclass(frozen=True)
class TimerState:
    seconds_remaining: int = 0
    is_active: bool = False


@dataclass(frozen=True)
class LedgerSnapshot:
    """One atomic read of the escrow's global state."""
    player1: str
    player2: str
    stake: int
    commitment_hash: bytes
    player2_move: int
    last_action: int
    timeout_window: int | None = None


@dataclass(frozen=True)
class EndingTransactionRecord:
    action_kind: ActionKind
    revealed_move: Move | None = None
    txid: str = ""
    round: int = 0


@dataclass(frozen=True)
class GameSession:
    contract_address: int
    player1_address: str = ""
    player2_address: str = ""
    stake_amount: int = 0
    original_stake_amount: int = 0
    commitment_hash: bytes = b""
    player1_revealed_move: int = 0
    player2_move: int = 0
    last_action_timestamp: int = 0
    local_role: Role = Role.NONE

    def with_snapshot(self, snapshot: LedgerSnapshot, role: Role) -> GameSession:
        # The first non-zero stake seen is kept; after payout the ledger reports 0.
        return replace(
            self,
            player1_address=snapshot.player1,
            player2_address=snapshot.player2,
            stake_amount=snapshot.stake,
            original_stake_amount=self.original_stake_amount or snapshot.stake,
            commitment_hash=snapshot.commitment_hash,
            player2_move=snapshot.player2_move,
            last_action_timestamp=snapshot.last_action,
            local_role=role,
        )


def role_for(address: str | None, snapshot: LedgerSnapshot) -> Role:
    if not address:
        return Role.NONE
    if snapshot.player1 and address == snapshot.player1:
        return Role.PLAYER1
    if snapshot.player2 and address == snapshot.player2:
        return Role.PLAYER2
    return Role.NONE


def short_address(address: str) -> str:
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
