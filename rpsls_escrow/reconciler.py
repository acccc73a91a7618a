# rpsls_escrow/reconciler.py
# The ledger is the source of truth: every cycle re-derives view, role and
# countdown from a fresh snapshot instead of trusting what the client did last.
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable

from .models import (
    GameSession,
    LedgerSnapshot,
    Notice,
    Role,
    ViewState,
    role_for,
    short_address,
)
from .outcome import OutcomeResolver
from .reader import LedgerStateReader

logger = logging.getLogger(__name__)

_EXPIRY_NOTICES = {
    ViewState.PLAYER1_WAITING: Notice(
        "Player 2 did not play in time. You can now call timeout to recover your stake.", "info"),
    ViewState.PLAYER1_REVEALING: Notice(
        "Your reveal window is over. Reveal now before Player 2 calls timeout.", "warning"),
    ViewState.PLAYER2_PLAYING: Notice(
        "Your play window is over. Player 1 can now call timeout to recover the stake.", "warning"),
    ViewState.PLAYER2_WAITING: Notice(
        "Time's up! Player 1 did not reveal. You can now call timeout to win the game.", "info"),
}


@dataclass(frozen=True)
class Transition:
    view: ViewState
    notice: Notice | None = None
    timer_seconds: int | None = None    # None: disarm


@dataclass(frozen=True)
class Reconciliation:
    session: GameSession
    view: ViewState
    notice: Notice | None = None
    timer_seconds: int | None = None


def remaining_seconds(last_action: int, now: float, timeout_window: int) -> int:
    return max(0, int(timeout_window - (now - last_action)))


def expiry_notice(view: ViewState) -> Notice | None:
    return _EXPIRY_NOTICES.get(view)


def transition(snapshot: LedgerSnapshot, role: Role, now: float, timeout_window: int) -> Transition:
    """Next view for a live escrow (stake > 0)."""
    if not snapshot.player1 and not snapshot.player2:
        return Transition(ViewState.JOINING_GAME, Notice("Unable to read contract data", "error"))

    if role is Role.PLAYER1:
        if snapshot.player2_move == 0:
            view, notice = ViewState.PLAYER1_WAITING, None
        else:
            view = ViewState.PLAYER1_REVEALING
            notice = Notice("Player 2 has played! Reveal your move to determine the winner.", "info")
    elif role is Role.PLAYER2:
        if snapshot.player2_move == 0:
            view = ViewState.PLAYER2_PLAYING
        else:
            view = ViewState.PLAYER2_WAITING
        notice = None
    else:
        return Transition(
            ViewState.JOINING_GAME,
            Notice(
                "You are not a player in this game. This game is between "
                f"Player 1 ({short_address(snapshot.player1)}) and "
                f"Player 2 ({short_address(snapshot.player2)}).",
                "warning",
            ),
        )

    seconds = remaining_seconds(snapshot.last_action, now, timeout_window)
    if seconds == 0:
        notice = expiry_notice(view)
    return Transition(view, notice, seconds)


class StateReconciler:
    def __init__(
        self,
        reader: LedgerStateReader,
        resolver: OutcomeResolver,
        timeout_window: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.reader = reader
        self.resolver = resolver
        self.timeout_window = timeout_window
        self.clock = clock

    async def reconcile(self, session: GameSession, wallet_address: str | None,
                        history_rounds: int | None = None) -> Reconciliation:
        snapshot = await self.reader.read(session.contract_address)
        role = role_for(wallet_address, snapshot)
        updated = session.with_snapshot(snapshot, role)

        if snapshot.stake == 0:
            resolution = await self.resolver.resolve(updated, history_rounds)
            if resolution.record.revealed_move is not None:
                updated = replace(updated, player1_revealed_move=int(resolution.record.revealed_move))
            logger.info("app %s ended: %s", session.contract_address, resolution.outcome.value)
            return Reconciliation(updated, resolution.view, resolution.notice, None)

        window = snapshot.timeout_window or self.timeout_window
        step = transition(snapshot, role, self.clock(), window)
        return Reconciliation(updated, step.view, step.notice, step.timer_seconds)

    @staticmethod
    def expiry_notice(view: ViewState) -> Notice | None:
        return expiry_notice(view)
