# rpsls_escrow/outcome.py
# Once the escrow has paid out (stake == 0) its state no longer says who won.
# The answer is in the transaction that drained it: reveal, j1_timeout or
# j2_timeout. The escrow can only be drained once, so at most one exists.
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .errors import OutcomeUndetermined
from .models import ActionKind, EndingTransactionRecord, GameSession, Notice, Role, ViewState
from .rules import Move, Outcome, evaluate

logger = logging.getLogger(__name__)

_BY_METHOD = {kind.value.encode(): kind for kind in ActionKind}


@dataclass(frozen=True)
class Resolution:
    view: ViewState
    notice: Notice
    record: EndingTransactionRecord
    outcome: Outcome


def decode_call(app_args: list[bytes]) -> EndingTransactionRecord | None:
    """Ending call encoded in application args, or None for any other call."""
    if not app_args:
        return None
    kind = _BY_METHOD.get(app_args[0])
    if kind is None:
        return None
    if kind is ActionKind.REVEAL:
        if len(app_args) < 2 or len(app_args[1]) != 8:
            raise ValueError("reveal without a uint64 move argument")
        return EndingTransactionRecord(kind, revealed_move=Move(int.from_bytes(app_args[1], "big")))
    return EndingTransactionRecord(kind)


def outcome_of(record: EndingTransactionRecord, player2_move: int) -> Outcome:
    if record.action_kind is ActionKind.PLAYER1_TIMEOUT_CLAIM:
        return Outcome.PLAYER2_WINS
    if record.action_kind is ActionKind.PLAYER2_TIMEOUT_CLAIM:
        return Outcome.PLAYER1_WINS
    return evaluate(record.revealed_move, player2_move)


def _cause(record: EndingTransactionRecord, outcome: Outcome) -> str:
    if record.action_kind is ActionKind.PLAYER1_TIMEOUT_CLAIM:
        return "Player 1 timed out."
    if record.action_kind is ActionKind.PLAYER2_TIMEOUT_CLAIM:
        return "Player 2 timed out."
    if outcome is Outcome.PLAYER1_WINS:
        return "Player 1 beats Player 2."
    return "Player 2 beats Player 1."


def view_for(outcome: Outcome, role: Role, cause: str) -> tuple[ViewState, Notice]:
    """Map an outcome into the local player's perspective."""
    if outcome is Outcome.TIE:
        if role is Role.NONE:
            return ViewState.JOINING_GAME, Notice("This game ended in a tie.", "info")
        return ViewState.TIE, Notice("It's a tie! Both players get their stake back.", "info")
    p1_won = outcome is Outcome.PLAYER1_WINS
    if role is Role.PLAYER1:
        return (ViewState.PLAYER1_WON if p1_won else ViewState.PLAYER1_LOST,
                Notice(("You won! " if p1_won else "You lost! ") + cause, "info"))
    if role is Role.PLAYER2:
        return (ViewState.PLAYER2_LOST if p1_won else ViewState.PLAYER2_WON,
                Notice(("You lost! " if p1_won else "You won! ") + cause, "info"))
    winner = "Player 1" if p1_won else "Player 2"
    return ViewState.JOINING_GAME, Notice(f"This game has ended: {winner} won. {cause}", "info")


class OutcomeResolver:
    """Read-only: the same ledger history always resolves to the same result."""

    def __init__(self, ledger, history_rounds: int = 5000):
        self.ledger = ledger
        self.history_rounds = history_rounds

    async def find_ending_transaction(self, app_id: int, history_rounds: int | None = None) -> EndingTransactionRecord:
        width = self.history_rounds if history_rounds is None else history_rounds
        latest = await asyncio.to_thread(self.ledger.latest_round)
        first = max(0, latest - width)
        entries = await asyncio.to_thread(self.ledger.get_logs, app_id, first, latest)

        for entry in reversed(entries):
            tx = await asyncio.to_thread(self.ledger.get_transaction, entry.txid)
            if tx.to != app_id:
                continue
            try:
                record = decode_call(tx.input)
            except ValueError as exc:
                logger.debug("skipping %s: %s", tx.txid, exc)
                continue
            if record is None:
                continue
            logger.debug("ending tx: hash=%s from=%s name=%s round=%s",
                         tx.txid, tx.sender, record.action_kind.value, tx.round)
            return EndingTransactionRecord(record.action_kind, record.revealed_move, tx.txid, tx.round)

        raise OutcomeUndetermined(
            f"Game ended but no ending transaction was found in rounds {first}-{latest}. "
            "Check your balance or re-check with a wider history window."
        )

    async def resolve(self, session: GameSession, history_rounds: int | None = None) -> Resolution:
        """Outcome from the perspective of `session.local_role`, as set by the reconciler."""
        record = await self.find_ending_transaction(session.contract_address, history_rounds)
        outcome = outcome_of(record, session.player2_move)
        view, notice = view_for(outcome, session.local_role, _cause(record, outcome))
        return Resolution(view=view, notice=notice, record=record, outcome=outcome)
