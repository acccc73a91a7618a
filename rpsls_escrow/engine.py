# rpsls_escrow/engine.py
# Owns one game session: view, GameSession, notice, timer and poller.
# Every write is followed by a fresh reconciliation; nothing is guessed locally.
from __future__ import annotations

import asyncio
import logging
import time

from .artifacts import load_programs
from .commitment import Commitment, commit, verify_commitment
from .config import Settings, get_algod, get_indexer, get_kmd
from .errors import (
    ActionNotAllowed,
    EngineError,
    InsufficientFunds,
    InvalidAddressError,
    InvalidMoveError,
    InvalidStakeError,
    LedgerError,
    OutcomeUndetermined,
    ValidationError,
)
from .ledger import AlgorandLedger, is_valid_address
from .models import ACTIVE_VIEWS, TERMINAL_VIEWS, GameSession, Notice, Role, TimerState, ViewState
from .outcome import OutcomeResolver
from .polling import PollingScheduler
from .reader import LedgerStateReader, parse_app_id
from .reconciler import StateReconciler, expiry_notice
from .rules import Move, parse_move
from .timer import TimerController
from .wallet import WalletSession
from .writer import LedgerStateWriter

logger = logging.getLogger(__name__)

TIMEOUT_CLAIM_VIEWS = frozenset({ViewState.PLAYER1_WAITING, ViewState.PLAYER2_WAITING})


class GameEngine:
    def __init__(
        self,
        ledger,
        wallet: WalletSession,
        programs=None,
        settings: Settings | None = None,
        clock=time.time,
        tick_seconds: float = 1.0,
    ):
        settings = settings or Settings()
        self.settings = settings
        self.wallet = wallet
        self.reader = LedgerStateReader(ledger, settings.genesis_id)
        self.writer = LedgerStateWriter(ledger, wallet, programs)
        self.resolver = OutcomeResolver(ledger, settings.history_rounds)
        self.reconciler = StateReconciler(self.reader, self.resolver, settings.timeout_seconds, clock)
        self.timer = TimerController(on_expired=self._on_timer_expired, tick_seconds=tick_seconds)
        self.poller = PollingScheduler(self._poll, settings.poll_seconds)

        self.view = ViewState.LANDING
        self.session: GameSession | None = None
        self.commitment: Commitment | None = None
        self.notice: Notice | None = None
        self._lock = asyncio.Lock()
        # stake is gone but the ending transaction was not found yet
        self._payout_unresolved = False

    # ---- Read-only views for presentation ----

    @property
    def timer_state(self) -> TimerState:
        return self.timer.state

    @property
    def can_claim_timeout(self) -> bool:
        return self.view in TIMEOUT_CLAIM_VIEWS and self.timer.expired and not self._payout_unresolved

    @property
    def finished(self) -> bool:
        return self.view in TERMINAL_VIEWS

    # ---- Navigation ----

    def begin_create(self) -> None:
        self.reset()
        self.view = ViewState.CREATING_GAME

    def begin_join(self) -> None:
        self.reset()
        self.view = ViewState.JOINING_GAME

    def reset(self) -> None:
        """Back to the landing view; the session, its secret and both drivers are discarded."""
        self._teardown()
        self.session = None
        self.commitment = None
        self.view = ViewState.LANDING

    async def close(self) -> None:
        self.reset()
        await asyncio.sleep(0)

    # ---- User actions ----

    async def create_game(self, move, stake: int, player2_address: str) -> bool:
        try:
            move = parse_move(move)
            if move == Move.NULL:
                raise InvalidMoveError("Please select a move")
            if not is_valid_address(player2_address):
                raise InvalidAddressError("Please enter Player 2's address")
            if isinstance(stake, bool) or not isinstance(stake, int) or stake <= 0:
                raise InvalidStakeError("Please enter a stake amount")
            self.wallet.require()
            if await self.reader.balance(self.wallet.address) < stake:
                raise InsufficientFunds("Insufficient balance for the stake amount")
            commitment = commit(move)
            app_id = await self.writer.deploy(commitment.hash, player2_address, stake)
        except EngineError as exc:
            self._report(exc)
            return False

        self._teardown()
        self.commitment = commitment
        self.session = GameSession(
            contract_address=app_id,
            original_stake_amount=stake,
            local_role=Role.PLAYER1,
        )
        return await self.refresh()

    async def join_game(self, contract_address, commitment: Commitment | None = None) -> bool:
        """Locate an existing escrow. Player 1 may hand back a saved commitment to reveal later."""
        try:
            app_id = parse_app_id(contract_address)
        except ValidationError as exc:
            self._report(exc)
            return False
        self._teardown()
        self.view = ViewState.JOINING_GAME
        self.session = GameSession(contract_address=app_id)
        self.commitment = commitment
        return await self.refresh()

    async def play(self, move) -> bool:
        try:
            self._require_view(ViewState.PLAYER2_PLAYING, "You can only play while it is your turn")
            move = parse_move(move)
            if move == Move.NULL:
                raise InvalidMoveError("Please select a move to play")
            self.wallet.require()
            await self.writer.play(self.session.contract_address, move, self.session.original_stake_amount)
        except LedgerError as exc:
            return await self._write_failed(exc)
        except EngineError as exc:
            self._report(exc)
            return False
        return await self.refresh()

    async def reveal(self) -> bool:
        try:
            self._require_view(ViewState.PLAYER1_REVEALING, "Nothing to reveal yet")
            if self.commitment is None:
                raise ValidationError("The move and secret for this game are not available in this session")
            if not verify_commitment(self.session.commitment_hash, self.commitment.move, self.commitment.secret):
                raise ValidationError("Saved move and secret do not match this game's commitment")
            await self.writer.reveal(
                self.session.contract_address,
                self.commitment.move,
                self.commitment.secret,
                accounts=[self.session.player2_address],
            )
        except LedgerError as exc:
            return await self._write_failed(exc)
        except EngineError as exc:
            self._report(exc)
            return False
        return await self.refresh()

    async def claim_timeout(self) -> bool:
        # Re-check first: the other player may have acted since the last poll.
        # Without a fresh view of the escrow there is nothing safe to claim.
        if not await self.refresh():
            return False
        try:
            if self.view not in TIMEOUT_CLAIM_VIEWS:
                raise ActionNotAllowed("Timeout can only be called while waiting on the other player")
            if not self.timer.expired:
                raise ActionNotAllowed(f"Wait for timer to expire ({self.timer.format_remaining()} left)")
            app_id = self.session.contract_address
            if self.view is ViewState.PLAYER1_WAITING:
                await self.writer.player2_timeout_claim(app_id, accounts=[self.session.player2_address])
            else:
                await self.writer.player1_timeout_claim(app_id, accounts=[self.session.player1_address])
        except LedgerError as exc:
            return await self._write_failed(exc)
        except EngineError as exc:
            self._report(exc)
            return False
        return await self.refresh()

    async def recheck_outcome(self, history_rounds: int) -> bool:
        """Retry outcome resolution over a wider history window."""
        return await self.refresh(history_rounds=history_rounds)

    # ---- Reconciliation ----

    async def refresh(self, history_rounds: int | None = None) -> bool:
        if self.session is None:
            self._report(ValidationError("No contract address provided"))
            return False
        async with self._lock:
            session = self.session
            try:
                result = await self.reconciler.reconcile(session, self.wallet.address, history_rounds)
            except EngineError as exc:
                if self.session is session:
                    if isinstance(exc, OutcomeUndetermined):
                        self._payout_unresolved = True
                        self.timer.disarm()
                    self._report(exc)
                return False
            if self.session is not session:
                # reset or a new game while the read was in flight
                return False
            self._payout_unresolved = False
            self.session = result.session
            self.view = result.view
            self.notice = result.notice
            if result.timer_seconds is None:
                self.timer.disarm()
            else:
                self.timer.arm(result.timer_seconds)
            self._sync_drivers()
            return True

    async def _poll(self) -> None:
        if self._lock.locked():
            return
        await self.refresh()

    def _sync_drivers(self) -> None:
        if self.view in ACTIVE_VIEWS and self.session is not None:
            self.poller.start()
        else:
            self.poller.stop()
            self.timer.disarm()

    def _teardown(self) -> None:
        self.poller.stop()
        self.timer.disarm()
        self.notice = None
        self._payout_unresolved = False

    async def _write_failed(self, exc: EngineError) -> bool:
        """Report a failed write, then follow the ledger: the other player may have moved first."""
        self._report(exc)
        reported = self.notice
        await self.refresh()
        if self.notice is None:
            self.notice = reported
        return False

    def _on_timer_expired(self) -> None:
        notice = expiry_notice(self.view)
        if notice is not None:
            self.notice = notice

    def _require_view(self, view: ViewState, message: str) -> None:
        if self.session is None or self.view is not view:
            raise ActionNotAllowed(message)

    def _report(self, exc: EngineError) -> None:
        logger.warning("%s: %s", type(exc).__name__, exc)
        self.notice = Notice(str(exc), exc.level)


def connect(settings: Settings | None = None, wallet: WalletSession | None = None) -> GameEngine:
    """Engine wired to algod/indexer from `settings`, signing with `wallet` (LocalNet KMD by default)."""
    settings = settings or Settings.from_env()
    algod = get_algod(settings)
    ledger = AlgorandLedger(algod, get_indexer(settings))
    ledger.check_health()
    if wallet is None:
        wallet = WalletSession.from_kmd(get_kmd(settings))
    programs = load_programs(algod, settings.artifacts_dir)
    return GameEngine(ledger, wallet, programs=programs, settings=settings)
