# rpsls_escrow/writer.py
from __future__ import annotations

import asyncio
import logging

from algosdk import encoding

from .errors import ArtifactError, InvalidAddressError, InvalidStakeError, RevealRejected, WriteRejected
from .ledger import EscrowPrograms, is_valid_address
from .models import ActionKind
from .rules import Move, parse_move

logger = logging.getLogger(__name__)

METHOD_PLAY = b"play"
METHOD_REVEAL = ActionKind.REVEAL.value.encode()
METHOD_J1_TIMEOUT = ActionKind.PLAYER1_TIMEOUT_CLAIM.value.encode()
METHOD_J2_TIMEOUT = ActionKind.PLAYER2_TIMEOUT_CLAIM.value.encode()


def itob(n: int) -> bytes:
    return int(n).to_bytes(8, "big")


class LedgerStateWriter:
    """State-changing escrow calls, signed by the wallet session."""

    def __init__(self, ledger, wallet, programs: EscrowPrograms | None = None):
        self.ledger = ledger
        self.wallet = wallet
        self.programs = programs

    async def deploy(self, commitment_hash: bytes, player2: str, stake: int) -> int:
        self.wallet.require()
        if not is_valid_address(player2):
            raise InvalidAddressError("Please enter Player 2's address")
        if stake <= 0:
            raise InvalidStakeError("Please enter a stake amount")
        if self.programs is None:
            raise ArtifactError("No escrow program loaded")
        args = [commitment_hash, encoding.decode_address(player2)]
        app_id = await asyncio.to_thread(self.ledger.deploy, self.programs, args, stake, self.wallet)
        logger.info("deployed escrow %s against %s for %s", app_id, player2, stake)
        return app_id

    async def play(self, app_id: int, move, stake: int) -> dict:
        self.wallet.require()
        move = parse_move(move)
        return await self._call(app_id, METHOD_PLAY, [itob(move)], value=stake)

    async def reveal(self, app_id: int, move: Move, secret: bytes, accounts=None) -> dict:
        self.wallet.require()
        try:
            return await self._call(app_id, METHOD_REVEAL, [itob(move), secret], accounts=accounts)
        except WriteRejected as exc:
            raise RevealRejected(f"Reveal rejected by the escrow: {exc}") from exc

    async def player1_timeout_claim(self, app_id: int, accounts=None) -> dict:
        """Called by Player 2 once Player 1 failed to reveal in time."""
        self.wallet.require()
        return await self._call(app_id, METHOD_J1_TIMEOUT, accounts=accounts)

    async def player2_timeout_claim(self, app_id: int, accounts=None) -> dict:
        """Called by Player 1 once Player 2 failed to play in time."""
        self.wallet.require()
        return await self._call(app_id, METHOD_J2_TIMEOUT, accounts=accounts)

    async def _call(self, app_id, method, args=(), value=0, accounts=None) -> dict:
        receipt = await asyncio.to_thread(
            self.ledger.call, app_id, method, list(args), value, self.wallet, accounts,
        )
        logger.info("%s on app %s confirmed", method.decode(), app_id)
        return receipt
