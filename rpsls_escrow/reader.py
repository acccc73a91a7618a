# rpsls_escrow/reader.py
from __future__ import annotations

import asyncio
import logging

from .errors import AbiMismatch, ChainMismatch, ContractAbsent, InvalidAddressError
from .ledger import decode_address
from .models import LedgerSnapshot

logger = logging.getLogger(__name__)

# Escrow global-state keys.
FIELD_PLAYER1 = "j1"
FIELD_PLAYER2 = "j2"
FIELD_STAKE = "stake"
FIELD_COMMITMENT = "c1_hash"
FIELD_PLAYER2_MOVE = "c2"
FIELD_LAST_ACTION = "last_action"
FIELD_TIMEOUT = "timeout"


def parse_app_id(value) -> int:
    """Application ids are the escrow's address on this ledger."""
    if isinstance(value, bool):
        raise InvalidAddressError("Invalid contract address")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise InvalidAddressError(f"Invalid contract address {value!r}")
    try:
        app_id = int(value)
    except (TypeError, ValueError):
        raise InvalidAddressError(f"Invalid contract address {value!r}") from None
    if app_id <= 0:
        raise InvalidAddressError("No contract address provided")
    return app_id


def _uint(fields: dict, name: str) -> int:
    value = fields.get(name)
    if not isinstance(value, int):
        raise AbiMismatch(f"Contract Error: field {name!r} missing or not a uint")
    return value


def snapshot_from_fields(fields: dict) -> LedgerSnapshot:
    try:
        player1 = decode_address(fields.get(FIELD_PLAYER1))
        player2 = decode_address(fields.get(FIELD_PLAYER2))
    except ValueError as exc:
        raise AbiMismatch(f"Contract Error: {exc}") from exc
    commitment = fields.get(FIELD_COMMITMENT)
    if not isinstance(commitment, bytes):
        raise AbiMismatch(f"Contract Error: field {FIELD_COMMITMENT!r} missing or not bytes")
    timeout = fields.get(FIELD_TIMEOUT)
    return LedgerSnapshot(
        player1=player1,
        player2=player2,
        stake=_uint(fields, FIELD_STAKE),
        commitment_hash=commitment,
        player2_move=_uint(fields, FIELD_PLAYER2_MOVE),
        last_action=_uint(fields, FIELD_LAST_ACTION),
        timeout_window=timeout if isinstance(timeout, int) and timeout > 0 else None,
    )


class LedgerStateReader:
    def __init__(self, ledger, genesis_id: str | None = None):
        self.ledger = ledger
        self.genesis_id = genesis_id

    async def read(self, app_id) -> LedgerSnapshot:
        app_id = parse_app_id(app_id)
        network = await asyncio.to_thread(self.ledger.get_network)
        if self.genesis_id and network != self.genesis_id:
            raise ChainMismatch(
                f"Connected to {network}, expected {self.genesis_id}. Make sure you're on the correct network."
            )
        code = await asyncio.to_thread(self.ledger.get_code, app_id)
        if not code:
            raise ContractAbsent(
                f"No contract found at {app_id} on {network}. Make sure you're on the correct network."
            )
        fields = await asyncio.to_thread(self.ledger.read_fields, app_id)
        snapshot = snapshot_from_fields(fields)
        logger.debug("app %s snapshot: stake=%s c2=%s last_action=%s",
                     app_id, snapshot.stake, snapshot.player2_move, snapshot.last_action)
        return snapshot

    async def latest_round(self) -> int:
        return await asyncio.to_thread(self.ledger.latest_round)

    async def balance(self, address: str) -> int:
        return await asyncio.to_thread(self.ledger.balance, address)
