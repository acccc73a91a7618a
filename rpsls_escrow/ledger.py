# rpsls_escrow/ledger.py
# Thin adapter over algod + indexer: the ledger read/write client the engine
# talks to. All calls are blocking; callers run them through asyncio.to_thread.
from __future__ import annotations

import base64
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field

import requests
from algosdk import encoding, logic
from algosdk.error import AlgodHTTPError, ConfirmationTimeoutError, IndexerHTTPError
from algosdk.transaction import (
    ApplicationCreateTxn,
    ApplicationNoOpTxn,
    OnComplete,
    PaymentTxn,
    StateSchema,
    assign_group_id,
    wait_for_confirmation,
)
from algosdk.v2client.algod import AlgodClient
from algosdk.v2client.indexer import IndexerClient

from .errors import ContractAbsent, LedgerUnreachable, WriteRejected

logger = logging.getLogger(__name__)

# Globals: stake, c2, last_action, timeout (uints) + j1, j2, c1_hash (bytes) → 4/3
GLOBAL_SCHEMA = StateSchema(num_uints=4, num_byte_slices=3)
LOCAL_SCHEMA = StateSchema(num_uints=0, num_byte_slices=0)
# Outer call plus up to two inner payments on payout.
CALL_FEE = 3000
CONFIRM_ROUNDS = 10
FUND_METHOD = b"fund"
HEALTH_TIMEOUT = 10


@dataclass(frozen=True)
class EscrowPrograms:
    approval: bytes
    clear: bytes


@dataclass(frozen=True)
class LogEntry:
    txid: str
    round: int
    offset: int = 0


@dataclass(frozen=True)
class TransactionRecord:
    txid: str
    sender: str
    to: int                      # application id called, 0 for creations
    input: list[bytes] = field(default_factory=list)
    round: int = 0


def decode_global_state(entries: list[dict]) -> dict[str, int | bytes]:
    state: dict[str, int | bytes] = {}
    for item in entries:
        key = base64.b64decode(item["key"]).decode("utf-8", errors="replace")
        value = item["value"]
        if value.get("type") == 1:
            state[key] = base64.b64decode(value.get("bytes", ""))
        else:
            state[key] = int(value.get("uint", 0))
    return state


@contextmanager
def _reading(what: str):
    try:
        yield
    except (AlgodHTTPError, IndexerHTTPError) as exc:
        raise LedgerUnreachable(f"{what} failed: {exc}") from exc
    except OSError as exc:
        raise LedgerUnreachable(f"{what} failed, ledger unreachable: {exc}") from exc


@contextmanager
def _writing(what: str):
    try:
        yield
    except AlgodHTTPError as exc:
        if exc.code is not None and 400 <= exc.code < 500:
            raise WriteRejected(f"{what} rejected: {exc}") from exc
        raise LedgerUnreachable(f"{what} failed: {exc}") from exc
    except ConfirmationTimeoutError as exc:
        raise LedgerUnreachable(f"{what} not confirmed: {exc}") from exc
    except OSError as exc:
        raise LedgerUnreachable(f"{what} failed, ledger unreachable: {exc}") from exc


class AlgorandLedger:
    def __init__(self, algod: AlgodClient, indexer: IndexerClient):
        self.algod = algod
        self.indexer = indexer

    # ---- Reads ----

    def check_health(self) -> None:
        targets = [
            (f"{self.algod.algod_address}/health", {"X-Algo-API-Token": self.algod.algod_token}),
            (f"{self.indexer.indexer_address}/health", {}),
        ]
        for url, headers in targets:
            try:
                r = requests.get(url, headers=headers, timeout=HEALTH_TIMEOUT)
            except requests.RequestException as exc:
                raise LedgerUnreachable(f"{url} unreachable: {exc}") from exc
            if r.status_code != 200:
                raise LedgerUnreachable(f"{url} unhealthy: {r.status_code} {r.text}")

    def get_network(self) -> str:
        with _reading("versions"):
            return self.algod.versions()["genesis_id"]

    def latest_round(self) -> int:
        with _reading("status"):
            return int(self.algod.status()["last-round"])

    def balance(self, address: str) -> int:
        with _reading("account_info"):
            return int(self.algod.account_info(address)["amount"])

    def _application(self, app_id: int) -> dict:
        try:
            return self.algod.application_info(app_id)
        except AlgodHTTPError as exc:
            if exc.code == 404:
                raise ContractAbsent(f"No application {app_id} on this network") from exc
            raise LedgerUnreachable(f"application_info failed: {exc}") from exc
        except OSError as exc:
            raise LedgerUnreachable(f"application_info failed, ledger unreachable: {exc}") from exc

    def get_code(self, app_id: int) -> bytes:
        try:
            app = self._application(app_id)
        except ContractAbsent:
            return b""
        return base64.b64decode(app["params"].get("approval-program", ""))

    def read_fields(self, app_id: int) -> dict[str, int | bytes]:
        # One application_info call: every field comes from the same round.
        app = self._application(app_id)
        return decode_global_state(app["params"].get("global-state", []))

    def read_field(self, app_id: int, name: str) -> int | bytes | None:
        return self.read_fields(app_id).get(name)

    def get_logs(self, app_id: int, min_round: int, max_round: int) -> list[LogEntry]:
        entries: list[LogEntry] = []
        token = None
        with _reading("search_transactions"):
            while True:
                page = self.indexer.search_transactions(
                    application_id=app_id,
                    txn_type="appl",
                    min_round=min_round,
                    max_round=max_round,
                    next_page=token,
                )
                txns = page.get("transactions", [])
                for tx in txns:
                    entries.append(LogEntry(
                        txid=tx["id"],
                        round=int(tx.get("confirmed-round", 0)),
                        offset=int(tx.get("intra-round-offset", 0)),
                    ))
                token = page.get("next-token")
                if not token or not txns:
                    break
        entries.sort(key=lambda e: (e.round, e.offset))
        return entries

    def get_transaction(self, txid: str) -> TransactionRecord:
        with _reading("transaction"):
            tx = self.indexer.transaction(txid)["transaction"]
        appl = tx.get("application-transaction", {})
        return TransactionRecord(
            txid=tx["id"],
            sender=tx.get("sender", ""),
            to=int(appl.get("application-id", 0)),
            input=[base64.b64decode(a) for a in appl.get("application-args", [])],
            round=int(tx.get("confirmed-round", 0)),
        )

    # ---- Writes ----

    def deploy(self, programs: EscrowPrograms, app_args: list[bytes], value: int, wallet) -> int:
        with _writing("create"):
            sp = self.algod.suggested_params()
            create = ApplicationCreateTxn(
                sender=wallet.address,
                sp=sp,
                on_complete=OnComplete.NoOpOC,
                approval_program=programs.approval,
                clear_program=programs.clear,
                global_schema=GLOBAL_SCHEMA,
                local_schema=LOCAL_SCHEMA,
                app_args=app_args,
                note=b"rpsls escrow create",
            )
            txid = self.algod.send_transaction(wallet.sign(create))
            res = wait_for_confirmation(self.algod, txid, CONFIRM_ROUNDS)
        app_id = res.get("application-index")
        if not app_id:
            raise WriteRejected(f"no app id in result: {res}")
        logger.info("created escrow app %s in round %s", app_id, res.get("confirmed-round"))
        self.call(app_id, FUND_METHOD, value=value, wallet=wallet)
        return app_id

    def call(
        self,
        app_id: int,
        method: bytes,
        args: list[bytes] = (),
        value: int = 0,
        wallet=None,
        accounts: list[str] | None = None,
    ) -> dict:
        with _writing(method.decode()):
            sp = self.algod.suggested_params()
            sp.flat_fee = True
            sp.fee = CALL_FEE
            app_call = ApplicationNoOpTxn(
                sender=wallet.address,
                sp=sp,
                index=app_id,
                app_args=[method, *args],
                accounts=accounts or None,
            )
            if value > 0:
                pay_sp = self.algod.suggested_params()
                pay = PaymentTxn(
                    sender=wallet.address,
                    sp=pay_sp,
                    receiver=logic.get_application_address(app_id),
                    amt=value,
                )
                pay, app_call = assign_group_id([pay, app_call])
                txid = app_call.get_txid()
                self.algod.send_transactions([wallet.sign(pay), wallet.sign(app_call)])
            else:
                txid = self.algod.send_transaction(wallet.sign(app_call))
            receipt = wait_for_confirmation(self.algod, txid, CONFIRM_ROUNDS)
        logger.debug("%s on app %s confirmed in round %s", method, app_id, receipt.get("confirmed-round"))
        return receipt


def decode_address(raw) -> str:
    """Global-state address bytes → Algorand address; unset (all-zero) → ""."""
    if not isinstance(raw, bytes) or len(raw) != 32:
        raise ValueError(f"not a 32-byte address: {raw!r}")
    if raw == bytes(32):
        return ""
    return encoding.encode_address(raw)


def is_valid_address(address: str) -> bool:
    return isinstance(address, str) and encoding.is_valid_address(address)
