"""
Shared fixtures: an in-memory stand-in for algod + indexer that behaves like
the deployed escrow, and wallets with real (offline) Algorand keys.
"""

import hashlib
from dataclasses import replace

import pytest
from algosdk import account, encoding

from rpsls_escrow.config import Settings
from rpsls_escrow.errors import ContractAbsent, LedgerUnreachable, WriteRejected
from rpsls_escrow.ledger import EscrowPrograms, LogEntry, TransactionRecord
from rpsls_escrow.wallet import WalletSession

NOW = 1_700_000_000
GENESIS = "sandnet-v1"
PROGRAMS = EscrowPrograms(approval=b"\x08\x81\x01", clear=b"\x08\x81\x01")


class FakeLedger:
    def __init__(self, now: int = NOW):
        self.now = now
        self.round = 1000
        self.genesis_id = GENESIS
        self.apps: dict[int, dict] = {}
        self.txns: dict[str, TransactionRecord] = {}
        self.log: list[LogEntry] = []
        self.balances: dict[str, int] = {}
        self.calls: list[tuple] = []
        self.reads = 0
        self.reject: set[bytes] = set()
        self.unreachable = False
        self.before_call = None     # runs once, just before the next write lands
        self._next_app = 100

    # ---- read client ----

    def _check(self):
        if self.unreachable:
            raise LedgerUnreachable("connection refused")

    def get_network(self) -> str:
        self._check()
        return self.genesis_id

    def latest_round(self) -> int:
        self._check()
        return self.round

    def balance(self, address: str) -> int:
        self._check()
        return self.balances.get(address, 10_000_000)

    def get_code(self, app_id: int) -> bytes:
        self._check()
        return PROGRAMS.approval if app_id in self.apps else b""

    def read_fields(self, app_id: int) -> dict:
        self._check()
        self.reads += 1
        if app_id not in self.apps:
            raise ContractAbsent(f"No application {app_id}")
        return dict(self.apps[app_id])

    def get_logs(self, app_id: int, min_round: int, max_round: int) -> list[LogEntry]:
        self._check()
        return [e for e in self.log if min_round <= e.round <= max_round]

    def get_transaction(self, txid: str) -> TransactionRecord:
        self._check()
        return self.txns[txid]

    # ---- write client ----

    def _record(self, sender: str, to: int, args: list[bytes]) -> str:
        self.round += 1
        txid = f"TX{len(self.txns):04d}"
        self.txns[txid] = TransactionRecord(txid=txid, sender=sender, to=to, input=list(args), round=self.round)
        self.log.append(LogEntry(txid=txid, round=self.round))
        return txid

    def deploy(self, programs, app_args, value, wallet) -> int:
        self._check()
        wallet.require()
        app_id = self._next_app
        self._next_app += 1
        self.apps[app_id] = {
            "j1": encoding.decode_address(wallet.address),
            "j2": app_args[1],
            "stake": value,
            "c1_hash": app_args[0],
            "c2": 0,
            "last_action": self.now,
        }
        self.calls.append(("create", app_id, list(app_args), value, wallet.address))
        self._record(wallet.address, 0, list(app_args))
        self._record(wallet.address, app_id, [b"fund"])
        return app_id

    def call(self, app_id, method, args=(), value=0, wallet=None, accounts=None) -> dict:
        self._check()
        wallet.require()
        if self.before_call is not None:
            hook, self.before_call = self.before_call, None
            hook()
        self.calls.append((method, app_id, list(args), value, wallet.address))
        app = self.apps[app_id]
        if method in self.reject or not self._allowed(app, method):
            raise WriteRejected(f"{method.decode()} rejected: logic eval error: assert failed")
        if method == b"play":
            app["c2"] = int.from_bytes(args[0], "big")
            app["stake"] += value
            app["last_action"] = self.now
        elif method == b"reveal":
            if hashlib.sha256(args[0] + args[1]).digest() != app["c1_hash"]:
                raise WriteRejected("reveal rejected: logic eval error: assert failed")
            app["stake"] = 0
        elif method in (b"j1_timeout", b"j2_timeout"):
            app["stake"] = 0
        txid = self._record(wallet.address, app_id, [method, *args])
        return {"txid": txid, "confirmed-round": self.round}

    @staticmethod
    def _allowed(app: dict, method: bytes) -> bool:
        # the escrow's state guards; who may call and when is not modelled
        if app["stake"] == 0:
            return False
        if method in (b"play", b"j2_timeout"):
            return app["c2"] == 0
        if method in (b"reveal", b"j1_timeout"):
            return app["c2"] != 0
        return True

    # ---- helpers ----

    def push_noise(self, count: int, app_id: int = 999):
        """Unrelated application calls, advancing the round."""
        for _ in range(count):
            self._record("NOISE", app_id, [b"play", (1).to_bytes(8, "big")])

    def advance(self, rounds: int):
        self.round += rounds


def make_wallet() -> WalletSession:
    sk, addr = account.generate_account()
    return WalletSession(addr, sk)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def alice() -> WalletSession:
    return make_wallet()


@pytest.fixture
def bob() -> WalletSession:
    return make_wallet()


@pytest.fixture
def carol() -> WalletSession:
    return make_wallet()


@pytest.fixture
def settings() -> Settings:
    # Long poll/tick intervals: tests drive reconciliation explicitly.
    return replace(Settings(), genesis_id=None, poll_seconds=3600, timeout_seconds=300, history_rounds=5000)
