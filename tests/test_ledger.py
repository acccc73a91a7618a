import base64
from types import SimpleNamespace

import pytest
import requests
from algosdk import encoding, logic
from algosdk.error import AlgodHTTPError, IndexerHTTPError
from algosdk.transaction import ApplicationCreateTxn, ApplicationNoOpTxn, PaymentTxn, SuggestedParams

from rpsls_escrow import ledger as ledger_mod
from rpsls_escrow.errors import ContractAbsent, LedgerUnreachable, WalletDisconnected, WriteRejected
from rpsls_escrow.ledger import (
    CALL_FEE,
    AlgorandLedger,
    EscrowPrograms,
    decode_address,
    decode_global_state,
    is_valid_address,
)
from conftest import make_wallet

GENESIS_HASH = "SGO1GKSzyE7IEPItTxCByw9x8FmnrCDexi9/cOUJOiI="


def b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode()


def uint(key, n):
    return {"key": b64(key.encode()), "value": {"type": 2, "uint": n}}


def blob(key, raw):
    return {"key": b64(key.encode()), "value": {"type": 1, "bytes": b64(raw)}}


class StubAlgod:
    algod_address = "http://algod.test"
    algod_token = "t" * 64

    def __init__(self):
        self.apps = {}
        self.sent = []
        self.fail = None

    def versions(self):
        return {"genesis_id": "sandnet-v1"}

    def status(self):
        return {"last-round": 42}

    def account_info(self, address):
        return {"amount": 5_000_000}

    def application_info(self, app_id):
        if app_id not in self.apps:
            raise AlgodHTTPError("application does not exist", 404)
        return self.apps[app_id]

    def suggested_params(self):
        if self.fail is not None:
            raise self.fail
        return SuggestedParams(fee=1000, first=1, last=1001, gh=GENESIS_HASH, gen="sandnet-v1", flat_fee=True)

    def send_transaction(self, stxn):
        self.sent.append(stxn)
        return stxn.get_txid()

    def send_transactions(self, stxns):
        self.sent.extend(stxns)
        return stxns[0].get_txid()


class StubIndexer:
    indexer_address = "http://indexer.test"

    def __init__(self, pages=None, txns=None):
        self.pages = pages or {}
        self.txns = txns or {}
        self.queries = []

    def search_transactions(self, **kw):
        self.queries.append(kw)
        return self.pages[kw.get("next_page")]

    def transaction(self, txid):
        if txid not in self.txns:
            raise IndexerHTTPError("no transaction found")
        return {"transaction": self.txns[txid]}


@pytest.fixture
def algod():
    return StubAlgod()


@pytest.fixture
def confirmed(monkeypatch):
    waited = []

    def fake_wait(client, txid, rounds):
        waited.append(txid)
        return {"confirmed-round": 7, "application-index": 55}

    monkeypatch.setattr(ledger_mod, "wait_for_confirmation", fake_wait)
    return waited


def test_decode_global_state():
    state = decode_global_state([uint("stake", 7), blob("c1_hash", b"\x09" * 32), uint("c2", 0)])
    assert state == {"stake": 7, "c1_hash": b"\x09" * 32, "c2": 0}


def test_decode_address():
    w = make_wallet()
    assert decode_address(encoding.decode_address(w.address)) == w.address
    assert decode_address(bytes(32)) == ""
    with pytest.raises(ValueError):
        decode_address(b"\x01" * 31)
    assert is_valid_address(w.address)
    assert not is_valid_address("0x1234")
    assert not is_valid_address(None)


def test_read_fields_single_snapshot(algod):
    algod.apps[9] = {"params": {
        "approval-program": b64(b"\x08\x81\x01"),
        "global-state": [uint("stake", 100), uint("last_action", 1234)],
    }}
    chain = AlgorandLedger(algod, StubIndexer())
    assert chain.read_fields(9) == {"stake": 100, "last_action": 1234}
    assert chain.read_field(9, "stake") == 100
    assert chain.read_field(9, "timeout") is None
    assert chain.get_code(9) == b"\x08\x81\x01"


def test_missing_application(algod):
    chain = AlgorandLedger(algod, StubIndexer())
    assert chain.get_code(404) == b""
    with pytest.raises(ContractAbsent):
        chain.read_fields(404)


def test_network_round_and_balance(algod):
    chain = AlgorandLedger(algod, StubIndexer())
    assert chain.get_network() == "sandnet-v1"
    assert chain.latest_round() == 42
    assert chain.balance("X") == 5_000_000


def test_get_logs_follows_pages_and_sorts(algod):
    pages = {
        None: {"transactions": [{"id": "B", "confirmed-round": 12, "intra-round-offset": 1},
                                {"id": "A", "confirmed-round": 12, "intra-round-offset": 0}],
               "next-token": "p2"},
        "p2": {"transactions": [{"id": "C", "confirmed-round": 10}], "next-token": "p3"},
        "p3": {"transactions": []},
    }
    indexer = StubIndexer(pages)
    logs = AlgorandLedger(algod, indexer).get_logs(9, 5, 20)
    assert [e.txid for e in logs] == ["C", "A", "B"]
    assert [q["next_page"] for q in indexer.queries] == [None, "p2", "p3"]
    assert all(q["application_id"] == 9 and q["min_round"] == 5 for q in indexer.queries)


def test_get_transaction(algod):
    indexer = StubIndexer(txns={"T1": {
        "id": "T1",
        "sender": "S",
        "confirmed-round": 77,
        "application-transaction": {"application-id": 9,
                                    "application-args": [b64(b"reveal"), b64(b"\x00" * 7 + b"\x02")]},
    }})
    chain = AlgorandLedger(algod, indexer)
    tx = chain.get_transaction("T1")
    assert (tx.to, tx.sender, tx.round) == (9, "S", 77)
    assert tx.input == [b"reveal", (2).to_bytes(8, "big")]
    with pytest.raises(LedgerUnreachable):
        chain.get_transaction("missing")


def test_call_without_value_is_a_single_app_call(algod, confirmed):
    w, other = make_wallet(), make_wallet()
    receipt = AlgorandLedger(algod, StubIndexer()).call(9, b"j2_timeout", [], 0, w, [other.address])
    assert receipt["confirmed-round"] == 7
    (stxn,) = algod.sent
    txn = stxn.transaction
    assert isinstance(txn, ApplicationNoOpTxn)
    assert txn.index == 9
    assert txn.app_args == [b"j2_timeout"]
    assert txn.accounts == [other.address]
    assert txn.fee == CALL_FEE
    assert confirmed == [stxn.get_txid()]


def test_call_with_value_groups_a_payment(algod, confirmed):
    w = make_wallet()
    AlgorandLedger(algod, StubIndexer()).call(9, b"play", [(3).to_bytes(8, "big")], 250, w)
    pay, app_call = (s.transaction for s in algod.sent)
    assert isinstance(pay, PaymentTxn)
    assert pay.receiver == logic.get_application_address(9)
    assert pay.amt == 250
    assert pay.group is not None and pay.group == app_call.group
    assert app_call.app_args == [b"play", (3).to_bytes(8, "big")]
    # the app call is what we wait on
    assert confirmed == [algod.sent[1].get_txid()]


def test_deploy_creates_then_funds(algod, confirmed):
    w, opponent = make_wallet(), make_wallet()
    programs = EscrowPrograms(approval=b"\x08\x81\x01", clear=b"\x08\x81\x01")
    args = [b"\x05" * 32, encoding.decode_address(opponent.address)]
    app_id = AlgorandLedger(algod, StubIndexer()).deploy(programs, args, 1000, w)
    assert app_id == 55
    create, pay, fund = (s.transaction for s in algod.sent)
    assert isinstance(create, ApplicationCreateTxn)
    assert create.app_args == args
    assert create.global_schema.num_uints == 4
    assert pay.amt == 1000 and pay.receiver == logic.get_application_address(55)
    assert fund.app_args == [b"fund"]


@pytest.mark.parametrize("error,expected", [
    (AlgodHTTPError("logic eval error: assert failed", 400), WriteRejected),
    (AlgodHTTPError("internal error", 500), LedgerUnreachable),
    (ConnectionRefusedError("refused"), LedgerUnreachable),
])
def test_write_errors_are_mapped(algod, confirmed, error, expected):
    algod.fail = error
    with pytest.raises(expected):
        AlgorandLedger(algod, StubIndexer()).call(9, b"reveal", [], 0, make_wallet())
    assert algod.sent == []


def test_disconnected_wallet_cannot_sign(algod, confirmed):
    w = make_wallet()
    w.disconnect()
    with pytest.raises(WalletDisconnected):
        AlgorandLedger(algod, StubIndexer()).call(9, b"j1_timeout", [], 0, w)


def test_check_health(algod, monkeypatch):
    seen = []

    def fake_get(url, headers=None, timeout=None):
        seen.append((url, headers))
        return SimpleNamespace(status_code=200, text="")

    monkeypatch.setattr(requests, "get", fake_get)
    AlgorandLedger(algod, StubIndexer()).check_health()
    assert [u for u, _ in seen] == ["http://algod.test/health", "http://indexer.test/health"]
    assert seen[0][1]["X-Algo-API-Token"] == algod.algod_token


def test_check_health_failures(algod, monkeypatch):
    chain = AlgorandLedger(algod, StubIndexer())
    monkeypatch.setattr(requests, "get", lambda *a, **k: SimpleNamespace(status_code=503, text="down"))
    with pytest.raises(LedgerUnreachable, match="503"):
        chain.check_health()

    def refuse(*a, **k):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "get", refuse)
    with pytest.raises(LedgerUnreachable):
        chain.check_health()
