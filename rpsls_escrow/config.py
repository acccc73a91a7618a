# rpsls_escrow/config.py
# LocalNet defaults; override through the environment.
import os
from dataclasses import dataclass
from pathlib import Path

from algosdk.kmd import KMDClient
from algosdk.v2client.algod import AlgodClient
from algosdk.v2client.indexer import IndexerClient

LOCALNET_TOKEN = "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"

ALGOD_ADDR = os.getenv("RPSLS_ALGOD", "http://localhost:4001")
ALGOD_TOKEN = os.getenv("RPSLS_ALGOD_TOKEN", LOCALNET_TOKEN)
INDEXER_ADDR = os.getenv("RPSLS_INDEXER", "http://localhost:8980")
INDEXER_TOKEN = os.getenv("RPSLS_INDEXER_TOKEN", "")
KMD_ADDR = os.getenv("RPSLS_KMD", "http://localhost:4002")
KMD_TOKEN = os.getenv("RPSLS_KMD_TOKEN", ALGOD_TOKEN)  # usually same in sandbox

# Escrow challenge period, seconds. Must match the deployed program.
TIMEOUT_SECONDS = 300
POLL_SECONDS = 30
# Rounds scanned backwards for the transaction that ended a game.
HISTORY_ROUNDS = 5000

ARTIFACTS = Path(__file__).resolve().parent.parent / "artifacts"


@dataclass(frozen=True)
class Settings:
    algod_address: str = ALGOD_ADDR
    algod_token: str = ALGOD_TOKEN
    indexer_address: str = INDEXER_ADDR
    indexer_token: str = INDEXER_TOKEN
    kmd_address: str = KMD_ADDR
    kmd_token: str = KMD_TOKEN
    genesis_id: str | None = None
    artifacts_dir: Path = ARTIFACTS
    timeout_seconds: int = TIMEOUT_SECONDS
    poll_seconds: float = POLL_SECONDS
    history_rounds: int = HISTORY_ROUNDS

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        return cls(
            algod_address=env.get("RPSLS_ALGOD", ALGOD_ADDR),
            algod_token=env.get("RPSLS_ALGOD_TOKEN", ALGOD_TOKEN),
            indexer_address=env.get("RPSLS_INDEXER", INDEXER_ADDR),
            indexer_token=env.get("RPSLS_INDEXER_TOKEN", INDEXER_TOKEN),
            kmd_address=env.get("RPSLS_KMD", KMD_ADDR),
            kmd_token=env.get("RPSLS_KMD_TOKEN", KMD_TOKEN),
            genesis_id=env.get("RPSLS_GENESIS_ID") or None,
            artifacts_dir=Path(env.get("RPSLS_ARTIFACTS", str(ARTIFACTS))),
            timeout_seconds=int(env.get("RPSLS_TIMEOUT_SECONDS", TIMEOUT_SECONDS)),
            poll_seconds=float(env.get("RPSLS_POLL_SECONDS", POLL_SECONDS)),
            history_rounds=int(env.get("RPSLS_HISTORY_ROUNDS", HISTORY_ROUNDS)),
        )


def get_algod(settings: Settings) -> AlgodClient:
    return AlgodClient(
        settings.algod_token,
        settings.algod_address,
        headers={"X-Algo-API-Token": settings.algod_token},
    )


def get_indexer(settings: Settings) -> IndexerClient:
    return IndexerClient(settings.indexer_token, settings.indexer_address)


def get_kmd(settings: Settings) -> KMDClient:
    return KMDClient(settings.kmd_token, settings.kmd_address)
