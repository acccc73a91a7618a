# rpsls_escrow/artifacts.py
# Escrow programs: prebuilt approval.teal/clear.teal when present, otherwise the
# bundled PyTeal source. contract.manifest.json, when present, pins their sha256.
from __future__ import annotations

import base64
import hashlib
import json
from pathlib import Path

from algosdk.error import AlgodHTTPError
from algosdk.v2client.algod import AlgodClient

from .contract import TEAL_VERSION, compile_sources
from .errors import ArtifactError, LedgerUnreachable
from .ledger import EscrowPrograms

APPROVAL = "approval.teal"
CLEAR = "clear.teal"
MANIFEST = "contract.manifest.json"


def sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def read_sources(artifacts_dir: Path) -> tuple[str, str]:
    approval_path = artifacts_dir / APPROVAL
    clear_path = artifacts_dir / CLEAR
    missing = [str(p) for p in (approval_path, clear_path) if not p.exists()]
    if missing:
        raise ArtifactError("Missing escrow program(s): " + ", ".join(missing))
    approval_src = approval_path.read_text(encoding="utf-8")
    clear_src = clear_path.read_text(encoding="utf-8")

    manifest_path = artifacts_dir / MANIFEST
    if manifest_path.exists():
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
        pinned = manifest.get("artifacts", {})
        for name, src in (("approval", approval_src), ("clear", clear_src)):
            expected = pinned.get(name, {}).get("sha256")
            if expected and expected != sha256_hex(src):
                raise ArtifactError(f"{name} program does not match {MANIFEST}")
    return approval_src, clear_src


def write_artifacts(artifacts_dir: Path) -> Path:
    """Compile the PyTeal escrow into approval/clear TEAL plus a sha256 manifest."""
    artifacts_dir = Path(artifacts_dir)
    artifacts_dir.mkdir(parents=True, exist_ok=True)
    approval_teal, clear_teal = compile_sources()

    (artifacts_dir / APPROVAL).write_text(approval_teal, encoding="utf-8")
    (artifacts_dir / CLEAR).write_text(clear_teal, encoding="utf-8")

    manifest = {
        "contract": "RPSLS commit-reveal escrow",
        "teal_version": TEAL_VERSION,
        "artifacts": {
            "approval": {"file": APPROVAL, "sha256": sha256_hex(approval_teal)},
            "clear": {"file": CLEAR, "sha256": sha256_hex(clear_teal)},
        },
    }
    path = artifacts_dir / MANIFEST
    path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return path


def load_programs(algod: AlgodClient, artifacts_dir: Path | None = None) -> EscrowPrograms:
    """Prebuilt artifacts when `artifacts_dir` holds them, else the bundled PyTeal escrow."""
    if artifacts_dir is not None and (Path(artifacts_dir) / APPROVAL).exists():
        approval_src, clear_src = read_sources(Path(artifacts_dir))
    else:
        approval_src, clear_src = compile_sources()
    try:
        approval = base64.b64decode(algod.compile(approval_src)["result"])
        clear = base64.b64decode(algod.compile(clear_src)["result"])
    except AlgodHTTPError as exc:
        raise ArtifactError(f"compile failed: {exc}") from exc
    except OSError as exc:
        raise LedgerUnreachable(f"compile failed, ledger unreachable: {exc}") from exc
    return EscrowPrograms(approval=approval, clear=clear)
