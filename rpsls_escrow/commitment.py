# rpsls_escrow/commitment.py
# c1_hash = sha256(itob(move) + secret): the move as a big-endian uint64,
# then the 32-byte secret. The escrow recomputes exactly this on reveal.
import hashlib
import secrets
from dataclasses import dataclass

from .errors import InvalidMoveError
from .rules import Move, parse_move

SECRET_BYTES = 32
MOVE_BYTES = 8


@dataclass(frozen=True)
class Commitment:
    move: Move
    secret: bytes
    hash: bytes

    @property
    def secret_hex(self) -> str:
        return self.secret.hex()


def commitment_hash(move: int, secret: bytes) -> bytes:
    if len(secret) != SECRET_BYTES:
        raise ValueError(f"secret must be {SECRET_BYTES} bytes, got {len(secret)}")
    return hashlib.sha256(int(move).to_bytes(MOVE_BYTES, "big") + secret).digest()


def commit(move) -> Commitment:
    move = parse_move(move)
    if move == Move.NULL:
        raise InvalidMoveError("Please select a move")
    secret = secrets.token_bytes(SECRET_BYTES)
    return Commitment(move=move, secret=secret, hash=commitment_hash(move, secret))


def verify_commitment(expected: bytes, move: int, secret: bytes) -> bool:
    return secrets.compare_digest(expected, commitment_hash(move, secret))
