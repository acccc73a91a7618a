# rpsls_escrow/errors.py
# Error taxonomy: validation problems are caught before any ledger call,
# ledger problems surface as notices and are retried by the next poll.


class EngineError(Exception):
    """Base class. `level` is how the condition is presented: error, warning or info."""

    level = "error"


# -------- Validation (no ledger call attempted) --------

class ValidationError(EngineError):
    pass


class InvalidMoveError(ValidationError):
    pass


class InvalidAddressError(ValidationError):
    pass


class InvalidStakeError(ValidationError):
    pass


class WalletDisconnected(ValidationError):
    pass


class ActionNotAllowed(ValidationError):
    level = "warning"


# -------- Ledger --------

class LedgerError(EngineError):
    pass


class LedgerUnreachable(LedgerError):
    pass


class ChainMismatch(LedgerUnreachable):
    pass


class ContractAbsent(LedgerError):
    pass


class AbiMismatch(LedgerError):
    pass


class WriteRejected(LedgerError):
    pass


class RevealRejected(WriteRejected):
    pass


class InsufficientFunds(WriteRejected):
    pass


class OutcomeUndetermined(LedgerError):
    level = "warning"


class ArtifactError(LedgerError):
    pass
