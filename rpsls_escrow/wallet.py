# rpsls_escrow/wallet.py
# The signer behind every write. It may be disconnected at any time.
from algosdk import account, mnemonic
from algosdk.error import KMDHTTPError
from algosdk.kmd import KMDClient

from .errors import WalletDisconnected

SANDBOX_PASSWORDS = ("", "a", "testpassword")


class WalletSession:
    def __init__(self, address: str, private_key: str | None):
        self.address = address
        self._sk = private_key

    @classmethod
    def from_mnemonic(cls, words: str) -> "WalletSession":
        sk = mnemonic.to_private_key(words)
        return cls(account.address_from_private_key(sk), sk)

    @classmethod
    def from_kmd(cls, kmd: KMDClient, passwords=SANDBOX_PASSWORDS) -> "WalletSession":
        """First key of the first LocalNet KMD wallet."""
        # algosdk versions differ: some return {"wallets": [...]}, others return a plain list
        wallets = kmd.list_wallets()
        wl = wallets["wallets"] if isinstance(wallets, dict) else wallets
        if not wl:
            raise WalletDisconnected("No KMD wallets found")
        wid = wl[0]["id"] if isinstance(wl[0], dict) else wl[0]
        for pw in passwords:
            try:
                h = kmd.init_wallet_handle(wid, pw)
            except KMDHTTPError:
                continue
            try:
                keys = kmd.list_keys(h)
                addr = keys[0] if keys else kmd.generate_key(h)
                return cls(addr, kmd.export_key(h, pw, addr))
            finally:
                kmd.release_wallet_handle(h)
        raise WalletDisconnected(f"Could not unlock KMD wallet with {', '.join(repr(p) for p in passwords)}")

    @property
    def connected(self) -> bool:
        return self._sk is not None

    def disconnect(self) -> None:
        self._sk = None

    def require(self) -> None:
        if not self.connected:
            raise WalletDisconnected("Please connect your wallet")

    def sign(self, txn):
        self.require()
        return txn.sign(self._sk)
