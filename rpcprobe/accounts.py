from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from eth_account import Account as EthAccount  # type: ignore
from eth_account.signers.local import LocalAccount  # type: ignore

from rpcprobe.abi import checksum
from rpcprobe.errors import ConfigurationError, UnauthorizedError


EthAccount.enable_unaudited_hdwallet_features()

DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0/{index}"


@dataclass(frozen=True)
class Account:
    """
    An address, optionally backed by a local signer.

    Address-only accounts are read-only: they may be used as `from` for calls
    and simulations, never to sign.
    """

    address: str
    signer: Optional[LocalAccount] = field(default=None, repr=False, compare=False)

    @classmethod
    def read_only(cls, address: str) -> "Account":
        try:
            return cls(address=checksum(address))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    @classmethod
    def from_mnemonic(cls, mnemonic: str, *, index: int = 0, passphrase: str = "") -> "Account":
        try:
            acct = EthAccount.from_mnemonic(
                mnemonic.strip(),
                passphrase=passphrase,
                account_path=DEFAULT_DERIVATION_PATH.format(index=int(index)),
            )
        except Exception as e:
            # eth_account raises ValidationError/ValueError for bad word lists or checksums.
            raise ConfigurationError(f"Cannot derive account from mnemonic: {type(e).__name__}") from e
        return cls(address=acct.address, signer=acct)

    @classmethod
    def from_key(cls, private_key: str) -> "Account":
        try:
            acct = EthAccount.from_key(private_key)
        except (TypeError, ValueError) as e:
            raise ConfigurationError("Invalid private key") from e
        return cls(address=acct.address, signer=acct)

    @property
    def can_sign(self) -> bool:
        return self.signer is not None

    def sign_transaction(self, tx: dict) -> Any:
        if self.signer is None:
            raise UnauthorizedError(f"Account {self.address} is read-only; cannot sign transactions")
        return self.signer.sign_transaction(tx)
