from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Tuple

from rpcprobe.abi import checksum
from rpcprobe.client import RpcClient
from rpcprobe.errors import DecodeError
from rpcprobe.models import TokenInfo


class Erc20Client:
    def __init__(self, client: RpcClient, address: str):
        self.client = client
        self.address = checksum(address)

    def symbol(self) -> str:
        try:
            (sym,) = self.client.read_contract(self.address, "symbol()", [], [], ["string"])
            return str(sym)
        except DecodeError:
            # Pre-standard tokens (MKR, SAI) return bytes32.
            (raw,) = self.client.read_contract(self.address, "symbol()", [], [], ["bytes32"])
            return raw.rstrip(b"\x00").decode("utf-8", errors="replace")

    def decimals(self) -> int:
        (d,) = self.client.read_contract(self.address, "decimals()", [], [], ["uint8"])
        return int(d)

    def balance_of(self, owner: str) -> int:
        (bal,) = self.client.read_contract(self.address, "balanceOf(address)", ["address"], [checksum(owner)], ["uint256"])
        return int(bal)

    def snapshot(self, owner: str) -> TokenInfo:
        """Read symbol, decimals and the owner's balance concurrently."""
        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="erc20") as pool:
            f_symbol = pool.submit(self.symbol)
            f_decimals = pool.submit(self.decimals)
            f_balance = pool.submit(self.balance_of, owner)
            return TokenInfo(
                address=self.address,
                symbol=f_symbol.result(),
                decimals=f_decimals.result(),
                balance=f_balance.result(),
            )


def read_balances(client: RpcClient, token: Erc20Client, owner: str) -> Tuple[int, TokenInfo]:
    """Native balance and token snapshot, all four reads in flight at once."""
    with ThreadPoolExecutor(max_workers=4, thread_name_prefix="balances") as pool:
        f_native = pool.submit(client.get_native_balance, owner)
        f_symbol = pool.submit(token.symbol)
        f_decimals = pool.submit(token.decimals)
        f_balance = pool.submit(token.balance_of, owner)
        info = TokenInfo(
            address=token.address,
            symbol=f_symbol.result(),
            decimals=f_decimals.result(),
            balance=f_balance.result(),
        )
        return f_native.result(), info
