from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Sequence, Tuple, Union

import httpx

from rpcprobe.abi import checksum, decode_call_result, encode_calldata, parse_units
from rpcprobe.access_list import GasMisestimatePolicy, request_access_list
from rpcprobe.accounts import Account
from rpcprobe.errors import ConfigurationError, RevertError, UnauthorizedError
from rpcprobe.eth import sign_and_send, wait_for_receipt
from rpcprobe.models import AccessListOutcome, AccessListResult, CallRequest, ChainConfig, TransactionReceipt
from rpcprobe.rpc import JsonRpcClient, validate_url


class RpcClient:
    """
    Typed operations against one JSON-RPC endpoint serving one chain.

    Errors from every operation except `request_access_list` propagate
    unchanged. `request_access_list` returns either an `AccessListResult` or an
    `AccessListUnavailable`; it never raises for node or transport problems.
    """

    def __init__(
        self,
        chain: ChainConfig,
        url: str,
        account: Optional[Account] = None,
        *,
        timeout_sec: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        misestimate_policy: Optional[GasMisestimatePolicy] = None,
        debug: bool = False,
    ):
        if chain.chain_id <= 0:
            raise ConfigurationError(f"Invalid chain id: {chain.chain_id}")
        self.chain = chain
        self.url = validate_url(url)
        self.account = account
        self.misestimate_policy = misestimate_policy or GasMisestimatePolicy()
        self.rpc = JsonRpcClient(self.url, timeout_sec=timeout_sec, transport=transport, debug=debug)

    def verify_chain_id(self) -> int:
        remote = self.rpc.eth_chain_id()
        if remote != self.chain.chain_id:
            raise ConfigurationError(
                f"{self.url} serves chainId={remote}, expected {self.chain.chain_id} ({self.chain.name})"
            )
        return remote

    def get_native_balance(self, address: str) -> int:
        return self.rpc.eth_get_balance(checksum(address), "latest")

    def read_contract(
        self,
        address: str,
        signature: str,
        arg_types: Sequence[str],
        args: Sequence[Any],
        out_types: Sequence[str],
        *,
        sender: Optional[str] = None,
    ) -> Tuple[Any, ...]:
        tx = {"to": checksum(address), "data": encode_calldata(signature, arg_types, args)}
        if sender:
            tx["from"] = checksum(sender)
        out = self.rpc.eth_call(tx)
        return decode_call_result(out, out_types)

    def simulate_transfer(
        self,
        token: str,
        sender: str,
        recipient: str,
        amount: Union[str, int, float, Decimal],
        decimals: int,
        *,
        estimate_gas: bool = False,
    ) -> CallRequest:
        """
        Build an ERC-20 `transfer(recipient, amount)` from `sender` and dry-run it.

        `amount` is in token units and is scaled by `decimals`. A revert in the
        dry run raises `RevertError` with the decoded reason.
        """
        raw_amount = parse_units(amount, decimals)
        if raw_amount < 0:
            raise ValueError("amount must be >= 0")
        call = CallRequest(
            sender=checksum(sender),
            to=checksum(token),
            data=encode_calldata("transfer(address,uint256)", ["address", "uint256"], [checksum(recipient), raw_amount]),
            value=0,
        )
        out = self.rpc.eth_call(call.to_rpc())
        # Non-standard tokens (USDT) return nothing; standard ones return true.
        if out not in (None, "0x"):
            (ok,) = decode_call_result(out, ["bool"])
            if not ok:
                raise RevertError("transfer returned false", method="eth_call")
        if estimate_gas:
            gas = self.rpc.eth_estimate_gas(call.to_rpc())
            call = CallRequest(sender=call.sender, to=call.to, data=call.data, value=call.value, gas=gas)
        return call

    def request_access_list(self, call: CallRequest, gas: Optional[int] = None) -> AccessListOutcome:
        return request_access_list(self.rpc, call, gas=gas, policy=self.misestimate_policy)

    def submit_transaction(self, call: CallRequest, access_list: Optional[AccessListResult] = None) -> str:
        if self.account is None or not self.account.can_sign:
            raise UnauthorizedError("Sending transactions requires a signing account (read-only mode)")
        if checksum(call.sender) != self.account.address:
            raise UnauthorizedError(f"Request sender {call.sender} is not the signing account {self.account.address}")
        return sign_and_send(
            self.rpc,
            chain_id=self.chain.chain_id,
            account=self.account,
            call=call,
            access_list=access_list.to_rpc() if access_list is not None else None,
        )

    def wait_for_receipt(self, tx_hash: str, *, poll_sec: float = 1.0, timeout_sec: float = 120.0) -> TransactionReceipt:
        return wait_for_receipt(self.rpc, tx_hash, timeout_sec=timeout_sec, poll_sec=poll_sec)
