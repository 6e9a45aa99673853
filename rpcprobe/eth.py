from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from eth_utils import to_checksum_address, to_hex

from rpcprobe.accounts import Account
from rpcprobe.errors import DecodeError, ReceiptTimeoutError, RpcError
from rpcprobe.models import CallRequest, TransactionReceipt, parse_receipt
from rpcprobe.rpc import JsonRpcClient, parse_quantity


GWEI = 10**9
LOCAL_DEV_CHAIN_ID = 31337


def _gas_with_headroom(gas_est: int) -> int:
    return int(max(gas_est + 50_000, int(gas_est * 1.2)))


def _resolve_gas(rpc: JsonRpcClient, call: CallRequest) -> int:
    if call.gas is not None:
        return int(call.gas)
    return _gas_with_headroom(rpc.eth_estimate_gas(call.to_rpc()))


def _latest_base_fee_wei(rpc: JsonRpcClient) -> Optional[int]:
    blk = rpc.eth_get_block_by_number("latest", False)
    if not isinstance(blk, dict) or blk.get("baseFeePerGas") is None:
        return None
    return parse_quantity(blk["baseFeePerGas"], what="baseFeePerGas")


def _max_priority_fee_wei(rpc: JsonRpcClient) -> Optional[int]:
    try:
        return rpc.eth_max_priority_fee_per_gas()
    except (RpcError, DecodeError):
        # Not every provider exposes eth_maxPriorityFeePerGas.
        return None


def build_legacy_tx(rpc: JsonRpcClient, *, chain_id: int, account: Account, call: CallRequest) -> Dict[str, Any]:
    return {
        "nonce": rpc.eth_get_transaction_count(account.address, "pending"),
        "to": to_checksum_address(call.to),
        "value": call.value,
        "gas": _resolve_gas(rpc, call),
        "gasPrice": rpc.eth_gas_price(),
        "data": call.data,
        "chainId": chain_id,
    }


def build_eip1559_tx(
    rpc: JsonRpcClient,
    *,
    chain_id: int,
    account: Account,
    call: CallRequest,
    access_list: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    nonce = rpc.eth_get_transaction_count(account.address, "pending")

    base_fee = _latest_base_fee_wei(rpc)
    prio = _max_priority_fee_wei(rpc)
    if prio is None:
        prio = int(1 * GWEI)
    if base_fee is None:
        # Legacy-only networks: approximate via eth_gasPrice.
        base_fee = rpc.eth_gas_price()

    tx: Dict[str, Any] = {
        "type": 2,
        "nonce": nonce,
        "to": to_checksum_address(call.to),
        "value": call.value,
        "gas": _resolve_gas(rpc, call),
        "maxFeePerGas": int(base_fee * 2 + prio),
        "maxPriorityFeePerGas": int(prio),
        "data": call.data,
        "chainId": chain_id,
    }
    if access_list:
        tx["accessList"] = access_list
    return tx


def sign_and_send(
    rpc: JsonRpcClient,
    *,
    chain_id: int,
    account: Account,
    call: CallRequest,
    access_list: Optional[List[Dict[str, Any]]] = None,
) -> str:
    # Hardhat/anvil: legacy is simplest, access lists need a typed tx.
    if int(chain_id) == LOCAL_DEV_CHAIN_ID and not access_list:
        tx = build_legacy_tx(rpc, chain_id=chain_id, account=account, call=call)
    else:
        tx = build_eip1559_tx(rpc, chain_id=chain_id, account=account, call=call, access_list=access_list)
    signed = account.sign_transaction(tx)
    return rpc.eth_send_raw_transaction(to_hex(signed.raw_transaction))


def wait_for_receipt(
    rpc: JsonRpcClient, tx_hash: str, *, timeout_sec: float = 120.0, poll_sec: float = 1.0
) -> TransactionReceipt:
    deadline = time.monotonic() + timeout_sec
    while True:
        receipt = rpc.eth_get_transaction_receipt(tx_hash)
        # Some clients hand out pending receipts with a null blockNumber.
        if receipt is not None and not (isinstance(receipt, dict) and receipt.get("blockNumber") is None):
            return parse_receipt(receipt)
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ReceiptTimeoutError(tx_hash, timeout_sec)
        time.sleep(min(poll_sec, remaining))
