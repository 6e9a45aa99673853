from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

import httpx

from rpcprobe.abi import format_units
from rpcprobe.access_list import GasMisestimatePolicy
from rpcprobe.accounts import Account
from rpcprobe.client import RpcClient
from rpcprobe.config import CHAINS_BY_NAME, FALLBACK_ACCESS_LIST_GAS, DemoSettings, resolve_settings
from rpcprobe.erc20 import Erc20Client, read_balances
from rpcprobe.errors import ReceiptTimeoutError, RpcClientError
from rpcprobe.lifecycle import TransactionLifecycle, TxState
from rpcprobe.models import (
    AccessListCause,
    AccessListOutcome,
    AccessListResult,
    AccessListUnavailable,
    CallRequest,
)


def _call_summary(call: CallRequest) -> Dict[str, Any]:
    return {"from": call.sender, "to": call.to, "data": call.data, "value": call.value, "gas": call.gas}


def _access_list_summary(result: AccessListResult) -> Dict[str, Any]:
    return {
        "gasUsed": result.gas_used,
        "accessList": [{"address": e.address, "storageKeys": list(e.storage_keys)} for e in result.entries],
    }


def build_account(settings: DemoSettings) -> Account:
    if settings.mnemonic:
        return Account.from_mnemonic(settings.mnemonic, index=settings.account_index)
    return Account.read_only(settings.fallback_address)


def request_access_list_with_fallback(client: RpcClient, call: CallRequest, gas: Optional[int]) -> AccessListOutcome:
    outcome = client.request_access_list(call, gas)
    if isinstance(outcome, AccessListUnavailable) and outcome.cause == AccessListCause.GAS_MISESTIMATED:
        print(f"Provider misestimated gas ({outcome.message}); retrying with gas={FALLBACK_ACCESS_LIST_GAS}")
        outcome = client.request_access_list(call, FALLBACK_ACCESS_LIST_GAS)
    return outcome


def run(settings: DemoSettings, *, transport: Optional[httpx.BaseTransport] = None, poll_sec: float = 1.0) -> int:
    account = build_account(settings)
    client = RpcClient(
        settings.chain,
        settings.rpc_url,
        account if account.can_sign else None,
        transport=transport,
        misestimate_policy=GasMisestimatePolicy(implausible_excess_wei=settings.misestimate_threshold_wei),
        debug=settings.debug,
    )
    chain_name = settings.chain.name

    print(f"RPC URL: {client.url}")
    if settings.read_only:
        print(f"Using fallback account (read-only mode): {account.address} on {chain_name}")
        print("Set MNEMONIC in .env file to enable transaction sending")

    print(f"Determining balances for account: {account.address} on {chain_name}")
    token = Erc20Client(client, settings.token_address)
    native_balance, info = read_balances(client, token, account.address)
    print(f"{format_units(native_balance, settings.chain.native_decimals)} {settings.chain.native_symbol}")
    print(f"{format_units(info.balance, info.decimals)} {info.symbol}")

    if info.balance <= 0 and not settings.read_only:
        print(f"Please add {info.symbol} to your account", file=sys.stderr)
        return 1

    if settings.read_only:
        print(f"\nSimulating {settings.send_amount} {info.symbol} transaction (read-only mode)...")
    else:
        print(f"\n=> Sending {settings.send_amount} {info.symbol} transaction to self...")

    lifecycle = TransactionLifecycle()
    call = client.simulate_transfer(
        token.address, account.address, account.address, settings.send_amount, info.decimals
    )
    lifecycle.advance(TxState.SIMULATED)
    print("Request:", json.dumps(_call_summary(call)))

    outcome = request_access_list_with_fallback(client, call, settings.access_list_gas)
    access_list: Optional[AccessListResult] = None
    if isinstance(outcome, AccessListResult):
        access_list = outcome
        lifecycle.advance(TxState.ACCESS_LIST_REQUESTED)
        print("Create access list result:", json.dumps(_access_list_summary(outcome)))
    else:
        lifecycle.advance(TxState.ACCESS_LIST_SKIPPED)
        print(
            "Create access list unavailable:",
            json.dumps({"cause": outcome.cause.value, "code": outcome.code, "message": outcome.message}),
        )

    if settings.read_only:
        print("Skipping transaction sending (read-only mode)")
        print("Demo completed successfully in read-only mode")
        return 0

    tx_hash = client.submit_transaction(call, access_list)
    lifecycle.mark_submitted(tx_hash)
    print(f"Waiting for transaction receipt for {tx_hash}")
    try:
        receipt = client.wait_for_receipt(tx_hash, poll_sec=poll_sec, timeout_sec=settings.receipt_timeout_sec)
    except ReceiptTimeoutError:
        lifecycle.time_out()
        raise
    state = lifecycle.resolve(receipt)
    print("Receipt:", receipt.model_dump_json(by_alias=True))
    return 0 if state == TxState.CONFIRMED else 1


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Compare JSON-RPC provider behavior with a USDC self-transfer")
    p.add_argument("-c", "--chain", choices=sorted(CHAINS_BY_NAME), default="base", help="Blockchain network to use")
    p.add_argument("-r", "--rpc-url", dest="rpc_url", help="RPC URL to use (overrides environment variable)")
    p.add_argument(
        "--gas-limit",
        dest="gas_limit",
        type=int,
        help="Explicit gas for eth_createAccessList (avoids provider-side estimation)",
    )
    p.add_argument("--receipt-timeout", dest="receipt_timeout", type=float, help="Seconds to wait for the receipt")
    p.epilog = (
        "examples: --chain base | -c celo -r https://forno.celo.org | "
        "--chain base --rpc-url https://base.llamarpc.com"
    )
    args = p.parse_args(argv)

    try:
        settings = resolve_settings(
            args.chain, args.rpc_url, gas_limit=args.gas_limit, receipt_timeout=args.receipt_timeout
        )
        return run(settings)
    except RpcClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
