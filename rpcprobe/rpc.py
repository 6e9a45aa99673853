from __future__ import annotations

import itertools
import json
import string
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from rpcprobe.abi import decode_revert_reason
from rpcprobe.errors import ConfigurationError, DecodeError, NetworkError, RevertError, RpcError


_id_counter = itertools.count(1)

# eth_call / eth_estimateGas revert code (geth, reth, erigon, nethermind)
EXECUTION_REVERTED = 3
REVERTED_DATA_PREFIX = "Reverted"


def validate_url(url: Optional[str]) -> str:
    if not url or not str(url).strip():
        raise ConfigurationError("RPC URL is empty")
    try:
        parsed = httpx.URL(str(url).strip())
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise ConfigurationError(f"Unparsable RPC URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ConfigurationError(f"RPC URL must be http(s) with a host: {url!r}")
    return str(parsed)


def parse_quantity(value: Any, *, what: str = "quantity") -> int:
    if not isinstance(value, str) or not value.lower().startswith("0x"):
        raise DecodeError(f"Invalid {what}: {value!r}")
    digits = value[2:]
    if not digits or any(c not in string.hexdigits for c in digits):
        raise DecodeError(f"Invalid {what}: {value!r}")
    return int(digits, 16)


def error_from_payload(method: str, err: Any) -> RpcError:
    if not isinstance(err, dict):
        return RpcError(str(err), method=method, data=err)
    code = err.get("code")
    message = str(err.get("message") or "")
    data = err.get("data")
    # nethermind / openethereum: {"code": -32015, "message": "VM execution error.", "data": "Reverted 0x..."}
    if isinstance(data, str) and data.startswith(REVERTED_DATA_PREFIX):
        payload = data[len(REVERTED_DATA_PREFIX):].strip()
        reason = decode_revert_reason(payload)
        if reason is None:
            reason = payload or message
        return RevertError(reason, code=code, data=payload or data, method=method, message=message)
    if code == EXECUTION_REVERTED or "revert" in message.lower():
        reason = decode_revert_reason(data)
        if reason is None:
            reason = message.split("execution reverted:", 1)[-1].strip() if ":" in message else message
        return RevertError(reason, code=code, data=data, method=method, message=message)
    return RpcError(message, code=code, data=data, method=method)


def _debug_print(record: Dict[str, Any]) -> None:
    print(json.dumps(record, ensure_ascii=False, default=str))


@dataclass(frozen=True)
class JsonRpcClient:
    url: str
    timeout_sec: float = 30.0
    transport: Optional[httpx.BaseTransport] = None
    debug: bool = False

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout_sec, transport=self.transport)

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(_id_counter),
            "method": method,
            "params": params or [],
        }
        if self.debug:
            _debug_print({"msg": "rpc_request", **payload})
        try:
            with self._client() as client:
                resp = client.post(self.url, json=payload)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} failed: {e!r}") from e

        try:
            data = resp.json()
        except ValueError as e:
            if not resp.is_success:
                raise NetworkError(f"{method} failed: HTTP {resp.status_code}") from e
            raise DecodeError(f"{method} returned invalid JSON") from e
        if self.debug:
            _debug_print({"msg": "rpc_response", "method": method, "status": resp.status_code, "body": data})

        if not isinstance(data, dict):
            if not resp.is_success:
                raise NetworkError(f"{method} failed: HTTP {resp.status_code}")
            raise DecodeError(f"{method} returned a non-object response: {data!r}")
        if data.get("error") is not None:
            raise error_from_payload(method, data["error"])
        if not resp.is_success:
            raise NetworkError(f"{method} failed: HTTP {resp.status_code}")
        if "result" not in data:
            raise DecodeError(f"{method} response has neither result nor error")
        return data["result"]

    # --- Convenience wrappers
    def eth_chain_id(self) -> int:
        return parse_quantity(self.call("eth_chainId"), what="chain id")

    def eth_get_balance(self, address: str, block: str = "latest") -> int:
        return parse_quantity(self.call("eth_getBalance", [address, block]), what="balance")

    def eth_get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionReceipt", [tx_hash])

    def eth_get_block_by_number(self, block: str = "latest", full_txs: bool = False) -> Optional[Dict[str, Any]]:
        return self.call("eth_getBlockByNumber", [block, bool(full_txs)])

    def eth_call(self, tx: Dict[str, Any], block: str = "latest") -> str:
        return self.call("eth_call", [tx, block])

    def eth_gas_price(self) -> int:
        return parse_quantity(self.call("eth_gasPrice"), what="gas price")

    def eth_max_priority_fee_per_gas(self) -> int:
        return parse_quantity(self.call("eth_maxPriorityFeePerGas"), what="priority fee")

    def eth_estimate_gas(self, tx: Dict[str, Any]) -> int:
        return parse_quantity(self.call("eth_estimateGas", [tx]), what="gas estimate")

    def eth_create_access_list(self, tx: Dict[str, Any], block: str = "latest") -> Any:
        return self.call("eth_createAccessList", [tx, block])

    def eth_get_transaction_count(self, address: str, tag: str = "pending") -> int:
        return parse_quantity(self.call("eth_getTransactionCount", [address, tag]), what="nonce")

    def eth_send_raw_transaction(self, raw_tx_hex: str) -> str:
        return self.call("eth_sendRawTransaction", [raw_tx_hex])
