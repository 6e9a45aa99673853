from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import to_bytes, to_checksum_address

from rpcprobe.abi import function_selector
from rpcprobe.models import ChainConfig


BASE = ChainConfig(chain_id=8453, name="base", native_symbol="ETH", default_rpc_url="https://mainnet.base.org")
RPC_URL = "https://rpc.test.invalid"

ACCOUNT_X = to_checksum_address("0xe30e59040385cfa09e5c61241c20f0673f314c98")
USDC = to_checksum_address("0x833589fcd6edb6e08f4c7c32d4f71b54bda02913")

HARDHAT_MNEMONIC = "test test test test test test test test test test test junk"
HARDHAT_ADDRESS_0 = to_checksum_address("0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266")
HARDHAT_KEY_0 = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


class NodeError(Exception):
    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def _selector_hex(signature: str) -> str:
    return "0x" + function_selector(signature).hex()


def revert_data(reason: str) -> str:
    return _selector_hex("Error(string)") + abi_encode(["string"], [reason]).hex()


class FakeNode:
    """In-memory JSON-RPC endpoint served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.handlers: Dict[str, Callable[[List[Any]], Any]] = {}
        self.calls: List[Tuple[str, List[Any]]] = []
        self._lock = threading.Lock()

    def on(self, method: str, handler: Optional[Callable[[List[Any]], Any]] = None, *, result: Any = None) -> None:
        self.handlers[method] = handler if handler is not None else (lambda params: result)

    def fail(self, method: str, code: int, message: str, data: Any = None) -> None:
        def _raise(params: List[Any]) -> Any:
            raise NodeError(code, message, data)

        self.handlers[method] = _raise

    def params_for(self, method: str) -> List[List[Any]]:
        return [p for m, p in self.calls if m == method]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        params = body.get("params") or []
        with self._lock:
            self.calls.append((method, params))
        handler = self.handlers.get(method)
        if handler is None:
            payload: Dict[str, Any] = {"error": {"code": -32601, "message": f"the method {method} does not exist/is not available"}}
        else:
            try:
                payload = {"result": handler(params)}
            except NodeError as e:
                err: Dict[str, Any] = {"code": e.code, "message": e.message}
                if e.data is not None:
                    err["data"] = e.data
                payload = {"error": err}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **payload})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


class FakeErc20:
    """eth_call handler for a single ERC-20 token with a balance table."""

    def __init__(self, address: str, symbol: str, decimals: int, balances: Dict[str, int]):
        self.address = address.lower()
        self.symbol = symbol
        self.decimals = decimals
        self.balances = {k.lower(): v for k, v in balances.items()}

    def __call__(self, params: List[Any]) -> str:
        tx = params[0]
        if str(tx.get("to", "")).lower() != self.address:
            return "0x"
        data = tx["data"]
        selector, args = data[:10], to_bytes(hexstr="0x" + data[10:])
        if selector == _selector_hex("symbol()"):
            return "0x" + abi_encode(["string"], [self.symbol]).hex()
        if selector == _selector_hex("decimals()"):
            return "0x" + abi_encode(["uint8"], [self.decimals]).hex()
        if selector == _selector_hex("balanceOf(address)"):
            (owner,) = abi_decode(["address"], args)
            return "0x" + abi_encode(["uint256"], [self.balances.get(owner.lower(), 0)]).hex()
        if selector == _selector_hex("transfer(address,uint256)"):
            _to, amount = abi_decode(["address", "uint256"], args)
            sender = str(tx.get("from", "")).lower()
            if self.balances.get(sender, 0) < amount:
                reason = "ERC20: transfer amount exceeds balance"
                raise NodeError(3, f"execution reverted: {reason}", revert_data(reason))
            return "0x" + abi_encode(["bool"], [True]).hex()
        raise NodeError(3, "execution reverted")


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def usdc(node: FakeNode) -> FakeErc20:
    token = FakeErc20(USDC, "USDC", 6, {ACCOUNT_X: 1_000_000})
    node.on("eth_call", token)
    return token
