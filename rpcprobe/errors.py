from __future__ import annotations

from typing import Any, Optional


class RpcClientError(RuntimeError):
    """Base class for everything the client raises."""


class ConfigurationError(RpcClientError, ValueError):
    pass


class NetworkError(RpcClientError):
    """Transport-level failure: connection, timeout, or non-2xx without a JSON-RPC error."""


class DecodeError(RpcClientError):
    """Response did not have the expected shape."""


class UnauthorizedError(RpcClientError):
    pass


class RpcError(RpcClientError):
    def __init__(self, message: str, *, code: Optional[int] = None, data: Any = None, method: str = ""):
        super().__init__(f"RPC error calling {method}: [{code}] {message}" if method else f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data
        self.method = method


class RevertError(RpcError):
    def __init__(self, reason: str, *, code: Optional[int] = None, data: Any = None, method: str = "", message: str = ""):
        super().__init__(message or f"execution reverted: {reason}", code=code, data=data, method=method)
        self.reason = reason


class ReceiptTimeoutError(RpcClientError, TimeoutError):
    def __init__(self, tx_hash: str, timeout_sec: float):
        super().__init__(f"Timed out waiting for receipt: {tx_hash} after {timeout_sec:g}s")
        self.tx_hash = tx_hash
        self.timeout_sec = timeout_sec
