"""
Best-effort eth_createAccessList.

Providers disagree a lot on this method. Some do not expose it at all, some
crash inside the handler, and some run their own gas estimation when no gas
limit is given and report absurd "insufficient funds" requirements. None of
that is fatal for the caller, so every failure is returned as an
`AccessListUnavailable` carrying the cause and the original error.

Passing an explicit gas limit skips the provider's estimation path; with one
supplied the GAS_MISESTIMATED cause is never reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from rpcprobe.errors import DecodeError, NetworkError, RevertError, RpcError
from rpcprobe.models import (
    AccessListCause,
    AccessListOutcome,
    AccessListUnavailable,
    CallRequest,
    parse_access_list_result,
)
from rpcprobe.rpc import JsonRpcClient


METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

_NOT_SUPPORTED_MARKERS = (
    "not whitelisted",
    "method not found",
    "does not exist",
    "not supported",
    "not available",
    "unsupported method",
)
_WANT_RE = re.compile(r"\bwant\s+(\d+)")


@dataclass(frozen=True)
class GasMisestimatePolicy:
    """
    When an "insufficient funds" reply counts as a provider misestimate.

    The node reports `want N` (wei it thinks the call needs). If that exceeds
    the call's value by at least `implausible_excess_wei`, the requirement is
    treated as an artifact of the provider's own gas estimation.
    """

    implausible_excess_wei: int = 10**18

    def is_implausible(self, want_wei: Optional[int], value_wei: int) -> bool:
        if want_wei is None:
            return True
        return want_wei - value_wei >= self.implausible_excess_wei


def required_wei_from_message(message: str) -> Optional[int]:
    m = _WANT_RE.search(message)
    return int(m.group(1)) if m else None


def classify_rpc_error(
    err: RpcError,
    *,
    call: CallRequest,
    gas_supplied: bool,
    policy: GasMisestimatePolicy,
) -> AccessListUnavailable:
    message = err.message or str(err)
    lowered = message.lower()

    # A revert reason is contract text; it never means the method is missing.
    if isinstance(err, RevertError):
        cause = AccessListCause.REVERTED
    elif err.code == METHOD_NOT_FOUND or any(m in lowered for m in _NOT_SUPPORTED_MARKERS):
        cause = AccessListCause.METHOD_NOT_SUPPORTED
    elif "insufficient funds" in lowered:
        want = required_wei_from_message(message)
        if not gas_supplied and policy.is_implausible(want, call.value):
            cause = AccessListCause.GAS_MISESTIMATED
        else:
            cause = AccessListCause.REJECTED
    elif err.code == INTERNAL_ERROR and not err.data:
        cause = AccessListCause.HANDLER_CRASHED
    else:
        cause = AccessListCause.REJECTED
    return AccessListUnavailable(cause=cause, message=message, code=err.code, error=err)


def request_access_list(
    rpc: JsonRpcClient,
    call: CallRequest,
    *,
    gas: Optional[int] = None,
    policy: Optional[GasMisestimatePolicy] = None,
    block: str = "latest",
) -> AccessListOutcome:
    policy = policy or GasMisestimatePolicy()
    effective_gas = gas if gas is not None else call.gas
    try:
        raw = rpc.eth_create_access_list(call.to_rpc(effective_gas), block)
    except RpcError as e:
        return classify_rpc_error(e, call=call, gas_supplied=effective_gas is not None, policy=policy)
    except NetworkError as e:
        return AccessListUnavailable(cause=AccessListCause.TRANSPORT_FAILED, message=str(e), error=e)
    except DecodeError as e:
        return AccessListUnavailable(cause=AccessListCause.MALFORMED_RESPONSE, message=str(e), error=e)

    # geth reports execution failures inside an otherwise successful result.
    if isinstance(raw, dict) and raw.get("error"):
        return AccessListUnavailable(cause=AccessListCause.REVERTED, message=str(raw["error"]))
    try:
        return parse_access_list_result(raw)
    except DecodeError as e:
        return AccessListUnavailable(cause=AccessListCause.MALFORMED_RESPONSE, message=str(e), error=e)
