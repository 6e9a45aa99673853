from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from eth_utils import to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from rpcprobe.errors import DecodeError


def _quantity(v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError(f"invalid quantity: {v!r}")
    if isinstance(v, int):
        if v < 0:
            raise ValueError(f"negative quantity: {v}")
        return v
    if isinstance(v, str) and v.lower().startswith("0x") and v[2:].isalnum():
        try:
            return int(v[2:], 16)
        except ValueError:
            pass
    raise ValueError(f"invalid quantity: {v!r}")


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    name: str
    native_symbol: str
    native_decimals: int = 18
    default_rpc_url: str = ""


@dataclass(frozen=True)
class CallRequest:
    sender: str
    to: str
    data: str
    value: int = 0
    gas: Optional[int] = None

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("value must be >= 0")
        if self.gas is not None and self.gas <= 0:
            raise ValueError("gas must be positive")

    def to_rpc(self, gas: Optional[int] = None) -> Dict[str, Any]:
        tx: Dict[str, Any] = {
            "from": self.sender,
            "to": self.to,
            "data": self.data,
            "value": hex(self.value),
        }
        g = gas if gas is not None else self.gas
        if g is not None:
            tx["gas"] = hex(g)
        return tx


@dataclass(frozen=True)
class TokenInfo:
    address: str
    symbol: str
    decimals: int
    balance: int


class AccessListEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    address: str
    storage_keys: Tuple[str, ...] = Field(default=(), alias="storageKeys")

    def to_rpc(self) -> Dict[str, Any]:
        return {"address": to_checksum_address(self.address), "storageKeys": list(self.storage_keys)}


class AccessListResult(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    entries: Tuple[AccessListEntry, ...] = Field(alias="accessList")
    gas_used: int = Field(alias="gasUsed")

    @field_validator("gas_used", mode="before")
    @classmethod
    def parse_gas_used(cls, v: Any) -> int:
        return _quantity(v)

    def to_rpc(self) -> List[Dict[str, Any]]:
        return [e.to_rpc() for e in self.entries]


class AccessListCause(str, Enum):
    METHOD_NOT_SUPPORTED = "method_not_supported"
    HANDLER_CRASHED = "handler_crashed"
    GAS_MISESTIMATED = "gas_misestimated"
    REVERTED = "reverted"
    REJECTED = "rejected"
    MALFORMED_RESPONSE = "malformed_response"
    TRANSPORT_FAILED = "transport_failed"


@dataclass(frozen=True)
class AccessListUnavailable:
    cause: AccessListCause
    message: str
    code: Optional[int] = None
    error: Optional[Exception] = field(default=None, compare=False)


AccessListOutcome = Union[AccessListResult, AccessListUnavailable]


class ReceiptStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class TransactionReceipt(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    transaction_hash: str = Field(alias="transactionHash")
    status: ReceiptStatus
    gas_used: int = Field(alias="gasUsed")
    block_number: int = Field(alias="blockNumber")
    effective_gas_price: Optional[int] = Field(default=None, alias="effectiveGasPrice")

    @field_validator("gas_used", "block_number", mode="before")
    @classmethod
    def parse_quantities(cls, v: Any) -> int:
        return _quantity(v)

    @field_validator("effective_gas_price", mode="before")
    @classmethod
    def parse_gas_price(cls, v: Any) -> Optional[int]:
        return None if v is None else _quantity(v)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> ReceiptStatus:
        if isinstance(v, ReceiptStatus):
            return v
        if _quantity(v) == 1:
            return ReceiptStatus.SUCCESS
        return ReceiptStatus.FAILURE

    @property
    def succeeded(self) -> bool:
        return self.status == ReceiptStatus.SUCCESS


def parse_access_list_result(raw: Any) -> AccessListResult:
    try:
        return AccessListResult.model_validate(raw)
    except ValidationError as e:
        raise DecodeError(f"Malformed access list result: {e}") from e


def parse_receipt(raw: Any) -> TransactionReceipt:
    try:
        return TransactionReceipt.model_validate(raw)
    except ValidationError as e:
        raise DecodeError(f"Malformed transaction receipt: {e}") from e
