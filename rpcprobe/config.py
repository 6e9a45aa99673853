from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional

from rpcprobe.env import load_env_file
from rpcprobe.errors import ConfigurationError
from rpcprobe.models import ChainConfig


def load_default_env() -> None:
    # MNEMONIC and the per-chain RPC URLs live in ./.env
    load_env_file(Path.cwd() / ".env", override=False)


load_default_env()


CHAINS_BY_NAME: Dict[str, ChainConfig] = {
    "base": ChainConfig(
        chain_id=8453,
        name="base",
        native_symbol="ETH",
        native_decimals=18,
        default_rpc_url="https://mainnet.base.org",
    ),
    "celo": ChainConfig(
        chain_id=42220,
        name="celo",
        native_symbol="CELO",
        native_decimals=18,
        default_rpc_url="https://forno.celo.org",
    ),
}

# USDC
TOKEN_ADDRESS_BY_CHAIN: Dict[int, str] = {
    42220: "0xceba9300f2b948710d2653dd7b07f33a8b32118c",
    8453: "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
}

RPC_ENV_VAR_BY_CHAIN: Dict[str, str] = {
    "base": "BASE_RPC_URL",
    "celo": "CELO_RPC_URL",
}

# Used as `from` in read-only mode when no MNEMONIC is configured.
FALLBACK_ADDRESS = "0xe30E59040385cfa09e5C61241C20f0673F314C98"

TOKEN_SEND_AMOUNT = Decimal("0.01")


def chain_by_name(name: str) -> ChainConfig:
    try:
        return CHAINS_BY_NAME[name.lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown chain {name!r}. Choose from: {', '.join(CHAINS_BY_NAME)}") from None


def rpc_url_for_chain(name: str, override: Optional[str] = None) -> str:
    if override:
        return override
    env_var = RPC_ENV_VAR_BY_CHAIN.get(name.lower())
    direct = os.getenv(env_var) if env_var else None
    if direct:
        return direct
    url = chain_by_name(name).default_rpc_url
    if not url:
        raise ConfigurationError(f"Missing RPC URL for {name}. Set {env_var} or pass --rpc-url.")
    return url


def token_address_for_chain(chain_id: int) -> str:
    addr = TOKEN_ADDRESS_BY_CHAIN.get(chain_id)
    if not addr:
        raise ConfigurationError(f"No token configured for chainId={chain_id}")
    return addr


def mnemonic() -> Optional[str]:
    m = (os.getenv("MNEMONIC") or "").strip()
    return m or None


def account_index() -> int:
    env = os.getenv("ACCOUNT_INDEX")
    if env is not None:
        try:
            return max(0, int(env))
        except ValueError:
            pass
    return 0


def receipt_timeout_sec() -> float:
    env = os.getenv("RECEIPT_TIMEOUT_SEC")
    if env is not None:
        try:
            return max(1.0, float(env))
        except ValueError:
            pass
    return 120.0


def access_list_gas_limit() -> Optional[int]:
    env = os.getenv("ACCESS_LIST_GAS")
    if env is not None:
        try:
            v = int(env)
            return v if v > 0 else None
        except ValueError:
            pass
    return None


def misestimate_threshold_wei() -> int:
    env = os.getenv("MISESTIMATE_THRESHOLD_WEI")
    if env is not None:
        try:
            return max(0, int(env))
        except ValueError:
            pass
    return 10**18


def rpc_debug_enabled() -> bool:
    v = (os.getenv("RPCPROBE_DEBUG") or "").strip().lower()
    return v in ("1", "true", "yes", "y", "on")


# Retry gas for the access-list fallback when the provider misestimates; a USDC
# transfer needs roughly 40-65k.
FALLBACK_ACCESS_LIST_GAS = 100_000


@dataclass(frozen=True)
class DemoSettings:
    chain: ChainConfig
    rpc_url: str
    token_address: str
    mnemonic: Optional[str] = field(repr=False)
    account_index: int
    fallback_address: str
    send_amount: Decimal
    access_list_gas: Optional[int]
    receipt_timeout_sec: float
    misestimate_threshold_wei: int
    debug: bool

    @property
    def read_only(self) -> bool:
        return self.mnemonic is None


def resolve_settings(
    chain_name: str = "base",
    rpc_url: Optional[str] = None,
    *,
    gas_limit: Optional[int] = None,
    receipt_timeout: Optional[float] = None,
) -> DemoSettings:
    chain = chain_by_name(chain_name)
    return DemoSettings(
        chain=chain,
        rpc_url=rpc_url_for_chain(chain.name, rpc_url),
        token_address=token_address_for_chain(chain.chain_id),
        mnemonic=mnemonic(),
        account_index=account_index(),
        fallback_address=FALLBACK_ADDRESS,
        send_amount=TOKEN_SEND_AMOUNT,
        access_list_gas=gas_limit if gas_limit is not None else access_list_gas_limit(),
        receipt_timeout_sec=receipt_timeout if receipt_timeout is not None else receipt_timeout_sec(),
        misestimate_threshold_wei=misestimate_threshold_wei(),
        debug=rpc_debug_enabled(),
    )
