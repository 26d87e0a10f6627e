"""Config loader for the bridge-and-swap route."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Optional

from web3 import Web3

from bridgeswap.errors import ConfigError

MAX_TOKEN_DECIMALS = 36


def _require_keys(data: Mapping[str, Any], keys: Iterable[str], context: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise ConfigError(f"{context} missing required keys: {', '.join(missing)}")


def _to_checksum(value: str, *, field_name: str) -> str:
    try:
        return Web3.to_checksum_address(value)
    except Exception as exc:  # web3 raises ValueError for malformed inputs
        raise ConfigError(f"Invalid address for {field_name}: {value}") from exc


def parse_units(amount: str, decimals: int) -> int:
    """Scale a human-readable amount to the token's smallest unit."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ConfigError(f"Invalid token amount: {amount}") from exc
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ConfigError(f"Amount {amount} has more than {decimals} decimals")
    return int(scaled)


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a blockchain network."""

    name: str
    chain_id: int
    rpc_url: Optional[str] = None
    explorer_url: Optional[str] = None

    def ensure_rpc_url(self) -> str:
        """Return the RPC URL or raise if it is missing."""
        if not self.rpc_url:
            raise ConfigError(f"RPC URL required but not configured for {self.name}")
        return self.rpc_url


@dataclass(frozen=True)
class TokenConfig:
    """Token address and precision on one chain."""

    symbol: str
    address: str
    decimals: int


@dataclass(frozen=True)
class DefaultsConfig:
    """Default operational parameters."""

    slippage_percent: Decimal
    deadline_seconds: int
    protocol_version: int
    api_timeout: int
    fill_timeout: int
    fill_poll_interval: int


@dataclass(frozen=True)
class ApiUrlsConfig:
    """API endpoints for the routing and bridge engines."""

    balancer: str
    across: str


@dataclass(frozen=True)
class RouteConfig:
    """Typed, immutable description of the bridge-and-swap route."""

    origin_chain: ChainConfig
    destination_chain: ChainConfig
    deposit_token: TokenConfig
    swap_token_in: TokenConfig
    swap_token_out: TokenConfig
    input_amount: int
    multicall_handler: str
    balancer_vault: str
    integrator_id: str
    defaults: DefaultsConfig
    api_urls: ApiUrlsConfig
    raw: Mapping[str, Any] = field(repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Return the raw configuration mapping."""
        return dict(self.raw)


@dataclass(frozen=True)
class RuntimeSettings:
    """Secrets and RPC overrides resolved once from the environment."""

    private_key: str = field(repr=False)
    origin_rpc_url: str
    destination_rpc_url: str


def _parse_chain(data: Mapping[str, Any], context: str) -> ChainConfig:
    _require_keys(data, ["name", "chain_id"], context)
    return ChainConfig(
        name=str(data["name"]),
        chain_id=int(data["chain_id"]),
        rpc_url=data.get("rpc_url"),
        explorer_url=data.get("explorer_url"),
    )


def _parse_token(data: Mapping[str, Any], context: str) -> TokenConfig:
    _require_keys(data, ["symbol", "address", "decimals"], context)
    decimals = int(data["decimals"])
    if decimals < 0 or decimals > MAX_TOKEN_DECIMALS:
        raise ConfigError(f"{context} decimals must be between 0 and {MAX_TOKEN_DECIMALS}")
    return TokenConfig(
        symbol=str(data["symbol"]),
        address=_to_checksum(data["address"], field_name=f"{context} address"),
        decimals=decimals,
    )


def _load_json(path: Path) -> MutableMapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file contains invalid JSON: {path}") from exc


def build_config(data: Mapping[str, Any]) -> RouteConfig:
    """Validate a raw configuration mapping and return the typed route."""
    _require_keys(data, ["chains", "tokens", "contracts", "defaults", "api_urls"], "config")

    chains = data["chains"]
    tokens = data["tokens"]
    contracts = data["contracts"]
    defaults = data["defaults"]
    api_urls = data["api_urls"]

    _require_keys(chains, ["origin", "destination"], "chains")
    origin_chain = _parse_chain(chains["origin"], "origin chain")
    destination_chain = _parse_chain(chains["destination"], "destination chain")
    if origin_chain.chain_id == destination_chain.chain_id:
        raise ConfigError("origin and destination chains must differ")

    _require_keys(tokens, ["deposit", "swap_in", "swap_out"], "tokens")
    deposit_token = _parse_token(tokens["deposit"], "deposit token")
    swap_token_in = _parse_token(tokens["swap_in"], "swap_in token")
    swap_token_out = _parse_token(tokens["swap_out"], "swap_out token")
    if swap_token_in.address == swap_token_out.address:
        raise ConfigError("swap_in and swap_out tokens must differ")

    _require_keys(contracts, ["multicall_handler", "balancer_vault"], "contracts")
    multicall_handler = _to_checksum(contracts["multicall_handler"], field_name="multicall_handler")
    balancer_vault = _to_checksum(contracts["balancer_vault"], field_name="balancer_vault")

    _require_keys(
        defaults,
        ["input_amount", "slippage_percent", "deadline_seconds", "api_timeout"],
        "defaults",
    )
    input_amount = parse_units(defaults["input_amount"], deposit_token.decimals)
    if input_amount <= 0:
        raise ConfigError("defaults.input_amount must be positive")

    defaults_config = DefaultsConfig(
        slippage_percent=Decimal(str(defaults["slippage_percent"])),
        deadline_seconds=int(defaults["deadline_seconds"]),
        protocol_version=int(defaults.get("protocol_version", 2)),
        api_timeout=int(defaults["api_timeout"]),
        fill_timeout=int(defaults.get("fill_timeout", 600)),
        fill_poll_interval=int(defaults.get("fill_poll_interval", 10)),
    )
    if defaults_config.slippage_percent <= 0 or defaults_config.slippage_percent >= 100:
        raise ConfigError("defaults.slippage_percent must be between 0 and 100 (exclusive)")
    if defaults_config.deadline_seconds <= 0:
        raise ConfigError("defaults.deadline_seconds must be positive")
    if defaults_config.api_timeout <= 0:
        raise ConfigError("defaults.api_timeout must be positive")
    if defaults_config.fill_timeout <= 0 or defaults_config.fill_poll_interval <= 0:
        raise ConfigError("defaults.fill_timeout and defaults.fill_poll_interval must be positive")

    _require_keys(api_urls, ["balancer", "across"], "api_urls")
    api_config = ApiUrlsConfig(
        balancer=str(api_urls["balancer"]),
        across=str(api_urls["across"]).rstrip("/"),
    )

    integrator_id = str(data.get("integrator_id", "0x0000"))
    if not integrator_id.startswith("0x") or len(integrator_id) != 6:
        raise ConfigError("integrator_id must be a 2-byte hex string such as 0x007e")

    return RouteConfig(
        origin_chain=origin_chain,
        destination_chain=destination_chain,
        deposit_token=deposit_token,
        swap_token_in=swap_token_in,
        swap_token_out=swap_token_out,
        input_amount=input_amount,
        multicall_handler=multicall_handler,
        balancer_vault=balancer_vault,
        integrator_id=integrator_id,
        defaults=defaults_config,
        api_urls=api_config,
        raw=data,
    )


def load_config(config_path: Optional[Path] = None) -> RouteConfig:
    """Load and validate the route configuration file."""
    config_path = config_path or Path("config.json")
    return build_config(_load_json(config_path))


def _env_value(environ: Mapping[str, str], key: str) -> Optional[str]:
    value = (environ.get(key) or "").strip()
    return value or None


def load_settings(route: RouteConfig, environ: Optional[Mapping[str, str]] = None) -> RuntimeSettings:
    """Resolve signing key and RPC endpoints from ``environ`` (defaults to ``os.environ``)."""
    environ = os.environ if environ is None else environ

    private_key = _env_value(environ, "PRIVATE_KEY")
    if not private_key:
        raise ConfigError("PRIVATE_KEY is not set")

    origin_rpc = _env_value(environ, "RPC_URL") or route.origin_chain.rpc_url
    if not origin_rpc:
        raise ConfigError("RPC_URL is not set and the origin chain has no default RPC URL")

    destination_rpc = _env_value(environ, "DESTINATION_RPC_URL") or route.destination_chain.rpc_url
    if not destination_rpc:
        raise ConfigError("DESTINATION_RPC_URL is not set and the destination chain has no default RPC URL")

    return RuntimeSettings(
        private_key=private_key,
        origin_rpc_url=origin_rpc,
        destination_rpc_url=destination_rpc,
    )


__all__ = [
    "ApiUrlsConfig",
    "ChainConfig",
    "ConfigError",
    "DefaultsConfig",
    "RouteConfig",
    "RuntimeSettings",
    "TokenConfig",
    "build_config",
    "load_config",
    "load_settings",
    "parse_units",
]
