"""Utility helpers shared across bridgeswap core modules."""

from __future__ import annotations

import json
import logging
from decimal import Decimal, ROUND_DOWN
from typing import Any, Optional

from web3 import Web3

from bridgeswap.config import ChainConfig


def get_logger(name: str = "bridgeswap") -> logging.Logger:
    """Return a configured logger that prints to stdout."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def to_jsonable(value: Any) -> Any:
    """Convert bytes, decimals and nested containers into JSON-friendly values."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def dump_json(payload: Any) -> str:
    """Serialise ``payload`` to indented JSON."""
    return json.dumps(to_jsonable(payload), indent=2, default=str)


def log_json(logger: logging.Logger, label: str, payload: Any) -> None:
    """Log a structured payload as pretty-printed JSON."""
    logger.info("%s\n%s", label, dump_json(payload))


def ensure_web3_connected(web3: Web3, *, expected_chain_id: Optional[int] = None) -> None:
    """Validate that ``web3`` is connected and optionally matches the expected chain id."""
    if not web3.is_connected():
        raise ConnectionError("Failed to connect to the configured RPC endpoint")
    if expected_chain_id is not None and web3.eth.chain_id != expected_chain_id:
        raise ValueError(f"RPC chain ID mismatch: expected {expected_chain_id}, got {web3.eth.chain_id}")


def hex_to_bytes(data: str) -> bytes:
    """Convert a hex string (with or without ``0x``) to bytes."""
    data = data[2:] if data.startswith("0x") else data
    return bytes.fromhex(data)


def to_hex(data: Any) -> str:
    """Return a ``0x``-prefixed hex string for bytes or HexBytes values."""
    if isinstance(data, str):
        return data if data.startswith("0x") else f"0x{data}"
    return "0x" + bytes(data).hex()


def apply_discount(value: int, multiplier: Decimal) -> int:
    """Apply a multiplier to a value and round down to the nearest unit."""
    return int((Decimal(value) * multiplier).quantize(Decimal("1"), rounding=ROUND_DOWN))


def format_units(value: int, decimals: int) -> Decimal:
    """Scale a raw integer amount to human-readable units."""
    return Decimal(value).scaleb(-decimals)


def transaction_url(chain: ChainConfig, tx_hash: str) -> str:
    """Return an explorer link for ``tx_hash`` or the bare hash when no explorer is configured."""
    if not chain.explorer_url:
        return tx_hash
    return f"{chain.explorer_url.rstrip('/')}/tx/{tx_hash}"


__all__ = [
    "apply_discount",
    "dump_json",
    "ensure_web3_connected",
    "format_units",
    "get_logger",
    "hex_to_bytes",
    "log_json",
    "to_hex",
    "to_jsonable",
    "transaction_url",
]
