"""Token balance, allowance and approval helpers."""

from __future__ import annotations

from typing import Dict, Tuple

from web3 import Web3
from web3.contract import Contract

from bridgeswap.config import TokenConfig
from bridgeswap.contracts import ABI_CODEC
from bridgeswap.core.utils import ensure_web3_connected, format_units, get_logger, hex_to_bytes
from bridgeswap.errors import InsufficientBalance

LOGGER = get_logger("bridgeswap.tokens")

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}, {"name": "_spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [{"name": "spender", "type": "address"}, {"name": "value", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
]

ERC20_CODEC = ABI_CODEC.eth.contract(abi=ERC20_ABI)


def get_contract(web3: Web3, token_address: str) -> Contract:
    """Return a cached ERC20 contract instance for ``token_address``."""
    ensure_web3_connected(web3)
    return _get_or_create_contract(web3, token_address)


_CONTRACT_CACHE: Dict[Tuple[int, str], Contract] = {}


def _get_or_create_contract(web3: Web3, token_address: str) -> Contract:
    checksum_address = Web3.to_checksum_address(token_address)
    key = (id(web3), checksum_address)
    contract = _CONTRACT_CACHE.get(key)
    if contract is None:
        contract = web3.eth.contract(address=checksum_address, abi=ERC20_ABI)
        _CONTRACT_CACHE[key] = contract
    return contract


def balance_of(web3: Web3, token_address: str, owner: str) -> int:
    """Fetch the ERC20 balance."""
    contract = get_contract(web3, token_address)
    return contract.functions.balanceOf(Web3.to_checksum_address(owner)).call()


def allowance_of(web3: Web3, token_address: str, owner: str, spender: str) -> int:
    """Fetch the ERC20 allowance."""
    contract = get_contract(web3, token_address)
    return contract.functions.allowance(
        Web3.to_checksum_address(owner),
        Web3.to_checksum_address(spender),
    ).call()


def encode_approve(spender: str, amount: int) -> bytes:
    """Return ``approve(spender, amount)`` call data."""
    if amount < 0:
        raise ValueError(f"Approval amount must be non-negative, got {amount}")
    return hex_to_bytes(ERC20_CODEC.encode_abi("approve", args=[Web3.to_checksum_address(spender), amount]))


def decode_approve(call_data: bytes) -> Tuple[str, int]:
    """Decode ``approve`` call data into ``(spender, amount)``."""
    try:
        function, params = ERC20_CODEC.decode_function_input(call_data)
    except ValueError as exc:
        raise ValueError("Call data is not an ERC20 approve call") from exc
    if function.fn_name != "approve":
        raise ValueError(f"Call data is an ERC20 {function.fn_name} call, not approve")
    return Web3.to_checksum_address(params["spender"]), int(params["value"])


def check_balance(*, token: TokenConfig, required: int, available: int) -> None:
    """Raise ``InsufficientBalance`` when ``available`` cannot cover ``required``."""
    if available < required:
        raise InsufficientBalance(
            required=format_units(required, token.decimals),
            available=format_units(available, token.decimals),
            symbol=token.symbol,
        )
    LOGGER.info(
        "Balance check passed. Available: %s %s",
        format_units(available, token.decimals),
        token.symbol,
    )


__all__ = [
    "ERC20_ABI",
    "ERC20_CODEC",
    "allowance_of",
    "balance_of",
    "check_balance",
    "decode_approve",
    "encode_approve",
    "get_contract",
]
