"""Signing and broadcasting origin-chain transactions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError

from bridgeswap.core.utils import get_logger, to_hex
from bridgeswap.errors import TransactionFailed

LOGGER = get_logger("bridgeswap.transactions")

FALLBACK_GAS_LIMIT = 1_000_000


@dataclass(frozen=True)
class GasParameters:
    """EIP-1559 gas parameters."""

    gas: int
    gas_price: int
    max_priority_fee: int
    max_fee: int
    estimated_cost: int


class Signer:
    """Local key signer bound to the origin chain."""

    def __init__(self, *, web3: Web3, private_key: str, chain_id: int) -> None:
        self.web3 = web3
        self.chain_id = chain_id
        self.account: LocalAccount = Account.from_key(private_key)
        self.address = self.account.address

    def estimate_gas(self, tx: Dict[str, Any]) -> GasParameters:
        """Estimate gas for ``tx``, falling back to a fixed limit when estimation fails."""
        gas_price = self.web3.eth.gas_price
        max_priority_fee = getattr(self.web3.eth, "max_priority_fee", gas_price)
        try:
            gas = self.web3.eth.estimate_gas(tx)
        except ContractLogicError as exc:
            raise TransactionFailed(f"Transaction would revert: {exc}") from exc
        except Exception as exc:
            LOGGER.warning("Gas estimation failed, using fallback limit %s: %s", FALLBACK_GAS_LIMIT, exc)
            gas = FALLBACK_GAS_LIMIT
        return GasParameters(
            gas=gas,
            gas_price=gas_price,
            max_priority_fee=max_priority_fee,
            max_fee=gas_price + max_priority_fee,
            estimated_cost=gas * gas_price,
        )

    def build_transaction(self, *, to: str, data: bytes, value: int = 0) -> Dict[str, Any]:
        """Build a signed-ready 1559 transaction payload."""
        tx: Dict[str, Any] = {
            "from": self.address,
            "to": Web3.to_checksum_address(to),
            "data": to_hex(data),
            "value": value,
            "chainId": self.chain_id,
        }
        gas = self.estimate_gas(tx)
        LOGGER.info(
            "Gas=%s maxFee=%.2f gwei priority=%.2f gwei estimatedCost=%.6f ETH",
            gas.gas,
            gas.max_fee / 10**9,
            gas.max_priority_fee / 10**9,
            gas.estimated_cost / 10**18,
        )
        tx.update(
            {
                "gas": int(gas.gas * 1.1),  # add a 10% buffer
                "maxFeePerGas": gas.max_fee,
                "maxPriorityFeePerGas": gas.max_priority_fee,
                "nonce": self.web3.eth.get_transaction_count(self.address),
            }
        )
        return tx

    def send(self, tx: Dict[str, Any]) -> str:
        """Sign and broadcast ``tx``; return its hash."""
        signed = self.account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hex = to_hex(tx_hash)
        LOGGER.info("Transaction hash: %s", tx_hex)
        return tx_hex

    def wait(self, tx_hash: str, *, timeout: Optional[int] = None) -> Any:
        """Wait for the receipt and raise ``TransactionFailed`` when it reverted."""
        kwargs = {"timeout": timeout} if timeout else {}
        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, **kwargs)
        except Exception as exc:
            raise TransactionFailed(f"Transaction {tx_hash} was not confirmed: {exc}", tx_hash=tx_hash) from exc
        if receipt["status"] != 1:
            raise TransactionFailed(f"Transaction {tx_hash} reverted (status={receipt['status']})", tx_hash=tx_hash)
        LOGGER.info("Transaction confirmed in block %s (gasUsed=%s)", receipt["blockNumber"], receipt["gasUsed"])
        return receipt


__all__ = ["FALLBACK_GAS_LIMIT", "GasParameters", "Signer"]
