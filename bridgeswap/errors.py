"""Exception hierarchy shared by the bridge-and-swap workflow."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class BridgeSwapError(Exception):
    """Base class for every fatal error raised by bridgeswap."""


class ConfigError(BridgeSwapError, ValueError):
    """Raised when configuration data is invalid or missing."""


class InsufficientBalance(BridgeSwapError):
    """Raised when the origin balance cannot cover the deposit."""

    def __init__(self, *, required: Decimal, available: Decimal, symbol: str) -> None:
        self.required = required
        self.available = available
        self.symbol = symbol
        super().__init__(
            f"Insufficient balance. Required: {required} {symbol}, Available: {available} {symbol}"
        )


class SwapQuoteError(BridgeSwapError):
    """Raised when the routing engine cannot produce a swap call."""


class SwapTargetChanged(BridgeSwapError):
    """Raised when a refreshed swap resolves to a different contract than the approval."""

    def __init__(self, *, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Swap contract address changed: expected {expected}, got {actual}")


class BridgeQuoteError(BridgeSwapError):
    """Raised when the bridge cannot price the deposit."""


class TransactionFailed(BridgeSwapError):
    """Raised when a submitted transaction reverts or cannot be confirmed."""

    def __init__(self, message: str, *, tx_hash: Optional[str] = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(message)


class ExecutionStepFailed(BridgeSwapError):
    """Raised when the bridge reports a failure for one of its execution steps."""

    def __init__(self, step: str, reason: str) -> None:
        self.step = step
        self.reason = reason
        super().__init__(f"{step} step failed: {reason}")


__all__ = [
    "BridgeQuoteError",
    "BridgeSwapError",
    "ConfigError",
    "ExecutionStepFailed",
    "InsufficientBalance",
    "SwapQuoteError",
    "SwapTargetChanged",
    "TransactionFailed",
]
