"""Destination-chain actions delivered with the bridge deposit."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union

from eth_abi import encode
from web3 import Web3

from bridgeswap.config import RouteConfig
from bridgeswap.core.routing import SwapCall
from bridgeswap.core.tokens import encode_approve
from bridgeswap.core.utils import get_logger
from bridgeswap.errors import SwapTargetChanged

LOGGER = get_logger("bridgeswap.actions")

# Multicall handler ``Instructions(Call[] calls, address fallbackRecipient)``.
INSTRUCTIONS_TYPE = "((address,bytes,uint256)[],address)"


class ActionKind(str, Enum):
    APPROVE = "approve"
    SWAP = "swap"


@dataclass(frozen=True)
class ActionPatch:
    """Amount-dependent fields recomputed for a new delivered amount."""

    amount: int
    call_data: bytes
    value: int = 0
    min_amount_out: Optional[int] = None


@dataclass(frozen=True)
class ApproveAction:
    """ERC20 approval granting the swap contract an allowance on the bridged token."""

    kind: ClassVar[ActionKind] = ActionKind.APPROVE

    target: str
    spender: str
    amount: int
    call_data: bytes
    value: int = 0

    @classmethod
    def create(cls, *, token: str, spender: str, amount: int) -> "ApproveAction":
        return cls(
            target=Web3.to_checksum_address(token),
            spender=Web3.to_checksum_address(spender),
            amount=amount,
            call_data=encode_approve(spender, amount),
        )

    def update(self, new_amount: int) -> ActionPatch:
        return ActionPatch(amount=new_amount, call_data=encode_approve(self.spender, new_amount), value=self.value)

    def apply(self, patch: ActionPatch) -> "ApproveAction":
        return replace(self, amount=patch.amount, call_data=patch.call_data, value=patch.value)


@dataclass(frozen=True)
class SwapAction:
    """Exact-input swap whose call data is regenerated for the delivered amount.

    The target is pinned to the contract resolved for the initial estimate
    because the approval in front of it is granted to that contract.
    """

    kind: ClassVar[ActionKind] = ActionKind.SWAP

    target: str
    amount: int
    call_data: bytes
    min_amount_out: int
    regenerate: Callable[[int], SwapCall] = field(repr=False, compare=False)
    value: int = 0

    @classmethod
    def create(cls, *, amount: int, swap: SwapCall, regenerate: Callable[[int], SwapCall]) -> "SwapAction":
        return cls(
            target=Web3.to_checksum_address(swap.target),
            amount=amount,
            call_data=swap.call_data,
            min_amount_out=swap.min_amount_out,
            regenerate=regenerate,
            value=swap.value,
        )

    def update(self, new_amount: int) -> ActionPatch:
        swap = self.regenerate(new_amount)
        resolved = Web3.to_checksum_address(swap.target)
        if resolved != self.target:
            raise SwapTargetChanged(expected=self.target, actual=resolved)
        return ActionPatch(
            amount=new_amount,
            call_data=swap.call_data,
            value=swap.value,
            min_amount_out=swap.min_amount_out,
        )

    def apply(self, patch: ActionPatch) -> "SwapAction":
        return replace(
            self,
            amount=patch.amount,
            call_data=patch.call_data,
            value=patch.value,
            min_amount_out=self.min_amount_out if patch.min_amount_out is None else patch.min_amount_out,
        )


Action = Union[ApproveAction, SwapAction]


@dataclass(frozen=True)
class CrossChainMessage:
    """Ordered actions executed by the multicall handler plus a fallback recipient."""

    actions: Tuple[Action, ...]
    fallback_recipient: str

    def __post_init__(self) -> None:
        if not self.actions:
            raise ValueError("Cross-chain message needs at least one action")
        object.__setattr__(self, "fallback_recipient", Web3.to_checksum_address(self.fallback_recipient))

    @property
    def kinds(self) -> Tuple[ActionKind, ...]:
        return tuple(action.kind for action in self.actions)

    def resolve(self, amount: int) -> "CrossChainMessage":
        """Return a copy with every action recomputed for ``amount``.

        All patches are computed before any is applied, so a failing update
        leaves no partially patched message behind.
        """
        patches = [action.update(amount) for action in self.actions]
        actions = tuple(action.apply(patch) for action, patch in zip(self.actions, patches))
        return replace(self, actions=actions)

    def encode(self) -> bytes:
        """ABI-encode the message for the multicall handler."""
        calls = [(action.target, action.call_data, action.value) for action in self.actions]
        return encode([INSTRUCTIONS_TYPE], [(calls, self.fallback_recipient)])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actions": [
                {
                    "kind": action.kind.value,
                    "target": action.target,
                    "amount": action.amount,
                    "value": action.value,
                    "callData": "0x" + action.call_data.hex(),
                }
                for action in self.actions
            ],
            "fallbackRecipient": self.fallback_recipient,
        }


def build_cross_chain_message(
    *,
    route: RouteConfig,
    initial_swap: SwapCall,
    regenerate_swap: Callable[[int], SwapCall],
    user_address: str,
) -> CrossChainMessage:
    """Build the ``[approve, swap]`` message for the route's input amount.

    Leftover tokens, or the whole amount when the swap fails, go back to
    ``user_address``.
    """
    approve = ApproveAction.create(
        token=route.swap_token_in.address,
        spender=initial_swap.target,
        amount=route.input_amount,
    )
    swap = SwapAction.create(amount=route.input_amount, swap=initial_swap, regenerate=regenerate_swap)
    message = CrossChainMessage(actions=(approve, swap), fallback_recipient=user_address)
    LOGGER.info(
        "Built cross-chain message: approve %s for %s, swap via %s, fallback %s",
        approve.target,
        approve.spender,
        swap.target,
        message.fallback_recipient,
    )
    return message


__all__ = [
    "Action",
    "ActionKind",
    "ActionPatch",
    "ApproveAction",
    "CrossChainMessage",
    "SwapAction",
    "build_cross_chain_message",
]
