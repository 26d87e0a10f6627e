"""Destination-chain swap call generation."""

from __future__ import annotations

import time
from dataclasses import asdict
from decimal import Decimal
from typing import Callable

from bridgeswap.config import ChainConfig, TokenConfig
from bridgeswap.core.routing import BuildCallInput, SwapCall, SwapPlan, SwapRouter
from bridgeswap.core.utils import get_logger, log_json
from bridgeswap.errors import SwapQuoteError

LOGGER = get_logger("bridgeswap.swap")

# Protocol versions whose router lets the caller choose sender and recipient.
EXPLICIT_FUNDS_PROTOCOL_VERSIONS = frozenset({2})


def generate_swap_call(
    *,
    amount: int,
    token_in: TokenConfig,
    token_out: TokenConfig,
    sender: str,
    recipient: str,
    chain: ChainConfig,
    rpc_url: str,
    router: SwapRouter,
    slippage_percent: Decimal,
    deadline_seconds: int,
    initial: bool,
    clock: Callable[[], float] = time.time,
) -> SwapCall:
    """Build an exact-input swap call for ``amount`` of ``token_in``.

    Paths come from the routing engine, are re-queried on chain because the
    API result may be stale, and are then encoded with slippage protection.
    """
    if amount <= 0:
        raise SwapQuoteError(f"Swap amount must be positive, got {amount}")

    paths = router.fetch_paths(chain.chain_id, token_in, token_out, amount)
    if not paths:
        raise SwapQuoteError(
            f"No swap path from {token_in.symbol} to {token_out.symbol} for amount {amount} on {chain.name}"
        )
    log_json(LOGGER, "Swap paths", [asdict(path) for path in paths])

    plan = SwapPlan.from_paths(
        chain_id=chain.chain_id,
        token_in=token_in.address,
        token_out=token_out.address,
        paths=paths,
    )
    refreshed = router.query(plan, rpc_url)

    deadline = int(clock()) + deadline_seconds
    if plan.protocol_version in EXPLICIT_FUNDS_PROTOCOL_VERSIONS:
        build_input = BuildCallInput(
            slippage_percent=slippage_percent,
            deadline=deadline,
            query_output=refreshed,
            sender=sender,
            recipient=recipient,
        )
    else:
        build_input = BuildCallInput(
            slippage_percent=slippage_percent,
            deadline=deadline,
            query_output=refreshed,
        )
    call = router.build_call(plan, build_input)

    LOGGER.info("Swap data for %s", "initial quote" if initial else "updated quote")
    log_json(
        LOGGER,
        "Swap call",
        {
            "inputToken": token_in.address,
            "amount": amount,
            "outputToken": token_out.address,
            "quotedAmountOut": plan.quoted_output,
            "updatedAmountOut": refreshed.expected_amount_out,
            "minAmountOut": call.min_amount_out,
            "to": call.target,
            "value": call.value,
            "protocolVersion": plan.protocol_version,
        },
    )
    return call


__all__ = ["EXPLICIT_FUNDS_PROTOCOL_VERSIONS", "generate_swap_call"]
