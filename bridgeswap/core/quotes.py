"""Bridge quotes and the quote request step."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Protocol

from web3 import Web3

from bridgeswap.config import RouteConfig
from bridgeswap.core.actions import CrossChainMessage
from bridgeswap.core.progress import ProgressCallback
from bridgeswap.core.transactions import Signer
from bridgeswap.core.utils import format_units, get_logger, log_json
from bridgeswap.errors import BridgeQuoteError

LOGGER = get_logger("bridgeswap.quotes")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
# Relayers get six hours to fill when the API does not suggest a deadline.
DEFAULT_FILL_DEADLINE_BUFFER = 6 * 60 * 60

MessageResolver = Callable[[int], bytes]


@dataclass(frozen=True)
class Quote:
    """Priced deposit plan returned by the bridge."""

    origin_chain_id: int
    destination_chain_id: int
    input_token: str
    output_token: str
    input_amount: int
    output_amount: int
    recipient: str
    message: bytes
    spoke_pool: str
    exclusive_relayer: str
    quote_timestamp: int
    fill_deadline: int
    exclusivity_deadline: int
    fees: Dict[str, int]
    raw: Mapping[str, Any] = field(repr=False)

    @classmethod
    def from_suggested_fees(
        cls,
        payload: Mapping[str, Any],
        *,
        route: RouteConfig,
        input_amount: int,
        recipient: str,
        message: bytes,
    ) -> "Quote":
        if payload.get("isAmountTooLow"):
            raise BridgeQuoteError(f"Input amount {input_amount} is below the bridge minimum")
        try:
            fees = {
                name: int(payload[key]["total"])
                for name, key in (
                    ("total_relay_fee", "totalRelayFee"),
                    ("relayer_capital_fee", "relayerCapitalFee"),
                    ("relayer_gas_fee", "relayerGasFee"),
                    ("lp_fee", "lpFee"),
                )
                if key in payload
            }
            if "outputAmount" in payload:
                output_amount = int(payload["outputAmount"])
            else:
                output_amount = input_amount - fees["total_relay_fee"]
            quote_timestamp = int(payload["timestamp"])
            spoke_pool = Web3.to_checksum_address(payload["spokePoolAddress"])
        except (KeyError, TypeError, ValueError) as exc:
            raise BridgeQuoteError(f"Malformed bridge quote: {exc}") from exc

        if output_amount <= 0:
            raise BridgeQuoteError(f"Bridge fees exceed the input amount {input_amount}")

        return cls(
            origin_chain_id=route.origin_chain.chain_id,
            destination_chain_id=route.destination_chain.chain_id,
            input_token=route.deposit_token.address,
            output_token=route.swap_token_in.address,
            input_amount=input_amount,
            output_amount=output_amount,
            recipient=Web3.to_checksum_address(recipient),
            message=message,
            spoke_pool=spoke_pool,
            exclusive_relayer=Web3.to_checksum_address(payload.get("exclusiveRelayer") or ZERO_ADDRESS),
            quote_timestamp=quote_timestamp,
            fill_deadline=int(payload.get("fillDeadline") or quote_timestamp + DEFAULT_FILL_DEADLINE_BUFFER),
            exclusivity_deadline=int(payload.get("exclusivityDeadline") or 0),
            fees=fees,
            raw=dict(payload),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originChainId": self.origin_chain_id,
            "destinationChainId": self.destination_chain_id,
            "inputToken": self.input_token,
            "outputToken": self.output_token,
            "inputAmount": self.input_amount,
            "outputAmount": self.output_amount,
            "recipient": self.recipient,
            "spokePool": self.spoke_pool,
            "exclusiveRelayer": self.exclusive_relayer,
            "quoteTimestamp": self.quote_timestamp,
            "fillDeadline": self.fill_deadline,
            "exclusivityDeadline": self.exclusivity_deadline,
            "fees": self.fees,
            "message": self.message,
        }


class BridgeEngine(Protocol):
    """Boundary to the bridge/delivery engine."""

    def get_quote(
        self,
        *,
        route: RouteConfig,
        message: CrossChainMessage,
        input_amount: int,
        recipient: str,
    ) -> Quote:
        ...

    def execute_quote(
        self,
        *,
        signer: Signer,
        quote: Quote,
        resolve_message: MessageResolver,
        on_progress: ProgressCallback,
    ) -> None:
        ...


def request_quote(*, route: RouteConfig, message: CrossChainMessage, bridge: BridgeEngine) -> Quote:
    """Price the deposit of the route's input amount with ``message`` attached."""
    quote = bridge.get_quote(
        route=route,
        message=message,
        input_amount=route.input_amount,
        recipient=route.multicall_handler,
    )
    LOGGER.info(
        "Quote fetched: deposit %s %s, deliver %s %s",
        format_units(quote.input_amount, route.deposit_token.decimals),
        route.deposit_token.symbol,
        format_units(quote.output_amount, route.swap_token_in.decimals),
        route.swap_token_in.symbol,
    )
    log_json(LOGGER, "Quote parameters", quote.to_dict())
    return quote


__all__ = ["BridgeEngine", "MessageResolver", "Quote", "request_quote"]
