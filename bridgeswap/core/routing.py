"""Balancer routing: path lookup through the Balancer API and Vault batch swaps."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError

from bridgeswap.config import TokenConfig
from bridgeswap.contracts import load_contract_abi, load_contract_codec
from bridgeswap.core.utils import apply_discount, format_units, get_logger, hex_to_bytes
from bridgeswap.errors import SwapQuoteError

LOGGER = get_logger("bridgeswap.routing")

SWAP_KIND_GIVEN_IN = 0
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

BALANCER_CHAINS = {
    1: "MAINNET",
    10: "OPTIMISM",
    100: "GNOSIS",
    137: "POLYGON",
    8453: "BASE",
    42161: "ARBITRUM",
    43114: "AVALANCHE",
}

SOR_SWAP_PATHS_QUERY = """
query GetSwapPaths(
  $chain: GqlChain!
  $swapAmount: AmountHumanReadable!
  $swapType: GqlSorSwapType!
  $tokenIn: String!
  $tokenOut: String!
  $useProtocolVersion: Int
) {
  sorGetSwapPaths(
    chain: $chain
    swapAmount: $swapAmount
    swapType: $swapType
    tokenIn: $tokenIn
    tokenOut: $tokenOut
    useProtocolVersion: $useProtocolVersion
  ) {
    paths {
      inputAmountRaw
      outputAmountRaw
      pools
      protocolVersion
      tokens {
        address
        decimals
      }
    }
  }
}
"""

@dataclass(frozen=True)
class SwapPath:
    """One route through Balancer pools as returned by the API."""

    pools: Tuple[str, ...]
    tokens: Tuple[str, ...]
    input_amount: int
    output_amount: int
    protocol_version: int

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SwapPath":
        tokens = tuple(Web3.to_checksum_address(token["address"]) for token in data["tokens"])
        pools = tuple(str(pool) for pool in data["pools"])
        if len(tokens) != len(pools) + 1:
            raise SwapQuoteError(f"Malformed swap path: {len(pools)} pools for {len(tokens)} tokens")
        return cls(
            pools=pools,
            tokens=tokens,
            input_amount=int(data["inputAmountRaw"]),
            output_amount=int(data["outputAmountRaw"]),
            protocol_version=int(data["protocolVersion"]),
        )


@dataclass(frozen=True)
class BatchSwapStep:
    """A single Vault ``BatchSwapStep``."""

    pool_id: bytes
    asset_in_index: int
    asset_out_index: int
    amount: int
    user_data: bytes = b""

    def as_tuple(self) -> tuple:
        return (self.pool_id, self.asset_in_index, self.asset_out_index, self.amount, self.user_data)


@dataclass(frozen=True)
class SwapPlan:
    """Exact-input batch swap assembled from one or more swap paths."""

    chain_id: int
    token_in: str
    token_out: str
    paths: Tuple[SwapPath, ...]
    assets: Tuple[str, ...]
    steps: Tuple[BatchSwapStep, ...]
    protocol_version: int

    @classmethod
    def from_paths(
        cls,
        *,
        chain_id: int,
        token_in: str,
        token_out: str,
        paths: Sequence[SwapPath],
    ) -> "SwapPlan":
        if not paths:
            raise SwapQuoteError("No swap paths to build a plan from")
        versions = {path.protocol_version for path in paths}
        if len(versions) != 1:
            raise SwapQuoteError(f"Swap paths mix protocol versions: {sorted(versions)}")

        token_in = Web3.to_checksum_address(token_in)
        token_out = Web3.to_checksum_address(token_out)
        assets: List[str] = []
        steps: List[BatchSwapStep] = []

        def index_of(token: str) -> int:
            if token not in assets:
                assets.append(token)
            return assets.index(token)

        for path in paths:
            if path.tokens[0] != token_in or path.tokens[-1] != token_out:
                raise SwapQuoteError(f"Swap path does not route {token_in} to {token_out}")
            for hop, pool in enumerate(path.pools):
                steps.append(
                    BatchSwapStep(
                        pool_id=hex_to_bytes(pool),
                        asset_in_index=index_of(path.tokens[hop]),
                        asset_out_index=index_of(path.tokens[hop + 1]),
                        # Later hops consume the whole output of the previous one.
                        amount=path.input_amount if hop == 0 else 0,
                    )
                )

        return cls(
            chain_id=chain_id,
            token_in=token_in,
            token_out=token_out,
            paths=tuple(paths),
            assets=tuple(assets),
            steps=tuple(steps),
            protocol_version=versions.pop(),
        )

    @property
    def input_amount(self) -> int:
        return sum(path.input_amount for path in self.paths)

    @property
    def quoted_output(self) -> int:
        return sum(path.output_amount for path in self.paths)

    def index_of(self, token: str) -> int:
        return self.assets.index(Web3.to_checksum_address(token))


@dataclass(frozen=True)
class QueryOutput:
    """Expected output refreshed against live on-chain state."""

    expected_amount_out: int
    asset_deltas: Tuple[int, ...]


@dataclass(frozen=True)
class BuildCallInput:
    """Parameters for encoding the final swap call.

    ``sender`` and ``recipient`` are ``None`` for protocol versions where the
    router always settles with ``msg.sender``.
    """

    slippage_percent: Decimal
    deadline: int
    query_output: QueryOutput
    sender: Optional[str] = None
    recipient: Optional[str] = None
    weth_is_eth: bool = False


@dataclass(frozen=True)
class SwapCall:
    """Encoded destination-chain swap call."""

    target: str
    call_data: bytes
    value: int
    min_amount_out: int
    expected_amount_out: int


class SwapRouter(Protocol):
    """Boundary to the swap-routing engine."""

    def fetch_paths(self, chain_id: int, token_in: TokenConfig, token_out: TokenConfig, amount: int) -> Sequence[SwapPath]:
        ...

    def query(self, plan: SwapPlan, rpc_url: str) -> QueryOutput:
        ...

    def build_call(self, plan: SwapPlan, build_input: BuildCallInput) -> SwapCall:
        ...


def min_amount_out(expected: int, slippage_percent: Decimal) -> int:
    """Return ``expected`` reduced by ``slippage_percent`` and rounded down."""
    multiplier = (Decimal(100) - Decimal(slippage_percent)) / Decimal(100)
    return apply_discount(expected, multiplier)


class BalancerRouter:
    """Balancer V2 router backed by the Balancer API and the Vault contract."""

    def __init__(
        self,
        *,
        api_url: str,
        vault_address: str,
        timeout: int,
        protocol_version: int = 2,
        web3_factory: Callable[[str], Web3] = lambda url: Web3(Web3.HTTPProvider(url)),
    ) -> None:
        self.api_url = api_url
        self.vault_address = Web3.to_checksum_address(vault_address)
        self.timeout = timeout
        self.protocol_version = protocol_version
        self._web3_factory = web3_factory
        self._web3_by_url: Dict[str, Web3] = {}

    def fetch_paths(self, chain_id: int, token_in: TokenConfig, token_out: TokenConfig, amount: int) -> List[SwapPath]:
        """Request the best exact-input swap paths for ``amount`` of ``token_in``."""
        chain = BALANCER_CHAINS.get(chain_id)
        if chain is None:
            raise SwapQuoteError(f"Balancer API does not support chain {chain_id}")

        variables = {
            "chain": chain,
            "swapAmount": format(format_units(amount, token_in.decimals), "f"),
            "swapType": "EXACT_IN",
            "tokenIn": token_in.address,
            "tokenOut": token_out.address,
            "useProtocolVersion": self.protocol_version,
        }
        try:
            response = requests.post(
                self.api_url,
                json={"query": SOR_SWAP_PATHS_QUERY, "variables": variables},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SwapQuoteError(f"Failed to fetch Balancer swap paths from {self.api_url}: {exc}") from exc

        if not isinstance(payload, dict):
            raise SwapQuoteError(f"Unexpected Balancer API response: {payload!r}")
        if payload.get("errors"):
            messages = "; ".join(str(error.get("message", error)) for error in payload["errors"])
            raise SwapQuoteError(f"Balancer API returned errors: {messages}")

        raw_paths = ((payload.get("data") or {}).get("sorGetSwapPaths") or {}).get("paths") or []
        try:
            return [SwapPath.from_api(path) for path in raw_paths]
        except (KeyError, TypeError, ValueError) as exc:
            raise SwapQuoteError(f"Malformed Balancer swap path: {exc!r}") from exc

    def _web3(self, rpc_url: str) -> Web3:
        web3 = self._web3_by_url.get(rpc_url)
        if web3 is None:
            web3 = self._web3_factory(rpc_url)
            self._web3_by_url[rpc_url] = web3
        return web3

    def _ensure_supported(self, plan: SwapPlan) -> None:
        if plan.protocol_version != 2:
            raise SwapQuoteError(f"Balancer protocol version {plan.protocol_version} is not supported by the Vault router")

    def query(self, plan: SwapPlan, rpc_url: str) -> QueryOutput:
        """Simulate the plan with ``queryBatchSwap`` to refresh the expected output."""
        self._ensure_supported(plan)
        vault = self._web3(rpc_url).eth.contract(
            address=self.vault_address,
            abi=load_contract_abi("balancer_vault.json"),
        )
        funds = (ZERO_ADDRESS, False, ZERO_ADDRESS, False)
        try:
            deltas = vault.functions.queryBatchSwap(
                SWAP_KIND_GIVEN_IN,
                [step.as_tuple() for step in plan.steps],
                list(plan.assets),
                funds,
            ).call()
        except ContractLogicError as exc:
            raise SwapQuoteError(f"Balancer queryBatchSwap reverted: {exc}") from exc

        expected = -int(deltas[plan.index_of(plan.token_out)])
        if expected <= 0:
            raise SwapQuoteError(f"Balancer query returned no output for {plan.token_out}")
        return QueryOutput(expected_amount_out=expected, asset_deltas=tuple(int(delta) for delta in deltas))

    def build_call(self, plan: SwapPlan, build_input: BuildCallInput) -> SwapCall:
        """Encode a Vault ``batchSwap`` honouring slippage and deadline."""
        self._ensure_supported(plan)
        if build_input.sender is None or build_input.recipient is None:
            raise SwapQuoteError("Balancer V2 batch swaps require an explicit sender and recipient")

        expected = build_input.query_output.expected_amount_out
        min_out = min_amount_out(expected, build_input.slippage_percent)

        limits = [0] * len(plan.assets)
        limits[plan.index_of(plan.token_in)] = plan.input_amount
        limits[plan.index_of(plan.token_out)] = -min_out

        funds = (
            Web3.to_checksum_address(build_input.sender),
            False,
            Web3.to_checksum_address(build_input.recipient),
            False,
        )
        vault = load_contract_codec("balancer_vault.json")
        call_data = hex_to_bytes(
            vault.encode_abi(
                "batchSwap",
                args=[
                    SWAP_KIND_GIVEN_IN,
                    [step.as_tuple() for step in plan.steps],
                    list(plan.assets),
                    funds,
                    limits,
                    build_input.deadline,
                ],
            )
        )
        return SwapCall(
            target=self.vault_address,
            call_data=call_data,
            value=0,
            min_amount_out=min_out,
            expected_amount_out=expected,
        )


__all__ = [
    "BALANCER_CHAINS",
    "BalancerRouter",
    "BatchSwapStep",
    "BuildCallInput",
    "QueryOutput",
    "SwapCall",
    "SwapPath",
    "SwapPlan",
    "SwapRouter",
    "min_amount_out",
]
