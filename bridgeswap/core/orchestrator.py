"""End-to-end orchestration of one bridge-and-swap attempt."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Callable, Optional

from web3 import Web3

from bridgeswap.config import RouteConfig, RuntimeSettings
from bridgeswap.core.actions import CrossChainMessage, build_cross_chain_message
from bridgeswap.core.bridge import AcrossBridge
from bridgeswap.core.progress import ExecutionObserver, ExecutionReport
from bridgeswap.core.quotes import BridgeEngine, Quote, request_quote
from bridgeswap.core.routing import BalancerRouter, SwapCall, SwapRouter
from bridgeswap.core.swap import generate_swap_call
from bridgeswap.core.tokens import balance_of, check_balance
from bridgeswap.core.transactions import Signer
from bridgeswap.core.utils import ensure_web3_connected, get_logger, log_json

LOGGER = get_logger("bridgeswap.orchestrator")

BalanceReader = Callable[[str, str], int]


@dataclass
class RunResult:
    """Artifacts of a run; ``report`` is ``None`` for dry runs."""

    message: CrossChainMessage
    quote: Quote
    report: Optional[ExecutionReport] = None
    resolved_message: Optional[CrossChainMessage] = None


class BridgeSwapOrchestrator:
    """Drive preflight, quoting and execution for the configured route."""

    def __init__(
        self,
        *,
        route: RouteConfig,
        settings: RuntimeSettings,
        router: SwapRouter,
        bridge: BridgeEngine,
        signer: Signer,
        balance_reader: Optional[BalanceReader] = None,
    ) -> None:
        self.route = route
        self.settings = settings
        self.router = router
        self.bridge = bridge
        self.signer = signer
        self._balance_reader = balance_reader or functools.partial(balance_of, signer.web3)
        self._resolved: Optional[CrossChainMessage] = None
        self._message: Optional[CrossChainMessage] = None

    @property
    def user_address(self) -> str:
        return self.signer.address

    def preflight(self) -> int:
        """Check that the signer holds the full input amount on the origin chain."""
        token = self.route.deposit_token
        available = self._balance_reader(token.address, self.user_address)
        check_balance(token=token, required=self.route.input_amount, available=available)
        return available

    def generate_swap(self, amount: int, *, initial: bool) -> SwapCall:
        """Build the destination swap call for ``amount`` of the bridged token."""
        return generate_swap_call(
            amount=amount,
            token_in=self.route.swap_token_in,
            token_out=self.route.swap_token_out,
            sender=self.route.multicall_handler,
            recipient=self.user_address,
            chain=self.route.destination_chain,
            rpc_url=self.settings.destination_rpc_url,
            router=self.router,
            slippage_percent=self.route.defaults.slippage_percent,
            deadline_seconds=self.route.defaults.deadline_seconds,
            initial=initial,
        )

    def build_message(self) -> CrossChainMessage:
        """Estimate the swap for the input amount and wrap it in the action list."""
        initial_swap = self.generate_swap(self.route.input_amount, initial=True)
        return build_cross_chain_message(
            route=self.route,
            initial_swap=initial_swap,
            regenerate_swap=functools.partial(self.generate_swap, initial=False),
            user_address=self.user_address,
        )

    def resolve_message(self, amount: int) -> bytes:
        """Recompute every action for the delivered ``amount`` and encode the result.

        Actions are updated once; later calls return the already resolved
        message without touching the routing engine again.
        """
        if self._message is None:
            raise RuntimeError("resolve_message called before a message was built")
        if self._resolved is None:
            LOGGER.info("Updating destination actions for delivered amount %s", amount)
            self._resolved = self._message.resolve(amount)
            log_json(LOGGER, "Updated cross-chain message", self._resolved.to_dict())
        elif self._resolved.actions[0].amount != amount:
            LOGGER.warning(
                "Ignoring update for amount %s, actions already resolved for %s",
                amount,
                self._resolved.actions[0].amount,
            )
        return self._resolved.encode()

    def execute(self, quote: Quote, message: CrossChainMessage) -> ExecutionReport:
        """Submit the quote and observe approve, deposit and fill."""
        self._message = message
        self._resolved = None
        observer = ExecutionObserver(
            origin_chain=self.route.origin_chain,
            destination_chain=self.route.destination_chain,
        )
        LOGGER.info("Executing transactions")
        self.bridge.execute_quote(
            signer=self.signer,
            quote=quote,
            resolve_message=self.resolve_message,
            on_progress=observer,
        )
        LOGGER.info("Bridge transaction completed")
        return observer.report

    def run(self, *, dry_run: bool = False) -> RunResult:
        """Run one attempt; ``dry_run`` stops after the quote."""
        LOGGER.info(
            "Bridging %s from %s to %s as %s",
            self.route.deposit_token.symbol,
            self.route.origin_chain.name,
            self.route.destination_chain.name,
            self.user_address,
        )
        self.preflight()
        message = self.build_message()
        quote = request_quote(route=self.route, message=message, bridge=self.bridge)
        if dry_run:
            LOGGER.info("Dry run: skipping execution")
            return RunResult(message=message, quote=quote)

        report = self.execute(quote, message)
        return RunResult(message=message, quote=quote, report=report, resolved_message=self._resolved)


def create_orchestrator(
    route: RouteConfig,
    settings: RuntimeSettings,
    *,
    web3_factory: Callable[[str], Web3] = lambda url: Web3(Web3.HTTPProvider(url)),
) -> BridgeSwapOrchestrator:
    """Wire the Balancer router, Across bridge and local signer for ``route``."""
    web3 = web3_factory(settings.origin_rpc_url)
    ensure_web3_connected(web3, expected_chain_id=route.origin_chain.chain_id)
    signer = Signer(web3=web3, private_key=settings.private_key, chain_id=route.origin_chain.chain_id)
    LOGGER.info("Connected to chain %s as %s", route.origin_chain.chain_id, signer.address)

    router = BalancerRouter(
        api_url=route.api_urls.balancer,
        vault_address=route.balancer_vault,
        timeout=route.defaults.api_timeout,
        protocol_version=route.defaults.protocol_version,
        web3_factory=web3_factory,
    )
    bridge = AcrossBridge.from_route(
        route,
        destination_rpc_url=settings.destination_rpc_url,
        web3_factory=web3_factory,
    )
    return BridgeSwapOrchestrator(route=route, settings=settings, router=router, bridge=bridge, signer=signer)


__all__ = ["BalanceReader", "BridgeSwapOrchestrator", "RunResult", "create_orchestrator"]
