"""Across bridge client: fee quotes, deposits and fill tracking."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Mapping, Optional

import requests
from web3 import Web3
from web3.logs import DISCARD

from bridgeswap.config import RouteConfig
from bridgeswap.contracts import load_contract_abi, load_contract_codec
from bridgeswap.core.actions import CrossChainMessage
from bridgeswap.core.progress import ProgressCallback, ProgressEvent, ProgressStatus, ProgressStep
from bridgeswap.core.quotes import MessageResolver, Quote
from bridgeswap.core.tokens import allowance_of, encode_approve
from bridgeswap.core.transactions import Signer
from bridgeswap.core.utils import get_logger, hex_to_bytes, to_hex
from bridgeswap.errors import BridgeQuoteError, TransactionFailed

LOGGER = get_logger("bridgeswap.bridge")

# Upgraded spoke pools emit FundsDeposited, older deployments V3FundsDeposited.
DEPOSIT_EVENTS = ("FundsDeposited", "V3FundsDeposited")
CALLS_FAILED_TOPIC = bytes(Web3.keccak(text="CallsFailed((address,bytes,uint256)[],address)"))
# Appended to deposit call data so the bridge can attribute the deposit.
INTEGRATOR_DELIMITER = bytes.fromhex("1dc0de")

FILLED = "filled"
TERMINAL_FAILURES = frozenset({"expired", "refunded"})


def tag_integrator(call_data: bytes, integrator_id: str) -> bytes:
    """Append the integrator delimiter and 2-byte id to ``call_data``."""
    return call_data + INTEGRATOR_DELIMITER + hex_to_bytes(integrator_id)


def encode_deposit(depositor: str, quote: Quote, message: bytes) -> bytes:
    """Return ``depositV3`` call data for ``quote`` carrying ``message``."""
    spoke_pool = load_contract_codec("spoke_pool.json")
    return hex_to_bytes(
        spoke_pool.encode_abi(
            "depositV3",
            args=[
                Web3.to_checksum_address(depositor),
                quote.recipient,
                quote.input_token,
                quote.output_token,
                quote.input_amount,
                quote.output_amount,
                quote.destination_chain_id,
                quote.exclusive_relayer,
                quote.quote_timestamp,
                quote.fill_deadline,
                quote.exclusivity_deadline,
                message,
            ],
        )
    )


def calls_failed(receipt: Mapping[str, Any], handler: str) -> bool:
    """Return True when the multicall handler reported failed calls in ``receipt``."""
    handler = handler.lower()
    for log in receipt.get("logs", []):
        topics = log.get("topics") or []
        if str(log.get("address", "")).lower() == handler and topics and bytes(topics[0]) == CALLS_FAILED_TOPIC:
            return True
    return False


class AcrossBridge:
    """Bridge engine backed by the Across API and SpokePool contracts."""

    def __init__(
        self,
        *,
        api_url: str,
        timeout: int,
        integrator_id: str,
        destination_rpc_url: str,
        fill_timeout: int,
        fill_poll_interval: int,
        web3_factory: Callable[[str], Web3] = lambda url: Web3(Web3.HTTPProvider(url)),
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.integrator_id = integrator_id
        self.destination_rpc_url = destination_rpc_url
        self.fill_timeout = fill_timeout
        self.fill_poll_interval = fill_poll_interval
        self._web3_factory = web3_factory
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_route(cls, route: RouteConfig, *, destination_rpc_url: str, **kwargs: Any) -> "AcrossBridge":
        return cls(
            api_url=route.api_urls.across,
            timeout=route.defaults.api_timeout,
            integrator_id=route.integrator_id,
            destination_rpc_url=destination_rpc_url,
            fill_timeout=route.defaults.fill_timeout,
            fill_poll_interval=route.defaults.fill_poll_interval,
            **kwargs,
        )

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_url}/{path}"
        response = requests.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def get_quote(
        self,
        *,
        route: RouteConfig,
        message: CrossChainMessage,
        input_amount: int,
        recipient: str,
    ) -> Quote:
        """Fetch suggested fees for a deposit that carries ``message``."""
        encoded = message.encode()
        params = {
            "inputToken": route.deposit_token.address,
            "outputToken": route.swap_token_in.address,
            "originChainId": route.origin_chain.chain_id,
            "destinationChainId": route.destination_chain.chain_id,
            "amount": str(input_amount),
            "recipient": Web3.to_checksum_address(recipient),
            "message": to_hex(encoded),
        }
        try:
            payload = self._get("suggested-fees", params)
        except requests.RequestException as exc:
            raise BridgeQuoteError(f"Failed to fetch Across quote from {self.api_url}: {exc}") from exc

        return Quote.from_suggested_fees(
            payload,
            route=route,
            input_amount=input_amount,
            recipient=recipient,
            message=encoded,
        )

    def execute_quote(
        self,
        *,
        signer: Signer,
        quote: Quote,
        resolve_message: MessageResolver,
        on_progress: ProgressCallback,
    ) -> None:
        """Approve, deposit and wait for the fill, reporting each step to ``on_progress``."""
        self._approve(signer, quote, on_progress)
        # The delivered amount is fixed by the quote; destination calls are
        # finalised for it before the deposit that carries them is signed.
        message = resolve_message(quote.output_amount)
        deposit_id = self._deposit(signer, quote, message, on_progress)
        self._await_fill(quote, deposit_id, on_progress)

    def _approve(self, signer: Signer, quote: Quote, on_progress: ProgressCallback) -> None:
        step = ProgressStep.APPROVE
        on_progress(ProgressEvent(step=step, status=ProgressStatus.PENDING))
        tx_hash: Optional[str] = None
        try:
            allowance = allowance_of(signer.web3, quote.input_token, signer.address, quote.spoke_pool)
            if allowance < quote.input_amount:
                tx = signer.build_transaction(
                    to=quote.input_token,
                    data=encode_approve(quote.spoke_pool, quote.input_amount),
                )
                tx_hash = signer.send(tx)
                on_progress(ProgressEvent(step=step, status=ProgressStatus.PENDING, tx_hash=tx_hash))
                signer.wait(tx_hash)
        except Exception as exc:
            on_progress(ProgressEvent(step=step, status=ProgressStatus.FAILURE, tx_hash=tx_hash, error=exc))
            raise
        on_progress(ProgressEvent(step=step, status=ProgressStatus.SUCCESS, tx_hash=tx_hash))

    def _deposit(self, signer: Signer, quote: Quote, message: bytes, on_progress: ProgressCallback) -> int:
        step = ProgressStep.DEPOSIT
        on_progress(ProgressEvent(step=step, status=ProgressStatus.PENDING))
        tx_hash: Optional[str] = None
        try:
            data = tag_integrator(encode_deposit(signer.address, quote, message), self.integrator_id)
            tx = signer.build_transaction(to=quote.spoke_pool, data=data)
            tx_hash = signer.send(tx)
            on_progress(ProgressEvent(step=step, status=ProgressStatus.PENDING, tx_hash=tx_hash))
            receipt = signer.wait(tx_hash)
            deposit_id = self._deposit_id(signer.web3, quote.spoke_pool, receipt, tx_hash)
        except Exception as exc:
            on_progress(ProgressEvent(step=step, status=ProgressStatus.FAILURE, tx_hash=tx_hash, error=exc))
            raise
        on_progress(ProgressEvent(step=step, status=ProgressStatus.SUCCESS, tx_hash=tx_hash, deposit_id=deposit_id))
        return deposit_id

    @staticmethod
    def _deposit_id(web3: Web3, spoke_pool: str, receipt: Any, tx_hash: str) -> int:
        contract = web3.eth.contract(address=spoke_pool, abi=load_contract_abi("spoke_pool.json"))
        for name in DEPOSIT_EVENTS:
            events = getattr(contract.events, name)().process_receipt(receipt, errors=DISCARD)
            if events:
                return int(events[0]["args"]["depositId"])
        raise TransactionFailed(
            f"Deposit {tx_hash} emitted none of {', '.join(DEPOSIT_EVENTS)}",
            tx_hash=tx_hash,
        )

    def _deposit_status(self, origin_chain_id: int, deposit_id: int) -> Dict[str, Any]:
        try:
            return self._get("deposit/status", {"originChainId": origin_chain_id, "depositId": deposit_id})
        except requests.RequestException as exc:
            # The indexer lags behind the chain; a missing deposit is not yet a failure.
            LOGGER.warning("Deposit status lookup failed for %s: %s", deposit_id, exc)
            return {"status": "pending"}

    def _await_fill(self, quote: Quote, deposit_id: int, on_progress: ProgressCallback) -> None:
        step = ProgressStep.FILL
        deadline = self._clock() + self.fill_timeout
        while True:
            status = self._deposit_status(quote.origin_chain_id, deposit_id)
            state = status.get("status")
            if state == FILLED:
                break
            if state in TERMINAL_FAILURES:
                error = TransactionFailed(f"Deposit {deposit_id} was {state} instead of filled")
                on_progress(ProgressEvent(step=step, status=ProgressStatus.FAILURE, error=error))
                raise error
            if self._clock() >= deadline:
                error = TransactionFailed(f"Deposit {deposit_id} not filled within {self.fill_timeout}s")
                on_progress(ProgressEvent(step=step, status=ProgressStatus.FAILURE, error=error))
                raise error
            on_progress(ProgressEvent(step=step, status=ProgressStatus.PENDING))
            self._sleep(self.fill_poll_interval)

        fill_hash = status.get("fillTx")
        try:
            if not fill_hash:
                raise TransactionFailed(f"Deposit {deposit_id} is filled but has no fill transaction")
            web3 = self._web3_factory(self.destination_rpc_url)
            receipt = web3.eth.wait_for_transaction_receipt(fill_hash, timeout=self.timeout)
        except Exception as exc:
            on_progress(ProgressEvent(step=step, status=ProgressStatus.FAILURE, tx_hash=fill_hash, error=exc))
            raise
        on_progress(
            ProgressEvent(
                step=step,
                status=ProgressStatus.SUCCESS,
                tx_hash=to_hex(fill_hash),
                action_success=not calls_failed(receipt, quote.recipient),
            )
        )


__all__ = [
    "AcrossBridge",
    "CALLS_FAILED_TOPIC",
    "calls_failed",
    "encode_deposit",
    "tag_integrator",
]
