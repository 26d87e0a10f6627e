"""Progress events emitted while a bridge deposit is executed, and their observer."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from bridgeswap.config import ChainConfig
from bridgeswap.core.utils import get_logger, transaction_url
from bridgeswap.errors import ExecutionStepFailed

LOGGER = get_logger("bridgeswap.progress")


class ProgressStep(str, Enum):
    APPROVE = "approve"
    DEPOSIT = "deposit"
    FILL = "fill"


class ProgressStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


STEP_ORDER: Tuple[ProgressStep, ...] = (ProgressStep.APPROVE, ProgressStep.DEPOSIT, ProgressStep.FILL)


@dataclass(frozen=True)
class ProgressEvent:
    """A single notification from the bridge engine."""

    step: ProgressStep
    status: ProgressStatus
    tx_hash: Optional[str] = None
    deposit_id: Optional[int] = None
    action_success: Optional[bool] = None
    error: Optional[BaseException] = None


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class StepRecord:
    """Terminal observation recorded for one step."""

    step: ProgressStep
    status: ProgressStatus
    tx_hash: Optional[str] = None
    tx_url: Optional[str] = None
    deposit_id: Optional[int] = None
    action_success: Optional[bool] = None


@dataclass
class ExecutionReport:
    """Outcome of one bridge-and-swap attempt."""

    steps: Dict[ProgressStep, StepRecord] = field(default_factory=dict)

    def record(self, record: StepRecord) -> None:
        self.steps[record.step] = record

    def get(self, step: ProgressStep) -> Optional[StepRecord]:
        return self.steps.get(step)

    @property
    def deposit_id(self) -> Optional[int]:
        record = self.steps.get(ProgressStep.DEPOSIT)
        return record.deposit_id if record else None

    @property
    def filled(self) -> bool:
        record = self.steps.get(ProgressStep.FILL)
        return record is not None and record.status is ProgressStatus.SUCCESS

    @property
    def swap_succeeded(self) -> Optional[bool]:
        """Whether the destination actions ran; ``None`` until the fill is observed."""
        record = self.steps.get(ProgressStep.FILL)
        return record.action_success if record else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            step.value: {
                "status": record.status.value,
                "txHash": record.tx_hash,
                "txUrl": record.tx_url,
                "depositId": record.deposit_id,
                "actionSuccess": record.action_success,
            }
            for step, record in sorted(self.steps.items(), key=lambda item: STEP_ORDER.index(item[0]))
        }


class ExecutionObserver:
    """Consume progress events, record terminal observations and abort on failures.

    Recording is idempotent: a duplicate notification overwrites the same
    observation, and nothing here triggers on-chain work.
    """

    def __init__(self, *, origin_chain: ChainConfig, destination_chain: ChainConfig) -> None:
        self.origin_chain = origin_chain
        self.destination_chain = destination_chain
        self.report = ExecutionReport()
        self._handlers: Dict[Tuple[ProgressStep, ProgressStatus], Callable[[ProgressEvent], None]] = {
            (ProgressStep.APPROVE, ProgressStatus.PENDING): self._on_pending,
            (ProgressStep.APPROVE, ProgressStatus.SUCCESS): self._on_approve_success,
            (ProgressStep.APPROVE, ProgressStatus.FAILURE): self._on_failure,
            (ProgressStep.DEPOSIT, ProgressStatus.PENDING): self._on_pending,
            (ProgressStep.DEPOSIT, ProgressStatus.SUCCESS): self._on_deposit_success,
            (ProgressStep.DEPOSIT, ProgressStatus.FAILURE): self._on_failure,
            (ProgressStep.FILL, ProgressStatus.PENDING): self._on_pending,
            (ProgressStep.FILL, ProgressStatus.SUCCESS): self._on_fill_success,
            (ProgressStep.FILL, ProgressStatus.FAILURE): self._on_failure,
        }
        missing = set(itertools.product(ProgressStep, ProgressStatus)) - set(self._handlers)
        if missing:
            raise RuntimeError(f"Unhandled progress events: {sorted(missing)}")

    def __call__(self, event: ProgressEvent) -> None:
        self._warn_if_out_of_order(event)
        self._handlers[(event.step, event.status)](event)

    def _warn_if_out_of_order(self, event: ProgressEvent) -> None:
        if event.status is not ProgressStatus.SUCCESS:
            return
        for earlier in STEP_ORDER[: STEP_ORDER.index(event.step)]:
            if earlier not in self.report.steps:
                LOGGER.warning("Received %s success before %s success", event.step.value, earlier.value)

    def _url(self, chain: ChainConfig, tx_hash: Optional[str]) -> Optional[str]:
        return transaction_url(chain, tx_hash) if tx_hash else None

    def _on_pending(self, event: ProgressEvent) -> None:
        LOGGER.info("%s pending%s", event.step.value, f" tx={event.tx_hash}" if event.tx_hash else "")

    def _on_approve_success(self, event: ProgressEvent) -> None:
        url = self._url(self.origin_chain, event.tx_hash)
        self.report.record(
            StepRecord(step=event.step, status=event.status, tx_hash=event.tx_hash, tx_url=url)
        )
        if url:
            LOGGER.info("Approve TX: %s", url)
        else:
            LOGGER.info("Approve not required, existing allowance covers the deposit")

    def _on_deposit_success(self, event: ProgressEvent) -> None:
        url = self._url(self.origin_chain, event.tx_hash)
        self.report.record(
            StepRecord(
                step=event.step,
                status=event.status,
                tx_hash=event.tx_hash,
                tx_url=url,
                deposit_id=event.deposit_id,
            )
        )
        LOGGER.info("Deposit TX: %s", url)
        LOGGER.info("Deposit ID: %s", event.deposit_id)

    def _on_fill_success(self, event: ProgressEvent) -> None:
        url = self._url(self.destination_chain, event.tx_hash)
        self.report.record(
            StepRecord(
                step=event.step,
                status=event.status,
                tx_hash=event.tx_hash,
                tx_url=url,
                action_success=event.action_success,
            )
        )
        LOGGER.info("Fill TX: %s", url)
        if event.action_success:
            LOGGER.info("Swap completed successfully")
        else:
            LOGGER.warning("Swap failed, funds were sent to the fallback recipient")

    def _on_failure(self, event: ProgressEvent) -> None:
        self.report.record(StepRecord(step=event.step, status=event.status, tx_hash=event.tx_hash))
        reason = str(event.error) if event.error else "bridge reported failure"
        LOGGER.error("%s step failed: %s", event.step.value, reason)
        raise ExecutionStepFailed(event.step.value, reason) from event.error


__all__ = [
    "ExecutionObserver",
    "ExecutionReport",
    "ProgressCallback",
    "ProgressEvent",
    "ProgressStatus",
    "ProgressStep",
    "STEP_ORDER",
    "StepRecord",
]
