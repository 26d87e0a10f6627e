"""Observer behaviour for the approve/deposit/fill state machine."""

import itertools

import pytest

from bridgeswap.core.progress import (
    ExecutionObserver,
    ProgressEvent,
    ProgressStatus,
    ProgressStep,
)
from bridgeswap.errors import ExecutionStepFailed

APPROVE_HASH = "0x" + "a1" * 32
DEPOSIT_HASH = "0x" + "d2" * 32
FILL_HASH = "0x" + "f3" * 32


@pytest.fixture
def observer(route):
    return ExecutionObserver(origin_chain=route.origin_chain, destination_chain=route.destination_chain)


def _success_sequence(action_success=True):
    return [
        ProgressEvent(step=ProgressStep.APPROVE, status=ProgressStatus.PENDING),
        ProgressEvent(step=ProgressStep.APPROVE, status=ProgressStatus.SUCCESS, tx_hash=APPROVE_HASH),
        ProgressEvent(step=ProgressStep.DEPOSIT, status=ProgressStatus.PENDING, tx_hash=DEPOSIT_HASH),
        ProgressEvent(step=ProgressStep.DEPOSIT, status=ProgressStatus.SUCCESS, tx_hash=DEPOSIT_HASH, deposit_id=1234),
        ProgressEvent(step=ProgressStep.FILL, status=ProgressStatus.PENDING),
        ProgressEvent(
            step=ProgressStep.FILL,
            status=ProgressStatus.SUCCESS,
            tx_hash=FILL_HASH,
            action_success=action_success,
        ),
    ]


def test_records_one_success_per_step(observer):
    for event in _success_sequence():
        observer(event)

    report = observer.report
    assert set(report.steps) == set(ProgressStep)
    assert all(record.status is ProgressStatus.SUCCESS for record in report.steps.values())
    assert report.deposit_id == 1234
    assert report.get(ProgressStep.DEPOSIT).deposit_id == 1234
    assert report.get(ProgressStep.APPROVE).deposit_id is None
    assert report.get(ProgressStep.APPROVE).tx_url == f"https://basescan.org/tx/{APPROVE_HASH}"
    assert report.get(ProgressStep.FILL).tx_url == f"https://arbiscan.io/tx/{FILL_HASH}"
    assert report.filled is True
    assert report.swap_succeeded is True


def test_fill_success_with_failed_swap_is_distinct(observer):
    for event in _success_sequence(action_success=False):
        observer(event)

    assert observer.report.filled is True
    assert observer.report.swap_succeeded is False


def test_duplicate_notifications_are_idempotent(observer):
    events = _success_sequence()
    for event in events + events[3:4]:
        observer(event)

    assert len(observer.report.steps) == 3
    assert observer.report.deposit_id == 1234


def test_out_of_order_success_is_still_recorded(observer):
    observer(ProgressEvent(step=ProgressStep.FILL, status=ProgressStatus.SUCCESS, tx_hash=FILL_HASH, action_success=True))
    assert observer.report.filled is True


@pytest.mark.parametrize("step", list(ProgressStep))
def test_failure_aborts(observer, step):
    cause = RuntimeError("reverted")
    with pytest.raises(ExecutionStepFailed) as excinfo:
        observer(ProgressEvent(step=step, status=ProgressStatus.FAILURE, error=cause))

    assert excinfo.value.step == step.value
    assert excinfo.value.__cause__ is cause
    assert observer.report.get(step).status is ProgressStatus.FAILURE


def test_every_step_status_pair_is_handled(observer):
    for step, status in itertools.product(ProgressStep, ProgressStatus):
        event = ProgressEvent(step=step, status=status, deposit_id=1, action_success=True)
        if status is ProgressStatus.FAILURE:
            with pytest.raises(ExecutionStepFailed):
                observer(event)
        else:
            observer(event)


def test_approve_without_transaction_is_recorded(observer):
    observer(ProgressEvent(step=ProgressStep.APPROVE, status=ProgressStatus.SUCCESS))
    record = observer.report.get(ProgressStep.APPROVE)
    assert record.status is ProgressStatus.SUCCESS
    assert record.tx_hash is None


def test_report_serialises_in_step_order(observer):
    for event in reversed(_success_sequence()):
        observer(event)
    assert list(observer.report.to_dict()) == ["approve", "deposit", "fill"]
