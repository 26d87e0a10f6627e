"""End-to-end orchestration with stub routing, bridge and balance reader."""

import pytest
from eth_abi import decode

from bridgeswap.core.actions import INSTRUCTIONS_TYPE
from bridgeswap.core.orchestrator import BridgeSwapOrchestrator
from bridgeswap.core.progress import ProgressEvent, ProgressStatus, ProgressStep
from bridgeswap.core.tokens import decode_approve
from bridgeswap.errors import ExecutionStepFailed, InsufficientBalance, SwapTargetChanged
from tests.fakes import OTHER_ROUTER, USER, VAULT, FakeBridge, FakeRouter

FEE = 50_000
DEPOSIT_HASH = "0x" + "d2" * 32
FILL_HASH = "0x" + "f3" * 32


def _script(action_success=True):
    return [
        ProgressEvent(step=ProgressStep.APPROVE, status=ProgressStatus.PENDING),
        ProgressEvent(step=ProgressStep.APPROVE, status=ProgressStatus.SUCCESS),
        "resolve",
        ProgressEvent(step=ProgressStep.DEPOSIT, status=ProgressStatus.SUCCESS, tx_hash=DEPOSIT_HASH, deposit_id=77),
        ProgressEvent(step=ProgressStep.FILL, status=ProgressStatus.PENDING),
        ProgressEvent(step=ProgressStep.FILL, status=ProgressStatus.SUCCESS, tx_hash=FILL_HASH, action_success=action_success),
    ]


def _orchestrator(route, settings, signer, *, router=None, bridge=None, balance=None):
    balance = route.input_amount if balance is None else balance
    return BridgeSwapOrchestrator(
        route=route,
        settings=settings,
        router=router or FakeRouter(),
        bridge=bridge or FakeBridge(_script(), fee=FEE),
        signer=signer,
        balance_reader=lambda token, holder: balance,
    )


def test_insufficient_balance_stops_before_any_quote(route, settings, fake_signer):
    router = FakeRouter()
    bridge = FakeBridge(_script())
    orchestrator = _orchestrator(route, settings, fake_signer, router=router, bridge=bridge, balance=route.input_amount - 1)

    with pytest.raises(InsufficientBalance):
        orchestrator.run()

    assert router.calls == []
    assert bridge.quote_requests == []
    assert bridge.executed is False


def test_successful_run_records_every_step(route, settings, fake_signer):
    router = FakeRouter()
    bridge = FakeBridge(_script(), fee=FEE)
    result = _orchestrator(route, settings, fake_signer, router=router, bridge=bridge).run()

    report = result.report
    assert report.deposit_id == 77
    assert report.filled is True
    assert report.swap_succeeded is True
    assert bridge.quote_requests[0]["recipient"] == route.multicall_handler
    assert bridge.quote_requests[0]["input_amount"] == route.input_amount
    # One estimate before quoting and one update for the delivered amount.
    assert [amount for name, amount in router.calls if name == "fetch_paths"] == [
        route.input_amount,
        route.input_amount - FEE,
    ]


def test_delivered_amount_flows_into_submitted_actions(route, settings, fake_signer):
    bridge = FakeBridge(_script(), fee=FEE)
    result = _orchestrator(route, settings, fake_signer, bridge=bridge).run()

    delivered = route.input_amount - FEE
    (calls, fallback), = decode([INSTRUCTIONS_TYPE], bridge.resolved[0])
    assert decode_approve(calls[0][1]) == (VAULT, delivered)
    assert calls[1][1] == result.resolved_message.actions[1].call_data
    assert calls[1][1] != result.message.actions[1].call_data
    assert fallback.lower() == USER.lower()


def test_swap_failure_is_reported_separately_from_fill(route, settings, fake_signer):
    bridge = FakeBridge(_script(action_success=False), fee=FEE)
    report = _orchestrator(route, settings, fake_signer, bridge=bridge).run().report

    assert report.filled is True
    assert report.swap_succeeded is False


def test_target_drift_aborts_before_deposit(route, settings, fake_signer):
    router = FakeRouter(targets=[VAULT, OTHER_ROUTER])
    bridge = FakeBridge(_script(), fee=FEE)
    orchestrator = _orchestrator(route, settings, fake_signer, router=router, bridge=bridge)

    with pytest.raises(SwapTargetChanged):
        orchestrator.run()
    assert bridge.resolved == []


def test_step_failure_aborts_run(route, settings, fake_signer):
    script = [
        ProgressEvent(step=ProgressStep.APPROVE, status=ProgressStatus.SUCCESS),
        "resolve",
        ProgressEvent(step=ProgressStep.DEPOSIT, status=ProgressStatus.FAILURE, error=RuntimeError("reverted")),
        ProgressEvent(step=ProgressStep.FILL, status=ProgressStatus.SUCCESS, action_success=True),
    ]
    orchestrator = _orchestrator(route, settings, fake_signer, bridge=FakeBridge(script))

    with pytest.raises(ExecutionStepFailed, match="deposit"):
        orchestrator.run()


def test_resolving_twice_does_not_reexecute_updates(route, settings, fake_signer):
    router = FakeRouter()
    bridge = FakeBridge(["resolve", "resolve"] + _script()[3:], fee=FEE)
    _orchestrator(route, settings, fake_signer, router=router, bridge=bridge).run()

    assert router.count("fetch_paths") == 2
    assert bridge.resolved[0] == bridge.resolved[1]


def test_dry_run_stops_after_quote(route, settings, fake_signer):
    bridge = FakeBridge(_script(), fee=FEE)
    result = _orchestrator(route, settings, fake_signer, bridge=bridge).run(dry_run=True)

    assert bridge.executed is False
    assert result.report is None
    assert result.quote.output_amount == route.input_amount - FEE
