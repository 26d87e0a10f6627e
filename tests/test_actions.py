"""Action list construction and amount updates."""

import pytest
from eth_abi import decode

from bridgeswap.core.actions import (
    INSTRUCTIONS_TYPE,
    ActionKind,
    ApproveAction,
    SwapAction,
    build_cross_chain_message,
)
from bridgeswap.core.routing import SwapCall
from bridgeswap.core.tokens import decode_approve
from bridgeswap.errors import SwapTargetChanged
from tests.fakes import OTHER_ROUTER, USER, VAULT


def _swap_call(amount, target=VAULT):
    return SwapCall(
        target=target,
        call_data=b"swap" + amount.to_bytes(32, "big"),
        value=0,
        min_amount_out=amount * 99,
        expected_amount_out=amount * 100,
    )


@pytest.fixture
def regenerate_calls():
    return []


@pytest.fixture
def message(route, regenerate_calls):
    def regenerate(amount):
        regenerate_calls.append(amount)
        return _swap_call(amount)

    return build_cross_chain_message(
        route=route,
        initial_swap=_swap_call(route.input_amount),
        regenerate_swap=regenerate,
        user_address=USER,
    )


def test_message_is_approve_then_swap_with_user_fallback(message, route):
    assert message.kinds == (ActionKind.APPROVE, ActionKind.SWAP)
    assert isinstance(message.actions[0], ApproveAction)
    assert isinstance(message.actions[1], SwapAction)
    assert message.fallback_recipient == USER
    assert message.actions[0].target == route.swap_token_in.address
    assert message.actions[1].target == VAULT


def test_approve_decodes_to_swap_target_and_initial_amount(message, route):
    assert decode_approve(message.actions[0].call_data) == (VAULT, route.input_amount)


def test_approve_update_keeps_spender_and_uses_new_amount(message):
    approve = message.actions[0]
    updated = approve.apply(approve.update(9_950_000))

    assert decode_approve(updated.call_data) == (VAULT, 9_950_000)
    assert updated.target == approve.target
    assert updated.kind is ActionKind.APPROVE


def test_swap_update_regenerates_for_delivered_amount(message, regenerate_calls):
    swap = message.actions[1]
    patch = swap.update(9_950_000)

    assert regenerate_calls == [9_950_000]
    assert patch.call_data == _swap_call(9_950_000).call_data
    assert patch.min_amount_out == 9_950_000 * 99
    assert swap.apply(patch).target == VAULT


def test_swap_update_fails_when_target_drifts(route):
    swap = SwapAction.create(
        amount=route.input_amount,
        swap=_swap_call(route.input_amount),
        regenerate=lambda amount: _swap_call(amount, target=OTHER_ROUTER),
    )
    with pytest.raises(SwapTargetChanged) as excinfo:
        swap.update(9_950_000)
    assert excinfo.value.expected == VAULT
    assert excinfo.value.actual == OTHER_ROUTER


def test_resolve_updates_every_action_once(message, regenerate_calls):
    resolved = message.resolve(9_950_000)

    assert regenerate_calls == [9_950_000]
    assert decode_approve(resolved.actions[0].call_data) == (VAULT, 9_950_000)
    assert resolved.actions[1].amount == 9_950_000
    assert resolved.kinds == message.kinds
    assert resolved.fallback_recipient == message.fallback_recipient
    # The initial estimate is left untouched.
    assert message.actions[1].amount != 9_950_000


def test_encode_matches_multicall_handler_instructions(message):
    (calls, fallback), = decode([INSTRUCTIONS_TYPE], message.encode())

    assert fallback.lower() == USER.lower()
    assert len(calls) == 2
    assert calls[0][0].lower() == message.actions[0].target.lower()
    assert calls[0][1] == message.actions[0].call_data
    assert calls[1][0].lower() == VAULT.lower()
    assert calls[1][2] == 0
