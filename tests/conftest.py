"""Shared fixtures for the bridgeswap test suite."""

from __future__ import annotations

import copy
from types import SimpleNamespace
from typing import Any, Dict

import pytest

from bridgeswap.config import RuntimeSettings, build_config
from tests.fakes import CONFIG_DATA, USER


@pytest.fixture
def config_data() -> Dict[str, Any]:
    return copy.deepcopy(CONFIG_DATA)


@pytest.fixture
def route(config_data):
    return build_config(config_data)


@pytest.fixture
def settings() -> RuntimeSettings:
    return RuntimeSettings(
        private_key="0x" + "11" * 32,
        origin_rpc_url="https://origin.example",
        destination_rpc_url="https://destination.example",
    )


@pytest.fixture
def fake_signer():
    return SimpleNamespace(address=USER, web3=None)
