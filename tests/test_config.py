"""Route configuration and runtime settings."""

from decimal import Decimal

import pytest
from web3 import Web3

from bridgeswap.config import ConfigError, build_config, load_config, load_settings, parse_units


def test_build_config_scales_input_amount_and_checksums(route):
    assert route.input_amount == 10_000_000
    assert route.multicall_handler == Web3.to_checksum_address("0x924a9f036260ddd5808007e1aa95f08ed08aa569")
    assert route.defaults.slippage_percent == Decimal("1")
    assert route.origin_chain.chain_id == 8453
    assert route.destination_chain.name == "arbitrum"
    assert route.swap_token_out.decimals == 18


def test_load_config_reads_json_file(tmp_path, config_data):
    import json

    path = tmp_path / "config.json"
    path.write_text(json.dumps(config_data), encoding="utf-8")
    assert load_config(path).input_amount == 10_000_000


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.json")


def test_missing_section_is_reported(config_data):
    del config_data["contracts"]
    with pytest.raises(ConfigError, match="contracts"):
        build_config(config_data)


@pytest.mark.parametrize("slippage", [0, 100, -1])
def test_slippage_bounds(config_data, slippage):
    config_data["defaults"]["slippage_percent"] = slippage
    with pytest.raises(ConfigError, match="slippage"):
        build_config(config_data)


def test_input_amount_must_be_positive(config_data):
    config_data["defaults"]["input_amount"] = "0"
    with pytest.raises(ConfigError, match="input_amount"):
        build_config(config_data)


def test_invalid_address_is_rejected(config_data):
    config_data["contracts"]["balancer_vault"] = "0x1234"
    with pytest.raises(ConfigError, match="balancer_vault"):
        build_config(config_data)


def test_swap_tokens_must_differ(config_data):
    config_data["tokens"]["swap_out"] = dict(config_data["tokens"]["swap_in"])
    with pytest.raises(ConfigError, match="differ"):
        build_config(config_data)


def test_parse_units_rejects_excess_precision():
    assert parse_units("1.5", 6) == 1_500_000
    with pytest.raises(ConfigError):
        parse_units("0.0000001", 6)


def test_load_settings_requires_private_key(route):
    with pytest.raises(ConfigError, match="PRIVATE_KEY"):
        load_settings(route, {})


def test_load_settings_prefers_environment_overrides(route):
    settings = load_settings(
        route,
        {"PRIVATE_KEY": " 0xabc ", "RPC_URL": "https://custom-origin", "DESTINATION_RPC_URL": ""},
    )
    assert settings.private_key == "0xabc"
    assert settings.origin_rpc_url == "https://custom-origin"
    assert settings.destination_rpc_url == route.destination_chain.rpc_url
    assert "0xabc" not in repr(settings)


def test_load_settings_without_any_rpc(config_data):
    del config_data["chains"]["origin"]["rpc_url"]
    route = build_config(config_data)
    with pytest.raises(ConfigError, match="RPC_URL"):
        load_settings(route, {"PRIVATE_KEY": "0xabc"})
