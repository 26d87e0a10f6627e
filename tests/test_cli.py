"""Command-line entrypoint."""

import json

import pytest

from bridgeswap.cli import main as cli
from bridgeswap.core.orchestrator import BridgeSwapOrchestrator
from tests.fakes import CONFIG_DATA, FakeBridge, FakeRouter


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG_DATA), encoding="utf-8")
    return path


def test_requires_a_mode():
    with pytest.raises(SystemExit):
        cli.main([])


def test_missing_private_key_exits_non_zero(monkeypatch, config_file):
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.delenv("PRIVATE_KEY", raising=False)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--dry-run", "--config", str(config_file)])
    assert excinfo.value.code == 1


def test_dry_run_prints_json_summary(monkeypatch, capsys, config_file, fake_signer):
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.setenv("PRIVATE_KEY", "0x" + "11" * 32)

    def fake_create(route, settings):
        return BridgeSwapOrchestrator(
            route=route,
            settings=settings,
            router=FakeRouter(),
            bridge=FakeBridge(),
            signer=fake_signer,
            balance_reader=lambda token, holder: route.input_amount,
        )

    monkeypatch.setattr(cli, "create_orchestrator", fake_create)
    cli.main(["--dry-run", "--config", str(config_file), "--json"])

    summary = json.loads(capsys.readouterr().out)
    assert [action["kind"] for action in summary["message"]["actions"]] == ["approve", "swap"]
    assert summary["quote"]["outputAmount"] == 10_000_000 - 50_000
    assert "steps" not in summary
