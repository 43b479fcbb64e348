import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import main
from lightmining.orchestrator import MiningOrchestrator


@pytest.fixture
def inputs(tmp_path):
    wallets = tmp_path / "wallets.json"
    wallets.write_text(
        json.dumps([{"address": "0xA", "privateKey": "k1"}]), encoding="utf-8",
    )
    proxies = tmp_path / "proxy.txt"
    proxies.write_text("http://1.2.3.4:8080\n", encoding="utf-8")
    return str(wallets), str(proxies)


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("main.setup_logging") as mock_setup:
        yield mock_setup


def test_parser_flags():
    args = main.build_parser().parse_args(
        ["--once", "--concurrency", "3", "--log-level", "DEBUG"],
    )
    assert args.once is True
    assert args.concurrency == 3
    assert args.log_level == "DEBUG"


@pytest.mark.asyncio
async def test_missing_wallet_file_exits_with_error(tmp_path, inputs):
    _, proxies = inputs
    code = await main.main([
        "--wallets", str(tmp_path / "absent.json"), "--proxies", proxies,
    ])
    assert code == 1


@pytest.mark.asyncio
async def test_only_malformed_proxies_exits_with_error(tmp_path, inputs):
    wallets, _ = inputs
    bad = tmp_path / "bad_proxy.txt"
    bad.write_text("not a proxy\n", encoding="utf-8")

    code = await main.main(["--wallets", wallets, "--proxies", str(bad)])

    assert code == 1


def test_build_orchestrator_wires_settings(inputs):
    wallets, proxies = inputs
    settings = MagicMock(
        wallets_file=wallets,
        proxies_file=proxies,
        api_base_url="https://api.test/",
        request_attempts=2,
        operation_attempts=4,
        retry_delay_seconds=1.5,
        request_timeout_seconds=None,
        invitation_code="ABCDE",
        mining_cooldown_seconds=86400,
        rpc_url="https://rpc.test/",
        contract_address="0xB3eFE5105b835E5Dd9D206445Dbd66DF24b912AB",
        activation_receipt_timeout_seconds=60,
        cycle_interval_seconds=600,
        max_concurrent_wallets=2,
    )

    with patch("main.ContractActivator") as MockActivator:
        orch = main.build_orchestrator(settings)

    assert isinstance(orch, MiningOrchestrator)
    assert [w.address for w in orch.wallets] == ["0xA"]
    assert orch.auth.invitation_code == "ABCDE"
    assert orch.auth.attempts == 4
    assert orch.auth.requester.max_attempts == 2
    assert orch.ticker.interval == 600
    assert orch.max_concurrent == 2
    assert orch.activator is MockActivator.return_value


@pytest.mark.asyncio
async def test_once_runs_single_cycle(inputs, no_logging_setup):
    wallets, proxies = inputs
    orchestrator = MagicMock()
    orchestrator.run_forever = AsyncMock()

    with patch("main.build_orchestrator", return_value=orchestrator) as mock_build:
        code = await main.main([
            "--once", "--wallets", wallets, "--proxies", proxies,
            "--log-level", "DEBUG",
        ])

    assert code == 0
    orchestrator.run_forever.assert_awaited_once_with(max_cycles=1)
    settings = mock_build.call_args[0][0]
    assert settings.wallets_file == wallets
    no_logging_setup.assert_called_once_with("DEBUG")
