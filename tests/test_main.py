"""Tests for packetpilot.main."""

import asyncio
import os

import httpx
import pytest

from packetpilot import main as main_module
from packetpilot.config import CONFIG_ENV_VAR, VERSION, AgentSettings
from packetpilot.core.errors import ConfigurationError
from packetpilot.core.usage_store import UsageRepository
from packetpilot.main import PacketPilotDaemon, main
from tests.conftest import FakeCounterSource


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("packetpilot.config.CONFIG_SEARCH_PATHS", ())
    for name in list(os.environ):
        if name.startswith("PACKETPILOT_"):
            monkeypatch.delenv(name)


@pytest.fixture
def settings(usage_file):
    return AgentSettings(
        server={"host": "collector.test", "device_id": "dev-1"},
        logging={"file": ""},
        monitor={"interface": "eth0", "usage_file": str(usage_file), "update_interval": 0.01},
        reporter={"report_interval": 3600},
        control={"enabled": False},
    )


class TestPacketPilotDaemon:
    """Test component wiring and the run lifecycle."""

    @pytest.mark.asyncio
    async def test_run_until_stopped(self, settings, counters, usage_file):
        daemon = PacketPilotDaemon(settings, counter_source=counters)
        stop_event = asyncio.Event()

        task = asyncio.create_task(daemon.run(stop_event))
        await asyncio.sleep(0.05)
        counters.set("eth0", 1500, 2500)
        await asyncio.sleep(0.1)
        stop_event.set()
        await asyncio.wait_for(task, timeout=5)

        usage = daemon.get_daily_usage()
        assert usage.interfaces["eth0"].total_rx == 500
        assert UsageRepository(usage_file).load() == usage

        daemon.reset_stats()
        assert daemon.get_daily_usage().interfaces["eth0"].total_rx == 0

    @pytest.mark.asyncio
    async def test_run_fails_on_missing_interface(self, settings):
        daemon = PacketPilotDaemon(settings, counter_source=FakeCounterSource())
        with pytest.raises(ConfigurationError):
            await daemon.run(asyncio.Event())

    def test_control_api_is_optional(self, settings, counters):
        assert PacketPilotDaemon(settings, counter_source=counters).control_api is None

        enabled = settings.model_copy(update={"control": settings.control.model_copy(update={"enabled": True})})
        assert PacketPilotDaemon(enabled, counter_source=counters).control_api is not None


class TestCLI:
    """Test the command-line entry point."""

    def test_version(self, capsys):
        assert main(["version"]) == 0
        assert f"v{VERSION}" in capsys.readouterr().out

    def test_invalid_config(self, monkeypatch, capsys):
        monkeypatch.setenv("PACKETPILOT_SERVER__PORT", "0")
        assert main(["run"]) == 1
        assert "failed to load config" in capsys.readouterr().err

    def test_missing_config_file(self, monkeypatch, tmp_path, capsys):
        # Restored on teardown; main() exports the -c path
        monkeypatch.setenv(CONFIG_ENV_VAR, "")
        assert main(["-c", str(tmp_path / "missing.yaml"), "run"]) == 1
        assert "not found" in capsys.readouterr().err

    def test_usage(self, monkeypatch, capsys):
        calls = []

        def fake_call(settings, method, path):
            calls.append((method, path))
            return {
                "date": "2024-03-15",
                "interfaces": {
                    "eth0": {"interface": "eth0", "total_rx": 1048576, "total_tx": 2097152,
                             "last_rx": 0, "last_tx": 0},
                },
            }

        monkeypatch.setattr(main_module, "call_control_api", fake_call)

        assert main(["usage"]) == 0
        out = capsys.readouterr().out
        assert calls == [("GET", "/usage")]
        assert "Daily usage for 2024-03-15" in out
        assert "eth0" in out
        assert "1.00 MB" in out

    def test_reset(self, monkeypatch, capsys):
        calls = []

        def fake_call(settings, method, path):
            calls.append((method, path))
            return {"status": "ok", "message": "Daily usage statistics reset"}

        monkeypatch.setattr(main_module, "call_control_api", fake_call)

        assert main(["reset"]) == 0
        assert calls == [("POST", "/reset-stats")]
        assert "reset" in capsys.readouterr().out

    def test_daemon_unreachable(self, monkeypatch, capsys):
        def fake_call(settings, method, path):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(main_module, "call_control_api", fake_call)

        assert main(["usage"]) == 1
        assert "unreachable" in capsys.readouterr().err
