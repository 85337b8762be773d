"""
Tests for the command-line entry point.
"""

from __future__ import annotations

import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mcp_smarthome.__main__ import build_server, main, switch_default_home
from mcp_smarthome.cloud import DeviceIdentity
from mcp_smarthome.config import AppConfig, ToolNamespaceConfig, ToolsConfig


@pytest.fixture
def identity() -> DeviceIdentity:
    return DeviceIdentity.from_device_id("mcp0.abc", secret="s")


class TestSwitchDefaultHome:
    """Tests for switch_default_home."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        service = MagicMock()
        service.switch_home = AsyncMock(return_value=(True, ""))

        assert await switch_default_home(service, "我的家") is True
        service.switch_home.assert_awaited_once_with("我的家")

    @pytest.mark.asyncio
    async def test_failure_is_not_fatal(self) -> None:
        service = MagicMock()
        service.switch_home = AsyncMock(return_value=(False, "Home not found"))

        assert await switch_default_home(service, "Nowhere") is False


class TestBuildServer:
    """Tests for build_server."""

    @pytest.mark.asyncio
    async def test_registers_enabled_tools(self, identity: DeviceIdentity) -> None:
        config = AppConfig(
            server={"name": "custom"},
            tools=ToolsConfig(automation=ToolNamespaceConfig(enabled=False)),
        )

        with patch.object(DeviceIdentity, "bootstrap", AsyncMock(return_value=identity)):
            server = await build_server(config)

        assert server.name == "custom"
        assert len(server.registry) == 8
        assert "automation_config" not in server.registry

    @pytest.mark.asyncio
    async def test_switches_default_home(self, identity: DeviceIdentity) -> None:
        config = AppConfig(tools={"default_home": "Office"})

        with (
            patch.object(DeviceIdentity, "bootstrap", AsyncMock(return_value=identity)),
            patch(
                "mcp_smarthome.__main__.switch_default_home",
                AsyncMock(return_value=True),
            ) as switch,
        ):
            await build_server(config)

        assert switch.await_args.args[1] == "Office"


class TestMain:
    """Tests for main."""

    def test_bind_failure_exits_with_one(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("port", raising=False)

        with (
            patch("mcp_smarthome.__main__.setup_logging"),
            patch(
                "mcp_smarthome.__main__.run",
                AsyncMock(side_effect=OSError("address already in use")),
            ),
        ):
            assert main(["--transport", "http", "--port", "8081"]) == 1

    def test_clean_exit(self) -> None:
        with (
            patch("mcp_smarthome.__main__.setup_logging") as setup,
            patch("mcp_smarthome.__main__.run", AsyncMock(return_value=None)),
        ):
            assert main(["--transport", "stdio"]) == 0

        # stdio keeps stdout for protocol frames
        assert setup.call_args.kwargs["stream"] is sys.stderr
