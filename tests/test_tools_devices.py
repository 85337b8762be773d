"""
Tests for the device and automation tools.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from mcp_smarthome.context import ToolContext
from mcp_smarthome.errors import InvalidArgumentError
from mcp_smarthome.routing import ToolRegistry
from mcp_smarthome.tools.automation import automation_tools
from mcp_smarthome.tools.devices import device_tools


@pytest.fixture
def service() -> MagicMock:
    service = MagicMock()
    service.device_query = AsyncMock(return_value="devices")
    service.device_status_query = AsyncMock(return_value="status")
    service.device_control = AsyncMock(return_value="Device control success")
    service.device_log_query = AsyncMock(return_value="logs")
    service.automation_config = AsyncMock(return_value="Automation configuration successful")
    return service


@pytest.fixture
def registry(service: MagicMock) -> ToolRegistry:
    registry = ToolRegistry()
    for tool in device_tools(service) + automation_tools(service):
        registry.register(tool)
    return registry


@pytest.fixture
def ctx() -> ToolContext:
    return ToolContext(tool_name="device")


class TestDeviceTools:
    """Tests for the device tools."""

    @pytest.mark.asyncio
    async def test_device_query_defaults(
        self, registry: ToolRegistry, service: MagicMock, ctx: ToolContext
    ) -> None:
        assert await registry.invoke("device_query", ctx, {}) == ["devices"]
        service.device_query.assert_awaited_once_with([], [])

    @pytest.mark.asyncio
    async def test_device_status_query(
        self, registry: ToolRegistry, service: MagicMock, ctx: ToolContext
    ) -> None:
        texts = await registry.invoke(
            "device_status_query", ctx, {"positions": ["Bedroom"], "device_types": ["light"]}
        )

        assert texts == ["status"]
        service.device_status_query.assert_awaited_once_with(["Bedroom"], ["light"])

    @pytest.mark.asyncio
    async def test_device_control(
        self, registry: ToolRegistry, service: MagicMock, ctx: ToolContext
    ) -> None:
        texts = await registry.invoke(
            "device_control", ctx, {"devices": [1], "slots": {"value": "off"}}
        )

        assert texts == ["Device control success"]
        service.device_control.assert_awaited_once_with([1], {"value": "off"})

    @pytest.mark.asyncio
    async def test_device_control_requires_arguments(
        self, registry: ToolRegistry, service: MagicMock, ctx: ToolContext
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            await registry.invoke("device_control", ctx, {"devices": [1]})
        service.device_control.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_device_log_query(
        self, registry: ToolRegistry, service: MagicMock, ctx: ToolContext
    ) -> None:
        texts = await registry.invoke(
            "device_log_query",
            ctx,
            {"devices": [2], "start_datetime": "2025-01-01 00:00:00"},
        )

        assert texts == ["logs"]
        service.device_log_query.assert_awaited_once_with(
            [2], "2025-01-01 00:00:00", "", []
        )


class TestAutomationTools:
    """Tests for automation_config."""

    @pytest.mark.asyncio
    async def test_automation_config(
        self, registry: ToolRegistry, service: MagicMock, ctx: ToolContext
    ) -> None:
        texts = await registry.invoke(
            "automation_config",
            ctx,
            {
                "scheduled_time": "07:00",
                "devices": [4],
                "control_params": {"value": "on"},
                "task_name": "Morning",
            },
        )

        assert texts == ["Automation configuration successful"]
        service.automation_config.assert_awaited_once_with(
            "07:00", [4], {"value": "on"}, "Morning", False
        )

    def test_schema_lists_required_fields(self, service: MagicMock) -> None:
        (tool,) = automation_tools(service)

        assert set(tool.input_schema()["required"]) == {
            "scheduled_time",
            "devices",
            "control_params",
            "task_name",
        }
