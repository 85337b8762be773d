"""
Device tools.

- device_query: devices by position and type
- device_status_query: current status of devices by position and type
- device_control: send one control command to devices
- device_log_query: historical log entries of devices
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from mcp_smarthome.logging import get_logger
from mcp_smarthome.routing import ToolDefinition

if TYPE_CHECKING:
    from mcp_smarthome.cloud.services import SmartHomeService
    from mcp_smarthome.context import ToolContext

logger = get_logger(__name__)

NAMESPACE = "device"


class DeviceFilterArguments(BaseModel):
    """Arguments of device_query and device_status_query."""

    positions: list[str] = Field(
        default_factory=list,
        description="Rooms or positions to filter by; empty means all",
    )
    device_types: list[str] = Field(
        default_factory=list,
        description="Device types to filter by; empty means all",
    )


class DeviceControlArguments(BaseModel):
    """Arguments of device_control."""

    devices: list[int] = Field(description="Endpoint ids of the devices to control")
    slots: dict[str, Any] = Field(
        description="Control parameters, e.g. {\"attribute\": \"on_off\", \"value\": \"on\"}"
    )


class DeviceLogArguments(BaseModel):
    """Arguments of device_log_query."""

    devices: list[int] = Field(description="Endpoint ids of the devices")
    start_datetime: str = Field(
        default="",
        description="Start of the time span, e.g. 2025-01-01 08:00:00",
    )
    end_datetime: str = Field(
        default="",
        description="End of the time span, e.g. 2025-01-01 20:00:00",
    )
    attributes: list[str] = Field(
        default_factory=list,
        description="Attributes to include; empty means all",
    )


async def handle_device_query(
    _ctx: ToolContext,
    args: DeviceFilterArguments,
    *,
    service: SmartHomeService,
) -> str:
    return await service.device_query(args.positions, args.device_types)


async def handle_device_status_query(
    _ctx: ToolContext,
    args: DeviceFilterArguments,
    *,
    service: SmartHomeService,
) -> str:
    return await service.device_status_query(args.positions, args.device_types)


async def handle_device_control(
    _ctx: ToolContext,
    args: DeviceControlArguments,
    *,
    service: SmartHomeService,
) -> str:
    logger.info(
        "Controlling devices",
        extra={"devices": args.devices, "slots": args.slots},
    )
    return await service.device_control(args.devices, args.slots)


async def handle_device_log_query(
    _ctx: ToolContext,
    args: DeviceLogArguments,
    *,
    service: SmartHomeService,
) -> str:
    return await service.device_log_query(
        args.devices,
        args.start_datetime,
        args.end_datetime,
        args.attributes,
    )


def device_tools(service: SmartHomeService) -> list[ToolDefinition]:
    """Return the device tool definitions bound to ``service``."""
    return [
        ToolDefinition(
            name="device_query",
            description=(
                "Query devices in the user's home, optionally filtered by "
                "positions and device types.\nReturns:\n  Device list information."
            ),
            handler=functools.partial(handle_device_query, service=service),
            arguments=DeviceFilterArguments,
            namespace=NAMESPACE,
        ),
        ToolDefinition(
            name="device_status_query",
            description=(
                "Query the current status of devices, optionally filtered by "
                "positions and device types.\nReturns:\n  Device status information."
            ),
            handler=functools.partial(handle_device_status_query, service=service),
            arguments=DeviceFilterArguments,
            namespace=NAMESPACE,
        ),
        ToolDefinition(
            name="device_control",
            description=(
                "Send a control command to one or more devices.\nReturns:\n"
                "  Device control result message."
            ),
            handler=functools.partial(handle_device_control, service=service),
            arguments=DeviceControlArguments,
            namespace=NAMESPACE,
        ),
        ToolDefinition(
            name="device_log_query",
            description=(
                "Query historical log records of devices within an optional "
                "time span.\nReturns:\n  Device log information."
            ),
            handler=functools.partial(handle_device_log_query, service=service),
            arguments=DeviceLogArguments,
            namespace=NAMESPACE,
        ),
    ]
