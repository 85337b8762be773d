"""
Automation tools.

- automation_config: schedule a device control task
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

NAMESPACE = "automation"

AUTOMATION_CONFIG_DESCRIPTION = """Configure a scheduled device control task.
Returns:
  Automation configuration result message."""


class AutomationConfigArguments(BaseModel):
    """Arguments of automation_config."""

    scheduled_time: str = Field(
        description="When to run, e.g. a cron expression or 2025-01-01 08:00:00"
    )
    devices: list[int] = Field(description="Endpoint ids of the devices to control")
    control_params: dict[str, Any] = Field(description="Control parameters to apply")
    task_name: str = Field(description="Name of the scheduled task")
    execution_once: bool = Field(
        default=False,
        description="Run only once instead of repeating",
    )


async def handle_automation_config(
    _ctx: ToolContext,
    args: AutomationConfigArguments,
    *,
    service: SmartHomeService,
) -> str:
    logger.info(
        "Configuring automation",
        extra={"task_name": args.task_name, "scheduled_time": args.scheduled_time},
    )
    return await service.automation_config(
        args.scheduled_time,
        args.devices,
        args.control_params,
        args.task_name,
        args.execution_once,
    )


def automation_tools(service: SmartHomeService) -> list[ToolDefinition]:
    """Return the automation tool definitions bound to ``service``."""
    return [
        ToolDefinition(
            name="automation_config",
            description=AUTOMATION_CONFIG_DESCRIPTION,
            handler=functools.partial(handle_automation_config, service=service),
            arguments=AutomationConfigArguments,
            namespace=NAMESPACE,
        ),
    ]
