"""
Home tools.

- list_homes: names of all homes of the user
- switch_home: make another home the current one
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from mcp_smarthome.logging import get_logger
from mcp_smarthome.routing import NoArguments, ToolDefinition

if TYPE_CHECKING:
    from mcp_smarthome.cloud.services import SmartHomeService
    from mcp_smarthome.context import ToolContext

logger = get_logger(__name__)

NAMESPACE = "home"

LIST_HOMES_DESCRIPTION = """Get all homes under the user (useful when the user wants to query/switch homes).
Returns:
Comma-separated list of home names; returns an empty string or specific message if no data.
"""

SWITCH_HOME_DESCRIPTION = """Switch the user's current home.
Returns:
Switch result message.
"""


class SwitchHomeArguments(BaseModel):
    """Arguments of switch_home."""

    name: str = Field(description="Name of the home to switch to")


async def handle_list_homes(
    _ctx: ToolContext,
    _args: NoArguments,
    *,
    service: SmartHomeService,
) -> list[str]:
    """Return one text item per home, or the failure message."""
    homes, message = await service.get_homes()
    if message:
        logger.error("GetHomes failed", extra={"err": message})
        return [message]

    logger.info("Home list retrieved", extra={"homes": homes})
    if not homes:
        return ["No homes found."]
    return list(homes)


async def handle_switch_home(
    _ctx: ToolContext,
    args: SwitchHomeArguments,
    *,
    service: SmartHomeService,
) -> str:
    """Switch home and describe the outcome."""
    logger.info("Switching home", extra={"home_name": args.name})
    success, message = await service.switch_home(args.name)
    if not success:
        logger.error("Home switch failed", extra={"err": message})
        return message or "Home switch failed due to an unknown error."

    logger.info("Switched to home", extra={"home_name": args.name})
    return f'Successfully switched to home "{args.name}"'


def home_tools(service: SmartHomeService) -> list[ToolDefinition]:
    """Return the home tool definitions bound to ``service``."""
    return [
        ToolDefinition(
            name="list_homes",
            description=LIST_HOMES_DESCRIPTION,
            handler=functools.partial(handle_list_homes, service=service),
            namespace=NAMESPACE,
        ),
        ToolDefinition(
            name="switch_home",
            description=SWITCH_HOME_DESCRIPTION,
            handler=functools.partial(handle_switch_home, service=service),
            arguments=SwitchHomeArguments,
            namespace=NAMESPACE,
        ),
    ]
