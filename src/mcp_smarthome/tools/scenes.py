"""
Device control button tools.

The cloud calls them scenes; the tools present them as device control
buttons because that is how the household uses them.

- list_device_control_buttons: markdown listing of all buttons
- push_device_control_button: run exactly one button
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

NAMESPACE = "scene"

LIST_BUTTONS_DESCRIPTION = """Get all device control buttons under the user's home.
Returns:
  Control buttons information in Markdown format"""

PUSH_BUTTON_DESCRIPTION = """Push device control buttons under the user's home, or control buttons in a specified room.
Returns:
  Device control button push result message."""


class PushButtonArguments(BaseModel):
    """Arguments of push_device_control_button."""

    button: int = Field(
        description="the control button to push, exactly one button should be provided"
    )


async def handle_list_buttons(
    _ctx: ToolContext,
    _args: NoArguments,
    *,
    service: SmartHomeService,
) -> str:
    """Return the scene listing with "scene" renamed to "device button"."""
    result = await service.get_scenes([])
    result = result.replace("scene", "device button")
    logger.info("GetScenes result", extra={"result": result})
    return result


async def handle_push_button(
    _ctx: ToolContext,
    args: PushButtonArguments,
    *,
    service: SmartHomeService,
) -> str:
    """Run the requested button."""
    logger.info("Running scene", extra={"button": args.button})
    result = await service.run_scenes([args.button])
    logger.info("RunScene result", extra={"result": result})
    return result


def scene_tools(service: SmartHomeService, notes: str = "") -> list[ToolDefinition]:
    """
    Return the button tool definitions bound to ``service``.

    Args:
        service: Smart-home service.
        notes: Site notes (room layout, button meaning) appended to the
            listing tool description.
    """
    description = LIST_BUTTONS_DESCRIPTION
    if notes.strip():
        description = f"{description}\n\nNOTES:\n{notes.strip()}\n"

    return [
        ToolDefinition(
            name="list_device_control_buttons",
            description=description,
            handler=functools.partial(handle_list_buttons, service=service),
            namespace=NAMESPACE,
        ),
        ToolDefinition(
            name="push_device_control_button",
            description=PUSH_BUTTON_DESCRIPTION,
            handler=functools.partial(handle_push_button, service=service),
            arguments=PushButtonArguments,
            namespace=NAMESPACE,
        ),
    ]
