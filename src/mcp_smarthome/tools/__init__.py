"""
MCP tools of the smart-home gateway.

Tools are grouped in namespaces that can be switched off in configuration:
- home: list_homes, switch_home
- scene: list_device_control_buttons, push_device_control_button
- device: device_query, device_status_query, device_control, device_log_query
- automation: automation_config
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp_smarthome.config import ToolsConfig
from mcp_smarthome.logging import get_logger
from mcp_smarthome.routing import ToolDefinition, ToolRegistry
from mcp_smarthome.tools.automation import automation_tools
from mcp_smarthome.tools.devices import device_tools
from mcp_smarthome.tools.home import home_tools
from mcp_smarthome.tools.scenes import scene_tools

if TYPE_CHECKING:
    from mcp_smarthome.cloud.services import SmartHomeService

logger = get_logger(__name__)


def build_tools(
    service: SmartHomeService, config: ToolsConfig | None = None
) -> list[ToolDefinition]:
    """
    Return the definitions of every enabled tool.

    Args:
        service: Smart-home service the tools call.
        config: Tool configuration; all namespaces are enabled when None.
    """
    config = config if config is not None else ToolsConfig()

    definitions: list[ToolDefinition] = []
    if config.home.enabled:
        definitions.extend(home_tools(service))
    if config.scene.enabled:
        definitions.extend(scene_tools(service, notes=config.button_notes))
    if config.device.enabled:
        definitions.extend(device_tools(service))
    if config.automation.enabled:
        definitions.extend(automation_tools(service))
    return definitions


def register_tools(
    registry: ToolRegistry,
    service: SmartHomeService,
    config: ToolsConfig | None = None,
) -> ToolRegistry:
    """Register every enabled tool in ``registry`` and return it."""
    for definition in build_tools(service, config):
        registry.register(definition)

    logger.info(
        "Tools registered",
        extra={
            "tools": [tool.name for tool in registry.list_tools()],
            "namespaces": registry.list_namespaces(),
        },
    )
    return registry


__all__ = [
    "automation_tools",
    "build_tools",
    "device_tools",
    "home_tools",
    "register_tools",
    "scene_tools",
]
