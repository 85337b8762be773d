"""
Smart-home operations on top of the signed RPC client.

Each method validates its required inputs locally (no network call on
failure), issues exactly one RPC call and reduces the CallResult to what the
tools need: plain text, or a (value, message) pair where a non-empty message
means failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp_smarthome.logging import get_logger

if TYPE_CHECKING:
    from mcp_smarthome.cloud.client import SignedRPCClient

logger = get_logger(__name__)

# Remote function names
FN_GET_HOMES = "GetHomes"
FN_SWITCH_HOME = "SwitchHome"
FN_GET_SCENES = "GetScenes"
FN_RUN_SCENES = "RunScenes"
FN_DEVICE_QUERY = "DeviceQuery"
FN_DEVICE_STATUS_QUERY = "DeviceStatusQuery"
FN_DEVICE_CONTROL = "DeviceControl"
FN_DEVICE_LOG_QUERY = "DeviceLogQuery"
FN_AUTOMATION_CONFIG = "AutomationConfig"


class SmartHomeService:
    """
    Smart-home operations exposed by the MCP tools.

    Example:
        >>> service = SmartHomeService(client)
        >>> ok, message = await service.switch_home("My Home")
    """

    def __init__(self, client: SignedRPCClient) -> None:
        self._client = client

    # -------------------------------------------------------------------------
    # Homes
    # -------------------------------------------------------------------------

    async def get_homes(self) -> tuple[list[str] | None, str]:
        """Return the names of the user's homes, or a failure message."""
        homes, message = await self._client.call(FN_GET_HOMES, None, list[str])
        if message:
            return None, message
        if homes is None:
            return None, "No homes available"
        return homes, ""

    async def switch_home(self, home_name: str) -> tuple[bool, str]:
        """
        Switch the user's current home.

        Returns:
            (True, "") on success, (False, message) on failure.
        """
        home_name = home_name.strip()
        if not home_name:
            return False, "Home name cannot be empty"

        _, message = await self._client.call(
            FN_SWITCH_HOME, {"home_name": home_name}, Any
        )
        if message:
            return False, message
        return True, ""

    # -------------------------------------------------------------------------
    # Scenes (device control buttons)
    # -------------------------------------------------------------------------

    async def get_scenes(self, positions: list[str] | None = None) -> str:
        """Return the scenes of the given positions (all when empty)."""
        data = {"positions": list(positions or [])}
        result, message = await self._client.call(FN_GET_SCENES, data, str)
        if message:
            return message
        if result is None:
            return "No scenes available"
        return result

    async def run_scenes(self, scenes: list[int]) -> str:
        """Run the given scenes and return the outcome text."""
        if not scenes:
            return "Scene list cannot be empty"

        _, message = await self._client.call(FN_RUN_SCENES, {"scenes": list(scenes)}, Any)
        if message:
            return message
        return "Scene executed successfully"

    # -------------------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------------------

    async def device_query(
        self,
        positions: list[str] | None = None,
        device_types: list[str] | None = None,
    ) -> str:
        """Return the device list for positions and device types."""
        data = {
            "positions": list(positions or []),
            "device_types": list(device_types or []),
        }
        result, message = await self._client.call(FN_DEVICE_QUERY, data, str)
        if message:
            return message
        if result is None:
            return "No device data available"
        return result

    async def device_status_query(
        self,
        positions: list[str] | None = None,
        device_types: list[str] | None = None,
    ) -> str:
        """Return device status information for positions and device types."""
        data = {
            "positions": list(positions or []),
            "device_types": list(device_types or []),
        }
        result, message = await self._client.call(FN_DEVICE_STATUS_QUERY, data, str)
        if message:
            return message
        if result is None:
            return "No device status data available"
        return result

    async def device_control(self, devices: list[int], slots: dict[str, Any]) -> str:
        """Send one control command (``slots``) to the given devices."""
        if not devices:
            return "Device list cannot be empty"
        if not slots:
            return "Control parameters cannot be empty"

        data = {"devices": list(devices), "slots": [dict(slots)]}
        _, message = await self._client.call(FN_DEVICE_CONTROL, data, Any)
        if message:
            return message
        return "Device control success"

    async def device_log_query(
        self,
        devices: list[int],
        start_datetime: str = "",
        end_datetime: str = "",
        attributes: list[str] | None = None,
    ) -> str:
        """
        Return historical log entries of the given devices.

        The time span holds the trimmed start and end values that are set,
        in that order; ``attributes`` is only sent when non-empty.
        """
        logger.info(
            "Querying device logs",
            extra={
                "devices": devices,
                "start": start_datetime,
                "end": end_datetime,
                "attributes": attributes,
            },
        )
        if not devices:
            return "Device list cannot be empty"

        time_span = [
            value.strip()
            for value in (start_datetime, end_datetime)
            if value and value.strip()
        ]
        data: dict[str, Any] = {"devices": list(devices), "time_span": time_span}
        if attributes:
            data["attributes"] = list(attributes)

        result, message = await self._client.call(FN_DEVICE_LOG_QUERY, data, str)
        if message:
            return message
        if result is None:
            return "No device log data available"
        return result

    # -------------------------------------------------------------------------
    # Automations
    # -------------------------------------------------------------------------

    async def automation_config(
        self,
        scheduled_time: str,
        devices: list[int],
        control_params: dict[str, Any],
        task_name: str,
        execution_once: bool = False,
    ) -> str:
        """Configure a scheduled device control task."""
        if not scheduled_time.strip():
            return "Scheduled time cannot be empty"
        if not devices:
            return "Device list cannot be empty"
        if not control_params:
            return "Control parameters cannot be empty"
        if not task_name.strip():
            return "Task name cannot be empty"

        data = {
            "scheduled_time": scheduled_time.strip(),
            "devices": list(devices),
            "slots": [dict(control_params)],
            "task_name": task_name.strip(),
            "execution_once": execution_once,
        }
        _, message = await self._client.call(FN_AUTOMATION_CONFIG, data, Any)
        if message:
            return message
        return "Automation configuration successful"
