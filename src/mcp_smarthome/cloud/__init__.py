"""
Smart-home cloud API access.

Components:
- DeviceIdentity: device id, application id and signing secret
- SignedRPCClient: signed ``POST /call`` with typed response decoding
- SmartHomeService: homes, scenes, devices and automations on top of the client
"""

from mcp_smarthome.cloud.client import SignedRPCClient
from mcp_smarthome.cloud.envelope import CallResult, RequestEnvelope, ResponseEnvelope
from mcp_smarthome.cloud.identity import DeviceIdentity
from mcp_smarthome.cloud.services import SmartHomeService

__all__ = [
    "CallResult",
    "DeviceIdentity",
    "RequestEnvelope",
    "ResponseEnvelope",
    "SignedRPCClient",
    "SmartHomeService",
]
