"""
Inbound authentication for the smart-home MCP gateway.

Components:
- BearerTokenVerifier: checks ``Authorization: Bearer <API_TOKEN>``
"""

from mcp_smarthome.security.bearer import BearerTokenVerifier, extract_bearer_token

__all__ = [
    "BearerTokenVerifier",
    "extract_bearer_token",
]
