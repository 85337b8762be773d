"""
Network transports for the smart-home MCP gateway.

The stdio transport lives on MCPServer itself; this package holds the
HTTP side (SSE sessions, direct POST and health probe).
"""

from mcp_smarthome.transport.http import HTTPTransport, SSESession, format_sse_event

__all__ = [
    "HTTPTransport",
    "SSESession",
    "format_sse_event",
]
