"""
Tool context management for the smart-home MCP gateway.

This module defines the ToolContext dataclass that carries the context of a
single MCP tool call: which session it belongs to, who sent it and when.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class CallerInfo:
    """
    Represents where an inbound request came from.

    Attributes:
        transport: Transport name ("stdio", "sse" or "http").
        ip_address: Client IP address for HTTP transports.
        authenticated: Whether the bearer token gate accepted the caller.
    """

    transport: str = "stdio"
    ip_address: str | None = None
    authenticated: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert CallerInfo to a dictionary for logging."""
        return {
            "transport": self.transport,
            "ip_address": self.ip_address,
            "authenticated": self.authenticated,
        }


@dataclass
class ToolContext:
    """
    Encapsulates the context of a single MCP tool call.

    This context is passed to every tool handler.

    Attributes:
        tool_name: MCP tool name (e.g., "switch_home").
        caller: CallerInfo describing the inbound connection.
        request_id: JSON-RPC request identifier.
        session_id: Transport session identifier (SSE session, or None).
        timestamp: When the request was received (UTC).
        metadata: Additional context.
    """

    tool_name: str
    caller: CallerInfo = field(default_factory=CallerInfo)
    request_id: str | int | None = None
    session_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert ToolContext to a dictionary for logging/serialization.

        Returns:
            Dictionary with context information.
        """
        return {
            "tool_name": self.tool_name,
            "caller": self.caller.to_dict(),
            "request_id": self.request_id,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }
