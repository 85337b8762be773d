"""
Error types for the smart-home MCP gateway.

This module defines the ToolError base class and subclasses used by the MCP
layer (argument validation, unknown tools, authentication). Failures reported
by the smart-home cloud are not exceptions: the RPC client turns them into
plain messages that tools return as text.

Error codes map to JSON-RPC errors at the protocol layer.
"""

from __future__ import annotations

from typing import Any


class ToolError(Exception):
    """
    Base exception class for MCP tool errors.

    ToolError instances are caught at the entry layer and mapped to JSON-RPC
    errors using the error mapping in ``mcp_smarthome.protocol``.

    Attributes:
        error_code: Internal error code string (e.g., "invalid_argument",
            "not_found", "unauthenticated", "internal").
        message: Human-readable error message.
        details: Optional structured details (e.g., parameter values, context).

    Example:
        >>> raise ToolError(
        ...     error_code="invalid_argument",
        ...     message="Argument 'button' must be an integer",
        ...     details={"button": "abc"},
        ... )
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize a ToolError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for serialization.

        Returns:
            Dictionary with error_code, message, and details.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgumentError(ToolError):
    """
    Error raised when a tool receives arguments that fail schema validation.

    Maps to the "invalid_argument" error code.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InvalidArgumentError."""
        super().__init__(
            error_code="invalid_argument", message=message, details=details
        )


class NotFoundError(ToolError):
    """Error raised when a tool name is not registered."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a NotFoundError."""
        super().__init__(error_code="not_found", message=message, details=details)


class UnauthenticatedError(ToolError):
    """
    Error raised when an inbound request carries no valid bearer token.

    The HTTP transport answers these with 401 before any JSON-RPC processing.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an UnauthenticatedError."""
        super().__init__(
            error_code="unauthenticated", message=message, details=details
        )


class InternalError(ToolError):
    """
    Error raised for unexpected internal errors.

    This error maps to the "internal" error code and should be used for
    unexpected exceptions that should be logged with full stack traces.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InternalError."""
        super().__init__(error_code="internal", message=message, details=details)
