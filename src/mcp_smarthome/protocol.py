"""
JSON-RPC 2.0 framing for MCP messages.

Every transport of the gateway (stdio lines, SSE session posts, direct
POST /mcp) hands the raw message text to ``parse_request`` and writes back
whatever ``JSONRPCResponse.to_json`` produces. Tool failures raised as
ToolError are turned into JSON-RPC errors here:

    ToolError.error_code     JSON-RPC code
    invalid_argument         -32602
    not_found                -32602   (unknown tool name)
    unauthenticated          -32002
    internal                 -32603
    anything else            -32000

Framing failures use the standard codes: -32700 for text that is not JSON,
-32600 for a message without a usable ``jsonrpc``/``method``, -32601 for an
MCP method the gateway does not serve.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from mcp_smarthome.errors import ToolError

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

ERROR_CODE_MAP: dict[str, int] = {
    "invalid_argument": INVALID_PARAMS,
    "not_found": INVALID_PARAMS,
    "unauthenticated": -32002,
    "internal": INTERNAL_ERROR,
}

# Used for ToolError codes missing from ERROR_CODE_MAP
DEFAULT_SERVER_ERROR = -32000


class JSONRPCError(Exception):
    """
    Error member of a JSON-RPC response.

    Raised while a message is being handled and caught by MCPServer, which
    sends it back in place of a result.

    Attributes:
        code: JSON-RPC error code.
        message: Text shown to the client.
        data: Extra detail (``error_code``, ``message``, ``details``), if any.
    """

    def __init__(
        self,
        code: int,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    def __repr__(self) -> str:
        return f"JSONRPCError(code={self.code}, message={self.message!r}, data={self.data!r})"


@dataclass
class JSONRPCRequest:
    """
    A validated incoming message.

    ``id`` is None for notifications (``notifications/initialized``,
    ``notifications/cancelled``), which get no reply.
    """

    jsonrpc: str
    id: str | int | None
    method: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def is_notification(self) -> bool:
        return self.id is None


@dataclass
class JSONRPCResponse:
    """Reply to one request, carrying a result or an error."""

    jsonrpc: str
    id: str | int | None
    result: Any | None = None
    error: JSONRPCError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        response: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            response["error"] = self.error.to_dict()
        else:
            response["result"] = self.result
        return response

    def to_json(self) -> str:
        """One line of compact JSON; non-ASCII home and device names stay readable."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


def parse_request(request_json: str) -> JSONRPCRequest:
    """
    Validate the text of one MCP message.

    Raises:
        JSONRPCError: PARSE_ERROR when the text is not JSON, INVALID_REQUEST
            when ``jsonrpc`` or ``method`` is missing or wrong, INVALID_PARAMS
            when ``params`` is not an object.

    Example:
        >>> parse_request('{"jsonrpc":"2.0","id":1,"method":"tools/list"}').method
        'tools/list'
    """
    try:
        data = json.loads(request_json)
    except json.JSONDecodeError as e:
        raise JSONRPCError(
            code=PARSE_ERROR,
            message=f"Parse error: Invalid JSON - {e.msg}",
        ) from e

    if not isinstance(data, dict):
        raise JSONRPCError(
            code=INVALID_REQUEST,
            message="Invalid Request: Request must be a JSON object",
        )

    jsonrpc = data.get("jsonrpc")
    if jsonrpc is None:
        raise JSONRPCError(
            code=INVALID_REQUEST,
            message="Invalid Request: Missing 'jsonrpc' field",
        )
    if jsonrpc != "2.0":
        raise JSONRPCError(
            code=INVALID_REQUEST,
            message=f"Invalid Request: jsonrpc must be '2.0', got '{jsonrpc}'",
        )

    method = data.get("method")
    if method is None:
        raise JSONRPCError(
            code=INVALID_REQUEST,
            message="Invalid Request: Missing 'method' field",
        )
    if not isinstance(method, str) or not method:
        raise JSONRPCError(
            code=INVALID_REQUEST,
            message="Invalid Request: 'method' must be a non-empty string",
        )

    # tools/call and initialize read named fields, positional params are rejected
    params = data.get("params")
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise JSONRPCError(
            code=INVALID_PARAMS,
            message="Invalid params: 'params' must be an object",
        )

    return JSONRPCRequest(jsonrpc="2.0", id=data.get("id"), method=method, params=params)


def format_success_response(request_id: str | int | None, result: Any) -> JSONRPCResponse:
    """
    Wrap an MCP method result.

    Example:
        >>> format_success_response(1, {}).to_json()
        '{"jsonrpc":"2.0","id":1,"result":{}}'
    """
    return JSONRPCResponse(jsonrpc="2.0", id=request_id, result=result)


def format_error_response(
    request_id: str | int | None,
    error: JSONRPCError,
) -> JSONRPCResponse:
    """Wrap an error; ``request_id`` is None when the message could not be parsed."""
    return JSONRPCResponse(jsonrpc="2.0", id=request_id, error=error)


def tool_error_to_jsonrpc_error(tool_error: ToolError) -> JSONRPCError:
    """
    Translate a failed tool call into the error sent to the client.

    The ToolError code, message and details are kept under ``data`` so a
    client can tell a bad button name from an unreachable cloud.

    Example:
        >>> from mcp_smarthome.errors import InvalidArgumentError
        >>> err = InvalidArgumentError(message="Invalid button", details={"button": "x"})
        >>> tool_error_to_jsonrpc_error(err).code
        -32602
    """
    return JSONRPCError(
        code=ERROR_CODE_MAP.get(tool_error.error_code, DEFAULT_SERVER_ERROR),
        message=tool_error.message,
        data={
            "error_code": tool_error.error_code,
            "message": tool_error.message,
            "details": tool_error.details,
        },
    )


def create_method_not_found_error(method: str) -> JSONRPCError:
    """Error for an MCP method the gateway does not serve (resources/*, prompts/*, ...)."""
    return JSONRPCError(
        code=METHOD_NOT_FOUND,
        message=f"Method not found: {method}",
        data={
            "error_code": "not_found",
            "message": f"Method '{method}' is not supported",
            "details": {"method": method},
        },
    )


def create_internal_error(
    message: str, details: dict[str, Any] | None = None
) -> JSONRPCError:
    """Error for a failure of the gateway itself rather than of a tool."""
    return JSONRPCError(
        code=INTERNAL_ERROR,
        message=message,
        data={
            "error_code": "internal",
            "message": message,
            "details": details or {},
        },
    )
