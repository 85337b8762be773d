"""
MCP server implementation for the smart-home gateway.

This module implements the MCPServer class that processes MCP JSON-RPC 2.0
messages (initialize, ping, tools/list, tools/call and notifications) and
dispatches tool calls to the registry. The same server instance is driven by
the stdio loop in this module and by the HTTP transports in
``mcp_smarthome.transport``.
"""

from __future__ import annotations

import asyncio
import sys
import time
from typing import Any, TextIO

from mcp_smarthome import __version__
from mcp_smarthome.context import CallerInfo, ToolContext
from mcp_smarthome.errors import ToolError
from mcp_smarthome.logging import get_logger
from mcp_smarthome.protocol import (
    INVALID_PARAMS,
    JSONRPCError,
    JSONRPCRequest,
    create_internal_error,
    create_method_not_found_error,
    format_error_response,
    format_success_response,
    parse_request,
    tool_error_to_jsonrpc_error,
)
from mcp_smarthome.routing import ToolRegistry

logger = get_logger(__name__)

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")

# Session key for requests read from stdin
STDIO_SESSION_ID = "stdio"


class MCPServer:
    """
    MCP server processing JSON-RPC 2.0 messages.

    Example:
        >>> server = MCPServer(registry, name="yalla")
        >>> response = await server.handle_request('{"jsonrpc":"2.0","id":1,"method":"ping"}')

    Attributes:
        registry: ToolRegistry with registered tools.
        name: Server name reported in the initialize response.
        version: Server version reported in the initialize response.
        running: Whether the stdio loop is currently running.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        name: str = "yalla",
        version: str = __version__,
    ) -> None:
        self.registry = registry
        self.name = name
        self.version = version
        self.running = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._in_flight: dict[tuple[str, str | int], asyncio.Task[Any]] = {}

    # -------------------------------------------------------------------------
    # Message processing
    # -------------------------------------------------------------------------

    async def handle_request(
        self,
        request_json: str,
        caller: CallerInfo | None = None,
        session_id: str | None = None,
    ) -> str | None:
        """
        Process a single JSON-RPC message and return the response.

        This function handles the complete request lifecycle:
        1. Parse the JSON-RPC message
        2. Dispatch to the MCP method
        3. Format the response (success or error)

        Args:
            request_json: Raw JSON string containing the message.
            caller: Optional CallerInfo for the request.
            session_id: Transport session id. Requests on a session can be
                cancelled by a later notifications/cancelled on the same session.

        Returns:
            JSON string containing the response, or None for notifications.
        """
        request_id: str | int | None = None
        method: str | None = None
        start = time.monotonic()

        try:
            request = parse_request(request_json)
            request_id = request.id
            method = request.method

            logger.info(
                "MCP method started",
                extra={
                    "method": method,
                    "session_id": session_id,
                    "has_params": bool(request.params),
                },
            )

            if request.is_notification:
                self._handle_notification(request, session_id)
                return None

            key = self._track(session_id, request_id)
            try:
                result = await self._dispatch(request, caller, session_id)
            finally:
                self._untrack(key)
            response = format_success_response(request_id, result)

            logger.info(
                "MCP method completed",
                extra={
                    "method": method,
                    "session_id": session_id,
                    "duration_ms": _elapsed_ms(start),
                    "has_result": result is not None,
                },
            )
            return response.to_json()

        except asyncio.CancelledError:
            logger.info(
                "MCP method cancelled",
                extra={
                    "method": method,
                    "session_id": session_id,
                    "request_id": request_id,
                    "duration_ms": _elapsed_ms(start),
                },
            )
            raise

        except JSONRPCError as e:
            self._log_failure(method, session_id, start, e)
            return format_error_response(request_id, e).to_json()

        except ToolError as e:
            self._log_failure(method, session_id, start, e)
            jsonrpc_error = tool_error_to_jsonrpc_error(e)
            return format_error_response(request_id, jsonrpc_error).to_json()

        except Exception as e:
            logger.exception(
                "Unexpected error processing request",
                extra={"request_id": request_id, "method": method, "error": str(e)},
            )
            jsonrpc_error = create_internal_error(
                message=f"Internal server error: {type(e).__name__}",
                details={"exception": str(e)},
            )
            return format_error_response(request_id, jsonrpc_error).to_json()

    async def _dispatch(
        self,
        request: JSONRPCRequest,
        caller: CallerInfo | None,
        session_id: str | None,
    ) -> Any:
        if request.method == "initialize":
            return self._initialize(request.params)
        if request.method == "ping":
            return {}
        if request.method == "tools/list":
            return {"tools": [tool.to_mcp_dict() for tool in self.registry.list_tools()]}
        if request.method == "tools/call":
            return await self._call_tool(request, caller, session_id)
        raise create_method_not_found_error(request.method)

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        if requested in SUPPORTED_PROTOCOL_VERSIONS:
            protocol_version = requested
        else:
            protocol_version = LATEST_PROTOCOL_VERSION

        client_info = params.get("clientInfo") or {}
        logger.info(
            "Client initialized session",
            extra={
                "client_name": client_info.get("name"),
                "client_version": client_info.get("version"),
                "protocol_version": protocol_version,
            },
        )
        return {
            "protocolVersion": protocol_version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": self.name, "version": self.version},
        }

    async def _call_tool(
        self,
        request: JSONRPCRequest,
        caller: CallerInfo | None,
        session_id: str | None,
    ) -> dict[str, Any]:
        name = request.params.get("name")
        if not isinstance(name, str) or not name:
            raise JSONRPCError(
                code=INVALID_PARAMS,
                message="Invalid params: 'name' must be a non-empty string",
            )
        arguments = request.params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise JSONRPCError(
                code=INVALID_PARAMS,
                message="Invalid params: 'arguments' must be an object",
            )

        logger.info("Calling tool", extra={"tool": name, "arguments": arguments})

        ctx = ToolContext(
            tool_name=name,
            caller=caller or CallerInfo(),
            request_id=request.id,
            session_id=session_id,
        )
        texts = await self.registry.invoke(name, ctx, arguments)
        return {
            "content": [{"type": "text", "text": text} for text in texts],
            "isError": False,
        }

    def _handle_notification(
        self, request: JSONRPCRequest, session_id: str | None
    ) -> None:
        if request.method == "notifications/initialized":
            logger.info("Client session ready", extra={"session_id": session_id})
        elif request.method == "notifications/cancelled":
            request_id = request.params.get("requestId")
            found = self.cancel_request(session_id, request_id)
            logger.info(
                "Client cancelled request",
                extra={
                    "session_id": session_id,
                    "request_id": request_id,
                    "reason": request.params.get("reason"),
                    "found": found,
                },
            )
        else:
            logger.debug(
                "Ignoring notification",
                extra={"method": request.method, "session_id": session_id},
            )

    def cancel_request(self, session_id: str | None, request_id: Any) -> bool:
        """
        Cancel an in-flight request of a session.

        The cancelled request produces no response. Requests without a
        session (direct POST /mcp) cannot be cancelled this way.

        Returns:
            True if a running request was found and cancelled.
        """
        if session_id is None or not isinstance(request_id, (str, int)):
            return False
        task = self._in_flight.get((session_id, request_id))
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def _track(
        self, session_id: str | None, request_id: str | int | None
    ) -> tuple[str, str | int] | None:
        task = asyncio.current_task()
        if session_id is None or request_id is None or task is None:
            return None
        key = (session_id, request_id)
        self._in_flight[key] = task
        return key

    def _untrack(self, key: tuple[str, str | int] | None) -> None:
        if key is not None and self._in_flight.get(key) is asyncio.current_task():
            del self._in_flight[key]

    def _log_failure(
        self,
        method: str | None,
        session_id: str | None,
        start: float,
        error: Exception,
    ) -> None:
        logger.error(
            "MCP method failed",
            extra={
                "method": method,
                "session_id": session_id,
                "duration_ms": _elapsed_ms(start),
                "err": str(error),
            },
        )

    # -------------------------------------------------------------------------
    # stdio transport
    # -------------------------------------------------------------------------

    async def run_stdio(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        """
        Serve newline-delimited JSON-RPC on stdin/stdout.

        Each message is handled in its own task so a slow cloud call does not
        hold up other requests. Runs until stdin is closed or stop() is called.
        """
        stdin = stdin if stdin is not None else sys.stdin
        stdout = stdout if stdout is not None else sys.stdout
        caller = CallerInfo(transport="stdio", authenticated=True)

        self.running = True
        logger.info("MCP stdio server starting", extra={"tools_count": len(self.registry)})

        try:
            loop = asyncio.get_running_loop()
            reader = asyncio.StreamReader()
            protocol = asyncio.StreamReaderProtocol(reader)
            await loop.connect_read_pipe(lambda: protocol, stdin)

            while self.running:
                line = await reader.readline()
                if not line:
                    break

                try:
                    request_json = line.decode("utf-8").strip()
                except UnicodeDecodeError as e:
                    logger.warning(
                        "Invalid UTF-8 encoding in request",
                        extra={"error": str(e)},
                    )
                    error = create_internal_error("Invalid request encoding: UTF-8 required")
                    _write_line(stdout, format_error_response(None, error).to_json())
                    continue

                if not request_json:
                    continue

                task = asyncio.create_task(self._serve_line(request_json, caller, stdout))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            self.running = False
            logger.info("MCP stdio server stopped")

    async def _serve_line(
        self, request_json: str, caller: CallerInfo, stdout: TextIO
    ) -> None:
        response = await self.handle_request(
            request_json, caller=caller, session_id=STDIO_SESSION_ID
        )
        if response:
            _write_line(stdout, response)

    def stop(self) -> None:
        """Stop the stdio loop gracefully."""
        self.running = False


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _write_line(stream: TextIO, text: str) -> None:
    stream.write(text + "\n")
    stream.flush()


def create_server(registry: ToolRegistry | None = None, name: str = "yalla") -> MCPServer:
    """
    Create an MCP server instance.

    Args:
        registry: Tool registry. An empty registry is created if not provided.
        name: Server name reported to clients.
    """
    return MCPServer(registry if registry is not None else ToolRegistry(), name=name)
