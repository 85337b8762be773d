"""
HTTP transports for the smart-home MCP gateway (aiohttp).

Routes:
- GET  /sse                      open an SSE stream; the first event is
                                 ``endpoint`` with the session message URL
- POST /message?sessionId=<id>   post a JSON-RPC message to an SSE session;
                                 the response arrives as a ``message`` event
- POST /mcp                      post a JSON-RPC message, get the response
                                 in the HTTP body
- GET  /health                   liveness probe (no authentication)

Every route except /health requires ``Authorization: Bearer <API_TOKEN>``.
CORS headers are added to every response and OPTIONS requests are answered
with 204 before authentication.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from aiohttp import web

from mcp_smarthome.context import CallerInfo
from mcp_smarthome.errors import UnauthenticatedError
from mcp_smarthome.logging import get_logger

if TYPE_CHECKING:
    from mcp_smarthome.security.bearer import BearerTokenVerifier
    from mcp_smarthome.server import MCPServer

logger = get_logger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

SSE_PATH = "/sse"
MESSAGE_PATH = "/message"
MCP_PATH = "/mcp"
HEALTH_PATH = "/health"

KEEPALIVE_SECONDS = 15.0

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Headers": (
        "Content-Type, Content-Length, Accept-Encoding, X-CSRF-Token, "
        "Authorization, accept, origin, Cache-Control, X-Requested-With"
    ),
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS, PUT, DELETE",
}

PUBLIC_PATHS = frozenset({HEALTH_PATH})


@dataclass
class SSESession:
    """
    One open SSE stream.

    Attributes:
        id: Session id sent to the client in the endpoint event.
        caller: Who opened the stream.
        queue: Outgoing JSON-RPC messages; None closes the stream.
        tasks: In-flight request tasks, cancelled when the stream closes.
    """

    id: str
    caller: CallerInfo
    queue: asyncio.Queue[str | None] = field(default_factory=asyncio.Queue)
    tasks: set[asyncio.Task[None]] = field(default_factory=set)

    def send(self, message: str) -> None:
        """Queue a message for the client."""
        self.queue.put_nowait(message)

    def close(self) -> None:
        """Cancel in-flight requests and end the stream."""
        for task in self.tasks:
            task.cancel()
        self.queue.put_nowait(None)


def format_sse_event(event: str, data: str) -> bytes:
    """Encode one server-sent event."""
    lines = [f"event: {event}"]
    lines.extend(f"data: {line}" for line in data.splitlines() or [""])
    return ("\n".join(lines) + "\n\n").encode("utf-8")


def _caller_from_request(request: web.Request, transport: str) -> CallerInfo:
    return CallerInfo(
        transport=transport,
        ip_address=request.remote,
        authenticated=True,
    )


class HTTPTransport:
    """
    Serves an MCPServer over HTTP.

    Example:
        >>> transport = HTTPTransport(server, verifier)
        >>> app = transport.create_app()
        >>> await transport.serve("127.0.0.1", 8080)
    """

    def __init__(
        self,
        server: MCPServer,
        verifier: BearerTokenVerifier,
        cors_enabled: bool = True,
        keepalive_seconds: float = KEEPALIVE_SECONDS,
    ) -> None:
        self.server = server
        self.verifier = verifier
        self.cors_enabled = cors_enabled
        self.keepalive_seconds = keepalive_seconds
        self.sessions: dict[str, SSESession] = {}

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    def create_app(self) -> web.Application:
        """Build the aiohttp application."""
        middlewares = [self.auth_middleware]
        if self.cors_enabled:
            middlewares.insert(0, self.preflight_middleware)

        app = web.Application(middlewares=middlewares)
        app.router.add_get(HEALTH_PATH, self.handle_health)
        app.router.add_get(SSE_PATH, self.handle_sse)
        app.router.add_post(MESSAGE_PATH, self.handle_message)
        app.router.add_post(MCP_PATH, self.handle_mcp)

        if self.cors_enabled:
            app.on_response_prepare.append(self._add_cors_headers)
        app.on_shutdown.append(self._close_sessions)
        return app

    async def serve(
        self,
        host: str,
        port: int,
        shutdown: asyncio.Event | None = None,
    ) -> None:
        """
        Listen on host:port until ``shutdown`` is set or the task is cancelled.

        Raises:
            OSError: If the address cannot be bound.
        """
        runner = web.AppRunner(self.create_app())
        await runner.setup()
        try:
            site = web.TCPSite(runner, host, port)
            await site.start()
            logger.info(
                "Server will start",
                extra={"url": f"{host}:{port}", "tools_count": len(self.server.registry)},
            )
            await (shutdown if shutdown is not None else asyncio.Event()).wait()
        finally:
            await runner.cleanup()
            logger.info("HTTP server stopped")

    # -------------------------------------------------------------------------
    # Middleware
    # -------------------------------------------------------------------------

    @web.middleware
    async def preflight_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        """Answer CORS preflight requests."""
        if request.method == "OPTIONS":
            return web.Response(status=204)
        return await handler(request)

    @web.middleware
    async def auth_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        """Reject requests without a valid bearer token."""
        if request.path in PUBLIC_PATHS:
            return await handler(request)
        try:
            self.verifier.verify(request.headers.get("Authorization"))
        except UnauthenticatedError as e:
            logger.warning(
                "Rejected unauthenticated request",
                extra={"path": request.path, "remote": request.remote, "reason": e.message},
            )
            return web.json_response(
                {"error": e.message},
                status=401,
                headers={"WWW-Authenticate": "Bearer"},
            )
        return await handler(request)

    async def _add_cors_headers(
        self, _request: web.Request, response: web.StreamResponse
    ) -> None:
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def handle_health(self, _request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "ok",
                "server": self.server.name,
                "version": self.server.version,
                "tools": len(self.server.registry),
                "sessions": len(self.sessions),
            }
        )

    async def handle_mcp(self, request: web.Request) -> web.Response:
        """Process one JSON-RPC message and answer in the response body."""
        body = await request.text()
        response = await self.server.handle_request(
            body, caller=_caller_from_request(request, "http")
        )
        if response is None:
            return web.Response(status=202)
        return web.Response(text=response, content_type="application/json")

    async def handle_sse(self, request: web.Request) -> web.StreamResponse:
        """Open an SSE session and stream responses until the client leaves."""
        session = SSESession(
            id=uuid.uuid4().hex,
            caller=_caller_from_request(request, "sse"),
        )

        response = web.StreamResponse(
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            }
        )
        await response.prepare(request)

        self.sessions[session.id] = session
        logger.info(
            "SSE session opened",
            extra={"session_id": session.id, "remote": request.remote},
        )

        try:
            await response.write(
                format_sse_event("endpoint", f"{MESSAGE_PATH}?sessionId={session.id}")
            )
            await self._pump(session, response)
        except ConnectionResetError:
            logger.info("SSE client disconnected", extra={"session_id": session.id})
        finally:
            self.sessions.pop(session.id, None)
            session.close()
            logger.info("SSE session closed", extra={"session_id": session.id})

        return response

    async def _pump(self, session: SSESession, response: web.StreamResponse) -> None:
        while True:
            try:
                message = await asyncio.wait_for(
                    session.queue.get(), timeout=self.keepalive_seconds
                )
            except asyncio.TimeoutError:
                await response.write(b": keepalive\n\n")
                continue
            if message is None:
                return
            await response.write(format_sse_event("message", message))

    async def handle_message(self, request: web.Request) -> web.Response:
        """Accept a JSON-RPC message for an SSE session.

        Each message runs in its own task. A later ``notifications/cancelled``
        naming the request id cancels that task and no response is sent.
        """
        session_id = request.query.get("sessionId", "")
        session = self.sessions.get(session_id)
        if session is None:
            return web.json_response({"error": "unknown session"}, status=404)

        body = await request.text()
        task = asyncio.create_task(self._process_for_session(session, body))
        session.tasks.add(task)
        task.add_done_callback(session.tasks.discard)
        return web.Response(status=202, text="Accepted")

    async def _process_for_session(self, session: SSESession, body: str) -> None:
        response = await self.server.handle_request(
            body, caller=session.caller, session_id=session.id
        )
        if response is not None:
            session.send(response)

    async def _close_sessions(self, _app: web.Application) -> None:
        for session in list(self.sessions.values()):
            session.close()
