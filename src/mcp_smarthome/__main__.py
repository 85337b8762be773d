"""
Command-line entry point of the smart-home MCP gateway.

Usage:
    mcp-smarthome [--config PATH] [--transport sse|http|stdio] [--host H] [--port P]
    python -m mcp_smarthome ...
"""

from __future__ import annotations

import asyncio
import signal
import sys

from mcp_smarthome.cloud import DeviceIdentity, SignedRPCClient, SmartHomeService
from mcp_smarthome.config import AppConfig, load_config
from mcp_smarthome.logging import get_logger, setup_logging
from mcp_smarthome.routing import ToolRegistry
from mcp_smarthome.security import BearerTokenVerifier
from mcp_smarthome.server import MCPServer
from mcp_smarthome.tools import register_tools
from mcp_smarthome.transport import HTTPTransport

logger = get_logger(__name__)


async def switch_default_home(service: SmartHomeService, home_name: str) -> bool:
    """Switch to the configured home at startup. Failures are logged, not fatal."""
    ok, message = await service.switch_home(home_name)
    if ok:
        logger.info("Switched to default home", extra={"home": home_name})
    else:
        logger.warning(
            "Could not switch to default home",
            extra={"home": home_name, "err": message},
        )
    return ok


async def build_server(config: AppConfig) -> MCPServer:
    """Bootstrap the device identity and build a server with every enabled tool."""
    identity = await DeviceIdentity.bootstrap(config.cloud)
    if not config.cloud.api_key:
        logger.warning("API_KEY is not set, cloud calls will be rejected")

    client = SignedRPCClient.from_config(config.cloud, identity)
    service = SmartHomeService(client)

    registry = register_tools(ToolRegistry(), service, config.tools)

    if config.tools.default_home:
        await switch_default_home(service, config.tools.default_home)

    return MCPServer(registry, name=config.server.name)


async def run(config: AppConfig) -> None:
    """Run the configured transport until stdin closes or a signal arrives."""
    server = await build_server(config)

    if config.server.transport == "stdio":
        await server.run_stdio()
        return

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown.set()

    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)
    except (ValueError, NotImplementedError):
        # Signal handling not supported on this platform
        pass

    transport = HTTPTransport(
        server,
        BearerTokenVerifier.from_config(config.security),
        cors_enabled=config.security.cors_enabled,
    )
    await transport.serve(config.server.host, config.server.port, shutdown)


def main(argv: list[str] | None = None) -> int:
    """Load configuration, set up logging and run the gateway."""
    config = load_config(cli_args=argv)

    # stdout carries protocol frames on the stdio transport
    stream = sys.stderr if config.server.transport == "stdio" else None
    setup_logging(config.logging, stream=stream)

    logger.info(
        "Starting smart-home MCP gateway",
        extra={
            "transport": config.server.transport,
            "listen": config.server.listen,
            "server_name": config.server.name,
        },
    )

    try:
        asyncio.run(run(config))
    except OSError as e:
        logger.critical(
            "Server start failed",
            extra={"listen": config.server.listen, "err": str(e)},
        )
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
