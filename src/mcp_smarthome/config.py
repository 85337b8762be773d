"""
Configuration management for the smart-home MCP gateway.

This module implements the AppConfig Pydantic model and configuration loading.

Configuration is loaded from multiple sources with layered precedence:
1. Built-in defaults (Pydantic model defaults)
2. YAML config file (/etc/mcp-smarthome/config.yml or --config path)
3. Plain environment variables API_KEY, API_TOKEN, host, port
   (a .env file in the working directory is loaded first)
4. Environment variables (MCP_SMARTHOME_* prefix, __ for nesting)
5. Command-line arguments (highest precedence)
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path("/etc/mcp-smarthome/config.yml")
DEFAULT_ENV_PREFIX = "MCP_SMARTHOME_"

# Plain variable name -> config path
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "API_KEY": ("cloud", "api_key"),
    "API_TOKEN": ("security", "api_token"),
    "host": ("server", "host"),
    "port": ("server", "port"),
}

# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseModel):
    """Inbound MCP server settings.

    Attributes:
        host: Bind address for the HTTP transports.
        port: Bind port for the HTTP transports.
        transport: Inbound transport: 'sse', 'http' or 'stdio'.
        name: Server name reported in the MCP handshake.
    """

    host: str = Field(
        default="127.0.0.1",
        description="Bind address for the HTTP transports",
    )
    port: int = Field(
        default=8080,
        description="Bind port for the HTTP transports",
        ge=1,
        le=65535,
    )
    transport: str = Field(
        default="sse",
        description="Inbound transport: 'sse', 'http' or 'stdio'",
    )
    name: str = Field(
        default="yalla",
        description="Server name reported in the MCP initialize response",
    )

    @field_validator("transport")
    @classmethod
    def validate_transport(cls, v: str) -> str:
        """Validate the transport name."""
        valid_transports = {"sse", "http", "stdio"}
        v_lower = v.lower()
        if v_lower not in valid_transports:
            raise ValueError(
                f"Invalid transport: {v}. Must be one of: {', '.join(sorted(valid_transports))}"
            )
        return v_lower

    @property
    def listen(self) -> str:
        """Return the listen address as host:port."""
        return f"{self.host}:{self.port}"


# =============================================================================
# Security Configuration
# =============================================================================


class SecurityConfig(BaseModel):
    """Inbound authentication settings.

    Attributes:
        api_token: Bearer token inbound HTTP clients must present.
        cors_enabled: Whether to answer CORS preflights and add CORS headers.
    """

    api_token: str = Field(
        default="",
        description="Bearer token required on inbound HTTP requests",
        repr=False,
    )
    cors_enabled: bool = Field(
        default=True,
        description="Add permissive CORS headers to HTTP responses",
    )


# =============================================================================
# Cloud API Configuration
# =============================================================================


class CloudConfig(BaseModel):
    """Smart-home cloud API settings.

    Attributes:
        base_url: Base URL of the cloud API (``/call`` and ``/secret`` live below it).
        api_key: Credential forwarded as ``token`` in every call envelope.
        version: Protocol version sent in every call envelope.
        request_timeout_seconds: Timeout of one signed call.
        secret_timeout_seconds: Timeout of the startup secret fetch.
    """

    base_url: str = Field(
        default="https://ai-echo.aqara.cn/echo/mcp",
        description="Base URL of the smart-home cloud API",
    )
    api_key: str = Field(
        default="",
        description="API key forwarded in every call envelope",
        repr=False,
    )
    version: str = Field(
        default="0.0.3",
        description="Protocol version sent in every call envelope",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout of one signed call in seconds",
        gt=0,
    )
    secret_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout of the startup secret fetch in seconds",
        gt=0,
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid base_url: {v}. Must start with http:// or https://")
        return v.rstrip("/")


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level.
        log_to_stdout: Whether to emit logs.
        json_format: JSON lines (True) or plain text (False).
        debug_mode: Enable extra diagnostic logging.
    """

    level: str = Field(
        default="info",
        description="Log level: debug, info, warn, error",
    )
    log_to_stdout: bool = Field(
        default=True,
        description="Whether to emit logs",
    )
    json_format: bool = Field(
        default=True,
        description="Emit JSON lines instead of plain text",
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable extra diagnostic logging",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"debug", "info", "warn", "warning", "error", "critical"}
        v_lower = v.lower()
        if v_lower not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        if v_lower == "warn":
            return "warning"
        return v_lower


# =============================================================================
# Tools Configuration
# =============================================================================


class ToolNamespaceConfig(BaseModel):
    """Configuration for a tool namespace.

    Attributes:
        enabled: Whether the namespace is enabled.
    """

    enabled: bool = Field(
        default=True,
        description="Whether this tool namespace is enabled",
    )


class ToolsConfig(BaseModel):
    """Tool namespace configuration.

    Attributes:
        home: Home listing and switching tools.
        scene: Device control button tools.
        device: Device query, status, control and log tools.
        automation: Scheduled automation tools.
        button_notes: Site notes appended to the button listing description.
        default_home: Home to switch to at startup.
    """

    home: ToolNamespaceConfig = Field(
        default_factory=ToolNamespaceConfig,
        description="Home tools configuration",
    )
    scene: ToolNamespaceConfig = Field(
        default_factory=ToolNamespaceConfig,
        description="Control button tools configuration",
    )
    device: ToolNamespaceConfig = Field(
        default_factory=ToolNamespaceConfig,
        description="Device tools configuration",
    )
    automation: ToolNamespaceConfig = Field(
        default_factory=ToolNamespaceConfig,
        description="Automation tools configuration",
    )
    button_notes: str = Field(
        default="",
        description="Free text appended to the list_device_control_buttons description",
    )
    default_home: str | None = Field(
        default=None,
        description="Home switched to at startup (optional)",
    )


# =============================================================================
# Main Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """
    Main application configuration model.

    Attributes:
        server: Inbound server settings.
        security: Inbound authentication settings.
        cloud: Smart-home cloud API settings.
        logging: Logging configuration.
        tools: Tool namespace configuration.
    """

    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Server settings",
    )
    security: SecurityConfig = Field(
        default_factory=SecurityConfig,
        description="Inbound authentication settings",
    )
    cloud: CloudConfig = Field(
        default_factory=CloudConfig,
        description="Smart-home cloud API settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    tools: ToolsConfig = Field(
        default_factory=ToolsConfig,
        description="Tool namespace configuration",
    )


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: The base dictionary.
        override: The dictionary with values to override.

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _load_env_config(prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, Any]:
    """
    Load configuration from prefixed environment variables.

    - Prefix: MCP_SMARTHOME_ (configurable)
    - Nested keys: Double underscore (__) separator
    - Example: MCP_SMARTHOME_CLOUD__BASE_URL=https://example.com/mcp

    Values stay strings here. The models convert them by field type, so
    ``SERVER__PORT=9100`` becomes an int while ``CLOUD__VERSION=1.0`` and
    ``SERVER__NAME=on`` stay strings.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix) :].lower()
        parts = config_key.split("__")

        current = result
        for part in parts[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        current[parts[-1]] = value

    return result


def _load_legacy_env() -> dict[str, Any]:
    """
    Load the plain ``API_KEY``, ``API_TOKEN``, ``host`` and ``port`` variables.

    A ``.env`` file in the working directory is read first; it never
    overrides variables already set in the environment.
    """
    load_dotenv(find_dotenv(usecwd=True), override=False)

    result: dict[str, Any] = {}
    for env_name, (section, key) in LEGACY_ENV_VARS.items():
        value = os.environ.get(env_name)
        if value is None or value == "":
            continue
        result.setdefault(section, {})[key] = value
    return result


def _parse_cli_args(args: list[str] | None = None) -> dict[str, Any]:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Dictionary with parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Smart-home MCP gateway",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        help="Override log level",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )

    parser.add_argument(
        "--transport",
        type=str,
        choices=["sse", "http", "stdio"],
        help="Inbound transport",
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Bind address for the HTTP transports",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Bind port for the HTTP transports",
    )

    parsed = parser.parse_args(args)

    result: dict[str, Any] = {}
    server: dict[str, Any] = {}

    if parsed.config:
        result["_config_path"] = parsed.config

    if parsed.log_level:
        result["logging"] = {"level": parsed.log_level}

    if parsed.debug:
        result.setdefault("logging", {})["debug_mode"] = True
        result["logging"]["level"] = "debug"

    if parsed.transport:
        server["transport"] = parsed.transport
    if parsed.host:
        server["host"] = parsed.host
    if parsed.port is not None:
        server["port"] = parsed.port

    if server:
        result["server"] = server

    return result


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_args: list[str] | None = None,
) -> AppConfig:
    """
    Load configuration from all sources with layered precedence.

    Args:
        config_path: Path to YAML configuration file. If None, uses the
            --config argument or the default path when it exists.
        env_prefix: Prefix for environment variables.
        cli_args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Fully configured AppConfig instance.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ValidationError: If configuration is invalid.

    Example:
        >>> config = load_config(cli_args=[])
        >>> print(config.server.listen)
        127.0.0.1:8080
    """
    config_dict: dict[str, Any] = {}

    cli_config = _parse_cli_args(cli_args)

    if config_path is None:
        if "_config_path" in cli_config:
            config_path = Path(cli_config.pop("_config_path"))
        elif DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
    else:
        cli_config.pop("_config_path", None)
        config_path = Path(config_path)

    if config_path is not None:
        config_dict = _deep_merge(config_dict, _load_yaml_config(config_path))

    config_dict = _deep_merge(config_dict, _load_legacy_env())
    config_dict = _deep_merge(config_dict, _load_env_config(env_prefix))
    config_dict = _deep_merge(config_dict, cli_config)

    return AppConfig(**config_dict)
