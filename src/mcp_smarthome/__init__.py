"""
Smart-home MCP gateway.

This package exposes smart-home cloud actions (homes, control buttons,
devices, automations) as MCP tools and forwards every tool call as a signed
HTTPS request to the smart-home cloud API.
"""

__version__ = "0.1.0"
