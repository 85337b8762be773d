"""
Pytest configuration for the smart-home MCP gateway tests.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from mcp_smarthome.cloud import DeviceIdentity, SignedRPCClient, SmartHomeService

TEST_BASE_URL = "https://cloud.example.com/echo/mcp"
TEST_DEVICE_ID = "mcp0.0123456789abcdef0123456789abcdef01234567"


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


class RecordingHandler:
    """
    httpx.MockTransport handler that records requests and replays a response.

    Attributes:
        requests: Requests seen so far.
        status_code: Status code to answer with.
        body: Response body; dicts are JSON-encoded.
        error: Exception to raise instead of answering.
    """

    def __init__(
        self,
        body: Any = None,
        status_code: int = 200,
        error: Exception | None = None,
    ) -> None:
        self.requests: list[httpx.Request] = []
        self.body = body if body is not None else {"code": 0, "result": None}
        self.status_code = status_code
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.body, (bytes, str)):
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_envelope(self) -> dict[str, Any]:
        """Decoded JSON body of the last request."""
        return json.loads(self.requests[-1].content)


@pytest.fixture
def identity() -> DeviceIdentity:
    return DeviceIdentity.from_device_id(TEST_DEVICE_ID, secret="test-secret")


@pytest.fixture
def make_client(identity: DeviceIdentity) -> Callable[[RecordingHandler], SignedRPCClient]:
    """Return a factory building a client wired to a RecordingHandler."""

    def factory(handler: RecordingHandler) -> SignedRPCClient:
        return SignedRPCClient(
            identity=identity,
            api_key="test-api-key",
            base_url=TEST_BASE_URL,
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture
def make_service(
    make_client: Callable[[RecordingHandler], SignedRPCClient],
) -> Callable[[RecordingHandler], SmartHomeService]:
    """Return a factory building a service wired to a RecordingHandler."""

    def factory(handler: RecordingHandler) -> SmartHomeService:
        return SmartHomeService(make_client(handler))

    return factory
