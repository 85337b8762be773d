"""
Tests for the signed RPC client.

This test module validates:
- Envelope and header construction of outbound calls
- Classification of every response shape into a CallResult
- Transport failures reported as messages instead of exceptions
"""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from conftest import TEST_BASE_URL, TEST_DEVICE_ID, RecordingHandler

from mcp_smarthome.cloud.client import (
    MSG_INVALID_JSON_REQUEST,
    MSG_INVALID_RESPONSE,
    SignedRPCClient,
    default_headers,
)
from mcp_smarthome.cloud.identity import DeviceIdentity
from mcp_smarthome.cloud.signing import calculate_body_hash, calculate_signature
from mcp_smarthome.config import CloudConfig

# =============================================================================
# Request construction
# =============================================================================


class TestRequestConstruction:
    """Tests for what the client sends."""

    @pytest.mark.asyncio
    async def test_posts_envelope_to_call_endpoint(self, make_client: Any) -> None:
        handler = RecordingHandler({"code": 0, "result": ["Home"]})

        await make_client(handler).call("GetHomes", None, list[str])

        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{TEST_BASE_URL}/call"
        envelope = handler.last_envelope
        assert envelope["token"] == "test-api-key"
        assert envelope["version"] == "0.0.3"
        assert envelope["fn"] == "GetHomes"
        assert envelope["params"] is None
        assert envelope["device_id"] == TEST_DEVICE_ID
        assert len(envelope["request_id"]) == 32

    @pytest.mark.asyncio
    async def test_headers_are_signed(
        self, make_client: Any, identity: DeviceIdentity
    ) -> None:
        handler = RecordingHandler()

        await make_client(handler).call("SwitchHome", {"home_name": "Home"})

        request = handler.requests[0]
        headers = request.headers
        assert headers["Content-Type"] == "application/json"
        assert headers["X-Access-Key"] == identity.app_id
        assert len(headers["X-Nonce"]) == 32
        assert headers["X-Signature"] == calculate_signature(
            "test-secret",
            "POST",
            "/echo/mcp/call",
            headers["X-Timestamp"],
            calculate_body_hash(request.content),
        )
        for name in ("app_lang", "lang", "app_id", "time_zone"):
            assert headers[name] == ""

    @pytest.mark.asyncio
    async def test_unsigned_when_secret_missing(self) -> None:
        handler = RecordingHandler()
        client = SignedRPCClient(
            identity=DeviceIdentity.from_device_id(TEST_DEVICE_ID),
            api_key="k",
            base_url=TEST_BASE_URL,
            transport=httpx.MockTransport(handler),
        )

        await client.call("GetHomes", None)

        headers = handler.requests[0].headers
        assert "X-Signature" in headers
        assert headers["X-Signature"] == ""

    @pytest.mark.asyncio
    async def test_unique_request_ids(self, make_client: Any) -> None:
        handler = RecordingHandler()
        client = make_client(handler)

        await client.call("GetHomes", None)
        first = handler.last_envelope["request_id"]
        await client.call("GetHomes", None)

        assert handler.last_envelope["request_id"] != first

    @pytest.mark.asyncio
    async def test_unencodable_params_make_no_request(self, make_client: Any) -> None:
        handler = RecordingHandler()

        result, message = await make_client(handler).call("X", {"bad": object()})

        assert result is None
        assert message == MSG_INVALID_JSON_REQUEST
        assert handler.requests == []

    def test_from_config(self, identity: DeviceIdentity) -> None:
        config = CloudConfig(base_url="https://host/base/", api_key="k")

        client = SignedRPCClient.from_config(config, identity)

        assert client.call_url == "https://host/base/call"
        assert client.identity is identity

    def test_default_headers(self) -> None:
        assert default_headers()["Content-Type"] == "application/json"


# =============================================================================
# Response classification
# =============================================================================


class TestResponseClassification:
    """Tests for how responses turn into CallResults."""

    @pytest.mark.asyncio
    async def test_success_with_typed_result(self, make_client: Any) -> None:
        handler = RecordingHandler({"code": 0, "message": "", "result": ["Home", "Office"]})

        result, message = await make_client(handler).call("GetHomes", None, list[str])

        assert result == ["Home", "Office"]
        assert message == ""

    @pytest.mark.asyncio
    async def test_success_without_result(self, make_client: Any) -> None:
        result, message = await make_client(RecordingHandler({"code": 0})).call(
            "SwitchHome", {"home_name": "Home"}
        )

        assert result is None
        assert message == ""

    @pytest.mark.asyncio
    async def test_non_200_status(self, make_client: Any) -> None:
        handler = RecordingHandler(b"Service Unavailable", status_code=503)

        result, message = await make_client(handler).call("GetHomes", None)

        assert result is None
        assert message == "API call failed. status code: 503"

    @pytest.mark.asyncio
    async def test_error_code_prefers_details(self, make_client: Any) -> None:
        handler = RecordingHandler(
            {"code": 7, "message": "bad", "msgDetails": "Home not found"}
        )

        result, message = await make_client(handler).call("SwitchHome", {})

        assert result is None
        assert message == "Home not found"

    @pytest.mark.asyncio
    async def test_error_code_with_message_only(self, make_client: Any) -> None:
        handler = RecordingHandler({"code": 7, "message": "bad"})

        _, message = await make_client(handler).call("SwitchHome", {})

        assert message == "bad"

    @pytest.mark.asyncio
    async def test_error_code_without_messages(self, make_client: Any) -> None:
        _, message = await make_client(RecordingHandler({"code": 9})).call("X", None)
        assert message == "The cloud service returned error code 9."

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, make_client: Any) -> None:
        result, message = await make_client(RecordingHandler(b"<html>")).call("X", None)

        assert result is None
        assert message == MSG_INVALID_RESPONSE

    @pytest.mark.asyncio
    async def test_wrong_result_type_uses_readable_message(self, make_client: Any) -> None:
        handler = RecordingHandler({"code": 0, "message": "partial", "result": 5})

        _, message = await make_client(handler).call("GetHomes", None, list[str])

        assert message == "partial"

    @pytest.mark.asyncio
    async def test_missing_code_counts_as_success(self, make_client: Any) -> None:
        handler = RecordingHandler({"result": ["Home"]})

        outcome = await make_client(handler).call("GetHomes", None, list[str])

        assert tuple(outcome) == (["Home"], "")

    @pytest.mark.asyncio
    async def test_empty_object_is_success(self, make_client: Any) -> None:
        result, message = await make_client(RecordingHandler({})).call("X", None)

        assert result is None
        assert message == ""

    @pytest.mark.asyncio
    async def test_transport_error(self, make_client: Any) -> None:
        handler = RecordingHandler(error=httpx.ConnectError("connection refused"))

        result, message = await make_client(handler).call("GetHomes", None)

        assert result is None
        assert message == (
            "An error occurred while requesting the cloud service. connection refused"
        )

    @pytest.mark.asyncio
    async def test_timeout_error_without_text(self, make_client: Any) -> None:
        handler = RecordingHandler(error=httpx.ReadTimeout(""))

        _, message = await make_client(handler).call("GetHomes", None)

        assert message.endswith("ReadTimeout")

    def test_classify_response_directly(self, make_client: Any) -> None:
        client = make_client(RecordingHandler())
        body = b'{"code":0,"result":"ok"}'

        outcome = client.classify_response("X", 200, body, str)

        assert outcome.result == "ok"
