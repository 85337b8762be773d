"""
Tests for call envelopes and CallResult.
"""

from __future__ import annotations

import json
import math

import pytest
from pydantic import ValidationError

from mcp_smarthome.cloud.envelope import (
    CallResult,
    RequestEnvelope,
    ResponseEnvelope,
    new_request_id,
)


class TestRequestEnvelope:
    """Tests for RequestEnvelope."""

    def test_fields_in_wire_order(self) -> None:
        envelope = RequestEnvelope(
            token="key",
            version="0.0.3",
            fn="SwitchHome",
            params={"home_name": "我的家"},
            device_id="mcp0.abc",
            request_id="r1",
        )

        body = envelope.to_bytes()

        assert list(json.loads(body)) == [
            "token",
            "version",
            "fn",
            "params",
            "device_id",
            "request_id",
        ]
        assert "我的家".encode() in body
        assert b" " not in body

    def test_fresh_request_id_per_envelope(self) -> None:
        first = RequestEnvelope("k", "0.0.3", "GetHomes", None, "mcp0.abc")
        second = RequestEnvelope("k", "0.0.3", "GetHomes", None, "mcp0.abc")

        assert len(first.request_id) == 32
        assert first.request_id != second.request_id
        assert len(new_request_id()) == 32

    def test_null_params_serialized(self) -> None:
        envelope = RequestEnvelope("k", "0.0.3", "GetHomes", None, "mcp0.abc")
        assert json.loads(envelope.to_bytes())["params"] is None

    def test_unserializable_params_raise(self) -> None:
        with pytest.raises(TypeError):
            RequestEnvelope("k", "0.0.3", "X", {"value": object()}, "d").to_bytes()

    def test_nan_params_raise(self) -> None:
        with pytest.raises(ValueError):
            RequestEnvelope("k", "0.0.3", "X", {"value": math.nan}, "d").to_bytes()


class TestResponseEnvelope:
    """Tests for ResponseEnvelope decoding."""

    def test_typed_result(self) -> None:
        envelope = ResponseEnvelope[list[str]].model_validate_json(
            '{"code":0,"result":["Home","Office"],"extra":1}'
        )

        assert envelope.is_success
        assert envelope.result == ["Home", "Office"]

    def test_failure_message_prefers_details(self) -> None:
        envelope = ResponseEnvelope[str].model_validate_json(
            '{"code":7,"message":"short","msgDetails":"long"}'
        )

        assert not envelope.is_success
        assert envelope.failure_message() == "long"

    def test_failure_message_falls_back(self) -> None:
        envelope = ResponseEnvelope[str].model_validate_json('{"code":7,"message":"short"}')
        assert envelope.failure_message() == "short"

    def test_missing_code_is_success(self) -> None:
        envelope = ResponseEnvelope[list[str]].model_validate_json('{"result":["Home"]}')

        assert envelope.code == 0
        assert envelope.is_success
        assert envelope.result == ["Home"]

    def test_empty_object_is_success_without_result(self) -> None:
        envelope = ResponseEnvelope[str].model_validate_json("{}")

        assert envelope.is_success
        assert envelope.result is None

    def test_wrong_result_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ResponseEnvelope[list[str]].model_validate_json('{"code":0,"result":5}')


class TestCallResult:
    """Tests for CallResult."""

    def test_success_unpacks(self) -> None:
        result, message = CallResult.success(["Home"])

        assert result == ["Home"]
        assert message == ""

    def test_success_without_result(self) -> None:
        outcome = CallResult.success(None)

        assert outcome.ok
        assert outcome.result is None

    def test_failure(self) -> None:
        outcome = CallResult.failure("API call failed. status code: 503")

        assert not outcome.ok
        assert tuple(outcome) == (None, "API call failed. status code: 503")

    def test_failure_requires_message(self) -> None:
        with pytest.raises(ValueError):
            CallResult.failure("")

    def test_cannot_hold_both(self) -> None:
        with pytest.raises(ValueError):
            CallResult(result=[1], message="failed")
