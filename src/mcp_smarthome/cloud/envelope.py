"""
Call envelopes exchanged with the smart-home cloud API.

Request body:
    {"token": ..., "version": ..., "fn": ..., "params": ...,
     "device_id": ..., "request_id": ...}

Response body:
    {"code": 0, "message": "...", "msgDetails": "...", "result": ...}

``code == 0`` is the only success value, and a body without ``code`` reads as
0. ResponseEnvelope is generic over the
result type so each remote function decodes straight into what its caller
expects (``ResponseEnvelope[list[str]]``, ``ResponseEnvelope[str]``, ...).
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


def new_request_id() -> str:
    """Return a random 128-bit identifier as 32 hex characters."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RequestEnvelope:
    """
    One outbound RPC call.

    Attributes:
        token: API key of the account.
        version: Protocol version.
        fn: Remote function name (e.g., "SwitchHome").
        params: Function parameters, any JSON-serializable value.
        device_id: Stable id of this gateway installation.
        request_id: Fresh random id per call.
    """

    token: str
    version: str
    fn: str
    params: Any
    device_id: str
    request_id: str = field(default_factory=new_request_id)

    def to_dict(self) -> dict[str, Any]:
        """Return the envelope as a dict in wire field order."""
        return {
            "token": self.token,
            "version": self.version,
            "fn": self.fn,
            "params": self.params,
            "device_id": self.device_id,
            "request_id": self.request_id,
        }

    def to_bytes(self) -> bytes:
        """
        Serialize to compact UTF-8 JSON.

        Raises:
            TypeError: If params are not JSON-serializable.
            ValueError: If params contain NaN/Infinity or circular references.
        """
        return json.dumps(
            self.to_dict(),
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        ).encode("utf-8")


class ResponseEnvelope(BaseModel, Generic[T]):
    """
    One decoded RPC reply.

    Attributes:
        code: Status code, 0 on success. A reply without one counts as 0.
        message: Short human-readable message.
        msg_details: Detailed message (``msgDetails`` on the wire).
        result: Typed result payload.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: int = 0
    message: str | None = None
    msg_details: str | None = Field(default=None, alias="msgDetails")
    result: T | None = None

    @property
    def is_success(self) -> bool:
        """Check the success sentinel."""
        return self.code == 0

    def failure_message(self) -> str:
        """Return the detailed message if present, else the short message."""
        return self.msg_details or self.message or ""


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """
    Outcome of one RPC call: a typed result or a failure message, never both.

    A non-empty ``message`` is the only failure signal; ``result`` may be
    None on success when the remote function returns no data.

    Unpacks as a pair:
        >>> result, message = await client.call("GetHomes", None, list[str])
    """

    result: T | None = None
    message: str = ""

    def __post_init__(self) -> None:
        if self.message and self.result is not None:
            raise ValueError("CallResult cannot carry both a result and a message")

    @classmethod
    def success(cls, result: T | None) -> CallResult[T]:
        """Build a successful outcome."""
        return cls(result=result, message="")

    @classmethod
    def failure(cls, message: str) -> CallResult[T]:
        """Build a failed outcome; ``message`` must be non-empty."""
        if not message:
            raise ValueError("A failed CallResult needs a message")
        return cls(result=None, message=message)

    @property
    def ok(self) -> bool:
        """True when the call succeeded."""
        return not self.message

    def __iter__(self):
        yield self.result
        yield self.message
