"""
Signed RPC client for the smart-home cloud API.

Every call is one signed ``POST {base_url}/call``. The outcome is always a
CallResult: the decoded result with an empty message, or no result with a
human-readable message. Nothing is retried and no exception crosses this
boundary for transport, protocol or remote failures.

Classification of a response:
- transport failure -> message embedding the error text
- non-200 status -> "API call failed. status code: N" (body only logged)
- 200 with an undecodable envelope -> the envelope's message if one could be
  read, else a generic invalid-data message
- 200 with code == 0 -> the typed result
- 200 with code != 0 -> msgDetails, falling back to message
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import ValidationError

from mcp_smarthome.cloud.envelope import CallResult, RequestEnvelope, ResponseEnvelope
from mcp_smarthome.cloud.signing import build_signature_headers
from mcp_smarthome.logging import get_logger

if TYPE_CHECKING:
    from mcp_smarthome.cloud.identity import DeviceIdentity
    from mcp_smarthome.config import CloudConfig

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 10.0
DEFAULT_VERSION = "0.0.3"

MSG_INVALID_JSON_REQUEST = "Data format error (invalid JSON data). Please try again later."
MSG_TRANSPORT_ERROR = "An error occurred while requesting the cloud service. {error}"
MSG_STATUS_ERROR = "API call failed. status code: {status_code}"
MSG_INVALID_RESPONSE = (
    "The received data is not in a valid JSON format. Please try again later."
)
MSG_UNKNOWN_REMOTE_ERROR = "The cloud service returned error code {code}."


def default_headers() -> dict[str, str]:
    """Return the static headers sent with every call."""
    return {
        "app_lang": "",
        "lang": "",
        "app_id": "",
        "time_zone": "",
        "Content-Type": "application/json",
    }


def _partial_message(body: bytes) -> str:
    """Return a top-level string ``message`` from a body that failed to decode."""
    try:
        data = json.loads(body)
    except ValueError:
        return ""
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str):
            return message
    return ""


class SignedRPCClient:
    """
    Stateless client for ``POST {base_url}/call``.

    The client only reads the injected identity and settings, so one instance
    serves any number of concurrent calls.

    Example:
        >>> client = SignedRPCClient(identity, api_key="...", base_url="https://host/mcp")
        >>> homes, message = await client.call("GetHomes", None, list[str])
        >>> if message:
        ...     print("failed:", message)
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        api_key: str,
        base_url: str,
        version: str = DEFAULT_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            identity: Device identity supplying device id, app id and secret.
            api_key: API key sent as ``token`` in each envelope.
            base_url: Cloud API base URL.
            version: Protocol version sent in each envelope.
            timeout: Timeout of one call in seconds.
            transport: Optional httpx transport (tests).
        """
        self._identity = identity
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._version = version
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: CloudConfig,
        identity: DeviceIdentity,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SignedRPCClient:
        """Create a client from configuration."""
        return cls(
            identity=identity,
            api_key=config.api_key,
            base_url=config.base_url,
            version=config.version,
            timeout=config.request_timeout_seconds,
            transport=transport,
        )

    @property
    def call_url(self) -> str:
        """Return the URL of the call endpoint."""
        return f"{self._base_url}/call"

    @property
    def identity(self) -> DeviceIdentity:
        """Return the injected device identity."""
        return self._identity

    def build_envelope(self, service_name: str, params: Any) -> RequestEnvelope:
        """Build the request envelope for one call."""
        return RequestEnvelope(
            token=self._api_key,
            version=self._version,
            fn=service_name,
            params=params,
            device_id=self._identity.device_id,
        )

    def build_headers(self, url: httpx.URL, body: bytes) -> dict[str, str]:
        """Return static and signature headers for ``body`` sent to ``url``."""
        path = url.raw_path.decode("ascii")
        headers = default_headers()
        headers.update(
            build_signature_headers(
                access_key=self._identity.app_id,
                secret=self._identity.secret,
                method="POST",
                path=path,
                body=body,
            )
        )
        return headers

    async def call(
        self,
        service_name: str,
        params: Any,
        result_type: Any = Any,
    ) -> CallResult[Any]:
        """
        Call a remote function.

        Args:
            service_name: Remote function name (e.g., "GetScenes").
            params: JSON-serializable parameters.
            result_type: Type the ``result`` field is decoded into.

        Returns:
            CallResult with either the decoded result or a failure message.
        """
        envelope = self.build_envelope(service_name, params)
        try:
            body = envelope.to_bytes()
        except (TypeError, ValueError) as e:
            logger.error(
                "Failed to encode call envelope",
                extra={"fn": service_name, "error": str(e)},
            )
            return CallResult.failure(MSG_INVALID_JSON_REQUEST)

        url = httpx.URL(self.call_url)
        headers = self.build_headers(url, body)

        logger.debug(
            "Calling cloud service",
            extra={"fn": service_name, "request_id": envelope.request_id},
        )

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, content=body, headers=headers)
        except httpx.HTTPError as e:
            error_text = str(e) or type(e).__name__
            logger.error(
                "Cloud service request failed",
                extra={"fn": service_name, "url": str(url), "error": error_text},
            )
            return CallResult.failure(MSG_TRANSPORT_ERROR.format(error=error_text))

        return self.classify_response(
            service_name, response.status_code, response.content, result_type
        )

    def classify_response(
        self,
        service_name: str,
        status_code: int,
        body: bytes,
        result_type: Any = Any,
    ) -> CallResult[Any]:
        """
        Turn an HTTP status and body into a CallResult.

        Args:
            service_name: Remote function name, for logging.
            status_code: HTTP status code.
            body: Raw response body.
            result_type: Type the ``result`` field is decoded into.
        """
        if status_code != httpx.codes.OK:
            logger.error(
                "API call failed",
                extra={
                    "fn": service_name,
                    "url": self.call_url,
                    "status_code": status_code,
                    "response": body.decode("utf-8", errors="replace"),
                },
            )
            return CallResult.failure(MSG_STATUS_ERROR.format(status_code=status_code))

        try:
            envelope = ResponseEnvelope[result_type].model_validate_json(body)
        except ValidationError as e:
            logger.error(
                "JSON parsing failed",
                extra={
                    "fn": service_name,
                    "error": str(e),
                    "response": body.decode("utf-8", errors="replace"),
                },
            )
            return CallResult.failure(_partial_message(body) or MSG_INVALID_RESPONSE)

        if envelope.is_success:
            return CallResult.success(envelope.result)

        logger.warning(
            "Request error",
            extra={
                "fn": service_name,
                "code": envelope.code,
                "details": envelope.msg_details,
            },
        )
        return CallResult.failure(
            envelope.failure_message()
            or MSG_UNKNOWN_REMOTE_ERROR.format(code=envelope.code)
        )
