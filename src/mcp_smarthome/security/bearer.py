"""
Bearer token gate for inbound HTTP requests.

Clients must send ``Authorization: Bearer <API_TOKEN>``. The comparison is
constant-time. When no token is configured every request is rejected.
"""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING

from mcp_smarthome.errors import UnauthenticatedError
from mcp_smarthome.logging import get_logger

if TYPE_CHECKING:
    from mcp_smarthome.config import SecurityConfig

logger = get_logger(__name__)

BEARER_SCHEME = "bearer"


def extract_bearer_token(authorization: str | None) -> str | None:
    """
    Return the token of a ``Bearer`` Authorization header value.

    Returns:
        The token, or None when the header is missing or uses another scheme.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    token = token.strip()
    return token or None


class BearerTokenVerifier:
    """
    Verifies inbound bearer tokens against the configured API token.

    Example:
        >>> verifier = BearerTokenVerifier("s3cret")
        >>> verifier.verify("Bearer s3cret")
    """

    def __init__(self, api_token: str) -> None:
        self._api_token = api_token

    @classmethod
    def from_config(cls, config: SecurityConfig) -> BearerTokenVerifier:
        """Create a verifier from configuration."""
        verifier = cls(config.api_token)
        if not verifier.configured:
            logger.warning("API_TOKEN is not set, all HTTP requests will be rejected")
        return verifier

    @property
    def configured(self) -> bool:
        """True when an API token is configured."""
        return bool(self._api_token)

    def verify(self, authorization: str | None) -> None:
        """
        Check an Authorization header value.

        Raises:
            UnauthenticatedError: If the token is missing or does not match.
        """
        token = extract_bearer_token(authorization)
        if token is None:
            raise UnauthenticatedError("Missing bearer token")
        if not self.configured or not hmac.compare_digest(
            token.encode("utf-8"), self._api_token.encode("utf-8")
        ):
            raise UnauthenticatedError("invalid api key")
