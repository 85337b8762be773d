"""
Request signing for the smart-home cloud API.

Every call carries four headers: the access key (application id), a Unix
timestamp, a random nonce and an HMAC-SHA256 signature over

    "POST\\n{request_path}\\n{timestamp}\\n{sha256_hex(body)}"

keyed with the application secret. Without a secret the signature header is
sent empty.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time

HEADER_ACCESS_KEY = "X-Access-Key"
HEADER_SIGNATURE = "X-Signature"
HEADER_TIMESTAMP = "X-Timestamp"
HEADER_NONCE = "X-Nonce"

NONCE_BYTES = 16


def calculate_body_hash(body: bytes) -> str:
    """Return the hex SHA-256 digest of the raw request body."""
    return hashlib.sha256(body).hexdigest()


def calculate_signature(
    secret: str,
    method: str,
    path: str,
    timestamp: str,
    body_hash: str,
) -> str:
    """
    Compute the request signature.

    Args:
        secret: Application secret. An empty secret yields an empty signature.
        method: HTTP method ("POST").
        path: Request path including the query string, if any.
        timestamp: Unix time in seconds, as a decimal string.
        body_hash: Hex SHA-256 digest of the body (see calculate_body_hash).

    Returns:
        Hex HMAC-SHA256 signature, or "" when no secret is available.
    """
    if not secret:
        return ""
    payload = "\n".join([method, path, timestamp, body_hash])
    return hmac.new(
        secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def generate_nonce(length: int = NONCE_BYTES) -> str:
    """Return ``length`` random bytes, hex-encoded."""
    return secrets.token_hex(length)


def current_timestamp() -> str:
    """Return the current Unix time in seconds as a decimal string."""
    return str(int(time.time()))


def build_signature_headers(
    access_key: str,
    secret: str,
    method: str,
    path: str,
    body: bytes,
    *,
    timestamp: str | None = None,
    nonce: str | None = None,
) -> dict[str, str]:
    """
    Build the four signature headers for one request.

    Args:
        access_key: Application id sent as the access key.
        secret: Application secret (may be empty).
        method: HTTP method.
        path: Request path including the query string, if any.
        body: Exact body bytes that will be sent.
        timestamp: Override the timestamp (tests).
        nonce: Override the nonce (tests).

    Returns:
        Mapping of header name to value.
    """
    timestamp = timestamp if timestamp is not None else current_timestamp()
    signature = calculate_signature(
        secret, method, path, timestamp, calculate_body_hash(body)
    )
    return {
        HEADER_ACCESS_KEY: access_key,
        HEADER_TIMESTAMP: timestamp,
        HEADER_NONCE: nonce if nonce is not None else generate_nonce(),
        HEADER_SIGNATURE: signature,
    }
