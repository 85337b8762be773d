"""
Device identity of this gateway installation.

The identity is derived once at startup and injected into the RPC client:

- device id: ``mcp0.`` + sha1(mac + "-" + hostname + "-" + os_arch) when a
  usable network interface exists, otherwise ``mcp1.`` + sha1 of a random
  UUID seed. The same machine yields the same id across restarts, so nothing
  is persisted.
- application id: ``mcp-`` + md5("mcp-" + device id).
- application secret: fetched from ``{base_url}/secret?key={app_id}``. Any
  failure leaves the secret empty and calls go out unsigned.
"""

from __future__ import annotations

import hashlib
import platform
import socket
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import psutil

from mcp_smarthome.logging import get_logger

if TYPE_CHECKING:
    from mcp_smarthome.config import CloudConfig

logger = get_logger(__name__)

HARDWARE_PREFIX = "mcp0."
FALLBACK_PREFIX = "mcp1."
APP_ID_PREFIX = "mcp-"

# platform.machine() -> architecture names used in the os_arch component
_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
}

_NULL_MAC = "00:00:00:00:00:00"


# =============================================================================
# Derivation helpers
# =============================================================================


def os_arch() -> str:
    """Return "<os>-<arch>", e.g. "linux-amd64"."""
    system = platform.system().lower() or "unknown"
    machine = platform.machine().lower()
    return f"{system}-{_ARCH_ALIASES.get(machine, machine or 'unknown')}"


def _normalize_mac(address: str) -> str:
    return address.replace("-", ":").lower()


def find_mac_address() -> str | None:
    """
    Return the MAC address of the first usable network interface.

    An interface is usable when it is up, its name does not start with
    "lo" and it has a hardware address.

    Returns:
        Lower-case colon-separated MAC address, or None.
    """
    try:
        stats = psutil.net_if_stats()
        addrs = psutil.net_if_addrs()
    except (OSError, RuntimeError) as e:
        logger.warning(
            "Could not enumerate network interfaces",
            extra={"error": str(e)},
        )
        return None

    for name, iface_addrs in addrs.items():
        if name.startswith("lo"):
            continue
        iface_stats = stats.get(name)
        if iface_stats is None or not iface_stats.isup:
            continue
        for addr in iface_addrs:
            if addr.family != psutil.AF_LINK or not addr.address:
                continue
            mac = _normalize_mac(addr.address)
            if mac == _NULL_MAC:
                continue
            return mac

    return None


def derive_device_id(seed: str, hostname: str, os_arch_value: str, prefix: str) -> str:
    """Hash the seed material into a device id."""
    base_info = "-".join([seed, hostname, os_arch_value])
    return prefix + hashlib.sha1(base_info.encode("utf-8")).hexdigest()


def generate_device_id() -> str:
    """
    Derive the device id of this machine.

    Uses the first usable MAC address; falls back to a random UUID seed with
    the ``mcp1.`` prefix when no interface qualifies.
    """
    mac = find_mac_address()
    if mac:
        seed, prefix = mac, HARDWARE_PREFIX
    else:
        logger.warning("No usable network interface, using a random device seed")
        seed, prefix = str(uuid.uuid4()), FALLBACK_PREFIX

    return derive_device_id(seed, socket.gethostname(), os_arch(), prefix)


def derive_app_id(device_id: str) -> str:
    """Return ``mcp-`` + md5("mcp-" + device_id)."""
    digest = hashlib.md5((APP_ID_PREFIX + device_id).encode("utf-8")).hexdigest()
    return APP_ID_PREFIX + digest


async def fetch_secret(
    base_url: str,
    app_id: str,
    timeout: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """
    Fetch the application secret from ``{base_url}/secret``.

    The request is unsigned. Every failure is logged and yields "".

    Args:
        base_url: Cloud API base URL.
        app_id: Application id sent as the ``key`` query parameter.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests).

    Returns:
        The ``secret_key`` value, or "" on failure.
    """
    url = f"{base_url}/secret"
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url, params={"key": app_id})
    except httpx.HTTPError as e:
        logger.warning(
            "Failed to fetch application secret",
            extra={"url": url, "error": str(e) or type(e).__name__},
        )
        return ""

    if response.status_code != httpx.codes.OK:
        logger.warning(
            "Secret endpoint returned non-OK status",
            extra={"url": url, "status_code": response.status_code},
        )
        return ""

    try:
        data = response.json()
    except ValueError as e:
        logger.warning(
            "Secret endpoint returned invalid JSON",
            extra={"url": url, "error": str(e), "response": response.text},
        )
        return ""

    if not isinstance(data, dict):
        logger.warning("No secret returned from server", extra={"url": url})
        return ""

    secret = data.get("secret_key")
    if not isinstance(secret, str):
        logger.warning("Secret key not found in response", extra={"url": url})
        return ""

    return secret


# =============================================================================
# DeviceIdentity
# =============================================================================


@dataclass(frozen=True)
class DeviceIdentity:
    """
    Process-wide identity, built once at startup and read-only afterwards.

    Attributes:
        device_id: Stable device id.
        app_id: Application id derived from the device id.
        secret: Signing secret, empty when the fetch failed.
    """

    device_id: str
    app_id: str
    secret: str = field(default="", repr=False)

    @property
    def is_fallback(self) -> bool:
        """True when the device id came from a random seed."""
        return self.device_id.startswith(FALLBACK_PREFIX)

    @property
    def can_sign(self) -> bool:
        """True when a signing secret is available."""
        return bool(self.secret)

    @classmethod
    def from_device_id(cls, device_id: str, secret: str = "") -> DeviceIdentity:
        """Build an identity for a known device id."""
        return cls(device_id=device_id, app_id=derive_app_id(device_id), secret=secret)

    @classmethod
    async def bootstrap(
        cls,
        config: CloudConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> DeviceIdentity:
        """
        Derive the device and application ids and fetch the secret.

        Args:
            config: Cloud API configuration.
            transport: Optional httpx transport (tests).

        Returns:
            The process identity. Never raises on secret fetch failures.
        """
        device_id = generate_device_id()
        app_id = derive_app_id(device_id)
        secret = await fetch_secret(
            config.base_url,
            app_id,
            timeout=config.secret_timeout_seconds,
            transport=transport,
        )

        identity = cls(device_id=device_id, app_id=app_id, secret=secret)
        logger.info(
            "Device identity ready",
            extra={
                "device_id": identity.device_id,
                "app_id": identity.app_id,
                "fallback_seed": identity.is_fallback,
                "signing": identity.can_sign,
            },
        )
        if not identity.can_sign:
            logger.warning("No application secret, requests will be sent unsigned")
        return identity
