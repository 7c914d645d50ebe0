"""SSRF guard for URLs the server is asked to fetch on a caller's behalf.

The check is purely syntactic: the hostname string is compared against
denylists and private address ranges. DNS is never resolved here, so a public
name that later resolves to an internal address is not caught.
"""

from __future__ import annotations

import ipaddress
import logging
import re
import socket
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from webguard.security.errors import (
    BlockedHost,
    BlockedScheme,
    InvalidUrl,
    SecurityValidationError,
)

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1F\x7F]")
_IPV4_PART_RE = re.compile(r"^(0x[0-9a-f]*|[0-9]+)$")

DEFAULT_BLOCKED_HOSTS = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "0.0.0.0",
        "169.254.169.254",  # AWS metadata
        "metadata.google.internal",  # GCP metadata
        "metadata.azure.com",  # Azure metadata
    }
)

DEFAULT_BLOCKED_NETWORKS: tuple[IPNetwork, ...] = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "0.0.0.0/8",
        "169.254.0.0/16",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
)

# Matched against the raw, lower-cased input to catch payloads that a lenient
# parser would otherwise accept under an http(s) scheme.
DEFAULT_DANGEROUS_SCHEMES = ("file:", "ftp:", "gopher:", "dict:", "ldap:")


@dataclass(frozen=True, slots=True)
class SsrfPolicy:
    allowed_schemes: frozenset[str] = frozenset({"http", "https"})
    dangerous_schemes: tuple[str, ...] = DEFAULT_DANGEROUS_SCHEMES
    blocked_hosts: frozenset[str] = DEFAULT_BLOCKED_HOSTS
    blocked_networks: tuple[IPNetwork, ...] = field(default=DEFAULT_BLOCKED_NETWORKS)

    def is_blocked_address(self, address: IPAddress) -> bool:
        candidates: list[IPAddress] = [address]
        if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
            candidates.append(address.ipv4_mapped)
        return any(
            candidate.version == network.version and candidate in network
            for candidate in candidates
            for network in self.blocked_networks
        )


DEFAULT_SSRF_POLICY = SsrfPolicy()


def _rejected(exc: SecurityValidationError) -> SecurityValidationError:
    logger.debug(
        "External URL rejected",
        extra={"event": "ssrf.url.rejected", "kind": exc.kind},
    )
    return exc


def _parse_legacy_ipv4(hostname: str) -> ipaddress.IPv4Address | None:
    """Normalise shorthand IPv4 forms such as ``127.1`` or ``0x7f000001``."""
    parts = hostname.split(".")
    if len(parts) > 4 or not all(_IPV4_PART_RE.match(part) for part in parts):
        return None
    try:
        packed = socket.inet_aton(hostname)
    except OSError:
        return None
    return ipaddress.IPv4Address(packed)


def _parse_ip_literal(hostname: str) -> IPAddress | None:
    # Zone identifiers ("fe80::1%eth0") do not change the address range.
    candidate = hostname.split("%", 1)[0]
    try:
        return ipaddress.ip_address(candidate)
    except ValueError:
        pass
    return _parse_legacy_ipv4(candidate)


def validate_external_url(
    url: str | object,
    *,
    policy: SsrfPolicy = DEFAULT_SSRF_POLICY,
) -> str:
    """Validate a URL before the server fetches it.

    Returns the stripped URL when allowed. Raises ``InvalidUrl``,
    ``BlockedScheme`` or ``BlockedHost`` otherwise.
    """
    raw_url = str(url or "").strip()
    if not raw_url or _CONTROL_CHARS_RE.search(raw_url):
        raise _rejected(InvalidUrl("Invalid URL format"))

    try:
        parsed = urlsplit(raw_url)
        _ = parsed.port
    except ValueError:
        raise _rejected(InvalidUrl("Invalid URL format")) from None

    scheme = parsed.scheme.lower()
    if not scheme:
        raise _rejected(InvalidUrl("Invalid URL format"))
    if scheme not in policy.allowed_schemes:
        raise _rejected(BlockedScheme(f"Blocked protocol: {scheme}:"))

    lowered = raw_url.lower()
    for dangerous in policy.dangerous_schemes:
        if dangerous in lowered:
            raise _rejected(BlockedScheme(f"Blocked scheme detected: {dangerous}"))

    hostname = (parsed.hostname or "").lower().rstrip(".")
    if not hostname:
        raise _rejected(InvalidUrl("Invalid URL format"))
    if hostname in policy.blocked_hosts:
        raise _rejected(BlockedHost(f"Blocked host: {hostname}"))

    address = _parse_ip_literal(hostname)
    if address is not None and policy.is_blocked_address(address):
        raise _rejected(BlockedHost(f"Private IP range blocked: {hostname}"))

    return raw_url


def is_internal_url(url: str | object, *, policy: SsrfPolicy = DEFAULT_SSRF_POLICY) -> bool:
    """Return True when ``url`` must not be fetched server-side."""
    try:
        validate_external_url(url, policy=policy)
    except SecurityValidationError:
        return True
    return False
