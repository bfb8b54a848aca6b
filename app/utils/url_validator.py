"""URL validation for SSRF protection.

Validates URLs before any server-side fetch (contact enrichment scraping) so
that user-supplied links cannot reach loopback, private-network or cloud
metadata endpoints.

Rules run in a fixed order and the first failing rule wins:
1. Parse as an absolute URL
2. Scheme must be https
3. Hostname must not match a blocked hostname (substring match)
4. Hostname must not start with a private-network prefix
5. Hostname must not end with .local
6. Optionally, hostname must belong to an allow-listed domain

Host checks are textual: alternate IP notations (hex, integer, IPv4-mapped
IPv6) are not normalized and pass rules 3 and 4.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable
from urllib.parse import urlsplit

from app.core.url_policy import DEFAULT_URL_POLICY, UrlSafetyPolicy

logger = logging.getLogger(__name__)

# Schemes that cannot be valid without a host component
_HOST_REQUIRED_SCHEMES = {"http", "https", "ws", "wss", "ftp"}

# Code points a URL host may never contain (WHATWG forbidden domain code points,
# minus ":" which only survives urlsplit inside bracketed IPv6 literals)
_FORBIDDEN_HOST_CHARS = frozenset(
    [chr(c) for c in range(0x21)] + list("#/<>?@[\\]^|%\x7f")
)


class UrlRejectionReason(str, Enum):
    MALFORMED_URL = "malformed_url"
    INSECURE_SCHEME = "insecure_scheme"
    BLOCKED_HOSTNAME = "blocked_hostname"
    PRIVATE_NETWORK = "private_network"
    LOCAL_DOMAIN = "local_domain"
    NOT_ALLOWLISTED = "not_allowlisted"


@dataclass(frozen=True)
class UrlSafetyDecision:
    """Outcome of validating one URL.

    Attributes:
        url: The input string.
        scheme: Parsed scheme (lower-case) or None if unparseable.
        hostname: Parsed lower-case hostname or None.
        reason: Rejection reason, None when the URL is safe.
    """

    url: str
    scheme: str | None = None
    hostname: str | None = None
    reason: UrlRejectionReason | None = None

    @property
    def safe(self) -> bool:
        return self.reason is None


@dataclass
class UrlPartition:
    """URLs bucketed by validity, input order preserved within each bucket."""

    valid: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)


def _parse(url: str) -> tuple[str, str | None] | None:
    """Return (scheme, hostname) or None if ``url`` is not an absolute URL."""
    if not isinstance(url, str) or not url.strip():
        return None

    try:
        parts = urlsplit(url.strip())
        # Accessing .port validates the port component
        parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if not scheme:
        return None

    hostname = parts.hostname
    if scheme in _HOST_REQUIRED_SCHEMES and not hostname:
        return None
    if hostname and not _is_valid_host(hostname):
        return None

    return scheme, hostname.lower() if hostname else None


def _is_valid_host(hostname: str) -> bool:
    if any(char in _FORBIDDEN_HOST_CHARS for char in hostname):
        return False
    if ":" in hostname:
        return True

    # A single trailing dot (fully qualified name) is allowed
    labels = hostname[:-1].split(".") if hostname.endswith(".") else hostname.split(".")
    return all(labels)


def _reject(
    url: str,
    reason: UrlRejectionReason,
    *,
    scheme: str | None = None,
    hostname: str | None = None,
) -> UrlSafetyDecision:
    logger.warning(
        "url_validation.rejected",
        extra={
            "reason": reason.value,
            "url": url,
            "hostname": hostname,
        },
    )
    return UrlSafetyDecision(url=url, scheme=scheme, hostname=hostname, reason=reason)


def _is_allowlisted(hostname: str, allowed_domains: Iterable[str]) -> bool:
    return any(
        hostname == domain or hostname.endswith(f".{domain}")
        for domain in allowed_domains
    )


def check_url(
    url: str,
    enforce_allowlist: bool = False,
    policy: UrlSafetyPolicy | None = None,
) -> UrlSafetyDecision:
    """Validate a URL for safe server-side fetching.

    Args:
        url: Candidate URL.
        enforce_allowlist: If True, only allow-listed domains pass.
        policy: Host lists to apply; defaults to the built-in policy.

    Returns:
        UrlSafetyDecision naming the first rule that rejected the URL, or a
        safe decision. Never raises for malformed input.
    """
    policy = policy or DEFAULT_URL_POLICY

    parsed = _parse(url)
    if parsed is None:
        return _reject(url, UrlRejectionReason.MALFORMED_URL)
    scheme, hostname = parsed

    if scheme != "https":
        return _reject(url, UrlRejectionReason.INSECURE_SCHEME, scheme=scheme, hostname=hostname)

    if not hostname:
        return _reject(url, UrlRejectionReason.MALFORMED_URL, scheme=scheme)

    if any(blocked == hostname or blocked in hostname for blocked in policy.blocked_hostnames):
        return _reject(url, UrlRejectionReason.BLOCKED_HOSTNAME, scheme=scheme, hostname=hostname)

    if hostname.startswith(policy.blocked_ip_prefixes):
        return _reject(url, UrlRejectionReason.PRIVATE_NETWORK, scheme=scheme, hostname=hostname)

    if hostname.endswith(policy.blocked_suffixes):
        return _reject(url, UrlRejectionReason.LOCAL_DOMAIN, scheme=scheme, hostname=hostname)

    if enforce_allowlist and policy.allowed_domains:
        if not _is_allowlisted(hostname, policy.allowed_domains):
            return _reject(url, UrlRejectionReason.NOT_ALLOWLISTED, scheme=scheme, hostname=hostname)

    return UrlSafetyDecision(url=url, scheme=scheme, hostname=hostname)


def is_safe_to_fetch(
    url: str,
    enforce_allowlist: bool = False,
    policy: UrlSafetyPolicy | None = None,
) -> bool:
    """Return True if ``url`` passes every SSRF rule."""
    return check_url(url, enforce_allowlist, policy).safe


def partition_urls(
    urls: Iterable[str],
    enforce_allowlist: bool = False,
    policy: UrlSafetyPolicy | None = None,
) -> UrlPartition:
    """Split ``urls`` into safe and unsafe buckets.

    Args:
        urls: Candidate URLs.
        enforce_allowlist: If True, only allow-listed domains pass.
        policy: Host lists to apply; defaults to the built-in policy.

    Returns:
        UrlPartition covering every input exactly once.
    """
    partition = UrlPartition()
    for url in urls:
        if is_safe_to_fetch(url, enforce_allowlist, policy):
            partition.valid.append(url)
        else:
            partition.invalid.append(url)
    return partition


def extract_hostname(url: str) -> str | None:
    """Extract the hostname for logging/reporting; None when unparseable."""
    parsed = _parse(url)
    if parsed is None:
        return None
    return parsed[1]
