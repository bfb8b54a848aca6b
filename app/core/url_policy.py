"""Static policy data for outbound URL validation.

The lists live here rather than in the validator so policy updates are a
data change only.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from app.core.config import parse_csv, settings

BLOCKED_HOSTNAMES: tuple[str, ...] = (
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "::1",
    "169.254.169.254",  # AWS instance metadata
    "metadata.google.internal",  # GCP instance metadata
    "metadata.azure.com",  # Azure instance metadata
)

# 10.0.0.0/8, 172.16.0.0/12 and 192.168.0.0/16 as literal text prefixes
BLOCKED_IP_PREFIXES: tuple[str, ...] = (
    "10.",
    *(f"172.{octet}." for octet in range(16, 32)),
    "192.168.",
)

BLOCKED_SUFFIXES: tuple[str, ...] = (".local",)

ALLOWED_DOMAINS: tuple[str, ...] = (
    "linkedin.com",
    "twitter.com",
    "x.com",
    "github.com",
    "medium.com",
    "substack.com",
    "notion.site",
    "notion.so",
    "angel.co",
    "wellfound.com",
    "crunchbase.com",
    "producthunt.com",
)


@dataclass(frozen=True)
class UrlSafetyPolicy:
    """Host lists consulted by the URL validator.

    Attributes:
        blocked_hostnames: Rejected when equal to or contained in the hostname.
        blocked_ip_prefixes: Rejected when the hostname starts with one.
        blocked_suffixes: Rejected when the hostname ends with one.
        allowed_domains: Accepted (exactly or as parent domain) in allow-list mode.
    """

    blocked_hostnames: tuple[str, ...] = BLOCKED_HOSTNAMES
    blocked_ip_prefixes: tuple[str, ...] = BLOCKED_IP_PREFIXES
    blocked_suffixes: tuple[str, ...] = BLOCKED_SUFFIXES
    allowed_domains: tuple[str, ...] = ALLOWED_DOMAINS

    def with_allowed_domains(self, domains: list[str]) -> "UrlSafetyPolicy":
        """Return a copy whose allow-list also contains ``domains``."""
        extra = tuple(
            d.lower() for d in domains if d.lower() not in self.allowed_domains
        )
        return replace(self, allowed_domains=self.allowed_domains + extra)


DEFAULT_URL_POLICY = UrlSafetyPolicy()


def get_url_policy() -> UrlSafetyPolicy:
    """Default policy extended with SCRAPING_EXTRA_ALLOWED_DOMAINS."""
    extra = parse_csv(settings.scraping.extra_allowed_domains)
    if not extra:
        return DEFAULT_URL_POLICY
    return DEFAULT_URL_POLICY.with_allowed_domains(extra)
