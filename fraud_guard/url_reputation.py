"""
URL REPUTATION - Provider contract + bundled offline provider

FAIL-OPEN POLICY: when a reputation service cannot be reached, the URL is
reported SAFE with an explicit degraded-mode detail. Other signals
(content patterns, QR rules) still apply.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DETAIL_UNREACHABLE = "Scan service could not be reached."
DETAIL_INVALID = "Invalid URL format."
DETAIL_BLOCKLISTED = "This site is on the known threat list."
DETAIL_EICAR = "EICAR test URL detected."
DETAIL_CLEAN = "Not found on local threat list."

EICAR_URL = re.compile(r'eicar|malware\.testing\.google\.test', re.IGNORECASE)
VALID_HOSTNAME = re.compile(r'^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$|^(?:\d{1,3}\.){3}\d{1,3}$')

DEFAULT_BLOCKLIST = (
    "sbi-verify.tk",
    "secure-hdfc-login.com",
    "paytm-kyc-update.xyz",
    "icici-reward-points.ml",
    "free-recharge-offer.ga",
)


@dataclass
class URLReputation:
    is_safe: bool
    details: str
    degraded: bool = False


class URLReputationProvider(Protocol):
    async def check(self, url: str) -> URLReputation:
        ...


def extract_hostname(url: str) -> Optional[str]:
    """Lowercase hostname of `url`, or None when it is not a usable URL"""
    url = (url or "").strip()
    if not url:
        return None
    if "://" not in url:
        url = f"http://{url}"
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    if not hostname or not VALID_HOSTNAME.match(hostname):
        return None
    return hostname


class LocalBlocklistProvider:
    """Offline provider backed by a static host blocklist"""

    def __init__(self, blocklist: Iterable[str] = DEFAULT_BLOCKLIST):
        self.blocklist = {host.strip().lower() for host in blocklist if host and host.strip()}

    def is_blocklisted(self, hostname: str) -> bool:
        parts = hostname.split(".")
        return any(".".join(parts[i:]) in self.blocklist for i in range(len(parts) - 1))

    async def check(self, url: str) -> URLReputation:
        if EICAR_URL.search(url or ""):
            return URLReputation(is_safe=False, details=DETAIL_EICAR)

        hostname = extract_hostname(url)
        if hostname is None:
            return URLReputation(is_safe=False, details=DETAIL_INVALID)

        if self.is_blocklisted(hostname):
            return URLReputation(is_safe=False, details=DETAIL_BLOCKLISTED)

        return URLReputation(is_safe=True, details=DETAIL_CLEAN)


class FailOpenReputation:
    """Wraps any provider: errors and timeouts become SAFE + degraded"""

    def __init__(self, provider: URLReputationProvider, timeout_seconds: float = 5.0):
        self.provider = provider
        self.timeout_seconds = timeout_seconds

    async def check(self, url: str) -> URLReputation:
        try:
            return await asyncio.wait_for(self.provider.check(url), timeout=self.timeout_seconds)
        except Exception as e:
            logger.warning(f"⚠️ URL reputation lookup failed for {url!r}: {e!r}")
            return URLReputation(is_safe=True, details=DETAIL_UNREACHABLE, degraded=True)
