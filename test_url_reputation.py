"""
URL REPUTATION TESTS
Offline blocklist provider and the fail-open wrapper.
"""

import asyncio

from fraud_guard.url_reputation import (
    DETAIL_BLOCKLISTED, DETAIL_INVALID, DETAIL_UNREACHABLE, FailOpenReputation,
    LocalBlocklistProvider, extract_hostname,
)

provider = LocalBlocklistProvider(["evil.example", "sbi-verify.tk"])


class UnreachableProvider:
    async def check(self, url):
        raise ConnectionError("network down")


class HangingProvider:
    async def check(self, url):
        await asyncio.sleep(1)


def test_extract_hostname():
    assert extract_hostname("https://Secure.Example.com/login") == "secure.example.com"
    assert extract_hostname("www.example.com/path") == "www.example.com"
    assert extract_hostname("not a url") is None
    assert extract_hostname("") is None


def test_eicar_test_url_is_unsafe():
    result = asyncio.run(provider.check("http://malware.testing.google.test/testing/malware/"))
    assert not result.is_safe


def test_invalid_url():
    result = asyncio.run(provider.check("http://exa mple"))
    assert not result.is_safe
    assert result.details == DETAIL_INVALID


def test_blocklisted_host_and_subdomain():
    assert asyncio.run(provider.check("http://sbi-verify.tk/kyc")).details == DETAIL_BLOCKLISTED
    sub = asyncio.run(provider.check("https://login.evil.example/"))
    assert not sub.is_safe
    assert sub.details == DETAIL_BLOCKLISTED


def test_clean_url_is_safe():
    result = asyncio.run(provider.check("https://github.com/pallets/flask"))
    assert result.is_safe
    assert not result.degraded


def test_fail_open_on_network_error():
    result = asyncio.run(FailOpenReputation(UnreachableProvider()).check("https://example.com"))
    assert result.is_safe
    assert result.degraded
    assert result.details == DETAIL_UNREACHABLE


def test_fail_open_on_timeout():
    result = asyncio.run(FailOpenReputation(HangingProvider(), timeout_seconds=0.01).check("https://example.com"))
    assert result.is_safe
    assert result.degraded
