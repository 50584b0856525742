"""
QR SCANNER TESTS
Payment vs non-payment routing, UPI scoring, URL reputation and history.
"""

import asyncio
from types import SimpleNamespace

from fraud_guard.qr_scanner import (
    ANALYSIS_FAILED_WARNING, QRCategory, QRScanner, analyze_upi, classify_qr_type, extract_url,
    safe_source_bonus,
)
from fraud_guard.url_reputation import DETAIL_CLEAN, DETAIL_UNREACHABLE, LocalBlocklistProvider
from fraud_guard.verdicts import ThreatLevel


def text_result(level=ThreatLevel.SAFE, summary=""):
    return SimpleNamespace(risk_level=level, explanation=SimpleNamespace(summary=summary))


class StubTextAnalyzer:
    def __init__(self, level=ThreatLevel.SAFE):
        self.level = level
        self.calls = []

    async def __call__(self, text, sender_id):
        self.calls.append(sender_id)
        return text_result(self.level, f"text analysis: {self.level.value}")


class UnreachableProvider:
    async def check(self, url):
        raise ConnectionError("offline")


async def failing_text_analyzer(text, sender_id):
    raise RuntimeError("analyzer bug")


def scan(scanner, qr_type, data):
    return asyncio.run(scanner.analyze(qr_type, data))


def make_scanner(level=ThreatLevel.SAFE, reputation=None):
    return QRScanner(StubTextAnalyzer(level), reputation or LocalBlocklistProvider(["evil.example"]))


# ----------------------------------------------------------------------
# Classification
# ----------------------------------------------------------------------

def test_classify_payment_payloads():
    payment = [
        "upi://pay?pa=shop@okaxis&pn=Shop&am=10",
        "pa=shop@okaxis&am=10",
        "bitcoin:1BoatSLRHtKNngkdXEeobR76b53LETtpyT",
        "Send money to this wallet address",
        "Pay via Razorpay",
        "Transfer the amount today",
        "Rs. 500 due",
    ]
    for data in payment:
        assert classify_qr_type(data) == QRCategory.PAYMENT, data


def test_classify_non_payment_payloads():
    for data in ("https://github.com/psf/requests", "WIFI:S:Home;T:WPA;P:secret;;", "hello world"):
        assert classify_qr_type(data) == QRCategory.NON_PAYMENT, data


# ----------------------------------------------------------------------
# Payment path
# ----------------------------------------------------------------------

def test_lottery_payee_is_at_least_suspicious():
    result = scan(make_scanner(), "URL", "upi://pay?pa=freemoney@fake&pn=LOTTERY&am=1")
    assert result.category == QRCategory.PAYMENT
    assert result.risk_score >= 30
    assert result.risk_level != ThreatLevel.SAFE
    assert "Suspicious merchant name: LOTTERY" in result.fraud_indicators


def test_suspicious_handle_is_critical():
    result = scan(make_scanner(), "URL", "upi://pay?pa=refund@fakepay&pn=Shop&am=10")
    assert result.risk_level == ThreatLevel.CRITICAL
    assert result.is_fraudulent


def test_zero_amount_is_high_risk():
    result = scan(make_scanner(), "URL", "upi://pay?pa=shop@okaxis&pn=Shop&am=0")
    assert result.risk_score == 50
    assert result.risk_level == ThreatLevel.HIGH_RISK
    assert result.is_fraudulent


def test_malformed_upi():
    parts = analyze_upi("upi://pay")
    assert parts.score == 10
    assert parts.indicators == ["Invalid UPI format"]


def test_text_analysis_points_on_payment_path():
    analyzer = StubTextAnalyzer(ThreatLevel.HIGH_RISK)
    scanner = QRScanner(analyzer)
    result = scan(scanner, "TEXT", "Pay Rs. 10 to claim")
    assert result.risk_score == 50
    assert analyzer.calls == ["PAYMENT_QR"]


def test_large_rupee_amount_and_crypto():
    result = scan(make_scanner(), "TEXT", "Send ₹75,000 in bitcoin now")
    assert "Cryptocurrency payment detected" in result.fraud_indicators
    assert any(i.startswith("Large amount mentioned") for i in result.fraud_indicators)


# ----------------------------------------------------------------------
# Non-payment path
# ----------------------------------------------------------------------

def test_blocklisted_url_is_critical():
    result = scan(make_scanner(), "URL", "http://login.evil.example/verify")
    assert result.category == QRCategory.NON_PAYMENT
    assert result.risk_level == ThreatLevel.CRITICAL
    assert result.is_fraudulent
    assert not result.url_scan.is_safe


def test_extract_url_token():
    assert extract_url("Scan: https://sbi-verify.tk/kyc.") == "https://sbi-verify.tk/kyc"
    assert extract_url("Visit our store at shop.com for offers") == "shop.com"
    assert extract_url("hello world") is None


def test_domain_mentioned_in_text_is_checked_on_its_own():
    result = scan(make_scanner(), "TEXT", "Visit our store at shop.com for offers")
    assert result.url_scan.is_safe
    assert result.url_scan.details == DETAIL_CLEAN
    assert result.risk_level == ThreatLevel.SAFE
    assert not result.is_fraudulent


def test_blocklisted_link_inside_text():
    result = scan(make_scanner(), "TEXT", "Claim your reward at http://evil.example/claim now")
    assert result.risk_level == ThreatLevel.CRITICAL
    assert result.is_fraudulent


def test_known_https_profile_is_safe():
    result = scan(make_scanner(), "URL", "https://github.com/psf/requests")
    assert result.risk_level == ThreatLevel.SAFE
    assert result.risk_score == 0
    assert "QR appears to be from a legitimate source" in result.warnings


def test_safe_source_bonuses():
    assert safe_source_bonus("URL", "https://www.linkedin.com/in/someone") == 20
    assert safe_source_bonus("WIFI", "WIFI:S:Home;;") == 10
    assert safe_source_bonus("VCARD", "BEGIN:VCARD\nFN:Someone\nEND:VCARD") == 10
    assert safe_source_bonus("TEXT", "plain") == 0


def test_phishing_text_is_suspicious_but_not_blocked():
    result = scan(make_scanner(), "TEXT", "URGENT action required: account suspended, click here")
    assert result.risk_score == 60
    assert result.risk_level == ThreatLevel.SUSPICIOUS
    assert not result.is_fraudulent


def test_reputation_outage_fails_open():
    result = scan(make_scanner(reputation=UnreachableProvider()), "URL", "http://unknown-site.example/")
    assert result.url_scan.is_safe
    assert result.url_scan.details == DETAIL_UNREACHABLE
    assert result.degraded
    assert not result.is_fraudulent


def test_internal_error_is_suspicious():
    scanner = QRScanner(failing_text_analyzer)
    result = scan(scanner, "TEXT", "hello")
    assert result.risk_level == ThreatLevel.SUSPICIOUS
    assert result.risk_score == 50
    assert ANALYSIS_FAILED_WARNING in result.warnings


def test_missing_type_defaults_to_unknown():
    result = scan(make_scanner(), None, "hello")
    assert result.qr_type == "UNKNOWN"


# ----------------------------------------------------------------------
# History
# ----------------------------------------------------------------------

def test_history_keeps_last_fifty_scans():
    scanner = make_scanner()
    for i in range(55):
        scan(scanner, "TEXT", f"note {i}")
    history = scanner.get_history()
    assert len(history) == 50
    assert history[0].data == "note 54"


def test_status_and_clear_history():
    scanner = make_scanner()
    scan(scanner, "URL", "upi://pay?pa=refund@fakepay&pn=Shop&am=10")
    scan(scanner, "TEXT", "hello")

    status = scanner.get_status()
    assert status["total_scans"] == 2
    assert status["fraudulent_scans"] == 1
    assert status["last_scan_time"] is not None

    scanner.clear_history()
    assert scanner.get_status() == {"total_scans": 0, "fraudulent_scans": 0, "last_scan_time": None}
