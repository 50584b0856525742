"""
QR SCANNER - Two-track QR payload analysis

PAYMENT QR   -> immediate local protection (UPI structure, payment scams,
                crypto, large amounts, embedded text). Strict thresholds.
NON-PAYMENT  -> URL reputation + embedded text + QR-specific patterns,
                minus a safe-source bonus. Lenient thresholds, only
                CRITICAL is blocked.

Embedded text goes through the message path via an injected async
callable returning a ThreatLevel-bearing verdict.
"""

import logging
import re
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Deque, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from .patterns import (
    PatternLibrary, QR_CRYPTO_RULES, QR_PHISHING_RULES, QR_SHORTENERS, QR_URGENCY_RULES,
    SAFE_QR_DOMAINS, SUSPICIOUS_PAYEE_NAMES, SUSPICIOUS_UPI_HANDLES, UPI_NOTE_RULES,
    all_matches, first_match,
)
from .risk_engine import NON_PAYMENT_QR_SCALE, PAYMENT_QR_SCALE
from .url_reputation import (
    FailOpenReputation, LocalBlocklistProvider, URLReputation, URLReputationProvider,
)
from .verdicts import ThreatLevel, clamp_score

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50
ANALYSIS_FAILED_WARNING = "Analysis failed - treat with caution"

# Message-path level -> points added to the QR score
TEXT_LEVEL_POINTS = {
    ThreatLevel.SAFE: 0,
    ThreatLevel.SUSPICIOUS: 25,
    ThreatLevel.HIGH_RISK: 50,
    ThreatLevel.CRITICAL: 75,
}

PAYMENT_WORDS = re.compile(r'\b(?:netbanking|payment|paynow|razorpay|paytm|phonepe|googlepay)\b', re.IGNORECASE)
CURRENCY_MARKERS = re.compile(r'₹|\brs\.|\binr\b|\brupees\b', re.IGNORECASE)
RUPEE_AMOUNT = re.compile(r'₹\s*(\d{1,3}(?:,\d{3})+|\d+)')
CRYPTO_WORDS = re.compile(r'bitcoin|btc|ethereum|crypto', re.IGNORECASE)
URL_TOKEN = re.compile(r'https?://[^\s<>"]+|www\.[^\s<>"]+|\b[a-z0-9][a-z0-9.-]*\.com\b[^\s<>"]*', re.IGNORECASE)
PROFILE_LINKS = ("youtube.com/watch", "github.com/", "linkedin.com/in/")


class QRCategory(str, Enum):
    PAYMENT = "PAYMENT"
    NON_PAYMENT = "NON_PAYMENT"


@dataclass
class QRVerdict:
    qr_type: str
    data: str
    category: QRCategory
    is_fraudulent: bool = False
    risk_level: ThreatLevel = ThreatLevel.SAFE
    risk_score: float = 0
    fraud_indicators: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    url_scan: Optional[URLReputation] = None
    degraded: bool = False
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict:
        return {
            "type": self.qr_type,
            "data": self.data,
            "category": self.category.value,
            "isFraudulent": self.is_fraudulent,
            "riskLevel": self.risk_level.value,
            "riskScore": self.risk_score,
            "fraudIndicators": list(self.fraud_indicators),
            "warnings": list(self.warnings),
            "urlScan": None if self.url_scan is None else {
                "isSafe": self.url_scan.is_safe,
                "details": self.url_scan.details,
                "degraded": self.url_scan.degraded,
            },
            "degraded": self.degraded,
            "timestamp": self.timestamp,
        }


@dataclass
class ScoreParts:
    score: float = 0
    indicators: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add(self, points: float, indicator: str, warning: Optional[str] = None):
        self.score += points
        self.indicators.append(indicator)
        if warning:
            self.warnings.append(warning)


def classify_qr_type(data: str) -> QRCategory:
    """PAYMENT when the payload asks to move money, else NON_PAYMENT"""
    lower = (data or "").lower()

    if lower.startswith("upi://pay") or "upi://pay?" in lower:
        return QRCategory.PAYMENT
    if "pa=" in lower and "am=" in lower:
        return QRCategory.PAYMENT
    if lower.startswith(("bitcoin:", "ethereum:")) or "bitcoin address" in lower or "wallet address" in lower:
        return QRCategory.PAYMENT
    if PAYMENT_WORDS.search(lower):
        return QRCategory.PAYMENT
    if "send money" in lower or ("transfer" in lower and "amount" in lower):
        return QRCategory.PAYMENT
    if CURRENCY_MARKERS.search(lower):
        return QRCategory.PAYMENT
    return QRCategory.NON_PAYMENT


def extract_url(data: str) -> Optional[str]:
    """First URL-looking token in the payload, trailing punctuation dropped"""
    match = URL_TOKEN.search(data or "")
    if not match:
        return None
    return match.group(0).rstrip(".,;:!?)'\"") or None


def analyze_upi(data: str) -> ScoreParts:
    parts = ScoreParts()
    try:
        parsed = urlparse(data)
        if parsed.scheme.lower() != "upi" or not parsed.query:
            raise ValueError("not a UPI payment URI")
        params = {k.lower(): v[0] for k, v in parse_qs(parsed.query).items()}
    except ValueError:
        parts.add(10, "Invalid UPI format", "UPI format appears malformed")
        return parts

    payee_address = params.get("pa", "")
    payee_name = params.get("pn", "")
    amount = params.get("am", "")
    note = params.get("tn", "")

    if any(handle in payee_address.lower() for handle in SUSPICIOUS_UPI_HANDLES):
        parts.add(80, f"Suspicious bank handle: {payee_address}")

    if any(name in payee_name.lower() for name in SUSPICIOUS_PAYEE_NAMES):
        parts.add(30, f"Suspicious merchant name: {payee_name}")

    if amount:
        try:
            value = float(amount)
        except ValueError:
            value = None
        if value is not None:
            if value > 100000:
                parts.add(20, f"High amount transaction: ₹{value:g}", "Verify high-value transaction carefully")
            if value <= 0:
                parts.add(50, f"Invalid amount: ₹{value:g}")

    if note and first_match(UPI_NOTE_RULES, note):
        parts.add(15, f"Suspicious transaction note: {note}")

    return parts


def analyze_payment_patterns(data: str, library: PatternLibrary) -> ScoreParts:
    parts = ScoreParts()

    matched = first_match(library.payment_fraud_rules, data)
    if matched:
        parts.add(matched.score, matched.description,
                  f"Payment fraud pattern detected: {matched.description}")

    if CRYPTO_WORDS.search(data):
        parts.add(25, "Cryptocurrency payment detected",
                  "Verify cryptocurrency payments carefully - irreversible")

    for match in RUPEE_AMOUNT.finditer(data):
        if int(match.group(1).replace(",", "")) > 50000:
            parts.add(15, f"Large amount mentioned: {match.group(0)}",
                      "Verify large payment amounts carefully")
            break

    return parts


def analyze_qr_patterns(qr_type: str, data: str) -> ScoreParts:
    parts = ScoreParts()
    qr_type = (qr_type or "UNKNOWN").upper()
    lower = data.lower()

    if qr_type in ("EMAIL", "SMS", "TEL"):
        parts.add(5, f"QR type requires verification: {qr_type}",
                  f"Verify {qr_type} requests are from legitimate sources")

    phishing = all_matches(QR_PHISHING_RULES, data)
    for matched in phishing:
        parts.add(matched.score, f"Suspicious text pattern: {matched.rule_id}")
    if phishing:
        parts.warnings.append("QR contains suspicious phishing-like text")

    if any(shortener in lower for shortener in QR_SHORTENERS):
        parts.add(10, "URL shortener detected",
                  "QR uses URL shortening - verify final destination is legitimate")

    crypto = all_matches(QR_CRYPTO_RULES, data)
    for matched in crypto:
        parts.add(matched.score, f"Cryptocurrency reference: {matched.rule_id}")
    if crypto:
        parts.warnings.append("Verify cryptocurrency payment requests carefully")

    urgency = all_matches(QR_URGENCY_RULES, data)
    for matched in urgency:
        parts.add(matched.score, f"Urgency language: {matched.rule_id}")
    if urgency:
        parts.warnings.append("QR content uses pressure tactics - be cautious")

    return parts


def safe_source_bonus(qr_type: str, data: str) -> int:
    """Points removed for payloads from well-known sources (0 when none)"""
    qr_type = (qr_type or "UNKNOWN").upper()
    lower = data.lower()
    bonus = 0

    if any(domain in lower for domain in SAFE_QR_DOMAINS):
        bonus = 15

    if qr_type == "URL":
        if data.startswith("https://"):
            bonus += 5
        if any(link in data for link in PROFILE_LINKS):
            bonus = 20

    if qr_type == "WIFI" or data.startswith("WIFI:"):
        bonus = 10
    if qr_type == "VCARD" or data.startswith("BEGIN:VCARD"):
        bonus = 10

    return bonus


TextAnalyzer = Callable[[str, str], Awaitable]


class QRScanner:
    """
    Scores QR payloads. `text_analyzer(text, sender_id)` must return an
    object with `.risk_level` (ThreatLevel) and `.explanation.summary`.
    """

    def __init__(
        self,
        text_analyzer: TextAnalyzer,
        reputation: Optional[URLReputationProvider] = None,
        library: Optional[PatternLibrary] = None,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.text_analyzer = text_analyzer
        self.reputation = FailOpenReputation(reputation or LocalBlocklistProvider())
        self.library = library or PatternLibrary()
        self.history: Deque[QRVerdict] = deque(maxlen=history_limit)

    async def analyze(self, qr_type: Optional[str], data: Optional[str]) -> QRVerdict:
        qr_type = qr_type if isinstance(qr_type, str) and qr_type else "UNKNOWN"
        data = data if isinstance(data, str) else ""
        category = classify_qr_type(data)
        result = QRVerdict(qr_type=qr_type, data=data, category=category)

        logger.info(f"🔍 Analyzing {category.value} QR ({qr_type}): {data[:100]!r}")
        try:
            if category == QRCategory.PAYMENT:
                await self._payment_protection(result)
            else:
                await self._detailed_analysis(result)
        except Exception:
            logger.exception("❌ QR analysis failed")
            result.warnings.append(ANALYSIS_FAILED_WARNING)
            result.risk_level = ThreatLevel.SUSPICIOUS
            result.risk_score = 50
            result.is_fraudulent = False
            result.degraded = True

        self.history.appendleft(result)
        if result.is_fraudulent:
            logger.warning(f"🚨 Fraudulent QR blocked: level={result.risk_level.value} score={result.risk_score}")
        return result

    async def _payment_protection(self, result: QRVerdict):
        result.warnings.append("Payment QR - Local security analysis applied")
        data = result.data

        parts: List[ScoreParts] = []
        if data.lower().startswith("upi://"):
            parts.append(analyze_upi(data))
        parts.append(analyze_payment_patterns(data, self.library))
        self._merge(result, parts)

        await self._add_text_analysis(result, "PAYMENT_QR")

        result.risk_score = clamp_score(result.risk_score)
        result.risk_level = PAYMENT_QR_SCALE.level_for(result.risk_score)
        result.is_fraudulent = PAYMENT_QR_SCALE.tier(result.risk_level) >= 2

    async def _detailed_analysis(self, result: QRVerdict):
        result.warnings.append("Non-payment QR - Detailed reputation analysis applied")
        data = result.data
        unsafe_url = False

        url = extract_url(data)
        if url:
            scan = await self.reputation.check(url)
            result.url_scan = scan
            result.degraded = scan.degraded
            if not scan.is_safe:
                unsafe_url = True
                result.risk_score += 80
                result.fraud_indicators.append(f"Malicious URL detected: {scan.details}")
                result.warnings.append("This QR code contains a dangerous link")
            elif scan.degraded:
                result.warnings.append(f"URL reputation unavailable: {scan.details}")
            else:
                result.warnings.append("URL verified safe by reputation check")

        await self._add_text_analysis(result, "QR_CODE")
        self._merge(result, [analyze_qr_patterns(result.qr_type, data)])

        bonus = safe_source_bonus(result.qr_type, data)
        if bonus and not unsafe_url:
            result.risk_score = max(0, result.risk_score - bonus)
            result.warnings.append("QR appears to be from a legitimate source")

        result.risk_score = clamp_score(result.risk_score)
        result.risk_level = NON_PAYMENT_QR_SCALE.level_for(result.risk_score)
        if unsafe_url:
            result.risk_level = ThreatLevel.CRITICAL
        result.is_fraudulent = result.risk_level == ThreatLevel.CRITICAL

    async def _add_text_analysis(self, result: QRVerdict, sender_id: str):
        text_result = await self.text_analyzer(result.data, sender_id)
        level = text_result.risk_level
        if level != ThreatLevel.SAFE:
            result.risk_score += TEXT_LEVEL_POINTS.get(level, 10)
            result.fraud_indicators.append(text_result.explanation.summary)

    @staticmethod
    def _merge(result: QRVerdict, parts: List[ScoreParts]):
        for part in parts:
            result.risk_score += part.score
            result.fraud_indicators.extend(part.indicators)
            result.warnings.extend(part.warnings)

    def get_history(self) -> List[QRVerdict]:
        return list(self.history)

    def clear_history(self):
        self.history.clear()

    def get_status(self) -> Dict:
        last = self.history[0] if self.history else None
        return {
            "total_scans": len(self.history),
            "fraudulent_scans": sum(1 for scan in self.history if scan.is_fraudulent),
            "last_scan_time": last.timestamp if last else None,
        }
