"""
PATTERN LIBRARY - Declarative, versioned rule tables for fraud detection
Indian SMS / UPI / QR fraud patterns

RULE TABLE DESIGN:
1. Every rule is DATA: (rule_id, tag, pattern, score, description)
2. Rules are grouped by purpose (sender, content, links, QR, photo)
3. Content rules are NARROW: routine bank notifications ("Dear Customer",
   "Rs.5000 credited", "do not share your OTP") must not match
4. Tables can be replaced at startup from a JSON file (PatternLibrary.load)
5. Every rule can be tested in isolation via Rule.search()
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .verdicts import SenderType

logger = logging.getLogger(__name__)

PATTERN_LIBRARY_VERSION = "2.3.0"

# Content tags (stable, user-visible)
TAG_URGENCY = "Urgency Language"
TAG_THREAT = "Threat Language"
TAG_REWARD = "Fake Reward/Prize Claim"
TAG_HARVESTING = "Information Harvesting"
TAG_SOCIAL = "Social Engineering"
TAG_LINKS = "Suspicious Links"

CONTENT_TAGS = (TAG_URGENCY, TAG_THREAT, TAG_REWARD, TAG_HARVESTING, TAG_SOCIAL)

TACTICS = {
    TAG_URGENCY: "Creates false urgency to pressure immediate action",
    TAG_THREAT: "Uses fear tactics and threats",
    TAG_REWARD: "Offers fake rewards to entice victims",
    TAG_HARVESTING: "Attempts to steal personal/financial information",
    TAG_SOCIAL: "Uses psychological manipulation techniques",
}


@dataclass(frozen=True)
class Rule:
    """A single declarative detection rule"""
    rule_id: str
    tag: str
    pattern: re.Pattern
    score: int = 0
    description: str = ""

    def search(self, text: str) -> Optional[re.Match]:
        return self.pattern.search(text or "")


def rule(rule_id: str, tag: str, regex: str, score: int = 0,
         description: str = "", flags: int = re.IGNORECASE) -> Rule:
    return Rule(rule_id, tag, re.compile(regex, flags), score, description)


def first_match(rules: Iterable[Rule], text: str) -> Optional[Rule]:
    for candidate in rules:
        if candidate.search(text):
            return candidate
    return None


def all_matches(rules: Iterable[Rule], text: str) -> List[Rule]:
    return [candidate for candidate in rules if candidate.search(text)]


# =====================================================================
# SENDER TABLES
# =====================================================================

LEGITIMATE_SHORTCODES: Dict[str, Tuple[str, SenderType]] = {
    "SBIINB": ("State Bank of India", SenderType.BANK),
    "HDFCBK": ("HDFC Bank", SenderType.BANK),
    "ICICIB": ("ICICI Bank", SenderType.BANK),
    "AXISBK": ("Axis Bank", SenderType.BANK),
    "PNBSMS": ("Punjab National Bank", SenderType.BANK),
    "KOTAKB": ("Kotak Mahindra Bank", SenderType.BANK),
    "UIDAI": ("Unique Identification Authority of India", SenderType.GOVERNMENT),
    "EPFINDIA": ("Employees' Provident Fund Organisation", SenderType.GOVERNMENT),
    "CBDTAX": ("Income Tax Department", SenderType.GOVERNMENT),
    "PAYTM": ("Paytm", SenderType.BUSINESS),
    "GPAY": ("Google Pay", SenderType.BUSINESS),
    "PHONEPE": ("PhonePe", SenderType.BUSINESS),
}

LEGITIMATE_SENDER_RULES: List[Rule] = [
    rule("legit_bank_header", "legitimate_sender",
         r'^(?:SBIINB|HDFCBK|ICICIB|AXISBK|PNBSMS|BOBSMS|CANBNK|UNIONB|IOBSMS|KOTAKB)$'),
    rule("legit_government_header", "legitimate_sender",
         r'^(?:UIDAI|EPFINDIA|CBDTAX|PFUND|RAILWY|IRCTCI)$'),
    rule("legit_merchant_header", "legitimate_sender",
         r'^(?:AMAZON|FLPKRT|FLIPKART|PAYTM|GPAY|PHONEPE|BHIMUPI|IRCTC|ZOMATO|SWIGGY|UBER|OLACAB)$'),
]

SUSPICIOUS_SENDER_RULES: List[Rule] = [
    rule("fake_bank_alert", "suspicious_sender",
         r'^(?:SBI|HDFC|ICICI|AXIS|PNB|BOB|CANARA|UNION|INDIAN|KOTAK)[-_]?'
         r'(?:BANK|BNK|ALERT|OTP|INFO|MSG)[0-9]*$'),
    rule("bank_name_with_digits", "suspicious_sender",
         r'^(?:SBI|HDFC|ICICI|AXIS|PNB|BOB|CANARA|UNION|INDIAN|KOTAK)[0-9]+$'),
    rule("fake_government", "suspicious_sender",
         r'^(?:AADHAAR|AADHAR|UIDAI|EPFO|PF|INCOME|TAX|IT|DEPT|GOV|GOVT)[0-9]*$'),
    rule("fake_law_enforcement", "suspicious_sender",
         r'^(?:POLICE|COURT|LEGAL|CYBER|CRIME|CBI|ED|RBI)[0-9]*$'),
    rule("alphanumeric_code", "suspicious_sender", r'^[A-Z]{2,6}[0-9]{3,6}$'),
    rule("bare_numeric_code", "suspicious_sender", r'^[0-9]{6,10}$'),
]

BANK_IMPERSONATION = re.compile(r'SBI|HDFC|ICICI|AXIS|PNB|KOTAK|BANK|BNK')
GOVERNMENT_IMPERSONATION = re.compile(r'UIDAI|AADHA|GOV|EPFO|INCOME|TAX|POLICE|COURT|CYBER|CBI|RBI')

TYPOSQUAT_TARGETS: List[str] = ["SBIINB", "HDFCBK", "ICICIB", "AXISBK", "PAYTM", "UIDAI", "EPFINDIA"]

PHONE_SHAPE = re.compile(r'^[+]?[0-9\s\-()]{10,15}$')
DLT_PREFIX = re.compile(r'^[A-Z]{2}-(?=[A-Z0-9]{5,})')


# =====================================================================
# CONTENT RULES
# =====================================================================

# Lookbehinds keep safety advice ("do not share your OTP") from matching
_NOT_NEGATED = r"(?<!not\s)(?<!never\s)(?<!n't\s)"

CONTENT_RULES: List[Rule] = [
    # URGENCY
    rule("urgency_immediate", TAG_URGENCY,
         r'\b(?:urgent(?:ly)?|immediate(?:ly)?|asap|act\s+now|right\s+now|hurry(?:\s+up)?)\b'),
    rule("urgency_deadline", TAG_URGENCY,
         r'\b(?:last\s+chance|final\s+(?:notice|warning|reminder)|limited\s+time|deadline|'
         r'time[-\s]sensitive|expires?\s+today|expiring\s+today)\b'),
    rule("urgency_window", TAG_URGENCY,
         r'\bwithin\s+(?:the\s+next\s+)?\d+\s*(?:hours?|hrs?|minutes?|mins?|days?)\b|'
         r'\b(?:today|tonight)\s+(?:only|itself)\b|'
         r'\bbefore\s+(?:midnight|tonight|end\s+of\s+(?:the\s+)?day)\b'),

    # THREAT
    rule("threat_account_blocked", TAG_THREAT,
         r'\b(?:has|have)\s+been\s+(?:temporarily\s+|permanently\s+)?'
         r'(?:blocked|suspended|deactivated|frozen|locked|disabled|terminated|barred)\b'),
    rule("threat_will_be_blocked", TAG_THREAT,
         r'\bwill\s+be\s+(?:temporarily\s+|permanently\s+)?'
         r'(?:blocked|suspended|deactivated|frozen|locked|disabled|terminated|barred|closed)\b'),
    rule("threat_status", TAG_THREAT,
         r'\b(?:account|card|sim|kyc|upi|wallet|number)\s+(?:is\s+)?'
         r'(?:blocked|suspended|deactivated|frozen|locked)\b'),
    rule("threat_legal", TAG_THREAT,
         r'\b(?:legal\s+action|arrest(?:ed)?|arrest\s+warrant|police\s+(?:case|complaint|action)|'
         r'court\s+(?:case|notice|summons)|penalty|jail)\b'),
    rule("threat_reactivate", TAG_THREAT,
         r'\b(?:re-?activate|unblock|unfreeze|restore\s+(?:your\s+)?(?:account|access|service))\b'),

    # REWARD
    rule("reward_winner", TAG_REWARD,
         r'\b(?:congratulations|congrats|winner|lottery|jackpot|lucky\s+draw|you\s+(?:have\s+)?won|prize)\b'),
    rule("reward_claim", TAG_REWARD,
         r'\b(?:claim|redeem|collect)\s+(?:your\s+)?(?:free\s+)?'
         r'(?:reward|prize|cash(?:back)?|gift|bonus|refund|money|voucher)\b'),
    rule("reward_free_money", TAG_REWARD,
         r'\bfree\s+(?:gift|money|cash|recharge|iphone|voucher)\b|\bcash\s*prize\b'),
    rule("reward_large_amount", TAG_REWARD, r'\b\d+(?:\.\d+)?\s*(?:lakhs?|lacs?|crores?)\b'),

    # INFORMATION HARVESTING
    rule("harvest_credentials", TAG_HARVESTING,
         _NOT_NEGATED +
         r'\b(?:share|send|tell|give|provide|forward|reply\s+with)\b[\w\s]{0,20}?'
         r'\b(?:otp|o\.t\.p|pin|mpin|cvv|password|passcode|verification\s+code|'
         r'card\s+(?:number|details)|account\s+(?:number|details)|login\s+details|credentials)\b'),
    rule("harvest_click_link", TAG_HARVESTING,
         r'\b(?:click|tap|visit|open)\b[\w\s]{0,15}?\b(?:link|here|url|below)\b'),
    rule("harvest_verify_details", TAG_HARVESTING,
         r'\b(?:verify|update|complete|confirm|validate|re-?submit)\s+(?:your\s+)?'
         r'(?:account|kyc|pan|aadhaa?r|bank\s+details|identity|details|credentials)\b'),
    rule("harvest_remote_access", TAG_HARVESTING,
         r'\b(?:download|install)\b[\w\s]{0,15}?\b(?:app|apk|anydesk|teamviewer|quick\s*support)\b|'
         r'\b(?:anydesk|teamviewer|screen\s+shar(?:e|ing))\b'),

    # SOCIAL ENGINEERING
    rule("social_flattering_greeting", TAG_SOCIAL,
         r'\b(?:valued|respected|esteemed|lucky|beloved)\s+(?:customer|user|member|winner|friend|client)\b|'
         r'\bdear\s+(?:friend|winner|beneficiary|sir\s*/\s*madam)\b'),
    rule("social_secrecy", TAG_SOCIAL,
         r"\b(?:do\s+not|don't)\s+(?:tell|inform)\s+(?:anyone|anybody|your\s+family|the\s+bank)\b|"
         r'\bkeep\s+(?:this|it)\s+(?:confidential|secret)\b'),
    rule("social_authority_claim", TAG_SOCIAL,
         r'\bthis\s+is\s+(?:an?\s+)?(?:official|authori[sz]ed)\b|'
         r'\b(?:calling|writing)\s+from\s+(?:the\s+)?(?:rbi|reserve\s+bank|income\s+tax|cyber\s+(?:cell|crime)|police|customs)\b|'
         r'\bon\s+behalf\s+of\s+(?:the\s+)?(?:bank|rbi|government)\b'),
    rule("social_selected", TAG_SOCIAL,
         r'\byou\s+(?:have\s+been|are|were)\s+(?:specially\s+)?(?:selected|chosen|shortlisted)\b'),
    rule("social_channel_pressure", TAG_SOCIAL,
         r'\b(?:call|contact|whatsapp)\s+(?:us\s+|me\s+)?(?:immediately|urgently|now)\b|'
         r'\b(?:call|contact)\b[\w\s]{0,20}?\bto\s+(?:avoid|claim|stop|unblock|activate|reactivate)\b'),
]

LINK_RULES: List[Rule] = [
    rule("link_shortener", TAG_LINKS,
         r'\b(?:bit\.ly|tinyurl\.com|t\.co|goo\.gl|short\.link|tiny\.cc|ow\.ly|is\.gd|'
         r'cutt\.ly|rb\.gy|rebrand\.ly|buff\.ly)\b',
         description="Uses URL shorteners to hide true destination"),
    rule("link_throwaway_tld", TAG_LINKS,
         r'\b[a-z0-9][a-z0-9-]*\.(?:tk|ml|ga|cf|gq|pw|xyz|top|click|download|zip)\b(?![.\w])',
         description="Uses suspicious free domain extensions"),
    rule("link_phishing_subdomain", TAG_LINKS,
         r'\b(?:secure|bank|verify|update|confirm|login|kyc)-[a-z0-9-]+\.[a-z]{2,}',
         description="Uses phishing-like subdomain structure"),
    rule("link_bare_ip", TAG_LINKS,
         r'https?://(?:\d{1,3}\.){3}\d{1,3}\b',
         description="Uses IP address instead of proper domain name"),
]

CALLBACK_NUMBER = rule("callback_number", "suspicious_element",
                       r'(?<!\d)(?:\+91[\-\s]?|91[\-\s]?)?[6-9]\d{9}(?!\d)',
                       description="Contains additional phone numbers for callback")

FINANCIAL_TERMS = rule("financial_terms", "suspicious_element",
                       r'₹|\b(?:rs\.?|inr|rupees?|account|bank|card|otp|cvv|pin|loan|emi|payment|'
                       r'balance|credit(?:ed)?|debit(?:ed)?|upi|wallet)\b',
                       description="Combines financial terms with fraud patterns")

# Language quality
CAPS_RATIO_LIMIT = 0.3
REPEATED_PUNCTUATION = re.compile(r'!{2,}|\?{2,}|\.{3,}')
COMMON_MISSPELLINGS = re.compile(
    r'\b(?:recieve|seperate|teh|acount|verfiy|imediately|expier|adress|sucessful|benificiary|pasword)\b',
    re.IGNORECASE,
)


# =====================================================================
# QR / PHOTO RULES (score-bearing)
# =====================================================================

SUSPICIOUS_UPI_HANDLES = ["fakepay", "scambank", "fraudpay", "tempbank"]
SUSPICIOUS_PAYEE_NAMES = ["freemoney", "lottery", "winner", "prize", "urgent"]

UPI_NOTE_RULES: List[Rule] = [
    rule("note_urgent", "upi_note", r'urgent'),
    rule("note_emergency", "upi_note", r'emergency'),
    rule("note_lottery", "upi_note", r'lottery'),
    rule("note_prize", "upi_note", r'prize'),
    rule("note_free_money", "upi_note", r'free.*money'),
]

PAYMENT_FRAUD_RULES: List[Rule] = [
    rule("pay_urgent_transfer", "payment_fraud", r'send.*money.*urgent', 40,
         "Urgent money transfer request"),
    rule("pay_lottery_winner", "payment_fraud", r'lottery.*winner.*pay', 50,
         "Lottery winner payment scam"),
    rule("pay_free_money", "payment_fraud", r'free.*money.*claim', 45,
         "Free money claim scam"),
    rule("pay_tax_refund", "payment_fraud", r'tax.*refund.*payment', 35,
         "Fake tax refund scam"),
]

QR_PHISHING_RULES: List[Rule] = [
    rule("qr_action_required", "qr_phishing", r'urgent.*action.*required', 25),
    rule("qr_verify_now", "qr_phishing", r'verify.*account.*immediately', 25),
    rule("qr_suspended_click", "qr_phishing", r'suspended.*click.*here', 25),
    rule("qr_free_money", "qr_phishing", r'free.*money.*claim', 25),
    rule("qr_lottery_prize", "qr_phishing", r'won.*lottery.*prize', 25),
    rule("qr_tax_refund", "qr_phishing", r'tax.*refund.*claim', 25),
    rule("qr_crypto_transfer", "qr_phishing", r'bitcoin.*wallet.*transfer', 25),
    rule("qr_crypto_investment", "qr_phishing", r'crypto.*investment.*opportunity', 25),
]

QR_CRYPTO_RULES: List[Rule] = [
    rule("qr_bitcoin_address", "qr_crypto", r'bitcoin.*address', 30),
    rule("qr_ethereum_wallet", "qr_crypto", r'ethereum.*wallet', 30),
    rule("qr_crypto_payment", "qr_crypto", r'crypto.*payment', 30),
    rule("qr_wallet_address", "qr_crypto", r'wallet.*address', 30),
    rule("qr_send_btc", "qr_crypto", r'send.*btc', 30),
    rule("qr_send_eth", "qr_crypto", r'send.*eth', 30),
]

QR_URGENCY_RULES: List[Rule] = [
    rule("qr_urgent", "qr_urgency", r'urgent', 10),
    rule("qr_immediate", "qr_urgency", r'immediate', 10),
    rule("qr_expire", "qr_urgency", r'expire', 10),
    rule("qr_limited_time", "qr_urgency", r'limited.*time', 10),
    rule("qr_act_now", "qr_urgency", r'act.*now', 10),
    rule("qr_hurry", "qr_urgency", r'hurry', 10),
    rule("qr_deadline", "qr_urgency", r'deadline', 10),
    rule("qr_final_notice", "qr_urgency", r'final.*notice', 10),
]

QR_SHORTENERS = ["bit.ly", "tinyurl.com", "short.link", "rebrand.ly", "ow.ly", "buff.ly", "t.co", "goo.gl"]

SAFE_QR_DOMAINS = [
    "google.com", "youtube.com", "facebook.com", "instagram.com", "twitter.com",
    "linkedin.com", "microsoft.com", "apple.com", "amazon.com", "netflix.com",
    "spotify.com", "github.com", "stackoverflow.com", "wikipedia.org", "medium.com",
]

PHOTO_SCREENSHOT_RULES: List[Rule] = [
    rule("photo_fake_balance", "photo_screenshot", r'account.*balance.*₹?\s*\d+', 30,
         "Fake bank balance screenshot"),
    rule("photo_fake_payment", "photo_screenshot", r'payment.*successful.*₹?\s*\d+', 25,
         "Fake payment confirmation"),
    rule("photo_fake_transaction", "photo_screenshot", r'transaction.*completed.*₹?\s*\d+', 25,
         "Fake transaction proof"),
    rule("photo_upi_id", "photo_screenshot", r'upi.*id.*\d+', 20, "UPI ID in screenshot"),
    rule("photo_fake_wallet", "photo_screenshot", r'paytm.*wallet.*₹?\s*\d+', 20,
         "Fake Paytm wallet screenshot"),
]

PHOTO_DOCUMENT_RULES: List[Rule] = [
    rule("doc_certificate", "photo_document", r'certificate.*awarded', 20, "Fake certificate"),
    rule("doc_government_id", "photo_document", r'government.*id.*card', 35, "Fake government ID"),
    rule("doc_driving_license", "photo_document", r'driving.*licen[cs]e', 30, "Fake driving license"),
    rule("doc_passport", "photo_document", r'passport.*republic.*india', 40, "Fake passport"),
]

PHOTO_EDITING_WORDS = ["photoshop", "edited", "modified", "fake", "generated"]


# =====================================================================
# LIBRARY
# =====================================================================

@dataclass
class PatternLibrary:
    """
    Bundle of every rule table used by the analyzers.

    The default instance carries the built-in tables. Deployments can
    replace individual tables with PatternLibrary.load(path).
    """
    version: str = PATTERN_LIBRARY_VERSION
    legitimate_shortcodes: Dict[str, Tuple[str, SenderType]] = field(
        default_factory=lambda: dict(LEGITIMATE_SHORTCODES))
    legitimate_sender_rules: List[Rule] = field(default_factory=lambda: list(LEGITIMATE_SENDER_RULES))
    suspicious_sender_rules: List[Rule] = field(default_factory=lambda: list(SUSPICIOUS_SENDER_RULES))
    typosquat_targets: List[str] = field(default_factory=lambda: list(TYPOSQUAT_TARGETS))
    content_rules: List[Rule] = field(default_factory=lambda: list(CONTENT_RULES))
    link_rules: List[Rule] = field(default_factory=lambda: list(LINK_RULES))
    payment_fraud_rules: List[Rule] = field(default_factory=lambda: list(PAYMENT_FRAUD_RULES))
    photo_screenshot_rules: List[Rule] = field(default_factory=lambda: list(PHOTO_SCREENSHOT_RULES))
    photo_document_rules: List[Rule] = field(default_factory=lambda: list(PHOTO_DOCUMENT_RULES))

    def rules_for(self, tag: str) -> List[Rule]:
        return [r for r in self.content_rules if r.tag == tag]

    @classmethod
    def from_dict(cls, data: Dict) -> "PatternLibrary":
        """
        Build a library from plain data. Each key present REPLACES the
        matching built-in table; missing keys keep the defaults.

        Rule entries: {"id": ..., "tag": ..., "pattern": ..., "score": 0, "description": ""}
        Shortcodes:   {"SBIINB": {"organization": "...", "category": "bank"}}
        """
        library = cls()
        if "version" in data:
            library.version = str(data["version"])

        if "legitimate_shortcodes" in data:
            library.legitimate_shortcodes = {
                code.upper(): (entry["organization"], SenderType(entry.get("category", "business")))
                for code, entry in data["legitimate_shortcodes"].items()
            }
        if "typosquat_targets" in data:
            library.typosquat_targets = [t.upper() for t in data["typosquat_targets"]]

        rule_tables = (
            "legitimate_sender_rules", "suspicious_sender_rules", "content_rules", "link_rules",
            "payment_fraud_rules", "photo_screenshot_rules", "photo_document_rules",
        )
        for table in rule_tables:
            if table in data:
                setattr(library, table, [
                    rule(entry["id"], entry.get("tag", table), entry["pattern"],
                         int(entry.get("score", 0)), entry.get("description", ""))
                    for entry in data[table]
                ])
        return library

    @classmethod
    def load(cls, path: str) -> "PatternLibrary":
        """Load rule overrides from a JSON file"""
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
        library = cls.from_dict(data)
        logger.info(f"Loaded pattern library v{library.version} from {path}")
        return library
