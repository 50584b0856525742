"""
OTP INSIGHT - Extract OTP / transaction facts from a message

Used by the message path to decide whether a message is "sensitive"
(feeds the context trackers) and whether it moves money out.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class TransactionType(str, Enum):
    PAYMENT_OUT = "PAYMENT_OUT"
    PAYMENT_IN = "PAYMENT_IN"
    LOGIN = "LOGIN"
    UNKNOWN = "UNKNOWN"


OTP_NEAR_KEYWORD = re.compile(
    r'\b(?:otp|one[\s-]?time[\s-]?password|code|verification)\b\D{0,20}?\b(\d{4,8})\b'
    r'|\b(\d{4,8})\b\D{0,20}?\b(?:is\s+(?:your|the)\s+)?(?:otp|one[\s-]?time[\s-]?password|verification\s+code)\b',
    re.IGNORECASE,
)
STANDALONE_OTP = re.compile(r'\b\d{6}\b')
AMOUNT = re.compile(r'(?:Rs\.?\s?|INR\s?|₹\s?)([\d,]+(?:\.\d{1,2})?)', re.IGNORECASE)
VERIFICATION_VOCABULARY = re.compile(
    r'\b(?:otp|one[\s-]?time[\s-]?password|verification\s+code|passcode|2fa|login\s+code)\b', re.IGNORECASE)

TRANSACTION_KEYWORDS = (
    (TransactionType.PAYMENT_OUT, re.compile(r'\b(?:debit(?:ed)?|purchase|payment|spent|paid)\b', re.IGNORECASE)),
    (TransactionType.PAYMENT_IN, re.compile(r'\b(?:credit(?:ed)?|refund(?:ed)?|received)\b', re.IGNORECASE)),
    (TransactionType.LOGIN, re.compile(r'\b(?:login|log\s+in|sign\s+in|verify|otp)\b', re.IGNORECASE)),
)

MERCHANTS = [
    "amazon", "flipkart", "paytm", "phonepe", "gpay", "google pay", "swiggy", "zomato",
    "uber", "ola", "irctc", "myntra", "bigbasket", "netflix",
]

# Sender ids used when the text did not come from a real SMS header
NON_SMS_SENDERS = {"UNKNOWN_APP", "MANUAL_INPUT", "USER_INPUT", "PAYMENT_QR", "QR_CODE", "IMAGE_CONTENT"}


@dataclass
class OTPAnalysis:
    otp_code: Optional[str] = None
    transaction_type: TransactionType = TransactionType.UNKNOWN
    amount: Optional[float] = None
    merchant: Optional[str] = None
    is_sensitive: bool = False

    def to_dict(self) -> Dict:
        return {
            "otpCode": self.otp_code,
            "transactionType": self.transaction_type.value,
            "amount": self.amount,
            "merchant": self.merchant,
            "isSensitive": self.is_sensitive,
        }


def extract_otp(text: str) -> Optional[str]:
    match = OTP_NEAR_KEYWORD.search(text)
    if match:
        return match.group(1) or match.group(2)
    if not VERIFICATION_VOCABULARY.search(text):
        return None
    match = STANDALONE_OTP.search(text)
    return match.group(0) if match else None


def extract_amount(text: str) -> Optional[float]:
    match = AMOUNT.search(text)
    if not match:
        return None
    try:
        return float(match.group(1).replace(",", ""))
    except ValueError:
        return None


def analyze_otp(text: str) -> OTPAnalysis:
    text = text or ""
    text_lower = text.lower()

    transaction_type = TransactionType.UNKNOWN
    for candidate, pattern in TRANSACTION_KEYWORDS:
        if pattern.search(text):
            transaction_type = candidate
            break

    return OTPAnalysis(
        otp_code=extract_otp(text),
        transaction_type=transaction_type,
        amount=extract_amount(text),
        merchant=next((m.title() for m in MERCHANTS if re.search(rf"\b{re.escape(m)}\b", text_lower)), None),
        is_sensitive=bool(VERIFICATION_VOCABULARY.search(text)),
    )


def is_real_sender(sender_id: Optional[str]) -> bool:
    return bool(sender_id and sender_id.strip() and sender_id.strip().upper() not in NON_SMS_SENDERS)
