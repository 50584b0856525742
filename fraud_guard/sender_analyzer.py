"""
SENDER ANALYZER - WHO sent the message?
Classifies a sender id (DLT shortcode, name or phone number) into
type / legitimacy / reputation.

ORDER (first match wins):
1. Known institution shortcode  -> legitimate, 95
2. Legitimate header pattern     -> legitimate, 85
3. Phone number shape            -> phone sub-analysis (base 60)
4. Suspicious header pattern     -> fraudulent, 5
5. Typosquat of a known header   -> suspicious, 20
6. Nothing matched               -> unknown, 50

Pure function of its input. Never raises.
"""

import re
from typing import List, Optional

from .patterns import (
    BANK_IMPERSONATION, DLT_PREFIX, GOVERNMENT_IMPERSONATION, PHONE_SHAPE,
    PatternLibrary, first_match,
)
from .verdicts import Legitimacy, SenderType, SenderVerdict, clamp_score

REPUTATION_INSTITUTION = 95
REPUTATION_LEGIT_PATTERN = 85
REPUTATION_PHONE_BASE = 60
REPUTATION_FRAUD_PATTERN = 5
REPUTATION_TYPOSQUAT = 20
REPUTATION_NEUTRAL = 50

MAX_TYPOSQUAT_DISTANCE = 2


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit cost insert/delete/substitute"""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def normalize_sender(sender_info: Optional[str]) -> str:
    """Uppercase, trim, and drop the operator/circle DLT prefix (VM-, AD-, ...)"""
    normalized = (sender_info or "").strip().upper()
    return DLT_PREFIX.sub("", normalized)


class SenderAnalyzer:
    """Sender legitimacy classifier backed by a PatternLibrary"""

    def __init__(self, library: PatternLibrary = None):
        self.library = library or PatternLibrary()

    def analyze(self, sender_info: str) -> SenderVerdict:
        sender = normalize_sender(sender_info)

        # 1. Known institution table
        if sender in self.library.legitimate_shortcodes:
            organization, category = self.library.legitimate_shortcodes[sender]
            return SenderVerdict(
                sender_type=category,
                legitimacy=Legitimacy.LEGITIMATE,
                reputation=REPUTATION_INSTITUTION,
                organization=organization,
            )

        # 2. Legitimate header shapes
        if first_match(self.library.legitimate_sender_rules, sender):
            return SenderVerdict(
                sender_type=SenderType.BUSINESS,
                legitimacy=Legitimacy.LEGITIMATE,
                reputation=REPUTATION_LEGIT_PATTERN,
            )

        # 3. Phone numbers
        compact = re.sub(r'\s', '', sender)
        if compact and PHONE_SHAPE.match(compact):
            return self._analyze_phone_number(compact)

        # 4. Known fraud header shapes
        if first_match(self.library.suspicious_sender_rules, sender):
            red_flags = ["Sender name matches known fraud patterns"]
            if BANK_IMPERSONATION.search(sender):
                red_flags.append("Impersonating legitimate bank")
            if GOVERNMENT_IMPERSONATION.search(sender):
                red_flags.append("Impersonating government agency")
            return SenderVerdict(
                sender_type=SenderType.SCAMMER,
                legitimacy=Legitimacy.FRAUDULENT,
                reputation=REPUTATION_FRAUD_PATTERN,
                red_flags=red_flags,
            )

        # 5. Typosquatting
        target = self.find_typosquat_target(sender)
        if target:
            return SenderVerdict(
                sender_type=SenderType.UNKNOWN,
                legitimacy=Legitimacy.SUSPICIOUS,
                reputation=REPUTATION_TYPOSQUAT,
                red_flags=[f"Possible typosquatting of {target}"],
            )

        return SenderVerdict()

    def find_typosquat_target(self, sender: str) -> Optional[str]:
        """Closest reference header within edit distance 1-2, if any"""
        if not sender:
            return None
        best, best_distance = None, MAX_TYPOSQUAT_DISTANCE + 1
        for target in self.library.typosquat_targets:
            distance = levenshtein(sender, target)
            if 0 < distance < best_distance:
                best, best_distance = target, distance
        return best

    def _analyze_phone_number(self, number: str) -> SenderVerdict:
        digits = re.sub(r'[^0-9+]', '', number)
        reputation = REPUTATION_PHONE_BASE
        red_flags: List[str] = []

        local = self._domestic_number(digits)
        if local is None:
            reputation -= 30
            red_flags.append("International number claiming to provide local services")
        else:
            if re.match(r'^[6-8]', local):
                reputation -= 20
                red_flags.append("Number range commonly used by bulk SMS services")
            elif re.match(r'^9[6-9]', local):
                reputation -= 15
                red_flags.append("Potentially VoIP or virtual number")
            if not re.match(r'^[6-9][0-9]{9}$', local):
                reputation -= 10
                red_flags.append("Non-standard mobile number format")

        reputation = int(clamp_score(reputation))
        if reputation < 30:
            legitimacy = Legitimacy.FRAUDULENT
        elif reputation < 60:
            legitimacy = Legitimacy.SUSPICIOUS
        else:
            legitimacy = Legitimacy.UNKNOWN

        return SenderVerdict(
            sender_type=SenderType.INDIVIDUAL,
            legitimacy=legitimacy,
            reputation=reputation,
            red_flags=red_flags,
        )

    @staticmethod
    def _domestic_number(digits: str) -> Optional[str]:
        """Local part of an Indian number, or None when the number is foreign"""
        if digits.startswith("+91"):
            return digits[3:]
        if digits.startswith("91") and len(digits) == 12:
            return digits[2:]
        if not digits.startswith("+") and len(digits) == 10:
            return digits
        return None
