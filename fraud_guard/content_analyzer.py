"""
CONTENT ANALYZER - WHAT does the message say?
Scans free text against the PatternLibrary content tables.

CHECKS (independent, additive):
1. Urgency        -> "Urgency Language", urgency >= high
2. Threat         -> "Threat Language", urgency >= medium
3. Reward         -> "Fake Reward/Prize Claim"
4. Harvesting     -> "Information Harvesting", urgency >= medium
5. Social eng.    -> "Social Engineering"
6. Language quality (caps, punctuation, misspellings, repetition)
7. Link red flags -> "Suspicious Links"
8. Callback phone numbers in body
9. Financial vocabulary (only alongside other fraud patterns)
10. Threat + Urgency -> urgency forced to EXTREME
"""

import re
from collections import Counter
from typing import List, Tuple

from .patterns import (
    CALLBACK_NUMBER, CAPS_RATIO_LIMIT, COMMON_MISSPELLINGS, CONTENT_TAGS,
    FINANCIAL_TERMS, REPEATED_PUNCTUATION, TACTICS, TAG_HARVESTING, TAG_LINKS,
    TAG_THREAT, TAG_URGENCY, PatternLibrary,
)
from .verdicts import ContentVerdict, LanguageQuality, UrgencyLevel

URGENCY_FLOOR = {
    TAG_URGENCY: UrgencyLevel.HIGH,
    TAG_THREAT: UrgencyLevel.MEDIUM,
    TAG_HARVESTING: UrgencyLevel.MEDIUM,
}

POOR_QUALITY_ISSUES = 3


def _raise_urgency(current: UrgencyLevel, floor: UrgencyLevel) -> UrgencyLevel:
    return floor if floor.rank > current.rank else current


class ContentAnalyzer:
    """Stateless content scanner; analyze() is a pure function of the text"""

    def __init__(self, library: PatternLibrary = None):
        self.library = library or PatternLibrary()

    def analyze(self, text: str) -> ContentVerdict:
        text = text or ""
        verdict = ContentVerdict()

        # 1-5. Fraud pattern families
        for tag in CONTENT_TAGS:
            hits = [r.rule_id for r in self.library.rules_for(tag) if r.search(text)]
            if not hits:
                continue
            verdict.fraud_patterns.append(tag)
            verdict.matched_rules.extend(hits)
            verdict.social_engineering_tactics.append(TACTICS[tag])
            if tag in URGENCY_FLOOR:
                verdict.urgency_level = _raise_urgency(verdict.urgency_level, URGENCY_FLOOR[tag])

        # 6. Language quality
        quality, issues = self.assess_language_quality(text)
        verdict.language_quality = quality
        if quality == LanguageQuality.POOR:
            verdict.suspicious_elements.append("Poor grammar and spelling errors")
            verdict.suspicious_elements.extend(issues)

        # 7. Links
        link_reasons = self.check_links(text)
        if link_reasons:
            verdict.fraud_patterns.append(TAG_LINKS)
            verdict.suspicious_elements.extend(link_reasons)

        # 8. Callback numbers
        if CALLBACK_NUMBER.search(text):
            verdict.suspicious_elements.append(CALLBACK_NUMBER.description)

        # 9. Financial terms only count next to real fraud cues
        if verdict.fraud_patterns and FINANCIAL_TERMS.search(text):
            verdict.suspicious_elements.append(FINANCIAL_TERMS.description)

        # 10. Escalation
        if TAG_THREAT in verdict.fraud_patterns and TAG_URGENCY in verdict.fraud_patterns:
            verdict.urgency_level = UrgencyLevel.EXTREME

        return verdict

    def assess_language_quality(self, text: str) -> Tuple[LanguageQuality, List[str]]:
        issues: List[str] = []
        if not text:
            return LanguageQuality.PROFESSIONAL, issues

        caps_ratio = sum(1 for c in text if c.isupper()) / len(text)
        if caps_ratio > CAPS_RATIO_LIMIT:
            issues.append("Excessive use of capital letters")

        if REPEATED_PUNCTUATION.search(text):
            issues.append("Unprofessional punctuation usage")

        if COMMON_MISSPELLINGS.search(text):
            issues.append("Common spelling mistakes detected")

        words = Counter(w for w in re.findall(r'[a-z]+', text.lower()) if len(w) > 3)
        repeated = [w for w, count in words.items() if count > 3]
        if repeated:
            issues.append(f'Repetitive use of word "{repeated[0]}"')

        if len(issues) >= POOR_QUALITY_ISSUES:
            return LanguageQuality.POOR, issues
        if issues:
            return LanguageQuality.MIXED, issues
        return LanguageQuality.PROFESSIONAL, issues

    def check_links(self, text: str) -> List[str]:
        return [r.description for r in self.library.link_rules if r.search(text)]
