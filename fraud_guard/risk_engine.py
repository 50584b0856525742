"""
RISK FUSION ENGINE - Deterministic multi-signal risk combination

KEY SAFETY & QUALITY RULES:
1. Every score is BOUNDED: 0-100, confidence clamped to 30-98
2. Unavailable ML is strictly NEUTRAL: the traditional score is used as-is
3. A fraud pattern found while ML is unavailable never maps to the lowest level,
   nor does a message carrying a caller-side risk flag (outgoing payment OTP)
4. Risk levels are monotonic in the final score
5. Explanations are pure string assembly: no randomness, no I/O

FUSION MATH:
ML-primary:   final = mlScore*0.7 + traditional*0.3
Fallback:     final = traditional
traditional = whoRisk*0.4 + whatRisk*0.6   (whatRisk alone when no sender)
Context:      +10 idle-context receipt, +20 OTP burst
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .patterns import TAG_HARVESTING, TAG_LINKS, TAG_THREAT, TAG_URGENCY
from .verdicts import (
    AnalysisMode, CombinedVerdict, ContentVerdict, ContextSignal, Explanation,
    Legitimacy, MLSignal, Present, SenderVerdict, SMSRiskLevel, ThreatLevel,
    UrgencyLevel, clamp_score, confidence_to_percent,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskScale:
    """Ordered levels (lowest first) and the minimum score for each higher level"""
    name: str
    levels: Tuple
    thresholds: Tuple[float, float, float]

    @property
    def lowest(self):
        return self.levels[0]

    def level_for(self, score: float):
        level = self.levels[0]
        for candidate, threshold in zip(self.levels[1:], self.thresholds):
            if score >= threshold:
                level = candidate
        return level

    def tier(self, level) -> int:
        return self.levels.index(level)

    def at_least(self, level, tier: int):
        return self.levels[max(self.tier(level), tier)]


SMS_SCALE = RiskScale(
    "sms", (SMSRiskLevel.LOW, SMSRiskLevel.MEDIUM, SMSRiskLevel.HIGH, SMSRiskLevel.CRITICAL), (40, 60, 80))
MESSAGE_SCALE = RiskScale(
    "message", (ThreatLevel.SAFE, ThreatLevel.SUSPICIOUS, ThreatLevel.HIGH_RISK, ThreatLevel.CRITICAL), (35, 60, 80))
PAYMENT_QR_SCALE = RiskScale("payment_qr", MESSAGE_SCALE.levels, (30, 50, 70))
NON_PAYMENT_QR_SCALE = RiskScale("non_payment_qr", MESSAGE_SCALE.levels, (45, 70, 90))
PHOTO_SCALE = RiskScale("photo", MESSAGE_SCALE.levels, (35, 60, 80))

# Indexed by scale tier (lowest -> highest)
RECOMMENDED_ACTIONS = (
    "Message appears safe to proceed",
    "Exercise caution - Verify sender independently",
    "VERIFY CAREFULLY - Contact your bank/service directly",
    "BLOCK IMMEDIATELY - Do not follow any instructions in this message",
)
MANUAL_REVIEW_ACTION = "Manual review recommended due to analysis error"

RECOMMENDATIONS = (
    [
        "Message appears legitimate",
        "Still never share OTP, PIN or passwords with anyone",
    ],
    [
        "Be cautious with any links or requests in this message",
        "Verify the sender if the message asks you to act",
        "Never share OTP or banking credentials",
    ],
    [
        "Verify the sender through official channels before acting",
        "Do not click links or call numbers from this message",
        "Contact the organization using its official website or app",
    ],
    [
        "Do NOT click any links in this message",
        "Do NOT share OTP, PIN, CVV or passwords",
        "Block this sender immediately",
        "Report to cybercrime.gov.in or call 1930",
        "Contact your bank on its official number if you shared any details",
    ],
)

CONTEXT_SUSPICIOUS_FLAG = "Sensitive code received while you were not using the app"
FREQUENCY_ALERT_FLAG = "Unusual burst of OTP messages - possible account takeover attempt"


class RiskFusionEngine:
    """
    Combines sender, content, ML and context signals into one verdict.
    Stateless: combine() is a pure function of its arguments.
    """

    ML_WEIGHT = 0.7
    TRADITIONAL_WEIGHT = 0.3
    WHO_WEIGHT = 0.4
    WHAT_WEIGHT = 0.6

    ML_FRAUD_THRESHOLD = 70
    FALLBACK_FRAUD_THRESHOLD = 60

    LEGITIMACY_PENALTY = {
        Legitimacy.FRAUDULENT: 50,
        Legitimacy.SUSPICIOUS: 30,
        Legitimacy.UNKNOWN: 10,
    }
    LEGITIMATE_CREDIT = 20
    RED_FLAG_POINTS = 15

    URGENCY_POINTS = {
        UrgencyLevel.NONE: 0,
        UrgencyLevel.LOW: 8,
        UrgencyLevel.MEDIUM: 18,
        UrgencyLevel.HIGH: 30,
        UrgencyLevel.EXTREME: 45,
    }
    PATTERN_POINTS = 18
    TACTIC_POINTS = 12
    ELEMENT_POINTS = 8
    THREAT_HARVESTING_BONUS = 25
    URGENCY_LINKS_BONUS = 20

    CONTEXT_SUSPICIOUS_POINTS = 10
    FREQUENCY_ALERT_POINTS = 20

    CONFIDENCE_MIN = 30
    CONFIDENCE_MAX = 98

    # ------------------------------------------------------------------
    # Channel scores
    # ------------------------------------------------------------------

    def who_risk(self, sender: SenderVerdict) -> float:
        risk = 100 - sender.reputation
        if sender.legitimacy == Legitimacy.LEGITIMATE:
            risk = max(risk - self.LEGITIMATE_CREDIT, 0)
        else:
            risk += self.LEGITIMACY_PENALTY[sender.legitimacy]
        risk += self.RED_FLAG_POINTS * len(sender.red_flags)
        return clamp_score(risk)

    def what_risk(self, content: ContentVerdict) -> float:
        patterns = content.fraud_patterns
        risk = (
            self.PATTERN_POINTS * len(patterns)
            + self.URGENCY_POINTS[content.urgency_level]
            + self.TACTIC_POINTS * len(content.social_engineering_tactics)
            + self.ELEMENT_POINTS * len(content.suspicious_elements)
        )
        if TAG_THREAT in patterns and TAG_HARVESTING in patterns:
            risk += self.THREAT_HARVESTING_BONUS
        if TAG_URGENCY in patterns and TAG_LINKS in patterns:
            risk += self.URGENCY_LINKS_BONUS
        return clamp_score(risk)

    def traditional_score(self, sender: Optional[SenderVerdict], content: ContentVerdict) -> float:
        what = self.what_risk(content)
        if sender is None:
            return what
        return self.who_risk(sender) * self.WHO_WEIGHT + what * self.WHAT_WEIGHT

    # ------------------------------------------------------------------
    # Fusion
    # ------------------------------------------------------------------

    def combine(
        self,
        sender: Optional[SenderVerdict],
        content: ContentVerdict,
        ml: MLSignal,
        context: ContextSignal = ContextSignal(),
        scale: RiskScale = SMS_SCALE,
        risk_flags: Sequence[str] = (),
    ) -> CombinedVerdict:
        """
        risk_flags are caller-side warnings (e.g. an outgoing payment OTP):
        each is listed as a red flag and lifts the level off the lowest tier.
        """
        traditional = self.traditional_score(sender, content)

        if isinstance(ml, Present):
            mode = AnalysisMode.ML_PRIMARY
            ml_score = confidence_to_percent(ml.verdict.confidence)
            final = ml_score * self.ML_WEIGHT + traditional * self.TRADITIONAL_WEIGHT
        else:
            mode = AnalysisMode.TRADITIONAL
            final = traditional

        context_flags = list(risk_flags)
        if context.suspicious:
            final += self.CONTEXT_SUSPICIOUS_POINTS
            context_flags.append(CONTEXT_SUSPICIOUS_FLAG)
        if context.frequency_alert:
            final += self.FREQUENCY_ALERT_POINTS
            context_flags.append(FREQUENCY_ALERT_FLAG)
        final = clamp_score(final)

        if mode == AnalysisMode.ML_PRIMARY:
            is_fraud = ml.verdict.is_fraud or final >= self.ML_FRAUD_THRESHOLD
            confidence = self._ml_confidence(ml, sender)
        else:
            is_fraud = (
                final >= self.FALLBACK_FRAUD_THRESHOLD
                or (sender is not None and sender.legitimacy == Legitimacy.FRAUDULENT)
                or (len(content.fraud_patterns) >= 3 and content.urgency_level == UrgencyLevel.EXTREME)
            )
            confidence = self._fallback_confidence(sender, content)

        level = scale.level_for(final)
        if level == scale.lowest and (
            is_fraud or risk_flags or (mode == AnalysisMode.TRADITIONAL and content.fraud_patterns)
        ):
            level = scale.levels[1]

        degraded = not isinstance(ml, Present) and ml.degraded
        explanation = self.build_explanation(
            is_fraud, level, confidence, final, sender, content, ml, context_flags, scale)

        logger.info(
            f"📊 Fusion [{scale.name}] mode={mode.value} score={final:.1f} "
            f"level={level.value} fraud={is_fraud} confidence={confidence}"
        )
        return CombinedVerdict(
            is_fraud=is_fraud,
            risk_level=level,
            risk_score=round(final, 1),
            confidence_score=confidence,
            explanation=explanation,
            recommended_action=RECOMMENDED_ACTIONS[scale.tier(level)],
            analysis_mode=mode,
            degraded=degraded,
        )

    def failsafe_verdict(self, reason: str, scale: RiskScale = SMS_SCALE) -> CombinedVerdict:
        """Result for an analysis that crashed: never SAFE, always manual review"""
        level = scale.levels[1]
        return CombinedVerdict(
            is_fraud=False,
            risk_level=level,
            risk_score=50.0,
            confidence_score=self.CONFIDENCE_MIN,
            explanation=Explanation(
                summary=("ANALYSIS INCOMPLETE: An internal error prevented a full analysis. "
                         "Treat this message with caution."),
                detailed_analysis=f"Analysis error: {reason}\n{MANUAL_REVIEW_ACTION}",
                red_flags=["Analysis could not be completed"],
                recommendations=[
                    "Do not act on this message until it is verified",
                    "Verify the sender through official channels",
                ],
            ),
            recommended_action=MANUAL_REVIEW_ACTION,
            analysis_mode=AnalysisMode.FAILSAFE,
            degraded=True,
        )

    # ------------------------------------------------------------------
    # Confidence
    # ------------------------------------------------------------------

    def _ml_confidence(self, ml: Present, sender: Optional[SenderVerdict]) -> int:
        verdict = ml.verdict
        confidence = round(verdict.confidence * 80 + 20)
        if sender is not None:
            agrees = (
                (verdict.is_fraud and sender.legitimacy in (Legitimacy.FRAUDULENT, Legitimacy.SUSPICIOUS))
                or (not verdict.is_fraud and sender.legitimacy == Legitimacy.LEGITIMATE)
            )
            if agrees:
                confidence += 10
        return int(clamp_score(confidence, self.CONFIDENCE_MIN, self.CONFIDENCE_MAX))

    def _fallback_confidence(self, sender: Optional[SenderVerdict], content: ContentVerdict) -> int:
        confidence = 70
        if sender is not None:
            if sender.legitimacy == Legitimacy.LEGITIMATE:
                confidence += 15
            elif sender.legitimacy == Legitimacy.FRAUDULENT:
                confidence += 20
            elif sender.legitimacy == Legitimacy.UNKNOWN:
                confidence -= 15
        if content.fraud_patterns:
            confidence += 10
        if len(content.social_engineering_tactics) > 2:
            confidence += 10
        if not content.fraud_patterns and not content.suspicious_elements:
            confidence -= 10
        return int(clamp_score(confidence, self.CONFIDENCE_MIN, self.CONFIDENCE_MAX))

    # ------------------------------------------------------------------
    # Explanation
    # ------------------------------------------------------------------

    def build_explanation(
        self,
        is_fraud: bool,
        level,
        confidence: int,
        final: float,
        sender: Optional[SenderVerdict],
        content: ContentVerdict,
        ml: MLSignal,
        context_flags: List[str],
        scale: RiskScale,
    ) -> Explanation:
        red_flags: List[str] = []
        if sender is not None:
            red_flags.extend(sender.red_flags)
        red_flags.extend(f"Content: {p}" for p in content.fraud_patterns)
        red_flags.extend(f"Suspicious: {e}" for e in content.suspicious_elements)
        red_flags.extend(context_flags)

        ml_present = isinstance(ml, Present)
        if is_fraud:
            reason = (
                "Machine learning and pattern analysis both indicate fraud."
                if ml_present and ml.verdict.is_fraud
                else "Multiple fraud indicators were found in the sender and content."
            )
            summary = f"FRAUD DETECTED: This message is {level.value} risk with {confidence}% confidence. {reason}"
        else:
            reason = (
                "No significant fraud indicators found."
                if level == scale.lowest
                else "Some warning signs were found, so caution is advised."
            )
            summary = f"APPEARS SAFE: This message shows {level.value} risk with {confidence}% confidence. {reason}"

        tier = len(scale.levels) - 1 if is_fraud else scale.tier(level)
        recommendations = list(RECOMMENDATIONS[tier])

        lines = ["=== ML ANALYSIS ==="]
        if ml_present:
            verdict = ml.verdict
            lines.append(
                f"ML Verdict: {'FRAUD' if verdict.is_fraud else 'LEGITIMATE'} "
                f"({confidence_to_percent(verdict.confidence)}% fraud probability)"
            )
            if verdict.details:
                lines.append(f"Details: {verdict.details}")
        else:
            lines.append(f"ML Status: unavailable ({ml.reason})")
            if ml.degraded:
                lines.append("Degraded mode: ML signal missing, traditional analysis only")

        lines.append("=== SENDER ANALYSIS (WHO) ===")
        if sender is not None:
            lines.extend([
                f"Legitimacy: {sender.legitimacy.value}",
                f"Type: {sender.sender_type.value}",
                f"Reputation: {sender.reputation}/100",
                f"Risk Contribution: {self.who_risk(sender):.0f}/100",
            ])
        else:
            lines.append("Sender not analyzed for this input")

        lines.extend([
            "=== CONTENT ANALYSIS (WHAT) ===",
            f"Fraud Patterns: {', '.join(content.fraud_patterns) or 'None'}",
            f"Urgency Level: {content.urgency_level.value}",
            f"Manipulation Tactics: {len(content.social_engineering_tactics)}",
            f"Suspicious Elements: {len(content.suspicious_elements)}",
            f"Risk Contribution: {self.what_risk(content):.0f}/100",
        ])

        lines.append("=== CONTEXT ===")
        lines.extend(context_flags or ["No context anomalies"])

        method = "ML-Primary (70%) + Traditional (30%)" if ml_present else "Traditional Fallback Only"
        lines.extend([
            "=== FINAL ASSESSMENT ===",
            f"Analysis Method: {method}",
            f"Final Risk Score: {final:.1f}/100",
            f"Risk Level: {level.value}",
            f"Confidence: {confidence}%",
        ])

        return Explanation(
            summary=summary,
            detailed_analysis="\n".join(lines),
            red_flags=red_flags,
            recommendations=recommendations,
        )
