"""
VERDICTS - Shared result types for every analysis path

All scores live on one of two canonical scales:
- confidence: float 0.0-1.0 (ML classifiers)
- percent:    int/float 0-100 (risk, reputation, confidence scores)
Conversion between them happens ONLY through the helpers below.
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union


class SenderType(str, Enum):
    UNKNOWN = "unknown"
    INDIVIDUAL = "individual"
    BUSINESS = "business"
    BANK = "bank"
    GOVERNMENT = "government"
    SCAMMER = "scammer"


class Legitimacy(str, Enum):
    LEGITIMATE = "legitimate"
    SUSPICIOUS = "suspicious"
    FRAUDULENT = "fraudulent"
    UNKNOWN = "unknown"


class UrgencyLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"

    @property
    def rank(self) -> int:
        return list(UrgencyLevel).index(self)


class LanguageQuality(str, Enum):
    PROFESSIONAL = "professional"
    MIXED = "mixed"
    POOR = "poor"


class SMSRiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ThreatLevel(str, Enum):
    SAFE = "SAFE"
    SUSPICIOUS = "SUSPICIOUS"
    HIGH_RISK = "HIGH_RISK"
    CRITICAL = "CRITICAL"


class AnalysisMode(str, Enum):
    ML_PRIMARY = "ML_PRIMARY"
    TRADITIONAL = "TRADITIONAL"
    FAILSAFE = "FAILSAFE"


# =====================================================================
# SCORE CONVERSIONS
# =====================================================================

def clamp_score(value: float, low: float = 0, high: float = 100) -> float:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return low
    return max(low, min(high, value))


def confidence_to_percent(confidence: float) -> int:
    """0.0-1.0 confidence -> 0-100 integer percent."""
    return int(round(clamp_score(confidence, 0.0, 1.0) * 100))


def percent_to_confidence(percent: float) -> float:
    """0-100 percent -> 0.0-1.0 confidence."""
    return clamp_score(percent, 0, 100) / 100.0


# =====================================================================
# INPUT / COMPONENT VERDICTS
# =====================================================================

@dataclass(frozen=True)
class AnalysisInput:
    """One SMS to analyze. Created per call, never mutated."""
    sender_info: str
    message_content: str
    received_time: Optional[datetime] = None
    user_location: Optional[str] = None
    enable_ml_analysis: bool = True


@dataclass
class SenderVerdict:
    sender_type: SenderType = SenderType.UNKNOWN
    legitimacy: Legitimacy = Legitimacy.UNKNOWN
    reputation: int = 50
    red_flags: List[str] = field(default_factory=list)
    organization: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "senderType": self.sender_type.value,
            "senderLegitimacy": self.legitimacy.value,
            "senderReputation": self.reputation,
            "redFlags": list(self.red_flags),
            "organization": self.organization,
        }


@dataclass
class ContentVerdict:
    fraud_patterns: List[str] = field(default_factory=list)
    urgency_level: UrgencyLevel = UrgencyLevel.NONE
    social_engineering_tactics: List[str] = field(default_factory=list)
    suspicious_elements: List[str] = field(default_factory=list)
    language_quality: LanguageQuality = LanguageQuality.PROFESSIONAL
    matched_rules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "fraudPatterns": list(self.fraud_patterns),
            "urgencyLevel": self.urgency_level.value,
            "socialEngineeringTactics": list(self.social_engineering_tactics),
            "suspiciousElements": list(self.suspicious_elements),
            "languageQuality": self.language_quality.value,
            "matchedRules": list(self.matched_rules),
        }


# =====================================================================
# ML SIGNAL - tagged option type
# =====================================================================

@dataclass(frozen=True)
class MLVerdict:
    is_fraud: bool
    confidence: float
    details: str

    @classmethod
    def unavailable(cls, reason: str) -> "MLVerdict":
        return cls(is_fraud=False, confidence=0.0, details=reason)


@dataclass(frozen=True)
class Present:
    """A usable ML verdict."""
    verdict: MLVerdict


@dataclass(frozen=True)
class Unavailable:
    """No usable ML verdict. `degraded` is False only when ML was switched off on purpose."""
    reason: str
    degraded: bool = True

    @property
    def verdict(self) -> MLVerdict:
        return MLVerdict.unavailable(self.reason)


MLSignal = Union[Present, Unavailable]


@dataclass(frozen=True)
class ContextSignal:
    suspicious: bool = False
    frequency_alert: bool = False


# =====================================================================
# COMBINED VERDICTS
# =====================================================================

@dataclass
class Explanation:
    summary: str
    detailed_analysis: str
    red_flags: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "summary": self.summary,
            "detailedAnalysis": self.detailed_analysis,
            "redFlags": list(self.red_flags),
            "recommendations": list(self.recommendations),
        }


@dataclass
class CombinedVerdict:
    is_fraud: bool
    risk_level: Union[SMSRiskLevel, ThreatLevel]
    risk_score: float
    confidence_score: int
    explanation: Explanation
    recommended_action: str
    analysis_mode: AnalysisMode
    degraded: bool = False

    def to_dict(self) -> Dict:
        return {
            "isFraud": self.is_fraud,
            "riskLevel": self.risk_level.value,
            "riskScore": self.risk_score,
            "confidenceScore": self.confidence_score,
            "explanation": self.explanation.to_dict(),
            "recommendedAction": self.recommended_action,
            "analysisMode": self.analysis_mode.value,
            "degraded": self.degraded,
        }


@dataclass
class MLAnalysis:
    """How the ML channel took part in one analysis."""
    is_enabled: bool
    is_model_loaded: bool
    verdict: MLVerdict
    contribution: int
    degraded: bool

    @property
    def ml_score(self) -> int:
        return confidence_to_percent(self.verdict.confidence)

    def to_dict(self) -> Dict:
        return {
            "isEnabled": self.is_enabled,
            "isModelLoaded": self.is_model_loaded,
            "mlVerdict": asdict(self.verdict),
            "mlScore": self.ml_score,
            "mlContribution": self.contribution,
            "degraded": self.degraded,
        }


@dataclass
class SMSAnalysisResult:
    sender_analysis: SenderVerdict
    content_analysis: ContentVerdict
    ml_analysis: MLAnalysis
    verdict: CombinedVerdict
    context: ContextSignal = field(default_factory=ContextSignal)

    @property
    def is_fraud(self) -> bool:
        return self.verdict.is_fraud

    @property
    def risk_level(self):
        return self.verdict.risk_level

    @property
    def confidence_score(self) -> int:
        return self.verdict.confidence_score

    def to_dict(self) -> Dict:
        result = self.verdict.to_dict()
        result.update({
            "senderAnalysis": self.sender_analysis.to_dict(),
            "contentAnalysis": self.content_analysis.to_dict(),
            "mlAnalysis": self.ml_analysis.to_dict(),
            "context": asdict(self.context),
        })
        return result
