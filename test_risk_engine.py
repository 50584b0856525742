"""
RISK FUSION ENGINE TESTS
Channel scores, ML-primary vs fallback fusion, context, floors and scales.
"""

from fraud_guard.patterns import TAG_HARVESTING, TAG_LINKS, TAG_REWARD, TAG_THREAT, TAG_URGENCY
from fraud_guard.risk_engine import (
    CONTEXT_SUSPICIOUS_FLAG, FREQUENCY_ALERT_FLAG, MANUAL_REVIEW_ACTION, MESSAGE_SCALE,
    NON_PAYMENT_QR_SCALE, PAYMENT_QR_SCALE, RECOMMENDED_ACTIONS, SMS_SCALE, RiskFusionEngine,
)
from fraud_guard.verdicts import (
    AnalysisMode, ContentVerdict, ContextSignal, Legitimacy, MLVerdict, Present, SenderType,
    SenderVerdict, SMSRiskLevel, ThreatLevel, Unavailable, UrgencyLevel,
)

engine = RiskFusionEngine()

LEGIT_SENDER = SenderVerdict(SenderType.BANK, Legitimacy.LEGITIMATE, 95, [], "State Bank of India")
FRAUD_SENDER = SenderVerdict(
    SenderType.SCAMMER, Legitimacy.FRAUDULENT, 5,
    ["Sender name matches known fraud patterns", "Impersonating legitimate bank"],
)
UNKNOWN_SENDER = SenderVerdict()
NO_ML = Unavailable("ML model not loaded")


def content_with(*patterns, urgency=UrgencyLevel.NONE, tactics=None, elements=None):
    return ContentVerdict(
        fraud_patterns=list(patterns),
        urgency_level=urgency,
        social_engineering_tactics=list(tactics if tactics is not None else patterns),
        suspicious_elements=list(elements or []),
    )


# ----------------------------------------------------------------------
# Channel scores
# ----------------------------------------------------------------------

def test_who_risk_for_legitimate_and_fraudulent_senders():
    assert engine.who_risk(LEGIT_SENDER) == 0
    assert engine.who_risk(FRAUD_SENDER) == 100
    assert engine.who_risk(UNKNOWN_SENDER) == 60


def test_what_risk_is_monotonic_in_pattern_count():
    tags = [TAG_REWARD, TAG_URGENCY, TAG_THREAT, TAG_HARVESTING, TAG_LINKS]
    scores = [engine.what_risk(content_with(*tags[:n], tactics=[])) for n in range(len(tags) + 1)]
    assert scores == sorted(scores)
    assert scores[0] == 0


def test_what_risk_combination_bonuses():
    plain = engine.what_risk(content_with(TAG_THREAT, TAG_REWARD, tactics=[]))
    bonus = engine.what_risk(content_with(TAG_THREAT, TAG_HARVESTING, tactics=[]))
    assert bonus - plain == engine.THREAT_HARVESTING_BONUS


def test_traditional_score_without_sender_is_content_only():
    content = content_with(TAG_REWARD)
    assert engine.traditional_score(None, content) == engine.what_risk(content)


# ----------------------------------------------------------------------
# ML-primary fusion
# ----------------------------------------------------------------------

def test_ml_primary_fraud_verdict():
    ml = Present(MLVerdict(is_fraud=True, confidence=0.9, details="model says fraud"))
    verdict = engine.combine(None, ContentVerdict(), ml)

    assert verdict.analysis_mode == AnalysisMode.ML_PRIMARY
    assert verdict.risk_score == 63.0
    assert verdict.risk_level == SMSRiskLevel.HIGH
    assert verdict.is_fraud
    assert verdict.confidence_score == 92
    assert "Analysis Method: ML-Primary (70%) + Traditional (30%)" in verdict.explanation.detailed_analysis


def test_ml_primary_agreement_bonus():
    ml = Present(MLVerdict(is_fraud=False, confidence=0.1, details=""))
    verdict = engine.combine(LEGIT_SENDER, ContentVerdict(), ml)

    assert not verdict.is_fraud
    assert verdict.risk_level == SMSRiskLevel.LOW
    # round(0.1*80+20) = 28, +10 agreement
    assert verdict.confidence_score == 38
    assert verdict.recommended_action == RECOMMENDED_ACTIONS[0]
    assert verdict.explanation.summary.startswith("APPEARS SAFE")


def test_ml_primary_threshold_flags_fraud_without_ml_vote():
    ml = Present(MLVerdict(is_fraud=False, confidence=0.95, details=""))
    verdict = engine.combine(FRAUD_SENDER, ContentVerdict(), ml)
    # 95*0.7 + (100*0.4 + 0)*0.3 = 78.5
    assert verdict.risk_score == 78.5
    assert verdict.is_fraud


# ----------------------------------------------------------------------
# Fallback fusion
# ----------------------------------------------------------------------

def test_unavailable_ml_is_neutral():
    content = content_with(TAG_URGENCY, TAG_THREAT, urgency=UrgencyLevel.EXTREME)
    fallback = engine.combine(UNKNOWN_SENDER, content, NO_ML)
    assert fallback.analysis_mode == AnalysisMode.TRADITIONAL
    assert fallback.risk_score == round(engine.traditional_score(UNKNOWN_SENDER, content), 1)
    assert fallback.degraded
    assert "Traditional Fallback Only" in fallback.explanation.detailed_analysis


def test_disabled_ml_is_not_degraded():
    verdict = engine.combine(None, ContentVerdict(), Unavailable("ML analysis disabled by caller", degraded=False))
    assert not verdict.degraded


def test_fraudulent_sender_is_fraud_in_fallback():
    verdict = engine.combine(FRAUD_SENDER, ContentVerdict(), NO_ML)
    assert verdict.is_fraud
    assert verdict.confidence_score == 80  # 70 + 20 - 10 (no patterns / elements)


def test_pattern_with_unavailable_ml_is_never_lowest_level():
    content = content_with(TAG_REWARD)
    verdict = engine.combine(None, content, NO_ML)
    assert verdict.risk_score == 30.0
    assert verdict.risk_level == SMSRiskLevel.MEDIUM

    message = engine.combine(None, content, NO_ML, scale=MESSAGE_SCALE)
    assert message.risk_level == ThreatLevel.SUSPICIOUS


def test_fallback_confidence_adjustments():
    quiet = engine.combine(UNKNOWN_SENDER, ContentVerdict(), NO_ML)
    assert quiet.confidence_score == 45  # 70 - 15 unknown - 10 nothing found

    busy = content_with(TAG_URGENCY, TAG_THREAT, TAG_HARVESTING)
    loud = engine.combine(LEGIT_SENDER, busy, NO_ML)
    assert loud.confidence_score == 98  # 70 + 15 + 10 + 10 = 105, clamped


def test_many_patterns_with_extreme_urgency_is_fraud():
    content = content_with(TAG_URGENCY, TAG_THREAT, TAG_HARVESTING, urgency=UrgencyLevel.EXTREME, tactics=[])
    verdict = engine.combine(LEGIT_SENDER, content, NO_ML)
    assert verdict.is_fraud
    assert verdict.recommended_action == RECOMMENDED_ACTIONS[SMS_SCALE.tier(verdict.risk_level)]


# ----------------------------------------------------------------------
# Context
# ----------------------------------------------------------------------

def test_context_signals_add_points_and_flags():
    base = engine.combine(None, ContentVerdict(), NO_ML)
    both = engine.combine(None, ContentVerdict(), NO_ML, ContextSignal(suspicious=True, frequency_alert=True))

    assert both.risk_score - base.risk_score == 30
    assert CONTEXT_SUSPICIOUS_FLAG in both.explanation.red_flags
    assert FREQUENCY_ALERT_FLAG in both.explanation.red_flags


def test_scores_are_clamped():
    ml = Present(MLVerdict(is_fraud=True, confidence=1.0, details=""))
    content = content_with(TAG_URGENCY, TAG_THREAT, TAG_HARVESTING, TAG_LINKS, urgency=UrgencyLevel.EXTREME)
    verdict = engine.combine(FRAUD_SENDER, content, ml, ContextSignal(True, True))
    assert verdict.risk_score == 100
    assert verdict.risk_level == SMSRiskLevel.CRITICAL
    assert 30 <= verdict.confidence_score <= 98


# ----------------------------------------------------------------------
# Scales + failsafe
# ----------------------------------------------------------------------

def test_scale_thresholds():
    assert [SMS_SCALE.level_for(s) for s in (39, 40, 60, 80)] == [
        SMSRiskLevel.LOW, SMSRiskLevel.MEDIUM, SMSRiskLevel.HIGH, SMSRiskLevel.CRITICAL]
    assert MESSAGE_SCALE.level_for(35) == ThreatLevel.SUSPICIOUS
    assert PAYMENT_QR_SCALE.level_for(30) == ThreatLevel.SUSPICIOUS
    assert PAYMENT_QR_SCALE.level_for(70) == ThreatLevel.CRITICAL
    assert NON_PAYMENT_QR_SCALE.level_for(89) == ThreatLevel.HIGH_RISK
    assert NON_PAYMENT_QR_SCALE.level_for(90) == ThreatLevel.CRITICAL


def test_scale_levels_are_monotonic():
    for scale in (SMS_SCALE, MESSAGE_SCALE, PAYMENT_QR_SCALE, NON_PAYMENT_QR_SCALE):
        tiers = [scale.tier(scale.level_for(score)) for score in range(101)]
        assert tiers == sorted(tiers)


def test_failsafe_verdict():
    verdict = engine.failsafe_verdict("boom", MESSAGE_SCALE)
    assert verdict.risk_level == ThreatLevel.SUSPICIOUS
    assert verdict.risk_score == 50.0
    assert verdict.confidence_score == 30
    assert verdict.recommended_action == MANUAL_REVIEW_ACTION
    assert verdict.analysis_mode == AnalysisMode.FAILSAFE
    assert not verdict.is_fraud
