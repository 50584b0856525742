"""
FRAUD DETECTOR - Orchestrating service for every analysis entry point

PIPELINE ORDER (SMS / message):
1. Sender analysis (WHO)          - skipped for non-SMS sources
2. Content analysis (WHAT)
3. ML verdict (optional, async)   - unavailable ML is neutral
4. Context / OTP-burst tracking   - only for sensitive messages
5. Risk fusion                    - one deterministic verdict

Every entry point is fail-safe: an internal fault is logged and turned
into a cautious verdict, never raised to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from .content_analyzer import ContentAnalyzer
from .context_tracker import ContextState, ContextTracker, FrequencyTracker, InteractionRecency
from .ml_adapter import MLVerdictAdapter
from .ml_detector import GroqFraudClassifier, KeywordFraudClassifier
from .otp_insight import OTPAnalysis, TransactionType, analyze_otp, is_real_sender
from .patterns import PatternLibrary
from .photo_detector import OCRProvider, PhotoFraudDetector, PhotoVerdict
from .qr_scanner import QRScanner, QRVerdict
from .risk_engine import MESSAGE_SCALE, SMS_SCALE, RiskFusionEngine, RiskScale
from .sender_analyzer import SenderAnalyzer
from .url_reputation import DEFAULT_BLOCKLIST, LocalBlocklistProvider, URLReputationProvider
from .verdicts import (
    AnalysisInput, CombinedVerdict, ContentVerdict, ContextSignal, MLAnalysis, MLSignal,
    Present, SenderVerdict, SMSAnalysisResult, Unavailable,
)

logger = logging.getLogger(__name__)

PAYMENT_RED_FLAG = "Payment-related message"


@dataclass
class MessageAnalysisResult:
    """Message-path result (ThreatLevel scale) with OTP facts"""
    text: str
    sender_id: Optional[str]
    sender_analysis: Optional[SenderVerdict]
    content_analysis: ContentVerdict
    otp_analysis: OTPAnalysis
    verdict: CombinedVerdict
    context: ContextSignal = field(default_factory=ContextSignal)

    @property
    def risk_level(self):
        return self.verdict.risk_level

    @property
    def explanation(self):
        return self.verdict.explanation

    def to_dict(self) -> Dict:
        result = self.verdict.to_dict()
        result.update({
            "senderId": self.sender_id,
            "senderAnalysis": None if self.sender_analysis is None else self.sender_analysis.to_dict(),
            "contentAnalysis": self.content_analysis.to_dict(),
            "otpAnalysis": self.otp_analysis.to_dict(),
            "context": {
                "suspicious": self.context.suspicious,
                "frequencyAlert": self.context.frequency_alert,
            },
        })
        return result


class FraudDetector:
    """
    Wires analyzers, the ML adapter, context tracking and fusion together.
    All collaborators are injected; defaults are offline and deterministic.
    """

    def __init__(
        self,
        library: Optional[PatternLibrary] = None,
        ml_adapter: Optional[MLVerdictAdapter] = None,
        context: Optional[ContextTracker] = None,
        reputation: Optional[URLReputationProvider] = None,
        ocr: Optional[OCRProvider] = None,
        engine: Optional[RiskFusionEngine] = None,
    ):
        self.library = library or PatternLibrary()
        self.sender_analyzer = SenderAnalyzer(self.library)
        self.content_analyzer = ContentAnalyzer(self.library)
        self.ml_adapter = ml_adapter or MLVerdictAdapter()
        self.context = context or ContextTracker()
        self.engine = engine or RiskFusionEngine()
        self.qr_scanner = QRScanner(self._analyze_embedded_text, reputation, self.library)
        self.photo_detector = PhotoFraudDetector(self._analyze_embedded_text, ocr, self.library)

    async def load(self) -> bool:
        loaded = await self.ml_adapter.load()
        if loaded:
            logger.info("✅ ML classifier loaded - ML-primary analysis enabled")
        else:
            logger.warning(f"⚠️ ML classifier unavailable ({self.ml_adapter.load_error}) - traditional analysis only")
        return loaded

    # ------------------------------------------------------------------
    # SMS path
    # ------------------------------------------------------------------

    async def analyze_sms(self, data: AnalysisInput) -> SMSAnalysisResult:
        sender = SenderVerdict()
        content = ContentVerdict()
        ml: MLSignal = Unavailable("analysis did not reach ML stage")
        try:
            sender = self.sender_analyzer.analyze(data.sender_info)
            content = self.content_analyzer.analyze(data.message_content)
            ml = await self.ml_adapter.evaluate(
                data.sender_info, data.message_content, enabled=data.enable_ml_analysis)

            event_time = data.received_time.timestamp() if data.received_time else None
            context = self.context.observe(
                event_time, sensitive=analyze_otp(data.message_content).is_sensitive)

            verdict = self.engine.combine(sender, content, ml, context, SMS_SCALE)
        except Exception as e:
            logger.exception("❌ SMS analysis failed")
            context = ContextSignal()
            verdict = self.engine.failsafe_verdict(str(e), SMS_SCALE)

        result = SMSAnalysisResult(
            sender_analysis=sender,
            content_analysis=content,
            ml_analysis=self._ml_analysis(ml, data.enable_ml_analysis),
            verdict=verdict,
            context=context,
        )
        if result.is_fraud:
            logger.warning(
                f"🚨 Fraud SMS from {data.sender_info!r}: level={verdict.risk_level.value} "
                f"confidence={verdict.confidence_score}"
            )
        return result

    # ------------------------------------------------------------------
    # Message path (notifications, pasted text, embedded text)
    # ------------------------------------------------------------------

    async def analyze_message(
        self,
        text: str,
        sender_id: Optional[str] = None,
        track_context: bool = True,
        scale: RiskScale = MESSAGE_SCALE,
    ) -> MessageAnalysisResult:
        text = text if isinstance(text, str) else ""
        otp = OTPAnalysis()
        sender = None
        content = ContentVerdict()
        context = ContextSignal()
        try:
            otp = analyze_otp(text)
            real_sender = is_real_sender(sender_id)
            if real_sender:
                sender = self.sender_analyzer.analyze(sender_id)
            content = self.content_analyzer.analyze(text)
            ml = await self.ml_adapter.evaluate(sender_id if real_sender else None, text)

            if track_context:
                context = self.context.observe(sensitive=otp.is_sensitive)

            risk_flags = [PAYMENT_RED_FLAG] if otp.transaction_type == TransactionType.PAYMENT_OUT else []
            verdict = self.engine.combine(sender, content, ml, context, scale, risk_flags)
        except Exception as e:
            logger.exception("❌ Message analysis failed")
            verdict = self.engine.failsafe_verdict(str(e), scale)

        return MessageAnalysisResult(
            text=text,
            sender_id=sender_id,
            sender_analysis=sender,
            content_analysis=content,
            otp_analysis=otp,
            verdict=verdict,
            context=context,
        )

    async def _analyze_embedded_text(self, text: str, sender_id: str) -> MessageAnalysisResult:
        """Text found inside a QR code or image: no context side effects"""
        return await self.analyze_message(text, sender_id, track_context=False)

    # ------------------------------------------------------------------
    # QR / photo
    # ------------------------------------------------------------------

    async def analyze_qr(self, qr_type: Optional[str], data: Optional[str]) -> QRVerdict:
        return await self.qr_scanner.analyze(qr_type, data)

    async def analyze_photo(self, image_uri: str) -> PhotoVerdict:
        return await self.photo_detector.analyze_photo(image_uri)

    async def analyze_photo_text(self, text: str) -> PhotoVerdict:
        return await self.photo_detector.analyze_text(text)

    # ------------------------------------------------------------------
    # Context + status
    # ------------------------------------------------------------------

    def update_user_interaction(self):
        self.context.update_user_interaction()

    def clear_data(self):
        self.context.reset()
        self.qr_scanner.clear_history()

    def get_status(self) -> Dict:
        state = self.context.state
        return {
            "ml_model_loaded": self.ml_adapter.is_loaded(),
            "ml_degraded": self.ml_adapter.degraded,
            "ml_load_error": self.ml_adapter.load_error,
            "pattern_library_version": self.library.version,
            "last_interaction": state.last_interaction,
            "otp_events_in_window": self.context.frequency.event_count(state),
            "qr": self.qr_scanner.get_status(),
        }

    def _ml_analysis(self, ml: MLSignal, enabled: bool) -> MLAnalysis:
        present = isinstance(ml, Present)
        return MLAnalysis(
            is_enabled=enabled,
            is_model_loaded=self.ml_adapter.is_loaded(),
            verdict=ml.verdict,
            contribution=round(RiskFusionEngine.ML_WEIGHT * 100) if present else 0,
            degraded=not present and ml.degraded,
        )


def build_classifier(settings):
    provider = (settings.ML_PROVIDER or "").lower()
    if provider == "groq":
        return GroqFraudClassifier(settings.GROQ_API_KEY, settings.GROQ_MODEL)
    if provider == "keyword":
        return KeywordFraudClassifier()
    return None


def build_detector(settings, state: Optional[ContextState] = None) -> FraudDetector:
    """Assemble a detector from a Settings object"""
    library = PatternLibrary.load(settings.PATTERN_RULES_PATH) if settings.PATTERN_RULES_PATH else PatternLibrary()

    context = ContextTracker(
        state=state,
        recency=InteractionRecency(active_window_minutes=settings.ACTIVE_USAGE_WINDOW_MINUTES),
        frequency=FrequencyTracker(
            window_minutes=settings.OTP_WINDOW_MINUTES,
            max_events_in_window=settings.OTP_MAX_EVENTS,
            retention_minutes=settings.OTP_RETENTION_MINUTES,
        ),
    )

    return FraudDetector(
        library=library,
        ml_adapter=MLVerdictAdapter(build_classifier(settings), timeout_seconds=settings.ML_TIMEOUT_SECONDS),
        context=context,
        reputation=LocalBlocklistProvider(list(DEFAULT_BLOCKLIST) + list(settings.URL_BLOCKLIST)),
    )
