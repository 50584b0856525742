"""
ML VERDICT ADAPTER - Wraps an opaque fraud classifier

KEY RULES:
1. Builds the exact classifier input: "FROM: <sender>\\nMESSAGE: <content>"
2. Normalizes any confidence representation to 0.0-1.0
3. Load failure, exception or timeout -> unavailable verdict + degraded flag
4. NEVER raises to the caller
"""

import asyncio
import logging
import math
from typing import Any, Optional, Protocol

from .verdicts import MLSignal, MLVerdict, Present, Unavailable

logger = logging.getLogger(__name__)

REASON_DISABLED = "ML analysis disabled by caller"
REASON_NOT_CONFIGURED = "ML classifier not configured"
REASON_NOT_LOADED = "ML model not loaded"
REASON_TIMEOUT = "ML prediction timed out"


class MLClassifier(Protocol):
    is_loaded: bool

    async def load_model(self) -> None:
        ...

    async def predict(self, text: str) -> Any:
        ...


def normalize_confidence(raw: Any) -> float:
    """
    Canonical 0.0-1.0 confidence.
    - 0..1 passes through
    - (1, 100] is treated as a percentage
    - NaN / garbage -> 0.0, everything else clamped
    """
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    if 1.0 < value <= 100.0:
        value = value / 100.0
    return max(0.0, min(1.0, value))


def _field(result: Any, *names: str, default: Any = None) -> Any:
    for name in names:
        if isinstance(result, dict):
            if name in result:
                return result[name]
        elif hasattr(result, name):
            return getattr(result, name)
    return default


def coerce_prediction(result: Any) -> MLVerdict:
    """
    Map a mapping or object returned by a classifier onto MLVerdict.
    Raises ValueError when the reply carries no usable confidence.
    """
    is_fraud = _field(result, "is_fraud", "isFraud", "is_scam", default=False)
    confidence = _field(result, "confidence", "probability", "score")
    if confidence is None:
        raise ValueError("classifier reply has no confidence")
    try:
        value = float(confidence)
    except (TypeError, ValueError):
        raise ValueError(f"unparsable classifier confidence: {confidence!r}")
    if math.isnan(value):
        raise ValueError("classifier confidence is NaN")
    details = _field(result, "details", "explanation", default="")
    return MLVerdict(
        is_fraud=bool(is_fraud),
        confidence=normalize_confidence(value),
        details=str(details or ""),
    )


class MLVerdictAdapter:
    """Adapter between the fusion engine and an external classifier"""

    def __init__(self, classifier: Optional[MLClassifier] = None, timeout_seconds: float = 5.0):
        self.classifier = classifier
        self.timeout_seconds = timeout_seconds
        self.load_error: Optional[str] = None

    def is_loaded(self) -> bool:
        return bool(self.classifier is not None and getattr(self.classifier, "is_loaded", False))

    @property
    def degraded(self) -> bool:
        return not self.is_loaded()

    async def load(self) -> bool:
        if self.classifier is None:
            self.load_error = REASON_NOT_CONFIGURED
            return False
        try:
            await self.classifier.load_model()
            self.load_error = None
        except Exception as e:
            self.load_error = f"ML model failed to load: {e}"
            logger.warning(f"⚠️ {self.load_error} - running in degraded mode")
            return False
        return self.is_loaded()

    @staticmethod
    def build_model_input(sender: Optional[str], content: Optional[str]) -> str:
        sender = (sender or "").strip()
        content = content or ""
        if sender and content:
            return f"FROM: {sender}\nMESSAGE: {content}"
        return content or sender

    async def predict(self, full_message: str) -> MLVerdict:
        """Classifier verdict, or the unavailable value. Never raises."""
        signal = await self._predict_signal(full_message)
        return signal.verdict

    async def evaluate(self, sender: Optional[str], content: str, enabled: bool = True) -> MLSignal:
        if not enabled:
            return Unavailable(REASON_DISABLED, degraded=False)
        return await self._predict_signal(self.build_model_input(sender, content))

    async def _predict_signal(self, text: str) -> MLSignal:
        if self.classifier is None:
            return Unavailable(REASON_NOT_CONFIGURED)
        if not self.is_loaded():
            return Unavailable(self.load_error or REASON_NOT_LOADED)

        try:
            raw = await asyncio.wait_for(self.classifier.predict(text), timeout=self.timeout_seconds)
            return Present(coerce_prediction(raw))
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ ML prediction exceeded {self.timeout_seconds}s - using traditional analysis")
            return Unavailable(REASON_TIMEOUT)
        except Exception as e:
            logger.warning(f"⚠️ ML prediction failed: {e} - using traditional analysis")
            return Unavailable(f"ML prediction failed: {e}")
