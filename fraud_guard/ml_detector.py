"""
ML DETECTOR - Bundled fraud classifiers behind the MLClassifier contract

Two implementations:
- KeywordFraudClassifier: lightweight weighted-feature model, no training
  data or network needed. Default classifier.
- GroqFraudClassifier: LLM judge via Groq. Needs GROQ_API_KEY.

CONTRACT (consumed by MLVerdictAdapter):
- async load_model()        may raise
- async predict(text)       may raise / hang; returns is_fraud + confidence
- is_loaded                 bool property
`confidence` is the probability (0.0-1.0) that the message is fraud.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from groq import AsyncGroq

from .patterns import LEGITIMATE_SHORTCODES

logger = logging.getLogger(__name__)

MODEL_INPUT = re.compile(r'^FROM:\s*(?P<sender>.*?)\nMESSAGE:\s*(?P<body>.*)$', re.DOTALL)


class ModelNotLoadedError(RuntimeError):
    """predict() called before a successful load_model()"""


@dataclass
class MLPrediction:
    """ML model prediction result"""
    is_fraud: bool
    confidence: float
    details: str
    features_triggered: List[str] = field(default_factory=list)


def split_model_input(text: str) -> Tuple[Optional[str], str]:
    """Undo the FROM:/MESSAGE: framing built by the adapter"""
    match = MODEL_INPUT.match(text or "")
    if not match:
        return None, text or ""
    return match.group("sender").strip(), match.group("body")


class FeatureExtractor:
    """Extract features from SMS text for classification"""

    def __init__(self):
        self._init_feature_weights()

    def _init_feature_weights(self):
        """Feature importance weights based on Indian SMS fraud samples"""

        self.fraud_ngrams = {
            # Urgency
            "act now": 3.0,
            "immediately": 2.5,
            "urgent": 2.5,
            "within 24 hours": 2.5,
            "last chance": 2.5,
            "final warning": 3.0,
            "expires today": 2.5,

            # Threats
            "has been blocked": 3.5,
            "will be blocked": 3.0,
            "has been suspended": 3.5,
            "will be suspended": 3.0,
            "legal action": 3.0,
            "arrest warrant": 4.0,
            "reactivate": 2.0,

            # Credential requests
            "share otp": 4.0,
            "send otp": 4.0,
            "share your otp": 4.0,
            "upi pin": 3.5,
            "atm pin": 4.0,
            "cvv": 3.5,
            "update kyc": 3.0,
            "verify your account": 3.0,
            "click link": 2.5,
            "click here": 2.0,

            # Rewards
            "lottery": 3.5,
            "you have won": 3.5,
            "claim your": 2.5,
            "prize": 2.5,
            "free gift": 2.5,

            # Remote access
            "anydesk": 4.0,
            "teamviewer": 4.0,
        }

        # Phrasing typical of genuine bank / merchant notifications
        self.safe_ngrams = {
            "has been credited": -1.5,
            "credited to your": -1.5,
            "debited from": -1.0,
            "available balance": -1.0,
            "avl bal": -1.0,
            "is your otp": -1.0,
            "do not share": -1.5,
            "never share": -1.5,
            "thank you for": -1.0,
        }

    def extract_features(self, text: str) -> Tuple[Dict[str, float], List[str]]:
        features: Dict[str, float] = {}
        text_lower = text.lower()

        ngram_score = 0.0
        triggered = []
        for ngram, weight in self.fraud_ngrams.items():
            if ngram in text_lower:
                ngram_score += weight
                triggered.append(ngram)
        for ngram, weight in self.safe_ngrams.items():
            if ngram in text_lower:
                ngram_score += weight

        features["ngram_score"] = ngram_score
        features["ngram_count"] = len(triggered)
        features["exclamation_count"] = min(text.count("!"), 5)
        features["caps_ratio"] = sum(1 for c in text if c.isupper()) / max(len(text), 1)

        urls = re.findall(r'https?://\S+|www\.\S+', text_lower)
        features["has_suspicious_url"] = 1.0 if any(
            not any(safe in url for safe in ("sbi.co.in", "hdfcbank.com", "icicibank.com", "axisbank.com",
                                             "paytm.com", "amazon.in", "uidai.gov.in"))
            for url in urls
        ) else 0.0
        features["has_phone_pattern"] = 1.0 if re.search(r'(?:\+91[\-\s]?)?\b[6-9]\d{9}\b', text) else 0.0

        urgency_words = ["urgent", "immediate", "now", "today", "hurry", "asap"]
        threat_words = ["block", "suspend", "arrest", "legal", "police", "penalty", "frozen"]
        request_words = ["share", "send", "click", "provide", "verify", "update"]
        features["urgency_score"] = sum(1 for w in urgency_words if w in text_lower) * 0.5
        features["threat_score"] = sum(1 for w in threat_words if w in text_lower) * 0.7
        features["request_score"] = sum(1 for w in request_words if w in text_lower) * 0.5

        return features, triggered


class KeywordFraudClassifier:
    """
    Lightweight weighted scoring model that doesn't require training data.
    Sigmoid over a linear combination of lexical features.
    """

    VERIFIED_SENDER_CREDIT = 1.0

    def __init__(self, threshold: float = 0.5):
        self.feature_extractor = FeatureExtractor()
        self.threshold = threshold
        self.bias = -0.3
        self.weights = {
            "ngram_score": 0.25,
            "ngram_count": 0.15,
            "threat_score": 0.20,
            "urgency_score": 0.15,
            "request_score": 0.10,
            "has_suspicious_url": 0.30,
            "has_phone_pattern": 0.05,
            "exclamation_count": 0.05,
            "caps_ratio": 0.20,
        }
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load_model(self) -> None:
        self._loaded = True
        logger.info("Keyword fraud classifier ready")

    async def predict(self, text: str) -> MLPrediction:
        if not self._loaded:
            raise ModelNotLoadedError("Keyword classifier used before load_model()")

        sender, body = split_model_input(text)
        features, triggered = self.feature_extractor.extract_features(body)

        score = self.bias
        for feature, weight in self.weights.items():
            score += features.get(feature, 0.0) * weight
        if sender and sender.upper() in LEGITIMATE_SHORTCODES:
            score -= self.VERIFIED_SENDER_CREDIT

        probability = 1 / (1 + math.exp(-score * 2))

        details = f"Triggered patterns: {', '.join(triggered[:5])}" if triggered else "No significant indicators"
        return MLPrediction(
            is_fraud=probability >= self.threshold,
            confidence=probability,
            details=details,
            features_triggered=triggered,
        )


class GroqFraudClassifier:
    """
    LLM-backed fraud judge using Groq.
    load_model() fails when no API key is configured, which leaves the
    adapter in degraded mode and the engine on the traditional path.
    """

    SYSTEM_PROMPT = (
        "You are an SMS fraud detection expert for Indian banking and UPI users. "
        "Analyze messages for fraud indicators. Return only valid JSON."
    )

    def __init__(self, api_key: Optional[str], model: str = "llama-3.1-8b-instant"):
        self.api_key = api_key
        self.model = model
        self.client: Optional[AsyncGroq] = None

    @property
    def is_loaded(self) -> bool:
        return self.client is not None

    async def load_model(self) -> None:
        if not self.api_key:
            raise ModelNotLoadedError("GROQ_API_KEY not configured")
        self.client = AsyncGroq(api_key=self.api_key)
        logger.info(f"Groq fraud classifier ready (model={self.model})")

    async def predict(self, text: str) -> Dict:
        if self.client is None:
            raise ModelNotLoadedError("Groq classifier used before load_model()")

        prompt = f"""Classify this SMS as fraud or legitimate.

{text}

Respond in this exact JSON format only:
{{"is_fraud": true|false, "fraud_probability": 0.0-1.0, "reasoning": "brief explanation"}}"""

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.1,
            max_tokens=200,
        )
        return self.parse_response(response.choices[0].message.content)

    @staticmethod
    def parse_response(result_text: str) -> Dict:
        result_text = (result_text or "").strip()
        # Strip markdown code fences
        if result_text.startswith("```"):
            result_text = result_text.split("```")[1]
            if result_text.startswith("json"):
                result_text = result_text[4:]

        result = json.loads(result_text)
        if result.get("fraud_probability") is None:
            raise ValueError("Groq reply has no fraud_probability")
        return {
            "is_fraud": bool(result.get("is_fraud", False)),
            "confidence": result["fraud_probability"],
            "details": result.get("reasoning", ""),
        }
