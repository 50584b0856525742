"""
PHOTO FRAUD DETECTOR - OCR text + image-specific scam patterns

Pipeline:
1. OCR text (from an OCRProvider, or passed in directly)
2. Message-path analysis of the text
3. Screenshot / document / social-media scam patterns
4. Visual context hints found in the text
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from .patterns import PHOTO_EDITING_WORDS, PatternLibrary, first_match
from .risk_engine import PHOTO_SCALE
from .verdicts import ThreatLevel

logger = logging.getLogger(__name__)

TEXT_LEVEL_POINTS = {
    ThreatLevel.SAFE: 0,
    ThreatLevel.SUSPICIOUS: 40,
    ThreatLevel.HIGH_RISK: 60,
    ThreatLevel.CRITICAL: 80,
}


@dataclass
class OCRResult:
    success: bool
    text: str = ""
    error: Optional[str] = None


class OCRProvider(Protocol):
    async def extract_text(self, image_uri: str) -> OCRResult:
        ...


@dataclass
class PhotoVerdict:
    is_fraudulent: bool = False
    risk_level: ThreatLevel = ThreatLevel.SAFE
    risk_score: float = 0
    extracted_text: str = ""
    fraud_indicators: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    detection_methods: List[str] = field(default_factory=list)
    confidence: float = 0
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict:
        return {
            "isFraudulent": self.is_fraudulent,
            "riskLevel": self.risk_level.value,
            "riskScore": self.risk_score,
            "extractedText": self.extracted_text,
            "fraudIndicators": list(self.fraud_indicators),
            "warnings": list(self.warnings),
            "detectionMethods": list(self.detection_methods),
            "confidence": self.confidence,
            "timestamp": self.timestamp,
        }


TextAnalyzer = Callable[[str, str], Awaitable]


class PhotoFraudDetector:
    def __init__(
        self,
        text_analyzer: TextAnalyzer,
        ocr: Optional[OCRProvider] = None,
        library: Optional[PatternLibrary] = None,
    ):
        self.text_analyzer = text_analyzer
        self.ocr = ocr
        self.library = library or PatternLibrary()

    async def analyze_photo(self, image_uri: str) -> PhotoVerdict:
        if self.ocr is None:
            result = PhotoVerdict(confidence=20)
            result.warnings.append("No OCR provider configured")
            return result

        try:
            ocr_result = await self.ocr.extract_text(image_uri)
        except Exception as e:
            logger.warning(f"⚠️ OCR failed for {image_uri}: {e!r}")
            ocr_result = OCRResult(success=False, error=str(e))

        if not ocr_result.success or not ocr_result.text:
            result = PhotoVerdict(confidence=20)
            result.warnings.append("Could not extract text from image")
            return result

        result = await self.analyze_text(ocr_result.text)
        result.detection_methods.insert(0, "OCR Text Extraction")
        return result

    async def analyze_text(self, text: str) -> PhotoVerdict:
        """Score text already extracted from an image"""
        text = text or ""
        result = PhotoVerdict(extracted_text=text)

        if not text.strip():
            result.confidence = 20
            result.warnings.append("Could not extract text from image")
            return result

        try:
            text_result = await self.text_analyzer(text, "IMAGE_CONTENT")
            level = text_result.risk_level
            if level != ThreatLevel.SAFE:
                result.risk_score += TEXT_LEVEL_POINTS.get(level, 20)
                result.fraud_indicators.append(text_result.explanation.summary)
                result.detection_methods.append("AI Text Analysis")

            self._photo_patterns(text, result)
            self._visual_context(text, result)

            result.risk_level = PHOTO_SCALE.level_for(result.risk_score)
            result.is_fraudulent = PHOTO_SCALE.tier(result.risk_level) >= 2
            result.confidence = min(95, 60 + result.risk_score / 2)
        except Exception:
            logger.exception("❌ Photo fraud analysis failed")
            result.warnings.append("Analysis failed - treating as suspicious")
            result.is_fraudulent = False
            result.risk_level = ThreatLevel.SUSPICIOUS
            result.risk_score = 50
            result.confidence = 30
            return result

        logger.info(
            f"📸 Photo analysis: level={result.risk_level.value} "
            f"score={result.risk_score} confidence={result.confidence}"
        )
        return result

    def _photo_patterns(self, text: str, result: PhotoVerdict):
        lower = text.lower()
        found = len(result.fraud_indicators)

        screenshot = first_match(self.library.photo_screenshot_rules, text)
        if screenshot:
            result.risk_score += screenshot.score
            result.fraud_indicators.append(screenshot.description)
            result.warnings.append(f"Screenshot fraud pattern detected: {screenshot.description}")

        if "qr" in lower or ("scan" in lower and "pay" in lower):
            result.risk_score += 15
            result.fraud_indicators.append("QR code payment request in image")
            result.warnings.append("Verify QR code payments carefully")

        document = first_match(self.library.photo_document_rules, text)
        if document:
            result.risk_score += document.score
            result.fraud_indicators.append(document.description)
            result.warnings.append(f"Document fraud detected: {document.description}")

        if ("whatsapp" in lower or "telegram" in lower) and any(
                word in lower for word in ("lottery", "winner", "prize")):
            result.risk_score += 35
            result.fraud_indicators.append("Social media lottery scam screenshot")
            result.warnings.append("Social media lottery scams are common fraud")

        if len(result.fraud_indicators) > found:
            result.detection_methods.append("Photo-Specific Pattern Analysis")

    def _visual_context(self, text: str, result: PhotoVerdict):
        found = len(result.fraud_indicators)

        if "Screenshot" in text or "screen shot" in text:
            result.risk_score += 5
            result.fraud_indicators.append("Screenshot detected")
            result.warnings.append("Screenshots can be easily manipulated")

        lower = text.lower()
        editing = next((word for word in PHOTO_EDITING_WORDS if word in lower), None)
        if editing:
            result.risk_score += 15
            result.fraud_indicators.append(f"Image editing indicator: {editing}")
            result.warnings.append("Image may have been digitally manipulated")

        if len(text.split()) < 5:
            result.risk_score += 5
            result.fraud_indicators.append("Low text extraction quality")
            result.warnings.append("Poor image quality may indicate manipulation")

        if len(result.fraud_indicators) > found:
            result.detection_methods.append("Visual Context Analysis")
