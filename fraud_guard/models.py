from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SMSAnalysisRequest(BaseModel):
    senderInfo: str  # Shortcode, DLT header or phone number
    messageContent: str
    receivedTime: Optional[datetime] = None
    userLocation: Optional[str] = None
    enableMLAnalysis: bool = True


class MessageAnalysisRequest(BaseModel):
    text: str
    senderId: Optional[str] = None  # e.g. UNKNOWN_APP / MANUAL_INPUT for non-SMS text


class QRAnalysisRequest(BaseModel):
    type: str = "UNKNOWN"  # URL / WIFI / VCARD / EMAIL / SMS / TEL / TEXT ...
    data: str


class PhotoTextRequest(BaseModel):
    text: str  # OCR output


class InteractionResponse(BaseModel):
    status: str
    lastInteraction: Optional[float] = None


class HealthResponse(BaseModel):
    status: str
    version: str


class AlertPayload(BaseModel):
    title: str
    body: str
    riskLevel: str
    source: str
    messagePreview: str = ""
    otpCode: Optional[str] = None
    amount: Optional[float] = None
    timestamp: float = Field(default_factory=lambda: datetime.now().timestamp())
