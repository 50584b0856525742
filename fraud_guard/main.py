"""
MAIN API - FastAPI service over the fraud detector

ROUTES:
POST   /analyze/sms          SMS (sender + content + ML + context)
POST   /analyze/message      notification / pasted text
POST   /analyze/qr           QR payload
POST   /analyze/photo-text   OCR text from an image
POST   /context/interaction  user is actively using the app
DELETE /context              forget context + scan history
GET    /status               detector status
GET    /health               liveness (no auth)
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .alerts import build_alert, send_alert_with_retry
from .auth import get_api_key
from .config import settings
from .fraud_detector import build_detector
from .models import (
    HealthResponse, InteractionResponse, MessageAnalysisRequest, PhotoTextRequest,
    QRAnalysisRequest, SMSAnalysisRequest,
)
from .risk_engine import MESSAGE_SCALE, RECOMMENDED_ACTIONS
from .verdicts import AnalysisInput

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

detector = build_detector(settings)

# Strong references to in-flight alert deliveries
_alert_tasks = set()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await detector.load()
    yield


app = FastAPI(title="Fraud Guard API", version=VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_text(value: str, field: str):
    if not value or not value.strip():
        raise HTTPException(status_code=400, detail=f"Invalid request: '{field}' must not be empty")


def _dispatch_alert(payload):
    """Fire-and-forget webhook; the response never waits on it"""
    if payload is None or not settings.ALERT_WEBHOOK_URL:
        return
    task = asyncio.create_task(send_alert_with_retry(payload, settings.ALERT_WEBHOOK_URL))
    _alert_tasks.add(task)
    task.add_done_callback(_alert_tasks.discard)


@app.post("/analyze/sms")
async def analyze_sms(request: SMSAnalysisRequest, api_key: str = Depends(get_api_key)):
    _require_text(request.messageContent, "messageContent")

    result = await detector.analyze_sms(AnalysisInput(
        sender_info=request.senderInfo,
        message_content=request.messageContent,
        received_time=request.receivedTime,
        user_location=request.userLocation,
        enable_ml_analysis=request.enableMLAnalysis,
    ))
    verdict = result.verdict
    _dispatch_alert(build_alert(
        verdict.risk_level, verdict.recommended_action, "SMS", request.messageContent))
    return result.to_dict()


@app.post("/analyze/message")
async def analyze_message(request: MessageAnalysisRequest, api_key: str = Depends(get_api_key)):
    _require_text(request.text, "text")

    result = await detector.analyze_message(request.text, request.senderId)
    verdict = result.verdict
    _dispatch_alert(build_alert(
        verdict.risk_level, verdict.recommended_action, "MESSAGE", request.text, result.otp_analysis))
    return result.to_dict()


@app.post("/analyze/qr")
async def analyze_qr(request: QRAnalysisRequest, api_key: str = Depends(get_api_key)):
    _require_text(request.data, "data")

    result = await detector.analyze_qr(request.type, request.data)
    action = RECOMMENDED_ACTIONS[MESSAGE_SCALE.tier(result.risk_level)]
    _dispatch_alert(build_alert(result.risk_level, action, "QR", request.data))
    return result.to_dict()


@app.post("/analyze/photo-text")
async def analyze_photo_text(request: PhotoTextRequest, api_key: str = Depends(get_api_key)):
    _require_text(request.text, "text")

    result = await detector.analyze_photo_text(request.text)
    action = RECOMMENDED_ACTIONS[MESSAGE_SCALE.tier(result.risk_level)]
    _dispatch_alert(build_alert(result.risk_level, action, "PHOTO", request.text))
    return result.to_dict()


@app.post("/context/interaction", response_model=InteractionResponse)
async def record_interaction(api_key: str = Depends(get_api_key)):
    detector.update_user_interaction()
    return InteractionResponse(status="ok", lastInteraction=detector.context.state.last_interaction)


@app.delete("/context")
async def clear_context(api_key: str = Depends(get_api_key)):
    detector.clear_data()
    return {"status": "cleared"}


@app.get("/status")
async def status(api_key: str = Depends(get_api_key)):
    return detector.get_status()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(status="healthy", version=VERSION)
