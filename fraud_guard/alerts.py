import asyncio
import logging
from typing import Optional

import httpx

from .models import AlertPayload
from .otp_insight import OTPAnalysis
from .verdicts import SMSRiskLevel, ThreatLevel

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100
LOWEST_LEVELS = (SMSRiskLevel.LOW, ThreatLevel.SAFE)

# ======================================================================
# ALERT HAND-OFF: NON-BLOCKING WEBHOOK WITH RETRY
# ----------------------------------------------------------------------
# send_alert_with_retry() is scheduled as a background task so the API
# response never waits on the webhook. Up to 3 attempts with exponential
# backoff (2s, 4s). Failures are logged, never raised.
# ======================================================================


def build_alert(
    risk_level,
    recommended_action: str,
    source: str,
    message: str = "",
    otp: Optional[OTPAnalysis] = None,
) -> Optional[AlertPayload]:
    """Alert for any verdict above the lowest level, else None"""
    if risk_level in LOWEST_LEVELS:
        return None

    body = [recommended_action]
    if otp is not None and otp.otp_code:
        body.append(f"OTP: {otp.otp_code}")
    if otp is not None and otp.amount is not None:
        body.append(f"Amount: ₹{otp.amount:,.2f}")

    preview = message if len(message) <= PREVIEW_LENGTH else message[:PREVIEW_LENGTH] + "..."
    return AlertPayload(
        title=f"Fraud Alert - {risk_level.value}",
        body=" | ".join(body),
        riskLevel=risk_level.value,
        source=source,
        messagePreview=preview,
        otpCode=otp.otp_code if otp is not None else None,
        amount=otp.amount if otp is not None else None,
    )


async def send_alert(payload: AlertPayload, webhook_url: str) -> bool:
    """
    Single-shot POST of the alert.
    Returns True on a 2xx response, False otherwise.
    """
    async with httpx.AsyncClient() as client:
        try:
            response = await client.post(
                webhook_url,
                json=payload.model_dump(),
                headers={"Content-Type": "application/json"},
                timeout=10.0,
            )
            logger.info(f"Alert webhook response: status={response.status_code}")
            return response.is_success
        except Exception as e:
            logger.error(f"Alert webhook failed: {e}")
            return False


async def send_alert_with_retry(
    payload: AlertPayload,
    webhook_url: str,
    max_retries: int = 3,
    base_delay: float = 2.0,
) -> bool:
    for attempt in range(1, max_retries + 1):
        if await send_alert(payload, webhook_url):
            logger.info(f"✅ Alert delivered on attempt {attempt}")
            return True

        if attempt < max_retries:
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"⚠️ Alert attempt {attempt} failed, retrying in {delay}s...")
            await asyncio.sleep(delay)

    logger.error(f"❌ Alert delivery failed after {max_retries} attempts")
    return False
