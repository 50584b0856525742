"""
API TESTS
Route wiring, request validation and API key handling.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from fraud_guard import main
from fraud_guard.alerts import build_alert
from fraud_guard.config import settings
from fraud_guard.main import app, detector
from fraud_guard.verdicts import SMSRiskLevel

PHISHING = "Your SBI account has been blocked. Click here to verify immediately and share OTP to reactivate."


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", None)
    monkeypatch.setattr(settings, "ALERT_WEBHOOK_URL", None)
    detector.clear_data()
    with TestClient(app) as test_client:
        yield test_client


def test_health_needs_no_key(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "secret")
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": "1.0.0"}


def test_analyze_sms(client):
    response = client.post("/analyze/sms", json={"senderInfo": "SBI12345", "messageContent": PHISHING})
    assert response.status_code == 200

    body = response.json()
    assert body["isFraud"] is True
    assert body["riskLevel"] in ("HIGH", "CRITICAL")
    assert body["senderAnalysis"]["senderLegitimacy"] == "fraudulent"


def test_empty_message_is_rejected(client):
    response = client.post("/analyze/sms", json={"senderInfo": "SBIINB", "messageContent": "   "})
    assert response.status_code == 400


def test_missing_field_is_validation_error(client):
    response = client.post("/analyze/sms", json={"senderInfo": "SBIINB"})
    assert response.status_code == 422


def test_analyze_message(client):
    response = client.post("/analyze/message", json={"text": "Your card will be blocked.", "senderId": "MANUAL_INPUT"})
    assert response.status_code == 200
    assert response.json()["senderAnalysis"] is None


def test_analyze_qr(client):
    response = client.post("/analyze/qr", json={"type": "URL", "data": "upi://pay?pa=refund@fakepay&pn=Shop&am=10"})
    assert response.status_code == 200
    assert response.json()["riskLevel"] == "CRITICAL"

    assert client.post("/analyze/qr", json={"data": ""}).status_code == 400


def test_analyze_photo_text(client):
    response = client.post("/analyze/photo-text", json={"text": "Screenshot 2024"})
    assert response.status_code == 200
    assert response.json()["riskScore"] == 10


def test_interaction_status_and_clear(client):
    response = client.post("/context/interaction")
    assert response.status_code == 200
    assert response.json()["lastInteraction"] is not None

    status = client.get("/status").json()
    assert status["last_interaction"] is not None

    assert client.delete("/context").json() == {"status": "cleared"}
    assert client.get("/status").json()["last_interaction"] is None


def test_api_key_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "secret")

    assert client.get("/status").status_code == 403
    assert client.get("/status", headers={"x-api-key": "wrong"}).status_code == 403
    assert client.get("/status", headers={"x-api-key": "secret"}).status_code == 200


def test_alert_task_is_held_until_delivery_finishes(monkeypatch):
    delivered = []

    async def fake_delivery(payload, url):
        delivered.append(url)
        return True

    monkeypatch.setattr(settings, "ALERT_WEBHOOK_URL", "https://alerts.example/hook")
    monkeypatch.setattr(main, "send_alert_with_retry", fake_delivery)

    async def run():
        main._dispatch_alert(build_alert(SMSRiskLevel.HIGH, "VERIFY", "SMS"))
        assert len(main._alert_tasks) == 1
        await next(iter(main._alert_tasks))
        await asyncio.sleep(0)

    asyncio.run(run())
    assert delivered == ["https://alerts.example/hook"]
    assert not main._alert_tasks
