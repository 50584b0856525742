import os
from typing import List, Optional

from dotenv import load_dotenv

# --------------------------------------------------
# Load environment variables ONCE
# --------------------------------------------------
load_dotenv()


def _csv(raw: str) -> List[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


class Settings:
    """
    Centralized configuration, read from the environment at construction.
    Only the HTTP glue reads this; the core takes plain constructor args.
    """

    def __init__(self):
        # ---------------------------
        # Endpoint auth (unset -> API open)
        # ---------------------------
        self.API_KEY: Optional[str] = os.getenv("FRAUD_GUARD_API_KEY") or None

        # ---------------------------
        # ML classifier: keyword | groq | none
        # ---------------------------
        self.ML_PROVIDER: str = os.getenv("ML_PROVIDER", "keyword").lower()
        self.GROQ_API_KEY: Optional[str] = os.getenv("GROQ_API_KEY") or None
        self.GROQ_MODEL: str = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
        # Past this the ML signal counts as unavailable
        self.ML_TIMEOUT_SECONDS: float = float(os.getenv("ML_TIMEOUT_SECONDS", "5.0"))

        # ---------------------------
        # Context tracking
        # ---------------------------
        self.ACTIVE_USAGE_WINDOW_MINUTES: float = float(os.getenv("ACTIVE_USAGE_WINDOW_MINUTES", "2"))
        self.OTP_WINDOW_MINUTES: float = float(os.getenv("OTP_WINDOW_MINUTES", "5"))
        self.OTP_MAX_EVENTS: int = int(os.getenv("OTP_MAX_EVENTS", "3"))
        self.OTP_RETENTION_MINUTES: float = float(os.getenv("OTP_RETENTION_MINUTES", "10"))

        # ---------------------------
        # Rules / reputation
        # ---------------------------
        self.URL_BLOCKLIST: List[str] = _csv(os.getenv("URL_BLOCKLIST", ""))
        self.PATTERN_RULES_PATH: Optional[str] = os.getenv("PATTERN_RULES_PATH") or None

        # ---------------------------
        # Alerts
        # ---------------------------
        self.ALERT_WEBHOOK_URL: Optional[str] = os.getenv("ALERT_WEBHOOK_URL") or None

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


# --------------------------------------------------
# Settings object for the HTTP service
# --------------------------------------------------
settings = Settings()
