from typing import Optional

from fastapi import Header, HTTPException

from .config import settings


async def get_api_key(x_api_key: Optional[str] = Header(None, alias="x-api-key")):
    """
    Validate API key from x-api-key header.
    With no FRAUD_GUARD_API_KEY configured the API is open.
    """
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API Key")
    return x_api_key
