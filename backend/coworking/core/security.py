"""
Request authentication for the non-public surfaces.

- Admin routes require the shared ADMIN_API_KEY in X-Admin-Key.
- Order system callbacks are signed with HMAC-SHA256 over the raw body
  (X-Webhook-Signature, hex digest) when ORDER_WEBHOOK_SECRET is set.
"""

import hashlib
import hmac

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from coworking.core.config import Settings, get_settings
from coworking.core.logging import get_logger

logger = get_logger(__name__)

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_signature(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


async def require_admin(
    api_key: str = Depends(admin_key_header),
    settings: Settings = Depends(get_settings),
) -> None:
    if not constant_time_compare(api_key or "", settings.ADMIN_API_KEY):
        logger.warning("admin_auth_failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )


async def verify_webhook_signature(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """No-op when no secret is configured (local development)."""
    if not settings.ORDER_WEBHOOK_SECRET:
        return

    body = await request.body()
    expected = compute_signature(settings.ORDER_WEBHOOK_SECRET, body)
    provided = request.headers.get("X-Webhook-Signature", "")
    if not constant_time_compare(provided, expected):
        logger.warning("webhook_signature_invalid", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )
