# api/security/webhook_auth.py

import hmac
import logging
from typing import Mapping, Optional

from fastapi import Request

from api.errors import Unauthorized

logger = logging.getLogger(__name__)

WEBHOOK_TOKEN_HEADER = "X-Webhook-Token"


def extract_token(headers: Mapping[str, str]) -> Optional[str]:
    """Token from 'Authorization: Bearer <token>', else from the X-Webhook-Token header."""
    headers = {key.lower(): value for key, value in headers.items()}
    authorization = (headers.get("authorization") or "").strip()
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()

    custom = (headers.get(WEBHOOK_TOKEN_HEADER.lower()) or "").strip()
    return custom or None


def verify_webhook_secret(headers: Mapping[str, str], secret: str, client_host: str = "unknown") -> None:
    """
    No-op when no secret is configured. Otherwise the request must present it.
    Raises Unauthorized.
    """
    if not secret:
        return

    token = extract_token(headers)
    if not token:
        logger.error(f"❌ Portal webhook request missing token from IP: {client_host}")
        raise Unauthorized(f"Missing token: send 'Authorization: Bearer <token>' or '{WEBHOOK_TOKEN_HEADER}'")

    if not hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8")):
        logger.error(f"❌ Portal webhook token mismatch from IP: {client_host}")
        raise Unauthorized("Invalid token")

    logger.info("✅ Portal webhook token validated successfully")


def verify_request(request: Request, secret: str) -> None:
    client_host = request.client.host if request.client else "unknown"
    verify_webhook_secret(request.headers, secret, client_host)
