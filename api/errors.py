# api/errors.py

from typing import Any, Dict, Optional


class PortalBridgeError(Exception):
    """Base class for every failure the webhook turns into an HTTP response."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        body = {
            "status": self.error_code,
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


# --- Payload errors (400) ---

class PayloadError(PortalBridgeError):
    status_code = 400
    error_code = "INVALID_PAYLOAD"


class EmptyBody(PayloadError):
    error_code = "EMPTY_BODY"


class InvalidPayload(PayloadError):
    error_code = "INVALID_PAYLOAD"


class MissingIdentifier(PayloadError):
    error_code = "MISSING_IDENTIFIER"


# --- Auth (401) ---

class Unauthorized(PortalBridgeError):
    status_code = 401
    error_code = "UNAUTHORIZED"


# --- CRM gateway (500) ---

class CrmGatewayError(PortalBridgeError):
    status_code = 500
    error_code = "CRM_GATEWAY_ERROR"


class ConfigMissing(CrmGatewayError):
    error_code = "CONFIG_MISSING"


class TransportFailure(CrmGatewayError):
    error_code = "CRM_TRANSPORT_FAILURE"
