# api/services/payload_normalizer.py

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from api.errors import EmptyBody, InvalidPayload, MissingIdentifier

logger = logging.getLogger(__name__)

PROPERTY_CODE_NOT_INFORMED = "NÃO INFORMADO"

PHONE_DELIMITERS = re.compile(r"[/,;]")

# "(Código ABC-123)", "(codigo ABC-123)", "(CÓDIGO ABC-123)"
PROPERTY_CODE_PATTERN = re.compile(r"\(\s*c[óo]digo:?\s+([A-Z0-9-]+)\s*\)", re.IGNORECASE)

# Portal identifiers copied verbatim into the CRM comment, in this order
PASS_THROUGH_FIELDS = [
    ("eventId", "Event ID"),
    ("contactId", "Contact ID"),
    ("messageId", "Message ID"),
    ("internalReference", "Referência interna"),
    ("idNavplat", "ID Navplat"),
    ("clientCode", "Código do cliente"),
    ("publicationPlan", "Plano de publicação"),
    ("userIdNavplat", "User ID Navplat"),
    ("contactTypeId", "Tipo de contato"),
    ("registerDate", "Data de registro"),
]


class PortalLead(BaseModel):
    """Inbound portal inquiry after normalization."""

    name: Optional[str] = None
    email: Optional[str] = None
    phones: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    property_code: str = PROPERTY_CODE_NOT_INFORMED
    publication_plan: Optional[str] = None
    identifiers: Dict[str, str] = Field(default_factory=dict)
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.email or (self.phones[0] if self.phones else "Sem nome")


def _clean_text(value: Any) -> Optional[str]:
    """Trim strings and stringify scalars; blank becomes None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def parse_body(body: Union[None, str, bytes, Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Accept an already-parsed mapping or a JSON-encoded string/bytes body.
    """
    if body is None:
        raise EmptyBody("Request body is empty")

    if isinstance(body, Mapping):
        return dict(body)

    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidPayload(f"Body is not valid UTF-8: {e}")

    if isinstance(body, str):
        if not body.strip():
            raise EmptyBody("Request body is empty")
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as e:
            logger.warning(f"⚠️ Body is not valid JSON: {e}")
            raise InvalidPayload(f"Body is not valid JSON: {e.msg}")
        if parsed is None:
            raise EmptyBody("Request body is JSON null")
        if not isinstance(parsed, dict):
            raise InvalidPayload("JSON body must be an object")
        return parsed

    raise InvalidPayload(f"Unsupported body type: {type(body).__name__}")


def split_phones(raw_phone: Any) -> List[str]:
    """'11 1111-1111/22 2222-2222' -> ['11 1111-1111', '22 2222-2222']"""
    text = _clean_text(raw_phone)
    if not text:
        return []
    return [segment.strip() for segment in PHONE_DELIMITERS.split(text) if segment.strip()]


def extract_property_code(message: Any) -> str:
    text = _clean_text(message)
    if not text:
        return PROPERTY_CODE_NOT_INFORMED
    match = PROPERTY_CODE_PATTERN.search(text)
    if not match:
        return PROPERTY_CODE_NOT_INFORMED
    return match.group(1).upper()


def normalize_payload(body: Union[None, str, bytes, Mapping[str, Any]]) -> PortalLead:
    """
    Parse the webhook body and build a PortalLead.

    Raises EmptyBody, InvalidPayload or MissingIdentifier; all map to HTTP 400.
    """
    payload = parse_body(body)

    name = _clean_text(payload.get("name"))
    email = _clean_text(payload.get("email"))
    phones = split_phones(payload.get("phone"))

    if not name and not email and not _clean_text(payload.get("phone")):
        logger.warning(f"⚠️ Payload without name/email/phone. Keys received: {list(payload.keys())}")
        raise MissingIdentifier("At least one of name, email or phone is required")

    message = _clean_text(payload.get("message"))

    identifiers = {}
    for key, _label in PASS_THROUGH_FIELDS:
        value = _clean_text(payload.get(key))
        if value is not None:
            identifiers[key] = value

    lead = PortalLead(
        name=name,
        email=email,
        phones=phones,
        message=message,
        property_code=extract_property_code(message),
        publication_plan=identifiers.get("publicationPlan"),
        identifiers=identifiers,
        raw=payload,
    )

    logger.info(
        f"📋 Normalized portal payload: name={'yes' if name else 'no'}, "
        f"email={'yes' if email else 'no'}, phones={len(phones)}, property_code={lead.property_code}"
    )
    return lead
