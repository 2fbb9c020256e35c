# api/services/crm_gateway.py

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from api.errors import ConfigMissing, TransportFailure
from config import BridgeSettings

logger = logging.getLogger(__name__)

METHOD_FIND_DUPLICATES = "crm.duplicate.findbycomm"
METHOD_ADD_LEAD = "crm.lead.add"
METHOD_ADD_ACTIVITY = "crm.activity.add"


@dataclass
class CrmResult:
    """
    Outcome of one RPC call that reached the CRM and came back as JSON.

    ok=False means the CRM answered with an error envelope; transport problems
    never produce a CrmResult, they raise TransportFailure.
    """
    ok: bool
    result: Any = None
    error: Optional[str] = None
    error_description: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def error_details(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "error_description": self.error_description,
            "response": self.payload,
        }


class LookupStatus(Enum):
    FOUND = "found"
    NOT_CHECKED = "not_checked"
    LOOKUP_FAILED = "lookup_failed"


@dataclass
class DuplicateLookup:
    channel: str
    status: LookupStatus
    lead_ids: List[int] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_match(self) -> bool:
        return self.status == LookupStatus.FOUND and bool(self.lead_ids)

    @classmethod
    def not_checked(cls, channel: str) -> "DuplicateLookup":
        return cls(channel=channel, status=LookupStatus.NOT_CHECKED)

    @classmethod
    def failed(cls, channel: str, error: str) -> "DuplicateLookup":
        return cls(channel=channel, status=LookupStatus.LOOKUP_FAILED, error=error)


@dataclass
class DuplicateCheck:
    phone: DuplicateLookup
    email: DuplicateLookup

    @property
    def is_duplicate(self) -> bool:
        return self.phone.has_match or self.email.has_match

    @property
    def lead_id(self) -> Optional[int]:
        """Phone match wins over email match."""
        if self.phone.has_match:
            return self.phone.lead_ids[0]
        if self.email.has_match:
            return self.email.lead_ids[0]
        return None

    @property
    def matched_channel(self) -> Optional[str]:
        if self.phone.has_match:
            return self.phone.channel
        if self.email.has_match:
            return self.email.channel
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            lookup.channel: {"status": lookup.status.value, "leadIds": lookup.lead_ids}
            for lookup in (self.phone, self.email)
        }


def _to_lead_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def normalize_duplicate_result(result: Any) -> List[int]:
    """
    Flatten the shapes crm.duplicate.findbycomm is seen returning:
    {"LEAD": [1, 2]}, [1, 2], [], {}, None, or any of these wrapped in
    another {"result": ...}. Ids may arrive as numeric strings.
    """
    while isinstance(result, dict) and "result" in result and "LEAD" not in result:
        result = result["result"]

    if isinstance(result, dict):
        result = result.get("LEAD") or result.get("lead") or []

    if not isinstance(result, list):
        result = [result] if result is not None else []

    lead_ids = []
    for value in result:
        lead_id = _to_lead_id(value)
        if lead_id is not None:
            lead_ids.append(lead_id)
    return lead_ids


def mask_webhook_url(url: str) -> str:
    """Hide the secret token segment of a Bitrix-style inbound webhook URL."""
    return re.sub(r"/rest/(\d+)/[^/]+", r"/rest/\1/***", url)


class CrmGateway:
    """Generic RPC client for the CRM inbound webhook: POST {base_url}/{method}"""

    def __init__(self, settings: BridgeSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.base_url = (settings.crm_webhook_url or "").strip().rstrip("/")
        self.timeout = settings.timeout_seconds
        self.session = session or requests.Session()

    def _method_url(self, method: str) -> str:
        if not self.base_url:
            raise ConfigMissing("CRM_WEBHOOK_URL is not configured")
        return f"{self.base_url}/{method.strip('/')}"

    def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> CrmResult:
        """
        Issue one RPC call.

        Raises ConfigMissing before any network access when the URL is unset,
        TransportFailure on network errors, timeouts, 5xx and non-JSON replies.
        A JSON error envelope on a 2xx or 4xx reply is returned as CrmResult(ok=False).
        """
        url = self._method_url(method)
        logger.debug(f"📡 CRM call {method} -> {mask_webhook_url(url)}")

        try:
            response = self.session.post(url, json=params or {}, timeout=self.timeout)
        except requests.Timeout as e:
            logger.error(f"⏱️ CRM call {method} timed out after {self.timeout}s")
            raise TransportFailure(f"Timeout calling CRM method {method}: {e}")
        except requests.RequestException as e:
            logger.error(f"❌ CRM call {method} failed: {e.__class__.__name__}")
            raise TransportFailure(f"Error calling CRM method {method}: {e}")

        try:
            data = response.json()
        except ValueError:
            data = None

        # 5xx is a CRM outage even when it carries an error envelope
        if response.status_code >= 500:
            error_code = data.get("error") if isinstance(data, dict) else None
            logger.error(
                f"❌ CRM method {method} answered HTTP {response.status_code}"
                f"{f' ({error_code})' if error_code else ''}: {response.text[:200]}"
            )
            raise TransportFailure(
                f"CRM method {method} answered HTTP {response.status_code}"
                f"{f': {error_code}' if error_code else ''}"
            )

        if isinstance(data, dict) and data.get("error"):
            logger.warning(
                f"⚠️ CRM method {method} returned error {data.get('error')}: "
                f"{data.get('error_description')} (HTTP {response.status_code})"
            )
            return CrmResult(
                ok=False,
                error=str(data.get("error")),
                error_description=data.get("error_description"),
                payload=data,
            )

        if not 200 <= response.status_code < 300:
            logger.error(f"❌ CRM method {method} answered HTTP {response.status_code}: {response.text[:200]}")
            raise TransportFailure(f"CRM method {method} answered HTTP {response.status_code}")

        if not isinstance(data, dict):
            logger.error(f"❌ CRM method {method} answered a non-JSON body")
            raise TransportFailure(f"CRM method {method} answered a non-JSON body")

        return CrmResult(ok=True, result=data.get("result"), payload=data)

    def _lookup(self, channel: str, comm_type: str, values: List[str]) -> DuplicateLookup:
        try:
            crm_result = self.call(METHOD_FIND_DUPLICATES, {
                "entity_type": "LEAD",
                "type": comm_type,
                "values": values,
            })
        except TransportFailure as e:
            logger.warning(f"⚠️ Duplicate lookup by {channel} failed, continuing without it: {e}")
            return DuplicateLookup.failed(channel, str(e))

        if not crm_result.ok:
            logger.warning(f"⚠️ Duplicate lookup by {channel} rejected by CRM: {crm_result.error}")
            return DuplicateLookup.failed(channel, crm_result.error or "unknown CRM error")

        lead_ids = normalize_duplicate_result(crm_result.result)
        logger.info(f"🔍 Duplicate lookup by {channel}: {len(lead_ids)} lead(s) {lead_ids}")
        return DuplicateLookup(channel=channel, status=LookupStatus.FOUND, lead_ids=lead_ids)

    def find_duplicates(self, phones: List[str], email: Optional[str]) -> DuplicateCheck:
        """
        Look up existing leads by phone list and by email, independently.

        A failure on one channel is logged and recorded as LOOKUP_FAILED;
        the other channel is still queried.
        """
        if not self.base_url:
            raise ConfigMissing("CRM_WEBHOOK_URL is not configured")

        phone_lookup = self._lookup("phone", "PHONE", phones) if phones else DuplicateLookup.not_checked("phone")
        email_lookup = self._lookup("email", "EMAIL", [email]) if email else DuplicateLookup.not_checked("email")
        return DuplicateCheck(phone=phone_lookup, email=email_lookup)

    def add_lead(self, fields: Dict[str, Any]) -> CrmResult:
        return self.call(METHOD_ADD_LEAD, {
            "fields": fields,
            "params": {"REGISTER_SONET_EVENT": "Y"},
        })

    def add_activity(self, fields: Dict[str, Any]) -> CrmResult:
        return self.call(METHOD_ADD_ACTIVITY, {"fields": fields})
