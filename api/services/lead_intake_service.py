# api/services/lead_intake_service.py

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from api.services.crm_gateway import CrmGateway, DuplicateCheck
from api.services.payload_normalizer import PASS_THROUGH_FIELDS, PortalLead
from config import BridgeSettings
from utils.portal_source_classifier import classify_source

logger = logging.getLogger(__name__)

STATUS_LEAD_CREATED = "LEAD_CREATED"
STATUS_DUPLICATE_ACTIVITY_CREATED = "DUPLICATE_ACTIVITY_CREATED"
STATUS_CRM_LEAD_ERROR = "CRM_LEAD_ERROR"
STATUS_CRM_ACTIVITY_ERROR = "CRM_ACTIVITY_ERROR"

OWNER_TYPE_LEAD = 1
ACTIVITY_TYPE_EMAIL = 4
DESCRIPTION_TYPE_PLAIN = 1
COMM_VALUE_TYPE = "WORK"


@dataclass
class IntakeOutcome:
    http_status: int
    body: Dict[str, Any]

    @property
    def status(self) -> str:
        return self.body.get("status", "")


def _communications(values: List[str]) -> List[Dict[str, str]]:
    return [{"VALUE": value, "VALUE_TYPE": COMM_VALUE_TYPE} for value in values]


def build_lead_comments(lead: PortalLead) -> str:
    """Multi-line CRM comment: message, property code, then every portal identifier received."""
    lines = [
        f"Mensagem: {lead.message or '-'}",
        f"Código do imóvel: {lead.property_code}",
    ]
    for key, label in PASS_THROUGH_FIELDS:
        if key in lead.identifiers:
            lines.append(f"{label}: {lead.identifiers[key]}")
    return "\n".join(lines)


def build_lead_fields(lead: PortalLead, settings: BridgeSettings) -> Dict[str, Any]:
    fields = {
        "TITLE": f"Lead portal - {lead.display_name} - Cód. {lead.property_code}",
        "NAME": lead.name or lead.display_name,
        "SOURCE_ID": classify_source(
            lead.publication_plan,
            wimoveis=settings.source_wimoveis,
            imovelweb=settings.source_imovelweb,
            fallback=settings.source_fallback,
        ),
        "SOURCE_DESCRIPTION": lead.publication_plan or "Portal imobiliário",
        "ASSIGNED_BY_ID": settings.default_responsible_id,
        "COMMENTS": build_lead_comments(lead),
    }
    if lead.phones:
        fields["PHONE"] = _communications(lead.phones)
    if lead.email:
        fields["EMAIL"] = _communications([lead.email])
    return fields


def _activity_communication(lead: PortalLead, activity_type_id: int) -> Optional[Tuple[str, str]]:
    """E-mail activities address the e-mail; every other type prefers the first phone."""
    if activity_type_id == ACTIVITY_TYPE_EMAIL and lead.email:
        return "EMAIL", lead.email
    if lead.phones:
        return "PHONE", lead.phones[0]
    if lead.email:
        return "EMAIL", lead.email
    return None


def build_activity_fields(lead: PortalLead, lead_id: int, settings: BridgeSettings) -> Dict[str, Any]:
    description = "\n".join([
        f"Mensagem: {lead.message or '-'}",
        f"Código do imóvel: {lead.property_code}",
        f"Telefones: {', '.join(lead.phones) if lead.phones else 'não informado'}",
        f"E-mail: {lead.email or 'não informado'}",
    ])

    fields = {
        "OWNER_TYPE_ID": OWNER_TYPE_LEAD,
        "OWNER_ID": lead_id,
        "TYPE_ID": settings.activity_type_id,
        "SUBJECT": f"Novo contato via portal - {lead.display_name}",
        "DESCRIPTION": description,
        "DESCRIPTION_TYPE": DESCRIPTION_TYPE_PLAIN,
        "COMPLETED": "N",
        "RESPONSIBLE_ID": settings.default_responsible_id,
    }

    communication = _activity_communication(lead, settings.activity_type_id)
    if communication:
        comm_type, comm_value = communication
        fields["COMMUNICATIONS"] = [{
            "TYPE": comm_type,
            "VALUE": comm_value,
            "ENTITY_ID": lead_id,
            "ENTITY_TYPE_ID": OWNER_TYPE_LEAD,
        }]
    return fields


class LeadIntakeService:
    """
    Forwards a normalized portal inquiry into the CRM:
    - existing lead found by phone or email -> activity on that lead
    - otherwise -> new lead
    """

    def __init__(self, gateway: CrmGateway, settings: BridgeSettings):
        self.gateway = gateway
        self.settings = settings

    def process(self, lead: PortalLead) -> IntakeOutcome:
        duplicates = self.gateway.find_duplicates(lead.phones, lead.email)
        logger.info(f"🧭 Duplicate check: {duplicates.summary()}")

        if duplicates.is_duplicate:
            return self._register_activity(lead, duplicates)
        return self._create_lead(lead)

    def _register_activity(self, lead: PortalLead, duplicates: DuplicateCheck) -> IntakeOutcome:
        lead_id = duplicates.lead_id
        logger.info(f"🔁 Duplicate contact, matched by {duplicates.matched_channel}: adding activity to lead {lead_id}")

        crm_result = self.gateway.add_activity(build_activity_fields(lead, lead_id, self.settings))

        if not crm_result.ok:
            logger.error(f"❌ CRM rejected activity for lead {lead_id}: {crm_result.error}")
            return IntakeOutcome(400, {
                "status": STATUS_CRM_ACTIVITY_ERROR,
                "leadId": lead_id,
                "crmError": crm_result.error_details(),
            })

        logger.info(f"✅ Activity {crm_result.result} created on lead {lead_id}")
        return IntakeOutcome(200, {
            "status": STATUS_DUPLICATE_ACTIVITY_CREATED,
            "leadId": lead_id,
            "activityId": crm_result.result,
            "duplicateSource": duplicates.matched_channel,
            "propertyCode": lead.property_code,
        })

    def _create_lead(self, lead: PortalLead) -> IntakeOutcome:
        fields = build_lead_fields(lead, self.settings)
        logger.info(f"🆕 No duplicate found: creating lead '{fields['TITLE']}' (source {fields['SOURCE_ID']})")

        crm_result = self.gateway.add_lead(fields)

        if not crm_result.ok:
            logger.error(f"❌ CRM rejected new lead: {crm_result.error}")
            return IntakeOutcome(400, {
                "status": STATUS_CRM_LEAD_ERROR,
                "crmError": crm_result.error_details(),
            })

        logger.info(f"✅ Lead {crm_result.result} created")
        return IntakeOutcome(200, {
            "status": STATUS_LEAD_CREATED,
            "leadId": crm_result.result,
            "propertyCode": lead.property_code,
        })
