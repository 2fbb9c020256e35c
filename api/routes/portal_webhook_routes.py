# api/routes/portal_webhook_routes.py

import logging
import time
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.errors import PortalBridgeError
from api.security.webhook_auth import verify_request
from api.services.crm_gateway import CrmGateway
from api.services.lead_intake_service import LeadIntakeService
from api.services.payload_normalizer import normalize_payload
from config import BridgeSettings, get_settings

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Portal Webhooks"])

PORTAL_WEBHOOK_PATHS = ["/api/portais", "/api/v1/webhooks/portais"]
REJECTED_METHODS = ["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_crm_gateway(settings: BridgeSettings = Depends(get_settings)) -> CrmGateway:
    return CrmGateway(settings)


def get_intake_service(
    settings: BridgeSettings = Depends(get_settings),
    gateway: CrmGateway = Depends(get_crm_gateway),
) -> LeadIntakeService:
    return LeadIntakeService(gateway, settings)


@router.api_route(PORTAL_WEBHOOK_PATHS[0], methods=REJECTED_METHODS, include_in_schema=False)
@router.api_route(PORTAL_WEBHOOK_PATHS[1], methods=REJECTED_METHODS, include_in_schema=False)
async def portal_webhook_wrong_method(request: Request):
    logger.warning(f"🚫 {request.method} {request.url.path} rejected: only POST is accepted")
    return JSONResponse(
        status_code=405,
        content={
            "status": "METHOD_NOT_ALLOWED",
            "message": f"Method {request.method} not allowed, use POST",
            "method_received": request.method,
        },
        headers={"Allow": "POST"},
    )


@router.post(PORTAL_WEBHOOK_PATHS[0])
@router.post(PORTAL_WEBHOOK_PATHS[1])
async def handle_portal_webhook(
    request: Request,
    settings: BridgeSettings = Depends(get_settings),
    intake_service: LeadIntakeService = Depends(get_intake_service),
):
    """
    Receive a listing portal inquiry and forward it to the CRM as a new lead,
    or as an activity on the existing lead when the contact is already known.
    """
    start_time = time.time()
    request_id = uuid.uuid4().hex[:8]
    logger.info(f"📥 [{request_id}] Portal webhook received from {request.client.host if request.client else 'unknown'}")

    try:
        verify_request(request, settings.webhook_secret)

        body = await request.body()
        lead = normalize_payload(body or None)

        outcome = await run_in_threadpool(intake_service.process, lead)

        processing_time = round(time.time() - start_time, 3)
        logger.info(f"📤 [{request_id}] {outcome.status} (HTTP {outcome.http_status}) in {processing_time}s")
        return JSONResponse(status_code=outcome.http_status, content=outcome.body)

    except PortalBridgeError as e:
        processing_time = round(time.time() - start_time, 3)
        log = logger.warning if e.status_code < 500 else logger.error
        log(f"⚠️ [{request_id}] {e.error_code} after {processing_time}s: {e.message}")
        return JSONResponse(status_code=e.status_code, content=e.to_response())

    except Exception as e:
        processing_time = round(time.time() - start_time, 3)
        logger.exception(f"💥 [{request_id}] Unexpected error processing portal webhook after {processing_time}s: {e}")
        return JSONResponse(
            status_code=500,
            content={"status": "INTERNAL_ERROR", "message": str(e)},
        )
