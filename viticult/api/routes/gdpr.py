"""Data-subject rights: consent log, erasure, portability, rectification, opt-out."""
from fastapi import APIRouter, Depends, Request

from viticult.api.deps import get_gdpr_service
from viticult.core.logging import get_logger
from viticult.domain.tracking import ConsentLogRequest, DataSubjectRequest, RectificationRequest
from viticult.services.gdpr import GdprService, privacy_rights
from viticult.utils.network import geo_from_headers, raw_client_ip

logger = get_logger(__name__)
router = APIRouter(prefix="/api/gdpr", tags=["gdpr"])


@router.post("/consent/log")
def log_consent(
    payload: ConsentLogRequest,
    request: Request,
    service: GdprService = Depends(get_gdpr_service),
):
    """Record a cookie-consent decision. Never fails the banner."""
    try:
        service.log_consent(payload, raw_client_ip(request))
    except Exception as e:
        logger.error(f"Consent logging failed: {e}", extra={"error_type": type(e).__name__})
    return {"success": True}


@router.post("/delete")
def delete_user_data(payload: DataSubjectRequest, service: GdprService = Depends(get_gdpr_service)):
    result = service.delete_data(payload.visitor_id, payload.email)
    return {"success": True, "message": "Your data has been deleted successfully", **result}


@router.post("/export")
def export_user_data(payload: DataSubjectRequest, service: GdprService = Depends(get_gdpr_service)):
    return {
        "success": True,
        "data": service.export_data(payload.visitor_id, payload.email),
        "format": "json",
        "message": "Your data has been exported successfully",
    }


@router.post("/update")
def update_user_data(payload: RectificationRequest, service: GdprService = Depends(get_gdpr_service)):
    service.update_data(payload.email, payload.updates)
    return {"success": True, "message": "Your data has been updated successfully"}


@router.get("/rights")
def get_privacy_rights(request: Request):
    geo = geo_from_headers(request)
    return {"success": True, **privacy_rights(geo.get("country"), geo.get("region"))}


@router.post("/opt-out")
def opt_out(payload: DataSubjectRequest, service: GdprService = Depends(get_gdpr_service)):
    service.opt_out(payload.visitor_id, payload.email, payload.opt_out_type)
    return {"success": True, "message": "You have been successfully opted out"}
