"""Visitor tracking beacons and the admin analytics views over them."""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from viticult.api.deps import get_export_service, get_tracking_service
from viticult.core.auth import get_current_admin
from viticult.core.logging import get_logger
from viticult.domain.admin import AdminPrincipal
from viticult.domain.tracking import (
    CaptureFieldPayload,
    EventPayload,
    IdentifyPayload,
    VisitorBulkDelete,
    VisitorPayload,
    VisitorStatus,
)
from viticult.services.export import ExportService
from viticult.services.tracking import TrackingService
from viticult.utils.network import geo_from_headers, get_client_ip

logger = get_logger(__name__)
router = APIRouter(prefix="/api/tracking", tags=["tracking"])


@router.post("/visitor")
def track_visitor(
    payload: VisitorPayload,
    request: Request,
    service: TrackingService = Depends(get_tracking_service),
):
    """Record a page-view beacon.

    Tracking never fails the page: storage errors are logged and a bare
    success is returned instead of the visitor summary.
    """
    try:
        summary = service.track_visit(payload, get_client_ip(request), geo_from_headers(request))
    except Exception as e:
        logger.error(
            f"Visitor tracking failed: {e}",
            extra={"visitor_id": payload.visitor_id, "error_type": type(e).__name__}
        )
        return {"success": True}
    return {"success": True, **summary}


@router.post("/event")
def track_event(payload: EventPayload, service: TrackingService = Depends(get_tracking_service)):
    try:
        service.track_event(payload)
    except Exception as e:
        logger.error(
            f"Event tracking failed: {e}",
            extra={"visitor_id": payload.visitor_id, "error_type": type(e).__name__}
        )
    return {"success": True}


@router.post("/identify")
def identify_visitor(payload: IdentifyPayload, service: TrackingService = Depends(get_tracking_service)):
    summary = service.identify(payload)
    if summary is None:
        return {"success": True}
    return {"success": True, **summary}


@router.post("/capture-field")
def capture_field(
    payload: CaptureFieldPayload,
    request: Request,
    service: TrackingService = Depends(get_tracking_service),
):
    result = service.capture_field(payload, get_client_ip(request))
    return {"success": True, "message": f"Field {payload.field_name} captured", **result}


@router.get("/analytics")
def visitor_analytics(
    timeframe: Literal["24h", "7d", "30d", "all"] = "7d",
    service: TrackingService = Depends(get_tracking_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return service.analytics(timeframe)


@router.get("/visitor/{visitor_id}")
def visitor_details(
    visitor_id: str,
    service: TrackingService = Depends(get_tracking_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return service.get_visitor(visitor_id)


@router.get("/export")
def export_visitors(
    status_filter: Optional[VisitorStatus] = Query(None, alias="status"),
    min_lead_score: Optional[int] = Query(None, alias="minLeadScore", ge=0, le=100),
    format: Literal["json", "csv"] = "json",
    service: TrackingService = Depends(get_tracking_service),
    exporter: ExportService = Depends(get_export_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    """Export visitors sorted by lead score, as JSON or a CSV download."""
    visitors = service.export(status_filter, min_lead_score)
    if format == "csv":
        return StreamingResponse(
            exporter.visitors_csv(visitors),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="visitors.csv"'},
        )
    return visitors


@router.delete("/visitors/bulk")
def bulk_delete_visitors(
    payload: VisitorBulkDelete,
    service: TrackingService = Depends(get_tracking_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    deleted = service.bulk_delete(payload.visitor_ids)
    return {
        "success": True,
        "deletedCount": deleted,
        "message": f"Successfully deleted {deleted} visitors",
    }


@router.get("/captured-data")
def captured_data(
    service: TrackingService = Depends(get_tracking_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    visitors = service.captured_data()
    return {"success": True, "count": len(visitors), "visitors": visitors}
