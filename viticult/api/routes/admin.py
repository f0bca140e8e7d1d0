"""Admin dashboard endpoints.

Everything except the CSRF token, login and logout requires an admin token.
Password changes and deletions additionally require a single-use CSRF token
in the ``X-CSRF-Token`` header.
"""
from datetime import datetime, timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import StreamingResponse

from viticult.api.deps import (
    get_admin_service,
    get_consultation_service,
    get_contact_service,
    get_export_service,
    get_sell_whisky_service,
)
from viticult.core.auth import clear_auth_cookie, get_current_admin, set_auth_cookie
from viticult.core.logging import get_logger
from viticult.core.security import CsrfProtection, LoginAttemptTracker, get_csrf_protection, get_login_tracker, require_csrf
from viticult.domain.admin import AdminPrincipal, BulkDeleteRequest, ChangePasswordRequest, LoginRequest
from viticult.domain.submissions import StatusUpdate
from viticult.services.admin import AdminService
from viticult.services.export import ExportService, export_filename
from viticult.services.submissions import ConsultationService, ContactService, SellWhiskyService, SubmissionService
from viticult.utils.dates import utcnow
from viticult.utils.network import raw_client_ip

logger = get_logger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])

STATS_WINDOW_DAYS = 7

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _list(
    service: SubmissionService,
    page: int,
    limit: int,
    status_filter: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    search: Optional[str],
):
    return {"success": True, **service.list(page, limit, status_filter, start_date, end_date, search)}


def _deleted(service: SubmissionService, document_id: str, admin: AdminPrincipal):
    result = service.delete(document_id)
    logger.info(
        f"{service.label} deleted by admin",
        extra={"admin_email": admin.email, "collection": service.collection_name, "document_id": document_id}
    )
    return {
        "success": True,
        "message": f"{service.label} deleted successfully",
        "data": {
            "deletedId": result["deletedId"],
            "deletedEmail": result["deletedDocument"].get("email"),
        },
    }


def _bulk_deleted(service: SubmissionService, ids, admin: AdminPrincipal):
    result = service.bulk_delete(ids)
    logger.info(
        f"Bulk deleted {result['deletedCount']} of {result['requestedCount']} records",
        extra={"admin_email": admin.email, "collection": service.collection_name}
    )
    return {"message": f"Successfully deleted {result['deletedCount']} records", **result}


@router.get("/csrf-token")
def csrf_token(request: Request, csrf: CsrfProtection = Depends(get_csrf_protection)):
    return {"success": True, "csrfToken": csrf.issue(raw_client_ip(request))}


@router.post("/login")
def admin_login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    service: AdminService = Depends(get_admin_service),
    tracker: LoginAttemptTracker = Depends(get_login_tracker),
):
    """Log an admin in and set the auth cookie.

    Repeated failures for the same email and IP lock the pair out with an
    increasing delay (429).
    """
    token, principal = service.authenticate(payload.email, payload.password, raw_client_ip(request), tracker)
    set_auth_cookie(response, token)
    return {
        "success": True,
        "token": token,
        "data": {"user": {"email": principal.email, "role": principal.role}},
    }


@router.post("/logout")
def admin_logout(response: Response):
    clear_auth_cookie(response)
    return {"success": True, "message": "Logged out successfully"}


@router.post("/change-password", dependencies=[Depends(require_csrf)])
def change_password(
    payload: ChangePasswordRequest,
    response: Response,
    service: AdminService = Depends(get_admin_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    token = service.change_password(admin, payload.current_password, payload.new_password)
    set_auth_cookie(response, token)
    return {"success": True, "message": "Password changed successfully", "token": token}


@router.get("/contact-submissions")
def contact_submissions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=100),
    service: ContactService = Depends(get_contact_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _list(service, page, limit, status_filter, start_date, end_date, search)


@router.get("/sell-submissions")
def sell_submissions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=100),
    service: SellWhiskyService = Depends(get_sell_whisky_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _list(service, page, limit, status_filter, start_date, end_date, search)


@router.get("/consultation-requests")
def consultation_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=100),
    service: ConsultationService = Depends(get_consultation_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _list(service, page, limit, status_filter, start_date, end_date, search)


@router.patch("/contact/{contact_id}/status")
def update_contact_status(
    contact_id: str,
    payload: StatusUpdate,
    service: ContactService = Depends(get_contact_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return {"success": True, "data": service.update_status(contact_id, payload.status, payload.notes)}


@router.patch("/sell-submissions/{submission_id}/status")
def update_sell_submission_status(
    submission_id: str,
    payload: StatusUpdate,
    service: SellWhiskyService = Depends(get_sell_whisky_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return {"success": True, "data": service.update_status(submission_id, payload.status, payload.notes)}


@router.post("/contact/bulk-delete", dependencies=[Depends(require_csrf)])
def bulk_delete_contacts(
    payload: BulkDeleteRequest,
    service: ContactService = Depends(get_contact_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _bulk_deleted(service, payload.ids, admin)


@router.post("/sell-submissions/bulk-delete", dependencies=[Depends(require_csrf)])
def bulk_delete_sell_submissions(
    payload: BulkDeleteRequest,
    service: SellWhiskyService = Depends(get_sell_whisky_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _bulk_deleted(service, payload.ids, admin)


@router.post("/consultation-requests/bulk-delete", dependencies=[Depends(require_csrf)])
def bulk_delete_consultations(
    payload: BulkDeleteRequest,
    service: ConsultationService = Depends(get_consultation_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _bulk_deleted(service, payload.ids, admin)


@router.delete("/contact/{contact_id}", dependencies=[Depends(require_csrf)])
def delete_contact(
    contact_id: str,
    service: ContactService = Depends(get_contact_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _deleted(service, contact_id, admin)


@router.delete("/sell-submissions/{submission_id}", dependencies=[Depends(require_csrf)])
def delete_sell_submission(
    submission_id: str,
    service: SellWhiskyService = Depends(get_sell_whisky_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _deleted(service, submission_id, admin)


@router.delete("/consultation-requests/{consultation_id}", dependencies=[Depends(require_csrf)])
def delete_consultation(
    consultation_id: str,
    service: ConsultationService = Depends(get_consultation_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return _deleted(service, consultation_id, admin)


@router.get("/stats")
def dashboard_stats(
    contacts: ContactService = Depends(get_contact_service),
    sell_submissions: SellWhiskyService = Depends(get_sell_whisky_service),
    consultations: ConsultationService = Depends(get_consultation_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    """Totals per collection and status, plus submissions from the last week."""
    since = utcnow() - timedelta(days=STATS_WINDOW_DAYS)
    return {
        "success": True,
        "data": {
            "contacts": contacts.stats(since),
            "sellWhisky": sell_submissions.stats(since),
            "consultations": consultations.stats(since),
            "recentWindowDays": STATS_WINDOW_DAYS,
        },
    }


@router.get("/export")
def export_submissions(
    format: Literal["xlsx", "csv"] = "xlsx",
    dataset: Literal["contacts", "sell-whisky", "consultations"] = Query("contacts", alias="type"),
    contacts: ContactService = Depends(get_contact_service),
    sell_submissions: SellWhiskyService = Depends(get_sell_whisky_service),
    consultations: ConsultationService = Depends(get_consultation_service),
    exporter: ExportService = Depends(get_export_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    """Download submissions as an Excel workbook or a single-dataset CSV.

    Example:
        GET /api/admin/export?format=csv&type=sell-whisky
    """
    services = {"contacts": contacts, "sell-whisky": sell_submissions, "consultations": consultations}

    if format == "csv":
        buffer = exporter.dataset_csv(dataset, services[dataset].all_documents())
        filename = export_filename("csv")
        media_type = "text/csv; charset=utf-8"
    else:
        buffer = exporter.workbook({key: service.all_documents() for key, service in services.items()})
        filename = export_filename("xlsx")
        media_type = XLSX_MEDIA_TYPE

    logger.info(f"Submissions exported as {format}", extra={"admin_email": admin.email})
    return StreamingResponse(
        buffer,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
