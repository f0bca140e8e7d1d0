"""Contact form endpoints."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status

from viticult.api.deps import get_contact_service, get_notifications
from viticult.core.auth import get_current_admin
from viticult.core.logging import get_logger
from viticult.domain.admin import AdminPrincipal
from viticult.domain.submissions import ContactCreate, StatusUpdate
from viticult.services.notifications import NotificationService
from viticult.services.submissions import ContactService
from viticult.utils.network import get_client_ip

logger = get_logger(__name__)
router = APIRouter(prefix="/api/contact", tags=["contact"])


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_contact(
    payload: ContactCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    service: ContactService = Depends(get_contact_service),
    notifications: NotificationService = Depends(get_notifications),
):
    """Store a contact enquiry and notify the team.

    Example:
        POST /api/contact
        {"name": "Jane", "email": "jane@example.com", "subject": "Casks", "message": "Hello"}
    """
    contact = service.create(payload, get_client_ip(request), request.headers.get("user-agent", ""))
    background_tasks.add_task(notifications.contact_received, contact)

    return {
        "success": True,
        "message": "Contact form submitted successfully",
        "data": {"id": contact["_id"], "name": contact["name"], "email": contact["email"]},
    }


@router.get("")
def list_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=100),
    service: ContactService = Depends(get_contact_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    result = service.list(page, limit, status_filter, start_date, end_date, search)
    return {"success": True, **result}


@router.get("/{contact_id}")
def get_contact(
    contact_id: str,
    service: ContactService = Depends(get_contact_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return {"success": True, "data": service.get(contact_id)}


@router.patch("/{contact_id}/status")
def update_contact_status(
    contact_id: str,
    payload: StatusUpdate,
    service: ContactService = Depends(get_contact_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    contact = service.update_status(contact_id, payload.status, payload.notes)
    return {"success": True, "data": contact}


@router.delete("/{contact_id}")
def delete_contact(
    contact_id: str,
    service: ContactService = Depends(get_contact_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    result = service.delete(contact_id)
    logger.info("Contact deleted by admin", extra={"admin_email": admin.email, "document_id": contact_id})
    return {
        "success": True,
        "message": "Contact deleted successfully",
        "data": {
            "deletedId": result["deletedId"],
            "deletedEmail": result["deletedDocument"].get("email"),
        },
    }
