"""Consultation booking endpoints."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status

from viticult.api.deps import get_consultation_service, get_notifications
from viticult.core.auth import get_current_admin
from viticult.domain.admin import AdminPrincipal
from viticult.domain.submissions import ConsultationCreate, ConsultationUpdate
from viticult.services.notifications import NotificationService
from viticult.services.submissions import ConsultationService
from viticult.utils.network import get_client_ip

router = APIRouter(prefix="/api/consultation", tags=["consultation"])


@router.post("", status_code=status.HTTP_201_CREATED)
def book_consultation(
    payload: ConsultationCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    service: ConsultationService = Depends(get_consultation_service),
    notifications: NotificationService = Depends(get_notifications),
):
    consultation = service.create(payload, get_client_ip(request), request.headers.get("user-agent", ""))
    background_tasks.add_task(notifications.consultation_booked, consultation)

    return {
        "success": True,
        "message": "Consultation booked successfully",
        "data": {
            "id": consultation["_id"],
            "name": consultation["name"],
            "preferredDate": consultation["preferredDate"],
            "preferredTime": consultation["preferredTime"],
        },
    }


@router.get("/reminders/upcoming")
def send_upcoming_reminders(
    service: ConsultationService = Depends(get_consultation_service),
    notifications: NotificationService = Depends(get_notifications),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    """Email reminders for confirmed consultations happening tomorrow."""
    result = service.send_reminders(notifications)
    return {"success": True, "message": f"Sent {result['sentCount']} reminders", **result}


@router.get("")
def list_consultations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=100),
    service: ConsultationService = Depends(get_consultation_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return {"success": True, **service.list(page, limit, status_filter, start_date, end_date, search)}


@router.patch("/{consultation_id}")
def update_consultation(
    consultation_id: str,
    payload: ConsultationUpdate,
    background_tasks: BackgroundTasks,
    service: ConsultationService = Depends(get_consultation_service),
    notifications: NotificationService = Depends(get_notifications),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    """Update a booking; confirming it with a meeting link emails the client."""
    consultation, send_confirmation = service.update(consultation_id, payload)
    if send_confirmation:
        background_tasks.add_task(notifications.consultation_confirmed, consultation)
    return {"success": True, "data": consultation}
