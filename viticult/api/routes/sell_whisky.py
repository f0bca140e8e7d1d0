"""Sell-your-whisky submission endpoints."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status

from viticult.api.deps import get_notifications, get_sell_whisky_service
from viticult.core.auth import get_current_admin
from viticult.domain.admin import AdminPrincipal
from viticult.domain.submissions import SellWhiskyCreate, StatusUpdate
from viticult.services.notifications import NotificationService
from viticult.services.submissions import SellWhiskyService
from viticult.utils.network import get_client_ip

router = APIRouter(prefix="/api/sell-whisky", tags=["sell-whisky"])


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_sell_request(
    payload: SellWhiskyCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    service: SellWhiskyService = Depends(get_sell_whisky_service),
    notifications: NotificationService = Depends(get_notifications),
):
    """Store a cask offered for sale and notify admin and seller."""
    submission = service.create(payload, get_client_ip(request), request.headers.get("user-agent", ""))
    background_tasks.add_task(notifications.sell_submission_received, submission)

    return {
        "success": True,
        "message": "Your submission has been received successfully. We will contact you within 48 hours.",
        "data": {"id": submission["_id"], "name": submission["name"], "email": submission["email"]},
    }


@router.get("/submissions")
def list_sell_submissions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=100),
    service: SellWhiskyService = Depends(get_sell_whisky_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return {"success": True, **service.list(page, limit, status_filter, start_date, end_date, search)}


@router.patch("/submissions/{submission_id}/status")
def update_sell_submission_status(
    submission_id: str,
    payload: StatusUpdate,
    service: SellWhiskyService = Depends(get_sell_whisky_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return {"success": True, "data": service.update_status(submission_id, payload.status, payload.notes)}
