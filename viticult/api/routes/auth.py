"""Session and password-recovery endpoints for admins."""
from fastapi import APIRouter, Depends, Response

from viticult.api.deps import get_admin_service, get_notifications
from viticult.api.routes.admin import admin_login, admin_logout, export_submissions
from viticult.core.auth import get_current_admin, set_auth_cookie
from viticult.domain.admin import AdminPrincipal, ChangePasswordRequest, ForgotPasswordRequest, ResetPasswordRequest
from viticult.services.admin import AdminService
from viticult.services.notifications import NotificationService

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Same handlers as the dashboard router, mounted at their legacy paths
router.post("/admin/login")(admin_login)
router.post("/logout")(admin_logout)
router.get("/admin/export-submissions")(export_submissions)


@router.get("/me")
def me(admin: AdminPrincipal = Depends(get_current_admin)):
    return {"success": True, "data": {"user": admin.model_dump()}}


@router.post("/admin/change-password")
def change_password(
    payload: ChangePasswordRequest,
    response: Response,
    service: AdminService = Depends(get_admin_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    token = service.change_password(admin, payload.current_password, payload.new_password)
    set_auth_cookie(response, token)
    return {"success": True, "message": "Password changed successfully", "token": token}


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordRequest,
    service: AdminService = Depends(get_admin_service),
    notifications: NotificationService = Depends(get_notifications),
):
    return service.request_password_reset(payload.email, notifications)


@router.get("/reset-password/{token}")
def verify_reset_token(token: str, service: AdminService = Depends(get_admin_service)):
    email = service.verify_reset_token(token)
    return {"success": True, "message": "Token is valid", "email": email}


@router.post("/reset-password/{token}")
def reset_password(
    token: str,
    payload: ResetPasswordRequest,
    service: AdminService = Depends(get_admin_service),
):
    service.reset_password(token, payload.new_password)
    return {"success": True, "message": "Password has been reset successfully. Please log in."}
