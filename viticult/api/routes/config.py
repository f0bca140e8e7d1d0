"""Site configuration endpoints (tag manager, analytics, SEO defaults)."""
import re

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse
from pymongo.errors import PyMongoError

from viticult.api.deps import get_site_config_service
from viticult.core.auth import get_current_admin
from viticult.core.errors import BadRequestError, NotFoundError
from viticult.core.logging import get_logger
from viticult.domain.admin import AdminPrincipal
from viticult.domain.site_config import MINIMAL_ROBOTS_TXT, GtmTestRequest, SiteConfigUpdate
from viticult.services.site_config import SiteConfigService, is_valid_gtm_id, public_projection

logger = get_logger(__name__)
router = APIRouter(prefix="/api/config", tags=["config"])

VERIFICATION_FILE_RE = re.compile(r"^google[a-f0-9]+\.html$")


@router.get("/public")
def public_config(service: SiteConfigService = Depends(get_site_config_service)):
    """Configuration the public site needs; disabled integrations are null."""
    return public_projection(service.get())


@router.get("/robots.txt", response_class=PlainTextResponse)
def robots_txt(service: SiteConfigService = Depends(get_site_config_service)):
    try:
        return PlainTextResponse(service.get()["seo"]["robotsTxt"])
    except PyMongoError as e:
        logger.error(f"Serving fallback robots.txt: {e}")
        return PlainTextResponse(MINIMAL_ROBOTS_TXT, status_code=500)


@router.get("/admin")
def admin_config(
    service: SiteConfigService = Depends(get_site_config_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return service.get()


@router.put("/admin")
def update_config(
    payload: SiteConfigUpdate,
    service: SiteConfigService = Depends(get_site_config_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    config = service.update(payload, updated_by=admin.email)
    return {"success": True, "message": "Configuration updated successfully", "config": config}


@router.post("/admin/test-gtm")
def test_gtm(payload: GtmTestRequest, admin: AdminPrincipal = Depends(get_current_admin)):
    if not is_valid_gtm_id(payload.container_id):
        raise BadRequestError("Invalid GTM container ID format. Should be like GTM-XXXXXXX")
    return {"success": True, "message": "GTM container ID format is valid", "containerId": payload.container_id}


@router.get("/admin/search-console-file/{filename}", response_class=HTMLResponse)
def search_console_file(filename: str):
    """Google Search Console HTML verification file."""
    if not VERIFICATION_FILE_RE.fullmatch(filename):
        raise NotFoundError("Not found")
    return HTMLResponse(f"google-site-verification: {filename}")
