"""FastAPI dependency providers for services.

Tests swap the database or token store through ``app.dependency_overrides``
on ``get_database`` / ``get_token_store``.
"""
from fastapi import Depends
from pymongo.database import Database

from viticult.infrastructure.mongo import get_database
from viticult.infrastructure.redis import TokenStore, get_token_store
from viticult.services.admin import AdminService
from viticult.services.blog import BlogService
from viticult.services.export import ExportService
from viticult.services.gdpr import GdprService
from viticult.services.notifications import NotificationService
from viticult.services.site_config import SiteConfigService
from viticult.services.submissions import ConsultationService, ContactService, SellWhiskyService
from viticult.services.tracking import TrackingService


def get_notifications() -> NotificationService:
    return NotificationService()


def get_contact_service(db: Database = Depends(get_database)) -> ContactService:
    return ContactService(db)


def get_sell_whisky_service(db: Database = Depends(get_database)) -> SellWhiskyService:
    return SellWhiskyService(db)


def get_consultation_service(db: Database = Depends(get_database)) -> ConsultationService:
    return ConsultationService(db)


def get_blog_service(db: Database = Depends(get_database)) -> BlogService:
    return BlogService(db)


def get_site_config_service(db: Database = Depends(get_database)) -> SiteConfigService:
    return SiteConfigService(db)


def get_tracking_service(db: Database = Depends(get_database)) -> TrackingService:
    return TrackingService(db)


def get_gdpr_service(db: Database = Depends(get_database)) -> GdprService:
    return GdprService(db)


def get_admin_service(
    db: Database = Depends(get_database),
    store: TokenStore = Depends(get_token_store),
) -> AdminService:
    return AdminService(db, store)


def get_export_service() -> ExportService:
    return ExportService()
