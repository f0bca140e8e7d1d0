"""Singleton site configuration stored in the ``siteconfig`` collection."""
import copy
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from viticult.core.logging import get_logger
from viticult.domain.site_config import (
    CONFIG_SECTIONS,
    DEFAULT_SITE_CONFIG,
    GTM_ID_PATTERN,
    SiteConfigUpdate,
)
from viticult.infrastructure.mongo import serialize_document
from viticult.utils.dates import utcnow

logger = get_logger(__name__)


def with_defaults(document: Dict[str, Any]) -> Dict[str, Any]:
    """Fill any section field missing from a stored document with its default."""
    merged = copy.deepcopy(document)
    for section, defaults in DEFAULT_SITE_CONFIG.items():
        stored = merged.get(section) or {}
        merged[section] = {**defaults, **stored}
    return merged


def public_projection(config: Dict[str, Any]) -> Dict[str, Any]:
    """Subset of the configuration the public site may see.

    Integrations that are disabled are reported as ``None``.
    """
    gtm = config["gtm"]
    search_console = config["searchConsole"]
    analytics = config["googleAnalytics"]
    seo = config["seo"]

    return {
        "gtm": {"containerId": gtm["containerId"], "enabled": True} if gtm.get("enabled") else None,
        "searchConsole": (
            {"verificationCode": search_console["verificationCode"]}
            if search_console.get("enabled") else None
        ),
        "googleAnalytics": (
            {"measurementId": analytics["measurementId"]}
            if analytics.get("enabled") else None
        ),
        "seo": {
            "defaultTitle": seo["defaultTitle"],
            "defaultDescription": seo["defaultDescription"],
            "defaultKeywords": seo["defaultKeywords"],
        },
        "socialMedia": config["socialMedia"],
    }


def is_valid_gtm_id(container_id: Optional[str]) -> bool:
    return bool(container_id) and bool(GTM_ID_PATTERN.fullmatch(container_id))


class SiteConfigService:
    """Reads and updates the single configuration document."""

    collection_name = "siteconfig"

    def __init__(self, db: Database):
        self.db = db

    @property
    def collection(self):
        return self.db[self.collection_name]

    def get(self) -> Dict[str, Any]:
        """Return the configuration, creating it with defaults on first use."""
        now = utcnow()
        document = self.collection.find_one_and_update(
            {},
            {"$setOnInsert": {
                **copy.deepcopy(DEFAULT_SITE_CONFIG),
                "updatedBy": "admin",
                "createdAt": now,
                "updatedAt": now,
            }},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return serialize_document(with_defaults(document))

    def update(self, payload: SiteConfigUpdate, updated_by: str) -> Dict[str, Any]:
        """Merge each submitted section into the stored configuration."""
        current = self.get()
        changes: Dict[str, Any] = {}
        for section, values in payload.section_changes().items():
            if section in CONFIG_SECTIONS:
                changes[section] = {**current[section], **values}

        changes.update({"updatedBy": updated_by, "updatedAt": utcnow()})
        document = self.collection.find_one_and_update(
            {},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )

        logger.info(
            f"Site configuration updated: {', '.join(k for k in changes if k in CONFIG_SECTIONS) or 'no sections'}",
            extra={"admin_email": updated_by, "collection": self.collection_name}
        )
        return serialize_document(with_defaults(document))
