"""Data-subject requests: consent logging, erasure, export, rectification, opt-out."""
import hashlib
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from viticult.core.errors import BadRequestError
from viticult.core.logging import get_logger
from viticult.domain.tracking import ConsentLogRequest
from viticult.utils.dates import utcnow

logger = get_logger(__name__)

PERSONAL_DATA_COLLECTIONS = ("contacts", "sellwhiskies", "consultations")

# Fields a data subject may correct on their contact records
RECTIFIABLE_FIELDS = ("name", "phone", "preferredContactMethod")

ANONYMISED_VALUES = {
    "name": "DELETED",
    "email": "deleted@deleted.com",
    "phone": "DELETED",
    "message": "Data deleted per GDPR request",
}

GDPR_COUNTRIES = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR",
    "DE", "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL",
    "PL", "PT", "RO", "SK", "SI", "ES", "SE", "GB", "IS", "LI", "NO",
})

GDPR_RIGHTS = [
    "Right to be informed",
    "Right of access",
    "Right to rectification",
    "Right to erasure",
    "Right to restrict processing",
    "Right to data portability",
    "Right to object",
    "Rights in relation to automated decision making",
]
CCPA_RIGHTS = [
    "Right to know",
    "Right to delete",
    "Right to opt-out",
    "Right to non-discrimination",
]
GENERAL_RIGHTS = [
    "Right to access your data",
    "Right to correct your data",
    "Right to delete your data",
    "Right to opt-out of tracking",
]

PRIVACY_CONTACT = "privacy@viticultwhisky.co.uk"
DPO_CONTACT = "dpo@viticultwhisky.co.uk"


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def privacy_rights(country: Optional[str], region: Optional[str]) -> Dict[str, Any]:
    """Applicable privacy regime for a country/region pair.

    Example:
        >>> privacy_rights("US", "CA")["jurisdiction"]
        'California, USA (CCPA)'
    """
    rights: Dict[str, Any] = {"gdpr": False, "ccpa": False, "rights": [], "jurisdiction": "General"}

    if country in GDPR_COUNTRIES:
        rights.update(gdpr=True, jurisdiction=f"{country} (GDPR)", rights=list(GDPR_RIGHTS))
    elif country == "US" and region == "CA":
        rights.update(ccpa=True, jurisdiction="California, USA (CCPA)", rights=list(CCPA_RIGHTS))
    else:
        rights["rights"] = list(GENERAL_RIGHTS)

    rights.update(contactEmail=PRIVACY_CONTACT, dataProtectionOfficer=DPO_CONTACT)
    return rights


def _strip_internal(documents) -> List[Dict[str, Any]]:
    return [
        {key: value for key, value in doc.items() if key not in ("_id", "hashedIp", "ipAddress")}
        for doc in documents
    ]


class GdprService:
    """Implements the data-subject rights endpoints."""

    def __init__(self, db: Database):
        self.db = db

    def log_consent(self, payload: ConsentLogRequest, ip_address: str) -> None:
        """Store a consent decision. The IP is kept only as a SHA-256 hash."""
        now = utcnow()
        document = {
            "preferences": payload.preferences.model_dump(),
            "method": payload.method,
            "action": payload.action,
            "url": payload.url,
            "userAgent": payload.user_agent,
            "hashedIp": sha256_hex(ip_address),
            "visitorId": payload.visitor_id,
            "hashedEmail": sha256_hex(payload.email.lower()) if payload.email else None,
            "timestamp": now,
            "createdAt": now,
        }
        self.db["consentlogs"].insert_one(document)

    def delete_data(self, visitor_id: Optional[str], email: Optional[str]) -> Dict[str, int]:
        """Erase tracking data and anonymise form submissions for the subject."""
        if not visitor_id and not email:
            raise BadRequestError("visitorId or email is required")

        deleted_visitors = 0
        anonymised = 0
        if visitor_id:
            deleted_visitors = self.db["visitors"].delete_many({"visitorId": visitor_id}).deleted_count
        if email:
            email = email.lower()
            deleted_visitors += self.db["visitors"].delete_many({"email": email}).deleted_count
            now = utcnow()
            for name in PERSONAL_DATA_COLLECTIONS:
                result = self.db[name].update_many(
                    {"email": email},
                    {"$set": {**ANONYMISED_VALUES, "deleted": True, "deletedAt": now}},
                )
                anonymised += result.modified_count

        logger.info(
            "GDPR deletion request processed",
            extra={"visitor_id": visitor_id, "operation": "gdpr_delete"}
        )
        logger.info(f"GDPR deletion subject hash: {sha256_hex(email) if email else 'n/a'}")
        return {"deletedVisitors": deleted_visitors, "anonymisedRecords": anonymised}

    def export_data(self, visitor_id: Optional[str], email: Optional[str]) -> Dict[str, Any]:
        """Everything held about the subject, without internal identifiers."""
        if not visitor_id and not email:
            raise BadRequestError("visitorId or email is required")

        now = utcnow().isoformat()
        export: Dict[str, Any] = {
            "exportDate": now,
            "dataSubject": {
                "visitorId": visitor_id,
                "email": email,
                "exportRequestDate": now,
                "ip": "hidden for privacy",
            },
            "trackingData": None,
            "contactSubmissions": [],
            "sellSubmissions": [],
            "consultations": [],
            "consentHistory": [],
        }

        if visitor_id:
            visitor = self.db["visitors"].find_one({"visitorId": visitor_id}, {"_id": 0})
            export["trackingData"] = visitor
            export["consentHistory"] = _strip_internal(
                self.db["consentlogs"].find({"visitorId": visitor_id}, {"_id": 0, "hashedIp": 0})
            )

        if email:
            email = email.lower()
            not_deleted = {"email": email, "deleted": {"$ne": True}}
            export["contactSubmissions"] = _strip_internal(self.db["contacts"].find(not_deleted))
            export["sellSubmissions"] = _strip_internal(self.db["sellwhiskies"].find(not_deleted))
            export["consultations"] = _strip_internal(self.db["consultations"].find(not_deleted))
            export["consentHistory"] += _strip_internal(
                self.db["consentlogs"].find({"hashedEmail": sha256_hex(email)}, {"_id": 0, "hashedIp": 0})
            )

        return export

    def update_data(self, email: Optional[str], updates: Dict[str, Any]) -> int:
        """Apply whitelisted corrections to the subject's contact records."""
        if not email:
            raise BadRequestError("Email is required for data update")

        allowed = {key: value for key, value in updates.items() if key in RECTIFIABLE_FIELDS}
        if not allowed:
            raise BadRequestError(f"Only these fields can be updated: {', '.join(RECTIFIABLE_FIELDS)}")

        allowed["updatedAt"] = utcnow()
        result = self.db["contacts"].update_many({"email": email.lower()}, {"$set": allowed})
        logger.info(
            f"GDPR update request for subject {sha256_hex(email.lower())}: {', '.join(sorted(allowed))}"
        )
        return result.modified_count

    def opt_out(self, visitor_id: Optional[str], email: Optional[str], opt_out_type: Optional[str] = None) -> None:
        if not visitor_id and not email:
            raise BadRequestError("visitorId or email is required")

        now = utcnow()
        if visitor_id:
            self.db["visitors"].update_one(
                {"visitorId": visitor_id},
                {"$set": {
                    "marketingConsent.email": False,
                    "marketingConsent.sms": False,
                    "marketingConsent.phone": False,
                    "optedOut": True,
                    "optOutDate": now,
                }},
            )
        if email:
            self.db["contacts"].update_many(
                {"email": email.lower()},
                {"$set": {"marketingConsent": False, "optedOut": True, "updatedAt": now}},
            )

        logger.info(
            f"Opt-out request ({opt_out_type or 'all'}) processed",
            extra={"visitor_id": visitor_id, "operation": "gdpr_opt_out"}
        )
