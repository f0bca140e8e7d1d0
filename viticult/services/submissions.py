"""Services for the lead-capture collections.

``SubmissionService`` holds the list/get/status/delete behaviour shared by
contact enquiries, sell-whisky submissions and consultation bookings; the
subclasses set the collection, statuses and search fields.
"""
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from viticult.core.errors import BadRequestError, NotFoundError
from viticult.core.logging import get_logger
from viticult.domain.submissions import (
    CONSULTATION_STATUSES,
    CONTACT_STATUSES,
    SELL_WHISKY_STATUSES,
    ConsultationUpdate,
    SubmissionBase,
)
from viticult.infrastructure.mongo import (
    MongoConnectionHandler,
    build_pagination,
    connection_handler,
    page_bounds,
    parse_object_id,
    serialize_document,
)
from viticult.services.notifications import NotificationService
from viticult.utils.dates import ensure_utc, utcnow

logger = get_logger(__name__)


class SubmissionService:
    """CRUD operations over one submissions collection."""

    collection_name: str = ""
    label: str = "Submission"
    statuses: Tuple[str, ...] = ()
    search_fields: Tuple[str, ...] = ("name", "email")
    date_field: str = "createdAt"
    sort_direction: int = DESCENDING

    def __init__(self, db: Database, handler: Optional[MongoConnectionHandler] = None):
        self.db = db
        self.handler = handler or connection_handler
        self.logger = get_logger(__name__, {"collection": self.collection_name})

    @property
    def collection(self):
        return self.db[self.collection_name]

    def create(self, payload: SubmissionBase, ip_address: str, user_agent: str) -> Dict[str, Any]:
        """Store a public form submission and return the stored document."""
        document = payload.to_document(ip_address, user_agent)
        result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id

        self.logger.info(f"{self.label} stored", extra={"document_id": str(result.inserted_id)})
        return serialize_document(document)

    def build_filter(
        self,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if start_date or end_date:
            date_range = {}
            if start_date:
                date_range["$gte"] = ensure_utc(start_date)
            if end_date:
                date_range["$lte"] = ensure_utc(end_date)
            query[self.date_field] = date_range
        if search:
            pattern = re.escape(search.strip())
            query["$or"] = [
                {field: {"$regex": pattern, "$options": "i"}} for field in self.search_fields
            ]
        return query

    def list(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Paginated listing for the admin dashboard.

        Returns:
            Dict with ``data`` and ``pagination`` ({total, page, pages})
        """
        query = self.build_filter(status, start_date, end_date, search)
        skip, limit = page_bounds(page, limit)

        cursor = (
            self.collection.find(query)
            .sort(self.date_field, self.sort_direction)
            .skip(skip)
            .limit(limit)
        )
        documents = [serialize_document(doc) for doc in cursor]
        total = self.collection.count_documents(query)

        return {"data": documents, "pagination": build_pagination(total, max(1, page), limit)}

    def get(self, document_id: str) -> Dict[str, Any]:
        document = self.collection.find_one({"_id": parse_object_id(document_id)})
        if document is None:
            raise NotFoundError(f"{self.label} not found")
        return serialize_document(document)

    def update_status(self, document_id: str, status: str, notes: Optional[str] = None) -> Dict[str, Any]:
        """Change the workflow status (and optionally the notes) of a record."""
        if status not in self.statuses:
            raise BadRequestError(f"Invalid status. Must be one of: {', '.join(self.statuses)}")

        changes: Dict[str, Any] = {"status": status, "updatedAt": utcnow()}
        if notes is not None:
            changes["notes"] = notes

        document = self.collection.find_one_and_update(
            {"_id": parse_object_id(document_id)},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            raise NotFoundError(f"{self.label} not found")

        self.logger.info(f"{self.label} status changed to {status}", extra={"document_id": document_id})
        return serialize_document(document)

    def delete(self, document_id: str) -> Dict[str, Any]:
        return self.handler.safe_delete(self.collection, document_id, self.label)

    def bulk_delete(self, ids: List[str]) -> Dict[str, Any]:
        return self.handler.safe_bulk_delete(self.collection, ids, self.label)

    def all_documents(self) -> List[Dict[str, Any]]:
        """Every record, newest first (used by exports)."""
        cursor = self.collection.find({}).sort("createdAt", DESCENDING)
        return [serialize_document(doc) for doc in cursor]

    def stats(self, since: datetime) -> Dict[str, Any]:
        by_status = {status: 0 for status in self.statuses}
        for row in self.collection.aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
            if row["_id"] is not None:
                by_status[row["_id"]] = row["count"]
        return {
            "total": sum(by_status.values()),
            "byStatus": by_status,
            "recent": self.collection.count_documents({"createdAt": {"$gte": since}}),
        }


class ContactService(SubmissionService):
    collection_name = "contacts"
    label = "Contact"
    statuses = CONTACT_STATUSES
    search_fields = ("name", "email", "subject")


class SellWhiskyService(SubmissionService):
    collection_name = "sellwhiskies"
    label = "Submission"
    statuses = SELL_WHISKY_STATUSES
    search_fields = ("name", "email", "distillery")


class ConsultationService(SubmissionService):
    """Consultation bookings, listed by appointment date (soonest first)."""

    collection_name = "consultations"
    label = "Consultation"
    statuses = CONSULTATION_STATUSES
    search_fields = ("name", "email", "phone")
    date_field = "preferredDate"
    sort_direction = ASCENDING

    def update(self, document_id: str, payload: ConsultationUpdate) -> Tuple[Dict[str, Any], bool]:
        """Apply an admin update.

        Returns:
            Tuple of (updated document, whether a confirmation mail is due).
            The mail is due when this update confirms the booking and the
            booking has a meeting link.
        """
        changes = payload.changes()
        if not changes:
            raise BadRequestError("No updates provided")
        changes["updatedAt"] = utcnow()

        document = self.collection.find_one_and_update(
            {"_id": parse_object_id(document_id)},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            raise NotFoundError("Consultation not found")

        confirm = changes.get("status") == "confirmed" and bool(document.get("meetingLink"))
        self.logger.info("Consultation updated", extra={"document_id": document_id})
        return serialize_document(document), confirm

    def send_reminders(self, notifications: NotificationService, now: Optional[datetime] = None) -> Dict[str, int]:
        """Email confirmed clients whose consultation is tomorrow (UTC).

        A booking is flagged ``reminderSent`` only when its mail went out, so
        failed reminders are retried on the next run.
        """
        now = now or utcnow()
        start = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)

        due = list(self.collection.find({
            "status": "confirmed",
            "reminderSent": {"$ne": True},
            "preferredDate": {"$gte": start, "$lt": end},
        }))

        sent = 0
        for consultation in due:
            if notifications.consultation_reminder(consultation):
                self.collection.update_one(
                    {"_id": consultation["_id"]},
                    {"$set": {"reminderSent": True, "updatedAt": now}},
                )
                sent += 1

        logger.info(f"Consultation reminders: {sent}/{len(due)} sent")
        return {"remindersCount": len(due), "sentCount": sent}
