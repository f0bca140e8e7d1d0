"""Visitor tracking: visit merging, scoring and admin analytics.

The scoring and merge rules are plain functions over the visitor document
so they can be tested without a database; ``TrackingService`` handles
persistence.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.database import Database

from viticult.core.errors import BadRequestError, NotFoundError
from viticult.core.logging import get_logger
from viticult.domain.tracking import (
    CaptureFieldPayload,
    EventPayload,
    IdentifyPayload,
    VisitorPayload,
)
from viticult.infrastructure.mongo import serialize_document
from viticult.utils.dates import ensure_utc, utcnow
from viticult.utils.text import split_full_name

logger = get_logger(__name__)

SESSION_TIMEOUT = timedelta(minutes=30)
PROSPECT_LEAD_SCORE = 30
FORM_INTERACTION_BOOST = 5
MAX_SCORE = 100

HIGH_INTENT_PAGES = ("contact", "sell", "buy", "consultation", "how-it-works")

TIMEFRAMES = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

EXPORT_PROJECTION = {
    "_id": 0, "visitorId": 1, "email": 1, "name": 1, "phone": 1, "status": 1,
    "behavior.leadScore": 1, "behavior.engagementScore": 1, "behavior.interests": 1,
    "firstVisit": 1, "lastVisit": 1, "totalVisits": 1,
}


def empty_behavior() -> Dict[str, Any]:
    return {
        "totalPageViews": 0,
        "totalTimeSpent": 0,
        "interests": [],
        "engagementScore": 0,
        "leadScore": 0,
    }


def new_visitor(visitor_id: str, ip_address: str, now: datetime, status: str = "anonymous") -> Dict[str, Any]:
    return {
        "visitorId": visitor_id,
        "fingerprint": "unknown",
        "status": status,
        "ipAddress": ip_address,
        "behavior": empty_behavior(),
        "pagesVisited": [],
        "sessions": [],
        "events": [],
        "formInteractions": [],
        "firstVisit": now,
        "lastVisit": now,
        "totalVisits": 1,
        "optedOut": False,
        "marketingConsent": {"email": False, "sms": False, "phone": False},
        "createdAt": now,
        "updatedAt": now,
    }


def _session_id(now: datetime) -> str:
    return f"session_{int(now.timestamp() * 1000)}"


def merge_pages(visitor: Dict[str, Any], pages, now: datetime) -> None:
    """Fold page-visit reports into ``pagesVisited``, one entry per URL."""
    by_url = {page["url"]: page for page in visitor.setdefault("pagesVisited", [])}
    for page in pages:
        existing = by_url.get(page.url)
        if existing:
            existing["visits"] = existing.get("visits", 0) + 1
            existing["totalTimeSpent"] = existing.get("totalTimeSpent", 0) + page.time_spent
            existing["averageTimeSpent"] = existing["totalTimeSpent"] / existing["visits"]
            existing["maxScrollDepth"] = max(existing.get("maxScrollDepth", 0), page.scroll_depth)
            existing["clicks"] = existing.get("clicks", 0) + page.clicks
            existing["lastVisited"] = now
            if page.title:
                existing["title"] = page.title
        else:
            entry = {
                "url": page.url,
                "title": page.title,
                "visits": 1,
                "totalTimeSpent": page.time_spent,
                "averageTimeSpent": page.time_spent,
                "maxScrollDepth": page.scroll_depth,
                "clicks": page.clicks,
                "lastVisited": now,
            }
            visitor["pagesVisited"].append(entry)
            by_url[page.url] = entry


def update_sessions(visitor: Dict[str, Any], payload: VisitorPayload, now: datetime) -> None:
    """Extend the current session, or open a new one after 30 idle minutes."""
    sessions = visitor.setdefault("sessions", [])
    page_views = payload.session.page_views if payload.session else 0
    referrer = payload.referrer.model_dump() if payload.referrer else {"source": "direct"}

    last = sessions[-1] if sessions else None
    last_activity = None
    if last:
        last_activity = ensure_utc(last.get("endTime") or last.get("startTime"))

    if last is None or last_activity is None or now - last_activity > SESSION_TIMEOUT:
        start = ensure_utc(payload.session.start_time) if payload.session and payload.session.start_time else now
        sessions.append({
            "sessionId": _session_id(now),
            "startTime": start,
            "endTime": None,
            "pageViews": page_views or 1,
            "duration": 0,
            "referrer": referrer,
        })
    else:
        last["endTime"] = now
        last["pageViews"] = last.get("pageViews", 0) + page_views
        last["duration"] = (now - ensure_utc(last["startTime"])).total_seconds()


def merge_visit(visitor: Dict[str, Any], payload: VisitorPayload, now: datetime, is_new: bool = False) -> Dict[str, Any]:
    """Apply a visit beacon to a visitor document (mutates and returns it)."""
    behavior = visitor.setdefault("behavior", empty_behavior())

    if not is_new:
        visitor["lastVisit"] = now
        visitor["totalVisits"] = visitor.get("totalVisits", 0) + 1

    if payload.fingerprint:
        visitor["fingerprint"] = payload.fingerprint
    if payload.location:
        visitor["location"] = payload.location.model_dump(exclude_none=True)
    if payload.device:
        visitor["device"] = payload.device.model_dump(by_alias=True, exclude_none=True)

    if payload.session:
        behavior["totalPageViews"] = behavior.get("totalPageViews", 0) + payload.session.page_views
        behavior["totalTimeSpent"] = behavior.get("totalTimeSpent", 0) + payload.session.total_time_spent

    if payload.behavior:
        interests = behavior.setdefault("interests", [])
        for interest in payload.behavior.interests:
            if interest not in interests:
                interests.append(interest)
        merge_pages(visitor, payload.behavior.pages_visited, now)

    update_sessions(visitor, payload, now)
    visitor["updatedAt"] = now
    return visitor


def calculate_lead_score(visitor: Dict[str, Any]) -> int:
    """Lead score (0-100) from contact details and on-site behaviour.

    Email 30, phone 20, name 10; two points per page view (max 20); one
    point per minute on site (max 10); five per high-intent page visited
    (max 15); five per form interacted with (max 15).
    """
    behavior = visitor.get("behavior") or {}
    score = 0
    if visitor.get("email"):
        score += 30
    if visitor.get("phone"):
        score += 20
    if visitor.get("name"):
        score += 10

    score += min(20, 2 * behavior.get("totalPageViews", 0))
    score += min(10, int(behavior.get("totalTimeSpent", 0) // 60))

    intent_pages = sum(
        1 for page in visitor.get("pagesVisited") or []
        if any(marker in (page.get("url") or "").lower() for marker in HIGH_INTENT_PAGES)
    )
    score += min(15, 5 * intent_pages)
    score += min(15, 5 * len(visitor.get("formInteractions") or []))

    return min(MAX_SCORE, int(score))


def calculate_engagement(visitor: Dict[str, Any]) -> int:
    """Engagement score (0-100); never lower than the stored value."""
    behavior = visitor.get("behavior") or {}
    computed = (
        2 * behavior.get("totalPageViews", 0)
        + int(behavior.get("totalTimeSpent", 0) // 60)
        + 3 * len(visitor.get("events") or [])
        + 5 * len(visitor.get("formInteractions") or [])
    )
    return max(behavior.get("engagementScore", 0), min(MAX_SCORE, int(computed)))


def boost_engagement(visitor: Dict[str, Any], amount: int = FORM_INTERACTION_BOOST) -> None:
    behavior = visitor.setdefault("behavior", empty_behavior())
    behavior["engagementScore"] = min(MAX_SCORE, behavior.get("engagementScore", 0) + amount)


def record_form_field(visitor: Dict[str, Any], form_id: str, field_name: str, value: Optional[str], now: datetime) -> None:
    """Upsert the field entry of a form interaction."""
    forms = visitor.setdefault("formInteractions", [])
    form = next((f for f in forms if f.get("formId") == form_id), None)
    if form is None:
        form = {"formId": form_id, "fields": [], "abandoned": False, "timestamp": now}
        forms.append(form)

    field = next((f for f in form["fields"] if f.get("name") == field_name), None)
    if field is None:
        field = {"name": field_name}
        form["fields"].append(field)
    field.update({
        "interacted": True,
        "completed": bool(value),
        "lastValue": value,
        "lastUpdated": now,
    })


def rescore(visitor: Dict[str, Any]) -> None:
    behavior = visitor.setdefault("behavior", empty_behavior())
    behavior["engagementScore"] = calculate_engagement(visitor)
    behavior["leadScore"] = calculate_lead_score(visitor)


def _rate(part: int, total: int) -> str:
    return f"{(part / total * 100) if total else 0:.1f}"


class TrackingService:
    """Persistence and admin queries for the ``visitors`` collection."""

    collection_name = "visitors"

    def __init__(self, db: Database):
        self.db = db

    @property
    def collection(self):
        return self.db[self.collection_name]

    def _save(self, visitor: Dict[str, Any]) -> None:
        self.collection.replace_one({"visitorId": visitor["visitorId"]}, visitor, upsert=True)

    @staticmethod
    def _summary(visitor: Dict[str, Any]) -> Dict[str, Any]:
        behavior = visitor.get("behavior") or {}
        return {
            "visitorId": visitor["visitorId"],
            "status": visitor.get("status", "anonymous"),
            "engagementScore": behavior.get("engagementScore", 0),
            "leadScore": behavior.get("leadScore", 0),
        }

    def track_visit(
        self,
        payload: VisitorPayload,
        ip_address: str,
        geo: Optional[Dict[str, Optional[str]]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Record a visit beacon and return the visitor's current scores."""
        now = now or utcnow()
        visitor = self.collection.find_one({"visitorId": payload.visitor_id})

        if visitor and visitor.get("optedOut"):
            return self._summary(visitor)

        is_new = visitor is None
        if is_new:
            visitor = new_visitor(payload.visitor_id, ip_address, now)
        if payload.location is None and geo and geo.get("country"):
            visitor["location"] = {k: v for k, v in geo.items() if v}

        merge_visit(visitor, payload, now, is_new=is_new)
        rescore(visitor)
        if visitor["behavior"]["leadScore"] > PROSPECT_LEAD_SCORE and visitor.get("status") == "anonymous":
            visitor["status"] = "prospect"

        self._save(visitor)
        return self._summary(visitor)

    def track_event(self, payload: EventPayload, now: Optional[datetime] = None) -> bool:
        """Append an event; returns False when the visitor is unknown."""
        now = now or utcnow()
        visitor = self.collection.find_one({"visitorId": payload.visitor_id})
        if visitor is None or visitor.get("optedOut"):
            return False

        visitor.setdefault("events", []).append({
            "category": payload.category,
            "action": payload.action,
            "label": payload.label,
            "value": payload.value,
            "timestamp": now,
        })
        if payload.category == "Form Interaction":
            boost_engagement(visitor)
        visitor["updatedAt"] = now
        self._save(visitor)
        return True

    def identify(self, payload: IdentifyPayload, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        visitor = self.collection.find_one({"visitorId": payload.visitor_id})
        if visitor is None:
            return None

        if payload.email:
            visitor["email"] = payload.email.lower()
        if payload.name:
            visitor["name"] = payload.name
            visitor["firstName"], visitor["lastName"] = split_full_name(payload.name)
        if payload.phone:
            visitor["phone"] = payload.phone
        if visitor.get("status") in ("anonymous", "prospect"):
            visitor["status"] = "identified"

        rescore(visitor)
        visitor["updatedAt"] = now or utcnow()
        self._save(visitor)
        return self._summary(visitor)

    def capture_field(self, payload: CaptureFieldPayload, ip_address: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Store a single form field typed by the visitor."""
        now = now or utcnow()
        visitor = self.collection.find_one({"visitorId": payload.visitor_id})
        if visitor is None:
            visitor = new_visitor(payload.visitor_id, ip_address, now, status="prospect")

        value = payload.field_value
        if value:
            if payload.field_name == "email":
                visitor["email"] = value.strip().lower()
                visitor["status"] = "identified"
            elif payload.field_name == "name":
                visitor["name"] = value
                visitor["firstName"], visitor["lastName"] = split_full_name(value)
            elif payload.field_name == "phone":
                visitor["phone"] = value

        record_form_field(visitor, payload.form_type, payload.field_name, value, now)
        boost_engagement(visitor)
        visitor["behavior"]["leadScore"] = calculate_lead_score(visitor)
        visitor["updatedAt"] = now
        self._save(visitor)

        logger.info(
            f"Captured {payload.field_name} for visitor",
            extra={"visitor_id": payload.visitor_id}
        )
        return {
            "visitorStatus": visitor["status"],
            "leadScore": visitor["behavior"]["leadScore"],
        }

    def analytics(self, timeframe: str = "7d", now: Optional[datetime] = None) -> Dict[str, Any]:
        """Dashboard analytics for visitors seen within ``timeframe``."""
        now = now or utcnow()
        window = TIMEFRAMES.get(timeframe)
        date_filter: Dict[str, Any] = {"lastVisit": {"$gte": now - window}} if window else {}

        total = self.collection.count_documents(date_filter)
        identified = self.collection.count_documents({**date_filter, "status": {"$ne": "anonymous"}})
        high_engagement = self.collection.count_documents(
            {**date_filter, "behavior.engagementScore": {"$gte": 50}}
        )
        qualified = self.collection.count_documents({**date_filter, "behavior.leadScore": {"$gte": 50}})

        top_pages = self.collection.aggregate([
            {"$match": date_filter},
            {"$unwind": "$pagesVisited"},
            {"$group": {
                "_id": "$pagesVisited.url",
                "title": {"$first": "$pagesVisited.title"},
                "totalVisits": {"$sum": "$pagesVisited.visits"},
                "avgTimeSpent": {"$avg": "$pagesVisited.averageTimeSpent"},
                "avgScrollDepth": {"$avg": "$pagesVisited.maxScrollDepth"},
            }},
            {"$sort": {"totalVisits": -1}},
            {"$limit": 10},
        ])
        sources = self.collection.aggregate([
            {"$match": date_filter},
            {"$unwind": "$sessions"},
            {"$group": {"_id": "$sessions.referrer.source", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ])
        devices = self.collection.aggregate([
            {"$match": date_filter},
            {"$group": {"_id": "$device.type", "count": {"$sum": 1}}},
        ])
        locations = self.collection.aggregate([
            {"$match": date_filter},
            {"$group": {"_id": "$location.country", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
            {"$limit": 10},
        ])
        recent = (
            self.collection.find(
                {**date_filter, "behavior.engagementScore": {"$gte": 30}},
                {
                    "visitorId": 1, "email": 1, "name": 1, "status": 1,
                    "behavior.engagementScore": 1, "behavior.leadScore": 1,
                    "behavior.interests": 1, "lastVisit": 1, "totalVisits": 1,
                },
            )
            .sort("lastVisit", DESCENDING)
            .limit(20)
        )

        return {
            "overview": {
                "totalVisitors": total,
                "identifiedVisitors": identified,
                "identificationRate": _rate(identified, total),
                "highEngagement": high_engagement,
                "engagementRate": _rate(high_engagement, total),
                "qualifiedLeads": qualified,
            },
            "topPages": list(top_pages),
            "sources": list(sources),
            "devices": list(devices),
            "locations": list(locations),
            "recentEngaged": [serialize_document(doc) for doc in recent],
        }

    def get_visitor(self, visitor_id: str) -> Dict[str, Any]:
        visitor = self.collection.find_one({"visitorId": visitor_id})
        if visitor is None:
            raise NotFoundError("Visitor not found")
        return serialize_document(visitor)

    def export(self, status: Optional[str] = None, min_lead_score: Optional[int] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if min_lead_score is not None:
            query["behavior.leadScore"] = {"$gte": min_lead_score}
        cursor = self.collection.find(query, EXPORT_PROJECTION).sort("behavior.leadScore", DESCENDING)
        return [serialize_document(doc) for doc in cursor]

    def bulk_delete(self, visitor_ids: List[str]) -> int:
        if not visitor_ids:
            raise BadRequestError("visitorIds array is required")
        result = self.collection.delete_many({"visitorId": {"$in": visitor_ids}})
        logger.info(f"Bulk deleted {result.deleted_count} visitors", extra={"collection": self.collection_name})
        return result.deleted_count

    def captured_data(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Visitors who typed personal details, with the fields they filled in."""
        cursor = (
            self.collection.find({
                "$or": [
                    {"email": {"$exists": True, "$ne": None}},
                    {"name": {"$exists": True, "$ne": None}},
                    {"phone": {"$exists": True, "$ne": None}},
                ]
            })
            .sort("lastVisit", DESCENDING)
            .limit(limit)
        )

        visitors = []
        for visitor in cursor:
            behavior = visitor.get("behavior") or {}
            form_fields = [
                {
                    "form": form.get("formId"),
                    "field": field.get("name"),
                    "value": field.get("lastValue"),
                    "updated": field.get("lastUpdated"),
                }
                for form in visitor.get("formInteractions") or []
                for field in form.get("fields") or []
                if field.get("lastValue")
            ]
            visitors.append({
                "visitorId": visitor["visitorId"],
                "email": visitor.get("email"),
                "name": visitor.get("name"),
                "firstName": visitor.get("firstName"),
                "lastName": visitor.get("lastName"),
                "phone": visitor.get("phone"),
                "ipAddress": visitor.get("ipAddress"),
                "status": visitor.get("status"),
                "leadScore": behavior.get("leadScore", 0),
                "engagementScore": behavior.get("engagementScore", 0),
                "formFields": form_fields,
                "lastVisit": visitor.get("lastVisit"),
                "firstSeen": visitor.get("createdAt") or visitor.get("firstVisit"),
            })
        return visitors
