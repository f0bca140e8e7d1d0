"""MongoDB client, index management and resilient delete helpers.

Provides a lazily created, pooled ``MongoClient``, the index blueprint for
every collection, and ``MongoConnectionHandler`` which wraps destructive
operations with connection checks and a retry on transient network errors.
"""
import math
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from viticult.core.config import settings
from viticult.core.errors import (
    BadRequestError,
    DatabaseUnavailableError,
    InvalidIdError,
    NotFoundError,
)
from viticult.core.logging import get_logger

logger = get_logger(__name__)

# Errors worth a reconnect + retry; anything else propagates immediately
CONNECTION_ERRORS = (AutoReconnect, ConnectionFailure, NetworkTimeout, ServerSelectionTimeoutError)

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

_client: Optional[MongoClient] = None


INDEXES: Dict[str, List[IndexModel]] = {
    "contacts": [
        IndexModel([("email", ASCENDING), ("createdAt", DESCENDING)], name="email_created_desc"),
        IndexModel([("status", ASCENDING)], name="status"),
    ],
    "sellwhiskies": [
        IndexModel([("email", ASCENDING), ("createdAt", DESCENDING)], name="email_created_desc"),
        IndexModel([("status", ASCENDING)], name="status"),
        IndexModel([("distillery", ASCENDING)], name="distillery"),
    ],
    "consultations": [
        IndexModel([("preferredDate", ASCENDING), ("status", ASCENDING)], name="date_status"),
        IndexModel([("email", ASCENDING)], name="email"),
    ],
    "blogposts": [
        IndexModel([("slug", ASCENDING)], unique=True, name="slug_unique"),
        IndexModel([("status", ASCENDING), ("publishedAt", DESCENDING)], name="status_published_desc"),
        IndexModel([("category", ASCENDING)], name="category"),
        IndexModel([("tags", ASCENDING)], name="tags"),
    ],
    "admins": [
        IndexModel([("email", ASCENDING)], unique=True, name="email_unique"),
    ],
    "visitors": [
        IndexModel([("visitorId", ASCENDING)], unique=True, name="visitor_id_unique"),
        IndexModel([("lastVisit", DESCENDING)], name="last_visit_desc"),
        IndexModel([("behavior.leadScore", DESCENDING)], name="lead_score_desc"),
        IndexModel([("email", ASCENDING)], name="email", sparse=True),
    ],
    "consentlogs": [
        IndexModel([("timestamp", DESCENDING)], name="timestamp_desc"),
        IndexModel([("visitorId", ASCENDING)], name="visitor_id", sparse=True),
    ],
}


def get_client() -> MongoClient:
    """Get or create the shared MongoDB client.

    Returns:
        MongoClient with connection pooling configured from settings
    """
    global _client

    if _client is None:
        logger.info(f"Initializing MongoDB client for database {settings.mongodb_db_name}")
        _client = MongoClient(
            settings.mongodb_uri,
            maxPoolSize=settings.mongodb_max_pool_size,
            serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
            tz_aware=True,
        )

    return _client


def get_database() -> Database:
    return get_client()[settings.mongodb_db_name]


def close_client() -> None:
    global _client

    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB client closed")


def ping() -> bool:
    """Return True when the MongoDB server answers a ping."""
    try:
        get_client().admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False


def ensure_indexes(db: Database) -> None:
    """Create every index in ``INDEXES`` (idempotent).

    Args:
        db: Target database
    """
    for collection_name, indexes in INDEXES.items():
        try:
            db[collection_name].create_indexes(indexes)
        except PyMongoError as e:
            logger.error(
                f"Index creation failed for {collection_name}: {e}",
                extra={"collection": collection_name}
            )
    logger.info(f"Indexes ensured for {len(INDEXES)} collections")


def is_valid_object_id(value: Any) -> bool:
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.fullmatch(value))


def parse_object_id(value: str) -> ObjectId:
    """Convert a 24-hex string to ObjectId.

    Raises:
        InvalidIdError: If the value is not a valid ObjectId string
    """
    if not is_valid_object_id(value):
        raise InvalidIdError()
    return ObjectId(value)


def serialize_document(doc: Any) -> Any:
    """Recursively convert ObjectId values to strings for JSON responses."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, dict):
        return {key: serialize_document(value) for key, value in doc.items()}
    if isinstance(doc, list):
        return [serialize_document(item) for item in doc]
    return doc


def page_bounds(page: int, limit: int) -> Tuple[int, int]:
    """Return ``(skip, limit)`` for a 1-based page number."""
    page = max(1, page)
    limit = max(1, limit)
    return (page - 1) * limit, limit


def build_pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit else 0,
    }


class MongoConnectionHandler:
    """Retry wrapper for destructive MongoDB operations.

    Each attempt first verifies the connection (up to
    ``max_reconnect_attempts`` pings spaced by ``reconnect_delay`` seconds),
    then runs the operation. Connection-class failures are retried
    ``max_retries`` times in total before a 503 is raised.

    Example:
        >>> handler = MongoConnectionHandler()
        >>> handler.safe_delete(db["contacts"], "65f0c3...", "Contact")
        {'success': True, 'deletedId': '65f0c3...', 'deletedDocument': {...}}
    """

    def __init__(
        self,
        max_retries: int = 2,
        max_reconnect_attempts: int = 3,
        reconnect_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_retries = max_retries
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self._sleep = sleep

    def ensure_connection(self, collection: Collection) -> None:
        """Ping the server behind ``collection``, retrying before giving up.

        Raises:
            DatabaseUnavailableError: If every reconnect attempt fails
        """
        for attempt in range(1, self.max_reconnect_attempts + 1):
            try:
                collection.database.client.admin.command("ping")
                return
            except CONNECTION_ERRORS as e:
                logger.warning(
                    f"MongoDB reconnect attempt {attempt}/{self.max_reconnect_attempts} failed: {e}",
                    extra={"collection": collection.name}
                )
                if attempt < self.max_reconnect_attempts:
                    self._sleep(self.reconnect_delay)

        logger.error(
            "Failed to establish MongoDB connection",
            extra={"collection": collection.name}
        )
        raise DatabaseUnavailableError()

    def execute_with_retry(self, collection: Collection, operation: Callable[[], Any], label: str) -> Any:
        """Run ``operation`` after a connection check, retrying on network errors.

        Args:
            collection: Collection the operation targets
            operation: Zero-argument callable performing the work
            label: Human-readable operation name for logs

        Returns:
            Whatever ``operation`` returns
        """
        for attempt in range(1, self.max_retries + 1):
            self.ensure_connection(collection)
            try:
                return operation()
            except CONNECTION_ERRORS as e:
                logger.warning(
                    f"{label} attempt {attempt}/{self.max_retries} hit a connection error: {e}",
                    extra={"collection": collection.name, "operation": label}
                )
                if attempt < self.max_retries:
                    self._sleep(self.reconnect_delay)

        raise DatabaseUnavailableError(f"{label} failed: database connection unavailable")

    def safe_delete(self, collection: Collection, document_id: str, label: str = "Document") -> Dict[str, Any]:
        """Delete one document by id.

        Raises:
            InvalidIdError: Malformed id (400)
            NotFoundError: No document with that id (404)
            DatabaseUnavailableError: Connection could not be restored (503)
        """
        object_id = parse_object_id(document_id)

        def _delete():
            document = collection.find_one({"_id": object_id})
            if document is None:
                raise NotFoundError(f"{label} not found")
            collection.delete_one({"_id": object_id})
            return document

        document = self.execute_with_retry(collection, _delete, f"delete {label.lower()}")

        logger.info(
            f"{label} deleted",
            extra={"collection": collection.name, "document_id": document_id}
        )
        return {
            "success": True,
            "deletedId": document_id,
            "deletedDocument": serialize_document(document),
        }

    def safe_bulk_delete(self, collection: Collection, ids: List[str], label: str = "Document") -> Dict[str, Any]:
        """Delete many documents by id.

        Returns:
            Dict with ``deletedCount``, ``requestedCount`` and ``deletedIds``
        """
        if not ids:
            raise BadRequestError("Invalid or empty IDs array")

        invalid = [value for value in ids if not is_valid_object_id(value)]
        if invalid:
            raise InvalidIdError(f"Invalid document ID format: {', '.join(map(str, invalid))}")

        object_ids = [ObjectId(value) for value in ids]

        def _bulk_delete():
            existing = [
                str(doc["_id"])
                for doc in collection.find({"_id": {"$in": object_ids}}, {"_id": 1})
            ]
            result = collection.delete_many({"_id": {"$in": object_ids}})
            return existing, result.deleted_count

        deleted_ids, deleted_count = self.execute_with_retry(
            collection, _bulk_delete, f"bulk delete {label.lower()}"
        )

        logger.info(
            f"Bulk deleted {deleted_count}/{len(ids)} {label.lower()} records",
            extra={"collection": collection.name}
        )
        return {
            "success": True,
            "deletedCount": deleted_count,
            "requestedCount": len(ids),
            "deletedIds": deleted_ids,
        }


connection_handler = MongoConnectionHandler()
