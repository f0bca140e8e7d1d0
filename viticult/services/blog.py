"""Blog post queries and admin editing."""
import math
import re
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from viticult.core.errors import BadRequestError, ConflictError, NotFoundError
from viticult.core.logging import get_logger
from viticult.domain.blog import BlogPostCreate, BlogPostUpdate
from viticult.infrastructure.mongo import (
    MongoConnectionHandler,
    connection_handler,
    page_bounds,
    parse_object_id,
    serialize_document,
)
from viticult.utils.dates import utcnow
from viticult.utils.text import display_name, read_time_minutes, slugify

logger = get_logger(__name__)

SLUG_RE = re.compile(r"^[a-z0-9-]+$")

# Projections for list views
LIST_PROJECTION = {"content": 0}
FEATURED_PROJECTION = {
    "title": 1, "slug": 1, "excerpt": 1, "featuredImage": 1,
    "publishedAt": 1, "category": 1, "readTime": 1,
}
RELATED_PROJECTION = {
    "title": 1, "slug": 1, "excerpt": 1, "featuredImage": 1,
    "publishedAt": 1, "readTime": 1,
}

FEATURED_LIMIT = 3
RELATED_LIMIT = 3
TOP_TAGS_LIMIT = 20


class BlogService:
    """Public blog reads and admin post management."""

    collection_name = "blogposts"

    def __init__(self, db: Database, handler: Optional[MongoConnectionHandler] = None):
        self.db = db
        self.handler = handler or connection_handler

    @property
    def collection(self):
        return self.db[self.collection_name]

    def list_published(
        self,
        page: int = 1,
        limit: int = 12,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        featured: bool = False,
    ) -> Dict[str, Any]:
        """Published posts without their body, newest first.

        Returns:
            Dict with ``data`` and ``pagination`` including hasNext/hasPrev
        """
        query: Dict[str, Any] = {"status": "published"}
        if category:
            query["category"] = category
        if tag:
            query["tags"] = tag.lower()
        if featured:
            query["featured"] = True
        if search:
            pattern = re.escape(search.strip())
            query["$or"] = [
                {field: {"$regex": pattern, "$options": "i"}}
                for field in ("title", "excerpt", "content")
            ]

        skip, limit = page_bounds(page, limit)
        page = max(1, page)
        cursor = (
            self.collection.find(query, LIST_PROJECTION)
            .sort("publishedAt", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        posts = [serialize_document(doc) for doc in cursor]
        total = self.collection.count_documents(query)
        pages = math.ceil(total / limit)

        return {
            "data": posts,
            "pagination": {
                "total": total,
                "page": page,
                "pages": pages,
                "hasNext": page < pages,
                "hasPrev": page > 1,
            },
        }

    def featured(self) -> List[Dict[str, Any]]:
        cursor = (
            self.collection.find({"status": "published", "featured": True}, FEATURED_PROJECTION)
            .sort("publishedAt", DESCENDING)
            .limit(FEATURED_LIMIT)
        )
        return [serialize_document(doc) for doc in cursor]

    def categories(self) -> List[Dict[str, Any]]:
        rows = self.collection.aggregate([
            {"$match": {"status": "published"}},
            {"$group": {"_id": "$category", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ])
        return [
            {
                "name": row["_id"],
                "slug": row["_id"],
                "count": row["count"],
                "displayName": display_name(row["_id"]),
            }
            for row in rows
            if row["_id"]
        ]

    def popular_tags(self) -> List[Dict[str, Any]]:
        rows = self.collection.aggregate([
            {"$match": {"status": "published"}},
            {"$unwind": "$tags"},
            {"$group": {"_id": "$tags", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
            {"$limit": TOP_TAGS_LIMIT},
        ])
        return [{"name": row["_id"], "count": row["count"]} for row in rows]

    def get_by_slug(self, slug: str) -> Dict[str, Any]:
        """Published post by slug with up to three related posts.

        Reading a post increments its view count.
        """
        if not SLUG_RE.fullmatch(slug or ""):
            raise BadRequestError("Invalid slug format")

        post = self.collection.find_one_and_update(
            {"slug": slug, "status": "published"},
            {"$inc": {"viewCount": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if post is None:
            raise NotFoundError("Blog post not found")

        related_query = {
            "_id": {"$ne": post["_id"]},
            "status": "published",
            "$or": [
                {"category": post.get("category")},
                {"tags": {"$in": post.get("tags") or []}},
            ],
        }
        related = (
            self.collection.find(related_query, RELATED_PROJECTION)
            .sort("publishedAt", DESCENDING)
            .limit(RELATED_LIMIT)
        )
        return {
            "post": serialize_document(post),
            "relatedPosts": [serialize_document(doc) for doc in related],
        }

    def create(self, payload: BlogPostCreate, author_email: Optional[str] = None) -> Dict[str, Any]:
        document = payload.model_dump(by_alias=True)
        document["slug"] = document.get("slug") or slugify(payload.title)
        if not document["slug"]:
            raise BadRequestError("A slug could not be derived from the title")

        now = utcnow()
        document.update({
            "readTime": read_time_minutes(payload.content),
            "viewCount": 0,
            "publishedAt": now if payload.status == "published" else None,
            "createdAt": now,
            "updatedAt": now,
        })

        try:
            result = self.collection.insert_one(document)
        except DuplicateKeyError:
            raise ConflictError("A post with this slug already exists")

        document["_id"] = result.inserted_id
        logger.info(
            f"Blog post created: {document['slug']}",
            extra={"collection": self.collection_name, "admin_email": author_email}
        )
        return serialize_document(document)

    def update(self, post_id: str, payload: BlogPostUpdate) -> Dict[str, Any]:
        object_id = parse_object_id(post_id)
        changes = payload.changes()

        existing = self.collection.find_one({"_id": object_id}, {"status": 1})
        if existing is None:
            raise NotFoundError("Blog post not found")

        if changes.get("content"):
            changes["readTime"] = read_time_minutes(changes["content"])
        if changes.get("status") == "published" and existing.get("status") != "published":
            changes["publishedAt"] = utcnow()
        changes["updatedAt"] = utcnow()

        try:
            post = self.collection.find_one_and_update(
                {"_id": object_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise ConflictError("A post with this slug already exists")

        if post is None:
            raise NotFoundError("Blog post not found")
        return serialize_document(post)

    def delete(self, post_id: str) -> Dict[str, Any]:
        return self.handler.safe_delete(self.collection, post_id, "Blog post")
