"""Blog endpoints: public reading and admin editing."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from viticult.api.deps import get_blog_service
from viticult.core.auth import get_current_admin
from viticult.domain.admin import AdminPrincipal
from viticult.domain.blog import BlogCategory, BlogPostCreate, BlogPostUpdate
from viticult.services.blog import BlogService

router = APIRouter(prefix="/api/blog", tags=["blog"])


@router.get("")
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    category: Optional[BlogCategory] = None,
    tag: Optional[str] = Query(None, max_length=50),
    search: Optional[str] = Query(None, max_length=100),
    featured: Optional[str] = None,
    service: BlogService = Depends(get_blog_service),
):
    """Published posts, newest first; the body is omitted."""
    result = service.list_published(
        page=page,
        limit=limit,
        category=category,
        tag=tag,
        search=search,
        featured=featured == "true",
    )
    return {"success": True, **result}


@router.get("/featured")
def featured_posts(service: BlogService = Depends(get_blog_service)):
    return {"success": True, "data": service.featured()}


@router.get("/categories")
def categories(service: BlogService = Depends(get_blog_service)):
    return {"success": True, "data": service.categories()}


@router.get("/tags")
def popular_tags(service: BlogService = Depends(get_blog_service)):
    return {"success": True, "data": service.popular_tags()}


@router.get("/{slug}")
def get_post(slug: str, service: BlogService = Depends(get_blog_service)):
    return {"success": True, "data": service.get_by_slug(slug)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_post(
    payload: BlogPostCreate,
    service: BlogService = Depends(get_blog_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return {"success": True, "data": service.create(payload, author_email=admin.email)}


@router.put("/{post_id}")
def update_post(
    post_id: str,
    payload: BlogPostUpdate,
    service: BlogService = Depends(get_blog_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    return {"success": True, "data": service.update(post_id, payload)}


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    service: BlogService = Depends(get_blog_service),
    admin: AdminPrincipal = Depends(get_current_admin),
):
    service.delete(post_id)
    return {"success": True, "message": "Blog post deleted successfully"}
