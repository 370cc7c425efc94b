"""
Blog post API endpoints.

Authenticated routes live under /blog-posts; published content is also
served without a token under /public/blog-posts.
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from auth.rbac_dependencies import get_current_user
from blog_posts.schemas import BlogPostQuery, CreateBlogPostRequest, UpdateBlogPostRequest
from blog_posts.service import BlogPostService
from core.database import DatabaseManager
from core.exceptions import ServiceError
from core.responses import paginated_response, success_response

router = APIRouter(prefix="/blog-posts", tags=["blog-posts"])
public_router = APIRouter(prefix="/public/blog-posts", tags=["blog-posts"])

SortField = Literal["created_at", "updated_at", "title", "views", "reactions"]


def blog_post_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    published: Optional[bool] = None,
    author: Optional[str] = None,
    tags: Optional[List[str]] = Query(None),
    min_views: Optional[int] = Query(None, ge=0),
    min_reactions: Optional[int] = Query(None, ge=0),
    sort_by: SortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
) -> BlogPostQuery:
    return BlogPostQuery(
        page=page, limit=limit, search=search, published=published, author=author,
        tags=tags, min_views=min_views, min_reactions=min_reactions,
        sort_by=sort_by, sort_order=sort_order,
    )


def _paginated(message: str, result: dict):
    return paginated_response(message, result["blogPosts"], result["pagination"])


def _handle(e: Exception, action: str) -> HTTPException:
    if isinstance(e, ServiceError):
        return e.to_http_exception()
    logger.error(f"Error {action}: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail=f"Failed {action}")


# ==================== AUTHENTICATED ====================

@router.post("", status_code=201)
async def create_blog_post(
    request: CreateBlogPostRequest,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        return success_response("Blog post created successfully", BlogPostService.create(db, user, request))
    except Exception as e:
        raise _handle(e, "creating blog post")


@router.get("")
async def list_blog_posts(
    query: BlogPostQuery = Depends(blog_post_query),
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    return _paginated("Blog posts retrieved successfully", BlogPostService.list_posts(db, query))


@router.get("/published")
async def list_published_blog_posts(
    query: BlogPostQuery = Depends(blog_post_query),
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    return _paginated("Published blog posts retrieved successfully", BlogPostService.list_published(db, query))


@router.get("/stats")
async def blog_post_stats(user: dict = Depends(get_current_user),
                          db: Session = Depends(DatabaseManager.get_session)):
    return success_response("Blog post statistics retrieved successfully", BlogPostService.stats(db))


@router.get("/user/{user_id}")
async def list_user_blog_posts(
    user_id: str,
    query: BlogPostQuery = Depends(blog_post_query),
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    return _paginated("User blog posts retrieved successfully", BlogPostService.list_by_user(db, user_id, query))


@router.get("/slug/{slug}")
async def get_blog_post_by_slug(
    slug: str,
    increment_views: bool = False,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        post = BlogPostService.get_by_slug(db, slug, increment_view=increment_views)
        return success_response("Blog post retrieved successfully", post)
    except Exception as e:
        raise _handle(e, "fetching blog post")


@router.get("/{blog_post_id}")
async def get_blog_post(
    blog_post_id: str,
    increment_views: bool = False,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        post = BlogPostService.get_by_id(db, blog_post_id, increment_view=increment_views)
        return success_response("Blog post retrieved successfully", post)
    except Exception as e:
        raise _handle(e, "fetching blog post")


@router.put("/{blog_post_id}")
async def update_blog_post(
    blog_post_id: str,
    request: UpdateBlogPostRequest,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        post = BlogPostService.update(db, blog_post_id, user, request)
        return success_response("Blog post updated successfully", post)
    except Exception as e:
        raise _handle(e, "updating blog post")


@router.delete("/{blog_post_id}")
async def delete_blog_post(blog_post_id: str,
                           user: dict = Depends(get_current_user),
                           db: Session = Depends(DatabaseManager.get_session)):
    try:
        result = BlogPostService.delete(db, blog_post_id, user)
        return success_response(result["message"])
    except Exception as e:
        raise _handle(e, "deleting blog post")


@router.post("/{blog_post_id}/reactions")
async def add_reaction(blog_post_id: str,
                       user: dict = Depends(get_current_user),
                       db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Reaction added successfully",
                                BlogPostService.add_reaction(db, blog_post_id, user["id"]))
    except Exception as e:
        raise _handle(e, "adding reaction")


@router.delete("/{blog_post_id}/reactions")
async def remove_reaction(blog_post_id: str,
                          user: dict = Depends(get_current_user),
                          db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Reaction removed successfully",
                                BlogPostService.remove_reaction(db, blog_post_id, user["id"]))
    except Exception as e:
        raise _handle(e, "removing reaction")


# ==================== PUBLIC ====================

@public_router.get("")
async def public_blog_posts(query: BlogPostQuery = Depends(blog_post_query),
                            db: Session = Depends(DatabaseManager.get_session)):
    return _paginated("Published blog posts retrieved successfully", BlogPostService.list_published(db, query))


@public_router.get("/slug/{slug}")
async def public_blog_post_by_slug(slug: str, db: Session = Depends(DatabaseManager.get_session)):
    try:
        post = BlogPostService.get_by_slug(db, slug, increment_view=True, published_only=True)
        return success_response("Blog post retrieved successfully", post)
    except Exception as e:
        raise _handle(e, "fetching blog post")


@public_router.get("/{blog_post_id}")
async def public_blog_post(blog_post_id: str, db: Session = Depends(DatabaseManager.get_session)):
    try:
        post = BlogPostService.get_by_id(db, blog_post_id, increment_view=True, published_only=True)
        return success_response("Blog post retrieved successfully", post)
    except Exception as e:
        raise _handle(e, "fetching blog post")
