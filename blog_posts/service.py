"""
Business logic for blog posts.
"""

from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import asc, case, desc, func, or_
from sqlalchemy.orm import Query, Session

from blog_posts.models import BlogPost
from blog_posts.schemas import BlogPostQuery, CreateBlogPostRequest, UpdateBlogPostRequest
from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from core.permissions import PermissionUtils, UserRole
from core.responses import build_pagination
from core.tags import resolve_tags, tag_name_filter

EDITOR_ROLES = [UserRole.ADMIN.value, UserRole.STAFF.value]


class BlogPostService:

    # ==================== HELPERS ====================

    @staticmethod
    def _get(db: Session, blog_post_id: str) -> BlogPost:
        post = db.query(BlogPost).filter(BlogPost.id == blog_post_id).first()
        if not post:
            raise NotFoundError("Blog post not found")
        return post

    @staticmethod
    def _apply_counter(db: Session, post: BlogPost, **expressions):
        """Counters are written as SQL expressions and read back after the flush"""
        for column, expression in expressions.items():
            setattr(post, column, expression)
        db.flush()
        db.refresh(post)

    @staticmethod
    def _ensure_slug_free(db: Session, slug: str):
        if db.query(BlogPost.id).filter(BlogPost.slug == slug).first():
            raise ValidationError("A blog post with this slug already exists")

    @staticmethod
    def _apply_search(q: Query, search: Optional[str]) -> Query:
        if not search:
            return q
        pattern = f"%{search.lower()}%"
        return q.filter(or_(func.lower(BlogPost.title).like(pattern), func.lower(BlogPost.content).like(pattern)))

    @staticmethod
    def _page(q: Query, query: BlogPostQuery) -> Dict[str, Any]:
        total = q.count()
        direction = asc if query.sort_order == "asc" else desc
        posts = (
            q.order_by(direction(getattr(BlogPost, query.sort_by)), desc(BlogPost.id))
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
            .all()
        )
        return {
            "blogPosts": [post.to_dict() for post in posts],
            "pagination": build_pagination(query.page, query.limit, total),
        }

    # ==================== CRUD ====================

    @staticmethod
    def create(db: Session, user: dict, request: CreateBlogPostRequest) -> Dict[str, Any]:
        PermissionUtils.require_staff(user.get("roles"))
        BlogPostService._ensure_slug_free(db, request.slug)

        post = BlogPost(
            title=request.title,
            slug=request.slug,
            content=request.content,
            thumbnail=request.thumbnail,
            published=request.published,
            author_id=user["id"],
            author_name=user.get("name") or user.get("email"),
        )
        post.tags = resolve_tags(db, request.tags)
        db.add(post)
        db.flush()

        logger.info(f"[BLOG_CREATE] Blog post created: {post.id} by user {user['id']}")
        return post.to_dict()

    @staticmethod
    def list_posts(db: Session, query: BlogPostQuery) -> Dict[str, Any]:
        q = db.query(BlogPost)

        if query.published is not None:
            q = q.filter(BlogPost.published.is_(query.published))
        if query.author:
            q = q.filter(func.lower(BlogPost.author_name).like(f"%{query.author.lower()}%"))
        q = BlogPostService._apply_search(q, query.search)
        if query.min_views is not None:
            q = q.filter(BlogPost.views >= query.min_views)
        if query.min_reactions is not None:
            q = q.filter(BlogPost.reactions >= query.min_reactions)
        if query.tags:
            q = q.filter(BlogPost.tags.any(tag_name_filter(query.tags)))

        return BlogPostService._page(q, query)

    @staticmethod
    def list_published(db: Session, query: BlogPostQuery) -> Dict[str, Any]:
        return BlogPostService.list_posts(db, query.model_copy(update={"published": True}))

    @staticmethod
    def list_by_user(db: Session, user_id: str, query: BlogPostQuery) -> Dict[str, Any]:
        q = db.query(BlogPost).filter(BlogPost.author_id == user_id)
        q = BlogPostService._apply_search(q, query.search)
        return BlogPostService._page(q, query)

    @staticmethod
    def get_by_id(db: Session, blog_post_id: str, increment_view: bool = False,
                  published_only: bool = False) -> Dict[str, Any]:
        post = BlogPostService._get(db, blog_post_id)
        if published_only and not post.published:
            raise NotFoundError("Blog post not found")

        if increment_view:
            BlogPostService._apply_counter(db, post, views=BlogPost.views + 1)
        return post.to_dict()

    @staticmethod
    def get_by_slug(db: Session, slug: str, increment_view: bool = False,
                    published_only: bool = False) -> Dict[str, Any]:
        post = db.query(BlogPost).filter(BlogPost.slug == slug).first()
        if not post or (published_only and not post.published):
            raise NotFoundError("Blog post not found")

        # drafts are previewed by slug without counting
        if increment_view and post.published:
            BlogPostService._apply_counter(db, post, views=BlogPost.views + 1)
        return post.to_dict()

    @staticmethod
    def update(db: Session, blog_post_id: str, user: dict, request: UpdateBlogPostRequest) -> Dict[str, Any]:
        post = BlogPostService._get(db, blog_post_id)

        is_author = post.author_id == user["id"]
        if not is_author and not PermissionUtils.has_any_role(user.get("roles"), EDITOR_ROLES):
            logger.warning(f"[BLOG_UPDATE] User {user['id']} denied update of {blog_post_id}")
            raise AuthorizationError("You can only update your own blog posts")

        if request.slug and request.slug != post.slug:
            BlogPostService._ensure_slug_free(db, request.slug)

        for field in ("title", "slug", "content", "thumbnail", "published"):
            value = getattr(request, field)
            if value is not None:
                setattr(post, field, value)
        if request.tags is not None:
            post.tags = resolve_tags(db, request.tags)

        db.flush()
        logger.info(f"[BLOG_UPDATE] Blog post {blog_post_id} updated by user {user['id']}")
        return post.to_dict()

    @staticmethod
    def delete(db: Session, blog_post_id: str, user: dict) -> Dict[str, str]:
        post = BlogPostService._get(db, blog_post_id)

        if post.author_id != user["id"] and not PermissionUtils.is_admin(user.get("roles")):
            raise AuthorizationError("You can only delete your own blog posts")

        db.delete(post)
        db.flush()
        logger.info(f"[BLOG_DELETE] Blog post {blog_post_id} deleted by user {user['id']}")
        return {"message": "Blog post deleted successfully"}

    # ==================== REACTIONS ====================

    @staticmethod
    def add_reaction(db: Session, blog_post_id: str, user_id: str) -> Dict[str, int]:
        post = BlogPostService._get(db, blog_post_id)
        if not post.published:
            raise ValidationError("Cannot add reaction to unpublished post")

        BlogPostService._apply_counter(db, post, reactions=BlogPost.reactions + 1)
        logger.info(f"[BLOG_REACTION] Reaction added to blog post {blog_post_id} by user {user_id}")
        return {"reactions": post.reactions}

    @staticmethod
    def remove_reaction(db: Session, blog_post_id: str, user_id: str) -> Dict[str, int]:
        post = BlogPostService._get(db, blog_post_id)
        if post.reactions <= 0:
            raise ValidationError("Cannot remove reaction from post with no reactions")

        BlogPostService._apply_counter(
            db, post, reactions=case((BlogPost.reactions > 0, BlogPost.reactions - 1), else_=0)
        )
        logger.info(f"[BLOG_REACTION] Reaction removed from blog post {blog_post_id} by user {user_id}")
        return {"reactions": post.reactions}

    @staticmethod
    def stats(db: Session) -> Dict[str, int]:
        total = db.query(func.count(BlogPost.id)).scalar() or 0
        published = db.query(func.count(BlogPost.id)).filter(BlogPost.published.is_(True)).scalar() or 0
        views, reactions = db.query(
            func.coalesce(func.sum(BlogPost.views), 0),
            func.coalesce(func.sum(BlogPost.reactions), 0),
        ).one()
        return {
            "total": total,
            "published": published,
            "draft": total - published,
            "totalViews": int(views),
            "totalReactions": int(reactions),
        }
