"""
Business logic for portfolio projects.

`services` and `technologies` are stored as JSON lists, so membership
filters run in Python over the SQL-filtered rows before the page is cut.
"""

from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import asc, desc, func
from sqlalchemy.orm import Session

from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from core.permissions import PermissionUtils
from core.responses import build_pagination
from core.tags import resolve_tags, tag_name_filter
from projects.models import Project
from projects.schemas import CreateProjectRequest, ProjectQuery, UpdateProjectRequest

UPDATABLE_FIELDS = (
    "slug", "title", "subtitle", "client", "logo", "services", "technologies",
    "website", "thumbnail", "about", "goal", "execution", "results",
    "goal_images", "result_images", "published",
)


def _lower(values) -> List[str]:
    return [v.lower() for v in (values or [])]


def _matches_search(project: Project, needle: str) -> bool:
    for text in (project.title, project.subtitle, project.client, project.about):
        if text and needle in text.lower():
            return True
    return needle in _lower(project.services) or needle in _lower(project.technologies)


def _has_any(values, wanted: List[str]) -> bool:
    have = set(_lower(values))
    return any(w.lower() in have for w in wanted)


class ProjectService:

    @staticmethod
    def _get(db: Session, project_id: str) -> Project:
        project = db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project not found")
        return project

    @staticmethod
    def _ensure_slug_free(db: Session, slug: str):
        if db.query(Project.id).filter(Project.slug == slug).first():
            raise ValidationError("A project with this slug already exists")

    # ==================== CRUD ====================

    @staticmethod
    def create(db: Session, user: dict, request: CreateProjectRequest) -> Dict[str, Any]:
        PermissionUtils.require_staff(user.get("roles"))
        ProjectService._ensure_slug_free(db, request.slug)

        project = Project(**request.model_dump(exclude={"tags"}))
        project.tags = resolve_tags(db, request.tags)
        db.add(project)
        db.flush()

        logger.info(f"[PROJECT_CREATE] Project {project.id} ({project.slug}) created by user {user['id']}")
        return project.to_dict()

    @staticmethod
    def list_projects(db: Session, query: ProjectQuery) -> Dict[str, Any]:
        q = db.query(Project)

        if query.published is not None:
            q = q.filter(Project.published.is_(query.published))
        if query.client:
            q = q.filter(func.lower(Project.client).like(f"%{query.client.lower()}%"))
        if query.tags:
            q = q.filter(Project.tags.any(tag_name_filter(query.tags)))

        direction = asc if query.sort_order == "asc" else desc
        q = q.order_by(direction(getattr(Project, query.sort_by)), desc(Project.id))
        offset = (query.page - 1) * query.limit

        if not (query.search or query.services or query.technologies):
            total = q.count()
            projects = q.offset(offset).limit(query.limit).all()
        else:
            rows = q.all()
            if query.search:
                needle = query.search.lower()
                rows = [p for p in rows if _matches_search(p, needle)]
            if query.services:
                rows = [p for p in rows if _has_any(p.services, query.services)]
            if query.technologies:
                rows = [p for p in rows if _has_any(p.technologies, query.technologies)]
            total = len(rows)
            projects = rows[offset:offset + query.limit]

        return {
            "projects": [p.to_dict() for p in projects],
            "pagination": build_pagination(query.page, query.limit, total),
        }

    @staticmethod
    def get_by_id(db: Session, project_id: str, published_only: bool = False) -> Dict[str, Any]:
        project = ProjectService._get(db, project_id)
        if published_only and not project.published:
            raise NotFoundError("Project not found")
        return project.to_dict()

    @staticmethod
    def get_by_slug(db: Session, slug: str, published_only: bool = False) -> Dict[str, Any]:
        project = db.query(Project).filter(Project.slug == slug).first()
        if not project or (published_only and not project.published):
            raise NotFoundError("Project not found")
        return project.to_dict()

    @staticmethod
    def update(db: Session, project_id: str, user: dict, request: UpdateProjectRequest) -> Dict[str, Any]:
        PermissionUtils.require_staff(user.get("roles"))
        project = ProjectService._get(db, project_id)

        if request.slug and request.slug != project.slug:
            ProjectService._ensure_slug_free(db, request.slug)

        changes = request.model_dump(exclude_unset=True, exclude={"tags"})
        for field in UPDATABLE_FIELDS:
            if field in changes and changes[field] is not None:
                setattr(project, field, changes[field])
        if request.tags is not None:
            project.tags = resolve_tags(db, request.tags)

        db.flush()
        logger.info(f"[PROJECT_UPDATE] Project {project_id} updated by user {user['id']}: {sorted(changes)}")
        return project.to_dict()

    @staticmethod
    def delete(db: Session, project_id: str, user: dict) -> Dict[str, str]:
        if not PermissionUtils.is_admin(user.get("roles")):
            raise AuthorizationError("Only administrators can delete projects")

        project = ProjectService._get(db, project_id)
        db.delete(project)
        db.flush()
        logger.info(f"[PROJECT_DELETE] Project {project_id} deleted by admin {user['id']}")
        return {"message": "Project deleted successfully"}

    # ==================== AGGREGATES ====================

    @staticmethod
    def stats(db: Session) -> Dict[str, Any]:
        projects = db.query(Project).all()
        clients = {p.client for p in projects if p.client}
        services = sorted({s for p in projects for s in (p.services or [])})
        technologies = sorted({t for p in projects for t in (p.technologies or [])})
        return {
            "total": len(projects),
            "clients": len(clients),
            "totalServices": len(services),
            "totalTechnologies": len(technologies),
            "services": services,
            "technologies": technologies,
        }

    @staticmethod
    def related(db: Session, project_id: str, limit: int = 5,
                published_only: bool = False) -> List[Dict[str, Any]]:
        """
        Projects sharing a tag, one of the first three technologies or one
        of the first two services with the given project, newest first.
        """
        project = ProjectService._get(db, project_id)
        if published_only and not project.published:
            raise NotFoundError("Project not found")

        tag_ids = {tag.id for tag in project.tags}
        technologies = set(_lower((project.technologies or [])[:3]))
        services = set(_lower((project.services or [])[:2]))

        q = db.query(Project).filter(Project.id != project.id)
        if published_only:
            q = q.filter(Project.published.is_(True))

        related = []
        for candidate in q.order_by(desc(Project.created_at)).all():
            if (tag_ids & {tag.id for tag in candidate.tags}
                    or technologies & set(_lower(candidate.technologies))
                    or services & set(_lower(candidate.services))):
                related.append(candidate.to_dict())
                if len(related) >= limit:
                    break
        return related


def optional_list(values: Optional[List[str]]) -> Optional[List[str]]:
    """Accept both repeated query params and a single comma separated value."""
    if not values:
        return None
    flattened = [part.strip() for v in values for part in v.split(",")]
    return [v for v in flattened if v] or None
