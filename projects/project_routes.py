"""
Project API endpoints.
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from auth.rbac_dependencies import get_current_user, require_staff
from core.database import DatabaseManager
from core.exceptions import ServiceError
from core.responses import paginated_response, success_response
from projects.schemas import CreateProjectRequest, ProjectQuery, UpdateProjectRequest
from projects.service import ProjectService, optional_list

router = APIRouter(prefix="/projects", tags=["projects"])
public_router = APIRouter(prefix="/public/projects", tags=["projects"])


def project_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    client: Optional[str] = None,
    services: Optional[List[str]] = Query(None),
    technologies: Optional[List[str]] = Query(None),
    tags: Optional[List[str]] = Query(None),
    published: Optional[bool] = None,
    sort_by: Literal["title", "created_at", "updated_at", "client"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
) -> ProjectQuery:
    return ProjectQuery(
        page=page, limit=limit, search=search, client=client,
        services=optional_list(services), technologies=optional_list(technologies),
        tags=optional_list(tags), published=published,
        sort_by=sort_by, sort_order=sort_order,
    )


def _handle(e: Exception, action: str) -> HTTPException:
    if isinstance(e, ServiceError):
        return e.to_http_exception()
    logger.error(f"Error {action}: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail=f"Failed {action}")


# ==================== STAFF ====================

@router.post("", status_code=201)
async def create_project(
    request: CreateProjectRequest,
    user: dict = Depends(require_staff),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        return success_response("Project created successfully", ProjectService.create(db, user, request))
    except Exception as e:
        raise _handle(e, "creating project")


@router.get("")
async def list_projects(
    query: ProjectQuery = Depends(project_query),
    user: dict = Depends(require_staff),
    db: Session = Depends(DatabaseManager.get_session),
):
    result = ProjectService.list_projects(db, query)
    return paginated_response("Projects retrieved successfully", result["projects"], result["pagination"])


@router.get("/stats")
async def project_stats(user: dict = Depends(require_staff),
                        db: Session = Depends(DatabaseManager.get_session)):
    return success_response("Project statistics retrieved successfully", ProjectService.stats(db))


@router.get("/slug/{slug}")
async def get_project_by_slug(slug: str,
                              user: dict = Depends(require_staff),
                              db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Project retrieved successfully", ProjectService.get_by_slug(db, slug))
    except Exception as e:
        raise _handle(e, "fetching project")


@router.get("/{project_id}")
async def get_project(project_id: str,
                      user: dict = Depends(require_staff),
                      db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Project retrieved successfully", ProjectService.get_by_id(db, project_id))
    except Exception as e:
        raise _handle(e, "fetching project")


@router.get("/{project_id}/related")
async def related_projects(project_id: str,
                           limit: int = Query(5, ge=1, le=20),
                           user: dict = Depends(require_staff),
                           db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Related projects retrieved successfully",
                                ProjectService.related(db, project_id, limit))
    except Exception as e:
        raise _handle(e, "fetching related projects")


@router.put("/{project_id}")
async def update_project(
    project_id: str,
    request: UpdateProjectRequest,
    user: dict = Depends(require_staff),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        return success_response("Project updated successfully",
                                ProjectService.update(db, project_id, user, request))
    except Exception as e:
        raise _handle(e, "updating project")


@router.delete("/{project_id}")
async def delete_project(project_id: str,
                         user: dict = Depends(get_current_user),
                         db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response(ProjectService.delete(db, project_id, user)["message"])
    except Exception as e:
        raise _handle(e, "deleting project")


# ==================== PUBLIC ====================

@public_router.get("")
async def public_projects(query: ProjectQuery = Depends(project_query),
                          db: Session = Depends(DatabaseManager.get_session)):
    result = ProjectService.list_projects(db, query.model_copy(update={"published": True}))
    return paginated_response("Projects retrieved successfully", result["projects"], result["pagination"])


@public_router.get("/slug/{slug}")
async def public_project_by_slug(slug: str, db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Project retrieved successfully",
                                ProjectService.get_by_slug(db, slug, published_only=True))
    except Exception as e:
        raise _handle(e, "fetching project")


@public_router.get("/{project_id}")
async def public_project(project_id: str, db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Project retrieved successfully",
                                ProjectService.get_by_id(db, project_id, published_only=True))
    except Exception as e:
        raise _handle(e, "fetching project")


@public_router.get("/{project_id}/related")
async def public_related_projects(project_id: str,
                                  limit: int = Query(5, ge=1, le=20),
                                  db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Related projects retrieved successfully",
                                ProjectService.related(db, project_id, limit, published_only=True))
    except Exception as e:
        raise _handle(e, "fetching related projects")
