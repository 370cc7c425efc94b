"""
Pydantic schemas for project requests.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def _clean(values):
    if values is None:
        return values
    return [v.strip() for v in values if v and v.strip()]


class CreateProjectRequest(BaseModel):
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    title: str = Field(..., min_length=1, max_length=255)
    subtitle: Optional[str] = Field(None, max_length=255)
    client: Optional[str] = Field(None, max_length=255)
    logo: Optional[str] = Field(None, max_length=500)
    services: List[str] = Field(default_factory=list, max_length=20)
    technologies: List[str] = Field(default_factory=list, max_length=50)
    website: Optional[str] = Field(None, max_length=500)
    thumbnail: Optional[str] = Field(None, max_length=500)
    about: Optional[str] = None
    goal: Optional[str] = None
    execution: Optional[str] = None
    results: Optional[str] = None
    goal_images: List[str] = Field(default_factory=list, max_length=10)
    result_images: List[str] = Field(default_factory=list, max_length=10)
    tags: List[str] = Field(default_factory=list)
    published: bool = False

    @field_validator("services", "technologies", "goal_images", "result_images")
    def strip_items(cls, v):
        return _clean(v)


class UpdateProjectRequest(BaseModel):
    slug: Optional[str] = Field(None, min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    subtitle: Optional[str] = Field(None, max_length=255)
    client: Optional[str] = Field(None, max_length=255)
    logo: Optional[str] = Field(None, max_length=500)
    services: Optional[List[str]] = Field(None, max_length=20)
    technologies: Optional[List[str]] = Field(None, max_length=50)
    website: Optional[str] = Field(None, max_length=500)
    thumbnail: Optional[str] = Field(None, max_length=500)
    about: Optional[str] = None
    goal: Optional[str] = None
    execution: Optional[str] = None
    results: Optional[str] = None
    goal_images: Optional[List[str]] = Field(None, max_length=10)
    result_images: Optional[List[str]] = Field(None, max_length=10)
    tags: Optional[List[str]] = None
    published: Optional[bool] = None

    @field_validator("services", "technologies", "goal_images", "result_images")
    def strip_items(cls, v):
        return _clean(v)


class ProjectQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    client: Optional[str] = None
    services: Optional[List[str]] = None
    technologies: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    published: Optional[bool] = None
    sort_by: Literal["title", "created_at", "updated_at", "client"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
