"""
Pydantic schemas for blog post requests.
"""

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def _check_slug(v):
    if v is not None and not SLUG_PATTERN.match(v):
        raise ValueError("slug must be lowercase letters, digits and single hyphens")
    return v


class CreateBlogPostRequest(BaseModel):
    """
    Example:
        {
            "title": "Launching our new site",
            "slug": "launching-our-new-site",
            "content": "...",
            "thumbnail": "https://cdn.example.com/launch.png",
            "tags": ["news", "company"]
        }
    """
    title: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    thumbnail: str = Field(..., min_length=1, max_length=500)
    tags: List[str] = Field(default_factory=list)
    published: bool = False

    @field_validator("slug")
    def validate_slug(cls, v):
        return _check_slug(v)


class UpdateBlogPostRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    thumbnail: Optional[str] = Field(None, max_length=500)
    tags: Optional[List[str]] = None
    published: Optional[bool] = None

    @field_validator("slug")
    def validate_slug(cls, v):
        return _check_slug(v)


class BlogPostQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    published: Optional[bool] = None
    author: Optional[str] = None
    tags: Optional[List[str]] = None
    min_views: Optional[int] = Field(None, ge=0)
    min_reactions: Optional[int] = Field(None, ge=0)
    sort_by: Literal["created_at", "updated_at", "title", "views", "reactions"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
