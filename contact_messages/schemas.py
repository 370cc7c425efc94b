"""
Pydantic schemas for contact messages.
"""

from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class CreateContactMessageRequest(BaseModel):
    """
    Example:
        {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "subject": "Project inquiry",
            "message": "Hello, I would like to talk about a new website."
        }
    """
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=10, max_length=2000)


class ContactMessageQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    email: Optional[str] = None
    sort_by: Literal["created_at", "name", "email", "subject"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
