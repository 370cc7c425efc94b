"""
Pydantic schemas for support-ticket requests.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from support_tickets.models import TicketPriority, TicketStatus, TicketType

TICKET_SORT_FIELDS = ("created_at", "updated_at", "priority", "status", "title")


class CreateTicketRequest(BaseModel):
    """
    Example:
        {"title": "Issue with login page", "priority": "HIGH", "type": "TECHNICAL"}
    """
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    priority: TicketPriority = TicketPriority.NORMAL
    type: TicketType = TicketType.GENERAL
    file_urls: List[str] = Field(default_factory=list, max_length=10)

    @field_validator("title")
    def strip_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class UpdateTicketRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    type: Optional[TicketType] = None


class AssignTicketRequest(BaseModel):
    assignee_id: Optional[str] = Field(None, description="Staff user id; null unassigns")


class CreateReplyRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
    is_internal: bool = False
    file_urls: List[str] = Field(default_factory=list, max_length=10)


class CreateReopenRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class ProcessReopenRequest(BaseModel):
    approve: bool
    note: Optional[str] = Field(None, max_length=2000)


class TicketQuery(BaseModel):
    """Query string for ticket listings"""
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    type: Optional[TicketType] = None
    search: Optional[str] = None
    assignee_id: Optional[str] = None
    creator_id: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    sort_by: Literal["created_at", "updated_at", "priority", "status", "title"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
