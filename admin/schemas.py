"""
Pydantic request models for the admin endpoints.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from auth.models import UserStatus
from support_tickets.models import TicketPriority, TicketStatus


# ==================== USERS ====================

class AdminUserQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    roles: Optional[List[str]] = None
    is_email_verified: Optional[bool] = None
    is_two_factor_enabled: Optional[bool] = None
    status: Optional[UserStatus] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    updated_after: Optional[datetime] = None
    updated_before: Optional[datetime] = None
    sort_by: Literal[
        "id", "email", "name", "created_at", "updated_at", "is_email_verified", "is_two_factor_enabled"
    ] = "created_at"
    sort_order: Literal["ASC", "DESC"] = "DESC"


class AdminUpdateUserRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    roles: Optional[List[str]] = None
    is_email_verified: Optional[bool] = None
    is_two_factor_enabled: Optional[bool] = None
    status: Optional[UserStatus] = None
    suspension_reason: Optional[str] = Field(None, max_length=1000)
    metadata: Optional[Dict[str, Any]] = None


class SuspendUserRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


# ==================== ANALYTICS ====================

class TimeRange(str, Enum):
    YESTERDAY = "yesterday"
    TODAY = "today"
    THIS_WEEK = "this_week"
    LAST_WEEK = "last_week"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    THIS_YEAR = "this_year"
    LAST_YEAR = "last_year"
    CUSTOM = "custom"


class GrowthGrouping(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class UserGrowthQuery(BaseModel):
    time_range: TimeRange = TimeRange.THIS_MONTH
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    group_by: GrowthGrouping = GrowthGrouping.DAY
    user_status: List[UserStatus] = Field(default_factory=list)
    timezone: str = "UTC"


# ==================== SUPPORT TICKETS ====================

class AdminTicketQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    search: Optional[str] = None
    sort_by: Literal["created_at", "updated_at", "title", "status", "priority"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class AdminAssignRequest(BaseModel):
    assignee_id: Optional[str] = Field(None, alias="assigneeId")
    reason: Optional[str] = None

    model_config = {"populate_by_name": True}


class AdminStatusRequest(BaseModel):
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    reason: Optional[str] = None
    internal_notes: Optional[str] = Field(None, alias="internalNotes")

    model_config = {"populate_by_name": True}


class BulkAssignRequest(BaseModel):
    ticket_ids: List[str] = Field(..., min_length=1, alias="ticketIds")
    assignee_id: Optional[str] = Field(None, alias="assigneeId")
    reason: Optional[str] = None

    model_config = {"populate_by_name": True}


class BulkStatusRequest(BaseModel):
    ticket_ids: List[str] = Field(..., min_length=1, alias="ticketIds")
    status: TicketStatus
    priority: Optional[TicketPriority] = None
    reason: Optional[str] = None

    model_config = {"populate_by_name": True}


class NoteType(str, Enum):
    GENERAL = "GENERAL"
    ESCALATION = "ESCALATION"
    RESOLUTION = "RESOLUTION"
    FOLLOW_UP = "FOLLOW_UP"


class InternalNoteRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    note_type: NoteType = Field(NoteType.GENERAL, alias="noteType")

    model_config = {"populate_by_name": True}


class AdminReopenDecision(BaseModel):
    approve: bool
    reason: Optional[str] = None


class AdminDeleteTicketRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    confirm_deletion: bool = Field(False, alias="confirmDeletion")

    model_config = {"populate_by_name": True}


# ==================== CONTACT / NEWSLETTER ====================

class AdminListQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    email: Optional[str] = None
    sort_order: Literal["asc", "desc"] = "desc"


class DeletionReason(BaseModel):
    reason: Optional[str] = None


class BulkUnsubscribeRequest(BaseModel):
    emails: List[EmailStr] = Field(..., min_length=1)
    reason: Optional[str] = None
