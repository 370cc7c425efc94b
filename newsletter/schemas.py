from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class SubscribeRequest(BaseModel):
    email: EmailStr


class UnsubscribeRequest(BaseModel):
    email: EmailStr


class SubscriberQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    email: Optional[str] = None
    sort_by: Literal["subscribed_at", "email"] = "subscribed_at"
    sort_order: Literal["asc", "desc"] = "desc"
