"""
Contact message endpoints. Submitting is public; reading is staff only.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from auth.rbac_dependencies import require_staff
from contact_messages.schemas import ContactMessageQuery, CreateContactMessageRequest
from contact_messages.service import ContactMessageService
from core.database import DatabaseManager
from core.exceptions import ServiceError
from core.responses import paginated_response, success_response

router = APIRouter(prefix="/contact-messages", tags=["contact-messages"])


def _handle(e: Exception, action: str) -> HTTPException:
    if isinstance(e, ServiceError):
        return e.to_http_exception()
    logger.error(f"Error {action}: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail=f"Failed {action}")


@router.post("", status_code=201)
async def create_contact_message(request: CreateContactMessageRequest,
                                 db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Contact message sent successfully",
                                ContactMessageService.create(db, request))
    except Exception as e:
        raise _handle(e, "creating contact message")


@router.get("")
async def list_contact_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    email: Optional[str] = None,
    sort_by: Literal["created_at", "name", "email", "subject"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    user: dict = Depends(require_staff),
    db: Session = Depends(DatabaseManager.get_session),
):
    query = ContactMessageQuery(page=page, limit=limit, search=search, email=email,
                                sort_by=sort_by, sort_order=sort_order)
    result = ContactMessageService.list_messages(db, query)
    return paginated_response("Contact messages retrieved successfully", result["messages"], result["pagination"])


@router.get("/stats/overview")
async def contact_message_stats(user: dict = Depends(require_staff),
                                db: Session = Depends(DatabaseManager.get_session)):
    return success_response("Contact message statistics retrieved successfully",
                            ContactMessageService.stats(db))


@router.get("/{message_id}")
async def get_contact_message(message_id: str,
                              user: dict = Depends(require_staff),
                              db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Contact message retrieved successfully",
                                ContactMessageService.get_by_id(db, message_id))
    except Exception as e:
        raise _handle(e, "fetching contact message")


@router.delete("/{message_id}")
async def delete_contact_message(message_id: str,
                                 user: dict = Depends(require_staff),
                                 db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Contact message deleted successfully",
                                ContactMessageService.delete(db, message_id))
    except Exception as e:
        raise _handle(e, "deleting contact message")
