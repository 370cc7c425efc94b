"""
Newsletter endpoints. Subscribe, unsubscribe and the status check are
public; subscriber management needs a staff role.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import EmailStr
from sqlalchemy.orm import Session

from auth.rbac_dependencies import require_staff
from core.database import DatabaseManager
from core.exceptions import ServiceError
from core.responses import paginated_response, success_response
from newsletter.schemas import SubscribeRequest, SubscriberQuery, UnsubscribeRequest
from newsletter.service import NewsletterService

router = APIRouter(prefix="/newsletter", tags=["newsletter"])


def _handle(e: Exception, action: str) -> HTTPException:
    if isinstance(e, ServiceError):
        return e.to_http_exception()
    logger.error(f"Error {action}: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail=f"Failed {action}")


# ==================== PUBLIC ====================

@router.post("/subscribe", status_code=201)
async def subscribe(request: SubscribeRequest, db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Successfully subscribed to newsletter",
                                NewsletterService.subscribe(db, request.email))
    except Exception as e:
        raise _handle(e, "subscribing to newsletter")


@router.post("/unsubscribe")
async def unsubscribe(request: UnsubscribeRequest, db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Successfully unsubscribed from newsletter",
                                NewsletterService.unsubscribe(db, request.email))
    except Exception as e:
        raise _handle(e, "unsubscribing from newsletter")


@router.get("/check-subscription")
async def check_subscription(email: EmailStr, db: Session = Depends(DatabaseManager.get_session)):
    return success_response("Subscription status retrieved",
                            NewsletterService.check_subscription(db, email))


# ==================== STAFF ====================

@router.get("/subscribers")
async def list_subscribers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    email: Optional[str] = None,
    sort_by: Literal["subscribed_at", "email"] = "subscribed_at",
    sort_order: Literal["asc", "desc"] = "desc",
    user: dict = Depends(require_staff),
    db: Session = Depends(DatabaseManager.get_session),
):
    query = SubscriberQuery(page=page, limit=limit, search=search, email=email,
                            sort_by=sort_by, sort_order=sort_order)
    result = NewsletterService.list_subscribers(db, query)
    return paginated_response("Newsletter subscribers retrieved successfully",
                              result["subscribers"], result["pagination"])


@router.get("/subscribers/{subscriber_id}")
async def get_subscriber(subscriber_id: str,
                         user: dict = Depends(require_staff),
                         db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Newsletter subscriber retrieved successfully",
                                NewsletterService.get_by_id(db, subscriber_id))
    except Exception as e:
        raise _handle(e, "fetching newsletter subscriber")


@router.delete("/subscribers/{subscriber_id}")
async def delete_subscriber(subscriber_id: str,
                            user: dict = Depends(require_staff),
                            db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Newsletter subscriber deleted successfully",
                                NewsletterService.delete(db, subscriber_id))
    except Exception as e:
        raise _handle(e, "deleting newsletter subscriber")


@router.get("/stats/overview")
async def subscriber_stats(user: dict = Depends(require_staff),
                           db: Session = Depends(DatabaseManager.get_session)):
    return success_response("Newsletter subscriber statistics retrieved successfully",
                            NewsletterService.stats(db))
