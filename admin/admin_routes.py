"""
Admin API endpoints.

Users and user-growth analytics require the admin role; ticket, contact and
newsletter management is open to every staff role. Failures are returned as
`{"success": false, "message", "error", "code"}` under `detail`.
"""

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from loguru import logger
from sqlalchemy.orm import Session

from admin.contact_service import AdminContactService
from admin.newsletter_service import AdminNewsletterService
from admin.schemas import (
    AdminAssignRequest, AdminDeleteTicketRequest, AdminListQuery, AdminReopenDecision,
    AdminStatusRequest, AdminTicketQuery, AdminUpdateUserRequest, AdminUserQuery,
    BulkAssignRequest, BulkStatusRequest, BulkUnsubscribeRequest, DeletionReason,
    GrowthGrouping, InternalNoteRequest, SuspendUserRequest, TimeRange, UserGrowthQuery,
)
from admin.ticket_service import AdminTicketService
from admin.user_growth_service import UserGrowthService
from admin.user_service import AdminUserService
from auth.models import UserStatus
from auth.rbac_dependencies import require_admin, require_staff
from core.database import DatabaseManager
from core.exceptions import ServiceError
from core.permissions import PermissionUtils
from core.responses import admin_error, success_response
from support_tickets.models import TicketPriority, TicketStatus

users_router = APIRouter(prefix="/admin/users", tags=["admin"])
analytics_router = APIRouter(prefix="/admin/analytics", tags=["admin"])
tickets_router = APIRouter(prefix="/admin/support-tickets", tags=["admin"])
contact_router = APIRouter(prefix="/admin/contact-messages", tags=["admin"])
newsletter_router = APIRouter(prefix="/admin/newsletter-subscribers", tags=["admin"])


def _fail(e: Exception, code: str, fallback: str):
    if not isinstance(e, ServiceError):
        logger.error(f"[ADMIN] {code}: {type(e).__name__}: {e}")
    return admin_error(e, code, fallback)


# ==================== USERS ====================

@users_router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    name: Optional[str] = None,
    roles: Optional[List[str]] = Query(None),
    is_email_verified: Optional[bool] = None,
    is_two_factor_enabled: Optional[bool] = None,
    status: Optional[UserStatus] = None,
    created_after: Optional[datetime] = None,
    created_before: Optional[datetime] = None,
    updated_after: Optional[datetime] = None,
    updated_before: Optional[datetime] = None,
    sort_by: Literal[
        "id", "email", "name", "created_at", "updated_at", "is_email_verified", "is_two_factor_enabled"
    ] = "created_at",
    sort_order: Literal["ASC", "DESC"] = "DESC",
    admin: dict = Depends(require_admin),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        query = AdminUserQuery(
            page=page, limit=limit, search=search, user_id=user_id, email=email, name=name,
            roles=roles, is_email_verified=is_email_verified,
            is_two_factor_enabled=is_two_factor_enabled, status=status,
            created_after=created_after, created_before=created_before,
            updated_after=updated_after, updated_before=updated_before,
            sort_by=sort_by, sort_order=sort_order,
        )
        return success_response("Users retrieved successfully", AdminUserService.list_users(db, query))
    except Exception as e:
        raise _fail(e, "USER_RETRIEVAL_FAILED", "Failed to retrieve users")


@users_router.get("/{user_id}")
async def get_user(user_id: str, admin: dict = Depends(require_admin),
                   db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("User details retrieved successfully", AdminUserService.get_user(db, user_id))
    except Exception as e:
        raise _fail(e, "USER_DETAILS_FAILED", "Failed to retrieve user details")


@users_router.put("/{user_id}")
async def update_user(user_id: str, request: AdminUpdateUserRequest,
                      admin: dict = Depends(require_admin),
                      db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("User updated successfully",
                                AdminUserService.update_user(db, user_id, request, admin["id"]))
    except Exception as e:
        raise _fail(e, "USER_UPDATE_FAILED", "Failed to update user")


@users_router.post("/{user_id}/suspend")
async def suspend_user(user_id: str, request: SuspendUserRequest,
                       admin: dict = Depends(require_admin),
                       db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("User account suspended successfully",
                                AdminUserService.suspend_user(db, user_id, request.reason, admin["id"]))
    except Exception as e:
        raise _fail(e, "USER_SUSPENSION_FAILED", "Failed to suspend user account")


@users_router.post("/{user_id}/reactivate")
async def reactivate_user(user_id: str, admin: dict = Depends(require_admin),
                          db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("User account reactivated successfully",
                                AdminUserService.reactivate_user(db, user_id, admin["id"]))
    except Exception as e:
        raise _fail(e, "USER_REACTIVATION_FAILED", "Failed to reactivate user account")


@users_router.delete("/{user_id}")
async def delete_user(user_id: str, admin: dict = Depends(require_admin),
                      db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("User account deleted successfully",
                                AdminUserService.delete_user(db, user_id, admin["id"]))
    except Exception as e:
        raise _fail(e, "USER_DELETION_FAILED", "Failed to delete user account")


# ==================== ANALYTICS ====================

@analytics_router.get("/user-growth")
async def user_growth(
    time_range: TimeRange = TimeRange.THIS_MONTH,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    group_by: GrowthGrouping = GrowthGrouping.DAY,
    user_status: Optional[List[UserStatus]] = Query(None),
    timezone: str = "UTC",
    admin: dict = Depends(require_admin),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        query = UserGrowthQuery(
            time_range=time_range, start_date=start_date, end_date=end_date,
            group_by=group_by, user_status=user_status or [], timezone=timezone,
        )
        return success_response("User growth analytics retrieved successfully",
                                UserGrowthService.get_user_growth(db, query))
    except Exception as e:
        code = getattr(e, "error_code", None) or "ANALYTICS_SERVICE_ERROR"
        raise _fail(e, code, "Failed to retrieve user growth analytics")


# ==================== SUPPORT TICKETS ====================

@tickets_router.get("")
async def list_tickets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    search: Optional[str] = None,
    sort_by: Literal["created_at", "updated_at", "title", "status", "priority"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    user: dict = Depends(require_staff),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        query = AdminTicketQuery(page=page, limit=limit, status=status, priority=priority,
                                 search=search, sort_by=sort_by, sort_order=sort_order)
        return success_response("Support tickets retrieved successfully",
                                AdminTicketService.list_tickets(db, query))
    except Exception as e:
        raise _fail(e, "TICKET_RETRIEVAL_FAILED", "Failed to retrieve support tickets")


@tickets_router.get("/analytics/overview")
async def ticket_analytics(user: dict = Depends(require_staff),
                           db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Ticket analytics retrieved successfully", AdminTicketService.analytics(db))
    except Exception as e:
        raise _fail(e, "TICKET_ANALYTICS_FAILED", "Failed to retrieve ticket analytics")


@tickets_router.post("/bulk-assign")
async def bulk_assign(request: BulkAssignRequest, user: dict = Depends(require_staff),
                      db: Session = Depends(DatabaseManager.get_session)):
    try:
        result = AdminTicketService.bulk_assign(db, request.ticket_ids, request.assignee_id,
                                                user["id"], request.reason)
        return success_response("Bulk assignment completed", result)
    except Exception as e:
        raise _fail(e, "BULK_ASSIGNMENT_FAILED", "Failed to bulk assign tickets")


@tickets_router.post("/bulk-status-update")
async def bulk_status_update(request: BulkStatusRequest, user: dict = Depends(require_staff),
                             db: Session = Depends(DatabaseManager.get_session)):
    try:
        result = AdminTicketService.bulk_update_status(db, request.ticket_ids, request.status, user["id"],
                                                       request.priority, request.reason)
        return success_response("Bulk status update completed", result)
    except Exception as e:
        raise _fail(e, "BULK_STATUS_UPDATE_FAILED", "Failed to bulk update ticket status")


@tickets_router.put("/reopen-requests/{request_id}/process")
async def process_reopen_request(request_id: str, decision: AdminReopenDecision,
                                 user: dict = Depends(require_staff),
                                 db: Session = Depends(DatabaseManager.get_session)):
    try:
        result = AdminTicketService.process_reopen_request(db, request_id, decision.approve,
                                                           user["id"], decision.reason)
        return success_response("Reopen request processed successfully", result)
    except Exception as e:
        raise _fail(e, "REOPEN_REQUEST_FAILED", "Failed to process reopen request")


@tickets_router.get("/{ticket_id}")
async def get_ticket(ticket_id: str, user: dict = Depends(require_staff),
                     db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Support ticket details retrieved successfully",
                                AdminTicketService.get_ticket(db, ticket_id))
    except Exception as e:
        raise _fail(e, "TICKET_DETAILS_FAILED", "Failed to retrieve support ticket details")


@tickets_router.put("/{ticket_id}/assign")
async def assign_ticket(ticket_id: str, request: AdminAssignRequest,
                        user: dict = Depends(require_staff),
                        db: Session = Depends(DatabaseManager.get_session)):
    try:
        result = AdminTicketService.assign_ticket(db, ticket_id, request.assignee_id, user["id"], request.reason)
        return success_response("Support ticket assigned successfully", result)
    except Exception as e:
        raise _fail(e, "TICKET_ASSIGNMENT_FAILED", "Failed to assign support ticket")


@tickets_router.put("/{ticket_id}/status")
async def update_ticket_status(ticket_id: str, request: AdminStatusRequest,
                               user: dict = Depends(require_staff),
                               db: Session = Depends(DatabaseManager.get_session)):
    try:
        result = AdminTicketService.update_status(db, ticket_id, user["id"], request.status,
                                                  request.priority, request.reason, request.internal_notes)
        return success_response("Support ticket status updated successfully", result)
    except Exception as e:
        raise _fail(e, "TICKET_STATUS_UPDATE_FAILED", "Failed to update support ticket status")


@tickets_router.post("/{ticket_id}/internal-note")
async def add_internal_note(ticket_id: str, request: InternalNoteRequest,
                            user: dict = Depends(require_staff),
                            db: Session = Depends(DatabaseManager.get_session)):
    try:
        result = AdminTicketService.add_internal_note(db, ticket_id, request.content, user["id"], request.note_type)
        return success_response("Internal note added successfully", result)
    except Exception as e:
        raise _fail(e, "INTERNAL_NOTE_FAILED", "Failed to add internal note")


@tickets_router.delete("/{ticket_id}")
async def delete_ticket(ticket_id: str, request: AdminDeleteTicketRequest,
                        user: dict = Depends(require_staff),
                        db: Session = Depends(DatabaseManager.get_session)):
    try:
        result = AdminTicketService.delete_ticket(db, ticket_id, user["id"], request.reason,
                                                  request.confirm_deletion, user["roles"])
        return success_response("Support ticket deleted successfully", result)
    except Exception as e:
        raise _fail(e, "TICKET_DELETION_FAILED", "Failed to delete support ticket")


# ==================== CONTACT MESSAGES ====================

@contact_router.get("")
async def list_contact_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    email: Optional[str] = None,
    sort_order: Literal["asc", "desc"] = "desc",
    user: dict = Depends(require_staff),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        query = AdminListQuery(page=page, limit=limit, search=search, email=email, sort_order=sort_order)
        return success_response("Contact messages retrieved successfully",
                                AdminContactService.list_messages(db, query))
    except Exception as e:
        raise _fail(e, "CONTACT_MESSAGE_RETRIEVAL_FAILED", "Failed to retrieve contact messages")


@contact_router.get("/analytics/overview")
async def contact_analytics(user: dict = Depends(require_staff),
                            db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Contact message analytics retrieved successfully",
                                AdminContactService.analytics(db))
    except Exception as e:
        raise _fail(e, "CONTACT_MESSAGE_ANALYTICS_FAILED", "Failed to retrieve contact message analytics")


@contact_router.get("/{message_id}")
async def get_contact_message(message_id: str, user: dict = Depends(require_staff),
                              db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Contact message retrieved successfully",
                                AdminContactService.get_message(db, message_id))
    except Exception as e:
        raise _fail(e, "CONTACT_MESSAGE_DETAILS_FAILED", "Failed to retrieve contact message")


@contact_router.delete("/{message_id}")
async def delete_contact_message(message_id: str, body: Optional[DeletionReason] = None,
                                 user: dict = Depends(require_staff),
                                 db: Session = Depends(DatabaseManager.get_session)):
    try:
        reason = body.reason if body else None
        return success_response("Contact message deleted successfully",
                                AdminContactService.delete_message(db, message_id, user["id"], reason))
    except Exception as e:
        raise _fail(e, "CONTACT_MESSAGE_DELETION_FAILED", "Failed to delete contact message")


# ==================== NEWSLETTER ====================

@newsletter_router.get("")
async def list_newsletter_subscribers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    email: Optional[str] = None,
    sort_order: Literal["asc", "desc"] = "desc",
    user: dict = Depends(require_staff),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        query = AdminListQuery(page=page, limit=limit, search=search, email=email, sort_order=sort_order)
        return success_response("Newsletter subscribers retrieved successfully",
                                AdminNewsletterService.list_subscribers(db, query))
    except Exception as e:
        raise _fail(e, "NEWSLETTER_SUBSCRIBER_RETRIEVAL_FAILED", "Failed to retrieve newsletter subscribers")


@newsletter_router.get("/analytics/overview")
async def newsletter_analytics(user: dict = Depends(require_staff),
                               db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Newsletter analytics retrieved successfully",
                                AdminNewsletterService.analytics(db))
    except Exception as e:
        raise _fail(e, "NEWSLETTER_SUBSCRIBER_ANALYTICS_FAILED", "Failed to retrieve newsletter analytics")


@newsletter_router.get("/export")
async def export_subscribers(format: Literal["json", "csv"] = "json",
                             user: dict = Depends(require_staff),
                             db: Session = Depends(DatabaseManager.get_session)):
    try:
        PermissionUtils.require_admin(user["roles"])
        exported = AdminNewsletterService.export(db, format)
    except Exception as e:
        raise _fail(e, "NEWSLETTER_EXPORT_FAILED", "Failed to export newsletter subscribers")

    if format == "csv":
        return Response(
            content=exported,
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=newsletter-subscribers.csv"},
        )
    return success_response("Newsletter subscribers exported successfully", exported)


@newsletter_router.post("/bulk-unsubscribe")
async def bulk_unsubscribe(request: BulkUnsubscribeRequest, user: dict = Depends(require_staff),
                           db: Session = Depends(DatabaseManager.get_session)):
    try:
        emails = [str(e) for e in request.emails]
        return success_response("Bulk unsubscribe completed",
                                AdminNewsletterService.bulk_unsubscribe(db, emails, user["id"], request.reason))
    except Exception as e:
        raise _fail(e, "BULK_UNSUBSCRIBE_FAILED", "Failed to bulk unsubscribe")


@newsletter_router.get("/{subscriber_id}")
async def get_newsletter_subscriber(subscriber_id: str, user: dict = Depends(require_staff),
                                    db: Session = Depends(DatabaseManager.get_session)):
    try:
        return success_response("Newsletter subscriber retrieved successfully",
                                AdminNewsletterService.get_subscriber(db, subscriber_id))
    except Exception as e:
        raise _fail(e, "NEWSLETTER_SUBSCRIBER_DETAILS_FAILED", "Failed to retrieve newsletter subscriber")


@newsletter_router.delete("/{subscriber_id}")
async def delete_newsletter_subscriber(subscriber_id: str, body: Optional[DeletionReason] = None,
                                       user: dict = Depends(require_staff),
                                       db: Session = Depends(DatabaseManager.get_session)):
    try:
        reason = body.reason if body else None
        return success_response("Newsletter subscriber deleted successfully",
                                AdminNewsletterService.delete_subscriber(db, subscriber_id, user["id"], reason))
    except Exception as e:
        raise _fail(e, "NEWSLETTER_SUBSCRIBER_DELETION_FAILED", "Failed to delete newsletter subscriber")


routers = [users_router, analytics_router, tickets_router, contact_router, newsletter_router]
