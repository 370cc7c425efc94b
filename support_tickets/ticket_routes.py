"""
Support ticket API endpoints.

Exposed endpoints:
- POST   /support-tickets                         - Create ticket
- GET    /support-tickets                         - List tickets (own tickets for non-staff)
- GET    /support-tickets/stats                   - Counts by status
- GET    /support-tickets/analytics               - Staff analytics
- GET    /support-tickets/{id}                    - Ticket with replies and reopen requests
- PATCH  /support-tickets/{id}                    - Staff update
- PATCH  /support-tickets/{id}/assign             - Staff assignment
- POST   /support-tickets/{id}/replies            - Reply
- POST   /support-tickets/{id}/reopen-requests    - Ask to reopen a closed ticket
- PATCH  /support-tickets/reopen-requests/{id}    - Staff decision on a reopen request
- DELETE /support-tickets/{id}/files              - Detach file from ticket
- DELETE /support-tickets/{id}/replies/{rid}/files - Detach file from reply
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from auth.rbac_dependencies import get_current_user
from core.database import DatabaseManager
from core.exceptions import ServiceError
from core.responses import success_response
from support_tickets.models import TicketPriority, TicketStatus, TicketType
from support_tickets.schemas import (
    AssignTicketRequest, CreateReopenRequest, CreateReplyRequest, CreateTicketRequest,
    ProcessReopenRequest, TicketQuery, UpdateTicketRequest
)
from support_tickets.service import SupportTicketService

router = APIRouter(prefix="/support-tickets", tags=["support-tickets"])


def _fail(e: Exception, action: str):
    if isinstance(e, ServiceError):
        return e.to_http_exception()
    logger.error(f"Error {action}: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail=f"Failed {action}")


@router.post("", status_code=201)
async def create_ticket(
    request: CreateTicketRequest,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        ticket = SupportTicketService.create_ticket(db, user["id"], request)
        return success_response("Support ticket created successfully", ticket)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "creating ticket")


@router.get("")
async def list_tickets(
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    type: Optional[TicketType] = None,
    search: Optional[str] = None,
    assignee_id: Optional[str] = None,
    creator_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: Literal["created_at", "updated_at", "priority", "status", "title"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    query = TicketQuery(
        status=status, priority=priority, type=type, search=search,
        assignee_id=assignee_id, creator_id=creator_id,
        page=page, limit=limit, sort_by=sort_by, sort_order=sort_order,
    )
    try:
        result = SupportTicketService.get_tickets(db, user["id"], query, user_roles=user["roles"])
        return success_response("Tickets retrieved successfully", result)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "listing tickets")


@router.get("/stats")
async def ticket_stats(user: dict = Depends(get_current_user),
                       db: Session = Depends(DatabaseManager.get_session)):
    stats = SupportTicketService.get_stats(db, user["id"], user_roles=user["roles"])
    return success_response("Ticket statistics retrieved successfully", stats)


@router.get("/analytics")
async def ticket_analytics(user: dict = Depends(get_current_user),
                           db: Session = Depends(DatabaseManager.get_session)):
    try:
        analytics = SupportTicketService.get_enhanced_analytics(db, user["id"], user_roles=user["roles"])
        return success_response("Ticket analytics retrieved successfully", analytics)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "building ticket analytics")


@router.patch("/reopen-requests/{request_id}")
async def process_reopen_request(
    request_id: str,
    request: ProcessReopenRequest,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        result = SupportTicketService.process_reopen_request(
            db, request_id, request.approve, user["id"], note=request.note, user_roles=user["roles"]
        )
        return success_response("Reopen request processed successfully", result)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "processing reopen request")


@router.get("/{ticket_id}")
async def get_ticket(ticket_id: str,
                     user: dict = Depends(get_current_user),
                     db: Session = Depends(DatabaseManager.get_session)):
    try:
        ticket = SupportTicketService.get_ticket_by_id(db, ticket_id, user["id"], user_roles=user["roles"])
        return success_response("Ticket retrieved successfully", ticket)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "fetching ticket")


@router.patch("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    request: UpdateTicketRequest,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        ticket = SupportTicketService.update_ticket(db, ticket_id, request, user["id"], user_roles=user["roles"])
        return success_response("Ticket updated successfully", ticket)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "updating ticket")


@router.patch("/{ticket_id}/assign")
async def assign_ticket(
    ticket_id: str,
    request: AssignTicketRequest,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        ticket = SupportTicketService.assign_ticket(
            db, ticket_id, request.assignee_id, user["id"], user_roles=user["roles"]
        )
        return success_response("Ticket assigned successfully", ticket)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "assigning ticket")


@router.post("/{ticket_id}/replies", status_code=201)
async def create_reply(
    ticket_id: str,
    request: CreateReplyRequest,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        reply = SupportTicketService.create_reply(
            db, ticket_id, user["id"], request.content,
            is_internal=request.is_internal, file_urls=request.file_urls, user_roles=user["roles"],
        )
        return success_response("Reply created successfully", reply)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "creating reply")


@router.post("/{ticket_id}/reopen-requests", status_code=201)
async def create_reopen_request(
    ticket_id: str,
    request: CreateReopenRequest,
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        result = SupportTicketService.create_reopen_request(
            db, ticket_id, user["id"], request.reason, user_roles=user["roles"]
        )
        return success_response("Reopen request submitted successfully", result)
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "creating reopen request")


@router.delete("/{ticket_id}/files")
async def remove_ticket_file(
    ticket_id: str,
    file_url: str = Query(...),
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        SupportTicketService.remove_file_from_ticket(db, ticket_id, file_url, user["id"], user_roles=user["roles"])
        return success_response("File removed from ticket")
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "removing ticket file")


@router.delete("/{ticket_id}/replies/{reply_id}/files")
async def remove_reply_file(
    ticket_id: str,
    reply_id: str,
    file_url: str = Query(...),
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
):
    try:
        SupportTicketService.remove_file_from_reply(
            db, ticket_id, reply_id, file_url, user["id"], user_roles=user["roles"]
        )
        return success_response("File removed from reply")
    except HTTPException:
        raise
    except Exception as e:
        raise _fail(e, "removing reply file")
