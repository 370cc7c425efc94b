"""
Business logic for the support-ticket workflow.

Non-staff users only ever see their own tickets. Staff (admin, staff,
support, developer) see everything and drive assignment and status.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from auth.models import User
from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from core.periods import month_start
from core.permissions import PermissionUtils, STAFF_ROLES, require_roles
from core.responses import build_pagination
from support_tickets.models import (
    CLOSING_STATUSES, ReopenStatus, SupportTicket, TicketStatus
)
from support_tickets.repository import (
    ReopenRequestRepository, ReplyRepository, TicketRepository
)
from support_tickets.schemas import (
    CreateTicketRequest, TicketQuery, UpdateTicketRequest
)


def average_resolution_hours(tickets: List[SupportTicket]) -> float:
    durations = [
        (t.closed_at - t.created_at).total_seconds()
        for t in tickets
        if t.closed_at and t.created_at
    ]
    if not durations:
        return 0
    return round(sum(durations) / len(durations) / 3600, 2)


def apply_status(ticket: SupportTicket, status: TicketStatus):
    """Set status, keeping closed_at in step"""
    if status in CLOSING_STATUSES:
        ticket.closed_at = datetime.utcnow()
    elif ticket.status in CLOSING_STATUSES:
        ticket.closed_at = None
    ticket.status = status


class SupportTicketService:
    """Ticket operations. Every method takes the acting user's id and roles."""

    @staticmethod
    def create_ticket(db: Session, user_id: str, request: CreateTicketRequest) -> Dict[str, Any]:
        ticket = TicketRepository.create(
            db,
            title=request.title,
            description=request.description,
            priority=request.priority,
            type=request.type,
            status=TicketStatus.OPEN,
            created_by_id=user_id,
            file_urls=list(request.file_urls),
        )
        logger.info(f"[TICKET_CREATE] Support ticket created: {ticket.id} by user {user_id}")
        return ticket.to_dict(include_replies=True)

    @staticmethod
    def get_tickets(db: Session, user_id: str, query: TicketQuery, user_roles: List[str] = None) -> Dict[str, Any]:
        is_staff = PermissionUtils.is_staff(user_roles)
        q = TicketRepository.base_query(db, owner_id=None if is_staff else user_id)

        # status filtering is a staff tool
        if is_staff and query.status:
            q = q.filter(SupportTicket.status == query.status)

        if query.assignee_id:
            if not is_staff and query.assignee_id != user_id:
                raise AuthorizationError("You can only filter by your own tickets")
            q = q.filter(SupportTicket.assigned_to_id == query.assignee_id)

        if query.creator_id:
            if not is_staff and query.creator_id != user_id:
                raise AuthorizationError("You can only filter by your own tickets")
            q = q.filter(SupportTicket.created_by_id == query.creator_id)

        if query.priority:
            q = q.filter(SupportTicket.priority == query.priority)
        if query.type:
            q = q.filter(SupportTicket.type == query.type)
        q = TicketRepository.apply_search(q, query.search)

        tickets, total = TicketRepository.paginate(q, query.page, query.limit, query.sort_by, query.sort_order)
        return {
            "tickets": [t.to_dict(include_internal=is_staff) for t in tickets],
            "pagination": build_pagination(query.page, query.limit, total),
        }

    @staticmethod
    def _load_ticket(db: Session, ticket_id: str, user_id: str, user_roles: List[str] = None) -> SupportTicket:
        ticket = TicketRepository.get_by_id(db, ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found")

        if not PermissionUtils.is_staff(user_roles) and ticket.created_by_id != user_id:
            logger.warning(f"[TICKET_VIEW] User {user_id} denied access to ticket {ticket_id}")
            raise AuthorizationError("You can only view your own tickets")
        return ticket

    @staticmethod
    def get_ticket_by_id(db: Session, ticket_id: str, user_id: str, user_roles: List[str] = None) -> Dict[str, Any]:
        ticket = SupportTicketService._load_ticket(db, ticket_id, user_id, user_roles)
        return ticket.to_dict(include_internal=PermissionUtils.is_staff(user_roles), include_replies=True)

    @staticmethod
    def update_ticket(db: Session, ticket_id: str, request: UpdateTicketRequest, user_id: str,
                      user_roles: List[str] = None) -> Dict[str, Any]:
        ticket = SupportTicketService._load_ticket(db, ticket_id, user_id, user_roles)
        PermissionUtils.require_staff(user_roles)

        if request.title is not None:
            ticket.title = request.title
        if request.description is not None:
            ticket.description = request.description
        if request.priority is not None:
            ticket.priority = request.priority
        if request.type is not None:
            ticket.type = request.type
        if request.status is not None:
            apply_status(ticket, request.status)

        db.flush()
        logger.info(f"[TICKET_UPDATE] Ticket {ticket_id} updated by user {user_id}")
        return ticket.to_dict(include_internal=True)

    @staticmethod
    def assign_ticket(db: Session, ticket_id: str, assignee_id: Optional[str], user_id: str,
                      user_roles: List[str] = None) -> Dict[str, Any]:
        PermissionUtils.require_staff(user_roles)

        ticket = TicketRepository.get_by_id(db, ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found")

        if assignee_id:
            assignee = db.query(User).filter(User.id == assignee_id).first()
            if not assignee:
                raise NotFoundError("Assignee not found")
            if not PermissionUtils.is_staff(assignee.role_names):
                raise ValidationError("Assignee must be a staff member")

            ticket.assigned_to_id = assignee.id
            ticket.assigned_at = datetime.utcnow()
            ticket.status = TicketStatus.IN_PROGRESS
        else:
            ticket.assigned_to_id = None
            ticket.assigned_at = None
            ticket.status = TicketStatus.OPEN

        db.flush()
        db.refresh(ticket)
        logger.info(f"[TICKET_ASSIGN] Ticket {ticket_id} assigned to {assignee_id or 'nobody'} by user {user_id}")
        return ticket.to_dict(include_internal=True)

    @staticmethod
    def create_reply(db: Session, ticket_id: str, user_id: str, content: str, is_internal: bool = False,
                     file_urls: List[str] = None, user_roles: List[str] = None) -> Dict[str, Any]:
        ticket = SupportTicketService._load_ticket(db, ticket_id, user_id, user_roles)

        is_owner = ticket.created_by_id == user_id
        is_assigned_staff = PermissionUtils.is_staff(user_roles) and ticket.assigned_to_id == user_id

        if is_internal and not is_assigned_staff:
            raise AuthorizationError("Only assigned staff members can create internal replies")
        if not is_internal and not is_owner and not is_assigned_staff:
            raise AuthorizationError("You can only reply to your own tickets or tickets assigned to you")

        reply = ReplyRepository.create(db, ticket, user_id, content, is_internal=is_internal, file_urls=file_urls)
        logger.info(f"[TICKET_REPLY] Reply created for ticket {ticket_id} by user {user_id}")
        return reply.to_dict()

    @staticmethod
    def create_reopen_request(db: Session, ticket_id: str, user_id: str, reason: str,
                              user_roles: List[str] = None) -> Dict[str, Any]:
        ticket = SupportTicketService._load_ticket(db, ticket_id, user_id, user_roles)

        if ticket.created_by_id != user_id:
            raise AuthorizationError("You can only reopen your own tickets")
        if ticket.status != TicketStatus.CLOSED:
            raise ValidationError("Only closed tickets can be reopened")
        if ReopenRequestRepository.pending_for_ticket(db, ticket_id):
            raise ValidationError("A reopen request is already pending for this ticket")

        request = ReopenRequestRepository.create(db, ticket_id, user_id, reason)
        logger.info(f"[TICKET_REOPEN] Reopen request created for ticket {ticket_id} by user {user_id}")
        return request.to_dict()

    @staticmethod
    @require_roles(*STAFF_ROLES)
    def process_reopen_request(db: Session, request_id: str, approve: bool, user_id: str,
                               note: Optional[str] = None, user_roles: List[str] = None) -> Dict[str, Any]:
        request = ReopenRequestRepository.get_by_id(db, request_id)
        if not request:
            raise NotFoundError("Reopen request not found")
        if request.status != ReopenStatus.PENDING:
            raise ValidationError("This reopen request has already been processed")

        request.status = ReopenStatus.APPROVED if approve else ReopenStatus.REJECTED
        request.reviewed_by_id = user_id
        request.reviewed_at = datetime.utcnow()
        request.review_note = note

        if approve:
            request.ticket.status = TicketStatus.OPEN
            request.ticket.closed_at = None
            logger.info(f"[TICKET_REOPEN] Ticket {request.ticket_id} reopened via request {request_id}")
        else:
            logger.info(f"[TICKET_REOPEN] Reopen request {request_id} rejected")

        db.flush()
        db.refresh(request)
        return request.to_dict()

    @staticmethod
    def get_stats(db: Session, user_id: str, user_roles: List[str] = None) -> Dict[str, int]:
        owner = None if PermissionUtils.is_staff(user_roles) else user_id
        counts = TicketRepository.count_by_status(db, owner_id=owner)
        return {
            "total": sum(counts.values()),
            "open": counts[TicketStatus.OPEN],
            "inProgress": counts[TicketStatus.IN_PROGRESS],
            "resolved": counts[TicketStatus.RESOLVED],
            "closed": counts[TicketStatus.CLOSED],
        }

    @staticmethod
    def remove_file_from_ticket(db: Session, ticket_id: str, file_url: str, user_id: str,
                                user_roles: List[str] = None):
        ticket = SupportTicketService._load_ticket(db, ticket_id, user_id, user_roles)

        urls = list(ticket.file_urls or [])
        if file_url not in urls:
            raise ValidationError("File is not attached to this ticket")

        ticket.file_urls = [url for url in urls if url != file_url]
        db.flush()
        logger.info(f"[TICKET_FILE] Removed file {file_url} from ticket {ticket_id}")

    @staticmethod
    def remove_file_from_reply(db: Session, ticket_id: str, reply_id: str, file_url: str, user_id: str,
                               user_roles: List[str] = None):
        ticket = SupportTicketService._load_ticket(db, ticket_id, user_id, user_roles)

        reply = next((r for r in ticket.replies if r.id == reply_id), None)
        if not reply:
            raise NotFoundError("Reply not found")

        urls = list(reply.file_urls or [])
        if file_url not in urls:
            raise ValidationError("File is not attached to this reply")

        reply.file_urls = [url for url in urls if url != file_url]
        db.flush()
        logger.info(f"[TICKET_FILE] Removed file {file_url} from reply {reply_id}")

    @staticmethod
    def get_enhanced_analytics(db: Session, user_id: str, user_roles: List[str] = None) -> Dict[str, Any]:
        PermissionUtils.require_staff(user_roles)

        now = datetime.utcnow()
        this_month = month_start(now)
        last_month = month_start(now, -1)

        counts = TicketRepository.count_by_status(db)
        total = sum(counts.values())
        closed = TicketRepository.closed_tickets(db)
        this_month_count = TicketRepository.count_created_between(db, this_month)
        last_month_count = TicketRepository.count_created_between(db, last_month, this_month)

        growth_rate = (
            (this_month_count - last_month_count) / last_month_count * 100 if last_month_count else 0
        )
        resolution_rate = len(closed) / total * 100 if total else 0

        return {
            "overview": {
                "totalTickets": total,
                "openTickets": counts[TicketStatus.OPEN],
                "inProgressTickets": counts[TicketStatus.IN_PROGRESS],
                "resolvedTickets": counts[TicketStatus.RESOLVED],
                "closedTickets": counts[TicketStatus.CLOSED],
                "averageResolutionTime": average_resolution_hours(closed),
            },
            "trends": {
                "ticketsThisMonth": this_month_count,
                "ticketsLastMonth": last_month_count,
                "growthRate": round(growth_rate, 2),
                "resolutionRate": round(resolution_rate, 2),
            },
            "byPriority": [
                {"priority": priority.value, "count": count}
                for priority, count in TicketRepository.count_by_priority(db)
            ],
        }
