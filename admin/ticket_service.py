"""
Admin-side support ticket operations: triage lists, assignment, status
changes, bulk actions, internal notes and analytics.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from admin.audit_log_service import audit_log
from admin.schemas import AdminTicketQuery, NoteType
from auth.models import User
from core.exceptions import NotFoundError, ValidationError
from core.periods import month_start
from core.permissions import PermissionUtils
from core.responses import iso, operation_id
from support_tickets.models import (
    ReopenStatus, SupportTicket, TicketPriority, TicketStatus
)
from support_tickets.repository import (
    ReopenRequestRepository, ReplyRepository, TicketRepository
)
from support_tickets.service import apply_status, average_resolution_hours


def _email(user: Optional[User]) -> Optional[str]:
    return user.email if user else None


def _name(user: Optional[User]) -> Optional[str]:
    return user.name if user else None


def ticket_row(ticket: SupportTicket) -> Dict[str, Any]:
    return {
        "id": ticket.id,
        "title": ticket.title,
        "status": ticket.status.value,
        "priority": ticket.priority.value,
        "userId": ticket.created_by_id,
        "userEmail": _email(ticket.created_by),
        "assignedTo": _email(ticket.assigned_to),
        "createdAt": iso(ticket.created_at),
        "updatedAt": iso(ticket.updated_at),
        "replyCount": len(ticket.replies),
    }


class AdminTicketService:

    @staticmethod
    def _get(db: Session, ticket_id: str) -> SupportTicket:
        ticket = TicketRepository.get_by_id(db, ticket_id)
        if not ticket:
            raise NotFoundError("Support ticket not found")
        return ticket

    @staticmethod
    def summary(db: Session) -> Dict[str, int]:
        counts = TicketRepository.count_by_status(db)
        urgent = (
            db.query(func.count(SupportTicket.id))
            .filter(SupportTicket.priority == TicketPriority.URGENT)
            .scalar() or 0
        )
        return {
            "totalTickets": sum(counts.values()),
            "openTickets": counts[TicketStatus.OPEN],
            "inProgressTickets": counts[TicketStatus.IN_PROGRESS],
            "resolvedTickets": counts[TicketStatus.RESOLVED],
            "closedTickets": counts[TicketStatus.CLOSED],
            "urgentPriority": urgent,
        }

    # ==================== READ ====================

    @staticmethod
    def list_tickets(db: Session, query: AdminTicketQuery) -> Dict[str, Any]:
        q = db.query(SupportTicket)
        if query.status:
            q = q.filter(SupportTicket.status == query.status)
        if query.priority:
            q = q.filter(SupportTicket.priority == query.priority)
        if query.search:
            pattern = f"%{query.search.lower()}%"
            creator_ids = db.query(User.id).filter(func.lower(User.email).like(pattern))
            q = q.filter(or_(
                func.lower(SupportTicket.title).like(pattern),
                func.lower(SupportTicket.description).like(pattern),
                SupportTicket.created_by_id.in_(creator_ids),
            ))

        tickets, total = TicketRepository.paginate(q, query.page, query.limit, query.sort_by, query.sort_order)
        offset = (query.page - 1) * query.limit
        return {
            "tickets": [ticket_row(t) for t in tickets],
            "total": total,
            "hasMore": total > offset + len(tickets),
            "summary": AdminTicketService.summary(db),
        }

    @staticmethod
    def get_ticket(db: Session, ticket_id: str) -> Dict[str, Any]:
        ticket = AdminTicketService._get(db, ticket_id)
        return {
            "id": ticket.id,
            "title": ticket.title,
            "description": ticket.description,
            "status": ticket.status.value,
            "priority": ticket.priority.value,
            "type": ticket.type.value,
            "userId": ticket.created_by_id,
            "userEmail": _email(ticket.created_by),
            "userName": _name(ticket.created_by),
            "assignedTo": _email(ticket.assigned_to),
            "assignedToName": _name(ticket.assigned_to),
            "assignedAt": iso(ticket.assigned_at),
            "createdAt": iso(ticket.created_at),
            "updatedAt": iso(ticket.updated_at),
            "closedAt": iso(ticket.closed_at),
            "replies": [
                {
                    "id": reply.id,
                    "content": reply.content,
                    "isInternal": reply.is_internal,
                    "authorId": reply.author_id,
                    "authorEmail": _email(reply.author),
                    "authorName": _name(reply.author),
                    "createdAt": iso(reply.created_at),
                    "updatedAt": iso(reply.updated_at),
                    "fileUrls": list(reply.file_urls or []),
                }
                for reply in ticket.replies
            ],
            "reopenRequests": [
                {
                    "id": req.id,
                    "reason": req.reason,
                    "status": req.status.value,
                    "requestedByEmail": _email(req.requested_by),
                    "requestedByName": _name(req.requested_by),
                    "reviewedByEmail": _email(req.reviewed_by),
                    "reviewedByName": _name(req.reviewed_by),
                    "reviewedAt": iso(req.reviewed_at),
                    "createdAt": iso(req.created_at),
                }
                for req in ticket.reopen_requests
            ],
            "attachments": list(ticket.file_urls or []),
        }

    # ==================== WRITE ====================

    @staticmethod
    def assign_ticket(db: Session, ticket_id: str, assignee_id: Optional[str], admin_id: str,
                      reason: Optional[str] = None) -> Dict[str, Any]:
        ticket = AdminTicketService._get(db, ticket_id)

        assignee = None
        if assignee_id:
            assignee = db.query(User).filter(User.id == assignee_id).first()
            if not assignee:
                raise NotFoundError("Assignee not found")
            if not PermissionUtils.is_staff(assignee.role_names):
                raise ValidationError("Tickets can only be assigned to staff members")

        previous = ticket.assigned_to_id
        ticket.assigned_to_id = assignee_id
        ticket.assigned_at = datetime.utcnow() if assignee_id else None
        ticket.updated_at = datetime.utcnow()
        db.flush()
        db.refresh(ticket)

        audit_log.log_admin_action(admin_id, "TICKET_ASSIGNMENT", ticket_id, {
            "oldAssigneeId": previous, "newAssigneeId": assignee_id, "reason": reason,
        })
        return {
            "id": ticket.id,
            "assignedTo": _email(assignee),
            "assignedToName": _name(assignee),
            "assignedAt": iso(ticket.assigned_at),
            "updatedAt": iso(ticket.updated_at),
        }

    @staticmethod
    def update_status(db: Session, ticket_id: str, admin_id: str, status: Optional[TicketStatus] = None,
                      priority: Optional[TicketPriority] = None, reason: Optional[str] = None,
                      internal_notes: Optional[str] = None) -> Dict[str, Any]:
        ticket = AdminTicketService._get(db, ticket_id)
        old_status, old_priority = ticket.status, ticket.priority

        if status is not None:
            apply_status(ticket, status)
        if priority is not None:
            ticket.priority = priority
        ticket.updated_at = datetime.utcnow()
        db.flush()

        if internal_notes:
            AdminTicketService.add_internal_note(db, ticket_id, internal_notes, admin_id)

        audit_log.log_admin_action(admin_id, "TICKET_STATUS_UPDATE", ticket_id, {
            "oldStatus": old_status.value, "newStatus": ticket.status.value,
            "oldPriority": old_priority.value, "newPriority": ticket.priority.value,
            "reason": reason,
        })
        return {
            "id": ticket.id,
            "status": ticket.status.value,
            "priority": ticket.priority.value,
            "updatedAt": iso(ticket.updated_at),
            "closedAt": iso(ticket.closed_at),
        }

    @staticmethod
    def _bulk(ticket_ids: List[str], action) -> Dict[str, Any]:
        results = []
        # each action validates before it mutates, so a failure leaves nothing to undo
        for ticket_id in ticket_ids:
            try:
                results.append({"ticketId": ticket_id, "success": True, "result": action(ticket_id)})
            except (NotFoundError, ValidationError) as e:
                results.append({"ticketId": ticket_id, "success": False, "error": e.message})
        successful = sum(1 for r in results if r["success"])
        return {
            "totalTickets": len(ticket_ids),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }

    @staticmethod
    def bulk_assign(db: Session, ticket_ids: List[str], assignee_id: Optional[str], admin_id: str,
                    reason: Optional[str] = None) -> Dict[str, Any]:
        outcome = AdminTicketService._bulk(
            ticket_ids,
            lambda tid: AdminTicketService.assign_ticket(db, tid, assignee_id, admin_id, reason),
        )
        logger.info(f"[ADMIN_TICKETS] Bulk assignment by {admin_id}: "
                    f"{outcome['successful']} successful, {outcome['failed']} failed")
        return {"operationId": operation_id("bulk-assign"), **outcome}

    @staticmethod
    def bulk_update_status(db: Session, ticket_ids: List[str], status: TicketStatus, admin_id: str,
                           priority: Optional[TicketPriority] = None,
                           reason: Optional[str] = None) -> Dict[str, Any]:
        outcome = AdminTicketService._bulk(
            ticket_ids,
            lambda tid: AdminTicketService.update_status(db, tid, admin_id, status, priority, reason),
        )
        logger.info(f"[ADMIN_TICKETS] Bulk status update by {admin_id}: "
                    f"{outcome['successful']} successful, {outcome['failed']} failed")
        return {"operationId": operation_id("bulk-status"), **outcome}

    @staticmethod
    def add_internal_note(db: Session, ticket_id: str, content: str, admin_id: str,
                          note_type: NoteType = NoteType.GENERAL) -> Dict[str, Any]:
        ticket = AdminTicketService._get(db, ticket_id)
        reply = ReplyRepository.create(
            db, ticket, admin_id, f"[INTERNAL NOTE - {note_type.value}] {content}", is_internal=True
        )
        logger.info(f"[ADMIN_TICKETS] Internal note added to ticket {ticket_id} by {admin_id}")
        return {
            "id": reply.id,
            "content": reply.content,
            "isInternal": reply.is_internal,
            "authorId": reply.author_id,
            "authorEmail": _email(reply.author),
            "authorName": _name(reply.author),
            "createdAt": iso(reply.created_at),
            "noteType": note_type.value,
        }

    @staticmethod
    def process_reopen_request(db: Session, request_id: str, approve: bool, admin_id: str,
                               reason: Optional[str] = None) -> Dict[str, Any]:
        request = ReopenRequestRepository.get_by_id(db, request_id)
        if not request:
            raise NotFoundError("Reopen request not found")
        if request.status != ReopenStatus.PENDING:
            raise ValidationError("This reopen request has already been processed")

        request.status = ReopenStatus.APPROVED if approve else ReopenStatus.REJECTED
        request.reviewed_by_id = admin_id
        request.reviewed_at = datetime.utcnow()
        request.review_note = reason
        if approve:
            apply_status(request.ticket, TicketStatus.OPEN)
            request.ticket.updated_at = datetime.utcnow()
        db.flush()
        db.refresh(request)

        audit_log.log_admin_action(admin_id, "REOPEN_REQUEST_PROCESS", request_id, {
            "ticketId": request.ticket_id, "approved": approve, "reason": reason,
        })
        return {
            "id": request.id,
            "ticketId": request.ticket_id,
            "ticketTitle": request.ticket.title,
            "status": request.status.value,
            "approve": approve,
            "requestedByEmail": _email(request.requested_by),
            "reviewedByEmail": _email(request.reviewed_by),
            "reviewedAt": iso(request.reviewed_at),
        }

    @staticmethod
    def delete_ticket(db: Session, ticket_id: str, admin_id: str, reason: str,
                      confirm: bool, admin_roles: List[str]) -> Dict[str, Any]:
        """Soft delete: the ticket is closed, not removed."""
        PermissionUtils.require_admin(admin_roles)
        if not confirm:
            raise ValidationError("Deletion must be confirmed")

        ticket = AdminTicketService._get(db, ticket_id)
        apply_status(ticket, TicketStatus.CLOSED)
        ticket.updated_at = datetime.utcnow()
        db.flush()

        audit_log.log_admin_action(admin_id, "TICKET_DELETED", ticket_id, {"reason": reason})
        return {"ticketId": ticket_id, "deletedAt": datetime.utcnow().isoformat()}

    # ==================== ANALYTICS ====================

    @staticmethod
    def analytics(db: Session) -> Dict[str, Any]:
        summary = AdminTicketService.summary(db)
        total = summary["totalTickets"]
        closed = TicketRepository.closed_tickets(db)

        now = datetime.utcnow()
        this_month = TicketRepository.count_created_between(db, month_start(now))
        last_month = TicketRepository.count_created_between(db, month_start(now, -1), month_start(now))
        growth = (this_month - last_month) / last_month * 100 if last_month else 0

        by_priority = []
        for priority, count in TicketRepository.count_by_priority(db):
            by_priority.append({
                "priority": priority.value,
                "count": count,
                "averageResolutionTime": average_resolution_hours([t for t in closed if t.priority == priority]),
            })

        by_assignee = []
        assignee_counts = (
            db.query(SupportTicket.assigned_to_id, func.count(SupportTicket.id))
            .filter(SupportTicket.assigned_to_id.isnot(None))
            .group_by(SupportTicket.assigned_to_id)
            .all()
        )
        for assignee_id, count in assignee_counts:
            assignee = db.query(User).filter(User.id == assignee_id).first()
            by_assignee.append({
                "assigneeId": assignee_id,
                "assigneeName": _name(assignee) or "Unknown",
                "assigneeEmail": _email(assignee),
                "ticketCount": count,
                "averageResolutionTime": average_resolution_hours(
                    [t for t in closed if t.assigned_to_id == assignee_id]
                ),
            })

        return {
            "overview": {
                "totalTickets": total,
                "openTickets": summary["openTickets"],
                "inProgressTickets": summary["inProgressTickets"],
                "resolvedTickets": summary["resolvedTickets"],
                "closedTickets": summary["closedTickets"],
                "averageResolutionTime": average_resolution_hours(closed),
            },
            "trends": {
                "ticketsThisMonth": this_month,
                "ticketsLastMonth": last_month,
                "growthRate": round(growth, 2),
                "resolutionRate": round(summary["resolvedTickets"] / total * 100, 2) if total else 0,
            },
            "byPriority": by_priority,
            "byAssignee": by_assignee,
        }
