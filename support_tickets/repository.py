"""
Data access layer for support tickets.

Query building lives here; permission rules live in the service.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import asc, case, desc, func, or_
from sqlalchemy.orm import Query, Session

from support_tickets.models import (
    ReopenStatus, SupportTicket, TicketPriority, TicketReopenRequest, TicketReply, TicketStatus
)


class TicketRepository:
    """Queries over support_tickets"""

    @staticmethod
    def get_by_id(db: Session, ticket_id: str) -> Optional[SupportTicket]:
        return db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()

    @staticmethod
    def create(db: Session, **fields) -> SupportTicket:
        ticket = SupportTicket(**fields)
        db.add(ticket)
        db.flush()
        db.refresh(ticket)
        return ticket

    @staticmethod
    def base_query(db: Session, owner_id: Optional[str] = None) -> Query:
        query = db.query(SupportTicket)
        if owner_id:
            query = query.filter(SupportTicket.created_by_id == owner_id)
        return query

    @staticmethod
    def apply_search(query: Query, search: Optional[str]) -> Query:
        if not search:
            return query
        pattern = f"%{search.lower()}%"
        return query.filter(or_(
            func.lower(SupportTicket.title).like(pattern),
            func.lower(SupportTicket.description).like(pattern),
        ))

    @staticmethod
    def sort_column(sort_by: str):
        """Enum columns sort by declaration order, everything else by value"""
        if sort_by == "priority":
            return case({p.name: i for i, p in enumerate(TicketPriority)}, value=SupportTicket.priority)
        if sort_by == "status":
            return case({s.name: i for i, s in enumerate(TicketStatus)}, value=SupportTicket.status)
        return getattr(SupportTicket, sort_by)

    @staticmethod
    def paginate(
        query: Query,
        page: int,
        limit: int,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[SupportTicket], int]:
        total = query.count()
        column = TicketRepository.sort_column(sort_by)
        direction = asc if sort_order == "asc" else desc
        items = (
            query.order_by(direction(column), desc(SupportTicket.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def count_by_status(db: Session, owner_id: Optional[str] = None) -> Dict[TicketStatus, int]:
        query = db.query(SupportTicket.status, func.count(SupportTicket.id))
        if owner_id:
            query = query.filter(SupportTicket.created_by_id == owner_id)
        counts = {status: 0 for status in TicketStatus}
        for status, count in query.group_by(SupportTicket.status).all():
            counts[status] = count
        return counts

    @staticmethod
    def count_by_priority(db: Session, owner_id: Optional[str] = None):
        query = db.query(SupportTicket.priority, func.count(SupportTicket.id))
        if owner_id:
            query = query.filter(SupportTicket.created_by_id == owner_id)
        return query.group_by(SupportTicket.priority).all()

    @staticmethod
    def count_created_between(db: Session, start: datetime, end: Optional[datetime] = None,
                              owner_id: Optional[str] = None) -> int:
        query = db.query(func.count(SupportTicket.id)).filter(SupportTicket.created_at >= start)
        if end is not None:
            query = query.filter(SupportTicket.created_at < end)
        if owner_id:
            query = query.filter(SupportTicket.created_by_id == owner_id)
        return query.scalar() or 0

    @staticmethod
    def closed_tickets(db: Session, owner_id: Optional[str] = None) -> List[SupportTicket]:
        """Resolved or closed tickets that carry a closed_at timestamp"""
        query = db.query(SupportTicket).filter(
            SupportTicket.status.in_([TicketStatus.RESOLVED, TicketStatus.CLOSED]),
            SupportTicket.closed_at.isnot(None),
        )
        if owner_id:
            query = query.filter(SupportTicket.created_by_id == owner_id)
        return query.all()


class ReplyRepository:

    @staticmethod
    def create(db: Session, ticket: SupportTicket, author_id: str, content: str,
               is_internal: bool = False, file_urls: List[str] = None) -> TicketReply:
        reply = TicketReply(
            ticket_id=ticket.id,
            author_id=author_id,
            content=content,
            is_internal=is_internal,
            file_urls=list(file_urls or []),
        )
        db.add(reply)
        ticket.updated_at = datetime.utcnow()
        db.flush()
        db.refresh(reply)
        return reply


class ReopenRequestRepository:

    @staticmethod
    def get_by_id(db: Session, request_id: str) -> Optional[TicketReopenRequest]:
        return db.query(TicketReopenRequest).filter(TicketReopenRequest.id == request_id).first()

    @staticmethod
    def pending_for_ticket(db: Session, ticket_id: str) -> Optional[TicketReopenRequest]:
        return db.query(TicketReopenRequest).filter(
            TicketReopenRequest.ticket_id == ticket_id,
            TicketReopenRequest.status == ReopenStatus.PENDING,
        ).first()

    @staticmethod
    def create(db: Session, ticket_id: str, requested_by_id: str, reason: str) -> TicketReopenRequest:
        request = TicketReopenRequest(ticket_id=ticket_id, requested_by_id=requested_by_id, reason=reason)
        db.add(request)
        db.flush()
        db.refresh(request)
        return request
