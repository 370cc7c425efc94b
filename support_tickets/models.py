"""
Database models for the support-ticket workflow.

Models:
- SupportTicket: A user's support request
- TicketReply: Public or internal (staff-only) messages on a ticket
- TicketReopenRequest: Owner's request to reopen a closed ticket
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, ForeignKey, Index, String, Text, desc
from sqlalchemy.orm import relationship

from core.database import Base


class TicketStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class TicketPriority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TicketType(str, enum.Enum):
    GENERAL = "GENERAL"
    TECHNICAL = "TECHNICAL"
    BILLING = "BILLING"
    FEEDBACK = "FEEDBACK"


class ReopenStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


CLOSING_STATUSES = (TicketStatus.CLOSED, TicketStatus.RESOLVED)


def user_summary(user):
    """{id, email, name} for an embedded user, or None"""
    if user is None:
        return None
    return {"id": user.id, "email": user.email, "name": user.name}


class SupportTicket(Base):
    """
    A support request.

    Attributes:
        status: OPEN -> IN_PROGRESS (on assignment) -> RESOLVED/CLOSED
        closed_at: Set while status is RESOLVED or CLOSED
        file_urls: Attachment URLs (JSON list)
    """

    __tablename__ = "support_tickets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(TicketStatus), default=TicketStatus.OPEN, nullable=False, index=True)
    priority = Column(Enum(TicketPriority), default=TicketPriority.NORMAL, nullable=False, index=True)
    type = Column(Enum(TicketType), default=TicketType.GENERAL, nullable=False)

    created_by_id = Column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
        doc="Ticket owner"
    )
    assigned_to_id = Column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
        doc="Staff member working the ticket"
    )
    assigned_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    file_urls = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    replies = relationship(
        "TicketReply",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketReply.created_at",
    )
    reopen_requests = relationship(
        "TicketReopenRequest",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by=lambda: TicketReopenRequest.created_at.desc(),
    )

    __table_args__ = (
        Index("idx_ticket_creator_created", created_by_id, desc(created_at)),
    )

    def __repr__(self):
        return f"<SupportTicket(id={self.id}, status={self.status})>"

    def to_dict(self, include_internal: bool = False, include_replies: bool = False):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "type": self.type.value,
            "createdById": self.created_by_id,
            "assignedToId": self.assigned_to_id,
            "createdBy": user_summary(self.created_by),
            "assignedTo": user_summary(self.assigned_to),
            "assignedAt": self.assigned_at.isoformat() if self.assigned_at else None,
            "closedAt": self.closed_at.isoformat() if self.closed_at else None,
            "fileUrls": list(self.file_urls or []),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        visible = [r for r in self.replies if include_internal or not r.is_internal]
        data["replyCount"] = len(visible)
        if include_replies:
            data["replies"] = [reply.to_dict() for reply in visible]
            data["reopenRequests"] = [request.to_dict() for request in self.reopen_requests]
        return data


class TicketReply(Base):
    """A message on a ticket. Internal replies are hidden from non-staff."""

    __tablename__ = "ticket_replies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    ticket_id = Column(String(36), ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, default=False, nullable=False)
    file_urls = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    ticket = relationship("SupportTicket", back_populates="replies")
    author = relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "ticketId": self.ticket_id,
            "content": self.content,
            "isInternal": self.is_internal,
            "fileUrls": list(self.file_urls or []),
            "author": user_summary(self.author),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class TicketReopenRequest(Base):
    __tablename__ = "ticket_reopen_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    ticket_id = Column(String(36), ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reason = Column(Text, nullable=False)
    status = Column(Enum(ReopenStatus), default=ReopenStatus.PENDING, nullable=False, index=True)
    reviewed_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    ticket = relationship("SupportTicket", back_populates="reopen_requests")
    requested_by = relationship("User", foreign_keys=[requested_by_id])
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])

    def to_dict(self):
        return {
            "id": self.id,
            "ticketId": self.ticket_id,
            "reason": self.reason,
            "status": self.status.value,
            "requestedBy": user_summary(self.requested_by),
            "reviewedBy": user_summary(self.reviewed_by),
            "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "reviewNote": self.review_note,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
