"""
Business logic for contact messages.
"""

from datetime import datetime
from typing import Any, Dict

from loguru import logger
from sqlalchemy import asc, desc, func, or_
from sqlalchemy.orm import Session

from contact_messages.models import ContactMessage
from contact_messages.schemas import ContactMessageQuery, CreateContactMessageRequest
from core.exceptions import NotFoundError
from core.periods import stat_windows
from core.responses import build_pagination


class ContactMessageService:

    @staticmethod
    def _get(db: Session, message_id: str) -> ContactMessage:
        message = db.query(ContactMessage).filter(ContactMessage.id == message_id).first()
        if not message:
            raise NotFoundError("Contact message not found")
        return message

    @staticmethod
    def create(db: Session, request: CreateContactMessageRequest) -> Dict[str, Any]:
        message = ContactMessage(
            name=request.name.strip(),
            email=str(request.email).lower(),
            subject=request.subject.strip(),
            message=request.message,
        )
        db.add(message)
        db.flush()
        logger.info(f"[CONTACT_CREATE] Contact message {message.id} from {message.email}")
        return message.to_dict()

    @staticmethod
    def list_messages(db: Session, query: ContactMessageQuery) -> Dict[str, Any]:
        q = db.query(ContactMessage)
        if query.email:
            q = q.filter(func.lower(ContactMessage.email) == query.email.lower())
        if query.search:
            pattern = f"%{query.search.lower()}%"
            q = q.filter(or_(
                func.lower(ContactMessage.name).like(pattern),
                func.lower(ContactMessage.email).like(pattern),
                func.lower(ContactMessage.subject).like(pattern),
                func.lower(ContactMessage.message).like(pattern),
            ))

        total = q.count()
        direction = asc if query.sort_order == "asc" else desc
        messages = (
            q.order_by(direction(getattr(ContactMessage, query.sort_by)), desc(ContactMessage.id))
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
            .all()
        )
        return {
            "messages": [m.to_dict() for m in messages],
            "pagination": build_pagination(query.page, query.limit, total),
        }

    @staticmethod
    def get_by_id(db: Session, message_id: str) -> Dict[str, Any]:
        return ContactMessageService._get(db, message_id).to_dict()

    @staticmethod
    def delete(db: Session, message_id: str) -> Dict[str, str]:
        message = ContactMessageService._get(db, message_id)
        db.delete(message)
        db.flush()
        logger.info(f"[CONTACT_DELETE] Contact message {message_id} deleted")
        return {"id": message_id, "deletedAt": datetime.utcnow().isoformat()}

    @staticmethod
    def stats(db: Session) -> Dict[str, int]:
        counts = {"total": db.query(func.count(ContactMessage.id)).scalar() or 0}
        for key, since in stat_windows().items():
            counts[key] = (
                db.query(func.count(ContactMessage.id))
                .filter(ContactMessage.created_at >= since)
                .scalar() or 0
            )
        return counts
