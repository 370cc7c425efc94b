"""
Admin views over contact messages.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from admin.audit_log_service import audit_log
from admin.schemas import AdminListQuery
from contact_messages.models import ContactMessage
from contact_messages.schemas import ContactMessageQuery
from contact_messages.service import ContactMessageService
from core.periods import last_months, month_key, stat_windows


class AdminContactService:

    @staticmethod
    def summary(db: Session) -> Dict[str, int]:
        windows = stat_windows()

        def since(start):
            return db.query(func.count(ContactMessage.id)).filter(ContactMessage.created_at >= start).scalar() or 0

        return {
            "totalMessages": db.query(func.count(ContactMessage.id)).scalar() or 0,
            "messagesToday": since(windows["today"]),
            "messagesThisWeek": since(windows["thisWeek"]),
        }

    @staticmethod
    def list_messages(db: Session, query: AdminListQuery) -> Dict[str, Any]:
        result = ContactMessageService.list_messages(db, ContactMessageQuery(
            page=query.page, limit=query.limit, search=query.search, email=query.email,
            sort_order=query.sort_order,
        ))
        offset = (query.page - 1) * query.limit
        total = result["pagination"]["total"]
        return {
            "messages": result["messages"],
            "total": total,
            "hasMore": total > offset + len(result["messages"]),
            "summary": AdminContactService.summary(db),
        }

    @staticmethod
    def get_message(db: Session, message_id: str) -> Dict[str, Any]:
        return ContactMessageService.get_by_id(db, message_id)

    @staticmethod
    def delete_message(db: Session, message_id: str, admin_id: str, reason: Optional[str] = None):
        message = ContactMessageService.get_by_id(db, message_id)
        result = ContactMessageService.delete(db, message_id)
        audit_log.log_admin_action(admin_id, "CONTACT_MESSAGE_DELETED", message_id, {
            "reason": reason, "message": f"{message['name']} ({message['email']})",
        })
        return result

    @staticmethod
    def analytics(db: Session) -> Dict[str, Any]:
        months = last_months(12)
        created = (
            db.query(ContactMessage.created_at)
            .filter(ContactMessage.created_at >= months[0])
            .all()
        )
        per_month = {month_key(m): 0 for m in months}
        for (created_at,) in created:
            key = month_key(created_at)
            if key in per_month:
                per_month[key] += 1

        recent = db.query(ContactMessage).order_by(desc(ContactMessage.created_at)).limit(10).all()
        return {
            "overview": {"totalMessages": db.query(func.count(ContactMessage.id)).scalar() or 0},
            "trends": {
                "messagesByMonth": [{"month": k, "count": v} for k, v in per_month.items()],
            },
            "recentActivity": [
                {
                    "id": m.id,
                    "name": m.name,
                    "email": m.email,
                    "subject": m.subject,
                    "createdAt": m.created_at.isoformat(),
                }
                for m in recent
            ],
            "generatedAt": datetime.utcnow().isoformat(),
        }
