"""
Admin views over newsletter subscribers, including bulk unsubscribe and
export.
"""

import csv
import io
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from admin.audit_log_service import audit_log
from admin.schemas import AdminListQuery
from core.periods import last_months, month_key, month_start, stat_windows
from core.responses import operation_id
from newsletter.models import NewsletterSubscriber
from newsletter.schemas import SubscriberQuery
from newsletter.service import NewsletterService, normalize_email


class AdminNewsletterService:

    @staticmethod
    def _count_since(db: Session, start, end=None) -> int:
        q = db.query(func.count(NewsletterSubscriber.id)).filter(NewsletterSubscriber.subscribed_at >= start)
        if end is not None:
            q = q.filter(NewsletterSubscriber.subscribed_at < end)
        return q.scalar() or 0

    @staticmethod
    def summary(db: Session) -> Dict[str, int]:
        windows = stat_windows()
        return {
            "totalSubscribers": db.query(func.count(NewsletterSubscriber.id)).scalar() or 0,
            "subscribersToday": AdminNewsletterService._count_since(db, windows["today"]),
            "subscribersThisWeek": AdminNewsletterService._count_since(db, windows["thisWeek"]),
        }

    @staticmethod
    def list_subscribers(db: Session, query: AdminListQuery) -> Dict[str, Any]:
        result = NewsletterService.list_subscribers(db, SubscriberQuery(
            page=query.page, limit=query.limit, search=query.search, email=query.email,
            sort_order=query.sort_order,
        ))
        offset = (query.page - 1) * query.limit
        total = result["pagination"]["total"]
        return {
            "subscribers": result["subscribers"],
            "total": total,
            "hasMore": total > offset + len(result["subscribers"]),
            "summary": AdminNewsletterService.summary(db),
        }

    @staticmethod
    def get_subscriber(db: Session, subscriber_id: str) -> Dict[str, Any]:
        return NewsletterService.get_by_id(db, subscriber_id)

    @staticmethod
    def delete_subscriber(db: Session, subscriber_id: str, admin_id: str, reason: Optional[str] = None):
        subscriber = NewsletterService.get_by_id(db, subscriber_id)
        result = NewsletterService.delete(db, subscriber_id)
        audit_log.log_admin_action(admin_id, "NEWSLETTER_SUBSCRIBER_DELETED", subscriber_id, {
            "reason": reason, "email": subscriber["email"],
        })
        return result

    @staticmethod
    def bulk_unsubscribe(db: Session, emails: List[str], admin_id: str, reason: Optional[str] = None):
        # case variants of one address are a single unsubscribe
        emails = list(dict.fromkeys(normalize_email(e) for e in emails))
        results = []
        for email in emails:
            subscriber = NewsletterService.find_by_email(db, email)
            if subscriber is None:
                results.append({"email": email, "success": False, "error": "Not subscribed"})
                continue
            db.delete(subscriber)
            results.append({"email": email, "success": True})
        db.flush()

        successful = sum(1 for r in results if r["success"])
        op_id = operation_id("bulk-unsubscribe")
        audit_log.log_admin_action(admin_id, "BULK_NEWSLETTER_UNSUBSCRIBE", op_id, {
            "emails": emails, "reason": reason, "successful": successful,
        })
        logger.info(f"[ADMIN_NEWSLETTER] Bulk unsubscribe by {admin_id}: "
                    f"{successful} successful, {len(results) - successful} failed")
        return {
            "operationId": op_id,
            "totalEmails": len(emails),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }

    @staticmethod
    def analytics(db: Session) -> Dict[str, Any]:
        months = last_months(12)
        per_month = {month_key(m): 0 for m in months}
        rows = (
            db.query(NewsletterSubscriber.subscribed_at)
            .filter(NewsletterSubscriber.subscribed_at >= months[0])
            .all()
        )
        for (subscribed_at,) in rows:
            key = month_key(subscribed_at)
            if key in per_month:
                per_month[key] += 1

        this_month = month_start(months[-1])
        current = AdminNewsletterService._count_since(db, this_month)
        previous = AdminNewsletterService._count_since(db, month_start(this_month, -1), this_month)
        growth = (current - previous) / previous * 100 if previous > 0 else 0

        recent = db.query(NewsletterSubscriber).order_by(desc(NewsletterSubscriber.subscribed_at)).limit(10).all()
        return {
            "overview": {"totalSubscribers": db.query(func.count(NewsletterSubscriber.id)).scalar() or 0},
            "trends": {
                "subscribersByMonth": [{"month": k, "count": v} for k, v in per_month.items()],
            },
            "recentActivity": [s.to_dict() for s in recent],
            "growth": {"currentMonth": current, "lastMonth": previous, "growthRate": round(growth, 2)},
        }

    @staticmethod
    def export(db: Session, fmt: str = "json"):
        """List of subscriber dicts for json, or a CSV string with an `email,subscribedAt` header."""
        subscribers = db.query(NewsletterSubscriber).order_by(desc(NewsletterSubscriber.subscribed_at)).all()
        if fmt != "csv":
            return [s.to_dict() for s in subscribers]

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["email", "subscribedAt"])
        for s in subscribers:
            writer.writerow([s.email, s.subscribed_at.isoformat()])
        return buffer.getvalue()
