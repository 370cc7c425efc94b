"""
Business logic for newsletter subscriptions.

Addresses are stored lowercased so the unique constraint is case-insensitive.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import asc, desc, func
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError
from core.periods import stat_windows
from core.responses import build_pagination
from newsletter.models import NewsletterSubscriber
from newsletter.schemas import SubscriberQuery


def normalize_email(email: str) -> str:
    return str(email).strip().lower()


class NewsletterService:

    @staticmethod
    def find_by_email(db: Session, email: str) -> Optional[NewsletterSubscriber]:
        return (
            db.query(NewsletterSubscriber)
            .filter(NewsletterSubscriber.email == normalize_email(email))
            .first()
        )

    @staticmethod
    def _get(db: Session, subscriber_id: str) -> NewsletterSubscriber:
        subscriber = db.query(NewsletterSubscriber).filter(NewsletterSubscriber.id == subscriber_id).first()
        if not subscriber:
            raise NotFoundError("Newsletter subscriber not found")
        return subscriber

    @staticmethod
    def subscribe(db: Session, email: str) -> Dict[str, Any]:
        if NewsletterService.find_by_email(db, email):
            raise ConflictError("Email is already subscribed to the newsletter")

        subscriber = NewsletterSubscriber(email=normalize_email(email))
        db.add(subscriber)
        db.flush()
        logger.info(f"[NEWSLETTER_SUBSCRIBE] {subscriber.email}")
        return subscriber.to_dict()

    @staticmethod
    def unsubscribe(db: Session, email: str) -> Dict[str, str]:
        subscriber = NewsletterService.find_by_email(db, email)
        if not subscriber:
            raise NotFoundError("Email is not subscribed to the newsletter")

        db.delete(subscriber)
        db.flush()
        logger.info(f"[NEWSLETTER_UNSUBSCRIBE] {subscriber.email}")
        return {"email": subscriber.email, "unsubscribedAt": datetime.utcnow().isoformat()}

    @staticmethod
    def check_subscription(db: Session, email: str) -> Dict[str, Any]:
        subscriber = NewsletterService.find_by_email(db, email)
        return {
            "email": normalize_email(email),
            "isSubscribed": subscriber is not None,
            "subscribedAt": subscriber.subscribed_at.isoformat() if subscriber else None,
        }

    @staticmethod
    def list_subscribers(db: Session, query: SubscriberQuery) -> Dict[str, Any]:
        q = db.query(NewsletterSubscriber)
        if query.email:
            q = q.filter(NewsletterSubscriber.email == normalize_email(query.email))
        if query.search:
            q = q.filter(NewsletterSubscriber.email.like(f"%{query.search.lower()}%"))

        total = q.count()
        direction = asc if query.sort_order == "asc" else desc
        subscribers = (
            q.order_by(direction(getattr(NewsletterSubscriber, query.sort_by)))
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
            .all()
        )
        return {
            "subscribers": [s.to_dict() for s in subscribers],
            "pagination": build_pagination(query.page, query.limit, total),
        }

    @staticmethod
    def get_by_id(db: Session, subscriber_id: str) -> Dict[str, Any]:
        return NewsletterService._get(db, subscriber_id).to_dict()

    @staticmethod
    def delete(db: Session, subscriber_id: str) -> Dict[str, str]:
        subscriber = NewsletterService._get(db, subscriber_id)
        db.delete(subscriber)
        db.flush()
        logger.info(f"[NEWSLETTER_DELETE] Subscriber {subscriber_id} removed")
        return {"id": subscriber_id, "deletedAt": datetime.utcnow().isoformat()}

    @staticmethod
    def stats(db: Session) -> Dict[str, int]:
        counts = {"total": db.query(func.count(NewsletterSubscriber.id)).scalar() or 0}
        for key, since in stat_windows().items():
            counts[key] = (
                db.query(func.count(NewsletterSubscriber.id))
                .filter(NewsletterSubscriber.subscribed_at >= since)
                .scalar() or 0
            )
        return counts
