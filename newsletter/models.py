"""
Newsletter subscription model.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String

from core.database import Base


class NewsletterSubscriber(Base):
    __tablename__ = "newsletter_subscribers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    subscribed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<NewsletterSubscriber(email='{self.email}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "subscribedAt": self.subscribed_at.isoformat() if self.subscribed_at else None,
        }
