"""
Blog post model. Tags are shared with projects through `core.tags.Tag`.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from core.database import Base

blog_post_tags = Table(
    "blog_post_tags",
    Base.metadata,
    Column("blog_post_id", String(36), ForeignKey("blog_posts.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class BlogPost(Base):
    __tablename__ = "blog_posts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    thumbnail = Column(String(500), nullable=True)
    content = Column(Text, nullable=False)
    reactions = Column(Integer, default=0, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    author_name = Column(String(255), nullable=True)
    published = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tags = relationship("Tag", secondary=blog_post_tags, lazy="selectin", order_by="Tag.name")

    def __repr__(self):
        return f"<BlogPost(id={self.id}, slug='{self.slug}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "thumbnail": self.thumbnail,
            "content": self.content,
            "reactions": self.reactions,
            "views": self.views,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "published": self.published,
            "tags": [tag.to_dict() for tag in self.tags],
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
