"""
Portfolio project model.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Table, Text
from sqlalchemy.orm import relationship

from core.database import Base

project_tags = Table(
    "project_tags",
    Base.metadata,
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Project(Base):
    """
    A case study. `services`, `technologies`, `goal_images` and
    `result_images` are JSON string lists.
    """

    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    subtitle = Column(String(255), nullable=True)
    client = Column(String(255), nullable=True, index=True)
    logo = Column(String(500), nullable=True)
    services = Column(JSON, nullable=False, default=list)
    technologies = Column(JSON, nullable=False, default=list)
    website = Column(String(500), nullable=True)
    thumbnail = Column(String(500), nullable=True)
    about = Column(Text, nullable=True)
    goal = Column(Text, nullable=True)
    execution = Column(Text, nullable=True)
    results = Column(Text, nullable=True)
    goal_images = Column(JSON, nullable=False, default=list)
    result_images = Column(JSON, nullable=False, default=list)
    published = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tags = relationship("Tag", secondary=project_tags, lazy="selectin", order_by="Tag.name")

    def __repr__(self):
        return f"<Project(id={self.id}, slug='{self.slug}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "subtitle": self.subtitle,
            "client": self.client,
            "logo": self.logo,
            "services": list(self.services or []),
            "technologies": list(self.technologies or []),
            "website": self.website,
            "thumbnail": self.thumbnail,
            "about": self.about,
            "goal": self.goal,
            "execution": self.execution,
            "results": self.results,
            "goalImages": list(self.goal_images or []),
            "resultImages": list(self.result_images or []),
            "published": self.published,
            "tags": [tag.to_dict() for tag in self.tags],
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
