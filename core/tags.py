"""
Tags shared by blog posts and projects.
"""

import uuid
from datetime import datetime
from typing import Iterable, List

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import Session

from core.database import Base


class Tag(Base):
    __tablename__ = "tags"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


def resolve_tags(db: Session, names: Iterable[str]) -> List[Tag]:
    """Return Tag rows for the given names, creating missing ones (connect-or-create)."""
    result: List[Tag] = []
    seen = set()
    for raw in names or []:
        name = raw.strip()
        if not name or name in seen:
            continue
        seen.add(name)

        tag = db.query(Tag).filter(Tag.name == name).first()
        if tag is None:
            tag = Tag(name=name)
            db.add(tag)
            db.flush()
        result.append(tag)
    return result


def tag_name_filter(names: Iterable[str]):
    """Case-insensitive `Tag.name IN (...)` clause."""
    return func.lower(Tag.name).in_([n.strip().lower() for n in names if n and n.strip()])
