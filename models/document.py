# The remote document store keeps one row per document path, e.g.
# users/{uid}/cart/main or coupons/{CODE}. The payload is schemaless JSON so
# existing stored records keep their field names; the typed view lives in the
# DTOs of models/cart.py, models/coupon.py and models/rewards.py.
#
# version is bumped on every write and backs compare-and-set updates.
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, DateTime, JSON, CheckConstraint

from models.base import Base


class Document(Base):
    __tablename__ = "documents"

    path = Column(String, primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint('version > 0', name='check_version_positive'),
    )


class DocumentDTO(BaseModel):
    path: str
    data: dict[str, Any] = {}
    version: int = 0
    updated_at: datetime | None = None
