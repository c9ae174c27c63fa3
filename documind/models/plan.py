"""
Subscription plan model (Free / Basic / Pro tiers).
"""

import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, Numeric, String, Text

from documind.db.base import Base
from documind.db.types import GUID, JSONType
from documind.utils.dates import utcnow


class SubscriptionPlan(Base):
    """A named tier with prices for both billing periods and resource limits.

    A NULL limit means unlimited.
    """

    __tablename__ = "subscription_plans"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)  # Free, Basic, Pro
    description = Column(Text)

    price_monthly = Column(Numeric(10, 2), nullable=False, default=0)
    price_yearly = Column(Numeric(10, 2), nullable=False, default=0)

    max_documents = Column(Integer)
    max_questions_per_month = Column(Integer)
    max_storage_bytes = Column(BigInteger)

    features = Column(JSONType, default=list)  # ordered list of strings
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<SubscriptionPlan {self.name}>"
