"""
User model for authentication and profile management.
"""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from documind.db.base import Base
from documind.db.types import GUID
from documind.utils.dates import utcnow


class UserRole(str, enum.Enum):
    """Application roles. Users without an explicit role are plain users."""

    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


class User(Base):
    """User model for authentication and profile management."""

    __tablename__ = "users"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(255))
    hashed_password = Column(String(255), nullable=False)

    role = Column(String(20), nullable=False, default=UserRole.USER.value)

    # Status fields
    is_active = Column(Boolean, default=True)
    is_verified = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
    last_login = Column(DateTime(timezone=True))

    # Relationships
    documents = relationship(
        "Document", back_populates="owner", cascade="all, delete-orphan"
    )
    subscription = relationship(
        "UserSubscription", back_populates="user", uselist=False
    )
    payment_methods = relationship("PaymentMethod", back_populates="user")
    billing_history = relationship("BillingHistory", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
