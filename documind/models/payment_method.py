"""
Saved payment instruments (card, PayPal account or crypto address).
"""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from documind.db.base import Base
from documind.db.types import GUID, JSONType, enum_values
from documind.utils.dates import utcnow


class PaymentMethodKind(str, enum.Enum):
    """Payment rail a charge or saved instrument belongs to."""

    CARD = "card"
    PAYPAL = "paypal"
    BTC = "btc"
    ETH = "eth"
    SOL = "sol"

    @property
    def is_crypto(self) -> bool:
        return self in (PaymentMethodKind.BTC, PaymentMethodKind.ETH, PaymentMethodKind.SOL)


class PaymentMethod(Base):
    """A reusable payment instrument reference.

    Unique per (user, provider_payment_method_id) among rows that are not
    soft-deleted; a repeat checkout updates the existing row.
    """

    __tablename__ = "payment_methods"
    __table_args__ = (
        Index(
            "uq_payment_methods_user_provider_ref",
            "user_id",
            "provider_payment_method_id",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    kind = Column(
        "type",
        Enum(PaymentMethodKind, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
    )
    provider = Column(String(50), nullable=False)
    provider_payment_method_id = Column(String(255), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)

    # Card
    card_brand = Column(String(50))
    card_last4 = Column(String(4))
    card_exp_month = Column(Integer)
    card_exp_year = Column(Integer)

    # PayPal
    paypal_email = Column(String(255))

    # Crypto
    crypto_address = Column(String(255))

    extra_metadata = Column("metadata", JSONType, default=dict)
    deleted_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="payment_methods")
