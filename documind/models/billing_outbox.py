"""
Outbox for billing writes that failed during checkout.
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text

from documind.db.base import Base
from documind.db.types import GUID, JSONType
from documind.utils.dates import utcnow


class OutboxKind(str, enum.Enum):
    """Which write an outbox entry replays."""

    BILLING_HISTORY = "billing_history"
    PAYMENT_METHOD = "payment_method"


class BillingOutboxEntry(Base):
    """A deferred ledger or payment-method write.

    ``payload`` holds the keyword arguments of the original service call,
    JSON-encoded; ``processed_at`` is set once a replay succeeds.
    """

    __tablename__ = "billing_outbox"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    kind = Column(String(50), nullable=False)
    user_id = Column(GUID(), nullable=False, index=True)
    payload = Column(JSONType, nullable=False)

    attempts = Column(Integer, nullable=False, default=1)
    last_error = Column(Text)
    processed_at = Column(DateTime(timezone=True), index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
