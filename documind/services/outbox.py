"""
Billing outbox.

Checkout writes the subscription first; if the ledger entry or the payment
method write then fails, the call is stored here and replayed later
instead of being dropped.
"""

import enum
import logging
import uuid
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from documind.models.billing_outbox import BillingOutboxEntry, OutboxKind
from documind.services import billing_history as billing_history_service
from documind.services import payment_methods as payment_method_service
from documind.utils.dates import utcnow

logger = logging.getLogger(__name__)


def _encode(value):
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


def enqueue(
    db: Session,
    kind: OutboxKind,
    user_id: uuid.UUID,
    payload: dict,
    error: Exception | str | None = None,
) -> BillingOutboxEntry:
    """Store a failed write. Flushed with the caller's transaction."""
    entry = BillingOutboxEntry(
        kind=OutboxKind(kind).value,
        user_id=user_id,
        payload=_encode(payload),
        attempts=1,
        last_error=str(error) if error is not None else None,
    )
    db.add(entry)
    db.flush()
    logger.warning("Queued %s write for user %s in billing outbox (%s)", entry.kind, user_id, error)
    return entry


def _apply(db: Session, entry: BillingOutboxEntry) -> None:
    payload = dict(entry.payload)
    if entry.kind == OutboxKind.BILLING_HISTORY.value:
        billing_history_service.record_charge(db, **payload)
    elif entry.kind == OutboxKind.PAYMENT_METHOD.value:
        payment_method_service.upsert_payment_method(db, **payload)
    else:
        raise ValueError(f"Unknown outbox entry kind: {entry.kind}")


def list_pending(db: Session, limit: int = 100) -> list[BillingOutboxEntry]:
    return (
        db.query(BillingOutboxEntry)
        .filter(BillingOutboxEntry.processed_at.is_(None))
        .order_by(BillingOutboxEntry.created_at)
        .limit(limit)
        .all()
    )


def replay_pending(db: Session, limit: int = 100) -> tuple[int, int]:
    """Re-apply unprocessed entries, oldest first.

    Each entry runs in its own savepoint. Returns (processed, failed).
    """
    processed = failed = 0
    for entry in list_pending(db, limit):
        savepoint = db.begin_nested()
        try:
            _apply(db, entry)
            savepoint.commit()
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            savepoint.rollback()
            entry.attempts = (entry.attempts or 0) + 1
            entry.last_error = str(exc)
            failed += 1
            logger.error("Outbox replay failed for entry %s: %s", entry.id, exc)
            continue

        entry.processed_at = utcnow()
        processed += 1

    db.commit()
    if processed or failed:
        logger.info("Outbox replay: %d processed, %d failed", processed, failed)
    return processed, failed
