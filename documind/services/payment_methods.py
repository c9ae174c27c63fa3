"""
Saved payment instruments.

A (user, provider id) pair maps to at most one live row, and at most one
live row per user and kind carries ``is_default``.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from documind.core.exceptions import PaymentNotFoundError
from documind.models.payment_method import PaymentMethod, PaymentMethodKind
from documind.utils.dates import utcnow

logger = logging.getLogger(__name__)

_CARD_FIELDS = ("card_brand", "card_last4", "card_exp_month", "card_exp_year")
_PAYPAL_FIELDS = ("paypal_email",)
_CRYPTO_FIELDS = ("crypto_address",)


def _fields_for(kind: PaymentMethodKind) -> tuple[str, ...]:
    if kind == PaymentMethodKind.CARD:
        return _CARD_FIELDS
    if kind == PaymentMethodKind.PAYPAL:
        return _PAYPAL_FIELDS
    return _CRYPTO_FIELDS


def _live(db: Session, user_id: uuid.UUID):
    return db.query(PaymentMethod).filter(
        PaymentMethod.user_id == user_id,
        PaymentMethod.deleted_at.is_(None),
    )


def _clear_other_defaults(db: Session, method: PaymentMethod) -> None:
    others = (
        _live(db, method.user_id)
        .filter(
            PaymentMethod.kind == method.kind,
            PaymentMethod.id != method.id,
            PaymentMethod.is_default.is_(True),
        )
        .all()
    )
    for other in others:
        other.is_default = False


def upsert_payment_method(
    db: Session,
    user_id: uuid.UUID,
    kind: PaymentMethodKind,
    provider: str,
    provider_payment_method_id: str,
    is_default: bool = True,
    metadata: dict | None = None,
    **details,
) -> PaymentMethod:
    """Update the live row with this provider id, or insert one.

    Only the fields belonging to ``kind`` are taken from ``details``. Does
    not commit.
    """
    kind = PaymentMethodKind(kind)
    method = (
        _live(db, user_id)
        .filter(PaymentMethod.provider_payment_method_id == provider_payment_method_id)
        .first()
    )
    if method is None:
        method = PaymentMethod(
            user_id=user_id,
            provider_payment_method_id=provider_payment_method_id,
        )
        db.add(method)

    method.kind = kind
    method.provider = provider
    for field in _fields_for(kind):
        if details.get(field) is not None:
            setattr(method, field, details[field])
    if metadata:
        method.extra_metadata = {**(method.extra_metadata or {}), **metadata}

    method.is_default = is_default
    db.flush()
    if is_default:
        _clear_other_defaults(db, method)
        db.flush()
    return method


def list_payment_methods(db: Session, user_id: uuid.UUID) -> list[PaymentMethod]:
    """Live methods, default first, then newest."""
    return (
        _live(db, user_id)
        .order_by(PaymentMethod.is_default.desc(), PaymentMethod.created_at.desc())
        .all()
    )


def _get_owned(db: Session, user_id: uuid.UUID, method_id: uuid.UUID) -> PaymentMethod:
    method = _live(db, user_id).filter(PaymentMethod.id == method_id).first()
    if method is None:
        raise PaymentNotFoundError("Payment method not found")
    return method


def set_default_payment_method(
    db: Session, user_id: uuid.UUID, method_id: uuid.UUID
) -> PaymentMethod:
    method = _get_owned(db, user_id, method_id)
    method.is_default = True
    _clear_other_defaults(db, method)
    db.commit()
    db.refresh(method)
    return method


def delete_payment_method(db: Session, user_id: uuid.UUID, method_id: uuid.UUID) -> None:
    """Soft delete. The provider id becomes free for a new row."""
    method = _get_owned(db, user_id, method_id)
    method.deleted_at = utcnow()
    method.is_default = False
    db.commit()
    logger.info("User %s removed payment method %s", user_id, method_id)
