import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from documind.api import deps
from documind.api.errors import http_error
from documind.core.exceptions import PaymentNotFoundError, SubscriptionNotFoundError
from documind.models.user import User
from documind.schemas.billing import (
    BillingHistoryResponse,
    PaymentMethodResponse,
    PlanResponse,
    SubscriptionLimitsResponse,
    SubscriptionResponse,
)
from documind.services import billing_history as billing_history_service
from documind.services import limits as limit_service
from documind.services import payment_methods as payment_method_service
from documind.services import plans as plan_service
from documind.services import subscriptions as subscription_service

router = APIRouter()


@router.get("/plans", response_model=list[PlanResponse])
def list_plans(db: Session = Depends(deps.get_db)):
    """List all available subscription plans."""
    return plan_service.list_active_plans(db)


@router.get("/subscription", response_model=SubscriptionResponse | None)
def get_subscription(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    """The user's active subscription, or null before the first limit check."""
    return subscription_service.get_active_subscription(db, current_user.id)


@router.post("/subscription/cancel", response_model=SubscriptionResponse)
def cancel_subscription(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    """Cancel at the end of the current period. Access continues until then."""
    try:
        return subscription_service.cancel_subscription(db, current_user.id)
    except SubscriptionNotFoundError as e:
        raise http_error(e)


@router.post("/subscription/resume", response_model=SubscriptionResponse)
def resume_subscription(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    try:
        return subscription_service.resume_subscription(db, current_user.id)
    except SubscriptionNotFoundError as e:
        raise http_error(e)


@router.get("/limits", response_model=SubscriptionLimitsResponse)
def get_limits(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    """Current usage against the plan's limits."""
    return limit_service.check_subscription_limits(db, current_user.id)


@router.get("/history", response_model=list[BillingHistoryResponse])
def get_billing_history(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    return billing_history_service.list_billing_history(db, current_user.id, limit=limit)


@router.get("/payment-methods", response_model=list[PaymentMethodResponse])
def list_payment_methods(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    return payment_method_service.list_payment_methods(db, current_user.id)


@router.post("/payment-methods/{method_id}/default", response_model=PaymentMethodResponse)
def set_default_payment_method(
    method_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    try:
        return payment_method_service.set_default_payment_method(db, current_user.id, method_id)
    except PaymentNotFoundError as e:
        raise http_error(e)


@router.delete("/payment-methods/{method_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment_method(
    method_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    try:
        payment_method_service.delete_payment_method(db, current_user.id, method_id)
    except PaymentNotFoundError as e:
        raise http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
