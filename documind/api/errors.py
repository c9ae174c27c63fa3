"""Translate service exceptions into HTTP responses."""

from fastapi import HTTPException, status

from documind.core.exceptions import (
    DocuMindError,
    InvalidCheckoutError,
    PaymentAmountMismatchError,
    PaymentNotFoundError,
    PaymentOwnershipError,
    PaymentProviderError,
    PlanNotFoundError,
    QnABackendError,
    StorageError,
    SubscriptionNotFoundError,
    UsageLimitExceeded,
)

STATUS_CODES = {
    PlanNotFoundError: status.HTTP_404_NOT_FOUND,
    SubscriptionNotFoundError: status.HTTP_404_NOT_FOUND,
    PaymentNotFoundError: status.HTTP_404_NOT_FOUND,
    PaymentOwnershipError: status.HTTP_403_FORBIDDEN,
    UsageLimitExceeded: status.HTTP_403_FORBIDDEN,
    InvalidCheckoutError: status.HTTP_400_BAD_REQUEST,
    PaymentAmountMismatchError: status.HTTP_409_CONFLICT,
    PaymentProviderError: status.HTTP_502_BAD_GATEWAY,
    QnABackendError: status.HTTP_502_BAD_GATEWAY,
    StorageError: status.HTTP_502_BAD_GATEWAY,
}


def http_error(exc: DocuMindError) -> HTTPException:
    status_code = STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=exc.message)
