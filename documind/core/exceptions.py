"""
Domain exceptions raised by the service layer.

Endpoints translate these into HTTP responses; services never build
HTTPException themselves.
"""


class DocuMindError(Exception):
    """Base class for all service-level errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PlanNotFoundError(DocuMindError):
    """Raised when a plan name does not resolve to an active plan."""

    def __init__(self, plan_name: str):
        self.plan_name = plan_name
        super().__init__(f"Plan not found: {plan_name}")


class SubscriptionNotFoundError(DocuMindError):
    """Raised when a user has no active subscription to act on."""


class PaymentNotFoundError(DocuMindError):
    """Raised when a checkout order or provider charge cannot be found."""


class PaymentOwnershipError(DocuMindError):
    """Raised when a charge belongs to a different user."""


class PaymentAmountMismatchError(DocuMindError):
    """Raised when the captured amount differs from the server-held order."""


class PaymentProviderError(DocuMindError):
    """Raised when a payment provider call fails or is misconfigured."""


class UsageLimitExceeded(DocuMindError):
    """Raised when a plan limit denies an action."""

    def __init__(self, message: str, metric: str, current: int, limit: int | None):
        self.metric = metric
        self.current = current
        self.limit = limit
        super().__init__(message)


class QnABackendError(DocuMindError):
    """Raised when the external AI Q&A service fails."""


class StorageError(DocuMindError):
    """Raised when document storage fails."""


class InvalidCheckoutError(DocuMindError):
    """Raised when a checkout request cannot be priced or started."""
