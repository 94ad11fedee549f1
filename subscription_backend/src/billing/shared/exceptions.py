"""
Billing Exceptions

Custom exception classes for billing-related errors.
These provide structured error handling across the billing module.

The user-visible message is always the upstream text (vault or gateway
response message), never an internal code.
"""


class BillingError(Exception):
    """
    Base exception for all billing-related errors.

    All billing exceptions inherit from this class, allowing for
    broad exception handling when needed.
    """

    def __init__(self, message: str, code: str = "BILLING_ERROR", details: dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }


class ValidationError(BillingError):
    """
    Raised when a requested change is rejected before any mutation.

    Examples:
        - Switching to a plan whose user limit is below the current user count
    """

    def __init__(
        self,
        message: str = "Validation failed",
        code: str = "VALIDATION_ERROR",
        field: str = None
    ):
        super().__init__(
            message=message,
            code=code,
            details={'field': field} if field else {}
        )
        self.field = field


class SubscriptionError(BillingError):
    """
    Raised when there's an issue with subscription management.

    Examples:
        - Subscription not found
    """

    def __init__(
        self,
        message: str = "Subscription error",
        code: str = "SUBSCRIPTION_ERROR",
        subscription_id: str = None
    ):
        super().__init__(
            message=message,
            code=code,
            details={'subscription_id': subscription_id} if subscription_id else {}
        )
        self.subscription_id = subscription_id


class PaymentError(BillingError):
    """
    Raised when the card vault or the gateway refuses an operation.

    Examples:
        - Card storage failed
        - Card removal failed
        - Charge declined

    The message is the vault/gateway response message, verbatim.
    """

    def __init__(
        self,
        message: str = "Payment processing error",
        code: str = "PAYMENT_ERROR",
        subscription_id: str = None,
        gateway_message: str = None
    ):
        details = {}
        if subscription_id:
            details['subscription_id'] = subscription_id
        if gateway_message:
            details['gateway_message'] = gateway_message

        super().__init__(
            message=message,
            code=code,
            details=details
        )
        self.subscription_id = subscription_id
        self.gateway_message = gateway_message


class ReconciliationFault(BillingError):
    """
    Raised when money may have moved but local records may be incomplete.

    Two situations:
        - RECONCILIATION_REQUIRED: the gateway charge succeeded but the
          durable write (subscription update or ledger append) failed
        - CHARGE_OUTCOME_UNKNOWN: the gateway call timed out, so the charge
          may or may not have posted

    Neither case is recoverable locally. Do not retry the charge without
    first checking whether the transaction already posted.
    """

    def __init__(
        self,
        message: str = "Reconciliation required",
        code: str = "RECONCILIATION_REQUIRED",
        subscription_id: str = None,
        transaction_id: str = None,
        amount: str = None
    ):
        details = {}
        if subscription_id:
            details['subscription_id'] = subscription_id
        if transaction_id:
            details['transaction_id'] = transaction_id
        if amount is not None:
            details['amount'] = str(amount)
        super().__init__(
            message=message,
            code=code,
            details=details
        )
        self.subscription_id = subscription_id
        self.transaction_id = transaction_id
        self.amount = amount


class CircuitBreakerOpenError(BillingError):
    """Raised when the circuit breaker is open and preventing calls."""

    def __init__(
        self,
        message: str = "Circuit breaker is open. Service temporarily unavailable.",
        service_name: str = "stripe",
        reset_time: float = None
    ):
        super().__init__(
            message=message,
            code="CIRCUIT_BREAKER_OPEN",
            details={
                'service_name': service_name,
                'reset_time': reset_time
            }
        )
        self.service_name = service_name
        self.reset_time = reset_time
