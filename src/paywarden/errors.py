"""Exceptions raised by guard evaluation and the intent lifecycle."""


class PaywardenError(Exception):
    """Base exception for paywarden errors."""


class GuardConfigError(PaywardenError):
    """Raised by a check when its rule's config is missing or malformed."""


class GuardNotFoundError(PaywardenError):
    """Raised when a guard rule id is not in the registry."""


class IntentNotFoundError(PaywardenError):
    """Raised when a payment intent id is not in the repository."""


class InvalidStateError(PaywardenError):
    """Raised when a lifecycle operation is not legal from the intent's status."""

    def __init__(self, intent_id: str, status: str, operation: str) -> None:
        self.intent_id = intent_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} intent {intent_id} in status '{status}'")


class ExecutionTimeoutError(PaywardenError):
    """Raised when the payment executor does not answer within the timeout."""
