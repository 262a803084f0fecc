class PaymentError(Exception):
    """Base class for failures the HTTP layer maps to a response."""


class ValidationError(PaymentError):
    """A required field is missing or unusable. Nothing was written."""


class AuthenticationError(PaymentError):
    """A callback could not be authenticated. Nothing was written."""


class AmountMismatchError(AuthenticationError):
    def __init__(self, transaction_id: str, expected: str, received: str):
        super().__init__(
            f"amount mismatch for {transaction_id}: expected {expected}, received {received}"
        )
        self.transaction_id = transaction_id
        self.expected = expected
        self.received = received


class StoreError(PaymentError):
    """The data store is unavailable or rejected the operation."""
