"""Custom exceptions for the order pipeline.

Business-rule failures (stock, prices, totals) are returned as FieldError
lists, not raised. These exceptions cover conditions the caller cannot fix
by correcting the request.
"""


class ShopError(Exception):
    """Base exception for all order pipeline errors."""

    pass


class TransactionConflictError(ShopError):
    """Raised when an order transaction keeps conflicting with concurrent writes."""

    def __init__(self, attempts: int, last_error: str | None = None):
        self.attempts = attempts
        self.last_error = last_error
        msg = f"Order transaction aborted after {attempts} conflicting attempts"
        if last_error:
            msg = f"{msg}: {last_error}"
        super().__init__(msg)


class ConfigurationError(ShopError):
    """Raised when a collaborator is used without its configuration."""

    def __init__(self, component: str, missing: str):
        self.component = component
        self.missing = missing
        super().__init__(f"{component} is not configured (missing {missing})")


class SideEffectError(ShopError):
    """Raised by a post-commit side effect that failed and may be retried."""

    def __init__(self, kind: str, order_id: str, reason: str):
        self.kind = kind
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Side effect '{kind}' failed for order {order_id}: {reason}")
