"""Custom exceptions for the order execution pipeline."""

from __future__ import annotations


class OrderEngineError(Exception):
    """Base error for order engine failures."""


class InfrastructureFault(OrderEngineError):
    """Transient fault; the scheduler may re-run the whole order."""


class QuoteUnavailable(InfrastructureFault):
    """Raised when a venue fails to quote or times out."""

    def __init__(self, venue: str, reason: str) -> None:
        self.venue = venue
        self.reason = reason
        super().__init__(f"Quote unavailable from {venue}: {reason}")


class ExecutionUnavailable(InfrastructureFault):
    """Raised when a settlement could not be attempted (network failure, timeout)."""

    def __init__(self, venue: str, reason: str) -> None:
        self.venue = venue
        self.reason = reason
        super().__init__(f"Execution unavailable on {venue}: {reason}")


class UnexpectedFault(InfrastructureFault):
    """Wraps any error the pipeline does not know how to classify."""


class BusinessFailure(OrderEngineError):
    """Legitimate terminal outcome; never retried by the scheduler."""


class LimitNotReached(BusinessFailure):
    """Raised when the price gate exhausts its attempts."""

    def __init__(self, attempts: int, best_price: float, limit_price: float) -> None:
        self.attempts = attempts
        self.best_price = best_price
        self.limit_price = limit_price
        super().__init__(
            f"Limit price not reached after {attempts} attempts. "
            f"Best price: ${best_price:.2f}, Limit: ${limit_price:.2f}"
        )


class ExecutionFailed(BusinessFailure):
    """Raised when a venue rejects the settlement."""

    def __init__(self, venue: str, reason: str) -> None:
        self.venue = venue
        self.reason = reason
        super().__init__(f"Execution failed on {venue}: {reason}")


class UnsupportedOrderKind(BusinessFailure):
    """Raised for reserved order kinds that carry no behaviour."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Order kind {kind} is not supported")


class InvalidOrder(BusinessFailure):
    """Raised when a stored order is missing a field its kind requires."""

    def __init__(self, order_id: str, reason: str) -> None:
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Order {order_id} is invalid: {reason}")


class OrderNotFoundError(OrderEngineError):
    """Raised when an order id is unknown to the record store."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class InvalidTransitionError(OrderEngineError):
    """Raised when a status update would move an order backwards."""


class SchedulerClosedError(OrderEngineError):
    """Raised when submitting to a scheduler that is stopping or stopped."""
