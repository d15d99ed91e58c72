"""Domain errors reported synchronously to callers of the core."""

from __future__ import annotations


class TourismDomainError(Exception):
    """Base class for every rule violation raised by the core."""


class CapacityExceeded(TourismDomainError):
    """Raised when a service or plan is full for the requested window."""

    def __init__(self, message: str, *, capacity: int, occupied: int, requested: int):
        super().__init__(message)
        self.capacity = capacity
        self.occupied = occupied
        self.requested = requested


class InvalidStateTransition(TourismDomainError):
    """Raised when a lifecycle move is not allowed from the current state."""

    def __init__(self, message: str, *, current: str | None = None, target: str | None = None):
        super().__init__(message)
        self.current = current
        self.target = target


class IncompleteItinerary(TourismDomainError):
    """Raised when a plan and its days fail validation."""

    def __init__(self, problems: list[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


class PaymentBeforeConfirmation(TourismDomainError):
    """Raised when payment is recorded on an enrollment that is not confirmed yet."""


class PlanNotAvailable(TourismDomainError):
    """Raised when enrolling into a plan that is not active and public."""


class CodeGenerationExhausted(TourismDomainError):
    """Fatal: no free reservation code was found within the retry ceiling."""


class ConcurrencyConflict(TourismDomainError):
    """Transient: the database kept rejecting the write, the caller may try again."""
