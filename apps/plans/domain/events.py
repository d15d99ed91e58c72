"""
Plan Domain Events

Published after the surrounding transaction commits.
"""

from dataclasses import dataclass
from decimal import Decimal

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class PlanPublished(DomainEvent):
    """
    Event: Plan became ACTIVE and public

    Triggers:
    - Add the plan to the public listing
    """
    plan_id: int
    duration_days: int


@dataclass(kw_only=True)
class EnrollmentCreated(DomainEvent):
    """
    Event: User enrolled into a plan (PENDING)

    Triggers:
    - Notify the plan organizer
    """
    enrollment_id: int
    plan_id: int
    user_id: int
    participant_count: int


@dataclass(kw_only=True)
class EnrollmentStatusChanged(DomainEvent):
    """Event: Any lifecycle move of an enrollment"""
    enrollment_id: int
    old_status: str
    new_status: str


@dataclass(kw_only=True)
class EnrollmentPaymentRecorded(DomainEvent):
    """
    Event: Amount paid and payment method stored

    Triggers:
    - Send the receipt to the participant
    """
    enrollment_id: int
    amount: Decimal
    method: str
