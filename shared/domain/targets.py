"""
Media attachment targets

A showcase slide attaches to exactly one entity out of a closed set of
kinds. Each kind carries its own typed reference instead of a loose
(type string, id) pair.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from shared.domain.base import ValueObject


class TargetKind(str, Enum):
    SERVICE = 'service'
    PROVIDER = 'provider'
    PLAN = 'plan'


@dataclass(frozen=True)
class ServiceTarget(ValueObject):
    service_id: int
    kind = TargetKind.SERVICE


@dataclass(frozen=True)
class ProviderTarget(ValueObject):
    provider_id: int
    kind = TargetKind.PROVIDER


@dataclass(frozen=True)
class PlanTarget(ValueObject):
    plan_id: int
    kind = TargetKind.PLAN


MediaTarget = Union[ServiceTarget, ProviderTarget, PlanTarget]


def target_for(kind: TargetKind | str, target_id: int) -> MediaTarget:
    """Build the typed target for a stored (kind, id) pair"""
    kind = TargetKind(kind)
    if kind is TargetKind.SERVICE:
        return ServiceTarget(service_id=target_id)
    if kind is TargetKind.PROVIDER:
        return ProviderTarget(provider_id=target_id)
    if kind is TargetKind.PLAN:
        return PlanTarget(plan_id=target_id)
    raise ValueError(f"Unknown target kind: {kind}")
