# src/domain/actors.py

from dataclasses import dataclass
from enum import Enum

from src.domain.exceptions import ForbiddenError


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as supplied by the identity provider."""

    id: int
    email: str
    role: ActorRole


@dataclass(frozen=True)
class Actor:
    """
    The principal's role relative to one booking.
    Resolved once per request and passed to the transition policy.
    """

    role: ActorRole
    id: int

    @property
    def is_customer(self) -> bool:
        return self.role is ActorRole.CUSTOMER

    @property
    def is_provider(self) -> bool:
        return self.role is ActorRole.PROVIDER


def resolve_actor(principal: Principal, customer_id: int, provider_id: int) -> Actor:
    """
    Raises ForbiddenError unless the principal is the booking's
    customer or the booking's provider.
    """
    if principal.role is ActorRole.CUSTOMER and principal.id == customer_id:
        return Actor(role=ActorRole.CUSTOMER, id=principal.id)

    if principal.role is ActorRole.PROVIDER and principal.id == provider_id:
        return Actor(role=ActorRole.PROVIDER, id=principal.id)

    raise ForbiddenError("Access denied")
