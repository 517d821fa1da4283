"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. Counters are only ever
changed through single conditional calls (`reserve`, `increment_usage`)
that report success or failure, never through read-modify-write.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass

from registrations.domain import (
    Coupon,
    CouponId,
    EventId,
    EventPricingPolicy,
    EventProfile,
    PaymentBalance,
    Registration,
    RegistrationId,
)
from registrations.domain.models import (
    CapacityCounter,
    HousingType,
    NewRegistration,
    OptionCounters,
    Payment,
    PaymentStatus,
    RegistrationStatus,
    RoomType,
)
from registrations.domain.value_objects import Money


class UnitOfWork(ABC):
    """Transactional boundary for writes that must land together."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Return a context manager; an exception inside rolls everything back."""
        ...


class EventStore(ABC):
    """Interface for event lookups."""

    @abstractmethod
    def get_event(self, event_id: EventId) -> EventProfile | None:
        """Return an event by ID, or None if not found."""
        ...


class PricingPolicyStore(ABC):
    """Interface for the per-event pricing snapshot."""

    @abstractmethod
    def get(self, event_id: EventId) -> EventPricingPolicy | None:
        """Return the pricing policy of an event, or None if not configured."""
        ...


class CouponStore(ABC):
    """Interface for coupon lookups and usage accounting."""

    @abstractmethod
    def find(self, event_id: EventId, code: str) -> Coupon | None:
        """Return the coupon of the event matching code case-insensitively."""
        ...

    @abstractmethod
    def increment_usage(self, coupon_id: CouponId) -> bool:
        """Add one use if the usage policy still allows it.

        Returns False when no row was updated, meaning the coupon is
        no longer available.
        """
        ...


class CapacityStore(ABC):
    """Interface for seat counters of an event and its housing/room options."""

    @abstractmethod
    def get_counter(self, event_id: EventId) -> CapacityCounter:
        """Return the event counter; untracked counters have None fields."""
        ...

    @abstractmethod
    def get_option_counters(self, event_id: EventId) -> OptionCounters:
        """Return housing and room sub-counters that are configured."""
        ...

    @abstractmethod
    def reserve(self, event_id: EventId, seats: int) -> bool:
        """Atomically take seats from the event counter.

        Succeeds only when at least `seats` remain; the stored value is
        floored at zero.
        """
        ...

    @abstractmethod
    def reserve_option(
        self,
        event_id: EventId,
        seats: int,
        housing_type: HousingType | None = None,
        room_type: RoomType | None = None,
    ) -> bool:
        """Atomically take seats from one housing or room counter."""
        ...


class CodeStore(ABC):
    """Interface for confirmation code lookups."""

    @abstractmethod
    def exists(self, code: str) -> bool:
        """Check if a code is already used anywhere in the system."""
        ...


class RegistrationStore(ABC):
    """Interface for registration persistence."""

    @abstractmethod
    def create(self, registration: NewRegistration) -> Registration:
        """Insert a registration.

        Raises:
            CodeCollisionError: If the confirmation code is already taken.
        """
        ...

    @abstractmethod
    def get(self, registration_id: RegistrationId) -> Registration | None:
        """Return a registration by ID, or None if not found."""
        ...

    @abstractmethod
    def set_status(self, registration_id: RegistrationId, status: RegistrationStatus) -> None:
        ...


class PaymentLedgerStore(ABC):
    """Interface for payment-balance rows and payment records."""

    @abstractmethod
    def create(self, balance: PaymentBalance) -> PaymentBalance:
        """Insert the balance row of a registration."""
        ...

    @abstractmethod
    def get_balance(self, registration_id: RegistrationId) -> PaymentBalance | None:
        ...

    @abstractmethod
    def update_balance(
        self,
        registration_id: RegistrationId,
        amount_paid: Money,
        amount_remaining: Money,
        status: PaymentStatus,
    ) -> None:
        ...

    @abstractmethod
    def create_payment(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    def find_payment_by_intent(self, intent_id: str) -> Payment | None:
        ...

    @abstractmethod
    def mark_payment_succeeded(self, intent_id: str) -> bool:
        """Mark a not yet succeeded payment as succeeded.

        Returns False when it already was, so only one of several
        concurrent deliveries acts on the completion.
        """
        ...

    @abstractmethod
    def list_succeeded_payments(self, registration_id: RegistrationId) -> list[Payment]:
        ...

    @abstractmethod
    def list_pending_payments(self, registration_id: RegistrationId) -> list[Payment]:
        ...


@dataclass(frozen=True)
class NotificationLogEntry:
    organization_id: str
    event_id: EventId
    registration_id: RegistrationId
    recipient: str
    template_id: str
    subject: str
    sent: bool
    error_message: str | None = None


class NotificationLogStore(ABC):
    """Interface for the durable log of notification attempts."""

    @abstractmethod
    def record(self, entry: NotificationLogEntry) -> None:
        ...
