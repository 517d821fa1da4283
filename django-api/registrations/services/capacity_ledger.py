"""Seat accounting for an event and its housing and room options.

Capacity is checked before anything is written, and taken only after the
registration and its payment balance exist. A crash in between leaves the
counter under-decremented; losing a race for the last seats at that point
is logged and the registration stands.
"""

import logging
from dataclasses import dataclass

from registrations.domain import EventId
from registrations.domain.errors import CapacityExceededError
from registrations.domain.models import (
    CapacityCounter,
    HousingType,
    OptionCounters,
    RoomType,
)
from registrations.stores.interfaces import CapacityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacityHold:
    """Which counters a registration has to take seats from."""

    event_id: EventId
    seats: int
    event_tracked: bool = False
    housing_type: HousingType | None = None
    room_type: RoomType | None = None

    @property
    def is_unlimited(self) -> bool:
        return not (self.event_tracked or self.housing_type or self.room_type)


def _has_room(counter: CapacityCounter | None, seats: int) -> bool:
    if counter is None or not counter.is_tracked:
        return True
    return counter.remaining > 0 and counter.remaining >= seats


def check_option_capacity(
    event_id: EventId,
    options: OptionCounters,
    housing_type: HousingType,
    room_type: RoomType | None,
    seats: int,
) -> tuple[bool, bool]:
    """Check housing and room sub-counters.

    Room counters only apply to on-campus housing. Returns whether each of
    the two counters is tracked.

    Raises:
        CapacityExceededError: If a tracked option cannot hold the party.
    """
    housing = options.housing.get(housing_type)
    if not _has_room(housing, seats):
        raise CapacityExceededError(
            str(event_id), seats, max(housing.remaining, 0), option=housing_type.value
        )

    room = None
    if room_type is not None and housing_type is HousingType.ON_CAMPUS:
        room = options.rooms.get(room_type)
        if not _has_room(room, seats):
            raise CapacityExceededError(
                str(event_id), seats, max(room.remaining, 0), option=f"{room_type.value} room"
            )

    return (
        housing is not None and housing.is_tracked,
        room is not None and room.is_tracked,
    )


class CapacityLedger:
    """Checks and takes seats through a CapacityStore."""

    def __init__(self, store: CapacityStore) -> None:
        self._store = store

    def counter(self, event_id: EventId) -> CapacityCounter:
        return self._store.get_counter(event_id)

    def ensure_available(
        self,
        event_id: EventId,
        seats: int,
        housing_type: HousingType,
        room_type: RoomType | None = None,
    ) -> CapacityHold:
        """Refuse before any write when the event or an option is full.

        Raises:
            CapacityExceededError: If there are not enough seats left.
        """
        counter = self._store.get_counter(event_id)
        if not _has_room(counter, seats):
            raise CapacityExceededError(str(event_id), seats, max(counter.remaining, 0))

        housing_tracked, room_tracked = check_option_capacity(
            event_id, self._store.get_option_counters(event_id), housing_type, room_type, seats
        )
        return CapacityHold(
            event_id=event_id,
            seats=seats,
            event_tracked=counter.is_tracked,
            housing_type=housing_type if housing_tracked else None,
            room_type=room_type if room_tracked else None,
        )

    def reserve(self, hold: CapacityHold) -> bool:
        """Take the seats of a hold. Unlimited holds never touch storage.

        Returns False when any tracked counter no longer had enough seats;
        counters that did have room are still decremented.
        """
        if hold.is_unlimited:
            return True

        reserved = True
        if hold.event_tracked and not self._store.reserve(hold.event_id, hold.seats):
            logger.warning(
                "Event %s ran out of capacity before %s seats were taken",
                hold.event_id,
                hold.seats,
            )
            reserved = False
        if hold.housing_type is not None and not self._store.reserve_option(
            hold.event_id, hold.seats, housing_type=hold.housing_type
        ):
            logger.warning(
                "Event %s ran out of %s capacity", hold.event_id, hold.housing_type.value
            )
            reserved = False
        if hold.room_type is not None and not self._store.reserve_option(
            hold.event_id, hold.seats, room_type=hold.room_type
        ):
            logger.warning("Event %s ran out of %s rooms", hold.event_id, hold.room_type.value)
            reserved = False
        return reserved
