"""Whether an event accepts registrations at a given moment."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from registrations.domain.models import CapacityCounter, RegistrationWindow

CLOSING_SOON = timedelta(hours=48)


class AvailabilityStatus(str, Enum):
    NOT_YET_OPEN = "not_yet_open"
    OPEN = "open"
    CLOSING_SOON = "closing_soon"
    CLOSED = "closed"
    AT_CAPACITY = "at_capacity"
    EVENT_ENDED = "event_ended"


@dataclass(frozen=True)
class Availability:
    status: AvailabilityStatus
    message: str
    allow_registration: bool
    allow_waitlist: bool
    spots_remaining: int | None
    closes_at: datetime | None = None


def registration_availability(
    window: RegistrationWindow, capacity: CapacityCounter, now: datetime
) -> Availability:
    """Evaluate the window rules in priority order.

    A manual close wins over everything, then a finished event, a full
    event, a window that has not opened yet and a window that has closed.
    Registration closes at the earlier of the close date and the event start.
    """
    remaining = capacity.remaining

    if window.manually_closed:
        return Availability(
            status=AvailabilityStatus.CLOSED,
            message=window.closed_message or "Registration is closed",
            allow_registration=False,
            allow_waitlist=window.waitlist_enabled,
            spots_remaining=remaining,
        )

    if now > window.end_date:
        return Availability(
            status=AvailabilityStatus.EVENT_ENDED,
            message="This event has ended",
            allow_registration=False,
            allow_waitlist=False,
            spots_remaining=None,
        )

    if capacity.is_tracked and remaining <= 0:
        return Availability(
            status=AvailabilityStatus.AT_CAPACITY,
            message="Event is at full capacity",
            allow_registration=False,
            allow_waitlist=window.waitlist_enabled,
            spots_remaining=0,
        )

    if window.opens_at is not None and now < window.opens_at:
        return Availability(
            status=AvailabilityStatus.NOT_YET_OPEN,
            message="Registration opens soon",
            allow_registration=False,
            allow_waitlist=False,
            spots_remaining=remaining,
        )

    closes_at = window.start_date
    if window.closes_at is not None:
        closes_at = min(window.closes_at, window.start_date)
    if now > closes_at:
        return Availability(
            status=AvailabilityStatus.CLOSED,
            message="Registration is closed",
            allow_registration=False,
            allow_waitlist=window.waitlist_enabled,
            spots_remaining=remaining,
        )

    if closes_at - now <= CLOSING_SOON:
        return Availability(
            status=AvailabilityStatus.CLOSING_SOON,
            message="Registration closes soon!",
            allow_registration=True,
            allow_waitlist=False,
            spots_remaining=remaining,
            closes_at=closes_at,
        )

    return Availability(
        status=AvailabilityStatus.OPEN,
        message="Registration is open",
        allow_registration=True,
        allow_waitlist=False,
        spots_remaining=remaining,
        closes_at=closes_at,
    )
