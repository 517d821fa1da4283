"""Domain error codes for the registrations module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    INVALID_EVENT_ID = "INVALID_EVENT_ID"
    INVALID_REGISTRATION = "INVALID_REGISTRATION"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    MISSING_PRICE_CONFIGURATION = "MISSING_PRICE_CONFIGURATION"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    CODE_COLLISION = "CODE_COLLISION"
    CODE_GENERATION_EXHAUSTED = "CODE_GENERATION_EXHAUSTED"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class EventNotFoundError(DomainError):
    """Raised when an event or its pricing is not found."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found or pricing not configured",
        )
        self.event_id = event_id


class InvalidEventIdError(DomainError):
    """Raised when an event ID is invalid."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_EVENT_ID,
            message="Invalid event ID format",
        )


class RegistrationValidationError(DomainError):
    """Raised for caller-correctable input problems, before any pricing step."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(code=ErrorCode.INVALID_REGISTRATION, message=message)
        self.field = field


class RegistrationClosedError(DomainError):
    """Raised when the event does not accept registrations right now."""

    def __init__(self, event_id: str, status: str, message: str) -> None:
        super().__init__(code=ErrorCode.REGISTRATION_CLOSED, message=message)
        self.event_id = event_id
        self.status = status


class MissingPriceConfigurationError(DomainError):
    """Raised when a required base price is not configured for a category."""

    def __init__(self, category: str) -> None:
        super().__init__(
            code=ErrorCode.MISSING_PRICE_CONFIGURATION,
            message="Pricing is not configured for this registration",
        )
        self.category = category


class CapacityExceededError(DomainError):
    """Raised when the event, or a housing or room option, has no room left."""

    def __init__(self, event_id: str, requested: int, remaining: int, option: str | None = None) -> None:
        if option:
            message = f"Only {remaining} {option.replace('_', ' ')} spots remaining"
        elif remaining <= 0:
            message = "Event is at full capacity"
        else:
            message = f"Only {remaining} spots remaining, but {requested} requested"
        super().__init__(code=ErrorCode.CAPACITY_EXCEEDED, message=message)
        self.event_id = event_id
        self.requested = requested
        self.remaining = remaining
        self.option = option


class CodeCollisionError(DomainError):
    """Raised by a store when an insert hits the unique code constraint."""

    def __init__(self, code: str) -> None:
        super().__init__(
            code=ErrorCode.CODE_COLLISION,
            message="Confirmation code already in use",
        )
        self.confirmation_code = code


class CodeGenerationExhaustedError(DomainError):
    """Raised when no unique code was found within the attempt budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            code=ErrorCode.CODE_GENERATION_EXHAUSTED,
            message="Could not allocate a confirmation code, please retry",
        )
        self.attempts = attempts


class RegistrationNotFoundError(DomainError):
    """Raised when a registration is not found."""

    def __init__(self, registration_id: str) -> None:
        super().__init__(
            code=ErrorCode.REGISTRATION_NOT_FOUND,
            message="Registration not found",
        )
        self.registration_id = registration_id


class InvalidStatusTransitionError(DomainError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_STATUS_TRANSITION,
            message=f"Cannot move from {current} to {target}",
        )
        self.current = current
        self.target = target


class PaymentGatewayError(DomainError):
    """Raised by gateway adapters when the charge intent cannot be created."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_GATEWAY_ERROR,
            message="Payment provider unavailable",
        )
        self.detail = detail


class PaymentNotFoundError(DomainError):
    """Raised when a gateway completion event matches no payment record."""

    def __init__(self, intent_id: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_NOT_FOUND,
            message="Payment not found",
        )
        self.intent_id = intent_id
