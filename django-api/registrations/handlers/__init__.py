from registrations.handlers.views import (
    RegenerateCheckoutView,
    RegistrationCreateView,
    StripeWebhookView,
)

__all__ = [
    "RegenerateCheckoutView",
    "RegistrationCreateView",
    "StripeWebhookView",
]
