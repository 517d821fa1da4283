from django.urls import path

from registrations.handlers import (
    RegenerateCheckoutView,
    RegistrationCreateView,
    StripeWebhookView,
)

urlpatterns = [
    path(
        "events/<str:event_id>/registrations",
        RegistrationCreateView.as_view(),
        name="registration-create",
    ),
    path(
        "registrations/<str:registration_id>/checkout",
        RegenerateCheckoutView.as_view(),
        name="registration-checkout",
    ),
    path("webhooks/stripe", StripeWebhookView.as_view(), name="stripe-webhook"),
]
