"""Card payment gateway.

`PaymentGateway` is what the registration engine depends on; the Stripe
implementation creates a hosted Checkout Session whose id doubles as the
intent reference stored on the pending payment record.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import stripe
from django.conf import settings

from registrations.domain.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeIntentRequest:
    """A charge to collect, amounts in the currency's minor unit."""

    amount_cents: int
    currency: str
    description: str
    success_url: str
    cancel_url: str
    platform_fee_cents: int | None = None
    destination_account: str | None = None
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ChargeIntent:
    intent_id: str
    redirect_url: str


class PaymentGateway(ABC):
    """Interface for card payment providers."""

    @abstractmethod
    def create_charge_intent(self, request: ChargeIntentRequest) -> ChargeIntent:
        """Create a hosted payment page for the charge.

        Raises:
            PaymentGatewayError: If the provider refused or was unreachable.
        """
        ...


class StripePaymentGateway(PaymentGateway):
    """Stripe Checkout with optional Connect destination charges."""

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY

    def create_charge_intent(self, request: ChargeIntentRequest) -> ChargeIntent:
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": request.currency,
                        "product_data": {"name": request.description},
                        "unit_amount": request.amount_cents,
                    },
                    "quantity": 1,
                }
            ],
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata": request.metadata,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email
        if request.destination_account:
            params["payment_intent_data"] = {
                "application_fee_amount": request.platform_fee_cents or 0,
                "transfer_data": {"destination": request.destination_account},
            }

        try:
            session = stripe.checkout.Session.create(api_key=self._api_key, **params)
        except stripe.StripeError as exc:
            logger.exception("Stripe checkout session creation failed")
            raise PaymentGatewayError(str(exc)) from exc
        return ChargeIntent(intent_id=session.id, redirect_url=session.url)


def construct_webhook_event(payload: bytes, signature: str, secret: str | None = None):
    """Verify a Stripe webhook payload and return the parsed event.

    Raises:
        ValueError: If the payload is not valid JSON.
        stripe.SignatureVerificationError: If the signature does not match.
    """
    return stripe.Webhook.construct_event(
        payload,
        signature,
        secret if secret is not None else settings.STRIPE_WEBHOOK_SECRET,
    )
