"""Integration tests for the registration HTTP API.

Stripe is patched at the SDK boundary; everything else runs against the
test database.
Run with: pytest tests/test_registration_api.py -v
"""

import uuid
from decimal import Decimal
from unittest import mock

import pytest
import stripe
from rest_framework.test import APIClient

from registrations import models


def payload(**overrides) -> dict:
    body = {
        "registrant": {
            "first_name": "Maria",
            "last_name": "Lopez",
            "email": "maria@example.com",
        },
        "category": "youth",
        "housing_type": "on_campus",
        "payment_method": "card",
    }
    body.update(overrides)
    return body


def checkout_session(session_id="cs_test_123"):
    return mock.Mock(id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}")


@pytest.fixture
def stripe_session():
    with mock.patch("stripe.checkout.Session.create", return_value=checkout_session()) as create:
        yield create


def post_registration(api_client: APIClient, event_id, body):
    return api_client.post(f"/api/events/{event_id}/registrations", body, format="json")


@pytest.mark.django_db
class TestCreateRegistration:
    """Tests for POST /api/events/{id}/registrations"""

    def test_card_registration(self, api_client, event, stripe_session):
        """Given a card registration, returns 201 with totals and a checkout url."""
        response = post_registration(api_client, event.id, payload())

        assert response.status_code == 201
        data = response.json()
        assert data["total_amount"] == "120.00"
        assert data["deposit_due"] == "60.00"
        assert data["balance_remaining"] == "60.00"
        assert data["checkout_url"] == "https://checkout.stripe.com/c/pay/cs_test_123"
        assert data["confirmation_code"].startswith("SUMMER-")
        assert data["coupon_applied"] is False
        assert data["payment_setup_failed"] is False

        params = stripe_session.call_args.kwargs
        assert params["line_items"][0]["price_data"]["unit_amount"] == 6000
        assert params["metadata"]["confirmation_code"] == data["confirmation_code"]
        assert "payment_intent_data" not in params

        registration = models.Registration.objects.get(pk=data["registration_id"])
        assert registration.registration_status == "incomplete"
        assert registration.payment_balance.payment_status == "unpaid"
        payment = registration.payments.get()
        assert payment.gateway_intent_id == "cs_test_123"
        assert payment.payment_status == "pending"

    def test_connected_account_gets_destination_charge(self, api_client, event, organization, stripe_session):
        """Given a connected payout account, the session routes funds and takes the platform fee."""
        organization.stripe_account_id = "acct_parish"
        organization.stripe_charges_enabled = True
        organization.platform_fee_percentage = Decimal("3.00")
        organization.save()

        response = post_registration(api_client, event.id, payload())

        assert response.status_code == 201
        intent_data = stripe_session.call_args.kwargs["payment_intent_data"]
        assert intent_data["application_fee_amount"] == 180
        assert intent_data["transfer_data"] == {"destination": "acct_parish"}

    def test_check_registration(self, api_client, event, mailoutbox, stripe_session):
        """Given a check registration, returns instructions and emails the registrant."""
        response = post_registration(api_client, event.id, payload(payment_method="check"))

        assert response.status_code == 201
        data = response.json()
        assert data["checkout_url"] is None
        assert data["check_instructions"]["payable_to"] == "St. Mark Youth Ministry"
        stripe_session.assert_not_called()

        [message] = mailoutbox
        assert message.to == ["maria@example.com"]
        assert data["confirmation_code"] in message.body
        log = models.EmailLog.objects.get()
        assert log.sent_status == models.EmailLog.SentStatus.SENT
        assert log.email_type == "registration_check_pending"

        registration = models.Registration.objects.get(pk=data["registration_id"])
        assert registration.registration_status == "pending_payment"
        assert registration.payment_balance.payment_status == "pending_check_payment"

    def test_group_registration_with_coupon(self, api_client, event, stripe_session):
        """Given line items and a coupon, the discount applies to the group subtotal."""
        models.Coupon.objects.create(
            event=event, code="SAVE20", discount_type="percentage", discount_value=Decimal("20")
        )
        body = payload(
            line_items=[
                {"category": "youth", "count": 2, "label": "female youth"},
                {"category": "chaperone", "count": 1},
            ],
            housing_type="off_campus",
            coupon_code="save20",
            group_name="St. Mark Youth",
        )
        del body["category"]

        response = post_registration(api_client, event.id, body)

        assert response.status_code == 201
        data = response.json()
        assert data["subtotal"] == "280.00"
        assert data["total_amount"] == "224.00"
        assert data["discount_amount"] == "56.00"
        assert len(data["line_items"]) == 2
        assert models.Coupon.objects.get().usage_count == 1

    def test_gateway_failure_still_creates_registration(self, api_client, event):
        """Given Stripe errors, returns 201 with payment_setup_failed."""
        with mock.patch(
            "stripe.checkout.Session.create", side_effect=stripe.APIConnectionError("timeout")
        ):
            response = post_registration(api_client, event.id, payload())

        assert response.status_code == 201
        assert response.json()["payment_setup_failed"] is True
        assert models.Registration.objects.count() == 1
        assert models.Payment.objects.count() == 0


@pytest.mark.django_db
class TestCreateRegistrationErrors:
    def test_invalid_body(self, api_client, event):
        """Given a malformed body, returns 400 with field errors."""
        response = post_registration(api_client, event.id, payload(housing_type="tent"))

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_REGISTRATION"
        assert "housing_type" in error["fields"]

    def test_room_without_on_campus(self, api_client, event):
        """Given a room with off-campus housing, returns 400."""
        response = post_registration(
            api_client, event.id, payload(housing_type="off_campus", room_type="single")
        )
        assert response.status_code == 400

    def test_invalid_event_id(self, api_client, db):
        """Given a malformed event id, returns 400."""
        response = post_registration(api_client, "not-a-uuid", payload())
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_EVENT_ID"

    def test_unknown_event(self, api_client, db):
        """Given an unknown event, returns 404."""
        response = post_registration(api_client, uuid.uuid4(), payload())
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "EVENT_NOT_FOUND"

    def test_full_event(self, api_client, event, stripe_session):
        """Given no seats left, returns 409 and writes nothing."""
        event.capacity_total = 1
        event.capacity_remaining = 0
        event.save()

        response = post_registration(api_client, event.id, payload())

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CAPACITY_EXCEEDED"
        assert models.Registration.objects.count() == 0
        stripe_session.assert_not_called()

    def test_closed_event(self, api_client, event):
        """Given a closed event, returns 409 with the organizer's message."""
        event.status = models.Event.Status.REGISTRATION_CLOSED
        event.closed_message = "Registration has closed"
        event.save()

        response = post_registration(api_client, event.id, payload())

        assert response.status_code == 409
        assert response.json()["error"] == {
            "code": "REGISTRATION_CLOSED",
            "message": "Registration has closed",
        }

    def test_missing_price(self, api_client, event):
        """Given a category without a price, returns 422."""
        response = post_registration(api_client, event.id, payload(category="clergy"))
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "MISSING_PRICE_CONFIGURATION"
        assert models.Registration.objects.count() == 0


@pytest.mark.django_db
class TestRegenerateCheckout:
    """Tests for POST /api/registrations/{id}/checkout"""

    def test_new_checkout_after_failure(self, api_client, event):
        """Given a failed payment setup, a retry returns a fresh checkout url."""
        with mock.patch(
            "stripe.checkout.Session.create", side_effect=stripe.APIConnectionError("timeout")
        ):
            registration_id = post_registration(api_client, event.id, payload()).json()["registration_id"]

        with mock.patch("stripe.checkout.Session.create", return_value=checkout_session("cs_retry")):
            response = api_client.post(f"/api/registrations/{registration_id}/checkout")

        assert response.status_code == 201
        assert response.json()["checkout_url"].endswith("cs_retry")
        assert models.Payment.objects.get().amount == Decimal("60.00")

    def test_unknown_registration(self, api_client, db):
        """Given an unknown registration, returns 404."""
        response = api_client.post(f"/api/registrations/{uuid.uuid4()}/checkout")
        assert response.status_code == 404

    def test_gateway_down(self, api_client, event, stripe_session):
        """Given Stripe errors on retry, returns 503."""
        registration_id = post_registration(api_client, event.id, payload()).json()["registration_id"]
        stripe_session.side_effect = stripe.APIConnectionError("timeout")

        response = api_client.post(f"/api/registrations/{registration_id}/checkout")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "PAYMENT_GATEWAY_ERROR"


def completed_event(session_id="cs_test_123", payment_status="paid", event_type="checkout.session.completed"):
    return {
        "type": event_type,
        "data": {"object": {"id": session_id, "payment_status": payment_status}},
    }


@pytest.mark.django_db
class TestStripeWebhook:
    """Tests for POST /api/webhooks/stripe"""

    def post_webhook(self, api_client, event_payload):
        with mock.patch(
            "registrations.handlers.views.construct_webhook_event", return_value=event_payload
        ):
            return api_client.post(
                "/api/webhooks/stripe",
                data=b"{}",
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE="t=1,v1=abc",
            )

    def test_completed_checkout_marks_deposit_paid(self, api_client, event, stripe_session, mailoutbox):
        """Given a completed deposit checkout, the balance is deposit_paid and a receipt is sent."""
        registration_id = post_registration(api_client, event.id, payload()).json()["registration_id"]

        response = self.post_webhook(api_client, completed_event())

        assert response.status_code == 200
        assert response.json() == {"received": True, "payment_status": "deposit_paid"}
        registration = models.Registration.objects.get(pk=registration_id)
        assert registration.registration_status == "pending_payment"
        assert registration.payment_balance.amount_paid == Decimal("60.00")
        assert len(mailoutbox) == 1

    def test_redelivery_is_idempotent(self, api_client, event, stripe_session, mailoutbox):
        """Given the same webhook twice, the payment counts once."""
        registration_id = post_registration(api_client, event.id, payload()).json()["registration_id"]

        self.post_webhook(api_client, completed_event())
        self.post_webhook(api_client, completed_event())

        balance = models.PaymentBalance.objects.get(registration_id=registration_id)
        assert balance.amount_paid == Decimal("60.00")
        assert len(mailoutbox) == 1

    def test_unpaid_session_ignored(self, api_client, event, stripe_session):
        """Given a session still awaiting payment, nothing changes."""
        post_registration(api_client, event.id, payload())

        response = self.post_webhook(api_client, completed_event(payment_status="unpaid"))

        assert response.status_code == 200
        assert models.Payment.objects.get().payment_status == "pending"

    def test_unknown_session_acknowledged(self, api_client, db):
        """Given a session no payment references, acknowledges without error."""
        response = self.post_webhook(api_client, completed_event(session_id="cs_other"))
        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_other_event_types_ignored(self, api_client, db):
        """Given an unrelated event type, acknowledges it."""
        response = self.post_webhook(api_client, {"type": "customer.created", "data": {"object": {}}})
        assert response.status_code == 200

    def test_bad_signature(self, api_client, db):
        """Given a signature that does not verify, returns 400."""
        with mock.patch(
            "registrations.handlers.views.construct_webhook_event",
            side_effect=stripe.SignatureVerificationError("bad signature", "t=1,v1=abc"),
        ):
            response = api_client.post(
                "/api/webhooks/stripe", data=b"{}", content_type="application/json"
            )
        assert response.status_code == 400
