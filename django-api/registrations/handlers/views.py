"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import logging

import stripe
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from registrations.domain.errors import DomainError, ErrorCode, PaymentNotFoundError
from registrations.handlers.serializers import (
    RegistrationRequestSerializer,
    RegistrationResultSerializer,
)
from registrations.integrations.gateway import construct_webhook_event
from registrations.services.factory import (
    build_payment_confirmation_service,
    build_registration_service,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorCode.INVALID_EVENT_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_REGISTRATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.REGISTRATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.REGISTRATION_CLOSED: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATUS_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.MISSING_PRICE_CONFIGURATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.CODE_COLLISION: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.CODE_GENERATION_EXHAUSTED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.PAYMENT_GATEWAY_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}

PAYMENT_COMPLETED_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


def error_response(error: DomainError) -> Response:
    http_status = ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if error.code is ErrorCode.MISSING_PRICE_CONFIGURATION:
        logger.error("Pricing misconfigured: %s", error)
    elif http_status >= 500:
        logger.error("Registration request failed: %s", error)
    return Response(
        {"error": {"code": error.code.value, "message": error.message}},
        status=http_status,
    )


class RegistrationCreateView(APIView):
    """Handler for POST /api/events/{event_id}/registrations"""

    def post(self, request: Request, event_id: str) -> Response:
        serializer = RegistrationRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {
                    "error": {
                        "code": ErrorCode.INVALID_REGISTRATION.value,
                        "message": "Invalid registration request",
                        "fields": serializer.errors,
                    }
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            result = build_registration_service().register(serializer.to_request(event_id))
        except DomainError as error:
            return error_response(error)
        return Response(RegistrationResultSerializer(result).data, status=status.HTTP_201_CREATED)


class RegenerateCheckoutView(APIView):
    """Handler for POST /api/registrations/{registration_id}/checkout"""

    def post(self, request: Request, registration_id: str) -> Response:
        try:
            checkout_url = build_registration_service().regenerate_checkout(registration_id)
        except DomainError as error:
            return error_response(error)
        return Response({"checkout_url": checkout_url}, status=status.HTTP_201_CREATED)


@method_decorator(csrf_exempt, name="dispatch")
class StripeWebhookView(APIView):
    """Handler for POST /api/webhooks/stripe"""

    authentication_classes = []
    permission_classes = []

    def post(self, request: Request) -> Response:
        signature = request.META.get("HTTP_STRIPE_SIGNATURE", "")
        try:
            event = construct_webhook_event(request.body, signature)
        except (ValueError, stripe.SignatureVerificationError):
            logger.warning("Rejected Stripe webhook with an invalid payload or signature")
            return Response(status=status.HTTP_400_BAD_REQUEST)

        if event["type"] not in PAYMENT_COMPLETED_EVENTS:
            return Response({"received": True})

        session = event["data"]["object"]
        if session["payment_status"] not in ("paid", "no_payment_required"):
            return Response({"received": True})

        try:
            balance = build_payment_confirmation_service().confirm(session["id"])
        except PaymentNotFoundError:
            logger.warning("Stripe session %s matches no payment", session["id"])
            return Response({"received": True})
        except DomainError as error:
            return error_response(error)
        return Response({"received": True, "payment_status": balance.payment_status.value})
