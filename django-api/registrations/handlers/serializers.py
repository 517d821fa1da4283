"""Serializers for registration requests and results.

Input serializers only check shape and enumerations; they turn valid
payloads into domain request objects. Output serializers read domain
results, never ORM models.
"""

from rest_framework import serializers

from registrations.domain.models import (
    HousingType,
    ParticipantCategory,
    PaymentMethod,
    PriceTier,
    Registrant,
    RoomType,
)
from registrations.domain.requests import LineItemRequest, RegistrationRequest


def _enum_choices(enum) -> list[str]:
    return [member.value for member in enum]


class RegistrantSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")


class LineItemSerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=_enum_choices(ParticipantCategory))
    count = serializers.IntegerField(min_value=0)
    label = serializers.CharField(max_length=100, required=False, allow_null=True, default=None)


class RegistrationRequestSerializer(serializers.Serializer):
    """Request body of POST /api/events/{event_id}/registrations.

    Either `line_items` (group) or a single `category` (one person).
    """

    registrant = RegistrantSerializer()
    line_items = LineItemSerializer(many=True, required=False)
    category = serializers.ChoiceField(
        choices=_enum_choices(ParticipantCategory), required=False
    )
    housing_type = serializers.ChoiceField(choices=_enum_choices(HousingType))
    room_type = serializers.ChoiceField(
        choices=_enum_choices(RoomType), required=False, allow_null=True, default=None
    )
    meal_package = serializers.BooleanField(required=False, default=False)
    coupon_code = serializers.CharField(
        max_length=64, required=False, allow_blank=True, allow_null=True, default=None
    )
    payment_method = serializers.ChoiceField(choices=_enum_choices(PaymentMethod))
    price_tier = serializers.ChoiceField(
        choices=_enum_choices(PriceTier), required=False, allow_null=True, default=None
    )
    group_name = serializers.CharField(
        max_length=255, required=False, allow_blank=True, allow_null=True, default=None
    )

    def validate(self, attrs):
        line_items = attrs.get("line_items")
        category = attrs.get("category")
        if line_items and category:
            raise serializers.ValidationError("Provide either line_items or category, not both.")
        if not line_items and not category:
            raise serializers.ValidationError("line_items or category is required.")
        if attrs.get("room_type") and attrs["housing_type"] != HousingType.ON_CAMPUS.value:
            raise serializers.ValidationError(
                {"room_type": "Room type can only be selected with on-campus housing."}
            )
        return attrs

    def to_request(self, event_id: str) -> RegistrationRequest:
        data = self.validated_data
        if data.get("line_items"):
            items = tuple(
                LineItemRequest(
                    category=ParticipantCategory(item["category"]),
                    count=item["count"],
                    label=item.get("label"),
                )
                for item in data["line_items"]
            )
        else:
            items = (LineItemRequest(category=ParticipantCategory(data["category"]), count=1),)

        return RegistrationRequest(
            event_id=event_id,
            registrant=Registrant(**data["registrant"]),
            line_items=items,
            housing_type=HousingType(data["housing_type"]),
            payment_method=PaymentMethod(data["payment_method"]),
            room_type=RoomType(data["room_type"]) if data.get("room_type") else None,
            meal_package=data["meal_package"],
            coupon_code=data.get("coupon_code") or None,
            price_tier=PriceTier(data["price_tier"]) if data.get("price_tier") else None,
            group_name=data.get("group_name") or None,
        )


class ChargeLineSerializer(serializers.Serializer):
    category = serializers.CharField(source="category.value")
    label = serializers.CharField(allow_null=True)
    count = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, source="unit_price.amount")
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, source="subtotal.amount")


class CheckInstructionsSerializer(serializers.Serializer):
    payable_to = serializers.CharField()
    mailing_address = serializers.CharField(allow_null=True)
    instructions = serializers.CharField(allow_null=True)


class RegistrationResultSerializer(serializers.Serializer):
    """Serializer for RegistrationResult."""

    registration_id = serializers.CharField()
    confirmation_code = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=10, decimal_places=2, source="total_amount.amount")
    deposit_due = serializers.DecimalField(max_digits=10, decimal_places=2, source="deposit_due.amount")
    balance_remaining = serializers.DecimalField(
        max_digits=10, decimal_places=2, source="balance_remaining.amount"
    )
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, source="charge.subtotal.amount")
    payment_method = serializers.CharField(source="payment_method.value")
    checkout_url = serializers.CharField(allow_null=True)
    is_early_bird = serializers.BooleanField(source="charge.is_early_bird")
    price_tier = serializers.CharField(source="charge.tier.value")
    coupon_applied = serializers.BooleanField()
    discount_amount = serializers.SerializerMethodField()
    line_items = ChargeLineSerializer(many=True, source="charge.line_items")
    check_instructions = CheckInstructionsSerializer(allow_null=True)
    payment_setup_failed = serializers.BooleanField()
    capacity_reserved = serializers.BooleanField()

    def get_discount_amount(self, result) -> str | None:
        discount = result.charge.discount
        return str(discount.amount) if discount else None
