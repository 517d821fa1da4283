"""Pytest configuration and shared fixtures."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from fakes import World


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def organization(db):
    from registrations.models import Organization

    return Organization.objects.create(name="St. Mark Parish")


@pytest.fixture
def event(organization):
    """Published event, youth 100 regular / 120 on campus, 50% deposit."""
    from registrations.models import Event, EventPricing, EventSettings

    now = timezone.now()
    event = Event.objects.create(
        organization=organization,
        name="Summer Youth Conference",
        slug="summer-youth-2026",
        start_date=now + timedelta(days=60),
        end_date=now + timedelta(days=62),
        coupons_enabled=True,
    )
    EventPricing.objects.create(
        event=event,
        youth_regular_price=Decimal("100.00"),
        chaperone_regular_price=Decimal("80.00"),
        on_campus_youth_price=Decimal("120.00"),
        deposit_percentage=Decimal("50"),
    )
    EventSettings.objects.create(
        event=event,
        check_payable_to="St. Mark Youth Ministry",
        check_mailing_address="12 Church St, Springfield",
    )
    return event
