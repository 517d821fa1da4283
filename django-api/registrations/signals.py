"""Django signals for cache invalidation.

The pricing snapshot of an event is cached; any change to the event, its
pricing table or its organization drops the cached copy.
"""

from django.core.cache import cache
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from registrations.models import Event, EventPricing, Organization
from registrations.stores.django_store import pricing_cache_key


@receiver([post_save, post_delete], sender=Event)
def invalidate_event_pricing_cache(sender, instance, **kwargs):
    cache.delete(pricing_cache_key(instance.pk))


@receiver([post_save, post_delete], sender=EventPricing)
def invalidate_pricing_cache(sender, instance, **kwargs):
    """Invalidate the pricing snapshot when the pricing table changes."""
    cache.delete(pricing_cache_key(instance.event_id))


@receiver([post_save, post_delete], sender=Organization)
def invalidate_organization_pricing_cache(sender, instance, **kwargs):
    keys = [pricing_cache_key(pk) for pk in instance.events.values_list("pk", flat=True)]
    if keys:
        cache.delete_many(keys)
