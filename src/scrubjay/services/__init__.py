"""Subscription and filter services."""

from scrubjay.services.filters import FiltersService
from scrubjay.services.subscriptions import SubscriptionResolver, SubscriptionService

__all__ = ["FiltersService", "SubscriptionResolver", "SubscriptionService"]
