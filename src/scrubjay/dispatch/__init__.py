"""Dispatch: query undelivered pairs, group, send, record."""

from scrubjay.dispatch.base import DEFAULT_LOOKBACK, BaseDispatcher
from scrubjay.dispatch.ebird import EBirdDispatcher
from scrubjay.dispatch.grouping import (
    ObservationSummary,
    aggregate_observations,
    group_observations,
    species_location_id,
)
from scrubjay.dispatch.rss import RssDispatcher, truncate_description
from scrubjay.dispatch.service import DispatcherService

__all__ = [
    "DEFAULT_LOOKBACK",
    "BaseDispatcher",
    "DispatcherService",
    "EBirdDispatcher",
    "ObservationSummary",
    "RssDispatcher",
    "aggregate_observations",
    "group_observations",
    "species_location_id",
    "truncate_description",
]
