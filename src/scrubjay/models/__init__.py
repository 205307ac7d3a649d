"""Pydantic models and value types for ScrubJay."""

from scrubjay.models.base import AlertKind, ScrubJayModel, normalize_content_key, utcnow
from scrubjay.models.dispatch import (
    AlertBatch,
    DeliveryKey,
    DispatchableObservation,
    DispatchableRssItem,
    DispatchResult,
)
from scrubjay.models.ebird import (
    EBirdLocation,
    EBirdObservation,
    RawEBirdObservation,
    observation_alert_id,
    parse_obs_dt,
)
from scrubjay.models.rss import RssItem, RssSource
from scrubjay.models.scope import (
    WILDCARD,
    Scope,
    Subregion,
    WholeRegion,
    parse_region_code,
    scope_from_columns,
)

__all__ = [
    # Base
    "AlertKind",
    "ScrubJayModel",
    "normalize_content_key",
    "utcnow",
    # Scopes
    "WILDCARD",
    "Scope",
    "Subregion",
    "WholeRegion",
    "parse_region_code",
    "scope_from_columns",
    # eBird
    "EBirdLocation",
    "EBirdObservation",
    "RawEBirdObservation",
    "observation_alert_id",
    "parse_obs_dt",
    # RSS
    "RssItem",
    "RssSource",
    # Dispatch
    "AlertBatch",
    "DeliveryKey",
    "DispatchableObservation",
    "DispatchableRssItem",
    "DispatchResult",
]
