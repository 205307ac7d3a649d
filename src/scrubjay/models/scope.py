"""Subscription scopes.

An eBird subscription targets either a whole region (state) or one
subregion (county) of it. Scopes are a closed set of two frozen
dataclasses; the persisted form uses ``"*"`` in the county column for
:class:`WholeRegion`.

Example:
    >>> from scrubjay.models.scope import parse_region_code
    >>> parse_region_code("US-CA")
    WholeRegion(region='US-CA')
    >>> parse_region_code("US-CA-037")
    Subregion(region='US-CA', subregion='US-CA-037')
    >>> parse_region_code("US-CA").matches("US-CA", "US-CA-085")
    True
    >>> parse_region_code("US-CA-037").matches("US-CA", "US-CA-085")
    False
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from scrubjay.core.exceptions import InvalidRegionCodeError

WILDCARD = "*"


@dataclass(frozen=True)
class WholeRegion:
    """Every subregion of ``region``, including ones first seen later."""

    region: str

    @property
    def subregion_code(self) -> str:
        return WILDCARD

    def matches(self, region: str, subregion: str) -> bool:
        return region == self.region

    def __str__(self) -> str:
        return self.region


@dataclass(frozen=True)
class Subregion:
    """Exactly one subregion; never matches a sibling."""

    region: str
    subregion: str

    @property
    def subregion_code(self) -> str:
        return self.subregion

    def matches(self, region: str, subregion: str) -> bool:
        return region == self.region and subregion == self.subregion

    def __str__(self) -> str:
        return self.subregion


Scope: TypeAlias = WholeRegion | Subregion


def parse_region_code(region_code: str) -> Scope:
    """Parse an eBird region code into a scope.

    Args:
        region_code: ``CC-ST`` for a state or ``CC-ST-CTY`` for a county.

    Raises:
        InvalidRegionCodeError: If the code has other than 2 or 3 parts,
            or any part is empty.
    """
    code = region_code.strip()
    parts = code.split("-")
    if any(not part for part in parts):
        raise InvalidRegionCodeError(region_code)
    if len(parts) == 2:
        return WholeRegion(region=code)
    if len(parts) == 3:
        return Subregion(region=f"{parts[0]}-{parts[1]}", subregion=code)
    raise InvalidRegionCodeError(region_code)


def scope_from_columns(state_code: str, county_code: str) -> Scope:
    """Rebuild a scope from its persisted (state, county) pair."""
    if county_code == WILDCARD:
        return WholeRegion(region=state_code)
    return Subregion(region=state_code, subregion=county_code)
