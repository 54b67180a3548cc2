# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Global filters and drill-down overlays over the incident corpus.

Filter state is a frozen `FilterCriteria` value passed into pure functions.
`resolve()` corrects an inverted year range instead of rejecting it, and
`apply_overlay()` narrows an already filtered subset by a country or a
technique picked from one of the derived views.
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Mapping, Sequence, Union

from incident_store.models import Incident, normalize_country, parse_year

logger = logging.getLogger(__name__)

ALL = "all"

YearBound = Union[int, str]


def _parse_year(value: Any) -> YearBound:
    """Map an opaque year parameter to an int or the ``"all"`` sentinel."""
    if value is None or value == ALL:
        return ALL
    year = parse_year(value)
    if year is not None:
        return year
    logger.warning("Ignoring unrecognized year filter value %r", value)
    return ALL


@dataclass(frozen=True)
class FilterCriteria:
    """Global filter state. Every field defaults to ``"all"``."""

    start_year: YearBound = ALL
    end_year: YearBound = ALL
    group: str = ALL
    sector: str = ALL
    loss_type: str = ALL

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "FilterCriteria":
        """Build criteria from UI parameters (select values are strings)."""
        return cls(
            start_year=_parse_year(params.get("start_year", ALL)),
            end_year=_parse_year(params.get("end_year", ALL)),
            group=str(params.get("group") or ALL),
            sector=str(params.get("sector") or ALL),
            loss_type=str(params.get("loss_type") or ALL),
        )

    def to_dict(self) -> dict:
        return {
            "start_year": self.start_year,
            "end_year": self.end_year,
            "group": self.group,
            "sector": self.sector,
            "loss_type": self.loss_type,
        }


@dataclass(frozen=True)
class ResolvedRange:
    """Inclusive year bounds; unbounded ends are +/- infinity."""

    low: float
    high: float

    def __contains__(self, year: int) -> bool:
        return self.low <= year <= self.high


def resolve(criteria: FilterCriteria) -> FilterCriteria:
    """
    Return criteria with a valid year range.

    An end year before the start year is swapped rather than rejected; callers
    should display the returned values, since the correction is part of the
    filter state. Resolving twice gives the same result.
    """
    start = _parse_year(criteria.start_year)
    end = _parse_year(criteria.end_year)
    if start != ALL and end != ALL and end < start:
        logger.warning("End year %s was before start year %s, swapped.", end, start)
        start, end = end, start
    return replace(criteria, start_year=start, end_year=end)


def year_range(criteria: FilterCriteria) -> ResolvedRange:
    """Inclusive year bounds of the resolved criteria."""
    resolved = resolve(criteria)
    low = -math.inf if resolved.start_year == ALL else resolved.start_year
    high = math.inf if resolved.end_year == ALL else resolved.end_year
    return ResolvedRange(low=low, high=high)


def matches(incident: Incident, criteria: FilterCriteria) -> bool:
    """Check one incident against the filter criteria."""
    bounds = year_range(criteria)
    return _matches(incident, criteria, bounds)


def _matches(
    incident: Incident, criteria: FilterCriteria, bounds: ResolvedRange
) -> bool:
    year = incident.year
    if year is None or year not in bounds:
        return False
    if criteria.group != ALL and incident.attribution.primary_group != criteria.group:
        return False
    if criteria.sector != ALL and not any(
        target.sector == criteria.sector for target in incident.targets
    ):
        return False
    if criteria.loss_type != ALL and not any(
        loss.loss_type == criteria.loss_type for loss in incident.loss_events
    ):
        return False
    return True


def apply_filters(
    incidents: Sequence[Incident], criteria: FilterCriteria
) -> List[Incident]:
    """
    Select the incidents matching every active filter.

    Args:
        incidents: Corpus in canonical order
        criteria: Filter state (resolved here if it is not already)

    Returns:
        Matching incidents, still in canonical order
    """
    resolved = resolve(criteria)
    bounds = year_range(resolved)
    return [incident for incident in incidents if _matches(incident, resolved, bounds)]


class OverlayKind(str, Enum):
    """What a drill-down overlay selects on"""

    COUNTRY = "country"
    TECHNIQUE = "technique"


_OVERLAY_PREFIXES = {
    OverlayKind.COUNTRY: "by map",
    OverlayKind.TECHNIQUE: "by TTP",
}


@dataclass(frozen=True)
class DrillDownOverlay:
    """Transient secondary filter picked from a map region or matrix cell."""

    kind: OverlayKind
    value: str

    def __post_init__(self) -> None:
        # Raises ValueError for anything but "country" or "technique"
        object.__setattr__(self, "kind", OverlayKind(self.kind))

    def matches(self, incident: Incident) -> bool:
        if self.kind is OverlayKind.COUNTRY:
            value = normalize_country(self.value)
            return any(target.country_key == value for target in incident.targets)
        return any(
            technique.technique_id == self.value
            for technique in incident.mitre_techniques
        )


def apply_overlay(
    incidents: Sequence[Incident], overlay: DrillDownOverlay | None
) -> List[Incident]:
    """Narrow a filtered subset by an overlay (no overlay keeps it unchanged)."""
    if overlay is None:
        return list(incidents)
    return [incident for incident in incidents if overlay.matches(incident)]


def describe_overlay(overlay: DrillDownOverlay) -> str:
    """Human readable overlay label, e.g. ``by map: South Korea``."""
    return f"{_OVERLAY_PREFIXES[overlay.kind]}: {overlay.value}"
