# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Per-country rollups of filtered incidents for the map view."""

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from aggregation.data_processor import rank_descending
from incident_store.exceptions import UnmappedLocationWarning
from incident_store.models import Incident

logger = logging.getLogger(__name__)

DEFAULT_LOSS_TYPE = "Default"
NO_ENTRY = "--"

# Approximate country centroids as (latitude, longitude). Regions that cannot
# be placed on the map are listed with None.
COUNTRY_COORDINATES: Dict[str, Optional[Tuple[float, float]]] = {
    "South Korea": (36.5, 127.5),
    "USA": (38.0, -97.0),
    "Vietnam": (16.16, 107.83),
    "Ecuador": (-1.0, -78.0),
    "Bangladesh": (24.0, 90.0),
    "Global": None,
    "Philippines": (13.0, 122.0),
    "Poland": (52.0, 20.0),
    "Mexico": (23.0, -102.0),
    "Uruguay": (-33.0, -56.0),
    "UK": (54.0, -2.0),
    "Spain": (40.0, -4.0),
    "France": (46.0, 2.0),
    "Russia": (60.0, 100.0),
    "Japan": (36.0, 138.0),
    "Slovenia": (46.15, 14.99),
    "Taiwan": (23.5, 121.0),
    "India": (20.59, 78.96),
    "Malta": (35.93, 14.5),
    "Singapore": (1.35, 103.81),
    "Canada": (56.0, -106.0),
    "Germany": (51.16, 10.45),
    "Indonesia": (-0.78, 113.92),
    "Slovakia": (48.66, 19.69),
    "Europe": None,
    "Asia": None,
    "Guatemala": (15.78, -90.23),
}


def _top_label(counts: Dict[str, int], default: str) -> str:
    ranked = rank_descending(counts, 1)
    return ranked[0][0] if ranked else default


@dataclass
class CountryAggregate:
    """Everything the map marker and popup show for one country."""

    country: str
    coordinates: Tuple[float, float]
    incident_count: int = 0
    loss_type_counts: Dict[str, int] = field(default_factory=dict)
    total_loss_usd: float = 0.0
    group_counts: Dict[str, int] = field(default_factory=dict)
    sector_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def dominant_loss_type(self) -> str:
        return _top_label(self.loss_type_counts, DEFAULT_LOSS_TYPE)

    @property
    def top_group(self) -> str:
        return _top_label(self.group_counts, NO_ENTRY)

    @property
    def top_sector(self) -> str:
        return _top_label(self.sector_counts, NO_ENTRY)

    @property
    def marker_radius(self) -> float:
        return 5 + math.log(self.incident_count + 1) * 3

    def to_dict(self) -> dict:
        return {
            "country": self.country,
            "coordinates": list(self.coordinates),
            "incident_count": self.incident_count,
            "loss_type_counts": dict(self.loss_type_counts),
            "total_loss_usd": self.total_loss_usd,
            "group_counts": dict(self.group_counts),
            "sector_counts": dict(self.sector_counts),
            "dominant_loss_type": self.dominant_loss_type,
            "top_group": self.top_group,
            "top_sector": self.top_sector,
            "marker_radius": self.marker_radius,
        }


@dataclass
class GeoAggregate:
    """Map view model: mapped countries plus the labels that were dropped."""

    countries: List[CountryAggregate] = field(default_factory=list)
    unmapped_countries: List[str] = field(default_factory=list)

    def get(self, country: str) -> Optional[CountryAggregate]:
        for aggregate in self.countries:
            if aggregate.country == country:
                return aggregate
        return None


def _report_unmapped(country: str) -> None:
    logger.warning("Coordinates not found for country: %s", country)
    warnings.warn(
        f"Coordinates not found for country: {country}",
        UnmappedLocationWarning,
        stacklevel=3,
    )


def _nested_counts(rows: List[dict], key: str) -> Dict[str, Dict[str, int]]:
    """Country -> label -> count, both levels in first-seen order."""
    if not rows:
        return {}
    sizes = pd.DataFrame(rows).groupby(["country", key], sort=False).size()
    nested: Dict[str, Dict[str, int]] = {}
    for (country, label), count in sizes.items():
        nested.setdefault(country, {})[label] = int(count)
    return nested


def aggregate_by_country(
    incidents: Sequence[Incident],
    coordinates: Optional[Dict[str, Optional[Tuple[float, float]]]] = None,
) -> GeoAggregate:
    """
    Group a filtered subset by (alias-normalized) target country.

    An incident is counted once per country it targets, even when several of
    its targets sit in the same country, so ``incident_count`` is a number of
    incidents rather than of targets. Its loss events and group are
    attributed to each of those countries, while sectors are counted per
    target. Countries without coordinates are left out of this view only.

    Args:
        incidents: Filtered incidents in canonical order
        coordinates: Country -> (lat, lon) table, defaults to COUNTRY_COORDINATES

    Returns:
        GeoAggregate with countries in first-seen order
    """
    coordinates = COUNTRY_COORDINATES if coordinates is None else coordinates
    unmapped: List[str] = []
    target_rows: List[dict] = []
    incident_rows: List[dict] = []
    loss_rows: List[dict] = []

    for incident in incidents:
        countries_here: List[str] = []
        for target in incident.targets:
            country = target.country_key
            if not country:
                continue
            if coordinates.get(country) is None:
                # Known regions are listed without coordinates on purpose
                if country not in coordinates and country not in unmapped:
                    unmapped.append(country)
                    _report_unmapped(country)
                continue
            target_rows.append({"country": country, "sector": target.sector_label})
            if country not in countries_here:
                countries_here.append(country)

        for country in countries_here:
            incident_rows.append({"country": country, "group": incident.group_label})
            loss_rows.extend(
                {
                    "country": country,
                    "loss_type": loss.loss_type_label,
                    "value": loss.estimated_value_usd or 0.0,
                }
                for loss in incident.loss_events
            )

    if not incident_rows:
        return GeoAggregate(unmapped_countries=unmapped)

    incident_counts = (
        pd.DataFrame(incident_rows).groupby("country", sort=False).size()
    )
    loss_totals = (
        pd.DataFrame(loss_rows, columns=["country", "loss_type", "value"])
        .groupby("country", sort=False)["value"]
        .sum()
    )
    group_counts = _nested_counts(incident_rows, "group")
    sector_counts = _nested_counts(target_rows, "sector")
    loss_type_counts = _nested_counts(loss_rows, "loss_type")

    countries = [
        CountryAggregate(
            country=country,
            coordinates=coordinates[country],
            incident_count=int(count),
            loss_type_counts=loss_type_counts.get(country, {}),
            total_loss_usd=float(loss_totals.get(country, 0.0)),
            group_counts=group_counts.get(country, {}),
            sector_counts=sector_counts.get(country, {}),
        )
        for country, count in incident_counts.items()
    ]
    return GeoAggregate(countries=countries, unmapped_countries=unmapped)
