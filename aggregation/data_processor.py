# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Data processor for aggregating filtered incidents.

This module holds every statistical projection of a filtered incident subset
that the dashboard views consume: summary statistics, per-year time series,
top-N rankings and a tabular frame for exports. All functions are pure and are
recomputed from scratch on every filter change.

Ranking ties are always broken by first occurrence in the canonical record
order: labels are grouped with ``sort=False`` so counts keep first-seen
order, and rankings use a stable sort on the counts.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from incident_store.models import Incident

logger = logging.getLogger(__name__)

# How many entries the ranking charts show
ENTITY_TOP_N = 12
TTP_TOP_N = 15

Ranking = List[Tuple[str, int]]


def _label_counts(labels: Sequence[str]) -> Dict[str, int]:
    """Occurrences per label, keyed in first-seen order."""
    if not labels:
        return {}
    sizes = pd.DataFrame({"label": labels}).groupby("label", sort=False).size()
    return {label: int(count) for label, count in sizes.items()}


def count_groups(incidents: Sequence[Incident]) -> Dict[str, int]:
    """Incidents per primary group ("Unknown" when unattributed)."""
    return _label_counts([incident.group_label for incident in incidents])


def count_sectors(incidents: Sequence[Incident]) -> Dict[str, int]:
    """Targets per sector; an incident counts once for each of its targets."""
    return _label_counts(
        [target.sector_label for incident in incidents for target in incident.targets]
    )


def count_loss_types(incidents: Sequence[Incident]) -> Dict[str, int]:
    """Loss events per loss type."""
    return _label_counts(
        [
            loss.loss_type_label
            for incident in incidents
            for loss in incident.loss_events
        ]
    )


def count_tactics(incidents: Sequence[Incident]) -> Dict[str, int]:
    """Technique references per tactic."""
    return _label_counts(
        [
            ref.tactic_label
            for incident in incidents
            for ref in incident.mitre_techniques
        ]
    )


def count_techniques(incidents: Sequence[Incident]) -> Dict[str, int]:
    """Technique references per "ID: name" label."""
    return _label_counts(
        [
            ref.technique_label
            for incident in incidents
            for ref in incident.mitre_techniques
        ]
    )


def rank_descending(counts: Dict[str, int], n: int) -> Ranking:
    """Top ``n`` labels by count, highest first, ties in insertion order."""
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    if not counts:
        return []
    ordered = pd.Series(counts, dtype="int64").sort_values(
        ascending=False, kind="stable"
    )
    return [(label, int(count)) for label, count in ordered.head(n).items()]


def rank(counts: Dict[str, int], n: int) -> Ranking:
    """
    Top-N ranking in display order.

    Entries are chosen by descending count and then reversed, so the result
    reads lowest to highest (horizontal bar charts draw from the bottom up).

    Args:
        counts: Label -> count, in first-seen canonical order
        n: Maximum number of entries

    Returns:
        List of (label, count) pairs in ascending count order
    """
    return rank_descending(counts, n)[::-1]


def _top_entry(counts: Dict[str, int]) -> Optional[Tuple[str, int]]:
    ranked = rank_descending(counts, 1)
    return ranked[0] if ranked else None


@dataclass(frozen=True)
class SummaryStats:
    """Headline numbers for the current selection"""

    total_incidents: int
    total_loss_usd: float
    top_group: Optional[Tuple[str, int]]
    top_sector: Optional[Tuple[str, int]]

    def display(self) -> Dict[str, str]:
        """Formatted values as shown in the summary cards."""

        def entry(value: Optional[Tuple[str, int]]) -> str:
            return f"{value[0]} ({value[1]})" if value else "--"

        return {
            "total_incidents": f"{self.total_incidents:,}",
            "total_loss": format_currency(self.total_loss_usd),
            "top_group": entry(self.top_group),
            "top_sector": entry(self.top_sector),
        }


def compute_summary_stats(incidents: Sequence[Incident]) -> SummaryStats:
    """
    Compute summary statistics for a filtered subset.

    Args:
        incidents: Filtered incidents in canonical order

    Returns:
        SummaryStats with totals and the most frequent group and sector
    """
    return SummaryStats(
        total_incidents=len(incidents),
        total_loss_usd=float(sum(incident.total_loss_usd for incident in incidents)),
        top_group=_top_entry(count_groups(incidents)),
        top_sector=_top_entry(count_sectors(incidents)),
    )


class StackBy(str, Enum):
    """Category breakdown of the yearly incident bars"""

    NONE = "none"
    BY_GROUP = "by-group"
    BY_LOSS_TYPE = "by-loss-type"


@dataclass(frozen=True)
class TimeSeries:
    """Per-year incident counts and losses with an optional category stack.

    ``stacks`` maps each category to its per-year counts, aligned with
    ``years``; categories are sorted alphabetically.
    """

    stack_by: StackBy
    years: List[int] = field(default_factory=list)
    incident_counts: List[int] = field(default_factory=list)
    losses: List[float] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    stacks: Dict[str, List[int]] = field(default_factory=dict)


def _category_rows(incidents: Sequence[Incident], stack_by: StackBy) -> List[dict]:
    rows = []
    for incident in incidents:
        if stack_by is StackBy.BY_GROUP:
            rows.append({"year": incident.year, "category": incident.group_label})
        elif stack_by is StackBy.BY_LOSS_TYPE:
            for loss in incident.loss_events:
                rows.append({"year": incident.year, "category": loss.loss_type_label})
    return rows


def compute_time_series(
    incidents: Sequence[Incident], stack_by: StackBy | str = StackBy.NONE
) -> TimeSeries:
    """
    Bucket incidents by year.

    Incidents without a year are left out of this view only.

    Args:
        incidents: Filtered incidents
        stack_by: "none", "by-group" or "by-loss-type"

    Returns:
        TimeSeries with years in ascending order
    """
    stack_by = StackBy(stack_by)
    dated = [incident for incident in incidents if incident.year is not None]
    if not dated:
        return TimeSeries(stack_by=stack_by)

    yearly_df = pd.DataFrame(
        {
            "year": [incident.year for incident in dated],
            "loss": [
                sum(
                    loss.estimated_value_usd
                    for loss in incident.loss_events
                    if loss.estimated_value_usd is not None
                )
                for incident in dated
            ],
        }
    )
    totals = (
        yearly_df.groupby("year")
        .agg(incidents=("loss", "size"), loss=("loss", "sum"))
        .sort_index()
    )
    years = [int(year) for year in totals.index]

    categories: List[str] = []
    stacks: Dict[str, List[int]] = {}
    category_rows = _category_rows(dated, stack_by)
    if category_rows:
        stack_df = (
            pd.DataFrame(category_rows)
            .groupby(["year", "category"])
            .size()
            .unstack(fill_value=0)
            .reindex(index=years, fill_value=0)
        )
        categories = sorted(stack_df.columns)
        stacks = {
            category: [int(value) for value in stack_df[category]]
            for category in categories
        }

    return TimeSeries(
        stack_by=stack_by,
        years=years,
        incident_counts=[int(value) for value in totals["incidents"]],
        losses=[float(value) for value in totals["loss"]],
        categories=categories,
        stacks=stacks,
    )


def compute_rankings(incidents: Sequence[Incident]) -> Dict[str, Ranking]:
    """All ranking charts for a filtered subset, in display order."""
    return {
        "groups": rank(count_groups(incidents), ENTITY_TOP_N),
        "sectors": rank(count_sectors(incidents), ENTITY_TOP_N),
        "loss_types": rank(count_loss_types(incidents), ENTITY_TOP_N),
        "tactics": rank(count_tactics(incidents), TTP_TOP_N),
        "techniques": rank(count_techniques(incidents), TTP_TOP_N),
    }


def incidents_to_frame(incidents: Sequence[Incident]) -> pd.DataFrame:
    """
    Flatten incidents into one row per incident for tabular exports.

    Args:
        incidents: Incidents in display order

    Returns:
        DataFrame with columns: id, name, year, start_date, date (display
        label from format_date), primary_group, sectors, countries, loss_types,
        total_loss_usd, technique_ids
    """
    columns = [
        "id",
        "name",
        "year",
        "start_date",
        "date",
        "primary_group",
        "sectors",
        "countries",
        "loss_types",
        "total_loss_usd",
        "technique_ids",
    ]
    rows = [
        {
            "id": incident.id,
            "name": incident.name,
            "year": incident.year,
            "start_date": incident.temporal_info.start_date,
            "date": format_date(incident.temporal_info.start_date, incident.year),
            "primary_group": incident.group_label,
            "sectors": "; ".join(t.sector for t in incident.targets if t.sector),
            "countries": "; ".join(t.country for t in incident.targets if t.country),
            "loss_types": "; ".join(
                loss.loss_type for loss in incident.loss_events if loss.loss_type
            ),
            "total_loss_usd": incident.total_loss_usd,
            "technique_ids": "; ".join(
                m.technique_id for m in incident.mitre_techniques if m.technique_id
            ),
        }
        for incident in incidents
    ]
    frame = pd.DataFrame(rows, columns=columns)
    frame["year"] = frame["year"].astype("Int64")
    return frame


def format_currency(value: Optional[float]) -> str:
    """Compact USD label, e.g. ``$1.2B``, ``$45.0M``, ``$12K``."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "--"
    if value == 0:
        return "$0"
    if value >= 1_000_000_000:
        return f"${value / 1_000_000_000:.1f}B"
    if value >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"${math.floor(value / 1000 + 0.5)}K"
    if float(value).is_integer():
        return f"${int(value):,}"
    return f"${value:,}"


def format_date(start_date: Optional[str], year: Optional[int] = None) -> str:
    """Display date for an incident; a known year always wins."""
    if year:
        return str(year)
    if not start_date:
        return "Date Unknown"
    if len(start_date) == 4 and start_date.isdigit():
        return start_date
    try:
        parsed = datetime.strptime(start_date, "%Y-%m-%d")
    except ValueError:
        logger.debug("Unparseable start date: %s", start_date)
        return "Date Unknown"
    return f"{parsed:%b} {parsed.day}, {parsed.year}"
