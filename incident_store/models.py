# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""
Incident data model.

Every record in the corpus is converted into an immutable `Incident`. Optional
fields are kept as explicit ``None`` (or empty tuples) and the display defaults
used by the aggregation layer live here as accessors, so no consumer has to
decide on its own what a missing group, sector or loss value means.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

UNKNOWN = "Unknown"
UNKNOWN_TACTIC = "Unknown Tactic"
UNKNOWN_TECHNIQUE = "Unknown Technique"
UNKNOWN_TECHNIQUE_ID = "Unknown ID"

# Composite target labels that are folded into a single country for
# per-country aggregation.
COUNTRY_ALIASES = {"USA/South Korea": "South Korea"}


def normalize_country(country: Optional[str]) -> Optional[str]:
    """Return the aggregation key for a target country label."""
    if country is None:
        return None
    return COUNTRY_ALIASES.get(country, country)


def parse_year(value) -> Optional[int]:
    """Read a year given as an int, a whole-number float or a digit string.

    Returns None for anything else, including booleans.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        if digits.isdecimal():
            return int(text)
    return None


@dataclass(frozen=True)
class Campaign:
    """Named campaign an incident belongs to"""

    name: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class TemporalInfo:
    """When an incident happened"""

    year: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass(frozen=True)
class Attribution:
    """Who an incident is attributed to"""

    primary_group: Optional[str] = None
    sub_groups: Tuple[str, ...] = ()
    confidence: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Target:
    """An entity targeted by an incident"""

    sector: Optional[str] = None
    country: Optional[str] = None
    entity_name: Optional[str] = None
    description: Optional[str] = None

    @property
    def sector_label(self) -> str:
        return self.sector or UNKNOWN

    @property
    def country_key(self) -> Optional[str]:
        """Country used for geographic grouping and country drill-downs."""
        return normalize_country(self.country)


@dataclass(frozen=True)
class LossEvent:
    """A loss attributed to an incident"""

    loss_type: Optional[str] = None
    estimated_value_usd: Optional[float] = None
    description: Optional[str] = None

    @property
    def loss_type_label(self) -> str:
        return self.loss_type or UNKNOWN

    @property
    def value_or_zero(self) -> float:
        return self.estimated_value_usd if self.estimated_value_usd is not None else 0.0


@dataclass(frozen=True)
class MitreRef:
    """A MITRE ATT&CK technique observed in an incident"""

    technique_id: Optional[str] = None
    technique_name: Optional[str] = None
    tactic: Optional[str] = None

    @property
    def tactic_label(self) -> str:
        return self.tactic or UNKNOWN_TACTIC

    @property
    def technique_label(self) -> str:
        """Short "ID: name" label used by the technique ranking."""
        technique_id = self.technique_id or UNKNOWN_TECHNIQUE_ID
        name = self.technique_name or UNKNOWN_TECHNIQUE
        if len(name) > 35:
            name = name[:32] + "..."
        return f"{technique_id}: {name}"


@dataclass(frozen=True)
class Reference:
    """A public source describing an incident"""

    url: Optional[str] = None
    title: Optional[str] = None
    source: Optional[str] = None
    publication_date: Optional[str] = None


@dataclass(frozen=True)
class Incident:
    """One normalized incident record."""

    id: Optional[str]
    name: Optional[str]
    description: Optional[str] = None
    notes: Optional[str] = None
    aliases: Tuple[str, ...] = ()
    campaign: Optional[Campaign] = None
    temporal_info: TemporalInfo = field(default_factory=TemporalInfo)
    attribution: Attribution = field(default_factory=Attribution)
    targets: Tuple[Target, ...] = ()
    loss_events: Tuple[LossEvent, ...] = ()
    malware_tools: Tuple[str, ...] = ()
    mitre_techniques: Tuple[MitreRef, ...] = ()
    references: Tuple[Reference, ...] = ()

    @property
    def year(self) -> Optional[int]:
        return self.temporal_info.year

    @property
    def group_label(self) -> str:
        return self.attribution.primary_group or UNKNOWN

    @property
    def total_loss_usd(self) -> float:
        """Sum of all loss values, counting missing values as zero."""
        return sum(loss.value_or_zero for loss in self.loss_events)

    def sort_key(self) -> tuple:
        """Canonical ordering key.

        Records are ordered by start date (or January 1st of their year), then
        by year. Records without a year sort after everything else; callers
        rely on a stable sort to keep those in their original order.
        """
        year = self.temporal_info.year
        if year is None:
            return (1,)
        effective_date = self.temporal_info.start_date or f"{year}-01-01"
        return (0, effective_date, year)
