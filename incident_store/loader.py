# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""
Corpus loader (JSON document -> sorted Incident list).

This module reads the incident document, converts each raw record into an
immutable `Incident` and sorts the result into canonical order.

Key ideas:
- Missing optional fields become explicit ``None`` / empty tuples.
- Values of the wrong type are never coerced into something else; they are
  dropped with a `FieldDefaultingWarning`.
- The loader never mutates the returned list; every derived view reuses it.
"""

import json
import logging
import math
import warnings
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse
from urllib.request import urlopen

from incident_store.exceptions import DataFormatError, FieldDefaultingWarning
from incident_store.models import (
    Attribution,
    Campaign,
    Incident,
    LossEvent,
    MitreRef,
    Reference,
    Target,
    TemporalInfo,
    parse_year,
)

logger = logging.getLogger(__name__)


def _warn_defaulted(field_name: str, value: Any) -> None:
    message = f"Field '{field_name}' has unexpected value {value!r}; treated as absent"
    logger.debug(message)
    warnings.warn(message, FieldDefaultingWarning, stacklevel=3)


def _to_str(value: Any, field_name: str) -> Optional[str]:
    """Return a stripped string, or None if missing or not a string."""
    if value is None:
        return None
    if not isinstance(value, str):
        _warn_defaulted(field_name, value)
        return None
    text = value.strip()
    return text or None


def _to_year(value: Any, field_name: str) -> Optional[int]:
    if value is None:
        return None
    year = parse_year(value)
    if year is None:
        _warn_defaulted(field_name, value)
    return year


def _to_amount(value: Any, field_name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _warn_defaulted(field_name, value)
        return None
    amount = float(value)
    if not math.isfinite(amount) or amount < 0:
        _warn_defaulted(field_name, value)
        return None
    return amount


def _to_str_tuple(value: Any, field_name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        _warn_defaulted(field_name, value)
        return ()
    items = (_to_str(item, field_name) for item in value)
    return tuple(item for item in items if item is not None)


def _objects(value: Any, field_name: str) -> List[Dict[str, Any]]:
    """Return the dict entries of a list field, skipping anything else."""
    if value is None:
        return []
    if not isinstance(value, list):
        _warn_defaulted(field_name, value)
        return []
    entries = []
    for item in value:
        if isinstance(item, dict):
            entries.append(item)
        else:
            _warn_defaulted(field_name, item)
    return entries


def _object(value: Any, field_name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        _warn_defaulted(field_name, value)
        return {}
    return value


def _parse_incident(raw: Dict[str, Any]) -> Incident:
    temporal = _object(raw.get("temporal_info"), "temporal_info")
    attribution = _object(raw.get("attribution"), "attribution")

    campaign = None
    if raw.get("campaign") is not None:
        campaign_raw = _object(raw.get("campaign"), "campaign")
        if campaign_raw:
            campaign = Campaign(
                name=_to_str(
                    campaign_raw.get("campaign_name"), "campaign.campaign_name"
                ),
                id=_to_str(campaign_raw.get("campaign_id"), "campaign.campaign_id"),
            )

    return Incident(
        id=_to_str(raw.get("incident_id"), "incident_id"),
        name=_to_str(raw.get("incident_name"), "incident_name"),
        description=_to_str(raw.get("description"), "description"),
        notes=_to_str(raw.get("notes"), "notes"),
        aliases=_to_str_tuple(raw.get("aliases"), "aliases"),
        campaign=campaign,
        temporal_info=TemporalInfo(
            year=_to_year(temporal.get("year"), "temporal_info.year"),
            start_date=_to_str(temporal.get("start_date"), "temporal_info.start_date"),
            end_date=_to_str(temporal.get("end_date"), "temporal_info.end_date"),
        ),
        attribution=Attribution(
            primary_group=_to_str(
                attribution.get("primary_group"), "attribution.primary_group"
            ),
            sub_groups=_to_str_tuple(
                attribution.get("sub_groups"), "attribution.sub_groups"
            ),
            confidence=_to_str(attribution.get("confidence"), "attribution.confidence"),
            notes=_to_str(
                attribution.get("attribution_notes"), "attribution.attribution_notes"
            ),
        ),
        targets=tuple(
            Target(
                sector=_to_str(t.get("sector"), "targets.sector"),
                country=_to_str(t.get("country"), "targets.country"),
                entity_name=_to_str(t.get("entity_name"), "targets.entity_name"),
                description=_to_str(t.get("description"), "targets.description"),
            )
            for t in _objects(raw.get("targets"), "targets")
        ),
        loss_events=tuple(
            LossEvent(
                loss_type=_to_str(loss.get("loss_type"), "loss_events.loss_type"),
                estimated_value_usd=_to_amount(
                    loss.get("estimated_value_usd"), "loss_events.estimated_value_usd"
                ),
                description=_to_str(loss.get("description"), "loss_events.description"),
            )
            for loss in _objects(raw.get("loss_events"), "loss_events")
        ),
        malware_tools=_to_str_tuple(raw.get("malware_tools"), "malware_tools"),
        mitre_techniques=tuple(
            MitreRef(
                technique_id=_to_str(
                    m.get("technique_id"), "mitre_techniques.technique_id"
                ),
                technique_name=_to_str(
                    m.get("technique_name"), "mitre_techniques.technique_name"
                ),
                tactic=_to_str(m.get("tactic"), "mitre_techniques.tactic"),
            )
            for m in _objects(raw.get("mitre_techniques"), "mitre_techniques")
        ),
        references=tuple(
            Reference(
                url=_to_str(r.get("url"), "references.url"),
                title=_to_str(r.get("title"), "references.title"),
                source=_to_str(r.get("source"), "references.source"),
                publication_date=_to_str(
                    r.get("publication_date"), "references.publication_date"
                ),
            )
            for r in _objects(raw.get("references"), "references")
        ),
    )


def sort_incidents(incidents: Iterable[Incident]) -> List[Incident]:
    """Return incidents in canonical order (stable for equal keys)."""
    return sorted(incidents, key=lambda incident: incident.sort_key())


def load_incidents(raw: Any) -> List[Incident]:
    """
    Normalize and sort the incidents of a parsed corpus document.

    Args:
        raw: Parsed JSON document, expected to be ``{"incidents": [...]}``

    Returns:
        Incidents in canonical order

    Raises:
        DataFormatError: If the document has no usable incident collection
    """
    if not isinstance(raw, dict) or "incidents" not in raw:
        raise DataFormatError("Invalid data format: missing 'incidents' collection")

    records = raw["incidents"]
    if not isinstance(records, list):
        raise DataFormatError("Invalid data format: 'incidents' must be a list")

    incidents = []
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            raise DataFormatError(
                f"Invalid data format: incident at position {position} is not an object"
            )
        incidents.append(_parse_incident(record))

    logger.info("Loaded %d incidents", len(incidents))
    return sort_incidents(incidents)


def load_incident_document(source: str) -> Any:
    """
    Read the raw corpus document from a local file or an HTTP/HTTPS URL.

    Args:
        source: Path to local file or HTTP/HTTPS URL

    Returns:
        The parsed JSON document

    Raises:
        FileNotFoundError: If a local file does not exist
        DataFormatError: If the content is not valid JSON
    """
    parsed_url = urlparse(source)
    is_url = parsed_url.scheme in ("http", "https")

    try:
        if is_url:
            logger.info("Fetching incident data from %s", source)
            with urlopen(source) as response:
                return json.loads(response.read().decode("utf-8"))

        source_path = Path(source)
        if not source_path.exists():
            raise FileNotFoundError(f"Incident data file not found: {source_path}")
        logger.info("Reading incident data from %s", source_path)
        with source_path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise DataFormatError(f"Invalid data format: {e}") from e


def load_corpus(source: str) -> List[Incident]:
    """Fetch a corpus document and return its sorted, normalized incidents."""
    return load_incidents(load_incident_document(source))


def filter_options(incidents: Sequence[Incident]) -> Dict[str, list]:
    """
    Collect the selectable filter values present in the corpus.

    Args:
        incidents: The full, unfiltered corpus

    Returns:
        Dictionary with ``years`` (ascending), ``years_descending`` and sorted
        ``groups``, ``sectors`` and ``loss_types``
    """
    years = set()
    groups = set()
    sectors = set()
    loss_types = set()

    for incident in incidents:
        if incident.year is not None:
            years.add(incident.year)
        if incident.attribution.primary_group:
            groups.add(incident.attribution.primary_group)
        sectors.update(t.sector for t in incident.targets if t.sector)
        loss_types.update(
            loss.loss_type for loss in incident.loss_events if loss.loss_type
        )

    sorted_years = sorted(years)
    return {
        "years": sorted_years,
        "years_descending": sorted_years[::-1],
        "groups": sorted(groups),
        "sectors": sorted(sectors),
        "loss_types": sorted(loss_types),
    }
