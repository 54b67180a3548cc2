# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Technique-frequency matrix aligned to the ATT&CK Enterprise tactics.

The matrix has two halves with different lifetimes:

- `TacticCatalog` is built once from the full corpus and fixes the structural
  shape (columns and the techniques listed under each).
- `technique_frequency()` is recomputed from every filtered subset and only
  drives cell intensity.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from incident_store.models import UNKNOWN_TACTIC, UNKNOWN_TECHNIQUE, Incident

logger = logging.getLogger(__name__)

# Canonical MITRE ATT&CK Enterprise tactic order.
# Reference: https://attack.mitre.org/tactics/enterprise/
canonical_tactic_order = [
    "Reconnaissance",
    "Resource Development",
    "Initial Access",
    "Execution",
    "Persistence",
    "Privilege Escalation",
    "Defense Evasion",
    "Credential Access",
    "Discovery",
    "Lateral Movement",
    "Collection",
    "Command and Control",
    "Exfiltration",
    "Impact",
]

MIN_OPACITY = 0.15
DARK_TEXT_THRESHOLD = 0.6


def sort_tactics(tactics_to_sort: Union[List[str], set]) -> List[str]:
    """
    Filter and sort tactics based on canonical MITRE ATT&CK Enterprise order.

    Args:
        tactics_to_sort: Tactic names to sort (list or set)

    Returns:
        List of tactics sorted by canonical order, containing only tactics
        that are present in the input

    Example:
        >>> sort_tactics(["Impact", "Execution", "Unknown Tactic"])
        ["Execution", "Impact"]
    """
    return [tactic for tactic in canonical_tactic_order if tactic in tactics_to_sort]


@dataclass(frozen=True)
class TechniqueEntry:
    id: str
    name: str


@dataclass(frozen=True)
class TacticCatalog:
    """Tactic name -> techniques seen under it, deduplicated and name-sorted."""

    techniques_by_tactic: Dict[str, List[TechniqueEntry]] = field(default_factory=dict)

    @property
    def columns(self) -> List[str]:
        return sort_tactics(set(self.techniques_by_tactic))

    @property
    def max_rows(self) -> int:
        return max(
            (len(self.techniques_by_tactic[tactic]) for tactic in self.columns),
            default=0,
        )

    def techniques(self, tactic: str) -> List[TechniqueEntry]:
        return self.techniques_by_tactic.get(tactic, [])


def build_tactic_catalog(incidents: Sequence[Incident]) -> TacticCatalog:
    """
    Build the structural shape of the matrix from the unfiltered corpus.

    References without a technique id contribute their tactic but no entry.

    Args:
        incidents: The full corpus

    Returns:
        TacticCatalog with techniques sorted case-insensitively by name
    """
    catalog: Dict[str, List[TechniqueEntry]] = {}
    for incident in incidents:
        for technique in incident.mitre_techniques:
            entries = catalog.setdefault(technique.tactic or UNKNOWN_TACTIC, [])
            if not technique.technique_id:
                continue
            if any(entry.id == technique.technique_id for entry in entries):
                continue
            entries.append(
                TechniqueEntry(
                    id=technique.technique_id,
                    name=technique.technique_name or UNKNOWN_TECHNIQUE,
                )
            )

    for entries in catalog.values():
        entries.sort(key=lambda entry: entry.name.casefold())

    logger.debug(
        "Built tactic catalog with %d tactics and %d techniques",
        len(catalog),
        sum(len(entries) for entries in catalog.values()),
    )
    return TacticCatalog(techniques_by_tactic=catalog)


def technique_frequency(incidents: Sequence[Incident]) -> Tuple[Dict[str, int], int]:
    """
    Count technique references by id over a filtered subset.

    Returns:
        Tuple of (technique id -> count in first-seen order, max count)
    """
    frequency: Dict[str, int] = {}
    for incident in incidents:
        for technique in incident.mitre_techniques:
            if technique.technique_id:
                frequency[technique.technique_id] = (
                    frequency.get(technique.technique_id, 0) + 1
                )
    return frequency, max(frequency.values(), default=0)


def cell_opacity(frequency: int, max_frequency: int) -> Optional[float]:
    """Fill intensity for a cell, or None when the technique was not observed."""
    if frequency <= 0 or max_frequency <= 0:
        return None
    return max(MIN_OPACITY, frequency / max_frequency)


class MatrixState(str, Enum):
    NO_SELECTION = "no-selection"
    NO_TECHNIQUES = "no-techniques"
    READY = "ready"


@dataclass(frozen=True)
class MatrixCell:
    technique_id: str
    name: str
    frequency: int
    opacity: Optional[float]

    @property
    def clickable(self) -> bool:
        return self.opacity is not None

    @property
    def dark_text(self) -> bool:
        return self.opacity is not None and self.opacity > DARK_TEXT_THRESHOLD

    @property
    def tooltip(self) -> str:
        return f"{self.name} (ID: {self.technique_id}) - Frequency: {self.frequency}"

    def to_dict(self) -> dict:
        return {
            "technique_id": self.technique_id,
            "name": self.name,
            "frequency": self.frequency,
            "opacity": self.opacity,
            "clickable": self.clickable,
            "dark_text": self.dark_text,
            "tooltip": self.tooltip,
        }


@dataclass(frozen=True)
class MitreMatrix:
    """Matrix view model. ``rows`` is empty unless ``state`` is READY."""

    state: MatrixState
    columns: List[str] = field(default_factory=list)
    rows: List[List[Optional[MatrixCell]]] = field(default_factory=list)
    max_frequency: int = 0

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "columns": list(self.columns),
            "rows": [
                [cell.to_dict() if cell else None for cell in row] for row in self.rows
            ],
            "max_frequency": self.max_frequency,
        }


def build_matrix(catalog: TacticCatalog, incidents: Sequence[Incident]) -> MitreMatrix:
    """
    Combine the corpus-wide catalog with frequencies from a filtered subset.

    Args:
        catalog: Catalog built from the full corpus
        incidents: Filtered subset

    Returns:
        MitreMatrix; NO_SELECTION for an empty subset and NO_TECHNIQUES when
        the subset references no technique ids
    """
    if not incidents:
        return MitreMatrix(state=MatrixState.NO_SELECTION)

    frequency, max_frequency = technique_frequency(incidents)
    if max_frequency == 0:
        return MitreMatrix(state=MatrixState.NO_TECHNIQUES)

    columns = catalog.columns
    rows: List[List[Optional[MatrixCell]]] = []
    for index in range(catalog.max_rows):
        row: List[Optional[MatrixCell]] = []
        for tactic in columns:
            entries = catalog.techniques(tactic)
            if index >= len(entries):
                row.append(None)
                continue
            entry = entries[index]
            count = frequency.get(entry.id, 0)
            row.append(
                MatrixCell(
                    technique_id=entry.id,
                    name=entry.name,
                    frequency=count,
                    opacity=cell_opacity(count, max_frequency),
                )
            )
        rows.append(row)

    return MitreMatrix(
        state=MatrixState.READY,
        columns=columns,
        rows=rows,
        max_frequency=max_frequency,
    )
