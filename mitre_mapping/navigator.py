# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""ATT&CK Navigator layer export.

Turns technique frequencies of a filtered subset into a layer document that
the MITRE ATT&CK Navigator can open. The document layout is fixed by the
Navigator's layer format 4.5.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from incident_store.models import Incident
from mitre_mapping.matrix import technique_frequency

logger = logging.getLogger(__name__)

DEFAULT_LAYER_NAME = "Incident TTPs (Filtered)"
VERSIONS = {"attack": "14", "navigator": "4.9.1", "layer": "4.5"}
DOMAIN = "enterprise-attack"
PLATFORMS = [
    "Windows",
    "Linux",
    "macOS",
    "Network",
    "PRE",
    "Containers",
    "Office 365",
    "SaaS",
    "Google Workspace",
    "IaaS",
    "Azure AD",
]
# Navigator sorting mode 2: descending score
SORT_DESCENDING_SCORE = 2
LAYOUT = {
    "layout": "side",
    "aggregateFunction": "average",
    "showID": False,
    "showName": True,
    "showAggregateScores": False,
    "countUnscored": False,
}
COLOR_LOW = "#ffffcc"
COLOR_HIGH = "#e67e22"
SCORE_MIN = 1
SCORE_MAX = 100


def navigator_score(count: int, max_frequency: int) -> int:
    """
    Map a technique count onto the 1-100 layer score.

    Args:
        count: Occurrences of the technique in the subset
        max_frequency: Highest occurrence count in the subset

    Returns:
        Score in [1, 100]; 1 for every technique when max_frequency is 1
    """
    span = max(1, max_frequency - SCORE_MIN)
    scaled = ((count - SCORE_MIN) / span) * 99
    # Half-up rounding, builtin round() would round half to even
    score = math.floor(scaled + 0.5) + 1
    return min(SCORE_MAX, max(SCORE_MIN, score))


@dataclass(frozen=True)
class NavigatorTechnique:
    technique_id: str
    score: int
    frequency: int

    def to_dict(self) -> dict:
        return {
            "techniqueID": self.technique_id,
            "score": self.score,
            "color": "",
            "comment": f"Frequency: {self.frequency}",
            "enabled": True,
            "metadata": [],
            "showSubtechniques": False,
        }


@dataclass(frozen=True)
class NavigatorLayer:
    """Self-describing Navigator layer built from one filtered subset."""

    name: str
    max_frequency: int
    generated_at: datetime
    techniques: List[NavigatorTechnique] = field(default_factory=list)

    @property
    def gradient_max(self) -> int:
        return max(1, self.max_frequency)

    @property
    def description(self) -> str:
        return (
            "Techniques observed in filtered incidents. Score based on frequency "
            f"(Max: {self.max_frequency}). "
            f"Generated: {_iso_timestamp(self.generated_at)}"
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "versions": dict(VERSIONS),
            "domain": DOMAIN,
            "description": self.description,
            "filters": {"platforms": list(PLATFORMS)},
            "sorting": SORT_DESCENDING_SCORE,
            "layout": dict(LAYOUT),
            "gradient": {
                "colors": [COLOR_LOW, COLOR_HIGH],
                "minValue": SCORE_MIN,
                "maxValue": self.gradient_max,
            },
            "legendItems": [
                {"label": f"Freq <= {SCORE_MIN}", "color": COLOR_LOW},
                {"label": f"Freq >= {self.gradient_max}", "color": COLOR_HIGH},
            ],
            "techniques": [technique.to_dict() for technique in self.techniques],
        }


def _iso_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with milliseconds and a ``Z`` suffix."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def export_navigator_layer(
    incidents: Sequence[Incident],
    generated_at: Optional[datetime] = None,
    name: str = DEFAULT_LAYER_NAME,
) -> NavigatorLayer:
    """
    Build a Navigator layer from the techniques of a filtered subset.

    Args:
        incidents: Filtered subset
        generated_at: Timestamp for the description, defaults to now (UTC)
        name: Layer name shown in the Navigator

    Returns:
        NavigatorLayer with techniques in first-seen order
    """
    frequency, max_frequency = technique_frequency(incidents)
    techniques = [
        NavigatorTechnique(
            technique_id=technique_id,
            score=navigator_score(count, max_frequency),
            frequency=count,
        )
        for technique_id, count in frequency.items()
    ]
    logger.info(
        "Exported %d techniques to navigator layer (max frequency %d)",
        len(techniques),
        max_frequency,
    )
    return NavigatorLayer(
        name=name,
        max_frequency=max_frequency,
        generated_at=generated_at or datetime.now(timezone.utc),
        techniques=techniques,
    )


def navigator_filename(on: Optional[date] = None) -> str:
    on = on or datetime.now(timezone.utc).date()
    return f"incidents_navigator_{on.isoformat()}.json"


def save_navigator_layer(layer: NavigatorLayer, path: Path) -> Path:
    """Write a layer as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(layer.to_dict(), f, indent=2)
    logger.info("Saved navigator layer to %s", path)
    return path
