# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Dashboard session: corpus, filter state and drill-down overlay.

`build_dashboard_view()` is a pure function of (corpus, catalog, criteria,
overlay, stacking) and recomputes every view from scratch. `DashboardSession`
holds the only mutable state and delegates to it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from aggregation.data_processor import (
    Ranking,
    StackBy,
    SummaryStats,
    TimeSeries,
    compute_rankings,
    compute_summary_stats,
    compute_time_series,
)
from aggregation.filters import (
    DrillDownOverlay,
    FilterCriteria,
    apply_filters,
    apply_overlay,
    describe_overlay,
    resolve,
)
from aggregation.geography import GeoAggregate, aggregate_by_country
from incident_store.loader import filter_options, load_corpus
from incident_store.models import Incident
from mitre_mapping.matrix import (
    MitreMatrix,
    TacticCatalog,
    build_matrix,
    build_tactic_catalog,
)
from mitre_mapping.navigator import NavigatorLayer, export_navigator_layer

logger = logging.getLogger(__name__)


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def explorer_description(count: int, overlay: Optional[DrillDownOverlay]) -> str:
    """Incident count label for the explorer, naming the overlay if any."""
    if overlay is None:
        return f"{count:,}"
    return f"{count} Incidents (filtered {describe_overlay(overlay)})"


@dataclass(frozen=True)
class DashboardView:
    """Every view model derived from one (criteria, overlay) state."""

    criteria: FilterCriteria
    overlay: Optional[DrillDownOverlay]
    filtered: List[Incident]
    explorer: List[Incident]
    explorer_description: str
    summary: SummaryStats
    time_series: TimeSeries
    rankings: Dict[str, Ranking]
    geo: GeoAggregate
    matrix: MitreMatrix
    options: Dict[str, list] = field(default_factory=dict)


def build_dashboard_view(
    incidents: Sequence[Incident],
    catalog: TacticCatalog,
    criteria: FilterCriteria,
    overlay: Optional[DrillDownOverlay] = None,
    stack_by: StackBy | str = StackBy.NONE,
    options: Optional[Dict[str, list]] = None,
) -> DashboardView:
    """
    Recompute all dashboard views for the given state.

    The overlay only narrows the explorer list; every aggregate is computed
    from the globally filtered subset.

    Args:
        incidents: Corpus in canonical order
        catalog: Tactic catalog built from the full corpus
        criteria: Global filter state
        overlay: Optional drill-down overlay
        stack_by: Time series stacking dimension
        options: Filter options to pass through to the view

    Returns:
        DashboardView
    """
    resolved = resolve(criteria)
    filtered = apply_filters(incidents, resolved)
    explorer = apply_overlay(filtered, overlay)
    logger.debug(
        "Recomputed view: %d of %d incidents match, %d in explorer",
        len(filtered),
        len(incidents),
        len(explorer),
    )
    return DashboardView(
        criteria=resolved,
        overlay=overlay,
        filtered=filtered,
        explorer=explorer,
        explorer_description=explorer_description(len(explorer), overlay),
        summary=compute_summary_stats(filtered),
        time_series=compute_time_series(filtered, stack_by),
        rankings=compute_rankings(filtered),
        geo=aggregate_by_country(filtered),
        matrix=build_matrix(catalog, filtered),
        options=options or {},
    )


def _ranking_to_list(ranking: Ranking) -> List[Dict[str, Any]]:
    return [{"label": label, "count": count} for label, count in ranking]


def view_to_dict(view: DashboardView) -> Dict[str, Any]:
    """JSON-serializable form of a dashboard view."""
    summary = view.summary
    series = view.time_series
    return {
        "criteria": view.criteria.to_dict(),
        "overlay": (
            {"kind": view.overlay.kind.value, "value": view.overlay.value}
            if view.overlay
            else None
        ),
        "summary": {
            "total_incidents": summary.total_incidents,
            "total_loss_usd": summary.total_loss_usd,
            "top_group": list(summary.top_group) if summary.top_group else None,
            "top_sector": list(summary.top_sector) if summary.top_sector else None,
            "display": summary.display(),
        },
        "time_series": {
            "stack_by": series.stack_by.value,
            "years": series.years,
            "incident_counts": series.incident_counts,
            "losses": series.losses,
            "categories": series.categories,
            "stacks": series.stacks,
        },
        "rankings": {
            name: _ranking_to_list(ranking) for name, ranking in view.rankings.items()
        },
        "geo": {
            "countries": [country.to_dict() for country in view.geo.countries],
            "unmapped_countries": list(view.geo.unmapped_countries),
        },
        "matrix": view.matrix.to_dict(),
        "explorer": {
            "description": view.explorer_description,
            "incident_ids": [incident.id for incident in view.explorer],
        },
        "options": view.options,
    }


class DashboardSession:
    """
    Mutable dashboard state around an immutable corpus.

    Filter changes clear any active overlay, since the overlay was picked
    from views of the previous subset.
    """

    def __init__(self) -> None:
        self.state = LoadState.IDLE
        self.error: Optional[str] = None
        self.incidents: List[Incident] = []
        self.catalog = TacticCatalog()
        self.options: Dict[str, list] = {}
        self.criteria = FilterCriteria()
        self.overlay: Optional[DrillDownOverlay] = None
        self.stack_by = StackBy.NONE

    def load(self, source: str) -> LoadState:
        """
        Load the corpus from a file path or URL.

        On failure the session holds no corpus and ``error`` carries a single
        user-facing message.
        """
        self.state = LoadState.LOADING
        self.error = None
        try:
            incidents = load_corpus(source)
        except (OSError, ValueError) as e:
            self.incidents = []
            self.catalog = TacticCatalog()
            self.options = {}
            self.error = f"Error: {e}. Could not load incident data."
            self.state = LoadState.FAILED
            logger.error("Failed to load incident data from %s: %s", source, e)
            return self.state
        self.use_corpus(incidents)
        return self.state

    def use_corpus(self, incidents: Sequence[Incident]) -> None:
        """Adopt an already loaded, canonically sorted corpus."""
        self.incidents = list(incidents)
        self.catalog = build_tactic_catalog(self.incidents)
        self.options = filter_options(self.incidents)
        self.criteria = FilterCriteria()
        self.overlay = None
        self.error = None
        self.state = LoadState.READY

    def _require_ready(self) -> None:
        if self.state is not LoadState.READY:
            raise RuntimeError(
                f"Incident data is not loaded (state: {self.state.value})"
            )

    def update_filters(self, **params: Any) -> FilterCriteria:
        """
        Change one or more filter values.

        Returns:
            The resolved criteria, which may differ from the input when the
            year range was inverted
        """
        self._require_ready()
        merged = {**self.criteria.to_dict(), **params}
        self.criteria = resolve(FilterCriteria.from_params(merged))
        self.overlay = None
        return self.criteria

    def reset_filters(self) -> FilterCriteria:
        self._require_ready()
        self.criteria = FilterCriteria()
        self.overlay = None
        return self.criteria

    def set_stack_by(self, stack_by: StackBy | str) -> None:
        self.stack_by = StackBy(stack_by)

    def filtered(self) -> List[Incident]:
        self._require_ready()
        return apply_filters(self.incidents, self.criteria)

    def set_overlay(self, kind: str, value: str) -> Tuple[List[Incident], str]:
        """
        Replace the drill-down overlay.

        Returns:
            Tuple of (narrowed subset, description such as "by map: UK")
        """
        self._require_ready()
        self.overlay = DrillDownOverlay(kind=kind, value=value)
        subset = apply_overlay(self.filtered(), self.overlay)
        logger.info(
            "Drill-down %s matched %d incidents",
            describe_overlay(self.overlay),
            len(subset),
        )
        return subset, describe_overlay(self.overlay)

    def clear_overlay(self) -> None:
        self.overlay = None

    def view(self) -> DashboardView:
        self._require_ready()
        return build_dashboard_view(
            self.incidents,
            self.catalog,
            self.criteria,
            overlay=self.overlay,
            stack_by=self.stack_by,
            options=self.options,
        )

    def export_navigator(
        self, generated_at: Optional[datetime] = None
    ) -> NavigatorLayer:
        """Navigator layer for the globally filtered subset (overlay ignored)."""
        return export_navigator_layer(self.filtered(), generated_at=generated_at)
