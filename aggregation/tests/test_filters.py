# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for global filters and drill-down overlays."""

import logging
import math
import random

import pytest

from aggregation.filters import (
    ALL,
    DrillDownOverlay,
    FilterCriteria,
    OverlayKind,
    apply_filters,
    apply_overlay,
    describe_overlay,
    matches,
    resolve,
    year_range,
)
from incident_store.loader import load_incidents
from incident_store.tests.fixtures.sample_data import make_document, year_record


def _ids(incidents):
    return [incident.id for incident in incidents]


def _year_or_none(value):
    return None if value == ALL else int(value)


def _plain_match(incident, criteria):
    low = _year_or_none(criteria.start_year)
    high = _year_or_none(criteria.end_year)
    if low is not None and high is not None and high < low:
        low, high = high, low
    year = incident.year
    if year is None:
        return False
    if low is not None and year < low:
        return False
    if high is not None and year > high:
        return False
    if criteria.group != ALL and incident.attribution.primary_group != criteria.group:
        return False
    sectors = [target.sector for target in incident.targets]
    if criteria.sector != ALL and criteria.sector not in sectors:
        return False
    loss_types = [loss.loss_type for loss in incident.loss_events]
    if criteria.loss_type != ALL and criteria.loss_type not in loss_types:
        return False
    return True


# ===== Test resolve() =====


class TestResolve:
    """Test year range correction."""

    @pytest.mark.unit
    def test_inverted_range_is_swapped(self):
        """Test an end year before the start year is swapped."""
        resolved = resolve(FilterCriteria(start_year=2020, end_year=2010))

        assert (resolved.start_year, resolved.end_year) == (2010, 2020)

    @pytest.mark.unit
    def test_whole_number_float_year(self, caplog):
        """Test a year given as 2019.0 narrows like 2019."""
        corpus = load_incidents(
            make_document(
                year_record("a", 2015), year_record("b", 2019), year_record("c", 2022)
            )
        )
        criteria = FilterCriteria(start_year=2019.0, end_year="2019")

        with caplog.at_level(logging.WARNING, logger="aggregation.filters"):
            subset = apply_filters(corpus, criteria)

        assert _ids(subset) == ["b"]
        assert (resolve(criteria).start_year, resolve(criteria).end_year) == (
            2019,
            2019,
        )
        assert "unrecognized" not in caplog.text

    @pytest.mark.unit
    def test_resolve_is_idempotent(self):
        """Test resolving twice gives the same criteria."""
        once = resolve(FilterCriteria(start_year=2020, end_year=2010, group="APT38"))

        assert resolve(once) == once

    @pytest.mark.unit
    def test_all_maps_to_unbounded(self):
        """Test the "all" sentinel becomes an unbounded range end."""
        bounds = year_range(FilterCriteria(end_year=2019))

        assert bounds.low == -math.inf
        assert bounds.high == 2019
        assert 1900 in bounds
        assert 2020 not in bounds

    @pytest.mark.unit
    def test_from_params_parses_strings(self):
        """Test select values given as strings are parsed."""
        criteria = FilterCriteria.from_params(
            {"start_year": "2016", "end_year": "all", "group": "", "sector": "Defense"}
        )

        assert criteria.start_year == 2016
        assert criteria.end_year == ALL
        assert criteria.group == ALL
        assert criteria.sector == "Defense"
        assert criteria.loss_type == ALL


# ===== Test apply_filters() =====


class TestApplyFilters:
    """Test conjunctive filter predicates."""

    @pytest.mark.unit
    def test_end_year_only(self):
        """Test an open start with end year 2019 keeps years up to 2019."""
        corpus = load_incidents(
            make_document(
                year_record("a", 2017),
                year_record("b", 2019),
                year_record("c", 2019),
                year_record("d", 2020),
            )
        )

        subset = apply_filters(corpus, FilterCriteria(start_year=ALL, end_year=2019))

        assert len(subset) == 3
        assert [incident.year for incident in subset] == [2017, 2019, 2019]

    @pytest.mark.unit
    def test_default_criteria_drop_undated(self, corpus):
        """Test records without a year never pass the year predicate."""
        subset = apply_filters(corpus, FilterCriteria())

        assert _ids(subset) == ["INC-001", "INC-002", "INC-003", "INC-004", "INC-005"]

    @pytest.mark.unit
    def test_inverted_range_applied_after_swap(self, corpus):
        """Test an inverted range filters as if it was given in order."""
        subset = apply_filters(corpus, FilterCriteria(start_year=2018, end_year=2016))

        assert _ids(subset) == ["INC-001", "INC-002", "INC-003"]

    @pytest.mark.unit
    def test_group_filter(self, corpus):
        """Test the group filter is an exact match on the primary group."""
        subset = apply_filters(corpus, FilterCriteria(group="Lazarus Group"))

        assert _ids(subset) == ["INC-001", "INC-002", "INC-005"]

    @pytest.mark.unit
    def test_sector_filter_matches_any_target(self, corpus):
        """Test the sector filter matches if any target has the sector."""
        subset = apply_filters(corpus, FilterCriteria(sector="Government"))

        assert _ids(subset) == ["INC-002", "INC-004"]

    @pytest.mark.unit
    def test_loss_type_filter(self, corpus):
        """Test the loss type filter matches any loss event."""
        subset = apply_filters(corpus, FilterCriteria(loss_type="Financial Theft"))

        assert _ids(subset) == ["INC-001", "INC-003", "INC-005"]

    @pytest.mark.unit
    def test_filters_are_conjunctive(self, corpus):
        """Test all active predicates must hold."""
        criteria = FilterCriteria(
            start_year=2017, group="Lazarus Group", loss_type="Financial Theft"
        )

        assert _ids(apply_filters(corpus, criteria)) == ["INC-005"]

    @pytest.mark.unit
    def test_unknown_group_is_not_a_wildcard(self, corpus):
        """Test an incident without a group never matches a group filter."""
        subset = apply_filters(corpus, FilterCriteria(start_year=ALL, group="Unknown"))

        assert subset == []

    @pytest.mark.unit
    def test_matches_agrees_with_apply(self, corpus):
        """Test the single-record predicate agrees with apply_filters."""
        criteria = FilterCriteria(
            start_year=2017, end_year=2019, sector="Cryptocurrency"
        )
        expected = apply_filters(corpus, criteria)

        selected = [incident for incident in corpus if matches(incident, criteria)]

        assert selected == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("seed", range(8))
    def test_random_criteria_select_exactly_matching(self, corpus, seed):
        """Test apply_filters keeps exactly the records a plain predicate accepts."""
        rng = random.Random(seed)
        bounds = [ALL, "2016", 2015, 2016, 2017, 2018.0, 2019, 2022, 2030]
        groups = [ALL, "Lazarus Group", "APT38", "Nobody"]
        sectors = [ALL, "Cryptocurrency", "Government", "Financial", "Nowhere"]
        loss_types = [ALL, "Financial Theft", "Data Destruction", "None Such"]

        for _ in range(40):
            subset = rng.sample(corpus, rng.randint(0, len(corpus)))
            subset.sort(key=corpus.index)
            criteria = FilterCriteria(
                start_year=rng.choice(bounds),
                end_year=rng.choice(bounds),
                group=rng.choice(groups),
                sector=rng.choice(sectors),
                loss_type=rng.choice(loss_types),
            )

            resolved = resolve(criteria)
            assert resolve(resolved) == resolved
            if ALL not in (resolved.start_year, resolved.end_year):
                assert resolved.start_year <= resolved.end_year

            expected = [
                incident for incident in subset if _plain_match(incident, criteria)
            ]
            assert apply_filters(subset, criteria) == expected
            assert [i for i in subset if matches(i, criteria)] == expected


# ===== Test drill-down overlays =====


class TestOverlay:
    """Test drill-down overlays on a filtered subset."""

    @pytest.mark.unit
    def test_country_overlay_uses_alias(self, dated_corpus):
        """Test a South Korea overlay includes USA/South Korea targets."""
        overlay = DrillDownOverlay(kind="country", value="South Korea")

        assert _ids(apply_overlay(dated_corpus, overlay)) == ["INC-003", "INC-004"]

    @pytest.mark.unit
    def test_technique_overlay(self, dated_corpus):
        """Test a technique overlay matches on technique id."""
        overlay = DrillDownOverlay(kind=OverlayKind.TECHNIQUE, value="T1204")

        assert _ids(apply_overlay(dated_corpus, overlay)) == ["INC-003"]

    @pytest.mark.unit
    def test_overlay_only_narrows(self, corpus):
        """Test an overlay never adds incidents outside the filtered subset."""
        filtered = apply_filters(corpus, FilterCriteria(end_year=2018))
        overlay = DrillDownOverlay(kind="technique", value="T1059")

        narrowed = apply_overlay(filtered, overlay)

        assert _ids(narrowed) == ["INC-001"]
        assert all(incident in filtered for incident in narrowed)

    @pytest.mark.unit
    def test_no_overlay_keeps_subset(self, dated_corpus):
        """Test applying no overlay returns the subset unchanged."""
        assert apply_overlay(dated_corpus, None) == dated_corpus

    @pytest.mark.unit
    def test_unknown_kind_rejected(self):
        """Test an unknown overlay kind raises ValueError."""
        with pytest.raises(ValueError):
            DrillDownOverlay(kind="sector", value="Defense")

    @pytest.mark.unit
    def test_describe_overlay(self):
        """Test overlay descriptions name the kind and value."""
        assert (
            describe_overlay(DrillDownOverlay(kind="country", value="South Korea"))
            == "by map: South Korea"
        )
        assert (
            describe_overlay(DrillDownOverlay(kind="technique", value="T1566"))
            == "by TTP: T1566"
        )
