# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for summary statistics, rankings and time series."""

import pandas as pd
import pytest

from aggregation.data_processor import (
    ENTITY_TOP_N,
    StackBy,
    compute_rankings,
    compute_summary_stats,
    compute_time_series,
    count_groups,
    count_sectors,
    count_techniques,
    format_currency,
    format_date,
    incidents_to_frame,
    rank,
    rank_descending,
)
from incident_store.loader import load_incidents
from incident_store.tests.fixtures.sample_data import (
    TOTAL_LOSS_USD,
    make_document,
    year_record,
)

# ===== Test rank() =====


class TestRank:
    """Test the generic top-N ranking."""

    @pytest.mark.unit
    def test_display_order_is_ascending(self):
        """Test the result is reversed so counts read lowest to highest."""
        counts = {"a": 1, "b": 5, "c": 3}

        assert rank(counts, 12) == [("a", 1), ("c", 3), ("b", 5)]

    @pytest.mark.unit
    def test_ties_keep_insertion_order(self):
        """Test equal counts keep first-seen order before the reversal."""
        counts = {"first": 2, "second": 2, "third": 2, "top": 4}

        assert rank_descending(counts, 3) == [("top", 4), ("first", 2), ("second", 2)]
        assert rank(counts, 3) == [("second", 2), ("first", 2), ("top", 4)]

    @pytest.mark.unit
    def test_truncates_to_n(self):
        """Test output length never exceeds n and counts do not increase."""
        counts = {f"label-{i}": i % 7 for i in range(30)}

        ranked = rank_descending(counts, ENTITY_TOP_N)

        assert len(ranked) == ENTITY_TOP_N
        values = [count for _, count in ranked]
        assert values == sorted(values, reverse=True)

    @pytest.mark.unit
    def test_edge_sizes(self):
        """Test n of zero and empty counts."""
        assert rank({"a": 1}, 0) == []
        assert rank({}, 5) == []

    @pytest.mark.unit
    def test_negative_n_rejected(self):
        """Test a negative n raises ValueError."""
        with pytest.raises(ValueError):
            rank({"a": 1}, -1)


# ===== Test counters and rankings =====


class TestRankings:
    """Test the counters feeding the ranking charts."""

    @pytest.mark.unit
    def test_group_counts_in_canonical_order(self, corpus):
        """Test groups are counted per incident with Unknown for absent."""
        assert count_groups(corpus) == {
            "Lazarus Group": 3,
            "APT38": 1,
            "Kimsuky": 1,
            "Unknown": 1,
        }

    @pytest.mark.unit
    def test_counts_keep_first_seen_order(self):
        """Test tied labels rank in the order they first appear."""
        corpus = load_incidents(
            make_document(
                year_record("a", 2016, attribution={"primary_group": "Beta"}),
                year_record("b", 2017, attribution={"primary_group": "Alpha"}),
                year_record("c", 2018, attribution={"primary_group": "Beta"}),
                year_record("d", 2019, attribution={"primary_group": "Alpha"}),
            )
        )

        counts = count_groups(corpus)

        assert list(counts.items()) == [("Beta", 2), ("Alpha", 2)]
        assert rank_descending(counts, 2) == [("Beta", 2), ("Alpha", 2)]
        assert rank(counts, 2) == [("Alpha", 2), ("Beta", 2)]
        assert compute_summary_stats(corpus).top_group == ("Beta", 2)

    @pytest.mark.unit
    def test_sectors_counted_per_target(self, corpus):
        """Test an incident with several targets counts for each sector."""
        assert count_sectors(corpus) == {
            "Financial": 1,
            "Healthcare": 1,
            "Government": 2,
            "Cryptocurrency": 2,
            "Defense": 1,
            "Unknown": 1,
        }

    @pytest.mark.unit
    def test_technique_labels(self, corpus):
        """Test technique counts are keyed by "ID: name" labels."""
        counts = count_techniques(corpus)

        assert counts["T1566: Phishing"] == 5
        assert counts["T1059: Command and Scripting Interpreter"] == 2
        assert list(counts)[0] == "T1566: Phishing"

    @pytest.mark.unit
    def test_compute_rankings(self, corpus):
        """Test every ranking chart is produced in display order."""
        rankings = compute_rankings(corpus)

        assert rankings["groups"] == [
            ("Unknown", 1),
            ("Kimsuky", 1),
            ("APT38", 1),
            ("Lazarus Group", 3),
        ]
        assert rankings["tactics"][-1] == ("Initial Access", 5)
        assert rankings["loss_types"][-1] == ("Financial Theft", 3)
        assert len(rankings["techniques"]) == 5


# ===== Test compute_summary_stats() =====


class TestSummaryStats:
    """Test the headline numbers."""

    @pytest.mark.unit
    def test_summary(self, corpus):
        """Test totals and top entries over the full corpus."""
        summary = compute_summary_stats(corpus)

        assert summary.total_incidents == 6
        assert summary.total_loss_usd == TOTAL_LOSS_USD
        assert summary.top_group == ("Lazarus Group", 3)
        # Government and Cryptocurrency tie at 2; Government is seen first
        assert summary.top_sector == ("Government", 2)

    @pytest.mark.unit
    def test_summary_display(self, corpus):
        """Test formatted summary card values."""
        display = compute_summary_stats(corpus).display()

        assert display == {
            "total_incidents": "6",
            "total_loss": "$765.0M",
            "top_group": "Lazarus Group (3)",
            "top_sector": "Government (2)",
        }

    @pytest.mark.unit
    def test_empty_subset(self):
        """Test an empty subset has zero totals and no top entries."""
        summary = compute_summary_stats([])

        assert summary.total_incidents == 0
        assert summary.total_loss_usd == 0
        assert summary.top_group is None
        assert summary.display()["top_sector"] == "--"


# ===== Test compute_time_series() =====


class TestTimeSeries:
    """Test yearly buckets and stacking."""

    @pytest.mark.unit
    def test_unstacked(self, corpus):
        """Test per-year counts and losses, undated records excluded."""
        series = compute_time_series(corpus)

        assert series.years == [2016, 2017, 2018, 2019, 2022]
        assert series.incident_counts == [1, 1, 1, 1, 1]
        assert series.losses == [81e6, 4e6, 60e6, 0.0, 620e6]
        assert series.categories == []

    @pytest.mark.unit
    def test_stacked_by_group(self, corpus):
        """Test group stacking with alphabetically sorted categories."""
        series = compute_time_series(corpus, "by-group")

        assert series.stack_by is StackBy.BY_GROUP
        assert series.categories == ["APT38", "Kimsuky", "Lazarus Group"]
        assert series.stacks["Lazarus Group"] == [1, 1, 0, 0, 1]
        assert series.stacks["Kimsuky"] == [0, 0, 0, 1, 0]

    @pytest.mark.unit
    def test_stacked_by_loss_type(self, corpus):
        """Test loss type stacking counts loss events."""
        series = compute_time_series(corpus, StackBy.BY_LOSS_TYPE)

        assert series.categories == [
            "Data Destruction",
            "Data Exfiltration (Espionage)",
            "Disruption of Services",
            "Financial Theft",
        ]
        assert series.stacks["Financial Theft"] == [1, 0, 1, 0, 1]
        assert series.stacks["Disruption of Services"] == [0, 1, 0, 0, 0]

    @pytest.mark.unit
    def test_unknown_stacking_rejected(self, corpus):
        """Test an unknown stacking dimension raises ValueError."""
        with pytest.raises(ValueError):
            compute_time_series(corpus, "by-sector")

    @pytest.mark.unit
    def test_empty_subset(self):
        """Test an empty subset yields an empty series."""
        series = compute_time_series([], "by-group")

        assert series.years == []
        assert series.stacks == {}


# ===== Test tabular export and formatting =====


class TestFrameAndFormatting:
    """Test the incidents table and display formatting."""

    @pytest.mark.unit
    def test_incidents_to_frame(self, corpus):
        """Test one row per incident with a nullable year column."""
        frame = incidents_to_frame(corpus)

        assert list(frame["id"]) == [incident.id for incident in corpus]
        assert str(frame["year"].dtype) == "Int64"
        assert pd.isna(frame["year"].iloc[-1])
        assert frame.loc[1, "loss_types"] == "Disruption of Services; Data Destruction"
        assert frame.loc[3, "countries"] == "USA/South Korea; Atlantis"
        assert frame.loc[0, "date"] == str(corpus[0].year)
        assert frame["date"].iloc[-1] == "Date Unknown"

    @pytest.mark.unit
    def test_incidents_to_frame_empty(self):
        """Test an empty subset gives an empty frame with all columns."""
        frame = incidents_to_frame([])

        assert frame.empty
        assert "technique_ids" in frame.columns

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "--"),
            (0, "$0"),
            (999, "$999"),
            (12_345, "$12K"),
            (45_000_000, "$45.0M"),
            (1_200_000_000, "$1.2B"),
        ],
    )
    def test_format_currency(self, value, expected):
        """Test compact currency labels."""
        assert format_currency(value) == expected

    @pytest.mark.unit
    def test_format_date(self):
        """Test display dates prefer the year and tolerate bad input."""
        assert format_date("2019-03-01", 2019) == "2019"
        assert format_date("2019-03-01") == "Mar 1, 2019"
        assert format_date("2019") == "2019"
        assert format_date("sometime") == "Date Unknown"
        assert format_date(None) == "Date Unknown"
