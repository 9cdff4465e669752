"""Tests for state name lookup and per-state aggregation."""

import pandas as pd
import pytest

from aggregation import METRIC_FIELD, REGION_FIELD, RegionSnapshot, aggregate
from region_names import STATE_ABBR_TO_NAME, normalize


def rows(*pairs):
    return [{REGION_FIELD: code, METRIC_FIELD: metric} for code, metric in pairs]


# ── Region names ──────────────────────────────────────────────────────────

class TestRegionNames:
    def test_known_code(self):
        assert normalize("CA") == "California"
        assert normalize("WV") == "West Virginia"

    def test_unknown_code_passes_through(self):
        assert normalize("PR") == "PR"
        assert normalize("Ontario") == "Ontario"

    def test_lookup_is_case_sensitive(self):
        assert normalize("ca") == "ca"

    def test_table_covers_fifty_states(self):
        assert len(STATE_ABBR_TO_NAME) == 50

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            STATE_ABBR_TO_NAME["XX"] = "Nowhere"


# ── Aggregation ───────────────────────────────────────────────────────────

class TestAggregate:
    def test_scenario_with_unparseable_metric(self):
        values, ranks = aggregate(rows(("CA", "10"), ("CA", "5"), ("TX", "abc")))
        assert dict(values) == {"California": 15.0, "Texas": 0.0}
        assert dict(ranks) == {"California": 0}

    def test_code_is_trimmed(self):
        values, _ = aggregate(rows((" NY ", "3"), ("NY\t", "4")))
        assert dict(values) == {"New York": 7.0}

    def test_missing_or_empty_code_skips_row(self):
        records = rows(("", "10"), ("   ", "5"), ("OH", "2")) + [{METRIC_FIELD: "99"}]
        values, _ = aggregate(records)
        assert dict(values) == {"Ohio": 2.0}

    def test_missing_metric_contributes_zero(self):
        values, ranks = aggregate([{REGION_FIELD: "UT"}, {REGION_FIELD: "UT", METRIC_FIELD: ""}])
        assert dict(values) == {"Utah": 0.0}
        assert dict(ranks) == {}

    def test_missing_metric_column(self):
        values, ranks = aggregate([{REGION_FIELD: "UT", "Other": "4"}])
        assert dict(values) == {"Utah": 0.0}
        assert dict(ranks) == {}

    def test_missing_region_column(self):
        snapshot = aggregate([{METRIC_FIELD: "4"}])
        assert dict(snapshot.values) == {}
        assert snapshot.max_value is None

    def test_empty_input(self):
        snapshot = aggregate([])
        assert dict(snapshot.values) == {}
        assert dict(snapshot.ranks) == {}
        assert snapshot.min_value is None
        assert snapshot.max_rank is None

    def test_negative_and_non_finite_metrics_count_as_zero(self):
        values, _ = aggregate(rows(("CA", "-5"), ("CA", "inf"), ("CA", "nan"), ("CA", "2.5")))
        assert dict(values) == {"California": 2.5}

    def test_partly_numeric_metric_counts_as_zero(self):
        values, ranks = aggregate(rows(("CA", "12 requests"), ("CA", "3")))
        assert dict(values) == {"California": 3.0}
        assert dict(ranks) == {"California": 0}

    def test_unknown_code_kept_as_name(self):
        values, ranks = aggregate(rows(("PR", "8")))
        assert dict(values) == {"PR": 8.0}
        assert dict(ranks) == {"PR": 0}

    def test_values_are_exact_row_sums(self):
        records = rows(("CA", "0.5"), ("TX", "1"), ("CA", "0.25"), ("CA", "x"), ("CA", "0.125"))
        values, _ = aggregate(records)
        assert values["California"] == 0.875
        assert values["Texas"] == 1.0
        assert all(v >= 0 for v in values.values())

    def test_ranks_ascending_by_value(self):
        values, ranks = aggregate(rows(("NY", "100"), ("CA", "10"), ("TX", "1000"), ("OH", "0")))
        assert dict(ranks) == {"California": 0, "New York": 1, "Texas": 2}
        assert sorted(ranks.values()) == list(range(3))
        ordered = sorted(ranks, key=ranks.get)
        assert [values[s] for s in ordered] == sorted(values[s] for s in ordered)

    def test_ties_keep_first_seen_order(self):
        _, ranks = aggregate(rows(("TX", "5"), ("CA", "5"), ("NY", "1")))
        assert dict(ranks) == {"New York": 0, "Texas": 1, "California": 2}

    def test_deterministic(self):
        records = rows(("CA", "1.1"), ("TX", "2"), ("NY", "bad"), ("CA", "3.3"))
        first = aggregate(records)
        second = aggregate(records)
        assert first == second
        assert list(first.values.items()) == list(second.values.items())

    def test_accepts_dataframe(self):
        df = pd.DataFrame({
            REGION_FIELD: ["CA", "TX", "CA", ""],
            METRIC_FIELD: ["10", "abc", "5", "7"],
        })
        values, ranks = aggregate(df)
        assert dict(values) == {"California": 15.0, "Texas": 0.0}
        assert dict(ranks) == {"California": 0}

    def test_custom_columns(self):
        snapshot = aggregate([{"st": "WA", "n": "3"}], region_field="st", metric_field="n")
        assert dict(snapshot.values) == {"Washington": 3.0}


class TestRegionSnapshot:
    def test_bounds_hoisted(self):
        snapshot = RegionSnapshot.from_values({"A": 0.0, "B": 4.0, "C": 2.0, "D": 9.0})
        assert snapshot.min_value == 2.0
        assert snapshot.max_value == 9.0
        assert snapshot.max_rank == 2
        assert snapshot.ranked_count == 3

    def test_maps_are_read_only(self):
        snapshot = RegionSnapshot.from_values({"A": 1.0})
        with pytest.raises(TypeError):
            snapshot.values["B"] = 2.0
        with pytest.raises(TypeError):
            snapshot.ranks["B"] = 1

    def test_frozen(self):
        snapshot = RegionSnapshot.from_values({"A": 1.0})
        with pytest.raises(AttributeError):
            snapshot.max_value = 5.0
