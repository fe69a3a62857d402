"""Tests for the aggregate calculator."""

from __future__ import annotations

from subcollection_migrator.aggregates import check_consistency, compute_aggregates
from subcollection_migrator.targets import PUPPY_AGGREGATES, AggregateSpec, CategoryTally


class TestComputeAggregates:
    """Tests for compute_aggregates."""

    def test_empty_list_has_every_key(self):
        """An empty child list yields zero for every declared field."""
        counts = compute_aggregates([], PUPPY_AGGREGATES)

        assert set(counts) == set(PUPPY_AGGREGATES.derived_fields())
        assert all(value == 0 for value in counts.values())

    def test_counts_by_sex_and_status(self):
        """Children are tallied by each categorical field."""
        puppies = [
            {"sex": "male", "status": "available"},
            {"sex": "female", "status": "sold"},
            {"sex": "female", "status": "kept"},
        ]
        counts = compute_aggregates(puppies, PUPPY_AGGREGATES)

        assert counts["puppyCount"] == 3
        assert counts["maleCount"] == 1
        assert counts["femaleCount"] == 2
        assert counts["availableCount"] == 1
        assert counts["soldCount"] == 1
        assert counts["keptCount"] == 1
        assert counts["reservedCount"] == 0

    def test_unmatched_values_go_to_other_field(self):
        """Unknown or missing values are counted in the tally's other field."""
        puppies = [{"sex": "unknown"}, {"status": "deceased"}, {}]
        counts = compute_aggregates(puppies, PUPPY_AGGREGATES)

        assert counts["unknownSexCount"] == 3
        assert counts["otherStatusCount"] == 3

    def test_category_sums_equal_total(self):
        """Each tally sums to the total child count."""
        puppies = [
            {"sex": "male", "status": "available"},
            {"sex": "female", "status": "reserved"},
            {"sex": None, "status": "sold"},
            {"sex": "male", "status": 7},
            {"sex": "female"},
        ]
        counts = compute_aggregates(puppies, PUPPY_AGGREGATES)

        for tally in PUPPY_AGGREGATES.tallies:
            assert sum(counts[name] for name in tally.derived_fields()) == counts["puppyCount"]
        assert check_consistency(counts, PUPPY_AGGREGATES) == []

    def test_deterministic(self):
        """Same input produces the same counts."""
        puppies = [{"sex": "male", "status": "sold"}, {"sex": "female", "status": "kept"}]

        assert compute_aggregates(puppies, PUPPY_AGGREGATES) == compute_aggregates(list(puppies), PUPPY_AGGREGATES)


class TestCheckConsistency:
    """Tests for check_consistency."""

    def test_detects_mismatch(self):
        """A tally that does not sum to the total is reported."""
        spec = AggregateSpec(
            total_field="total",
            tallies=[CategoryTally(field="kind", counts={"a": "aCount"}, other_field="otherCount")],
        )

        assert check_consistency({"total": 2, "aCount": 1, "otherCount": 0}, spec) == ["kind"]

    def test_tally_without_other_field_is_not_checked(self):
        """Partial tallies cannot be expected to sum to the total."""
        spec = AggregateSpec(
            total_field="total",
            tallies=[CategoryTally(field="kind", counts={"a": "aCount"})],
        )

        assert check_consistency({"total": 2, "aCount": 1}, spec) == []
