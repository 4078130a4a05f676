"""
test_tiers.py - Unit tests for tier bucketing and reconciliation corrections
"""

from stakeledger import (
    DEFAULT_TIER_THRESHOLDS, DENOMINATION, ReconciliationConfig, ReconciliationCorrector,
    TierCounts, combine_balances, count_tiers,
)


class TestCountTiers:

    def test_empty(self):
        assert count_tiers([], DEFAULT_TIER_THRESHOLDS) == TierCounts()

    def test_boundaries_are_inclusive(self):
        balances = [
            0,
            DENOMINATION // 10 - 1,
            DENOMINATION // 10,
            DENOMINATION,
            10 * DENOMINATION,
            100 * DENOMINATION,
            1000 * DENOMINATION,
        ]
        counts = count_tiers(balances, DEFAULT_TIER_THRESHOLDS)
        assert counts.as_tuple() == (6, 5, 4, 3, 2, 1)

    def test_amounts_beyond_64_bits(self):
        counts = count_tiers([10 ** 30, 2 ** 70], DEFAULT_TIER_THRESHOLDS)
        assert counts.b1k == 2

    def test_to_dict_keys(self):
        assert TierCounts(1, 2, 3, 4, 5, 6).to_dict() == {
            "nonZero": 1, "b01EGLD": 2, "b1EGLD": 3, "b10EGLD": 4, "b100EGLD": 5, "b1KEGLD": 6,
        }


def test_combine_balances_uses_union():
    combined = combine_balances({"a": 1, "b": 2}, {"b": 3, "c": 4})
    assert combined == {"a": 1, "b": 5, "c": 4}


class TestReconciliationCorrector:

    def corrector(self, **corrections):
        return ReconciliationCorrector(ReconciliationConfig(start_epoch=239, version="v1", **corrections))

    def test_before_start_epoch_unchanged(self):
        counts = TierCounts(10, 9, 8, 7, 6, 5)
        assert self.corrector(non_zero=3).apply(238, counts) is counts

    def test_subtracts_from_start_epoch(self):
        counts = TierCounts(10, 9, 8, 7, 6, 5)
        corrected = self.corrector(non_zero=3, b01=2, b1=1).apply(239, counts)
        assert corrected.as_tuple() == (7, 7, 7, 7, 6, 5)

    def test_clamped_at_zero(self):
        corrected = self.corrector(non_zero=50, b1k=50).apply(300, TierCounts(10, 9, 8, 7, 6, 5))
        assert corrected.non_zero == 0
        assert corrected.b1k == 0

    def test_stays_non_increasing(self):
        corrected = self.corrector(non_zero=5).apply(239, TierCounts(10, 9, 8, 7, 6, 5))
        values = corrected.as_tuple()
        assert values == (5, 5, 5, 5, 5, 5)
        assert all(a >= b for a, b in zip(values, values[1:]))

    def test_version_label(self):
        assert self.corrector().version == "v1"
        assert self.corrector().applies_to(239)
        assert not self.corrector().applies_to(10)
