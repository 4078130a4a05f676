"""
reconciliation.py - Epoch-gated point corrections of the bucket counters

From a fixed epoch on, six constants are subtracted from the bucket
counters to account for an event the replay cannot observe. The correction
never errors: results are clamped at zero and kept non-increasing across
tiers.
"""

from __future__ import annotations

from .config import ReconciliationConfig
from .tiers import TierCounts


class ReconciliationCorrector:
    """Applies the configured corrections to TierCounts."""

    def __init__(self, config: ReconciliationConfig):
        self.config = config

    @property
    def version(self) -> str:
        return self.config.version

    def applies_to(self, epoch: int) -> bool:
        return epoch >= self.config.start_epoch

    def apply(self, epoch: int, counts: TierCounts) -> TierCounts:
        """Return counts corrected for epoch (unchanged before the start epoch)."""
        if not self.applies_to(epoch):
            return counts

        corrected = []
        ceiling = None
        for value, correction in zip(counts.as_tuple(), self.config.as_tuple()):
            value = max(value - correction, 0)
            if ceiling is not None:
                value = min(value, ceiling)
            corrected.append(value)
            ceiling = value
        return TierCounts.from_tuple(corrected)
