"""
Conformance Test Suite

Property-based checks of the invariants every replay must keep.

The tests are organized by invariant:
1. ledger_invariants.py - zero removal, non-negativity, unique-user union
2. tier_monotonicity.py - ordered tier counters, before and after correction
3. checkpoint_durability.py - exact, write-once checkpoints

These tests use hypothesis for property-based testing.
"""
