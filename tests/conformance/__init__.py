"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending ledger.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing operation semantics
2. collateral_ratio.py - Origination gate and price-gated liquidation
3. emergency_stop.py - Halt blocks every mutation but its own toggle
4. index_consistency.py - Active index mirrors loan statuses
5. reputation_bounds.py - Score clamping and outcome counters

These tests use hypothesis for property-based testing.
"""
