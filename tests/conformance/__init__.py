"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the interest ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Transfers move live value, only settlement mints interest
2. atomicity.py - Rejected operations leave no trace
3. idempotency.py - Repeated settlement at one instant changes nothing
4. determinism.py - Reproducible behavior
5. monotonicity.py - Balances never shrink over time, rates only fall
6. temporal.py - Logical time and locked rates

These tests use hypothesis for property-based testing.
"""
