"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the payments ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - total = available + held, ignored transactions change nothing
2. lock_finality.py - a locked account never changes again
3. idempotency.py - repeated dispute actions are no-ops
4. determinism.py - reproducible replay, inputs never mutated
5. causality.py - backfill only for withdrawals deferred on the resolved dispute

These tests use hypothesis for property-based testing.
"""
