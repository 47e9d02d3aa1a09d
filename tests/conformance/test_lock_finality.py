"""
Lock Finality Conformance Tests

INVARIANT: Once a chargeback locks an account, no later transaction
changes any field of that client.

    locked(c, t) ⇒ ∀ t' > t: state(c, t') = state(c, t)
"""

from dataclasses import replace

from hypothesis import given, settings

from payments import (
    Chargeback, ClientId, Deposit, Dispute, PaymentsEngine, Resolve,
    TransactionOutcome,
)

from .strategies import snapshot, transaction_stream


class TestLockFinality:
    """Property-based lock tests."""

    @given(transaction_stream(min_size=1, max_size=60))
    @settings(max_examples=200)
    def test_locked_state_is_frozen(self, stream):
        """
        PROPERTY: A locked client's state never changes again.
        """
        engine = PaymentsEngine()
        frozen = {}
        for tx in stream:
            engine.apply(tx)
            for client in engine.clients():
                state = engine.get_state(client)
                if client in frozen:
                    assert snapshot(state) == frozen[client], f"{tx!r} changed locked client {client}"
                elif state.is_locked:
                    frozen[client] = snapshot(state)

    @given(transaction_stream(max_size=30))
    @settings(max_examples=100)
    def test_everything_after_lock_is_ignored(self, stream):
        """
        PROPERTY: After a forced chargeback, all transactions of that client are IGNORED.
        """
        engine = PaymentsEngine()
        engine.apply_all([Deposit(9, 1, "10"), Dispute(9, 1), Chargeback(9, 1)])
        assert engine.get_state(9).is_locked
        for tx in stream:
            relabelled = replace(tx, client=ClientId(9))
            assert engine.apply(relabelled) == TransactionOutcome.IGNORED

    def test_lock_is_never_cleared(self):
        """A resolve after a chargeback cannot unlock the account."""
        engine = PaymentsEngine()
        engine.apply_all([Deposit(1, 1, "10"), Dispute(1, 1), Chargeback(1, 1), Resolve(1, 1)])
        assert engine.get_state(1).is_locked
