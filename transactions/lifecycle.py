"""State changes for stored transactions.

States are unordered: any state can follow any other, including itself.
Every accepted update stamps ``last_state_update`` and bumps ``version`` by
one, in the same UPDATE statement.

``advance_state`` is last-writer-wins: concurrent calls on one id all apply,
each increments the version, and the last one's state sticks.
``advance_state_if_version`` is the compare-and-swap form: the expected
version is part of the UPDATE's WHERE clause, so a stale caller changes
nothing and gets a VersionConflict.
"""
from datetime import datetime, timezone
import logging

from .exceptions import TransactionNotFound, VersionConflict
from .sqlalchemy_models import TransactionState

logger = logging.getLogger(__name__)


def utcnow():
    return datetime.now(timezone.utc)


class LifecycleController:

    def __init__(self, store, clock=utcnow):
        self.store = store
        self.clock = clock

    def advance_state(self, transaction_id, new_state):
        new_state = TransactionState.parse(new_state)
        if not self.store.update_state(transaction_id, new_state, self.clock()):
            raise TransactionNotFound(transaction_id)
        transaction = self.store.get(transaction_id)
        logger.info("Transaction %s moved to %s (version %s)", transaction_id, new_state.label, transaction.version)
        return transaction

    def advance_state_if_version(self, transaction_id, new_state, expected_version):
        new_state = TransactionState.parse(new_state)
        updated = self.store.update_state(
            transaction_id, new_state, self.clock(), expected_version=expected_version
        )
        if not updated:
            current = self.store.get(transaction_id)
            if current is None:
                raise TransactionNotFound(transaction_id)
            logger.info(
                "Rejected state change for %s: expected version %s, found %s",
                transaction_id, expected_version, current.version,
            )
            raise VersionConflict(transaction_id, expected_version, current.version)
        transaction = self.store.get(transaction_id)
        logger.info("Transaction %s moved to %s (version %s)", transaction_id, new_state.label, transaction.version)
        return transaction
