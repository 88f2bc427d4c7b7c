"""Transfer service: the operations the HTTP layer calls.

One service instance per request, bound to that request's session.
"""
import logging

from uuid6 import uuid7

from .exceptions import TransactionNotFound, ValidationFailed
from .lifecycle import LifecycleController, utcnow
from .query import EmptyResult, QueryPlanner
from .serializers import validate_candidate
from .sqlalchemy_models import Transaction, TransactionState
from .store import TransactionStore

logger = logging.getLogger(__name__)


class TransferService:

    def __init__(self, db, clock=utcnow):
        self.store = TransactionStore(db)
        self.planner = QueryPlanner(self.store)
        self.lifecycle = LifecycleController(self.store, clock=clock)
        self.clock = clock

    def _new_transaction(self, data):
        return Transaction(
            id=uuid7(),
            from_account=data['from_account'],
            to_account=data['to_account'],
            amount=float(data.get('amount', 0.0)),
            created=self.clock(),
            state=data.get('state', TransactionState.SEND),
            last_state_update=None,
            version=0,
        )

    def create(self, payload):
        data, errors = validate_candidate(payload)
        if errors:
            raise ValidationFailed(errors)
        transaction = self.store.insert(self._new_transaction(data))
        logger.info("Created transaction %s", transaction.id)
        return transaction

    def bulk_create(self, payloads):
        if not isinstance(payloads, list):
            raise ValidationFailed([{
                'propertyName': '',
                'errorMessage': "Expected a JSON list of transactions.",
                'attemptedValue': None,
            }])

        validated = []
        errors = []
        for index, payload in enumerate(payloads):
            data, item_errors = validate_candidate(payload, index=index)
            validated.append(data)
            errors.extend(item_errors)
        if errors:
            logger.info("Rejected bulk create of %d transactions with %d errors", len(payloads), len(errors))
            raise ValidationFailed(errors)

        transactions = self.store.insert_many([self._new_transaction(data) for data in validated])
        logger.info("Created %d transactions in bulk", len(transactions))
        return transactions

    def get(self, transaction_id):
        transaction = self.store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFound(transaction_id)
        return transaction

    def query(self, spec):
        result = self.planner.run(spec)
        if result.total_count == 0:
            return EmptyResult(page=spec.page, page_size=spec.page_size)
        return result

    def advance_state(self, transaction_id, new_state, expected_version=None):
        if expected_version is None:
            return self.lifecycle.advance_state(transaction_id, new_state)
        return self.lifecycle.advance_state_if_version(transaction_id, new_state, expected_version)
