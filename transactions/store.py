"""SQLAlchemy-backed record store for transactions.

Every method runs inside the session the store was built with. Database
failures are rolled back and re-raised as StorageError.
"""
from functools import wraps
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import StorageError
from .sqlalchemy_models import Transaction

logger = logging.getLogger(__name__)


def _storage_call(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Storage failure in %s", method.__name__, exc_info=True)
            raise StorageError(str(e)) from e
    return wrapper


class TransactionStore:

    def __init__(self, db):
        self.db = db

    @_storage_call
    def get(self, transaction_id):
        return self.db.get(Transaction, transaction_id, populate_existing=True)

    @_storage_call
    def insert(self, transaction):
        self.db.add(transaction)
        self.db.commit()
        return transaction

    @_storage_call
    def insert_many(self, transactions):
        """Persist all transactions in one commit; none are visible if it fails."""
        self.db.add_all(transactions)
        self.db.commit()
        return transactions

    @_storage_call
    def update_state(self, transaction_id, new_state, updated_at, expected_version=None):
        """Apply a state change as one UPDATE statement.

        The version is incremented in SQL. With ``expected_version`` the row
        only matches while its stored version still equals it.

        Returns the number of rows updated (0 or 1).
        """
        statement = (
            update(Transaction)
            .where(Transaction.id == transaction_id)
            .values(
                state=new_state,
                last_state_update=updated_at,
                version=Transaction.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if expected_version is not None:
            statement = statement.where(Transaction.version == expected_version)
        result = self.db.execute(statement)
        self.db.commit()
        return result.rowcount

    @_storage_call
    def count(self, statement):
        return self.db.scalar(select(func.count()).select_from(statement.order_by(None).subquery()))

    @_storage_call
    def fetch(self, statement, offset, limit):
        return list(self.db.scalars(statement.offset(offset).limit(limit)))
