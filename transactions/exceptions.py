"""Errors raised by the transfer ledger core.

The HTTP layer maps each of these to a status code; nothing here knows about
HTTP.
"""


class TransferError(Exception):
    """Base exception for all transfer ledger errors."""


class InvalidQuery(TransferError):
    """Raised when a listing request cannot be planned (bad page, page size or sort field)."""


class ValidationFailed(TransferError):
    """Raised when one or more candidate transactions fail validation."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} validation error(s)")


class TransactionNotFound(TransferError):
    def __init__(self, transaction_id):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class VersionConflict(TransferError):
    """Raised when a compare-and-swap state update sees a different stored version."""

    def __init__(self, transaction_id, expected_version, actual_version):
        self.transaction_id = transaction_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Transaction {transaction_id} is at version {actual_version}, expected {expected_version}"
        )


class StorageError(TransferError):
    """Raised when the database fails underneath an operation."""
