from datetime import timezone
from sqlalchemy import Column, String, Float, DateTime, Integer, Uuid
from sqlalchemy.types import TypeDecorator
from .database import Base
import enum


# largest value an Integer column holds on every supported backend
MAX_INTEGER = 2**31 - 1


class TransactionState(enum.IntEnum):
    SEND = 0
    RECEIVED = 1
    PAID = 2

    @property
    def label(self):
        return self.name.capitalize()

    @classmethod
    def parse(cls, value):
        """Resolve a state from its name (any case) or its integer value.

        Raises ValueError for anything else.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"{value!r} is not a valid transaction state")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            candidate = value.strip()
            if candidate.lstrip("-").isdigit():
                return cls(int(candidate))
            try:
                return cls[candidate.upper()]
            except KeyError:
                pass
        raise ValueError(f"{value!r} is not a valid transaction state")


class StateType(TypeDecorator):
    """Stores TransactionState as its integer value so ORDER BY follows 0, 1, 2."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(TransactionState.parse(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return TransactionState(value)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetimes, normalised to UTC on the way in and out.

    SQLite drops the offset, so naive values read back are tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Transaction(Base):
    __tablename__ = 'transactions'

    id = Column(Uuid(as_uuid=True), primary_key=True)
    from_account = Column(String(255), nullable=False)
    to_account = Column(String(255), nullable=False)
    amount = Column(Float(precision=53), nullable=False, default=0.0, index=True)
    created = Column(UTCDateTime(), nullable=False, index=True)
    state = Column(StateType(), nullable=False, default=TransactionState.SEND)
    last_state_update = Column(UTCDateTime(), nullable=True)
    version = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Transaction(id='{self.id}', state='{self.state.label if self.state is not None else None}', version={self.version})>"
