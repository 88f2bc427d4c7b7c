"""Listing of transactions: search, sort and pagination.

A QuerySpec is planned into a single SELECT. The order is always total:
whatever the requested sort key, rows with equal keys are ordered by id, so
repeating a query against unchanged data returns the same sequence and every
row lands on exactly one page.
"""
from dataclasses import dataclass
import math

from sqlalchemy import func, or_, select

from .exceptions import InvalidQuery
from .sqlalchemy_models import MAX_INTEGER, Transaction

DEFAULT_SORT_FIELD = "Created"
DEFAULT_SORT_DIRECTION = "desc"

# Closed set of sortable attributes, keyed by lower-cased name.
SORT_FIELDS = {
    "fromaccount": Transaction.from_account,
    "toaccount": Transaction.to_account,
    "amount": Transaction.amount,
    "created": Transaction.created,
    "state": Transaction.state,
    "laststateupdate": Transaction.last_state_update,
    "version": Transaction.version,
}

SORT_FIELD_ALIASES = {
    "from_account": "fromaccount",
    "to_account": "toaccount",
    "last_state_update": "laststateupdate",
}


@dataclass(frozen=True)
class QuerySpec:
    page: int
    page_size: int
    search_text: str | None = None
    sort_field: str | None = None
    sort_direction: str | None = DEFAULT_SORT_DIRECTION


@dataclass(frozen=True)
class QueryResult:
    items: list
    total_count: int
    total_pages: int
    page: int
    page_size: int

    @property
    def is_empty(self):
        return False


@dataclass(frozen=True)
class EmptyResult:
    """Returned instead of a QueryResult when nothing matches the filter at all."""

    page: int
    page_size: int
    items: tuple = ()
    total_count: int = 0
    total_pages: int = 0

    @property
    def is_empty(self):
        return True


def resolve_sort_column(sort_field):
    key = sort_field.strip().lower()
    key = SORT_FIELD_ALIASES.get(key, key)
    try:
        return SORT_FIELDS[key]
    except KeyError:
        raise InvalidQuery(f"Cannot sort by '{sort_field}'") from None


def is_descending(sort_direction):
    return (sort_direction or "").strip().lower() == "desc"


def order_clauses(sort_field, sort_direction):
    # nulls in last_state_update rank lowest in both directions
    if not sort_field:
        return [Transaction.created.desc(), Transaction.id.asc()]

    column = resolve_sort_column(sort_field)
    if is_descending(sort_direction):
        primary = column.desc()
        if column is Transaction.last_state_update:
            primary = primary.nulls_last()
    else:
        primary = column.asc()
        if column is Transaction.last_state_update:
            primary = primary.nulls_first()
    return [primary, Transaction.id.asc()]


def filter_clause(search_text):
    if not search_text:
        return None
    needle = search_text.lower()
    return or_(
        func.lower(Transaction.from_account).contains(needle, autoescape=True),
        func.lower(Transaction.to_account).contains(needle, autoescape=True),
    )


def build_statement(spec):
    statement = select(Transaction)
    clause = filter_clause(spec.search_text)
    if clause is not None:
        statement = statement.where(clause)
    return statement.order_by(*order_clauses(spec.sort_field, spec.sort_direction))


class QueryPlanner:

    def __init__(self, store):
        self.store = store

    def run(self, spec):
        if spec.page < 1:
            raise InvalidQuery("page must be 1 or greater")
        if spec.page_size < 1:
            raise InvalidQuery("pageSize must be 1 or greater")
        if spec.page > MAX_INTEGER or spec.page_size > MAX_INTEGER:
            raise InvalidQuery(f"page and pageSize must not exceed {MAX_INTEGER}")

        statement = build_statement(spec)
        total_count = self.store.count(statement)
        items = []
        if total_count:
            items = self.store.fetch(statement, (spec.page - 1) * spec.page_size, spec.page_size)
        return QueryResult(
            items=items,
            total_count=total_count,
            total_pages=math.ceil(total_count / spec.page_size),
            page=spec.page,
            page_size=spec.page_size,
        )
