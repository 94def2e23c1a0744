"""
Query/filter layer.

Turns list-endpoint query parameters into a store-neutral Predicate plus
sort and page. Each entity has one explicit filter model listing every
recognised key; anything else in the query string is ignored.

All conditions combine with AND. The free-text search is a single clause
that ORs a case-insensitive substring match across its fields.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from pydantic import Field, ValidationError as PydanticValidationError, field_validator

from core.exceptions import ValidationError
from core.models.base import CamelModel
from core.models.booking import BookingStage, BookingStatus
from core.models.lead import LeadSource, LeadStage
from utils.timezone import end_of_day, parse_iso, to_utc


class Op(str, Enum):
    EQ = "eq"
    GTE = "gte"
    LTE = "lte"


@dataclass(frozen=True)
class Condition:
    field: str
    op: Op
    value: Any

    def matches(self, record: Mapping[str, Any]) -> bool:
        actual = record.get(self.field)
        if self.op == Op.EQ:
            return actual == self.value
        if actual is None:
            return False
        if self.op == Op.GTE:
            return actual >= self.value
        return actual <= self.value


@dataclass(frozen=True)
class Search:
    term: str
    fields: tuple[str, ...]

    def matches(self, record: Mapping[str, Any]) -> bool:
        needle = self.term.lower()
        return any(
            needle in str(record.get(name) or "").lower()
            for name in self.fields
        )


@dataclass(frozen=True)
class Predicate:
    """AND of conditions, plus an optional OR-across-fields search."""

    conditions: tuple[Condition, ...] = ()
    search: Search | None = None

    def matches(self, record: Mapping[str, Any]) -> bool:
        if not all(c.matches(record) for c in self.conditions):
            return False
        if self.search is not None and not self.search.matches(record):
            return False
        return True


ACTIVE_ONLY = Predicate(conditions=(Condition("is_active", Op.EQ, True),))


@dataclass(frozen=True)
class Sort:
    field: str
    descending: bool = True


@dataclass(frozen=True)
class Page:
    number: int = 1
    size: int = 10

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.size


@dataclass(frozen=True)
class ListQuery:
    predicate: Predicate
    sort: Sort
    page: Page = field(default_factory=Page)


@dataclass(frozen=True)
class ListPage:
    """One page of results plus the stage counts over the whole filtered set."""

    items: list[Any]
    total: int
    page: Page
    stage_stats: dict[str, int]

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page.size) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page.number < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page.number > 1

    def meta(self) -> dict[str, Any]:
        """List meta in wire form."""
        return {
            "total": self.total,
            "page": self.page.number,
            "limit": self.page.size,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
            "stageStats": self.stage_stats,
        }


# =============================================================================
# FILTER MODELS
# =============================================================================


def _parse_bound(value: Any, end: bool) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    parsed = parse_iso(str(value))
    if end and len(str(value).strip()) == 10:
        return end_of_day(parsed)
    return parsed


class _ListParams(CamelModel):
    """Sort, order and paging common to every list endpoint."""

    search: str | None = None
    sort: str | None = None
    order: str = "desc"
    page: int = 1
    limit: int | None = None

    @field_validator("order", mode="before")
    @classmethod
    def normalise_order(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in ("asc", "desc"):
            return value.strip().lower()
        raise ValueError("order must be 'asc' or 'desc'")

    @field_validator("search", "sort", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def paging(self, default_size: int, max_size: int) -> Page:
        size = self.limit if self.limit is not None else default_size
        return Page(number=max(1, self.page), size=min(max(1, size), max_size))


class LeadFilters(_ListParams):
    """Every filter GET /leads understands."""

    stage: LeadStage | None = None
    source: LeadSource | None = None
    assigned_to: str | None = None
    stage_date_start: datetime | None = None
    stage_date_end: datetime | None = None
    min_score: int | None = Field(None, ge=0, le=100)
    max_score: int | None = Field(None, ge=0, le=100)

    @field_validator("stage_date_start", mode="before")
    @classmethod
    def parse_start(cls, value: Any) -> Any:
        return _parse_bound(value, end=False)

    @field_validator("stage_date_end", mode="before")
    @classmethod
    def parse_end(cls, value: Any) -> Any:
        return _parse_bound(value, end=True)


class BookingFilters(_ListParams):
    """Every filter GET /bookings understands."""

    stage: BookingStage | None = None
    status: BookingStatus | None = None
    property_id: UUID | None = None
    customer_id: UUID | None = None
    agent_id: str | None = None
    booking_date_from: datetime | None = None
    booking_date_to: datetime | None = None
    min_amount: float | None = Field(None, ge=0)
    max_amount: float | None = Field(None, ge=0)

    @field_validator("booking_date_from", mode="before")
    @classmethod
    def parse_from(cls, value: Any) -> Any:
        return _parse_bound(value, end=False)

    @field_validator("booking_date_to", mode="before")
    @classmethod
    def parse_to(cls, value: Any) -> Any:
        return _parse_bound(value, end=True)


# Wire sort names to record fields
LEAD_SORT_FIELDS = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "score": "score",
    "createdAt": "created_at",
    "stageDateStart": "stage_date_start",
}
LEAD_DEFAULT_SORT = "created_at"
LEAD_SEARCH_FIELDS = ("name", "email", "phone")

BOOKING_SORT_FIELDS = {
    "bookingDate": "booking_date",
    "amount": "amount",
    "createdAt": "created_at",
    "stage": "stage",
}
BOOKING_DEFAULT_SORT = "booking_date"
BOOKING_SEARCH_FIELDS = ("id", "notes")


def _validate(model: type[CamelModel], params: Mapping[str, Any]) -> Any:
    # Blank query values mean "no filter"
    cleaned = {k: v for k, v in params.items() if v is not None and v != ""}
    try:
        return model.model_validate(cleaned)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(first["msg"], field=location) from None


def _sort(filters: _ListParams, allowed: Mapping[str, str], default: str) -> Sort:
    name = filters.sort
    column = allowed.get(name) if name else None
    if column is None and name in allowed.values():
        column = name
    return Sort(field=column or default, descending=filters.order.lower() == "desc")


def _range(conditions: list[Condition], column: str, low: Any, high: Any) -> None:
    if low is not None:
        conditions.append(Condition(column, Op.GTE, low))
    if high is not None:
        conditions.append(Condition(column, Op.LTE, high))


def _check_range(low: Any, high: Any, field_name: str) -> None:
    if low is not None and high is not None and low > high:
        raise ValidationError("lower bound is greater than upper bound", field=field_name)


def build_lead_query(params: Mapping[str, Any], default_size: int = 10, max_size: int = 100) -> ListQuery:
    """
    Build the lead list query from raw query parameters.

    Raises:
        ValidationError: A recognised filter has a malformed value
    """
    filters: LeadFilters = _validate(LeadFilters, params)
    _check_range(filters.min_score, filters.max_score, "minScore")
    _check_range(filters.stage_date_start, filters.stage_date_end, "stageDateStart")

    conditions = list(ACTIVE_ONLY.conditions)
    if filters.stage is not None:
        conditions.append(Condition("stage", Op.EQ, filters.stage))
    if filters.source is not None:
        conditions.append(Condition("source", Op.EQ, filters.source))
    if filters.assigned_to:
        conditions.append(Condition("assigned_to", Op.EQ, filters.assigned_to))
    _range(conditions, "stage_date_start", filters.stage_date_start, filters.stage_date_end)
    _range(conditions, "score", filters.min_score, filters.max_score)

    search = Search(filters.search, LEAD_SEARCH_FIELDS) if filters.search else None
    return ListQuery(
        predicate=Predicate(conditions=tuple(conditions), search=search),
        sort=_sort(filters, LEAD_SORT_FIELDS, LEAD_DEFAULT_SORT),
        page=filters.paging(default_size, max_size),
    )


def build_booking_query(params: Mapping[str, Any], default_size: int = 10, max_size: int = 100) -> ListQuery:
    """
    Build the booking list query from raw query parameters.

    Raises:
        ValidationError: A recognised filter has a malformed value
    """
    filters: BookingFilters = _validate(BookingFilters, params)
    _check_range(filters.min_amount, filters.max_amount, "minAmount")
    _check_range(filters.booking_date_from, filters.booking_date_to, "bookingDateFrom")

    conditions = list(ACTIVE_ONLY.conditions)
    if filters.stage is not None:
        conditions.append(Condition("stage", Op.EQ, filters.stage))
    if filters.status is not None:
        conditions.append(Condition("status", Op.EQ, filters.status))
    if filters.property_id is not None:
        conditions.append(Condition("property_id", Op.EQ, filters.property_id))
    if filters.customer_id is not None:
        conditions.append(Condition("customer_id", Op.EQ, filters.customer_id))
    if filters.agent_id:
        conditions.append(Condition("agent_id", Op.EQ, filters.agent_id))
    _range(conditions, "booking_date", filters.booking_date_from, filters.booking_date_to)
    _range(conditions, "amount", filters.min_amount, filters.max_amount)

    search = Search(filters.search, BOOKING_SEARCH_FIELDS) if filters.search else None
    return ListQuery(
        predicate=Predicate(conditions=tuple(conditions), search=search),
        sort=_sort(filters, BOOKING_SORT_FIELDS, BOOKING_DEFAULT_SORT),
        page=filters.paging(default_size, max_size),
    )
