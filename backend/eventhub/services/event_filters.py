"""
Translate listing parameters and caller identity into SQLAlchemy clauses.

Visibility is always returned as its own conjunct. A free-text search is a
disjunction over title/description/city; the two are ANDed, never merged
into one OR, otherwise a search term would surface other organizers'
drafts.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Optional, Sequence, TypeVar

from sqlalchemy import ColumnElement, and_, or_

from eventhub.models.event import Event, EventStatus
from eventhub.services.error_codes import ErrorCode
from eventhub.services.exceptions import ValidationError

DEFAULT_SORT = "-created_at"
MAX_LIMIT = 100

SORTABLE_FIELDS = {
    "created_at": Event.created_at,
    "updated_at": Event.updated_at,
    "start_date": Event.start_date,
    "end_date": Event.end_date,
    "title": Event.title,
    "price": Event.price,
    "capacity": Event.capacity,
    "registration_count": Event.registration_count,
    "category": Event.category,
    "status": Event.status,
}

T = TypeVar("T")


@dataclass
class Viewer:
    """Who is asking. user_id None means anonymous."""

    user_id: Optional[int] = None
    is_admin: bool = False

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


@dataclass
class EventQuery:
    search: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    city: Optional[str] = None
    organizer: Optional[int] = None
    start_date_from: Optional[datetime] = None
    start_date_to: Optional[datetime] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    page: int = 1
    limit: int = 10
    sort: str = DEFAULT_SORT

    def __post_init__(self):
        if self.page < 1:
            raise ValidationError(ErrorCode.VALIDATION_ERROR, "page must be >= 1")
        if not 1 <= self.limit <= MAX_LIMIT:
            raise ValidationError(ErrorCode.VALIDATION_ERROR, f"limit must be between 1 and {MAX_LIMIT}")
        # Empty strings from query strings mean "no filter"
        for name in ("search", "category", "status", "city"):
            value = getattr(self, name)
            if value is not None and not value.strip():
                setattr(self, name, None)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def cache_key(self) -> str:
        return "&".join(f"{key}={value}" for key, value in sorted(vars(self).items()) if value is not None)


@dataclass
class Page(Generic[T]):
    items: Sequence[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def _contains(column, term: str) -> ColumnElement:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


def visibility_clause(viewer: Viewer, status: Optional[str]) -> Optional[ColumnElement]:
    """
    admin + status   -> that status only
    admin            -> everything
    user U           -> published OR organized by U (narrowed by status if given)
    anonymous        -> published (narrowed by status if given)
    """
    if viewer.is_admin:
        return Event.status == status if status else None

    published = Event.status == EventStatus.PUBLISHED.value
    visible = published if viewer.is_anonymous else or_(published, Event.organizer_id == viewer.user_id)
    if status:
        return and_(visible, Event.status == status)
    return visible


def search_clause(term: str) -> ColumnElement:
    return or_(
        _contains(Event.title, term),
        _contains(Event.description, term),
        _contains(Event.location_city, term),
    )


def build_event_filters(query: EventQuery, viewer: Viewer) -> list[ColumnElement]:
    """Conjunctive list of WHERE clauses for the given listing request."""
    clauses: list[ColumnElement] = []

    visibility = visibility_clause(viewer, query.status)
    if visibility is not None:
        clauses.append(visibility)

    if query.search:
        clauses.append(search_clause(query.search.strip()))
    if query.category:
        clauses.append(Event.category == query.category)
    if query.city:
        clauses.append(_contains(Event.location_city, query.city.strip()))
    if query.organizer is not None:
        clauses.append(Event.organizer_id == query.organizer)
    if query.start_date_from is not None:
        clauses.append(Event.start_date >= query.start_date_from)
    if query.start_date_to is not None:
        clauses.append(Event.start_date <= query.start_date_to)
    if query.price_min is not None:
        clauses.append(Event.price >= query.price_min)
    if query.price_max is not None:
        clauses.append(Event.price <= query.price_max)

    return clauses


def parse_sort(sort: Optional[str]) -> list[ColumnElement]:
    """
    "-start_date,title" -> [start_date DESC, title ASC, id DESC]

    The trailing id key follows the direction of the first field so pages
    stay stable when timestamps collide.
    """
    fields = [part.strip() for part in (sort or DEFAULT_SORT).split(",") if part.strip()]
    if not fields:
        fields = [DEFAULT_SORT]

    order_by = []
    first_descending = None
    for raw in fields:
        descending = raw.startswith("-")
        name = raw.lstrip("-+")
        column = SORTABLE_FIELDS.get(name)
        if column is None:
            raise ValidationError(ErrorCode.VALIDATION_ERROR, f"cannot sort by '{name}'")
        if first_descending is None:
            first_descending = descending
        order_by.append(column.desc() if descending else column.asc())

    order_by.append(Event.id.desc() if first_descending else Event.id.asc())
    return order_by
