"""Task listing query builder.

Turns untrusted query-string parameters into a validated, immutable
``TaskQuery``. The store never sees raw parameters: it only reads the fields
of a ``TaskQuery``, and the owner restriction is set from the authenticated
caller, not from the request.
"""

import sys
from dataclasses import dataclass

from .config import settings
from .models import TaskPriority, TaskStatus
from .utils import parse_int

SORT_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "title": "title",
    "priority": "priority",
    "status": "status",
    "dueDate": "due_date",
}
DEFAULT_SORT = "createdAt"
# Largest page whose offset still fits a signed 64-bit OFFSET
MAX_PAGE = sys.maxsize // settings.MAX_LIMIT


class InvalidFilter(ValueError):
    """A status/priority filter outside the known values."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field} filter.")


@dataclass(frozen=True)
class TaskQuery:
    owner_id: str
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    search: str | None = None
    sort_by: str = DEFAULT_SORT
    descending: bool = True
    page: int = settings.DEFAULT_PAGE
    limit: int = settings.DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def sort_column(self) -> str:
        """ORM attribute name for sort_by."""
        return SORT_FIELDS[self.sort_by]


@dataclass(frozen=True)
class PageInfo:
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


def _parse_enum(enum_cls, field: str, value: str | None):
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidFilter(field, value) from None


def clamp_page(page: str | int | None) -> int:
    """Clamp into [1, MAX_PAGE]; missing or non-numeric values become the default page."""
    parsed = parse_int(page)
    if parsed is None:
        return settings.DEFAULT_PAGE
    return min(MAX_PAGE, max(1, parsed))


def clamp_limit(limit: str | int | None) -> int:
    """Clamp into [1, MAX_LIMIT]; missing or non-numeric values become the default limit."""
    parsed = parse_int(limit)
    if parsed is None:
        return settings.DEFAULT_LIMIT
    return min(settings.MAX_LIMIT, max(1, parsed))


def build_task_query(
    owner_id: str,
    search: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: str | int | None = None,
    limit: str | int | None = None,
) -> TaskQuery:
    """Validate listing parameters for one owner.

    Raises:
        InvalidFilter: status or priority is not a recognized value
    """
    search_term = search.strip() if search else ""
    return TaskQuery(
        owner_id=owner_id,
        status=_parse_enum(TaskStatus, "status", status),
        priority=_parse_enum(TaskPriority, "priority", priority),
        search=search_term or None,
        sort_by=sort_by if sort_by in SORT_FIELDS else DEFAULT_SORT,
        descending=sort_order != "asc",
        page=clamp_page(page),
        limit=clamp_limit(limit),
    )


def page_info(total: int, page: int, limit: int) -> PageInfo:
    """Pagination descriptor for a result set of `total` rows."""
    total_pages = (total + limit - 1) // limit
    return PageInfo(
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )
