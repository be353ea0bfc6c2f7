"""
Read-only queries over reports for dashboards and filtered lists.

Selectors never write and take no locks; they read whatever is committed.
"""

import math
from dataclasses import dataclass, field

from django.conf import settings
from django.db.models import Count, Q

from core.exceptions import InvalidPageError, ValidationError
from apps.reports.models import Report, ReportStatus
from apps.reports.state_machine import parse_status

SORT_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "status": "status",
}
SORT_DIRECTIONS = ("asc", "desc")


@dataclass
class ReportPage:
    items: list = field(default_factory=list)
    total_count: int = 0
    page_count: int = 0
    page: int = 1
    page_size: int = 10


def _clamp_page_size(page_size):
    if page_size is None:
        return settings.REPORTS_DEFAULT_PAGE_SIZE
    return max(1, min(int(page_size), settings.REPORTS_MAX_PAGE_SIZE))


def _ordering(sort_field, sort_direction):
    if sort_field not in SORT_FIELDS:
        raise ValidationError(
            "Invalid sort field",
            {"sortBy": [f"Must be one of: {', '.join(SORT_FIELDS)}"]},
        )
    if sort_direction not in SORT_DIRECTIONS:
        raise ValidationError(
            "Invalid sort direction", {"sortOrder": ["Must be asc or desc"]}
        )

    column = SORT_FIELDS[sort_field]
    prefix = "-" if sort_direction == "desc" else ""
    # id ascending keeps pagination stable when sort keys tie
    return [f"{prefix}{column}", "id"]


def _paginate(queryset, page, page_size):
    if page is None:
        page = 1
    page = int(page)
    if page < 1:
        raise InvalidPageError(page)

    page_size = _clamp_page_size(page_size)
    total_count = queryset.count()
    offset = (page - 1) * page_size

    return ReportPage(
        items=list(queryset[offset : offset + page_size]),
        total_count=total_count,
        page_count=math.ceil(total_count / page_size),
        page=page,
        page_size=page_size,
    )


def _base_queryset():
    return Report.objects.select_related("reporter")


def count_by_status(reporter_id=None):
    """Map every status to its report count; absent statuses count 0."""
    queryset = Report.objects.all()
    if reporter_id is not None:
        queryset = queryset.filter(reporter_id=reporter_id)

    counts = {status.value: 0 for status in ReportStatus}
    for row in queryset.values("status").annotate(total=Count("id")):
        counts[row["status"]] = row["total"]
    return counts


def list_by_status(
    status, page=1, page_size=None, sort_field="createdAt", sort_direction="desc"
):
    """
    Page through reports in one status (every status when status is None).

    Raises:
        InvalidPageError: If page < 1
        UnknownStatusError: If status is not a workflow status
        ValidationError: If the sort field or direction is unknown
    """
    queryset = _base_queryset()
    if status is not None:
        queryset = queryset.filter(status=parse_status(status))

    queryset = queryset.order_by(*_ordering(sort_field, sort_direction))
    return _paginate(queryset, page, page_size)


def list_by_owner(
    reporter_id, page=1, page_size=None, status_filter=None, search_text=None
):
    """
    Page through one reporter's reports, newest first.

    search_text matches description or address, case-insensitively.
    """
    queryset = _base_queryset().filter(reporter_id=reporter_id)

    if status_filter:
        queryset = queryset.filter(status=parse_status(status_filter))

    if search_text and search_text.strip():
        term = search_text.strip()
        queryset = queryset.filter(
            Q(description__icontains=term) | Q(address__icontains=term)
        )

    queryset = queryset.order_by(*_ordering("createdAt", "desc"))
    return _paginate(queryset, page, page_size)


def recent_activity(limit=5, reporter_id=None):
    """Most recently updated reports, most recent first."""
    limit = _clamp_page_size(limit)
    queryset = _base_queryset()
    if reporter_id is not None:
        queryset = queryset.filter(reporter_id=reporter_id)
    return list(queryset.order_by("-updated_at", "id")[:limit])


def dashboard_stats(reporter_id=None, recent_limit=5):
    """Totals, per-status breakdown and latest activity for a dashboard."""
    by_status = count_by_status(reporter_id=reporter_id)
    return {
        "total": sum(by_status.values()),
        "byStatus": by_status,
        "recent": recent_activity(limit=recent_limit, reporter_id=reporter_id),
    }
