from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from django.core.paginator import Paginator
from django.utils.dateparse import parse_date as _parse_iso_date


@dataclass(frozen=True)
class PageInfo:
    page: int
    limit: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool


def growth_rate(current, previous) -> float:
    current = float(current or 0)
    previous = float(previous or 0)
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def percentage(part, whole) -> float:
    whole = float(whole or 0)
    if not whole:
        return 0.0
    return round(float(part or 0) / whole * 100, 2)


def as_float(value) -> float:
    return float(value or 0)


def parse_int(value, default: int, minimum: int = 1, maximum: int | None = None) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < minimum:
        return default
    if maximum is not None and number > maximum:
        return maximum
    return number


def parse_date(value) -> date | None:
    if not value:
        return None
    try:
        return _parse_iso_date(str(value).strip())
    except ValueError:
        return None


def paginate(queryset, page, per_page: int = 20):
    """Return the requested page of ``queryset`` and a summary of the pagination state."""
    paginator = Paginator(queryset, per_page)
    page_obj = paginator.get_page(page)
    info = PageInfo(
        page=page_obj.number,
        limit=per_page,
        total_pages=paginator.num_pages,
        total_count=paginator.count,
        has_next=page_obj.has_next(),
        has_prev=page_obj.has_previous(),
    )
    return page_obj, info
