from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from .models import Pagination

_CENT = Decimal("0.01")


def _utc_date(moment: datetime) -> date:
    return moment.astimezone(timezone.utc).date()


def _utc_day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    day_start = datetime.combine(_utc_date(moment), time.min, tzinfo=timezone.utc)
    return day_start, day_start + timedelta(days=1)


def _money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def _conversion_rate(successful: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(successful / total * 100, 2)


def _build_pagination(*, page: int, limit: int, total: int) -> Pagination:
    total_pages = (total + limit - 1) // limit if total else 0
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )
