"""
User growth analytics.

Registrations are counted per UTC day over the requested range, zero-filled,
then folded into day, week (Sunday start) or month buckets.
"""

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Tuple

from loguru import logger
from sqlalchemy.orm import Session

from admin.schemas import GrowthGrouping, TimeRange, UserGrowthQuery
from auth.models import User
from core.exceptions import ValidationError
from core.periods import month_start


def _day_bounds(start: date, end: date) -> Tuple[datetime, datetime]:
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def _week_start(day: date) -> date:
    # Sunday-based weeks
    return day - timedelta(days=(day.weekday() + 1) % 7)


def resolve_range(query: UserGrowthQuery, now: datetime = None) -> Tuple[datetime, datetime]:
    today = (now or datetime.utcnow()).date()
    tr = query.time_range

    if tr == TimeRange.CUSTOM:
        if not query.start_date or not query.end_date:
            raise ValidationError("start_date and end_date are required when time_range is custom",
                                  error_code="MISSING_CUSTOM_DATE_RANGE")
        if query.start_date > query.end_date:
            raise ValidationError("start_date must be before end_date")
        return query.start_date, query.end_date
    if tr == TimeRange.YESTERDAY:
        day = today - timedelta(days=1)
        return _day_bounds(day, day)
    if tr == TimeRange.TODAY:
        return _day_bounds(today, today)
    if tr == TimeRange.THIS_WEEK:
        start = _week_start(today)
        return _day_bounds(start, start + timedelta(days=6))
    if tr == TimeRange.LAST_WEEK:
        start = _week_start(today) - timedelta(days=7)
        return _day_bounds(start, start + timedelta(days=6))
    if tr == TimeRange.LAST_MONTH:
        start = month_start(datetime.combine(today, time.min), -1).date()
        end = month_start(datetime.combine(today, time.min)).date() - timedelta(days=1)
        return _day_bounds(start, end)
    if tr == TimeRange.THIS_YEAR:
        return _day_bounds(date(today.year, 1, 1), date(today.year, 12, 31))
    if tr == TimeRange.LAST_YEAR:
        return _day_bounds(date(today.year - 1, 1, 1), date(today.year - 1, 12, 31))

    start = month_start(datetime.combine(today, time.min)).date()
    end = month_start(datetime.combine(today, time.min), 1).date() - timedelta(days=1)
    return _day_bounds(start, end)


def daily_counts(db: Session, start: datetime, end: datetime, statuses) -> List[Tuple[date, int]]:
    q = db.query(User.created_at).filter(User.created_at >= start, User.created_at <= end)
    if statuses:
        q = q.filter(User.status.in_(statuses))

    per_day: Dict[date, int] = {}
    for (created_at,) in q.all():
        per_day[created_at.date()] = per_day.get(created_at.date(), 0) + 1

    days = []
    current, last = start.date(), end.date()
    while current <= last:
        days.append((current, per_day.get(current, 0)))
        current += timedelta(days=1)
    return days


def group_counts(days: List[Tuple[date, int]], group_by: GrowthGrouping) -> List[Tuple[str, int]]:
    buckets: "OrderedDict[str, int]" = OrderedDict()
    for day, count in days:
        if group_by == GrowthGrouping.WEEK:
            key = _week_start(day).isoformat()
        elif group_by == GrowthGrouping.MONTH:
            key = day.strftime("%Y-%m")
        else:
            key = day.isoformat()
        buckets[key] = buckets.get(key, 0) + count
    return sorted(buckets.items())


def growth_points(grouped: List[Tuple[str, int]]) -> List[Dict[str, Any]]:
    points = []
    cumulative = 0
    previous = 0
    for period, new_users in grouped:
        cumulative += new_users
        growth = (new_users - previous) / previous * 100 if previous > 0 else 0
        initial = points[0]["totalUsers"] if points else 0
        cumulative_growth = (cumulative - initial) / initial * 100 if initial > 0 else 0
        points.append({
            "period": period,
            "totalUsers": cumulative,
            "newUsers": new_users,
            "growthPercentage": round(growth, 2),
            "cumulativeGrowth": round(cumulative_growth, 2),
        })
        previous = new_users
    return points


def growth_summary(points: List[Dict[str, Any]]) -> Dict[str, float]:
    if not points:
        return {
            "initialUsers": 0, "finalUsers": 0, "totalNewUsers": 0,
            "averageGrowthRate": 0, "peakGrowthRate": 0, "overallGrowthPercentage": 0,
        }

    initial = points[0]["totalUsers"] - points[0]["newUsers"]
    final = points[-1]["totalUsers"]
    rates = [p["growthPercentage"] for p in points[1:]]
    average = sum(rates) / len(rates) if rates else 0
    overall = (final - initial) / initial * 100 if initial > 0 else 0
    return {
        "initialUsers": initial,
        "finalUsers": final,
        "totalNewUsers": sum(p["newUsers"] for p in points),
        "averageGrowthRate": round(average, 2),
        "peakGrowthRate": round(max(rates), 2) if rates else 0,
        "overallGrowthPercentage": round(overall, 2),
    }


class UserGrowthService:

    @staticmethod
    def get_user_growth(db: Session, query: UserGrowthQuery) -> Dict[str, Any]:
        start, end = resolve_range(query)
        statuses = list(query.user_status)
        points = growth_points(group_counts(daily_counts(db, start, end, statuses), query.group_by))

        logger.info(f"[ADMIN_ANALYTICS] User growth {query.time_range.value}/{query.group_by.value}: "
                    f"{len(points)} data points")
        return {
            "timeRange": query.time_range.value,
            "groupBy": query.group_by.value,
            "timezone": query.timezone,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "data": points,
            "summary": growth_summary(points),
            "totalPoints": len(points),
            "filters": {"userStatus": [s.value for s in statuses]},
        }
