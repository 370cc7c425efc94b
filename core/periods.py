"""
Calendar window helpers used by the stats endpoints.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional


def day_start(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def month_start(value: datetime, offset: int = 0) -> datetime:
    """First instant of value's month, shifted by `offset` months"""
    month_index = value.year * 12 + (value.month - 1) + offset
    return datetime(month_index // 12, month_index % 12 + 1, 1)


def stat_windows(now: Optional[datetime] = None) -> Dict[str, datetime]:
    """
    Lower bounds for the today / thisWeek / thisMonth counters.

    "This week" is the trailing seven days from midnight, "this month" starts
    on the first of the current month.
    """
    today = day_start(now or datetime.utcnow())
    return {
        "today": today,
        "thisWeek": today - timedelta(days=7),
        "thisMonth": month_start(today),
    }


def month_key(value: datetime) -> str:
    return value.strftime("%Y-%m")


def last_months(count: int, now: Optional[datetime] = None) -> List[datetime]:
    """First day of each of the last `count` months, oldest first."""
    current = now or datetime.utcnow()
    return [month_start(current, -i) for i in range(count - 1, -1, -1)]
