"""
Derived promotion fields.

Everything here is a pure function of the stored promotion fields and the
moment of evaluation, so callers pass ``now`` explicitly.
"""
import math
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Optional

SCHEDULED = "scheduled"
ACTIVE = "active"
EXPIRED = "expired"
INACTIVE = "inactive"

URGENCY_LEVELS = ("expired", "critical", "high", "medium", "low")
EXPIRING_SOON_DAYS = 7

DAY = timedelta(days=1)
HOUR = timedelta(hours=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Naive timestamps coming back from the store are UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_status(promo, now: datetime) -> str:
    if not promo.is_active:
        return INACTIVE
    now = as_utc(now)
    if now < as_utc(promo.valid_from):
        return SCHEDULED
    if now > as_utc(promo.valid_until):
        return EXPIRED
    return ACTIVE


def usage_percentage(times_used: int, usage_limit: int) -> int:
    # can go above 100 when usage overshoots the limit
    if not usage_limit or usage_limit <= 0:
        return 0
    return round_half_up((times_used or 0) / usage_limit * 100)


def is_fully_used(times_used: int, usage_limit: int) -> bool:
    return bool(usage_limit and usage_limit > 0 and (times_used or 0) >= usage_limit)


def days_until_expiry(valid_until: datetime, now: datetime) -> int:
    return math.ceil((as_utc(valid_until) - as_utc(now)) / DAY)


def hours_until_expiry(valid_until: datetime, now: datetime) -> int:
    return math.ceil((as_utc(valid_until) - as_utc(now)) / HOUR)


def urgency_level(days: int) -> str:
    if days < 0:
        return "expired"
    if days <= 1:
        return "critical"
    if days <= 3:
        return "high"
    if days <= EXPIRING_SOON_DAYS:
        return "medium"
    return "low"


def evaluate(promo, now: datetime) -> Dict[str, Any]:
    """
    Compute every derived field of a promotion at ``now``.

    ``promo`` is anything exposing the stored promotion attributes (ORM row
    or schema).
    """
    days = days_until_expiry(promo.valid_until, now)
    return {
        "computed_status": compute_status(promo, now),
        "usage_percentage": usage_percentage(promo.times_used, promo.usage_limit),
        "days_until_expiry": days,
        "hours_until_expiry": hours_until_expiry(promo.valid_until, now),
        "urgency_level": urgency_level(days),
        "is_expiring_soon": 0 < days <= EXPIRING_SOON_DAYS,
        "is_expired": days < 0,
        "is_fully_used": is_fully_used(promo.times_used, promo.usage_limit),
    }
