import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.promotion import Promotion
from storefront.repositories.promotion import PromotionRepository
from storefront.utils.promo_helpers import (
    ACTIVE,
    EXPIRED,
    INACTIVE,
    SCHEDULED,
    as_utc,
    evaluate,
    round_half_up,
    utcnow,
)

logger = logging.getLogger(__name__)

TOP_PERFORMERS = 5
RECENT_WINDOW = timedelta(days=30)
UNKNOWN_BRAND = "Unknown"


def _average(values: List[int]) -> int:
    return round_half_up(sum(values) / len(values)) if values else 0


def aggregate(promos: List[Promotion], now: datetime) -> dict:
    """
    Analytics over already fetched promotions.

    Status counts come from the evaluator, so a row with ``is_active`` set
    but an elapsed window is counted as expired, not active.
    """
    derived = {promo.id: evaluate(promo, now) for promo in promos}
    statuses = {promo_id: fields["computed_status"] for promo_id, fields in derived.items()}

    limited = [promo for promo in promos if promo.usage_limit > 0]
    used_limited = [promo for promo in limited if promo.times_used > 0]
    discounts = [promo.discount_percent for promo in promos]
    total_usage = sum(promo.times_used for promo in promos)

    top = sorted(promos, key=lambda promo: promo.times_used, reverse=True)[:TOP_PERFORMERS]

    breakdown = defaultdict(lambda: {"total": 0, "active": 0, "expired": 0, "total_usage": 0})
    for promo in promos:
        entry = breakdown[promo.brand.name if promo.brand else UNKNOWN_BRAND]
        entry["total"] += 1
        entry["total_usage"] += promo.times_used
        if statuses[promo.id] == ACTIVE:
            entry["active"] += 1
        elif statuses[promo.id] == EXPIRED:
            entry["expired"] += 1

    recent_since = now - RECENT_WINDOW

    return {
        "overview": {
            "total_promotions": len(promos),
            "active_promotions": sum(1 for s in statuses.values() if s == ACTIVE),
            "scheduled_promotions": sum(1 for s in statuses.values() if s == SCHEDULED),
            "expired_promotions": sum(1 for s in statuses.values() if s == EXPIRED),
            "inactive_promotions": sum(1 for s in statuses.values() if s == INACTIVE),
            "expiring_soon": sum(
                1
                for promo_id, fields in derived.items()
                if statuses[promo_id] == ACTIVE and fields["is_expiring_soon"]
            ),
        },
        "usage_stats": {
            "total_usage": total_usage,
            "average_usage": round_half_up(total_usage / len(promos)) if promos else 0,
            "fully_used": sum(1 for fields in derived.values() if fields["is_fully_used"]),
            "unused": sum(1 for promo in promos if promo.times_used == 0),
            "success_rate": round_half_up(len(used_limited) / len(limited) * 100) if limited else 0,
        },
        "discount_stats": {
            "average_discount": _average(discounts),
            "max_discount": max(discounts) if discounts else 0,
            "min_discount": min(discounts) if discounts else 0,
        },
        "top_performers": [
            {
                "id": promo.id,
                "code": promo.code,
                "description": promo.description,
                "times_used": promo.times_used,
                "discount_percent": promo.discount_percent,
                "brand_name": promo.brand.name if promo.brand else UNKNOWN_BRAND,
            }
            for promo in top
        ],
        "brand_breakdown": dict(breakdown),
        "recent_activity": {
            "created_last_30_days": sum(
                1 for promo in promos if promo.created_at and as_utc(promo.created_at) >= recent_since
            ),
        },
    }


class PromotionAnalyticsService:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.repo = PromotionRepository(db)
        self.clock = clock

    async def generate(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        brand_id: Optional[UUID] = None,
    ) -> dict:
        now = self.clock()
        conditions = []
        if date_from:
            conditions.append(Promotion.created_at >= as_utc(date_from))
        if date_to:
            conditions.append(Promotion.created_at <= as_utc(date_to))
        if brand_id:
            conditions.append(Promotion.brand_id == brand_id)

        promos = await self.repo.find(conditions)
        analytics = aggregate(promos, now)
        analytics["filters_applied"] = {"date_from": date_from, "date_to": date_to, "brand_id": brand_id}
        analytics["generated_at"] = now

        logger.info(f"Analytics generated over {len(promos)} promotions")
        return analytics
