import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.exceptions import Conflict, NotFound, ValidationError
from storefront.models.profile import Profile
from storefront.models.promotion import Promotion
from storefront.repositories.brand import BrandRepository
from storefront.repositories.promotion import PromotionRepository, search_condition, status_condition
from storefront.schemas.promotion import (
    EnrichedPromotion,
    PromotionCreate,
    PromotionDuplicate,
    PromotionExtend,
    PromotionRead,
    PromotionUpdate,
    PromotionValidate,
)
from storefront.services.code_generator import CodeGenerator
from storefront.utils.promo_helpers import (
    DAY,
    HOUR,
    URGENCY_LEVELS,
    as_utc,
    evaluate,
    is_fully_used,
    utcnow,
)
from storefront.utils.serializer import format_date

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY = timedelta(days=7)
COPY_PREFIX_LENGTH = 40


def serialize_promotion(promo: Promotion, now: datetime) -> EnrichedPromotion:
    """Stored columns, brand summary and derived fields of one promotion."""
    stored = PromotionRead.model_validate(promo).model_dump()
    return EnrichedPromotion(**stored, **evaluate(promo, now))


def check_window(valid_from: datetime, valid_until: datetime) -> None:
    if as_utc(valid_until) <= as_utc(valid_from):
        raise ValidationError("Valid until date must be after valid from date")


def has_extension(data: PromotionExtend) -> bool:
    return bool(data.days or data.hours or data.new_date)


def extended_expiry(promo: Promotion, data: PromotionExtend, now: datetime) -> datetime:
    """
    New ``valid_until`` for an extension request: either the absolute
    ``new_date`` or the current expiry shifted by days and hours.
    """
    if data.new_date:
        new_valid_until = as_utc(data.new_date)
        if new_valid_until <= now:
            raise ValidationError("New expiration date must be in the future")
    else:
        new_valid_until = as_utc(promo.valid_until) + (data.days or 0) * DAY + (data.hours or 0) * HOUR
    if new_valid_until <= as_utc(promo.valid_from):
        raise ValidationError("New expiration date must be after the promotion start date")
    return new_valid_until


def extension_description(data: PromotionExtend) -> str:
    if data.new_date:
        return f"until {format_date(data.new_date)}"
    description = f"by {data.days or 0} days"
    if data.hours:
        description += f" and {data.hours} hours"
    return description


class PromotionService:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.repo = PromotionRepository(db)
        self.brand_repo = BrandRepository(db)
        self.clock = clock

    async def _get_or_404(self, promo_id: UUID, detail: str = "Promotion not found") -> Promotion:
        promo = await self.repo.get_by_id(promo_id)
        if promo is None:
            raise NotFound(detail)
        return promo

    async def _ensure_brand(self, brand_id: UUID) -> None:
        if await self.brand_repo.get_by_id(brand_id) is None:
            raise NotFound("Brand not found")

    async def list_promotions(
        self,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        brand_id: Optional[UUID] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        usage_min: Optional[int] = None,
        usage_max: Optional[int] = None,
        discount_min: Optional[int] = None,
        discount_max: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[dict, int]:
        now = self.clock()
        conditions = []
        if search:
            conditions.append(search_condition(search))
        if brand_id:
            conditions.append(Promotion.brand_id == brand_id)
        if status:
            conditions.append(status_condition(status, now))
        if date_from:
            conditions.append(Promotion.valid_from >= as_utc(date_from))
        if date_to:
            conditions.append(Promotion.valid_until <= as_utc(date_to))
        if usage_min is not None:
            conditions.append(Promotion.times_used >= usage_min)
        if usage_max is not None:
            conditions.append(Promotion.times_used <= usage_max)
        if discount_min is not None:
            conditions.append(Promotion.discount_percent >= discount_min)
        if discount_max is not None:
            conditions.append(Promotion.discount_percent <= discount_max)

        promos, total = await self.repo.list_page(
            conditions,
            offset=(page - 1) * limit,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        logger.info(f"Listed {len(promos)} of {total} promotions")
        return {
            "promotions": [serialize_promotion(promo, now) for promo in promos],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": -(-total // limit),
            },
            "filters": {
                "search": search,
                "brand_id": brand_id,
                "status": status,
                "date_from": date_from,
                "date_to": date_to,
                "usage_min": usage_min,
                "usage_max": usage_max,
                "discount_min": discount_min,
                "discount_max": discount_max,
                "sort_by": sort_by,
                "sort_order": sort_order,
            },
        }, total

    async def create_promotion(self, data: PromotionCreate, admin: Optional[Profile] = None) -> EnrichedPromotion:
        await self._ensure_brand(data.brand_id)
        if await self.repo.code_exists(data.code):
            raise Conflict()

        now = self.clock()
        valid_from = data.valid_from or now
        valid_until = data.valid_until or now + DEFAULT_VALIDITY
        check_window(valid_from, valid_until)

        promo = Promotion(
            id=uuid4(),
            brand_id=data.brand_id,
            code=data.code,
            description=data.description,
            discount_percent=data.discount_percent,
            valid_from=valid_from,
            valid_until=valid_until,
            is_active=data.is_active,
            usage_limit=data.usage_limit,
            times_used=0,
            created_by=admin.id if admin else None,
            created_at=now,
            updated_at=now,
        )
        promo = await self.repo.create(promo)
        logger.info(f"Promotion {promo.code} created: {promo.id}")
        return serialize_promotion(promo, now)

    async def get_promotion(self, promo_id: UUID) -> EnrichedPromotion:
        promo = await self._get_or_404(promo_id)
        return serialize_promotion(promo, self.clock())

    async def update_promotion(self, promo_id: UUID, data: PromotionUpdate) -> EnrichedPromotion:
        promo = await self._get_or_404(promo_id)
        update_data = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        if "brand_id" in update_data:
            await self._ensure_brand(update_data["brand_id"])
        if "code" in update_data and await self.repo.code_exists(update_data["code"], exclude_id=promo.id):
            raise Conflict()
        check_window(
            update_data.get("valid_from", promo.valid_from),
            update_data.get("valid_until", promo.valid_until),
        )

        now = self.clock()
        for field, value in update_data.items():
            setattr(promo, field, value)
        promo.updated_at = now

        promo = await self.repo.update(promo)
        logger.info(f"Promotion updated: {promo_id} ({', '.join(update_data) or 'no fields'})")
        return serialize_promotion(promo, now)

    async def delete_promotion(self, promo_id: UUID) -> dict:
        """
        Remove a never-used promotion; deactivate one with usage history.
        """
        promo = await self._get_or_404(promo_id)

        if promo.times_used > 0:
            promo.is_active = False
            promo.updated_at = self.clock()
            await self.repo.update(promo)
            logger.info(f"Promotion deactivated (has usage): {promo_id}")
            return {
                "message": "Promotion deactivated successfully (preserved due to usage history)",
                "action": "deactivated",
            }

        await self.repo.delete(promo)
        logger.info(f"Promotion deleted: {promo_id}")
        return {"message": "Promotion deleted successfully", "action": "deleted"}

    async def toggle_promotion(self, promo_id: UUID) -> dict:
        promo = await self._get_or_404(promo_id)
        now = self.clock()
        promo.is_active = not promo.is_active
        promo.updated_at = now
        promo = await self.repo.update(promo)

        status = "activated" if promo.is_active else "deactivated"
        logger.info(f"Promotion {status}: {promo_id}")
        return {
            "promotion": serialize_promotion(promo, now),
            "message": f"Promotion {promo.code} {status} successfully",
            "status": status,
        }

    async def extend_promotion(self, promo_id: UUID, data: PromotionExtend) -> dict:
        if not has_extension(data):
            raise ValidationError("Must provide either days, hours, or new_date to extend promotion")

        promo = await self._get_or_404(promo_id)
        now = self.clock()
        old_expiry = as_utc(promo.valid_until)
        promo.valid_until = extended_expiry(promo, data, now)
        promo.updated_at = now
        promo = await self.repo.update(promo)

        description = extension_description(data)
        logger.info(f"Promotion extended {description}: {promo_id}")
        return {
            "promotion": serialize_promotion(promo, now),
            "message": f"Promotion {promo.code} extended {description}",
            "old_expiry": old_expiry,
            "new_expiry": as_utc(promo.valid_until),
        }

    async def duplicate_promotion(
        self, promo_id: UUID, data: PromotionDuplicate, admin: Optional[Profile] = None
    ) -> dict:
        original = await self._get_or_404(promo_id, "Original promotion not found")

        if data.new_code:
            code = data.new_code
            if await self.repo.code_exists(code):
                raise Conflict("Duplicate code already exists. Please provide a unique code.")
        else:
            code = await CodeGenerator(self.repo).generate(
                prefix=f"{original.code[:COPY_PREFIX_LENGTH]}_COPY", timestamped=True
            )

        now = self.clock()
        valid_from = data.valid_from or now
        valid_until = data.valid_until or now + DEFAULT_VALIDITY
        check_window(valid_from, valid_until)

        if data.description_suffix:
            description = f"{original.description} {data.description_suffix}"
        else:
            description = f"{original.description} (Copy)"

        duplicate = Promotion(
            id=uuid4(),
            brand_id=original.brand_id,
            code=code,
            description=description,
            discount_percent=(
                data.discount_percent if data.discount_percent is not None else original.discount_percent
            ),
            valid_from=valid_from,
            valid_until=valid_until,
            is_active=True,
            usage_limit=data.usage_limit if data.usage_limit is not None else original.usage_limit,
            times_used=0,
            created_by=admin.id if admin else None,
            created_at=now,
            updated_at=now,
        )
        original_summary = {"id": original.id, "code": original.code}
        duplicate = await self.repo.create(duplicate)
        logger.info(f"Promotion {original_summary['code']} duplicated as {code}: {duplicate.id}")
        return {
            "promotion": serialize_promotion(duplicate, now),
            "original_promotion": original_summary,
            "message": f"Promotion duplicated successfully as {code}",
        }

    async def validate_code(self, data: PromotionValidate) -> dict:
        """
        Decide whether a code may be redeemed right now.

        Every violated rule is reported, not only the first one. Redemption
        accounting (``times_used``) belongs to the order flow, so nothing is
        written here.
        """
        if not data.code or not data.code.strip():
            raise ValidationError("Promotion code is required")

        code = data.code.strip().upper()
        promo = await self.repo.get_by_code(code)
        if promo is None:
            raise NotFound("Promotion code not found", valid=False, code=code)

        now = self.clock()
        reasons = []
        if not promo.is_active:
            reasons.append("Promotion is not active")
        if now < as_utc(promo.valid_from):
            reasons.append(f"Promotion starts on {format_date(promo.valid_from)}")
        if now > as_utc(promo.valid_until):
            reasons.append(f"Promotion expired on {format_date(promo.valid_until)}")
        if is_fully_used(promo.times_used, promo.usage_limit):
            reasons.append("Promotion usage limit reached")
        if data.brand_id and promo.brand_id != data.brand_id:
            reasons.append("Promotion not valid for this brand")

        result = {"code": promo.code, "valid": not reasons, "reasons": reasons}
        if reasons:
            result["promotion"] = None
            result["error"] = ", ".join(reasons)
        else:
            result["promotion"] = serialize_promotion(promo, now)
            result["message"] = f"Promotion code is valid! {promo.discount_percent}% discount available."
            if data.user_id:
                # per-user redemption tracking does not exist yet
                result["user_usage_check"] = "not_implemented"

        logger.info(f"Promotion code {promo.code} validation result: {result['valid']}")
        return result

    async def get_expiring(
        self, days: int = 7, brand_id: Optional[UUID] = None, include_expired: bool = False
    ) -> dict:
        now = self.clock()
        conditions = [Promotion.is_active.is_(True), Promotion.valid_until <= now + days * DAY]
        if not include_expired:
            conditions.append(Promotion.valid_until >= now)
        if brand_id:
            conditions.append(Promotion.brand_id == brand_id)

        promos = await self.repo.find(conditions, order_by=Promotion.valid_until.asc())
        enriched = [serialize_promotion(promo, now) for promo in promos]
        grouped = {level: [p for p in enriched if p.urgency_level == level] for level in URGENCY_LEVELS}

        logger.info(f"Found {len(enriched)} promotions expiring within {days} days")
        return {
            "promotions": enriched,
            "grouped_by_urgency": grouped,
            "summary": {
                "total_count": len(enriched),
                **{f"{level}_count": len(grouped[level]) for level in URGENCY_LEVELS},
                "days_range": days,
                "include_expired": include_expired,
            },
            "filters": {"days": days, "brand_id": brand_id, "include_expired": include_expired},
        }
