import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.exceptions import GenerationFailed, NotFound, ValidationError
from storefront.models.profile import Profile
from storefront.models.promotion import Promotion
from storefront.repositories.brand import BrandRepository
from storefront.repositories.promotion import PromotionRepository, search_condition, status_condition
from storefront.schemas.promotion import ALL_BRANDS, BulkCreate, BulkExtend, BulkExtendFilters
from storefront.services.code_generator import CodeGenerator, DEFAULT_PREFIX
from storefront.services.promotion import (
    DEFAULT_VALIDITY,
    check_window,
    extended_expiry,
    extension_description,
    has_extension,
    serialize_promotion,
)
from storefront.utils.promo_helpers import as_utc, utcnow

logger = logging.getLogger(__name__)

BULK_USAGE_LIMIT = 100
MAX_CODE_LENGTH = 64


class BulkPromotionService:
    """
    Batch create and extend.

    Both operations report per-item outcomes: a failing item is recorded and
    its siblings carry on, nothing is rolled back across the batch.
    """

    def __init__(
        self,
        db: AsyncSession,
        session_factory: Optional[async_sessionmaker] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.repo = PromotionRepository(db)
        self.brand_repo = BrandRepository(db)
        self.generator = CodeGenerator(self.repo)
        self.session_factory = session_factory
        self.clock = clock

    async def _resolve_brands(self, brands: List[str], errors: List[str]) -> List[UUID]:
        if ALL_BRANDS in brands:
            return [brand.id for brand in await self.brand_repo.get_active()]

        requested = []
        for value in brands:
            try:
                brand_id = UUID(str(value))
            except ValueError:
                errors.append(f"Brand {value} is not a valid identifier")
                continue
            if brand_id not in requested:
                requested.append(brand_id)

        known = {brand.id for brand in await self.brand_repo.get_by_ids(requested)}
        for brand_id in requested:
            if brand_id not in known:
                errors.append(f"Brand {brand_id} not found")
        return [brand_id for brand_id in requested if brand_id in known]

    async def _templated_code(self, data: BulkCreate, index: int, reserved: set, errors: List[str]) -> Optional[str]:
        suffix = data.code_suffix or (f"_{index}" if data.count_per_brand > 1 else "")
        code = f"{data.template.code or DEFAULT_PREFIX}{suffix}"
        if len(code) > MAX_CODE_LENGTH:
            errors.append(f"Code {code} is longer than {MAX_CODE_LENGTH} characters")
            return None
        if code in reserved or await self.repo.code_exists(code):
            errors.append(f"Code {code} already exists")
            return None
        return code

    async def bulk_create(self, data: BulkCreate, admin: Optional[Profile] = None) -> dict:
        if data.template is None or not data.brands:
            raise ValidationError("Template and brands array are required")

        template = data.template
        now = self.clock()
        valid_from = template.valid_from or now
        valid_until = template.valid_until or now + DEFAULT_VALIDITY
        check_window(valid_from, valid_until)

        errors: List[str] = []
        brand_ids = await self._resolve_brands(data.brands, errors)

        reserved = set()
        to_create = []
        for brand_id in brand_ids:
            for index in range(1, data.count_per_brand + 1):
                if data.auto_generate_codes:
                    try:
                        code = await self.generator.generate(
                            prefix=data.code_prefix, timestamped=True, reserved=reserved
                        )
                    except GenerationFailed as exc:
                        errors.append(exc.detail)
                        continue
                else:
                    code = await self._templated_code(data, index, reserved, errors)
                    if code is None:
                        continue

                reserved.add(code)
                to_create.append(Promotion(
                    id=uuid4(),
                    brand_id=brand_id,
                    code=code,
                    description=template.description or f"Bulk created promotion {code}",
                    discount_percent=template.discount_percent,
                    valid_from=valid_from,
                    valid_until=valid_until,
                    is_active=template.is_active,
                    usage_limit=template.usage_limit if template.usage_limit is not None else BULK_USAGE_LIMIT,
                    times_used=0,
                    created_by=admin.id if admin else None,
                    created_at=now,
                    updated_at=now,
                ))

        if not to_create:
            logger.error(f"Bulk create produced nothing: {errors}")
            raise ValidationError("No valid promotions to create", errors=errors)

        created = await self.repo.create_many(to_create)
        message = f"Successfully created {len(created)} promotions"
        if errors:
            message += f" with {len(errors)} errors"
        logger.info(message)

        return {
            "promotions": [serialize_promotion(promo, now) for promo in created],
            "created_count": len(created),
            "errors": errors,
            "message": message,
        }

    def _filter_conditions(self, filters: BulkExtendFilters, now: datetime) -> list:
        conditions = []
        if filters.brand_id:
            conditions.append(Promotion.brand_id == filters.brand_id)
        if filters.status:
            conditions.append(status_condition(filters.status, now))
        if filters.search:
            conditions.append(search_condition(filters.search))
        return conditions

    async def _write_expiry(self, promo_id: UUID, valid_until: datetime, now: datetime) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                update(Promotion)
                .where(Promotion.id == promo_id)
                .values(valid_until=valid_until, updated_at=now)
            )
            if result.rowcount == 0:
                raise NotFound("Promotion not found")
            await session.commit()

    async def bulk_extend(self, data: BulkExtend) -> dict:
        if not has_extension(data):
            raise ValidationError("Must provide either days, hours, or new_date to extend promotions")

        now = self.clock()
        if data.promotion_ids:
            targets = await self.repo.get_by_ids(data.promotion_ids)
        elif data.filters is not None:
            targets = await self.repo.find(self._filter_conditions(data.filters, now))
        else:
            raise ValidationError("Must provide either promotion_ids or filters")

        if not targets:
            return {"message": "No promotions found to extend", "extended_count": 0}

        results = []
        pending = []
        for promo in targets:
            result = {"id": promo.id, "code": promo.code}
            try:
                new_expiry = extended_expiry(promo, data, now)
            except ValidationError as exc:
                results.append({**result, "success": False, "error": exc.detail})
                continue
            result.update(success=True, old_expiry=as_utc(promo.valid_until), new_expiry=new_expiry)
            results.append(result)
            pending.append((result, new_expiry))

        # release the read transaction before the per-item writers start
        await self.db.commit()

        outcomes = await asyncio.gather(
            *(self._write_expiry(result["id"], new_expiry, now) for result, new_expiry in pending),
            return_exceptions=True,
        )
        for (result, _), outcome in zip(pending, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Extending promotion {result['id']} failed: {outcome}")
                result["success"] = False
                result["error"] = getattr(outcome, "detail", None) or str(outcome)

        extended = sum(1 for result in results if result["success"])
        failed = len(results) - extended
        description = extension_description(data)
        logger.info(f"Bulk extend completed: {extended} success, {failed} failures")
        return {
            "message": f"Bulk extend completed: {extended} promotions extended {description}",
            "extended_count": extended,
            "failed_count": failed,
            "results": results,
            "extension_description": description,
        }
