from datetime import datetime
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func, or_, and_, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.exceptions import Conflict
from storefront.models.promotion import Promotion
from storefront.utils.promo_helpers import EXPIRING_SOON_DAYS, DAY

CODE_INDEX = "ix_promotions_code"

SORTABLE_COLUMNS = {
    "created_at": Promotion.created_at,
    "updated_at": Promotion.updated_at,
    "valid_from": Promotion.valid_from,
    "valid_until": Promotion.valid_until,
    "code": Promotion.code,
    "discount_percent": Promotion.discount_percent,
    "times_used": Promotion.times_used,
}


def status_condition(status: str, now: datetime):
    """
    SQL counterpart of compute_status, plus the "expiring" pseudo-status.
    """
    if status == "active":
        return and_(Promotion.is_active.is_(True), Promotion.valid_from <= now, Promotion.valid_until >= now)
    if status == "scheduled":
        return and_(Promotion.is_active.is_(True), Promotion.valid_from > now)
    if status == "expired":
        return and_(Promotion.is_active.is_(True), Promotion.valid_until < now)
    if status == "inactive":
        return Promotion.is_active.is_(False)
    if status == "expiring":
        return and_(
            Promotion.is_active.is_(True),
            Promotion.valid_until >= now,
            Promotion.valid_until <= now + EXPIRING_SOON_DAYS * DAY,
        )
    raise ValueError(f"Unknown promotion status '{status}'")


def search_condition(search: str):
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return or_(
        Promotion.code.ilike(pattern, escape="\\"),
        Promotion.description.ilike(pattern, escape="\\"),
    )


def is_code_conflict(exc: IntegrityError) -> bool:
    """True when the violated constraint is the unique index on ``promotions.code``."""
    message = str(exc.orig)
    return CODE_INDEX in message or "promotions.code" in message


class PromotionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _select(self):
        return select(Promotion).options(selectinload(Promotion.brand)).execution_options(populate_existing=True)

    async def get_by_id(self, promo_id: UUID) -> Optional[Promotion]:
        result = await self.db.execute(self._select().where(Promotion.id == promo_id))
        return result.scalar()

    async def get_by_ids(self, promo_ids: Iterable[UUID]) -> List[Promotion]:
        query = self._select().where(Promotion.id.in_(list(promo_ids))).order_by(Promotion.created_at)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_by_code(self, code: str) -> Optional[Promotion]:
        result = await self.db.execute(self._select().where(Promotion.code == code))
        return result.scalar()

    async def code_exists(self, code: str, exclude_id: Optional[UUID] = None) -> bool:
        query = select(Promotion.id).where(Promotion.code == code)
        if exclude_id is not None:
            query = query.where(Promotion.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar() is not None

    async def find(self, conditions: Iterable = (), order_by=None) -> List[Promotion]:
        query = self._select()
        for condition in conditions:
            query = query.where(condition)
        if order_by is not None:
            query = query.order_by(order_by)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_page(
        self,
        conditions: Iterable = (),
        offset: int = 0,
        limit: int = 50,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Promotion], int]:
        conditions = list(conditions)
        count_query = select(func.count(Promotion.id))
        for condition in conditions:
            count_query = count_query.where(condition)
        total = (await self.db.execute(count_query)).scalar() or 0

        column = SORTABLE_COLUMNS.get(sort_by, Promotion.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        query = self._select()
        for condition in conditions:
            query = query.where(condition)
        query = query.order_by(order, Promotion.id).offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            if is_code_conflict(exc):
                raise Conflict()
            raise

    async def create(self, promo: Promotion) -> Promotion:
        self.db.add(promo)
        await self._commit()
        return await self.get_by_id(promo.id)

    async def create_many(self, promos: List[Promotion]) -> List[Promotion]:
        self.db.add_all(promos)
        await self._commit()
        return await self.get_by_ids(promo.id for promo in promos)

    async def update(self, promo: Promotion) -> Promotion:
        self.db.add(promo)
        await self._commit()
        return await self.get_by_id(promo.id)

    async def delete(self, promo: Promotion) -> None:
        await self.db.execute(delete(Promotion).where(Promotion.id == promo.id))
        await self.db.commit()
