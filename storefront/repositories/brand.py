from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Iterable, List, Optional
from uuid import UUID
from storefront.models.brand import Brand

class BrandRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, brand_id: UUID) -> Optional[Brand]:
        result = await self.db.execute(select(Brand).where(Brand.id == brand_id))
        return result.scalar()

    async def get_by_ids(self, brand_ids: Iterable[UUID]) -> List[Brand]:
        result = await self.db.execute(select(Brand).where(Brand.id.in_(list(brand_ids))))
        return list(result.scalars().all())

    async def get_active(self) -> List[Brand]:
        query = select(Brand).where(Brand.is_active.is_(True)).order_by(Brand.sort_order, Brand.name)
        result = await self.db.execute(query)
        return list(result.scalars().all())
