from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.dependencies.database import get_db
from storefront.repositories.brand import BrandRepository
from storefront.schemas.brand import BrandRead

router = APIRouter(prefix="/api/brands")


@router.get("", response_model=List[BrandRead])
async def list_brands(db: AsyncSession = Depends(get_db)):
    return await BrandRepository(db).get_active()
