from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.dependencies.database import get_db, get_session_factory
from storefront.schemas.promotion import (
    ALL_BRANDS,
    BulkCreate,
    BulkExtend,
    PromotionCreate,
    PromotionDuplicate,
    PromotionExtend,
    PromotionUpdate,
    PromotionValidate,
)
from storefront.services.analytics import PromotionAnalyticsService
from storefront.services.bulk import BulkPromotionService
from storefront.services.promotion import PromotionService
from storefront.utils.get_current_admin import get_current_admin

router = APIRouter(prefix="/api/promotions")


def parse_brand_filter(brand_id: Optional[str]) -> Optional[UUID]:
    """The ``all`` sentinel and an empty value both mean no brand filter."""
    if not brand_id or brand_id == ALL_BRANDS:
        return None
    try:
        return UUID(brand_id)
    except ValueError:
        raise ValueError(f"Invalid brand_id '{brand_id}'")


@router.get("")
async def list_promotions(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    search: Optional[str] = Query(None),
    brand_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(active|scheduled|expired|inactive|expiring)$"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    usage_min: Optional[int] = Query(None, ge=0),
    usage_max: Optional[int] = Query(None, ge=0),
    discount_min: Optional[int] = Query(None, ge=0, le=100),
    discount_max: Optional[int] = Query(None, ge=0, le=100),
    sort_by: str = Query(
        "created_at", pattern="^(created_at|updated_at|valid_from|valid_until|code|discount_percent|times_used)$"
    ),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    result, total = await service.list_promotions(
        page=page,
        limit=limit,
        search=search,
        brand_id=parse_brand_filter(brand_id),
        status=status,
        date_from=date_from,
        date_to=date_to,
        usage_min=usage_min,
        usage_max=usage_max,
        discount_min=discount_min,
        discount_max=discount_max,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return JSONResponse(content=jsonable_encoder(result), headers={"X-Total-Count": str(total)})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_promotion(
    promo_data: PromotionCreate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    promotion = await service.create_promotion(promo_data, admin)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=jsonable_encoder({"promotion": promotion}))


@router.post("/validate")
async def validate_promotion(
    data: PromotionValidate,
    db: AsyncSession = Depends(get_db),
):
    service = PromotionService(db)
    result = await service.validate_code(data)
    status_code = status.HTTP_200_OK if result["valid"] else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))


@router.post("/bulk-create", status_code=status.HTTP_201_CREATED)
async def bulk_create_promotions(
    data: BulkCreate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = BulkPromotionService(db)
    result = await service.bulk_create(data, admin)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=jsonable_encoder(result))


@router.post("/bulk-extend")
async def bulk_extend_promotions(
    data: BulkExtend,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    admin=Depends(get_current_admin),
):
    service = BulkPromotionService(db, session_factory)
    result = await service.bulk_extend(data)
    return JSONResponse(content=jsonable_encoder(result))


@router.get("/expiring")
async def get_expiring_promotions(
    days: int = Query(7, ge=0, le=365),
    brand_id: Optional[str] = Query(None),
    include_expired: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    result = await service.get_expiring(days, parse_brand_filter(brand_id), include_expired)
    return JSONResponse(content=jsonable_encoder(result))


@router.get("/analytics")
async def get_promotion_analytics(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    brand_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionAnalyticsService(db)
    result = await service.generate(date_from, date_to, parse_brand_filter(brand_id))
    return JSONResponse(content=jsonable_encoder(result))


@router.get("/{id}")
async def get_promotion(
    id: UUID,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    promotion = await service.get_promotion(id)
    return JSONResponse(content=jsonable_encoder({"promotion": promotion}))


@router.put("/{id}")
async def update_promotion(
    id: UUID,
    promo_data: PromotionUpdate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    promotion = await service.update_promotion(id, promo_data)
    return JSONResponse(content=jsonable_encoder({"promotion": promotion}))


@router.delete("/{id}")
async def delete_promotion(
    id: UUID,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    return await service.delete_promotion(id)


@router.patch("/{id}/toggle")
async def toggle_promotion(
    id: UUID,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    result = await service.toggle_promotion(id)
    return JSONResponse(content=jsonable_encoder(result))


@router.patch("/{id}/extend")
async def extend_promotion(
    id: UUID,
    data: PromotionExtend,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    result = await service.extend_promotion(id, data)
    return JSONResponse(content=jsonable_encoder(result))


@router.post("/{id}/duplicate", status_code=status.HTTP_201_CREATED)
async def duplicate_promotion(
    id: UUID,
    data: PromotionDuplicate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    service = PromotionService(db)
    result = await service.duplicate_promotion(id, data, admin)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=jsonable_encoder(result))
