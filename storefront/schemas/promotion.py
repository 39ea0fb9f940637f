from pydantic import (
    BaseModel,
    conint,
    constr,
    field_validator,
)
from typing import List, Literal, Optional
from uuid import UUID
from datetime import datetime
import re

from storefront.schemas.brand import BrandSummary
from storefront.utils.promo_helpers import as_utc

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$")
ALL_BRANDS = "all"


def normalize_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip().upper()
    if not CODE_PATTERN.match(value):
        raise ValueError("Promotion code may only contain letters, digits, '_' and '-'.")
    return value


def clamp_discount(value: Optional[int]) -> Optional[int]:
    if value is None:
        return value
    return max(0, min(100, value))


class _PromotionWrite(BaseModel):
    """Shared normalization of every promotion write."""

    @field_validator("code", "new_code", check_fields=False)
    def validate_code(cls, value):
        return normalize_code(value)

    @field_validator("discount_percent", check_fields=False)
    def validate_discount(cls, value):
        return clamp_discount(value)

    @field_validator("valid_from", "valid_until", "new_date", check_fields=False)
    def validate_timestamp(cls, value):
        return as_utc(value)


class PromotionCreate(_PromotionWrite):
    code: constr(min_length=1, max_length=64)
    description: constr(min_length=1, max_length=500)
    brand_id: UUID
    discount_percent: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    usage_limit: int = 0


class PromotionUpdate(_PromotionWrite):
    code: Optional[constr(min_length=1, max_length=64)] = None
    description: Optional[constr(min_length=1, max_length=500)] = None
    brand_id: Optional[UUID] = None
    discount_percent: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None
    usage_limit: Optional[int] = None


class PromotionExtend(_PromotionWrite):
    days: Optional[conint(ge=0)] = None
    hours: Optional[conint(ge=0)] = None
    new_date: Optional[datetime] = None


class PromotionDuplicate(_PromotionWrite):
    new_code: Optional[constr(min_length=1, max_length=64)] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = None
    discount_percent: Optional[int] = None
    description_suffix: Optional[str] = None


class PromotionValidate(BaseModel):
    code: Optional[str] = None
    user_id: Optional[str] = None
    brand_id: Optional[UUID] = None


class BulkTemplate(_PromotionWrite):
    code: Optional[constr(min_length=1, max_length=64)] = None
    description: Optional[str] = None
    discount_percent: int = 10
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    usage_limit: Optional[int] = None


class BulkCreate(BaseModel):
    template: Optional[BulkTemplate] = None
    brands: Optional[List[str]] = None
    count_per_brand: conint(ge=1, le=1000) = 1
    code_prefix: Optional[constr(max_length=32)] = None
    code_suffix: Optional[constr(max_length=32)] = None
    auto_generate_codes: bool = False

    @field_validator("code_prefix", "code_suffix")
    def validate_affix(cls, value):
        if not value:
            return None
        return normalize_code(value)


class BulkExtendFilters(BaseModel):
    brand_id: Optional[UUID] = None
    status: Optional[Literal["active", "scheduled", "expired", "inactive", "expiring"]] = None
    search: Optional[str] = None


class BulkExtend(PromotionExtend):
    promotion_ids: Optional[List[UUID]] = None
    filters: Optional[BulkExtendFilters] = None


class PromotionRead(BaseModel):
    id: UUID
    brand_id: UUID
    code: str
    description: str
    discount_percent: int
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    usage_limit: int
    times_used: int
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    brand: Optional[BrandSummary] = None

    @field_validator("valid_from", "valid_until", "created_at", "updated_at")
    def validate_timestamp(cls, value):
        return as_utc(value)

    class Config:
        from_attributes = True


class EnrichedPromotion(PromotionRead):
    computed_status: Literal["scheduled", "active", "expired", "inactive"]
    usage_percentage: int
    days_until_expiry: int
    hours_until_expiry: int
    urgency_level: Literal["expired", "critical", "high", "medium", "low"]
    is_expiring_soon: bool
    is_expired: bool
    is_fully_used: bool
