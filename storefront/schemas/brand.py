from pydantic import BaseModel
from typing import Optional
from uuid import UUID


class BrandSummary(BaseModel):
    id: UUID
    name: str
    slug: str
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None

    class Config:
        from_attributes = True


class BrandRead(BrandSummary):
    is_active: bool
    sort_order: int
