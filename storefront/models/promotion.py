from storefront.backend.db import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Uuid
from sqlalchemy.orm import relationship
import uuid


class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    brand_id = Column(Uuid, ForeignKey("brands.id"), nullable=False, index=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(String(500), nullable=False)
    discount_percent = Column(Integer, nullable=False, default=0)

    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    usage_limit = Column(Integer, nullable=False, default=0)
    times_used = Column(Integer, nullable=False, default=0)

    created_by = Column(Uuid, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    brand = relationship("Brand", back_populates="promotions")
