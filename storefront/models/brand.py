from storefront.backend.db import Base
from sqlalchemy import Column, String, Boolean, Integer, Uuid
from sqlalchemy.orm import relationship
import uuid

class Brand(Base):
    __tablename__ = "brands"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    primary_color = Column(String(20), nullable=True)
    secondary_color = Column(String(20), nullable=True)

    promotions = relationship("Promotion", back_populates="brand")
