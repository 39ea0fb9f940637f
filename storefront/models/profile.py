from storefront.backend.db import Base
from sqlalchemy import Column, String, Uuid

ADMIN_ROLE = "admin"

class Profile(Base):
    """
    Mirror of the auth provider's user profile, read-only for this service.
    """
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True)
    email = Column(String(120), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default="customer")

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
