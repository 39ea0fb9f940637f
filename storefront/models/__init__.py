from storefront.models.brand import Brand
from storefront.models.profile import Profile
from storefront.models.promotion import Promotion

__all__ = ["Brand", "Profile", "Promotion"]
