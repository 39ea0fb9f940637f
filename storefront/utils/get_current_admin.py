import logging
import uuid

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader
from jose import jwt, JWTError, ExpiredSignatureError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.backend.config import settings
from storefront.dependencies.database import get_db
from storefront.exceptions import Forbidden, Unauthorized
from storefront.models.profile import Profile

logger = logging.getLogger(__name__)

auth_header = APIKeyHeader(name="Authorization", auto_error=False)


def extract_token(authorization: str) -> str:
    """
    Pulls the bearer token out of the Authorization header.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized("Authorization header missing or invalid format")
    return authorization.split(" ", 1)[1].strip()


def decode_jwt_token(token: str) -> dict:
    """
    Decodes a session token issued by the auth provider.
    """
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except JWTError as e:
        raise Unauthorized(f"Invalid token: {str(e)}")


async def get_current_profile(
    authorization: str = Security(auth_header),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    token = extract_token(authorization)
    payload = decode_jwt_token(token)

    subject = payload.get("sub")
    if subject is None:
        raise Unauthorized("Invalid token: 'sub' not found")
    try:
        profile_id = uuid.UUID(str(subject))
    except ValueError:
        raise Unauthorized("Invalid subject format")

    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = result.scalar()
    if not profile:
        raise Unauthorized("Profile not found")
    return profile


async def get_current_admin(profile: Profile = Depends(get_current_profile)) -> Profile:
    if not profile.is_admin:
        logger.debug(f"Profile {profile.id} with role {profile.role} denied admin access")
        raise Forbidden()
    return profile
